# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/voyapos/routes/sales.py
"""
Sales API routes

Cashiers may only sell at, and read sales of, their assigned store.
Edit and delete are admin-only (enforced by sales_service).
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import sales_service
from ..services.errors import PermissionDenied, PosError, ValidationError


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _scoped_store_id(requested):
    """
    Resolve the store a request may touch.

    Admins may pass any store (or none); cashiers are pinned to their own.
    """
    user = g.current_user
    if requested in (None, ""):
        return None if user.is_admin else user.store_id
    try:
        store_id = int(requested)
    except (TypeError, ValueError):
        raise ValidationError("store_id must be an integer") from None
    if not user.is_admin and store_id != user.store_id:
        raise PermissionDenied(
            "Cashiers can only access their assigned store",
            details={"store_id": store_id, "assigned_store_id": user.store_id},
        )
    return store_id


@sales_bp.post("/")
@require_auth
def create_sale_route():
    """
    Record a sale.

    Body: store_id, items[{product_id, quantity, discount?}],
    customer_info{phone, name?, email?, address?, tax_id?},
    payment_method, notes?
    """
    try:
        data = request.get_json(silent=True) or {}
        store_id = _scoped_store_id(data.get("store_id"))
        if store_id is None:
            return jsonify({"error": "store_id required"}), 400

        sale = sales_service.create_sale(
            store_id=store_id,
            items=data.get("items"),
            customer_info=data.get("customer_info"),
            payment_method=data.get("payment_method"),
            cashier_id=g.current_user.id,
            notes=data.get("notes"),
        )
        current_app.logger.info(
            "Sale %s recorded at store %s by user %s",
            sale.invoice_number, store_id, g.current_user.id,
        )
        return jsonify({"sale": sale.to_dict()}), 201

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/")
@require_auth
def list_sales_route():
    try:
        store_id = _scoped_store_id(request.args.get("store_id"))
        limit = request.args.get("limit", default=100, type=int)
        sales = sales_service.list_sales(
            store_id=store_id,
            cashier_id=request.args.get("cashier_id", type=int),
            start=request.args.get("start"),
            end=request.args.get("end"),
            limit=max(1, min(limit, 500)),
        )
        return jsonify({"sales": [s.to_dict(include_items=False) for s in sales]}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.get("/stats")
@require_auth
def sales_stats_route():
    try:
        store_id = _scoped_store_id(request.args.get("store_id"))
        stats = sales_service.sales_stats(
            store_id=store_id,
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify({"stats": stats}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
        _scoped_store_id(sale.store_id)
        return jsonify({"sale": sale.to_dict()}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@sales_bp.put("/<int:sale_id>")
@require_auth
def edit_sale_route(sale_id: int):
    """Replace a sale's items (admin only)."""
    try:
        data = request.get_json(silent=True) or {}
        sale = sales_service.edit_sale(sale_id, data.get("items"), actor=g.current_user)
        current_app.logger.info("Sale %s edited by user %s", sale.invoice_number, g.current_user.id)
        return jsonify({"sale": sale.to_dict()}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to edit sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.delete("/<int:sale_id>")
@require_auth
def delete_sale_route(sale_id: int):
    """Delete a sale and restore its stock (admin only)."""
    try:
        deleted = sales_service.delete_sale(sale_id, actor=g.current_user)
        current_app.logger.info("Sale %s deleted by user %s", deleted["invoice_number"], g.current_user.id)
        return jsonify({"message": "Sale deleted", **deleted}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        return jsonify({"error": "Internal server error"}), 500
