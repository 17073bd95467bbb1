# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

# backend/voyapos/routes/inventory.py
"""
Inventory API routes

- Reconciliation against the commerce platform (admin only)
- Summary and per-store stock views
- Manual stock assignment (admin only)
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..extensions import db
from ..models import Store
from ..models.auth import ROLE_ADMIN
from ..services import inventory_service, reporting_service
from ..services.errors import PermissionDenied, PosError, ValidationError
from ..services.reconcile_service import refresh_all, sync_inventory
from ..services.sync_state import run_sync, sync_state, trigger_background_sync


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/sync")
@require_auth
@require_role(ROLE_ADMIN)
def sync_route():
    """
    Pull per-location availability and overwrite local stock.

    Runs synchronously; 409 if another sync is running.
    """
    try:
        result = run_sync(sync_inventory)
        current_app.logger.info(
            "Manual inventory sync by user %s: %d updated, %d errors",
            g.current_user.id, result.updated_count, len(result.errors),
        )
        return jsonify({"result": result.to_dict()}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Inventory sync failed")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/sync/status")
@require_auth
def sync_status_route():
    return jsonify({"sync": sync_state.status()}), 200


@inventory_bp.post("/refresh")
@require_auth
@require_role(ROLE_ADMIN)
def refresh_route():
    """Start a full refresh (locations, catalog, stock) in the background."""
    thread = trigger_background_sync(current_app._get_current_object(), refresh_all, force=True)
    if thread is None:
        return jsonify({"error": "Inventory sync already in progress"}), 409
    return jsonify({"message": "Refresh started", "sync": sync_state.status()}), 202


@inventory_bp.get("/summary")
@require_auth
def summary_route():
    threshold = request.args.get("low_stock_threshold", type=int)
    return jsonify({"summary": reporting_service.inventory_summary(threshold)}), 200


@inventory_bp.get("/stores/<int:store_id>")
@require_auth
def store_inventory_route(store_id: int):
    try:
        user = g.current_user
        if not user.is_admin and user.store_id != store_id:
            raise PermissionDenied("Cashiers can only access their assigned store")
        products = inventory_service.list_store_inventory(store_id)
        store = db.session.get(Store, store_id)
        return jsonify({"store": store.to_dict(), "products": products}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@inventory_bp.put("/stores/<int:store_id>/products/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN)
def set_stock_route(store_id: int, product_id: int):
    """Assign an absolute quantity to one (product, store) pair."""
    try:
        data = request.get_json(silent=True) or {}
        if "quantity" not in data:
            raise ValidationError("quantity required")
        row = inventory_service.set_stock(
            product_id=product_id,
            store_id=store_id,
            quantity=data["quantity"],
        )
        current_app.logger.info(
            "Stock set by user %s: product=%s store=%s quantity=%s",
            g.current_user.id, product_id, store_id, row.quantity,
        )
        return jsonify({"inventory": row.to_dict()}), 200

    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to set stock")
        return jsonify({"error": "Internal server error"}), 500
