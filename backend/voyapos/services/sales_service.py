# Overview: Sale transaction coordinator; create, edit and delete sales as atomic units.

"""
Sales Service

Every operation runs inside one database transaction (run_in_transaction):
the ledger decrements, customer upsert, invoice allocation and sale rows
commit together or not at all. Any error rolls everything back and reaches
the caller unchanged; a partial sale is never returned.

Edit and delete are privileged (admin only). Edit restores the old items'
stock before reserving the new items, so the new item set is checked
against the restored baseline.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Product, Sale, SaleItem, Store, User
from voyapos.time_utils import parse_filter_bound, utcnow
from .concurrency import lock_for_update, run_in_transaction
from .customer_service import normalize_customer_info, record_purchase, upsert_customer
from .errors import NotFound, PermissionDenied, ValidationError
from .inventory_service import check_and_reserve, restore
from .invoice_service import next_invoice_number
from .pricing_service import SaleTotals, money, price_line, to_decimal

PAYMENT_METHODS = ("cash", "card", "upi", "other")


def _normalize_items(items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    normalized = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError("each item must be an object", details={"index": index})

        product_id = item.get("product_id")
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise ValidationError("product_id must be an integer", details={"index": index})

        quantity = item.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError(
                "quantity must be a positive integer",
                details={"index": index, "quantity": quantity},
            )

        discount = to_decimal(item.get("discount") or 0, "discount")
        if discount < 0:
            raise ValidationError("discount must be >= 0", details={"index": index})
        # Line totals are stored in cents; the sale total must equal their sum
        if discount.normalize().as_tuple().exponent < -2:
            raise ValidationError(
                "discount must have at most 2 decimal places",
                details={"index": index, "discount": str(discount)},
            )

        normalized.append({"product_id": product_id, "quantity": quantity, "discount": discount})
    return normalized


def _normalize_payment_method(payment_method) -> str:
    value = str(payment_method or "").strip().lower()
    if value not in PAYMENT_METHODS:
        raise ValidationError(
            "Invalid payment method",
            details={"allowed": list(PAYMENT_METHODS), "payment_method": payment_method},
        )
    return value


def _require_privileged(actor: User | None) -> None:
    if actor is None or not actor.is_admin:
        raise PermissionDenied("Admin privileges required")


def _reserve_and_price(store_id: int, items: list[dict]) -> tuple[SaleTotals, list[SaleItem]]:
    """Reserve stock and build immutable item snapshots for each requested line."""
    totals = SaleTotals()
    snapshots = []

    for item in items:
        product = db.session.get(Product, item["product_id"])
        if product is None:
            raise NotFound("product", item["product_id"])
        if not product.is_active:
            raise ValidationError(
                f"Product is inactive: {product.name}",
                details={"product_id": product.id},
            )

        check_and_reserve(product, store_id, item["quantity"])

        line = price_line(product.price, item["discount"], item["quantity"], product.tax_rate)
        totals.add(line)

        snapshots.append(SaleItem(
            product_id=product.id,
            name=product.name,
            sku=product.sku,
            quantity=line.quantity,
            unit_price=line.unit_price,
            discount=line.discount,
            discounted_price=line.discounted_price,
            tax_rate=line.tax_rate,
            base_amount=line.base_amount,
            tax_amount=line.tax_amount,
            line_total=line.line_total,
        ))

    return totals, snapshots


def _apply_totals(sale: Sale, totals: SaleTotals) -> None:
    sale.subtotal = totals.subtotal
    sale.total_discount = totals.total_discount
    sale.total_tax = totals.total_tax
    sale.total_amount = totals.total_amount


def _load_sale_for_update(sale_id: int) -> Sale:
    sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
    if sale is None:
        raise NotFound("sale", sale_id)
    return sale


def create_sale(
    *,
    store_id: int,
    items: list[dict],
    customer_info: dict,
    payment_method: str,
    cashier_id: int | None = None,
    notes: str | None = None,
) -> Sale:
    """Record a sale: reserve stock, snapshot items, allocate an invoice number."""
    normalized_items = _normalize_items(items)
    normalize_customer_info(customer_info)
    method = _normalize_payment_method(payment_method)

    def _op() -> Sale:
        store = db.session.get(Store, store_id)
        if store is None:
            raise NotFound("store", store_id)
        if not store.is_active:
            raise ValidationError(f"Store is inactive: {store.name}", details={"store_id": store_id})

        customer = upsert_customer(customer_info)
        totals, snapshots = _reserve_and_price(store.id, normalized_items)
        invoice_number = next_invoice_number(store)

        sale = Sale(
            invoice_number=invoice_number,
            store_id=store.id,
            cashier_id=cashier_id,
            customer_id=customer.id,
            payment_method=method,
            notes=notes or None,
        )
        _apply_totals(sale, totals)
        sale.items.extend(snapshots)
        db.session.add(sale)

        record_purchase(customer, totals.total_amount)
        db.session.flush()
        return sale

    return run_in_transaction(_op)


def edit_sale(sale_id: int, items: list[dict], *, actor: User | None) -> Sale:
    """
    Replace a sale's items and totals (admin only).

    Old quantities go back to the ledger first, then the new items are
    reserved against that baseline. Shrinking stock below zero fails with
    InsufficientStock and nothing changes.
    """
    _require_privileged(actor)
    normalized_items = _normalize_items(items)

    def _op() -> Sale:
        sale = _load_sale_for_update(sale_id)
        previous_total = Decimal(sale.total_amount or 0)

        for item in list(sale.items):
            restore(item.product_id, sale.store_id, item.quantity)
        sale.items.clear()
        db.session.flush()

        totals, snapshots = _reserve_and_price(sale.store_id, normalized_items)
        _apply_totals(sale, totals)
        sale.items.extend(snapshots)
        sale.updated_at = utcnow()

        if sale.customer is not None:
            record_purchase(sale.customer, totals.total_amount - previous_total, touch_date=False)

        db.session.flush()
        return sale

    return run_in_transaction(_op)


def delete_sale(sale_id: int, *, actor: User | None) -> dict:
    """Delete a sale and return its items' stock to the ledger (admin only)."""
    _require_privileged(actor)

    def _op() -> dict:
        sale = _load_sale_for_update(sale_id)
        invoice_number = sale.invoice_number

        for item in list(sale.items):
            restore(item.product_id, sale.store_id, item.quantity)

        if sale.customer is not None:
            record_purchase(sale.customer, -Decimal(sale.total_amount or 0), touch_date=False)

        sale.items.clear()
        db.session.flush()
        db.session.delete(sale)
        db.session.flush()
        return {"invoice_number": invoice_number}

    return run_in_transaction(_op)


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if sale is None:
        raise NotFound("sale", sale_id)
    return sale


def _parse_range(start: str | None, end: str | None):
    try:
        return parse_filter_bound(start), parse_filter_bound(end, end=True)
    except ValueError:
        raise ValidationError("start/end must be ISO-8601 dates or datetimes") from None


def _filtered(query, *, store_id=None, cashier_id=None, start=None, end=None):
    start_dt, end_dt = _parse_range(start, end)
    if store_id is not None:
        query = query.filter(Sale.store_id == store_id)
    if cashier_id is not None:
        query = query.filter(Sale.cashier_id == cashier_id)
    if start_dt is not None:
        query = query.filter(Sale.created_at >= start_dt)
    if end_dt is not None:
        query = query.filter(Sale.created_at <= end_dt)
    return query


def list_sales(
    *,
    store_id: int | None = None,
    cashier_id: int | None = None,
    start: str | None = None,
    end: str | None = None,
    limit: int = 100,
) -> list[Sale]:
    query = _filtered(
        db.session.query(Sale),
        store_id=store_id,
        cashier_id=cashier_id,
        start=start,
        end=end,
    )
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()


def sales_stats(*, store_id: int | None = None, start: str | None = None, end: str | None = None) -> dict:
    query = _filtered(
        db.session.query(
            func.count(Sale.id).label("total_sales"),
            func.coalesce(func.sum(Sale.total_amount), 0).label("total_revenue"),
            func.coalesce(func.sum(Sale.total_discount), 0).label("total_discount"),
            func.coalesce(func.sum(Sale.total_tax), 0).label("total_tax"),
            func.avg(Sale.total_amount).label("avg_sale_amount"),
        ),
        store_id=store_id,
        start=start,
        end=end,
    )
    row = query.one()
    return {
        "total_sales": int(row.total_sales or 0),
        "total_revenue": money(row.total_revenue or 0),
        "total_discount": money(row.total_discount or 0),
        "total_tax": money(row.total_tax or 0),
        "avg_sale_amount": money(row.avg_sale_amount or 0),
    }
