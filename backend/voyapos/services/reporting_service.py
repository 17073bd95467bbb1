# Overview: Read-only inventory rollups for reporting.

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import Inventory, Product, Store
from .pricing_service import money


def _empty_store_stats(store: Store) -> dict:
    return {
        "store_id": store.id,
        "store_name": store.name,
        "location": store.location,
        "total_product_rows": 0,
        "products_with_stock": 0,
        "total_quantity": 0,
        "total_value": Decimal("0"),
        "low_stock_count": 0,
        "out_of_stock_count": 0,
    }


def inventory_summary(low_stock_threshold: int | None = None) -> dict:
    """
    Per-store and grand totals over inventory rows of active products.

    low stock: 0 < quantity < threshold; out of stock: quantity == 0.
    Stores are sorted by total_quantity descending. No writes.
    """
    if low_stock_threshold is None:
        low_stock_threshold = current_app.config["LOW_STOCK_THRESHOLD"]

    stores = (
        db.session.query(Store)
        .filter(Store.is_active.is_(True))
        .order_by(Store.id)
        .all()
    )
    by_store = {store.id: _empty_store_stats(store) for store in stores}

    rows = (
        db.session.query(Inventory.store_id, Inventory.quantity, Product.price)
        .join(Product, Product.id == Inventory.product_id)
        .filter(Product.is_active.is_(True), Inventory.store_id.in_(list(by_store)))
        .all()
    )

    for store_id, quantity, price in rows:
        stats = by_store[store_id]
        quantity = int(quantity or 0)
        stats["total_product_rows"] += 1
        stats["total_quantity"] += quantity
        stats["total_value"] += quantity * Decimal(price or 0)
        if quantity > 0:
            stats["products_with_stock"] += 1
            if quantity < low_stock_threshold:
                stats["low_stock_count"] += 1
        else:
            stats["out_of_stock_count"] += 1

    ordered = sorted(by_store.values(), key=lambda s: s["total_quantity"], reverse=True)

    grand_value = sum((s["total_value"] for s in ordered), Decimal("0"))
    for stats in ordered:
        stats["total_value"] = money(stats["total_value"])

    return {
        "total_products": db.session.query(Product).filter(Product.is_active.is_(True)).count(),
        "total_stores": len(ordered),
        "grand_total_quantity": sum(s["total_quantity"] for s in ordered),
        "total_inventory_value": money(grand_value),
        "low_stock_count": sum(s["low_stock_count"] for s in ordered),
        "out_of_stock_count": sum(s["out_of_stock_count"] for s in ordered),
        "low_stock_threshold": low_stock_threshold,
        "by_store": ordered,
    }
