# Overview: Reconciles local stores, products and stock against the external commerce platform.

"""
External Inventory Reconciliation

sync_inventory() pulls per-location availability from the commerce
platform and overwrites the local ledger (last writer wins):

1. Stores with an external location id and products with an external
   variant id are loaded; either set being empty aborts with a
   ValidationError.
2. Each product's external inventory item id is taken from the cached
   column or resolved through the client's resolve_external_item_ids().
3. Inventory levels are fetched in fixed-size batches with a short pause
   between batches. A failed or timed-out batch is logged and recorded;
   the remaining batches still run.
4. Levels are indexed as location id -> item id -> available.
5. Each (product, store) pair is written with upsert_absolute() and
   committed on its own. Per-pair failures are recorded, never raised.

The run is not atomic: a failure part way leaves some pairs updated and
others stale. The returned SyncResult says which.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Product, Store
from .commerce_client import CommerceClient
from .errors import ExternalFetchError, PosError, ValidationError
from .inventory_service import upsert_absolute

DEFAULT_CATEGORY = "accessory"
CATEGORY_TAX_RATES = {
    "frame": Decimal("5"),
    "eyeglass": Decimal("5"),
    "sunglass": Decimal("18"),
    "accessory": Decimal("18"),
}


@dataclass
class SyncResult:
    total_stores_considered: int = 0
    total_products_considered: int = 0
    updated_count: int = 0
    errors: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_stores_considered": self.total_stores_considered,
            "total_products_considered": self.total_products_considered,
            "updated_count": self.updated_count,
            "error_count": len(self.errors),
            "errors": list(self.errors),
        }


def _default_client() -> CommerceClient:
    return CommerceClient.from_config(current_app.config)


def _chunks(values: list, size: int):
    for start in range(0, len(values), size):
        yield values[start:start + size]


def _resolve_item_ids(client, products: list[Product], result: SyncResult) -> dict[str, Product]:
    """Map external inventory item id -> local product, caching new resolutions."""
    item_to_product: dict[str, Product] = {}
    unresolved = []
    for product in products:
        if product.external_inventory_item_id:
            item_to_product[str(product.external_inventory_item_id)] = product
        else:
            unresolved.append(product)

    if unresolved:
        try:
            resolved, errors = client.resolve_external_item_ids(unresolved)
        except ExternalFetchError as exc:
            current_app.logger.warning("Inventory item id resolution failed: %s", exc.message)
            result.errors.append({"stage": "resolve", "error": exc.message})
            resolved, errors = {}, []

        result.errors.extend(errors)
        by_id = {product.id: product for product in unresolved}
        for product_id, item_id in resolved.items():
            product = by_id.get(product_id)
            if product is None:
                continue
            product.external_inventory_item_id = str(item_id)
            item_to_product[str(item_id)] = product
        db.session.commit()

    return item_to_product


def _fetch_levels(client, item_ids: list[str], result: SyncResult, *, batch_size: int, delay: float, sleep) -> list[dict]:
    levels: list[dict] = []
    batches = list(_chunks(item_ids, batch_size))
    for number, batch in enumerate(batches, start=1):
        try:
            levels.extend(client.get_inventory_levels(batch))
            current_app.logger.info("Fetched inventory batch %d/%d (%d items)", number, len(batches), len(batch))
        except ExternalFetchError as exc:
            current_app.logger.warning("Inventory batch %d/%d failed: %s", number, len(batches), exc.message)
            result.errors.append({
                "stage": "fetch",
                "batch": number,
                "item_count": len(batch),
                "error": exc.message,
            })
        if delay and number < len(batches):
            sleep(delay)
    return levels


def _index_levels(levels: list[dict]) -> dict[str, dict[str, int]]:
    by_location: dict[str, dict[str, int]] = {}
    for level in levels:
        location_id = level.get("location_id")
        item_id = level.get("inventory_item_id")
        if location_id is None or item_id is None:
            continue
        by_location.setdefault(str(location_id), {})[str(item_id)] = level.get("available") or 0
    return by_location


def _apply_store(store: Store, location_levels: dict[str, int], item_to_product: dict[str, Product], result: SyncResult) -> None:
    store_name = store.name
    for item_id, available in location_levels.items():
        product = item_to_product.get(item_id)
        if product is None:
            continue
        product_name = product.name
        try:
            upsert_absolute(product.id, store.id, available)
            db.session.commit()
            result.updated_count += 1
        except PosError as exc:
            db.session.rollback()
            result.errors.append({"product": product_name, "store": store_name, "error": exc.message})
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.warning("Inventory write failed for %s at %s", product_name, store_name)
            result.errors.append({"product": product_name, "store": store_name, "error": exc.__class__.__name__})


def sync_inventory(client=None, *, sleep=time.sleep) -> SyncResult:
    """Overwrite local stock with the platform's per-location availability."""
    config = current_app.config

    stores = (
        db.session.query(Store)
        .filter(Store.external_location_id.isnot(None))
        .order_by(Store.id)
        .all()
    )
    products = (
        db.session.query(Product)
        .filter(Product.external_variant_id.isnot(None))
        .order_by(Product.id)
        .all()
    )
    if not stores:
        raise ValidationError("No stores linked to external locations. Sync locations first.")
    if not products:
        raise ValidationError("No products linked to external variants. Sync the catalog first.")

    result = SyncResult(
        total_stores_considered=len(stores),
        total_products_considered=len(products),
    )

    owns_client = client is None
    if owns_client:
        client = _default_client()
    try:
        item_to_product = _resolve_item_ids(client, products, result)
        levels = _fetch_levels(
            client,
            list(item_to_product),
            result,
            batch_size=config["INVENTORY_SYNC_BATCH_SIZE"],
            delay=config["INVENTORY_SYNC_BATCH_DELAY"],
            sleep=sleep,
        )
        by_location = _index_levels(levels)

        for store in stores:
            location_levels = by_location.get(str(store.external_location_id))
            if not location_levels:
                current_app.logger.info("No inventory data for %s (location %s)", store.name, store.external_location_id)
                continue
            _apply_store(store, location_levels, item_to_product, result)
    finally:
        if owns_client:
            client.close()

    current_app.logger.info(
        "Inventory sync finished: %d updated, %d errors",
        result.updated_count,
        len(result.errors),
    )
    return result


def _location_label(location: dict) -> str:
    city = location.get("city") or "Store"
    country = location.get("country") or ""
    return f"{city}, {country}".strip().rstrip(",")


def sync_locations(client) -> dict:
    """Upsert stores from platform locations, matching by location id, then by name."""
    results = {"created": 0, "updated": 0, "errors": []}
    for location in client.list_locations():
        location_id = str(location.get("id"))
        name = (location.get("name") or "").strip()
        if not name:
            results["errors"].append({"location": location_id, "error": "Location has no name"})
            continue
        try:
            store = db.session.query(Store).filter_by(external_location_id=location_id).first()
            if store is None:
                store = db.session.query(Store).filter_by(name=name).first()
            created = store is None
            if created:
                store = Store(name=name)
                db.session.add(store)
            store.name = name
            store.location = _location_label(location)
            store.phone = location.get("phone") or store.phone
            store.external_location_id = location_id
            store.is_active = bool(location.get("active", True))
            db.session.commit()
            results["created" if created else "updated"] += 1
        except SQLAlchemyError as exc:
            db.session.rollback()
            results["errors"].append({"location": name, "error": exc.__class__.__name__})
    return results


def categorize(product_type: str | None, tags: str | None, title: str | None) -> tuple[str, Decimal]:
    """Category and tax rate from the platform's product type, tags and title."""
    haystacks = [(product_type or "").lower(), (tags or "").lower(), (title or "").lower()]
    for category in ("frame", "eyeglass", "sunglass"):
        if any(category in text for text in haystacks):
            return category, CATEGORY_TAX_RATES[category]
    return DEFAULT_CATEGORY, CATEGORY_TAX_RATES[DEFAULT_CATEGORY]


def _variant_price(variant: dict) -> Decimal:
    try:
        return Decimal(str(variant.get("price") or "0"))
    except InvalidOperation:
        return Decimal("0")


def sync_catalog(client) -> dict:
    """Upsert one local product per platform variant, keyed by variant id."""
    results = {"created": 0, "updated": 0, "errors": []}
    for remote in client.list_products():
        title = remote.get("title") or ""
        category, tax_rate = categorize(remote.get("product_type"), remote.get("tags"), title)
        for variant in remote.get("variants") or []:
            variant_id = str(variant.get("id"))
            variant_title = variant.get("title")
            name = title if not variant_title or variant_title == "Default Title" else f"{title} - {variant_title}"
            item_id = variant.get("inventory_item_id")
            try:
                product = db.session.query(Product).filter_by(external_variant_id=variant_id).first()
                created = product is None
                if created:
                    product = Product(external_variant_id=variant_id, is_active=True)
                    db.session.add(product)
                product.name = name
                product.sku = variant.get("sku") or f"SKU-{variant_id}"
                product.category = category
                product.tax_rate = tax_rate
                product.price = _variant_price(variant)
                product.external_product_id = str(remote.get("id"))
                if item_id:
                    product.external_inventory_item_id = str(item_id)
                db.session.commit()
                results["created" if created else "updated"] += 1
            except SQLAlchemyError as exc:
                db.session.rollback()
                results["errors"].append({"product": name, "variant_id": variant_id, "error": exc.__class__.__name__})
    return results


def refresh_all(client=None, *, sleep=time.sleep) -> dict:
    """Full refresh: locations, then catalog, then inventory."""
    owns_client = client is None
    if owns_client:
        client = _default_client()
    try:
        stores = sync_locations(client)
        products = sync_catalog(client)
        inventory = sync_inventory(client, sleep=sleep)
    finally:
        if owns_client:
            client.close()
    return {"stores": stores, "products": products, "inventory": inventory.to_dict()}
