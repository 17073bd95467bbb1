# Overview: Inventory ledger; per (product, store) stock counters with reserve/restore semantics.

# backend/voyapos/services/inventory_service.py
"""
Inventory Ledger Invariants (authoritative)

Inventory model:
- One Inventory row per (product, store) pair, created lazily.
- quantity is a mutable counter and may never go negative.

Reserve:
- check_and_reserve() runs inside the caller's transaction. The decrement
  is a single guarded UPDATE (quantity >= requested), which takes the row
  lock and re-checks stock atomically, so two concurrent sales can never
  both consume the last unit. Zero affected rows means InsufficientStock;
  the ledger never clamps.

Restore:
- restore() increments and creates the row when it is missing.

Absolute writes:
- upsert_absolute() overwrites the counter with an externally reported
  value. Used by reconciliation and admin stock assignment only.

None of these functions commit; callers own the transaction.
"""

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Inventory, Product, Store
from .concurrency import lock_for_update, run_in_transaction
from .errors import InsufficientStock, NotFound, ValidationError


def _require_quantity(quantity, *, allow_zero: bool) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity must be an integer", details={"quantity": quantity})
    if quantity < 0 or (quantity == 0 and not allow_zero):
        raise ValidationError(
            "quantity must be >= 0" if allow_zero else "quantity must be positive",
            details={"quantity": quantity},
        )
    return quantity


def get_quantity(product_id: int, store_id: int) -> int:
    """Current counter for the pair, 0 when no row exists."""
    qty = (
        db.session.query(Inventory.quantity)
        .filter_by(product_id=product_id, store_id=store_id)
        .scalar()
    )
    return int(qty or 0)


def check_and_reserve(product: Product, store_id: int, quantity: int) -> int:
    """
    Decrement stock for a sale line; return the remaining quantity.

    Raises InsufficientStock (with requested vs available) when the row is
    missing or holds less than requested.
    """
    _require_quantity(quantity, allow_zero=False)

    stmt = (
        update(Inventory)
        .where(
            Inventory.product_id == product.id,
            Inventory.store_id == store_id,
            Inventory.quantity >= quantity,
        )
        .values(quantity=Inventory.quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        raise InsufficientStock(
            product_id=product.id,
            product_name=product.name,
            store_id=store_id,
            requested=quantity,
            available=get_quantity(product.id, store_id),
        )
    return get_quantity(product.id, store_id)


def restore(product_id: int, store_id: int, quantity: int) -> int:
    """Increment stock (undo a reserve); return the new quantity."""
    _require_quantity(quantity, allow_zero=False)

    stmt = (
        update(Inventory)
        .where(Inventory.product_id == product_id, Inventory.store_id == store_id)
        .values(quantity=Inventory.quantity + quantity)
        .execution_options(synchronize_session=False)
    )
    if db.session.execute(stmt).rowcount == 0:
        try:
            with db.session.begin_nested():
                db.session.add(Inventory(product_id=product_id, store_id=store_id, quantity=quantity))
        except IntegrityError:
            # Row appeared concurrently; fall back to the increment
            db.session.execute(stmt)
    return get_quantity(product_id, store_id)


def upsert_absolute(product_id: int, store_id: int, quantity: int) -> Inventory:
    """Overwrite the stored quantity with an externally reported value."""
    _require_quantity(quantity, allow_zero=True)

    row = (
        lock_for_update(
            db.session.query(Inventory).filter_by(product_id=product_id, store_id=store_id)
        )
        .populate_existing()
        .first()
    )
    if row is None:
        row = Inventory(product_id=product_id, store_id=store_id, quantity=quantity)
        db.session.add(row)
    else:
        row.quantity = quantity
    db.session.flush()
    return row


def set_stock(*, product_id: int, store_id: int, quantity: int) -> Inventory:
    """Admin stock assignment for one pair (committed)."""
    def _op():
        if db.session.get(Product, product_id) is None:
            raise NotFound("product", product_id)
        if db.session.get(Store, store_id) is None:
            raise NotFound("store", store_id)
        return upsert_absolute(product_id, store_id, quantity)

    return run_in_transaction(_op)


def list_store_inventory(store_id: int) -> list[dict]:
    """In-stock, active products at a store (the POS catalog view)."""
    if db.session.get(Store, store_id) is None:
        raise NotFound("store", store_id)

    rows = (
        db.session.query(Product, Inventory.quantity)
        .join(Inventory, Inventory.product_id == Product.id)
        .filter(
            Inventory.store_id == store_id,
            Inventory.quantity > 0,
            Product.is_active.is_(True),
        )
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )
    return [{**product.to_dict(), "quantity": quantity} for product, quantity in rows]
