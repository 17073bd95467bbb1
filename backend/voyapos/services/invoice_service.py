# Overview: Per-store invoice number allocation.

from __future__ import annotations

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import InvoiceSequence, Sale, Store

SEQUENCE_PAD = 4


def store_prefix(store_name: str, brand_tag: str | None = None) -> str:
    """First 4 alphanumerics of the store name, uppercased, plus the brand tag."""
    if brand_tag is None:
        brand_tag = current_app.config["INVOICE_BRAND_TAG"]
    letters = "".join(ch for ch in (store_name or "") if ch.isalnum())
    return f"{letters[:4].upper()}{brand_tag}"


def format_invoice_number(prefix: str, sequence: int) -> str:
    return f"{prefix}{sequence:0{SEQUENCE_PAD}d}"


def _allocate_sequence(store_id: int) -> int:
    """
    Take the next value from the store's counter row.

    The increment is one UPDATE, so it holds the row lock until the
    surrounding sale transaction ends. A missing counter is seeded from
    the number of existing sales so stores that predate the counter keep
    their numbering.
    """
    stmt = (
        update(InvoiceSequence)
        .where(InvoiceSequence.store_id == store_id)
        .values(next_number=InvoiceSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    if db.session.execute(stmt).rowcount == 0:
        seed = db.session.query(Sale).filter_by(store_id=store_id).count() + 1
        try:
            with db.session.begin_nested():
                db.session.add(InvoiceSequence(store_id=store_id, next_number=seed + 1))
            return seed
        except IntegrityError:
            # Another transaction seeded the counter first
            if db.session.execute(stmt).rowcount == 0:
                raise

    current = (
        db.session.query(InvoiceSequence.next_number)
        .filter_by(store_id=store_id)
        .scalar()
    )
    return current - 1


def next_invoice_number(store: Store) -> str:
    """
    Allocate the next invoice number for a store inside the caller's transaction.

    Stores whose names share a prefix would collide on the same number, so
    taken numbers are skipped to keep invoice numbers globally unique.
    """
    prefix = store_prefix(store.name)
    while True:
        number = format_invoice_number(prefix, _allocate_sequence(store.id))
        taken = db.session.query(Sale.id).filter_by(invoice_number=number).first()
        if taken is None:
            return number
        current_app.logger.warning("Invoice number %s already taken, advancing sequence", number)
