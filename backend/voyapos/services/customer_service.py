# Overview: Customer upsert by phone and purchase aggregates.

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import Customer
from voyapos.time_utils import utcnow
from .concurrency import lock_for_update
from .errors import ValidationError

MERGEABLE_FIELDS = ("name", "email", "address", "tax_id")


def normalize_customer_info(customer_info) -> dict:
    if not isinstance(customer_info, dict):
        raise ValidationError("customer_info must be an object")
    phone = str(customer_info.get("phone") or "").strip()
    if not phone:
        raise ValidationError("customer phone is required")

    normalized = {"phone": phone}
    for field in MERGEABLE_FIELDS:
        value = customer_info.get(field)
        if isinstance(value, str):
            value = value.strip()
        normalized[field] = value or None
    return normalized


def upsert_customer(customer_info: dict) -> Customer:
    """
    Find the customer by phone or create one.

    Existing customers only take the non-empty fields of customer_info;
    blanks never erase stored data. Does not commit.
    """
    info = normalize_customer_info(customer_info)

    customer = lock_for_update(
        db.session.query(Customer).filter_by(phone=info["phone"])
    ).first()

    if customer is None:
        customer = Customer(phone=info["phone"], total_purchases=Decimal("0"))
        for field in MERGEABLE_FIELDS:
            setattr(customer, field, info[field])
        db.session.add(customer)
    else:
        for field in MERGEABLE_FIELDS:
            if info[field]:
                setattr(customer, field, info[field])

    db.session.flush()
    return customer


def record_purchase(customer: Customer, amount: Decimal, *, touch_date: bool = True) -> None:
    """Apply a purchase delta (negative for reversals) to the customer's aggregates."""
    current = Decimal(customer.total_purchases or 0)
    updated = current + amount
    customer.total_purchases = updated if updated > 0 else Decimal("0")
    if touch_date:
        customer.last_purchase_date = utcnow()
