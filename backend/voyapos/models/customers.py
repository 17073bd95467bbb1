from __future__ import annotations

from ..extensions import db
from ..services.pricing_service import money
from voyapos.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data, deduplicated by phone number.

    Upserted on every sale. total_purchases and last_purchase_date are
    denormalized aggregates maintained by the sale operations.
    """
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    phone = db.Column(db.String(32), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(500), nullable=True)
    tax_id = db.Column(db.String(32), nullable=True)

    total_purchases = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    last_purchase_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "phone": self.phone,
            "name": self.name,
            "email": self.email,
            "address": self.address,
            "tax_id": self.tax_id,
            "total_purchases": money(self.total_purchases),
            "last_purchase_date": to_utc_z(self.last_purchase_date) if self.last_purchase_date else None,
            "created_at": to_utc_z(self.created_at),
        }
