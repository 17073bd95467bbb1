from __future__ import annotations

from ..extensions import db
from ..services.pricing_service import money
from voyapos.time_utils import to_utc_z


class Store(db.Model):
    """
    Physical store (kiosk) that holds stock and issues invoices.

    external_location_id links the store to a location on the external
    commerce platform; stores without it are skipped by reconciliation.
    """
    __tablename__ = "stores"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    location = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    external_location_id = db.Column(db.String(64), nullable=True, unique=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "phone": self.phone,
            "external_location_id": self.external_location_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product master data.

    PRICE: price is the tax-inclusive unit price (MRP). tax_rate is a
    percentage already contained in that price; base and tax are
    back-computed at sale time by the pricing engine.

    EXTERNAL IDS: external_variant_id is the product's identity on the
    commerce platform. external_inventory_item_id caches the platform's
    inventory item id so reconciliation can skip the per-variant lookup.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=True)

    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    external_product_id = db.Column(db.String(64), nullable=True, index=True)
    external_variant_id = db.Column(db.String(64), nullable=True, unique=True, index=True)
    external_inventory_item_id = db.Column(db.String(64), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "price": money(self.price),
            "tax_rate": float(self.tax_rate) if self.tax_rate is not None else None,
            "is_active": self.is_active,
            "external_product_id": self.external_product_id,
            "external_variant_id": self.external_variant_id,
            "external_inventory_item_id": self.external_inventory_item_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
