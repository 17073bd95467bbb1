from __future__ import annotations

from ..extensions import db
from ..services.pricing_service import money
from voyapos.time_utils import to_utc_z


class Sale(db.Model):
    """
    Sale header.

    TOTALS: subtotal is the gross tax-inclusive MRP, total_amount is
    subtotal - total_discount. total_tax is the tax contained in
    total_amount and is never added on top of it.

    IMMUTABILITY: once items are attached the header only changes through
    the edit operation, which replaces totals and items together.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable invoice number (e.g., "MALLVOYA0001")
    invoice_number = db.Column(db.String(64), nullable=False, unique=True)

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    cashier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    subtotal = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total_discount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total_tax = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    payment_method = db.Column(db.String(16), nullable=False)
    notes = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    store = db.relationship("Store", backref=db.backref("sales", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        order_by="SaleItem.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "store_id": self.store_id,
            "cashier_id": self.cashier_id,
            "customer_id": self.customer_id,
            "subtotal": money(self.subtotal),
            "total_discount": money(self.total_discount),
            "total_tax": money(self.total_tax),
            "total_amount": money(self.total_amount),
            "payment_method": self.payment_method,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }
        if include_items:
            data["customer"] = self.customer.to_dict() if self.customer else None
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """
    Line item snapshot.

    Every pricing field is copied at transaction time and never recomputed
    from the live Product row, so later catalog changes do not alter
    historical invoices.
    """
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discounted_price = db.Column(db.Numeric(12, 2), nullable=False)
    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    base_amount = db.Column(db.Numeric(14, 4), nullable=False)
    tax_amount = db.Column(db.Numeric(14, 4), nullable=False)
    line_total = db.Column(db.Numeric(14, 2), nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "name": self.name,
            "sku": self.sku,
            "quantity": self.quantity,
            "unit_price": money(self.unit_price),
            "discount": money(self.discount),
            "discounted_price": money(self.discounted_price),
            "tax_rate": float(self.tax_rate),
            "base_amount": money(self.base_amount),
            "tax_amount": money(self.tax_amount),
            "line_total": money(self.line_total),
        }
