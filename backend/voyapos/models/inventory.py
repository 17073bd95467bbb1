from __future__ import annotations

from ..extensions import db
from voyapos.time_utils import to_utc_z


class Inventory(db.Model):
    """
    Stock counter for one (product, store) pair.

    INVARIANT: quantity >= 0. The service layer rejects violating writes
    before they happen; the CHECK constraint is the last line.

    Rows are created lazily the first time stock is assigned to a pair.
    """
    __tablename__ = "inventory"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_inventory_quantity_non_negative"),
        db.Index("ix_inventory_store_id", "store_id"),
    )

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), primary_key=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("inventory_rows", lazy=True))
    store = db.relationship("Store", backref=db.backref("inventory_rows", lazy=True))

    def __repr__(self) -> str:
        return f"<Inventory product_id={self.product_id} store_id={self.store_id} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "store_id": self.store_id,
            "quantity": self.quantity,
            "updated_at": to_utc_z(self.updated_at),
        }


class InvoiceSequence(db.Model):
    """
    Per-store invoice counter.

    next_number is the sequence value the next sale will receive. It is
    advanced with a single UPDATE inside the sale transaction so two
    concurrent sales at one store can never read the same value.
    """
    __tablename__ = "invoice_sequences"

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), primary_key=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
