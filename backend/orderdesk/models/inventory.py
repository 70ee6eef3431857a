from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from orderdesk.money import money_json
from orderdesk.time_utils import to_utc_z, to_iso_date


STATUS_AVAILABLE = "available"
STATUS_LOW = "low"
STATUS_OUT = "out"


def derive_stock_status(quantity: int, reorder_level: int) -> str:
    """out iff quantity == 0; low iff 0 < quantity <= reorder_level; else available."""
    if quantity <= 0:
        return STATUS_OUT
    if quantity <= reorder_level:
        return STATUS_LOW
    return STATUS_AVAILABLE


class Inventory(db.Model):
    """
    Current stock for one product.

    quantity is mutated only through inventory_service (locked, ledger-backed)
    and can never go below zero; the CHECK constraint is the last line.
    Stock status is derived, never stored.
    """
    __tablename__ = "inventories"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_inventories_quantity_non_negative"),
        db.CheckConstraint("reorder_level >= 0", name="ck_inventories_reorder_level_non_negative"),
        db.Index("ix_inventories_quantity", "quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    quantity = db.Column(db.Integer, nullable=False, default=0)
    reorder_level = db.Column(db.Integer, nullable=False, default=10)
    reorder_quantity = db.Column(db.Integer, nullable=False, default=50)

    last_restock_date = db.Column(db.Date, nullable=True)
    last_restock_quantity = db.Column(db.Integer, nullable=True)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", back_populates="inventory")

    @property
    def status(self) -> str:
        return derive_stock_status(self.quantity, self.reorder_level)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "quantity": self.quantity,
            "reorder_level": self.reorder_level,
            "reorder_quantity": self.reorder_quantity,
            "last_restock_date": to_iso_date(self.last_restock_date),
            "last_restock_quantity": self.last_restock_quantity,
            "status": self.status,
            "updated_at": to_utc_z(self.updated_at),
        }


class LedgerImmutableError(RuntimeError):
    """Raised when code attempts to update or delete a ledger entry."""


class ProductTransaction(db.Model):
    """
    Append-only stock ledger.

    One row per stock movement (IN/OUT) keyed to the document that caused it.
    Reversals are new IN rows (reference_type=order_void), never edits of
    the original OUT row.
    """
    __tablename__ = "product_transactions"
    __table_args__ = (
        db.Index("ix_product_txns_reference", "reference_type", "reference_id"),
        db.Index("ix_product_txns_product_created", "product_id", "created_at"),
        db.Index("ix_product_txns_type_created", "type", "created_at"),
        db.CheckConstraint("quantity > 0", name="ck_product_txns_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    type = db.Column(db.String(8), nullable=False)  # IN, OUT
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    reference_type = db.Column(db.String(32), nullable=False)
    reference_id = db.Column(db.Integer, nullable=False)

    user_id = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "type": self.type,
            "quantity": self.quantity,
            "unit_price": money_json(self.unit_price),
            "total_amount": money_json(self.total_amount),
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "user_id": self.user_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(ProductTransaction, "before_update")
def _reject_ledger_update(mapper, connection, target):
    raise LedgerImmutableError("product_transactions is append-only")


@event.listens_for(ProductTransaction, "before_delete")
def _reject_ledger_delete(mapper, connection, target):
    raise LedgerImmutableError("product_transactions is append-only")
