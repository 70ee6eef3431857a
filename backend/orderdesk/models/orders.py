from __future__ import annotations

from ..extensions import db
from orderdesk.money import money_json, to_money
from orderdesk.time_utils import to_utc_z, to_iso_date
from .order_state import OrderState, STATUS_PENDING


class Order(db.Model):
    """
    Order header.

    total_amount always equals the sum of its items' subtotals.
    status / is_voided / voided_from_status are read and written only
    through the `state` property (see order_state.OrderState).
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_orders_order_number"),
        db.Index("ix_orders_status_created", "status", "created_at"),
        db.Index("ix_orders_status_voided", "status", "is_voided"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number, e.g. "ORD-2026-0042"
    order_number = db.Column(db.String(32), nullable=False)

    customer_name = db.Column(db.String(100), nullable=True)
    service_type = db.Column(db.String(100), nullable=False, default="Other")
    notes = db.Column(db.Text, nullable=True)
    preferred_pickup_date = db.Column(db.Date, nullable=True)

    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Lifecycle (see OrderState)
    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING, index=True)
    is_voided = db.Column(db.Boolean, nullable=False, default=False, index=True)
    voided_from_status = db.Column(db.String(16), nullable=True)

    # Void audit trail
    void_reason = db.Column(db.String(500), nullable=True)
    voided_by = db.Column(db.Integer, nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)

    completed_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    items = db.relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
    payment = db.relationship(
        "Payment",
        back_populates="order",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} state={self.state.describe()!r}>"

    @property
    def state(self) -> OrderState:
        return OrderState(
            self.status or STATUS_PENDING,
            voided_from=self.voided_from_status if self.is_voided else None,
        )

    @state.setter
    def state(self, value: OrderState) -> None:
        self.status = value.status
        self.is_voided = value.is_voided
        self.voided_from_status = value.voided_from

    def recalculate_total(self):
        self.total_amount = sum((item.line_total for item in self.items), to_money(0))
        return self.total_amount

    def receipt(self) -> dict:
        """Minimal payload returned to POS terminals."""
        data = {
            "order_id": self.id,
            "order_number": self.order_number,
            "total_amount": money_json(self.total_amount),
            "status": self.status,
            "customer_name": self.customer_name,
        }
        if self.completed_date is not None:
            data["completed_date"] = to_utc_z(self.completed_date)
        return data

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "customer_name": self.customer_name,
            "service_type": self.service_type,
            "notes": self.notes,
            "preferred_pickup_date": to_iso_date(self.preferred_pickup_date),
            "total_amount": money_json(self.total_amount),
            "status": self.status,
            "is_voided": self.is_voided,
            "voided_from_status": self.voided_from_status,
            "void_reason": self.void_reason,
            "voided_by": self.voided_by,
            "voided_at": to_utc_z(self.voided_at),
            "completed_date": to_utc_z(self.completed_date),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
            data["payment"] = self.payment.to_dict() if self.payment else None
        return data


class OrderItem(db.Model):
    """
    Order line. product_name is snapshotted so history survives product deletion.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
        db.CheckConstraint("unit_price >= 0", name="ck_order_items_unit_price_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    # Stored so report queries can sum it in SQL
    subtotal = db.Column(db.Numeric(12, 2), db.Computed("quantity * unit_price", persisted=True))
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", back_populates="items")
    product = db.relationship("Product")

    @property
    def line_total(self):
        """quantity x unit_price, usable before the row is flushed."""
        return to_money(self.quantity * to_money(self.unit_price))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": money_json(self.unit_price),
            "subtotal": money_json(self.line_total),
            "notes": self.notes,
        }


PAYMENT_CASH = "Cash"
PAYMENT_GCASH = "GCash"
PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_GCASH)


class Payment(db.Model):
    """
    Payment recorded when an order completes (one per order).

    Recorded only; no third-party processing happens here.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_payments_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)

    payment_method = db.Column(db.String(16), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    reference_number = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    processed_by = db.Column(db.Integer, nullable=True)

    order = db.relationship("Order", back_populates="payment")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "payment_method": self.payment_method,
            "amount": money_json(self.amount),
            "reference_number": self.reference_number,
            "notes": self.notes,
            "payment_date": to_utc_z(self.payment_date),
            "processed_by": self.processed_by,
        }


class OrderSequence(db.Model):
    """
    Per-year order number counter.

    WHY: max(id)+1 hands out duplicate numbers under concurrent inserts;
    this row is incremented inside the order's own transaction.
    """
    __tablename__ = "order_sequences"
    __table_args__ = (
        db.UniqueConstraint("year", name="uq_order_sequences_year"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    year = db.Column(db.Integer, nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
