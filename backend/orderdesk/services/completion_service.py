# Overview: Order completion; records payment and the OUT ledger entries.

from __future__ import annotations

from ..extensions import db
from ..models import Order, Payment
from orderdesk.errors import OrderNotFoundError
from orderdesk.time_utils import utcnow
from orderdesk.validation import clean_payment
from . import ledger_service
from .cache_service import invalidate
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry


def load_order_for_update(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


def complete_order_locked(order: Order, payment: dict, user_id: int | None = None) -> Order:
    """
    Complete an order inside the caller's transaction (no commit, no cache work).

    Stock was already decremented when the order was created; the OUT ledger
    rows written here are a record of that movement, not a second decrement.
    """
    completed_state = order.state.complete()

    now = utcnow()
    order.payment = Payment(
        payment_method=payment["payment_method"],
        amount=payment["amount"],
        reference_number=payment.get("reference_number"),
        notes=payment.get("notes"),
        payment_date=now,
        processed_by=user_id,
    )
    order.state = completed_state
    order.completed_date = now
    db.session.flush()

    if not ledger_service.has_order_out_entries(order.id):
        ledger_service.record_order_items(
            order,
            type=ledger_service.LEDGER_OUT,
            reference_type=ledger_service.REF_ORDER,
            user_id=user_id,
            notes=f"Order {order.order_number} completed",
        )
    return order


def complete_order(order_id: int, payment: dict, user_id: int | None = None) -> Order:
    """
    Complete a Pending / In Progress order with payment.

    Raises AlreadyCompletedError for completed orders and AlreadyVoidedError
    for voided ones.
    """
    payment_data = clean_payment(payment)

    def _op():
        begin_write_transaction()
        order = load_order_for_update(order_id)
        complete_order_locked(order, payment_data, user_id=user_id)
        db.session.commit()
        return order

    order = run_with_retry(_op)
    invalidate("order")
    return order
