# Overview: Order voids; reverses stock for any non-voided order, including completed ones.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Order
from orderdesk.errors import OrderValidationError
from orderdesk.time_utils import utcnow
from orderdesk.validation import clean_void_reason
from . import inventory_service, ledger_service
from .cache_service import invalidate
from .completion_service import load_order_for_update
from .concurrency import begin_write_transaction, run_with_retry


def void_order(order_id: int, reason: str, user_id: int | None) -> Order:
    """
    Void an order and restore its stock.

    Works from any non-voided state. Each item's quantity goes back to stock
    and gets an IN ledger row (reference_type=order_void); the original OUT
    rows are left untouched. A second void raises AlreadyVoidedError without
    touching stock.
    """
    reason = clean_void_reason(reason)
    if user_id is None:
        raise OrderValidationError("voided_by user is required")

    def _op():
        begin_write_transaction()
        order = load_order_for_update(order_id)
        prior = order.state.describe()
        voided_state = order.state.void()

        inventory_service.lock_inventories(item.product_id for item in order.items)
        restored = inventory_service.restore_order_items(order, list(order.items))

        ledger_service.record_order_items(
            order,
            type=ledger_service.LEDGER_IN,
            reference_type=ledger_service.REF_ORDER_VOID,
            user_id=user_id,
            notes=f"Void order {order.order_number}: {reason}",
            items=restored,
        )

        order.state = voided_state
        order.void_reason = reason
        order.voided_by = user_id
        order.voided_at = utcnow()

        db.session.commit()
        return order, prior

    order, prior = run_with_retry(_op)
    current_app.logger.info(
        "Order %s voided by user %s (was %s): %s",
        order.order_number, user_id, prior, reason,
    )
    invalidate("order", "inventory")
    return order
