"""
Order completion tests.

Verifies:
- Pending / In Progress -> Completed with exactly one payment
- completion records OUT ledger rows without decrementing stock again
- completed and voided orders are rejected
"""

import pytest

from conftest import ledger_rows, stock_of
from orderdesk.errors import (
    AlreadyCompletedError,
    AlreadyVoidedError,
    OrderLockedError,
    OrderNotFoundError,
    OrderValidationError,
)
from orderdesk.models import Payment
from orderdesk.services import completion_service, order_service, void_service


CASH_200 = {"payment_method": "Cash", "amount": "200.00"}


@pytest.fixture
def pending_order(db_session, make_product):
    pid = make_product(stock=5)
    order = order_service.create_order([
        {"product_id": pid, "quantity": 2, "unit_price": "100.00"},
    ])
    return order.id, pid


class TestCompleteOrder:

    def test_completes_pending(self, db_session, pending_order):
        order_id, pid = pending_order
        order = completion_service.complete_order(
            order_id,
            {"payment_method": "GCash", "amount": "200.00", "reference_number": "GC-123"},
            user_id=9,
        )

        assert order.status == "Completed"
        assert order.completed_date is not None
        assert order.payment.reference_number == "GC-123"
        assert order.payment.processed_by == 9
        assert stock_of(pid) == 3

        rows = ledger_rows(reference_type="order", reference_id=order_id)
        assert [(r.type, r.quantity) for r in rows] == [("OUT", 2)]
        assert float(rows[0].total_amount) == 200.0

    def test_completes_in_progress(self, db_session, pending_order):
        order_id, _ = pending_order
        order_service.update_order(order_id, {"status": "In Progress"})
        order = completion_service.complete_order(order_id, CASH_200)
        assert order.status == "Completed"

    def test_second_completion_rejected(self, db_session, pending_order):
        order_id, pid = pending_order
        completion_service.complete_order(order_id, CASH_200)

        with pytest.raises(AlreadyCompletedError):
            completion_service.complete_order(order_id, CASH_200)

        assert Payment.query.filter_by(order_id=order_id).count() == 1
        assert len(ledger_rows(reference_type="order", reference_id=order_id)) == 1
        assert stock_of(pid) == 3

    def test_voided_order_rejected(self, db_session, pending_order):
        order_id, _ = pending_order
        void_service.void_order(order_id, "Customer left", user_id=1)

        with pytest.raises(AlreadyVoidedError):
            completion_service.complete_order(order_id, CASH_200)
        assert Payment.query.count() == 0

    def test_cancelled_order_locked(self, db_session, pending_order):
        order_id, _ = pending_order
        order_service.update_order(order_id, {"status": "Cancelled"})

        with pytest.raises(OrderLockedError):
            completion_service.complete_order(order_id, CASH_200)

    def test_unknown_order(self, db_session):
        with pytest.raises(OrderNotFoundError):
            completion_service.complete_order(404, CASH_200)

    @pytest.mark.parametrize(
        "payment",
        [
            {"payment_method": "Card", "amount": "200.00"},
            {"payment_method": "Cash", "amount": "-1"},
            {"payment_method": "Cash"},
            {"payment_method": "Cash", "amount": "200.00", "reference_number": "x" * 101},
        ],
    )
    def test_invalid_payment(self, db_session, pending_order, payment):
        order_id, _ = pending_order
        with pytest.raises(OrderValidationError):
            completion_service.complete_order(order_id, payment)
        assert order_service.get_order(order_id).status == "Pending"

    def test_amount_is_recorded_not_checked(self, db_session, pending_order):
        order_id, _ = pending_order
        order = completion_service.complete_order(order_id, {"payment_method": "Cash", "amount": "500"})
        assert float(order.payment.amount) == 500.0
        assert float(order.total_amount) == 200.0
