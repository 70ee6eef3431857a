"""
Order lifecycle value tests.

Verifies:
- complete() only from Pending / In Progress
- void() from any non-voided state, never twice
- manual status edits cannot reach Completed or leave Completed
- persisted columns round-trip through Order.state
"""

import pytest

from orderdesk.errors import AlreadyCompletedError, AlreadyVoidedError, OrderLockedError
from orderdesk.models import Order, OrderState
from orderdesk.models.order_state import (
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_PENDING,
)


# =============================================================================
# TRANSITIONS
# =============================================================================


class TestComplete:

    @pytest.mark.parametrize("status", [STATUS_PENDING, STATUS_IN_PROGRESS])
    def test_open_orders_complete(self, status):
        assert OrderState(status).complete() == OrderState(STATUS_COMPLETED)

    def test_completed_rejected(self):
        with pytest.raises(AlreadyCompletedError):
            OrderState(STATUS_COMPLETED).complete()

    def test_voided_rejected_before_status_check(self):
        with pytest.raises(AlreadyVoidedError):
            OrderState.voided(STATUS_COMPLETED).complete()

    def test_cancelled_is_locked(self):
        with pytest.raises(OrderLockedError):
            OrderState(STATUS_CANCELLED).complete()


class TestVoid:

    @pytest.mark.parametrize(
        "status",
        [STATUS_PENDING, STATUS_IN_PROGRESS, STATUS_COMPLETED, STATUS_CANCELLED],
    )
    def test_void_records_prior_status(self, status):
        voided = OrderState(status).void()
        assert voided.status == STATUS_CANCELLED
        assert voided.is_voided
        assert voided.voided_from == status

    def test_void_twice_rejected(self):
        with pytest.raises(AlreadyVoidedError):
            OrderState.voided(STATUS_PENDING).void()

    def test_voided_from_completed_counts_as_fulfilled(self):
        assert OrderState.voided(STATUS_COMPLETED).was_fulfilled
        assert not OrderState.voided(STATUS_PENDING).was_fulfilled


class TestWithStatus:

    def test_pending_to_in_progress(self):
        assert OrderState.pending().with_status(STATUS_IN_PROGRESS).status == STATUS_IN_PROGRESS

    def test_cancelled_can_reopen(self):
        assert OrderState(STATUS_CANCELLED).with_status(STATUS_PENDING).status == STATUS_PENDING

    def test_cannot_set_completed(self):
        with pytest.raises(OrderLockedError):
            OrderState.pending().with_status(STATUS_COMPLETED)

    def test_completed_cannot_change(self):
        with pytest.raises(OrderLockedError):
            OrderState(STATUS_COMPLETED).with_status(STATUS_PENDING)

    def test_same_status_is_noop_for_completed(self):
        state = OrderState(STATUS_COMPLETED)
        assert state.with_status(STATUS_COMPLETED) is state

    def test_voided_is_read_only(self):
        with pytest.raises(OrderLockedError):
            OrderState.voided(STATUS_PENDING).with_status(STATUS_PENDING)

    def test_items_editable_only_while_pending(self):
        assert OrderState.pending().items_editable
        assert not OrderState(STATUS_IN_PROGRESS).items_editable
        assert not OrderState.voided(STATUS_PENDING).items_editable


# =============================================================================
# INVALID VALUES
# =============================================================================


class TestInvalidStates:

    def test_unknown_status(self):
        with pytest.raises(ValueError):
            OrderState("Shipped")

    def test_voided_must_be_cancelled(self):
        with pytest.raises(ValueError):
            OrderState(STATUS_COMPLETED, voided_from=STATUS_PENDING)


# =============================================================================
# PERSISTENCE MAPPING
# =============================================================================


class TestOrderStateColumns:

    def test_setter_writes_all_columns(self, app):
        order = Order(order_number="ORD-2026-0001")
        order.state = OrderState.voided(STATUS_COMPLETED)
        assert order.status == STATUS_CANCELLED
        assert order.is_voided is True
        assert order.voided_from_status == STATUS_COMPLETED
        assert order.state == OrderState.voided(STATUS_COMPLETED)

    def test_non_voided_ignores_stale_prior(self, app):
        order = Order(order_number="ORD-2026-0002", status=STATUS_PENDING, is_voided=False)
        order.voided_from_status = STATUS_COMPLETED
        assert order.state == OrderState.pending()

    def test_describe(self):
        assert OrderState.voided(STATUS_COMPLETED).describe() == "Cancelled (voided from Completed)"
        assert OrderState.pending().describe() == STATUS_PENDING
