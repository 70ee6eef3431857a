"""
Order lifecycle as a single value.

    OrderState = Pending | In Progress | Completed | Cancelled
               | VoidedFrom(prior)          (status Cancelled, is_voided)

The persisted columns (status, is_voided, voided_from_status) are always
written together from one OrderState, so a voided order can never be read
back as "Completed but voided" or "Pending but voided".

Transitions:
    Pending | In Progress  -[complete]->  Completed
    any non-voided state   -[void]----->  VoidedFrom(prior)
    Pending | In Progress | Cancelled -[set_status]-> Pending | In Progress | Cancelled
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from orderdesk.errors import AlreadyCompletedError, AlreadyVoidedError, OrderLockedError


STATUS_PENDING = "Pending"
STATUS_IN_PROGRESS = "In Progress"
STATUS_COMPLETED = "Completed"
STATUS_CANCELLED = "Cancelled"

ORDER_STATUSES = (STATUS_PENDING, STATUS_IN_PROGRESS, STATUS_COMPLETED, STATUS_CANCELLED)
OPEN_STATUSES = (STATUS_PENDING, STATUS_IN_PROGRESS)

# Statuses a manual edit may set. Completed is reached only through completion.
EDITABLE_STATUSES = (STATUS_PENDING, STATUS_IN_PROGRESS, STATUS_CANCELLED)


@dataclass(frozen=True)
class OrderState:
    status: str
    voided_from: Optional[str] = None

    def __post_init__(self):
        if self.status not in ORDER_STATUSES:
            raise ValueError(f"unknown order status: {self.status!r}")
        if self.voided_from is not None:
            if self.status != STATUS_CANCELLED:
                raise ValueError("voided orders are always Cancelled")
            if self.voided_from not in ORDER_STATUSES:
                raise ValueError(f"unknown prior status: {self.voided_from!r}")

    @classmethod
    def pending(cls) -> "OrderState":
        return cls(STATUS_PENDING)

    @classmethod
    def voided(cls, prior: str) -> "OrderState":
        return cls(STATUS_CANCELLED, voided_from=prior)

    @property
    def is_voided(self) -> bool:
        return self.voided_from is not None

    @property
    def is_completed(self) -> bool:
        return self.status == STATUS_COMPLETED

    @property
    def was_fulfilled(self) -> bool:
        """Completed now, or voided after having been completed."""
        return self.status == STATUS_COMPLETED or self.voided_from == STATUS_COMPLETED

    @property
    def items_editable(self) -> bool:
        return self.status == STATUS_PENDING and not self.is_voided

    def complete(self) -> "OrderState":
        if self.is_voided:
            raise AlreadyVoidedError("Order has been voided")
        if self.status == STATUS_COMPLETED:
            raise AlreadyCompletedError("Order is already completed")
        if self.status not in OPEN_STATUSES:
            raise OrderLockedError(f"Cannot complete an order with status {self.status}")
        return OrderState(STATUS_COMPLETED)

    def void(self) -> "OrderState":
        if self.is_voided:
            raise AlreadyVoidedError("Order is already voided")
        return OrderState.voided(self.status)

    def with_status(self, status: str) -> "OrderState":
        if self.is_voided:
            raise OrderLockedError("Voided orders cannot be edited")
        if status == self.status:
            return self
        if status == STATUS_COMPLETED:
            raise OrderLockedError("Use the complete endpoint to complete an order")
        if status not in EDITABLE_STATUSES:
            raise OrderLockedError(f"Unknown status {status}")
        if self.status == STATUS_COMPLETED:
            raise OrderLockedError("Completed orders can only be voided")
        return OrderState(status)

    def describe(self) -> str:
        if self.is_voided:
            return f"{self.status} (voided from {self.voided_from})"
        return self.status
