# Overview: Consistency audit over orders, inventory and the stock ledger.

from __future__ import annotations

from ..models import Inventory, Order
from orderdesk.money import to_money
from . import ledger_service


def _violation(kind: str, message: str, **context) -> dict:
    return {"kind": kind, "message": message, **context}


def audit_orders() -> list[dict]:
    """
    Return every invariant violation found; an empty list means consistent.

    Checks:
    - order.total_amount equals the sum of its stored item subtotals
    - inventory quantities are non-negative
    - orders with OUT ledger rows net to their item quantities (0 once voided)
    - fulfilled orders have OUT ledger rows
    """
    violations = []

    for order in Order.query.order_by(Order.id.asc()).all():
        expected_total = sum((to_money(item.subtotal) for item in order.items), to_money(0))
        if to_money(order.total_amount) != expected_total:
            violations.append(_violation(
                "total_mismatch",
                f"Order {order.order_number} total {order.total_amount} != items {expected_total}",
                order_id=order.id,
            ))

        state = order.state
        if ledger_service.has_order_out_entries(order.id):
            expected_net = 0 if state.is_voided else sum(item.quantity for item in order.items)
            net = ledger_service.order_net_out(order.id)
            if net != expected_net:
                violations.append(_violation(
                    "ledger_mismatch",
                    f"Order {order.order_number} ledger net {net} != expected {expected_net}",
                    order_id=order.id,
                ))
        elif state.was_fulfilled:
            violations.append(_violation(
                "missing_ledger",
                f"Order {order.order_number} was completed without OUT ledger entries",
                order_id=order.id,
            ))

    for inventory in Inventory.query.filter(Inventory.quantity < 0).all():
        violations.append(_violation(
            "negative_stock",
            f"Product {inventory.product_id} has quantity {inventory.quantity}",
            product_id=inventory.product_id,
        ))

    return violations
