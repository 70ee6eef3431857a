"""
Order Service - cart to durable order

WHY: A POS checkout must either fully happen (order, items, stock decrement,
optional payment + ledger) or leave no trace. Everything below runs as one
unit of work per request: ordered locks, validate all, write all, commit once.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Order, OrderItem
from ..models.order_state import OrderState, OPEN_STATUSES, STATUS_CANCELLED, STATUS_COMPLETED, STATUS_PENDING
from orderdesk.errors import InsufficientStockError, OrderLockedError, OrderNotFoundError
from orderdesk.validation import clean_order_fields, clean_order_lines, clean_payment
from . import catalog_service, inventory_service, ledger_service
from .cache_service import cached, invalidate
from .completion_service import complete_order_locked, load_order_for_update
from .concurrency import begin_write_transaction, run_with_retry
from .sequence_service import next_order_number


def _requested_quantities(lines: list[dict]) -> dict[int, int]:
    totals: dict[int, int] = {}
    for line in lines:
        totals[line["product_id"]] = totals.get(line["product_id"], 0) + line["quantity"]
    return totals


def _ledger_at_reservation() -> bool:
    return bool(current_app.config.get("LEDGER_AT_RESERVATION", False))


def _add_items(order: Order, lines: list[dict], products: dict) -> list[OrderItem]:
    items = []
    for line in lines:
        product = products[line["product_id"]]
        item = OrderItem(
            product_id=product.id,
            product_name=product.name,
            quantity=line["quantity"],
            unit_price=line["unit_price"],
            notes=line.get("notes"),
        )
        order.items.append(item)
        items.append(item)
    db.session.flush()
    return items


def _reserve_lines(lines: list[dict], products: dict) -> None:
    """
    Decrement stock for every product in the cart (ascending product_id).

    Availability was checked under lock just before; a failed decrement here
    still aborts the unit so nothing is ever clamped.
    """
    requested = _requested_quantities(lines)
    for product_id in sorted(requested):
        ok, available = inventory_service.reserve_stock(product_id, requested[product_id])
        if not ok:
            product = products.get(product_id)
            raise InsufficientStockError([{
                "product_id": product_id,
                "product_name": product.name if product else None,
                "available": available,
                "requested": requested[product_id],
            }])


def _validate_and_lock(lines: list[dict], extra_product_ids=()) -> dict:
    """Resolve products, lock their inventory rows and check every shortfall."""
    products = catalog_service.get_sellable_products([line["product_id"] for line in lines])
    requested = _requested_quantities(lines)
    inventories = inventory_service.lock_inventories(list(requested) + list(extra_product_ids))
    inventory_service.check_availability(requested, inventories, products)
    return products


def _create_order_locked(header: dict, lines: list[dict], payment: dict | None, user_id: int | None) -> Order:
    products = _validate_and_lock(lines)

    order = Order(
        order_number=next_order_number(),
        customer_name=header.get("customer_name"),
        notes=header.get("notes"),
        preferred_pickup_date=header.get("preferred_pickup_date"),
        service_type=catalog_service.resolve_service_type(products[lines[0]["product_id"]]),
        total_amount=0,
    )
    order.state = OrderState.pending()
    db.session.add(order)
    db.session.flush()

    _add_items(order, lines, products)
    _reserve_lines(lines, products)
    order.recalculate_total()

    if _ledger_at_reservation():
        ledger_service.record_order_items(
            order,
            type=ledger_service.LEDGER_OUT,
            reference_type=ledger_service.REF_ORDER,
            user_id=user_id,
            notes=f"Order {order.order_number} reserved",
        )

    if payment is not None:
        complete_order_locked(order, payment, user_id=user_id)

    return order


def create_order(
    order_items,
    *,
    customer_name=None,
    notes=None,
    preferred_pickup_date=None,
    payment=None,
    user_id: int | None = None,
) -> Order:
    """
    Create an order from a cart, decrementing stock atomically.

    With payment the order is completed inside the same transaction (POS
    fast path). Any failure leaves no order, no items and no stock change.
    """
    lines = clean_order_lines(order_items)
    header_payload = {
        k: v for k, v in (
            ("customer_name", customer_name),
            ("notes", notes),
            ("preferred_pickup_date", preferred_pickup_date),
        ) if v is not None
    }
    header = clean_order_fields(header_payload, partial=False)
    payment_data = clean_payment(payment) if payment is not None else None

    def _op():
        begin_write_transaction()
        order = _create_order_locked(header, lines, payment_data, user_id)
        db.session.commit()
        return order

    order = run_with_retry(_op)
    invalidate("order", "inventory")
    return order


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise OrderNotFoundError(order_id)
    return order


def _replace_items(order: Order, lines: list[dict], user_id: int | None) -> None:
    old_items = list(order.items)
    had_out = ledger_service.has_order_out_entries(order.id)

    inventory_service.lock_inventories(
        [item.product_id for item in old_items] + [line["product_id"] for line in lines]
    )
    restored = inventory_service.restore_order_items(order, old_items)
    if had_out:
        ledger_service.record_order_items(
            order,
            type=ledger_service.LEDGER_IN,
            reference_type=ledger_service.REF_ORDER_UPDATE,
            user_id=user_id,
            notes=f"Order {order.order_number} items replaced",
            items=restored,
        )

    order.items.clear()
    db.session.flush()

    # Old stock is back on the shelf, so availability is checked against it.
    products = _validate_and_lock(lines)
    new_items = _add_items(order, lines, products)
    _reserve_lines(lines, products)
    order.recalculate_total()
    order.service_type = catalog_service.resolve_service_type(products[lines[0]["product_id"]])

    if had_out or _ledger_at_reservation():
        ledger_service.record_order_items(
            order,
            type=ledger_service.LEDGER_OUT,
            reference_type=ledger_service.REF_ORDER,
            user_id=user_id,
            notes=f"Order {order.order_number} items replaced",
            items=new_items,
        )


def update_order(order_id: int, payload: dict, user_id: int | None = None) -> Order:
    """
    Edit an order's header fields, status, or (while Pending) its items.

    Completed is only reachable through complete_order(); voided orders are
    read-only. Cancelling here does not restore stock (voiding does).
    """
    payload = dict(payload or {})
    raw_items = payload.pop("order_items", None)
    lines = clean_order_lines(raw_items) if raw_items is not None else None
    fields = clean_order_fields(payload, partial=True)

    def _op():
        begin_write_transaction()
        order = load_order_for_update(order_id)
        state = order.state
        if state.is_voided:
            raise OrderLockedError("Voided orders cannot be edited")

        new_state = state.with_status(fields["status"]) if "status" in fields else state

        if lines is not None:
            if not state.items_editable:
                raise OrderLockedError(
                    f"Items can only be changed while {STATUS_PENDING}",
                    details={"status": state.status},
                )
            _replace_items(order, lines, user_id)

        for key, value in fields.items():
            if key != "status":
                setattr(order, key, value)
        order.state = new_state

        db.session.commit()
        return order

    order = run_with_retry(_op)
    if lines is not None:
        invalidate("order", "inventory")
    else:
        invalidate("order")
    return order


def delete_order(order_id: int, user_id: int | None = None) -> dict:
    """
    Delete a Pending or Cancelled order that was never completed or paid.

    Stock is restored unless a void already did it.
    """
    def _op():
        begin_write_transaction()
        order = load_order_for_update(order_id)
        state = order.state

        if state.was_fulfilled or order.payment is not None or order.completed_date is not None:
            raise OrderLockedError("Completed orders cannot be deleted; void them instead")
        if state.status not in (STATUS_PENDING, STATUS_CANCELLED):
            raise OrderLockedError(
                f"Only {STATUS_PENDING} or {STATUS_CANCELLED} orders can be deleted",
                details={"status": state.status},
            )

        restored = False
        if not state.is_voided:
            inventory_service.lock_inventories(item.product_id for item in order.items)
            restored_items = inventory_service.restore_order_items(order, list(order.items))
            if ledger_service.has_order_out_entries(order.id):
                ledger_service.record_order_items(
                    order,
                    type=ledger_service.LEDGER_IN,
                    reference_type=ledger_service.REF_ORDER_DELETE,
                    user_id=user_id,
                    notes=f"Order {order.order_number} deleted",
                    items=restored_items,
                )
            restored = bool(restored_items)

        summary = {
            "order_id": order.id,
            "order_number": order.order_number,
            "stock_restored": restored,
        }
        db.session.delete(order)
        db.session.commit()
        return summary

    summary = run_with_retry(_op)
    current_app.logger.info("Order %s deleted by user %s", summary["order_number"], user_id)
    invalidate("order", "inventory")
    return summary


def list_active_orders() -> list[dict]:
    """Open and cancelled orders, newest first (cached, polled by the dashboard)."""
    def _load():
        rows = (
            Order.query
            .filter(Order.status.in_(OPEN_STATUSES + (STATUS_CANCELLED,)))
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )
        return [order.to_dict() for order in rows]

    return cached("orders_active", _load)


def find_completed_orders(order_number: str) -> list[dict]:
    """Exact order-number lookup over completed, non-voided orders (used for voiding at the counter)."""
    order_number = (order_number or "").strip()

    def _load():
        rows = (
            Order.query
            .filter(
                Order.order_number == order_number,
                Order.status == STATUS_COMPLETED,
                Order.is_voided.is_(False),
            )
            .all()
        )
        return [order.to_dict() for order in rows]

    return cached(f"orders_search_{order_number}", _load, group="orders_search")
