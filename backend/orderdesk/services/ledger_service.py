# Overview: Service-layer operations for the stock ledger (product_transactions).

from __future__ import annotations

from datetime import date, datetime, time

from sqlalchemy import case, func

from ..extensions import db
from ..models import ProductTransaction, Order
from orderdesk.money import to_money
"""
Stock Ledger Invariants (authoritative)

- Append-only: rows are inserted, never updated or deleted (enforced by ORM events).
- Entries are written inside the same DB transaction as the stock movement they record.
- Every stock restoration (void, item replacement, deletion, restock) writes an IN row.
- OUT rows for an order are written once: at completion, or at reservation time
  when LEDGER_AT_RESERVATION is enabled. Completion never writes them twice.
- Net movement for an order = SUM(OUT ref=order) - SUM(IN ref in ORDER_REVERSAL_REFERENCES).
"""

LEDGER_IN = "IN"
LEDGER_OUT = "OUT"
LEDGER_TYPES = (LEDGER_IN, LEDGER_OUT)

REF_ORDER = "order"
REF_ORDER_VOID = "order_void"
REF_ORDER_UPDATE = "order_update"
REF_ORDER_DELETE = "order_delete"
REF_RESTOCK = "restock"

ORDER_REVERSAL_REFERENCES = (REF_ORDER_VOID, REF_ORDER_UPDATE, REF_ORDER_DELETE)


def append_entry(
    *,
    product_id: int | None,
    type: str,
    quantity: int,
    unit_price,
    reference_type: str,
    reference_id: int,
    user_id: int | None = None,
    notes: str | None = None,
) -> ProductTransaction:
    """
    Append one ledger row. No domain logic here; callers own the movement.
    """
    if type not in LEDGER_TYPES:
        raise ValueError(f"invalid ledger type {type!r}")
    if quantity <= 0:
        raise ValueError("ledger quantity must be positive")

    price = to_money(unit_price or 0)
    entry = ProductTransaction(
        product_id=product_id,
        type=type,
        quantity=quantity,
        unit_price=price,
        total_amount=to_money(price * quantity),
        reference_type=reference_type,
        reference_id=reference_id,
        user_id=user_id,
        notes=notes,
    )
    db.session.add(entry)
    return entry


def record_order_items(
    order: Order,
    *,
    type: str,
    reference_type: str,
    user_id: int | None,
    notes: str,
    items=None,
) -> list[ProductTransaction]:
    """One ledger row per order item (items default to the order's current items)."""
    entries = []
    for item in (order.items if items is None else items):
        if item.product_id is None:
            # Product was deleted; there is no stock row to account for.
            continue
        entries.append(append_entry(
            product_id=item.product_id,
            type=type,
            quantity=item.quantity,
            unit_price=item.unit_price,
            reference_type=reference_type,
            reference_id=order.id,
            user_id=user_id,
            notes=notes,
        ))
    db.session.flush()
    return entries


def has_order_out_entries(order_id: int) -> bool:
    q = db.session.query(ProductTransaction.id).filter(
        ProductTransaction.reference_type == REF_ORDER,
        ProductTransaction.reference_id == order_id,
        ProductTransaction.type == LEDGER_OUT,
    )
    return db.session.query(q.exists()).scalar()


def order_net_out(order_id: int) -> int:
    """OUT quantity recorded for an order minus every reversal recorded against it."""
    out_qty = db.session.query(
        func.coalesce(func.sum(ProductTransaction.quantity), 0)
    ).filter(
        ProductTransaction.reference_type == REF_ORDER,
        ProductTransaction.reference_id == order_id,
        ProductTransaction.type == LEDGER_OUT,
    ).scalar()

    in_qty = db.session.query(
        func.coalesce(func.sum(ProductTransaction.quantity), 0)
    ).filter(
        ProductTransaction.reference_type.in_(ORDER_REVERSAL_REFERENCES),
        ProductTransaction.reference_id == order_id,
        ProductTransaction.type == LEDGER_IN,
    ).scalar()

    return int(out_qty or 0) - int(in_qty or 0)


def entries_for_reference(reference_type: str, reference_id: int) -> list[ProductTransaction]:
    return (
        ProductTransaction.query
        .filter_by(reference_type=reference_type, reference_id=reference_id)
        .order_by(ProductTransaction.id.asc())
        .all()
    )


def list_entries(
    *,
    type: str | None = None,
    product_id: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    page: int = 1,
    per_page: int = 50,
) -> tuple[list[ProductTransaction], int]:
    """Filtered ledger page, newest first. Date bounds are inclusive."""
    q = ProductTransaction.query
    if type:
        q = q.filter(ProductTransaction.type == type.upper())
    if product_id is not None:
        q = q.filter(ProductTransaction.product_id == product_id)
    if start_date is not None:
        q = q.filter(ProductTransaction.created_at >= datetime.combine(start_date, time.min))
    if end_date is not None:
        q = q.filter(ProductTransaction.created_at <= datetime.combine(end_date, time.max))

    total = q.count()
    rows = (
        q.order_by(ProductTransaction.created_at.desc(), ProductTransaction.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )
    return rows, total


def product_statistics(product_id: int) -> dict:
    row = db.session.query(
        func.coalesce(func.sum(case((ProductTransaction.type == LEDGER_IN, ProductTransaction.quantity), else_=0)), 0).label("total_in"),
        func.coalesce(func.sum(case((ProductTransaction.type == LEDGER_OUT, ProductTransaction.quantity), else_=0)), 0).label("total_out"),
    ).filter(ProductTransaction.product_id == product_id).one()

    total_in = int(row.total_in or 0)
    total_out = int(row.total_out or 0)
    return {
        "total_in": total_in,
        "total_out": total_out,
        "net_movement": total_in - total_out,
    }
