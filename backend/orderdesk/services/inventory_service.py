# Overview: Service-layer operations for inventory; every stock mutation goes through here.

from __future__ import annotations

from typing import Iterable

from flask import current_app
from sqlalchemy import func, select, update

from ..extensions import db
from ..models import Inventory, Product
from ..models.inventory import derive_stock_status
from orderdesk.errors import InsufficientStockError, ProductNotFoundError
from orderdesk.time_utils import utcnow
from . import ledger_service
from .cache_service import cached, invalidate
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
"""
Inventory Invariants (authoritative)

- inventories.quantity >= 0 at all times. A write that would go negative
  fails the whole operation; nothing is ever clamped.
- Decrements are a single compare-and-decrement statement
  (quantity = quantity - n WHERE quantity >= n), so two writers can never
  both take the last units.
- Multi-product operations lock rows in ascending product_id order.
- Stock status (available/low/out) is derived from quantity and
  reorder_level, never stored.
"""


def derive_status(inventory: Inventory) -> str:
    return derive_stock_status(inventory.quantity, inventory.reorder_level)


def get_inventory(product_id: int) -> Inventory:
    inventory = Inventory.query.filter_by(product_id=product_id).first()
    if inventory is None:
        raise ProductNotFoundError(product_id)
    return inventory


def lock_inventories(product_ids: Iterable[int]) -> dict[int, Inventory]:
    """
    SELECT ... FOR UPDATE the inventory rows of the given products.

    Rows are requested in ascending product_id order so concurrent orders
    touching the same products always acquire locks in the same sequence.
    Products without an inventory row are simply absent from the result.
    """
    ids = sorted({pid for pid in product_ids if pid is not None})
    if not ids:
        return {}
    query = (
        db.session.query(Inventory)
        .filter(Inventory.product_id.in_(ids))
        .order_by(Inventory.product_id.asc())
    )
    return {inv.product_id: inv for inv in lock_for_update(query).all()}


def check_availability(
    requested: dict[int, int],
    inventories: dict[int, Inventory],
    products: dict[int, Product],
) -> None:
    """Raise InsufficientStockError listing every product that cannot be covered."""
    shortfalls = []
    for product_id in sorted(requested):
        inventory = inventories.get(product_id)
        available = inventory.quantity if inventory is not None else 0
        if available < requested[product_id]:
            product = products.get(product_id)
            shortfalls.append({
                "product_id": product_id,
                "product_name": product.name if product else None,
                "available": available,
                "requested": requested[product_id],
            })
    if shortfalls:
        raise InsufficientStockError(shortfalls)


def _expire_loaded_inventory(product_id: int) -> None:
    # Statements below bypass the ORM; keep loaded rows from serving stale quantities.
    # Already-expired rows reload on access, so only loaded state is inspected.
    for obj in list(db.session.identity_map.values()):
        if isinstance(obj, Inventory) and vars(obj).get("product_id") == product_id:
            db.session.expire(obj, ["quantity", "updated_at"])


def current_quantity(product_id: int) -> int:
    qty = db.session.execute(
        select(Inventory.quantity).where(Inventory.product_id == product_id)
    ).scalar()
    return int(qty or 0)


def reserve_stock(product_id: int, quantity: int) -> tuple[bool, int]:
    """
    Atomically decrement stock if enough is on hand.

    Returns (True, remaining) on success, (False, available) without any
    mutation otherwise. Durable only when the caller's transaction commits.
    """
    if quantity <= 0:
        raise ValueError("quantity must be positive")

    table = Inventory.__table__
    result = db.session.execute(
        update(table)
        .where(table.c.product_id == product_id, table.c.quantity >= quantity)
        .values(quantity=table.c.quantity - quantity, updated_at=func.now())
    )
    _expire_loaded_inventory(product_id)
    if result.rowcount != 1:
        return False, current_quantity(product_id)
    return True, current_quantity(product_id)


def restore_stock(product_id: int, quantity: int) -> bool:
    """
    Unconditionally add quantity back to a product's stock.

    Recreates the inventory row if it was removed while the product still
    exists. Returns False when the product itself no longer exists.
    """
    if quantity <= 0:
        raise ValueError("quantity must be positive")

    table = Inventory.__table__
    result = db.session.execute(
        update(table)
        .where(table.c.product_id == product_id)
        .values(quantity=table.c.quantity + quantity, updated_at=func.now())
    )
    _expire_loaded_inventory(product_id)
    if result.rowcount:
        return True

    if db.session.get(Product, product_id) is None:
        return False
    db.session.add(Inventory(product_id=product_id, quantity=quantity))
    db.session.flush()
    return True


def restore_order_items(order, items) -> list:
    """
    Put each item's quantity back on the shelf, in ascending product_id order.

    Items whose product has been deleted are skipped with a warning. Returns
    the items that were actually restored, so callers ledger only those.
    """
    restored = []
    for item in sorted(items, key=lambda i: (i.product_id or 0, i.id)):
        if item.product_id is None:
            continue
        if restore_stock(item.product_id, item.quantity):
            restored.append(item)
        else:
            current_app.logger.warning(
                "Order %s: product %s no longer exists, stock not restored",
                order.order_number, item.product_id,
            )
    return restored


def restock(product_id: int, quantity: int, user_id: int | None = None) -> Inventory:
    """
    Add received stock and record it in the ledger (reference_type=restock).
    """
    def _op():
        begin_write_transaction()
        inventory = lock_inventories([product_id]).get(product_id)
        if inventory is None:
            product = db.session.get(Product, product_id)
            if product is None:
                raise ProductNotFoundError(product_id)
            inventory = Inventory(product_id=product_id, quantity=0)
            db.session.add(inventory)
            db.session.flush()

        restore_stock(product_id, quantity)
        inventory.last_restock_date = utcnow().date()
        inventory.last_restock_quantity = quantity

        product = inventory.product
        ledger_service.append_entry(
            product_id=product_id,
            type=ledger_service.LEDGER_IN,
            quantity=quantity,
            unit_price=product.price if product else 0,
            reference_type=ledger_service.REF_RESTOCK,
            reference_id=inventory.id,
            user_id=user_id,
            notes=f"Restock - Added {quantity} units",
        )
        db.session.commit()
        return inventory

    inventory = run_with_retry(_op)
    invalidate("inventory", "product")
    return inventory


def list_inventories() -> list[dict]:
    """All inventory rows with derived status (cached, polled by the dashboard)."""
    def _load():
        rows = (
            Inventory.query
            .order_by(Inventory.updated_at.desc(), Inventory.id.desc())
            .all()
        )
        return [inv.to_dict() for inv in rows]

    return cached("inventories_all", _load)
