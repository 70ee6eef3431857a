"""
Inventory store tests.

Verifies:
- compare-and-decrement never goes negative and never clamps
- restore recreates missing inventory rows
- derived stock status thresholds
- restock writes a ledger IN entry
"""

import pytest

from conftest import ledger_rows, stock_of
from orderdesk.errors import InsufficientStockError, ProductNotFoundError
from orderdesk.extensions import db
from orderdesk.models import Inventory, Order, OrderItem, Product
from orderdesk.models.inventory import STATUS_AVAILABLE, STATUS_LOW, STATUS_OUT, derive_stock_status
from orderdesk.services import inventory_service


class TestDeriveStatus:

    @pytest.mark.parametrize(
        "quantity,reorder_level,expected",
        [
            (0, 10, STATUS_OUT),
            (1, 10, STATUS_LOW),
            (10, 10, STATUS_LOW),
            (11, 10, STATUS_AVAILABLE),
            (5, 0, STATUS_AVAILABLE),
        ],
    )
    def test_thresholds(self, quantity, reorder_level, expected):
        assert derive_stock_status(quantity, reorder_level) == expected


class TestReserveStock:

    def test_reserve_decrements(self, db_session, make_product):
        pid = make_product(stock=5)
        ok, remaining = inventory_service.reserve_stock(pid, 3)
        db_session.commit()
        assert ok is True
        assert remaining == 2
        assert stock_of(pid) == 2

    def test_reserve_exact_stock(self, db_session, make_product):
        pid = make_product(stock=4)
        ok, remaining = inventory_service.reserve_stock(pid, 4)
        db_session.commit()
        assert ok is True
        assert remaining == 0

    def test_reserve_shortfall_does_not_mutate(self, db_session, make_product):
        pid = make_product(stock=2)
        ok, available = inventory_service.reserve_stock(pid, 3)
        db_session.commit()
        assert ok is False
        assert available == 2
        assert stock_of(pid) == 2

    def test_reserve_rejects_non_positive(self, db_session, make_product):
        pid = make_product(stock=2)
        with pytest.raises(ValueError):
            inventory_service.reserve_stock(pid, 0)

    def test_loaded_row_sees_new_quantity(self, db_session, make_product):
        pid = make_product(stock=5)
        inventory = Inventory.query.filter_by(product_id=pid).one()
        assert inventory.quantity == 5
        inventory_service.reserve_stock(pid, 2)
        assert inventory.quantity == 3
        db_session.commit()


class TestRestoreStock:

    def test_restore_increments(self, db_session, make_product):
        pid = make_product(stock=1)
        assert inventory_service.restore_stock(pid, 4) is True
        db_session.commit()
        assert stock_of(pid) == 5

    def test_restore_recreates_missing_row(self, db_session, make_product):
        pid = make_product(stock=1)
        db_session.execute(Inventory.__table__.delete())
        db_session.commit()

        assert inventory_service.restore_stock(pid, 3) is True
        db_session.commit()
        assert stock_of(pid) == 3

    def test_restore_missing_product(self, db_session):
        assert inventory_service.restore_stock(999, 1) is False


class TestRestoreOrderItems:

    def test_restores_in_product_order_and_skips_missing(self, db_session, make_product):
        a = make_product(name="A", stock=1)
        b = make_product(name="B", stock=1)
        order = Order(order_number="ORD-2026-0001")
        items = [
            OrderItem(product_id=b, product_name="B", quantity=2, unit_price=1),
            OrderItem(product_id=None, product_name="Removed", quantity=5, unit_price=1),
            OrderItem(product_id=999, product_name="Ghost", quantity=7, unit_price=1),
            OrderItem(product_id=a, product_name="A", quantity=3, unit_price=1),
        ]

        restored = inventory_service.restore_order_items(order, items)
        db_session.commit()

        assert [item.product_id for item in restored] == [a, b]
        assert stock_of(a) == 4
        assert stock_of(b) == 3
        assert db_session.query(Inventory).filter_by(product_id=999).count() == 0


class TestCheckAvailability:

    def test_reports_every_shortfall(self, db_session, make_product):
        a = make_product(name="A", stock=1)
        b = make_product(name="B", stock=0)
        products = {p: db.session.get(Product, p) for p in (a, b)}
        inventories = inventory_service.lock_inventories([b, a])

        with pytest.raises(InsufficientStockError) as exc:
            inventory_service.check_availability({a: 2, b: 1}, inventories, products)

        items = exc.value.details["items"]
        assert [i["product_id"] for i in items] == [a, b]
        assert exc.value.product_id == a
        assert exc.value.available == 1
        assert exc.value.requested == 2


class TestRestock:

    def test_restock_adds_and_ledgers(self, db_session, make_product):
        pid = make_product(stock=2)
        inventory = inventory_service.restock(pid, 8, user_id=7)

        assert stock_of(pid) == 10
        assert inventory.last_restock_quantity == 8
        assert inventory.last_restock_date is not None

        rows = ledger_rows(reference_type="restock")
        assert len(rows) == 1
        assert rows[0].type == "IN"
        assert rows[0].quantity == 8
        assert rows[0].user_id == 7

    def test_restock_unknown_product(self, db_session):
        with pytest.raises(ProductNotFoundError):
            inventory_service.restock(12345, 1)

    def test_list_inventories_includes_status(self, db_session, make_product):
        make_product(name="Low", stock=3)
        items = inventory_service.list_inventories()
        assert items[0]["status"] == STATUS_LOW
        assert items[0]["product_name"] == "Low"
