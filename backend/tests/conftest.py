"""
Pytest fixtures for orderdesk backend tests.

Provides an in-memory database, a test client, and catalog factories.
"""

import pytest
from sqlalchemy import select

from orderdesk import create_app
from orderdesk.extensions import cache, db
from orderdesk.models import Category, Inventory, Product, ProductTransaction
from orderdesk.money import to_money


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'CONCURRENCY_BACKOFF_BASE': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        db.session.rollback()
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        db.session.expunge_all()
        cache.clear()
        app.config['LEDGER_AT_RESERVATION'] = False

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def category(db_session):
    cat = Category(name="Printing")
    db_session.add(cat)
    db_session.commit()
    return cat


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: committed product with an inventory row."""
    def _make(name="Product", price="100.00", stock=10, category=None, is_active=True, reorder_level=10):
        product = Product(
            name=name,
            price=to_money(price),
            category_id=category.id if category else None,
            is_active=is_active,
        )
        product.inventory = Inventory(quantity=stock, reorder_level=reorder_level)
        db_session.add(product)
        db_session.commit()
        return product.id

    return _make


def stock_of(product_id: int) -> int:
    """Current on-hand quantity straight from the database."""
    return db.session.execute(
        select(Inventory.quantity).where(Inventory.product_id == product_id)
    ).scalar()


def ledger_rows(reference_type=None, reference_id=None, type=None) -> list:
    q = db.session.query(ProductTransaction)
    if reference_type is not None:
        q = q.filter(ProductTransaction.reference_type == reference_type)
    if reference_id is not None:
        q = q.filter(ProductTransaction.reference_id == reference_id)
    if type is not None:
        q = q.filter(ProductTransaction.type == type)
    return q.order_by(ProductTransaction.id.asc()).all()


def user_headers(user_id: int = 1) -> dict:
    """Helper to create the acting-user header."""
    return {'X-User-Id': str(user_id)}
