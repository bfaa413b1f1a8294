"""
Pytest fixtures for cari backend tests.

Provides an in-memory database, per-test table wipe, the Flask test client
and small factories for counterparties and products.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from cari import create_app
from cari.extensions import db
from cari.models import Counterparty, Product, StockAdjustment, Transaction
from cari.time_utils import today


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
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
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_counterparty(db_session):
    """Factory: make_counterparty("customer", "Deniz Restaurant", invoiced=True)."""
    def _make(counterparty_type="customer", name=None, **fields):
        cp = Counterparty(
            type=counterparty_type,
            name=name or f"{counterparty_type.title()} {db_session.query(Counterparty).count() + 1}",
            invoiced=fields.pop("invoiced", False),
            **fields,
        )
        db_session.add(cp)
        db_session.commit()
        return cp
    return _make


@pytest.fixture(scope='function')
def customer(make_counterparty):
    return make_counterparty("customer", "Deniz Restaurant")


@pytest.fixture(scope='function')
def supplier(make_counterparty):
    return make_counterparty("supplier", "Karadeniz Su Ürünleri")


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product("Levrek", stock="10") creates the product and an opening adjustment."""
    def _make(name, unit="kg", stock=None, is_active=True):
        p = Product(name=name, name_key=" ".join(name.split()).casefold(), unit=unit, is_active=is_active)
        db_session.add(p)
        db_session.flush()
        if stock is not None:
            db_session.add(StockAdjustment(product_id=p.id, quantity=Decimal(stock), notes="opening"))
        db_session.commit()
        return p
    return _make


@pytest.fixture(scope='function')
def add_tx(db_session):
    """Factory writing a raw ledger row, bypassing the service layer."""
    def _add(counterparty, tx_type, amount, days_ago=0, description=None, reversed_of=None):
        tx = Transaction(
            counterparty_id=counterparty.id,
            tx_type=tx_type,
            amount=Decimal(amount),
            description=description,
            tx_date=today() - timedelta(days=days_ago),
            reversed_of=reversed_of,
        )
        db_session.add(tx)
        db_session.commit()
        return tx
    return _add
