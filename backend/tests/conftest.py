"""
Pytest fixtures for tradehouse backend tests.

Provides the in-memory database, a test client, and small factories for
items, parties and invoice bodies.
"""

import pytest

from tradehouse import create_app
from tradehouse.config import TestConfig
from tradehouse.extensions import db
from tradehouse.services import aggregate_service, inventory_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

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
def make_item(db_session):
    """Factory: item with optional opening stock, e.g. make_item("Mango", shop_quantity=50)."""
    def _make(name="Mango", **stock):
        return inventory_service.create_item(name=name, **stock)
    return _make


@pytest.fixture(scope='function')
def broker(db_session):
    return aggregate_service.create_party("broker", name="Rashid Broker", city="Lahore")


@pytest.fixture(scope='function')
def commissioner(db_session):
    return aggregate_service.create_party("commissioner", name="Kamal Agent")


@pytest.fixture(scope='function')
def customer(db_session):
    return aggregate_service.create_party("customer", name="Fresh Mart")


@pytest.fixture(scope='function')
def vendor(db_session):
    return aggregate_service.create_party("vendor", name="Valley Farms")


def line(item=None, *, quantity=0, net_weight=0, gross_weight=0, unit_price=0, packaging_cost=0, **extra):
    """Build one line body; item=None gives a free-text line."""
    body = {
        "quantity": quantity,
        "net_weight": net_weight,
        "gross_weight": gross_weight,
        "unit_price": unit_price,
        "packaging_cost": packaging_cost,
    }
    if item is not None:
        body["item_id"] = item.id
    else:
        body["item_name"] = extra.pop("item_name", "Loose produce")
    body.update(extra)
    return body
