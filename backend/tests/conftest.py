"""
Pytest fixtures for orderflow backend tests.

Provides an in-memory database, parties for every role, a small depot
catalog, a recording notifier and the test client.
"""

import pytest

from orderflow import create_app
from orderflow.extensions import db
from orderflow.models import Product
from orderflow.permissions import Caller, Role
from orderflow.services.auth_service import create_party
from orderflow.services.notification_service import RecordingNotifier


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
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
        db.session.expunge_all()


@pytest.fixture(scope='function')
def notifier(app):
    """Swap in an in-memory notifier for the duration of one test."""
    previous = app.extensions.get("notifier")
    recording = RecordingNotifier()
    app.extensions["notifier"] = recording
    yield recording
    app.extensions["notifier"] = previous


def caller_for(party) -> Caller:
    """Caller value object for a Party row."""
    return Caller(id=party.id, role=Role(party.role))


def caller_headers(party) -> dict:
    """Gateway headers the HTTP layer trusts."""
    return {'X-Caller-Id': str(party.id), 'X-Caller-Role': party.role}


@pytest.fixture(scope='function')
def buyer(db_session):
    return create_party("Bea Buyer", "buyer@orderflow.test", "buyer")


@pytest.fixture(scope='function')
def other_buyer(db_session):
    return create_party("Otto Buyer", "buyer2@orderflow.test", "buyer")


@pytest.fixture(scope='function')
def depot(db_session):
    return create_party("North Depot", "depot@orderflow.test", "depot", address="1 Dock Rd")


@pytest.fixture(scope='function')
def other_depot(db_session):
    return create_party("South Depot", "depot2@orderflow.test", "depot")


@pytest.fixture(scope='function')
def carrier(db_session):
    return create_party("Carla Carrier", "carrier@orderflow.test", "carrier")


@pytest.fixture(scope='function')
def admin(db_session):
    return create_party("Ada Admin", "admin@orderflow.test", "admin")


@pytest.fixture(scope='function')
def widget(db_session, depot):
    """10 widgets at 1.00 (cost 0.60) in the depot."""
    product = Product(
        depot_id=depot.id,
        barcode="W-001",
        name="Widget",
        category="Hardware",
        image_url="https://img.test/widget.png",
        unit_price_cents=100,
        unit_cost_cents=60,
        quantity_on_hand=10,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def gadget(db_session, depot):
    """5 gadgets at 0.50, no cost recorded."""
    product = Product(
        depot_id=depot.id,
        barcode="G-001",
        name="Gadget",
        unit_price_cents=50,
        quantity_on_hand=5,
    )
    db_session.add(product)
    db_session.commit()
    return product
