"""
Pytest fixtures for PharmaPOS backend tests.

Provides an in-memory database, a clean slate per test, catalog/people
factories, and helpers for building carts.
"""

from decimal import Decimal

import pytest
from pharmapos import create_app
from pharmapos.extensions import db
from pharmapos.models import Medicine, Cosmetic, Salesman, Customer
from pharmapos.services.cart import Cart
from pharmapos.services.catalog_service import to_catalog_item


AUTH_HEADERS = {"X-User-Id": "u-100", "X-User-Name": "cashier@pharmacy.local"}


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
def db_session(app):
    """Empty every table before each test."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def client(app, db_session):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def salesman(db_session):
    person = Salesman(name="Counter One", assigned_counter="1")
    db_session.add(person)
    db_session.commit()
    return person


@pytest.fixture(scope='function')
def customer(db_session):
    person = Customer(name="Ayesha Khan", phone="0300-1234567")
    db_session.add(person)
    db_session.commit()
    return person


@pytest.fixture(scope='function')
def make_medicine(db_session):
    """Factory for medicine batches; defaults match the reference sale scenario."""
    def _make(**overrides):
        fields = dict(
            name="Cetirizine 10mg",
            batch_no="CTZ-001",
            quantity=20,
            selling_price=Decimal("10.00"),
            purchase_price=Decimal("6.00"),
        )
        fields.update(overrides)
        medicine = Medicine(**fields)
        db_session.add(medicine)
        db_session.commit()
        return medicine
    return _make


@pytest.fixture(scope='function')
def medicine(make_medicine):
    return make_medicine()


@pytest.fixture(scope='function')
def pack_medicine(make_medicine):
    """Sold per strip of 10 tablets at 90.00 a strip; stock counted in tablets."""
    return make_medicine(
        name="Paracetamol 500mg",
        batch_no="PCM-001",
        quantity=100,
        selling_price=Decimal("10.00"),
        purchase_price=Decimal("6.00"),
        selling_type="per_pack",
        units_per_pack=10,
        price_per_pack=Decimal("90.00"),
    )


@pytest.fixture(scope='function')
def fridge_medicine(make_medicine):
    return make_medicine(
        name="Insulin Glargine",
        batch_no="INS-003",
        quantity=10,
        selling_price=Decimal("2400.00"),
        purchase_price=Decimal("2050.00"),
        is_fridge_item=True,
    )


@pytest.fixture(scope='function')
def cosmetic(db_session):
    item = Cosmetic(
        name="Sunblock SPF 50",
        brand="Solaris",
        batch_no="SUN-220",
        quantity=15,
        selling_price=Decimal("950.00"),
        purchase_price=Decimal("700.00"),
    )
    db_session.add(item)
    db_session.commit()
    return item


def cart_with(*lines) -> Cart:
    """
    Build a cart from (orm_item, quantity) or (orm_item, quantity, mode) tuples
    the way the sale screen does: bind the item, then set the quantity.
    """
    cart = Cart()
    for line in lines:
        item, quantity = line[0], line[1]
        mode = line[2] if len(line) > 2 else None
        index = cart.add_row()
        cart.set_line_item(index, to_catalog_item(item), mode)
        cart.set_quantity(index, quantity)
    return cart
