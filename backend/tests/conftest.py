"""
Pytest fixtures for shopcore backend tests.

Provides the in-memory test database, two shops for tenant isolation, and
products, a supplier and a customer in the first shop.
"""

import pytest
from shopcore import create_app
from shopcore.extensions import db
from shopcore.models import Shop, Product, Supplier, Customer, LoyaltyAccount


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DB_RETRY_BACKOFF_SECONDS': 0,
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


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
def cli_runner(app):
    return app.test_cli_runner()


@pytest.fixture(scope='function')
def shop_a(db_session):
    """Create Shop A (first tenant)."""
    shop = Shop(name="Shop A - Corner Market")
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def shop_b(db_session):
    """Create Shop B (second tenant)."""
    shop = Shop(name="Shop B - Harbor Goods")
    db_session.add(shop)
    db_session.commit()
    return shop


@pytest.fixture(scope='function')
def product_a(db_session, shop_a):
    """Create a product in Shop A with 5 units on hand."""
    product = Product(shop_id=shop_a.id, name="Product A", price_cents=1000, stock=5)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(db_session, shop_a):
    """Create a second product in Shop A with 3 units on hand."""
    product = Product(shop_id=shop_a.id, name="Product B", price_cents=500, stock=3)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def foreign_product(db_session, shop_b):
    """Create a product in Shop B."""
    product = Product(shop_id=shop_b.id, name="Foreign Product", price_cents=2000, stock=50)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def supplier(db_session, shop_a):
    """Create a supplier for Shop A."""
    supplier = Supplier(
        shop_id=shop_a.id,
        name="Acme Wholesale",
        email="orders@acme.example",
        contact_person="Pat Buyer",
    )
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def customer(db_session, shop_a):
    """Create a Shop A customer with an empty loyalty account."""
    customer = Customer(shop_id=shop_a.id, name="Casey Customer", phone="555-0101")
    db_session.add(customer)
    db_session.flush()
    db_session.add(LoyaltyAccount(customer_id=customer.id))
    db_session.commit()
    return customer


def sale_line(product, quantity, price_cents=None, discount_percent=None) -> dict:
    """Build a record_sale cart line for a product."""
    line = {
        "product_id": product.id,
        "quantity": quantity,
        "price_cents": product.price_cents if price_cents is None else price_cents,
    }
    if discount_percent is not None:
        line["discount_percent"] = discount_percent
    return line
