"""
Pytest fixtures for laundry POS backend tests.

Provides the app on an in-memory database, a per-test wipe, an authenticated
client and small factories for products, customers and orders.
"""

import pytest

from laundrypos import create_app
from laundrypos.extensions import db
from laundrypos.models import Product
from laundrypos.services import auth_service, customer_service, order_service

TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SEQUENCE_STORE': 'database',
        'SEQUENCE_RETRY_BASE_DELAY': 0,
        'DB_RETRY_BASE_DELAY': 0,
        'DEFAULT_TAX_RATE': 0.0,
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
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def admin_user(db_session):
    # Low bcrypt cost keeps the suite fast
    return auth_service.create_user("admin", "admin@shop.local", TEST_PASSWORD, rounds=4)


@pytest.fixture(scope='function')
def auth(client, admin_user):
    """Authorization headers for the admin user."""
    token = get_auth_token(client, "admin", TEST_PASSWORD)
    assert token
    return auth_headers(token)


@pytest.fixture(scope='function')
def make_product(db_session):
    counter = {"n": 0}

    def _make(name="Shirt", iron=5, wash=20, dry=50, stock=None, category="Tops", barcode=None):
        counter["n"] += 1
        product = Product(
            id=f"P{counter['n']:03d}",
            name=name,
            category=category,
            barcode=barcode or f"BC{counter['n']:05d}",
            iron_rate=iron,
            wash_and_iron_rate=wash,
            dry_clean_rate=dry,
            stock=stock,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def make_customer(db_session):
    def _make(name="Aisha Khan", **fields):
        return customer_service.create_customer({"name": name, **fields})

    return _make


@pytest.fixture(scope='function')
def sample_order(make_product):
    """
    3 x shirt (wash & iron 20.00, no discount) + 1 x suit (dry clean 50.00, 10% off).
    Subtotal 105.00; no cart discount; tax rate 0.
    """
    shirt = make_product(name="Shirt", wash=20, stock=10)
    suit = make_product(name="Suit", dry=50, stock=4, category="Formal")
    order = order_service.create_order(items=[
        {"product_id": shirt.id, "service": "washAndIron", "quantity": 3, "discount": 0},
        {"product_id": suit.id, "service": "dryClean", "quantity": 1, "discount": 10},
    ])
    return order, shirt, suit


def get_auth_token(client, username: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/signin', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
