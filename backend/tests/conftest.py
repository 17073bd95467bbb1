"""
Pytest fixtures for VoyaPOS backend tests.

Provides an in-memory database, test client, and store/product/user fixtures.
"""

from decimal import Decimal

import pytest

from voyapos import create_app
from voyapos.extensions import db
from voyapos.models import Inventory, Product, Store, User
from voyapos.models.auth import ROLE_ADMIN, ROLE_CASHIER
from voyapos.services.auth_service import hash_password
from voyapos.services.sync_state import sync_state

PASSWORD = "Password123!"
PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SYNC_ON_LOGIN': False,
        'SYNC_SCHEDULE_MINUTES': 0,
        'INVENTORY_SYNC_BATCH_DELAY': 0,
        'COMMERCE_PAGE_DELAY': 0,
        'COMMERCE_SHOP_DOMAIN': '',
        'COMMERCE_ACCESS_TOKEN': '',
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
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        sync_state.reset()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def store(db_session):
    store = Store(name="Mall Road", location="Shimla, IN", external_location_id="1001", is_active=True)
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def other_store(db_session):
    store = Store(name="Airport", location="Delhi, IN", external_location_id="1002", is_active=True)
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def product(db_session):
    """Frame at 118.00 MRP, 18% tax."""
    product = Product(
        sku="FR-001",
        name="Aviator Frame",
        category="frame",
        price=Decimal("118.00"),
        tax_rate=Decimal("18"),
        external_variant_id="5001",
        external_inventory_item_id="9001",
        is_active=True,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def second_product(db_session):
    """Sunglasses at 1050.00 MRP, 5% tax."""
    product = Product(
        sku="SG-002",
        name="Polarized Sunglasses",
        category="sunglass",
        price=Decimal("1050.00"),
        tax_rate=Decimal("5"),
        external_variant_id="5002",
        external_inventory_item_id="9002",
        is_active=True,
    )
    db_session.add(product)
    db_session.commit()
    return product


def set_quantity(db_session, product, store, quantity):
    """Write an Inventory row directly (test setup only)."""
    row = db_session.get(Inventory, (product.id, store.id))
    if row is None:
        row = Inventory(product_id=product.id, store_id=store.id, quantity=quantity)
        db_session.add(row)
    else:
        row.quantity = quantity
    db_session.commit()
    return row


@pytest.fixture(scope='function')
def stocked(db_session, store, product, second_product):
    """5 units of product and 10 of second_product at store."""
    set_quantity(db_session, product, store, 5)
    set_quantity(db_session, second_product, store, 10)
    return store


def make_user(db_session, username, role, store_id=None):
    user = User(
        username=username,
        email=f"{username}@voya.local",
        password_hash=PASSWORD_HASH,
        role=role,
        store_id=store_id,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session, store):
    return make_user(db_session, "admin", ROLE_ADMIN, store.id)


@pytest.fixture(scope='function')
def cashier_user(db_session, store):
    return make_user(db_session, "cashier", ROLE_CASHIER, store.id)


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.username))


@pytest.fixture(scope='function')
def cashier_headers(client, cashier_user):
    return auth_headers(get_auth_token(client, cashier_user.username))
