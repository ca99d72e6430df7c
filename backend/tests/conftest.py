"""
Pytest fixtures for StoreTrack backend tests.

Provides test database setup, two tenants with owners/staff, and helpers
for bearer-token requests through the Flask test client.
"""

import pytest

from storetrack import create_app
from storetrack.extensions import db
from storetrack.models import Store, User, Staff, Product
from storetrack.services.auth_service import hash_password
from storetrack.services.session_service import AuthContext, create_session

PASSWORD = "Password123!"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'BCRYPT_ROUNDS': 4,
    'CHECKOUT_RETRY_BACKOFF': 0,
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

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
def store_a(db_session):
    """Create Store A (first tenant)."""
    store = Store(name="Store A - Corner Shop")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def store_b(db_session):
    """Create Store B (second tenant)."""
    store = Store(name="Store B - Market")
    db_session.add(store)
    db_session.commit()
    return store


def make_owner(db_session, store, email, name="Owner", role="admin"):
    user = User(
        store_id=store.id,
        name=name,
        email=email,
        password_hash=hash_password(PASSWORD),
        role=role,
    )
    db_session.add(user)
    db_session.commit()
    return user


def make_staff(db_session, store, email, name, role="staff"):
    staff = Staff(
        store_id=store.id,
        name=name,
        email=email,
        password_hash=hash_password(PASSWORD),
        role=role,
    )
    db_session.add(staff)
    db_session.commit()
    return staff


def make_product(db_session, store, name, price_cents, quantity, cost_price_cents=None, **extra):
    product = Product(
        store_id=store.id,
        name=name,
        price_cents=price_cents,
        cost_price_cents=cost_price_cents,
        quantity=quantity,
        **extra,
    )
    db_session.add(product)
    db_session.commit()
    return product


def context_for(principal) -> AuthContext:
    """AuthContext for a User or Staff row, as require_auth would build it."""
    return AuthContext(
        principal_type="staff" if isinstance(principal, Staff) else "user",
        principal_id=principal.id,
        store_id=principal.store_id,
        name=principal.name,
        role=principal.role,
    )


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def headers_for(principal) -> dict:
    _, token = create_session(principal)
    return auth_headers(token)


@pytest.fixture(scope='function')
def owner_a(db_session, store_a):
    return make_owner(db_session, store_a, "owner_a@corner.test", name="Olivia Owner")


@pytest.fixture(scope='function')
def owner_b(db_session, store_b):
    return make_owner(db_session, store_b, "owner_b@market.test", name="Bruno Owner")


@pytest.fixture(scope='function')
def alice(db_session, store_a):
    return make_staff(db_session, store_a, "alice@corner.test", "Alice")


@pytest.fixture(scope='function')
def bob(db_session, store_a):
    return make_staff(db_session, store_a, "bob@corner.test", "Bob")


@pytest.fixture(scope='function')
def milk(db_session, store_a):
    return make_product(db_session, store_a, "Milk", 50000, 20, cost_price_cents=35000, sku="MILK-1", barcode="0001")


@pytest.fixture(scope='function')
def bread(db_session, store_a):
    return make_product(db_session, store_a, "Bread", 30000, 10, cost_price_cents=20000, sku="BREAD-1")


@pytest.fixture(scope='function')
def foreign_product(db_session, store_b):
    return make_product(db_session, store_b, "Imported Cheese", 1200, 50, cost_price_cents=800)
