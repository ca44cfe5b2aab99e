"""
Pytest fixtures for Kirana POS backend tests.

Provides test database setup, users per role, stores, products, callers
and auth headers.
"""

from datetime import date
from decimal import Decimal

import pytest
from kirana import create_app
from kirana.extensions import db
from kirana.models import Store, User, UserRole, Product, ROLE_ADMIN, ROLE_STORE_OWNER, ROLE_CASHIER
from kirana.services.auth_service import hash_password
from kirana.services.session_service import Caller, create_session

PASSWORD = "Password123!"


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


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow on purpose; hash the shared test password once."""
    return hash_password(PASSWORD)


@pytest.fixture(scope='function')
def make_user(db_session, password_hash):
    """Factory: make_user(email, *roles, store_id=None, full_name=...)."""
    def _make(email, *roles, store_id=None, full_name="Test User", email_confirmed=True):
        user = User(
            email=email,
            password_hash=password_hash,
            full_name=full_name,
            store_id=store_id,
            email_confirmed=email_confirmed,
        )
        db_session.add(user)
        db_session.flush()
        for role in roles:
            db_session.add(UserRole(user_id=user.id, role=role))
        db_session.commit()
        return user
    return _make


@pytest.fixture(scope='function')
def admin_user(make_user):
    return make_user("admin@kirana.test", ROLE_ADMIN, full_name="Admin")


@pytest.fixture(scope='function')
def owner_user(make_user):
    return make_user("owner@sharma.test", ROLE_STORE_OWNER, full_name="Ravi Sharma")


@pytest.fixture(scope='function')
def other_owner_user(make_user):
    return make_user("owner@gupta.test", ROLE_STORE_OWNER, full_name="Meena Gupta")


@pytest.fixture(scope='function')
def store(db_session, owner_user):
    """Store owned by owner_user."""
    store = Store(
        name="Sharma General Store",
        owner_id=owner_user.id,
        phone="9876543210",
        address="12 MG Road, Pune",
        gst_number="27ABCDE1234F1Z5",
    )
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def other_store(db_session, other_owner_user):
    """Store owned by other_owner_user."""
    store = Store(name="Gupta Provisions", owner_id=other_owner_user.id)
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def cashier_user(make_user, store):
    return make_user("cashier@sharma.test", ROLE_CASHIER, store_id=store.id, full_name="Anil")


@pytest.fixture(scope='function')
def rice(db_session, store):
    """Rs 100, 5% tax, 10 in stock."""
    product = Product(
        store_id=store.id,
        name="Basmati Rice 1kg",
        sku="RICE-001",
        barcode="8901234500011",
        category="Food",
        price=Decimal("100.00"),
        cost_price=Decimal("85.00"),
        stock_quantity=10,
        min_stock_level=2,
        unit="kg",
        tax_rate=Decimal("5"),
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def soap(db_session, store):
    """Rs 25.50, 18% tax, 3 in stock (low stock: min 5)."""
    product = Product(
        store_id=store.id,
        name="Neem Soap",
        sku="SOAP-001",
        barcode="8901234500028",
        category="Personal Care",
        price=Decimal("25.50"),
        cost_price=Decimal("20.00"),
        stock_quantity=3,
        min_stock_level=5,
        unit="piece",
        tax_rate=Decimal("18"),
        expiry_date=date(2030, 1, 1),
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def foreign_product(db_session, other_store):
    product = Product(
        store_id=other_store.id,
        name="Toor Dal 1kg",
        sku="DAL-001",
        price=Decimal("140.00"),
        stock_quantity=20,
        unit="kg",
        tax_rate=Decimal("0"),
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def admin_caller(admin_user):
    return Caller.for_user(admin_user)


@pytest.fixture(scope='function')
def owner_caller(owner_user, store):
    return Caller.for_user(owner_user)


@pytest.fixture(scope='function')
def other_owner_caller(other_owner_user, other_store):
    return Caller.for_user(other_owner_user)


@pytest.fixture(scope='function')
def cashier_caller(cashier_user):
    return Caller.for_user(cashier_user)


def get_auth_token(user) -> str:
    """Helper to open a session for a user without a login round-trip."""
    _, token = create_session(user_id=user.id)
    return token


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return auth_headers(get_auth_token(admin_user))


@pytest.fixture(scope='function')
def owner_headers(owner_user, store):
    return auth_headers(get_auth_token(owner_user))


@pytest.fixture(scope='function')
def other_owner_headers(other_owner_user, other_store):
    return auth_headers(get_auth_token(other_owner_user))


@pytest.fixture(scope='function')
def cashier_headers(cashier_user):
    return auth_headers(get_auth_token(cashier_user))
