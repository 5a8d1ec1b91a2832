"""
Pytest fixtures for cafe backend tests.

Provides test database setup, identity/catalog factories, and test client.
"""

from decimal import Decimal

import pytest
from cafe import create_app
from cafe.extensions import db
from cafe.models import Category, Customer, Product, User
from cafe.models.auth import ROLE_ADMIN, ROLE_CUSTOMER, ROLE_ROOT, ROLE_STAFF
from cafe.services import token_service
from cafe.services.auth_service import hash_password


TEST_PASSWORD = "secret123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'AUTH_STRATEGY': 'jwt',
        'JWT_SECRET': 'test-access-secret',
        'JWT_REFRESH_SECRET': 'test-refresh-secret',
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
        db.session.rollback()
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='session')
def password_hash(app):
    """bcrypt is deliberately slow; hash the shared test password once."""
    return hash_password(TEST_PASSWORD)


@pytest.fixture(scope='function')
def make_user(db_session, password_hash):
    counter = {"n": 0}

    def _make(role=ROLE_CUSTOMER, *, email=None, full_name=None, phone=None, reward_points=0):
        counter["n"] += 1
        user = User(
            email=email or f"{role.lower()}{counter['n']}@cafe.test",
            password_hash=password_hash,
            full_name=full_name or f"{role.title()} {counter['n']}",
            phone=phone,
            role=role,
            reward_points=reward_points,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture(scope='function')
def admin(make_user):
    return make_user(ROLE_ADMIN, email="admin@cafe.test", full_name="Admin")


@pytest.fixture(scope='function')
def staff(make_user):
    return make_user(ROLE_STAFF, email="staff@cafe.test", full_name="Barista")


@pytest.fixture(scope='function')
def root(make_user):
    return make_user(ROLE_ROOT, email="root@cafe.test", full_name="Root")


@pytest.fixture(scope='function')
def member(make_user):
    return make_user(ROLE_CUSTOMER, email="member@cafe.test", full_name="Lan Nguyen", phone="0900000001")


@pytest.fixture(scope='function')
def make_customer(db_session):
    def _make(name="Walk In", phone_number=None, reward_points=0):
        customer = Customer(name=name, phone_number=phone_number, reward_points=reward_points)
        db_session.add(customer)
        db_session.commit()
        return customer

    return _make


@pytest.fixture(scope='function')
def category(db_session):
    cat = Category(name="Coffee", description="Hot and iced coffee")
    db_session.add(cat)
    db_session.commit()
    return cat


@pytest.fixture(scope='function')
def make_product(db_session, category):
    def _make(name="Ca phe sua da", price="35000"):
        product = Product(name=name, price=Decimal(price), category_id=category.id, sales_count=0)
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def latte(make_product):
    return make_product("Latte", "35000")


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def headers_for(user: User) -> dict:
    """Access-token headers for a user (must run inside the app context)."""
    return auth_headers(token_service.issue_tokens(user).access_token)


def order_payload(product, quantity=4, unit_price=35000, **extra) -> dict:
    payload = {
        "order_details": [
            {"product_id": product.id, "quantity": quantity, "unit_price": unit_price},
        ],
    }
    payload.update(extra)
    return payload


@pytest.fixture(scope='function')
def auth_for():
    """Callable fixture: auth_for(user) -> Authorization headers."""
    return headers_for


@pytest.fixture(scope='function')
def admin_headers(admin):
    return headers_for(admin)


@pytest.fixture(scope='function')
def staff_headers(staff):
    return headers_for(staff)


@pytest.fixture(scope='function')
def member_headers(member):
    return headers_for(member)


@pytest.fixture(scope='function')
def make_order_payload():
    return order_payload
