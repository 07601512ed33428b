"""
Pytest fixtures for OneStop POS backend tests.

Provides the test app (in-memory SQLite), per-test table cleanup, two
tenants (owner A and owner B) and bearer-token helpers.
"""

from decimal import Decimal

import bcrypt
import pytest

from onestop import create_app
from onestop.extensions import db
from onestop.models import CreditCustomer, Product, User
from onestop.services.session_service import create_session

TEST_PASSWORD = "secret123"

# Low bcrypt cost keeps fixtures fast; checkpw accepts any cost factor
_TEST_PASSWORD_HASH = bcrypt.hashpw(TEST_PASSWORD.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")


@pytest.fixture(scope='session')
def password():
    """Plaintext password of every fixture user."""
    return TEST_PASSWORD


@pytest.fixture(scope='session')
def password_hash():
    return _TEST_PASSWORD_HASH


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'TX_RETRY_BACKOFF': 0.01,
        'LOG_LEVEL': 'DEBUG',
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


def make_user(session, username: str, role: str = "user", is_active: bool = True) -> User:
    user = User(
        username=username,
        email=f"{username}@onestop.test",
        password_hash=_TEST_PASSWORD_HASH,
        full_name=username.replace("_", " ").title(),
        role=role,
        is_active=is_active,
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def user_a(db_session):
    """Owner A: a regular shop user."""
    return make_user(db_session, "user_a")


@pytest.fixture(scope='function')
def user_b(db_session):
    """Owner B: a second, unrelated shop user."""
    return make_user(db_session, "user_b")


@pytest.fixture(scope='function')
def admin_user(db_session):
    return make_user(db_session, "admin_user", role="admin")


@pytest.fixture(scope='function')
def inactive_user(db_session):
    return make_user(db_session, "retired", is_active=False)


def token_for(user: User) -> str:
    _, token = create_session(user.id, user_agent="pytest", ip_address="127.0.0.1")
    return token


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def headers_a(user_a):
    return auth_headers(token_for(user_a))


@pytest.fixture(scope='function')
def headers_b(user_b):
    return auth_headers(token_for(user_b))


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return auth_headers(token_for(admin_user))


@pytest.fixture(scope='function')
def product_a(db_session, user_a):
    """Product of owner A with stock 10.000 and cost 8.00."""
    product = Product(
        owner_id=user_a.id,
        name="Beyaz Peynir",
        barcode="8690000000011",
        price=Decimal("12.50"),
        cost=Decimal("8.00"),
        stock=Decimal("10.000"),
        unit="kg",
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(db_session, user_b):
    """Product of owner B."""
    product = Product(
        owner_id=user_b.id,
        name="Ekmek",
        barcode="8690000000028",
        price=Decimal("10.00"),
        cost=Decimal("6.00"),
        stock=Decimal("50.000"),
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def customer_a(db_session, user_a):
    """Credit customer of owner A, balance 0."""
    customer = CreditCustomer(
        owner_id=user_a.id,
        name="Ayşe Yılmaz",
        house_no="12B",
        phone="+905551112233",
        credit_limit=Decimal("500.00"),
        current_balance=Decimal("0.00"),
    )
    db_session.add(customer)
    db_session.commit()
    return customer
