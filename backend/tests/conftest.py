"""
Pytest fixtures for pos_ledger tests.

Provides the application on an in-memory SQLite database, a per-test table
wipe, users with explicit SessionContexts, and a product factory.
"""

import pytest
from pos_ledger import create_app
from pos_ledger.extensions import db
from pos_ledger.models import User, Product
from pos_ledger.services import products_service
from pos_ledger.services.auth_service import hash_password
from pos_ledger.services.session_service import SessionContext, create_session


TEST_PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'BCRYPT_ROUNDS': 4,
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
    # Clear all data but keep schema
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    # Cleanup after test
    db.session.rollback()


def _make_user(db_session, username: str, role: str, full_name: str) -> User:
    user = User(
        username=username,
        full_name=full_name,
        email=f"{username}@pos.local",
        role=role,
        password_hash=hash_password(TEST_PASSWORD),
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _make_user(db_session, "admin", "admin", "Ada Admin")


@pytest.fixture(scope='function')
def cashier_user(db_session):
    return _make_user(db_session, "cashier", "cashier", "Casey Cashier")


@pytest.fixture(scope='function')
def admin_ctx(admin_user):
    return SessionContext(user=admin_user)


@pytest.fixture(scope='function')
def ctx(cashier_user):
    """Acting cashier context for sale and ledger calls."""
    return SessionContext(user=cashier_user)


@pytest.fixture(scope='function')
def make_product(db_session, admin_ctx):
    """
    Create a product through the repository so its initial stock is on the
    ledger. Returns the Product row.
    """
    counter = {"n": 0}

    def _make(name: str | None = None, stock: int = 0, price_cents: int = 1000, category: str = "Shirts", **extra) -> Product:
        counter["n"] += 1
        payload = {
            "name": name or f"Product {counter['n']}",
            "category": category,
            "price_cents": price_cents,
            "stock_quantity": stock,
        }
        payload.update(extra)
        result = products_service.create_product(admin_ctx, payload)
        assert result.success, result.error
        return db_session.get(Product, result.data["id"])

    return _make


def auth_headers(user: User) -> dict:
    """Bearer headers for a fresh session of user."""
    _, token = create_session(user.id)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def headers_for(db_session):
    """Helper fixture: headers_for(user) -> Authorization headers."""
    return auth_headers
