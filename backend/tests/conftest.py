"""
Pytest fixtures for storefront backend tests.

Provides the in-memory database, per-role users with bearer tokens, and
catalog factories.
"""

import pytest

from storefront import create_app
from storefront.extensions import db
from storefront.models import Category, Product, ShippingRate, Coupon, User
from storefront.services.auth_service import hash_password
from storefront.services.inventory_service import derive_stock_status
from storefront.services.session_service import SessionService

TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'LOW_STOCK_THRESHOLD': 5,
        'CORS_ALLOWED_ORIGINS': ['http://localhost:3000'],
    })

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
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

        db.session.rollback()


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow on purpose; hash the shared test password once."""
    return hash_password(TEST_PASSWORD)


@pytest.fixture
def make_user(db_session, password_hash):
    def _make(role: str, email: str | None = None, **fields) -> User:
        user = User(
            email=email or f"{role}@shop.test",
            name=role.replace("_", " ").title(),
            password_hash=password_hash,
            role=role,
            **fields,
        )
        db_session.add(user)
        db_session.commit()
        return user
    return _make


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def _headers_for(db_session, user: User) -> dict:
    _, token = SessionService(db_session).create_session(user)
    return auth_headers(token)


@pytest.fixture
def admin_user(make_user):
    return make_user("admin")


@pytest.fixture
def admin_headers(db_session, admin_user):
    return _headers_for(db_session, admin_user)


@pytest.fixture
def super_admin_headers(db_session, make_user):
    return _headers_for(db_session, make_user("super_admin"))


@pytest.fixture
def manager_headers(db_session, make_user):
    return _headers_for(db_session, make_user("manager"))


@pytest.fixture
def viewer_headers(db_session, make_user):
    return _headers_for(db_session, make_user("viewer"))


@pytest.fixture
def customer_headers(db_session, make_user):
    return _headers_for(db_session, make_user("customer"))


@pytest.fixture
def category(db_session):
    cat = Category(name="Pottery", slug="pottery")
    db_session.add(cat)
    db_session.commit()
    return cat


@pytest.fixture
def make_product(db_session):
    counter = {"n": 0}

    def _make(stock: int = 20, threshold: int | None = None, status: str = "published", **fields) -> Product:
        counter["n"] += 1
        n = counter["n"]
        product = Product(
            sku=fields.pop("sku", f"SKU-{n:03d}"),
            slug=fields.pop("slug", f"product-{n}"),
            name=fields.pop("name", f"Product {n}"),
            price_paise=fields.pop("price_paise", 49900),
            status=status,
            stock_quantity=stock,
            low_stock_threshold=threshold,
            stock_status=derive_stock_status(stock, 5 if threshold is None else threshold),
            **fields,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture
def make_rate(db_session):
    def _make(**fields) -> ShippingRate:
        fields.setdefault("base_cost_paise", 5000)
        fields.setdefault("surcharge_paise", 0)
        rate = ShippingRate(**fields)
        db_session.add(rate)
        db_session.commit()
        return rate
    return _make


@pytest.fixture
def make_coupon(db_session):
    def _make(code: str = "SAVE10", **fields) -> Coupon:
        fields.setdefault("type", "percentage")
        fields.setdefault("value", 10)
        coupon = Coupon(code=code, **fields)
        db_session.add(coupon)
        db_session.commit()
        return coupon
    return _make
