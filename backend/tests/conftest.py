import os
import tempfile
from decimal import Decimal

# settings are read at import time, so point them at a scratch dir first
_TMP = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP, 'test.db')}"
os.environ["LOCKS_DIR"] = os.path.join(_TMP, "locks")
os.environ["PAYMENT_PROVIDER"] = "mock"
os.environ["PAYMENT_MOCK_DELAY_MS"] = "0"
os.environ["PAYMENT_CONFIRM_TIMEOUT_SECONDS"] = "2"
os.environ["FINALIZE_WAIT_SECONDS"] = "5"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["RESET_DB"] = "0"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from storefront.adapters.mock_payment import MockPaymentGateway  # noqa: E402
from storefront.api.deps import get_payment_gateway  # noqa: E402
from storefront.db import SessionLocal, init_db  # noqa: E402
from storefront.main import app  # noqa: E402
from storefront.models.cart_item import CartItem  # noqa: E402
from storefront.models.product import Product  # noqa: E402
from storefront.models.user import User  # noqa: E402
from storefront.repositories.session_repo import DbSessionRepository  # noqa: E402
from storefront.services.auth_service import get_password_hash  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_schema():
    init_db(reset=True)
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway():
    gw = MockPaymentGateway(delay_ms=0)
    app.dependency_overrides[get_payment_gateway] = lambda: gw
    return gw


@pytest.fixture
def client(gateway):
    return TestClient(app)


@pytest.fixture
def make_product(db):
    counter = {"n": 0}

    def _make(price="10.00", inventory=5, sale_price=None, name=None, category_id=None):
        counter["n"] += 1
        n = counter["n"]
        p = Product(
            name=name or f"Product {n}",
            slug=f"product-{n}",
            description=f"Test product {n}",
            price=Decimal(price),
            sale_price=Decimal(sale_price) if sale_price is not None else None,
            inventory=inventory,
            category_id=category_id,
        )
        db.add(p)
        db.commit()
        return p.id

    return _make


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role="customer", password="secret123"):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            username=f"user{n}",
            email=f"user{n}@example.com",
            password_hash=get_password_hash(password),
            full_name=f"User {n}",
            address=f"{n} Test Street",
            role=role,
        )
        db.add(user)
        db.commit()
        token = f"test-token-{n}"
        DbSessionRepository(db).set(token, {"user_id": user.id, "role": role}, 3600)
        return user.id, {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def add_to_cart(db):
    """Put rows straight into a cart, bypassing the stock check."""

    def _add(user_id, product_id, quantity):
        db.add(CartItem(user_id=user_id, product_id=product_id, quantity=quantity))
        db.commit()

    return _add


@pytest.fixture
def update_product(db):
    """Change a product behind the services' back (another admin, another order)."""

    def _update(product_id, **values):
        if "price" in values:
            values["price"] = Decimal(values["price"])
        db.query(Product).filter(Product.id == product_id).update(values)
        db.commit()

    return _update
