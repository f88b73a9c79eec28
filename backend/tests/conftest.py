from pathlib import Path
import io
import os
import tempfile

import pytest

# Point the app at throwaway storage before anything imports it.
_TMP = Path(tempfile.mkdtemp(prefix="coffee_shop_tests_"))
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP / 'test.db'}"
os.environ["MEDIA_ROOT"] = str(_TMP / "media")
os.environ["PAYMENT_EVENTS_DIR"] = str(_TMP / "payment_events")
os.environ["RESEND_API_KEY"] = ""
os.environ["ADMIN_EMAIL"] = "admin@test.local"
os.environ["ADMIN_PASSWORD"] = "admin-pass"
os.environ["LOGIN_RATE_LIMIT_PER_MIN"] = "1000"

from fastapi.testclient import TestClient  # noqa: E402
from PIL import Image  # noqa: E402
from sqlmodel import Session  # noqa: E402

from coffee_shop.database import engine, create_db_and_tables, drop_db_and_tables  # noqa: E402
from coffee_shop.main import app  # noqa: E402
from coffee_shop.services.account import initialize_data  # noqa: E402
from coffee_shop.utils.rate_limit import auth_rate_limiter  # noqa: E402

ADMIN_EMAIL = "admin@test.local"
ADMIN_PASSWORD = "admin-pass"


@pytest.fixture(autouse=True)
def reset_db():
    """Ensure a fresh database (roles + admin only) for every test."""
    drop_db_and_tables()
    create_db_and_tables()
    with Session(engine) as session:
        initialize_data(session)
    auth_rate_limiter.reset()
    yield


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db_session():
    with Session(engine) as session:
        yield session


def login_headers(client, email, password):
    r = client.post("/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['data']['access_token']}"}


def register(client, email, password="secret123"):
    r = client.post("/auth/register", json={"email": email, "password": password, "confirm_password": password})
    assert r.status_code == 200, r.text
    return r.json()["data"]


@pytest.fixture
def admin_headers(client):
    return login_headers(client, ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture
def user_headers(client):
    register(client, "alice@example.com")
    return login_headers(client, "alice@example.com", "secret123")


def make_png(size=(32, 16), color="white") -> bytes:
    img = Image.new("RGB", size, color)
    bio = io.BytesIO()
    img.save(bio, format="PNG")
    return bio.getvalue()


@pytest.fixture
def catalog(client, admin_headers):
    """One category/brand/type/product with a single item (price 50000, stock 10, discount 5000)."""
    category = client.post("/categories", data={"name": "Coffee", "description": "Hot drinks"}, headers=admin_headers).json()["data"]
    brand = client.post("/brands", json={"name": "House"}, headers=admin_headers).json()["data"]
    type_product = client.post("/type-products", json={"name": "Large"}, headers=admin_headers).json()["data"]
    product = client.post("/products", json={
        "name": "Espresso", "description": "Strong and short",
        "category_id": category["id"], "brand_id": brand["id"],
    }, headers=admin_headers).json()["data"]
    item = client.post("/product-items", json={
        "product_id": product["id"], "type_id": type_product["id"],
        "price": 50000, "stock": 10, "discount": 5000,
    }, headers=admin_headers).json()["data"]
    return {"category": category, "brand": brand, "type": type_product, "product": product, "item": item}


@pytest.fixture
def address(client, user_headers):
    r = client.post("/shipping-addresses", json={
        "receiver_name": "Alice", "receiver_phone": "0900000000", "location": "1 Coffee Street",
    }, headers=user_headers)
    assert r.status_code == 200, r.text
    return r.json()["data"]
