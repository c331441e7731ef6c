from datetime import datetime, timedelta

import fakeredis
import mongomock
import pytest
from fastapi.testclient import TestClient

from auth import hash_password
from cache import Cache, get_cache
from database import create_document, ensure_indexes, get_db
from main import app
from media import get_image_host
from payments import get_payment_gateway
from schemas import Coupon, Product, User

PASSWORD = "correct-horse"


class FakeGateway:
    currency = "usd"

    def __init__(self):
        self.sessions = {}

    def create_session(self, line_items, metadata, discount_percentage=None):
        session_id = f"cs_test_{len(self.sessions) + 1}"
        amount = sum(li["price_data"]["unit_amount"] * li["quantity"] for li in line_items)
        if discount_percentage:
            amount = round(amount * (1 - discount_percentage / 100))
        self.sessions[session_id] = {
            "id": session_id,
            "payment_status": "unpaid",
            "amount_total": amount,
            "metadata": metadata,
            "line_items": line_items,
            "discount_percentage": discount_percentage,
        }
        return self.sessions[session_id]

    def retrieve_session(self, session_id):
        return self.sessions[session_id]

    def mark_paid(self, session_id):
        self.sessions[session_id]["payment_status"] = "paid"


class FakeImageHost:
    def __init__(self):
        self.uploads = []
        self.deleted = []
        self.fail_delete = False

    def upload(self, image):
        self.uploads.append(image)
        return f"https://res.cloudinary.com/demo/image/upload/v1/products/img{len(self.uploads)}.jpg"

    def delete(self, url):
        if self.fail_delete:
            raise RuntimeError("image host unavailable")
        self.deleted.append(url)


@pytest.fixture
def db():
    database = mongomock.MongoClient().db
    ensure_indexes(database)
    return database


@pytest.fixture
def cache():
    return Cache(fakeredis.FakeRedis(decode_responses=True))


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def images():
    return FakeImageHost()


@pytest.fixture(autouse=True)
def overrides(db, cache, gateway, images):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_image_host] = lambda: images
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)


def add_user(db, email, role="customer", name="Test User", password=PASSWORD):
    user = User(name=name, email=email, password=hash_password(password), role=role)
    return create_document(db, "user", user)


def add_product(db, name="Desk Lamp", price=25.0, category="lighting", is_featured=False, image=""):
    product = Product(name=name, description=f"{name} description", price=price, image=image,
                      category=category, is_featured=is_featured)
    return create_document(db, "product", product)


def give_coupon(db, user_id, code="GIFTSAVE10", percent=10, active=True):
    coupon = Coupon(code=code, discount_percentage=percent, expiration_date=datetime.utcnow() + timedelta(days=30),
                    is_active=active, user_id=user_id)
    return create_document(db, "coupon", coupon)


def logged_in_client(email, password=PASSWORD):
    c = TestClient(app)
    res = c.post("/api/auth/login", json={"email": email, "password": password})
    assert res.status_code == 200, res.text
    return c


@pytest.fixture
def customer(db):
    user_id = add_user(db, "carol@shop.io", name="Carol")
    c = logged_in_client("carol@shop.io")
    c.user_id = user_id
    return c


@pytest.fixture
def admin(db):
    user_id = add_user(db, "ada@shop.io", role="admin", name="Ada")
    c = logged_in_client("ada@shop.io")
    c.user_id = user_id
    return c
