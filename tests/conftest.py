import asyncio
from datetime import datetime

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from shared.utils import create_access_token
from storefront.main import create_app
from storefront.payments import FakeGateway

USER_ID = "650000000000000000000001"
OTHER_USER_ID = "650000000000000000000002"
VENDOR_ID = "650000000000000000000003"
OTHER_VENDOR_ID = "650000000000000000000004"
ADMIN_ID = "650000000000000000000005"

ADDRESS = {
    "name": "Ada Buyer",
    "address": "1 Main St",
    "city": "Springfield",
    "state": "IL",
    "country": "US",
    "zip_code": "62701",
    "phone": "555-0100",
}


def run(coro):
    return asyncio.run(coro)


def auth_header(user_id: str = USER_ID, role: str = "user") -> dict:
    token = create_access_token({"sub": user_id, "role": role, "email": f"{role}-{user_id[-4:]}@example.com"})
    return {"Authorization": f"Bearer {token}"}


def order_payload(*items, **overrides) -> dict:
    payload = {
        "items": [{"product_id": pid, "quantity": qty} for pid, qty in items],
        "shipping_address": ADDRESS,
        "billing_address": ADDRESS,
        "payment_method": "cod",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def app(gateway):
    return create_app(mongodb_client=AsyncMongoMockClient(), payment_gateway=gateway, rate_limiting=False)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db(app, client):
    return app.mongodb


@pytest.fixture
def user_headers():
    return auth_header(USER_ID)


@pytest.fixture
def other_headers():
    return auth_header(OTHER_USER_ID)


@pytest.fixture
def vendor_headers():
    return auth_header(VENDOR_ID, "vendor")


@pytest.fixture
def admin_headers():
    return auth_header(ADMIN_ID, "admin")


@pytest.fixture
def make_product(db):
    counter = iter(range(1, 1000))

    def _make(**fields):
        n = next(counter)
        doc = {
            "vendor_id": VENDOR_ID,
            "name": f"Product {n}",
            "description": "A product",
            "price": 10.0,
            "original_price": 10.0,
            "images": [],
            "category_id": None,
            "brand": None,
            "stock": 10,
            "sku": f"SKU-{n:03d}",
            "tags": [],
            "is_active": True,
            "is_flash_sale": False,
            "rating": 0,
            "review_count": 0,
            "created_at": datetime(2024, 1, 1, 12, 0, n % 60),
        }
        doc.update(fields)
        return str(run(db.products.insert_one(doc)).inserted_id)
    return _make


@pytest.fixture
def fetch_product(db):
    def _fetch(product_id):
        return run(db.products.find_one({"_id": ObjectId(product_id)}))
    return _fetch


@pytest.fixture
def make_order(db):
    """Insert an order document directly, bypassing the workflow."""
    counter = iter(range(1, 1000))

    def _make(user_id=USER_ID, product_id=None, status="pending", **fields):
        n = next(counter)
        product_id = product_id or str(ObjectId())
        doc = {
            "user_id": user_id,
            "order_number": f"ORD990101{n:04d}",
            "items": [{"product_id": product_id, "name": "Seeded", "quantity": 1, "price": 10.0, "total": 10.0}],
            "subtotal": 10.0,
            "shipping_cost": 5.99,
            "tax": 0.8,
            "total": 16.79,
            "status": status,
            "payment_status": "pending",
            "payment_method": "cod",
            "shipping_address": ADDRESS,
            "billing_address": ADDRESS,
            "created_at": datetime(1999, 1, 1),
        }
        doc.update(fields)
        return str(run(db.orders.insert_one(doc)).inserted_id)
    return _make
