from datetime import datetime, timedelta

import pytest
from bson import ObjectId

from conftest import OTHER_VENDOR_ID, VENDOR_ID, auth_header, run


def names(resp):
    return [p["name"] for p in resp.json()["data"]["products"]]


@pytest.fixture
def make_category(db):
    def _make(slug, parent_id=None, **fields):
        doc = {"name": slug.title(), "slug": slug, "parent_id": parent_id, "is_active": True, "order": 0, "level": 0}
        doc.update(fields)
        return str(run(db.categories.insert_one(doc)).inserted_id)
    return _make


# --- Listing ---

def test_list_only_active_products(client, make_product):
    make_product(name="Visible")
    make_product(name="Hidden", is_active=False)

    resp = client.get("/api/products")

    assert resp.status_code == 200
    assert names(resp) == ["Visible"]
    assert resp.json()["data"]["pagination"]["limit"] == 12


def test_filter_by_price_brand_and_rating(client, make_product):
    make_product(name="Cheap", price=5.0, brand="Acme", rating=3.0)
    make_product(name="Mid", price=20.0, brand="acme", rating=4.5)
    make_product(name="Pricey", price=90.0, brand="Other", rating=5.0)

    assert names(client.get("/api/products?min_price=10&max_price=50")) == ["Mid"]
    assert sorted(names(client.get("/api/products?brand=ACME"))) == ["Cheap", "Mid"]
    assert sorted(names(client.get("/api/products?rating=4.5"))) == ["Mid", "Pricey"]


def test_filter_by_category_slug_or_id(client, make_product, make_category):
    shoes = make_category("shoes")
    make_product(name="Sneaker", category_id=shoes)
    make_product(name="Lamp")

    assert names(client.get("/api/products?category=shoes")) == ["Sneaker"]
    assert names(client.get(f"/api/products?category={shoes}")) == ["Sneaker"]
    assert names(client.get("/api/products?category=unknown")) == []


def test_search_matches_name_description_and_tags(client, make_product):
    make_product(name="Blue Kettle")
    make_product(name="Teapot", description="Pairs with any kettle")
    make_product(name="Cup", tags=["kettle-friendly"])
    make_product(name="Chair")

    assert sorted(names(client.get("/api/products?search=KETTLE"))) == ["Blue Kettle", "Cup", "Teapot"]


def test_flash_sale_filter(client, make_product):
    make_product(name="Live", is_flash_sale=True, flash_sale_ends_at=datetime.utcnow() + timedelta(days=1))
    make_product(name="Expired", is_flash_sale=True, flash_sale_ends_at=datetime.utcnow() - timedelta(days=1))
    make_product(name="Regular")

    assert names(client.get("/api/products?flash_sale=true")) == ["Live"]


def test_sorting(client, make_product):
    make_product(name="B", price=20.0)
    make_product(name="A", price=30.0)
    make_product(name="C", price=10.0)

    assert names(client.get("/api/products?sort_by=price&sort_order=asc")) == ["C", "B", "A"]
    assert names(client.get("/api/products?sort_by=name&sort_order=desc")) == ["C", "B", "A"]


def test_invalid_sort_rejected(client):
    resp = client.get("/api/products?sort_by=stock")

    assert resp.status_code == 400
    assert resp.json()["error"] == "Cannot sort by 'stock'"


def test_pagination(client, make_product):
    for i in range(5):
        make_product(name=f"P{i}")

    data = client.get("/api/products?page=2&limit=2").json()["data"]

    assert len(data["products"]) == 2
    assert data["pagination"]["total"] == 5
    assert data["pagination"]["total_pages"] == 3
    assert data["pagination"]["has_next"] is True


# --- Product CRUD ---

def test_get_product(client, make_product):
    p = make_product(name="Kettle")

    resp = client.get(f"/api/products/{p}")

    assert resp.status_code == 200
    assert resp.json()["data"]["id"] == p
    assert resp.json()["data"]["name"] == "Kettle"


@pytest.mark.parametrize("product_id", [str(ObjectId()), "nope"])
def test_get_missing_product(client, product_id):
    resp = client.get(f"/api/products/{product_id}")

    assert resp.status_code == 404
    assert resp.json()["error"] == "Product not found"


def test_vendor_creates_product(client, vendor_headers):
    resp = client.post(
        "/api/products",
        json={"name": "  Lamp  ", "description": "Desk <b>lamp</b>", "price": 25.0, "stock": 4, "sku": "LAMP-1"},
        headers=vendor_headers,
    )

    assert resp.status_code == 201
    product = resp.json()["data"]
    assert product["vendor_id"] == VENDOR_ID
    assert product["name"] == "Lamp"
    assert product["description"] == "Desk &lt;b&gt;lamp&lt;/b&gt;"
    assert product["original_price"] == 25.0
    assert product["is_active"] is True
    assert product["rating"] == 0


def test_regular_user_cannot_create_product(client, user_headers):
    resp = client.post("/api/products", json={"name": "X", "description": "Y", "price": 1.0}, headers=user_headers)

    assert resp.status_code == 403
    assert resp.json()["error"] == "Insufficient permissions"


def test_create_product_validation(client, vendor_headers):
    resp = client.post("/api/products", json={"name": "Bad", "description": "", "price": -10}, headers=vendor_headers)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Validation failed"

    resp = client.post(
        "/api/products",
        json={"name": "X", "description": "Y", "price": 1.0, "category_id": str(ObjectId())},
        headers=vendor_headers,
    )
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("Invalid category")


def test_duplicate_sku_conflicts(client, vendor_headers):
    payload = {"name": "X", "description": "Y", "price": 1.0, "sku": "DUP-1"}
    assert client.post("/api/products", json=payload, headers=vendor_headers).status_code == 201

    resp = client.post("/api/products", json=payload, headers=vendor_headers)

    assert resp.status_code == 409
    assert resp.json()["error"] == "A product with this SKU already exists"


def test_only_owner_or_admin_updates_product(client, vendor_headers, admin_headers, make_product):
    p = make_product(vendor_id=VENDOR_ID, price=10.0)
    other_vendor = auth_header(OTHER_VENDOR_ID, "vendor")

    resp = client.put(f"/api/products/{p}", json={"price": 12.0}, headers=other_vendor)
    assert resp.status_code == 403
    assert resp.json()["error"] == "You can only update your own products"

    resp = client.put(f"/api/products/{p}", json={"price": 12.0}, headers=vendor_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["price"] == 12.0

    resp = client.put(f"/api/products/{p}", json={"is_active": False}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["is_active"] is False


def test_delete_product(client, vendor_headers, make_product, fetch_product):
    p = make_product(vendor_id=VENDOR_ID)
    other_vendor = auth_header(OTHER_VENDOR_ID, "vendor")

    resp = client.delete(f"/api/products/{p}", headers=other_vendor)
    assert resp.status_code == 403
    assert resp.json()["error"] == "You can only delete your own products"

    resp = client.delete(f"/api/products/{p}", headers=vendor_headers)
    assert resp.status_code == 200
    assert fetch_product(p) is None

    assert client.delete(f"/api/products/{p}", headers=vendor_headers).status_code == 404


# --- Categories ---

def test_admin_creates_category_tree(client, admin_headers):
    resp = client.post("/api/categories", json={"name": "Home", "slug": "Home"}, headers=admin_headers)
    assert resp.status_code == 201
    home = resp.json()["data"]
    assert home["slug"] == "home"
    assert home["level"] == 0

    resp = client.post(
        "/api/categories",
        json={"name": "Kitchen", "slug": "kitchen", "parent_id": home["id"]},
        headers=admin_headers,
    )
    assert resp.status_code == 201
    assert resp.json()["data"]["level"] == 1

    roots = client.get("/api/categories").json()["data"]
    assert [c["slug"] for c in roots] == ["home"]

    children = client.get(f"/api/categories?parent={home['id']}").json()["data"]
    assert [c["slug"] for c in children] == ["kitchen"]

    level_one = client.get("/api/categories?level=1").json()["data"]
    assert [c["slug"] for c in level_one] == ["kitchen"]


def test_category_errors(client, admin_headers, vendor_headers, make_category):
    make_category("toys")

    resp = client.post("/api/categories", json={"name": "Toys", "slug": "toys"}, headers=admin_headers)
    assert resp.status_code == 409

    resp = client.post(
        "/api/categories",
        json={"name": "Lego", "slug": "lego", "parent_id": str(ObjectId())},
        headers=admin_headers,
    )
    assert resp.status_code == 404
    assert resp.json()["error"] == "Parent category not found"

    resp = client.post("/api/categories", json={"name": "Games", "slug": "games"}, headers=vendor_headers)
    assert resp.status_code == 403


def test_categories_sorted_by_order_then_name(client, make_category):
    make_category("b-second", order=1)
    make_category("z-first", order=0)
    make_category("a-second", order=1)

    slugs = [c["slug"] for c in client.get("/api/categories").json()["data"]]

    assert slugs == ["z-first", "a-second", "b-second"]


def test_update_and_delete_category(client, admin_headers, make_category):
    parent = make_category("garden")
    make_category("tools", parent_id=parent, level=1)

    resp = client.put(f"/api/categories/{parent}", json={"name": "Garden & Patio"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["name"] == "Garden &amp; Patio"

    resp = client.delete(f"/api/categories/{parent}", headers=admin_headers)
    assert resp.status_code == 409
    assert resp.json()["error"] == "Category has subcategories"

    assert client.delete(f"/api/categories/{ObjectId()}", headers=admin_headers).status_code == 404
