#!/usr/bin/env python3
"""
Smoke test for a running storefront deployment

Usage:
    1. Start the API against a real MongoDB: uvicorn storefront.main:app
    2. Export the same SECRET_KEY the server uses
    3. Run the script: python tests/integration_test.py [base_url]

Covers the checkout path end to end:
    - Catalog setup (category, product)
    - Cart
    - Order placement and stock reservation
    - Cancellation and restock
    - Payment intent
    - Negative cases

Writes a JSON report to integration_test_results.json.
"""
import json
import sys
import time
from datetime import datetime
from typing import Any, Dict

import requests
from bson import ObjectId

from shared.utils import create_access_token

BASE_URL = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8000"
RESULTS_FILE = "integration_test_results.json"

ADDRESS = {
    "name": "Smoke Test",
    "address": "1 Main St",
    "city": "Springfield",
    "state": "IL",
    "country": "US",
    "zip_code": "62701",
    "phone": "555-0100",
}


class Colors:
    GREEN = '\033[92m'
    BLUE = '\033[94m'
    HEADER = '\033[95m'
    FAIL = '\033[91m'
    ENDC = '\033[0m'


class SmokeRunner:
    def __init__(self):
        self.results = []
        self.session = requests.Session()
        self.store: Dict[str, Any] = {}
        self.start_time = time.time()

    def log(self, message: str, color: str = Colors.ENDC):
        print(f"{color}{message}{Colors.ENDC}")

    def record(self, name: str, status: str, duration: float, error: str = None):
        self.results.append({
            "test_name": name,
            "status": status,
            "duration": duration,
            "error": error,
            "timestamp": datetime.utcnow().isoformat(),
        })
        self.log(f"[{status}] {name} ({duration:.4f}s)", Colors.GREEN if status == "PASS" else Colors.FAIL)
        if error:
            self.log(f"  Error: {error}", Colors.FAIL)

    def run(self, name: str, func):
        start = time.time()
        try:
            func(self)
        except AssertionError as e:
            self.record(name, "FAIL", time.time() - start, str(e))
        except Exception as e:
            self.record(name, "ERROR", time.time() - start, str(e))
        else:
            self.record(name, "PASS", time.time() - start)

    def headers(self, who: str) -> dict:
        return {"Authorization": f"Bearer {self.store[who + '_token']}"}

    def expect(self, response, status_code: int):
        if response.status_code != status_code:
            raise AssertionError(f"Expected status {status_code}, got {response.status_code}. Body: {response.text}")
        return response.json()

    def save_report(self):
        with open(RESULTS_FILE, "w") as f:
            json.dump({
                "summary": {
                    "total": len(self.results),
                    "passed": len([r for r in self.results if r["status"] == "PASS"]),
                    "failed": len([r for r in self.results if r["status"] != "PASS"]),
                    "total_duration": time.time() - self.start_time,
                },
                "results": self.results,
            }, f, indent=2)
        self.log(f"\nResults saved to {RESULTS_FILE}", Colors.BLUE)


def check_health(runner: SmokeRunner):
    data = runner.expect(runner.session.get(f"{BASE_URL}/health"), 200)
    if data["status"] != "healthy":
        raise AssertionError("Service is not healthy")


def mint_tokens(runner: SmokeRunner):
    for role in ("admin", "vendor", "user"):
        runner.store[role + "_token"] = create_access_token({"sub": str(ObjectId()), "role": role})


def create_category(runner: SmokeRunner):
    slug = f"smoke-{int(time.time())}"
    body = runner.expect(runner.session.post(
        f"{BASE_URL}/api/categories", json={"name": "Smoke", "slug": slug}, headers=runner.headers("admin"),
    ), 201)
    runner.store["category_id"] = body["data"]["id"]


def create_product(runner: SmokeRunner):
    body = runner.expect(runner.session.post(f"{BASE_URL}/api/products", json={
        "name": "Smoke Test Kettle",
        "description": "Boils water",
        "price": 20.0,
        "stock": 5,
        "category_id": runner.store["category_id"],
        "sku": f"SMOKE-{int(time.time())}",
    }, headers=runner.headers("vendor")), 201)
    runner.store["product_id"] = body["data"]["id"]


def list_products(runner: SmokeRunner):
    body = runner.expect(runner.session.get(f"{BASE_URL}/api/products?category={runner.store['category_id']}"), 200)
    if not any(p["id"] == runner.store["product_id"] for p in body["data"]["products"]):
        raise AssertionError("Created product not listed")


def add_to_cart(runner: SmokeRunner):
    body = runner.expect(runner.session.post(
        f"{BASE_URL}/api/cart", json={"product_id": runner.store["product_id"], "quantity": 2},
        headers=runner.headers("user"),
    ), 200)
    if body["data"]["item_count"] != 2:
        raise AssertionError("Cart quantity mismatch")


def place_order(runner: SmokeRunner):
    body = runner.expect(runner.session.post(f"{BASE_URL}/api/orders", json={
        "items": [{"product_id": runner.store["product_id"], "quantity": 2}],
        "shipping_address": ADDRESS,
        "billing_address": ADDRESS,
        "payment_method": "cod",
    }, headers=runner.headers("user")), 201)
    order = body["data"]
    runner.store["order_id"] = order["id"]
    if abs(order["total"] - 49.19) > 0.001:
        raise AssertionError(f"Unexpected order total {order['total']}")


def verify_stock_reserved(runner: SmokeRunner):
    body = runner.expect(runner.session.get(f"{BASE_URL}/api/products/{runner.store['product_id']}"), 200)
    if body["data"]["stock"] != 3:
        raise AssertionError(f"Expected stock 3, got {body['data']['stock']}")


def verify_cart_cleared(runner: SmokeRunner):
    body = runner.expect(runner.session.get(f"{BASE_URL}/api/cart", headers=runner.headers("user")), 200)
    if body["data"]["items"]:
        raise AssertionError("Cart not cleared after order")


def cancel_order(runner: SmokeRunner):
    body = runner.expect(runner.session.post(
        f"{BASE_URL}/api/orders/{runner.store['order_id']}/cancel", headers=runner.headers("user"),
    ), 200)
    if body["data"]["status"] != "cancelled":
        raise AssertionError("Order not cancelled")
    product = runner.expect(runner.session.get(f"{BASE_URL}/api/products/{runner.store['product_id']}"), 200)
    if product["data"]["stock"] != 5:
        raise AssertionError("Stock not restored after cancellation")


def create_payment_intent(runner: SmokeRunner):
    body = runner.expect(runner.session.post(f"{BASE_URL}/api/create-payment-intent", json={"amount": 49.19}), 200)
    if not body["data"]["client_secret"]:
        raise AssertionError("No client secret returned")


def negative_cases(runner: SmokeRunner):
    resp = runner.session.get(f"{BASE_URL}/api/cart", headers={"Authorization": "Bearer invalid_token"})
    if resp.status_code != 401:
        raise AssertionError(f"Expected 401 for invalid token, got {resp.status_code}")

    resp = runner.session.post(f"{BASE_URL}/api/products", json={"name": "Bad", "description": "", "price": -10},
                               headers=runner.headers("vendor"))
    if resp.status_code != 400:
        raise AssertionError(f"Expected 400 for negative price, got {resp.status_code}")

    resp = runner.session.post(f"{BASE_URL}/api/orders", json={
        "items": [{"product_id": runner.store["product_id"], "quantity": 99}],
        "shipping_address": ADDRESS,
        "billing_address": ADDRESS,
        "payment_method": "cod",
    }, headers=runner.headers("user"))
    if resp.status_code != 400:
        raise AssertionError(f"Expected 400 for oversized order, got {resp.status_code}")


def cleanup(runner: SmokeRunner):
    runner.expect(runner.session.delete(
        f"{BASE_URL}/api/products/{runner.store['product_id']}", headers=runner.headers("admin"),
    ), 200)
    runner.expect(runner.session.delete(
        f"{BASE_URL}/api/categories/{runner.store['category_id']}", headers=runner.headers("admin"),
    ), 200)


def main():
    runner = SmokeRunner()
    runner.log("Starting storefront smoke test...\n", Colors.HEADER)

    steps = [
        ("Health Check", check_health),
        ("Mint Tokens", mint_tokens),
        ("Create Category", create_category),
        ("Create Product", create_product),
        ("List Products", list_products),
        ("Add to Cart", add_to_cart),
        ("Place Order", place_order),
        ("Verify Stock Reserved", verify_stock_reserved),
        ("Verify Cart Cleared", verify_cart_cleared),
        ("Cancel Order", cancel_order),
        ("Create Payment Intent", create_payment_intent),
        ("Negative Cases", negative_cases),
        ("Cleanup", cleanup),
    ]
    for name, func in steps:
        runner.run(name, func)

    runner.save_report()

    if any(r["status"] != "PASS" for r in runner.results):
        sys.exit(1)


if __name__ == "__main__":
    main()
