import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pymongo import ReturnDocument

from shared.utils import NotFoundException, ValidationException
from storefront.catalog import CatalogStore
from storefront.models import CartDB

logger = logging.getLogger("storefront.cart")


def apply_cart_totals(cart: dict) -> dict:
    """Recompute the derived ``total`` and ``item_count`` from the cart's items.

    Called right before every cart write; the stored totals are never
    updated on their own.
    """
    items = cart.get("items", [])
    total = sum((Decimal(str(item["price"])) * item["quantity"] for item in items), Decimal(0))
    cart["total"] = float(total)
    cart["item_count"] = sum(item["quantity"] for item in items)
    return cart


class CartManager:
    def __init__(self, db, catalog: Optional[CatalogStore] = None):
        self.db = db
        self.catalog = catalog or CatalogStore(db)

    async def get_cart(self, user_id: str) -> dict:
        """Return the user's cart, creating an empty one on first access."""
        empty = CartDB(user_id=user_id, items=[]).dict(by_alias=True, exclude={"id", "user_id"})
        return await self.db.carts.find_one_and_update(
            {"user_id": user_id},
            {"$setOnInsert": empty},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )

    async def add_item(self, user_id: str, product_id: str, quantity: int = 1) -> dict:
        product = await self.catalog.find_active_product(product_id)
        if not product:
            raise NotFoundException("Product not found or unavailable")
        # Only the additional quantity is checked against stock
        if product["stock"] < quantity:
            raise ValidationException("Insufficient stock")

        cart = await self.get_cart(user_id)
        items = cart.get("items", [])
        for item in items:
            if item["product_id"] == product_id:
                item["quantity"] += quantity
                item["price"] = float(product["price"])
                item["name"] = product["name"]
                break
        else:
            items.append({
                "product_id": product_id,
                "quantity": quantity,
                "price": float(product["price"]),
                "name": product["name"],
            })

        cart["items"] = items
        return await self._save(cart)

    async def update_item(self, user_id: str, product_id: str, quantity: int) -> dict:
        if quantity < 1:
            raise ValidationException("Quantity must be at least 1")

        cart = await self.db.carts.find_one({"user_id": user_id})
        if not cart:
            raise NotFoundException("Cart not found")

        item = next((i for i in cart.get("items", []) if i["product_id"] == product_id), None)
        if item is None:
            raise NotFoundException("Item not found in cart")

        product = await self.catalog.find_product(product_id)
        if product and product["stock"] < quantity:
            raise ValidationException("Insufficient stock")

        item["quantity"] = quantity
        return await self._save(cart)

    async def remove_item(self, user_id: str, product_id: Optional[str] = None) -> dict:
        """Drop one line, or every line when no product is given."""
        cart = await self.db.carts.find_one({"user_id": user_id})
        if not cart:
            raise NotFoundException("Cart not found")

        if product_id:
            cart["items"] = [i for i in cart.get("items", []) if i["product_id"] != product_id]
        else:
            cart["items"] = []
            logger.info("Cart cleared", extra={"user_id": user_id})
        return await self._save(cart)

    async def _save(self, cart: dict) -> dict:
        apply_cart_totals(cart)
        cart["updated_at"] = datetime.utcnow()
        await self.db.carts.update_one(
            {"user_id": cart["user_id"]},
            {"$set": {
                "items": cart["items"],
                "total": cart["total"],
                "item_count": cart["item_count"],
                "updated_at": cart["updated_at"],
            }}
        )
        return cart
