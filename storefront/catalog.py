"""Catalog store: products and categories."""
import logging
import re
from datetime import datetime
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError

from shared.utils import (
    str_to_oid, with_id, build_pagination,
    NotFoundException, ValidationException, ConflictException, ForbiddenException,
)
from storefront.dependencies import CurrentUser
from storefront.models import ProductDB, CategoryDB
from storefront.roles import Capability
from storefront.schemas import ProductCreate, ProductUpdate, CategoryCreate, CategoryUpdate

logger = logging.getLogger("storefront.catalog")

SORTABLE_FIELDS = ("created_at", "price", "rating", "name", "review_count")


def parse_oid(value) -> Optional[ObjectId]:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


class CatalogStore:
    def __init__(self, db):
        self.db = db

    # Products

    async def find_product(self, product_id: str) -> Optional[dict]:
        oid = parse_oid(product_id)
        if oid is None:
            return None
        return await self.db.products.find_one({"_id": oid})

    async def find_active_product(self, product_id: str) -> Optional[dict]:
        product = await self.find_product(product_id)
        if not product or not product.get("is_active", False):
            return None
        return product

    async def list_products(
        self,
        page: int = 1,
        limit: int = 12,
        category: Optional[str] = None,
        brand: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        rating: Optional[float] = None,
        search: Optional[str] = None,
        flash_sale: bool = False,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ):
        query = {"is_active": True}

        if category:
            category_id = await self._resolve_category_id(category)
            if category_id is None:
                return [], build_pagination(page, limit, 0)
            query["category_id"] = category_id

        if brand:
            query["brand"] = {"$regex": re.escape(brand), "$options": "i"}

        price_query = {}
        if min_price is not None:
            price_query["$gte"] = min_price
        if max_price is not None:
            price_query["$lte"] = max_price
        if price_query:
            query["price"] = price_query

        if rating is not None:
            query["rating"] = {"$gte": rating}

        if search:
            pattern = {"$regex": re.escape(search), "$options": "i"}
            query["$or"] = [{"name": pattern}, {"description": pattern}, {"tags": pattern}]

        if flash_sale:
            query["is_flash_sale"] = True
            query["flash_sale_ends_at"] = {"$gt": datetime.utcnow()}

        if sort_by not in SORTABLE_FIELDS:
            raise ValidationException(f"Cannot sort by '{sort_by}'")
        direction = DESCENDING if sort_order == "desc" else ASCENDING

        skip = (page - 1) * limit
        total = await self.db.products.count_documents(query)
        cursor = self.db.products.find(query).sort([(sort_by, direction), ("_id", direction)]).skip(skip).limit(limit)
        products = [with_id(doc) async for doc in cursor]
        return products, build_pagination(page, limit, total)

    async def get_product(self, product_id: str) -> dict:
        product = await self.find_product(product_id)
        if not product:
            raise NotFoundException("Product not found")
        return with_id(product)

    async def create_product(self, user: CurrentUser, payload: ProductCreate) -> dict:
        if payload.category_id and not await self.find_category(payload.category_id):
            raise ValidationException(f"Invalid category: '{payload.category_id}' not found")

        data = payload.dict()
        if data["original_price"] is None:
            data["original_price"] = data["price"]
        product_db = ProductDB(vendor_id=user.id, **data)
        product_dict = product_db.dict(by_alias=True, exclude={"id"})
        if product_dict.get("sku") is None:
            # sku is indexed sparse-unique, so leave it out rather than store null
            product_dict.pop("sku")

        try:
            result = await self.db.products.insert_one(product_dict)
        except DuplicateKeyError:
            raise ConflictException("A product with this SKU already exists")

        logger.info("Product created", extra={"product_id": str(result.inserted_id), "user_id": user.id})
        return with_id(await self.db.products.find_one({"_id": result.inserted_id}))

    async def update_product(self, product_id: str, user: CurrentUser, payload: ProductUpdate) -> dict:
        product = await self._owned_product(product_id, user, "You can only update your own products")

        update_data = {k: v for k, v in payload.dict().items() if v is not None}
        if "category_id" in update_data and not await self.find_category(update_data["category_id"]):
            raise ValidationException(f"Invalid category: '{update_data['category_id']}' not found")

        if update_data:
            update_data["updated_at"] = datetime.utcnow()
            await self.db.products.update_one({"_id": product["_id"]}, {"$set": update_data})

        return with_id(await self.db.products.find_one({"_id": product["_id"]}))

    async def delete_product(self, product_id: str, user: CurrentUser) -> None:
        product = await self._owned_product(product_id, user, "You can only delete your own products")
        await self.db.products.delete_one({"_id": product["_id"]})
        logger.info("Product deleted", extra={"product_id": product_id, "user_id": user.id})

    async def _owned_product(self, product_id: str, user: CurrentUser, denied: str) -> dict:
        product = await self.db.products.find_one({"_id": str_to_oid(product_id)})
        if not product:
            raise NotFoundException("Product not found")
        if not user.can(Capability.MANAGE_ANY_PRODUCT) and product["vendor_id"] != user.id:
            raise ForbiddenException(denied)
        return product

    # Categories

    async def find_category(self, category_id: str) -> Optional[dict]:
        oid = parse_oid(category_id)
        if oid is None:
            return None
        return await self.db.categories.find_one({"_id": oid})

    async def _resolve_category_id(self, category: str) -> Optional[str]:
        doc = await self.db.categories.find_one({"slug": category.lower()})
        if doc is None:
            doc = await self.find_category(category)
        return str(doc["_id"]) if doc else None

    async def list_categories(self, parent: Optional[str] = None, level: Optional[int] = None) -> list:
        query = {"is_active": True}
        if parent:
            query["parent_id"] = parent
        elif level is not None:
            query["level"] = level
        else:
            # Top-level categories by default
            query["parent_id"] = None

        cursor = self.db.categories.find(query).sort([("order", ASCENDING), ("name", ASCENDING)])
        return [with_id(doc) async for doc in cursor]

    async def create_category(self, payload: CategoryCreate) -> dict:
        if await self.db.categories.find_one({"slug": payload.slug}):
            raise ConflictException("Category with this slug already exists")

        level = 0
        if payload.parent_id:
            parent = await self.find_category(payload.parent_id)
            if not parent:
                raise NotFoundException("Parent category not found")
            level = parent.get("level", 0) + 1

        cat_db = CategoryDB(level=level, **payload.dict())
        try:
            result = await self.db.categories.insert_one(cat_db.dict(by_alias=True, exclude={"id"}))
        except DuplicateKeyError:
            raise ConflictException("Category with this slug already exists")
        return with_id(await self.db.categories.find_one({"_id": result.inserted_id}))

    async def update_category(self, category_id: str, payload: CategoryUpdate) -> dict:
        oid = str_to_oid(category_id)
        update_data = {k: v for k, v in payload.dict().items() if v is not None}
        if update_data:
            await self.db.categories.update_one({"_id": oid}, {"$set": update_data})
        category = await self.db.categories.find_one({"_id": oid})
        if not category:
            raise NotFoundException("Category not found")
        return with_id(category)

    async def delete_category(self, category_id: str) -> None:
        oid = str_to_oid(category_id)
        if await self.db.categories.count_documents({"parent_id": category_id}):
            raise ConflictException("Category has subcategories")
        result = await self.db.categories.delete_one({"_id": oid})
        if result.deleted_count == 0:
            raise NotFoundException("Category not found")
