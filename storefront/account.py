import logging
from datetime import datetime
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId

from shared.utils import with_id, NotFoundException, ValidationException, ConflictException
from storefront.catalog import CatalogStore, parse_oid
from storefront.dependencies import CurrentUser
from storefront.schemas import ProfileUpdate

logger = logging.getLogger("storefront.account")


def user_filter(user_id: str) -> dict:
    """User documents are keyed by the credential subject, ObjectId when it parses."""
    try:
        return {"_id": ObjectId(user_id)}
    except (InvalidId, TypeError):
        return {"_id": user_id}


class AccountService:
    def __init__(self, db, catalog: Optional[CatalogStore] = None):
        self.db = db
        self.catalog = catalog or CatalogStore(db)

    async def get_profile(self, user: CurrentUser) -> dict:
        doc = await self.db.users.find_one(user_filter(user.id))
        if not doc:
            raise NotFoundException("User not found")
        doc.setdefault("role", user.role.value)
        doc.setdefault("email", user.email)
        return with_id(doc)

    async def update_profile(self, user: CurrentUser, payload: ProfileUpdate) -> dict:
        update_data = {k: v for k, v in payload.dict().items() if v is not None}
        if update_data:
            update_data["updated_at"] = datetime.utcnow()
            result = await self.db.users.update_one(user_filter(user.id), {"$set": update_data})
            if result.matched_count == 0:
                raise NotFoundException("User not found")
            logger.info("Profile updated", extra={"user_id": user.id})
        return await self.get_profile(user)

    # Wishlist

    async def get_wishlist(self, user: CurrentUser) -> list:
        doc = await self.db.users.find_one(user_filter(user.id), {"wishlist": 1})
        product_ids = (doc or {}).get("wishlist", [])
        oids = [oid for oid in (parse_oid(pid) for pid in product_ids) if oid is not None]
        if not oids:
            return []
        products = {str(p["_id"]): p async for p in self.db.products.find({"_id": {"$in": oids}})}
        return [with_id(products[pid]) for pid in product_ids if pid in products]

    async def add_to_wishlist(self, user: CurrentUser, product_id: Optional[str]) -> list:
        if not product_id:
            raise ValidationException("Product ID is required")
        if not await self.catalog.find_product(product_id):
            raise NotFoundException("Product not found")

        doc = await self.db.users.find_one(user_filter(user.id), {"wishlist": 1})
        if doc and product_id in doc.get("wishlist", []):
            raise ConflictException("Product is already in wishlist")

        await self.db.users.update_one(
            user_filter(user.id),
            {"$addToSet": {"wishlist": product_id}},
            upsert=True,
        )
        return await self.get_wishlist(user)

    async def remove_from_wishlist(self, user: CurrentUser, product_id: Optional[str]) -> list:
        if not product_id:
            raise ValidationException("Product ID is required")
        await self.db.users.update_one(user_filter(user.id), {"$pull": {"wishlist": product_id}})
        return await self.get_wishlist(user)
