import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

from shared.utils import (
    with_id, build_pagination,
    ValidationException, ForbiddenException, ConflictException,
)
from storefront.dependencies import CurrentUser
from storefront.models import ReviewDB
from storefront.schemas import ReviewCreate

logger = logging.getLogger("storefront.reviews")


def average_rating(ratings) -> float:
    """Mean rating rounded half-up to one decimal place; 0 when unrated."""
    ratings = list(ratings)
    if not ratings:
        return 0.0
    mean = Decimal(sum(ratings)) / Decimal(len(ratings))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class ReviewAggregator:
    def __init__(self, db):
        self.db = db

    async def list_reviews(self, product_id: Optional[str], page: int = 1, limit: int = 10, rating: Optional[int] = None):
        if not product_id:
            raise ValidationException("Product ID is required")

        query = {"product_id": product_id}
        if rating is not None:
            query["rating"] = rating

        skip = (page - 1) * limit
        total = await self.db.reviews.count_documents(query)
        cursor = self.db.reviews.find(query).sort("created_at", DESCENDING).skip(skip).limit(limit)
        reviews = [with_id(doc) async for doc in cursor]
        return reviews, build_pagination(page, limit, total)

    async def create_review(self, user: CurrentUser, payload: ReviewCreate) -> dict:
        if not (payload.product_id and payload.order_id and payload.rating is not None
                and payload.title and payload.comment):
            raise ValidationException("Product ID, order ID, rating, title, and comment are required")

        if not 1 <= payload.rating <= 5:
            raise ValidationException("Rating must be between 1 and 5")

        try:
            order_oid = ObjectId(payload.order_id)
        except InvalidId:
            order_oid = None

        order = None
        if order_oid is not None:
            order = await self.db.orders.find_one({
                "_id": order_oid,
                "user_id": user.id,
                "status": "delivered",
                "items.product_id": payload.product_id,
            })
        if not order:
            raise ForbiddenException("You can only review products you have purchased and received")

        triple = {"user_id": user.id, "product_id": payload.product_id, "order_id": payload.order_id}
        if await self.db.reviews.find_one(triple):
            raise ConflictException("You have already reviewed this product for this order")

        review_db = ReviewDB(
            rating=payload.rating,
            title=payload.title,
            comment=payload.comment,
            images=payload.images,
            **triple,
        )
        try:
            result = await self.db.reviews.insert_one(review_db.dict(by_alias=True, exclude={"id"}))
        except DuplicateKeyError:
            raise ConflictException("You have already reviewed this product for this order")

        await self.refresh_product_rating(payload.product_id)

        logger.info("Review created", extra={"product_id": payload.product_id, "user_id": user.id})
        return with_id(await self.db.reviews.find_one({"_id": result.inserted_id}))

    async def refresh_product_rating(self, product_id: str) -> None:
        """Recompute rating and review_count from every review of the product."""
        try:
            product_oid = ObjectId(product_id)
        except InvalidId:
            return

        ratings = [doc["rating"] async for doc in self.db.reviews.find({"product_id": product_id}, {"rating": 1})]
        await self.db.products.update_one(
            {"_id": product_oid},
            {"$set": {"rating": average_rating(ratings), "review_count": len(ratings)}}
        )
