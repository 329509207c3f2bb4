from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from shared.security_config import limiter
from shared.utils import settings, SuccessResponse
from storefront.dependencies import CurrentUser, get_db, get_current_user
from storefront.reviews import ReviewAggregator
from storefront.schemas import ReviewCreate, ReviewResponse, ReviewListResponse

router = APIRouter(prefix="/reviews", tags=["reviews"])


def get_review_aggregator(db=Depends(get_db)) -> ReviewAggregator:
    return ReviewAggregator(db)


@router.get("", response_model=SuccessResponse[ReviewListResponse])
async def list_reviews(
    product_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    rating: Optional[int] = Query(None, ge=1, le=5),
    reviews: ReviewAggregator = Depends(get_review_aggregator),
):
    items, pagination = await reviews.list_reviews(product_id, page=page, limit=limit, rating=rating)
    return SuccessResponse(data=ReviewListResponse(
        reviews=[ReviewResponse(**r) for r in items],
        pagination=pagination,
    ))


@router.post("", response_model=SuccessResponse[ReviewResponse], status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.RATE_LIMIT)
async def create_review(
    request: Request,
    payload: ReviewCreate,
    user: CurrentUser = Depends(get_current_user),
    reviews: ReviewAggregator = Depends(get_review_aggregator),
):
    review = await reviews.create_review(user, payload)
    return SuccessResponse(data=ReviewResponse(**review), message="Review created successfully")
