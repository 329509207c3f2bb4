import logging
import math
from decimal import Decimal, ROUND_HALF_UP

from fastapi import APIRouter, Depends, Request, status

from shared.security_config import limiter
from shared.utils import settings, SuccessResponse, AppException, ValidationException
from storefront.dependencies import get_payment_gateway
from storefront.payments import PaymentGateway
from storefront.schemas import PaymentIntentCreate, PaymentIntentResponse, PublishableKeyResponse

logger = logging.getLogger("storefront.payments")

router = APIRouter(tags=["payments"])


def to_cents(amount: float) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@router.post("/create-payment-intent", response_model=SuccessResponse[PaymentIntentResponse])
@limiter.limit(settings.RATE_LIMIT)
async def create_payment_intent(
    request: Request,
    payload: PaymentIntentCreate,
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    if payload.amount is None or not math.isfinite(payload.amount) or payload.amount <= 0:
        raise ValidationException("Amount is required")

    result = await gateway.create_payment_intent(to_cents(payload.amount), settings.PAYMENT_CURRENCY)
    if not result.success:
        logger.error("Payment intent failed: %s", result.failure_reason)
        raise AppException(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to create payment intent")

    return SuccessResponse(data=PaymentIntentResponse(client_secret=result.client_secret))


@router.get("/stripe-pk", response_model=SuccessResponse[PublishableKeyResponse])
async def get_publishable_key():
    if not settings.STRIPE_PUBLISHABLE_KEY:
        raise AppException(status.HTTP_500_INTERNAL_SERVER_ERROR, "Publishable key not set")
    return SuccessResponse(data=PublishableKeyResponse(publishable_key=settings.STRIPE_PUBLISHABLE_KEY))
