from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo import ASCENDING, DESCENDING
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.utils import get_db_client, settings, ErrorResponse, HealthResponse, AppException
from shared.logging_config import setup_logging, RequestLoggingMiddleware
from shared.security_config import setup_rate_limiting, SecurityHeadersMiddleware
from storefront.api import account, admin, cart, catalog, orders, payments, reviews
from storefront.orders import RESERVATION_MODES
from storefront.payments import build_gateway

SERVICE_NAME = "storefront"
VERSION = "1.0.0"

logger = setup_logging(SERVICE_NAME)


async def ensure_indexes(db):
    await db.carts.create_index("user_id", unique=True)
    await db.orders.create_index("order_number", unique=True)
    await db.orders.create_index([("user_id", ASCENDING), ("status", ASCENDING), ("created_at", DESCENDING)])
    await db.reviews.create_index(
        [("user_id", ASCENDING), ("product_id", ASCENDING), ("order_id", ASCENDING)], unique=True
    )
    await db.reviews.create_index([("product_id", ASCENDING), ("rating", ASCENDING), ("created_at", DESCENDING)])
    await db.products.create_index("sku", unique=True, sparse=True)
    await db.products.create_index(
        [("category_id", ASCENDING), ("brand", ASCENDING), ("price", ASCENDING), ("rating", DESCENDING)]
    )
    await db.categories.create_index("slug", unique=True)


def error_response(status_code: int, error: str, details=None, retryable=None, headers=None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details, retryable=retryable)
    return JSONResponse(
        status_code=status_code,
        content=body.dict(exclude_none=True),
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        retryable = getattr(exc, "retryable", None) or None
        return error_response(exc.status_code, str(exc.detail), retryable=retryable, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        details = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        return error_response(status.HTTP_400_BAD_REQUEST, "Validation failed", details=details)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled error",
            extra={"request_id": getattr(request.state, "request_id", None), "path": request.url.path},
            exc_info=exc,
        )
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def create_app(
    mongodb_client=None,
    payment_gateway=None,
    rate_limiting: bool = True,
    stock_reservation_mode: Optional[str] = None,
) -> FastAPI:
    """Build the storefront app.

    A Mongo client and payment gateway may be injected; otherwise they are
    created from settings on startup.
    """
    mode = stock_reservation_mode or settings.STOCK_RESERVATION_MODE
    if mode not in RESERVATION_MODES:
        raise ValueError(f"Unknown stock reservation mode: {mode}")

    app = FastAPI(title="Storefront", version=VERSION)
    app.state.stock_reservation_mode = mode
    app.payment_gateway = payment_gateway or build_gateway(settings)

    # Security Setup
    setup_rate_limiting(app, enabled=rate_limiting)
    app.add_middleware(SecurityHeadersMiddleware)

    # Middleware
    app.add_middleware(RequestLoggingMiddleware, service_name=SERVICE_NAME)

    # CORS Configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.on_event("startup")
    async def startup_db_client():
        app.owns_mongodb_client = mongodb_client is None
        app.mongodb_client = mongodb_client or get_db_client(settings.MONGO_URL)
        app.mongodb = app.mongodb_client[settings.DATABASE_NAME]
        await ensure_indexes(app.mongodb)
        logger.info(f"Storefront started with {mode} stock reservation")

    @app.on_event("shutdown")
    async def shutdown_db_client():
        if app.owns_mongodb_client:
            app.mongodb_client.close()

    for module in (orders, cart, catalog, reviews, account, payments, admin):
        app.include_router(module.router, prefix="/api")

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        try:
            await app.mongodb_client.admin.command("ping")
            db_status = "connected"
        except Exception:
            db_status = "disconnected"

        if db_status != "connected":
            raise AppException(status.HTTP_503_SERVICE_UNAVAILABLE, "Service Unhealthy")

        return HealthResponse(
            service=SERVICE_NAME,
            status="healthy",
            timestamp=datetime.utcnow(),
            version=VERSION,
            database=db_status,
        )

    return app


app = create_app()
