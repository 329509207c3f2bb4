"""Order placement workflow.

Creating an order validates every requested item against the live catalog,
reserves stock, prices the order, assigns a date-encoded order number, stores
the order and clears the buyer's cart. Cancelling reverses the stock
reservation.

Stock is reserved with a guarded decrement (``stock >= quantity`` in the
update filter) so two concurrent orders cannot both take the last units.
``legacy`` mode keeps the old check-then-decrement behaviour for
compatibility testing. Reservations made by a request that ends up rejected
are released before the error reaches the caller.
"""
import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional, List, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import ValidationError
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from shared.utils import (
    str_to_oid, with_id, build_pagination,
    NotFoundException, ValidationException, ConflictException, ForbiddenException,
)
from storefront.catalog import CatalogStore
from storefront.dependencies import CurrentUser
from storefront.models import (
    Address, OrderDB, OrderItemDB, PAYMENT_METHODS, NON_CANCELLABLE_STATUSES, FINAL_STATUSES,
)
from storefront.roles import Capability
from storefront.schemas import OrderCreate, OrderUpdate

logger = logging.getLogger("storefront.orders")

FREE_SHIPPING_THRESHOLD = Decimal("50")
FLAT_SHIPPING_COST = Decimal("5.99")
TAX_RATE = Decimal("0.08")
MAX_DAILY_SEQUENCE = 9999

RESERVATION_MODES = ("conditional", "legacy")


@dataclass(frozen=True)
class Pricing:
    subtotal: Decimal
    shipping_cost: Decimal
    tax: Decimal
    total: Decimal


def calculate_pricing(subtotal: Decimal) -> Pricing:
    shipping_cost = Decimal(0) if subtotal > FREE_SHIPPING_THRESHOLD else FLAT_SHIPPING_COST
    tax = subtotal * TAX_RATE
    return Pricing(
        subtotal=subtotal,
        shipping_cost=shipping_cost,
        tax=tax,
        total=subtotal + shipping_cost + tax,
    )


def format_order_number(when: datetime, sequence: int) -> str:
    return f"ORD{when:%y%m%d}{sequence:04d}"


def random_order_suffix() -> int:
    return random.randint(1000, 9999)


async def generate_order_number(db, now: Optional[datetime] = None) -> str:
    """ORD + YYMMDD + (orders created today + 1), zero padded to four digits.

    Falls back to a random four digit suffix when the day's orders cannot be
    counted or the sequence would need a fifth digit. Uniqueness is left to
    the unique index on ``order_number``.
    """
    now = now or datetime.utcnow()
    day_start = datetime(now.year, now.month, now.day)
    day_end = day_start + timedelta(days=1)
    try:
        count = await db.orders.count_documents({"created_at": {"$gte": day_start, "$lt": day_end}})
    except PyMongoError:
        logger.warning("Order count unavailable, using random order number suffix", exc_info=True)
        return format_order_number(now, random_order_suffix())
    if count + 1 > MAX_DAILY_SEQUENCE:
        logger.warning("Daily order sequence exhausted after %d orders, using random order number suffix", count)
        return format_order_number(now, random_order_suffix())
    return format_order_number(now, count + 1)


def parse_address(raw) -> Optional[Address]:
    if not raw:
        return None
    try:
        return Address(**raw)
    except (ValidationError, TypeError):
        return None


class OrderWorkflow:
    def __init__(self, db, catalog: Optional[CatalogStore] = None, reservation_mode: str = "conditional"):
        if reservation_mode not in RESERVATION_MODES:
            raise ValueError(f"Unknown stock reservation mode: {reservation_mode}")
        self.db = db
        self.catalog = catalog or CatalogStore(db)
        self.reservation_mode = reservation_mode

    # --- Create ---

    async def create_order(self, user: CurrentUser, payload: OrderCreate) -> dict:
        if not payload.items:
            raise ValidationException("Order must contain at least one item")

        shipping_address = parse_address(payload.shipping_address)
        billing_address = parse_address(payload.billing_address)
        if shipping_address is None or billing_address is None:
            raise ValidationException("Shipping and billing addresses are required")

        if payload.payment_method not in PAYMENT_METHODS:
            raise ValidationException("A valid payment method is required (stripe or cod)")

        reserved: List[Tuple[ObjectId, int]] = []
        try:
            subtotal = Decimal(0)
            order_items = []
            for item in payload.items:
                product = await self.catalog.find_active_product(item.product_id)
                if not product:
                    raise ValidationException(f"Product {item.product_id} not found or unavailable")
                if product["stock"] < item.quantity:
                    raise ValidationException(f"Insufficient stock for {product['name']}")

                price = Decimal(str(product["price"]))
                line_total = price * item.quantity
                subtotal += line_total
                order_items.append(OrderItemDB(
                    product_id=item.product_id,
                    name=product["name"],
                    quantity=item.quantity,
                    price=float(price),
                    total=float(line_total),
                ))

                if not await self._reserve(product["_id"], item.quantity):
                    raise ValidationException(f"Insufficient stock for {product['name']}")
                reserved.append((product["_id"], item.quantity))

            pricing = calculate_pricing(subtotal)
            now = datetime.utcnow()
            order_db = OrderDB(
                user_id=user.id,
                order_number=await generate_order_number(self.db, now),
                items=order_items,
                subtotal=float(pricing.subtotal),
                shipping_cost=float(pricing.shipping_cost),
                tax=float(pricing.tax),
                total=float(pricing.total),
                payment_method=payload.payment_method,
                shipping_address=shipping_address,
                billing_address=billing_address,
                notes=payload.notes,
                created_at=now,
            )
            try:
                result = await self.db.orders.insert_one(order_db.dict(by_alias=True, exclude={"id"}))
            except DuplicateKeyError:
                logger.warning("Duplicate order number", extra={"order_number": order_db.order_number, "user_id": user.id})
                raise ConflictException("Duplicate order number. Please retry.", retryable=True)
        except Exception:
            await self._release(reserved)
            raise

        await self._clear_cart(user.id, now)

        logger.info("Order created", extra={
            "order_id": str(result.inserted_id),
            "order_number": order_db.order_number,
            "user_id": user.id,
        })
        return with_id(await self.db.orders.find_one({"_id": result.inserted_id}))

    async def _reserve(self, product_oid: ObjectId, quantity: int) -> bool:
        update = {"$inc": {"stock": -quantity}, "$set": {"updated_at": datetime.utcnow()}}
        if self.reservation_mode == "legacy":
            # Stock was checked on the product read; a concurrent order can oversell
            await self.db.products.update_one({"_id": product_oid}, update)
            return True
        result = await self.db.products.update_one(
            {"_id": product_oid, "is_active": True, "stock": {"$gte": quantity}},
            update,
        )
        return result.matched_count == 1

    async def _release(self, reserved: List[Tuple[ObjectId, int]]) -> None:
        for product_oid, quantity in reserved:
            try:
                await self.db.products.update_one({"_id": product_oid}, {"$inc": {"stock": quantity}})
            except PyMongoError:
                logger.exception("Failed to release stock reservation", extra={
                    "product_id": str(product_oid), "quantity": quantity,
                })
            else:
                logger.info("Released stock reservation", extra={
                    "product_id": str(product_oid), "quantity": quantity,
                })

    async def _clear_cart(self, user_id: str, now: datetime) -> None:
        try:
            await self.db.carts.update_one(
                {"user_id": user_id},
                {"$set": {"items": [], "total": 0, "item_count": 0, "updated_at": now}}
            )
        except PyMongoError:
            # The order is already stored; a stale cart is not worth failing the checkout
            logger.exception("Failed to clear cart after order", extra={"user_id": user_id})

    # --- Cancel ---

    async def cancel_order(self, order_id: str, user: CurrentUser, reason: Optional[str] = None) -> dict:
        order = await self._load(order_id)

        is_owner = order["user_id"] == user.id
        if not is_owner and not user.can(Capability.CANCEL_ANY_ORDER):
            raise ForbiddenException("Access denied")

        return await self._cancel(order, user, reason)

    async def _cancel(self, order: dict, user: CurrentUser, reason: Optional[str] = None) -> dict:
        """Claim the cancelled status, stamp who and why, then restock every line."""
        if order["status"] in NON_CANCELLABLE_STATUSES:
            raise ValidationException(f"Order cannot be cancelled in status: {order['status']}")

        now = datetime.utcnow()
        # Guarded transition: only one concurrent cancellation gets to restock
        updated = await self.db.orders.find_one_and_update(
            {"_id": order["_id"], "status": {"$nin": list(NON_CANCELLABLE_STATUSES)}},
            {"$set": {
                "status": "cancelled",
                "cancelled_at": now,
                "cancelled_by": user.id,
                "cancelled_reason": reason or "Cancelled by user",
                "updated_at": now,
            }},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            current = await self.db.orders.find_one({"_id": order["_id"]}) or order
            raise ValidationException(f"Order cannot be cancelled in status: {current['status']}")

        for item in order["items"]:
            await self._restock(order, item)

        logger.info("Order cancelled", extra={
            "order_id": str(order["_id"]),
            "order_number": order["order_number"],
            "user_id": user.id,
            "reason": updated["cancelled_reason"],
        })
        return with_id(updated)

    async def _restock(self, order: dict, item: dict) -> None:
        extra = {"order_number": order["order_number"], "product_id": item["product_id"], "quantity": item["quantity"]}
        try:
            result = await self.db.products.update_one(
                {"_id": ObjectId(item["product_id"])},
                {"$inc": {"stock": item["quantity"]}, "$set": {"updated_at": datetime.utcnow()}}
            )
        except (InvalidId, PyMongoError):
            logger.exception("Restock failed", extra=extra)
            return
        if result.matched_count == 0:
            logger.warning("Restock skipped, product no longer exists", extra=extra)

    # --- Read / admin update ---

    async def get_order(self, order_id: str, user: CurrentUser) -> dict:
        order = await self._load(order_id)
        if order["user_id"] != user.id and not user.can(Capability.VIEW_ALL_ORDERS):
            raise ForbiddenException("Access denied")
        return with_id(order)

    async def list_orders(self, user: CurrentUser, page: int = 1, limit: int = 10, status: Optional[str] = None):
        query = {}
        if not user.can(Capability.VIEW_ALL_ORDERS):
            query["user_id"] = user.id
        if status:
            query["status"] = status

        skip = (page - 1) * limit
        total = await self.db.orders.count_documents(query)
        cursor = self.db.orders.find(query).sort("created_at", DESCENDING).skip(skip).limit(limit)
        orders = [with_id(doc) async for doc in cursor]
        return orders, build_pagination(page, limit, total)

    async def update_order(self, order_id: str, payload: OrderUpdate, user: CurrentUser) -> dict:
        order = await self._load(order_id)

        update_data = payload.dict(exclude_unset=True)
        for field in ("status", "payment_status"):
            if update_data.get(field) is None:
                update_data.pop(field, None)

        new_status = update_data.get("status")
        if new_status == order["status"]:
            update_data.pop("status")
        elif new_status and order["status"] in FINAL_STATUSES:
            raise ValidationException(f"Order cannot be moved out of status: {order['status']}")

        # Cancelling shares the cancel route's guarded transition and restock
        if update_data.get("status") == "cancelled":
            update_data.pop("status")
            await self._cancel(order, user, f"Cancelled by {user.role.value}")

        if update_data:
            update_data["updated_at"] = datetime.utcnow()
            query = {"_id": order["_id"]}
            if "status" in update_data:
                query["status"] = {"$nin": list(FINAL_STATUSES)}
            result = await self.db.orders.update_one(query, {"$set": update_data})
            if result.matched_count == 0:
                current = await self.db.orders.find_one({"_id": order["_id"]}) or order
                raise ValidationException(f"Order cannot be moved out of status: {current['status']}")
            logger.info("Order updated", extra={
                "order_id": order_id,
                "order_number": order["order_number"],
                "user_id": user.id,
            })

        return with_id(await self.db.orders.find_one({"_id": order["_id"]}))

    async def _load(self, order_id: str) -> dict:
        order = await self.db.orders.find_one({"_id": str_to_oid(order_id, "Order not found")})
        if not order:
            raise NotFoundException("Order not found")
        return order
