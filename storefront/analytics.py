from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Optional

from pymongo import DESCENDING

from shared.utils import with_id
from storefront.catalog import parse_oid

TOP_PRODUCTS_LIMIT = 10
RECENT_ORDERS_LIMIT = 10


async def _sum_paid_revenue(db, created_at: Optional[dict] = None) -> float:
    match = {"payment_status": "paid"}
    if created_at:
        match["created_at"] = created_at
    rows = await db.orders.aggregate([
        {"$match": match},
        {"$group": {"_id": None, "total": {"$sum": "$total"}}},
    ]).to_list(length=1)
    return float(rows[0]["total"]) if rows else 0.0


def revenue_growth(current: float, previous: float) -> float:
    """Percentage change against the previous period, two decimals; 0 without a baseline."""
    if previous <= 0:
        return 0.0
    return round((current - previous) / previous * 100, 2)


async def build_dashboard(db, period_days: int = 30, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()
    start = now - timedelta(days=period_days)
    previous_start = start - timedelta(days=period_days)

    total_revenue = await _sum_paid_revenue(db)
    current_revenue = await _sum_paid_revenue(db, {"$gte": start})
    previous_revenue = await _sum_paid_revenue(db, {"$gte": previous_start, "$lt": start})

    overview = {
        "total_users": await db.users.count_documents({"role": "user"}),
        "total_products": await db.products.count_documents({"is_active": True}),
        "total_orders": await db.orders.count_documents({}),
        "total_revenue": total_revenue,
        "current_period_revenue": current_revenue,
        "revenue_growth": revenue_growth(current_revenue, previous_revenue),
    }

    cursor = db.orders.find({"created_at": {"$gte": start}}).sort("created_at", DESCENDING).limit(RECENT_ORDERS_LIMIT)
    recent_orders = [with_id(doc) async for doc in cursor]

    return {
        "overview": overview,
        "recent_orders": recent_orders,
        "sales_data": await _sales_by_day(db, start),
        "top_products": await _top_products(db),
        "order_status_distribution": await _status_distribution(db),
    }


async def _sales_by_day(db, start: datetime) -> list:
    days = OrderedDict()
    cursor = db.orders.find(
        {"created_at": {"$gte": start}, "payment_status": "paid"},
        {"created_at": 1, "total": 1},
    ).sort("created_at", 1)
    async for doc in cursor:
        day = days.setdefault(f"{doc['created_at']:%Y-%m-%d}", {"sales": 0.0, "orders": 0})
        day["sales"] += doc["total"]
        day["orders"] += 1
    return [
        {"date": date, "sales": round(day["sales"], 2), "orders": day["orders"]}
        for date, day in days.items()
    ]


async def _top_products(db) -> list:
    rows = await db.orders.aggregate([
        {"$unwind": "$items"},
        {"$group": {
            "_id": "$items.product_id",
            "total_sold": {"$sum": "$items.quantity"},
            "total_revenue": {"$sum": "$items.total"},
        }},
        {"$sort": {"total_sold": -1}},
        {"$limit": TOP_PRODUCTS_LIMIT},
    ]).to_list(length=TOP_PRODUCTS_LIMIT)

    top = []
    for row in rows:
        oid = parse_oid(row["_id"])
        product = await db.products.find_one({"_id": oid}, {"name": 1, "price": 1}) if oid else None
        if not product:
            # Deleted products drop out of the ranking
            continue
        top.append({
            "product_id": row["_id"],
            "name": product.get("name"),
            "price": product.get("price"),
            "total_sold": row["total_sold"],
            "total_revenue": round(float(row["total_revenue"]), 2),
        })
    return top


async def _status_distribution(db) -> list:
    rows = await db.orders.aggregate([
        {"$group": {"_id": "$status", "count": {"$sum": 1}}},
        {"$sort": {"_id": 1}},
    ]).to_list(length=None)
    return [{"status": row["_id"], "count": row["count"]} for row in rows]
