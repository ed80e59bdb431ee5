# Overview: Dashboard aggregates derived from orders, order items and products.

"""
Metrics Service

All figures are computed on read by scanning the store; nothing is cached.

RULES:
- "Today" is [local midnight, next local midnight) of the server clock.
- Sales figures (today_sales, orders_today, average_order) count only
  completed orders; processing and cancelled orders are excluded.
- low_stock_items counts products at or below the low-stock threshold,
  regardless of date or status.
- Popular items rank by quantity sold; ties keep first-seen order.
"""

from __future__ import annotations

from datetime import datetime

from ..money import ZERO, quantize, total_of
from ..time_utils import local_day_bounds
from .catalog_service import LOW_STOCK_THRESHOLD
from .settlement_service import ORDER_COMPLETED, compose_order

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def clamp_limit(limit: int | None, default: int = DEFAULT_LIMIT) -> int:
    if limit is None:
        return default
    return max(1, min(int(limit), MAX_LIMIT))


def _todays_orders(store, now: datetime | None) -> list[dict]:
    start, end = local_day_bounds(now)
    return store.list_range("orders", "created_at", start, end)


def dashboard_metrics(store, now: datetime | None = None) -> dict:
    """
    {today_sales, orders_today, average_order, low_stock_items}.

    average_order is 0.00 when there are no completed orders today.
    """
    completed = [o for o in _todays_orders(store, now) if o["status"] == ORDER_COMPLETED]
    today_sales = total_of(o["total"] for o in completed)
    average = today_sales / len(completed) if completed else ZERO
    low_stock = sum(1 for p in store.list("products") if p["stock"] <= LOW_STOCK_THRESHOLD)

    return {
        "today_sales": quantize(today_sales),
        "orders_today": len(completed),
        "average_order": quantize(average),
        "low_stock_items": low_stock,
    }


def popular_items(
    store,
    limit: int | None = DEFAULT_LIMIT,
    *,
    today_only: bool = False,
    now: datetime | None = None,
) -> list[dict]:
    """
    Order items grouped by product: quantity sold and revenue, top `limit`
    by quantity, with the product's current category and image. Lines
    without a product reference are grouped by name.
    """
    limit = clamp_limit(limit)

    if today_only:
        items = []
        for order in _todays_orders(store, now):
            items.extend(store.list("order_items", order_id=order["id"]))
    else:
        items = store.list("order_items")

    groups: dict = {}
    for item in items:
        key = item["product_id"] if item["product_id"] is not None else ("name", item["product_name"])
        entry = groups.get(key)
        if entry is None:
            entry = groups[key] = {
                "product_id": item["product_id"],
                "product_name": item["product_name"],
                "quantity_sold": 0,
                "revenue": ZERO,
            }
        entry["quantity_sold"] += item["quantity"]
        entry["revenue"] += item["total"]

    # sorted() is stable: equal quantities keep discovery order
    ranked = sorted(groups.values(), key=lambda e: e["quantity_sold"], reverse=True)[:limit]

    # Display fields come from the current product; None once it is deleted
    for entry in ranked:
        product = store.get("products", entry["product_id"]) if entry["product_id"] is not None else None
        entry["category"] = product["category"] if product else None
        entry["image_url"] = product["image_url"] if product else None
    return ranked


def recent_orders(store, limit: int | None = DEFAULT_LIMIT) -> list[dict]:
    """Newest orders first, each with its items and payments."""
    limit = clamp_limit(limit)
    orders = sorted(store.list("orders"), key=lambda o: (o["created_at"], o["id"]), reverse=True)
    return [compose_order(store, order) for order in orders[:limit]]


def serialize_metrics(metrics: dict) -> dict:
    return {
        "today_sales": str(metrics["today_sales"]),
        "orders_today": metrics["orders_today"],
        "average_order": str(metrics["average_order"]),
        "low_stock_items": metrics["low_stock_items"],
    }


def serialize_popular_item(entry: dict) -> dict:
    return {
        "product_id": entry["product_id"],
        "product_name": entry["product_name"],
        "category": entry["category"],
        "image_url": entry["image_url"],
        "quantity_sold": entry["quantity_sold"],
        "revenue": str(quantize(entry["revenue"])),
    }
