# backend/bakery_pos/services/catalog_service.py
"""
Catalog Service

Products, categories, price tiers and stock levels.

Functions take the record store as their first argument and return plain
records (Decimal/datetime values); routes serialize them.
"""
from __future__ import annotations

import logging
from decimal import Decimal

from ..money import to_decimal
from ..validation import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

# Stock at or below this level marks a product low_stock
LOW_STOCK_THRESHOLD = 10

ALL_CATEGORIES = "All"
PRICE_TYPES = ("counter", "wholesale", "custom")

PRODUCT_MUTABLE_FIELDS = {
    "name", "sku", "category", "category_id", "counter_price", "wholesale_price",
    "custom_price", "stock", "unit", "gst_rate", "image_url", "barcode", "status",
}


def derive_status(stock: int, current_status: str | None = None) -> str:
    """A manually deactivated product stays inactive; otherwise status follows stock."""
    if current_status == "inactive":
        return "inactive"
    return "low_stock" if stock <= LOW_STOCK_THRESHOLD else "active"


def resolve_price(product: dict, price_type: str | None) -> Decimal:
    """
    Unit price of a product for a price tier.

    Pure: accepts stored records (Decimal) and serialized ones (strings) alike.
    """
    if price_type == "wholesale":
        return to_decimal(product["wholesale_price"])
    if price_type == "custom" and product.get("custom_price") is not None:
        return to_decimal(product["custom_price"])
    return to_decimal(product["counter_price"])


def _matches(product: dict, needle: str) -> bool:
    return (
        needle in (product.get("name") or "").lower()
        or needle in (product.get("sku") or "").lower()
        or needle in (product.get("category") or "").lower()
    )


def list_products(store, category: str | None = None, search: str | None = None) -> list[dict]:
    """
    Catalog listing.

    category: exact category name; None, "" and "All" mean no filter.
    search: case-insensitive substring of name, SKU or category.
    """
    products = store.list("products")

    if category and category != ALL_CATEGORIES:
        products = [p for p in products if p["category"] == category]

    needle = (search or "").strip().lower()
    if needle:
        products = [p for p in products if _matches(p, needle)]

    return products


def get_product(store, product_id: int) -> dict:
    product = store.get("products", product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


def low_stock_products(store) -> list[dict]:
    return [p for p in store.list("products") if p["stock"] <= LOW_STOCK_THRESHOLD]


def _link_category(store, patch: dict) -> None:
    # Fill category_id from the name when the category exists
    if "category" in patch and "category_id" not in patch:
        found = store.find_one("categories", name=patch["category"])
        patch["category_id"] = found["id"] if found else None


def _ensure_unique_sku(store, sku: str, exclude_id: int | None = None) -> None:
    existing = store.find_one("products", sku=sku)
    if existing is not None and existing["id"] != exclude_id:
        raise ConflictError(f"SKU '{sku}' already exists")


def create_product(store, *, patch: dict) -> dict:
    """
    Create product using a validated patch dict.

    Raises ConflictError on duplicate SKU.
    """
    values = {k: v for k, v in patch.items() if k in PRODUCT_MUTABLE_FIELDS}
    values.setdefault("stock", 0)
    values["status"] = derive_status(values["stock"], values.get("status"))

    def _create():
        _ensure_unique_sku(store, values["sku"])
        _link_category(store, values)
        return store.insert("products", values)

    product = store.run_atomic(_create)
    logger.info("Created product %s (%s)", product["sku"], product["name"])
    return product


def update_product(store, product_id: int, *, patch: dict) -> dict:
    """
    Apply a validated partial update.

    Status is re-derived whenever stock or status is part of the patch.
    """
    changes = {k: v for k, v in patch.items() if k in PRODUCT_MUTABLE_FIELDS}

    def _update():
        current = store.get("products", product_id, for_update=True)
        if current is None:
            raise NotFoundError("Product not found")
        if "sku" in changes and changes["sku"] != current["sku"]:
            _ensure_unique_sku(store, changes["sku"], exclude_id=product_id)
        _link_category(store, changes)
        if "stock" in changes or "status" in changes:
            stock = changes.get("stock", current["stock"])
            status = changes.get("status", current["status"])
            # Reactivating: status follows stock again
            if status == "active":
                status = None
            changes["status"] = derive_status(stock, status)
        return store.update("products", product_id, changes)

    return store.run_atomic(_update)


def delete_product(store, product_id: int) -> None:
    if not store.delete("products", product_id):
        raise NotFoundError("Product not found")
    logger.info("Deleted product %s", product_id)


def adjust_stock(store, product_id: int, delta: int) -> dict:
    """
    Move a product's stock by delta (negative for a sale), never below 0,
    and re-derive its status.

    Runs in its own transaction, or joins the caller's.
    """
    if isinstance(delta, bool) or not isinstance(delta, int):
        raise ValidationError("delta must be an integer", "delta")

    with store.transaction():
        product = store.get("products", product_id, for_update=True)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        new_stock = max(0, product["stock"] + delta)
        if new_stock == 0 and product["stock"] + delta < 0:
            logger.warning(
                "Stock for product %s clamped at 0 (had %s, delta %s)",
                product_id, product["stock"], delta,
            )
        return store.update("products", product_id, {
            "stock": new_stock,
            "status": derive_status(new_stock, product["status"]),
        })


# -- categories ---------------------------------------------------------------

def list_categories(store) -> list[dict]:
    return store.list("categories")


def create_category(store, *, patch: dict) -> dict:
    name = patch["name"]

    def _create():
        for existing in store.list("categories"):
            if existing["name"].lower() == name.lower():
                raise ConflictError(f"Category '{name}' already exists")
        return store.insert("categories", {
            "name": name,
            "description": patch.get("description"),
        })

    return store.run_atomic(_create)
