# backend/bakery_pos/services/customer_service.py
"""
Customer Service

Customer CRUD and search. One customer row carries is_default: the walk-in
customer that sales fall back to. It cannot be deleted.
"""
from __future__ import annotations

import logging

from ..money import ZERO
from ..validation import ConflictError, NotFoundError

logger = logging.getLogger(__name__)

WALK_IN_NAME = "Walk-in Customer"

CUSTOMER_MUTABLE_FIELDS = {
    "name", "phone", "email", "address", "gst_number", "customer_type", "balance",
}


def _matches(customer: dict, needle: str) -> bool:
    return (
        needle in (customer.get("name") or "").lower()
        or needle in (customer.get("phone") or "")
        or needle in (customer.get("email") or "").lower()
    )


def list_customers(store, search: str | None = None) -> list[dict]:
    """
    All customers, optionally filtered.

    search matches a name or email substring (case-insensitive) or a phone
    substring.
    """
    customers = store.list("customers")
    needle = (search or "").strip()
    if needle:
        customers = [c for c in customers if _matches(c, needle.lower())]
    return customers


def get_customer(store, customer_id: int) -> dict:
    customer = store.get("customers", customer_id)
    if customer is None:
        raise NotFoundError("Customer not found")
    return customer


def get_default_customer(store) -> dict | None:
    return store.find_one("customers", is_default=True)


def ensure_default_customer(store) -> dict:
    """Return the walk-in customer, creating it when missing."""
    def _ensure():
        existing = get_default_customer(store)
        if existing is not None:
            return existing
        logger.info("Creating default walk-in customer")
        return store.insert("customers", {
            "name": WALK_IN_NAME,
            "customer_type": "walk_in",
            "balance": ZERO,
            "is_default": True,
        })

    return store.run_atomic(_ensure)


def create_customer(store, *, patch: dict) -> dict:
    values = {k: v for k, v in patch.items() if k in CUSTOMER_MUTABLE_FIELDS}
    if values.get("balance") is None:
        values["balance"] = ZERO
    values["is_default"] = False
    customer = store.insert("customers", values)
    logger.info("Created customer %s (%s)", customer["id"], customer["name"])
    return customer


def update_customer(store, customer_id: int, *, patch: dict) -> dict:
    changes = {k: v for k, v in patch.items() if k in CUSTOMER_MUTABLE_FIELDS}
    if "balance" in changes and changes["balance"] is None:
        changes["balance"] = ZERO
    updated = store.update("customers", customer_id, changes)
    if updated is None:
        raise NotFoundError("Customer not found")
    return updated


def delete_customer(store, customer_id: int) -> None:
    """
    Delete a customer. Past orders keep their customer_name snapshot.

    Raises ConflictError for the walk-in customer.
    """
    def _delete():
        customer = store.get("customers", customer_id, for_update=True)
        if customer is None:
            raise NotFoundError("Customer not found")
        if customer["is_default"]:
            raise ConflictError("The walk-in customer cannot be deleted")
        store.delete("customers", customer_id)

    store.run_atomic(_delete)
    logger.info("Deleted customer %s", customer_id)
