# Overview: Client-held checkout objects: cart, split-payment session and offline order queue.

"""
Checkout helpers for Python callers of the API (kiosk scripts, offline tools).

Cart prices use the same resolve_price as the server, so an optimistic cart
total always matches what settlement computes from the submitted lines.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import uuid
from dataclasses import replace
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable

from .money import MoneyError, ZERO, amounts_match, format_amount, quantize, to_decimal, total_of
from .services.catalog_service import resolve_price
from .services.settlement_service import PAYMENT_METHODS, CartLine, compute_totals
from .time_utils import to_utc_z, utcnow

logger = logging.getLogger(__name__)


class Cart:
    """
    Lines keyed by (product id, price type): adding the same product at the
    same tier bumps its quantity; a different tier is a separate line.
    """

    def __init__(self):
        self._lines: list[CartLine] = []

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines)

    def __len__(self) -> int:
        return len(self._lines)

    def _index(self, product_id: int, price_type: str) -> int | None:
        for i, line in enumerate(self._lines):
            if line.product_id == product_id and line.price_type == price_type:
                return i
        return None

    def add(self, product: dict, price_type: str = "counter", quantity: int = 1) -> CartLine:
        """Add a product; the unit price is resolved and locked now."""
        if quantity <= 0:
            raise ValueError("quantity must be > 0")

        index = self._index(product["id"], price_type)
        if index is not None:
            line = self._lines[index]
            self._lines[index] = replace(line, quantity=line.quantity + quantity)
            return self._lines[index]

        line = CartLine(
            product_id=product["id"],
            quantity=quantity,
            unit_price=resolve_price(product, price_type),
            price_type=price_type,
            product_name=product["name"],
            unit=product.get("unit"),
            gst_rate=to_decimal(product["gst_rate"]) if product.get("gst_rate") is not None else ZERO,
        )
        self._lines.append(line)
        return line

    def set_quantity(self, product_id: int, price_type: str, quantity: int) -> None:
        """Quantity 0 (or less) removes the line."""
        index = self._index(product_id, price_type)
        if index is None:
            raise KeyError(f"product {product_id} ({price_type}) is not in the cart")
        if quantity <= 0:
            del self._lines[index]
        else:
            self._lines[index] = replace(self._lines[index], quantity=quantity)

    def remove(self, product_id: int, price_type: str = "counter") -> None:
        self.set_quantity(product_id, price_type, 0)

    def clear(self) -> None:
        self._lines = []

    @property
    def subtotal(self) -> Decimal:
        return quantize(compute_totals(self._lines).subtotal)

    @property
    def gst_amount(self) -> Decimal:
        return quantize(compute_totals(self._lines).gst_amount)

    @property
    def total(self) -> Decimal:
        return quantize(compute_totals(self._lines).total)

    def to_order_payload(
        self,
        payments: list[dict],
        customer: dict | None = None,
        idempotency_key: str | None = None,
    ) -> dict:
        """JSON-ready body for POST /api/orders."""
        order: dict[str, Any] = {}
        if customer is not None:
            order["customer_id"] = customer["id"]
            order["customer_name"] = customer["name"]
        if idempotency_key:
            order["idempotency_key"] = idempotency_key

        return {
            "order": order,
            "items": [
                {
                    "product_id": line.product_id,
                    "product_name": line.product_name,
                    "quantity": line.quantity,
                    "unit": line.unit,
                    "unit_price": format_amount(line.unit_price),
                    "price_type": line.price_type,
                    "gst_rate": format_amount(line.gst_rate),
                }
                for line in self._lines
            ],
            "payments": [
                {"method": p["method"], "amount": format_amount(to_decimal(p["amount"]))}
                for p in payments
            ],
        }


class PaymentSessionError(RuntimeError):
    """Raised when complete() is called before the session is payable."""


class PaymentSession:
    """
    Payment-taking state machine for one checkout.

    idle -> single -> done
    idle -> split -> (add_split_payment)* -> ready -> done

    Split amounts must satisfy 0 < amount <= remaining; anything else is
    rejected without changing state (add_split_payment returns False).
    """

    IDLE = "idle"
    SINGLE = "single"
    SPLIT = "split"
    READY = "ready"
    DONE = "done"

    def __init__(self, total: Decimal):
        self.total = to_decimal(total)
        self.state = self.IDLE
        self.method: str | None = None
        self.payments: list[dict] = []

    @property
    def paid(self) -> Decimal:
        return total_of(p["amount"] for p in self.payments)

    @property
    def remaining(self) -> Decimal:
        return self.total - self.paid

    @property
    def can_complete(self) -> bool:
        return self.state in (self.SINGLE, self.READY)

    def select_single(self, method: str) -> None:
        if self.state not in (self.IDLE, self.SINGLE):
            raise PaymentSessionError(f"cannot pick a single method while {self.state}")
        if method not in PAYMENT_METHODS:
            raise ValueError(f"unknown payment method: {method}")
        self.method = method
        self.state = self.SINGLE

    def start_split(self) -> None:
        if self.state not in (self.IDLE, self.SINGLE):
            raise PaymentSessionError(f"cannot start a split payment while {self.state}")
        self.method = None
        self.payments = []
        self.state = self.SPLIT

    def add_split_payment(self, method: str, amount: Any) -> bool:
        if self.state != self.SPLIT or method not in PAYMENT_METHODS:
            return False
        try:
            value = to_decimal(amount)
        except MoneyError:
            return False
        if value <= ZERO or value > self.remaining:
            return False

        self.payments.append({"method": method, "amount": value})
        if amounts_match(self.remaining, ZERO):
            self.state = self.READY
        return True

    def complete(self) -> list[dict]:
        """Finish the session; returns the payments to submit."""
        if not self.can_complete:
            raise PaymentSessionError(f"payment is not complete (remaining {quantize(self.remaining)})")
        if self.state == self.SINGLE:
            self.payments = [{"method": self.method, "amount": self.total}]
        self.state = self.DONE
        return list(self.payments)

    def reset(self) -> None:
        self.state = self.IDLE
        self.method = None
        self.payments = []


class OfflineOrderQueue:
    """
    Durable queue of order payloads that could not be submitted.

    Each entry is stamped with an idempotency key when queued, so flushing
    the same entry twice can never create two orders.
    """

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)
        self._entries: list[dict] = self._load()

    def _load(self) -> list[dict]:
        if not self.path.exists():
            return []
        with self.path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
        return list(data.get("pending", []))

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".queue-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump({"pending": self._entries}, fh, default=str, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def pending(self) -> list[dict]:
        return [dict(e) for e in self._entries]

    def enqueue(self, payload: dict) -> str:
        """Queue a payload; returns the idempotency key it was stamped with."""
        payload = json.loads(json.dumps(payload, default=str))
        order = payload.setdefault("order", {})
        key = order.get("idempotency_key") or uuid.uuid4().hex
        order["idempotency_key"] = key

        self._entries.append({
            "idempotency_key": key,
            "payload": payload,
            "queued_at": to_utc_z(utcnow()),
        })
        self._save()
        logger.info("Queued offline order %s (%d pending)", key, len(self._entries))
        return key

    def flush(self, submit: Callable[[dict], Any]) -> int:
        """
        Resubmit queued payloads in order.

        `submit` returns a truthy acknowledgement when the server settled (or
        replayed) the order and a falsy value when it did not; the first falsy
        result stops the flush. Exceptions from submit propagate after the
        entries already acknowledged are removed.

        Returns the number of entries acknowledged.
        """
        flushed = 0
        try:
            while self._entries:
                entry = self._entries[0]
                if not submit(entry["payload"]):
                    logger.warning("Offline order %s not accepted; stopping flush", entry["idempotency_key"])
                    break
                self._entries.pop(0)
                flushed += 1
        finally:
            if flushed:
                self._save()
        return flushed
