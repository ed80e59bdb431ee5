# Overview: Order settlement engine: cart + payments -> order, items, payments and stock moves.

"""
Order Settlement Service

Turns a finalized cart and the tendered payments into a persisted order.

DESIGN PRINCIPLES:
- Prices are locked at cart-add time: lines carry their own unit price,
  name and price type; nothing is re-resolved from the current product.
- Totals are recomputed server-side from the lines in exact Decimal
  arithmetic and rounded half-up to 2 places only when stored.
- Order, items, stock moves and payments are written in one store
  transaction: either all of them land or none do.
- Partial payment is accepted: the order stays processing with a balance
  due until follow-up payments cover the total (0.01 tolerance).
- A client-generated idempotency key makes resubmission safe: the second
  submission returns the first order and changes nothing.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from ..models import Order, OrderItem, Payment
from ..money import CENT, MoneyError, ZERO, amounts_match, quantize, to_decimal, total_of
from ..validation import MAX_AMOUNT, ConflictError, NotFoundError, ValidationError
from .catalog_service import PRICE_TYPES, adjust_stock
from .customer_service import WALK_IN_NAME, get_default_customer

logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

PAYMENT_METHODS = ("cash", "card", "wallet")
SPLIT_METHOD = "split"

ORDER_PROCESSING = "processing"
ORDER_COMPLETED = "completed"
ORDER_CANCELLED = "cancelled"

PAYMENT_PENDING = "pending"
PAYMENT_COMPLETED = "completed"

STOCK_ADJUSTED = "adjusted"
STOCK_SKIPPED = "skipped"

ORDER_NUMBER_PREFIX = "ORD"

# Upper bound of the Integer quantity column
MAX_QUANTITY = 2**31 - 1

ALLOWED_TRANSITIONS = {
    ORDER_PROCESSING: {ORDER_COMPLETED, ORDER_CANCELLED},
}


class EmptyCartError(ValidationError):
    """Raised when a checkout carries no lines."""

    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message, "items")


# =============================================================================
# INPUT TYPES
# =============================================================================

@dataclass(frozen=True)
class CartLine:
    """
    One line of the client-held cart as submitted at checkout.

    product_name, unit and gst_rate may be left None; they are then filled
    from the current product (or defaults when it no longer exists).
    """
    product_id: int | None
    quantity: int
    unit_price: Decimal
    price_type: str = "counter"
    product_name: str | None = None
    unit: str | None = None
    gst_rate: Decimal | None = None

    @property
    def line_total(self) -> Decimal:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class PaymentInput:
    method: str
    amount: Decimal
    transaction_id: str | None = None


@dataclass(frozen=True)
class OrderTotals:
    """Exact (unrounded) sums; quantize at the storage boundary."""
    subtotal: Decimal
    gst_amount: Decimal
    total: Decimal


def compute_totals(lines) -> OrderTotals:
    """
    subtotal = sum(qty * unit_price); gst = sum(line_total * rate / 100);
    total = subtotal + gst. A missing gst_rate counts as 0.
    """
    subtotal = total_of(line.line_total for line in lines)
    gst_amount = total_of(
        line.line_total * (line.gst_rate or ZERO) / Decimal(100) for line in lines
    )
    return OrderTotals(subtotal=subtotal, gst_amount=gst_amount, total=subtotal + gst_amount)


def generate_transaction_id() -> str:
    """TXN<epoch ms><0-999>: opaque, not guaranteed unique."""
    return f"TXN{int(time.time() * 1000)}{random.randint(0, 999)}"


def format_order_number(order_id: int) -> str:
    return f"{ORDER_NUMBER_PREFIX}{order_id:06d}"


# =============================================================================
# PAYLOAD PARSING
# =============================================================================

def _parse_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer", field)
    return value


def _parse_amount(value: Any, field: str) -> Decimal:
    try:
        return to_decimal(value)
    except MoneyError:
        raise ValidationError(f"{field} must be a number", field)


def _optional_str(value: Any, field: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field)
    return value.strip() or None


def parse_cart_line(raw: Any, index: int) -> CartLine:
    prefix = f"items[{index}]"
    if not isinstance(raw, dict):
        raise ValidationError(f"{prefix} must be an object", prefix)

    product_id = raw.get("product_id")
    if product_id is not None:
        product_id = _parse_int(product_id, f"{prefix}.product_id")

    if "quantity" not in raw:
        raise ValidationError(f"{prefix}.quantity is required", f"{prefix}.quantity")
    if "unit_price" not in raw:
        raise ValidationError(f"{prefix}.unit_price is required", f"{prefix}.unit_price")

    gst_rate = raw.get("gst_rate")
    if gst_rate is not None:
        gst_rate = _parse_amount(gst_rate, f"{prefix}.gst_rate")

    return CartLine(
        product_id=product_id,
        quantity=_parse_int(raw["quantity"], f"{prefix}.quantity"),
        unit_price=_parse_amount(raw["unit_price"], f"{prefix}.unit_price"),
        price_type=raw.get("price_type") or "counter",
        product_name=_optional_str(raw.get("product_name"), f"{prefix}.product_name"),
        unit=_optional_str(raw.get("unit"), f"{prefix}.unit"),
        gst_rate=gst_rate,
    )


def parse_payment(raw: Any, index: int) -> PaymentInput:
    prefix = f"payments[{index}]"
    if not isinstance(raw, dict):
        raise ValidationError(f"{prefix} must be an object", prefix)
    if "amount" not in raw:
        raise ValidationError(f"{prefix}.amount is required", f"{prefix}.amount")
    return PaymentInput(
        method=raw.get("method") or "",
        amount=_parse_amount(raw["amount"], f"{prefix}.amount"),
        transaction_id=_optional_str(raw.get("transaction_id"), f"{prefix}.transaction_id"),
    )


def parse_checkout_payload(payload: Any) -> dict:
    """
    {order: {customer_id?, customer_name?, idempotency_key?}, items: [...],
    payments: [...]} -> keyword arguments for settle().

    Client-sent totals in `order` are ignored.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    order = payload.get("order") or {}
    if not isinstance(order, dict):
        raise ValidationError("order must be an object", "order")

    items = payload.get("items")
    if items is None:
        items = []
    if not isinstance(items, list):
        raise ValidationError("items must be a list", "items")
    payments = payload.get("payments")
    if payments is None:
        payments = []
    if not isinstance(payments, list):
        raise ValidationError("payments must be a list", "payments")

    customer_id = order.get("customer_id")
    if customer_id is not None:
        customer_id = _parse_int(customer_id, "order.customer_id")

    return {
        "lines": [parse_cart_line(raw, i) for i, raw in enumerate(items)],
        "payments": [parse_payment(raw, i) for i, raw in enumerate(payments)],
        "customer_id": customer_id,
        "customer_name": _optional_str(order.get("customer_name"), "order.customer_name"),
        "idempotency_key": _optional_str(order.get("idempotency_key"), "order.idempotency_key"),
    }


# =============================================================================
# VALIDATION
# =============================================================================

def _validate_payment(payment: PaymentInput, field: str) -> None:
    if payment.method not in PAYMENT_METHODS:
        raise ValidationError(
            f"{field}.method must be one of {', '.join(PAYMENT_METHODS)}", f"{field}.method"
        )
    if payment.amount <= ZERO:
        raise ValidationError(f"{field}.amount must be > 0", f"{field}.amount")
    if payment.amount > MAX_AMOUNT:
        raise ValidationError(f"{field}.amount cannot exceed {MAX_AMOUNT}", f"{field}.amount")


def _check_cents(value: Decimal, field: str) -> None:
    # Stored as Numeric(_, 2); call only after the range check
    if value != value.quantize(CENT):
        raise ValidationError(f"{field} allows at most 2 decimal places", field)


def validate_checkout(lines, payments) -> None:
    """All-or-nothing input checks; nothing has been written when these fail."""
    if not lines:
        raise EmptyCartError()
    for i, line in enumerate(lines):
        field = f"items[{i}]"
        if line.quantity <= 0:
            raise ValidationError(f"{field}.quantity must be > 0", f"{field}.quantity")
        if line.quantity > MAX_QUANTITY:
            raise ValidationError(f"{field}.quantity cannot exceed {MAX_QUANTITY}", f"{field}.quantity")
        if line.unit_price < ZERO:
            raise ValidationError(f"{field}.unit_price must be >= 0", f"{field}.unit_price")
        if line.unit_price > MAX_AMOUNT:
            raise ValidationError(f"{field}.unit_price cannot exceed {MAX_AMOUNT}", f"{field}.unit_price")
        _check_cents(line.unit_price, f"{field}.unit_price")
        if line.price_type not in PRICE_TYPES:
            raise ValidationError(
                f"{field}.price_type must be one of {', '.join(PRICE_TYPES)}", f"{field}.price_type"
            )
        if line.gst_rate is not None:
            if not (ZERO <= line.gst_rate <= Decimal(100)):
                raise ValidationError(f"{field}.gst_rate must be between 0 and 100", f"{field}.gst_rate")
            _check_cents(line.gst_rate, f"{field}.gst_rate")

    if not payments:
        raise ValidationError("At least one payment is required", "payments")
    for i, payment in enumerate(payments):
        _validate_payment(payment, f"payments[{i}]")


def _complete_line(store, line: CartLine, index: int) -> CartLine:
    """Fill name/unit/GST snapshots the client left out."""
    if line.product_name and line.unit and line.gst_rate is not None:
        return line
    product = store.get("products", line.product_id) if line.product_id is not None else None
    name = line.product_name or (product["name"] if product else None)
    if not name:
        raise ValidationError(f"items[{index}].product_name is required", f"items[{index}].product_name")
    gst_rate = line.gst_rate
    if gst_rate is None:
        gst_rate = product["gst_rate"] if product else ZERO
    return CartLine(
        product_id=line.product_id,
        quantity=line.quantity,
        unit_price=line.unit_price,
        price_type=line.price_type,
        product_name=name,
        unit=line.unit or (product["unit"] if product else "piece"),
        gst_rate=gst_rate,
    )


# =============================================================================
# READ MODELS
# =============================================================================

def compose_order(store, order: dict) -> dict:
    """Order with its items, payments and outstanding balance."""
    payments = store.list("payments", order_id=order["id"])
    return {
        "order": order,
        "items": store.list("order_items", order_id=order["id"]),
        "payments": payments,
        "balance_due": balance_due(order, payments),
    }


def serialize_composed(composed: dict) -> dict:
    out = {
        "order": Order.serialize(composed["order"]),
        "items": [OrderItem.serialize(i) for i in composed["items"]],
        "payments": [Payment.serialize(p) for p in composed["payments"]],
        "balance_due": str(quantize(composed["balance_due"])),
    }
    if "replayed" in composed:
        out["replayed"] = composed["replayed"]
    return out


def paid_amount(payments) -> Decimal:
    return total_of(p["amount"] for p in payments if p["status"] == PAYMENT_COMPLETED)


def balance_due(order: dict, payments) -> Decimal:
    remaining = order["total"] - paid_amount(payments)
    return remaining if remaining > ZERO else ZERO


def get_order(store, order_id: int) -> dict:
    order = store.get("orders", order_id)
    if order is None:
        raise NotFoundError("Order not found")
    return compose_order(store, order)


def list_orders(store, status: str | None = None) -> list[dict]:
    """Orders newest first (creation time, then id)."""
    orders = store.list("orders", status=status) if status else store.list("orders")
    return sorted(orders, key=lambda o: (o["created_at"], o["id"]), reverse=True)


# =============================================================================
# RECONCILIATION
# =============================================================================

def _reconcile(store, order: dict) -> dict:
    """
    Complete a processing order once its completed payments cover the total
    within 0.01. Anything short stays processing/pending.
    """
    if order["status"] != ORDER_PROCESSING:
        return order
    paid = paid_amount(store.list("payments", order_id=order["id"]))
    if not amounts_match(paid, order["total"]):
        return order
    return store.update("orders", order["id"], {
        "status": ORDER_COMPLETED,
        "payment_status": PAYMENT_COMPLETED,
    })


def reconcile_order(store, order_id: int) -> dict:
    def _op():
        order = store.get("orders", order_id, for_update=True)
        if order is None:
            raise NotFoundError("Order not found")
        return compose_order(store, _reconcile(store, order))

    return store.run_atomic(_op)


# =============================================================================
# SETTLEMENT
# =============================================================================

def _resolve_customer(store, customer_id: int | None, customer_name: str | None) -> tuple[int | None, str]:
    if customer_id is not None:
        customer = store.get("customers", customer_id)
        if customer is None:
            raise NotFoundError(f"Customer {customer_id} not found")
    else:
        customer = get_default_customer(store)

    if customer is None:
        return None, customer_name or WALK_IN_NAME
    return customer["id"], customer_name or customer["name"]


def _find_replay(store, idempotency_key: str | None) -> dict | None:
    if not idempotency_key:
        return None
    existing = store.find_one("orders", idempotency_key=idempotency_key)
    if existing is None:
        return None
    logger.info(
        "Replayed checkout %s for idempotency key %s", existing["order_number"], idempotency_key
    )
    composed = compose_order(store, existing)
    composed["replayed"] = True
    return composed


def settle(
    store,
    *,
    lines,
    payments,
    customer_id: int | None = None,
    customer_name: str | None = None,
    idempotency_key: str | None = None,
    strict_stock: bool = False,
    now: datetime | None = None,
) -> dict:
    """
    Settle a cart.

    Returns {"order", "items", "payments", "balance_due", "replayed"} with
    store records.

    Raises:
        EmptyCartError / ValidationError: before anything is written
        NotFoundError: unknown customer_id, or (strict_stock) a line whose
            product no longer exists; nothing is written
        PersistenceError: store failure; the transaction is rolled back
    """
    lines = list(lines)
    payments = list(payments)
    validate_checkout(lines, payments)

    replay = _find_replay(store, idempotency_key)
    if replay is not None:
        return replay

    lines = [_complete_line(store, line, i) for i, line in enumerate(lines)]
    resolved_customer_id, resolved_name = _resolve_customer(store, customer_id, customer_name)
    totals = compute_totals(lines)
    if quantize(totals.total) > MAX_AMOUNT:
        raise ValidationError(f"Order total cannot exceed {MAX_AMOUNT}", "items")
    payment_method = SPLIT_METHOD if len(payments) > 1 else payments[0].method

    def _persist():
        # A concurrent submission with the same key may have landed first
        replay = _find_replay(store, idempotency_key)
        if replay is not None:
            return replay

        order_values = {
            "customer_id": resolved_customer_id,
            "customer_name": resolved_name,
            "subtotal": quantize(totals.subtotal),
            "gst_amount": quantize(totals.gst_amount),
            "total": quantize(totals.total),
            "payment_method": payment_method,
            "payment_status": PAYMENT_PENDING,
            "status": ORDER_PROCESSING,
            "idempotency_key": idempotency_key,
        }
        if now is not None:
            order_values["created_at"] = now
        order = store.insert("orders", order_values)
        order = store.update("orders", order["id"], {"order_number": format_order_number(order["id"])})

        for line in lines:
            stock_status = STOCK_SKIPPED
            if line.product_id is not None:
                try:
                    adjust_stock(store, line.product_id, -line.quantity)
                    stock_status = STOCK_ADJUSTED
                except NotFoundError:
                    if strict_stock:
                        raise
                    logger.warning(
                        "Order %s: product %s no longer exists; stock not adjusted for %r",
                        order["order_number"], line.product_id, line.product_name,
                    )
            store.insert("order_items", {
                "order_id": order["id"],
                "product_id": line.product_id,
                "product_name": line.product_name,
                "quantity": line.quantity,
                "unit": line.unit,
                "unit_price": quantize(line.unit_price),
                "price_type": line.price_type,
                "gst_rate": line.gst_rate,
                "total": quantize(line.line_total),
                "stock_status": stock_status,
            })

        for payment in payments:
            payment_values = {
                "order_id": order["id"],
                "method": payment.method,
                "amount": quantize(payment.amount),
                "transaction_id": payment.transaction_id or generate_transaction_id(),
                "status": PAYMENT_COMPLETED,
            }
            if now is not None:
                payment_values["created_at"] = now
            store.insert("payments", payment_values)

        order = _reconcile(store, order)
        composed = compose_order(store, order)
        composed["replayed"] = False
        return composed

    result = store.run_atomic(_persist)
    if not result["replayed"]:
        order = result["order"]
        logger.info(
            "Settled order %s: total=%s status=%s payments=%d",
            order["order_number"], order["total"], order["status"], len(result["payments"]),
        )
    return result


def add_payment(
    store,
    order_id: int,
    *,
    method: str,
    amount: Decimal,
    transaction_id: str | None = None,
) -> dict:
    """
    Record a follow-up payment against a processing order and reconcile.

    The amount must satisfy 0 < amount <= balance due (0.01 tolerance).
    """
    payment = PaymentInput(method=method, amount=amount, transaction_id=transaction_id)
    _validate_payment(payment, "payment")

    def _op():
        order = store.get("orders", order_id, for_update=True)
        if order is None:
            raise NotFoundError("Order not found")
        if order["status"] != ORDER_PROCESSING:
            raise ConflictError(f"Order {order['order_number']} is {order['status']}")

        due = balance_due(order, store.list("payments", order_id=order_id))
        if payment.amount > due and not amounts_match(payment.amount, due):
            raise ValidationError(f"Payment exceeds balance due of {quantize(due)}", "amount")

        store.insert("payments", {
            "order_id": order_id,
            "method": payment.method,
            "amount": quantize(payment.amount),
            "transaction_id": payment.transaction_id or generate_transaction_id(),
            "status": PAYMENT_COMPLETED,
        })
        if order["payment_method"] not in (payment.method, SPLIT_METHOD):
            order = store.update("orders", order_id, {"payment_method": SPLIT_METHOD})
        return compose_order(store, _reconcile(store, order))

    composed = store.run_atomic(_op)
    logger.info(
        "Payment of %s (%s) added to order %s; status=%s",
        quantize(payment.amount), payment.method,
        composed["order"]["order_number"], composed["order"]["status"],
    )
    return composed


def transition_order_status(store, order_id: int, new_status: str) -> dict:
    """
    Guarded status change: processing -> completed | cancelled only.

    Completion goes through reconciliation, so an order whose payments do
    not cover the total stays processing.

    Raises ConflictError for any other transition, or when completing an
    order whose payments do not match its total.
    """
    def _op():
        order = store.get("orders", order_id, for_update=True)
        if order is None:
            raise NotFoundError("Order not found")
        allowed = ALLOWED_TRANSITIONS.get(order["status"], set())
        if new_status not in allowed:
            raise ConflictError(f"Cannot move order from {order['status']} to {new_status}")
        if new_status == ORDER_COMPLETED:
            order = _reconcile(store, order)
            if order["status"] != ORDER_COMPLETED:
                paid = paid_amount(store.list("payments", order_id=order_id))
                raise ConflictError(
                    f"Order {order['order_number']} is paid {quantize(paid)} of {order['total']}"
                )
            return compose_order(store, order)
        return compose_order(store, store.update("orders", order_id, {"status": new_status}))

    composed = store.run_atomic(_op)
    logger.info("Order %s moved to %s", composed["order"]["order_number"], new_status)
    return composed
