from __future__ import annotations
from decimal import Decimal, InvalidOperation

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text

from .money import MoneyError, to_decimal


# Maximum amount for any price/balance column: Numeric(10, 2)
MAX_AMOUNT = Decimal("99999999.99")

PRODUCT_STATUSES = {"active", "low_stock", "inactive"}
CUSTOMER_TYPES = {"walk_in", "regular", "wholesale"}
USER_ROLES = {"admin", "cashier"}


class ValidationError(ValueError):
    """400-level input problem, optionally tied to one field."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        body: dict = {"error": str(self)}
        if self.field:
            body["fields"] = {self.field: str(self)}
        return body


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


class NotFoundError(LookupError):
    """404-level: a referenced id does not exist."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Whole numbers: ints or plain digit strings ("12", "-3"); no floats, bools or "1e3"
    if isinstance(coltype, Integer):
        if isinstance(value, bool):
            raise ValidationError(f"{col.key} must be an integer", col.key)
        if isinstance(value, int):
            return value
        text = value.strip() if isinstance(value, str) else ""
        digits = text[1:] if text[:1] in "+-" else text
        if not digits.isdigit():
            raise ValidationError(f"{col.key} must be a whole number", col.key)
        return int(text)

    # Decimal currency / percentages: "12.50", 12.5 and 12 are all accepted
    if isinstance(coltype, Numeric):
        try:
            amount = to_decimal(value)
        except MoneyError:
            raise ValidationError(f"{col.key} must be a number", col.key)
        if coltype.scale is not None:
            try:
                exact = amount == amount.quantize(Decimal(1).scaleb(-coltype.scale))
            except InvalidOperation:
                raise ValidationError(f"{col.key} is out of range", col.key)
            if not exact:
                raise ValidationError(f"{col.key} allows at most {coltype.scale} decimal places", col.key)
        return amount

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false", col.key)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{col.key} must be a string", col.key)
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", missing[0])

    cols = model.columns()

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}", k)
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}", k)

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null", k)
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank", k)

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}", k)

        patch[k] = val

    return patch


def _check_amount(patch: dict, key: str) -> None:
    value = patch.get(key)
    if value is None:
        return
    if value < 0:
        raise ValidationError(f"{key} must be >= 0", key)
    if value > MAX_AMOUNT:
        raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT}", key)


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for key in ("counter_price", "wholesale_price", "custom_price"):
        _check_amount(patch, key)

    if patch.get("stock") is not None and patch["stock"] < 0:
        raise ValidationError("stock must be >= 0", "stock")

    gst = patch.get("gst_rate")
    if gst is not None and not (0 <= gst <= 100):
        raise ValidationError("gst_rate must be between 0 and 100", "gst_rate")

    if "status" in patch and patch["status"] not in {"active", "inactive"}:
        raise ValidationError("status can only be set to active or inactive", "status")


def enforce_rules_customer(patch: dict) -> None:
    if "customer_type" in patch and patch["customer_type"] not in CUSTOMER_TYPES:
        raise ValidationError(
            f"customer_type must be one of {', '.join(sorted(CUSTOMER_TYPES))}", "customer_type"
        )
    balance = patch.get("balance")
    if balance is not None and abs(balance) > MAX_AMOUNT:
        raise ValidationError(f"balance cannot exceed {MAX_AMOUNT}", "balance")


def enforce_rules_user(patch: dict) -> None:
    if "role" in patch and patch["role"] not in USER_ROLES:
        raise ValidationError(f"role must be one of {', '.join(sorted(USER_ROLES))}", "role")
