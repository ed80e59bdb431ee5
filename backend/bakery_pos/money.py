# Overview: Decimal currency helpers shared by services, stores and serializers.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable

CENT = Decimal("0.01")
ZERO = Decimal("0")

# Two amounts closer than this are considered equal when reconciling
TOLERANCE = Decimal("0.01")


class MoneyError(ValueError):
    """Raised when a value cannot be read as a currency amount."""


def to_decimal(value: Any) -> Decimal:
    """
    Convert ints, numeric strings and Decimals to Decimal.

    Floats are routed through str() so 0.1 stays 0.1. Booleans, NaN and
    infinities are rejected.
    """
    if isinstance(value, bool) or value is None:
        raise MoneyError(f"not a number: {value!r}")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise MoneyError(f"not a number: {value!r}")
    else:
        raise MoneyError(f"not a number: {value!r}")

    if not result.is_finite():
        raise MoneyError(f"not a finite number: {value!r}")
    return result


def quantize(value: Decimal) -> Decimal:
    """Round half-up to two places (storage/presentation boundary only)."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def total_of(values: Iterable[Decimal]) -> Decimal:
    return sum(values, ZERO)


def amounts_match(a: Decimal, b: Decimal) -> bool:
    return abs(a - b) < TOLERANCE


def format_amount(value: Decimal | None) -> str | None:
    if value is None:
        return None
    return str(quantize(value))
