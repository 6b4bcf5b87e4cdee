from __future__ import annotations

from decimal import Decimal
from typing import Any

from .money import MAX_AMOUNT, to_decimal


class ValidationError(ValueError):
    """400-level input problem."""


def coerce_int(key: str, value: Any, *, required: bool = True) -> int | None:
    """
    Strict integer parsing for JSON payloads.

    Rejects floats, booleans, scientific notation and decimal strings
    rather than silently truncating them.
    """
    if value is None:
        if required:
            raise ValidationError(f"{key} required")
        return None
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def coerce_bool(key: str, value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no", ""):
            return False
    if isinstance(value, int):
        return bool(value)
    raise ValidationError(f"{key} must be a boolean")


def coerce_amount(key: str, value: Any, *, required: bool = True, allow_zero: bool = True) -> Decimal | None:
    """Monetary amount as Decimal: non-negative, at most MAX_AMOUNT."""
    if value is None or value == "":
        if required:
            raise ValidationError(f"{key} required")
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    try:
        amount = to_decimal(value)
    except ValueError:
        raise ValidationError(f"{key} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{key} must be a finite number")
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationError(f"{key} must be {'non-negative' if allow_zero else 'positive'}")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"{key} exceeds maximum allowed amount of {MAX_AMOUNT}")
    return amount


def coerce_percent(key: str, value: Any) -> Decimal:
    """Any number; range clamping is the cart's business, not the parser's."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{key} must be a number")
    try:
        pct = to_decimal(value)
    except ValueError:
        raise ValidationError(f"{key} must be a number")
    if not pct.is_finite():
        raise ValidationError(f"{key} must be a finite number")
    return pct


def parse_return_selections(items: Any) -> dict[str, int]:
    """
    [{"line_key": "12:0", "quantity": 2}, ...] -> {"12:0": 2}

    Quantity bounds are checked by the return processor against what is
    still returnable; here only shape and integer-ness.
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")
    selections: dict[str, int] = {}
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        line_key = item.get("line_key")
        if not isinstance(line_key, str) or not line_key.strip():
            raise ValidationError(f"items[{index}].line_key required")
        line_key = line_key.strip()
        if line_key in selections:
            raise ValidationError(f"Line {line_key} listed more than once")
        selections[line_key] = coerce_int(f"items[{index}].quantity", item.get("quantity"))
    return selections


def parse_return_conditions(items: Any) -> dict[str, str]:
    conditions: dict[str, str] = {}
    if not isinstance(items, list):
        return conditions
    for item in items:
        if isinstance(item, dict) and item.get("condition") and isinstance(item.get("line_key"), str):
            conditions[item["line_key"].strip()] = str(item["condition"]).strip()
    return conditions
