# Overview: Decimal arithmetic shared by cart totals, sale freezing, and refunds.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")
UNIT_PRICE_STEP = Decimal("0.0001")
PERCENT_STEP = Decimal("0.1")
ZERO = Decimal("0")
HUNDRED = Decimal("100")

# 9,999,999.99 keeps Numeric(12, 2) columns from overflowing
MAX_AMOUNT = Decimal("9999999.99")


def to_decimal(value) -> Decimal:
    """
    Coerce int/str/float/Decimal to Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1"), not its binary expansion.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError("Boolean is not a monetary amount")
    if isinstance(value, float):
        value = str(value)
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError):
        raise ValueError(f"Not a decimal amount: {value!r}")


def money(value) -> Decimal:
    """Round to cents, half up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def clamp_percent(value, upper=HUNDRED) -> Decimal:
    """Clamp a percentage into [0, upper] with one decimal place."""
    pct = to_decimal(value)
    upper = to_decimal(upper)
    if pct < ZERO:
        pct = ZERO
    if pct > upper:
        pct = upper
    return pct.quantize(PERCENT_STEP, rounding=ROUND_HALF_UP)


def discount_factor(percent) -> Decimal:
    return 1 - to_decimal(percent) / HUNDRED


def effective_unit_price(pack_price, units_per_pack: int, is_unit_mode: bool) -> Decimal:
    """Price of one counted item: a whole pack, or one unit split out of a pack."""
    price = to_decimal(pack_price)
    if is_unit_mode and units_per_pack and units_per_pack > 1:
        price = price / Decimal(units_per_pack)
    return price.quantize(UNIT_PRICE_STEP, rounding=ROUND_HALF_UP)


def line_total(unit_price, quantity, discount_percent) -> Decimal:
    return money(to_decimal(unit_price) * to_decimal(quantity) * discount_factor(discount_percent))


def pack_consumption(quantity, units_per_pack: int, is_unit_mode: bool) -> Decimal:
    """How many packs of stock a quantity consumes (fractional in unit mode)."""
    qty = to_decimal(quantity)
    if is_unit_mode and units_per_pack and units_per_pack > 1:
        return qty / Decimal(units_per_pack)
    return qty


def format_money(value) -> str:
    return f"{money(value):.2f}"
