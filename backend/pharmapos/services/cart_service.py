"""
Cart Builder

WHY: The cart is where pricing rules bite: pack vs. unit counting, per-line
discount caps, and the order-level discount. Everything here is a local,
synchronous edit of one cart.

RULES:
- One line per (batch, counting mode). A pack line and a unit line of the
  same batch coexist; stock checks use their combined pack consumption.
- Pack mode: packs held <= batch.stock. Unit mode: units / units_per_pack
  counts against the same stock, so single units may break a pack.
- Line discount is clamped to [0, batch.max_discount_percent]; the global
  discount to [0, 100]. The two are mutually exclusive: setting either to a
  non-zero value zeroes the other.
- Invalid edits are silent no-ops: the function returns False/None and the
  cart is left as it was. They never raise.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..extensions import db
from ..models import Batch, Cart, CartLine
from ..money import (
    HUNDRED,
    ZERO,
    clamp_percent,
    discount_factor,
    effective_unit_price,
    format_money,
    line_total,
    money,
    pack_consumption,
    to_decimal,
)
from .batch_selector import committed_packs, select_batch


class CartError(Exception):
    """Raised when a cart or referenced batch does not exist."""
    pass


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    total: Decimal
    item_count: int


# =============================================================================
# CART LIFECYCLE
# =============================================================================

def create_cart(
    terminal_code: str | None = None,
    operator_id: int | None = None,
    name: str | None = None,
    customer_name: str | None = None,
    customer_code: str | None = None,
) -> Cart:
    """Open an empty cart (a new POS tab)."""
    cart = Cart(
        terminal_code=terminal_code,
        operator_id=operator_id,
        name=name,
        customer_name=customer_name,
        customer_code=customer_code,
        global_discount_percent=ZERO,
    )
    db.session.add(cart)
    db.session.commit()
    return cart


def get_cart(cart_id: int) -> Cart | None:
    return db.session.get(Cart, cart_id)


def require_cart(cart_id: int) -> Cart:
    cart = get_cart(cart_id)
    if not cart:
        raise CartError(f"Cart {cart_id} not found")
    return cart


def set_customer(cart: Cart, customer_name: str | None, customer_code: str | None = None) -> Cart:
    cart.customer_name = customer_name.strip() if customer_name else None
    cart.customer_code = customer_code.strip() if customer_code else None
    db.session.commit()
    return cart


def clear_cart(cart: Cart, *, commit: bool = True) -> Cart:
    """Drop every line and reset discounts and customer fields."""
    for line in list(cart.lines):
        cart.lines.remove(line)
    cart.global_discount_percent = ZERO
    cart.customer_name = None
    cart.customer_code = None
    if commit:
        db.session.commit()
    return cart


# =============================================================================
# LINE LOOKUP / STOCK CHECKS
# =============================================================================

def find_line(cart: Cart, batch_id: int, is_unit_mode: bool = False) -> CartLine | None:
    for line in cart.lines:
        if line.batch_id == batch_id and line.is_unit_mode == bool(is_unit_mode):
            return line
    return None


def _fits(cart: Cart, batch: Batch, is_unit_mode: bool, quantity: int, exclude_line=None) -> bool:
    """Would `quantity` on this line stay within the batch's stock?"""
    held_elsewhere = committed_packs(cart, batch.id, exclude_line=exclude_line)
    wanted = pack_consumption(quantity, batch.pack_size, is_unit_mode)
    return held_elsewhere + wanted <= to_decimal(batch.stock)


def _next_position(cart: Cart) -> int:
    return max((line.position for line in cart.lines), default=-1) + 1


def _normalize_mode(batch: Batch, is_unit_mode: bool) -> bool:
    # Single-unit packs have no separate unit mode
    return bool(is_unit_mode) and batch.pack_size > 1


# =============================================================================
# LINE MUTATIONS
# =============================================================================

def add_line(cart: Cart, batch: Batch, is_unit_mode: bool = False) -> CartLine | None:
    """
    Add one item of `batch` to the cart.

    Increments the existing (batch, mode) line if there is one, otherwise
    appends a new line with quantity 1. Returns None without touching the
    cart when the batch is expired or cannot supply one more item.
    """
    if batch.is_expired() or to_decimal(batch.stock) <= 0:
        return None

    is_unit_mode = _normalize_mode(batch, is_unit_mode)
    line = find_line(cart, batch.id, is_unit_mode)

    if line is not None:
        if not _fits(cart, batch, is_unit_mode, line.quantity + 1, exclude_line=line):
            return None
        line.quantity += 1
    else:
        if not _fits(cart, batch, is_unit_mode, 1):
            return None
        line = CartLine(
            batch_id=batch.id,
            batch=batch,
            position=_next_position(cart),
            quantity=1,
            is_unit_mode=is_unit_mode,
            line_discount_percent=ZERO,
        )
        cart.lines.append(line)

    db.session.commit()
    return line


def add_product(
    cart: Cart,
    product_name: str,
    is_unit_mode: bool = False,
    manual_override_id: int | None = None,
) -> CartLine | None:
    """Add one item of a product, letting the batch selector pick the lot."""
    batch = select_batch(product_name, cart=cart, manual_override_id=manual_override_id)
    if batch is None:
        return None
    return add_line(cart, batch, is_unit_mode)


def set_quantity(cart: Cart, batch_id: int, quantity, is_unit_mode: bool = False) -> bool:
    """Set a line's quantity. Non-positive, non-integer or over-stock requests are ignored."""
    line = find_line(cart, batch_id, is_unit_mode)
    if line is None:
        return False
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        return False
    if not _fits(cart, line.batch, line.is_unit_mode, quantity, exclude_line=line):
        return False

    line.quantity = quantity
    db.session.commit()
    return True


def adjust_quantity(cart: Cart, batch_id: int, delta: int, is_unit_mode: bool = False) -> bool:
    """The +/- buttons: shift quantity by delta under the same rules as set_quantity."""
    line = find_line(cart, batch_id, is_unit_mode)
    if line is None:
        return False
    return set_quantity(cart, batch_id, line.quantity + delta, is_unit_mode)


def toggle_unit_mode(cart: Cart, batch_id: int, is_unit_mode: bool = False) -> bool:
    """
    Flip a line between pack and unit counting.

    Requires units_per_pack > 1. Quantity restarts at 1 so a pack count is
    never reread as a unit count. If a line already exists in the target
    mode, the toggled line folds into it as one more item.
    """
    line = find_line(cart, batch_id, is_unit_mode)
    if line is None:
        return False
    batch = line.batch
    if batch.pack_size <= 1:
        return False

    target_mode = not line.is_unit_mode
    target = find_line(cart, batch_id, target_mode)

    if target is not None:
        # The toggled line's stock claim goes away with it
        held = committed_packs(cart, batch.id, exclude_line=line) - pack_consumption(
            target.quantity, batch.pack_size, target.is_unit_mode
        )
        wanted = pack_consumption(target.quantity + 1, batch.pack_size, target_mode)
        if held + wanted > to_decimal(batch.stock):
            return False
        target.quantity += 1
        cart.lines.remove(line)
    else:
        if not _fits(cart, batch, target_mode, 1, exclude_line=line):
            return False
        line.is_unit_mode = target_mode
        line.quantity = 1

    db.session.commit()
    return True


def set_line_discount(cart: Cart, batch_id: int, percent, is_unit_mode: bool = False) -> CartLine | None:
    """
    Set a per-line discount, clamped to the batch's cap.

    A non-zero line discount cancels the global discount.
    """
    line = find_line(cart, batch_id, is_unit_mode)
    if line is None:
        return None

    line.line_discount_percent = clamp_percent(percent, upper=line.batch.max_discount_percent)
    if line.line_discount_percent > 0:
        cart.global_discount_percent = ZERO

    db.session.commit()
    return line


def set_global_discount(cart: Cart, percent) -> Decimal:
    """
    Set the order-level discount, clamped to [0, 100].

    A non-zero global discount clears every line discount.
    """
    cart.global_discount_percent = clamp_percent(percent, upper=HUNDRED)
    if cart.global_discount_percent > 0:
        for line in cart.lines:
            line.line_discount_percent = ZERO

    db.session.commit()
    return cart.global_discount_percent


def remove_line(cart: Cart, batch_id: int, is_unit_mode: bool = False) -> bool:
    line = find_line(cart, batch_id, is_unit_mode)
    if line is None:
        return False
    cart.lines.remove(line)
    db.session.commit()
    return True


# =============================================================================
# PRICING
# =============================================================================

def line_unit_price(line: CartLine) -> Decimal:
    return effective_unit_price(line.batch.price, line.batch.pack_size, line.is_unit_mode)


def line_amount(line: CartLine) -> Decimal:
    return line_total(line_unit_price(line), line.quantity, line.line_discount_percent)


def compute_totals(cart: Cart) -> CartTotals:
    """
    subtotal = sum of discounted line totals
    total    = subtotal * (1 - global discount)
    """
    subtotal = sum((line_amount(line) for line in cart.lines), ZERO)
    total = money(subtotal * discount_factor(cart.global_discount_percent))
    item_count = sum(line.quantity for line in cart.lines)
    return CartTotals(subtotal=money(subtotal), total=total, item_count=item_count)


def cart_read_model(cart: Cart) -> dict:
    """Cart as the POS screen shows it: ordered lines with resolved prices."""
    totals = compute_totals(cart)
    lines = []
    for line in cart.lines:
        batch = line.batch
        lines.append({
            "batch_id": line.batch_id,
            "position": line.position,
            "product_name": batch.product_name,
            "expiry_date": batch.expiry_date.isoformat() if batch.expiry_date else None,
            "is_unit_mode": line.is_unit_mode,
            "units_per_pack": batch.pack_size,
            "quantity": line.quantity,
            "effective_price": format_money(line_unit_price(line)),
            "line_discount_percent": str(line.line_discount_percent),
            "max_discount_percent": str(batch.max_discount_percent),
            "line_total": format_money(line_amount(line)),
        })

    data = cart.to_dict()
    data.update({
        "lines": lines,
        "subtotal": format_money(totals.subtotal),
        "total": format_money(totals.total),
        "item_count": totals.item_count,
    })
    return data
