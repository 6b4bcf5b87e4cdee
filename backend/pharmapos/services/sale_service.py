"""
Sale Finalizer

WHY: At checkout the cart's live view (catalog prices, editable discounts)
must become a fixed record. Receipts, sales history and every later refund
read the frozen values, so a price change next week never rewrites what a
customer paid.

CHECKOUT (one transaction):
1. Freeze each cart line with its effective unit price and discount
2. Compute subtotal/total exactly as the cart did
3. Book the total into the terminal's open shift, if any
4. Empty the cart for the next customer
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Cart, Sale, SaleLine
from ..models.sales import SALE_STATUS_COMPLETED
from ..money import ZERO, discount_factor, money, to_decimal
from pharmapos.time_utils import utcnow
from . import cart_service, shift_service
from .concurrency import run_with_retry
from .document_service import next_document_number


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


PAYMENT_METHODS = {
    "cash": shift_service.PAYMENT_CASH,
    "card": shift_service.PAYMENT_CARD,
    "visa": shift_service.PAYMENT_CARD,
}

DEFAULT_CUSTOMER_NAME = "Guest Customer"


def normalize_payment_method(value: str | None) -> str:
    method = PAYMENT_METHODS.get((value or "").strip().lower())
    if method is None:
        raise SaleError(
            f"Unsupported payment method: {value!r}",
            details={"allowed": sorted(PAYMENT_METHODS)},
        )
    return method


def finalize(
    cart_id: int,
    payment_method: str,
    customer_name: str | None = None,
    customer_code: str | None = None,
    operator_id: int | None = None,
    terminal_code: str | None = None,
) -> Sale | None:
    """
    Check out a cart.

    Returns:
        The new Sale, or None if the cart is empty (nothing is written)

    Raises:
        SaleError: Unknown payment method
        CartError: Cart not found
    """
    method = normalize_payment_method(payment_method)

    def _op():
        cart = cart_service.require_cart(cart_id)
        if not cart.lines:
            return None

        sale = _freeze_cart(cart, method, customer_name, customer_code, operator_id, terminal_code)
        db.session.add(sale)
        db.session.flush()

        if terminal_code:
            shift = shift_service.get_open_shift(terminal_code, lock=True)
            if shift is not None:
                sale.shift_id = shift.id
                shift_service.record_sale(shift, sale, to_decimal(sale.total), method, operator_id=operator_id)

        cart_service.clear_cart(cart, commit=False)
        db.session.commit()
        return sale

    sale = run_with_retry(_op)
    if sale is not None:
        current_app.logger.info(
            "Sale %s finalized: total=%s payment=%s shift=%s",
            sale.document_number, sale.total, sale.payment_method, sale.shift_id,
        )
    return sale


def _freeze_cart(
    cart: Cart,
    payment_method: str,
    customer_name: str | None,
    customer_code: str | None,
    operator_id: int | None,
    terminal_code: str | None,
) -> Sale:
    lines = []
    subtotal = ZERO
    for position, cart_line in enumerate(cart.lines):
        batch = cart_line.batch
        unit_price = cart_service.line_unit_price(cart_line)
        amount = cart_service.line_amount(cart_line)
        subtotal += amount
        lines.append(SaleLine(
            position=position,
            batch_id=batch.id,
            product_name=batch.product_name,
            expiry_date=batch.expiry_date,
            is_unit_mode=cart_line.is_unit_mode,
            units_per_pack=batch.pack_size,
            quantity=cart_line.quantity,
            pack_price=to_decimal(batch.price),
            unit_price=unit_price,
            line_discount_percent=to_decimal(cart_line.line_discount_percent),
            line_total=amount,
        ))

    global_discount = to_decimal(cart.global_discount_percent)
    total = money(subtotal * discount_factor(global_discount))

    name = customer_name or cart.customer_name or DEFAULT_CUSTOMER_NAME
    return Sale(
        document_number=next_document_number(Sale, "S"),
        status=SALE_STATUS_COMPLETED,
        payment_method=payment_method,
        customer_name=name.strip(),
        customer_code=customer_code or cart.customer_code,
        global_discount_percent=global_discount,
        subtotal=money(subtotal),
        total=total,
        net_total=total,
        returned_quantities={},
        operator_id=operator_id if operator_id is not None else cart.operator_id,
        terminal_code=terminal_code,
        created_at=utcnow(),
        lines=lines,
    )


# =============================================================================
# QUERIES
# =============================================================================

def get_sale(sale_id: int) -> Sale | None:
    return db.session.get(Sale, sale_id)


def require_sale(sale_id: int) -> Sale:
    sale = get_sale(sale_id)
    if not sale:
        raise SaleError(f"Sale {sale_id} not found")
    return sale


def list_sales(
    *,
    shift_id: int | None = None,
    customer_code: str | None = None,
    since=None,
    limit: int = 50,
) -> list[Sale]:
    """Sales history, newest first."""
    query = db.session.query(Sale)
    if shift_id is not None:
        query = query.filter(Sale.shift_id == shift_id)
    if customer_code:
        query = query.filter(Sale.customer_code == customer_code)
    if since is not None:
        query = query.filter(Sale.created_at >= since)
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()
