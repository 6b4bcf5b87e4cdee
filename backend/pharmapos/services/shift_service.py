"""
Shift Ledger Service

WHY: A refund is cash leaving the drawer. The shift keeps the running
ledger that says how much the drawer has taken in, and therefore how much
may be paid back out.

DESIGN PRINCIPLES:
- One open shift per terminal at a time
- Shifts are immutable once closed
- Every ledger movement appends a ShiftEvent
- Ledger writes inside sale/return transactions do not commit here; the
  caller commits them together with the document they belong to
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Return, Sale, Shift, ShiftEvent
from ..models.shifts import SHIFT_STATUS_CLOSED, SHIFT_STATUS_OPEN
from ..money import ZERO, money, to_decimal
from pharmapos.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry


class ShiftError(Exception):
    """Raised for shift management errors."""
    pass


PAYMENT_CASH = "cash"
PAYMENT_CARD = "card"


# =============================================================================
# LOOKUPS
# =============================================================================

def get_shift(shift_id: int) -> Shift | None:
    return db.session.get(Shift, shift_id)


def require_shift(shift_id: int) -> Shift:
    shift = get_shift(shift_id)
    if not shift:
        raise ShiftError(f"Shift {shift_id} not found")
    return shift


def get_open_shift(terminal_code: str, *, lock: bool = False) -> Shift | None:
    """The terminal's open shift, or None."""
    query = db.session.query(Shift).filter_by(terminal_code=terminal_code, status=SHIFT_STATUS_OPEN)
    if lock:
        query = lock_for_update(query)
    return query.order_by(Shift.id.desc()).first()


def list_shifts(terminal_code: str | None = None, status: str | None = None, limit: int = 20) -> list[Shift]:
    query = db.session.query(Shift)
    if terminal_code:
        query = query.filter_by(terminal_code=terminal_code)
    if status:
        query = query.filter_by(status=status)
    return query.order_by(Shift.id.desc()).limit(limit).all()


# =============================================================================
# SESSION BOUNDARIES
# =============================================================================

def open_shift(terminal_code: str, operator_id: int, opening_cash=0) -> Shift:
    """
    Open a shift on a terminal.

    Raises:
        ShiftError: If the terminal already has an open shift
    """
    if not terminal_code:
        raise ShiftError("terminal_code required")
    opening = money(opening_cash)
    if opening < 0:
        raise ShiftError("Opening cash cannot be negative")

    existing = get_open_shift(terminal_code)
    if existing:
        raise ShiftError(f"Terminal {terminal_code} already has an open shift (shift {existing.id})")

    shift = Shift(
        terminal_code=terminal_code,
        status=SHIFT_STATUS_OPEN,
        opened_by_operator_id=operator_id,
        opened_at=utcnow(),
        opening_cash=opening,
        cash_total=ZERO,
        card_total=ZERO,
        cash_deposits=ZERO,
        returns_total=ZERO,
    )
    db.session.add(shift)
    db.session.flush()

    _log_event(shift, "OPEN", opening, operator_id=operator_id, reason="Shift opened")
    db.session.commit()

    current_app.logger.info("Shift %s opened on terminal %s by operator %s", shift.id, terminal_code, operator_id)
    return shift


def close_shift(shift_id: int, closing_cash, operator_id: int, notes: str | None = None) -> Shift:
    """
    Close a shift and record the drawer variance.

    expected_cash = opening_cash + cash_total + cash_deposits - returns_total
    variance      = closing_cash - expected_cash

    IMMUTABLE: Once closed, the shift accepts no further movements.
    """
    counted = money(closing_cash)
    if counted < 0:
        raise ShiftError("Closing cash cannot be negative")

    def _op():
        shift = lock_for_update(db.session.query(Shift).filter_by(id=shift_id)).first()
        if not shift:
            raise ShiftError(f"Shift {shift_id} not found")
        if not shift.is_open:
            raise ShiftError("Shift already closed")

        expected = money(
            to_decimal(shift.opening_cash)
            + to_decimal(shift.cash_total)
            + to_decimal(shift.cash_deposits)
            - to_decimal(shift.returns_total)
        )
        shift.status = SHIFT_STATUS_CLOSED
        shift.closed_at = utcnow()
        shift.closed_by_operator_id = operator_id
        shift.expected_cash = expected
        shift.closing_cash = counted
        shift.variance = counted - expected
        shift.notes = notes

        _log_event(shift, "CLOSE", counted, operator_id=operator_id, reason=notes or "Shift closed")
        db.session.commit()
        return shift

    shift = run_with_retry(_op)
    current_app.logger.info("Shift %s closed, variance %s", shift.id, shift.variance)
    return shift


# =============================================================================
# LEDGER MOVEMENTS
# =============================================================================

def record_sale(shift: Shift, sale: Sale, amount: Decimal, payment_method: str, operator_id: int | None = None) -> None:
    """Book a sale into the shift. Does not commit."""
    if not shift.is_open:
        raise ShiftError("Cannot book a sale into a closed shift")
    if payment_method == PAYMENT_CARD:
        shift.card_total = to_decimal(shift.card_total) + amount
    else:
        shift.cash_total = to_decimal(shift.cash_total) + amount
    _log_event(
        shift, "SALE", amount,
        operator_id=operator_id,
        payment_method=payment_method,
        sale_id=sale.id,
        reason=f"Sale {sale.document_number}",
    )


def record_return(shift: Shift, return_doc: Return, amount: Decimal, operator_id: int) -> None:
    """Book a refund against the shift. Does not commit."""
    if not shift.is_open:
        raise ShiftError("Cannot book a return into a closed shift")
    shift.returns_total = to_decimal(shift.returns_total) + amount
    _log_event(
        shift, "RETURN", amount,
        operator_id=operator_id,
        sale_id=return_doc.sale_id,
        return_id=return_doc.id,
        reason=f"Return {return_doc.document_number} for sale {return_doc.sale_id}",
    )


def record_deposit(shift_id: int, amount, operator_id: int, reason: str | None = None) -> Shift:
    """Add cash to the drawer (float top-up, change delivery)."""
    value = money(amount)
    if value <= 0:
        raise ShiftError("Deposit amount must be positive")

    def _op():
        shift = lock_for_update(db.session.query(Shift).filter_by(id=shift_id)).first()
        if not shift:
            raise ShiftError(f"Shift {shift_id} not found")
        if not shift.is_open:
            raise ShiftError("Cannot deposit into a closed shift")

        shift.cash_deposits = to_decimal(shift.cash_deposits) + value
        _log_event(shift, "DEPOSIT", value, operator_id=operator_id, reason=reason or "Cash deposit")
        db.session.commit()
        return shift

    return run_with_retry(_op)


# =============================================================================
# REPORTING
# =============================================================================

def shift_summary(shift: Shift) -> dict:
    """X-report: ledger plus sale and return counts for the shift."""
    sales_count, sales_amount = (
        db.session.query(func.count(Sale.id), func.coalesce(func.sum(Sale.total), 0))
        .filter(Sale.shift_id == shift.id)
        .one()
    )
    returns_count = db.session.query(func.count(Return.id)).filter(Return.shift_id == shift.id).scalar()

    data = shift.to_dict()
    data.update({
        "sales_count": int(sales_count or 0),
        "sales_amount": f"{money(sales_amount):.2f}",
        "returns_count": int(returns_count or 0),
        "events": [event.to_dict() for event in shift.events],
    })
    return data


# =============================================================================
# INTERNAL HELPERS
# =============================================================================

def _log_event(
    shift: Shift,
    event_type: str,
    amount,
    *,
    operator_id: int | None = None,
    payment_method: str | None = None,
    sale_id: int | None = None,
    return_id: int | None = None,
    reason: str | None = None,
) -> ShiftEvent:
    event = ShiftEvent(
        shift_id=shift.id,
        event_type=event_type,
        amount=money(amount),
        payment_method=payment_method,
        operator_id=operator_id,
        sale_id=sale_id,
        return_id=return_id,
        reason=reason,
        occurred_at=utcnow(),
    )
    db.session.add(event)
    return event
