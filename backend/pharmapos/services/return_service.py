"""
Return Processor

WHY: A sale can be returned in pieces, on different days, by different
operators. Each return may only touch what is still returnable, and its
refund must be priced exactly as the customer was charged.

DESIGN PRINCIPLES:
- Refunds use the sale's frozen unit prices and line discounts, never the
  live catalog
- The sale's global discount is applied once, to the summed line refunds,
  mirroring how the sale total was derived from its subtotal
- Out-of-range quantities are rejected, never clamped
- Authorize-then-commit is one transaction: the Return row, the sale's
  returned_quantities / net_total, and the shift's returns_total are
  written together or not at all
- Building a draft writes nothing, so abandoning a return is free

LIFECYCLE:
1. compute_available_lines(sale)  -> what may still be returned
2. build_return(sale, selections) -> priced draft (pure)
3. refund_authorizer.authorize()  -> approve / deny
4. commit_return()                -> persist
process_return() runs 2-4 atomically with retry on concurrent updates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Mapping

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Return, ReturnLine, Sale, SaleLine, Shift
from ..models.returns import (
    ITEM_CONDITIONS,
    RETURN_KIND_FULL,
    RETURN_KIND_PARTIAL,
    RETURN_REASONS,
)
from ..models.sales import SALE_STATUS_PARTIALLY_RETURNED, SALE_STATUS_RETURNED
from ..money import ZERO, discount_factor, line_total, money, to_decimal
from pharmapos.time_utils import start_of_day, utcnow
from . import shift_service
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_document_number
from .refund_authorizer import AuthorizationDecision, RefundLimits, authorize


class ReturnError(Exception):
    """Raised for return operation errors."""
    pass


class RefundDenied(ReturnError):
    """The refund authorizer refused the return; nothing was written."""
    def __init__(self, decision: AuthorizationDecision):
        super().__init__(decision.reason)
        self.decision = decision


# =============================================================================
# DRAFT TYPES
# =============================================================================

@dataclass(frozen=True)
class AvailableLine:
    line_key: str
    sale_line_id: int
    product_name: str
    is_unit_mode: bool
    quantity_sold: int
    quantity_returned: int
    available_qty: int
    unit_price: Decimal

    def to_dict(self) -> dict:
        return {
            "line_key": self.line_key,
            "sale_line_id": self.sale_line_id,
            "product_name": self.product_name,
            "is_unit_mode": self.is_unit_mode,
            "quantity_sold": self.quantity_sold,
            "quantity_returned": self.quantity_returned,
            "available_qty": self.available_qty,
            "unit_price": str(self.unit_price),
        }


@dataclass(frozen=True)
class ReturnItemDraft:
    line_key: str
    sale_line: SaleLine
    quantity: int
    unit_price: Decimal
    refund_amount: Decimal
    condition: str


@dataclass(frozen=True)
class ReturnDraft:
    sale_id: int
    kind: str
    reason: str
    notes: str | None
    total_refund: Decimal
    items: list[ReturnItemDraft] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "sale_id": self.sale_id,
            "kind": self.kind,
            "reason": self.reason,
            "notes": self.notes,
            "total_refund": f"{self.total_refund:.2f}",
            "items": [
                {
                    "line_key": item.line_key,
                    "quantity_returned": item.quantity,
                    "unit_price_used": str(item.unit_price),
                    "refund_amount": f"{item.refund_amount:.2f}",
                    "condition": item.condition,
                }
                for item in self.items
            ],
        }


# =============================================================================
# AVAILABILITY
# =============================================================================

def returned_quantity(sale: Sale, line_key: str) -> int:
    return int((sale.returned_quantities or {}).get(line_key, 0))


def compute_available_lines(sale: Sale) -> list[AvailableLine]:
    """Lines with something left to return, in sale order."""
    available = []
    for line in sale.lines:
        already = returned_quantity(sale, line.line_key)
        remaining = line.quantity - already
        if remaining <= 0:
            continue
        available.append(AvailableLine(
            line_key=line.line_key,
            sale_line_id=line.id,
            product_name=line.product_name,
            is_unit_mode=line.is_unit_mode,
            quantity_sold=line.quantity,
            quantity_returned=already,
            available_qty=remaining,
            unit_price=to_decimal(line.unit_price),
        ))
    return available


def full_return_selections(sale: Sale) -> dict[str, int]:
    """Selections that return everything still returnable."""
    return {line.line_key: line.available_qty for line in compute_available_lines(sale)}


# =============================================================================
# PRICING (PURE)
# =============================================================================

def build_return(
    sale: Sale,
    selections: Mapping[str, int],
    reason: str = "customer_request",
    notes: str | None = None,
    conditions: Mapping[str, str] | None = None,
) -> ReturnDraft:
    """
    Validate selections against remaining availability and price the refund.

    refund per line = unit_price * qty * (1 - line discount)
    total refund    = sum(line refunds) * (1 - sale global discount)

    The return that empties the sale refunds exactly its remaining net
    total, so cent rounding across partial returns never leaves a residue.

    Raises:
        ReturnError: Empty selection, unknown line, quantity outside
                     [1, available], bad reason or condition
    """
    if reason not in RETURN_REASONS:
        raise ReturnError(f"Unknown return reason: {reason!r}")
    if not selections:
        raise ReturnError("Select at least one line to return")

    conditions = conditions or {}
    available = {line.line_key: line for line in compute_available_lines(sale)}

    items: list[ReturnItemDraft] = []
    for line_key, qty in selections.items():
        sale_line = sale.line_by_key(line_key)
        if sale_line is None:
            raise ReturnError(f"Line {line_key} is not part of sale {sale.id}")
        if isinstance(qty, bool) or not isinstance(qty, int):
            raise ReturnError(f"Return quantity for line {line_key} must be a whole number")

        entry = available.get(line_key)
        remaining = entry.available_qty if entry else 0
        if remaining <= 0:
            raise ReturnError(f"Line {line_key} has already been fully returned")
        if qty < 1 or qty > remaining:
            raise ReturnError(
                f"Cannot return {qty} of line {line_key}. Sold: {sale_line.quantity}, "
                f"already returned: {sale_line.quantity - remaining}, available: {remaining}"
            )

        condition = conditions.get(line_key, "sellable")
        if condition not in ITEM_CONDITIONS:
            raise ReturnError(f"Unknown item condition: {condition!r}")

        unit_price = to_decimal(sale_line.unit_price)
        items.append(ReturnItemDraft(
            line_key=line_key,
            sale_line=sale_line,
            quantity=qty,
            unit_price=unit_price,
            refund_amount=line_total(unit_price, qty, sale_line.line_discount_percent),
            condition=condition,
        ))

    is_full = len(items) == len(available) and all(
        item.quantity == available[item.line_key].available_qty for item in items
    )

    net_total = to_decimal(sale.net_total)
    if is_full:
        total_refund = net_total
    else:
        lines_sum = sum((item.refund_amount for item in items), ZERO)
        total_refund = min(money(lines_sum * discount_factor(sale.global_discount_percent)), net_total)

    return ReturnDraft(
        sale_id=sale.id,
        kind=RETURN_KIND_FULL if is_full else RETURN_KIND_PARTIAL,
        reason=reason,
        notes=notes,
        total_refund=money(total_refund),
        items=items,
    )


# =============================================================================
# COMMIT
# =============================================================================

def commit_return(sale: Sale, shift: Shift, draft: ReturnDraft, operator_id: int) -> Return:
    """
    Write an authorized draft. Does not commit; the caller owns the transaction.

    Applies together:
    - new Return appended to the sale's return log
    - sale.returned_quantities incremented per line, net_total decremented
    - shift.returns_total incremented by the same refund
    """
    return_doc = Return(
        document_number=next_document_number(Return, "R"),
        kind=draft.kind,
        reason=draft.reason,
        notes=draft.notes,
        total_refund=draft.total_refund,
        operator_id=operator_id,
        shift_id=shift.id,
        created_at=utcnow(),
        items=[
            ReturnLine(
                sale_line_id=item.sale_line.id,
                line_key=item.line_key,
                quantity_returned=item.quantity,
                unit_price_used=item.unit_price,
                refund_amount=item.refund_amount,
                reason=draft.reason,
                condition=item.condition,
            )
            for item in draft.items
        ],
    )
    sale.return_log.append(return_doc)

    # JSON column: assign a new dict so the change is tracked
    returned = dict(sale.returned_quantities or {})
    for item in draft.items:
        returned[item.line_key] = returned.get(item.line_key, 0) + item.quantity
    sale.returned_quantities = returned
    sale.net_total = money(to_decimal(sale.net_total) - draft.total_refund)

    fully_returned = all(returned.get(line.line_key, 0) >= line.quantity for line in sale.lines)
    sale.status = SALE_STATUS_RETURNED if fully_returned else SALE_STATUS_PARTIALLY_RETURNED

    db.session.flush()
    shift_service.record_return(shift, return_doc, draft.total_refund, operator_id)
    db.session.flush()
    return return_doc


def process_return(
    sale_id: int,
    selections: Mapping[str, int] | None,
    *,
    operator_id: int,
    role: str,
    terminal_code: str,
    reason: str = "customer_request",
    notes: str | None = None,
    conditions: Mapping[str, str] | None = None,
    full: bool = False,
    limits: RefundLimits | None = None,
) -> Return:
    """
    Price, authorize and record a return in one transaction.

    The sale and the shift are re-read (and locked where supported) on every
    attempt, so a retry after a concurrent update re-checks availability
    and the shift balance against committed state.

    Raises:
        ReturnError: Sale missing or selections invalid
        RefundDenied: Authorizer refused; nothing was written
    """
    if limits is None:
        limits = RefundLimits.from_config(current_app.config)

    def _op():
        try:
            sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
            if not sale:
                raise ReturnError(f"Sale {sale_id} not found")

            chosen = full_return_selections(sale) if full else (selections or {})
            draft = build_return(sale, chosen, reason=reason, notes=notes, conditions=conditions)

            shift = shift_service.get_open_shift(terminal_code, lock=True)
            daily = sum_todays_refunds(operator_id)
            decision = authorize(role, draft.total_refund, sale, shift, daily, limits)
            if not decision.approved:
                raise RefundDenied(decision)

            return_doc = commit_return(sale, shift, draft, operator_id)
            db.session.commit()
            return return_doc
        except ReturnError:
            db.session.rollback()
            raise

    return_doc = run_with_retry(_op)
    current_app.logger.info(
        "Return %s recorded for sale %s: kind=%s refund=%s operator=%s shift=%s",
        return_doc.document_number, sale_id, return_doc.kind, return_doc.total_refund,
        operator_id, return_doc.shift_id,
    )
    return return_doc


# =============================================================================
# QUERIES
# =============================================================================

def sum_todays_refunds(operator_id: int, now: datetime | None = None) -> Decimal:
    """Refunds this operator has issued since midnight UTC."""
    total = (
        db.session.query(func.coalesce(func.sum(Return.total_refund), 0))
        .filter(Return.operator_id == operator_id, Return.created_at >= start_of_day(now))
        .scalar()
    )
    return money(total or 0)


def get_return(return_id: int) -> Return | None:
    return db.session.get(Return, return_id)


def require_return(return_id: int) -> Return:
    return_doc = get_return(return_id)
    if not return_doc:
        raise ReturnError(f"Return {return_id} not found")
    return return_doc


def get_sale_returns(sale_id: int) -> list[Return]:
    """All returns for a sale, oldest first."""
    return db.session.query(Return).filter_by(sale_id=sale_id).order_by(Return.id.asc()).all()


def list_returns(
    *,
    operator_id: int | None = None,
    shift_id: int | None = None,
    since: datetime | None = None,
    limit: int = 50,
) -> list[Return]:
    """Return history, newest first."""
    query = db.session.query(Return)
    if operator_id is not None:
        query = query.filter(Return.operator_id == operator_id)
    if shift_id is not None:
        query = query.filter(Return.shift_id == shift_id)
    if since is not None:
        query = query.filter(Return.created_at >= since)
    return query.order_by(Return.id.desc()).limit(limit).all()
