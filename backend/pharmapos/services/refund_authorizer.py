"""
Refund Authorizer

WHY: A refund moves cash out of the drawer, so who may refund how much is a
policy decision separate from the return arithmetic. This module decides;
it never writes.

RULES (evaluated in order, first failure denies):
1. There must be an open shift
2. cashier: the sale belongs to the current shift's window, and the refund
   is within the per-invoice ceiling
3. pharmacist: per-invoice ceiling, then daily ceiling including refunds
   already issued today
4. admin / owner / manager: no ceilings
5. Every role: the refund fits the shift's available balance
   (cash + card + deposits - refunds already paid)

Any other role is denied outright.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..models import Sale, Shift
from ..money import format_money, to_decimal


ROLE_OWNER = "owner"
ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_PHARMACIST = "pharmacist"
ROLE_CASHIER = "cashier"

UNLIMITED_ROLES = frozenset({ROLE_OWNER, ROLE_ADMIN, ROLE_MANAGER})

# Denial codes
RULE_NO_OPEN_SHIFT = "no_open_shift"
RULE_ROLE_NOT_PERMITTED = "role_not_permitted"
RULE_DIFFERENT_SHIFT = "different_shift"
RULE_INVOICE_LIMIT = "invoice_limit"
RULE_DAILY_LIMIT = "daily_limit"
RULE_INSUFFICIENT_BALANCE = "insufficient_balance"
RULE_INVALID_AMOUNT = "invalid_amount"


@dataclass(frozen=True)
class RefundLimits:
    cashier_invoice: Decimal = Decimal("500")
    pharmacist_invoice: Decimal = Decimal("1000")
    pharmacist_daily: Decimal = Decimal("2000")

    @classmethod
    def from_config(cls, config) -> "RefundLimits":
        return cls(
            cashier_invoice=to_decimal(config.get("CASHIER_INVOICE_REFUND_LIMIT", cls.cashier_invoice)),
            pharmacist_invoice=to_decimal(config.get("PHARMACIST_INVOICE_REFUND_LIMIT", cls.pharmacist_invoice)),
            pharmacist_daily=to_decimal(config.get("PHARMACIST_DAILY_REFUND_LIMIT", cls.pharmacist_daily)),
        )


DEFAULT_LIMITS = RefundLimits()


@dataclass(frozen=True)
class AuthorizationDecision:
    approved: bool
    rule: str | None = None
    reason: str | None = None

    def to_dict(self) -> dict:
        return {"approved": self.approved, "rule": self.rule, "reason": self.reason}


APPROVED = AuthorizationDecision(approved=True)


def _deny(rule: str, reason: str) -> AuthorizationDecision:
    return AuthorizationDecision(approved=False, rule=rule, reason=reason)


def sale_in_shift_window(sale: Sale, shift: Shift) -> bool:
    if sale.created_at is None or shift.opened_at is None:
        return False
    if sale.created_at < shift.opened_at:
        return False
    if shift.closed_at is not None and sale.created_at > shift.closed_at:
        return False
    return True


def authorize(
    role: str,
    requested_refund,
    sale: Sale,
    shift: Shift | None,
    daily_refunds_so_far=0,
    limits: RefundLimits = DEFAULT_LIMITS,
) -> AuthorizationDecision:
    """Decide whether `role` may refund `requested_refund` on `sale` right now."""
    amount = to_decimal(requested_refund)
    if amount < 0:
        return _deny(RULE_INVALID_AMOUNT, "Refund amount cannot be negative")

    if shift is None or not shift.is_open:
        return _deny(RULE_NO_OPEN_SHIFT, "No open shift")

    if role == ROLE_CASHIER:
        if not sale_in_shift_window(sale, shift):
            return _deny(RULE_DIFFERENT_SHIFT, "Sale belongs to a different shift; cashiers may only refund sales from the current shift")
        if amount > limits.cashier_invoice:
            return _deny(
                RULE_INVOICE_LIMIT,
                f"Refund {format_money(amount)} exceeds per-invoice limit for cashiers ({format_money(limits.cashier_invoice)})",
            )
    elif role == ROLE_PHARMACIST:
        if amount > limits.pharmacist_invoice:
            return _deny(
                RULE_INVOICE_LIMIT,
                f"Refund {format_money(amount)} exceeds per-invoice limit for pharmacists ({format_money(limits.pharmacist_invoice)})",
            )
        already = to_decimal(daily_refunds_so_far)
        if already + amount > limits.pharmacist_daily:
            return _deny(
                RULE_DAILY_LIMIT,
                f"Refund {format_money(amount)} exceeds daily limit for pharmacists "
                f"({format_money(already)} of {format_money(limits.pharmacist_daily)} already used)",
            )
    elif role not in UNLIMITED_ROLES:
        return _deny(RULE_ROLE_NOT_PERMITTED, f"Role '{role}' is not permitted to issue refunds")

    available = shift.available_balance
    if amount > available:
        return _deny(
            RULE_INSUFFICIENT_BALANCE,
            f"Insufficient balance: refund {format_money(amount)} exceeds shift balance {format_money(available)}",
        )

    return APPROVED
