"""
Tests for refund authorization rules.

The authorizer only reads, so these tests use unsaved Sale and Shift rows.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from pharmapos.models import Sale, Shift
from pharmapos.services.refund_authorizer import (
    RULE_DAILY_LIMIT,
    RULE_DIFFERENT_SHIFT,
    RULE_INSUFFICIENT_BALANCE,
    RULE_INVOICE_LIMIT,
    RULE_NO_OPEN_SHIFT,
    RULE_ROLE_NOT_PERMITTED,
    RefundLimits,
    authorize,
)
from pharmapos.time_utils import utcnow


def _shift(cash="10000.00", card="0", deposits="0", returns="0", status="open", opened_hours_ago=4):
    return Shift(
        terminal_code="T1",
        status=status,
        opened_at=utcnow() - timedelta(hours=opened_hours_ago),
        cash_total=Decimal(cash),
        card_total=Decimal(card),
        cash_deposits=Decimal(deposits),
        returns_total=Decimal(returns),
    )


def _sale(hours_ago=1):
    return Sale(created_at=utcnow() - timedelta(hours=hours_ago), total=Decimal("5000.00"))


def test_no_shift_is_denied():
    decision = authorize("owner", "10.00", _sale(), None)

    assert not decision.approved
    assert decision.rule == RULE_NO_OPEN_SHIFT
    assert decision.reason == "No open shift"


def test_closed_shift_is_denied():
    decision = authorize("owner", "10.00", _sale(), _shift(status="closed"))

    assert decision.rule == RULE_NO_OPEN_SHIFT


def test_cashier_within_invoice_limit_is_approved():
    assert authorize("cashier", "500.00", _sale(), _shift()).approved


def test_cashier_over_invoice_limit_is_denied():
    decision = authorize("cashier", "500.01", _sale(), _shift())

    assert decision.rule == RULE_INVOICE_LIMIT
    assert "per-invoice limit for cashiers" in decision.reason


def test_cashier_cannot_refund_sale_from_earlier_shift():
    decision = authorize("cashier", "10.00", _sale(hours_ago=6), _shift(opened_hours_ago=4))

    assert decision.rule == RULE_DIFFERENT_SHIFT


def test_pharmacist_invoice_limit():
    assert authorize("pharmacist", "1000.00", _sale(), _shift()).approved

    decision = authorize("pharmacist", "1000.01", _sale(), _shift())
    assert decision.rule == RULE_INVOICE_LIMIT
    assert "per-invoice limit for pharmacists" in decision.reason


def test_pharmacist_daily_limit_counts_earlier_refunds():
    assert authorize("pharmacist", "500.00", _sale(), _shift(), daily_refunds_so_far="1500.00").approved

    decision = authorize("pharmacist", "600.00", _sale(), _shift(), daily_refunds_so_far="1500.00")
    assert decision.rule == RULE_DAILY_LIMIT
    assert "daily limit for pharmacists" in decision.reason


def test_pharmacist_may_refund_sales_from_other_shifts():
    assert authorize("pharmacist", "10.00", _sale(hours_ago=48), _shift()).approved


@pytest.mark.parametrize("role", ["owner", "admin", "manager"])
def test_unlimited_roles_skip_ceilings(role):
    decision = authorize(role, "5000.00", _sale(hours_ago=48), _shift(), daily_refunds_so_far="9000.00")

    assert decision.approved


@pytest.mark.parametrize("role", ["delivery", "senior_cashier", "unknown"])
def test_other_roles_are_denied(role):
    decision = authorize(role, "1.00", _sale(), _shift())

    assert decision.rule == RULE_ROLE_NOT_PERMITTED


@pytest.mark.parametrize("role", ["cashier", "pharmacist", "owner", "admin", "manager"])
def test_balance_bounds_every_role(role):
    decision = authorize(role, "250.00", _sale(), _shift(cash="1000.00", returns="800.00"))

    assert not decision.approved
    assert decision.rule == RULE_INSUFFICIENT_BALANCE
    assert decision.reason.startswith("Insufficient balance")


def test_balance_counts_card_and_deposits_minus_refunds():
    shift = _shift(cash="100.00", card="100.00", deposits="50.00", returns="100.00")

    assert authorize("owner", "150.00", _sale(), shift).approved
    assert authorize("owner", "150.01", _sale(), shift).rule == RULE_INSUFFICIENT_BALANCE


def test_limits_are_configurable():
    limits = RefundLimits.from_config({"CASHIER_INVOICE_REFUND_LIMIT": "50"})

    assert limits.cashier_invoice == Decimal("50")
    assert limits.pharmacist_invoice == Decimal("1000")
    assert authorize("cashier", "60.00", _sale(), _shift(), limits=limits).rule == RULE_INVOICE_LIMIT
