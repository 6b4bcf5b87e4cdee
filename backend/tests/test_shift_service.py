"""
Tests for shift open/close, deposits and the ledger trail.
"""

from decimal import Decimal

import pytest

from pharmapos.models import ShiftEvent
from pharmapos.services import return_service, shift_service
from pharmapos.services.shift_service import ShiftError


TERMINAL = "T1"


def test_one_open_shift_per_terminal(owner, open_shift):
    with pytest.raises(ShiftError):
        shift_service.open_shift(TERMINAL, owner.id, "0")

    other = shift_service.open_shift("T2", owner.id, "0")
    assert other.is_open
    assert shift_service.get_open_shift(TERMINAL).id == open_shift.id


def test_negative_opening_cash_is_rejected(owner):
    with pytest.raises(ShiftError):
        shift_service.open_shift(TERMINAL, owner.id, "-1")


def test_deposit_raises_available_balance(owner, open_shift):
    shift = shift_service.record_deposit(open_shift.id, "75.50", owner.id, reason="Change float")

    assert shift.cash_deposits == Decimal("75.50")
    assert shift.available_balance == Decimal("75.50")


@pytest.mark.parametrize("amount", ["0", "-10"])
def test_non_positive_deposit_is_rejected(owner, open_shift, amount):
    with pytest.raises(ShiftError):
        shift_service.record_deposit(open_shift.id, amount, owner.id)


def test_close_computes_expected_cash_and_variance(owner, make_batch, make_sale, open_shift):
    sale = make_sale([(make_batch(price="40.00"), 3)])
    make_sale([(make_batch("Brufen 400mg", price="10.00"), 2)], payment_method="card")
    shift_service.record_deposit(open_shift.id, "50.00", owner.id)
    return_service.process_return(
        sale.id, {sale.lines[0].line_key: 1},
        operator_id=owner.id, role=owner.role, terminal_code=TERMINAL,
    )

    shift = shift_service.close_shift(open_shift.id, "265.00", owner.id, notes="End of day")

    # 100 opening + 120 cash + 50 deposit - 40 refunded
    assert shift.expected_cash == Decimal("230.00")
    assert shift.closing_cash == Decimal("265.00")
    assert shift.variance == Decimal("35.00")
    assert shift.card_total == Decimal("20.00")
    assert shift.status == "closed"
    assert shift.closed_at is not None


def test_closed_shift_accepts_no_movements(owner, open_shift):
    shift_service.close_shift(open_shift.id, "100.00", owner.id)

    with pytest.raises(ShiftError):
        shift_service.close_shift(open_shift.id, "100.00", owner.id)
    with pytest.raises(ShiftError):
        shift_service.record_deposit(open_shift.id, "10.00", owner.id)
    assert shift_service.get_open_shift(TERMINAL) is None


def test_ledger_trail_records_every_movement(db_session, owner, make_batch, make_sale, open_shift):
    make_sale([(make_batch(), 1)])
    shift_service.record_deposit(open_shift.id, "10.00", owner.id)
    shift_service.close_shift(open_shift.id, "130.00", owner.id)

    events = (
        db_session.query(ShiftEvent)
        .filter_by(shift_id=open_shift.id)
        .order_by(ShiftEvent.id)
        .all()
    )
    assert [event.event_type for event in events] == ["OPEN", "SALE", "DEPOSIT", "CLOSE"]


def test_summary_counts_sales_and_returns(owner, make_batch, make_sale, open_shift):
    sale = make_sale([(make_batch(price="15.00"), 2)])
    make_sale([(make_batch("Brufen 400mg", price="5.00"), 1)])
    return_service.process_return(
        sale.id, {sale.lines[0].line_key: 1},
        operator_id=owner.id, role=owner.role, terminal_code=TERMINAL,
    )

    summary = shift_service.shift_summary(open_shift)

    assert summary["sales_count"] == 2
    assert summary["sales_amount"] == "35.00"
    assert summary["returns_count"] == 1
    assert summary["available_balance"] == "20.00"
    assert len(summary["events"]) == 4
