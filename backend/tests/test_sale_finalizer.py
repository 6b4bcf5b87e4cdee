"""
Tests for checkout: freezing prices, totals, and shift booking.
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from pharmapos.models import Sale, ShiftEvent
from pharmapos.services import cart_service, sale_service
from pharmapos.services.concurrency import run_with_retry
from pharmapos.services.sale_service import SaleError

TERMINAL = "T1"


def test_empty_cart_produces_no_sale(db_session, cart):
    assert sale_service.finalize(cart.id, "cash", terminal_code=TERMINAL) is None
    assert db_session.query(Sale).count() == 0


def test_unknown_payment_method_is_rejected(make_batch, cart):
    cart_service.add_line(cart, make_batch())

    with pytest.raises(SaleError):
        sale_service.finalize(cart.id, "cheque", terminal_code=TERMINAL)
    assert len(cart.lines) == 1


def test_sale_totals_match_cart(make_batch, make_sale):
    batch = make_batch(price="50.00")

    sale = make_sale([(batch, 2)], global_discount=10)

    assert sale.subtotal == Decimal("100.00")
    assert sale.total == Decimal("90.00")
    assert sale.net_total == Decimal("90.00")
    assert sale.global_discount_percent == Decimal("10.0")
    assert sale.status == "completed"
    assert sale.returned_quantities == {}


def test_lines_are_frozen_with_positional_keys(make_batch, make_sale):
    packs = make_batch(price="20.00", units_per_pack=10)
    other = make_batch("Brufen 400mg", price="15.00")

    sale = make_sale([(packs, 1), (packs, 5, True), (other, 2, False, 5)])

    assert [line.line_key for line in sale.lines] == [
        f"{packs.id}:0", f"{packs.id}:1", f"{other.id}:2",
    ]
    unit_line = sale.lines[1]
    assert unit_line.is_unit_mode is True
    assert unit_line.unit_price == Decimal("2.0000")
    assert unit_line.line_total == Decimal("10.00")
    assert sale.lines[2].line_discount_percent == Decimal("5.0")
    assert sale.lines[2].line_total == Decimal("28.50")
    assert sale.subtotal == Decimal("58.50")


def test_frozen_prices_ignore_later_catalog_changes(db_session, make_batch, make_sale):
    batch = make_batch(price="20.00")
    sale = make_sale([(batch, 1)])

    batch.price = Decimal("99.00")
    db_session.commit()

    assert sale_service.get_sale(sale.id).lines[0].unit_price == Decimal("20.0000")
    assert sale.total == Decimal("20.00")


def test_checkout_empties_the_cart(make_batch, cart):
    batch = make_batch()
    cart_service.add_line(cart, batch)
    cart_service.set_global_discount(cart, 5)

    sale = sale_service.finalize(cart.id, "cash", terminal_code=TERMINAL)

    assert sale is not None
    refreshed = cart_service.get_cart(cart.id)
    assert refreshed.lines == []
    assert refreshed.global_discount_percent == 0


def test_defaults_and_document_numbers(make_batch, make_sale):
    batch = make_batch()

    first = make_sale([(batch, 1)])
    second = make_sale([(batch, 1)])

    assert first.customer_name == "Guest Customer"
    assert first.document_number == "S-000001"
    assert second.document_number == "S-000002"


def test_cash_sale_books_into_open_shift(db_session, make_batch, make_sale, open_shift):
    sale = make_sale([(make_batch(price="25.00"), 2)])

    assert sale.shift_id == open_shift.id
    assert open_shift.cash_total == Decimal("50.00")
    assert open_shift.card_total == 0
    events = db_session.query(ShiftEvent).filter_by(shift_id=open_shift.id, event_type="SALE").all()
    assert [event.sale_id for event in events] == [sale.id]


def test_visa_is_booked_as_card(make_batch, make_sale, open_shift):
    sale = make_sale([(make_batch(price="25.00"), 1)], payment_method="visa")

    assert sale.payment_method == "card"
    assert open_shift.card_total == Decimal("25.00")
    assert open_shift.cash_total == 0


def test_sale_without_open_shift_is_unbooked(make_batch, make_sale):
    sale = make_sale([(make_batch(), 1)])

    assert sale.shift_id is None


def test_checkout_never_touches_stock(make_batch, make_sale):
    batch = make_batch(stock=4)

    make_sale([(batch, 3)])

    assert batch.stock == Decimal("4")


def test_taken_document_number_is_retried(app, monkeypatch, make_batch, make_sale, cart):
    make_sale([(make_batch(), 1)])
    cart_service.add_line(cart, make_batch("Brufen 400mg"))
    monkeypatch.setitem(app.config, "CONCURRENCY_RETRY_ATTEMPTS", 3)

    # First attempt picks the number another checkout already holds
    numbers = []
    real_next = sale_service.next_document_number

    def _next(model, prefix, *args, **kwargs):
        numbers.append(real_next(model, prefix, *args, **kwargs) if numbers else "S-000001")
        return numbers[-1]

    monkeypatch.setattr(sale_service, "next_document_number", _next)

    sale = sale_service.finalize(cart.id, "cash", terminal_code=TERMINAL)

    assert numbers == ["S-000001", "S-000002"]
    assert sale.document_number == "S-000002"
    assert cart.lines == []


def test_other_integrity_errors_are_not_retried(app):
    calls = []

    def _op():
        calls.append(1)
        raise IntegrityError("INSERT", {}, Exception("NOT NULL constraint failed: sales.total"))

    with pytest.raises(IntegrityError):
        run_with_retry(_op, attempts=3)
    assert len(calls) == 1
