"""
Tests for batch selection (FEFO with manual override).
"""

from pharmapos.services import batch_selector, cart_service


def test_picks_soonest_expiry_first(make_batch):
    make_batch(expiry_days=300)
    soonest = make_batch(expiry_days=30)
    make_batch(expiry_days=90)

    assert batch_selector.select_batch("Panadol 500mg").id == soonest.id


def test_equal_expiry_prefers_lower_id(make_batch):
    first = make_batch(expiry_days=60)
    make_batch(expiry_days=60)

    assert batch_selector.select_batch("Panadol 500mg").id == first.id


def test_skips_batch_exhausted_by_cart(make_batch, cart):
    soonest = make_batch(stock=1, expiry_days=30)
    later = make_batch(stock=5, expiry_days=90)

    cart_service.add_line(cart, soonest)

    assert batch_selector.select_batch("Panadol 500mg", cart=cart).id == later.id


def test_unit_lines_claim_fractional_packs(make_batch, cart):
    soonest = make_batch(stock=1, units_per_pack=10, expiry_days=30)
    later = make_batch(stock=5, units_per_pack=10, expiry_days=90)

    cart_service.add_line(cart, soonest, is_unit_mode=True)
    cart_service.set_quantity(cart, soonest.id, 5, is_unit_mode=True)
    # Half a pack left on the soonest batch
    assert batch_selector.select_batch("Panadol 500mg", cart=cart).id == soonest.id

    cart_service.set_quantity(cart, soonest.id, 10, is_unit_mode=True)
    assert batch_selector.select_batch("Panadol 500mg", cart=cart).id == later.id


def test_manual_override_wins_when_in_stock(make_batch):
    make_batch(expiry_days=30)
    later = make_batch(expiry_days=90)

    chosen = batch_selector.select_batch("Panadol 500mg", manual_override_id=later.id)

    assert chosen.id == later.id


def test_exhausted_override_falls_back_to_fefo(make_batch):
    soonest = make_batch(expiry_days=30)
    empty = make_batch(stock=0, expiry_days=90)

    chosen = batch_selector.select_batch("Panadol 500mg", manual_override_id=empty.id)

    assert chosen.id == soonest.id


def test_override_for_another_product_is_ignored(make_batch):
    soonest = make_batch(expiry_days=30)
    other = make_batch("Brufen 400mg", expiry_days=10)

    chosen = batch_selector.select_batch("Panadol 500mg", manual_override_id=other.id)

    assert chosen.id == soonest.id


def test_none_when_every_batch_exhausted(make_batch, cart):
    only = make_batch(stock=1)
    make_batch(stock=0, expiry_days=400)
    cart_service.add_line(cart, only)

    assert batch_selector.select_batch("Panadol 500mg", cart=cart) is None
    assert batch_selector.select_batch("Unknown product") is None


def test_selection_writes_nothing(make_batch, cart):
    batch = make_batch(stock=3)

    batch_selector.select_batch("Panadol 500mg", cart=cart)

    assert cart.lines == []
    assert batch.stock == 3


def test_expired_batch_is_never_selected(make_batch):
    make_batch("Amoxil 500mg", expiry_days=-3)
    fresh = make_batch("Amoxil 500mg", expiry_days=90)

    assert batch_selector.select_batch("Amoxil 500mg").id == fresh.id


def test_batch_expiring_today_is_expired(make_batch):
    make_batch("Amoxil 500mg", expiry_days=0)

    assert batch_selector.select_batch("Amoxil 500mg") is None


def test_override_cannot_pick_expired_batch(make_batch):
    expired = make_batch("Amoxil 500mg", expiry_days=-3)
    fresh = make_batch("Amoxil 500mg", expiry_days=90)

    chosen = batch_selector.select_batch("Amoxil 500mg", manual_override_id=expired.id)

    assert chosen.id == fresh.id
