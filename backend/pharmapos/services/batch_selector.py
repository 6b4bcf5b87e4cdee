# Overview: Chooses which batch fulfils the next unit of a product (FEFO with manual override).

from __future__ import annotations

from decimal import Decimal

from ..models import Batch, Cart
from ..money import ZERO, pack_consumption, to_decimal
from . import catalog_service
from pharmapos.time_utils import utcnow


def committed_packs(cart: Cart | None, batch_id: int, exclude_line=None) -> Decimal:
    """
    Packs of a batch already held by the cart, across pack and unit lines.

    Unit lines count fractionally: 5 units of a 10-unit pack hold 0.5 packs.
    """
    if cart is None:
        return ZERO
    total = ZERO
    for line in cart.lines:
        if line.batch_id != batch_id or line is exclude_line:
            continue
        total += pack_consumption(line.quantity, line.batch.pack_size, line.is_unit_mode)
    return total


def net_available(batch: Batch, cart: Cart | None = None) -> Decimal:
    """Stock left on a batch once the cart's own claim is subtracted."""
    return to_decimal(batch.stock) - committed_packs(cart, batch.id)


def select_batch(
    product_name: str,
    cart: Cart | None = None,
    manual_override_id: int | None = None,
) -> Batch | None:
    """
    Pick the batch that should supply the next item of `product_name`.

    - A manual override wins if it names one of the product's batches and
      that batch still has net stock.
    - Otherwise the first batch in expiry order with net stock (FEFO).
    - Expired batches are never picked, not even by override.
    - None when every batch is exhausted; the caller must not add a line.

    Pure: reads the catalog and the cart, writes nothing.
    """
    today = utcnow().date()
    batches = [b for b in catalog_service.list_batches(product_name) if not b.is_expired(today)]

    if manual_override_id is not None:
        for batch in batches:
            if batch.id == manual_override_id and net_available(batch, cart) > 0:
                return batch

    for batch in batches:
        if net_available(batch, cart) > 0:
            return batch
    return None
