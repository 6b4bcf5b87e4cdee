# Overview: Read-only catalog lookups over inventory batches.

from __future__ import annotations

from datetime import date

from ..extensions import db
from ..models import Batch
from ..money import to_decimal


class CatalogError(Exception):
    """Raised for catalog lookup errors."""
    pass


def list_batches(product_name: str) -> list[Batch]:
    """All batches of a product, soonest expiry first (FEFO order)."""
    return (
        db.session.query(Batch)
        .filter(Batch.product_name == product_name)
        .order_by(Batch.expiry_date.asc(), Batch.id.asc())
        .all()
    )


def get_batch(batch_id: int) -> Batch | None:
    return db.session.get(Batch, batch_id)


def require_batch(batch_id: int) -> Batch:
    batch = get_batch(batch_id)
    if not batch:
        raise CatalogError(f"Batch {batch_id} not found")
    return batch


def find_by_code(code: str) -> list[Batch]:
    """Batches whose barcode or internal code matches exactly, FEFO order."""
    return (
        db.session.query(Batch)
        .filter((Batch.barcode == code) | (Batch.internal_code == code))
        .order_by(Batch.expiry_date.asc(), Batch.id.asc())
        .all()
    )


def search_products(term: str | None = None, limit: int = 50) -> list[dict]:
    """
    Product-level view of the catalog: one entry per product name with its
    batches in FEFO order and total stock.
    """
    query = db.session.query(Batch)
    if term:
        like = f"%{term.strip()}%"
        query = query.filter(
            Batch.product_name.ilike(like)
            | Batch.generic_name.ilike(like)
            | (Batch.barcode == term.strip())
            | (Batch.internal_code == term.strip())
        )
    batches = query.order_by(Batch.product_name.asc(), Batch.expiry_date.asc(), Batch.id.asc()).all()

    products: dict[str, dict] = {}
    for batch in batches:
        entry = products.get(batch.product_name)
        if entry is None:
            if len(products) >= limit:
                break
            entry = products[batch.product_name] = {
                "product_name": batch.product_name,
                "total_stock": to_decimal(0),
                "batches": [],
            }
        entry["total_stock"] += to_decimal(batch.stock)
        entry["batches"].append(batch.to_dict())

    result = []
    for entry in products.values():
        entry["total_stock"] = str(entry["total_stock"].normalize())
        result.append(entry)
    return result


def create_batch(
    product_name: str,
    *,
    stock,
    price,
    expiry_date: date,
    units_per_pack: int = 1,
    cost_price=0,
    max_discount_percent=10,
    category: str | None = None,
    barcode: str | None = None,
    internal_code: str | None = None,
    generic_name: str | None = None,
) -> Batch:
    """
    Register a batch. Used for seeding only; catalog maintenance lives
    outside the sales engine.
    """
    if not product_name or not product_name.strip():
        raise CatalogError("product_name required")
    if units_per_pack is None or int(units_per_pack) < 1:
        raise CatalogError("units_per_pack must be at least 1")
    if to_decimal(stock) < 0:
        raise CatalogError("stock cannot be negative")
    if to_decimal(price) < 0:
        raise CatalogError("price cannot be negative")

    batch = Batch(
        product_name=product_name.strip(),
        generic_name=generic_name,
        category=category,
        barcode=barcode,
        internal_code=internal_code,
        stock=to_decimal(stock),
        price=to_decimal(price),
        cost_price=to_decimal(cost_price),
        units_per_pack=int(units_per_pack),
        max_discount_percent=to_decimal(max_discount_percent),
        expiry_date=expiry_date,
    )
    db.session.add(batch)
    db.session.commit()
    return batch
