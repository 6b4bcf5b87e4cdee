from __future__ import annotations

from ..extensions import db
from ..money import to_decimal
from pharmapos.time_utils import to_utc_z, utcnow


class Batch(db.Model):
    """
    One physical lot of a product.

    The same product name may appear on several batches, each with its own
    expiry date, stock and price. Stock is counted in packs and may be
    fractional once single units have been sold out of a pack.

    Read-only to the sales engine: checkout and returns never write here.
    """
    __tablename__ = "batches"
    __table_args__ = (
        # FEFO lookups: product name then expiry
        db.Index("ix_batches_product_expiry", "product_name", "expiry_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_name = db.Column(db.String(200), nullable=False)
    generic_name = db.Column(db.String(200), nullable=True)
    category = db.Column(db.String(100), nullable=True, index=True)

    barcode = db.Column(db.String(64), nullable=True, index=True)
    internal_code = db.Column(db.String(64), nullable=True, index=True)

    stock = db.Column(db.Numeric(12, 4), nullable=False, default=0)  # packs
    price = db.Column(db.Numeric(12, 2), nullable=False)  # per pack
    cost_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    units_per_pack = db.Column(db.Integer, nullable=False, default=1)
    max_discount_percent = db.Column(db.Numeric(5, 1), nullable=False, default=10)

    expiry_date = db.Column(db.Date, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def is_expired(self, today=None) -> bool:
        """A lot is unsellable from its expiry date onward."""
        today = today or utcnow().date()
        return self.expiry_date <= today

    @property
    def pack_size(self) -> int:
        return self.units_per_pack if self.units_per_pack and self.units_per_pack > 1 else 1

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_name": self.product_name,
            "generic_name": self.generic_name,
            "category": self.category,
            "barcode": self.barcode,
            "internal_code": self.internal_code,
            "stock": str(to_decimal(self.stock).normalize()),
            "price": f"{to_decimal(self.price):.2f}",
            "cost_price": f"{to_decimal(self.cost_price):.2f}",
            "units_per_pack": self.pack_size,
            "max_discount_percent": str(self.max_discount_percent),
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "is_expired": self.is_expired(),
            "created_at": to_utc_z(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<Batch {self.id} {self.product_name} exp={self.expiry_date}>"
