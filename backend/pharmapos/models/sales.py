from __future__ import annotations

from ..extensions import db
from ..money import format_money
from pharmapos.time_utils import to_utc_z


SALE_STATUS_COMPLETED = "completed"
SALE_STATUS_PARTIALLY_RETURNED = "partially_returned"
SALE_STATUS_RETURNED = "returned"


class Sale(db.Model):
    """
    Finalized sale (immutable except for return bookkeeping).

    WHY: Receipts and refunds must be computed from what the customer
    actually paid, never from live catalog prices. Lines carry frozen unit
    prices and discounts.

    RETURN BOOKKEEPING (written only by return_service, in one transaction):
    - returned_quantities: line_key -> cumulative quantity returned
    - net_total: total minus every refund issued so far
    - status: completed -> partially_returned -> returned
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("document_number", name="uq_sales_document_number"),
        db.Index("ix_sales_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable document number (e.g., "S-000123")
    document_number = db.Column(db.String(32), nullable=False)

    status = db.Column(db.String(24), nullable=False, default=SALE_STATUS_COMPLETED, index=True)
    payment_method = db.Column(db.String(16), nullable=False)  # cash, card

    customer_name = db.Column(db.String(120), nullable=False, default="Guest Customer")
    customer_code = db.Column(db.String(64), nullable=True)

    global_discount_percent = db.Column(db.Numeric(5, 1), nullable=False, default=0)
    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    total = db.Column(db.Numeric(12, 2), nullable=False)
    net_total = db.Column(db.Numeric(12, 2), nullable=False)

    returned_quantities = db.Column(db.JSON, nullable=False, default=dict)

    # Attribution
    operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=True, index=True)
    terminal_code = db.Column(db.String(32), nullable=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=True, index=True)

    # Business time of the sale (explicit, compared against shift windows)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "SaleLine",
        backref="sale",
        order_by="SaleLine.position",
        cascade="all, delete-orphan",
        lazy=True,
    )
    return_log = db.relationship(
        "Return",
        backref="sale",
        order_by="Return.id",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def line_by_key(self, line_key: str) -> "SaleLine | None":
        for line in self.lines:
            if line.line_key == line_key:
                return line
        return None

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "document_number": self.document_number,
            "status": self.status,
            "payment_method": self.payment_method,
            "customer_name": self.customer_name,
            "customer_code": self.customer_code,
            "global_discount_percent": str(self.global_discount_percent),
            "subtotal": format_money(self.subtotal),
            "total": format_money(self.total),
            "net_total": format_money(self.net_total),
            "returned_quantities": dict(self.returned_quantities or {}),
            "return_ids": [r.id for r in self.return_log],
            "operator_id": self.operator_id,
            "terminal_code": self.terminal_code,
            "shift_id": self.shift_id,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class SaleLine(db.Model):
    """
    Frozen copy of a cart line.

    unit_price is the effective price of one counted item (pack, or one unit
    of a pack) at the moment of sale.
    """
    __tablename__ = "sale_lines"
    __table_args__ = (
        db.UniqueConstraint("sale_id", "position", name="uq_sale_lines_position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False)

    batch_id = db.Column(db.Integer, db.ForeignKey("batches.id"), nullable=False)
    product_name = db.Column(db.String(200), nullable=False)
    expiry_date = db.Column(db.Date, nullable=True)

    is_unit_mode = db.Column(db.Boolean, nullable=False, default=False)
    units_per_pack = db.Column(db.Integer, nullable=False, default=1)
    quantity = db.Column(db.Integer, nullable=False)

    pack_price = db.Column(db.Numeric(12, 2), nullable=False)
    unit_price = db.Column(db.Numeric(12, 4), nullable=False)
    line_discount_percent = db.Column(db.Numeric(5, 1), nullable=False, default=0)
    line_total = db.Column(db.Numeric(12, 2), nullable=False)

    @property
    def line_key(self) -> str:
        return f"{self.batch_id}:{self.position}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "line_key": self.line_key,
            "position": self.position,
            "batch_id": self.batch_id,
            "product_name": self.product_name,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "is_unit_mode": self.is_unit_mode,
            "units_per_pack": self.units_per_pack,
            "quantity": self.quantity,
            "pack_price": format_money(self.pack_price),
            "unit_price": str(self.unit_price),
            "line_discount_percent": str(self.line_discount_percent),
            "line_total": format_money(self.line_total),
        }
