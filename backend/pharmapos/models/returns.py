from __future__ import annotations

from ..extensions import db
from ..money import format_money
from pharmapos.time_utils import to_utc_z


RETURN_KIND_FULL = "full"
RETURN_KIND_PARTIAL = "partial"

RETURN_REASONS = (
    "customer_request",
    "wrong_item",
    "damaged",
    "expired",
    "defective",
    "other",
)

ITEM_CONDITIONS = ("sellable", "damaged", "expired")


class Return(db.Model):
    """
    Refund issued against a finalized sale.

    IMMUTABLE: written once, after the refund was authorized, in the same
    transaction that updates the sale's return bookkeeping and the shift
    ledger. Never edited or deleted.

    total_refund already includes the sale's global discount, applied once
    to the summed line refunds.
    """
    __tablename__ = "returns"
    __table_args__ = (
        db.UniqueConstraint("document_number", name="uq_returns_document_number"),
        db.Index("ix_returns_operator_created", "operator_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable document number (e.g., "R-000042")
    document_number = db.Column(db.String(32), nullable=False)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    kind = db.Column(db.String(16), nullable=False)  # full, partial

    reason = db.Column(db.String(32), nullable=False, default="customer_request")
    notes = db.Column(db.Text, nullable=True)

    total_refund = db.Column(db.Numeric(12, 2), nullable=False)

    operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=False)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    items = db.relationship(
        "ReturnLine",
        backref="return_doc",
        order_by="ReturnLine.id",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_number": self.document_number,
            "sale_id": self.sale_id,
            "kind": self.kind,
            "reason": self.reason,
            "notes": self.notes,
            "total_refund": format_money(self.total_refund),
            "operator_id": self.operator_id,
            "shift_id": self.shift_id,
            "created_at": to_utc_z(self.created_at),
            "items": [item.to_dict() for item in self.items],
        }


class ReturnLine(db.Model):
    """Quantity returned from one sale line, with the refund it produced."""
    __tablename__ = "return_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("returns.id"), nullable=False, index=True)
    sale_line_id = db.Column(db.Integer, db.ForeignKey("sale_lines.id"), nullable=False, index=True)
    line_key = db.Column(db.String(32), nullable=False)

    quantity_returned = db.Column(db.Integer, nullable=False)
    unit_price_used = db.Column(db.Numeric(12, 4), nullable=False)
    # Before the sale-level global discount
    refund_amount = db.Column(db.Numeric(12, 2), nullable=False)

    reason = db.Column(db.String(32), nullable=True)
    condition = db.Column(db.String(16), nullable=False, default="sellable")

    sale_line = db.relationship("SaleLine")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "line_key": self.line_key,
            "sale_line_id": self.sale_line_id,
            "product_name": self.sale_line.product_name if self.sale_line else None,
            "quantity_returned": self.quantity_returned,
            "unit_price_used": str(self.unit_price_used),
            "refund_amount": format_money(self.refund_amount),
            "reason": self.reason,
            "condition": self.condition,
        }
