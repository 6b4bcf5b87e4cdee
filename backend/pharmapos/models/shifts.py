from __future__ import annotations

from ..extensions import db
from ..money import format_money, to_decimal
from pharmapos.time_utils import to_utc_z


SHIFT_STATUS_OPEN = "open"
SHIFT_STATUS_CLOSED = "closed"


class Shift(db.Model):
    """
    Cash-register session on one terminal.

    WHY: Refunds are paid out of what the shift has taken in. The running
    ledger (cash_total, card_total, cash_deposits, returns_total) bounds
    every refund authorized while the shift is open.

    LIFECYCLE:
    - open: accepting sales, deposits and returns
    - closed: drawer counted, variance recorded; never reopened

    CONCURRENCY: version_id is the optimistic lock. Two terminals refunding
    against the same shift cannot both commit from the same ledger reading.
    """
    __tablename__ = "shifts"
    __table_args__ = (
        db.Index("ix_shifts_terminal_status", "terminal_code", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    terminal_code = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=SHIFT_STATUS_OPEN, index=True)

    opened_by_operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=False)
    closed_by_operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=True)
    opened_at = db.Column(db.DateTime(timezone=True), nullable=False)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Running ledger
    opening_cash = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    cash_total = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    card_total = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    cash_deposits = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    returns_total = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Close-out
    expected_cash = db.Column(db.Numeric(12, 2), nullable=True)
    closing_cash = db.Column(db.Numeric(12, 2), nullable=True)
    variance = db.Column(db.Numeric(12, 2), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    events = db.relationship("ShiftEvent", backref="shift", order_by="ShiftEvent.id", lazy=True)
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.status == SHIFT_STATUS_OPEN

    @property
    def available_balance(self):
        return (
            to_decimal(self.cash_total)
            + to_decimal(self.card_total)
            + to_decimal(self.cash_deposits)
            - to_decimal(self.returns_total)
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "terminal_code": self.terminal_code,
            "status": self.status,
            "opened_by_operator_id": self.opened_by_operator_id,
            "closed_by_operator_id": self.closed_by_operator_id,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at),
            "opening_cash": format_money(self.opening_cash),
            "cash_total": format_money(self.cash_total),
            "card_total": format_money(self.card_total),
            "cash_deposits": format_money(self.cash_deposits),
            "returns_total": format_money(self.returns_total),
            "available_balance": format_money(self.available_balance),
            "expected_cash": format_money(self.expected_cash) if self.expected_cash is not None else None,
            "closing_cash": format_money(self.closing_cash) if self.closing_cash is not None else None,
            "variance": format_money(self.variance) if self.variance is not None else None,
            "notes": self.notes,
            "version_id": self.version_id,
        }


class ShiftEvent(db.Model):
    """
    Append-only audit trail of shift ledger movements.

    EVENT TYPES:
    - OPEN, CLOSE: session boundaries (amount = counted cash)
    - SALE: sale booked into cash_total or card_total
    - DEPOSIT: cash added to the drawer
    - RETURN: refund paid out
    """
    __tablename__ = "shift_events"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=False, index=True)
    event_type = db.Column(db.String(16), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    payment_method = db.Column(db.String(16), nullable=True)
    reason = db.Column(db.String(255), nullable=True)
    operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True)
    return_id = db.Column(db.Integer, db.ForeignKey("returns.id"), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shift_id": self.shift_id,
            "event_type": self.event_type,
            "amount": format_money(self.amount),
            "payment_method": self.payment_method,
            "reason": self.reason,
            "operator_id": self.operator_id,
            "sale_id": self.sale_id,
            "return_id": self.return_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }
