from __future__ import annotations

from ..extensions import db
from pharmapos.time_utils import to_utc_z


class Cart(db.Model):
    """
    In-progress order (one POS tab).

    Mutable until checkout, after which its lines are frozen into a Sale and
    the cart is emptied for the next customer.

    DISCOUNTS: global_discount_percent and per-line discounts are mutually
    exclusive; cart_service enforces it on every write.
    """
    __tablename__ = "carts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=True)
    terminal_code = db.Column(db.String(32), nullable=True, index=True)
    operator_id = db.Column(db.Integer, db.ForeignKey("operators.id"), nullable=True)

    customer_name = db.Column(db.String(120), nullable=True)
    customer_code = db.Column(db.String(64), nullable=True)

    global_discount_percent = db.Column(db.Numeric(5, 1), nullable=False, default=0)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    lines = db.relationship(
        "CartLine",
        backref="cart",
        order_by="CartLine.position",
        cascade="all, delete-orphan",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "terminal_code": self.terminal_code,
            "operator_id": self.operator_id,
            "customer_name": self.customer_name,
            "customer_code": self.customer_code,
            "global_discount_percent": str(self.global_discount_percent),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
        }


class CartLine(db.Model):
    """
    One batch in one counting mode.

    Identity is (cart, batch, is_unit_mode): packs and loose units of the same
    batch are separate lines. quantity counts packs or units depending on mode.
    """
    __tablename__ = "cart_lines"
    __table_args__ = (
        db.UniqueConstraint("cart_id", "batch_id", "is_unit_mode", name="uq_cart_lines_batch_mode"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cart_id = db.Column(db.Integer, db.ForeignKey("carts.id"), nullable=False, index=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("batches.id"), nullable=False)

    # Insertion order; becomes the sale line position at checkout
    position = db.Column(db.Integer, nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    is_unit_mode = db.Column(db.Boolean, nullable=False, default=False)
    line_discount_percent = db.Column(db.Numeric(5, 1), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    batch = db.relationship("Batch")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cart_id": self.cart_id,
            "batch_id": self.batch_id,
            "position": self.position,
            "quantity": self.quantity,
            "is_unit_mode": self.is_unit_mode,
            "line_discount_percent": str(self.line_discount_percent),
        }
