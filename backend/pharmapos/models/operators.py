from __future__ import annotations

from ..extensions import db
from pharmapos.time_utils import to_utc_z


class Operator(db.Model):
    """
    A member of staff who rings up sales and processes returns.

    The role drives both route permissions and refund ceilings.
    """
    __tablename__ = "operators"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    role = db.Column(db.String(32), nullable=False, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
