# Overview: Operator records and the per-request operator context.

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import Operator
from ..permissions import KNOWN_ROLES, role_has_permission


class OperatorError(Exception):
    """Raised for operator lookup and management errors."""
    pass


@dataclass(frozen=True)
class OperatorContext:
    """Who is acting, passed explicitly into services instead of read from globals."""
    operator_id: int
    role: str
    terminal_code: str

    def can(self, permission_code: str) -> bool:
        return role_has_permission(self.role, permission_code)


def create_operator(name: str, role: str) -> Operator:
    if not name or not name.strip():
        raise OperatorError("name required")
    if role not in KNOWN_ROLES:
        raise OperatorError(f"Unknown role: {role!r}. Expected one of: {', '.join(sorted(KNOWN_ROLES))}")

    operator = Operator(name=name.strip(), role=role, is_active=True)
    db.session.add(operator)
    db.session.commit()
    return operator


def get_operator(operator_id: int) -> Operator | None:
    return db.session.get(Operator, operator_id)


def get_active_operator(operator_id: int) -> Operator | None:
    operator = get_operator(operator_id)
    if operator is None or not operator.is_active:
        return None
    return operator


def deactivate_operator(operator_id: int) -> Operator:
    operator = get_operator(operator_id)
    if not operator:
        raise OperatorError(f"Operator {operator_id} not found")
    operator.is_active = False
    db.session.commit()
    return operator


def list_operators(include_inactive: bool = False) -> list[Operator]:
    query = db.session.query(Operator)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(Operator.id).all()
