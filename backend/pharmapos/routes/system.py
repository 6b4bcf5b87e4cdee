# backend/pharmapos/routes/system.py
"""
System endpoints: health and the calling operator's permissions.

Health confirms the database answers and reports the terminal this process
serves. The permissions listing lets a client hide actions the role lacks.
"""

import time
from flask import Blueprint, current_app, g
from ..decorators import require_operator
from ..extensions import db
from ..models import Batch, Operator, Shift
from ..models.shifts import SHIFT_STATUS_OPEN
from ..permissions import (
    PermissionCategory,
    get_permission_definition,
    get_permissions_by_category,
)
from pharmapos.time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        batch_count = db.session.query(Batch).count()
        operator_count = db.session.query(Operator).filter_by(is_active=True).count()
        open_shifts = db.session.query(Shift).filter_by(status=SHIFT_STATUS_OPEN).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "batches": batch_count,
                "active_operators": operator_count,
                "open_shifts": open_shifts,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: Database reachable
    - 503: Database check failed
    """
    database_health = check_database_health()
    http_status = 200 if database_health["status"] == "healthy" else 503

    response = {
        "status": database_health["status"],
        "timestamp": utcnow().isoformat() + "Z",
        "terminal_code": current_app.config["TERMINAL_CODE"],
        "checks": {
            "database": database_health,
        }
    }

    return response, http_status


@system_bp.get("/permissions")
@require_operator
def my_permissions():
    """
    Permissions granted to the identified operator's role, grouped by category.

    Returns:
    - 200: {operator_id, role, permissions: [...], by_category: {...}}
    """
    context = g.operator_context
    by_category = {}
    for category in (
        PermissionCategory.CATALOG,
        PermissionCategory.SALES,
        PermissionCategory.RETURNS,
        PermissionCategory.SHIFTS,
        PermissionCategory.ADMIN,
    ):
        granted = [perm[0] for perm in get_permissions_by_category(category) if context.can(perm[0])]
        if granted:
            by_category[category] = [get_permission_definition(code) for code in granted]

    return {
        "operator_id": context.operator_id,
        "role": context.role,
        "permissions": sorted(d["code"] for defs in by_category.values() for d in defs),
        "by_category": by_category,
    }, 200
