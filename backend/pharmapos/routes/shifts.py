# Overview: Flask API routes for shift (register session) operations; parses input and returns JSON responses.

# backend/pharmapos/routes/shifts.py
"""
Shift API Routes

WHY: Refunds are paid from the open shift's takings, so the counter needs
to open, top up, inspect and close shifts.

SECURITY:
- OPEN_SHIFT / CLOSE_SHIFT / CASH_DEPOSIT for ledger writes
- VIEW_SHIFT for reports
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_operator, require_permission
from ..services import shift_service
from ..services.shift_service import ShiftError
from ..validation import ValidationError, coerce_amount


shifts_bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")


@shifts_bp.post("/open")
@require_operator
@require_permission("OPEN_SHIFT")
def open_shift_route():
    """
    Open a shift on the caller's terminal.

    Request body:
    {
        "opening_cash": "200.00"    (optional, default 0)
    }

    Returns:
        201: Shift opened
        400: Terminal already has an open shift
    """
    try:
        data = request.get_json(silent=True) or {}
        opening_cash = coerce_amount("opening_cash", data.get("opening_cash"), required=False) or 0
        context = g.operator_context
        shift = shift_service.open_shift(context.terminal_code, context.operator_id, opening_cash)
        return jsonify({"shift": shift.to_dict()}), 201
    except (ValidationError, ShiftError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to open shift")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.get("/current")
@require_operator
@require_permission("VIEW_SHIFT")
def current_shift_route():
    """The caller's terminal's open shift, as an X-report."""
    shift = shift_service.get_open_shift(g.operator_context.terminal_code)
    if not shift:
        return jsonify({"error": "No open shift"}), 404
    return jsonify({"shift": shift_service.shift_summary(shift)}), 200


@shifts_bp.get("/<int:shift_id>")
@require_operator
@require_permission("VIEW_SHIFT")
def get_shift_route(shift_id: int):
    shift = shift_service.get_shift(shift_id)
    if not shift:
        return jsonify({"error": "Shift not found"}), 404
    return jsonify({"shift": shift_service.shift_summary(shift)}), 200


@shifts_bp.post("/<int:shift_id>/deposits")
@require_operator
@require_permission("CASH_DEPOSIT")
def deposit_route(shift_id: int):
    """
    Add cash to the drawer.

    Request body:
    {
        "amount": "100.00",
        "reason": "Change float"    (optional)
    }
    """
    try:
        data = request.get_json() or {}
        amount = coerce_amount("amount", data.get("amount"), allow_zero=False)
        shift = shift_service.record_deposit(
            shift_id, amount, g.operator_context.operator_id, reason=data.get("reason")
        )
        return jsonify({"shift": shift.to_dict()}), 200
    except (ValidationError, ShiftError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to record deposit")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.post("/<int:shift_id>/close")
@require_operator
@require_permission("CLOSE_SHIFT")
def close_shift_route(shift_id: int):
    """
    Close a shift with the counted drawer cash.

    Request body:
    {
        "closing_cash": "1250.00",
        "notes": "..."              (optional)
    }

    Returns:
        200: Shift closed; expected_cash and variance recorded
        400: Invalid amount or shift already closed
    """
    try:
        data = request.get_json() or {}
        closing_cash = coerce_amount("closing_cash", data.get("closing_cash"))
        shift = shift_service.close_shift(
            shift_id, closing_cash, g.operator_context.operator_id, notes=data.get("notes")
        )
        return jsonify({"shift": shift.to_dict()}), 200
    except (ValidationError, ShiftError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to close shift")
        return jsonify({"error": "Internal server error"}), 500
