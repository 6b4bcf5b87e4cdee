# Overview: Flask API routes for returns operations; parses input and returns JSON responses.

# backend/pharmapos/routes/returns.py
"""
Return Processing API Routes

WHY: Let the counter return part or all of a sale and pay the refund out of
the open shift, subject to the operator's refund limits.

DESIGN:
- One request prices, authorizes and records the return
- A preview route prices a selection without writing anything
- Denials carry the rule that refused them so the screen can explain

SECURITY:
- PROCESS_RETURN permission required for creating/previewing returns
- VIEW_RETURNS permission required for history
- Refund ceilings are enforced by the refund authorizer, not here
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_operator, require_permission
from ..services import return_service, sale_service
from ..services.return_service import RefundDenied, ReturnError
from ..validation import (
    ValidationError,
    coerce_bool,
    coerce_int,
    parse_return_conditions,
    parse_return_selections,
)
from pharmapos.time_utils import parse_iso_datetime


returns_bp = Blueprint("returns", __name__, url_prefix="/api")


def _parse_return_body(data: dict):
    full = coerce_bool("full", data.get("full"))
    items = data.get("items")
    selections = None if full and not items else parse_return_selections(items)
    conditions = parse_return_conditions(items)
    return full, selections, conditions


# =============================================================================
# RETURN CREATION
# =============================================================================

@returns_bp.post("/sales/<int:sale_id>/returns")
@require_operator
@require_permission("PROCESS_RETURN")
def create_return_route(sale_id: int):
    """
    Return items from a sale and refund them.

    Request body:
    {
        "items": [
            {"line_key": "12:0", "quantity": 2, "condition": "sellable"}
        ],
        "full": false,                  (true returns everything still returnable)
        "reason": "customer_request",
        "notes": "Box unopened"         (optional)
    }

    Returns:
        201: Return recorded
        400: Invalid selection
        403: Refund denied (rule and reason in body)
        404: Sale not found
    """
    context = g.operator_context
    try:
        data = request.get_json() or {}
        full, selections, conditions = _parse_return_body(data)

        if not sale_service.get_sale(sale_id):
            return jsonify({"error": "Sale not found"}), 404

        return_doc = return_service.process_return(
            sale_id,
            selections,
            operator_id=context.operator_id,
            role=context.role,
            terminal_code=context.terminal_code,
            reason=data.get("reason") or "customer_request",
            notes=data.get("notes"),
            conditions=conditions,
            full=full,
        )
        sale = sale_service.get_sale(sale_id)
        return jsonify({
            "return": return_doc.to_dict(),
            "sale": sale.to_dict(include_lines=False),
        }), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except RefundDenied as e:
        current_app.logger.warning(
            "Refund denied: sale=%s operator=%s role=%s rule=%s reason=%s",
            sale_id, context.operator_id, context.role, e.decision.rule, e.decision.reason,
        )
        return jsonify({
            "error": "Refund denied",
            "rule": e.decision.rule,
            "reason": e.decision.reason,
        }), 403
    except ReturnError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to process return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.post("/sales/<int:sale_id>/returns/preview")
@require_operator
@require_permission("PROCESS_RETURN")
def preview_return_route(sale_id: int):
    """Price a return without recording it. Same body as creating one."""
    try:
        data = request.get_json() or {}
        full, selections, conditions = _parse_return_body(data)

        sale = sale_service.get_sale(sale_id)
        if not sale:
            return jsonify({"error": "Sale not found"}), 404

        chosen = return_service.full_return_selections(sale) if full else selections
        draft = return_service.build_return(
            sale,
            chosen,
            reason=data.get("reason") or "customer_request",
            notes=data.get("notes"),
            conditions=conditions,
        )
        return jsonify({"draft": draft.to_dict()}), 200

    except (ValidationError, ReturnError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to preview return")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# RETURN QUERIES
# =============================================================================

@returns_bp.get("/returns")
@require_operator
@require_permission("VIEW_RETURNS")
def list_returns_route():
    """
    Return history, newest first.

    Query params:
    - operator_id, shift_id: int (optional)
    - since: ISO datetime (optional)
    - limit: int (optional, default 50, max 200)
    """
    try:
        operator_id = coerce_int("operator_id", request.args.get("operator_id"), required=False)
        shift_id = coerce_int("shift_id", request.args.get("shift_id"), required=False)
        limit = coerce_int("limit", request.args.get("limit"), required=False) or 50
        try:
            since = parse_iso_datetime(request.args.get("since"))
        except ValueError:
            return jsonify({"error": "since must be an ISO datetime"}), 400

        returns = return_service.list_returns(
            operator_id=operator_id,
            shift_id=shift_id,
            since=since,
            limit=max(1, min(limit, 200)),
        )
        return jsonify({"returns": [r.to_dict() for r in returns]}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list returns")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("/returns/<int:return_id>")
@require_operator
@require_permission("VIEW_RETURNS")
def get_return_route(return_id: int):
    return_doc = return_service.get_return(return_id)
    if not return_doc:
        return jsonify({"error": "Return not found"}), 404
    return jsonify({"return": return_doc.to_dict()}), 200
