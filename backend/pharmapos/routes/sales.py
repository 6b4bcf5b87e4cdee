# Overview: Flask API routes for sales history; parses input and returns JSON responses.

# backend/pharmapos/routes/sales.py
from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_operator, require_permission
from ..services import return_service, sale_service
from ..validation import ValidationError, coerce_int
from pharmapos.time_utils import parse_iso_datetime


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_operator
@require_permission("VIEW_SALES")
def list_sales_route():
    """
    Sales history, newest first.

    Query params:
    - shift_id: int (optional)
    - customer_code: str (optional)
    - since: ISO datetime (optional)
    - limit: int (optional, default 50, max 200)
    """
    try:
        shift_id = coerce_int("shift_id", request.args.get("shift_id"), required=False)
        limit = coerce_int("limit", request.args.get("limit"), required=False) or 50
        try:
            since = parse_iso_datetime(request.args.get("since"))
        except ValueError:
            return jsonify({"error": "since must be an ISO datetime"}), 400

        sales = sale_service.list_sales(
            shift_id=shift_id,
            customer_code=request.args.get("customer_code"),
            since=since,
            limit=max(1, min(limit, 200)),
        )
        return jsonify({"sales": [sale.to_dict(include_lines=False) for sale in sales]}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_operator
@require_permission("VIEW_SALES")
def get_sale_route(sale_id: int):
    sale = sale_service.get_sale(sale_id)
    if not sale:
        return jsonify({"error": "Sale not found"}), 404
    return jsonify({"sale": sale.to_dict()}), 200


@sales_bp.get("/<int:sale_id>/returnable")
@require_operator
@require_permission("VIEW_SALES")
def returnable_lines_route(sale_id: int):
    """
    What can still be returned from a sale.

    Lines with nothing left to return are omitted. "full_refund" is what a
    full return of the remainder would pay out right now.
    """
    sale = sale_service.get_sale(sale_id)
    if not sale:
        return jsonify({"error": "Sale not found"}), 404

    lines = return_service.compute_available_lines(sale)
    full_refund = None
    if lines:
        draft = return_service.build_return(sale, return_service.full_return_selections(sale))
        full_refund = f"{draft.total_refund:.2f}"

    return jsonify({
        "sale_id": sale.id,
        "status": sale.status,
        "net_total": sale.to_dict(include_lines=False)["net_total"],
        "lines": [line.to_dict() for line in lines],
        "full_refund": full_refund,
    }), 200
