# Overview: Flask API routes for catalog lookups; parses input and returns JSON responses.

# backend/pharmapos/routes/catalog.py
"""
Catalog Lookup API Routes

The catalog is read-only here: batches are listed, searched and chosen for
the next cart item, never edited.

SECURITY:
- VIEW_CATALOG permission required for every route
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_operator, require_permission
from ..services import batch_selector, cart_service, catalog_service
from ..services.catalog_service import CatalogError
from ..services.cart_service import CartError
from ..validation import ValidationError, coerce_int


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")


@catalog_bp.get("/products")
@require_operator
@require_permission("VIEW_CATALOG")
def search_products_route():
    """
    Search products by name, generic name, barcode or internal code.

    Query params:
    - q: search term (optional; omitted lists everything)
    - limit: max products (default 50, max 200)
    """
    try:
        limit = coerce_int("limit", request.args.get("limit"), required=False) or 50
        limit = max(1, min(limit, 200))
        products = catalog_service.search_products(request.args.get("q"), limit=limit)
        return jsonify({"products": products}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to search products")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.get("/batches")
@require_operator
@require_permission("VIEW_CATALOG")
def list_batches_route():
    """List a product's batches in FEFO order (?product_name= or ?code=)."""
    product_name = (request.args.get("product_name") or "").strip()
    code = (request.args.get("code") or "").strip()
    if not product_name and not code:
        return jsonify({"error": "product_name or code required"}), 400

    if product_name:
        batches = catalog_service.list_batches(product_name)
    else:
        batches = catalog_service.find_by_code(code)
    return jsonify({"batches": [batch.to_dict() for batch in batches]}), 200


@catalog_bp.get("/batches/<int:batch_id>")
@require_operator
@require_permission("VIEW_CATALOG")
def get_batch_route(batch_id: int):
    batch = catalog_service.get_batch(batch_id)
    if not batch:
        return jsonify({"error": "Batch not found"}), 404
    return jsonify({"batch": batch.to_dict()}), 200


@catalog_bp.post("/select-batch")
@require_operator
@require_permission("VIEW_CATALOG")
def select_batch_route():
    """
    Ask which batch should supply the next item of a product.

    Request body:
    {
        "product_name": "Panadol 500mg",
        "cart_id": 3,               (optional; counts what the cart already holds)
        "manual_override_id": 12    (optional)
    }

    Returns:
        200: {"batch": {...}} or {"batch": null} when every batch is exhausted
    """
    try:
        data = request.get_json() or {}
        product_name = (data.get("product_name") or "").strip()
        if not product_name:
            return jsonify({"error": "product_name required"}), 400

        cart_id = coerce_int("cart_id", data.get("cart_id"), required=False)
        override_id = coerce_int("manual_override_id", data.get("manual_override_id"), required=False)
        cart = cart_service.require_cart(cart_id) if cart_id is not None else None

        batch = batch_selector.select_batch(product_name, cart=cart, manual_override_id=override_id)
        if batch is None:
            return jsonify({"batch": None, "available": "0"}), 200

        return jsonify({
            "batch": batch.to_dict(),
            "available": str(batch_selector.net_available(batch, cart).normalize()),
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except (CartError, CatalogError) as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to select batch")
        return jsonify({"error": "Internal server error"}), 500
