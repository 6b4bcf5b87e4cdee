# Overview: Flask API routes for cart (POS tab) editing and checkout; parses input and returns JSON responses.

# backend/pharmapos/routes/carts.py
"""
Cart API Routes

WHY: The POS screen edits a cart one click at a time. Each route applies a
single edit and answers with the full cart read model so the screen can
redraw from one response.

DESIGN:
- A line is addressed by batch_id plus is_unit_mode (default pack mode)
- Rejected edits (over stock, bad quantity, unknown line) are not errors:
  200 with "applied": false and the unchanged cart
- Checkout freezes the cart into a Sale and empties it

SECURITY:
- CREATE_SALE for building carts
- APPLY_DISCOUNT for line and global discounts
- CHECKOUT_SALE for checkout
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_operator, require_permission
from ..services import cart_service, catalog_service, sale_service
from ..services.cart_service import CartError
from ..services.catalog_service import CatalogError
from ..services.sale_service import SaleError
from ..validation import ValidationError, coerce_bool, coerce_int, coerce_percent


carts_bp = Blueprint("carts", __name__, url_prefix="/api/carts")


def _cart_response(cart, applied: bool = True, status: int = 200):
    return jsonify({"applied": applied, "cart": cart_service.cart_read_model(cart)}), status


# =============================================================================
# CART LIFECYCLE
# =============================================================================

@carts_bp.post("")
@require_operator
@require_permission("CREATE_SALE")
def create_cart_route():
    """
    Open a new cart (POS tab).

    Request body (all optional):
    {
        "name": "Tab 2",
        "customer_name": "Mona",
        "customer_code": "C-104"
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        context = g.operator_context
        cart = cart_service.create_cart(
            terminal_code=context.terminal_code,
            operator_id=context.operator_id,
            name=data.get("name"),
            customer_name=data.get("customer_name"),
            customer_code=data.get("customer_code"),
        )
        return _cart_response(cart, status=201)
    except Exception:
        current_app.logger.exception("Failed to create cart")
        return jsonify({"error": "Internal server error"}), 500


@carts_bp.get("/<int:cart_id>")
@require_operator
@require_permission("CREATE_SALE")
def get_cart_route(cart_id: int):
    cart = cart_service.get_cart(cart_id)
    if not cart:
        return jsonify({"error": "Cart not found"}), 404
    return _cart_response(cart)


@carts_bp.patch("/<int:cart_id>")
@require_operator
@require_permission("CREATE_SALE")
def set_customer_route(cart_id: int):
    """
    Attach a customer to the cart; checkout copies it onto the sale.

    Request body:
    {
        "customer_name": "Mona",    (null or "" clears it)
        "customer_code": "C-104"    (optional)
    }
    """
    try:
        cart = cart_service.require_cart(cart_id)
        data = request.get_json() or {}
        if "customer_name" not in data and "customer_code" not in data:
            return jsonify({"error": "customer_name or customer_code is required"}), 400
        for key in ("customer_name", "customer_code"):
            if data.get(key) is not None and not isinstance(data[key], str):
                return jsonify({"error": f"{key} must be a string"}), 400

        cart = cart_service.set_customer(cart, data.get("customer_name"), data.get("customer_code"))
        return _cart_response(cart)
    except CartError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to set cart customer")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# LINES
# =============================================================================

@carts_bp.post("/<int:cart_id>/lines")
@require_operator
@require_permission("CREATE_SALE")
def add_line_route(cart_id: int):
    """
    Add one item to the cart.

    Request body, either by product (batch chosen FEFO unless overridden):
    {
        "product_name": "Panadol 500mg",
        "is_unit_mode": false,
        "manual_override_id": 12    (optional)
    }
    or by batch:
    {
        "batch_id": 12,
        "is_unit_mode": true
    }
    """
    try:
        cart = cart_service.require_cart(cart_id)
        data = request.get_json() or {}
        is_unit_mode = coerce_bool("is_unit_mode", data.get("is_unit_mode"))
        batch_id = coerce_int("batch_id", data.get("batch_id"), required=False)

        if batch_id is not None:
            batch = catalog_service.require_batch(batch_id)
            line = cart_service.add_line(cart, batch, is_unit_mode)
        else:
            product_name = (data.get("product_name") or "").strip()
            if not product_name:
                return jsonify({"error": "product_name or batch_id required"}), 400
            override_id = coerce_int("manual_override_id", data.get("manual_override_id"), required=False)
            line = cart_service.add_product(cart, product_name, is_unit_mode, override_id)

        return _cart_response(cart, applied=line is not None)

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except (CartError, CatalogError) as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to add cart line")
        return jsonify({"error": "Internal server error"}), 500


@carts_bp.patch("/<int:cart_id>/lines/<int:batch_id>")
@require_operator
@require_permission("CREATE_SALE")
def update_line_route(cart_id: int, batch_id: int):
    """
    Edit one line. Exactly one action per request.

    Request body:
    {
        "is_unit_mode": false,              (which line; default pack line)
        "quantity": 3                       (set quantity)
        | "delta": -1                       (+/- buttons)
        | "toggle_unit_mode": true          (flip pack/unit counting)
        | "discount_percent": 5             (line discount, APPLY_DISCOUNT)
    }
    """
    try:
        cart = cart_service.require_cart(cart_id)
        data = request.get_json() or {}
        is_unit_mode = coerce_bool("is_unit_mode", data.get("is_unit_mode"))

        actions = [key for key in ("quantity", "delta", "toggle_unit_mode", "discount_percent") if key in data]
        if len(actions) != 1:
            return jsonify({"error": "Exactly one of quantity, delta, toggle_unit_mode, discount_percent required"}), 400
        action = actions[0]

        if action == "quantity":
            # Non-integer or non-positive quantities are ignored like any other rejected edit
            quantity = data.get("quantity")
            applied = cart_service.set_quantity(cart, batch_id, quantity, is_unit_mode)
        elif action == "delta":
            delta = coerce_int("delta", data.get("delta"))
            applied = cart_service.adjust_quantity(cart, batch_id, delta, is_unit_mode)
        elif action == "toggle_unit_mode":
            if not coerce_bool("toggle_unit_mode", data.get("toggle_unit_mode")):
                return jsonify({"error": "toggle_unit_mode must be true"}), 400
            applied = cart_service.toggle_unit_mode(cart, batch_id, is_unit_mode)
        else:
            if not g.operator_context.can("APPLY_DISCOUNT"):
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": "APPLY_DISCOUNT",
                }), 403
            percent = coerce_percent("discount_percent", data.get("discount_percent"))
            applied = cart_service.set_line_discount(cart, batch_id, percent, is_unit_mode) is not None

        return _cart_response(cart, applied=applied)

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CartError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update cart line")
        return jsonify({"error": "Internal server error"}), 500


@carts_bp.delete("/<int:cart_id>/lines/<int:batch_id>")
@require_operator
@require_permission("CREATE_SALE")
def remove_line_route(cart_id: int, batch_id: int):
    """Remove a line. ?is_unit_mode=true addresses the unit line."""
    try:
        cart = cart_service.require_cart(cart_id)
        is_unit_mode = coerce_bool("is_unit_mode", request.args.get("is_unit_mode"))
        applied = cart_service.remove_line(cart, batch_id, is_unit_mode)
        return _cart_response(cart, applied=applied)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CartError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to remove cart line")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# DISCOUNT / CHECKOUT
# =============================================================================

@carts_bp.put("/<int:cart_id>/discount")
@require_operator
@require_permission("APPLY_DISCOUNT")
def set_global_discount_route(cart_id: int):
    """
    Set the order-level discount (clamped to 0-100).

    Request body:
    {
        "percent": 10
    }
    """
    try:
        cart = cart_service.require_cart(cart_id)
        data = request.get_json() or {}
        percent = coerce_percent("percent", data.get("percent"))
        cart_service.set_global_discount(cart, percent)
        return _cart_response(cart)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except CartError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to set cart discount")
        return jsonify({"error": "Internal server error"}), 500


@carts_bp.post("/<int:cart_id>/checkout")
@require_operator
@require_permission("CHECKOUT_SALE")
def checkout_route(cart_id: int):
    """
    Freeze the cart into a Sale.

    Request body:
    {
        "payment_method": "cash",       (cash | card | visa)
        "customer_name": "Mona",        (optional; default "Guest Customer")
        "customer_code": "C-104"        (optional)
    }

    Returns:
        201: Sale created, cart emptied
        200: Cart was empty; "sale": null and nothing written
        400: Unsupported payment method
        404: Cart not found
    """
    try:
        data = request.get_json() or {}
        context = g.operator_context
        sale = sale_service.finalize(
            cart_id,
            data.get("payment_method") or "cash",
            customer_name=data.get("customer_name"),
            customer_code=data.get("customer_code"),
            operator_id=context.operator_id,
            terminal_code=context.terminal_code,
        )
        if sale is None:
            return jsonify({"applied": False, "sale": None}), 200
        return jsonify({"applied": True, "sale": sale.to_dict()}), 201

    except SaleError as e:
        return jsonify({"error": str(e), **e.details}), 400
    except CartError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to check out cart")
        return jsonify({"error": "Internal server error"}), 500
