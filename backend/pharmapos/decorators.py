# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import current_app, request, jsonify, g

from .permissions import role_has_permission, validate_permission_code
from .services import operator_service
from .services.operator_service import OperatorContext
from .validation import ValidationError, coerce_int


OPERATOR_HEADER = "X-Operator-Id"
TERMINAL_HEADER = "X-Terminal-Code"


def _is_authenticated() -> bool:
    return hasattr(g, 'operator') and hasattr(g, 'operator_context')


def require_operator(f):
    """
    Identify the acting operator and terminal.

    Sets the following Flask g attributes:
    - g.operator: The active Operator row
    - g.operator_context: OperatorContext(operator_id, role, terminal_code)

    Returns 401 if the header is missing, malformed, or names an unknown or
    inactive operator.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get(OPERATOR_HEADER)
        if not raw:
            return jsonify({"error": "Operator identification required"}), 401

        try:
            operator_id = coerce_int(OPERATOR_HEADER, raw)
        except ValidationError:
            return jsonify({"error": "Invalid operator id"}), 401

        operator = operator_service.get_active_operator(operator_id)
        if not operator:
            return jsonify({"error": "Unknown or inactive operator"}), 401

        terminal_code = request.headers.get(TERMINAL_HEADER) or current_app.config["TERMINAL_CODE"]

        g.operator = operator
        g.operator_context = OperatorContext(
            operator_id=operator.id,
            role=operator.role,
            terminal_code=terminal_code.strip(),
        )
        return f(*args, **kwargs)

    return decorated_function


def require_permission(permission_code: str):
    """Require the operator's role to include a permission."""
    if not validate_permission_code(permission_code):
        raise ValueError(f"Unknown permission code: {permission_code}")

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_operator was called first
            if not _is_authenticated():
                return jsonify({"error": "Operator identification required"}), 401

            context = g.operator_context
            if not role_has_permission(context.role, permission_code):
                current_app.logger.warning(
                    "Permission denied: operator=%s role=%s permission=%s path=%s",
                    context.operator_id, context.role, permission_code, request.path,
                )
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": permission_code,
                    "message": f"Role '{context.role}' lacks {permission_code}",
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
