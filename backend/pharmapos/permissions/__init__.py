# Overview: Permission system package.
# Re-exports all public APIs.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    CATALOG_PERMISSIONS,
    SALES_PERMISSIONS,
    RETURN_PERMISSIONS,
    SHIFT_PERMISSIONS,
    ADMIN_PERMISSIONS,
)
from .roles import DEFAULT_ROLE_PERMISSIONS, KNOWN_ROLES
from .helpers import (
    get_all_permission_codes,
    get_permissions_by_category,
    get_permission_definition,
    validate_permission_code,
    role_has_permission,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "CATALOG_PERMISSIONS",
    "SALES_PERMISSIONS",
    "RETURN_PERMISSIONS",
    "SHIFT_PERMISSIONS",
    "ADMIN_PERMISSIONS",
    "DEFAULT_ROLE_PERMISSIONS",
    "KNOWN_ROLES",
    "get_all_permission_codes",
    "get_permissions_by_category",
    "get_permission_definition",
    "validate_permission_code",
    "role_has_permission",
]
