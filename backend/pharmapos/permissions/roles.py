# Overview: Default permission sets per operator role.

from .definitions import PERMISSION_DEFINITIONS

_ALL = [perm[0] for perm in PERMISSION_DEFINITIONS]

_MANAGER = [code for code in _ALL if code != "MANAGE_OPERATORS"]

DEFAULT_ROLE_PERMISSIONS = {
    "owner": list(_ALL),
    "admin": list(_ALL),
    "manager": _MANAGER,
    "pharmacist": [
        "VIEW_CATALOG",
        "CREATE_SALE", "APPLY_DISCOUNT", "CHECKOUT_SALE", "VIEW_SALES",
        "PROCESS_RETURN", "VIEW_RETURNS",
        "VIEW_SHIFT",
    ],
    "senior_cashier": [
        "VIEW_CATALOG",
        "CREATE_SALE", "APPLY_DISCOUNT", "CHECKOUT_SALE", "VIEW_SALES",
        "VIEW_RETURNS",
        "VIEW_SHIFT", "OPEN_SHIFT", "CLOSE_SHIFT", "CASH_DEPOSIT",
    ],
    "cashier": [
        "VIEW_CATALOG",
        "CREATE_SALE", "CHECKOUT_SALE", "VIEW_SALES",
        "PROCESS_RETURN",
        "VIEW_SHIFT", "OPEN_SHIFT",
    ],
    "delivery": [
        "VIEW_SALES",
    ],
}

KNOWN_ROLES = frozenset(DEFAULT_ROLE_PERMISSIONS)
