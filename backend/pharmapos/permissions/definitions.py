# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- CATALOG --

CATALOG_PERMISSIONS = [
    (
        "VIEW_CATALOG",
        "View Catalog",
        "Search products and view batches, stock and expiry",
        PermissionCategory.CATALOG,
    ),
]


# -- SALES --

SALES_PERMISSIONS = [
    (
        "CREATE_SALE",
        "Create Sale",
        "Open carts and add, edit or remove lines",
        PermissionCategory.SALES,
    ),
    (
        "APPLY_DISCOUNT",
        "Apply Discount",
        "Set line or global discounts on a cart",
        PermissionCategory.SALES,
    ),
    (
        "CHECKOUT_SALE",
        "Checkout Sale",
        "Finalize a cart into a sale",
        PermissionCategory.SALES,
    ),
    (
        "VIEW_SALES",
        "View Sales",
        "View sales history and sale details",
        PermissionCategory.SALES,
    ),
]


# -- RETURNS --

RETURN_PERMISSIONS = [
    (
        "PROCESS_RETURN",
        "Process Return",
        "Submit returns against finalized sales (subject to refund limits)",
        PermissionCategory.RETURNS,
    ),
    (
        "VIEW_RETURNS",
        "View Returns",
        "View return history",
        PermissionCategory.RETURNS,
    ),
]


# -- SHIFTS --

SHIFT_PERMISSIONS = [
    (
        "VIEW_SHIFT",
        "View Shift",
        "View the current shift and its ledger",
        PermissionCategory.SHIFTS,
    ),
    (
        "OPEN_SHIFT",
        "Open Shift",
        "Open a shift on a terminal",
        PermissionCategory.SHIFTS,
    ),
    (
        "CLOSE_SHIFT",
        "Close Shift",
        "Count the drawer and close a shift",
        PermissionCategory.SHIFTS,
    ),
    (
        "CASH_DEPOSIT",
        "Cash Deposit",
        "Record cash added to the drawer",
        PermissionCategory.SHIFTS,
    ),
]


# -- ADMIN --

ADMIN_PERMISSIONS = [
    (
        "MANAGE_OPERATORS",
        "Manage Operators",
        "Create and deactivate operators",
        PermissionCategory.ADMIN,
    ),
]


PERMISSION_DEFINITIONS = (
    CATALOG_PERMISSIONS
    + SALES_PERMISSIONS
    + RETURN_PERMISSIONS
    + SHIFT_PERMISSIONS
    + ADMIN_PERMISSIONS
)
