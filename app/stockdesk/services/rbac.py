"""Role to permission lookup.

Roles are a small fixed set and each maps to a static permission list. The
lookup is enforced server-side by ``require_permission``.
"""

PERMISSIONS = [
    ("VIEW_DASHBOARD", "View the POS dashboard"),
    ("VIEW_INVENTORY", "View inventory levels"),
    ("MANAGE_INVENTORY", "Adjust inventory levels"),
    ("MANAGE_STOCK_IN", "Receive stock"),
    ("MANAGE_STOCK_OUT", "Issue stock"),
    ("VIEW_REPORTS", "View reports"),
    ("MANAGE_USERS", "Manage users"),
    ("MANAGE_SETTINGS", "Manage business settings"),
    ("VIEW_SETTINGS", "View business settings"),
    ("PROCESS_SALES", "Process sales"),
    ("VIEW_SALES_HISTORY", "View transaction history"),
    ("VOID_TRANSACTIONS", "Void transactions"),
    ("APPLY_DISCOUNTS", "Apply discounts to sales"),
    ("VIEW_PRODUCTS", "View the product catalog"),
    ("MANAGE_PRODUCTS", "Create, update and delete products"),
    ("VIEW_CUSTOMERS", "View customers"),
    ("MANAGE_CUSTOMERS", "Create, update and delete customers"),
    ("OPEN_REGISTER", "Open the cash drawer"),
    ("CLOSE_REGISTER", "Close the cash drawer"),
    ("PERFORM_PAYOUTS", "Pay out or add cash to the drawer"),
]

ALL_PERMISSIONS = [code for code, _description in PERMISSIONS]

ROLE_PERMISSIONS: dict[str, list[str]] = {
    "SUPERADMIN": ALL_PERMISSIONS,
    "ADMIN": ALL_PERMISSIONS,
    "MANAGER": [code for code in ALL_PERMISSIONS if code != "MANAGE_USERS"],
    "CASHIER": [
        "PROCESS_SALES",
        "VIEW_SALES_HISTORY",
        "VOID_TRANSACTIONS",
        "APPLY_DISCOUNTS",
        "VIEW_PRODUCTS",
        "VIEW_CUSTOMERS",
        "MANAGE_CUSTOMERS",
        "OPEN_REGISTER",
        "CLOSE_REGISTER",
        "PERFORM_PAYOUTS",
        "VIEW_REPORTS",
        "VIEW_DASHBOARD",
        "VIEW_INVENTORY",
        "VIEW_SETTINGS",
    ],
    "WAREHOUSE": [
        "VIEW_DASHBOARD",
        "VIEW_INVENTORY",
        "MANAGE_INVENTORY",
        "MANAGE_STOCK_IN",
        "MANAGE_STOCK_OUT",
        "VIEW_PRODUCTS",
        "MANAGE_PRODUCTS",
        "VIEW_REPORTS",
        "VIEW_SETTINGS",
    ],
}

ROLES = tuple(ROLE_PERMISSIONS.keys())


def normalize_role(role: str | None) -> str:
    return (role or "").strip().upper()


def permissions_for_role(role: str | None) -> list[str]:
    return list(ROLE_PERMISSIONS.get(normalize_role(role), []))


def has_permission(role: str | None, permission_key: str) -> bool:
    return permission_key in ROLE_PERMISSIONS.get(normalize_role(role), [])
