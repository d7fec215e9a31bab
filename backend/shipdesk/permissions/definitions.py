# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- ORDERS --

ORDER_PERMISSIONS = [
    (
        "VIEW_ORDERS",
        "View Orders",
        "View orders, items and status history",
        PermissionCategory.ORDERS,
    ),
    (
        "CREATE_ORDERS",
        "Create Orders",
        "Create new customer orders",
        PermissionCategory.ORDERS,
    ),
    (
        "DISPATCH_ORDERS",
        "Dispatch Orders",
        "Change order status, dispatch and dispatch replacements",
        PermissionCategory.ORDERS,
    ),
    (
        "MANAGE_COURIER_STATUS",
        "Manage Courier Status",
        "Apply bulk courier status updates",
        PermissionCategory.ORDERS,
    ),
]


# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    (
        "VIEW_INVENTORY",
        "View Inventory",
        "View stock levels and stock movements",
        PermissionCategory.INVENTORY,
    ),
    (
        "ADJUST_STOCK",
        "Adjust Stock",
        "Record inward, outward and adjustment movements",
        PermissionCategory.INVENTORY,
    ),
    (
        "VIEW_PRODUCTS",
        "View Products",
        "View products and variants",
        PermissionCategory.INVENTORY,
    ),
    (
        "CREATE_PRODUCTS",
        "Create Products",
        "Create products with variants",
        PermissionCategory.INVENTORY,
    ),
]


# -- DELIVERIES --

DELIVERY_PERMISSIONS = [
    (
        "VIEW_DELIVERIES",
        "View Deliveries",
        "View in-house deliveries",
        PermissionCategory.DELIVERIES,
    ),
    (
        "MANAGE_DELIVERIES",
        "Manage Deliveries",
        "Update in-house delivery status",
        PermissionCategory.DELIVERIES,
    ),
    (
        "COLLECT_PAYMENTS",
        "Collect Payments",
        "Record COD payment collection",
        PermissionCategory.DELIVERIES,
    ),
]


# -- PARTNERS --

PARTNER_PERMISSIONS = [
    (
        "VIEW_SUPPLIERS",
        "View Suppliers",
        "View suppliers stock is received from",
        PermissionCategory.PARTNERS,
    ),
    (
        "MANAGE_SUPPLIERS",
        "Manage Suppliers",
        "Create, update and deactivate suppliers",
        PermissionCategory.PARTNERS,
    ),
    (
        "VIEW_COURIERS",
        "View Couriers",
        "View courier partners",
        PermissionCategory.PARTNERS,
    ),
    (
        "MANAGE_COURIERS",
        "Manage Couriers",
        "Create, update and deactivate courier partners",
        PermissionCategory.PARTNERS,
    ),
]


# -- REPORTS --

REPORT_PERMISSIONS = [
    (
        "VIEW_DASHBOARD",
        "View Dashboard",
        "View order, stock, delivery and revenue totals",
        PermissionCategory.REPORTS,
    ),
]


PERMISSION_DEFINITIONS = (
    ORDER_PERMISSIONS
    + INVENTORY_PERMISSIONS
    + DELIVERY_PERMISSIONS
    + PARTNER_PERMISSIONS
    + REPORT_PERMISSIONS
)


# Roles created by `flask system init`, with their default permission codes
DEFAULT_ROLE_PERMISSIONS = {
    "admin": [code for code, _, _, _ in PERMISSION_DEFINITIONS],
    "warehouse": [
        "VIEW_ORDERS",
        "DISPATCH_ORDERS",
        "MANAGE_COURIER_STATUS",
        "VIEW_INVENTORY",
        "ADJUST_STOCK",
        "VIEW_PRODUCTS",
        "VIEW_DELIVERIES",
        "VIEW_SUPPLIERS",
        "MANAGE_SUPPLIERS",
        "VIEW_COURIERS",
        "VIEW_DASHBOARD",
    ],
    "support": [
        "VIEW_ORDERS",
        "CREATE_ORDERS",
        "VIEW_INVENTORY",
        "VIEW_PRODUCTS",
        "VIEW_DELIVERIES",
        "VIEW_COURIERS",
        "VIEW_DASHBOARD",
    ],
    "delivery": [
        "VIEW_ORDERS",
        "VIEW_DELIVERIES",
        "MANAGE_DELIVERIES",
        "COLLECT_PAYMENTS",
    ],
}
