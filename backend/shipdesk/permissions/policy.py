# Overview: Declarative authorization policy.
#
# Every API operation is named here together with the permission it requires.
# Routes only declare the operation name (@require_permission("orders.dispatch"));
# nothing else in the code base checks permission codes.

from .definitions import PERMISSION_DEFINITIONS


OPERATION_PERMISSIONS = {
    # orders
    "orders.list": "VIEW_ORDERS",
    "orders.view": "VIEW_ORDERS",
    "orders.history": "VIEW_ORDERS",
    "orders.create": "CREATE_ORDERS",
    "orders.set_status": "DISPATCH_ORDERS",
    "orders.dispatch": "DISPATCH_ORDERS",
    "orders.replacement": "DISPATCH_ORDERS",
    "orders.bulk_status": "MANAGE_COURIER_STATUS",
    # stock ledger
    "stock.list_movements": "VIEW_INVENTORY",
    "stock.low_stock": "VIEW_INVENTORY",
    "stock.record_movement": "ADJUST_STOCK",
    "stock.batch_receive": "ADJUST_STOCK",
    # catalog
    "products.list": "VIEW_PRODUCTS",
    "products.view": "VIEW_PRODUCTS",
    "products.create": "CREATE_PRODUCTS",
    # deliveries
    "deliveries.list": "VIEW_DELIVERIES",
    "deliveries.view": "VIEW_DELIVERIES",
    "deliveries.update_status": "MANAGE_DELIVERIES",
    "deliveries.collect_payment": "COLLECT_PAYMENTS",
    # suppliers
    "suppliers.list": "VIEW_SUPPLIERS",
    "suppliers.view": "VIEW_SUPPLIERS",
    "suppliers.create": "MANAGE_SUPPLIERS",
    "suppliers.update": "MANAGE_SUPPLIERS",
    "suppliers.deactivate": "MANAGE_SUPPLIERS",
    # courier partners
    "couriers.list": "VIEW_COURIERS",
    "couriers.view": "VIEW_COURIERS",
    "couriers.create": "MANAGE_COURIERS",
    "couriers.update": "MANAGE_COURIERS",
    "couriers.deactivate": "MANAGE_COURIERS",
    # reporting
    "dashboard.stats": "VIEW_DASHBOARD",
}


def permission_for(operation: str) -> str:
    """
    Resolve the permission code guarding an operation.

    Raises KeyError for unknown operations so a typo in a route decorator fails
    at import time instead of silently allowing access.
    """
    return OPERATION_PERMISSIONS[operation]


def _check_policy_table() -> None:
    known = {code for code, _, _, _ in PERMISSION_DEFINITIONS}
    unknown = sorted(set(OPERATION_PERMISSIONS.values()) - known)
    if unknown:
        raise RuntimeError(f"Operation policy references undefined permissions: {', '.join(unknown)}")


_check_policy_table()
