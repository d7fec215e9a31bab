# Overview: Permission system package.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    ORDER_PERMISSIONS,
    INVENTORY_PERMISSIONS,
    DELIVERY_PERMISSIONS,
    PARTNER_PERMISSIONS,
    REPORT_PERMISSIONS,
    DEFAULT_ROLE_PERMISSIONS,
)
from .policy import OPERATION_PERMISSIONS, permission_for

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "ORDER_PERMISSIONS",
    "INVENTORY_PERMISSIONS",
    "DELIVERY_PERMISSIONS",
    "PARTNER_PERMISSIONS",
    "REPORT_PERMISSIONS",
    "DEFAULT_ROLE_PERMISSIONS",
    "OPERATION_PERMISSIONS",
    "permission_for",
]
