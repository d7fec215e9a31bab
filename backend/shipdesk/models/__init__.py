from .auth import User, Role, RolePermission, SessionToken
from .catalog import (
    MOVEMENT_INWARD, MOVEMENT_OUTWARD, MOVEMENT_ADJUSTMENT, MOVEMENT_TYPES,
    Supplier, Product, ProductVariant, StockMovement,
)
from .orders import (
    PAYMENT_METHODS, PAYMENT_STATUSES, COURIER_TYPES,
    CourierPartner, Order, OrderItem, OrderStatusHistory, DocumentSequence,
)
from .deliveries import DELIVERY_STATUSES, PAYMENT_MODES, InternalDelivery, DeliveryEvent
from .audit import AuditLog

__all__ = [
    'User', 'Role', 'RolePermission', 'SessionToken',
    'MOVEMENT_INWARD', 'MOVEMENT_OUTWARD', 'MOVEMENT_ADJUSTMENT', 'MOVEMENT_TYPES',
    'Supplier', 'Product', 'ProductVariant', 'StockMovement',
    'PAYMENT_METHODS', 'PAYMENT_STATUSES', 'COURIER_TYPES',
    'CourierPartner', 'Order', 'OrderItem', 'OrderStatusHistory', 'DocumentSequence',
    'DELIVERY_STATUSES', 'PAYMENT_MODES', 'InternalDelivery', 'DeliveryEvent',
    'AuditLog',
]
