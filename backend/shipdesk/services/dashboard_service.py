# Overview: Headline counts for the back-office dashboard.

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import InternalDelivery, Order, Product, ProductVariant
from ..money import to_money_str
from .order_lifecycle import ORDER_STATUSES
from .stock_service import low_stock_condition


PENDING_DELIVERY_STATUSES = ("assigned", "out_for_delivery")
COMPLETED_DELIVERY_STATUSES = ("delivered", "payment_collected")
FAILED_DELIVERY_STATUSES = ("failed", "rto")


def _order_counts() -> dict:
    rows = db.session.query(Order.status, func.count(Order.id)).group_by(Order.status).all()
    by_status = {status: 0 for status in ORDER_STATUSES}
    by_status.update({status: int(count) for status, count in rows})
    return {"total": sum(by_status.values()), **by_status}


def _product_counts() -> dict:
    return {
        "total": db.session.query(func.count(Product.id)).scalar() or 0,
        "variants": db.session.query(func.count(ProductVariant.id)).scalar() or 0,
        "lowStock": db.session.query(func.count(ProductVariant.id)).filter(low_stock_condition()).scalar() or 0,
    }


def _delivery_counts() -> dict:
    rows = dict(
        db.session.query(InternalDelivery.status, func.count(InternalDelivery.id))
        .group_by(InternalDelivery.status)
        .all()
    )
    return {
        "total": sum(rows.values()),
        "pending": sum(rows.get(s, 0) for s in PENDING_DELIVERY_STATUSES),
        "completed": sum(rows.get(s, 0) for s in COMPLETED_DELIVERY_STATUSES),
        "failed": sum(rows.get(s, 0) for s in FAILED_DELIVERY_STATUSES),
    }


def _revenue() -> dict:
    """Paid vs. still-pending order value. Cancelled orders are left out of both."""
    rows = dict(
        db.session.query(Order.payment_status, func.coalesce(func.sum(Order.total_amount), 0))
        .filter(Order.status != "cancelled")
        .group_by(Order.payment_status)
        .all()
    )
    return {
        "total": to_money_str(Decimal(str(rows.get("paid", 0)))),
        "pending": to_money_str(Decimal(str(rows.get("pending", 0)))),
    }


def get_stats() -> dict:
    return {
        "orders": _order_counts(),
        "products": _product_counts(),
        "deliveries": _delivery_counts(),
        "revenue": _revenue(),
    }
