# Overview: Order status workflow: creation, status changes, dispatch, replacement and bulk courier updates.

"""
Order workflow

- Every status change goes through order_lifecycle.change_status, which checks
  the transition table before touching the row and appends exactly one
  OrderStatusHistory row.
- Each public operation is one unit of work wrapped in run_with_retry: it
  either commits everything it did or nothing.
- First dispatch does not touch stock. Only a replacement dispatch ships new
  goods out of the warehouse and therefore writes outward movements.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..errors import InvalidStateError, NotFoundError, ShipdeskError, StockCheckError
from ..models import (
    COURIER_TYPES,
    MOVEMENT_OUTWARD,
    PAYMENT_METHODS,
    PAYMENT_STATUSES,
    CourierPartner,
    Order,
    OrderItem,
    OrderStatusHistory,
    ProductVariant,
    User,
)
from ..time_utils import utcnow
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from .audit_service import append_audit_log
from .concurrency import lock_for_update, run_with_retry
from .delivery_service import create_delivery
from .document_service import next_order_number
from .order_lifecycle import change_status, validate_status
from .stock_service import apply_movement


BULK_DEFAULT_COMMENT = "Status updated via bulk import"

ORDER_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "customerName": "customer_name",
        "customerEmail": "customer_email",
        "customerPhone": "customer_phone",
        "shippingAddress": "shipping_address",
        "shippingCity": "shipping_city",
        "shippingState": "shipping_state",
        "shippingZip": "shipping_zip",
        "shippingCountry": "shipping_country",
        "subtotal": "subtotal",
        "shippingCost": "shipping_cost",
        "discount": "discount",
        "taxes": "taxes",
        "totalAmount": "total_amount",
        "paymentMethod": "payment_method",
        "notes": "notes",
    },
    required_on_create=frozenset({"customerName", "shippingAddress", "paymentMethod", "totalAmount"}),
    choices={"paymentMethod": PAYMENT_METHODS},
)

ORDER_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "productVariantId": "product_variant_id",
        "sku": "sku",
        "productName": "product_name",
        "color": "color",
        "size": "size",
        "quantity": "quantity",
        "price": "price",
    },
    required_on_create=frozenset({"sku", "quantity", "price"}),
)


def _lock_order(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if order is None:
        raise NotFoundError("Order")
    return order


# -- reads --

def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError("Order")
    return order


def list_orders(
    *,
    status: str | None = None,
    payment_status: str | None = None,
    courier_type: str | None = None,
    search: str | None = None,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    limit: int = 500,
) -> list[Order]:
    if status:
        validate_status(status)
    if payment_status and payment_status not in PAYMENT_STATUSES:
        raise ValidationError(details=[f"paymentStatus must be one of: {', '.join(sorted(PAYMENT_STATUSES))}"])

    q = db.session.query(Order)
    if status:
        q = q.filter(Order.status == status)
    if payment_status:
        q = q.filter(Order.payment_status == payment_status)
    if courier_type:
        q = q.filter(Order.courier_type == courier_type)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(
            Order.order_number.ilike(like),
            Order.customer_name.ilike(like),
            Order.customer_phone.ilike(like),
        ))
    if from_date is not None:
        q = q.filter(Order.created_at >= from_date)
    if to_date is not None:
        q = q.filter(Order.created_at <= to_date)
    return q.order_by(Order.id.desc()).limit(limit).all()


def get_status_history(order_id: int) -> list[OrderStatusHistory]:
    get_order(order_id)
    return (
        db.session.query(OrderStatusHistory)
        .filter_by(order_id=order_id)
        .order_by(OrderStatusHistory.id.desc())
        .all()
    )


# -- creation --

def _build_items(raw_items) -> list[OrderItem]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError(details=["items must contain at least one item"])

    errors: list[str] = []
    items: list[OrderItem] = []
    for i, raw in enumerate(raw_items):
        try:
            patch = validate_payload(model=OrderItem, payload=raw, policy=ORDER_ITEM_POLICY, partial=False)
        except ValidationError as e:
            errors.extend(f"items[{i}]: {d}" for d in (e.details or [e.message]))
            continue

        if patch["quantity"] <= 0:
            errors.append(f"items[{i}]: quantity must be > 0")
            continue

        variant = None
        if patch.get("product_variant_id") is not None:
            variant = db.session.get(ProductVariant, patch["product_variant_id"])
        if variant is None:
            variant = db.session.query(ProductVariant).filter_by(sku=patch["sku"]).first()
        patch["product_variant_id"] = variant.id if variant else None

        if not patch.get("product_name"):
            if variant is None:
                errors.append(f"items[{i}]: productName is required")
                continue
            patch["product_name"] = variant.product.name
            patch.setdefault("color", variant.color)
            patch.setdefault("size", variant.size)

        items.append(OrderItem(**patch))

    if errors:
        raise ValidationError(details=errors)
    return items


def create_order(payload: dict, *, actor_user_id: int | None) -> Order:
    """
    Create a pending order with its items and the initial history row.

    The order number (ORD-<year>-<seq>) is allocated inside the same
    transaction, so a failed creation does not burn a number.
    """
    payload = dict(payload or {})
    raw_items = payload.pop("items", None)

    errors: list[str] = []
    patch: dict = {}
    try:
        patch = validate_payload(model=Order, payload=payload, policy=ORDER_CREATE_POLICY, partial=False)
    except ValidationError as e:
        errors.extend(e.details or [e.message])
    try:
        items = _build_items(raw_items)
    except ValidationError as e:
        errors.extend(e.details)
    if errors:
        raise ValidationError(details=errors)

    def _op():
        order = Order(
            order_number=next_order_number(),
            status="pending",
            payment_status="pending",
            **patch,
        )
        order.items = list(items)
        db.session.add(order)
        db.session.flush()

        db.session.add(OrderStatusHistory(
            order_id=order.id,
            status="pending",
            comment="Order created",
            changed_by=actor_user_id,
        ))
        append_audit_log(
            user_id=actor_user_id,
            action="create",
            module="orders",
            entity_type="order",
            entity_id=order.id,
            new_data={"orderNumber": order.order_number, "totalAmount": str(order.total_amount)},
        )
        db.session.commit()
        return order

    return run_with_retry(_op)


# -- status changes --

def set_status(order_id: int, new_status: str, comment: str | None = None, *, actor_user_id: int | None) -> Order:
    """
    Move an order to new_status and append one history row. No other side
    effects. Re-applying the current status is allowed.
    """
    validate_status(new_status)

    def _op():
        order = _lock_order(order_id)
        change_status(order, new_status, comment, actor_user_id)
        db.session.commit()
        return order

    return run_with_retry(_op)


def _resolve_dispatch_target(
    courier_partner_id: int | None,
    courier_type: str | None,
    assigned_to: int | None,
) -> CourierPartner | None:
    """Validate courier fields before any write. Returns the courier partner (if any)."""
    if courier_type not in COURIER_TYPES:
        raise ValidationError(details=[f"courierType must be one of: {', '.join(sorted(COURIER_TYPES))}"])

    partner = None
    if courier_partner_id is not None:
        partner = db.session.get(CourierPartner, courier_partner_id)
        if partner is None:
            raise NotFoundError("Courier partner")
        if not partner.is_active:
            raise InvalidStateError(f"Courier partner {partner.name} is inactive")

    if assigned_to is not None and db.session.get(User, assigned_to) is None:
        raise NotFoundError("User")

    return partner


def _apply_courier_fields(order: Order, courier_partner_id, courier_type, awb_number, assigned_to) -> None:
    order.courier_partner_id = courier_partner_id
    order.courier_type = courier_type
    order.awb_number = awb_number
    order.assigned_to = assigned_to
    order.dispatch_date = utcnow()


def dispatch(
    order_id: int,
    *,
    courier_partner_id: int | None,
    courier_type: str,
    awb_number: str | None = None,
    assigned_to: int | None = None,
    actor_user_id: int | None,
) -> Order:
    """
    First dispatch (or re-dispatch after RTO) of an order.

    Persists the courier fields and dispatch date, moves the order to
    dispatched ("Order dispatched") and, for in-house couriers with an
    assignee, opens an InternalDelivery. Stock is not touched.
    """
    _resolve_dispatch_target(courier_partner_id, courier_type, assigned_to)

    def _op():
        order = _lock_order(order_id)
        if order.status not in ("pending", "rto"):
            raise InvalidStateError(
                "Order has already been dispatched" if order.status == "dispatched"
                else f"Cannot dispatch an order with status {order.status}"
            )

        _apply_courier_fields(order, courier_partner_id, courier_type, awb_number, assigned_to)
        change_status(order, "dispatched", "Order dispatched", actor_user_id)

        if courier_type == "in_house" and assigned_to:
            create_delivery(order, assigned_to, actor_user_id=actor_user_id)

        db.session.commit()
        return order

    return run_with_retry(_op)


def _check_replacement_stock(order: Order) -> list[tuple[ProductVariant, OrderItem]]:
    """
    Lock the variant behind every item and check stock for all of them.

    Every missing SKU and every insufficient line is collected before
    raising, so the caller sees the complete list in one response.
    """
    requested: dict[str, int] = {}
    for item in order.items:
        requested[item.sku] = requested.get(item.sku, 0) + item.quantity

    variants: dict[str, ProductVariant] = {}
    if requested:
        # Lock in id order so concurrent replacements cannot deadlock
        rows = lock_for_update(
            db.session.query(ProductVariant)
            .filter(ProductVariant.sku.in_(list(requested)))
            .order_by(ProductVariant.id.asc())
        ).all()
        variants = {v.sku: v for v in rows}

    missing_skus = [sku for sku in requested if sku not in variants]
    insufficient = [
        {"sku": sku, "requested": qty, "available": variants[sku].stock_quantity}
        for sku, qty in requested.items()
        if sku in variants and variants[sku].stock_quantity < qty
    ]
    if missing_skus or insufficient:
        raise StockCheckError(
            "Stock check failed for replacement",
            missing_skus=missing_skus,
            insufficient=insufficient,
        )

    return [(variants[item.sku], item) for item in order.items]


def dispatch_replacement(
    order_id: int,
    *,
    courier_partner_id: int | None,
    courier_type: str,
    awb_number: str | None = None,
    assigned_to: int | None = None,
    actor_user_id: int | None,
) -> Order:
    """
    Ship a replacement for a delivered order.

    All-or-nothing: stock checks, outward movements for every item, the
    status change, the new courier fields and the optional in-house delivery
    are one transaction. A failed stock check raises StockCheckError with
    one detail per missing SKU or short line and nothing is written.
    """
    partner = _resolve_dispatch_target(courier_partner_id, courier_type, assigned_to)
    if partner is not None:
        channel = partner.name
    else:
        channel = "in-house courier" if courier_type == "in_house" else "third-party courier"

    def _op():
        order = _lock_order(order_id)
        if order.status != "delivered":
            raise InvalidStateError(
                "Replacement can only be dispatched for delivered orders",
                [f"Order {order.order_number} is {order.status}"],
            )
        if not order.items:
            raise InvalidStateError(f"Order {order.order_number} has no items to replace")

        lines = _check_replacement_stock(order)

        reason = f"Replacement for order {order.order_number}"
        for variant, item in lines:
            apply_movement(
                variant,
                MOVEMENT_OUTWARD,
                item.quantity,
                actor_user_id=actor_user_id,
                order_id=order.id,
                reason=reason,
            )

        _apply_courier_fields(order, courier_partner_id, courier_type, awb_number, assigned_to)
        change_status(order, "dispatched", f"Replacement dispatched via {channel}", actor_user_id)

        if courier_type == "in_house" and assigned_to:
            create_delivery(order, assigned_to, actor_user_id=actor_user_id)

        append_audit_log(
            user_id=actor_user_id,
            action="replacement",
            module="orders",
            entity_type="order",
            entity_id=order.id,
            new_data={"channel": channel, "awbNumber": awb_number, "items": len(lines)},
        )

        db.session.commit()
        return order

    return run_with_retry(_op)


# -- bulk --

def _row_error_text(exc: ShipdeskError) -> str:
    if exc.details and exc.message == "Invalid payload":
        return "; ".join(exc.details)
    return exc.message


def bulk_update_statuses(updates: list[dict], *, actor_user_id: int | None) -> dict:
    """
    Apply courier status updates row by row.

    Each row is its own transaction: a bad row is recorded in errors and the
    rest carry on. successful + failed always equals len(updates).

    Row shape: {orderNumber, newStatus, awbNumber?, comment?}
    """
    result = {"successful": 0, "failed": 0, "errors": [], "updatedOrders": []}

    for row in updates:
        row = row if isinstance(row, dict) else {}
        order_number = row.get("orderNumber")

        def _op():
            if not order_number:
                raise ValidationError(details=["orderNumber is required"])
            new_status = row.get("newStatus")
            if not new_status:
                raise ValidationError(details=["newStatus is required"])
            validate_status(new_status)

            order = lock_for_update(db.session.query(Order).filter_by(order_number=order_number)).first()
            if order is None:
                raise NotFoundError("Order")

            awb_number = row.get("awbNumber")
            if awb_number and awb_number != order.awb_number:
                order.awb_number = awb_number

            change_status(order, new_status, row.get("comment") or BULK_DEFAULT_COMMENT, actor_user_id)
            db.session.commit()
            return {"orderNumber": order.order_number, "orderId": order.id, "status": order.status}

        try:
            updated = run_with_retry(_op)
        except ShipdeskError as e:
            result["failed"] += 1
            result["errors"].append({"orderNumber": order_number, "error": _row_error_text(e)})
            continue
        except Exception:
            current_app.logger.exception("Bulk status update failed for order %s", order_number)
            result["failed"] += 1
            result["errors"].append({"orderNumber": order_number, "error": "Failed to update order status"})
            continue

        result["successful"] += 1
        result["updatedOrders"].append(updated)

    append_audit_log(
        user_id=actor_user_id,
        action="bulk_update",
        module="orders",
        entity_type="order_status",
        new_data={
            "successful": result["successful"],
            "failed": result["failed"],
            "updatedOrders": [o["orderNumber"] for o in result["updatedOrders"]],
        },
    )
    db.session.commit()
    return result
