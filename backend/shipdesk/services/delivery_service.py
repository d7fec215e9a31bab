# Overview: In-house deliveries: assignment, courier status updates and COD collection.

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from flask import current_app

from ..extensions import db
from ..errors import InvalidStateError, NotFoundError
from ..models import DELIVERY_STATUSES, PAYMENT_MODES, DeliveryEvent, InternalDelivery, Order
from ..money import to_decimal, to_money_str
from ..time_utils import utcnow
from ..validation import MAX_MONEY, ValidationError
from .audit_service import append_audit_log
from .concurrency import lock_for_update, run_with_retry
from .order_lifecycle import change_status


def _event_title(status: str) -> str:
    # out_for_delivery -> "Out For Delivery"
    return status.replace("_", " ").title()


def _add_event(delivery: InternalDelivery, event: str, comment: str | None, *, location: str | None = None,
               actor_user_id: int | None) -> DeliveryEvent:
    entry = DeliveryEvent(
        delivery_id=delivery.id,
        event=event,
        comment=comment,
        location=location,
        created_by=actor_user_id,
    )
    db.session.add(entry)
    return entry


def _lock_delivery(delivery_id: int) -> InternalDelivery:
    delivery = lock_for_update(db.session.query(InternalDelivery).filter_by(id=delivery_id)).first()
    if delivery is None:
        raise NotFoundError("Delivery")
    return delivery


def _lock_order(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if order is None:
        raise NotFoundError("Order")
    return order


def create_delivery(order: Order, assigned_to: int, *, actor_user_id: int | None) -> InternalDelivery:
    """
    Open an in-house delivery for order in status assigned, with an
    "Assigned" event. Flushes inside the caller's transaction.
    """
    delivery = InternalDelivery(order_id=order.id, assigned_to=assigned_to, status="assigned")
    db.session.add(delivery)
    db.session.flush()

    _add_event(delivery, "Assigned", "Delivery assigned to staff", actor_user_id=actor_user_id)
    db.session.flush()
    return delivery


def get_delivery(delivery_id: int) -> InternalDelivery:
    delivery = db.session.get(InternalDelivery, delivery_id)
    if delivery is None:
        raise NotFoundError("Delivery")
    return delivery


def list_deliveries(*, status: str | None = None, assigned_to: int | None = None) -> list[InternalDelivery]:
    q = db.session.query(InternalDelivery)
    if status:
        q = q.filter(InternalDelivery.status == status)
    if assigned_to is not None:
        q = q.filter(InternalDelivery.assigned_to == assigned_to)
    return q.order_by(InternalDelivery.id.desc()).all()


def update_delivery_status(
    delivery_id: int,
    status: str,
    *,
    comment: str | None = None,
    location: str | None = None,
    failure_reason: str | None = None,
    actor_user_id: int | None,
) -> InternalDelivery:
    """
    Courier progress update for an in-house delivery.

    delivered moves the order to delivered; failed and rto move it to rto.
    Delivery, event and order change commit together, so an order that
    cannot make the transition leaves the delivery untouched too.
    Payment collection has its own operation (collect_payment).
    """
    if status not in DELIVERY_STATUSES:
        raise ValidationError(details=[f"status must be one of: {', '.join(sorted(DELIVERY_STATUSES))}"])
    if status == "payment_collected":
        raise ValidationError(details=["Use collect-payment to record a payment collection"])

    def _op():
        delivery = _lock_delivery(delivery_id)
        delivery.status = status
        delivery.updated_at = utcnow()
        if status == "delivered":
            delivery.delivered_at = utcnow()
        elif status in ("failed", "rto"):
            delivery.failure_reason = failure_reason

        _add_event(delivery, _event_title(status), comment, location=location, actor_user_id=actor_user_id)

        if status == "delivered":
            order = _lock_order(delivery.order_id)
            change_status(order, "delivered", "Delivered by in-house courier", actor_user_id)
            order.delivery_date = delivery.delivered_at
        elif status in ("failed", "rto"):
            order = _lock_order(delivery.order_id)
            reason = failure_reason or "Delivery failed"
            change_status(order, "rto", reason, actor_user_id)
            order.rto_reason = reason

        db.session.commit()
        return delivery

    return run_with_retry(_op)


def _parse_amount(value) -> Decimal:
    if isinstance(value, bool) or value is None or value == "":
        raise ValidationError(details=["amountCollected is required"])
    try:
        amount = to_decimal(value)
    except (InvalidOperation, ValueError):
        raise ValidationError(details=["amountCollected must be a number"])
    if amount < 0:
        raise ValidationError(details=["amountCollected must be >= 0"])
    if amount > MAX_MONEY:
        raise ValidationError(details=[f"amountCollected cannot exceed {MAX_MONEY}"])
    return amount


def collect_payment(
    delivery_id: int,
    amount_collected,
    payment_mode: str,
    *,
    actor_user_id: int | None,
) -> InternalDelivery:
    """
    Record cash/UPI/QR collection for a COD delivery and mark the order paid.

    The amount is stored as collected; a mismatch with the order total is
    logged, not rejected.
    """
    amount = _parse_amount(amount_collected)
    if payment_mode not in PAYMENT_MODES:
        raise ValidationError(details=[f"paymentMode must be one of: {', '.join(sorted(PAYMENT_MODES))}"])

    def _op():
        delivery = _lock_delivery(delivery_id)
        if delivery.status == "payment_collected":
            raise InvalidStateError("Payment already collected for this delivery")

        now = utcnow()
        delivery.status = "payment_collected"
        delivery.amount_collected = amount
        delivery.payment_mode = payment_mode
        delivery.payment_collected_at = now
        delivery.updated_at = now

        _add_event(
            delivery,
            "Payment Collected",
            f"{payment_mode.upper()}: {to_money_str(amount)}",
            actor_user_id=actor_user_id,
        )

        order = _lock_order(delivery.order_id)
        old_payment_status = order.payment_status
        order.payment_status = "paid"
        order.updated_at = now

        if amount != to_decimal(order.total_amount):
            current_app.logger.warning(
                "Collected %s for order %s with total %s",
                to_money_str(amount), order.order_number, to_money_str(order.total_amount),
            )

        append_audit_log(
            user_id=actor_user_id,
            action="collect_payment",
            module="deliveries",
            entity_type="internal_delivery",
            entity_id=delivery.id,
            old_data={"paymentStatus": old_payment_status},
            new_data={
                "paymentStatus": "paid",
                "amountCollected": to_money_str(amount),
                "paymentMode": payment_mode,
            },
        )

        db.session.commit()
        return delivery

    return run_with_retry(_op)
