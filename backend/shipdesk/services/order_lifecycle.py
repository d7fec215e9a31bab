# Overview: Order status state machine.

"""
Order lifecycle

STATE MACHINE:
    pending    -> dispatched, cancelled
    dispatched -> delivered, rto, cancelled
    delivered  -> dispatched (replacement), returned, refunded
    rto        -> dispatched (re-dispatch), returned, cancelled
    returned   -> refunded
    refunded   (terminal)
    cancelled  (terminal)

Re-applying the current status is allowed: it appends another history row
(e.g. a courier re-confirming "dispatched" with a new comment) and changes
nothing else.

Every status change is checked here before anything is written.
"""

from __future__ import annotations

from ..extensions import db
from ..errors import InvalidStateError
from ..models import Order, OrderStatusHistory
from ..time_utils import utcnow
from ..validation import ValidationError
from .audit_service import append_audit_log


ORDER_STATUSES = (
    "pending",
    "dispatched",
    "delivered",
    "rto",
    "returned",
    "refunded",
    "cancelled",
)

TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"dispatched", "cancelled"}),
    "dispatched": frozenset({"delivered", "rto", "cancelled"}),
    "delivered": frozenset({"dispatched", "returned", "refunded"}),
    "rto": frozenset({"dispatched", "returned", "cancelled"}),
    "returned": frozenset({"refunded"}),
    "refunded": frozenset(),
    "cancelled": frozenset(),
}


def validate_status(status: str) -> None:
    if status not in TRANSITIONS:
        raise ValidationError(
            details=[f"Invalid status '{status}'. Must be one of: {', '.join(ORDER_STATUSES)}"]
        )


def can_transition(from_status: str, to_status: str) -> bool:
    validate_status(from_status)
    validate_status(to_status)

    if from_status == to_status:
        return True
    return to_status in TRANSITIONS[from_status]


def require_transition(from_status: str, to_status: str) -> None:
    """Raise InvalidStateError unless from_status -> to_status is allowed."""
    if not can_transition(from_status, to_status):
        raise InvalidStateError(
            f"Cannot change order status from {from_status} to {to_status}",
            [f"Allowed from {from_status}: {', '.join(sorted(TRANSITIONS[from_status])) or 'none'}"],
        )


def is_terminal(status: str) -> bool:
    validate_status(status)
    return not TRANSITIONS[status]


def change_status(order: Order, new_status: str, comment: str | None, actor_user_id: int | None) -> OrderStatusHistory:
    """
    Validated status change on an already locked order.

    Appends one history row and an audit entry. Flushes, never commits: the
    calling workflow operation owns the transaction.
    """
    require_transition(order.status, new_status)

    old_status = order.status
    order.status = new_status
    order.updated_at = utcnow()

    entry = OrderStatusHistory(
        order_id=order.id,
        status=new_status,
        comment=comment,
        changed_by=actor_user_id,
    )
    db.session.add(entry)
    db.session.flush()

    append_audit_log(
        user_id=actor_user_id,
        action="status_change",
        module="orders",
        entity_type="order",
        entity_id=order.id,
        old_data={"status": old_status},
        new_data={"status": new_status, "comment": comment},
    )
    return entry
