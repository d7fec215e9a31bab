# Overview: Flask API routes for the order workflow; parses input and returns JSON responses.

"""
Order routes.

SECURITY: All routes require authentication. Permissions come from the
operation policy table (permissions/policy.py).

Errors:
- 404 {"error": "Order not found"} for unknown ids
- 400 {"error", "details"} for payload, state and stock-check failures
- 500 {"error": "..."} for anything unexpected (logged server-side)
"""

from flask import Blueprint, request, current_app, g

from ..errors import ShipdeskError
from ..services import order_service
from ..time_utils import parse_iso_datetime, parse_range_end
from ..validation import ValidationError
from ..decorators import require_auth, require_json_object, require_permission


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _optional_id(payload: dict, key: str) -> int | None:
    value = payload.get(key)
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(details=[f"{key} must be an integer"])
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationError(details=[f"{key} must be an integer"])


def _dispatch_kwargs(payload: dict) -> dict:
    awb_number = payload.get("awbNumber")
    return {
        "courier_partner_id": _optional_id(payload, "courierPartnerId"),
        "courier_type": payload.get("courierType"),
        "awb_number": str(awb_number).strip() if awb_number not in (None, "") else None,
        "assigned_to": _optional_id(payload, "assignedTo"),
    }


def _date_arg(name: str, parse=parse_iso_datetime):
    try:
        return parse(request.args.get(name))
    except ValueError:
        raise ValidationError(details=[f"{name} must be an ISO-8601 date"])


@orders_bp.get("")
@require_auth
@require_permission("orders.list")
def list_orders_route():
    try:
        orders = order_service.list_orders(
            status=request.args.get("status"),
            payment_status=request.args.get("paymentStatus"),
            courier_type=request.args.get("courierType"),
            search=request.args.get("search"),
            from_date=_date_arg("fromDate"),
            to_date=_date_arg("toDate", parse_range_end),
        )
    except ShipdeskError as e:
        return e.to_dict(), e.status_code

    return {"items": [o.to_dict(include_items=False) for o in orders], "count": len(orders)}, 200


@orders_bp.post("")
@require_auth
@require_permission("orders.create")
@require_json_object
def create_order_route():
    payload = request.get_json(silent=True) or {}

    try:
        order = order_service.create_order(payload, actor_user_id=g.current_user.id)
    except ShipdeskError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create order")
        return {"error": "Failed to create order"}, 500

    return order.to_dict(), 201


@orders_bp.get("/<int:order_id>")
@require_auth
@require_permission("orders.view")
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
    except ShipdeskError as e:
        return e.to_dict(), e.status_code

    return order.to_dict(), 200


@orders_bp.get("/<int:order_id>/history")
@require_auth
@require_permission("orders.history")
def order_history_route(order_id: int):
    try:
        history = order_service.get_status_history(order_id)
    except ShipdeskError as e:
        return e.to_dict(), e.status_code

    return {"items": [h.to_dict() for h in history]}, 200


@orders_bp.post("/<int:order_id>/status")
@require_auth
@require_permission("orders.set_status")
@require_json_object
def set_status_route(order_id: int):
    payload = request.get_json(silent=True) or {}
    status = payload.get("status")
    if not status:
        return {"error": "Invalid payload", "details": ["status is required"]}, 400

    try:
        order = order_service.set_status(
            order_id,
            status,
            payload.get("comment"),
            actor_user_id=g.current_user.id,
        )
    except ShipdeskError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update status of order %s", order_id)
        return {"error": "Failed to update order status"}, 500

    return order.to_dict(), 200


@orders_bp.post("/<int:order_id>/dispatch")
@require_auth
@require_permission("orders.dispatch")
@require_json_object
def dispatch_route(order_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        order = order_service.dispatch(
            order_id,
            **_dispatch_kwargs(payload),
            actor_user_id=g.current_user.id,
        )
    except ShipdeskError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to dispatch order %s", order_id)
        return {"error": "Failed to dispatch order"}, 500

    return order.to_dict(), 200


@orders_bp.post("/<int:order_id>/replacement")
@require_auth
@require_permission("orders.replacement")
@require_json_object
def replacement_route(order_id: int):
    """
    Dispatch a replacement for a delivered order.

    Stock-check failures answer 400 with one details entry per missing SKU
    or short line; nothing is deducted in that case.
    """
    payload = request.get_json(silent=True) or {}

    try:
        order = order_service.dispatch_replacement(
            order_id,
            **_dispatch_kwargs(payload),
            actor_user_id=g.current_user.id,
        )
    except ShipdeskError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to dispatch replacement for order %s", order_id)
        return {"error": "Failed to dispatch replacement"}, 500

    return order.to_dict(), 200


@orders_bp.post("/bulk-status")
@require_auth
@require_permission("orders.bulk_status")
@require_json_object
def bulk_status_route():
    payload = request.get_json(silent=True) or {}
    updates = payload.get("updates")
    if not updates or not isinstance(updates, list):
        return {"error": "Updates array required"}, 400

    try:
        result = order_service.bulk_update_statuses(updates, actor_user_id=g.current_user.id)
    except Exception:
        current_app.logger.exception("Bulk status update failed")
        return {"error": "Failed to update order statuses"}, 500

    return result, 200
