# Overview: Flask API routes for in-house deliveries and COD collection.

"""
Delivery routes.

SECURITY: All routes require authentication.
- Reads require VIEW_DELIVERIES
- Status updates require MANAGE_DELIVERIES
- Payment collection requires COLLECT_PAYMENTS
"""

from flask import Blueprint, request, current_app, g

from ..errors import ShipdeskError
from ..services import delivery_service
from ..decorators import require_auth, require_json_object, require_permission


deliveries_bp = Blueprint("deliveries", __name__, url_prefix="/api/deliveries")


@deliveries_bp.get("")
@require_auth
@require_permission("deliveries.list")
def list_deliveries_route():
    assigned_to = request.args.get("assignedTo")
    if assigned_to not in (None, "") and not assigned_to.isdigit():
        return {"error": "Invalid payload", "details": ["assignedTo must be an integer"]}, 400

    deliveries = delivery_service.list_deliveries(
        status=request.args.get("status"),
        assigned_to=int(assigned_to) if assigned_to else None,
    )
    return {"items": [d.to_dict() for d in deliveries], "count": len(deliveries)}, 200


@deliveries_bp.get("/<int:delivery_id>")
@require_auth
@require_permission("deliveries.view")
def get_delivery_route(delivery_id: int):
    try:
        delivery = delivery_service.get_delivery(delivery_id)
    except ShipdeskError as e:
        return e.to_dict(), e.status_code

    return delivery.to_dict(), 200


@deliveries_bp.post("/<int:delivery_id>/status")
@require_auth
@require_permission("deliveries.update_status")
@require_json_object
def update_delivery_status_route(delivery_id: int):
    payload = request.get_json(silent=True) or {}
    status = payload.get("status")
    if not status:
        return {"error": "Invalid payload", "details": ["status is required"]}, 400

    try:
        delivery = delivery_service.update_delivery_status(
            delivery_id,
            status,
            comment=payload.get("comment"),
            location=payload.get("location"),
            failure_reason=payload.get("failureReason"),
            actor_user_id=g.current_user.id,
        )
    except ShipdeskError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update delivery %s", delivery_id)
        return {"error": "Failed to update delivery status"}, 500

    return delivery.to_dict(), 200


@deliveries_bp.post("/<int:delivery_id>/collect-payment")
@require_auth
@require_permission("deliveries.collect_payment")
@require_json_object
def collect_payment_route(delivery_id: int):
    """
    Record a COD collection: {amountCollected, paymentMode: cash|upi|qr}.

    Marks the order paid even when the amount differs from the order total.
    """
    payload = request.get_json(silent=True) or {}

    try:
        delivery = delivery_service.collect_payment(
            delivery_id,
            payload.get("amountCollected"),
            payload.get("paymentMode"),
            actor_user_id=g.current_user.id,
        )
    except ShipdeskError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to collect payment for delivery %s", delivery_id)
        return {"error": "Failed to collect payment"}, 500

    return delivery.to_dict(), 200
