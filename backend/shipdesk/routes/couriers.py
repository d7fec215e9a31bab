# Overview: Flask API routes for courier partners.

"""
Courier partner routes.

SECURITY: All routes require authentication.
- Reads require VIEW_COURIERS
- Create/update/deactivate require MANAGE_COURIERS

DELETE deactivates: dispatched orders keep their courier partner, and
dispatch rejects inactive partners.
"""

from flask import Blueprint, request, current_app, g

from ..errors import ShipdeskError
from ..services import courier_service
from ..decorators import require_auth, require_json_object, require_permission


couriers_bp = Blueprint("couriers", __name__, url_prefix="/api/couriers")


@couriers_bp.get("")
@require_auth
@require_permission("couriers.list")
def list_couriers_route():
    """Query parameters: includeInactive=true, type (third_party | in_house)."""
    include_inactive = request.args.get("includeInactive", "false").lower() == "true"
    try:
        couriers = courier_service.list_couriers(
            include_inactive=include_inactive,
            courier_type=request.args.get("type") or None,
        )
    except ShipdeskError as e:
        return e.to_dict(), e.status_code

    return {"items": [c.to_dict() for c in couriers], "count": len(couriers)}, 200


@couriers_bp.get("/<int:courier_id>")
@require_auth
@require_permission("couriers.view")
def get_courier_route(courier_id: int):
    try:
        courier = courier_service.get_courier(courier_id)
    except ShipdeskError as e:
        return e.to_dict(), e.status_code

    return courier.to_dict(), 200


@couriers_bp.post("")
@require_auth
@require_permission("couriers.create")
@require_json_object
def create_courier_route():
    payload = request.get_json(silent=True) or {}

    try:
        courier = courier_service.create_courier(payload, actor_user_id=g.current_user.id)
    except ShipdeskError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create courier partner")
        return {"error": "Failed to create courier partner"}, 500

    return courier.to_dict(), 201


@couriers_bp.patch("/<int:courier_id>")
@require_auth
@require_permission("couriers.update")
@require_json_object
def update_courier_route(courier_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        courier = courier_service.update_courier(courier_id, payload, actor_user_id=g.current_user.id)
    except ShipdeskError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update courier partner %s", courier_id)
        return {"error": "Failed to update courier partner"}, 500

    return courier.to_dict(), 200


@couriers_bp.delete("/<int:courier_id>")
@require_auth
@require_permission("couriers.deactivate")
def deactivate_courier_route(courier_id: int):
    try:
        courier = courier_service.deactivate_courier(courier_id, actor_user_id=g.current_user.id)
    except ShipdeskError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to deactivate courier partner %s", courier_id)
        return {"error": "Failed to deactivate courier partner"}, 500

    return courier.to_dict(), 200
