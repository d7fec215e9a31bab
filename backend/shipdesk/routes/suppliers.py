# Overview: Flask API routes for suppliers; parses input and returns JSON responses.

"""
Supplier routes.

SECURITY: All routes require authentication.
- Reads require VIEW_SUPPLIERS
- Create/update/deactivate require MANAGE_SUPPLIERS

DELETE deactivates: stock movements keep referencing the supplier.
"""

from flask import Blueprint, request, current_app, g

from ..errors import ShipdeskError
from ..services import supplier_service
from ..decorators import require_auth, require_json_object, require_permission


suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
@require_auth
@require_permission("suppliers.list")
def list_suppliers_route():
    """Query parameters: includeInactive=true, search (name, contact person or GST number)."""
    include_inactive = request.args.get("includeInactive", "false").lower() == "true"
    suppliers = supplier_service.list_suppliers(
        include_inactive=include_inactive,
        search=request.args.get("search"),
    )
    return {"items": [s.to_dict() for s in suppliers], "count": len(suppliers)}, 200


@suppliers_bp.get("/<int:supplier_id>")
@require_auth
@require_permission("suppliers.view")
def get_supplier_route(supplier_id: int):
    try:
        supplier = supplier_service.get_supplier(supplier_id)
    except ShipdeskError as e:
        return e.to_dict(), e.status_code

    return supplier.to_dict(), 200


@suppliers_bp.post("")
@require_auth
@require_permission("suppliers.create")
@require_json_object
def create_supplier_route():
    payload = request.get_json(silent=True) or {}

    try:
        supplier = supplier_service.create_supplier(payload, actor_user_id=g.current_user.id)
    except ShipdeskError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return {"error": "Failed to create supplier"}, 500

    return supplier.to_dict(), 201


@suppliers_bp.patch("/<int:supplier_id>")
@require_auth
@require_permission("suppliers.update")
@require_json_object
def update_supplier_route(supplier_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        supplier = supplier_service.update_supplier(supplier_id, payload, actor_user_id=g.current_user.id)
    except ShipdeskError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update supplier %s", supplier_id)
        return {"error": "Failed to update supplier"}, 500

    return supplier.to_dict(), 200


@suppliers_bp.delete("/<int:supplier_id>")
@require_auth
@require_permission("suppliers.deactivate")
def deactivate_supplier_route(supplier_id: int):
    try:
        supplier = supplier_service.deactivate_supplier(supplier_id, actor_user_id=g.current_user.id)
    except ShipdeskError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to deactivate supplier %s", supplier_id)
        return {"error": "Failed to deactivate supplier"}, 500

    return supplier.to_dict(), 200
