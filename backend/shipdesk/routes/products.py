# Overview: Flask API routes for the product catalog.

from flask import Blueprint, request, current_app, g

from ..errors import ShipdeskError
from ..services import catalog_service
from ..decorators import require_auth, require_json_object, require_permission


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_permission("products.list")
def list_products_route():
    """Query parameters: search (name or SKU), category."""
    products = catalog_service.list_products(
        search=request.args.get("search"),
        category=request.args.get("category") or None,
    )
    return {"items": [p.to_dict() for p in products], "count": len(products)}, 200


@products_bp.post("")
@require_auth
@require_permission("products.create")
@require_json_object
def create_product_route():
    """Create a product with its variants: {name, description?, category?, variants: [{sku, ...}]}."""
    payload = request.get_json(silent=True) or {}

    try:
        product = catalog_service.create_product(payload, actor_user_id=g.current_user.id)
    except ShipdeskError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Failed to create product"}, 500

    return product.to_dict(), 201


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("products.view")
def get_product_route(product_id: int):
    try:
        product = catalog_service.get_product(product_id)
    except ShipdeskError as e:
        return e.to_dict(), e.status_code

    return product.to_dict(), 200
