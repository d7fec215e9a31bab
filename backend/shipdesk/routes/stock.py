# Overview: Flask API routes for the stock ledger; parses input and returns JSON responses.

"""
Stock ledger routes.

SECURITY: All routes require authentication.
- Reads require VIEW_INVENTORY
- Movements and invoice receiving require ADJUST_STOCK

Time semantics:
- invoiceDate / fromDate / toDate accept ISO-8601 dates or datetimes; the
  backend normalizes to UTC-naive internally.
"""

from flask import Blueprint, request, current_app, g

from ..errors import ShipdeskError
from ..models import MOVEMENT_TYPES, StockMovement
from ..money import to_money_str
from ..services import stock_service
from ..time_utils import parse_iso_datetime, parse_range_end
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from ..decorators import require_auth, require_json_object, require_permission


stock_bp = Blueprint("stock", __name__, url_prefix="/api")

STOCK_MOVEMENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "productVariantId": "product_variant_id",
        "type": "type",
        "quantity": "quantity",
        "supplierId": "supplier_id",
        "invoiceNumber": "invoice_number",
        "invoiceDate": "invoice_date",
        "costPrice": "cost_price",
        "reason": "reason",
    },
    required_on_create=frozenset({"productVariantId", "type", "quantity"}),
    choices={"type": MOVEMENT_TYPES},
)


def _int_arg(name: str) -> int | None:
    raw = request.args.get(name)
    if raw in (None, ""):
        return None
    if not raw.strip().isdigit():
        raise ValidationError(details=[f"{name} must be an integer"])
    return int(raw)


def _date_arg(name: str, parse=parse_iso_datetime):
    try:
        return parse(request.args.get(name))
    except ValueError:
        raise ValidationError(details=[f"{name} must be an ISO-8601 date"])


def _receive_lines(products: list) -> list[dict]:
    """
    Flatten [{productId, variants: {variantId: {quantity, costPrice}}}] into
    ledger lines. Malformed entries are passed through so the ledger can skip
    and log them.
    """
    lines = []
    for product in products:
        variants = product.get("variants") if isinstance(product, dict) else None
        if not isinstance(variants, dict):
            continue
        for variant_id, data in variants.items():
            data = data if isinstance(data, dict) else {}
            if isinstance(variant_id, str) and variant_id.strip().isdigit():
                variant_id = int(variant_id)
            lines.append({
                "variantId": variant_id,
                "quantity": data.get("quantity"),
                "costPrice": data.get("costPrice"),
            })
    return lines


@stock_bp.get("/stock-movements")
@require_auth
@require_permission("stock.list_movements")
def list_movements_route():
    try:
        movements = stock_service.list_movements(
            movement_type=request.args.get("type"),
            variant_id=_int_arg("variantId"),
            supplier_id=_int_arg("supplierId"),
            from_date=_date_arg("fromDate"),
            to_date=_date_arg("toDate", parse_range_end),
        )
    except ShipdeskError as e:
        return e.to_dict(), e.status_code

    return {"items": [m.to_dict() for m in movements], "count": len(movements)}, 200


@stock_bp.post("/stock-movements")
@require_auth
@require_permission("stock.record_movement")
@require_json_object
def record_movement_route():
    """
    Record one inward / outward / adjustment movement.

    Returns the movement (201). Outward movements may take stock negative.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=StockMovement,
            payload=payload,
            policy=STOCK_MOVEMENT_POLICY,
            partial=False,
        )
        movement = stock_service.record_movement(
            patch["product_variant_id"],
            patch["type"],
            patch["quantity"],
            actor_user_id=g.current_user.id,
            supplier_id=patch.get("supplier_id"),
            invoice_number=patch.get("invoice_number"),
            invoice_date=patch.get("invoice_date"),
            cost_price=patch.get("cost_price"),
            reason=patch.get("reason"),
        )
    except ShipdeskError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create stock movement")
        return {"error": "Failed to create stock movement"}, 500

    return movement.to_dict(), 201


@stock_bp.post("/stock-movements/batch-receive")
@require_auth
@require_permission("stock.batch_receive")
@require_json_object
def batch_receive_route():
    """
    Receive a supplier invoice covering many variants.

    Lines with a non-positive quantity or an unknown variant are skipped.
    """
    payload = request.get_json(silent=True) or {}
    supplier_id = payload.get("supplierId")
    products = payload.get("products")

    if not supplier_id or not isinstance(products, list):
        return {"error": "Supplier and products are required"}, 400
    if isinstance(supplier_id, bool) or not isinstance(supplier_id, int):
        return {"error": "Invalid payload", "details": ["supplierId must be an integer"]}, 400

    try:
        invoice_date = parse_iso_datetime(payload.get("invoiceDate"))
    except (ValueError, AttributeError):
        return {"error": "Invalid payload", "details": ["invoiceDate must be an ISO-8601 date"]}, 400

    invoice_number = payload.get("invoiceNumber")

    try:
        result = stock_service.batch_receive(
            supplier_id=supplier_id,
            invoice_number=str(invoice_number).strip() if invoice_number else None,
            invoice_date=invoice_date,
            lines=_receive_lines(products),
            actor_user_id=g.current_user.id,
        )
    except ShipdeskError as e:
        return e.to_dict(), e.status_code
    except Exception:
        current_app.logger.exception("Batch stock receive failed")
        return {"error": "Failed to receive stock"}, 500

    summary = result["summary"]
    return {
        "success": True,
        "movements": [m.to_dict() for m in result["movements"]],
        "summary": {
            "totalMovements": summary["totalMovements"],
            "totalUnits": summary["totalUnits"],
            "totalValue": to_money_str(summary["totalValue"]),
        },
    }, 201


@stock_bp.get("/inventory/low-stock")
@require_auth
@require_permission("stock.low_stock")
def low_stock_route():
    variants = stock_service.list_low_stock()
    return {"items": [v.to_dict() for v in variants], "count": len(variants)}, 200
