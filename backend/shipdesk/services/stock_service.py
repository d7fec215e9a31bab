# Overview: Stock ledger. The only code path that changes ProductVariant.stock_quantity.

"""
Stock ledger invariants

- Every quantity change writes exactly one StockMovement row carrying the
  previous and new quantity, in the same transaction as the variant update.
- new_quantity is derived here from (type, quantity); never taken from input:
    inward      new = previous + quantity
    outward     new = previous - quantity   (may go negative, not clamped)
    adjustment  new = quantity              (absolute target)
- Variant rows are read with SELECT ... FOR UPDATE and carry version_id, so
  two concurrent movements on one variant cannot lose an update.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..errors import InvalidStateError, NotFoundError
from ..models import (
    MOVEMENT_ADJUSTMENT,
    MOVEMENT_INWARD,
    MOVEMENT_OUTWARD,
    MOVEMENT_TYPES,
    ProductVariant,
    StockMovement,
    Supplier,
)
from ..money import to_decimal
from ..validation import ValidationError, require_positive_int
from .audit_service import append_audit_log
from .concurrency import lock_for_update, run_with_retry


DEFAULT_LOW_STOCK_THRESHOLD = 10


def compute_new_quantity(previous: int, movement_type: str, quantity: int) -> int:
    if movement_type == MOVEMENT_INWARD:
        return previous + quantity
    if movement_type == MOVEMENT_OUTWARD:
        return previous - quantity
    if movement_type == MOVEMENT_ADJUSTMENT:
        return quantity
    raise ValidationError(details=[f"type must be one of: {', '.join(sorted(MOVEMENT_TYPES))}"])


def validate_movement(movement_type: str, quantity) -> int:
    """Check type and quantity before anything is read or written."""
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(details=[f"type must be one of: {', '.join(sorted(MOVEMENT_TYPES))}"])
    return require_positive_int(quantity, "quantity", allow_zero=movement_type == MOVEMENT_ADJUSTMENT)


def lock_variant(variant_id: int) -> ProductVariant:
    variant = lock_for_update(db.session.query(ProductVariant).filter_by(id=variant_id)).first()
    if variant is None:
        raise NotFoundError("Product variant")
    return variant


def apply_movement(
    variant: ProductVariant,
    movement_type: str,
    quantity: int,
    *,
    actor_user_id: int | None,
    supplier_id: int | None = None,
    order_id: int | None = None,
    cost_price: Decimal | None = None,
    invoice_number: str | None = None,
    invoice_date: datetime | None = None,
    reason: str | None = None,
) -> StockMovement:
    """
    Apply one movement to an already locked variant.

    Flushes but does not commit: callers (record_movement, batch_receive,
    replacement dispatch) own the transaction.
    """
    previous = variant.stock_quantity
    new = compute_new_quantity(previous, movement_type, quantity)
    variant.stock_quantity = new

    movement = StockMovement(
        product_variant_id=variant.id,
        type=movement_type,
        quantity=quantity,
        previous_quantity=previous,
        new_quantity=new,
        supplier_id=supplier_id,
        order_id=order_id,
        cost_price=cost_price,
        invoice_number=invoice_number,
        invoice_date=invoice_date,
        reason=reason,
        created_by=actor_user_id,
    )
    db.session.add(movement)
    db.session.flush()

    append_audit_log(
        user_id=actor_user_id,
        action=f"stock_{movement_type}",
        module="inventory",
        entity_type="product_variant",
        entity_id=variant.id,
        old_data={"stockQuantity": previous},
        new_data={"stockQuantity": new},
    )

    if new < 0:
        current_app.logger.warning(
            "Stock for SKU %s is negative (%d) after %s movement of %d",
            variant.sku, new, movement_type, quantity,
        )

    return movement


def _require_supplier(supplier_id: int | None) -> None:
    if supplier_id is None:
        return
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise NotFoundError("Supplier")
    if not supplier.is_active:
        raise InvalidStateError(f"Supplier {supplier.name} is inactive")


def record_movement(
    variant_id: int,
    movement_type: str,
    quantity: int,
    *,
    actor_user_id: int | None,
    supplier_id: int | None = None,
    invoice_number: str | None = None,
    invoice_date: datetime | None = None,
    cost_price: Decimal | None = None,
    reason: str | None = None,
    order_id: int | None = None,
) -> StockMovement:
    """
    Record a single inward / outward / adjustment movement and commit.

    Raises:
        ValidationError: bad type or quantity (nothing is written)
        NotFoundError: unknown variant or supplier
        InvalidStateError: supplier is deactivated
    """
    quantity = validate_movement(movement_type, quantity)

    def _op():
        _require_supplier(supplier_id)
        variant = lock_variant(variant_id)
        movement = apply_movement(
            variant,
            movement_type,
            quantity,
            actor_user_id=actor_user_id,
            supplier_id=supplier_id,
            order_id=order_id,
            cost_price=cost_price,
            invoice_number=invoice_number,
            invoice_date=invoice_date,
            reason=reason,
        )
        db.session.commit()
        return movement

    return run_with_retry(_op)


def batch_receive(
    *,
    supplier_id: int,
    invoice_number: str | None,
    invoice_date: datetime | None,
    lines: list[dict],
    actor_user_id: int | None,
) -> dict:
    """
    Receive one supplier invoice: an inward movement per accepted line.

    lines: [{"variantId", "quantity", "costPrice"}]. Lines with a missing or
    non-positive quantity, or an unknown variant, are skipped and logged; they
    never abort the batch. An unusable costPrice (NaN, text) is treated as 0.
    A positive costPrice also becomes the variant's current cost price.
    All accepted lines commit together.
    """
    reason = f"Stock received via invoice {invoice_number or 'N/A'}"

    def _op():
        _require_supplier(supplier_id)

        movements: list[StockMovement] = []
        total_units = 0
        total_value = Decimal("0.00")

        for line in lines:
            quantity = line.get("quantity")
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
                current_app.logger.info("Skipping receive line with quantity %r", quantity)
                continue

            variant_id = line.get("variantId")
            variant = None
            if isinstance(variant_id, int) and not isinstance(variant_id, bool):
                variant = lock_for_update(db.session.query(ProductVariant).filter_by(id=variant_id)).first()
            if variant is None:
                current_app.logger.info("Variant %s not found, skipping", variant_id)
                continue

            try:
                cost = to_decimal(line.get("costPrice") or 0)
            except (ArithmeticError, ValueError):
                current_app.logger.info(
                    "Ignoring cost price %r for variant %s", line.get("costPrice"), variant.id
                )
                cost = Decimal("0.00")
            cost = max(cost, Decimal("0.00"))
            if cost > 0:
                variant.cost_price = cost

            movement = apply_movement(
                variant,
                MOVEMENT_INWARD,
                quantity,
                actor_user_id=actor_user_id,
                supplier_id=supplier_id,
                cost_price=cost if cost > 0 else None,
                invoice_number=invoice_number,
                invoice_date=invoice_date,
                reason=reason,
            )
            movements.append(movement)
            total_units += quantity
            total_value += quantity * cost

        db.session.commit()
        return {
            "movements": movements,
            "summary": {
                "totalMovements": len(movements),
                "totalUnits": total_units,
                "totalValue": total_value,
            },
        }

    return run_with_retry(_op)


def list_movements(
    *,
    movement_type: str | None = None,
    variant_id: int | None = None,
    supplier_id: int | None = None,
    from_date: datetime | None = None,
    to_date: datetime | None = None,
    limit: int = 500,
) -> list[StockMovement]:
    q = db.session.query(StockMovement)
    if movement_type:
        q = q.filter(StockMovement.type == movement_type)
    if variant_id is not None:
        q = q.filter(StockMovement.product_variant_id == variant_id)
    if supplier_id is not None:
        q = q.filter(StockMovement.supplier_id == supplier_id)
    if from_date is not None:
        q = q.filter(StockMovement.created_at >= from_date)
    if to_date is not None:
        q = q.filter(StockMovement.created_at <= to_date)
    return q.order_by(StockMovement.id.desc()).limit(limit).all()


def low_stock_condition():
    """SQL filter: stock at or below the variant's threshold (default 10)."""
    threshold = db.func.coalesce(ProductVariant.low_stock_threshold, DEFAULT_LOW_STOCK_THRESHOLD)
    return ProductVariant.stock_quantity <= threshold


def list_low_stock() -> list[ProductVariant]:
    """Variants at or below their low-stock threshold, lowest stock first."""
    return (
        db.session.query(ProductVariant)
        .filter(low_stock_condition())
        .order_by(ProductVariant.stock_quantity.asc(), ProductVariant.id.asc())
        .all()
    )
