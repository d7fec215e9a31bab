# Overview: Thin product/variant catalog used by the stock ledger and order workflow.

from __future__ import annotations

from sqlalchemy import or_, select

from ..extensions import db
from ..errors import NotFoundError
from ..models import Product, ProductVariant
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from .audit_service import append_audit_log


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name": "name",
        "description": "description",
        "category": "category",
    },
    required_on_create=frozenset({"name"}),
)

VARIANT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku": "sku",
        "color": "color",
        "size": "size",
        "stockQuantity": "stock_quantity",
        "costPrice": "cost_price",
        "sellingPrice": "selling_price",
        "lowStockThreshold": "low_stock_threshold",
    },
    required_on_create=frozenset({"sku"}),
)


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product")
    return product


def find_variant_by_sku(sku: str) -> ProductVariant | None:
    return db.session.query(ProductVariant).filter_by(sku=sku).first()


def list_products(*, search: str | None = None, category: str | None = None) -> list[Product]:
    """Newest first. search matches the product name or any of its variant SKUs."""
    q = db.session.query(Product)
    if category:
        q = q.filter(Product.category == category)
    if search and search.strip():
        like = f"%{search.strip()}%"
        sku_match = select(ProductVariant.product_id).where(ProductVariant.sku.ilike(like))
        q = q.filter(or_(Product.name.ilike(like), Product.id.in_(sku_match)))
    return q.order_by(Product.created_at.desc(), Product.id.desc()).all()


def create_product(payload: dict, *, actor_user_id: int | None) -> Product:
    """
    Create a product together with its variants.

    Variant SKUs must be unique, both within the payload and against existing
    variants. Initial stockQuantity is taken as-is; later changes go through
    the stock ledger.
    """
    payload = dict(payload or {})
    raw_variants = payload.pop("variants", None) or []
    if not isinstance(raw_variants, list):
        raise ValidationError(details=["variants must be a list"])

    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)

    errors: list[str] = []
    variant_patches: list[dict] = []
    seen_skus: set[str] = set()
    for i, raw in enumerate(raw_variants):
        try:
            vpatch = validate_payload(model=ProductVariant, payload=raw, policy=VARIANT_POLICY, partial=False)
        except ValidationError as e:
            errors.extend(f"variants[{i}]: {d}" for d in (e.details or [e.message]))
            continue
        sku = vpatch["sku"]
        if sku in seen_skus or find_variant_by_sku(sku) is not None:
            errors.append(f"variants[{i}]: SKU {sku} already exists")
            continue
        seen_skus.add(sku)
        variant_patches.append(vpatch)

    if errors:
        raise ValidationError(details=errors)

    product = Product(**patch)
    for vpatch in variant_patches:
        product.variants.append(ProductVariant(**vpatch))

    db.session.add(product)
    db.session.flush()

    append_audit_log(
        user_id=actor_user_id,
        action="product.created",
        module="catalog",
        entity_type="product",
        entity_id=product.id,
        new_data={"name": product.name, "skus": sorted(seen_skus)},
    )

    db.session.commit()
    return product
