from __future__ import annotations

from ..extensions import db
from ..money import to_money_str
from ..time_utils import to_utc_z


# Stock movement types
MOVEMENT_INWARD = "inward"
MOVEMENT_OUTWARD = "outward"
MOVEMENT_ADJUSTMENT = "adjustment"
MOVEMENT_TYPES = frozenset({MOVEMENT_INWARD, MOVEMENT_OUTWARD, MOVEMENT_ADJUSTMENT})


class Supplier(db.Model):
    """Vendor that stock is received from. Suppliers are deactivated, never deleted."""
    __tablename__ = "suppliers"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    contact_person = db.Column(db.String(120), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.Text, nullable=True)
    gst_number = db.Column(db.String(32), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "contactPerson": self.contact_person,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "gstNumber": self.gst_number,
            "isActive": self.is_active,
        }


class Product(db.Model):
    __tablename__ = "products"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(120), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    variants = db.relationship(
        "ProductVariant",
        backref="product",
        lazy=True,
        order_by="ProductVariant.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r}>"

    def to_dict(self, include_variants: bool = True) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
        if include_variants:
            data["variants"] = [v.to_dict() for v in self.variants]
        return data


class ProductVariant(db.Model):
    """
    Sellable SKU (color/size combination of a Product).

    stock_quantity is the authoritative quantity-on-hand and is only changed
    through stock_service, which writes a StockMovement for every change.
    It is not clamped at zero.

    version_id is an optimistic lock: a concurrent writer that read a stale row
    gets StaleDataError on flush instead of silently overwriting the quantity.
    """
    __tablename__ = "product_variants"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False, unique=True, index=True)
    color = db.Column(db.String(64), nullable=True)
    size = db.Column(db.String(32), nullable=True)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    cost_price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    selling_price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=True, default=10)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<ProductVariant id={self.id} sku={self.sku!r} qty={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "sku": self.sku,
            "color": self.color,
            "size": self.size,
            "stockQuantity": self.stock_quantity,
            "costPrice": to_money_str(self.cost_price),
            "sellingPrice": to_money_str(self.selling_price),
            "lowStockThreshold": self.low_stock_threshold,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Immutable ledger entry for one stock quantity change.

    new_quantity is always derived by stock_service from previous_quantity and
    (type, quantity); it is never taken from client input. Rows are never
    updated or deleted.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_variant_created", "product_variant_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_variant_id = db.Column(
        db.Integer, db.ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=False, index=True
    )

    type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    previous_quantity = db.Column(db.Integer, nullable=False)
    new_quantity = db.Column(db.Integer, nullable=False)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    cost_price = db.Column(db.Numeric(10, 2), nullable=True)
    invoice_number = db.Column(db.String(64), nullable=True)
    invoice_date = db.Column(db.DateTime(timezone=True), nullable=True)
    reason = db.Column(db.String(255), nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    variant = db.relationship("ProductVariant", backref=db.backref("movements", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productVariantId": self.product_variant_id,
            "sku": self.variant.sku if self.variant else None,
            "type": self.type,
            "quantity": self.quantity,
            "previousQuantity": self.previous_quantity,
            "newQuantity": self.new_quantity,
            "supplierId": self.supplier_id,
            "orderId": self.order_id,
            "costPrice": to_money_str(self.cost_price),
            "invoiceNumber": self.invoice_number,
            "invoiceDate": to_utc_z(self.invoice_date),
            "reason": self.reason,
            "createdBy": self.created_by,
            "createdAt": to_utc_z(self.created_at),
        }
