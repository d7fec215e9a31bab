from __future__ import annotations

from ..extensions import db
from ..money import to_money_str
from ..time_utils import to_utc_z


PAYMENT_METHODS = frozenset({"cod", "prepaid"})
PAYMENT_STATUSES = frozenset({"pending", "paid", "refunded", "failed"})
COURIER_TYPES = frozenset({"third_party", "in_house"})


class CourierPartner(db.Model):
    """Shipping channel an order can be dispatched with (Delhivery, own riders, ...)."""
    __tablename__ = "courier_partners"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(64), nullable=False, unique=True)
    type = db.Column(db.String(16), nullable=False)
    contact_person = db.Column(db.String(120), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
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
            "code": self.code,
            "type": self.type,
            "contactPerson": self.contact_person,
            "phone": self.phone,
            "isActive": self.is_active,
        }


class Order(db.Model):
    """
    Customer order.

    status is only changed through order_service, which validates the
    transition and appends an OrderStatusHistory row every time.
    Items are fixed at creation.

    version_id guards status changes the same way it guards variant stock:
    a writer holding a stale row gets StaleDataError on flush.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), nullable=False, unique=True, index=True)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)

    shipping_address = db.Column(db.Text, nullable=False)
    shipping_city = db.Column(db.String(120), nullable=True)
    shipping_state = db.Column(db.String(120), nullable=True)
    shipping_zip = db.Column(db.String(16), nullable=True)
    shipping_country = db.Column(db.String(64), nullable=True)

    subtotal = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    shipping_cost = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    taxes = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False)

    payment_method = db.Column(db.String(16), nullable=False)
    payment_status = db.Column(db.String(16), nullable=False, default="pending")
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    courier_partner_id = db.Column(db.Integer, db.ForeignKey("courier_partners.id"), nullable=True)
    courier_type = db.Column(db.String(16), nullable=True)
    awb_number = db.Column(db.String(64), nullable=True, index=True)
    dispatch_date = db.Column(db.DateTime(timezone=True), nullable=True)
    delivery_date = db.Column(db.DateTime(timezone=True), nullable=True)
    assigned_to = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    rto_reason = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )
    courier_partner = db.relationship("CourierPartner")
    assigned_user = db.relationship("User", foreign_keys=[assigned_to])

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number!r} status={self.status!r}>"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "orderNumber": self.order_number,
            "customerName": self.customer_name,
            "customerEmail": self.customer_email,
            "customerPhone": self.customer_phone,
            "shippingAddress": self.shipping_address,
            "shippingCity": self.shipping_city,
            "shippingState": self.shipping_state,
            "shippingZip": self.shipping_zip,
            "shippingCountry": self.shipping_country,
            "subtotal": to_money_str(self.subtotal),
            "shippingCost": to_money_str(self.shipping_cost),
            "discount": to_money_str(self.discount),
            "taxes": to_money_str(self.taxes),
            "totalAmount": to_money_str(self.total_amount),
            "paymentMethod": self.payment_method,
            "paymentStatus": self.payment_status,
            "status": self.status,
            "courierPartnerId": self.courier_partner_id,
            "courierPartner": self.courier_partner.to_dict() if self.courier_partner else None,
            "courierType": self.courier_type,
            "awbNumber": self.awb_number,
            "dispatchDate": to_utc_z(self.dispatch_date),
            "deliveryDate": to_utc_z(self.delivery_date),
            "assignedTo": self.assigned_to,
            "notes": self.notes,
            "rtoReason": self.rto_reason,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    __tablename__ = "order_items"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_variant_id = db.Column(db.Integer, db.ForeignKey("product_variants.id"), nullable=True)

    sku = db.Column(db.String(64), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)
    color = db.Column(db.String(64), nullable=True)
    size = db.Column(db.String(32), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "orderId": self.order_id,
            "productVariantId": self.product_variant_id,
            "sku": self.sku,
            "productName": self.product_name,
            "color": self.color,
            "size": self.size,
            "quantity": self.quantity,
            "price": to_money_str(self.price),
        }


class OrderStatusHistory(db.Model):
    """Append-only status trail. One row per transition, including creation."""
    __tablename__ = "order_status_history"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False)
    comment = db.Column(db.Text, nullable=True)
    changed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    changed_by_user = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "orderId": self.order_id,
            "status": self.status,
            "comment": self.comment,
            "changedBy": self.changed_by,
            "changedByName": self.changed_by_user.name if self.changed_by_user else None,
            "createdAt": to_utc_z(self.created_at),
        }


class DocumentSequence(db.Model):
    """
    Atomic counters for human-facing document numbers.

    sequence_key is e.g. "ORDER-2025"; next_number is the number the next
    allocation will hand out.
    """
    __tablename__ = "document_sequences"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    sequence_key = db.Column(db.String(32), nullable=False, unique=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
