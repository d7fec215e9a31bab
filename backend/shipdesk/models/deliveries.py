from __future__ import annotations

from ..extensions import db
from ..money import to_money_str
from ..time_utils import to_utc_z


DELIVERY_STATUSES = frozenset({
    "assigned",
    "out_for_delivery",
    "delivered",
    "payment_collected",
    "failed",
    "rto",
})
PAYMENT_MODES = frozenset({"cash", "upi", "qr"})


class InternalDelivery(db.Model):
    """
    In-house courier run for one dispatch of an order.

    A replacement dispatch creates a second delivery for the same order, so
    order_id is not unique here.
    """
    __tablename__ = "internal_deliveries"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    assigned_to = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    status = db.Column(db.String(24), nullable=False, default="assigned", index=True)

    scheduled_date = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    payment_collected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    amount_collected = db.Column(db.Numeric(10, 2), nullable=True)
    payment_mode = db.Column(db.String(16), nullable=True)
    delivery_notes = db.Column(db.Text, nullable=True)
    failure_reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    order = db.relationship("Order", backref=db.backref("deliveries", lazy=True))
    assigned_user = db.relationship("User")
    events = db.relationship(
        "DeliveryEvent",
        backref="delivery",
        lazy=True,
        order_by="DeliveryEvent.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_order: bool = True) -> dict:
        data = {
            "id": self.id,
            "orderId": self.order_id,
            "assignedTo": self.assigned_to,
            "assignedUserName": self.assigned_user.name if self.assigned_user else None,
            "status": self.status,
            "scheduledDate": to_utc_z(self.scheduled_date),
            "deliveredAt": to_utc_z(self.delivered_at),
            "paymentCollectedAt": to_utc_z(self.payment_collected_at),
            "amountCollected": to_money_str(self.amount_collected),
            "paymentMode": self.payment_mode,
            "deliveryNotes": self.delivery_notes,
            "failureReason": self.failure_reason,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
            "events": [e.to_dict() for e in self.events],
        }
        if include_order:
            data["order"] = self.order.to_dict(include_items=False) if self.order else None
        return data


class DeliveryEvent(db.Model):
    """Timeline entry for a delivery ("Assigned", "Out For Delivery", ...)."""
    __tablename__ = "delivery_events"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    delivery_id = db.Column(
        db.Integer, db.ForeignKey("internal_deliveries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    event = db.Column(db.String(64), nullable=False)
    comment = db.Column(db.Text, nullable=True)
    location = db.Column(db.String(255), nullable=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "deliveryId": self.delivery_id,
            "event": self.event,
            "comment": self.comment,
            "location": self.location,
            "createdBy": self.created_by,
            "createdAt": to_utc_z(self.created_at),
        }
