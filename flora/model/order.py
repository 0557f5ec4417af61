import uuid as _uuid

from ..extensions import db
from ..utils.api import utcnow

ORDER_STATUSES = ("pending", "confirmed", "cancelled")
DELIVERY_TYPES = ("STANDARD", "EXPRESS", "PICKUP")


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(_uuid.uuid4()))
    order_number = db.Column(db.String(32), unique=True, index=True)  # e.g. "FLR20250601123456042"
    status = db.Column(db.String(20), default="pending", index=True)

    # client-generated, one per checkout attempt
    idempotency_key = db.Column(db.String(64), unique=True, index=True, nullable=True)

    # Customer snapshot
    user_id = db.Column(db.Integer, nullable=True, index=True)
    guest_email = db.Column(db.String(255))
    guest_phone = db.Column(db.String(50))
    shipping_address = db.Column(db.JSON)
    billing_address = db.Column(db.JSON)
    gift_message = db.Column(db.JSON)
    delivery_type = db.Column(db.String(16), default="STANDARD")
    delivery_notes = db.Column(db.Text)

    # Money snapshot, minor units
    subtotal_cents = db.Column(db.Integer, default=0)
    shipping_cents = db.Column(db.Integer, default=0)
    tax_cents = db.Column(db.Integer, default=0)
    total_cents = db.Column(db.Integer, default=0)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    confirmed_at = db.Column(db.DateTime, nullable=True)

    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="all, delete-orphan",
        lazy="joined",
        order_by="OrderItem.id.asc()",
    )

    @property
    def has_subscription_items(self) -> bool:
        return any(i.purchase_mode != "one-time" for i in self.items)

    def as_api(self):
        return {
            "id": self.id,
            "order_number": self.order_number,
            "status": self.status,
            "customer": {
                "user_id": self.user_id,
                "email": self.guest_email,
                "phone": self.guest_phone,
            },
            "shipping_address": self.shipping_address,
            "billing_address": self.billing_address,
            "gift_message": self.gift_message,
            "delivery_type": self.delivery_type,
            "delivery_notes": self.delivery_notes,
            "money": {
                "subtotal_cents": self.subtotal_cents,
                "shipping_cents": self.shipping_cents,
                "tax_cents": self.tax_cents,
                "total_cents": self.total_cents,
            },
            "items": [i.as_api() for i in self.items],
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "confirmed_at": self.confirmed_at.isoformat() if self.confirmed_at else None,
        }


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.String(36), db.ForeignKey("orders.id"), nullable=False, index=True)

    product_id = db.Column(db.Integer, index=True)
    name = db.Column(db.String(255))
    image_url = db.Column(db.String(1024))

    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)   # unit price captured at submission

    purchase_mode = db.Column(db.String(16), default="one-time")
    frequency = db.Column(db.String(16), nullable=True)
    requested_delivery_date = db.Column(db.DateTime, nullable=True)

    @property
    def line_total_cents(self) -> int:
        return self.price_cents * self.quantity

    def as_api(self):
        return {
            "product_id": self.product_id,
            "name": self.name,
            "image_url": self.image_url,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "line_total_cents": self.line_total_cents,
            "purchase_mode": self.purchase_mode,
            "frequency": self.frequency,
            "requested_delivery_date": (
                self.requested_delivery_date.isoformat() if self.requested_delivery_date else None
            ),
        }
