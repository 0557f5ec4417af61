# flora/model/subscription.py
import uuid as _uuid

from ..extensions import db
from ..utils.api import utcnow

SUBSCRIPTION_STATUSES = ("active", "paused", "cancelled")


class Subscription(db.Model):
    __tablename__ = "subscriptions"

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(_uuid.uuid4()))
    user_id = db.Column(db.Integer, nullable=False, index=True)
    order_id = db.Column(db.String(36), db.ForeignKey("orders.id"), nullable=True, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    purchase_mode = db.Column(db.String(16), nullable=False)   # "recurring" | "spontaneous"
    frequency = db.Column(db.String(16), nullable=False)
    discount_percent = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), default="active", index=True)
    next_delivery_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    product = db.relationship("Product", lazy="joined")

    def as_api(self):
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product": self.product.as_ref() if self.product else {"id": self.product_id},
            "quantity": self.quantity,
            "purchase_mode": self.purchase_mode,
            "frequency": self.frequency,
            "discount_percent": self.discount_percent,
            "status": self.status,
            "next_delivery_date": self.next_delivery_date.isoformat() if self.next_delivery_date else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
