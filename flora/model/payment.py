# flora/model/payment.py
from ..extensions import db
from ..utils.api import utcnow

class PaymentIntent(db.Model):
    __tablename__ = "payment_intents"
    id = db.Column(db.String(64), primary_key=True)          # provider id, e.g. "pi_..."
    order_id = db.Column(db.String(36), db.ForeignKey("orders.id"), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(8), default="AUD")
    client_secret = db.Column(db.String(128), nullable=False)
    status = db.Column(db.String(24), default="requires_payment", index=True)
    failure_message = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    order = db.relationship("Order", lazy="joined")

    def as_api(self):
        return {
            "id": self.id,
            "order_id": self.order_id,
            "amount_cents": self.amount_cents,
            "currency": self.currency,
            "status": self.status,
            "failure_message": self.failure_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
