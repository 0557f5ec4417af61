# flora/model/cart.py
from __future__ import annotations
import uuid as _uuid
from sqlalchemy.sql import func
from ..extensions import db


class StoredCart(db.Model):
    """Durable home of a shopper's cart.

    The cart itself belongs to the shopper's session; this row only mirrors
    the two storage keys the client would otherwise keep locally (the item
    list and the gift message) plus the in-flight checkout attempt. Values are
    raw JSON text so that a corrupt payload can be detected and discarded on
    load instead of failing at the ORM layer.
    """

    __tablename__ = "stored_cart"

    id = db.Column(db.Integer, primary_key=True)
    uuid = db.Column(db.String(36), unique=True, index=True, default=lambda: str(_uuid.uuid4()))
    user_id = db.Column(db.Integer, nullable=True, index=True)

    cart_state = db.Column(db.Text, nullable=True)        # "flora-cart"
    gift_message = db.Column(db.Text, nullable=True)      # "flora-cart-gift-message"
    checkout_state = db.Column(db.Text, nullable=True)    # current checkout attempt

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())
