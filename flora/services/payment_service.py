# flora/services/payment_service.py
"""Payment intents.

The card provider is reached through ``PaymentProvider``. The app ships a
local provider that only mints ids and client secrets; a hosted provider is
plugged in through ``app.extensions["payment_provider"]``.
"""

from __future__ import annotations

import logging
import secrets
import uuid
from typing import Protocol

from flask import current_app

from .order_service import confirm_order, get_order
from ..extensions import db
from ..model import PaymentIntent
from ..utils.errors import CheckoutError, NotFound, ValidationError
from ..utils.money import from_major_units, to_major_units

logger = logging.getLogger(__name__)


class PaymentProvider(Protocol):
    def create_intent(self, amount_cents: int, currency: str, metadata: dict) -> tuple[str, str]:
        """Return ``(intent_id, client_secret)``."""


class LocalPaymentProvider:
    def create_intent(self, amount_cents: int, currency: str, metadata: dict) -> tuple[str, str]:
        intent_id = "pi_" + uuid.uuid4().hex[:24]
        return intent_id, f"{intent_id}_secret_{secrets.token_hex(12)}"


def _provider() -> PaymentProvider:
    return current_app.extensions.get("payment_provider") or LocalPaymentProvider()


def create_intent(order_id: str, amount) -> PaymentIntent:
    """Open a payment intent for ``order_id``. ``amount`` is in major units."""
    order = get_order(order_id)
    if order.status != "pending":
        raise CheckoutError("order is not awaiting payment", code="ORDER_NOT_PENDING")

    try:
        amount_cents = from_major_units(amount)
    except ArithmeticError:
        raise ValidationError("Validation failed", {"amount": "amount must be a number"}) from None
    if amount_cents != order.total_cents:
        raise ValidationError("Validation failed", {
            "amount": f"amount must equal the order total {to_major_units(order.total_cents)}",
        })

    open_intent = (PaymentIntent.query
                   .filter_by(order_id=order.id, status="requires_payment", amount_cents=amount_cents)
                   .first())
    if open_intent:
        return open_intent

    currency = current_app.config.get("CURRENCY", "AUD")
    intent_id, client_secret = _provider().create_intent(
        amount_cents, currency.lower(), {"order_id": order.id, "order_number": order.order_number},
    )
    intent = PaymentIntent(
        id=intent_id,
        order_id=order.id,
        amount_cents=amount_cents,
        currency=currency,
        client_secret=client_secret,
    )
    db.session.add(intent)
    db.session.commit()
    logger.info("payment intent %s opened for order %s", intent.id, order.order_number)
    return intent


def get_intent(intent_id: str) -> PaymentIntent:
    intent = db.session.get(PaymentIntent, intent_id)
    if not intent:
        raise NotFound("payment intent not found")
    return intent


def record_result(intent_id: str, succeeded: bool, error: str | None = None) -> PaymentIntent:
    """Provider callback. Success confirms the order; failure leaves it pending."""
    intent = get_intent(intent_id)
    if intent.status == "succeeded":
        return intent

    if succeeded:
        intent.status = "succeeded"
        intent.failure_message = None
        db.session.commit()
        confirm_order(intent.order)
        logger.info("payment %s succeeded", intent.id)
    else:
        intent.status = "requires_payment"
        intent.failure_message = error or "Payment failed"
        db.session.commit()
        logger.info("payment %s failed: %s", intent.id, intent.failure_message)
    return intent
