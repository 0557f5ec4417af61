# flora/services/gateway.py
"""In-process implementation of ``CheckoutGateway``.

Calls the order, payment and delivery services directly and reports their
rejections the way a remote backend would: as ``CheckoutError``.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from . import delivery_service, order_service, payment_service
from .checkout_service import CreatedOrder, IntentRef
from ..extensions import db
from ..utils.errors import CheckoutError, NotFound, ServiceUnavailable, ValidationError

logger = logging.getLogger(__name__)


class LocalGateway:
    def __init__(self, config) -> None:
        self.config = config

    def delivery_info(self) -> dict:
        return delivery_service.delivery_info(self.config)

    def validate_postcode(self, postcode: str):
        if not self.config.get("VALID_POSTCODES"):
            raise ServiceUnavailable("no service area configured")
        return delivery_service.validate_postcode(postcode, self.config)

    def create_order(self, draft, idempotency_key, user_id):
        try:
            order = order_service.create_order(draft, idempotency_key, user_id)
        except (ValidationError, NotFound) as e:
            raise CheckoutError(e.message, code="ORDER_REJECTED", data=e.payload()) from e
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("order creation failed")
            raise CheckoutError("Could not create your order. Please try again.") from e
        return CreatedOrder(id=order.id, order_number=order.order_number, total_cents=order.total_cents)

    def create_payment_intent(self, order_id, amount):
        try:
            intent = payment_service.create_intent(order_id, amount)
        except (ValidationError, NotFound) as e:
            raise CheckoutError(e.message, code="PAYMENT_INTENT_REJECTED", data=e.payload()) from e
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.exception("payment intent creation failed")
            raise CheckoutError("Could not start payment. Please try again.") from e
        return IntentRef(payment_intent_id=intent.id, client_secret=intent.client_secret)

    def report_payment(self, intent_id, succeeded, error=None):
        try:
            payment_service.record_result(intent_id, succeeded, error)
        except NotFound as e:
            raise CheckoutError(e.message, code="PAYMENT_INTENT_REJECTED") from e
