# flora/services/checkout_service.py
"""Checkout orchestration.

Turns the current cart into a pending order and a payment intent, then
reacts to the payment outcome. The steps run in a fixed order:
authentication gate, form validation, order creation, payment intent. There
is no rollback; a failed step leaves the cart alone and the same attempt
(same idempotency key, same order once one exists) is retried. Changing the
cart or the form starts a new attempt with a fresh key.
"""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from dataclasses import asdict, dataclass, field, fields
from typing import Protocol

from . import pricing
from .delivery_service import (
    DeliveryGroup, PostcodeValidation, fees_from_info, normalize_delivery_type,
    shipping_breakdown, total_shipping,
)
from .order_service import EMAIL_RE, OrderDraft, OrderLineDraft
from ..extensions import db
from ..model import StoredCart
from ..utils.errors import AuthenticationRequired, CheckoutError, ValidationError
from ..utils.money import to_major_units

logger = logging.getLogger(__name__)

DRAFT = "draft"
AWAITING_PAYMENT = "awaiting_payment"
COMPLETED = "completed"


# ---- form -------------------------------------------------------------------

@dataclass
class CheckoutForm:
    guest_email: str = ""
    recipient_first_name: str = ""
    recipient_last_name: str = ""
    recipient_business_name: str = ""
    recipient_address: str = ""
    recipient_apartment: str = ""
    recipient_city: str = ""
    recipient_state: str = ""
    recipient_zip_code: str = ""
    recipient_phone: str = ""
    use_same_address: bool = True
    sender_first_name: str = ""
    sender_last_name: str = ""
    sender_address: str = ""
    sender_apartment: str = ""
    sender_city: str = ""
    sender_state: str = ""
    sender_zip_code: str = ""
    sender_phone: str = ""
    delivery_type: str = "STANDARD"
    delivery_notes: str = ""

    @classmethod
    def from_payload(cls, data: dict) -> "CheckoutForm":
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in (data or {}).items():
            if key not in known or value is None:
                continue
            values[key] = bool(value) if key == "use_same_address" else str(value)
        return cls(**values)

    def shipping_address(self) -> dict:
        return {
            "first_name": self.recipient_first_name.strip(),
            "last_name": self.recipient_last_name.strip(),
            "company": self.recipient_business_name.strip() or None,
            "street1": self.recipient_address.strip(),
            "street2": self.recipient_apartment.strip() or None,
            "city": self.recipient_city.strip(),
            "state": self.recipient_state.strip(),
            "zip_code": self.recipient_zip_code.strip(),
            "phone": self.recipient_phone.strip() or None,
        }

    def billing_address(self) -> dict | None:
        if self.use_same_address:
            return None
        return {
            "first_name": self.sender_first_name.strip(),
            "last_name": self.sender_last_name.strip(),
            "street1": self.sender_address.strip(),
            "street2": self.sender_apartment.strip() or None,
            "city": self.sender_city.strip(),
            "state": self.sender_state.strip(),
            "zip_code": self.sender_zip_code.strip(),
            "phone": self.sender_phone.strip() or None,
        }


RECIPIENT_MESSAGES = {
    "recipient_first_name": "Enter a first name",
    "recipient_last_name": "Enter a last name",
    "recipient_address": "Enter an address",
    "recipient_city": "Enter a city",
    "recipient_state": "Select a state/territory",
}

SENDER_MESSAGES = {
    "sender_first_name": "Enter your first name for billing",
    "sender_last_name": "Enter your last name for billing",
    "sender_address": "Enter your billing address",
    "sender_city": "Enter your billing suburb",
    "sender_state": "Select your billing state",
    "sender_zip_code": "Enter your billing postcode",
}


def validate_form(form: CheckoutForm, gateway: "CheckoutGateway", service_state: str = "VIC") -> dict[str, str]:
    """Field -> message for everything wrong with ``form``.

    The postcode lookup fails open: if the gateway cannot answer, the
    postcode is accepted and a warning is logged.
    """
    errors: dict[str, str] = {}

    email = form.guest_email.strip()
    if not email:
        errors["guest_email"] = "Enter an email address"
    elif not EMAIL_RE.match(email):
        errors["guest_email"] = "Enter a valid email address"

    for name, message in RECIPIENT_MESSAGES.items():
        if not getattr(form, name).strip():
            errors[name] = message

    postcode = form.recipient_zip_code.strip()
    if not postcode:
        errors["recipient_zip_code"] = "Enter a ZIP / postal code"
    else:
        try:
            result = gateway.validate_postcode(postcode)
        except Exception as e:
            # any lookup failure lets checkout through
            logger.warning("postcode validation unavailable, allowing checkout: %s", e, exc_info=True)
        else:
            if not result.available:
                errors["recipient_zip_code"] = "We only deliver to Melbourne metro area. Please check your postcode."
            elif form.recipient_state.strip() and form.recipient_state.strip() != service_state:
                errors["recipient_state"] = (
                    f"Melbourne postcodes are in Victoria ({service_state}). Please select the correct state."
                )

    if not form.use_same_address:
        for name, message in SENDER_MESSAGES.items():
            if not getattr(form, name).strip():
                errors[name] = message

    try:
        normalize_delivery_type(form.delivery_type)
    except ValidationError as e:
        errors.update(e.errors)

    return errors


# ---- gateway ----------------------------------------------------------------

@dataclass(frozen=True)
class CreatedOrder:
    id: str
    order_number: str
    total_cents: int


@dataclass(frozen=True)
class IntentRef:
    payment_intent_id: str
    client_secret: str


class CheckoutGateway(Protocol):
    def delivery_info(self) -> dict: ...

    def validate_postcode(self, postcode: str) -> PostcodeValidation: ...

    def create_order(self, draft: OrderDraft, idempotency_key: str, user_id: int | None) -> CreatedOrder: ...

    def create_payment_intent(self, order_id: str, amount) -> IntentRef: ...

    def report_payment(self, intent_id: str, succeeded: bool, error: str | None = None) -> None: ...


# ---- attempt ----------------------------------------------------------------

def new_idempotency_key() -> str:
    return str(uuid.uuid4())


@dataclass
class CheckoutAttempt:
    idempotency_key: str = field(default_factory=new_idempotency_key)
    status: str = DRAFT
    fingerprint: str | None = None
    order_id: str | None = None
    order_number: str | None = None
    total_cents: int | None = None
    payment_intent_id: str | None = None
    client_secret: str | None = None
    error: str | None = None

    def as_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "CheckoutAttempt":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


class AttemptStore(Protocol):
    def get(self) -> CheckoutAttempt | None: ...

    def put(self, attempt: CheckoutAttempt) -> None: ...

    def clear(self) -> None: ...


class MemoryAttemptStore:
    def __init__(self) -> None:
        self.attempt: CheckoutAttempt | None = None

    def get(self):
        return self.attempt

    def put(self, attempt):
        self.attempt = attempt

    def clear(self):
        self.attempt = None


class DbAttemptStore:
    """Keeps the attempt as JSON on the cart's ``StoredCart`` row."""

    def __init__(self, row: StoredCart) -> None:
        self.row = row

    def get(self):
        if not self.row.checkout_state:
            return None
        try:
            return CheckoutAttempt.from_dict(json.loads(self.row.checkout_state))
        except (ValueError, TypeError) as e:
            logger.warning("ignoring unreadable checkout state on cart %s: %s", self.row.uuid, e)
            return None

    def put(self, attempt):
        self.row.checkout_state = json.dumps(attempt.as_dict())
        db.session.commit()

    def clear(self):
        self.row.checkout_state = None
        db.session.commit()


# ---- orchestrator -----------------------------------------------------------

@dataclass(frozen=True)
class CheckoutQuote:
    delivery_type: str
    groups: list[DeliveryGroup]
    totals: pricing.OrderTotals

    def as_api(self):
        return {
            "delivery_type": self.delivery_type,
            "groups": [g.as_api() for g in self.groups],
            **self.totals.as_api(),
        }


def _fingerprint(draft: OrderDraft) -> str:
    raw = json.dumps(draft.as_payload(), sort_keys=True, default=str)
    return hashlib.sha256(raw.encode()).hexdigest()[:16]


class CheckoutOrchestrator:
    def __init__(self, cart_service, gateway: CheckoutGateway, attempts: AttemptStore, *,
                 user_id: int | None = None, tax_rate: float = pricing.DEFAULT_TAX_RATE,
                 service_state: str = "VIC") -> None:
        self.cart_service = cart_service
        self.gateway = gateway
        self.attempts = attempts
        self.user_id = user_id
        self.tax_rate = tax_rate
        self.service_state = service_state

    @property
    def attempt(self) -> CheckoutAttempt | None:
        return self.attempts.get()

    def fees(self) -> dict[str, int]:
        return fees_from_info(self.gateway.delivery_info)

    def quote(self, delivery_type: str = "STANDARD") -> CheckoutQuote:
        dtype = normalize_delivery_type(delivery_type)
        cart = self.cart_service.cart
        groups = shipping_breakdown(cart.items, dtype, self.fees())
        totals = pricing.order_total(cart.total, total_shipping(groups), self.tax_rate)
        return CheckoutQuote(delivery_type=dtype, groups=groups, totals=totals)

    def build_draft(self, form: CheckoutForm) -> OrderDraft:
        cart = self.cart_service.cart
        lines = tuple(
            OrderLineDraft(
                product_id=item.product.id,
                quantity=item.quantity,
                price_cents=item.unit_price,
                purchase_mode=item.purchase_mode,
                frequency=item.frequency,
                requested_delivery_date=item.selected_delivery_date,
            )
            for item in cart.items
        )
        return OrderDraft(
            items=lines,
            shipping_address=form.shipping_address(),
            delivery_type=normalize_delivery_type(form.delivery_type),
            guest_email=form.guest_email.strip() or None,
            guest_phone=form.recipient_phone.strip() or None,
            billing_address=form.billing_address(),
            delivery_notes=form.delivery_notes.strip() or None,
            gift_message=cart.gift_message.as_dict() if cart.gift_message else None,
        )

    def _current_attempt(self, fingerprint: str) -> CheckoutAttempt:
        attempt = self.attempts.get()
        if attempt is None or attempt.status == COMPLETED:
            return CheckoutAttempt(fingerprint=fingerprint)
        if attempt.fingerprint != fingerprint:
            # a stored attempt has already sent its key with the old draft
            logger.info("checkout input changed, abandoning attempt %s (order %s)",
                        attempt.idempotency_key, attempt.order_number)
            return CheckoutAttempt(fingerprint=fingerprint)
        return attempt

    def submit(self, form: CheckoutForm) -> CheckoutAttempt:
        cart = self.cart_service.cart
        if cart.is_empty:
            raise ValidationError("Your cart is empty", {"cart": "Add something to your cart first"})

        if cart.has_subscription_items and not self.user_id:
            raise AuthenticationRequired(return_path="/checkout")

        errors = validate_form(form, self.gateway, self.service_state)
        if errors:
            raise ValidationError("Validation failed", errors)

        draft = self.build_draft(form)
        attempt = self._current_attempt(_fingerprint(draft))

        if attempt.order_id is None:
            try:
                order = self.gateway.create_order(draft, attempt.idempotency_key, self.user_id)
            except CheckoutError as e:
                self._fail(attempt, e)
                raise
            attempt.order_id = order.id
            attempt.order_number = order.order_number
            attempt.total_cents = order.total_cents
            self.attempts.put(attempt)

        try:
            intent = self.gateway.create_payment_intent(attempt.order_id, to_major_units(attempt.total_cents))
        except CheckoutError as e:
            self._fail(attempt, e)
            raise

        attempt.payment_intent_id = intent.payment_intent_id
        attempt.client_secret = intent.client_secret
        attempt.status = AWAITING_PAYMENT
        attempt.error = None
        self.attempts.put(attempt)
        logger.info("checkout for order %s awaiting payment", attempt.order_number)
        return attempt

    def _fail(self, attempt: CheckoutAttempt, e: CheckoutError) -> None:
        attempt.error = e.message
        self.attempts.put(attempt)
        logger.warning("checkout step failed (%s): %s", e.code, e.message)

    def _awaiting(self) -> CheckoutAttempt:
        attempt = self.attempts.get()
        if attempt is None or attempt.status != AWAITING_PAYMENT:
            raise CheckoutError("no payment in progress", code="NO_PAYMENT_PENDING", status=409)
        return attempt

    def payment_succeeded(self) -> CheckoutAttempt:
        attempt = self._awaiting()
        self.gateway.report_payment(attempt.payment_intent_id, True)
        self.cart_service.clear(keep_gift_message=False)
        attempt.status = COMPLETED
        attempt.error = None
        self.attempts.put(attempt)
        logger.info("checkout for order %s completed", attempt.order_number)
        return attempt

    def payment_failed(self, message: str | None = None) -> CheckoutAttempt:
        """The cart and the pending order stay as they are so payment can be retried."""
        attempt = self._awaiting()
        message = message or "Payment failed"
        self.gateway.report_payment(attempt.payment_intent_id, False, message)
        attempt.error = message
        self.attempts.put(attempt)
        return attempt
