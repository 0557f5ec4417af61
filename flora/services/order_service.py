# flora/services/order_service.py
from __future__ import annotations

import logging
import random
import re
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from flask import current_app

from . import pricing
from .cart_repository import parse_date
from .delivery_service import normalize_delivery_type, shipping_breakdown, total_shipping
from ..extensions import db
from ..model import Order, OrderItem, Product, Subscription
from ..utils.api import utcnow
from ..utils.errors import AuthenticationRequired, NotFound, ValidationError

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
ADDRESS_FIELDS = ("first_name", "last_name", "street1", "city", "state", "zip_code")
FREQUENCY_DAYS = {"weekly": 7, "fortnightly": 14, "monthly": 30}


@dataclass(frozen=True)
class OrderLineDraft:
    product_id: int
    quantity: int
    price_cents: int
    purchase_mode: str = pricing.ONE_TIME
    frequency: str | None = None
    requested_delivery_date: date | datetime | None = None

    @property
    def is_subscription(self) -> bool:
        return pricing.is_subscription_mode(self.purchase_mode)

    def as_payload(self):
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "purchase_mode": self.purchase_mode,
            "frequency": self.frequency,
            "requested_delivery_date": (
                self.requested_delivery_date.isoformat() if self.requested_delivery_date else None
            ),
        }


@dataclass(frozen=True)
class OrderDraft:
    items: tuple[OrderLineDraft, ...]
    shipping_address: dict
    delivery_type: str = "STANDARD"
    guest_email: str | None = None
    guest_phone: str | None = None
    billing_address: dict | None = None
    delivery_notes: str | None = None
    gift_message: dict | None = field(default=None)

    @property
    def has_subscription_items(self) -> bool:
        return any(i.is_subscription for i in self.items)

    @classmethod
    def from_payload(cls, data: dict) -> "OrderDraft":
        """Build a draft from a request body; every problem is reported at once."""
        errors: dict[str, str] = {}
        items = []
        raw_items = data.get("items") or []
        if not isinstance(raw_items, list) or not raw_items:
            errors["items"] = "At least one item is required"
            raw_items = []
        for n, raw in enumerate(raw_items):
            try:
                line = OrderLineDraft(
                    product_id=int(raw["product_id"]),
                    quantity=int(raw["quantity"]),
                    price_cents=int(raw["price_cents"]),
                    purchase_mode=raw.get("purchase_mode") or pricing.ONE_TIME,
                    frequency=raw.get("frequency"),
                    requested_delivery_date=parse_date(raw.get("requested_delivery_date")),
                )
            except (KeyError, TypeError, ValueError):
                errors[f"items.{n}"] = "product_id, quantity and price_cents are required"
                continue
            if line.quantity < 1:
                errors[f"items.{n}.quantity"] = "Quantity must be at least 1"
            if line.price_cents < 0:
                errors[f"items.{n}.price_cents"] = "Price must be non-negative"
            if line.purchase_mode not in pricing.PURCHASE_MODES:
                errors[f"items.{n}.purchase_mode"] = "Unknown purchase mode"
            elif line.is_subscription and line.frequency not in pricing.FREQUENCIES:
                errors[f"items.{n}.frequency"] = "Subscription items need a frequency"
            items.append(line)

        shipping = data.get("shipping_address") or {}
        for key in ADDRESS_FIELDS:
            if not str(shipping.get(key) or "").strip():
                errors[f"shipping_address.{key}"] = "This field is required"

        try:
            delivery_type = normalize_delivery_type(data.get("delivery_type"))
        except ValidationError as e:
            errors.update(e.errors)
            delivery_type = "STANDARD"

        email = (data.get("guest_email") or "").strip() or None
        if email and not EMAIL_RE.match(email):
            errors["guest_email"] = "Invalid email format"

        if errors:
            raise ValidationError("Validation failed", errors)

        return cls(
            items=tuple(items),
            shipping_address=dict(shipping),
            delivery_type=delivery_type,
            guest_email=email,
            guest_phone=data.get("guest_phone"),
            billing_address=data.get("billing_address") or None,
            delivery_notes=data.get("delivery_notes"),
            gift_message=data.get("gift_message") or None,
        )

    def as_payload(self):
        return {
            "items": [i.as_payload() for i in self.items],
            "shipping_address": self.shipping_address,
            "billing_address": self.billing_address,
            "delivery_type": self.delivery_type,
            "guest_email": self.guest_email,
            "guest_phone": self.guest_phone,
            "delivery_notes": self.delivery_notes,
            "gift_message": self.gift_message,
        }


def generate_order_number() -> str:
    # FLR + date + last 6 digits of the ms clock + 3 random digits
    today = utcnow().strftime("%Y%m%d")
    stamp = str(int(time.time() * 1000))[-6:]
    return f"FLR{today}{stamp}{random.randint(0, 999):03d}"


def _line_date(line: OrderLineDraft):
    return line.requested_delivery_date


def _as_datetime(value: date | datetime | None) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.combine(value, datetime.min.time())


def _check_stock(draft: OrderDraft) -> dict[int, Product]:
    ids = sorted({line.product_id for line in draft.items})
    products = (
        db.session.query(Product)
        .filter(Product.id.in_(ids))
        .with_for_update()
        .all()
    )
    pmap = {p.id: p for p in products}

    wanted: dict[int, int] = {}
    for line in draft.items:
        wanted[line.product_id] = wanted.get(line.product_id, 0) + line.quantity

    errors = {}
    for pid, qty in wanted.items():
        p = pmap.get(pid)
        if not p or p.status is False:
            errors[f"product.{pid}"] = f"Product {pid} not found"
        elif not p.in_stock:
            errors[f"product.{pid}"] = f"Product {p.name} is out of stock"
        elif (p.stock_count or 0) < qty:
            errors[f"product.{pid}"] = f"Product {p.name} has only {p.stock_count} left"
    if errors:
        raise ValidationError("Some items are unavailable", errors)
    return pmap


def create_order(draft: OrderDraft, idempotency_key: str | None = None, user_id: int | None = None) -> Order:
    """Persist a pending order for ``draft``.

    A repeated ``idempotency_key`` returns the order created the first time
    instead of a second one.
    """
    if idempotency_key:
        existing = Order.query.filter_by(idempotency_key=idempotency_key).first()
        if existing:
            logger.info("order %s already exists for key %s", existing.order_number, idempotency_key)
            return existing

    if draft.has_subscription_items and not user_id:
        raise AuthenticationRequired()
    if not user_id and not draft.guest_email:
        raise ValidationError("Validation failed", {"guest_email": "Either a signed-in user or a guest email is required"})

    pmap = _check_stock(draft)

    cfg = current_app.config
    subtotal = sum(line.price_cents * line.quantity for line in draft.items)
    groups = shipping_breakdown(draft.items, draft.delivery_type, cfg.get("DELIVERY_FEES"), date_of=_line_date)
    totals = pricing.order_total(subtotal, total_shipping(groups), cfg.get("TAX_RATE", pricing.DEFAULT_TAX_RATE))

    order = Order(
        order_number=generate_order_number(),
        status="pending",
        idempotency_key=idempotency_key,
        user_id=user_id,
        guest_email=draft.guest_email,
        guest_phone=draft.guest_phone,
        shipping_address=draft.shipping_address,
        billing_address=draft.billing_address,
        gift_message=draft.gift_message,
        delivery_type=draft.delivery_type,
        delivery_notes=draft.delivery_notes,
        subtotal_cents=totals.subtotal,
        shipping_cents=totals.shipping,
        tax_cents=totals.tax,
        total_cents=totals.total,
    )
    db.session.add(order)
    db.session.flush()

    for line in draft.items:
        p = pmap[line.product_id]
        db.session.add(OrderItem(
            order_id=order.id,
            product_id=p.id,
            name=p.name,
            image_url=p.image_url,
            quantity=line.quantity,
            price_cents=line.price_cents,
            purchase_mode=line.purchase_mode,
            frequency=line.frequency if line.is_subscription else None,
            requested_delivery_date=_as_datetime(line.requested_delivery_date),
        ))
        p.stock_count = int(p.stock_count or 0) - line.quantity
        if p.stock_count <= 0:
            p.in_stock = False

    db.session.commit()
    logger.info("order %s created: %d items, total %d", order.order_number, len(draft.items), order.total_cents)
    return order


def get_order(order_id: str) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFound("order not found")
    return order


def orders_for_user(user_id: int) -> list[Order]:
    return (Order.query.filter(Order.user_id == user_id)
                 .order_by(Order.created_at.desc())
                 .limit(50)
                 .all())


def _next_delivery(item: OrderItem) -> date:
    if item.requested_delivery_date:
        return item.requested_delivery_date.date()
    return date.today() + timedelta(days=FREQUENCY_DAYS.get(item.frequency, 7))


def confirm_order(order: Order) -> Order:
    """Mark ``order`` paid. Subscription lines of a signed-in shopper start a subscription."""
    if order.status == "confirmed":
        return order
    order.status = "confirmed"
    order.confirmed_at = utcnow()

    if order.user_id:
        for item in order.items:
            if item.purchase_mode == pricing.ONE_TIME:
                continue
            db.session.add(Subscription(
                user_id=order.user_id,
                order_id=order.id,
                product_id=item.product_id,
                quantity=item.quantity,
                purchase_mode=item.purchase_mode,
                frequency=item.frequency,
                discount_percent=pricing.discount_percent(item.frequency),
                next_delivery_date=_next_delivery(item),
            ))

    db.session.commit()
    logger.info("order %s confirmed", order.order_number)
    return order
