"""Tests for order creation and confirmation."""

from datetime import date, datetime, timezone

import pytest

from flora.extensions import db
from flora.model import Order, Product, Subscription
from flora.services import order_service
from flora.services.order_service import OrderDraft, OrderLineDraft
from flora.services.pricing import ONE_TIME, RECURRING
from flora.utils.errors import AuthenticationRequired, NotFound, ValidationError

ADDRESS = {
    "first_name": "Alex", "last_name": "Lee", "street1": "1 Flinders St",
    "city": "Melbourne", "state": "VIC", "zip_code": "3000",
}


def _draft(products, *lines, **kw):
    items = tuple(
        OrderLineDraft(product_id=products[slug].id, quantity=qty, price_cents=price, **extra)
        for slug, qty, price, extra in lines
    )
    kw.setdefault("guest_email", "alex@example.com")
    return OrderDraft(items=items, shipping_address=ADDRESS, **kw)


def test_create_order_totals(products):
    draft = _draft(products, ("pink-peony-posy", 1, 3250, {}), ("native-wildflowers", 2, 6800, {}))
    order = order_service.create_order(draft, "key-1")

    assert order.status == "pending"
    assert (order.subtotal_cents, order.shipping_cents, order.tax_cents, order.total_cents) == (16850, 899, 1348, 19097)
    assert order.order_number.startswith("FLR")
    assert len(order.order_number) == 20
    assert [i.quantity for i in order.items] == [1, 2]


def test_create_order_decrements_stock(products):
    draft = _draft(products, ("white-lily-tribute", 3, 4599, {}))
    order_service.create_order(draft)
    lily = db.session.get(Product, products["white-lily-tribute"].id)
    assert lily.stock_count == 0
    assert lily.in_stock is False


def test_shipping_per_delivery_day(products):
    draft = _draft(
        products,
        ("pink-peony-posy", 1, 3250, {"requested_delivery_date": date(2025, 6, 1)}),
        ("native-wildflowers", 1, 6800, {"requested_delivery_date": date(2025, 6, 2)}),
        delivery_type="EXPRESS",
    )
    order = order_service.create_order(draft)
    assert order.shipping_cents == 2 * 1599


def test_idempotency_key_returns_first_order(products):
    draft = _draft(products, ("pink-peony-posy", 2, 3250, {}))
    first = order_service.create_order(draft, "same-key")
    second = order_service.create_order(draft, "same-key")
    assert first.id == second.id
    assert Order.query.count() == 1
    assert db.session.get(Product, products["pink-peony-posy"].id).stock_count == 8


def test_subscription_needs_user(products):
    draft = _draft(products, ("white-lily-tribute", 1, 3909, {"purchase_mode": RECURRING, "frequency": "monthly"}))
    with pytest.raises(AuthenticationRequired) as e:
        order_service.create_order(draft)
    assert e.value.redirect == "/login?returnTo=/checkout"


def test_guest_needs_email(products):
    draft = _draft(products, ("pink-peony-posy", 1, 3250, {}), guest_email=None)
    with pytest.raises(ValidationError) as e:
        order_service.create_order(draft)
    assert "guest_email" in e.value.errors


@pytest.mark.parametrize("slug,qty", [("sold-out-tulips", 1), ("white-lily-tribute", 4)])
def test_unavailable_items_are_rejected(products, slug, qty):
    draft = _draft(products, (slug, qty, 1000, {}))
    with pytest.raises(ValidationError) as e:
        order_service.create_order(draft)
    assert e.value.message == "Some items are unavailable"
    assert Order.query.count() == 0


def test_confirm_creates_subscriptions_once(products, user):
    draft = _draft(
        products,
        ("pink-peony-posy", 1, 3250, {"purchase_mode": ONE_TIME}),
        ("white-lily-tribute", 1, 3909, {"purchase_mode": RECURRING, "frequency": "monthly"}),
    )
    order = order_service.create_order(draft, user_id=user.id)
    order_service.confirm_order(order)
    order_service.confirm_order(order)

    assert order.status == "confirmed"
    assert order.confirmed_at is not None
    subs = Subscription.query.all()
    assert len(subs) == 1
    assert (subs[0].frequency, subs[0].discount_percent, subs[0].status) == ("monthly", 15, "active")


def test_confirmed_at_is_naive_utc(products):
    """Timestamps are naive UTC to match the timezone-less DateTime columns."""
    order = order_service.create_order(_draft(products, ("pink-peony-posy", 1, 3250, {})))
    order_service.confirm_order(order)
    assert order.confirmed_at.tzinfo is None
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    assert abs((now - order.confirmed_at).total_seconds()) < 60


def test_get_order_missing(app):
    with pytest.raises(NotFound):
        order_service.get_order("nope")


def test_draft_from_payload_reports_all_errors():
    with pytest.raises(ValidationError) as e:
        OrderDraft.from_payload({
            "items": [{"product_id": 1, "quantity": 0, "price_cents": 100, "purchase_mode": RECURRING}],
            "shipping_address": {"first_name": "Alex"},
            "delivery_type": "drone",
            "guest_email": "not-an-email",
        })
    errors = e.value.errors
    assert errors["items.0.quantity"] == "Quantity must be at least 1"
    assert "items.0.frequency" in errors
    assert "shipping_address.street1" in errors
    assert "delivery_type" in errors
    assert errors["guest_email"] == "Invalid email format"


def test_draft_from_payload_parses_dates():
    draft = OrderDraft.from_payload({
        "items": [{"product_id": 1, "quantity": 1, "price_cents": 3250, "requested_delivery_date": "2025-06-01"}],
        "shipping_address": ADDRESS,
        "guest_email": "alex@example.com",
    })
    assert draft.items[0].requested_delivery_date == date(2025, 6, 1)
    assert draft.delivery_type == "STANDARD"
