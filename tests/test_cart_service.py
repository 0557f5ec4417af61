"""Tests for the cart reducer and CartService."""

from datetime import date, datetime, timezone

import pytest

from flora.services import cart_service as cs
from flora.services.cart_repository import MemoryCartRepository
from flora.services.cart_service import (
    AddItem, Cart, CartService, ClearCart, LoadCart, RemoveItem, SetGiftMessage, UpdateQuantity, apply,
)
from flora.services.pricing import ONE_TIME, RECURRING, SPONTANEOUS
from flora.utils.errors import ValidationError


def test_add_item_appends_line(ref):
    cart = cs.add_item(Cart(), ref(1, 3250), 2)
    assert len(cart.items) == 1
    assert cart.items[0].quantity == 2
    assert cart.total == 6500
    assert cart.item_count == 2


def test_identical_lines_merge(ref):
    """Same product, mode, frequency and day add up instead of duplicating."""
    d = date(2025, 6, 1)
    cart = cs.add_item(Cart(), ref(1), 1, RECURRING, "weekly", d)
    first_id = cart.items[0].id
    cart = cs.add_item(cart, ref(1), 2, RECURRING, "weekly", d)
    assert len(cart.items) == 1
    assert cart.items[0].id == first_id
    assert cart.items[0].quantity == 3


def test_same_utc_day_merges_across_times(ref):
    """Times on the same UTC day count as one delivery date for merging."""
    morning = datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc)
    evening = datetime(2025, 6, 1, 17, 30, tzinfo=timezone.utc)
    cart = cs.add_item(Cart(), ref(1), 1, delivery_date=morning)
    cart = cs.add_item(cart, ref(1), 1, delivery_date=evening)
    assert len(cart.items) == 1
    assert cart.items[0].quantity == 2


@pytest.mark.parametrize("second", [
    dict(mode=RECURRING, frequency="weekly"),
    dict(mode=SPONTANEOUS, frequency="monthly"),
    dict(mode=ONE_TIME, frequency=None, delivery_date=date(2025, 6, 2)),
])
def test_different_lines_stay_separate(ref, second):
    cart = cs.add_item(Cart(), ref(1), 1, ONE_TIME, None, date(2025, 6, 1))
    cart = cs.add_item(cart, ref(1), 1, **{"delivery_date": date(2025, 6, 1), **second})
    assert len(cart.items) == 2


def test_subscription_line_carries_discount(ref):
    cart = cs.add_item(Cart(), ref(3, 4599), 1, RECURRING, "monthly")
    item = cart.items[0]
    assert item.is_subscription
    assert item.discount_percent == 15
    assert item.unit_price == 3909
    assert cart.has_subscription_items


def test_remove_is_idempotent(ref):
    cart = cs.add_item(Cart(), ref(1), 1)
    cart = cs.add_item(cart, ref(2, 6800), 1)
    item_id = cart.items[0].id
    once = cs.remove_item(cart, item_id)
    twice = cs.remove_item(once, item_id)
    assert once == twice
    assert [i.product.id for i in twice.items] == [2]


def test_remove_unknown_id_is_noop(ref):
    cart = cs.add_item(Cart(), ref(1), 1)
    assert cs.remove_item(cart, "missing") == cart


def test_update_quantity(ref):
    cart = cs.add_item(Cart(), ref(1), 1)
    item_id = cart.items[0].id
    assert cs.update_quantity(cart, item_id, 4).items[0].quantity == 4
    assert cs.update_quantity(cart, item_id, 0).is_empty
    assert cs.update_quantity(cart, item_id, -2).is_empty


def test_clear_keeps_gift_message(ref):
    cart = cs.set_gift_message(cs.add_item(Cart(), ref(1), 1), "Mum", "Sam", "Happy birthday")
    cleared = cs.clear(cart)
    assert cleared.is_empty
    assert cleared.gift_message.message == "Happy birthday"


def test_apply_never_mutates_input(ref):
    cart = cs.add_item(Cart(), ref(1), 1)
    apply(cart, AddItem(ref(1), 5))
    apply(cart, ClearCart())
    assert cart.items[0].quantity == 1


def test_load_replaces_state(ref):
    other = cs.add_item(Cart(), ref(2, 6800), 2)
    cart = apply(cs.add_item(Cart(), ref(1), 1), LoadCart(other.items))
    assert cart.items == other.items
    assert cart.gift_message is None


@pytest.mark.parametrize("action,field", [
    (AddItem(None, 0), "quantity"),
    (AddItem(None, 1, RECURRING, None), "frequency"),
    (AddItem(None, 1, ONE_TIME, "weekly"), "frequency"),
    (AddItem(None, 1, "bulk"), "purchase_mode"),
])
def test_invalid_add_is_rejected(action, field):
    with pytest.raises(ValidationError) as e:
        apply(Cart(), action)
    assert field in e.value.errors


def test_unknown_action():
    with pytest.raises(TypeError):
        apply(Cart(), object())


def test_total_tracks_every_mutation(ref):
    """After any sequence of changes the total is the sum of the lines."""
    cart = Cart()
    actions = [
        AddItem(ref(1, 3250), 1),
        AddItem(ref(2, 6800), 2),
        AddItem(ref(3, 4599), 1, RECURRING, "monthly"),
        AddItem(ref(1, 3250), 2),
        SetGiftMessage("A", "B", "C"),
    ]
    for action in actions:
        cart = apply(cart, action)
        assert cart.total == sum(i.line_total for i in cart.items)
    cart = apply(cart, UpdateQuantity(cart.items[1].id, 1))
    cart = apply(cart, RemoveItem(cart.items[0].id))
    assert cart.total == sum(i.line_total for i in cart.items) == 6800 + 3909


def test_service_persists_each_mutation(ref):
    storage = {}
    service = CartService(MemoryCartRepository(storage))
    service.add_item(ref(1, 3250), 1)
    service.add_item(ref(3, 4599), 1, RECURRING, "weekly", date(2025, 6, 1))
    service.set_gift_message("Mum", "Sam", "Love you")

    reopened = CartService(MemoryCartRepository(storage))
    assert reopened.cart == service.cart
    assert reopened.cart.total == 3250 + 3679


def test_service_clear_can_drop_gift_message(ref):
    storage = {}
    service = CartService(MemoryCartRepository(storage))
    service.add_item(ref(1), 1)
    service.set_gift_message("Mum", "Sam", "Love you")

    assert service.clear().gift_message is not None
    assert service.clear(keep_gift_message=False).gift_message is None
    assert CartService(MemoryCartRepository(storage)).cart == Cart()
