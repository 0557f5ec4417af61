# flora/services/cart_repository.py
"""Cart persistence.

A cart is stored under two keys, the item list and the gift message, each a
JSON document. Loading never raises: missing or unreadable data yields an
empty cart, and an individual malformed line is dropped.
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from typing import Protocol

from .cart_service import Cart, GiftMessage, LineItem, ProductRef
from . import pricing
from ..extensions import db
from ..model import StoredCart

logger = logging.getLogger(__name__)

CART_KEY = "flora-cart"
GIFT_MESSAGE_KEY = "flora-cart-gift-message"


class CartRepository(Protocol):
    def load(self) -> Cart: ...

    def save(self, cart: Cart) -> None: ...


# ---- (de)serialization ------------------------------------------------------

def _date_to_str(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def parse_date(raw) -> date | datetime | None:
    """Rebuild a delivery date from its stored ISO form."""
    if raw in (None, ""):
        return None
    if isinstance(raw, (date, datetime)):
        return raw
    text = str(raw)
    if len(text) == 10:
        return date.fromisoformat(text)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


def item_to_dict(item: LineItem) -> dict:
    return {
        "id": item.id,
        "product": item.product.as_dict(),
        "quantity": item.quantity,
        "is_subscription": item.is_subscription,
        "purchase_mode": item.purchase_mode,
        "frequency": item.frequency,
        "discount_percent": item.discount_percent,
        "selected_delivery_date": _date_to_str(item.selected_delivery_date),
    }


def item_from_dict(data: dict) -> LineItem:
    mode = data.get("purchase_mode") or pricing.ONE_TIME
    if mode not in pricing.PURCHASE_MODES:
        raise ValueError(f"unknown purchase mode {mode!r}")
    quantity = int(data["quantity"])
    if quantity <= 0:
        raise ValueError("quantity must be positive")
    frequency = data.get("frequency") if pricing.is_subscription_mode(mode) else None
    if pricing.is_subscription_mode(mode) and frequency not in pricing.FREQUENCIES:
        raise ValueError(f"unknown frequency {frequency!r}")
    return LineItem(
        id=str(data["id"]),
        product=ProductRef.from_dict(data["product"]),
        quantity=quantity,
        purchase_mode=mode,
        frequency=frequency,
        discount_percent=pricing.discount_percent(frequency) if frequency else None,
        selected_delivery_date=parse_date(data.get("selected_delivery_date")),
    )


def dump_items(cart: Cart) -> str:
    return json.dumps([item_to_dict(i) for i in cart.items])


def load_items(raw: str | None) -> tuple[LineItem, ...]:
    if not raw:
        return ()
    try:
        records = json.loads(raw)
    except ValueError:
        logger.warning("stored cart is not valid JSON; starting with an empty cart")
        return ()
    if not isinstance(records, list):
        logger.warning("stored cart is not a list; starting with an empty cart")
        return ()

    items = []
    for record in records:
        try:
            items.append(item_from_dict(record))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("dropping malformed cart line %r: %s", record, e)
    return tuple(items)


def dump_gift_message(cart: Cart) -> str | None:
    return json.dumps(cart.gift_message.as_dict()) if cart.gift_message else None


def load_gift_message(raw: str | None) -> GiftMessage | None:
    if not raw:
        return None
    try:
        data = json.loads(raw)
        return GiftMessage(to=str(data["to"]), sender=str(data["from"]), message=str(data["message"]))
    except (ValueError, KeyError, TypeError) as e:
        logger.warning("ignoring unreadable gift message: %s", e)
        return None


# ---- repositories -------------------------------------------------------------

class MemoryCartRepository:
    """Keeps the two storage keys in a plain dict."""

    def __init__(self, storage: dict | None = None) -> None:
        self.storage = storage if storage is not None else {}

    def load(self) -> Cart:
        return Cart(
            items=load_items(self.storage.get(CART_KEY)),
            gift_message=load_gift_message(self.storage.get(GIFT_MESSAGE_KEY)),
        )

    def save(self, cart: Cart) -> None:
        self.storage[CART_KEY] = dump_items(cart)
        gift = dump_gift_message(cart)
        if gift is None:
            self.storage.pop(GIFT_MESSAGE_KEY, None)
        else:
            self.storage[GIFT_MESSAGE_KEY] = gift


class DbCartRepository:
    """Stores the cart on a ``StoredCart`` row addressed by its uuid."""

    def __init__(self, row: StoredCart) -> None:
        self.row = row

    @classmethod
    def for_uuid(cls, cart_uuid: str | None, user_id: int | None = None) -> "DbCartRepository":
        row = None
        if cart_uuid:
            row = StoredCart.query.filter_by(uuid=cart_uuid).first()
        if not row:
            row = StoredCart(user_id=user_id)
            if cart_uuid:
                row.uuid = cart_uuid
            db.session.add(row)
            db.session.commit()
        elif user_id and row.user_id is None:
            row.user_id = user_id
            db.session.commit()
        return cls(row)

    @property
    def cart_uuid(self) -> str:
        return self.row.uuid

    def load(self) -> Cart:
        return Cart(
            items=load_items(self.row.cart_state),
            gift_message=load_gift_message(self.row.gift_message),
        )

    def save(self, cart: Cart) -> None:
        self.row.cart_state = dump_items(cart)
        self.row.gift_message = dump_gift_message(cart)
        db.session.commit()
