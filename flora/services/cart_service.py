# flora/services/cart_service.py
"""Cart aggregation.

The cart is an immutable value. Every change goes through ``apply(cart,
action)``, which returns a new cart; ``Cart.total`` is derived from the items
on every read so it can never drift from the pricing engine. ``CartService``
wraps the reducer with a repository so that each mutation is mirrored to
storage.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone

from . import pricing
from ..utils.errors import ValidationError

logger = logging.getLogger(__name__)


def new_item_id() -> str:
    return uuid.uuid4().hex


def utc_date_key(value: date | datetime | None) -> str | None:
    """Calendar day of ``value`` in UTC, used to merge identical cart lines.

    Naive datetimes are taken as local time. A plain ``date`` is used as is.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.astimezone(timezone.utc).date().isoformat()
    return value.isoformat()


# ---- values ---------------------------------------------------------------

@dataclass(frozen=True)
class ProductRef:
    id: int
    name: str
    price_cents: int
    image_url: str | None = None
    in_stock: bool = True
    category: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "ProductRef":
        return cls(
            id=data["id"],
            name=data["name"],
            price_cents=int(data["price_cents"]),
            image_url=data.get("image_url"),
            in_stock=bool(data.get("in_stock", True)),
            category=data.get("category"),
        )

    def as_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "price_cents": self.price_cents,
            "image_url": self.image_url,
            "in_stock": self.in_stock,
            "category": self.category,
        }


@dataclass(frozen=True)
class GiftMessage:
    to: str
    sender: str
    message: str

    def as_dict(self):
        return {"to": self.to, "from": self.sender, "message": self.message}


@dataclass(frozen=True)
class LineItem:
    id: str
    product: ProductRef
    quantity: int
    purchase_mode: str = pricing.ONE_TIME
    frequency: str | None = None
    discount_percent: int | None = None
    selected_delivery_date: date | datetime | None = None

    @property
    def is_subscription(self) -> bool:
        return pricing.is_subscription_mode(self.purchase_mode)

    @property
    def dedup_key(self) -> tuple:
        return (self.product.id, self.purchase_mode, self.frequency, utc_date_key(self.selected_delivery_date))

    @property
    def unit_price(self) -> int:
        return pricing.unit_price(self.product.price_cents, self.purchase_mode, self.frequency)

    @property
    def line_total(self) -> int:
        return pricing.line_item_total(self)

    def as_api(self):
        return {
            "id": self.id,
            "product": self.product.as_dict(),
            "quantity": self.quantity,
            "is_subscription": self.is_subscription,
            "purchase_mode": self.purchase_mode,
            "frequency": self.frequency,
            "discount_percent": self.discount_percent,
            "selected_delivery_date": (
                self.selected_delivery_date.isoformat() if self.selected_delivery_date else None
            ),
            "unit_price_cents": self.unit_price,
            "line_total_cents": self.line_total,
        }


@dataclass(frozen=True)
class Cart:
    items: tuple[LineItem, ...] = ()
    gift_message: GiftMessage | None = None

    @property
    def total(self) -> int:
        return pricing.cart_total(self.items)

    @property
    def item_count(self) -> int:
        return sum(i.quantity for i in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def has_subscription_items(self) -> bool:
        return any(i.is_subscription for i in self.items)

    def find(self, item_id: str) -> LineItem | None:
        return next((i for i in self.items if i.id == item_id), None)

    def as_api(self):
        return {
            "items": [i.as_api() for i in self.items],
            "item_count": self.item_count,
            "total_cents": self.total,
            "gift_message": self.gift_message.as_dict() if self.gift_message else None,
        }


# ---- actions --------------------------------------------------------------

@dataclass(frozen=True)
class AddItem:
    product: ProductRef
    quantity: int = 1
    purchase_mode: str = pricing.ONE_TIME
    frequency: str | None = None
    delivery_date: date | datetime | None = None
    item_id: str = field(default_factory=new_item_id)


@dataclass(frozen=True)
class RemoveItem:
    item_id: str


@dataclass(frozen=True)
class UpdateQuantity:
    item_id: str
    quantity: int


@dataclass(frozen=True)
class ClearCart:
    pass


@dataclass(frozen=True)
class LoadCart:
    items: tuple[LineItem, ...]
    gift_message: GiftMessage | None = None


@dataclass(frozen=True)
class SetGiftMessage:
    to: str
    sender: str
    message: str


def _validate_add(action: AddItem) -> None:
    errors = {}
    if action.quantity is None or int(action.quantity) <= 0:
        errors["quantity"] = "quantity must be >= 1"
    if action.purchase_mode not in pricing.PURCHASE_MODES:
        errors["purchase_mode"] = f"purchase mode must be one of {', '.join(pricing.PURCHASE_MODES)}"
    elif pricing.is_subscription_mode(action.purchase_mode):
        if action.frequency not in pricing.FREQUENCIES:
            errors["frequency"] = f"frequency must be one of {', '.join(pricing.FREQUENCIES)}"
    elif action.frequency is not None:
        errors["frequency"] = "one-time purchases have no frequency"
    if errors:
        raise ValidationError("invalid cart item", errors)


def _add(cart: Cart, action: AddItem) -> Cart:
    _validate_add(action)
    qty = int(action.quantity)
    subscription = pricing.is_subscription_mode(action.purchase_mode)
    candidate = LineItem(
        id=action.item_id,
        product=action.product,
        quantity=qty,
        purchase_mode=action.purchase_mode,
        frequency=action.frequency if subscription else None,
        discount_percent=pricing.discount_percent(action.frequency) if subscription else None,
        selected_delivery_date=action.delivery_date,
    )

    existing = next((i for i in cart.items if i.dedup_key == candidate.dedup_key), None)
    if existing:
        items = tuple(
            replace(i, quantity=i.quantity + qty) if i is existing else i
            for i in cart.items
        )
    else:
        items = cart.items + (candidate,)
    return replace(cart, items=items)


def apply(cart: Cart, action) -> Cart:
    """Return the cart that results from ``action``. ``cart`` is never modified."""
    if isinstance(action, AddItem):
        return _add(cart, action)
    if isinstance(action, RemoveItem):
        return replace(cart, items=tuple(i for i in cart.items if i.id != action.item_id))
    if isinstance(action, UpdateQuantity):
        if action.quantity <= 0:
            return apply(cart, RemoveItem(action.item_id))
        return replace(cart, items=tuple(
            replace(i, quantity=int(action.quantity)) if i.id == action.item_id else i
            for i in cart.items
        ))
    if isinstance(action, ClearCart):
        # the gift message outlives the items
        return replace(cart, items=())
    if isinstance(action, LoadCart):
        return Cart(items=tuple(action.items), gift_message=action.gift_message)
    if isinstance(action, SetGiftMessage):
        return replace(cart, gift_message=GiftMessage(action.to, action.sender, action.message))
    raise TypeError(f"unknown cart action: {action!r}")


# ---- functional helpers -----------------------------------------------------

def add_item(cart: Cart, product: ProductRef, quantity: int = 1, mode: str = pricing.ONE_TIME,
             frequency: str | None = None, delivery_date: date | datetime | None = None) -> Cart:
    return apply(cart, AddItem(product, quantity, mode, frequency, delivery_date))


def remove_item(cart: Cart, item_id: str) -> Cart:
    return apply(cart, RemoveItem(item_id))


def update_quantity(cart: Cart, item_id: str, quantity: int) -> Cart:
    return apply(cart, UpdateQuantity(item_id, quantity))


def clear(cart: Cart) -> Cart:
    return apply(cart, ClearCart())


def set_gift_message(cart: Cart, to: str, sender: str, message: str) -> Cart:
    return apply(cart, SetGiftMessage(to, sender, message))


class CartService:
    """Holds the current cart and mirrors every mutation to a repository."""

    def __init__(self, repository) -> None:
        self._repository = repository
        self._cart = repository.load()

    @property
    def cart(self) -> Cart:
        return self._cart

    def dispatch(self, action) -> Cart:
        self._cart = apply(self._cart, action)
        self._repository.save(self._cart)
        return self._cart

    def add_item(self, product: ProductRef, quantity: int = 1, mode: str = pricing.ONE_TIME,
                 frequency: str | None = None, delivery_date: date | datetime | None = None) -> Cart:
        return self.dispatch(AddItem(product, quantity, mode, frequency, delivery_date))

    def remove_item(self, item_id: str) -> Cart:
        return self.dispatch(RemoveItem(item_id))

    def update_quantity(self, item_id: str, quantity: int) -> Cart:
        return self.dispatch(UpdateQuantity(item_id, quantity))

    def clear(self, *, keep_gift_message: bool = True) -> Cart:
        cart = self.dispatch(ClearCart())
        if not keep_gift_message and cart.gift_message is not None:
            self._cart = replace(cart, gift_message=None)
            self._repository.save(self._cart)
        return self._cart

    def set_gift_message(self, to: str, sender: str, message: str) -> Cart:
        return self.dispatch(SetGiftMessage(to, sender, message))
