# flora/services/pricing.py
"""Pricing engine.

Pure functions over integer minor units. A line item is priced
independently of every other line: the subscription discount is applied to
the unit price, rounded half-up to a whole cent, then multiplied by the
quantity. There is no cart-level discount.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..utils.errors import ConfigurationError
from ..utils.money import D, round_minor

ONE_TIME = "one-time"
RECURRING = "recurring"
SPONTANEOUS = "spontaneous"
PURCHASE_MODES = (ONE_TIME, RECURRING, SPONTANEOUS)

FREQUENCIES = ("weekly", "fortnightly", "monthly")

DEFAULT_TAX_RATE = 0.08


@dataclass(frozen=True)
class SubscriptionOption:
    frequency: str
    discount_percent: int
    label: str
    description: str


SUBSCRIPTION_OPTIONS: dict[str, SubscriptionOption] = {
    "weekly": SubscriptionOption("weekly", 20, "Weekly Delivery", "Save 20% with weekly deliveries"),
    "fortnightly": SubscriptionOption("fortnightly", 18, "Fortnightly Delivery", "Save 18% with bi-weekly deliveries"),
    "monthly": SubscriptionOption("monthly", 15, "Monthly Delivery", "Save 15% with monthly deliveries"),
}


def _validate_options(options: dict[str, SubscriptionOption]) -> None:
    for key, opt in options.items():
        if key != opt.frequency:
            raise ConfigurationError(f"subscription option {key!r} is keyed under the wrong frequency")
        if not 0 <= opt.discount_percent <= 100:
            raise ConfigurationError(
                f"subscription discount for {key!r} must be within 0..100, got {opt.discount_percent}"
            )


_validate_options(SUBSCRIPTION_OPTIONS)


@dataclass(frozen=True)
class OrderTotals:
    subtotal: int
    shipping: int
    tax: int
    total: int

    def as_api(self):
        return {
            "subtotal_cents": self.subtotal,
            "shipping_cents": self.shipping,
            "tax_cents": self.tax,
            "total_cents": self.total,
        }


# ---- subscription table ------------------------------------------------------

def is_subscription_mode(mode: str) -> bool:
    return mode in (RECURRING, SPONTANEOUS)


def discount_percent(frequency: str) -> int:
    try:
        return SUBSCRIPTION_OPTIONS[frequency].discount_percent
    except KeyError:
        raise ValueError(f"unknown subscription frequency: {frequency!r}") from None


def subscription_options() -> list[SubscriptionOption]:
    return [SUBSCRIPTION_OPTIONS[f] for f in FREQUENCIES]


def subscription_savings(price_cents: int, frequency: str) -> int:
    """How much a single unit saves when bought on this frequency."""
    return price_cents - unit_price(price_cents, RECURRING, frequency)


# ---- prices -------------------------------------------------------------------

def unit_price(price_cents: int, mode: str = ONE_TIME, frequency: str | None = None) -> int:
    if mode == ONE_TIME:
        return int(price_cents)
    if not is_subscription_mode(mode):
        raise ValueError(f"unknown purchase mode: {mode!r}")
    if not frequency:
        raise ValueError("a subscription purchase needs a frequency")
    factor = 1 - D(discount_percent(frequency)) / 100
    return round_minor(D(price_cents) * factor)


def line_item_total(item) -> int:
    return unit_price(item.product.price_cents, item.purchase_mode, item.frequency) * item.quantity


def cart_total(items) -> int:
    return sum((line_item_total(i) for i in items), 0)


def order_total(subtotal: int, shipping_fee: int, tax_rate: float = DEFAULT_TAX_RATE) -> OrderTotals:
    tax = round_minor(D(subtotal) * D(tax_rate))
    return OrderTotals(
        subtotal=int(subtotal),
        shipping=int(shipping_fee),
        tax=tax,
        total=int(subtotal) + int(shipping_fee) + tax,
    )
