"""Tests for the pricing engine."""

import pytest

from flora.services import pricing
from flora.services.cart_service import LineItem
from flora.services.pricing import (
    ONE_TIME, RECURRING, SPONTANEOUS, SubscriptionOption, discount_percent, order_total, unit_price,
)
from flora.utils.errors import ConfigurationError


def test_subscription_table():
    """Weekly, fortnightly and monthly carry 20/18/15 percent."""
    assert [(o.frequency, o.discount_percent) for o in pricing.subscription_options()] == [
        ("weekly", 20), ("fortnightly", 18), ("monthly", 15),
    ]


def test_monthly_discount_on_4599():
    """4599 at 15% off is 3909.15, rounded half-up to 3909."""
    assert unit_price(4599, RECURRING, "monthly") == 3909
    assert unit_price(4599, SPONTANEOUS, "monthly") == 3909


def test_discount_rounds_half_up():
    """10 cents at 15% off is exactly 8.5 cents, which rounds up."""
    assert unit_price(10, RECURRING, "monthly") == 9


def test_one_time_price_is_unchanged():
    assert unit_price(4599) == 4599
    assert unit_price(4599, ONE_TIME, None) == 4599


@pytest.mark.parametrize("price", [1, 99, 3250, 4599, 6800, 123457])
@pytest.mark.parametrize("frequency", ["weekly", "fortnightly", "monthly"])
def test_subscription_never_costs_more(price, frequency):
    assert unit_price(price, RECURRING, frequency) <= unit_price(price, ONE_TIME)


def test_unknown_frequency_and_mode():
    with pytest.raises(ValueError):
        discount_percent("yearly")
    with pytest.raises(ValueError):
        unit_price(1000, "bulk", "weekly")
    with pytest.raises(ValueError):
        unit_price(1000, RECURRING, None)


def test_subscription_savings():
    assert pricing.subscription_savings(4599, "monthly") == 690


def test_order_total_worked_example():
    """3250 + 2 x 6800 with one standard delivery and 8% tax."""
    totals = order_total(16850, 899, 0.08)
    assert totals.subtotal == 16850
    assert totals.tax == 1348
    assert totals.shipping == 899
    assert totals.total == 19097


def test_tax_is_on_subtotal_only():
    """Shipping is not taxed."""
    assert order_total(1000, 1599, 0.08).tax == 80


def test_line_and_cart_totals(ref):
    a = LineItem(id="a", product=ref(1, 3250), quantity=1)
    b = LineItem(id="b", product=ref(2, 4599), quantity=2, purchase_mode=RECURRING,
                 frequency="monthly", discount_percent=15)
    assert pricing.line_item_total(a) == 3250
    assert pricing.line_item_total(b) == 3909 * 2
    assert pricing.cart_total([a, b]) == 3250 + 7818
    assert pricing.cart_total([]) == 0


def test_options_are_validated():
    """A malformed subscription table is rejected as a configuration error."""
    with pytest.raises(ConfigurationError):
        pricing._validate_options({"weekly": SubscriptionOption("weekly", 120, "Weekly", "")})
    with pytest.raises(ConfigurationError):
        pricing._validate_options({"weekly": SubscriptionOption("monthly", 15, "Monthly", "")})
