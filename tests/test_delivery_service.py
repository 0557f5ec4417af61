"""Tests for delivery grouping, shipping and service-area checks."""

import logging
import time
from datetime import date, datetime, timezone

import pytest

from flora.config import Config
from flora.services import cart_service as cs
from flora.services import delivery_service as ds
from flora.services.cart_service import Cart, LineItem
from flora.utils.errors import ServiceUnavailable, ValidationError

CONFIG = {k: getattr(Config, k) for k in dir(Config) if k.isupper()}


def _line(ref, item_id, when, qty=1):
    return LineItem(id=item_id, product=ref(), quantity=qty, selected_delivery_date=when)


@pytest.fixture
def fixed_tz(monkeypatch):
    """Run the test at UTC+10 with no daylight saving."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available")
    monkeypatch.setenv("TZ", "AEST-10")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()


def test_same_day_different_times_share_a_group(ref):
    items = [
        _line(ref, "a", datetime(2025, 6, 1, 9, 0)),
        _line(ref, "b", datetime(2025, 6, 1, 17, 45)),
    ]
    groups = ds.shipping_breakdown(items, "STANDARD")
    assert len(groups) == 1
    assert groups[0].date_key == "2025-06-01"
    assert ds.total_shipping(groups) == 899


def test_groups_keep_first_encounter_order(ref):
    items = [
        _line(ref, "a", date(2025, 6, 3)),
        _line(ref, "b", None),
        _line(ref, "c", date(2025, 6, 1)),
        _line(ref, "d", date(2025, 6, 3), qty=2),
    ]
    groups = ds.group_by_delivery_date(items)
    assert [g.date_key for g in groups] == ["2025-06-03", None, "2025-06-01"]
    assert [i.id for i in groups[0].items] == ["a", "d"]
    assert sum(g.item_count for g in groups) == sum(i.quantity for i in items) == 5


@pytest.mark.parametrize("dtype,per_group", [("STANDARD", 899), ("EXPRESS", 1599), ("PICKUP", 0), ("express", 1599)])
def test_fee_per_group(ref, dtype, per_group):
    items = [_line(ref, "a", date(2025, 6, 1)), _line(ref, "b", date(2025, 6, 2))]
    groups = ds.shipping_breakdown(items, dtype)
    assert [g.shipping_cents for g in groups] == [per_group, per_group]
    assert ds.total_shipping(groups) == 2 * per_group


def test_empty_cart_has_no_shipping():
    assert ds.total_shipping(ds.shipping_breakdown([], "STANDARD")) == 0


def test_configured_fees_are_used(ref):
    groups = ds.shipping_breakdown([_line(ref, "a", None)], "STANDARD", {"standard": 1000, "express": 2000})
    assert groups[0].shipping_cents == 1000


def test_unknown_delivery_type():
    with pytest.raises(ValidationError) as e:
        ds.normalize_delivery_type("drone")
    assert "delivery_type" in e.value.errors


def test_grouping_uses_local_day(ref, fixed_tz):
    """20:00 UTC is already the next morning at UTC+10."""
    when = datetime(2025, 6, 1, 20, 0, tzinfo=timezone.utc)
    assert ds.local_date_key(when) == "2025-06-02"
    assert cs.utc_date_key(when) == "2025-06-01"


def test_cart_merge_and_grouping_can_disagree(ref, fixed_tz):
    """Lines on one UTC day may still fall on two local delivery days."""
    late = datetime(2025, 6, 1, 13, 0, tzinfo=timezone.utc)     # 23:00 local
    later = datetime(2025, 6, 1, 15, 0, tzinfo=timezone.utc)    # 01:00 local, next day
    cart = cs.add_item(cs.add_item(Cart(), ref(), 1, delivery_date=late), ref(), 1, delivery_date=later)
    assert len(cart.items) == 1

    groups = ds.group_by_delivery_date([_line(ref, "a", late), _line(ref, "b", later)])
    assert [g.date_key for g in groups] == ["2025-06-01", "2025-06-02"]


def test_validate_postcode():
    ok = ds.validate_postcode(" 3000 ", CONFIG)
    assert ok.available and ok.postcode == "3000"
    assert ok.estimate == "2-4 business days"

    no = ds.validate_postcode("2000", CONFIG)
    assert not no.available
    assert no.message == "Sorry, we don't deliver to 2000 yet"

    with pytest.raises(ValidationError):
        ds.validate_postcode("  ", CONFIG)


def test_delivery_info():
    info = ds.delivery_info(CONFIG)
    assert info["pricing"]["standard"]["fee"] == 899
    assert info["pricing"]["express"]["display"] == "$15.99 AUD"
    assert info["service_area"]["estimated_days"]["express"] == "Same day or next business day"
    assert info["currency"] == "AUD"


def test_fees_from_info_falls_back(caplog):
    def down():
        raise ServiceUnavailable("delivery info timed out")

    with caplog.at_level(logging.WARNING):
        assert ds.fees_from_info(down) == ds.DEFAULT_FEES
        assert ds.fees_from_info(lambda: {"pricing": {}}) == ds.DEFAULT_FEES
    assert "using default fees" in caplog.text
    assert ds.fees_from_info(lambda: ds.delivery_info(CONFIG)) == {"standard": 899, "express": 1599}


def test_fees_from_info_survives_transport_errors(caplog):
    def unreachable():
        raise ConnectionError("connection refused")

    with caplog.at_level(logging.WARNING):
        assert ds.fees_from_info(unreachable) == ds.DEFAULT_FEES
    assert "connection refused" in caplog.text
