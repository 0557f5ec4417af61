# flora/services/delivery_service.py
"""Delivery grouping, shipping fees and service-area checks.

Shipping is charged once per distinct delivery day, at the flat fee of the
chosen tier. Pickup is free. Days are read in local time here, unlike the
cart, which merges lines on the UTC day (see ``cart_service.utc_date_key``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable

from ..utils.errors import ValidationError
from ..utils.money import format_money

logger = logging.getLogger(__name__)

STANDARD = "STANDARD"
EXPRESS = "EXPRESS"
PICKUP = "PICKUP"
DELIVERY_TYPES = (STANDARD, EXPRESS, PICKUP)

DEFAULT_FEES = {"standard": 899, "express": 1599}
DEFAULT_ESTIMATES = {
    "standard": "2-4 business days",
    "express": "Same day or next business day",
}


def local_date_key(value: date | datetime | None) -> str | None:
    """Calendar day of ``value`` in local time.

    Aware datetimes are converted to the local zone first; naive ones are
    already local.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date().isoformat()
    return value.isoformat()


def normalize_delivery_type(value: str | None) -> str:
    dtype = (value or STANDARD).strip().upper()
    if dtype not in DELIVERY_TYPES:
        raise ValidationError("invalid delivery type", {"delivery_type": f"must be one of {', '.join(DELIVERY_TYPES)}"})
    return dtype


@dataclass
class DeliveryGroup:
    date_key: str | None
    items: list = field(default_factory=list)
    shipping_cents: int = 0

    @property
    def item_count(self) -> int:
        return sum(i.quantity for i in self.items)

    def as_api(self):
        return {
            "date": self.date_key,
            "item_count": self.item_count,
            "item_ids": [getattr(i, "id", None) for i in self.items],
            "shipping_cents": self.shipping_cents,
        }


def _selected_date(item):
    return item.selected_delivery_date


def group_by_delivery_date(items, date_of: Callable = _selected_date) -> list[DeliveryGroup]:
    groups: dict[str | None, DeliveryGroup] = {}
    for item in items:
        key = local_date_key(date_of(item))
        if key not in groups:
            groups[key] = DeliveryGroup(date_key=key)
        groups[key].items.append(item)
    return list(groups.values())


def shipping_cost_for(group: DeliveryGroup, delivery_type: str, fees: dict[str, int] | None = None) -> int:
    dtype = normalize_delivery_type(delivery_type)
    if dtype == PICKUP:
        return 0
    fees = fees or DEFAULT_FEES
    return int(fees[dtype.lower()])


def shipping_breakdown(items, delivery_type: str, fees: dict[str, int] | None = None,
                       date_of: Callable = _selected_date) -> list[DeliveryGroup]:
    groups = group_by_delivery_date(items, date_of=date_of)
    for g in groups:
        g.shipping_cents = shipping_cost_for(g, delivery_type, fees)
    return groups


def total_shipping(groups: list[DeliveryGroup]) -> int:
    return sum(g.shipping_cents for g in groups)


# ---- delivery info / service area -------------------------------------------

@dataclass(frozen=True)
class PostcodeValidation:
    postcode: str
    available: bool
    message: str
    estimate: str | None = None

    def as_api(self):
        return {
            "postcode": self.postcode,
            "available": self.available,
            "message": self.message,
            "estimate": self.estimate,
        }


def delivery_info(config) -> dict:
    fees = config.get("DELIVERY_FEES", DEFAULT_FEES)
    estimates = config.get("DELIVERY_ESTIMATES", DEFAULT_ESTIMATES)
    currency = config.get("CURRENCY", "AUD")
    area = dict(config.get("SERVICE_AREA", {}))
    area["estimated_days"] = dict(estimates)
    return {
        "service_area": area,
        "pricing": {
            tier: {
                "fee": fees[tier],
                "estimate": estimates.get(tier),
                "display": format_money(fees[tier], currency),
            }
            for tier in ("standard", "express")
        },
        "currency": currency,
        "country": config.get("COUNTRY", "Australia"),
    }


def validate_postcode(postcode: str, config) -> PostcodeValidation:
    code = (postcode or "").strip()
    if not code:
        raise ValidationError("postcode is required", {"postcode": "Postcode is required"})
    available = code in set(config.get("VALID_POSTCODES", ()))
    estimates = config.get("DELIVERY_ESTIMATES", DEFAULT_ESTIMATES)
    return PostcodeValidation(
        postcode=code,
        available=available,
        message=(
            f"Delivery available to {code}" if available
            else f"Sorry, we don't deliver to {code} yet"
        ),
        estimate=estimates.get("standard") if available else None,
    )


def fees_from_info(fetch: Callable[[], dict]) -> dict[str, int]:
    """Per-tier fees from a delivery-info lookup, or the defaults if it fails."""
    try:
        info = fetch()
        return {tier: int(info["pricing"][tier]["fee"]) for tier in ("standard", "express")}
    except (KeyError, TypeError, ValueError) as e:
        logger.warning("delivery info malformed, using default fees: %s", e)
    except Exception as e:
        logger.warning("delivery info unavailable, using default fees: %s", e, exc_info=True)
    return dict(DEFAULT_FEES)
