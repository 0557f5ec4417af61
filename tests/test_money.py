"""Tests for minor-unit money helpers."""

from decimal import Decimal

from flora.utils.money import format_money, from_major_units, round_minor, to_major_units


def test_round_minor_is_half_up():
    """Half a cent rounds away from zero, never to even."""
    assert round_minor(Decimal("2.5")) == 3
    assert round_minor(Decimal("3.5")) == 4
    assert round_minor(Decimal("3909.15")) == 3909


def test_major_unit_conversion():
    """Cents convert to a two-place Decimal and back without float error."""
    assert to_major_units(19097) == Decimal("190.97")
    assert to_major_units(899) == Decimal("8.99")
    assert from_major_units("190.97") == 19097
    assert from_major_units(Decimal("0.1") + Decimal("0.2")) == 30


def test_format_money():
    assert format_money(899) == "$8.99"
    assert format_money(1599, "AUD") == "$15.99 AUD"
