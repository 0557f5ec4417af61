# flora/utils/money.py
# All stored money is integer minor units (cents). Decimal is only used on the
# way in and out so that rounding is half-up and never binary float.

from decimal import Decimal, ROUND_HALF_UP

Money = Decimal

CENT = Decimal("1")
MAJOR = Decimal("0.01")


def D(x) -> Money:
    return x if isinstance(x, Decimal) else Decimal(str(x or "0"))


def round_minor(x) -> int:
    """Round a (possibly fractional) minor-unit amount to a whole cent, half-up."""
    return int(D(x).quantize(CENT, rounding=ROUND_HALF_UP))


def to_major_units(cents: int) -> Money:
    # 19097 -> Decimal("190.97")
    return (D(cents) / 100).quantize(MAJOR, rounding=ROUND_HALF_UP)


def from_major_units(amount) -> int:
    return round_minor(D(amount) * 100)


def format_money(cents: int, currency: str | None = None) -> str:
    text = f"${to_major_units(cents)}"
    return f"{text} {currency}" if currency else text
