"""Integer-cents money helpers.

All stored prices and offer amounts are int cents. The API speaks decimal
numbers with at most two fractional digits; conversion happens only at the
schema boundary.
"""

from decimal import Decimal, InvalidOperation
from fractions import Fraction

# Largest API amount: one billion, i.e. 10**11 cents, well inside BIGINT.
MAX_AMOUNT = 1_000_000_000


def amount_to_cents(amount: float | int | str | Decimal) -> int:
    """Convert an API amount to cents: 12.5 -> 1250.

    Raises ValueError for non-finite values or more than two decimal places.
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation as exc:
        raise ValueError(f"Not a number: {amount!r}") from exc
    if not value.is_finite():
        raise ValueError(f"Not a finite number: {amount!r}")
    cents = value * 100
    if cents != cents.to_integral_value():
        raise ValueError(f"At most two decimal places allowed: {amount!r}")
    return int(cents)


def cents_to_amount(cents: int) -> float:
    """Convert cents to an API number: 1250 -> 12.5."""
    return cents / 100


def round_half_up(value: Fraction) -> int:
    """Round an exact rational to the nearest integer, halves away from zero."""
    if value < 0:
        return -round_half_up(-value)
    return (2 * value.numerator + value.denominator) // (2 * value.denominator)


def cents_to_display(cents: int) -> str:
    """Convert cents to display string: 6500 -> '$65.00', -1200 -> '-$12.00'."""
    if cents < 0:
        abs_cents = -cents
        return f"-${abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"${cents // 100:,}.{cents % 100:02d}"
