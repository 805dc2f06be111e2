"""Descending-price auction pricing.

The transactable price of an OPEN listing decays linearly from
`start_price_cents` at `starts_at` down to `floor_price_cents` at
`offer_window_ends_at`, and stays at the floor afterwards:

    now >= ends          -> floor
    now <= starts        -> start
    otherwise            -> start - (elapsed / duration) * (start - floor)

Computation is exact (Fraction over microseconds); only the reported value
is rounded to whole cents. All functions here are pure.

A listing whose window has zero or negative duration is malformed.
`validate_pricing_window` rejects it at creation time; the price functions
assume it never reaches them.
"""

from datetime import datetime, timedelta
from fractions import Fraction
from typing import Protocol

from src.qc_common.errors import InvalidPricingWindowError
from src.qc_common.money import round_half_up

MIN_OFFER_WINDOW_HOURS = 1
MAX_OFFER_WINDOW_HOURS = 168


class PricedListing(Protocol):
    start_price_cents: int
    floor_price_cents: int
    starts_at: datetime
    offer_window_ends_at: datetime


def _micros(delta: timedelta) -> int:
    return (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds


def current_price_exact(listing: PricedListing, now: datetime) -> Fraction:
    """Price in cents at `now`, full precision."""
    start = listing.start_price_cents
    floor = listing.floor_price_cents
    if now >= listing.offer_window_ends_at:
        return Fraction(floor)
    if now <= listing.starts_at:
        return Fraction(start)

    elapsed = _micros(now - listing.starts_at)
    duration = _micros(listing.offer_window_ends_at - listing.starts_at)
    return start - Fraction(elapsed, duration) * (start - floor)


def current_price_cents(listing: PricedListing, now: datetime) -> int:
    """Price at `now` rounded half-up to whole cents (2 decimal places)."""
    return round_half_up(current_price_exact(listing, now))


def validate_pricing_window(
    start_price_cents: int,
    floor_price_cents: int,
    starts_at: datetime,
    offer_window_ends_at: datetime,
) -> None:
    """Reject listings the pricing functions cannot price.

    Raises:
        InvalidPricingWindowError: start <= 0, floor < 0, floor > start,
            or the window does not end strictly after it starts.
    """
    if start_price_cents <= 0:
        raise InvalidPricingWindowError("start price must be positive")
    if floor_price_cents < 0:
        raise InvalidPricingWindowError("floor price must not be negative")
    if floor_price_cents > start_price_cents:
        raise InvalidPricingWindowError(
            "start price must be greater than or equal to floor price"
        )
    if offer_window_ends_at <= starts_at:
        raise InvalidPricingWindowError("offer window must end after it starts")


def offer_window_end(starts_at: datetime, offer_window_hours: int) -> datetime:
    """End of an offer window of `offer_window_hours` starting at `starts_at`."""
    if not MIN_OFFER_WINDOW_HOURS <= offer_window_hours <= MAX_OFFER_WINDOW_HOURS:
        raise InvalidPricingWindowError(
            f"offer window must be {MIN_OFFER_WINDOW_HOURS}-{MAX_OFFER_WINDOW_HOURS} hours"
        )
    return starts_at + timedelta(hours=offer_window_hours)
