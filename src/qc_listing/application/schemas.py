"""Pydantic schemas for qc_listing requests and responses.

Wire format is camelCase (`startPrice`, `offerWindowEndsAt`, ...); Python
attributes stay snake_case. Request bodies accept either spelling.

Money crosses the boundary as decimal numbers with at most two fractional
digits and is converted to int cents here, never deeper in the stack.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from config.settings import settings
from src.qc_common.datetime_utils import to_iso
from src.qc_common.enums import ListingCategory
from src.qc_common.money import MAX_AMOUNT, amount_to_cents, cents_to_amount
from src.qc_listing.domain.models import Listing, Offer, SellerStats
from src.qc_listing.domain.pricing import (
    MAX_OFFER_WINDOW_HOURS,
    MIN_OFFER_WINDOW_HOURS,
    current_price_cents,
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class CreateListingRequest(_CamelModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=5, max_length=5000)
    category: ListingCategory
    image_url: str | None = Field(None, max_length=2_000_000)
    start_price: float = Field(..., gt=0, le=MAX_AMOUNT)
    floor_price: float = Field(..., ge=0, le=MAX_AMOUNT)
    offer_window_hours: int = Field(
        settings.DEFAULT_OFFER_WINDOW_HOURS,
        ge=MIN_OFFER_WINDOW_HOURS,
        le=MAX_OFFER_WINDOW_HOURS,
    )

    @field_validator("start_price", "floor_price")
    @classmethod
    def at_most_two_decimals(cls, v: float) -> float:
        amount_to_cents(v)
        return v

    @field_validator("image_url")
    @classmethod
    def empty_image_is_none(cls, v: str | None) -> str | None:
        return v or None


class PlaceOfferRequest(_CamelModel):
    amount: float = Field(..., gt=0, le=MAX_AMOUNT)
    # Accepted for older clients; the bidder is always the authenticated caller.
    bidder_name: str | None = Field(None, exclude=True)

    @field_validator("amount")
    @classmethod
    def at_most_two_decimals(cls, v: float) -> float:
        amount_to_cents(v)
        return v

    @property
    def amount_cents(self) -> int:
        return amount_to_cents(self.amount)


class AcceptOfferRequest(_CamelModel):
    offer_id: str = Field(..., min_length=1, max_length=64, pattern=r"^[0-9A-Za-z_-]+$")


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class OfferOut(_CamelModel):
    id: str
    bidder_name: str
    amount: float
    created_at: str

    @classmethod
    def from_domain(cls, o: Offer) -> "OfferOut":
        return cls(
            id=o.id,
            bidder_name=o.bidder_name,
            amount=cents_to_amount(o.amount_cents),
            created_at=to_iso(o.created_at),
        )


def offers_by_amount(offers: list[Offer]) -> list[Offer]:
    """Seller review order: highest amount first, earlier offer wins ties."""
    return sorted(offers, key=lambda o: -o.amount_cents)


class ListingOut(_CamelModel):
    id: str
    seller_id: str | None
    seller_name: str
    image_url: str | None
    title: str
    description: str
    category: str
    status: str
    start_price: float
    floor_price: float
    current_price: float
    starts_at: str
    offer_window_ends_at: str
    accepted_offer_id: str | None
    created_at: str
    offers: list[OfferOut]

    @classmethod
    def from_domain(cls, listing: Listing, now: datetime) -> "ListingOut":
        return cls(
            id=listing.id,
            seller_id=listing.seller_id,
            seller_name=listing.seller_name,
            image_url=listing.image_url,
            title=listing.title,
            description=listing.description,
            category=listing.category,
            status=listing.status,
            start_price=cents_to_amount(listing.start_price_cents),
            floor_price=cents_to_amount(listing.floor_price_cents),
            current_price=cents_to_amount(current_price_cents(listing, now)),
            starts_at=to_iso(listing.starts_at),
            offer_window_ends_at=to_iso(listing.offer_window_ends_at),
            accepted_offer_id=listing.accepted_offer_id,
            created_at=to_iso(listing.created_at),
            offers=[OfferOut.from_domain(o) for o in offers_by_amount(listing.offers)],
        )


class AcceptedOfferOut(_CamelModel):
    id: str
    bidder_name: str
    amount: float


class SettlementOut(_CamelModel):
    listing_id: str
    status: str
    accepted_offer: AcceptedOfferOut


class SellerStatsOut(_CamelModel):
    listings_count: int
    sold_count: int
    total_offers: int

    @classmethod
    def from_domain(cls, s: SellerStats) -> "SellerStatsOut":
        return cls(
            listings_count=s.listings_count,
            sold_count=s.sold_count,
            total_offers=s.total_offers,
        )


def dump(model: BaseModel) -> dict[str, Any]:
    """Wire representation: camelCase keys, JSON-safe values."""
    return model.model_dump(by_alias=True, mode="json")
