"""Domain models for qc_listing: pure dataclasses, no persistence."""

from dataclasses import dataclass, field
from datetime import datetime

from src.qc_common.enums import ListingStatus


@dataclass(frozen=True)
class Principal:
    """Authenticated caller as supplied by the identity provider."""

    user_id: str
    display_name: str


@dataclass(frozen=True)
class Offer:
    """A bid on a listing. Never mutated after insertion."""

    id: str
    listing_id: str
    bidder_id: str | None
    bidder_name: str
    amount_cents: int
    created_at: datetime


@dataclass
class Listing:
    id: str
    seller_id: str | None  # None for legacy/anonymous listings
    seller_name: str
    title: str
    description: str
    category: str
    image_url: str | None
    status: str
    start_price_cents: int
    floor_price_cents: int
    starts_at: datetime
    offer_window_ends_at: datetime
    accepted_offer_id: str | None
    created_at: datetime
    updated_at: datetime
    offers: list[Offer] = field(default_factory=list)  # insertion order

    @property
    def is_open(self) -> bool:
        return self.status == ListingStatus.OPEN

    def is_seller(self, user_id: str) -> bool:
        return self.seller_id is not None and str(self.seller_id) == str(user_id)

    def find_offer(self, offer_id: str) -> Offer | None:
        return next((o for o in self.offers if o.id == offer_id), None)

    def offer_window_ended(self, now: datetime) -> bool:
        return now >= self.offer_window_ends_at


@dataclass
class SellerStats:
    listings_count: int
    sold_count: int
    total_offers: int
