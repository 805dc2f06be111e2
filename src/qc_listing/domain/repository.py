# src/qc_listing/domain/repository.py
"""Repository Protocol: dependency inversion for testability.

Unit tests inject a mock (or the in-memory double in tests/) that conforms
to this Protocol. Infrastructure layer provides the PostgreSQL implementation.

The two write paths that race are conditional on the stored state at
write time, not on what the caller read earlier:
  - append_offer only lands while the listing is still OPEN
  - accept_offer_if_open is a compare-and-swap OPEN -> SOLD
Both return False when the condition no longer holds.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.qc_listing.domain.models import Listing, Offer, SellerStats


class ListingRepositoryProtocol(Protocol):
    async def list_listings(self, db: AsyncSession) -> list[Listing]:
        """All listings with their offers, newest first."""
        ...

    async def get_listing_by_id(
        self,
        db: AsyncSession,
        listing_id: str,
    ) -> Listing | None: ...

    async def insert_listing(self, db: AsyncSession, listing: Listing) -> None: ...

    async def append_offer(self, db: AsyncSession, offer: Offer) -> bool: ...

    async def accept_offer_if_open(
        self,
        db: AsyncSession,
        listing_id: str,
        seller_id: str,
        offer_id: str,
    ) -> bool: ...

    async def delete_listing(
        self,
        db: AsyncSession,
        listing_id: str,
        seller_id: str,
    ) -> bool: ...

    async def get_seller_stats(self, db: AsyncSession, seller_id: str) -> SellerStats: ...
