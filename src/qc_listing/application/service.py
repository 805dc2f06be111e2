"""ListingService: listing lifecycle, offers, and exactly-once settlement.

State machine: OPEN --accept_offer--> SOLD. CLOSED is terminal and only
ever written by an administrative collaborator, never here.

Every precondition is checked before any write. The writes that can race
(offer append, settlement) are additionally guarded in the store, so a
request that loses a race is reported as ListingNotOpenError and nothing is
left half-written. Settlement is never retried.

After each committed mutation the whole listing collection is re-read,
re-priced and pushed to the publisher. A failed broadcast is logged and
does not fail the request: the committed write is the success boundary.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.qc_common.datetime_utils import utc_now
from src.qc_common.enums import ListingStatus
from src.qc_common.errors import (
    InvalidOfferAmountError,
    ListingNotFoundError,
    ListingNotOpenError,
    NotListingSellerError,
    OfferNotFoundError,
    OfferWindowEndedError,
    SelfBidError,
)
from src.qc_common.id_generator import generate_id
from src.qc_common.money import amount_to_cents, cents_to_amount, cents_to_display
from src.qc_listing.application.schemas import (
    AcceptedOfferOut,
    CreateListingRequest,
    ListingOut,
    OfferOut,
    SellerStatsOut,
    SettlementOut,
    dump,
)
from src.qc_listing.domain.models import Listing, Offer, Principal
from src.qc_listing.domain.pricing import offer_window_end, validate_pricing_window
from src.qc_listing.domain.repository import ListingRepositoryProtocol
from src.qc_listing.infrastructure.persistence import ListingRepository
from src.qc_realtime.publisher import LISTINGS_UPDATED, Publisher

logger = logging.getLogger(__name__)


class ListingService:
    def __init__(
        self,
        publisher: Publisher,
        repo: ListingRepositoryProtocol | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._publisher = publisher
        self._repo: ListingRepositoryProtocol = repo or ListingRepository()
        self._clock = clock

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_listings(self, db: AsyncSession) -> list[ListingOut]:
        now = self._clock()
        listings = await self._repo.list_listings(db)
        return [ListingOut.from_domain(listing, now) for listing in listings]

    async def get_listing(self, db: AsyncSession, listing_id: str) -> ListingOut:
        listing = await self._repo.get_listing_by_id(db, listing_id)
        if listing is None:
            raise ListingNotFoundError(listing_id)
        return ListingOut.from_domain(listing, self._clock())

    async def get_seller_stats(self, db: AsyncSession, seller: Principal) -> SellerStatsOut:
        stats = await self._repo.get_seller_stats(db, seller.user_id)
        return SellerStatsOut.from_domain(stats)

    # ------------------------------------------------------------------
    # Mutations
    #
    # The session may already be inside a transaction (auth reads the user
    # row on it): commit on success, roll back on any error.
    # ------------------------------------------------------------------

    async def create_listing(
        self, db: AsyncSession, seller: Principal, req: CreateListingRequest
    ) -> ListingOut:
        now = self._clock()
        ends_at = offer_window_end(now, req.offer_window_hours)
        listing = Listing(
            id=generate_id(),
            seller_id=seller.user_id,
            seller_name=seller.display_name,
            title=req.title,
            description=req.description,
            category=req.category.value,
            image_url=req.image_url,
            status=ListingStatus.OPEN.value,
            start_price_cents=amount_to_cents(req.start_price),
            floor_price_cents=amount_to_cents(req.floor_price),
            starts_at=now,
            offer_window_ends_at=ends_at,
            accepted_offer_id=None,
            created_at=now,
            updated_at=now,
        )
        validate_pricing_window(
            listing.start_price_cents,
            listing.floor_price_cents,
            listing.starts_at,
            listing.offer_window_ends_at,
        )

        try:
            await self._repo.insert_listing(db, listing)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Listing %s created by %s: %s -> %s until %s",
            listing.id,
            seller.user_id,
            cents_to_display(listing.start_price_cents),
            cents_to_display(listing.floor_price_cents),
            ends_at.isoformat(),
        )
        await self._broadcast(db)
        return ListingOut.from_domain(listing, now)

    async def place_offer(
        self,
        db: AsyncSession,
        listing_id: str,
        bidder: Principal,
        amount_cents: int,
    ) -> OfferOut:
        """Append an offer from the authenticated `bidder`.

        Amounts are not compared with the current decayed price; any
        positive amount is recorded.

        Raises:
            ListingNotFoundError: no such listing.
            ListingNotOpenError: listing is SOLD/CLOSED, or was sold while
                this offer was being written.
            OfferWindowEndedError: now >= offer_window_ends_at.
            SelfBidError: bidder is the seller.
            InvalidOfferAmountError: amount_cents <= 0.
        """
        now = self._clock()
        try:
            listing = await self._repo.get_listing_by_id(db, listing_id)
            if listing is None:
                raise ListingNotFoundError(listing_id)
            if not listing.is_open:
                raise ListingNotOpenError(listing_id)
            if listing.offer_window_ended(now):
                raise OfferWindowEndedError(listing_id)
            if listing.is_seller(bidder.user_id):
                raise SelfBidError()
            if amount_cents <= 0:
                raise InvalidOfferAmountError(cents_to_amount(amount_cents))

            offer = Offer(
                id=generate_id(),
                listing_id=listing_id,
                bidder_id=bidder.user_id,
                bidder_name=bidder.display_name,
                amount_cents=amount_cents,
                created_at=now,
            )
            if not await self._repo.append_offer(db, offer):
                logger.info("Offer on %s refused: listing closed concurrently", listing_id)
                raise ListingNotOpenError(listing_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Offer %s on %s by %s: %s",
            offer.id,
            listing_id,
            bidder.user_id,
            cents_to_display(amount_cents),
        )
        await self._broadcast(db)
        return OfferOut.from_domain(offer)

    async def accept_offer(
        self,
        db: AsyncSession,
        listing_id: str,
        seller: Principal,
        offer_id: str,
    ) -> SettlementOut:
        """Settle the listing on `offer_id`. Exactly one call per listing wins.

        Raises:
            ListingNotFoundError: no such listing.
            ListingNotOpenError: listing not OPEN, including losing a race
                against a concurrent acceptance.
            NotListingSellerError: caller is not the seller.
            OfferNotFoundError: offer_id is not an offer on this listing.
        """
        try:
            listing = await self._repo.get_listing_by_id(db, listing_id)
            if listing is None:
                raise ListingNotFoundError(listing_id)
            if not listing.is_open:
                raise ListingNotOpenError(listing_id)
            if not listing.is_seller(seller.user_id):
                raise NotListingSellerError()
            offer = listing.find_offer(offer_id)
            if offer is None:
                raise OfferNotFoundError(offer_id)

            won = await self._repo.accept_offer_if_open(
                db, listing_id, seller.user_id, offer_id
            )
            if not won:
                logger.warning(
                    "Settlement of %s on offer %s lost to a concurrent acceptance",
                    listing_id,
                    offer_id,
                )
                raise ListingNotOpenError(listing_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Listing %s SOLD to %s on offer %s for %s",
            listing_id,
            offer.bidder_name,
            offer_id,
            cents_to_display(offer.amount_cents),
        )
        await self._broadcast(db)
        return SettlementOut(
            listing_id=listing_id,
            status=ListingStatus.SOLD.value,
            accepted_offer=AcceptedOfferOut(
                id=offer.id,
                bidder_name=offer.bidder_name,
                amount=cents_to_amount(offer.amount_cents),
            ),
        )

    async def delete_listing(
        self, db: AsyncSession, listing_id: str, seller: Principal
    ) -> None:
        """Remove a listing and its offers. Seller only, any status."""
        try:
            listing = await self._repo.get_listing_by_id(db, listing_id)
            if listing is None:
                raise ListingNotFoundError(listing_id)
            if not listing.is_seller(seller.user_id):
                raise NotListingSellerError("delete this listing")
            if not await self._repo.delete_listing(db, listing_id, seller.user_id):
                raise ListingNotFoundError(listing_id)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info("Listing %s deleted by %s", listing_id, seller.user_id)
        await self._broadcast(db)

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    async def _broadcast(self, db: AsyncSession) -> None:
        try:
            listings = await self.list_listings(db)
            await self._publisher.publish(LISTINGS_UPDATED, [dump(lo) for lo in listings])
        except Exception:
            logger.exception("Broadcast of %s failed", LISTINGS_UPDATED)
