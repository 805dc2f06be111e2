"""ListingRepository: concrete implementation of ListingRepositoryProtocol.

All queries use raw text() SQL (no ORM). Offers live in `listing_offers`
and are only ever inserted; they go away with their listing (FK CASCADE).

Transaction ownership: the CALLER (application service) commits or rolls
back; nothing here commits.

asyncpg UUID pattern: user ids travel as strings and are CAST(... AS UUID)
in SQL; rows come back as uuid.UUID and are converted to str in the mappers.
"""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.qc_common.errors import InternalError
from src.qc_listing.domain.models import Listing, Offer, SellerStats

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_LISTING_WITH_OFFERS_COLUMNS = """
    l.id, l.seller_id, l.seller_name, l.title, l.description, l.category,
    l.image_url, l.status, l.start_price_cents, l.floor_price_cents,
    l.starts_at, l.offer_window_ends_at, l.accepted_offer_id,
    l.created_at, l.updated_at,
    o.id AS offer_id, o.bidder_id, o.bidder_name, o.amount_cents,
    o.created_at AS offer_created_at
"""

_LIST_LISTINGS_SQL = text(f"""
    SELECT {_LISTING_WITH_OFFERS_COLUMNS}
    FROM listings l
    LEFT JOIN listing_offers o ON o.listing_id = l.id
    ORDER BY l.created_at DESC, l.id DESC, o.created_at ASC, o.id ASC
""")

_GET_LISTING_SQL = text(f"""
    SELECT {_LISTING_WITH_OFFERS_COLUMNS}
    FROM listings l
    LEFT JOIN listing_offers o ON o.listing_id = l.id
    WHERE l.id = :listing_id
    ORDER BY o.created_at ASC, o.id ASC
""")

_INSERT_LISTING_SQL = text("""
    INSERT INTO listings (
        id, seller_id, seller_name, title, description, category, image_url,
        status, start_price_cents, floor_price_cents,
        starts_at, offer_window_ends_at, created_at, updated_at)
    VALUES (
        :id, CAST(:seller_id AS UUID), :seller_name, :title, :description,
        :category, :image_url, :status, :start_price_cents, :floor_price_cents,
        :starts_at, :offer_window_ends_at, :created_at, :updated_at)
""")

# FOR SHARE makes a concurrent accept wait for (or be waited on by) this
# insert, so no offer is ever appended to a listing that is already SOLD.
_APPEND_OFFER_SQL = text("""
    INSERT INTO listing_offers (id, listing_id, bidder_id, bidder_name, amount_cents, created_at)
    SELECT :id, l.id, CAST(:bidder_id AS UUID), :bidder_name, :amount_cents, :created_at
    FROM listings l
    WHERE l.id = :listing_id AND l.status = 'OPEN'
    FOR SHARE OF l
    RETURNING id
""")

_ACCEPT_OFFER_SQL = text("""
    UPDATE listings
    SET status = 'SOLD',
        accepted_offer_id = :offer_id,
        updated_at = NOW()
    WHERE id = :listing_id
      AND status = 'OPEN'
      AND seller_id = CAST(:seller_id AS UUID)
      AND EXISTS (
          SELECT 1 FROM listing_offers
          WHERE id = :offer_id AND listing_id = :listing_id
      )
    RETURNING id
""")

_DELETE_LISTING_SQL = text("""
    DELETE FROM listings
    WHERE id = :listing_id AND seller_id = CAST(:seller_id AS UUID)
    RETURNING id
""")

_SELLER_STATS_SQL = text("""
    SELECT
        COUNT(*)                                    AS listings_count,
        COUNT(*) FILTER (WHERE l.status = 'SOLD')   AS sold_count,
        COALESCE(SUM(oc.offer_count), 0)            AS total_offers
    FROM listings l
    LEFT JOIN (
        SELECT listing_id, COUNT(*) AS offer_count
        FROM listing_offers
        GROUP BY listing_id
    ) oc ON oc.listing_id = l.id
    WHERE l.seller_id = CAST(:seller_id AS UUID)
""")

# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _str_or_none(value: Any) -> str | None:
    return str(value) if value is not None else None


def _row_to_listing(row: Any) -> Listing:
    return Listing(
        id=row.id,
        seller_id=_str_or_none(row.seller_id),
        seller_name=row.seller_name,
        title=row.title,
        description=row.description,
        category=row.category,
        image_url=row.image_url,
        status=row.status,
        start_price_cents=row.start_price_cents,
        floor_price_cents=row.floor_price_cents,
        starts_at=row.starts_at,
        offer_window_ends_at=row.offer_window_ends_at,
        accepted_offer_id=row.accepted_offer_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_offer(row: Any) -> Offer:
    return Offer(
        id=row.offer_id,
        listing_id=row.id,
        bidder_id=_str_or_none(row.bidder_id),
        bidder_name=row.bidder_name,
        amount_cents=row.amount_cents,
        created_at=row.offer_created_at,
    )


def _group_rows(rows: list[Any]) -> list[Listing]:
    """Fold joined listing/offer rows into listings, keeping row order."""
    listings: dict[str, Listing] = {}
    for row in rows:
        listing = listings.get(row.id)
        if listing is None:
            listing = listings[row.id] = _row_to_listing(row)
        if row.offer_id is not None:
            listing.offers.append(_row_to_offer(row))
    return list(listings.values())


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ListingRepository:
    """PostgreSQL repository; write guards live in the SQL WHERE clauses."""

    async def list_listings(self, db: AsyncSession) -> list[Listing]:
        result = await db.execute(_LIST_LISTINGS_SQL)
        return _group_rows(result.fetchall())

    async def get_listing_by_id(
        self, db: AsyncSession, listing_id: str
    ) -> Listing | None:
        result = await db.execute(_GET_LISTING_SQL, {"listing_id": listing_id})
        listings = _group_rows(result.fetchall())
        return listings[0] if listings else None

    async def insert_listing(self, db: AsyncSession, listing: Listing) -> None:
        await db.execute(
            _INSERT_LISTING_SQL,
            {
                "id": listing.id,
                "seller_id": listing.seller_id,
                "seller_name": listing.seller_name,
                "title": listing.title,
                "description": listing.description,
                "category": listing.category,
                "image_url": listing.image_url,
                "status": listing.status,
                "start_price_cents": listing.start_price_cents,
                "floor_price_cents": listing.floor_price_cents,
                "starts_at": listing.starts_at,
                "offer_window_ends_at": listing.offer_window_ends_at,
                "created_at": listing.created_at,
                "updated_at": listing.updated_at,
            },
        )

    async def append_offer(self, db: AsyncSession, offer: Offer) -> bool:
        result = await db.execute(
            _APPEND_OFFER_SQL,
            {
                "id": offer.id,
                "listing_id": offer.listing_id,
                "bidder_id": offer.bidder_id,
                "bidder_name": offer.bidder_name,
                "amount_cents": offer.amount_cents,
                "created_at": offer.created_at,
            },
        )
        return result.fetchone() is not None

    async def accept_offer_if_open(
        self,
        db: AsyncSession,
        listing_id: str,
        seller_id: str,
        offer_id: str,
    ) -> bool:
        result = await db.execute(
            _ACCEPT_OFFER_SQL,
            {"listing_id": listing_id, "seller_id": seller_id, "offer_id": offer_id},
        )
        return result.fetchone() is not None

    async def delete_listing(
        self, db: AsyncSession, listing_id: str, seller_id: str
    ) -> bool:
        result = await db.execute(
            _DELETE_LISTING_SQL, {"listing_id": listing_id, "seller_id": seller_id}
        )
        return result.fetchone() is not None

    async def get_seller_stats(self, db: AsyncSession, seller_id: str) -> SellerStats:
        result = await db.execute(_SELLER_STATS_SQL, {"seller_id": seller_id})
        row = result.fetchone()
        if row is None:
            raise InternalError("Seller stats query returned no rows")
        return SellerStats(
            listings_count=row.listings_count,
            sold_count=row.sold_count,
            total_offers=int(row.total_offers),
        )
