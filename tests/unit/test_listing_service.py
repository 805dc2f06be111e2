"""Unit tests for ListingService: preconditions, identity, settlement, fan-out."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from listing_factories import (
    BIDDER_1,
    BIDDER_2,
    SELLER,
    T0,
    FixedClock,
    InMemoryListingRepository,
    RecordingPublisher,
    make_listing,
    make_offer,
)

from src.qc_common.errors import (
    InvalidOfferAmountError,
    InvalidPricingWindowError,
    ListingNotFoundError,
    ListingNotOpenError,
    NotListingSellerError,
    OfferNotFoundError,
    OfferWindowEndedError,
    SelfBidError,
)
from src.qc_listing.application.schemas import CreateListingRequest
from src.qc_listing.application.service import ListingService
from src.qc_realtime.hub import ConnectionHub
from src.qc_realtime.publisher import LISTINGS_UPDATED, HubPublisher


@pytest.fixture
def db() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def svc(
    memory_repo: InMemoryListingRepository,
    publisher: RecordingPublisher,
    clock: FixedClock,
) -> ListingService:
    return ListingService(publisher=publisher, repo=memory_repo, clock=clock)


def _create_request(**kwargs: object) -> CreateListingRequest:
    body: dict[str, object] = dict(
        title="Mini fridge",
        description="Works great, fits under a loft bed",
        category="dorm",
        startPrice=100,
        floorPrice=20,
        offerWindowHours=10,
    )
    body.update(kwargs)
    return CreateListingRequest.model_validate(body)


class TestReads:
    async def test_list_prices_each_listing_at_clock_time(
        self, svc, db, memory_repo, clock
    ) -> None:
        memory_repo.seed(make_listing(id="LST-A", created_at=T0))
        memory_repo.seed(make_listing(id="LST-B", created_at=T0 + timedelta(minutes=1)))
        clock.now = T0 + timedelta(hours=5)

        listings = await svc.list_listings(db)

        assert [lo.id for lo in listings] == ["LST-B", "LST-A"]
        assert all(lo.current_price == 60.0 for lo in listings)

    async def test_get_missing_listing_raises_not_found(self, svc, db) -> None:
        with pytest.raises(ListingNotFoundError):
            await svc.get_listing(db, "LST-NOPE")

    async def test_seller_stats(self, svc, db, memory_repo) -> None:
        listing = memory_repo.seed(make_listing())
        listing.offers.append(make_offer(listing.id, BIDDER_1, 5000))
        memory_repo.seed(make_listing(id="LST-2", status="SOLD", accepted_offer_id="X"))

        stats = await svc.get_seller_stats(db, SELLER)

        assert (stats.listings_count, stats.sold_count, stats.total_offers) == (2, 1, 1)


class TestCreateListing:
    async def test_creates_open_listing_owned_by_caller(
        self, svc, db, memory_repo, publisher, clock
    ) -> None:
        out = await svc.create_listing(db, SELLER, _create_request())

        stored = memory_repo.listings[out.id]
        db.commit.assert_awaited_once()
        assert stored.status == "OPEN"
        assert stored.seller_id == SELLER.user_id
        assert stored.seller_name == "Sam Seller"
        assert stored.start_price_cents == 10000
        assert stored.floor_price_cents == 2000
        assert stored.starts_at == clock.now
        assert stored.offer_window_ends_at == clock.now + timedelta(hours=10)
        assert out.current_price == 100.0
        assert out.offers == []

    async def test_broadcasts_full_collection(self, svc, db, memory_repo, publisher) -> None:
        memory_repo.seed(make_listing(id="LST-OLD"))

        out = await svc.create_listing(db, SELLER, _create_request())

        assert len(publisher.events) == 1
        event, payload = publisher.events[0]
        assert event == LISTINGS_UPDATED
        assert [item["id"] for item in payload] == [out.id, "LST-OLD"]
        assert "currentPrice" in payload[0]

    async def test_floor_above_start_rejected_before_insert(
        self, db, publisher, clock
    ) -> None:
        repo = MagicMock()
        repo.insert_listing = AsyncMock()
        svc = ListingService(publisher=publisher, repo=repo, clock=clock)

        with pytest.raises(InvalidPricingWindowError):
            await svc.create_listing(db, SELLER, _create_request(startPrice=10, floorPrice=20))

        repo.insert_listing.assert_not_awaited()
        assert publisher.events == []


class TestPlaceOffer:
    async def test_records_offer_under_caller_identity(
        self, svc, db, memory_repo, publisher
    ) -> None:
        memory_repo.seed(make_listing())

        out = await svc.place_offer(db, "LST-1", BIDDER_1, 4550)

        stored = memory_repo.listings["LST-1"].offers
        assert len(stored) == 1
        assert stored[0].bidder_id == BIDDER_1.user_id
        assert stored[0].bidder_name == "Bea Bidder"
        assert out.bidder_name == "Bea Bidder"
        assert out.amount == 45.5
        assert publisher.events[-1][0] == LISTINGS_UPDATED

    async def test_offers_are_append_only(self, svc, db, memory_repo) -> None:
        memory_repo.seed(make_listing())

        await svc.place_offer(db, "LST-1", BIDDER_1, 5000)
        first = memory_repo.listings["LST-1"].offers[0]
        await svc.place_offer(db, "LST-1", BIDDER_2, 7000)
        await svc.place_offer(db, "LST-1", BIDDER_1, 6000)

        offers = memory_repo.listings["LST-1"].offers
        assert len(offers) == 3
        assert offers[0] == first
        assert [o.amount_cents for o in offers] == [5000, 7000, 6000]

    async def test_amount_above_current_price_is_accepted(
        self, svc, db, memory_repo, clock
    ) -> None:
        memory_repo.seed(make_listing())
        clock.now = T0 + timedelta(hours=9)

        out = await svc.place_offer(db, "LST-1", BIDDER_1, 99900)

        assert out.amount == 999.0

    async def test_seller_cannot_bid_on_own_listing(
        self, svc, db, memory_repo, publisher
    ) -> None:
        memory_repo.seed(make_listing())

        with pytest.raises(SelfBidError):
            await svc.place_offer(db, "LST-1", SELLER, 5000)

        assert memory_repo.listings["LST-1"].offers == []
        assert publisher.events == []

    async def test_missing_listing(self, svc, db) -> None:
        with pytest.raises(ListingNotFoundError):
            await svc.place_offer(db, "LST-NOPE", BIDDER_1, 5000)

    async def test_sold_listing_rejects_offers(self, svc, db, memory_repo) -> None:
        memory_repo.seed(make_listing(status="SOLD", accepted_offer_id="OFF-X"))

        with pytest.raises(ListingNotOpenError):
            await svc.place_offer(db, "LST-1", BIDDER_1, 5000)

    async def test_status_checked_before_window(self, svc, db, memory_repo, clock) -> None:
        memory_repo.seed(make_listing(status="CLOSED"))
        clock.now = T0 + timedelta(days=3)

        with pytest.raises(ListingNotOpenError):
            await svc.place_offer(db, "LST-1", BIDDER_1, 5000)

    async def test_window_end_is_exclusive(self, svc, db, memory_repo, clock) -> None:
        listing = memory_repo.seed(make_listing())
        clock.now = listing.offer_window_ends_at

        with pytest.raises(OfferWindowEndedError):
            await svc.place_offer(db, "LST-1", BIDDER_1, 5000)

    async def test_window_check_precedes_self_bid(self, svc, db, memory_repo, clock) -> None:
        memory_repo.seed(make_listing())
        clock.now = T0 + timedelta(hours=11)

        with pytest.raises(OfferWindowEndedError):
            await svc.place_offer(db, "LST-1", SELLER, 5000)

    @pytest.mark.parametrize("amount_cents", [0, -100])
    async def test_non_positive_amount_rejected(
        self, svc, db, memory_repo, amount_cents
    ) -> None:
        memory_repo.seed(make_listing())

        with pytest.raises(InvalidOfferAmountError):
            await svc.place_offer(db, "LST-1", BIDDER_1, amount_cents)

    async def test_listing_sold_during_write_reports_not_open(
        self, db, publisher, clock
    ) -> None:
        repo = MagicMock()
        repo.get_listing_by_id = AsyncMock(return_value=make_listing())
        repo.append_offer = AsyncMock(return_value=False)
        svc = ListingService(publisher=publisher, repo=repo, clock=clock)

        with pytest.raises(ListingNotOpenError):
            await svc.place_offer(db, "LST-1", BIDDER_1, 5000)

        assert publisher.events == []


class TestAcceptOffer:
    async def test_seller_settles_listing(self, svc, db, memory_repo, publisher) -> None:
        listing = memory_repo.seed(make_listing())
        offer = make_offer(listing.id, BIDDER_1, 5000)
        listing.offers.append(offer)

        result = await svc.accept_offer(db, "LST-1", SELLER, offer.id)

        assert result.status == "SOLD"
        assert result.listing_id == "LST-1"
        assert result.accepted_offer.id == offer.id
        assert result.accepted_offer.bidder_name == "Bea Bidder"
        assert result.accepted_offer.amount == 50.0
        stored = memory_repo.listings["LST-1"]
        assert (stored.status, stored.accepted_offer_id) == ("SOLD", offer.id)
        assert publisher.events[-1][1][0]["status"] == "SOLD"

    async def test_non_seller_forbidden(self, svc, db, memory_repo) -> None:
        listing = memory_repo.seed(make_listing())
        offer = make_offer(listing.id, BIDDER_1, 5000)
        listing.offers.append(offer)

        with pytest.raises(NotListingSellerError):
            await svc.accept_offer(db, "LST-1", BIDDER_2, offer.id)

        assert memory_repo.listings["LST-1"].status == "OPEN"

    async def test_unknown_offer(self, svc, db, memory_repo) -> None:
        memory_repo.seed(make_listing())

        with pytest.raises(OfferNotFoundError):
            await svc.accept_offer(db, "LST-1", SELLER, "OFF-NOPE")

    async def test_offer_from_another_listing_is_not_found(
        self, svc, db, memory_repo
    ) -> None:
        other = memory_repo.seed(make_listing(id="LST-2"))
        other.offers.append(make_offer(other.id, BIDDER_1, 5000))
        memory_repo.seed(make_listing())

        with pytest.raises(OfferNotFoundError):
            await svc.accept_offer(db, "LST-1", SELLER, other.offers[0].id)

    async def test_expired_open_listing_can_still_settle(
        self, svc, db, memory_repo, clock
    ) -> None:
        listing = memory_repo.seed(make_listing())
        offer = make_offer(listing.id, BIDDER_1, 2500)
        listing.offers.append(offer)
        clock.now = T0 + timedelta(days=2)

        result = await svc.accept_offer(db, "LST-1", SELLER, offer.id)

        assert result.status == "SOLD"

    async def test_lost_race_reports_not_open(self, db, publisher, clock) -> None:
        listing = make_listing()
        listing.offers.append(make_offer(listing.id, BIDDER_1, 5000))
        repo = MagicMock()
        repo.get_listing_by_id = AsyncMock(return_value=listing)
        repo.accept_offer_if_open = AsyncMock(return_value=False)
        svc = ListingService(publisher=publisher, repo=repo, clock=clock)

        with pytest.raises(ListingNotOpenError):
            await svc.accept_offer(db, "LST-1", SELLER, listing.offers[0].id)

        repo.accept_offer_if_open.assert_awaited_once()
        db.commit.assert_not_awaited()
        db.rollback.assert_awaited_once()
        assert publisher.events == []

    async def test_broadcast_failure_does_not_fail_settlement(
        self, db, memory_repo, clock
    ) -> None:
        listing = memory_repo.seed(make_listing())
        offer = make_offer(listing.id, BIDDER_1, 5000)
        listing.offers.append(offer)
        failing = MagicMock()
        failing.publish = AsyncMock(side_effect=ConnectionError("redis down"))
        svc = ListingService(publisher=failing, repo=memory_repo, clock=clock)

        result = await svc.accept_offer(db, "LST-1", SELLER, offer.id)

        assert result.status == "SOLD"
        failing.publish.assert_awaited_once()

    async def test_stalled_subscriber_does_not_hold_the_response(
        self, db, memory_repo, clock
    ) -> None:
        async def never_returns(message: object) -> None:
            await asyncio.sleep(3600)

        hub = ConnectionHub(send_timeout=0.05)
        stalled = MagicMock()
        stalled.accept = AsyncMock()
        stalled.send_json = never_returns
        await hub.connect(stalled)
        memory_repo.seed(make_listing())
        svc = ListingService(publisher=HubPublisher(hub), repo=memory_repo, clock=clock)

        out = await asyncio.wait_for(svc.place_offer(db, "LST-1", BIDDER_1, 4550), 2)

        assert out.amount == 45.5
        assert len(memory_repo.listings["LST-1"].offers) == 1
        assert hub.client_count == 0


class TestSoldListingIsFrozen:
    async def test_no_offers_or_acceptance_after_sale(
        self, svc, db, memory_repo, publisher
    ) -> None:
        memory_repo.seed(make_listing())
        b1 = await svc.place_offer(db, "LST-1", BIDDER_1, 5000)
        b2 = await svc.place_offer(db, "LST-1", BIDDER_2, 7000)
        await svc.accept_offer(db, "LST-1", SELLER, b1.id)
        frozen = memory_repo.listings["LST-1"]
        offers_before = list(frozen.offers)
        events_before = len(publisher.events)

        with pytest.raises(ListingNotOpenError):
            await svc.place_offer(db, "LST-1", BIDDER_2, 9000)
        with pytest.raises(ListingNotOpenError):
            await svc.accept_offer(db, "LST-1", SELLER, b2.id)

        assert frozen.accepted_offer_id == b1.id
        assert frozen.offers == offers_before
        assert len(publisher.events) == events_before


class TestEndToEndFlow:
    async def test_create_bid_accept(self, svc, db, memory_repo) -> None:
        created = await svc.create_listing(db, SELLER, _create_request())

        b1 = await svc.place_offer(db, created.id, BIDDER_1, 5000)
        after_first = await svc.get_listing(db, created.id)
        assert len(after_first.offers) == 1

        b2 = await svc.place_offer(db, created.id, BIDDER_2, 7000)
        listing = await svc.get_listing(db, created.id)
        assert [o.amount for o in listing.offers] == [70.0, 50.0]

        settled = await svc.accept_offer(db, created.id, SELLER, b1.id)
        assert settled.status == "SOLD"
        assert (await svc.get_listing(db, created.id)).accepted_offer_id == b1.id

        with pytest.raises(ListingNotOpenError):
            await svc.accept_offer(db, created.id, SELLER, b2.id)


class TestDeleteListing:
    async def test_seller_deletes(self, svc, db, memory_repo, publisher) -> None:
        memory_repo.seed(make_listing())

        await svc.delete_listing(db, "LST-1", SELLER)

        assert "LST-1" not in memory_repo.listings
        assert publisher.events == [(LISTINGS_UPDATED, [])]

    async def test_sold_listing_can_be_deleted(self, svc, db, memory_repo) -> None:
        memory_repo.seed(make_listing(status="SOLD", accepted_offer_id="OFF-X"))

        await svc.delete_listing(db, "LST-1", SELLER)

        assert memory_repo.listings == {}

    async def test_non_seller_forbidden(self, svc, db, memory_repo) -> None:
        memory_repo.seed(make_listing())

        with pytest.raises(NotListingSellerError):
            await svc.delete_listing(db, "LST-1", BIDDER_1)

        assert "LST-1" in memory_repo.listings

    async def test_missing_listing(self, svc, db) -> None:
        with pytest.raises(ListingNotFoundError):
            await svc.delete_listing(db, "LST-NOPE", SELLER)
