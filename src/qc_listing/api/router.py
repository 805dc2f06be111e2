"""qc_listing REST endpoints.

GET    /listings                           all listings, newest first (public)
GET    /listings/stats/me                  caller's seller counters
GET    /listings/{listing_id}              single listing (public)
POST   /listings                           create (seller = caller)
POST   /listings/{listing_id}/offers       place an offer
POST   /listings/{listing_id}/accept-offer seller settles on one offer
DELETE /listings/{listing_id}              seller removes the listing
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.qc_common.database import get_db_session
from src.qc_common.response import ApiResponse, success_response
from src.qc_gateway.auth.dependencies import get_current_principal
from src.qc_listing.application.schemas import (
    AcceptOfferRequest,
    CreateListingRequest,
    PlaceOfferRequest,
    dump,
)
from src.qc_listing.application.service import ListingService
from src.qc_listing.domain.models import Principal

router = APIRouter(prefix="/listings", tags=["listings"])


def get_listing_service(request: Request) -> ListingService:
    """The app-wide service, wired to the process publisher in src.main."""
    return request.app.state.listing_service


Service = Annotated[ListingService, Depends(get_listing_service)]
Db = Annotated[AsyncSession, Depends(get_db_session)]
Caller = Annotated[Principal, Depends(get_current_principal)]


@router.get("", response_model=ApiResponse)
async def list_listings(request: Request, service: Service, db: Db) -> ApiResponse:
    listings = await service.list_listings(db)
    return success_response(request, [dump(lo) for lo in listings])


@router.get("/stats/me", response_model=ApiResponse)
async def my_seller_stats(
    request: Request, service: Service, db: Db, caller: Caller
) -> ApiResponse:
    stats = await service.get_seller_stats(db, caller)
    return success_response(request, dump(stats))


@router.get("/{listing_id}", response_model=ApiResponse)
async def get_listing(
    listing_id: str, request: Request, service: Service, db: Db
) -> ApiResponse:
    listing = await service.get_listing(db, listing_id)
    return success_response(request, dump(listing))


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def create_listing(
    body: CreateListingRequest,
    request: Request,
    service: Service,
    db: Db,
    caller: Caller,
) -> ApiResponse:
    listing = await service.create_listing(db, caller, body)
    return success_response(request, dump(listing), "Listing created")


@router.post(
    "/{listing_id}/offers",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
)
async def place_offer(
    listing_id: str,
    body: PlaceOfferRequest,
    request: Request,
    service: Service,
    db: Db,
    caller: Caller,
) -> ApiResponse:
    offer = await service.place_offer(db, listing_id, caller, body.amount_cents)
    return success_response(request, dump(offer), "Offer placed")


@router.post("/{listing_id}/accept-offer", response_model=ApiResponse)
async def accept_offer(
    listing_id: str,
    body: AcceptOfferRequest,
    request: Request,
    service: Service,
    db: Db,
    caller: Caller,
) -> ApiResponse:
    result = await service.accept_offer(db, listing_id, caller, body.offer_id)
    return success_response(request, dump(result), "Offer accepted")


@router.delete("/{listing_id}", response_model=ApiResponse)
async def delete_listing(
    listing_id: str,
    request: Request,
    service: Service,
    db: Db,
    caller: Caller,
) -> ApiResponse:
    await service.delete_listing(db, listing_id, caller)
    return success_response(request, {"id": listing_id}, "Listing deleted")
