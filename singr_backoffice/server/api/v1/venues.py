"""
Venue Endpoints.

Venue CRUD for the customer dashboard, the accepting-requests toggle, the
singer request queue and place search through HERE discover.
"""

from typing import List, Optional

from fastapi import APIRouter, HTTPException
from sqlmodel import select

from singr_backoffice.core.database.entities.users import Customer
from singr_backoffice.core.database.entities.venues import SongRequest, Venue
from singr_backoffice.core.database.repositories import StateRepository, VenueRepository
from singr_backoffice.core.logging_config import get_logger
from singr_backoffice.core.models.io.venues import (
    SongRequestRead,
    VenueAcceptingResponse,
    VenueAcceptingUpdate,
    VenueCreate,
    VenueRead,
    VenueRequestsResponse,
    VenueSearchRequest,
    VenueSearchResponse,
    VenueUpdate,
)
from singr_backoffice.server.services.billing import BillingGatewayError
from singr_backoffice.server.services.deps import BillingGatewayDep, CustomerUser, HereClientDep, SessionDep
from singr_backoffice.server.services.geocoding import DEFAULT_SEARCH_CENTER, US_AREA_FILTER, HereApiError

logger = get_logger(__name__)
router = APIRouter()

REQUEST_QUEUE_LIMIT = 100


async def _owned_venue(session: SessionDep, venue_id: str, user_id: str) -> Venue:
    venue = await VenueRepository(session).get_for_user(venue_id, user_id)
    if venue is None:
        raise HTTPException(status_code=404, detail="Venue not found")
    return venue


def geocode_query(*parts: Optional[str]) -> str:
    """Join the non-empty address parts with spaces."""
    return " ".join(part for part in parts if part).strip()


@router.get(
    "",
    response_model=List[VenueRead],
    summary="List Venues",
    description="The customer's venues in creation order.",
    response_description="List of venues.",
)
async def list_venues(user: CustomerUser, session: SessionDep) -> List[VenueRead]:
    venues = await VenueRepository(session).list_for_user(user.id)
    return [VenueRead.model_validate(venue) for venue in venues]


@router.post(
    "",
    response_model=VenueRead,
    summary="Create Venue",
    description="Create a venue, geocoding its address when no coordinates are supplied.",
    response_description="The created venue.",
    responses={400: {"description": "Validation failed or the URL name is taken"}},
)
async def create_venue(
    payload: VenueCreate, user: CustomerUser, session: SessionDep, here: HereClientDep
) -> VenueRead:
    venues = VenueRepository(session)
    if await venues.url_name_taken(user.id, payload.url_name):
        raise HTTPException(status_code=400, detail="URL name is already in use")

    latitude, longitude = payload.latitude, payload.longitude
    if latitude is None and longitude is None and payload.address:
        query = geocode_query(payload.address, payload.city, payload.state, payload.postal_code)
        coordinates = await here.try_geocode(query) if query else None
        if coordinates:
            latitude, longitude = coordinates["lat"], coordinates["lng"]

    venue = Venue(
        user_id=user.id,
        **payload.model_dump(exclude={"latitude", "longitude"}),
        latitude=latitude,
        longitude=longitude,
    )
    await venues.create(venue)
    await StateRepository(session).bump_serial(user.id)
    await session.commit()

    logger.info(f"Created venue {venue.url_name} for user {user.id}")
    return VenueRead.model_validate(venue)


@router.get(
    "/{venue_id}",
    response_model=VenueRead,
    summary="Get Venue",
    description="Retrieve one of the customer's venues.",
    response_description="The venue.",
    responses={404: {"description": "Venue not found"}},
)
async def get_venue(venue_id: str, user: CustomerUser, session: SessionDep) -> VenueRead:
    return VenueRead.model_validate(await _owned_venue(session, venue_id, user.id))


@router.patch(
    "/{venue_id}",
    response_model=VenueRead,
    summary="Update Venue",
    description="Replace the venue's address and contact details; blank values are cleared.",
    response_description="The updated venue.",
    responses={404: {"description": "Venue not found"}},
)
async def update_venue(venue_id: str, payload: VenueUpdate, user: CustomerUser, session: SessionDep) -> VenueRead:
    venue = await _owned_venue(session, venue_id, user.id)
    for field, value in payload.model_dump().items():
        setattr(venue, field, value)
    session.add(venue)
    await session.commit()
    await session.refresh(venue)
    return VenueRead.model_validate(venue)


@router.patch(
    "/{venue_id}/accepting",
    response_model=VenueAcceptingResponse,
    summary="Toggle Accepting Requests",
    description="Open or close the venue for singer requests. Opening requires an active subscription.",
    response_description="The new accepting state.",
    responses={
        403: {"description": "Active subscription required to accept requests"},
        404: {"description": "Venue not found"},
    },
)
async def set_accepting(
    venue_id: str,
    payload: VenueAcceptingUpdate,
    user: CustomerUser,
    session: SessionDep,
    gateway: BillingGatewayDep,
) -> VenueAcceptingResponse:
    venue = await _owned_venue(session, venue_id, user.id)

    if payload.accepting:
        customer = await session.get(Customer, user.id)
        subscribed = False
        if customer is not None:
            try:
                subscribed = await gateway.has_active_subscription(customer.stripe_customer_id)
            except BillingGatewayError as e:
                logger.error(f"Subscription check failed for user {user.id}: {e}")
        if not subscribed:
            raise HTTPException(status_code=403, detail="Active subscription required to accept requests")

    venue.accepting_requests = payload.accepting
    session.add(venue)
    await StateRepository(session).bump_serial(user.id)
    await session.commit()
    return VenueAcceptingResponse(accepting=payload.accepting)


@router.get(
    "/{venue_id}/requests",
    response_model=VenueRequestsResponse,
    summary="List Venue Requests",
    description="The newest 100 singer requests queued at the venue.",
    response_description="Requests, newest first.",
    responses={404: {"description": "Venue not found"}},
)
async def list_requests(venue_id: str, user: CustomerUser, session: SessionDep) -> VenueRequestsResponse:
    venue = await _owned_venue(session, venue_id, user.id)
    result = await session.execute(
        select(SongRequest)
        .where(SongRequest.venue_id == venue.id)
        .order_by(SongRequest.request_time.desc(), SongRequest.request_id.desc())
        .limit(REQUEST_QUEUE_LIMIT)
    )
    return VenueRequestsResponse(requests=[SongRequestRead.model_validate(row) for row in result.scalars().all()])


@router.post(
    "/search",
    response_model=VenueSearchResponse,
    summary="Search Places",
    description="Search HERE for places matching the query, biased to the user's location when given.",
    response_description="Raw HERE discover items.",
    responses={500: {"description": "HERE is not configured or the search failed"}},
)
async def search_venues(payload: VenueSearchRequest, user: CustomerUser, here: HereClientDep) -> VenueSearchResponse:
    """
    Search for places to create venues from.

    With a user location the search is centered there; otherwise it is
    centered on the middle of the US and restricted to the US. A failed
    located search is retried once, US-wide, and flagged as a fallback.
    """
    if not here.configured:
        logger.error("HERE API key not configured")
        raise HTTPException(status_code=500, detail="HERE API key not configured")

    location = payload.user_location
    try:
        if location is not None:
            items = await here.discover(payload.query, at=f"{location.lat},{location.lng}")
        else:
            items = await here.discover(payload.query, at=DEFAULT_SEARCH_CENTER, area=US_AREA_FILTER)
        return VenueSearchResponse(results=items, query=payload.query, user_location=location)
    except HereApiError as e:
        logger.warning(f"Venue search for '{payload.query}' failed: {e}")

    if location is not None:
        try:
            items = await here.discover(payload.query, area=US_AREA_FILTER)
            return VenueSearchResponse(results=items, query=payload.query, user_location=None, fallback=True)
        except HereApiError as e:
            logger.error(f"Fallback venue search for '{payload.query}' failed: {e}")

    raise HTTPException(status_code=500, detail="Failed to search venues")
