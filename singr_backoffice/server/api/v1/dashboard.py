"""
Customer Dashboard Endpoints.

Read models behind the dashboard landing page, the songbook browser and the
cross-venue request list.
"""

from datetime import datetime, time, timezone
from typing import List, Optional, Tuple

from fastapi import APIRouter, Query
from sqlalchemy import case, func, or_
from sqlmodel import select

from singr_backoffice.core.database.entities.support import SupportTicket, TicketStatus
from singr_backoffice.core.database.entities.systems import SongDb, System
from singr_backoffice.core.database.entities.venues import SongRequest, Venue
from singr_backoffice.core.database.repositories import (
    ApiKeyRepository,
    StateRepository,
    SubscriptionRepository,
    VenueRepository,
)
from singr_backoffice.core.models.io.dashboard import DashboardRequests, DashboardSummary, RecentRequestRead, SongRead
from singr_backoffice.server.services.billing import subscription_read
from singr_backoffice.server.services.deps import CustomerUser, SessionDep

router = APIRouter()

OPEN_TICKET_STATUSES = (TicketStatus.OPEN, TicketStatus.PENDING_SUPPORT, TicketStatus.PENDING_CUSTOMER)
SUMMARY_RECENT_REQUESTS = 5
REQUESTS_PAGE_SIZE = 50


def recent_request_read(request: SongRequest, venue: Venue) -> RecentRequestRead:
    return RecentRequestRead(
        request_id=request.request_id,
        artist=request.artist,
        title=request.title,
        singer=request.singer,
        key_change=request.key_change,
        request_time=request.request_time,
        venue_id=venue.id,
        venue_name=venue.name,
    )


async def _venue_counts(session, user_id: str) -> Tuple[int, int]:
    result = await session.execute(
        select(
            func.count(Venue.id),
            func.count(case((Venue.accepting_requests.is_(True), Venue.id))),
        ).where(Venue.user_id == user_id)
    )
    venue_count, accepting_count = result.one()
    return venue_count, accepting_count


@router.get(
    "/summary",
    response_model=DashboardSummary,
    summary="Dashboard Summary",
    description="Counts and subscription state shown on the dashboard landing page.",
    response_description="Dashboard summary.",
)
async def dashboard_summary(user: CustomerUser, session: SessionDep) -> DashboardSummary:
    venue_count, accepting_count = await _venue_counts(session, user.id)
    system_count = await session.execute(select(func.count(System.id)).where(System.user_id == user.id))
    song_count = await session.execute(select(func.count(SongDb.song_id)).where(SongDb.user_id == user.id))
    open_tickets = await session.execute(
        select(func.count(SupportTicket.id)).where(
            SupportTicket.requester_id == user.id,
            SupportTicket.status.in_([status.value for status in OPEN_TICKET_STATUSES]),
        )
    )

    venues = VenueRepository(session)
    summary = DashboardSummary(
        venue_count=venue_count,
        accepting_venue_count=accepting_count,
        active_api_key_count=await ApiKeyRepository(session).count_active(user.id),
        system_count=system_count.scalar_one(),
        serial=await StateRepository(session).get_serial(user.id),
        open_ticket_count=open_tickets.scalar_one(),
        song_count=song_count.scalar_one(),
        request_count=await venues.count_requests_for_user(user.id),
        recent_requests=[
            recent_request_read(request, venue)
            for request, venue in await venues.recent_requests_for_user(user.id, SUMMARY_RECENT_REQUESTS)
        ],
    )
    latest = await SubscriptionRepository(session).latest_with_price(user.id)
    if latest is not None:
        subscription = subscription_read(*latest)
        summary.subscription_status = subscription.status
        summary.plan_label = subscription.plan_label
    return summary


@router.get(
    "/songs",
    response_model=List[SongRead],
    summary="List Songbook",
    description="Songs synced from OpenKJ, optionally filtered by system and a case-insensitive search.",
    response_description="Songbook entries ordered by artist and title.",
)
async def list_songs(
    user: CustomerUser,
    session: SessionDep,
    system_id: Optional[int] = Query(default=None, description="OpenKJ system id"),
    q: Optional[str] = Query(default=None, description="Search in artist and title"),
    limit: int = Query(default=100, ge=1, le=500),
) -> List[SongRead]:
    stmt = select(SongDb).where(SongDb.user_id == user.id)
    if system_id is not None:
        stmt = stmt.where(SongDb.openkj_system_id == system_id)
    if q and q.strip():
        pattern = f"%{q.strip().lower()}%"
        stmt = stmt.where(
            or_(func.lower(SongDb.artist).like(pattern), func.lower(SongDb.title).like(pattern))
        )
    stmt = stmt.order_by(SongDb.artist, SongDb.title).limit(limit)
    result = await session.execute(stmt)
    return [SongRead.model_validate(song) for song in result.scalars().all()]


@router.get(
    "/requests",
    response_model=DashboardRequests,
    summary="List Requests Across Venues",
    description="The newest singer requests across every venue of the account, with totals.",
    response_description="Recent requests and request counts.",
)
async def list_requests(user: CustomerUser, session: SessionDep) -> DashboardRequests:
    venues = VenueRepository(session)
    start_of_day = datetime.combine(datetime.now(timezone.utc).date(), time.min, tzinfo=timezone.utc)
    _, accepting_count = await _venue_counts(session, user.id)
    rows = await venues.recent_requests_for_user(user.id, REQUESTS_PAGE_SIZE)
    return DashboardRequests(
        total_count=await venues.count_requests_for_user(user.id),
        today_count=await venues.count_requests_for_user(user.id, since=start_of_day),
        accepting_venue_count=accepting_count,
        requests=[recent_request_read(request, venue) for request, venue in rows],
    )
