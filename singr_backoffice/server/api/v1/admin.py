"""
Admin Console Endpoints.

Customer management for staff: a cross-account activity feed, account
lookup, profile edits, API keys, venues created on a customer's behalf and
internal notes. Every route needs an admin account; destructive or
identity-changing routes need the ``super_admin`` level.
"""

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query
from sqlalchemy import delete, func, or_
from sqlmodel import select

from singr_backoffice.core.database.entities.api_keys import ApiKey
from singr_backoffice.core.database.entities.systems import System
from singr_backoffice.core.database.entities.user_notes import UserNote
from singr_backoffice.core.database.entities.users import AccountType, Customer, User
from singr_backoffice.core.database.entities.venues import SongRequest, Venue
from singr_backoffice.core.database.repositories import (
    ApiKeyRepository,
    BaseRepository,
    StateRepository,
    SubscriptionRepository,
    VenueRepository,
)
from singr_backoffice.core.logging_config import get_logger
from singr_backoffice.core.models.io.admin import (
    ActivityItem,
    AdminUserDetail,
    AdminUserSummary,
    AdminVenueCreate,
    AdminVenueUpdate,
    ProfileUpdate,
    UserNoteCreate,
    UserNoteCreated,
    UserNoteImportance,
    UserNoteRead,
)
from singr_backoffice.core.models.io.api_keys import ApiKeyCreate, ApiKeyIssued, ApiKeyRead
from singr_backoffice.core.models.io.support import SuccessResponse
from singr_backoffice.core.models.io.systems import SystemRead
from singr_backoffice.core.models.io.venues import VenueRead
from singr_backoffice.server.services.activity import ActivityFeed
from singr_backoffice.server.services.api_keys import ApiKeyService
from singr_backoffice.server.services.billing import subscription_read
from singr_backoffice.server.services.deps import AdminUser, HereClientDep, SessionDep, SuperAdminUser

from .venues import geocode_query

logger = get_logger(__name__)
router = APIRouter()

USER_SEARCH_LIMIT = 100


async def _user(session: SessionDep, user_id: str) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def _venue(session: SessionDep, venue_id: str) -> Venue:
    venue = await VenueRepository(session).get_by_id(venue_id)
    if venue is None:
        raise HTTPException(status_code=404, detail="Venue not found")
    return venue


async def _notes(session: SessionDep, user_id: str) -> List[UserNoteRead]:
    result = await session.execute(
        select(UserNote).where(UserNote.user_id == user_id).order_by(UserNote.created_at.desc())
    )
    return [UserNoteRead.model_validate(note) for note in result.scalars().all()]


# ----------------------------------------------------------------------
# Activity
# ----------------------------------------------------------------------


@router.get(
    "/activity",
    response_model=List[ActivityItem],
    summary="Recent Activity",
    description="Newest venues, song requests, API keys and songbook rows across all accounts.",
    response_description="Up to 80 activity items, newest first.",
)
async def recent_activity(admin: AdminUser, session: SessionDep) -> List[ActivityItem]:
    return await ActivityFeed(session).recent()


# ----------------------------------------------------------------------
# Customers
# ----------------------------------------------------------------------


@router.get(
    "/users",
    response_model=List[AdminUserSummary],
    summary="Search Customers",
    description="Customer accounts, optionally filtered by name, email or business name.",
    response_description="Matching customers, newest first.",
)
async def list_users(
    admin: AdminUser,
    session: SessionDep,
    q: Optional[str] = Query(default=None, description="Case-insensitive search term"),
) -> List[AdminUserSummary]:
    stmt = select(User).where(User.account_type == AccountType.CUSTOMER.value)
    if q and q.strip():
        pattern = f"%{q.strip().lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(User.name).like(pattern),
                func.lower(User.email).like(pattern),
                func.lower(User.business_name).like(pattern),
            )
        )
    result = await session.execute(stmt.order_by(User.created_at.desc()).limit(USER_SEARCH_LIMIT))
    return [AdminUserSummary.model_validate(user) for user in result.scalars().all()]


@router.get(
    "/users/{user_id}",
    response_model=AdminUserDetail,
    summary="Get Customer",
    description="Profile, venues, systems, API keys, latest subscription and notes of one account.",
    response_description="Customer detail.",
    responses={404: {"description": "User not found"}},
)
async def get_user(user_id: str, admin: AdminUser, session: SessionDep) -> AdminUserDetail:
    user = await _user(session, user_id)
    customer = await session.get(Customer, user.id)
    systems = await session.execute(
        select(System).where(System.user_id == user.id).order_by(System.openkj_system_id)
    )
    latest = await SubscriptionRepository(session).latest_with_price(user.id)

    return AdminUserDetail(
        user=AdminUserSummary.model_validate(user),
        stripe_customer_id=customer.stripe_customer_id if customer else None,
        serial=await StateRepository(session).get_serial(user.id),
        venues=[VenueRead.model_validate(venue) for venue in await VenueRepository(session).list_for_user(user.id)],
        systems=[SystemRead.model_validate(system) for system in systems.scalars().all()],
        api_keys=[ApiKeyRead.model_validate(key) for key in await ApiKeyRepository(session).list_for_customer(user.id)],
        subscription=subscription_read(*latest) if latest is not None else None,
        notes=await _notes(session, user.id),
    )


@router.patch(
    "/users/{user_id}/profile",
    response_model=AdminUserSummary,
    summary="Update Customer Profile",
    description="Edit name, business name and phone number. Requires super_admin.",
    response_description="The updated profile.",
    responses={400: {"description": "No changes supplied"}, 404: {"description": "User not found"}},
)
async def update_profile(
    user_id: str, payload: ProfileUpdate, admin: SuperAdminUser, session: SessionDep
) -> AdminUserSummary:
    user = await _user(session, user_id)
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No changes supplied")

    for field, value in changes.items():
        setattr(user, field, value)
    session.add(user)
    await session.commit()
    await session.refresh(user)

    logger.info(f"Admin {admin.id} updated profile of {user.id}: {sorted(changes)}")
    return AdminUserSummary.model_validate(user)


# ----------------------------------------------------------------------
# API keys
# ----------------------------------------------------------------------


@router.post(
    "/users/{user_id}/api-keys",
    response_model=ApiKeyIssued,
    summary="Issue Customer API Key",
    description="Issue an API key for a customer. The plaintext is only included in this response.",
    response_description="The issued key.",
    responses={404: {"description": "User not found"}},
)
async def issue_api_key(
    user_id: str, payload: ApiKeyCreate, admin: AdminUser, session: SessionDep
) -> ApiKeyIssued:
    user = await _user(session, user_id)
    issued = await ApiKeyService(session).issue(user.id, payload.description)
    await session.commit()
    logger.info(f"Admin {admin.id} issued API key {issued.id} for {user.id}")
    return issued


@router.post(
    "/api-keys/{key_id}/revoke",
    response_model=SuccessResponse,
    summary="Revoke API Key",
    description="Revoke any customer's API key. Requires super_admin.",
    response_description="Success flag.",
    responses={404: {"description": "API key not found"}},
)
async def revoke_api_key(key_id: str, admin: SuperAdminUser, session: SessionDep) -> SuccessResponse:
    api_key = await session.get(ApiKey, key_id)
    if api_key is None:
        raise HTTPException(status_code=404, detail="API key not found")
    if api_key.revoked_at is None:
        await ApiKeyService(session).revoke(api_key)
        await session.commit()
        logger.info(f"Admin {admin.id} revoked API key {api_key.id}")
    return SuccessResponse()


# ----------------------------------------------------------------------
# Venues
# ----------------------------------------------------------------------


@router.post(
    "/users/{user_id}/venues",
    response_model=VenueRead,
    summary="Create Customer Venue",
    description="Create a venue on a customer's behalf.",
    response_description="The created venue.",
    responses={400: {"description": "Validation failed or URL name taken"}, 404: {"description": "User not found"}},
)
async def create_venue(
    user_id: str, payload: AdminVenueCreate, admin: AdminUser, session: SessionDep, here: HereClientDep
) -> VenueRead:
    user = await _user(session, user_id)
    venues = VenueRepository(session)
    if await venues.url_name_taken(user.id, payload.url_name):
        raise HTTPException(status_code=400, detail="URL name is already in use for this customer")

    latitude, longitude = payload.latitude, payload.longitude
    if payload.address and (not payload.country_code or not payload.state_code):
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

    logger.info(f"Admin {admin.id} created venue {venue.id} for {user.id}")
    return VenueRead.model_validate(venue)


@router.patch(
    "/venues/{venue_id}",
    response_model=VenueRead,
    summary="Update Venue",
    description="Partially update any venue. Requires super_admin.",
    response_description="The updated venue.",
    responses={400: {"description": "No changes supplied"}, 404: {"description": "Venue not found"}},
)
async def update_venue(
    venue_id: str, payload: AdminVenueUpdate, admin: SuperAdminUser, session: SessionDep
) -> VenueRead:
    venue = await _venue(session, venue_id)
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise HTTPException(status_code=400, detail="No changes supplied")

    for field, value in changes.items():
        setattr(venue, field, value)
    session.add(venue)
    if "accepting_requests" in changes:
        await StateRepository(session).bump_serial(venue.user_id)
    await session.commit()
    await session.refresh(venue)

    logger.info(f"Admin {admin.id} updated venue {venue.id}: {sorted(changes)}")
    return VenueRead.model_validate(venue)


@router.delete(
    "/venues/{venue_id}",
    response_model=SuccessResponse,
    summary="Delete Venue",
    description="Delete a venue and its queued requests. Requires super_admin.",
    response_description="Success flag.",
    responses={404: {"description": "Venue not found"}},
)
async def delete_venue(venue_id: str, admin: SuperAdminUser, session: SessionDep) -> SuccessResponse:
    venue = await _venue(session, venue_id)
    owner_id = venue.user_id
    await session.execute(delete(SongRequest).where(SongRequest.venue_id == venue.id))
    await VenueRepository(session).delete(venue)
    await StateRepository(session).bump_serial(owner_id)
    await session.commit()

    logger.info(f"Admin {admin.id} deleted venue {venue_id}")
    return SuccessResponse()


# ----------------------------------------------------------------------
# Notes
# ----------------------------------------------------------------------


@router.get(
    "/users/{user_id}/notes",
    response_model=List[UserNoteRead],
    summary="List Customer Notes",
    description="Internal staff notes about a customer, newest first.",
    response_description="List of notes.",
)
async def list_notes(user_id: str, admin: AdminUser, session: SessionDep) -> List[UserNoteRead]:
    return await _notes(session, user_id)


@router.post(
    "/users/{user_id}/notes",
    response_model=UserNoteCreated,
    summary="Add Customer Note",
    description="Attach an internal note to a customer account.",
    response_description="The new note id and importance.",
    responses={404: {"description": "Customer not found"}},
)
async def create_note(
    user_id: str, payload: UserNoteCreate, admin: AdminUser, session: SessionDep
) -> UserNoteCreated:
    user = await session.get(User, user_id)
    if user is None or user.account_type != AccountType.CUSTOMER:
        raise HTTPException(status_code=404, detail="Customer not found")

    note = UserNote(
        user_id=user.id,
        created_by=admin.id,
        subject=payload.subject,
        note=payload.note,
        important=payload.important,
    )
    session.add(note)
    await session.commit()

    logger.info(f"Admin {admin.id} added note {note.id} for {user.id}")
    return UserNoteCreated(id=note.id, important=note.important)


@router.patch(
    "/users/{user_id}/notes/{note_id}",
    response_model=UserNoteCreated,
    summary="Flag Customer Note",
    description="Set a note's importance, or toggle it when no value is given.",
    response_description="The note id and new importance.",
    responses={404: {"description": "Note not found"}},
)
async def update_note(
    user_id: str, note_id: str, payload: UserNoteImportance, admin: AdminUser, session: SessionDep
) -> UserNoteCreated:
    note = await BaseRepository(session, UserNote).get_by_id(note_id)
    if note is None or note.user_id != user_id:
        raise HTTPException(status_code=404, detail="Note not found")

    note.important = (not note.important) if payload.important is None else payload.important
    session.add(note)
    await session.commit()

    logger.info(f"Admin {admin.id} set note {note.id} important={note.important}")
    return UserNoteCreated(id=note.id, important=note.important)
