"""
OpenKJ System Endpoints.

Systems are numbered 1, 2, 3, ... per customer with no gaps. New systems take
the next number while the customer's State row is locked; deletion is only
allowed from the top of the sequence down.
"""

from typing import List

from fastapi import APIRouter, HTTPException
from sqlalchemy import delete, func
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from singr_backoffice.core.database.entities.systems import SongDb, System
from singr_backoffice.core.database.repositories import BaseRepository, StateRepository
from singr_backoffice.core.logging_config import get_logger
from singr_backoffice.core.models.io.support import SuccessResponse
from singr_backoffice.core.models.io.systems import SystemCreate, SystemEnvelope, SystemRead, SystemUpdate
from singr_backoffice.server.services.deps import CustomerUser, SessionDep

logger = get_logger(__name__)
router = APIRouter()


async def _owned_system(session: SessionDep, system_id: str, user_id: str) -> System:
    system = await BaseRepository(session, System).get_by_id(system_id)
    if system is None or system.user_id != user_id:
        raise HTTPException(status_code=404, detail="System not found")
    return system


@router.get(
    "",
    response_model=List[SystemRead],
    summary="List Systems",
    description="The customer's systems ordered by OpenKJ system id.",
    response_description="List of systems.",
)
async def list_systems(user: CustomerUser, session: SessionDep) -> List[SystemRead]:
    result = await session.execute(
        select(System).where(System.user_id == user.id).order_by(System.openkj_system_id)
    )
    return [SystemRead.model_validate(system) for system in result.scalars().all()]


@router.post(
    "",
    response_model=SystemEnvelope,
    summary="Create System",
    description="Create a system with the next sequential OpenKJ id.",
    response_description="The created system.",
    responses={409: {"description": "Another request took the same OpenKJ id"}},
)
async def create_system(payload: SystemCreate, user: CustomerUser, session: SessionDep) -> SystemEnvelope:
    """
    Create a system.

    The next id is ``max(openkj_system_id) + 1`` computed while the State row
    is held ``FOR UPDATE``. The (user, openkj_system_id) unique constraint
    turns a lost race into a 409.
    """
    state = StateRepository(session)
    try:
        await state.lock(user.id)
        result = await session.execute(
            select(func.max(System.openkj_system_id)).where(System.user_id == user.id)
        )
        next_id = (result.scalar_one_or_none() or 0) + 1
        system = System(user_id=user.id, name=payload.name, openkj_system_id=next_id)
        session.add(system)
        await session.flush()
        await state.bump_serial(user.id)
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise HTTPException(status_code=409, detail="A system with that ID already exists. Please retry.")

    logger.info(f"Created system #{system.openkj_system_id} for user {user.id}")
    return SystemEnvelope(system=SystemRead.model_validate(system))


@router.patch(
    "/{system_id}",
    response_model=SystemEnvelope,
    summary="Rename System",
    description="Rename one of the customer's systems.",
    response_description="The updated system.",
    responses={404: {"description": "System not found"}},
)
async def update_system(
    system_id: str, payload: SystemUpdate, user: CustomerUser, session: SessionDep
) -> SystemEnvelope:
    system = await _owned_system(session, system_id, user.id)
    system.name = payload.name
    session.add(system)
    await StateRepository(session).bump_serial(user.id)
    await session.commit()
    await session.refresh(system)
    return SystemEnvelope(system=SystemRead.model_validate(system))


@router.delete(
    "/{system_id}",
    response_model=SuccessResponse,
    summary="Delete System",
    description="Delete the highest numbered system together with its songbook.",
    response_description="Success flag.",
    responses={
        400: {"description": "Only the highest numbered system can be deleted"},
        404: {"description": "System not found"},
    },
)
async def delete_system(system_id: str, user: CustomerUser, session: SessionDep) -> SuccessResponse:
    system = await _owned_system(session, system_id, user.id)

    result = await session.execute(select(func.max(System.openkj_system_id)).where(System.user_id == user.id))
    if system.openkj_system_id != result.scalar_one():
        raise HTTPException(status_code=400, detail="Systems must be deleted in descending order of their OpenKJ ID")

    await session.execute(
        delete(SongDb).where(SongDb.user_id == user.id, SongDb.openkj_system_id == system.openkj_system_id)
    )
    await BaseRepository(session, System).delete(system)
    await StateRepository(session).bump_serial(user.id)
    await session.commit()

    logger.info(f"Deleted system #{system.openkj_system_id} for user {user.id}")
    return SuccessResponse()
