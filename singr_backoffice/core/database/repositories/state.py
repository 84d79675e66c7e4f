"""
Serial (State) repository.

The serial is the counter the OpenKJ desktop client polls; any write the
client must notice goes through ``bump_serial``.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..entities.systems import State
from .base import BaseRepository


class StateRepository(BaseRepository[State]):
    """Data access for the per-user State row."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, State)

    async def lock(self, user_id: str) -> State:
        """Fetch the user's State row ``FOR UPDATE``, creating it if missing.

        SQLite ignores the row lock; the unique constraints on dependent
        tables remain the final guard there.
        """
        stmt = select(State).where(State.user_id == user_id).with_for_update()
        result = await self.session.execute(stmt)
        state = result.scalars().first()
        if state is None:
            state = State(user_id=user_id, serial=1)
            self.session.add(state)
            await self.session.flush()
        return state

    async def get_serial(self, user_id: str) -> int:
        """Return the user's serial, or 1 when no row exists yet."""
        state = await self.session.get(State, user_id)
        return state.serial if state else 1

    async def bump_serial(self, user_id: str) -> int:
        """Increment the serial (creating it at 1 if missing) and return the new value."""
        state = await self.session.get(State, user_id)
        if state is None:
            state = State(user_id=user_id, serial=1)
            self.session.add(state)
        else:
            state.serial += 1
            self.session.add(state)
        await self.session.flush()
        return state.serial
