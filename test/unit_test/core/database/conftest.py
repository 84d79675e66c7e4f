"""Test configuration for database unit tests.

This module provides common fixtures for testing the repository layer
against an in-memory SQLite database.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.pool import StaticPool

from singr_backoffice.core.database import entities  # noqa: F401
from singr_backoffice.core.database.base import Base
from singr_backoffice.core.database.entities.users import Customer, User


@pytest.fixture(scope="function")
async def in_memory_engine() -> AsyncGenerator:
    """Create in-memory SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture(scope="function")
async def in_memory_session(in_memory_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create in-memory SQLite session for testing."""
    async_session = sessionmaker(
        bind=in_memory_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session


@pytest.fixture(scope="function")
async def owner(in_memory_session: AsyncSession) -> User:
    """A customer account with its Stripe link."""
    user = User(email="owner@example.com", name="Venue Owner", password_hash="x")
    in_memory_session.add(user)
    await in_memory_session.flush()
    in_memory_session.add(Customer(id=user.id, stripe_customer_id="cus_owner"))
    await in_memory_session.commit()
    return user


@pytest.fixture(scope="function")
async def other_owner(in_memory_session: AsyncSession) -> User:
    user = User(email="other@example.com", name="Other Owner", password_hash="x")
    in_memory_session.add(user)
    await in_memory_session.flush()
    in_memory_session.add(Customer(id=user.id, stripe_customer_id="cus_other"))
    await in_memory_session.commit()
    return user


@pytest.fixture(scope="function")
def sample_subscription_data() -> dict:
    """Sample mirrored subscription fields."""
    now = datetime.now(timezone.utc)
    return {
        "id": "sub_123",
        "customer": "cus_owner",
        "status": "active",
        "price_id": "price_monthly",
        "current_period_start": now,
        "current_period_end": now + timedelta(days=30),
    }
