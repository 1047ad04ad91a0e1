"""
Database testing fixtures for async SQLAlchemy sessions.

The webhook pipeline opens several sessions per call (primary transaction
plus one per post-commit effect), so most service tests take
test_session_factory rather than a single session. StaticPool keeps every
session on the same in-memory SQLite connection.

Usage:
    async def test_handler(test_session_factory):
        async with test_session_factory() as session:
            session.add(create_dealership())
            await session.commit()

        await process_seoworks_webhook(payload, test_session_factory, dispatcher)

        async with test_session_factory() as session:
            ...  # fresh identity map, sees committed state
"""

from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from seohub.models import Base


@pytest.fixture
async def async_test_engine():
    """
    Create an async SQLite in-memory engine for testing.

    Uses StaticPool to maintain single connection across async operations.
    Database schema is created from SQLAlchemy models.

    Returns:
        AsyncEngine configured for testing
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,  # Single connection for in-memory DB
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def test_session_factory(async_test_engine):
    """
    Create a real async session factory for integration testing.

    Yields:
        async_sessionmaker factory for creating real database sessions
    """
    return async_sessionmaker(
        async_test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def async_test_session(test_session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    Create an async SQLAlchemy session for integration testing.

    Yields:
        AsyncSession connected to in-memory SQLite database
    """
    async with test_session_factory() as session:
        yield session
