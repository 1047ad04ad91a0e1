"""Async database engine and session management.

This module provides the async SQLAlchemy 2.0 engine configuration,
session factory, and FastAPI dependency injection for database sessions.

Usage:
    from seohub.database import get_session, get_session_factory

    async def my_route(db: AsyncSession = Depends(get_session)):
        result = await db.execute(select(Dealership))
        ...
"""

import os
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from seohub.config import get_database_url
from seohub.exceptions import ConfigurationError

# DATABASE_URL may be absent during import in tests
if os.getenv("DATABASE_URL"):
    engine: AsyncEngine | None = create_async_engine(
        get_database_url(),
        pool_size=10,
        max_overflow=5,
        pool_pre_ping=True,
        echo=os.getenv("DATABASE_ECHO", "").lower() == "true",
    )
else:
    engine = None


async_session_factory: async_sessionmaker[AsyncSession] | None = (
    async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,  # CRITICAL: post-commit effects read loaded attributes
    )
    if engine
    else None
)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """FastAPI dependency returning the configured session factory.

    The webhook pipeline opens its own sessions (one for the primary
    mutation, one per post-commit effect), so routes take the factory
    rather than a single session.

    Raises:
        ConfigurationError: If DATABASE_URL was not set at import time.
    """
    if async_session_factory is None:
        raise ConfigurationError("Database not configured. Set DATABASE_URL environment variable.")
    return async_session_factory


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database session injection.

    Yields an async database session with automatic commit on success
    and rollback on exception.

    Yields:
        AsyncSession: Database session for the request.

    Raises:
        ConfigurationError: If database is not configured.
    """
    factory = get_session_factory()

    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def create_test_engine(
    database_url: str = "sqlite+aiosqlite:///:memory:",
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Create an async engine for testing.

    Args:
        database_url: Test database URL (defaults to in-memory SQLite).

    Returns:
        Tuple of (engine, async_session_factory) for testing.
    """
    test_engine = create_async_engine(
        database_url,
        echo=False,
    )
    test_session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    return test_engine, test_session_factory
