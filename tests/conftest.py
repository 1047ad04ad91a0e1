"""Shared pytest fixtures for async database testing.

This module provides reusable fixtures for testing SQLAlchemy models
and database operations using an in-memory SQLite database, plus email
queue doubles for the notification pipeline.
"""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from seohub.emails.queue import EmailQueue
from seohub.models import Base
from seohub.services.notification_service import NotificationDispatcher


@pytest_asyncio.fixture
async def async_engine():
    """Create an async SQLite engine for testing.

    Uses in-memory SQLite with aiosqlite for fast test execution.
    Creates all tables before yielding, disposes after.

    Yields:
        AsyncEngine: Configured test database engine.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def async_session(async_engine):
    """Create an async session for testing.

    Provides a session bound to the test engine with expire_on_commit=False
    to match production configuration.

    Yields:
        AsyncSession: Database session for test operations.
    """
    async_session_factory = async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_factory() as session:
        yield session


@pytest.fixture
def mock_email_queue():
    """EmailQueue double that records added messages.

    Returns:
        AsyncMock with spec=EmailQueue; inspect mock_email_queue.add.call_args_list.
    """
    queue = AsyncMock(spec=EmailQueue)
    queue.add = AsyncMock(return_value=None)
    return queue


@pytest.fixture
def dispatcher(mock_email_queue):
    """NotificationDispatcher bound to the mock queue with a fixed unsubscribe secret."""
    return NotificationDispatcher(
        mock_email_queue,
        app_url="https://hub.example.com",
        unsubscribe_secret="test-unsubscribe-secret",
    )


# Import additional fixtures from fixtures/ package
from tests.fixtures.database import (  # noqa: F401, E402
    async_test_engine,
    async_test_session,
    test_session_factory,
)
