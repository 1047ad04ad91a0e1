"""Tests for the orphaned-task processing route.

Tests cover:
- Authentication (401)
- Missing identifiers (400) and unknown users (404)
- Successful reconciliation response shape
"""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from seohub.database import get_session
from seohub.main import app
from seohub.models import OrphanedTask, Request, RequestStatus
from tests.support.factories import create_orphaned_task, create_user

URL = "/api/seoworks/process-orphaned-tasks"
SECRET = "test_webhook_secret_abc123"
HEADERS = {"x-api-key": SECRET}


@pytest.fixture
async def client(test_session_factory, monkeypatch):
    """AsyncClient with get_session bound to the test database."""
    monkeypatch.setenv("SEOWORKS_WEBHOOK_SECRET", SECRET)

    async def _session():
        async with test_session_factory() as session:
            yield session
            await session.commit()

    app.dependency_overrides[get_session] = _session

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def test_requires_api_key(client):
    response = await client.post(URL, json={"userId": "u-1"})

    assert response.status_code == 401


async def test_requires_user_identifier(client):
    response = await client.post(URL, json={}, headers=HEADERS)

    assert response.status_code == 400
    assert response.json()["detail"] == "userId or userEmail is required"


async def test_unknown_user_returns_404(client):
    response = await client.post(URL, json={"userEmail": "ghost@example.com"}, headers=HEADERS)

    assert response.status_code == 404
    assert response.json()["detail"] == "User not found"


async def test_nothing_to_process(client, test_session_factory):
    user = create_user()
    async with test_session_factory() as session, session.begin():
        session.add(user)

    response = await client.post(URL, json={"userId": user.id}, headers=HEADERS)

    assert response.status_code == 200
    assert response.json() == {
        "processed": 0,
        "created": 0,
        "requestIds": [],
        "message": "No orphaned tasks to process",
    }


async def test_orphans_reconciled_by_email(client, test_session_factory):
    user = create_user(email="fresh@dealer.example.com")
    completed = create_orphaned_task(
        external_id="sw-page-1",
        task_type="page",
        client_email="fresh@dealer.example.com",
        deliverables=[{"title": "Trade-In Page"}],
    )
    updated = create_orphaned_task(
        external_id="sw-page-2",
        event_type="task.updated",
        client_email="fresh@dealer.example.com",
    )
    async with test_session_factory() as session, session.begin():
        session.add_all([user, completed, updated])

    response = await client.post(URL, json={"userEmail": "FRESH@dealer.example.com"}, headers=HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["processed"] == 2
    assert body["created"] == 1
    assert "message" not in body

    async with test_session_factory() as session:
        request = await session.get(Request, body["requestIds"][0])
        orphans = (await session.execute(select(OrphanedTask))).scalars().all()

    assert request.title == "Trade-In Page"
    assert request.status == RequestStatus.COMPLETED
    assert all(orphan.processed for orphan in orphans)
