"""Tests for the email unsubscribe route.

Tests cover:
- Valid token switches off the category flag and returns HTML
- "all" switches off the master email flag
- Missing, forged and expired tokens (400)
- Users without a preferences row (404)
"""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from seohub.database import get_session
from seohub.main import app
from seohub.models import EmailCategory, UserPreferences
from seohub.utils.unsubscribe import create_unsubscribe_token
from tests.support.factories import create_user

URL = "/api/email/unsubscribe"
SECRET = "unsubscribe-route-secret"


@pytest.fixture
async def client(test_session_factory, monkeypatch):
    """AsyncClient with get_session bound to the test database."""
    monkeypatch.setenv("UNSUBSCRIBE_SECRET", SECRET)

    async def _session():
        async with test_session_factory() as session:
            yield session
            await session.commit()

    app.dependency_overrides[get_session] = _session

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def user(test_session_factory):
    user = create_user()
    async with test_session_factory() as session, session.begin():
        session.add(user)
    return user


async def _preferences(factory, user_id: str) -> UserPreferences:
    async with factory() as session:
        return await session.get(UserPreferences, user_id)


async def test_valid_token_unsubscribes_category(client, test_session_factory, user):
    token = create_unsubscribe_token(user.id, EmailCategory.TASK_COMPLETED, SECRET)

    response = await client.get(URL, params={"token": token})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "task completed emails" in response.text
    preferences = await _preferences(test_session_factory, user.id)
    assert preferences.task_completed is False
    assert preferences.email_notifications is True
    assert preferences.status_changed is True


async def test_all_switches_off_master_flag(client, test_session_factory, user):
    token = create_unsubscribe_token(user.id, EmailCategory.ALL, SECRET)

    response = await client.get(URL, params={"token": token})

    assert response.status_code == 200
    preferences = await _preferences(test_session_factory, user.id)
    assert preferences.email_notifications is False


async def test_missing_token(client):
    response = await client.get(URL)

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid unsubscribe link"


async def test_missing_secret(client, user, monkeypatch):
    token = create_unsubscribe_token(user.id, EmailCategory.ALL, SECRET)
    monkeypatch.delenv("UNSUBSCRIBE_SECRET")

    response = await client.get(URL, params={"token": token})

    assert response.status_code == 400


async def test_forged_token(client, user):
    token = create_unsubscribe_token(user.id, EmailCategory.ALL, "attacker-secret")

    response = await client.get(URL, params={"token": token})

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid unsubscribe token"


@pytest.mark.parametrize("token", ["abc.é", "é.abc"])
async def test_non_ascii_token_rejected(client, token):
    response = await client.get(URL, params={"token": token})

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid unsubscribe token"


async def test_expired_token(client, user):
    issued = datetime.now(timezone.utc) - timedelta(hours=73)
    token = create_unsubscribe_token(user.id, EmailCategory.ALL, SECRET, issued_at=issued)

    response = await client.get(URL, params={"token": token})

    assert response.status_code == 400


async def test_user_without_preferences(client, test_session_factory):
    user = create_user(preferences=False)
    async with test_session_factory() as session, session.begin():
        session.add(user)
    token = create_unsubscribe_token(user.id, EmailCategory.STATUS_CHANGED, SECRET)

    response = await client.get(URL, params={"token": token})

    assert response.status_code == 404
    assert response.json()["detail"] == "User preferences not found"
