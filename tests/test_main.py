"""Tests for FastAPI application endpoints.

Tests cover:
- Health check endpoint (/health) - P0 critical for deployment
- Root endpoint (/) - P1 API metadata and discovery
- Lifespan: email queue and rate limiter on app.state
"""

import pytest
from fastapi import status
from httpx import ASGITransport, AsyncClient

from seohub.emails.queue import EmailQueue
from seohub.main import app
from seohub.utils.rate_limit import FixedWindowRateLimiter


@pytest.fixture
async def client():
    """Async client without running the lifespan."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


class TestHealthEndpoint:
    """Tests for /health endpoint (P0 - Critical for deployment)."""

    async def test_health_endpoint_returns_200(self, client: AsyncClient) -> None:
        """[P0] Test health endpoint returns 200 OK with service status.

        GIVEN: FastAPI application is running
        WHEN: GET request to /health endpoint
        THEN: Returns 200 OK and healthy status
        """
        # WHEN: Requesting health endpoint
        response = await client.get("/health")

        # THEN: Returns 200 OK with status body
        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["status"] == "healthy"
        assert body["service"] == "seohub"
        assert "emailQueueSize" in body


class TestRootEndpoint:
    """Tests for / endpoint (P1 - API metadata)."""

    async def test_root_endpoint_returns_metadata(self, client: AsyncClient) -> None:
        """[P1] Test root endpoint advertises docs, health and webhook paths."""
        response = await client.get("/")

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["service"] == "SEO Hub - SEOWorks Integration"
        assert body["webhook"] == "/api/seoworks/webhook"
        assert body["health"] == "/health"


class TestLifespan:
    """Tests for application startup and shutdown."""

    async def test_lifespan_creates_and_stops_queue(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """[P1] Lifespan starts the email queue and builds the rate limiter from config."""
        # GIVEN: No Mailgun configuration and a custom rate limit
        monkeypatch.delenv("MAILGUN_API_KEY", raising=False)
        monkeypatch.setenv("WEBHOOK_RATE_LIMIT_PER_MINUTE", "15")

        # WHEN: Running the lifespan
        async with app.router.lifespan_context(app):
            queue = app.state.email_queue
            limiter = app.state.rate_limiter

            # THEN: Queue is running without a transport, limiter uses the configured limit
            assert isinstance(queue, EmailQueue)
            assert queue.running
            assert queue.transport is None
            assert isinstance(limiter, FixedWindowRateLimiter)
            assert limiter.limit == 15

        # THEN: Queue stopped on shutdown
        assert not queue.running
