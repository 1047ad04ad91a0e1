"""FastAPI application for the SEO Hub back end.

Web service entry point: SEOWorks webhook intake, orphaned-task
reconciliation and email unsubscribe links. Notification emails are
delivered by a background queue started in the lifespan.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, status
from fastapi.responses import JSONResponse

from seohub import __version__
from seohub.clients.mailgun import create_mailgun_client
from seohub.config import (
    get_email_max_retries,
    get_email_retry_delay_seconds,
    get_environment,
    get_log_level,
    get_rate_limit_per_minute,
)
from seohub.emails.queue import EmailQueue
from seohub.routes import orphans, unsubscribe, webhooks
from seohub.utils.logging import configure_logging
from seohub.utils.rate_limit import FixedWindowRateLimiter

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup/shutdown of the email queue.

    Startup:
    - Configure structured logging
    - Create the Mailgun transport if MAILGUN_API_KEY and MAILGUN_DOMAIN are set
    - Start the email queue drain task
    - Create the webhook rate limiter

    Shutdown:
    - Cancel the drain task and pending retries
    - Close Mailgun HTTP connections
    """
    configure_logging(get_log_level(), json_output=get_environment() != "development")

    mailgun_client = create_mailgun_client()
    email_queue = EmailQueue(
        transport=mailgun_client,
        max_retries=get_email_max_retries(),
        retry_delay=get_email_retry_delay_seconds(),
    )
    email_queue.start()

    app.state.email_queue = email_queue
    app.state.rate_limiter = FixedWindowRateLimiter(limit=get_rate_limit_per_minute())
    log.info("application_started", environment=get_environment())

    yield  # Application runs here

    log.info("shutting_down_email_queue", pending=email_queue.size())
    await email_queue.stop()
    if mailgun_client:
        await mailgun_client.aclose()


app = FastAPI(
    title="SEO Hub - SEOWorks Integration",
    description="SEOWorks webhook intake, package usage tracking and notification emails",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(webhooks.router)
app.include_router(orphans.router)
app.include_router(unsubscribe.router)


@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check() -> JSONResponse:
    """Health check endpoint for deployment validation.

    Returns:
        JSONResponse: Status and email queue depth
    """
    email_queue = getattr(app.state, "email_queue", None)
    return JSONResponse(
        content={
            "status": "healthy",
            "service": "seohub",
            "emailQueueSize": email_queue.size() if email_queue else 0,
        }
    )


@app.get("/", status_code=status.HTTP_200_OK)
async def root() -> JSONResponse:
    """Root endpoint with API information.

    Returns:
        JSONResponse: API metadata
    """
    return JSONResponse(
        content={
            "service": "SEO Hub - SEOWorks Integration",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
            "webhook": "/api/seoworks/webhook",
        }
    )


if __name__ == "__main__":
    import uvicorn

    # Binding to 0.0.0.0 is intentional for container deployments
    uvicorn.run(
        "seohub.main:app",
        host="0.0.0.0",  # noqa: S104
        port=8000,
        reload=True,
    )
