"""SEOWorks webhook routes.

This module provides FastAPI routes for receiving SEOWorks task events:
- POST /api/seoworks/webhook - Main webhook endpoint
- GET /api/seoworks/webhook - Connectivity probe for the vendor

Pattern:
- Verify x-api-key (fast, no DB), then rate limit
- Parse payload (fast, validation)
- Resolve, mutate and commit; run post-commit effects
- Always answer 200 for processed or unmatched events so the vendor
  does not retry
"""

import time
from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from seohub.config import is_production
from seohub.database import get_session_factory
from seohub.dependencies import enforce_rate_limit, get_dispatcher, require_api_key
from seohub.schemas.webhook import SeoworksWebhookPayload
from seohub.services.notification_service import NotificationDispatcher
from seohub.services.webhook_handler import process_seoworks_webhook

log = structlog.get_logger()
router = APIRouter(prefix="/api/seoworks", tags=["seoworks"])

PROCESSING_FAILED_MESSAGE = "Failed to process webhook"


@router.post(
    "/webhook",
    dependencies=[Depends(require_api_key), Depends(enforce_rate_limit)],
)
async def handle_seoworks_webhook(
    request: Request,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    """Handle SEOWorks task events.

    Returns:
        200 OK: Processed, or received without a matching request
        400 Bad Request: Invalid payload (message plus validation errors)
        401 Unauthorized: Missing or wrong x-api-key
        429 Too Many Requests: Rate limit exceeded
        500 Internal Server Error: Processing failed
    """
    start_time = time.time()
    body = await request.body()

    try:
        payload = SeoworksWebhookPayload.model_validate_json(body)
    except ValidationError as e:
        errors = e.errors(include_url=False, include_context=False, include_input=False)
        log.warning("webhook_invalid_payload", error_count=len(errors), errors=errors)
        raise HTTPException(
            status_code=400,
            detail={"message": "Invalid webhook payload", "errors": errors},
        ) from e

    try:
        outcome = await process_seoworks_webhook(payload, session_factory, dispatcher)
    except Exception as e:
        log.error(
            "webhook_processing_failed",
            event_type=payload.event_type,
            external_id=payload.data.external_id,
            error_type=type(e).__name__,
            exc_info=True,
        )
        detail = PROCESSING_FAILED_MESSAGE
        if not is_production():
            detail = f"{PROCESSING_FAILED_MESSAGE}: {e}"
        raise HTTPException(status_code=500, detail=detail) from e

    elapsed_ms = (time.time() - start_time) * 1000
    log.info(
        "webhook_processed" if outcome.resolved else "webhook_unmatched",
        event_type=payload.event_type,
        external_id=payload.data.external_id,
        request_id=outcome.request_id,
        elapsed_ms=elapsed_ms,
    )

    return JSONResponse(status_code=200, content=outcome.to_response())


@router.get(
    "/webhook",
    dependencies=[Depends(enforce_rate_limit), Depends(require_api_key)],
)
async def probe_seoworks_webhook() -> JSONResponse:
    """Connectivity probe guarded by the same API key."""
    return JSONResponse(
        status_code=200,
        content={
            "status": "ok",
            "message": "SEOWorks webhook endpoint is active",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )
