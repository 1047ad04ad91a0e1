"""Orphaned SEOWorks task reconciliation route.

- POST /api/seoworks/process-orphaned-tasks - Convert a user's stored
  orphaned events into requests (called after client onboarding)
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from seohub.database import get_session
from seohub.dependencies import require_api_key
from seohub.schemas.webhook import ProcessOrphansRequest
from seohub.services.orphan_service import process_orphaned_tasks_for_user
from seohub.services.task_resolver import find_client_user

log = structlog.get_logger()
router = APIRouter(prefix="/api/seoworks", tags=["seoworks"])


@router.post("/process-orphaned-tasks", dependencies=[Depends(require_api_key)])
async def process_orphaned_tasks(
    body: ProcessOrphansRequest,
    session: AsyncSession = Depends(get_session),
) -> dict[str, object]:
    """Reconcile orphaned tasks for one user.

    Returns:
        200 OK: {processed, created, requestIds[, message]}
        400 Bad Request: Neither userId nor userEmail given
        401 Unauthorized: Missing or wrong x-api-key
        404 Not Found: No such user
    """
    if not body.user_id and not body.user_email:
        raise HTTPException(status_code=400, detail="userId or userEmail is required")

    user = await find_client_user(session, body.user_id, body.user_email)
    if user is None:
        log.info("orphan_processing_user_not_found", user_id=body.user_id)
        raise HTTPException(status_code=404, detail="User not found")

    result = await process_orphaned_tasks_for_user(user, session)

    response: dict[str, object] = {
        "processed": result.processed,
        "created": result.created,
        "requestIds": result.request_ids,
    }
    if result.processed == 0:
        response["message"] = "No orphaned tasks to process"
    return response
