"""Orphaned SEOWorks task recording and reconciliation.

A webhook that matches no request and no known client is stored as an
OrphanedTask so the delivery is not lost. Once the client's user account
exists, process_orphaned_tasks_for_user() turns completed orphans into
COMPLETED requests (the same construction the webhook uses for a known
client) and marks every orphan processed.
"""

from dataclasses import dataclass, field

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from seohub.constants import EVENT_TASK_COMPLETED
from seohub.models import OrphanedTask, Request, User, as_utc, utcnow
from seohub.schemas.webhook import SeoworksWebhookPayload, validate_deliverables
from seohub.services.task_resolver import build_completed_request
from seohub.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class OrphanProcessingResult:
    """Counts returned by process_orphaned_tasks_for_user()."""

    processed: int = 0
    created: int = 0
    request_ids: list[str] = field(default_factory=list)


def _append_note(existing: str | None, note: str) -> str:
    return f"{existing}\n\n{note}" if existing else note


async def record_orphaned_task(
    payload: SeoworksWebhookPayload,
    session: AsyncSession,
) -> OrphanedTask:
    """Store an unmatched webhook event.

    Args:
        payload: Validated webhook payload.
        session: Database session inside the caller's transaction.

    Returns:
        The flushed OrphanedTask.
    """
    data = payload.data
    orphan = OrphanedTask(
        external_id=data.external_id,
        client_id=data.client_id,
        client_email=data.client_email,
        event_type=payload.event_type,
        task_type=data.task_type,
        status=data.status,
        completion_date=data.completion_date,
        deliverables=data.deliverables,
        payload=payload.model_dump(mode="json", by_alias=True),
        processed=False,
    )
    session.add(orphan)
    await session.flush()
    log.warning(
        "webhook_orphaned_task_recorded",
        orphan_id=orphan.id,
        external_id=data.external_id,
        event_type=payload.event_type,
        client_id=data.client_id,
        has_client_email=bool(data.client_email),
    )
    return orphan


async def find_unprocessed_orphans(user: User, session: AsyncSession) -> list[OrphanedTask]:
    """Return the user's unprocessed orphans, oldest first."""
    conditions = [OrphanedTask.client_id == user.id]
    if user.email:
        conditions.append(OrphanedTask.client_email == user.email)

    result = await session.execute(
        select(OrphanedTask)
        .where(or_(*conditions), OrphanedTask.processed.is_(False))
        .order_by(OrphanedTask.created_at.asc())
    )
    return list(result.scalars().all())


async def _reconcile_completed(
    orphan: OrphanedTask,
    user: User,
    session: AsyncSession,
) -> Request | None:
    """Create (or find) the request for a completed orphan.

    Returns:
        The newly created Request, or None when a request was already linked
        to the orphan's external id.
    """
    existing = (
        await session.execute(
            select(Request).where(Request.seoworks_task_id == orphan.external_id)
        )
    ).scalar_one_or_none()
    if existing is not None:
        orphan.linked_request_id = existing.id
        orphan.notes = _append_note(
            orphan.notes,
            f"Already linked to request {existing.id}; no request created",
        )
        return None

    completion_date = as_utc(orphan.completion_date) if orphan.completion_date else utcnow()
    request = build_completed_request(
        user=user,
        external_id=orphan.external_id,
        task_type=orphan.task_type,
        deliverables=validate_deliverables(orphan.deliverables),
        completion_date=completion_date,
        description=(
            "Task created from orphaned SEOWorks task\n\n"
            f"Original Task ID: {orphan.external_id}\n"
            f"Completed: {completion_date.isoformat()}"
        ),
    )
    session.add(request)
    await session.flush()

    orphan.linked_request_id = request.id
    orphan.notes = _append_note(
        orphan.notes,
        f"Processed and linked to request {request.id} for user {user.id}",
    )
    return request


async def process_orphaned_tasks_for_user(
    user: User,
    session: AsyncSession,
) -> OrphanProcessingResult:
    """Reconcile every unprocessed orphan belonging to a user.

    Each orphan is handled in its own savepoint; a failure is logged and the
    orphan stays unprocessed while the rest continue.

    Args:
        user: User whose id or email matches the orphans' client fields.
        session: Database session (caller commits).

    Returns:
        OrphanProcessingResult with processed and created counts.
    """
    orphans = await find_unprocessed_orphans(user, session)
    result = OrphanProcessingResult()

    if not orphans:
        log.info("orphaned_tasks_none_found", user_id=user.id)
        return result

    for orphan in orphans:
        orphan_id = orphan.id
        try:
            async with session.begin_nested():
                created: Request | None = None
                if orphan.event_type == EVENT_TASK_COMPLETED:
                    created = await _reconcile_completed(orphan, user, session)
                else:
                    orphan.notes = _append_note(
                        orphan.notes,
                        f"Processed for user {user.id} - task was {orphan.event_type} status",
                    )
                orphan.processed = True
        except SQLAlchemyError as e:
            log.error(
                "orphaned_task_processing_failed",
                orphan_id=orphan_id,
                user_id=user.id,
                error=str(e),
            )
            continue

        result.processed += 1
        if created is not None:
            result.created += 1
            result.request_ids.append(created.id)
            log.info(
                "orphaned_task_request_created",
                orphan_id=orphan_id,
                request_id=created.id,
                user_id=user.id,
                task_type=orphan.task_type,
            )

    log.info(
        "orphaned_tasks_processed",
        user_id=user.id,
        total_found=len(orphans),
        processed=result.processed,
        created=result.created,
    )
    return result
