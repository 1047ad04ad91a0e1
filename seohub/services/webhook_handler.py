"""SEOWorks webhook handler service.

This module provides webhook event processing functionality:
- Shared-secret (x-api-key) verification in constant time
- Request resolution through the ordered strategies in task_resolver
- Event dispatch (task.completed / task.cancelled / others logged)
- Post-commit effects: dealership usage and notification emails

Architecture:
- One short transaction resolves the request, applies the event and
  records orphans
- Effects run only after that transaction commits, each in isolation:
  a failing effect is logged and never rolls back the request update,
  never blocks the other effects and never changes the HTTP response
- The usage effect opens its own session and transaction
"""

import functools
import hmac
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from seohub.constants import (
    EVENT_TASK_CANCELLED,
    EVENT_TASK_COMPLETED,
    KNOWN_EVENT_TYPES,
    category_for_task_type,
)
from seohub.emails.templates import TaskDetails
from seohub.models import Request, RequestStatus, UsageCategory, as_utc, utcnow
from seohub.schemas.webhook import (
    CompletedTaskRecord,
    SeoworksWebhookPayload,
    validate_deliverables,
)
from seohub.services.notification_service import NotificationDispatcher
from seohub.services.orphan_service import record_orphaned_task
from seohub.services.package_limits import meets_completion_thresholds
from seohub.services.task_resolver import resolve_request
from seohub.services.usage_service import increment_usage
from seohub.utils.logging import get_logger

log = get_logger(__name__)

WEBHOOK_PROCESSED_MESSAGE = "Webhook processed successfully"
WEBHOOK_UNMATCHED_MESSAGE = "Webhook received (no matching request found)"


def verify_api_key(provided: str | None, secret: str | None) -> bool:
    """Compare the x-api-key header against the shared secret.

    Args:
        provided: Header value (may be None).
        secret: SEOWORKS_WEBHOOK_SECRET (may be None).

    Returns:
        True if the key matches, False otherwise.

    Security:
        Uses constant-time comparison and fails closed when no secret is
        configured. Key values are never logged.
    """
    if not secret:
        log.warning("seoworks_webhook_secret_not_configured")
        return False
    return hmac.compare_digest((provided or "").encode("utf-8"), secret.encode("utf-8"))


@dataclass
class WebhookOutcome:
    """What the webhook did, shaped for the HTTP response."""

    event_type: str
    external_id: str
    client_id: str | None
    client_email: str | None
    task_type: str
    status: str
    request_id: str | None = None

    @property
    def resolved(self) -> bool:
        return self.request_id is not None

    def to_response(self) -> dict[str, Any]:
        """Build the 200 response body."""
        if not self.resolved:
            return {
                "message": WEBHOOK_UNMATCHED_MESSAGE,
                "eventType": self.event_type,
                "externalId": self.external_id,
                "clientId": self.client_id,
                "clientEmail": self.client_email,
            }
        return {
            "success": True,
            "message": WEBHOOK_PROCESSED_MESSAGE,
            "eventType": self.event_type,
            "requestId": self.request_id,
            "externalId": self.external_id,
            "clientId": self.client_id,
            "clientEmail": self.client_email,
            "taskType": self.task_type,
            "status": self.status,
        }


@dataclass
class PostCommitEffects:
    """Ordered list of side effects to run after the primary commit."""

    effects: list[tuple[str, Callable[[], Awaitable[Any]]]] = field(default_factory=list)

    def add(self, name: str, effect: Callable[[], Awaitable[Any]]) -> None:
        self.effects.append((name, effect))

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.effects]

    async def run(self) -> dict[str, bool]:
        """Run every effect; return effect name → succeeded."""
        results: dict[str, bool] = {}
        for name, effect in self.effects:
            try:
                await effect()
                results[name] = True
            except Exception as e:
                log.error(
                    "post_commit_effect_failed",
                    effect=name,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                results[name] = False
        return results


async def _increment_dealership_usage(
    session_factory: async_sessionmaker[AsyncSession],
    dealership_id: str,
    category: UsageCategory,
) -> None:
    async with session_factory() as session, session.begin():
        await increment_usage(dealership_id, category, session)


def _usage_dealership_id(request: Request) -> str | None:
    # The request's own dealership wins over the user's
    if request.dealership_id:
        return request.dealership_id
    return request.user.dealership_id if request.user is not None else None


async def handle_task_completed(
    payload: SeoworksWebhookPayload,
    request: Request,
    synthesized: bool,
    session: AsyncSession,
    session_factory: async_sessionmaker[AsyncSession],
    dispatcher: NotificationDispatcher,
    effects: PostCommitEffects,
) -> None:
    """Record a delivery on the resolved request and schedule its effects.

    A request synthesized during resolution is already COMPLETED with its
    counter and completed_tasks set; it only gets the usage increment and
    the completion email.
    """
    data = payload.data

    deliverables = validate_deliverables(data.deliverables)
    if data.deliverables and not deliverables:
        log.warning(
            "webhook_deliverables_invalid",
            request_id=request.id,
            external_id=data.external_id,
        )

    first = deliverables[0] if deliverables else None
    task = TaskDetails(
        title=first.title if first and first.title else data.task_type,
        type=data.task_type,
        url=first.url if first else None,
    )
    category = category_for_task_type(data.task_type)
    transition: tuple[RequestStatus, RequestStatus] | None = None

    if not synthesized:
        completed_at = as_utc(data.completion_date) if data.completion_date else utcnow()

        if category is not None:
            column = category.completed_column
            setattr(request, column, getattr(request, column) + 1)

        record = CompletedTaskRecord(
            title=task.title,
            type=data.task_type,
            url=task.url,
            completed_at=completed_at.isoformat(),
        )
        # Reassign so the JSON column is flagged dirty
        request.completed_tasks = [*(request.completed_tasks or []), record.to_json()]

        if request.status != RequestStatus.COMPLETED and meets_completion_thresholds(
            request.package_type, request.completed_counts()
        ):
            transition = (request.status, RequestStatus.COMPLETED)
            request.status = RequestStatus.COMPLETED
            request.completed_at = utcnow()

        await session.flush()
        log.info(
            "webhook_task_completed_recorded",
            request_id=request.id,
            task_type=data.task_type,
            category=category.value if category else None,
            request_completed=transition is not None,
        )

    dealership_id = _usage_dealership_id(request)
    if category is None:
        log.info("usage_not_tracked_for_task_type", request_id=request.id, task_type=data.task_type)
    elif dealership_id is None:
        log.info("usage_skipped_no_dealership", request_id=request.id)
    else:
        effects.add(
            "increment_usage",
            functools.partial(_increment_dealership_usage, session_factory, dealership_id, category),
        )

    effects.add("notify_task_completed", functools.partial(dispatcher.notify_task_completed, request, task))
    if transition is not None:
        effects.add(
            "notify_status_changed",
            functools.partial(dispatcher.notify_status_changed, request, *transition),
        )


async def handle_task_cancelled(
    payload: SeoworksWebhookPayload,
    request: Request,
    session: AsyncSession,
    dispatcher: NotificationDispatcher,
    effects: PostCommitEffects,
) -> None:
    """Cancel the resolved request unless it is already COMPLETED or CANCELLED."""
    if request.status in (RequestStatus.COMPLETED, RequestStatus.CANCELLED):
        log.info(
            "webhook_cancel_ignored",
            request_id=request.id,
            current_status=request.status.value,
        )
        return

    old_status = request.status
    request.status = RequestStatus.CANCELLED
    await session.flush()
    log.info("webhook_request_cancelled", request_id=request.id, previous_status=old_status.value)

    effects.add(
        "notify_status_changed",
        functools.partial(
            dispatcher.notify_status_changed, request, old_status, RequestStatus.CANCELLED
        ),
    )


async def process_seoworks_webhook(
    payload: SeoworksWebhookPayload,
    session_factory: async_sessionmaker[AsyncSession],
    dispatcher: NotificationDispatcher,
) -> WebhookOutcome:
    """Process a validated SEOWorks webhook end to end.

    Args:
        payload: Validated webhook payload.
        session_factory: Session factory for the primary transaction and effects.
        dispatcher: Notification dispatcher bound to the email queue.

    Returns:
        WebhookOutcome describing the resolved request (or the orphan case).

    Raises:
        Exception: Any persistence error from the primary transaction
            propagates (the route maps it to 500). Effect failures never do.
    """
    data = payload.data
    outcome = WebhookOutcome(
        event_type=payload.event_type,
        external_id=data.external_id,
        client_id=data.client_id,
        client_email=data.client_email,
        task_type=data.task_type,
        status=data.status,
    )
    effects = PostCommitEffects()

    log.info(
        "seoworks_webhook_received",
        event_type=payload.event_type,
        external_id=data.external_id,
        task_type=data.task_type,
    )

    async with session_factory() as session, session.begin():
        resolution = await resolve_request(payload, session)

        if resolution.request is None:
            await record_orphaned_task(payload, session)
            return outcome

        outcome.request_id = resolution.request.id

        if payload.event_type == EVENT_TASK_COMPLETED:
            await handle_task_completed(
                payload,
                resolution.request,
                resolution.synthesized,
                session,
                session_factory,
                dispatcher,
                effects,
            )
        elif payload.event_type == EVENT_TASK_CANCELLED:
            await handle_task_cancelled(payload, resolution.request, session, dispatcher, effects)
        elif payload.event_type in KNOWN_EVENT_TYPES:
            log.info(
                "webhook_task_event_logged",
                event_type=payload.event_type,
                request_id=resolution.request.id,
                vendor_status=data.status,
            )
        else:
            log.info(
                "webhook_event_unhandled",
                event_type=payload.event_type,
                request_id=resolution.request.id,
            )

    if effects.effects:
        results = await effects.run()
        log.info("post_commit_effects_completed", request_id=outcome.request_id, results=results)

    return outcome
