"""Resolve an SEOWorks webhook to the work item it is about.

SEOWorks identifies the work item inconsistently: sometimes by our request id
(echoed back as externalId), sometimes by its own task id, sometimes only by
the client. Resolution is an ordered list of strategies; the first strategy
returning a Request wins.

Strategies:
    1. match_request_id: externalId is our Request.id
    2. match_linked_task_id: externalId is a previously linked seoworks_task_id
    3. link_open_client_request: oldest open, unlinked request of the client's
       with the same task type; the external id is linked onto it
    4. synthesize_completed_request: task.completed for a known client with no
       open request creates an already-COMPLETED request

Each strategy has the signature (payload, session, context) and returns a
Request or None. The context carries the user identified by strategy 3 so
later strategies do not query again.
"""

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from seohub.constants import EVENT_TASK_COMPLETED, category_for_task_type
from seohub.models import (
    OPEN_STATUSES,
    Request,
    RequestPriority,
    RequestStatus,
    User,
    utcnow,
)
from seohub.schemas.webhook import (
    CompletedTaskRecord,
    Deliverable,
    SeoworksWebhookPayload,
    validate_deliverables,
)
from seohub.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class ResolutionContext:
    """State shared between strategies during one resolution."""

    user: User | None = None
    synthesized: bool = False
    matched_by: str | None = None


ResolverStrategy = Callable[
    [SeoworksWebhookPayload, AsyncSession, ResolutionContext],
    Awaitable[Request | None],
]


@dataclass
class Resolution:
    """Result of running the strategy list."""

    request: Request | None
    context: ResolutionContext = field(default_factory=ResolutionContext)

    @property
    def synthesized(self) -> bool:
        return self.context.synthesized


async def find_client_user(
    session: AsyncSession,
    client_id: str | None,
    client_email: str | None,
) -> User | None:
    """Look up a user by id or (case-insensitive) email.

    Returns:
        The matching User, or None when neither identifier is given or
        nothing matches.
    """
    conditions = []
    if client_id:
        conditions.append(User.id == client_id)
    if client_email:
        conditions.append(func.lower(User.email) == client_email.strip().lower())
    if not conditions:
        return None

    result = await session.execute(select(User).where(or_(*conditions)).limit(1))
    return result.scalar_one_or_none()


def build_completed_request(
    user: User,
    external_id: str,
    task_type: str,
    deliverables: list[Deliverable],
    completion_date: datetime | None = None,
    description: str | None = None,
) -> Request:
    """Create (unsaved) an already-COMPLETED request for a delivered task.

    The matching completed counter is pre-set to 1 and every deliverable is
    copied into completed_tasks.

    Args:
        user: Client user the work belongs to.
        external_id: SEOWorks task id, linked as seoworks_task_id.
        task_type: SEOWorks taskType.
        deliverables: Validated deliverables (may be empty).
        completion_date: Completion time from the vendor, defaults to now.
        description: Free text; a default mentioning the task id is used if None.

    Returns:
        Unsaved Request; the caller adds it to the session.
    """
    completed_at = completion_date or utcnow()
    first = deliverables[0] if deliverables else None
    title = first.title if first and first.title else f"SEOWorks {task_type} Task"

    request = Request(
        user=user,
        user_id=user.id,
        dealership_id=user.dealership_id,
        agency_id=user.agency_id,
        title=title,
        description=description or f"Created from SEOWorks task {external_id}",
        type=task_type.lower(),
        priority=RequestPriority.MEDIUM,
        status=RequestStatus.COMPLETED,
        seoworks_task_id=external_id,
        pages_completed=0,
        blogs_completed=0,
        gbp_posts_completed=0,
        improvements_completed=0,
        completed_tasks=[
            CompletedTaskRecord(
                title=deliverable.title,
                type=task_type,
                url=deliverable.url,
                completed_at=completed_at.isoformat(),
            ).to_json()
            for deliverable in deliverables
        ],
        completed_at=completed_at,
    )

    category = category_for_task_type(task_type)
    if category is not None:
        setattr(request, category.completed_column, 1)

    return request


async def match_request_id(
    payload: SeoworksWebhookPayload,
    session: AsyncSession,
    context: ResolutionContext,
) -> Request | None:
    """Strategy 1: externalId is one of our request ids."""
    return await session.get(Request, payload.data.external_id)


async def match_linked_task_id(
    payload: SeoworksWebhookPayload,
    session: AsyncSession,
    context: ResolutionContext,
) -> Request | None:
    """Strategy 2: externalId was linked to a request by an earlier webhook."""
    result = await session.execute(
        select(Request).where(Request.seoworks_task_id == payload.data.external_id)
    )
    return result.scalar_one_or_none()


async def link_open_client_request(
    payload: SeoworksWebhookPayload,
    session: AsyncSession,
    context: ResolutionContext,
) -> Request | None:
    """Strategy 3: link the client's oldest open, unlinked request of this type."""
    data = payload.data
    if not data.client_id and not data.client_email:
        return None

    context.user = await find_client_user(session, data.client_id, data.client_email)
    if context.user is None:
        log.info(
            "webhook_client_user_not_found",
            external_id=data.external_id,
            client_id=data.client_id,
        )
        return None

    result = await session.execute(
        select(Request)
        .where(
            Request.user_id == context.user.id,
            func.lower(Request.type) == data.task_type.lower(),
            Request.status.in_(OPEN_STATUSES),
            Request.seoworks_task_id.is_(None),
        )
        .order_by(Request.created_at.asc())
        .limit(1)
    )
    request = result.scalar_one_or_none()
    if request is None:
        return None

    request.seoworks_task_id = data.external_id
    await session.flush()
    log.info(
        "webhook_request_linked",
        request_id=request.id,
        external_id=data.external_id,
        user_id=context.user.id,
    )
    return request


async def synthesize_completed_request(
    payload: SeoworksWebhookPayload,
    session: AsyncSession,
    context: ResolutionContext,
) -> Request | None:
    """Strategy 4: create a COMPLETED request for a known client's delivery."""
    if context.user is None or payload.event_type != EVENT_TASK_COMPLETED:
        return None

    data = payload.data
    request = build_completed_request(
        user=context.user,
        external_id=data.external_id,
        task_type=data.task_type,
        deliverables=validate_deliverables(data.deliverables),
        completion_date=data.completion_date,
    )
    session.add(request)
    await session.flush()
    context.synthesized = True
    log.info(
        "webhook_request_synthesized",
        request_id=request.id,
        external_id=data.external_id,
        user_id=context.user.id,
        task_type=data.task_type,
    )
    return request


DEFAULT_STRATEGIES: tuple[ResolverStrategy, ...] = (
    match_request_id,
    match_linked_task_id,
    link_open_client_request,
    synthesize_completed_request,
)


async def resolve_request(
    payload: SeoworksWebhookPayload,
    session: AsyncSession,
    strategies: Sequence[ResolverStrategy] = DEFAULT_STRATEGIES,
) -> Resolution:
    """Run the strategies in order and return the first match.

    Args:
        payload: Validated webhook payload.
        session: Database session inside the caller's transaction.
        strategies: Ordered strategy list (defaults to DEFAULT_STRATEGIES).

    Returns:
        Resolution with request=None when no strategy matched.
    """
    context = ResolutionContext()
    for strategy in strategies:
        request = await strategy(payload, session, context)
        if request is not None:
            context.matched_by = strategy.__name__
            log.debug(
                "webhook_request_resolved",
                request_id=request.id,
                external_id=payload.data.external_id,
                strategy=context.matched_by,
            )
            return Resolution(request=request, context=context)
    return Resolution(request=None, context=context)
