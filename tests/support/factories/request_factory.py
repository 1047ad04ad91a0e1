"""
Request Factory

Provides factory functions for creating Request (work item) and
OrphanedTask instances with sensible defaults.
"""

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from seohub.models import (
    OrphanedTask,
    PackageTier,
    Request,
    RequestPriority,
    RequestStatus,
    User,
)


def create_request(
    user: User,
    type: str = "page",
    status: RequestStatus = RequestStatus.PENDING,
    package_type: PackageTier | None = None,
    title: str = "Spring service specials page",
    seoworks_task_id: str | None = None,
    created_at: datetime | None = None,
    **overrides,
) -> Request:
    """
    Create a Request owned by user.

    dealership_id and agency_id default to the user's.

    Args:
        user: Owning user (must carry an id)
        type: Task type (page, blog, gbp_post, improvement, ...)
        status: Initial status
        package_type: Tier whose completion thresholds apply (None = untiered)
        title: Request title
        seoworks_task_id: Already-linked SEOWorks task id
        created_at: Creation time (set explicitly to control ordering)
        **overrides: Any other Request column

    Returns:
        Unsaved Request instance

    Example:
        request = create_request(user, type="blog", package_type=PackageTier.SILVER)
    """
    return Request(
        id=overrides.pop("id", str(uuid4())),
        user_id=user.id,
        dealership_id=overrides.pop("dealership_id", user.dealership_id),
        agency_id=overrides.pop("agency_id", user.agency_id),
        title=title,
        description=overrides.pop("description", None),
        type=type,
        priority=overrides.pop("priority", RequestPriority.MEDIUM),
        status=status,
        package_type=package_type,
        seoworks_task_id=seoworks_task_id,
        pages_completed=overrides.pop("pages_completed", 0),
        blogs_completed=overrides.pop("blogs_completed", 0),
        gbp_posts_completed=overrides.pop("gbp_posts_completed", 0),
        improvements_completed=overrides.pop("improvements_completed", 0),
        completed_tasks=overrides.pop("completed_tasks", []),
        created_at=created_at or datetime.now(timezone.utc),
        **overrides,
    )


def create_orphaned_task(
    external_id: str = "sw-orphan-1",
    event_type: str = "task.completed",
    task_type: str = "blog",
    client_id: str | None = None,
    client_email: str | None = None,
    deliverables: list[Any] | None = None,
    completion_date: datetime | None = None,
    **overrides,
) -> OrphanedTask:
    """Create an unprocessed OrphanedTask with a minimal payload snapshot."""
    return OrphanedTask(
        id=overrides.pop("id", str(uuid4())),
        external_id=external_id,
        client_id=client_id,
        client_email=client_email,
        event_type=event_type,
        task_type=task_type,
        status=overrides.pop("status", "completed"),
        completion_date=completion_date,
        deliverables=deliverables,
        payload=overrides.pop(
            "payload",
            {"eventType": event_type, "data": {"externalId": external_id, "taskType": task_type}},
        ),
        processed=overrides.pop("processed", False),
        created_at=overrides.pop("created_at", datetime.now(timezone.utc)),
        **overrides,
    )
