"""SEOWorks webhook payload schemas.

Defines Pydantic models for validating incoming SEOWorks webhook events.
Field names follow the vendor's camelCase JSON through aliases; Python code
uses snake_case attributes.

Deliverables are accepted untyped at the boundary and validated
separately with validate_deliverables(): a malformed deliverables list must
not reject an otherwise valid completion event.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError


class Deliverable(BaseModel):
    """A single delivered artifact (page, post, ...)."""

    title: str
    url: str | None = None


_deliverables_adapter = TypeAdapter(list[Deliverable])


def validate_deliverables(raw: Any) -> list[Deliverable]:
    """Validate raw deliverables.

    Args:
        raw: Deliverables exactly as received (may be None or not a list).

    Returns:
        Parsed deliverables, or an empty list if the value is not a list,
        any entry lacks a string title or carries a non-string url.
    """
    if not raw or not isinstance(raw, list):
        return []
    try:
        return _deliverables_adapter.validate_python(raw)
    except ValidationError:
        return []


class WebhookData(BaseModel):
    """Task data block of an SEOWorks webhook."""

    model_config = ConfigDict(populate_by_name=True)

    external_id: str = Field(..., alias="externalId", min_length=1, max_length=100)
    client_id: str | None = Field(default=None, alias="clientId")
    client_email: str | None = Field(default=None, alias="clientEmail")
    task_type: str = Field(..., alias="taskType", min_length=1, max_length=50)
    status: str = Field(..., min_length=1, max_length=50)
    completion_date: datetime | None = Field(default=None, alias="completionDate")
    deliverables: Any | None = None


class SeoworksWebhookPayload(BaseModel):
    """SEOWorks webhook event payload.

    Supported event types:
    - task.created: Task opened on the vendor side (logged only)
    - task.updated: Task progress update (logged only)
    - task.completed: Deliverable shipped; updates counters and usage
    - task.cancelled: Task abandoned; cancels the linked work item

    Any other task.<name> event is accepted and logged.
    """

    model_config = ConfigDict(populate_by_name=True)

    event_type: str = Field(..., alias="eventType", pattern=r"^task\.[a-z_]+$")
    timestamp: datetime
    data: WebhookData


class CompletedTaskRecord(BaseModel):
    """Entry appended to Request.completed_tasks on task.completed."""

    model_config = ConfigDict(populate_by_name=True)

    title: str
    type: str
    url: str | None = None
    completed_at: str = Field(..., alias="completedAt")

    def to_json(self) -> dict[str, Any]:
        """Serialize for the JSON column (camelCase, url omitted when absent)."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ProcessOrphansRequest(BaseModel):
    """Body of POST /api/seoworks/process-orphaned-tasks."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str | None = Field(default=None, alias="userId")
    user_email: str | None = Field(default=None, alias="userEmail")
