"""Pydantic schemas for validation and serialization."""

from seohub.schemas.webhook import (
    CompletedTaskRecord,
    Deliverable,
    ProcessOrphansRequest,
    SeoworksWebhookPayload,
    WebhookData,
    validate_deliverables,
)

__all__ = [
    "CompletedTaskRecord",
    "Deliverable",
    "ProcessOrphansRequest",
    "SeoworksWebhookPayload",
    "WebhookData",
    "validate_deliverables",
]
