# Data factories for test data generation

from tests.support.factories.payload_factory import webhook_body, webhook_payload
from tests.support.factories.request_factory import create_orphaned_task, create_request
from tests.support.factories.tenancy_factory import (
    create_agency,
    create_dealership,
    create_preferences,
    create_user,
)

__all__ = [
    # Tenancy factories
    "create_agency",
    "create_dealership",
    "create_preferences",
    "create_user",
    # Work item factories
    "create_request",
    "create_orphaned_task",
    # Webhook payloads
    "webhook_body",
    "webhook_payload",
]
