"""Services module for integrations."""

from .errors import (
    IntegrationServiceError,
    IntegrationValidationError,
    IntegrationNotFoundError,
    IntegrationInactiveError,
)
from .scheduler import IntegrationScheduler, next_sync_time, is_due
from .integration_service import IntegrationService

__all__ = [
    "IntegrationServiceError",
    "IntegrationValidationError",
    "IntegrationNotFoundError",
    "IntegrationInactiveError",
    "IntegrationScheduler",
    "next_sync_time",
    "is_due",
    "IntegrationService",
]
