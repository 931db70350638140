"""Data models for the integration hub."""

from .integration import (
    Integration,
    IntegrationType,
    IntegrationCategory,
    IntegrationStatus,
    POLL_CATEGORIES,
    EVENT_CATEGORIES,
)
from .log import IntegrationLog, LogStatus, SyncDirection

__all__ = [
    "Integration",
    "IntegrationType",
    "IntegrationCategory",
    "IntegrationStatus",
    "POLL_CATEGORIES",
    "EVENT_CATEGORIES",
    "IntegrationLog",
    "LogStatus",
    "SyncDirection",
]
