"""API and service schemas."""

from .integration import (
    IntegrationCreate,
    IntegrationUpdate,
    IntegrationResponse,
    IntegrationTypeInfo,
    SyncOptions,
    SyncResult,
    HandlerResult,
    ConnectionTestResult,
    DeliveryStatus,
    EventDelivery,
    SchedulerStatus,
)

__all__ = [
    "IntegrationCreate",
    "IntegrationUpdate",
    "IntegrationResponse",
    "IntegrationTypeInfo",
    "SyncOptions",
    "SyncResult",
    "HandlerResult",
    "ConnectionTestResult",
    "DeliveryStatus",
    "EventDelivery",
    "SchedulerStatus",
]
