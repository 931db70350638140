"""Integration service schemas."""

from datetime import datetime
from typing import Optional, Dict, Any, List
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field

from integration_hub.models import (
    IntegrationType,
    IntegrationCategory,
    IntegrationStatus,
    IntegrationLog,
    LogStatus,
    SyncDirection,
)


class IntegrationCreate(BaseModel):
    """Schema for creating an integration."""
    name: str = Field(min_length=1)
    type: IntegrationType
    config: Dict[str, Any] = Field(default_factory=dict)
    sync_interval: Optional[int] = Field(default=None, ge=1)


class IntegrationUpdate(BaseModel):
    """Schema for updating an integration.

    Only fields that were explicitly set are applied, so ``sync_interval=None``
    unschedules while an omitted ``sync_interval`` keeps the current value.
    """
    name: Optional[str] = Field(default=None, min_length=1)
    config: Optional[Dict[str, Any]] = None
    is_active: Optional[bool] = None
    sync_interval: Optional[int] = Field(default=None, ge=1)


class SyncOptions(BaseModel):
    """Hints passed through to a handler's sync."""
    direction: SyncDirection = SyncDirection.OUTBOUND
    scheduled: bool = False


class HandlerResult(BaseModel):
    """Result returned by a handler's test_connection or sync."""

    model_config = ConfigDict(extra="allow")

    success: bool
    message: str = ""
    records_count: int = 0


class SyncResult(BaseModel):
    """Outcome of one sync attempt."""
    status: LogStatus
    records_count: int = 0
    message: Optional[str] = None
    reason: Optional[str] = None
    duration: Optional[int] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class ConnectionTestResult(BaseModel):
    """Connection test response."""
    status: LogStatus
    success: bool
    message: str
    duration: int
    details: Dict[str, Any] = Field(default_factory=dict)


class DeliveryStatus(str, Enum):
    """Per-integration outcome of an event fan-out."""
    DELIVERED = "delivered"
    FAILED = "failed"
    SKIPPED = "skipped"


class EventDelivery(BaseModel):
    """Fan-out result for one integration."""
    integration_id: str
    status: DeliveryStatus
    reason: Optional[str] = None


class IntegrationTypeInfo(BaseModel):
    """Catalog entry for an available integration type."""
    type: IntegrationType
    name: str
    category: IntegrationCategory
    description: str
    color: Optional[str] = None
    features: List[str] = Field(default_factory=list)
    supports_sync: bool
    supports_events: bool


class IntegrationResponse(BaseModel):
    """Integration response schema with masked config."""
    id: str
    user_id: str
    name: str
    type: IntegrationType
    category: IntegrationCategory
    config: Dict[str, Any]
    status: IntegrationStatus
    is_active: bool
    sync_interval: Optional[int] = None
    last_sync_at: Optional[datetime] = None
    next_sync_at: Optional[datetime] = None
    sync_count: int
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    logs: List[IntegrationLog] = Field(default_factory=list)


class SchedulerStatus(BaseModel):
    """Scheduler status snapshot."""
    is_running: bool
    registered_count: int
    ids: List[str]
