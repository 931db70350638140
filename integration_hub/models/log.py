"""Integration audit log model."""

from datetime import datetime
from typing import Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum

from .integration import new_id


class LogStatus(str, Enum):
    """Outcome of a logged action."""
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


class SyncDirection(str, Enum):
    """Sync direction."""
    INBOUND = "inbound"  # From integration to our system
    OUTBOUND = "outbound"  # From our system to integration
    BIDIRECTIONAL = "bidirectional"


class IntegrationLog(BaseModel):
    """Append-only audit row for one integration action."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(default_factory=new_id, alias="_id")
    integration_id: str

    # create, update, test, sync or an event name
    action: str
    direction: SyncDirection = SyncDirection.OUTBOUND
    status: LogStatus
    records_count: int = 0
    duration: Optional[int] = None  # ms
    details: Dict[str, Any] = Field(default_factory=dict)

    created_at: datetime = Field(default_factory=datetime.utcnow)
