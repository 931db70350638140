"""Integration models."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum
import uuid


class IntegrationType(str, Enum):
    """Types of integrations."""
    AIRTABLE = "airtable"
    NOTION = "notion"
    TELEGRAM = "telegram"
    DISCORD = "discord"
    SLACK = "slack"
    CUSTOM_WEBHOOK = "custom_webhook"


class IntegrationCategory(str, Enum):
    """Integration categories."""
    SPREADSHEET = "spreadsheet"
    DATABASE = "database"
    NOTIFICATION = "notification"
    AUTOMATION = "automation"


# Categories the scheduler polls for data
POLL_CATEGORIES = (IntegrationCategory.SPREADSHEET, IntegrationCategory.DATABASE)

# Categories that receive platform events
EVENT_CATEGORIES = (IntegrationCategory.NOTIFICATION, IntegrationCategory.AUTOMATION)


class IntegrationStatus(str, Enum):
    """Integration connection status."""
    PENDING = "pending"
    CONNECTED = "connected"
    ERROR = "error"
    SYNCING = "syncing"


def new_id() -> str:
    return uuid.uuid4().hex


class Integration(BaseModel):
    """Integration model.

    ``config`` holds the encrypted, serialized provider credentials. It is only
    decrypted right before a handler call.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=new_id, alias="_id")
    user_id: str
    name: str
    type: IntegrationType
    category: IntegrationCategory
    config: str
    status: IntegrationStatus = IntegrationStatus.PENDING
    is_active: bool = True

    # Scheduling
    sync_interval: Optional[int] = None  # minutes
    last_sync_at: Optional[datetime] = None
    sync_started_at: Optional[datetime] = None
    sync_count: int = 0
    error_message: Optional[str] = None

    # Metadata
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_pollable(self) -> bool:
        return self.category in POLL_CATEGORIES

    @property
    def is_schedulable(self) -> bool:
        """Active, poll-eligible and with an interval set."""
        return self.is_active and self.is_pollable and self.sync_interval is not None
