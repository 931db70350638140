"""Persistence contract for integrations and their audit logs."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, Any, List, Sequence

from integration_hub.models import (
    Integration,
    IntegrationCategory,
    IntegrationLog,
    IntegrationStatus,
)


@dataclass
class IntegrationQuery:
    """Predicate for listing integrations. ``None`` fields are not filtered."""
    user_id: Optional[str] = None
    is_active: Optional[bool] = None
    status: Optional[IntegrationStatus] = None
    status_ne: Optional[IntegrationStatus] = None
    categories: Optional[Sequence[IntegrationCategory]] = None
    has_sync_interval: Optional[bool] = None

    def matches(self, integration: Integration) -> bool:
        if self.user_id is not None and integration.user_id != self.user_id:
            return False
        if self.is_active is not None and integration.is_active != self.is_active:
            return False
        if self.status is not None and integration.status != self.status:
            return False
        if self.status_ne is not None and integration.status == self.status_ne:
            return False
        if self.categories is not None and integration.category not in self.categories:
            return False
        if self.has_sync_interval is not None:
            if (integration.sync_interval is not None) != self.has_sync_interval:
                return False
        return True


class IntegrationStore(ABC):
    """Storage backend used by the service and the scheduler.

    Implementations must make ``acquire_sync_lock``, ``set_status_unless_syncing``
    and ``release_stale_syncs`` single atomic conditional updates.
    """

    @abstractmethod
    async def insert_integration(self, integration: Integration) -> Integration:
        """Persist a new integration."""

    @abstractmethod
    async def get_integration(
        self,
        integration_id: str,
        user_id: Optional[str] = None,
    ) -> Optional[Integration]:
        """Get an integration by id, optionally restricted to its owner."""

    @abstractmethod
    async def update_integration(
        self,
        integration_id: str,
        update_data: Dict[str, Any],
    ) -> Optional[Integration]:
        """Set fields on an integration and return the updated record."""

    @abstractmethod
    async def increment_sync_count(self, integration_id: str, update_data: Dict[str, Any]) -> None:
        """Set fields and increment ``sync_count`` in the same write."""

    @abstractmethod
    async def delete_integration(self, integration_id: str) -> bool:
        """Delete an integration and all of its logs."""

    @abstractmethod
    async def find_integrations(self, query: IntegrationQuery) -> List[Integration]:
        """List integrations matching a query, ordered by creation time then id."""

    @abstractmethod
    async def acquire_sync_lock(self, integration_id: str, now: datetime) -> int:
        """Set status=syncing unless already syncing. Returns rows changed (0 or 1)."""

    @abstractmethod
    async def set_status_unless_syncing(self, integration_id: str, status: IntegrationStatus) -> int:
        """Set status unless a sync holds the lock. Returns rows changed (0 or 1)."""

    @abstractmethod
    async def release_stale_syncs(self, started_before: datetime, message: str) -> int:
        """Move syncs started before ``started_before`` to error. Returns rows changed."""

    @abstractmethod
    async def insert_log(self, log: IntegrationLog) -> None:
        """Append an audit log row."""

    @abstractmethod
    async def list_logs(self, integration_id: str, limit: int) -> List[IntegrationLog]:
        """List logs of an integration, newest first."""
