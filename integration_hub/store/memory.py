"""In-process integration store."""

from datetime import datetime
from typing import Optional, Dict, Any, List

from integration_hub.models import Integration, IntegrationLog, IntegrationStatus
from integration_hub.store.base import IntegrationStore, IntegrationQuery


class MemoryIntegrationStore(IntegrationStore):
    """Dict-backed store for a single event loop.

    Conditional updates contain no await between the check and the write, so
    they are atomic with respect to other coroutines on the loop.
    """

    def __init__(self):
        self._integrations: Dict[str, Integration] = {}
        self._logs: List[IntegrationLog] = []

    async def insert_integration(self, integration: Integration) -> Integration:
        self._integrations[integration.id] = integration.model_copy()
        return integration.model_copy()

    async def get_integration(
        self,
        integration_id: str,
        user_id: Optional[str] = None,
    ) -> Optional[Integration]:
        integration = self._integrations.get(integration_id)
        if integration is None:
            return None
        if user_id is not None and integration.user_id != user_id:
            return None
        return integration.model_copy()

    async def update_integration(
        self,
        integration_id: str,
        update_data: Dict[str, Any],
    ) -> Optional[Integration]:
        integration = self._integrations.get(integration_id)
        if integration is None:
            return None
        updated = integration.model_copy(update={**update_data, "updated_at": datetime.utcnow()})
        self._integrations[integration_id] = updated
        return updated.model_copy()

    async def increment_sync_count(self, integration_id: str, update_data: Dict[str, Any]) -> None:
        integration = self._integrations.get(integration_id)
        if integration is None:
            return
        self._integrations[integration_id] = integration.model_copy(update={
            **update_data,
            "sync_count": integration.sync_count + 1,
            "updated_at": datetime.utcnow(),
        })

    async def delete_integration(self, integration_id: str) -> bool:
        if self._integrations.pop(integration_id, None) is None:
            return False
        self._logs = [log for log in self._logs if log.integration_id != integration_id]
        return True

    async def find_integrations(self, query: IntegrationQuery) -> List[Integration]:
        found = [i for i in self._integrations.values() if query.matches(i)]
        found.sort(key=lambda i: (i.created_at, i.id))
        return [i.model_copy() for i in found]

    async def acquire_sync_lock(self, integration_id: str, now: datetime) -> int:
        integration = self._integrations.get(integration_id)
        if integration is None or integration.status == IntegrationStatus.SYNCING:
            return 0
        self._integrations[integration_id] = integration.model_copy(update={
            "status": IntegrationStatus.SYNCING,
            "sync_started_at": now,
            "updated_at": now,
        })
        return 1

    async def set_status_unless_syncing(self, integration_id: str, status: IntegrationStatus) -> int:
        integration = self._integrations.get(integration_id)
        if integration is None or integration.status == IntegrationStatus.SYNCING:
            return 0
        self._integrations[integration_id] = integration.model_copy(update={
            "status": status,
            "updated_at": datetime.utcnow(),
        })
        return 1

    async def release_stale_syncs(self, started_before: datetime, message: str) -> int:
        released = 0
        for integration_id, integration in list(self._integrations.items()):
            if integration.status != IntegrationStatus.SYNCING:
                continue
            if integration.sync_started_at is not None and integration.sync_started_at >= started_before:
                continue
            self._integrations[integration_id] = integration.model_copy(update={
                "status": IntegrationStatus.ERROR,
                "error_message": message,
                "sync_started_at": None,
                "updated_at": datetime.utcnow(),
            })
            released += 1
        return released

    async def insert_log(self, log: IntegrationLog) -> None:
        self._logs.append(log)

    async def list_logs(self, integration_id: str, limit: int) -> List[IntegrationLog]:
        logs = [log for log in reversed(self._logs) if log.integration_id == integration_id]
        return logs[:limit]
