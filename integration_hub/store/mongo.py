"""MongoDB integration store."""

from datetime import datetime
from typing import Optional, Dict, Any, List
import logging

from pymongo import ASCENDING, DESCENDING, ReturnDocument

from integration_hub.core.database import Database, COLLECTIONS
from integration_hub.models import Integration, IntegrationLog, IntegrationStatus
from integration_hub.store.base import IntegrationStore, IntegrationQuery

logger = logging.getLogger(__name__)


def build_filter(query: IntegrationQuery) -> Dict[str, Any]:
    """Translate an IntegrationQuery into a MongoDB filter document."""
    filters: Dict[str, Any] = {}

    if query.user_id is not None:
        filters["user_id"] = query.user_id
    if query.is_active is not None:
        filters["is_active"] = query.is_active

    status_filter: Dict[str, Any] = {}
    if query.status is not None:
        status_filter["$eq"] = query.status.value
    if query.status_ne is not None:
        status_filter["$ne"] = query.status_ne.value
    if status_filter:
        filters["status"] = status_filter

    if query.categories is not None:
        filters["category"] = {"$in": [c.value for c in query.categories]}
    if query.has_sync_interval is True:
        filters["sync_interval"] = {"$ne": None}
    elif query.has_sync_interval is False:
        filters["sync_interval"] = None

    return filters


class MongoIntegrationStore(IntegrationStore):
    """Store backed by the ``integrations`` and ``integration_logs`` collections."""

    def __init__(self, db: Database):
        self.db = db

    @property
    def _integrations(self):
        return self.db.get_collection(COLLECTIONS["integrations"])

    @property
    def _logs(self):
        return self.db.get_collection(COLLECTIONS["integration_logs"])

    async def ensure_indexes(self) -> None:
        """Create the indexes used by tenant lookups, sweeps and log listing."""
        await self._integrations.create_index([("user_id", ASCENDING), ("created_at", ASCENDING)])
        await self._integrations.create_index([("is_active", ASCENDING), ("category", ASCENDING), ("status", ASCENDING)])
        await self._logs.create_index([("integration_id", ASCENDING), ("created_at", DESCENDING)])
        logger.info("Ensured integration store indexes")

    async def insert_integration(self, integration: Integration) -> Integration:
        await self._integrations.insert_one(integration.model_dump(by_alias=True))
        return integration

    async def get_integration(
        self,
        integration_id: str,
        user_id: Optional[str] = None,
    ) -> Optional[Integration]:
        filters: Dict[str, Any] = {"_id": integration_id}
        if user_id is not None:
            filters["user_id"] = user_id

        doc = await self._integrations.find_one(filters)
        if doc:
            return Integration(**doc)
        return None

    async def update_integration(
        self,
        integration_id: str,
        update_data: Dict[str, Any],
    ) -> Optional[Integration]:
        update_data = {**update_data, "updated_at": datetime.utcnow()}
        doc = await self._integrations.find_one_and_update(
            {"_id": integration_id},
            {"$set": update_data},
            return_document=ReturnDocument.AFTER,
        )
        if doc:
            return Integration(**doc)
        return None

    async def increment_sync_count(self, integration_id: str, update_data: Dict[str, Any]) -> None:
        await self._integrations.update_one(
            {"_id": integration_id},
            {
                "$set": {**update_data, "updated_at": datetime.utcnow()},
                "$inc": {"sync_count": 1},
            },
        )

    async def delete_integration(self, integration_id: str) -> bool:
        result = await self._integrations.delete_one({"_id": integration_id})
        if result.deleted_count == 0:
            return False

        logs_result = await self._logs.delete_many({"integration_id": integration_id})
        logger.info(f"Deleted integration {integration_id} and {logs_result.deleted_count} logs")
        return True

    async def find_integrations(self, query: IntegrationQuery) -> List[Integration]:
        cursor = self._integrations.find(build_filter(query)).sort(
            [("created_at", ASCENDING), ("_id", ASCENDING)]
        )
        return [Integration(**doc) async for doc in cursor]

    async def acquire_sync_lock(self, integration_id: str, now: datetime) -> int:
        result = await self._integrations.update_one(
            {"_id": integration_id, "status": {"$ne": IntegrationStatus.SYNCING.value}},
            {"$set": {
                "status": IntegrationStatus.SYNCING.value,
                "sync_started_at": now,
                "updated_at": now,
            }},
        )
        return result.modified_count

    async def set_status_unless_syncing(self, integration_id: str, status: IntegrationStatus) -> int:
        result = await self._integrations.update_one(
            {"_id": integration_id, "status": {"$ne": IntegrationStatus.SYNCING.value}},
            {"$set": {"status": status.value, "updated_at": datetime.utcnow()}},
        )
        return result.modified_count

    async def release_stale_syncs(self, started_before: datetime, message: str) -> int:
        result = await self._integrations.update_many(
            {
                "status": IntegrationStatus.SYNCING.value,
                "$or": [
                    {"sync_started_at": {"$lt": started_before}},
                    {"sync_started_at": None},
                ],
            },
            {"$set": {
                "status": IntegrationStatus.ERROR.value,
                "error_message": message,
                "sync_started_at": None,
                "updated_at": datetime.utcnow(),
            }},
        )
        return result.modified_count

    async def insert_log(self, log: IntegrationLog) -> None:
        await self._logs.insert_one(log.model_dump(by_alias=True))

    async def list_logs(self, integration_id: str, limit: int) -> List[IntegrationLog]:
        cursor = self._logs.find({"integration_id": integration_id}).sort(
            "created_at", DESCENDING
        ).limit(limit)
        return [IntegrationLog(**doc) async for doc in cursor]
