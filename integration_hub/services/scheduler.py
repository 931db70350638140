"""Periodic sync scheduler for poll-eligible integrations."""

from typing import Dict, Any, List, Optional, Set, TYPE_CHECKING
from datetime import datetime, timedelta
import asyncio
import logging

from integration_hub.core.config import Settings, get_settings
from integration_hub.models import (
    Integration,
    IntegrationStatus,
    LogStatus,
    SyncDirection,
    POLL_CATEGORIES,
)
from integration_hub.schemas import SchedulerStatus, SyncOptions, SyncResult
from integration_hub.store import IntegrationStore, IntegrationQuery

if TYPE_CHECKING:
    from integration_hub.services.integration_service import IntegrationService

logger = logging.getLogger(__name__)


def next_sync_time(integration: Integration) -> Optional[datetime]:
    """When the next sync is due; None if unscheduled or never synced."""
    if integration.sync_interval is None or integration.last_sync_at is None:
        return None
    return integration.last_sync_at + timedelta(minutes=integration.sync_interval)


def is_due(integration: Integration, now: datetime) -> bool:
    if integration.sync_interval is None:
        return False
    if integration.last_sync_at is None:
        return True
    return now >= next_sync_time(integration)


class IntegrationScheduler:
    """Runs scheduled syncs through the integration service.

    Two mechanisms trigger syncs: one timer task per registered integration
    firing every ``sync_interval`` minutes, and a global sweep every
    ``sweep_interval_seconds`` that syncs whatever the store says is due. The
    timer map is a local cache rebuilt by ``initialize()``; the store is the
    source of truth, and the service's sync lock keeps overlapping triggers
    from running twice.
    """

    def __init__(
        self,
        service: "IntegrationService",
        store: Optional[IntegrationStore] = None,
        settings: Optional[Settings] = None,
    ):
        self.service = service
        self.store = store or service.store
        self.settings = settings or get_settings()

        self._timers: Dict[str, asyncio.Task] = {}
        self._sweep_task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._sweep_task is not None

    async def initialize(self) -> None:
        """Register every schedulable integration and start the sweep."""
        logger.info("Initializing integration scheduler...")

        integrations = await self.store.find_integrations(IntegrationQuery(
            is_active=True,
            categories=POLL_CATEGORIES,
            has_sync_interval=True,
        ))
        for integration in integrations:
            self.register_integration(integration)
        logger.info(f"Found {len(integrations)} scheduled integrations")

        self._sweep_task = asyncio.create_task(self._sweep_loop(), name="integration-sweep")
        logger.info("Integration scheduler initialized")

    def register_integration(self, integration: Integration) -> bool:
        """Start (or restart) the timer of an integration.

        Inactive, unscheduled and non-pollable integrations are ignored.
        """
        if not integration.is_schedulable:
            return False

        self._cancel_timer(integration.id)
        self._timers[integration.id] = asyncio.create_task(
            self._timer_loop(integration.id, integration.sync_interval),
            name=f"integration-timer-{integration.id}",
        )
        logger.info(f"Registered integration {integration.id} with interval {integration.sync_interval} mins")
        return True

    def unregister_integration(self, integration_id: str) -> bool:
        if not self._cancel_timer(integration_id):
            return False
        logger.info(f"Unregistered integration {integration_id}")
        return True

    async def update_schedule(self, integration_id: str, sync_interval: Optional[int]) -> None:
        """Re-register from the stored definition after a change."""
        self.unregister_integration(integration_id)
        if sync_interval is None:
            return

        integration = await self.store.get_integration(integration_id)
        if integration is not None and integration.is_active:
            self.register_integration(integration.model_copy(update={"sync_interval": sync_interval}))

    def get_next_sync_time(self, integration: Integration) -> Optional[datetime]:
        return next_sync_time(integration)

    def get_status(self) -> SchedulerStatus:
        return SchedulerStatus(
            is_running=self.is_running,
            registered_count=len(self._timers),
            ids=list(self._timers),
        )

    async def sweep(self, now: Optional[datetime] = None) -> List[str]:
        """Start a detached sync for every due integration.

        Returns the ids that were started. The sweep does not wait for them.
        """
        now = now or datetime.utcnow()
        await self.release_stale_syncs(now)

        candidates = await self.store.find_integrations(IntegrationQuery(
            is_active=True,
            status_ne=IntegrationStatus.SYNCING,
            categories=POLL_CATEGORIES,
            has_sync_interval=True,
        ))

        started = []
        for integration in candidates:
            if not is_due(integration, now):
                continue
            logger.info(f"Due sync for {integration.name} ({integration.id})")
            task = asyncio.create_task(self.run_sync(integration.id))
            self._background.add(task)
            task.add_done_callback(self._on_sync_done)
            started.append(integration.id)

        return started

    async def release_stale_syncs(self, now: datetime) -> int:
        """Move integrations stuck in ``syncing`` to ``error``."""
        minutes = self.settings.stale_sync_minutes
        released = await self.store.release_stale_syncs(
            now - timedelta(minutes=minutes),
            f"Sync did not finish within {minutes} minutes",
        )
        if released:
            logger.warning(f"Released {released} stale syncs")
        return released

    async def run_sync(self, integration_id: str) -> Optional[SyncResult]:
        """Sync one integration on the scheduler's behalf. Never raises."""
        try:
            integration = await self.store.get_integration(integration_id)
            if integration is None or not integration.is_active:
                logger.info(f"Integration {integration_id} not found or inactive")
                return None

            logger.info(f"Starting sync for {integration.name} ({integration_id})")
            result = await self.service.sync_integration(
                integration_id,
                integration.user_id,
                SyncOptions(direction=SyncDirection.BIDIRECTIONAL, scheduled=True),
            )

            if result.status == LogStatus.SKIPPED:
                logger.info(f"Sync skipped for {integration.name}: {result.reason}")
            else:
                logger.info(f"Sync completed for {integration.name}: {result.status.value}")
            return result
        except Exception as e:
            logger.exception(f"Error syncing {integration_id}")
            await self.service.log_action(integration_id, "sync", LogStatus.FAILED, {
                "error": str(e),
                "scheduled": True,
            })
            return None

    async def force_sync_all(self, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Sync every registered integration now, one after another.

        With ``user_id``, ids owned by anyone else are skipped without trace.
        """
        results = []
        for integration_id in list(self._timers):
            if user_id is not None:
                owned = await self.store.get_integration(integration_id, user_id)
                if owned is None:
                    continue

            result = await self.run_sync(integration_id)
            results.append({"integration_id": integration_id, "result": result})
        return results

    def stop(self) -> None:
        """Cancel the sweep and every timer. Running syncs are left to finish."""
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            self._sweep_task = None

        for task in self._timers.values():
            task.cancel()
        self._timers.clear()

        logger.info("Integration scheduler stopped")

    async def drain(self) -> None:
        """Wait for sweep-started syncs still in flight."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # Internals

    def _cancel_timer(self, integration_id: str) -> bool:
        task = self._timers.pop(integration_id, None)
        if task is None:
            return False
        task.cancel()
        return True

    async def _timer_loop(self, integration_id: str, interval_minutes: int) -> None:
        while True:
            await asyncio.sleep(interval_minutes * 60)
            await self.run_sync(integration_id)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.sweep_interval_seconds)
            try:
                await self.sweep()
            except Exception:
                logger.exception("Error checking due syncs")

    def _on_sync_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Scheduled sync task failed: {error}")
