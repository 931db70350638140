"""Integration service: lifecycle, sync lock and event fan-out."""

from typing import List, Dict, Any, Optional
from datetime import datetime
import asyncio
import logging
import time

from integration_hub.core.config import get_settings, get_catalog_entry
from integration_hub.integrations import BaseHandler, HandlerRegistry
from integration_hub.models import (
    Integration,
    IntegrationCategory,
    IntegrationStatus,
    IntegrationLog,
    LogStatus,
    SyncDirection,
    EVENT_CATEGORIES,
)
from integration_hub.schemas import (
    IntegrationCreate,
    IntegrationUpdate,
    IntegrationResponse,
    IntegrationTypeInfo,
    SyncOptions,
    SyncResult,
    ConnectionTestResult,
    DeliveryStatus,
    EventDelivery,
)
from integration_hub.services.errors import (
    IntegrationValidationError,
    IntegrationNotFoundError,
    IntegrationInactiveError,
)
from integration_hub.services.scheduler import next_sync_time
from integration_hub.store import IntegrationStore, IntegrationQuery
from integration_hub.utils.crypto import ConfigCipher, get_cipher
from integration_hub.utils.masking import mask_config

logger = logging.getLogger(__name__)

SYNC_IN_PROGRESS = "Another sync is already in progress"


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


class IntegrationService:
    """Service for managing integrations.

    Every operation taking a ``user_id`` is scoped to that owner: an id that
    exists but belongs to someone else raises the same
    ``IntegrationNotFoundError`` as a missing one.
    """

    def __init__(
        self,
        store: IntegrationStore,
        cipher: Optional[ConfigCipher] = None,
        scheduler=None,
    ):
        self.store = store
        self.cipher = cipher or get_cipher()
        self.scheduler = scheduler
        self.settings = get_settings()

    def attach_scheduler(self, scheduler) -> None:
        """Wire the scheduler that CRUD mutations keep in step."""
        self.scheduler = scheduler

    # Catalog

    def list_available_types(self) -> List[IntegrationTypeInfo]:
        """List integration types that have a registered handler."""
        types = []
        for integration_type, handler in HandlerRegistry.handlers().items():
            entry = get_catalog_entry(integration_type.value)
            if entry is None:
                continue
            types.append(IntegrationTypeInfo(
                type=integration_type,
                supports_sync=handler.supports_sync,
                supports_events=handler.supports_events,
                **entry,
            ))
        return types

    # Queries

    async def list_user_integrations(self, user_id: str) -> List[IntegrationResponse]:
        """List a user's integrations, newest first, with recent logs."""
        integrations = await self.store.find_integrations(IntegrationQuery(user_id=user_id))
        return [
            await self._to_response(integration, self.settings.recent_logs_limit)
            for integration in reversed(integrations)
        ]

    async def get_integration(self, integration_id: str, user_id: str) -> Optional[IntegrationResponse]:
        """Get one integration with its latest logs, or None."""
        integration = await self.store.get_integration(integration_id, user_id)
        if integration is None:
            return None
        return await self._to_response(integration, self.settings.detail_logs_limit)

    async def get_logs(
        self,
        integration_id: str,
        user_id: str,
        limit: Optional[int] = None,
    ) -> List[IntegrationLog]:
        await self._get_owned(integration_id, user_id)
        return await self.store.list_logs(integration_id, limit or self.settings.default_logs_limit)

    # Mutations

    async def create_integration(self, user_id: str, data: IntegrationCreate) -> IntegrationResponse:
        """Create an integration in ``pending`` state."""
        handler = HandlerRegistry.get(data.type)
        entry = get_catalog_entry(data.type.value)
        if handler is None or entry is None:
            raise IntegrationValidationError(f"Invalid integration type: {data.type.value}")
        if not data.name.strip():
            raise IntegrationValidationError("Integration name is required")

        integration = Integration(
            user_id=user_id,
            name=data.name.strip(),
            type=data.type,
            category=IntegrationCategory(entry["category"]),
            config=self.cipher.encrypt_config(data.config),
            status=IntegrationStatus.PENDING,
            sync_interval=data.sync_interval,
        )
        integration = await self.store.insert_integration(integration)
        logger.info(f"Created integration {integration.id} of type {integration.type.value}")

        await self.log_action(integration.id, "create", LogStatus.SUCCESS, {"message": "Integration created"})

        if self.scheduler is not None:
            self.scheduler.register_integration(integration)

        return await self._to_response(integration, self.settings.detail_logs_limit)

    async def update_integration(
        self,
        integration_id: str,
        user_id: str,
        data: IntegrationUpdate,
    ) -> IntegrationResponse:
        """Apply the explicitly set fields of ``data``.

        A new config is merged over the stored one key by key.
        """
        existing = await self._get_owned(integration_id, user_id)
        fields = data.model_fields_set

        update_data: Dict[str, Any] = {}
        if "name" in fields and data.name is not None:
            if not data.name.strip():
                raise IntegrationValidationError("Integration name is required")
            update_data["name"] = data.name.strip()
        if "config" in fields and data.config is not None:
            merged = {**self._decrypt(existing), **data.config}
            update_data["config"] = self.cipher.encrypt_config(merged)
        if "is_active" in fields and data.is_active is not None:
            update_data["is_active"] = data.is_active
        if "sync_interval" in fields:
            update_data["sync_interval"] = data.sync_interval

        updated = await self.store.update_integration(integration_id, update_data)
        if updated is None:
            raise IntegrationNotFoundError(integration_id)

        await self.log_action(integration_id, "update", LogStatus.SUCCESS, {
            "message": "Integration updated",
            "fields": sorted(update_data),
        })

        if self.scheduler is not None and (update_data.keys() & {"sync_interval", "is_active"}):
            await self.scheduler.update_schedule(integration_id, updated.sync_interval)

        return await self._to_response(updated, self.settings.detail_logs_limit)

    async def toggle_integration(self, integration_id: str, user_id: str, is_active: bool) -> IntegrationResponse:
        await self._get_owned(integration_id, user_id)

        updated = await self.store.update_integration(integration_id, {"is_active": is_active})
        if updated is None:
            raise IntegrationNotFoundError(integration_id)
        logger.info(f"Integration {integration_id} {'enabled' if is_active else 'disabled'}")

        if self.scheduler is not None:
            await self.scheduler.update_schedule(integration_id, updated.sync_interval)

        return await self._to_response(updated, self.settings.detail_logs_limit)

    async def delete_integration(self, integration_id: str, user_id: str) -> bool:
        """Delete an integration, its logs and its timer."""
        await self._get_owned(integration_id, user_id)

        if self.scheduler is not None:
            self.scheduler.unregister_integration(integration_id)

        deleted = await self.store.delete_integration(integration_id)
        if not deleted:
            raise IntegrationNotFoundError(integration_id)
        return True

    # Provider calls

    async def test_connection(self, integration_id: str, user_id: str) -> ConnectionTestResult:
        """Run the handler's live check and record the outcome on the integration."""
        integration = await self._get_owned(integration_id, user_id)
        handler = self._get_handler(integration)

        started = time.monotonic()
        try:
            result = await handler.test_connection(self._decrypt(integration))
            success = result.success
            message = result.message
            details = result.model_dump()
        except Exception as e:
            logger.warning(f"Connection test failed for integration {integration_id}: {e}")
            success = False
            message = str(e)
            details = {"message": message}
        duration = _elapsed_ms(started)

        await self.store.update_integration(integration_id, {"error_message": None if success else message})
        # A running sync owns the status until it writes its terminal state
        await self.store.set_status_unless_syncing(
            integration_id,
            IntegrationStatus.CONNECTED if success else IntegrationStatus.ERROR,
        )

        status = LogStatus.SUCCESS if success else LogStatus.FAILED
        await self.log_action(integration_id, "test", status, details, duration=duration)

        return ConnectionTestResult(
            status=status,
            success=success,
            message=message,
            duration=duration,
            details=details,
        )

    async def sync_integration(
        self,
        integration_id: str,
        user_id: str,
        options: Optional[SyncOptions] = None,
    ) -> SyncResult:
        """Run one sync under the integration's sync lock.

        Returns a ``skipped`` result without calling the handler when another
        sync holds the lock. Otherwise exactly one terminal state and one log
        row are written.
        """
        options = options or SyncOptions()
        integration = await self._get_owned(integration_id, user_id)
        if not integration.is_active:
            raise IntegrationInactiveError(integration_id)

        handler = self._get_handler(integration)
        if not handler.supports_sync:
            raise IntegrationValidationError(
                f"Sync not supported for integration type: {integration.type.value}"
            )

        acquired = await self.store.acquire_sync_lock(integration_id, datetime.utcnow())
        if acquired == 0:
            logger.info(f"Sync skipped for {integration_id}: already syncing")
            return SyncResult(status=LogStatus.SKIPPED, reason=SYNC_IN_PROGRESS)

        logger.info(f"Acquired sync lock for {integration_id}")

        started = time.monotonic()
        try:
            result = await handler.sync(self._decrypt(integration), options, user_id)
            success = result.success
            message = result.message
            records_count = result.records_count if success else 0
            details = result.model_dump()
        except Exception as e:
            logger.error(f"Sync failed for integration {integration_id}: {e}")
            success = False
            message = str(e)
            records_count = 0
            details = {"message": message}
        duration = _elapsed_ms(started)

        if success:
            await self.store.increment_sync_count(integration_id, {
                "status": IntegrationStatus.CONNECTED,
                "last_sync_at": datetime.utcnow(),
                "sync_started_at": None,
                "error_message": None,
            })
        else:
            await self.store.update_integration(integration_id, {
                "status": IntegrationStatus.ERROR,
                "sync_started_at": None,
                "error_message": message or "Sync failed",
            })

        status = LogStatus.SUCCESS if success else LogStatus.FAILED
        if options.scheduled:
            details["scheduled"] = True
        await self.log_action(
            integration_id,
            "sync",
            status,
            details,
            records_count=records_count,
            duration=duration,
            direction=options.direction,
        )

        return SyncResult(
            status=status,
            records_count=records_count,
            message=message,
            duration=duration,
            details=details,
        )

    async def trigger_event(
        self,
        event_name: str,
        data: Dict[str, Any],
        user_id: Optional[str] = None,
    ) -> List[EventDelivery]:
        """Deliver an event to every subscribed, connected event integration.

        Deliveries run one at a time with ``event_delay_ms`` between handler
        calls. A failing integration is logged and the loop moves on.
        """
        query = IntegrationQuery(
            user_id=user_id,
            is_active=True,
            status=IntegrationStatus.CONNECTED,
            categories=EVENT_CATEGORIES,
        )
        try:
            candidates = await self.store.find_integrations(query)
        except Exception:
            logger.exception(f"Failed to load integrations for event {event_name}")
            return []

        delay = self.settings.event_delay_ms / 1000
        deliveries: List[EventDelivery] = []

        invoked = False
        for integration in candidates:
            handler = HandlerRegistry.get(integration.type)
            if handler is None or not handler.supports_events:
                deliveries.append(EventDelivery(
                    integration_id=integration.id,
                    status=DeliveryStatus.SKIPPED,
                    reason="Events not supported",
                ))
                continue

            try:
                config = self._decrypt(integration)
            except ValueError as e:
                logger.error(f"Cannot read config of integration {integration.id}: {e}")
                await self.log_action(integration.id, event_name, LogStatus.FAILED, {
                    "event": event_name,
                    "error": str(e),
                })
                deliveries.append(EventDelivery(
                    integration_id=integration.id,
                    status=DeliveryStatus.FAILED,
                    reason=str(e),
                ))
                continue

            events = config.get("events")
            if events is not None and event_name not in events:
                deliveries.append(EventDelivery(
                    integration_id=integration.id,
                    status=DeliveryStatus.SKIPPED,
                    reason="Not subscribed",
                ))
                continue

            # Pace handler calls; nothing follows the last one
            if invoked:
                await asyncio.sleep(delay)
            invoked = True

            try:
                await handler.handle_event(event_name, data, config)
                await self.log_action(integration.id, event_name, LogStatus.SUCCESS, {"event": event_name})
                deliveries.append(EventDelivery(integration_id=integration.id, status=DeliveryStatus.DELIVERED))
            except Exception as e:
                logger.error(f"Error triggering {integration.type.value} for {event_name}: {e}")
                await self.log_action(integration.id, event_name, LogStatus.FAILED, {
                    "event": event_name,
                    "error": str(e),
                })
                deliveries.append(EventDelivery(
                    integration_id=integration.id,
                    status=DeliveryStatus.FAILED,
                    reason=str(e),
                ))

        return deliveries

    # Audit log

    async def log_action(
        self,
        integration_id: str,
        action: str,
        status: LogStatus,
        details: Optional[Dict[str, Any]] = None,
        records_count: int = 0,
        duration: Optional[int] = None,
        direction: SyncDirection = SyncDirection.OUTBOUND,
    ) -> None:
        """Append an audit row. Write failures are logged and swallowed."""
        try:
            await self.store.insert_log(IntegrationLog(
                integration_id=integration_id,
                action=action,
                direction=direction,
                status=status,
                records_count=records_count,
                duration=duration,
                details=details or {},
            ))
        except Exception:
            logger.exception(f"Failed to log {action} for integration {integration_id}")

    # Helpers

    async def _get_owned(self, integration_id: str, user_id: str) -> Integration:
        integration = await self.store.get_integration(integration_id, user_id)
        if integration is None:
            raise IntegrationNotFoundError(integration_id)
        return integration

    def _get_handler(self, integration: Integration) -> BaseHandler:
        handler = HandlerRegistry.get(integration.type)
        if handler is None:
            raise IntegrationValidationError(f"No handler for integration type: {integration.type.value}")
        return handler

    def _decrypt(self, integration: Integration) -> Dict[str, Any]:
        return self.cipher.decrypt_config(integration.config)

    async def _to_response(self, integration: Integration, logs_limit: int) -> IntegrationResponse:
        try:
            config = mask_config(self._decrypt(integration))
        except ValueError:
            logger.warning(f"Stored config of integration {integration.id} is unreadable")
            config = {}

        logs = await self.store.list_logs(integration.id, logs_limit)
        return IntegrationResponse(
            id=integration.id,
            user_id=integration.user_id,
            name=integration.name,
            type=integration.type,
            category=integration.category,
            config=config,
            status=integration.status,
            is_active=integration.is_active,
            sync_interval=integration.sync_interval,
            last_sync_at=integration.last_sync_at,
            next_sync_at=next_sync_time(integration),
            sync_count=integration.sync_count,
            error_message=integration.error_message,
            created_at=integration.created_at,
            updated_at=integration.updated_at,
            logs=logs,
        )
