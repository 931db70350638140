"""Pytest configuration and fixtures for integration hub tests."""

import asyncio
import os
from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import patch

os.environ.setdefault("ENCRYPTION_KEY", "test-encryption-key")
os.environ.setdefault("LOG_FORMAT", "plain")

import pytest
import pytest_asyncio

from integration_hub.integrations import BaseHandler, HandlerRegistry, IntegrationError
from integration_hub.models import IntegrationType, IntegrationStatus
from integration_hub.schemas import HandlerResult, IntegrationCreate, SyncOptions
from integration_hub.services import IntegrationService, IntegrationScheduler
from integration_hub.store import MemoryIntegrationStore
from integration_hub.utils.crypto import ConfigCipher


class FakeSyncHandler(BaseHandler):
    """Pollable handler recording every sync call."""

    def __init__(self):
        super().__init__()
        self.test_result = HandlerResult(success=True, message="Connected")
        self.sync_result = HandlerResult(success=True, records_count=3, message="Fetched 3 records")
        self.sync_error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.sync_calls: List[Tuple[str, SyncOptions]] = []

    async def test_connection(self, config: Dict[str, Any]) -> HandlerResult:
        return self.test_result

    async def sync(self, config: Dict[str, Any], options: SyncOptions, user_id: str) -> HandlerResult:
        self.sync_calls.append((user_id, options))
        if self.gate is not None:
            await self.gate.wait()
        if self.sync_error is not None:
            raise self.sync_error
        return self.sync_result


class FakeEventHandler(BaseHandler):
    """Event handler that fails for configs labelled in ``fail_for``."""

    def __init__(self):
        super().__init__()
        self.fail_for = set()
        self.received: List[Tuple[str, str]] = []

    async def test_connection(self, config: Dict[str, Any]) -> HandlerResult:
        return HandlerResult(success=True, message="Connected")

    async def handle_event(self, event_name: str, data: Dict[str, Any], config: Dict[str, Any]) -> None:
        label = config.get("label", "")
        if label in self.fail_for:
            raise IntegrationError(f"Delivery to {label} failed")
        self.received.append((event_name, label))


class BareHandler(BaseHandler):
    """Handler with neither sync nor events."""

    async def test_connection(self, config: Dict[str, Any]) -> HandlerResult:
        return HandlerResult(success=True)


@pytest.fixture
def handlers():
    """Swap fakes into the registry for the duration of a test."""
    fakes = SimpleNamespace(sync=FakeSyncHandler(), events=FakeEventHandler(), bare=BareHandler())
    with patch.dict(HandlerRegistry._handlers, {
        IntegrationType.AIRTABLE: fakes.sync,
        IntegrationType.NOTION: fakes.sync,
        IntegrationType.SLACK: fakes.events,
        IntegrationType.CUSTOM_WEBHOOK: fakes.events,
        IntegrationType.DISCORD: fakes.events,
        IntegrationType.TELEGRAM: fakes.bare,
    }):
        yield fakes


@pytest.fixture
def store():
    return MemoryIntegrationStore()


@pytest.fixture
def cipher():
    return ConfigCipher("test-encryption-key", "test-salt")


@pytest.fixture
def service(store, cipher):
    return IntegrationService(store, cipher)


@pytest_asyncio.fixture
async def scheduler(service):
    scheduler = IntegrationScheduler(service)
    service.attach_scheduler(scheduler)
    yield scheduler
    scheduler.stop()
    await scheduler.drain()


@pytest.fixture
def create(service, store):
    """Factory creating an integration, optionally forcing its status."""

    async def _create(
        integration_type: IntegrationType = IntegrationType.AIRTABLE,
        user_id: str = "user-a",
        config: Optional[Dict[str, Any]] = None,
        status: Optional[IntegrationStatus] = None,
        name: str = "Test Integration",
        **fields,
    ):
        response = await service.create_integration(user_id, IntegrationCreate(
            name=name,
            type=integration_type,
            config=config or {},
            sync_interval=fields.pop("sync_interval", None),
        ))
        update = dict(fields)
        if status is not None:
            update["status"] = status
        if update:
            await store.update_integration(response.id, update)
        return await store.get_integration(response.id)

    return _create
