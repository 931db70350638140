"""Integration persistence backends."""

from .base import IntegrationStore, IntegrationQuery
from .memory import MemoryIntegrationStore
from .mongo import MongoIntegrationStore

__all__ = [
    "IntegrationStore",
    "IntegrationQuery",
    "MemoryIntegrationStore",
    "MongoIntegrationStore",
]
