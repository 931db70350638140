"""Provider handlers. Importing this package registers every handler."""

from .base import (
    BaseHandler,
    IntegrationError,
    AuthenticationError,
    RateLimitError,
    NotFoundError,
    IntegrationTimeoutError,
    ProviderUnreachableError,
)
from .registry import HandlerRegistry
from .airtable import AirtableHandler
from .notion import NotionHandler
from .telegram import TelegramHandler
from .discord import DiscordHandler
from .slack import SlackHandler
from .custom_webhook import CustomWebhookHandler

__all__ = [
    "BaseHandler",
    "IntegrationError",
    "AuthenticationError",
    "RateLimitError",
    "NotFoundError",
    "IntegrationTimeoutError",
    "ProviderUnreachableError",
    "HandlerRegistry",
    "AirtableHandler",
    "NotionHandler",
    "TelegramHandler",
    "DiscordHandler",
    "SlackHandler",
    "CustomWebhookHandler",
]
