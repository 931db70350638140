"""Handler registry mapping integration types to handler instances."""

from typing import Dict, Type, Optional
from integration_hub.integrations.base import BaseHandler
from integration_hub.models import IntegrationType


class HandlerRegistry:
    """Registry of one shared handler instance per integration type."""

    _handlers: Dict[IntegrationType, BaseHandler] = {}

    @classmethod
    def register(cls, integration_type: IntegrationType):
        """Decorator to register a handler class."""
        def decorator(handler_class: Type[BaseHandler]):
            cls._handlers[integration_type] = handler_class()
            return handler_class
        return decorator

    @classmethod
    def get(cls, integration_type: IntegrationType) -> Optional[BaseHandler]:
        """Get the handler for a type."""
        return cls._handlers.get(integration_type)

    @classmethod
    def handlers(cls) -> Dict[IntegrationType, BaseHandler]:
        """Snapshot of the registered handlers."""
        return dict(cls._handlers)
