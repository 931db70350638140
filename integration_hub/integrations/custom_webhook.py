"""Custom webhook handler: send events to any HTTP endpoint."""

from typing import Dict, Any
from datetime import datetime
from urllib.parse import urlparse
import json
import logging

from integration_hub.core.config import get_settings
from integration_hub.integrations.base import (
    BaseHandler,
    IntegrationError,
    IntegrationTimeoutError,
    ProviderUnreachableError,
)
from integration_hub.integrations.registry import HandlerRegistry
from integration_hub.models import IntegrationType
from integration_hub.schemas import HandlerResult

logger = logging.getLogger(__name__)

# Event data keys usable as {{placeholder}} in payload templates
TEMPLATE_FIELDS = ("from", "to", "message", "deviceId", "deviceName", "status", "error")


def _is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _json_escape(value: Any) -> str:
    """Escape a value for insertion inside a JSON string literal."""
    return json.dumps(str(value))[1:-1]


@HandlerRegistry.register(IntegrationType.CUSTOM_WEBHOOK)
class CustomWebhookHandler(BaseHandler):
    """Deliver events to a user-supplied HTTP endpoint.

    Config keys: ``url`` (required), ``method`` (default POST), ``headers``,
    ``payloadTemplate`` (JSON text with ``{{placeholder}}`` markers) and the
    optional ``events`` allow-list.
    """

    async def test_connection(self, config: Dict[str, Any]) -> HandlerResult:
        url = config.get("url")
        if not url:
            return HandlerResult(success=False, message="Webhook URL is required")
        if not _is_valid_url(url):
            return HandlerResult(success=False, message="Invalid URL format")

        test_payload = {
            "event": "test",
            "timestamp": datetime.utcnow().isoformat(),
            "message": "Integration webhook test",
        }

        try:
            response = await self.make_api_request(
                config.get("method") or "POST",
                url,
                headers={"Content-Type": "application/json", **(config.get("headers") or {})},
                json=test_payload,
                raise_for_status=False,
            )
        except ProviderUnreachableError:
            return HandlerResult(success=False, message="Connection refused. Check if the server is running.")
        except IntegrationTimeoutError:
            return HandlerResult(success=False, message="Connection timed out.")
        except IntegrationError as e:
            return HandlerResult(success=False, message=str(e))

        if 200 <= response.status_code < 300:
            return HandlerResult(
                success=True,
                message=f"Connected! Received status {response.status_code}",
                status_code=response.status_code,
            )
        return HandlerResult(
            success=False,
            message=f"Server returned status {response.status_code}",
            status_code=response.status_code,
        )

    async def handle_event(self, event_name: str, data: Dict[str, Any], config: Dict[str, Any]) -> None:
        template = config.get("payloadTemplate")
        if template:
            payload = self.build_payload_from_template(template, event_name, data)
        else:
            payload = self.default_payload(event_name, data)

        await self.make_api_request(
            config.get("method") or "POST",
            config["url"],
            headers={"Content-Type": "application/json", **(config.get("headers") or {})},
            json=payload,
            timeout=get_settings().event_timeout_seconds,
        )

    @staticmethod
    def default_payload(event_name: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "event": event_name,
            "timestamp": datetime.utcnow().isoformat(),
            "data": data,
        }

    def build_payload_from_template(self, template: str, event_name: str, data: Dict[str, Any]) -> Any:
        """Fill ``{{placeholder}}`` markers and parse the result as JSON.

        Falls back to the default payload when the filled template is not
        valid JSON.
        """
        replacements = {
            "event": event_name,
            "timestamp": datetime.utcnow().isoformat(),
            "phone": data.get("phone") or data.get("from") or data.get("to") or "",
        }
        for field in TEMPLATE_FIELDS:
            replacements[field] = data.get(field) or ""

        filled = template
        for placeholder, value in replacements.items():
            filled = filled.replace("{{" + placeholder + "}}", _json_escape(value))

        try:
            return json.loads(filled)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse webhook payload template: {e}")
            return self.default_payload(event_name, data)
