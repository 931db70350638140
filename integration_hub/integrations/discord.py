"""Discord handler: notifications through a channel webhook."""

from typing import Dict, Any, Optional
from datetime import datetime
import json

from integration_hub.integrations.base import (
    BaseHandler,
    AuthenticationError,
    IntegrationError,
    NotFoundError,
    truncate,
)
from integration_hub.integrations.registry import HandlerRegistry
from integration_hub.models import IntegrationType
from integration_hub.schemas import HandlerResult

DEFAULT_COLOR = 0x6366F1

EVENT_COLORS = {
    "message.received": 0x25D366,
    "message.sent": 0x00FF00,
    "message.failed": 0xFF0000,
    "device.connected": 0x00FF00,
    "device.disconnected": 0xFF0000,
    "broadcast.started": 0x0099FF,
    "broadcast.completed": 0x25D366,
    "broadcast.failed": 0xFF0000,
}

FOOTER = {"text": "Integration Hub Notifications"}


def _field(name: str, value: Any, inline: bool = True) -> Dict[str, Any]:
    return {"name": name, "value": str(value), "inline": inline}


@HandlerRegistry.register(IntegrationType.DISCORD)
class DiscordHandler(BaseHandler):
    """Post embeds to a Discord webhook."""

    async def test_connection(self, config: Dict[str, Any]) -> HandlerResult:
        webhook_url = config.get("webhookUrl")
        if not webhook_url:
            return HandlerResult(success=False, message="Webhook URL is required")
        if "discord.com/api/webhooks/" not in webhook_url:
            return HandlerResult(success=False, message="Invalid Discord webhook URL")

        # GET on a webhook URL returns its metadata without posting
        try:
            webhook = await self.fetch_json(webhook_url)
        except NotFoundError:
            return HandlerResult(success=False, message="Webhook not found. Check the URL.")
        except AuthenticationError:
            return HandlerResult(success=False, message="Invalid webhook token.")
        except IntegrationError as e:
            return HandlerResult(success=False, message=str(e))

        channel = webhook.get("name") or "Discord"
        return HandlerResult(success=True, message=f"Webhook connected to {channel}.")

    async def handle_event(self, event_name: str, data: Dict[str, Any], config: Dict[str, Any]) -> None:
        content = None
        if config.get("mentionRoleId"):
            content = f"<@&{config['mentionRoleId']}>"

        await self.make_api_request("POST", config["webhookUrl"], json={
            "username": config.get("username") or "Integration Hub",
            "avatar_url": config.get("avatarUrl"),
            "content": content,
            "embeds": [self.build_embed(event_name, data, config.get("embedColor"))],
        })

    def build_embed(self, event_name: str, data: Dict[str, Any], custom_color: Optional[str] = None) -> Dict[str, Any]:
        """Build a Discord embed for an event."""
        if custom_color:
            color = int(custom_color.lstrip("#"), 16)
        else:
            color = EVENT_COLORS.get(event_name, DEFAULT_COLOR)

        if event_name == "message.received":
            embed = {"title": "New Message", "fields": [
                _field("From", data.get("from") or data.get("fromName") or "Unknown"),
                _field("Device", data.get("deviceName") or "Unknown"),
                _field("Message", truncate(data.get("message") or "No content", 1024), inline=False),
            ]}
        elif event_name == "message.sent":
            embed = {"title": "Message Sent", "fields": [
                _field("To", data.get("to") or data.get("toName") or "Unknown"),
                _field("Device", data.get("deviceName") or "Unknown"),
                _field("Message", truncate(data.get("message") or "No content", 1024), inline=False),
            ]}
        elif event_name == "message.failed":
            embed = {"title": "Message Failed", "fields": [
                _field("To", data.get("to") or "Unknown"),
                _field("Error", data.get("error") or "Unknown error"),
            ]}
        elif event_name == "device.connected":
            embed = {"title": "Device Connected", "fields": [
                _field("Device", data.get("deviceName") or "Unknown"),
                _field("Phone", data.get("phone") or "N/A"),
            ]}
        elif event_name == "device.disconnected":
            embed = {"title": "Device Disconnected", "fields": [
                _field("Device", data.get("deviceName") or "Unknown"),
            ]}
        elif event_name == "broadcast.started":
            embed = {"title": "Broadcast Started", "fields": [
                _field("Name", data.get("name") or "Untitled"),
                _field("Recipients", data.get("totalRecipients") or 0),
            ]}
        elif event_name == "broadcast.completed":
            embed = {"title": "Broadcast Completed", "fields": [
                _field("Name", data.get("name") or "Untitled"),
                _field("Sent", data.get("sent") or 0),
                _field("Failed", data.get("failed") or 0),
            ]}
        else:
            dumped = json.dumps(data, indent=2, default=str)[:2000]
            embed = {"title": event_name, "description": f"```json\n{dumped}\n```"}

        embed["color"] = color
        embed["timestamp"] = datetime.utcnow().isoformat()
        embed["footer"] = FOOTER
        return embed
