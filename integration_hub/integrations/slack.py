"""Slack handler: notifications through an incoming webhook."""

from typing import Dict, Any, List
import json

from integration_hub.integrations.base import BaseHandler, IntegrationError, NotFoundError, truncate
from integration_hub.integrations.registry import HandlerRegistry
from integration_hub.models import IntegrationType
from integration_hub.schemas import HandlerResult


def _section(text: str) -> Dict[str, Any]:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


@HandlerRegistry.register(IntegrationType.SLACK)
class SlackHandler(BaseHandler):
    """Post Block Kit messages to a Slack incoming webhook."""

    async def test_connection(self, config: Dict[str, Any]) -> HandlerResult:
        webhook_url = config.get("webhookUrl")
        if not webhook_url:
            return HandlerResult(success=False, message="Webhook URL is required")
        if "hooks.slack.com" not in webhook_url:
            return HandlerResult(success=False, message="Invalid Slack webhook URL")

        try:
            await self.make_api_request("POST", webhook_url, json={
                "text": "Integration connected successfully!",
                "blocks": [_section("*Integration Connected*\nThis channel now receives platform notifications.")],
            })
        except NotFoundError:
            return HandlerResult(success=False, message="Webhook not found. Check the URL.")
        except IntegrationError as e:
            return HandlerResult(success=False, message=str(e))

        return HandlerResult(success=True, message="Webhook connected! Test message sent to Slack.")

    async def handle_event(self, event_name: str, data: Dict[str, Any], config: Dict[str, Any]) -> None:
        payload = {
            "username": config.get("username") or "Integration Hub",
            "icon_emoji": config.get("iconEmoji") or ":bell:",
            "text": self.build_fallback_text(event_name, data),
            "blocks": self.build_blocks(event_name, data),
        }
        if config.get("channel"):
            payload["channel"] = config["channel"]

        await self.make_api_request("POST", config["webhookUrl"], json=payload)

    def build_blocks(self, event_name: str, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Build Slack blocks for rich formatting."""
        if event_name == "message.received":
            return [
                {"type": "header", "text": {"type": "plain_text", "text": "New Message"}},
                {"type": "section", "fields": [
                    {"type": "mrkdwn", "text": f"*From:*\n{data.get('from') or data.get('fromName') or 'Unknown'}"},
                    {"type": "mrkdwn", "text": f"*Device:*\n{data.get('deviceName') or 'Unknown'}"},
                ]},
                _section(f"*Message:*\n{truncate(data.get('message') or 'No content', 2000)}"),
                {"type": "divider"},
            ]
        if event_name == "message.sent":
            return [_section(f"*Message Sent* to {data.get('to') or 'Unknown'}")]
        if event_name == "message.failed":
            return [_section(f"*Message Failed* to {data.get('to') or 'Unknown'}\nError: {data.get('error') or 'Unknown'}")]
        if event_name == "device.connected":
            return [_section(f"*Device Connected:* {data.get('deviceName') or 'Unknown'}")]
        if event_name == "device.disconnected":
            return [_section(f"*Device Disconnected:* {data.get('deviceName') or 'Unknown'}")]
        if event_name == "broadcast.started":
            return [_section(
                f"*Broadcast Started:* {data.get('name') or 'Untitled'}\n"
                f"Recipients: {data.get('totalRecipients') or 0}"
            )]
        if event_name == "broadcast.completed":
            return [_section(
                f"*Broadcast Completed:* {data.get('name') or 'Untitled'}\n"
                f"Sent: {data.get('sent') or 0} | Failed: {data.get('failed') or 0}"
            )]

        dumped = json.dumps(data, indent=2, default=str)[:2000]
        return [_section(f"*{event_name}*\n```{dumped}```")]

    def build_fallback_text(self, event_name: str, data: Dict[str, Any]) -> str:
        """Plain text shown in notifications."""
        texts = {
            "message.received": truncate(
                f"New message from {data.get('from') or 'Unknown'}: {data.get('message') or ''}", 200
            ),
            "message.sent": f"Message sent to {data.get('to') or 'Unknown'}",
            "message.failed": f"Message failed to {data.get('to') or 'Unknown'}",
            "device.connected": f"Device connected: {data.get('deviceName') or 'Unknown'}",
            "device.disconnected": f"Device disconnected: {data.get('deviceName') or 'Unknown'}",
            "broadcast.started": f"Broadcast started: {data.get('name') or 'Untitled'}",
            "broadcast.completed": f"Broadcast completed: {data.get('name') or 'Untitled'}",
        }
        return texts.get(event_name, event_name)
