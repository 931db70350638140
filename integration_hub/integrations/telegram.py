"""Telegram handler: notifications through a bot."""

from typing import Dict, Any, Optional
from datetime import datetime
import json
import logging
import re

from integration_hub.integrations.base import BaseHandler, IntegrationError
from integration_hub.integrations.registry import HandlerRegistry
from integration_hub.models import IntegrationType
from integration_hub.schemas import HandlerResult

logger = logging.getLogger(__name__)

BASE_URL = "https://api.telegram.org/bot"

DEFAULT_TEMPLATES = {
    "message.received": "*New Message*\n\n*From:* {{from}}\n*Message:* {{message}}\n{{time}}",
    "message.sent": "*Message Sent*\n\n*To:* {{to}}\n*Message:* {{message}}",
    "message.failed": "*Message Failed*\n\n*To:* {{to}}\n*Error:* {{error}}",
    "device.connected": "*Device Connected*\n\n*Device:* {{deviceName}}",
    "device.disconnected": "*Device Disconnected*\n\n*Device:* {{deviceName}}",
    "broadcast.started": "*Broadcast Started*\n\n*Name:* {{name}}\n*Recipients:* {{total}}",
    "broadcast.completed": "*Broadcast Completed*\n\n*Name:* {{name}}\n*Sent:* {{sent}}\n*Failed:* {{failed}}",
}
FALLBACK_TEMPLATE = "*{{event}}*\n\n{{json}}"

MEDIA_ENDPOINTS = {
    "image": ("sendPhoto", "photo"),
    "video": ("sendVideo", "video"),
    "audio": ("sendAudio", "audio"),
}

_MARKDOWN_SPECIAL = re.compile(r"([_*\[\]()~`>#+=|{}.!-])")


def escape_markdown(text: Optional[str]) -> str:
    if not text:
        return ""
    return _MARKDOWN_SPECIAL.sub(r"\\\1", text)


@HandlerRegistry.register(IntegrationType.TELEGRAM)
class TelegramHandler(BaseHandler):
    """Send event messages to a Telegram chat via the Bot API.

    Config keys: ``botToken``, ``chatId``, optional ``formatTemplate``,
    ``includeMedia`` and ``keywords`` (message.received only fires when the
    text contains one of them).
    """

    async def test_connection(self, config: Dict[str, Any]) -> HandlerResult:
        bot_token = config.get("botToken")
        chat_id = config.get("chatId")
        if not bot_token:
            return HandlerResult(success=False, message="Bot Token is required")
        if not chat_id:
            return HandlerResult(success=False, message="Chat ID is required")

        try:
            data = await self.fetch_json(f"{BASE_URL}{bot_token}/getMe")
        except IntegrationError as e:
            return HandlerResult(success=False, message=str(e))

        if not data.get("ok"):
            return HandlerResult(success=False, message="Invalid bot token")

        bot_name = data["result"].get("username")
        try:
            await self.fetch_json(f"{BASE_URL}{bot_token}/getChat", params={"chat_id": chat_id})
        except IntegrationError as e:
            return HandlerResult(success=False, message=f"Bot @{bot_name} cannot access chat {chat_id}: {e}")

        return HandlerResult(
            success=True,
            message=f"Connected to bot @{bot_name}.",
            bot_name=bot_name,
        )

    async def handle_event(self, event_name: str, data: Dict[str, Any], config: Dict[str, Any]) -> None:
        keywords = config.get("keywords") or []
        if event_name == "message.received" and keywords:
            text = (data.get("message") or "").lower()
            if not any(kw.lower() in text for kw in keywords):
                return

        bot_token = config["botToken"]
        chat_id = config["chatId"]

        message = self.format_message(event_name, data, config.get("formatTemplate"))
        await self.send_message(bot_token, chat_id, message)

        if config.get("includeMedia") and data.get("mediaUrl"):
            await self.send_media(bot_token, chat_id, data["mediaUrl"], data.get("mediaType"))

    async def send_message(self, bot_token: str, chat_id: str, text: str, parse_mode: str = "Markdown") -> None:
        await self.make_api_request("POST", f"{BASE_URL}{bot_token}/sendMessage", json={
            "chat_id": chat_id,
            "text": text,
            "parse_mode": parse_mode,
            "disable_web_page_preview": True,
        })

    async def send_media(self, bot_token: str, chat_id: str, media_url: str, media_type: Optional[str]) -> None:
        """Send an attachment. Failures are logged, not raised."""
        endpoint, field = MEDIA_ENDPOINTS.get(media_type, ("sendDocument", "document"))
        try:
            await self.make_api_request(
                "POST",
                f"{BASE_URL}{bot_token}/{endpoint}",
                json={"chat_id": chat_id, field: media_url},
                timeout=30.0,
            )
        except IntegrationError as e:
            logger.warning(f"Failed to send Telegram media: {e}")

    def format_message(self, event_name: str, data: Dict[str, Any], template: Optional[str] = None) -> str:
        """Fill a message template for an event."""
        template = template or DEFAULT_TEMPLATES.get(event_name) or FALLBACK_TEMPLATE

        replacements = {
            "event": event_name,
            "from": data.get("from") or data.get("fromName") or "Unknown",
            "to": data.get("to") or data.get("toName") or "Unknown",
            "message": escape_markdown(data.get("message")),
            "error": data.get("error") or "Unknown error",
            "deviceName": data.get("deviceName") or "Unknown",
            "name": data.get("name") or "Untitled",
            "total": data.get("totalRecipients") or 0,
            "sent": data.get("sent") or 0,
            "failed": data.get("failed") or 0,
            "time": datetime.utcnow().strftime("%Y-%m-%d %H:%M UTC"),
            "json": json.dumps(data, indent=2, default=str),
        }

        message = template
        for placeholder, value in replacements.items():
            message = message.replace("{{" + placeholder + "}}", str(value))
        return message
