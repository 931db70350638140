"""Tests for the provider handlers."""

import json
from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest
from tenacity import wait_none

from integration_hub.integrations import (
    AirtableHandler,
    NotionHandler,
    TelegramHandler,
    DiscordHandler,
    SlackHandler,
    CustomWebhookHandler,
    BaseHandler,
    AuthenticationError,
    NotFoundError,
    RateLimitError,
    IntegrationError,
    IntegrationTimeoutError,
    ProviderUnreachableError,
)
from integration_hub.integrations.base import normalize_phone, truncate
from integration_hub.integrations.notion import extract_property_value
from integration_hub.integrations.telegram import escape_markdown
from integration_hub.schemas import SyncOptions

SLACK_URL = "https://hooks.slack.com/services/T000/B000/XXXX"
DISCORD_URL = "https://discord.com/api/webhooks/123/abc"


def _response(status_code: int = 200, body=None) -> Mock:
    return Mock(status_code=status_code, json=lambda: body if body is not None else {})


class TestBaseHandler:
    """Test shared request handling."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code,error", [
        (401, AuthenticationError),
        (403, AuthenticationError),
        (404, NotFoundError),
        (429, RateLimitError),
        (500, IntegrationError),
    ])
    async def test_status_codes_map_to_errors(self, status_code, error):
        handler = SlackHandler()
        request = httpx.Request("GET", "https://example.com")

        with patch.object(httpx.AsyncClient, "request", AsyncMock(return_value=httpx.Response(status_code, request=request))):
            with pytest.raises(error) as exc_info:
                await handler.make_api_request("GET", "https://example.com")

        assert exc_info.value.status_code == status_code

    @pytest.mark.asyncio
    async def test_transport_errors(self):
        handler = SlackHandler()

        with patch.object(httpx.AsyncClient, "request", AsyncMock(side_effect=httpx.ReadTimeout("slow"))):
            with pytest.raises(IntegrationTimeoutError):
                await handler.make_api_request("GET", "https://example.com")

        with patch.object(httpx.AsyncClient, "request", AsyncMock(side_effect=httpx.ConnectError("refused"))):
            with pytest.raises(ProviderUnreachableError):
                await handler.make_api_request("GET", "https://example.com")

    @pytest.mark.asyncio
    async def test_fetch_json_retries_timeouts(self):
        handler = SlackHandler()
        fetch = BaseHandler.fetch_json.retry_with(wait=wait_none())
        mock_request = AsyncMock(side_effect=[
            IntegrationTimeoutError("slow"),
            IntegrationTimeoutError("slow"),
            _response(body={"ok": True}),
        ])

        with patch.object(handler, "make_api_request", mock_request):
            assert await fetch(handler, "https://example.com") == {"ok": True}

        assert mock_request.call_count == 3

    def test_capabilities(self):
        assert AirtableHandler().supports_sync is True
        assert AirtableHandler().supports_events is False
        assert SlackHandler().supports_sync is False
        assert SlackHandler().supports_events is True

    def test_helpers(self):
        assert truncate("hello world", 8) == "hello..."
        assert truncate(None, 8) == ""
        assert normalize_phone("+62 812-3456-7890") == "6281234567890"
        assert normalize_phone("0812 3456 7890", "62") == "6281234567890"
        assert normalize_phone("12345") is None


class TestAirtable:
    """Test the Airtable handler."""

    @pytest.mark.asyncio
    async def test_missing_config(self):
        result = await AirtableHandler().test_connection({"apiKey": "key"})

        assert result.success is False
        assert result.message == "Base ID is required"

    @pytest.mark.asyncio
    async def test_connection(self):
        handler = AirtableHandler()
        config = {"apiKey": "key", "baseId": "app1", "tableId": "Contacts"}

        with patch.object(handler, "fetch_json", AsyncMock(return_value={"records": []})) as mock_fetch:
            result = await handler.test_connection(config)

        assert result.success is True
        mock_fetch.assert_called_once_with(
            "https://api.airtable.com/v0/app1/Contacts",
            headers={"Authorization": "Bearer key", "Content-Type": "application/json"},
            params={"maxRecords": 1},
        )

    @pytest.mark.asyncio
    async def test_invalid_key(self):
        handler = AirtableHandler()
        config = {"apiKey": "bad", "baseId": "app1", "tableId": "Contacts"}

        with patch.object(handler, "fetch_json", AsyncMock(side_effect=AuthenticationError("denied", 401))):
            result = await handler.test_connection(config)

        assert result.success is False
        assert result.message == "Invalid API key"

    @pytest.mark.asyncio
    async def test_sync_follows_pagination_and_extracts_contacts(self):
        handler = AirtableHandler()
        config = {
            "apiKey": "key",
            "baseId": "app1",
            "tableId": "Contacts",
            "syncType": "contacts",
            "countryCode": "62",
            "fieldMapping": {"phone": "Mobile"},
        }
        pages = [
            {"records": [{"fields": {"Name": "Ana", "Mobile": "081234567890"}}], "offset": "page2"},
            {"records": [{"fields": {"Name": "No phone"}}, {"fields": {"Mobile": "6289876543210"}}]},
        ]

        with patch.object(handler, "fetch_json", AsyncMock(side_effect=pages)) as mock_fetch:
            result = await handler.sync(config, SyncOptions(), "user-a")

        assert mock_fetch.call_count == 2
        assert mock_fetch.call_args.kwargs["params"] == {"pageSize": 100, "offset": "page2"}
        assert result.success is True
        assert result.records_count == 2
        assert result.skipped == 1

        contacts = handler.extract_contacts(pages[0]["records"], {"phone": "Mobile"}, "62")
        assert contacts == [{"name": "Ana", "phone": "6281234567890", "email": None, "notes": None}]


class TestNotion:
    """Test the Notion handler."""

    @pytest.mark.asyncio
    async def test_database_not_shared(self):
        handler = NotionHandler()

        with patch.object(handler, "make_api_request", AsyncMock(side_effect=NotFoundError("missing", 404))):
            result = await handler.test_connection({"apiKey": "secret", "databaseId": "db1"})

        assert result.success is False
        assert result.message == "Database not found. Make sure it's shared with your integration."

    @pytest.mark.asyncio
    async def test_connection_queries_one_page(self):
        handler = NotionHandler()

        with patch.object(handler, "make_api_request", AsyncMock(return_value=_response(body={"results": []}))) as mock_request:
            result = await handler.test_connection({"apiKey": "secret", "databaseId": "db1"})

        assert result.success is True
        args, kwargs = mock_request.call_args
        assert args == ("POST", "https://api.notion.com/v1/databases/db1/query")
        assert kwargs["json"] == {"page_size": 1}
        assert kwargs["headers"]["Notion-Version"] == "2022-06-28"

    @pytest.mark.asyncio
    async def test_sync_follows_cursor(self):
        handler = NotionHandler()
        responses = [
            _response(body={"results": [{"properties": {}}], "has_more": True, "next_cursor": "c2"}),
            _response(body={"results": [{"properties": {}}, {"properties": {}}], "has_more": False, "next_cursor": None}),
        ]

        with patch.object(handler, "make_api_request", AsyncMock(side_effect=responses)) as mock_request:
            result = await handler.sync({"apiKey": "secret", "databaseId": "db1"}, SyncOptions(), "user-a")

        assert result.records_count == 3
        assert mock_request.call_args.kwargs["json"] == {"page_size": 100, "start_cursor": "c2"}

    def test_extract_property_value(self):
        assert extract_property_value({"type": "title", "title": [{"plain_text": "Ana"}]}) == "Ana"
        assert extract_property_value({"type": "rich_text", "rich_text": []}) is None
        assert extract_property_value({"type": "phone_number", "phone_number": "0812"}) == "0812"
        assert extract_property_value({"type": "select", "select": {"name": "Lead"}}) == "Lead"
        assert extract_property_value({"type": "multi_select", "multi_select": [{"name": "a"}, {"name": "b"}]}) == "a, b"
        assert extract_property_value({"type": "checkbox", "checkbox": False}) is False
        assert extract_property_value({"type": "formula", "formula": {}}) is None
        assert extract_property_value(None) is None


class TestTelegram:
    """Test the Telegram handler."""

    @pytest.mark.asyncio
    async def test_connection_is_read_only(self):
        handler = TelegramHandler()
        config = {"botToken": "123:abc", "chatId": "42"}
        fetch = AsyncMock(side_effect=[{"ok": True, "result": {"username": "hub_bot"}}, {"ok": True}])

        with patch.object(handler, "fetch_json", fetch), patch.object(handler, "make_api_request") as mock_request:
            result = await handler.test_connection(config)

        assert result.success is True
        assert result.bot_name == "hub_bot"
        assert fetch.call_args.args[0].endswith("/getChat")
        mock_request.assert_not_called()

    @pytest.mark.asyncio
    async def test_keyword_filter(self):
        handler = TelegramHandler()
        config = {"botToken": "123:abc", "chatId": "42", "keywords": ["Order"]}

        with patch.object(handler, "send_message", AsyncMock()) as mock_send:
            await handler.handle_event("message.received", {"message": "just saying hi"}, config)
            mock_send.assert_not_called()

            await handler.handle_event("message.received", {"message": "new order #12"}, config)
            mock_send.assert_called_once()

    @pytest.mark.asyncio
    async def test_media_failure_is_not_raised(self):
        handler = TelegramHandler()
        config = {"botToken": "123:abc", "chatId": "42", "includeMedia": True}
        data = {"message": "photo", "mediaUrl": "https://cdn.example.com/a.jpg", "mediaType": "image"}

        with patch.object(handler, "make_api_request", AsyncMock(side_effect=[None, IntegrationError("too big")])) as mock_request:
            await handler.handle_event("message.received", data, config)

        assert mock_request.call_count == 2
        assert mock_request.call_args.args[1].endswith("/sendPhoto")

    def test_format_message(self):
        handler = TelegramHandler()

        message = handler.format_message("message.received", {"from": "628123", "message": "a_b"})

        assert "*From:* 628123" in message
        assert "a\\_b" in message
        assert escape_markdown("1.5") == "1\\.5"


class TestDiscord:
    """Test the Discord handler."""

    @pytest.mark.asyncio
    async def test_invalid_url(self):
        result = await DiscordHandler().test_connection({"webhookUrl": "https://example.com/hook"})

        assert result.success is False
        assert result.message == "Invalid Discord webhook URL"

    @pytest.mark.asyncio
    async def test_connection_reads_webhook(self):
        handler = DiscordHandler()

        with patch.object(handler, "fetch_json", AsyncMock(return_value={"name": "alerts"})) as mock_fetch:
            result = await handler.test_connection({"webhookUrl": DISCORD_URL})

        assert result.success is True
        mock_fetch.assert_called_once_with(DISCORD_URL)

    @pytest.mark.asyncio
    async def test_event_with_role_mention(self):
        handler = DiscordHandler()
        config = {"webhookUrl": DISCORD_URL, "mentionRoleId": "999", "embedColor": "#FF0000"}

        with patch.object(handler, "make_api_request", AsyncMock()) as mock_request:
            await handler.handle_event("broadcast.completed", {"name": "Promo", "sent": 5}, config)

        payload = mock_request.call_args.kwargs["json"]
        assert payload["content"] == "<@&999>"
        embed = payload["embeds"][0]
        assert embed["title"] == "Broadcast Completed"
        assert embed["color"] == 0xFF0000


class TestSlack:
    """Test the Slack handler."""

    @pytest.mark.asyncio
    async def test_invalid_url(self):
        result = await SlackHandler().test_connection({"webhookUrl": "https://example.com"})

        assert result.success is False

    @pytest.mark.asyncio
    async def test_event_payload(self):
        handler = SlackHandler()
        config = {"webhookUrl": SLACK_URL, "channel": "#ops"}

        with patch.object(handler, "make_api_request", AsyncMock()) as mock_request:
            await handler.handle_event("device.disconnected", {"deviceName": "Phone 1"}, config)

        args, kwargs = mock_request.call_args
        assert args == ("POST", SLACK_URL)
        assert kwargs["json"]["channel"] == "#ops"
        assert kwargs["json"]["text"] == "Device disconnected: Phone 1"

    def test_unknown_event_dumps_data(self):
        blocks = SlackHandler().build_blocks("custom.thing", {"a": 1})

        assert "custom.thing" in blocks[0]["text"]["text"]


class TestCustomWebhook:
    """Test the custom webhook handler."""

    @pytest.mark.asyncio
    async def test_invalid_url(self):
        result = await CustomWebhookHandler().test_connection({"url": "not a url"})

        assert result.success is False
        assert result.message == "Invalid URL format"

    @pytest.mark.asyncio
    async def test_non_2xx_is_failure(self):
        handler = CustomWebhookHandler()

        with patch.object(handler, "make_api_request", AsyncMock(return_value=_response(500))):
            result = await handler.test_connection({"url": "https://hooks.example.com/in"})

        assert result.success is False
        assert result.status_code == 500

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        handler = CustomWebhookHandler()

        with patch.object(handler, "make_api_request", AsyncMock(side_effect=ProviderUnreachableError("refused"))):
            result = await handler.test_connection({"url": "https://hooks.example.com/in"})

        assert result.message == "Connection refused. Check if the server is running."

    @pytest.mark.asyncio
    async def test_event_uses_method_and_headers(self):
        handler = CustomWebhookHandler()
        config = {"url": "https://hooks.example.com/in", "method": "PUT", "headers": {"X-Token": "t"}}

        with patch.object(handler, "make_api_request", AsyncMock()) as mock_request:
            await handler.handle_event("message.sent", {"to": "628123"}, config)

        args, kwargs = mock_request.call_args
        assert args == ("PUT", "https://hooks.example.com/in")
        assert kwargs["headers"]["X-Token"] == "t"
        assert kwargs["json"]["event"] == "message.sent"
        assert kwargs["json"]["data"] == {"to": "628123"}

    def test_template_escapes_values(self):
        template = '{"text": "{{message}}", "who": "{{from}}", "kind": "{{event}}"}'

        payload = CustomWebhookHandler().build_payload_from_template(
            template, "message.received", {"message": 'say "hi"\n', "from": "628123"},
        )

        assert payload == {"text": 'say "hi"\n', "who": "628123", "kind": "message.received"}

    def test_invalid_template_falls_back(self):
        payload = CustomWebhookHandler().build_payload_from_template("{not json", "device.connected", {"x": 1})

        assert payload["event"] == "device.connected"
        assert payload["data"] == {"x": 1}
        json.dumps(payload)
