"""Notion handler: query a database as a data source."""

from typing import Dict, Any, List, Optional
import logging

from integration_hub.integrations.base import (
    BaseHandler,
    AuthenticationError,
    IntegrationError,
    NotFoundError,
    normalize_phone,
)
from integration_hub.integrations.registry import HandlerRegistry
from integration_hub.models import IntegrationType
from integration_hub.schemas import HandlerResult, SyncOptions

logger = logging.getLogger(__name__)

BASE_URL = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"
PAGE_SIZE = 100

DEFAULT_CONTACT_FIELDS = {"name": "Name", "phone": "Phone", "email": "Email", "notes": "Notes"}


def _headers(api_key: str) -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
        "Notion-Version": NOTION_VERSION,
    }


def extract_property_value(prop: Optional[Dict[str, Any]]) -> Any:
    """Reduce a Notion page property to a plain value."""
    if not prop:
        return None

    kind = prop.get("type")
    if kind in ("title", "rich_text"):
        parts = prop.get(kind) or []
        return parts[0].get("plain_text") if parts else None
    if kind == "multi_select":
        names = [option["name"] for option in prop.get("multi_select") or []]
        return ", ".join(names) or None
    if kind == "select":
        return (prop.get("select") or {}).get("name")
    if kind == "date":
        return (prop.get("date") or {}).get("start")
    if kind in ("phone_number", "email", "url", "number", "checkbox"):
        return prop.get(kind)
    return None


def flatten_properties(properties: Dict[str, Any]) -> Dict[str, Any]:
    return {key: extract_property_value(value) for key, value in properties.items()}


@HandlerRegistry.register(IntegrationType.NOTION)
class NotionHandler(BaseHandler):
    """Read pages from a Notion database.

    Config keys: ``apiKey`` (integration token) and ``databaseId``;
    ``syncType="contacts"`` with optional ``fieldMapping`` and ``countryCode``
    extracts contacts.
    """

    def _missing_field(self, config: Dict[str, Any]) -> Optional[str]:
        if not config.get("apiKey"):
            return "Integration Token is required"
        if not config.get("databaseId"):
            return "Database ID is required"
        return None

    async def test_connection(self, config: Dict[str, Any]) -> HandlerResult:
        missing = self._missing_field(config)
        if missing:
            return HandlerResult(success=False, message=missing)

        # Database queries are POST but do not modify anything
        try:
            response = await self.make_api_request(
                "POST",
                f"{BASE_URL}/databases/{config['databaseId']}/query",
                headers=_headers(config["apiKey"]),
                json={"page_size": 1},
            )
        except AuthenticationError:
            return HandlerResult(success=False, message="Invalid integration token")
        except NotFoundError:
            return HandlerResult(
                success=False,
                message="Database not found. Make sure it's shared with your integration.",
            )
        except IntegrationError as e:
            return HandlerResult(success=False, message=str(e))

        if "results" not in response.json():
            return HandlerResult(success=False, message="Unexpected response from Notion")
        return HandlerResult(success=True, message="Connected to Notion database.")

    async def sync(self, config: Dict[str, Any], options: SyncOptions, user_id: str) -> HandlerResult:
        missing = self._missing_field(config)
        if missing:
            return HandlerResult(success=False, message=missing)

        pages = await self.query_all_pages(config["apiKey"], config["databaseId"])

        if config.get("syncType") == "contacts":
            contacts = self.extract_contacts(pages, config.get("fieldMapping") or {}, config.get("countryCode"))
            return HandlerResult(
                success=True,
                records_count=len(contacts),
                message=f"Imported {len(contacts)} contacts from Notion",
                skipped=len(pages) - len(contacts),
            )

        return HandlerResult(
            success=True,
            records_count=len(pages),
            message=f"Fetched {len(pages)} pages",
        )

    async def query_all_pages(self, api_key: str, database_id: str) -> List[Dict[str, Any]]:
        """Query every page of a database, following cursor pagination."""
        pages: List[Dict[str, Any]] = []
        cursor = None

        while True:
            body: Dict[str, Any] = {"page_size": PAGE_SIZE}
            if cursor:
                body["start_cursor"] = cursor

            response = await self.make_api_request(
                "POST",
                f"{BASE_URL}/databases/{database_id}/query",
                headers=_headers(api_key),
                json=body,
                timeout=30.0,
            )
            data = response.json()
            pages.extend(data.get("results", []))

            cursor = data.get("next_cursor")
            if not data.get("has_more") or not cursor:
                break

        logger.debug(f"Fetched {len(pages)} Notion pages from {database_id}")
        return pages

    def extract_contacts(
        self,
        pages: List[Dict[str, Any]],
        field_mapping: Dict[str, str],
        country_code: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        mapping = {**DEFAULT_CONTACT_FIELDS, **field_mapping}
        contacts = []

        for page in pages:
            props = flatten_properties(page.get("properties", {}))
            phone = normalize_phone(props.get(mapping["phone"]), country_code)
            if not phone:
                continue
            contacts.append({
                "name": props.get(mapping["name"]) or "Unknown",
                "phone": phone,
                "email": props.get(mapping["email"]),
                "notes": props.get(mapping["notes"]),
            })

        return contacts
