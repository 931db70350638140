"""Airtable handler: pull records from a base table."""

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

BASE_URL = "https://api.airtable.com/v0"
PAGE_SIZE = 100

DEFAULT_CONTACT_FIELDS = {"name": "Name", "phone": "Phone", "email": "Email", "notes": "Notes"}


def _headers(api_key: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}


@HandlerRegistry.register(IntegrationType.AIRTABLE)
class AirtableHandler(BaseHandler):
    """Read records from an Airtable table.

    Config keys: ``apiKey``, ``baseId``, ``tableId``; ``syncType="contacts"``
    with optional ``fieldMapping`` and ``countryCode`` extracts contacts.
    """

    def _missing_field(self, config: Dict[str, Any]) -> Optional[str]:
        if not config.get("apiKey"):
            return "API Key is required"
        if not config.get("baseId"):
            return "Base ID is required"
        if not config.get("tableId"):
            return "Table ID or Name is required"
        return None

    async def test_connection(self, config: Dict[str, Any]) -> HandlerResult:
        missing = self._missing_field(config)
        if missing:
            return HandlerResult(success=False, message=missing)

        try:
            data = await self.fetch_json(
                f"{BASE_URL}/{config['baseId']}/{config['tableId']}",
                headers=_headers(config["apiKey"]),
                params={"maxRecords": 1},
            )
        except AuthenticationError:
            return HandlerResult(success=False, message="Invalid API key")
        except NotFoundError:
            return HandlerResult(success=False, message="Base or Table not found")
        except IntegrationError as e:
            return HandlerResult(success=False, message=str(e))

        records = data.get("records")
        if records is None:
            return HandlerResult(success=False, message="Unexpected response from Airtable")

        state = "records" if records else "no records yet"
        return HandlerResult(success=True, message=f"Connected to Airtable. Table has {state}.")

    async def sync(self, config: Dict[str, Any], options: SyncOptions, user_id: str) -> HandlerResult:
        missing = self._missing_field(config)
        if missing:
            return HandlerResult(success=False, message=missing)

        records = await self.fetch_all_records(config["apiKey"], config["baseId"], config["tableId"])

        if config.get("syncType") == "contacts":
            contacts = self.extract_contacts(records, config.get("fieldMapping") or {}, config.get("countryCode"))
            return HandlerResult(
                success=True,
                records_count=len(contacts),
                message=f"Imported {len(contacts)} contacts from Airtable",
                skipped=len(records) - len(contacts),
            )

        return HandlerResult(
            success=True,
            records_count=len(records),
            message=f"Fetched {len(records)} records",
        )

    async def fetch_all_records(self, api_key: str, base_id: str, table_id: str) -> List[Dict[str, Any]]:
        """Fetch every record, following Airtable's offset pagination."""
        all_records: List[Dict[str, Any]] = []
        offset = None

        while True:
            params: Dict[str, Any] = {"pageSize": PAGE_SIZE}
            if offset:
                params["offset"] = offset

            data = await self.fetch_json(
                f"{BASE_URL}/{base_id}/{table_id}",
                headers=_headers(api_key),
                params=params,
            )
            all_records.extend(data.get("records", []))

            offset = data.get("offset")
            if not offset:
                break

        return all_records

    def extract_contacts(
        self,
        records: List[Dict[str, Any]],
        field_mapping: Dict[str, str],
        country_code: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Map records to contacts, dropping those without a usable phone."""
        mapping = {**DEFAULT_CONTACT_FIELDS, **field_mapping}
        contacts = []

        for record in records:
            fields = record.get("fields", {})
            phone = normalize_phone(fields.get(mapping["phone"]), country_code)
            if not phone:
                continue
            contacts.append({
                "name": fields.get(mapping["name"]) or "Unknown",
                "phone": phone,
                "email": fields.get(mapping["email"]),
                "notes": fields.get(mapping["notes"]),
            })

        return contacts
