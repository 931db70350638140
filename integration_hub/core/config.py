"""Configuration settings for the integration hub."""

from typing import Optional, Dict, Any
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Service Configuration
    service_name: str = "integration-hub"
    port: int = 8000
    environment: str = "development"
    debug: bool = False

    # Security
    encryption_key: str
    encryption_salt: str = "integration-hub-config"

    # Database
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_db_name: str = "integration_hub"

    # Scheduler
    sweep_interval_seconds: int = 60
    stale_sync_minutes: int = 30

    # Event fan-out
    event_delay_ms: int = 100

    # Providers
    http_timeout_seconds: float = 10.0
    event_timeout_seconds: float = 30.0

    # Audit logs
    recent_logs_limit: int = 5
    detail_logs_limit: int = 20
    default_logs_limit: int = 50

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Provider catalog, one entry per IntegrationType value
INTEGRATION_CATALOG: Dict[str, Dict[str, Any]] = {
    "airtable": {
        "name": "Airtable",
        "category": "database",
        "description": "Connect to Airtable bases for contact and data management",
        "color": "#18BFFF",
        "features": ["Contact Sync", "Custom Tables", "View Filters"],
    },
    "notion": {
        "name": "Notion",
        "category": "database",
        "description": "Sync with Notion databases for CRM and knowledge management",
        "color": "#000000",
        "features": ["Contact Database", "Message Archive", "Lead Pages"],
    },
    "telegram": {
        "name": "Telegram",
        "category": "notification",
        "description": "Receive message notifications via a Telegram bot",
        "color": "#0088CC",
        "features": ["Message Forward", "Keyword Alerts"],
    },
    "discord": {
        "name": "Discord",
        "category": "notification",
        "description": "Send notifications to Discord channels via webhook",
        "color": "#5865F2",
        "features": ["Rich Embeds", "Role Mentions"],
    },
    "slack": {
        "name": "Slack",
        "category": "notification",
        "description": "Send team notifications to Slack channels",
        "color": "#4A154B",
        "features": ["Channel Routing", "Block Kit Messages"],
    },
    "custom_webhook": {
        "name": "Custom Webhook",
        "category": "automation",
        "description": "Send events to any HTTP endpoint with custom payload",
        "color": "#6366F1",
        "features": ["Custom Headers", "Payload Templates"],
    },
}


def get_catalog_entry(integration_type: str) -> Optional[Dict[str, Any]]:
    """Get catalog metadata for an integration type."""
    return INTEGRATION_CATALOG.get(integration_type)
