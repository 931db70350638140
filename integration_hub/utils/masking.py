"""Presentation masking for integration configs."""

from typing import Any, Dict

SENSITIVE_FIELDS = (
    "apiKey",
    "api_key",
    "token",
    "botToken",
    "bot_token",
    "secret",
    "pass",
    "password",
    "webhookUrl",
    "webhook_url",
    "url",
)

NESTED_AUTH_FIELDS = ("pass", "password")

REDACTED = "****"


def mask_value(value: Any) -> str:
    """Keep the first and last 4 chars of long strings, redact the rest."""
    if isinstance(value, str) and len(value) > 8:
        return value[:4] + REDACTED + value[-4:]
    return REDACTED


def mask_config(config: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of config with sensitive values masked.

    The input is never modified.
    """
    masked = dict(config)

    for field in SENSITIVE_FIELDS:
        if masked.get(field):
            masked[field] = mask_value(masked[field])

    headers = masked.get("headers")
    if isinstance(headers, dict):
        masked["headers"] = {name: mask_value(value) for name, value in headers.items()}

    auth = masked.get("auth")
    if isinstance(auth, dict):
        auth = dict(auth)
        for field in NESTED_AUTH_FIELDS:
            if auth.get(field):
                auth[field] = REDACTED
        masked["auth"] = auth

    return masked
