"""Tests for masking, config encryption and log formatting."""

import json
import logging

import pytest

from integration_hub.utils.crypto import ConfigCipher
from integration_hub.utils.logging import JSONFormatter
from integration_hub.utils.masking import mask_config, mask_value


class TestMasking:
    """Test presentation masking."""

    def test_long_value_keeps_both_ends(self):
        assert mask_config({"apiKey": "abcd1234efgh"}) == {"apiKey": "abcd****efgh"}

    def test_short_and_non_string_values_are_redacted(self):
        assert mask_value("short") == "****"
        assert mask_value("12345678") == "****"
        assert mask_value(12345678901) == "****"

    def test_known_fields_only(self):
        masked = mask_config({
            "botToken": "123456:ABCDEFGHIJ",
            "webhookUrl": "https://hooks.slack.com/services/T0/B0/XYZ",
            "chatId": "-100123456789",
            "events": ["message.received"],
        })

        assert masked["botToken"] == "1234****GHIJ"
        assert masked["webhookUrl"] == "http****/XYZ"
        assert masked["chatId"] == "-100123456789"
        assert masked["events"] == ["message.received"]

    def test_nested_auth(self):
        config = {"auth": {"user": "ops", "pass": "hunter2hunter2"}}

        masked = mask_config(config)

        assert masked["auth"] == {"user": "ops", "pass": "****"}
        assert config["auth"]["pass"] == "hunter2hunter2"

    def test_webhook_url_and_header_values(self):
        config = {
            "url": "https://hooks.example.com/in/abc123",
            "method": "POST",
            "headers": {"Authorization": "Bearer sk-live-123456", "X-Env": "prod"},
        }

        masked = mask_config(config)

        assert masked["url"] == "http****c123"
        assert masked["method"] == "POST"
        assert masked["headers"] == {"Authorization": "Bear****3456", "X-Env": "****"}
        assert config["headers"]["Authorization"] == "Bearer sk-live-123456"

    def test_input_is_not_modified(self):
        config = {"password": "correct horse battery"}

        mask_config(config)

        assert config == {"password": "correct horse battery"}


class TestConfigCipher:
    """Test config encryption at rest."""

    def test_ciphertext_hides_values(self):
        cipher = ConfigCipher("key", "salt")

        encrypted = cipher.encrypt_config({"apiKey": "abcd1234efgh"})

        assert "abcd1234efgh" not in encrypted
        assert cipher.decrypt_config(encrypted) == {"apiKey": "abcd1234efgh"}

    def test_wrong_key_is_rejected(self):
        encrypted = ConfigCipher("key", "salt").encrypt_config({"a": 1})

        with pytest.raises(ValueError):
            ConfigCipher("other-key", "salt").decrypt_config(encrypted)


class TestJSONFormatter:
    """Test structured log output."""

    def test_includes_service_and_extras(self):
        formatter = JSONFormatter("integration-hub", "test")
        record = logging.LogRecord("integration_hub.services", logging.INFO, __file__, 1, "Sync done", None, None)
        record.integration_id = "abc"

        data = json.loads(formatter.format(record))

        assert data["message"] == "Sync done"
        assert data["service"] == "integration-hub"
        assert data["environment"] == "test"
        assert data["integration_id"] == "abc"
