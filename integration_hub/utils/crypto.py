"""Cryptographic utilities for integration config encryption."""

from typing import Any, Dict, Optional
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
import base64
import json

from integration_hub.core.config import get_settings


def generate_key(password: str, salt: bytes) -> bytes:
    """Generate encryption key from password."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=100000,
    )
    key = base64.urlsafe_b64encode(kdf.derive(password.encode()))
    return key


class ConfigCipher:
    """Encrypts integration configs at rest.

    The key is derived once; a fixed salt keeps stored values decryptable
    across restarts.
    """

    def __init__(self, encryption_key: str, salt: str):
        self._fernet = Fernet(generate_key(encryption_key, salt.encode()))

    def encrypt_config(self, config: Dict[str, Any]) -> str:
        """Serialize and encrypt a config dict."""
        payload = json.dumps(config, separators=(",", ":")).encode()
        return self._fernet.encrypt(payload).decode()

    def decrypt_config(self, encrypted_config: str) -> Dict[str, Any]:
        """Decrypt and deserialize a stored config."""
        try:
            payload = self._fernet.decrypt(encrypted_config.encode())
        except InvalidToken:
            raise ValueError("Integration config could not be decrypted")
        return json.loads(payload)


_cipher: Optional[ConfigCipher] = None


def get_cipher() -> ConfigCipher:
    """Get the process-wide cipher built from settings."""
    global _cipher
    if _cipher is None:
        settings = get_settings()
        _cipher = ConfigCipher(settings.encryption_key, settings.encryption_salt)
    return _cipher
