"""Fernet payload encryption for health records at rest.

Record payloads and entity profiles are sealed before they reach SQLite.
Only the columns needed for ordered lookups (entity id, category, record
date) stay in the clear.

Several keys may be configured as a comma-separated list: the first key
seals new payloads, every key is tried when opening (key rotation).
"""

from __future__ import annotations

import json
import logging
from typing import Any

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

logger = logging.getLogger(__name__)


class EncryptionError(Exception):
    """Raised when a payload cannot be sealed or opened."""


class PayloadCipher:
    """Seals and opens JSON-serializable payloads with (Multi)Fernet.

    Usage::

        cipher = PayloadCipher(PayloadCipher.generate_key())
        sealed = cipher.seal({"vaccine_name": "Rabies"})
        cipher.open(sealed)  # {"vaccine_name": "Rabies"}
    """

    def __init__(self, keys: str) -> None:
        """Initialize from one key or a comma-separated list of keys.

        Raises:
            EncryptionError: If no key is given or any key is malformed.
        """
        key_list = [k.strip() for k in (keys or "").split(",") if k.strip()]
        if not key_list:
            raise EncryptionError("Encryption key must not be empty")
        try:
            self._fernet = MultiFernet([Fernet(k.encode()) for k in key_list])
        except ValueError as exc:
            raise EncryptionError(f"Invalid encryption key: {exc}") from exc
        self._key_count = len(key_list)

    @property
    def key_count(self) -> int:
        return self._key_count

    def seal(self, payload: Any) -> str:
        """Serialize and encrypt ``payload``; ``None`` seals to an empty string."""
        if payload is None:
            return ""
        try:
            plaintext = json.dumps(payload, separators=(",", ":"), default=str)
            return self._fernet.encrypt(plaintext.encode("utf-8")).decode("utf-8")
        except (TypeError, ValueError) as exc:
            raise EncryptionError(f"Encryption failed: {exc}") from exc

    def open(self, sealed: str) -> Any:
        """Decrypt and deserialize a sealed payload; empty input opens to ``None``."""
        if not sealed:
            return None
        try:
            plaintext = self._fernet.decrypt(sealed.encode("utf-8"))
        except InvalidToken as exc:
            raise EncryptionError("Decryption failed: invalid token or wrong key") from exc
        try:
            return json.loads(plaintext)
        except ValueError as exc:
            raise EncryptionError(f"Decryption failed: {exc}") from exc

    def rotate(self, sealed: str) -> str:
        """Re-encrypt a sealed payload under the primary key."""
        if not sealed:
            return ""
        try:
            return self._fernet.rotate(sealed.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            raise EncryptionError("Rotation failed: invalid token or wrong key") from exc

    @staticmethod
    def generate_key() -> str:
        """Generate a new URL-safe base64 Fernet key."""
        return Fernet.generate_key().decode("utf-8")
