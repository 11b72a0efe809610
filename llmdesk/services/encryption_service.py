"""Encryption of stored API keys and of passphrase-protected backups."""

import base64
import json
import os
from typing import List, Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from llmdesk.config import settings

SALT_SIZE = 16
KDF_ITERATIONS = 100_000

KEY_HINT = (
    "Generate a key with: python -c \"from cryptography.fernet import Fernet; "
    "print(Fernet.generate_key().decode())\""
)


def _derive_fernet(passphrase: str, salt: bytes) -> Fernet:
    kdf = PBKDF2HMAC(algorithm=hashes.SHA256(), length=32, salt=salt, iterations=KDF_ITERATIONS)
    return Fernet(base64.urlsafe_b64encode(kdf.derive(passphrase.encode("utf-8"))))


def encrypt_with_passphrase(data: bytes, passphrase: str) -> bytes:
    """Encrypt ``data`` with a key derived from ``passphrase``.

    The random salt is prepended to the Fernet token.
    """
    salt = os.urandom(SALT_SIZE)
    return salt + _derive_fernet(passphrase, salt).encrypt(data)


def decrypt_with_passphrase(payload: bytes, passphrase: str) -> bytes:
    """Decrypt a payload produced by ``encrypt_with_passphrase``.

    Raises:
        ValueError: If the payload is truncated or the passphrase is wrong.
    """
    if len(payload) <= SALT_SIZE:
        raise ValueError("invalid encrypted data")
    salt, token = payload[:SALT_SIZE], payload[SALT_SIZE:]
    try:
        return _derive_fernet(passphrase, salt).decrypt(token)
    except InvalidToken:
        raise ValueError("decryption failed (wrong passphrase?)")


class EncryptionService:
    """Service for encrypting and decrypting API keys at rest."""

    def __init__(self, key: Optional[str] = None):
        """Initialize encryption service.

        Args:
            key: Fernet key; defaults to ``settings.encryption_key``.

        Raises:
            ValueError: If no key is configured or the key is malformed.
        """
        key = key or settings.encryption_key
        self._validate_encryption_key(key)
        self._fernet = Fernet(key.encode())

    @staticmethod
    def _validate_encryption_key(key: Optional[str]) -> None:
        if not key:
            raise ValueError(f"ENCRYPTION_KEY is not set. {KEY_HINT}")
        try:
            Fernet(key.encode())
        except (ValueError, TypeError) as e:
            raise ValueError(f"Invalid ENCRYPTION_KEY format: {e}. {KEY_HINT}")

    def encrypt(self, plaintext: str) -> str:
        """Encrypt plaintext string.

        Returns:
            The Fernet token as text.
        """
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        """Decrypt a token produced by ``encrypt``.

        Raises:
            InvalidToken: If the ciphertext is invalid or was made with another key.
        """
        return self._fernet.decrypt(ciphertext.encode()).decode()

    def encrypt_keys(self, api_keys: List[str]) -> str:
        """Encrypt an ordered list of API keys into a single token."""
        return self.encrypt(json.dumps(list(api_keys)))

    def decrypt_keys(self, ciphertext: Optional[str]) -> List[str]:
        """Inverse of ``encrypt_keys``; an empty column means no keys."""
        if not ciphertext:
            return []
        return json.loads(self.decrypt(ciphertext))
