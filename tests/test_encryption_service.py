"""Tests for encryption service."""

import os
from unittest.mock import patch

import pytest
from cryptography.fernet import Fernet, InvalidToken

from llmdesk.config import Settings
from llmdesk.services.encryption_service import (
    EncryptionService,
    decrypt_with_passphrase,
    encrypt_with_passphrase,
)


def test_encryption_service_encrypt_decrypt():
    """Test that encryption service can encrypt and decrypt data."""
    service = EncryptionService(Fernet.generate_key().decode())

    plaintext = "sk-test-api-key-12345"
    encrypted = service.encrypt(plaintext)

    # Encrypted should be different from plaintext
    assert encrypted != plaintext
    assert service.decrypt(encrypted) == plaintext


def test_encryption_service_key_lists():
    """Test that key lists keep their order and that empty columns mean no keys."""
    service = EncryptionService(Fernet.generate_key().decode())

    keys = ["sk-openai-key-123", "sk-anthropic-key-456", "very-long-api-key-" + "x" * 100, "short"]

    assert service.decrypt_keys(service.encrypt_keys(keys)) == keys
    assert service.decrypt_keys(None) == []
    assert service.decrypt_keys("") == []


def test_encryption_service_wrong_key():
    """Test that a token made with another key is rejected."""
    encrypted = EncryptionService(Fernet.generate_key().decode()).encrypt("secret")

    with pytest.raises(InvalidToken):
        EncryptionService(Fernet.generate_key().decode()).decrypt(encrypted)


def test_encryption_service_missing_key():
    """Test that service refuses to start when encryption key is missing."""
    with patch("llmdesk.services.encryption_service.settings", Settings(encryption_key=None)):
        with pytest.raises(ValueError, match="ENCRYPTION_KEY is not set"):
            EncryptionService()


def test_encryption_service_invalid_key():
    """Test that service refuses to start when encryption key is invalid."""
    with pytest.raises(ValueError, match="Invalid ENCRYPTION_KEY format"):
        EncryptionService("invalid-key-format")


def test_encryption_service_key_from_environment():
    """Test that the key is read from ENCRYPTION_KEY."""
    test_key = Fernet.generate_key().decode()

    with patch.dict(os.environ, {"ENCRYPTION_KEY": test_key}):
        settings = Settings()

    with patch("llmdesk.services.encryption_service.settings", settings):
        service = EncryptionService()

    assert service.decrypt(EncryptionService(test_key).encrypt("value")) == "value"


def test_passphrase_round_trip():
    """Test passphrase encryption of backup payloads."""
    payload = encrypt_with_passphrase(b'{"version": "1.0.0"}', "correct horse")

    assert payload != encrypt_with_passphrase(b'{"version": "1.0.0"}', "correct horse")
    assert decrypt_with_passphrase(payload, "correct horse") == b'{"version": "1.0.0"}'


def test_passphrase_wrong_or_truncated():
    """Test that a wrong passphrase or short payload raises ValueError."""
    payload = encrypt_with_passphrase(b"data", "right")

    with pytest.raises(ValueError, match="wrong passphrase"):
        decrypt_with_passphrase(payload, "wrong")
    with pytest.raises(ValueError, match="invalid encrypted data"):
        decrypt_with_passphrase(b"short", "right")
