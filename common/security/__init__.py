"""
Security utilities for at-rest field encryption

This module provides:
- AES-256-GCM field-level encryption with salt rotation
- Structural detection of encrypted values
- Record-level field encryption helpers

Usage:
    from common.security import EncryptionService, FieldEncryptor

    # Build once at startup and pass it around
    encryption = EncryptionService.from_settings()

    encrypted = encryption.encrypt("private journal entry")
    text = encryption.decrypt(encrypted)

    helper = FieldEncryptor(encryption)
    record = helper.encrypt_fields({"content": "hello"}, ["content"])
"""

from .config import EncryptionSettings
from .encryption import (
    DECRYPTION_FAILED,
    DEPTH_LIMIT_REACHED,
    EMPTY_CONTENT,
    NO_CONTENT,
    SENTINELS,
    EncryptionService,
)
from .fields import FieldEncryptor
from .keyring import KeyEntry, KeyRing, build_keyring, derive_key
from .payload import EncryptedPayload, MalformedPayloadError, is_encrypted, parse_payload

__all__ = [
    "EncryptionSettings",
    "EncryptionService",
    "FieldEncryptor",
    "KeyEntry",
    "KeyRing",
    "build_keyring",
    "derive_key",
    "EncryptedPayload",
    "MalformedPayloadError",
    "is_encrypted",
    "parse_payload",
    "NO_CONTENT",
    "EMPTY_CONTENT",
    "DECRYPTION_FAILED",
    "DEPTH_LIMIT_REACHED",
    "SENTINELS",
]
