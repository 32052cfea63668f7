"""
Field-level encryption for sensitive text

This module provides AES-256-GCM encryption for short text fields stored in
the database. Ciphertext replaces plaintext in the same column, so no schema
change is needed.

- AES-256-GCM for authenticated encryption
- Fresh 16-byte IV per encryption operation
- Keys derived with PBKDF2-HMAC-SHA512 from one master secret and an ordered
  salt list (index 0 is current, older salts stay for decryption)
- Recursive unwrapping of values encrypted more than once across rotations

Every public operation is total: failures are logged and reported with
sentinel strings instead of exceptions. Without a master secret the service
runs in pass-through mode and encrypt/decrypt return their input unchanged.

Security Notes:
- Never log plaintext, ciphertext or key material
- Encrypted data includes an authentication tag for integrity verification
- IV is stored with ciphertext (safe practice)
"""

import os
from typing import Any, Iterable, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from loguru import logger

from .config import EncryptionSettings
from .keyring import KeyEntry, KeyRing, build_keyring
from .payload import (
    IV_SIZE,
    EncryptedPayload,
    MalformedPayloadError,
    is_encrypted,
    parse_payload,
)


NO_CONTENT = "[No content]"
EMPTY_CONTENT = "[Empty content]"
DECRYPTION_FAILED = "[This content could not be decrypted. Please contact support.]"
DEPTH_LIMIT_REACHED = "[Decryption depth limit reached]"

SENTINELS = frozenset({NO_CONTENT, EMPTY_CONTENT, DECRYPTION_FAILED, DEPTH_LIMIT_REACHED})


class EncryptionService:
    """
    Service for encrypting/decrypting sensitive fields using AES-256-GCM

    Build one instance at process start, initialize it once, and pass it to
    whatever needs encryption. The KeyRing is immutable after initialization
    so the instance is safe to share between concurrent callers.
    """

    # Nested layers unwrapped by decrypt before giving up
    MAX_DEPTH = 5

    def __init__(self):
        self._keyring: Optional[KeyRing] = None

    @classmethod
    def from_settings(cls, settings: Optional[EncryptionSettings] = None) -> "EncryptionService":
        """
        Create and initialize a service from environment settings

        Args:
            settings: Encryption settings (loaded from env if None)

        Returns:
            EncryptionService, ready or in pass-through mode
        """
        settings = settings or EncryptionSettings()
        service = cls()
        service.initialize(settings.master_secret, settings.salts)
        return service

    @property
    def initialized(self) -> bool:
        return self._keyring is not None

    @property
    def keyring(self) -> Optional[KeyRing]:
        return self._keyring

    def initialize(self, master_secret: Optional[str], salts: Iterable[str]) -> bool:
        """
        Derive the KeyRing

        Args:
            master_secret: Master secret; None or blank selects pass-through mode
            salts: Ordered salt list, index 0 is used for new encryption

        Returns:
            True if encryption is active, False if running in pass-through mode
        """
        if self._keyring is not None:
            return True

        if not master_secret or not master_secret.strip():
            logger.warning("No encryption key provided. Encryption service running in pass-through mode.")
            return False

        try:
            self._keyring = build_keyring(master_secret, salts)
        except Exception as e:
            logger.error(f"Failed to initialize encryption service: {e}")
            return False

        logger.info(f"Encryption service initialized with {len(self._keyring)} salt(s)")
        return True

    def encrypt(self, text: Any) -> str:
        """
        Encrypt a text value

        Args:
            text: Value to encrypt (non-strings are stringified)

        Returns:
            Canonical payload "<iv>:<tag_length>:<tag>:<ciphertext>", a
            sentinel for None/blank input, or the input itself in pass-through
            mode or when encryption fails
        """
        if self._keyring is None:
            return text

        if text is None:
            return NO_CONTENT

        if not isinstance(text, str):
            text = str(text)

        if not text.strip():
            return EMPTY_CONTENT

        try:
            return self._encrypt_with(self._keyring.current, text)
        except Exception as e:
            logger.error(f"Encryption error: {e}")
            return text

    def decrypt(self, payload: Any) -> Any:
        """
        Decrypt a payload, unwrapping nested encryption

        Args:
            payload: Stored value

        Returns:
            Plaintext; the value unchanged if it is not a payload (or the
            service is not initialized); a sentinel if no key decrypts it or
            the nesting is deeper than MAX_DEPTH
        """
        if self._keyring is None or not isinstance(payload, str):
            return payload

        return self._decrypt_layer(payload, 0)

    def is_encrypted(self, text: Any) -> bool:
        """Check if a value has the payload shape"""
        return is_encrypted(text)

    def _encrypt_with(self, entry: KeyEntry, text: str) -> str:
        iv = os.urandom(IV_SIZE)
        encryptor = Cipher(algorithms.AES(entry.key), modes.GCM(iv)).encryptor()
        ciphertext = encryptor.update(text.encode('utf-8')) + encryptor.finalize()
        return EncryptedPayload(iv=iv, tag=encryptor.tag, ciphertext=ciphertext).serialize()

    def _decrypt_layer(self, payload: str, depth: int) -> str:
        if not is_encrypted(payload):
            return payload

        if depth >= self.MAX_DEPTH:
            logger.error(f"Decryption depth limit of {self.MAX_DEPTH} reached, payload is likely corrupt")
            return DEPTH_LIMIT_REACHED

        for index, entry in enumerate(self._keyring):
            decrypted = self._try_decrypt(entry, payload)
            if decrypted is None:
                continue

            if index > 0:
                logger.debug(f"Decrypted with retired salt at position {index}")

            if is_encrypted(decrypted):
                return self._decrypt_layer(decrypted, depth + 1)
            return decrypted

        logger.warning("Decryption failed with every configured key")
        return DECRYPTION_FAILED

    @staticmethod
    def _try_decrypt(entry: KeyEntry, payload: str) -> Optional[str]:
        """One decryption attempt; None means try the next key"""
        try:
            parsed = parse_payload(payload)
            decryptor = Cipher(
                algorithms.AES(entry.key),
                modes.GCM(parsed.iv, parsed.tag, min_tag_length=len(parsed.tag)),
            ).decryptor()
            plaintext = decryptor.update(parsed.ciphertext) + decryptor.finalize()
            return plaintext.decode('utf-8')
        except (MalformedPayloadError, InvalidTag, UnicodeDecodeError):
            return None
