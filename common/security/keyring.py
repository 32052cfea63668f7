"""
Key derivation for field-level encryption

One master secret plus an ordered list of salts produces a KeyRing of
AES-256 keys. The first salt is the current one and is used for every new
encryption; the remaining salts are kept so data written before a rotation
can still be decrypted.

Security Notes:
- Derivation is deterministic: the same secret and salt always yield the
  same key, which is what makes old data readable after a restart
- Never log the master secret or derived keys, only salt positions
"""

from dataclasses import dataclass
from typing import Iterable, List

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC


# AES-256 requires 32-byte keys
KEY_SIZE = 32

PBKDF2_ITERATIONS = 10000


@dataclass(frozen=True)
class KeyEntry:
    """A derived key and the salt it was derived with"""

    salt: str
    key: bytes

    def __repr__(self) -> str:
        return f"KeyEntry(salt={self.salt!r}, key=<redacted>)"


class KeyRing(tuple):
    """Immutable, ordered set of derived keys. Index 0 is current."""

    @property
    def current(self) -> KeyEntry:
        return self[0]

    @property
    def salts(self) -> List[str]:
        return [entry.salt for entry in self]


def normalize_salts(salts: Iterable[str]) -> List[str]:
    """Strip blanks and drop duplicate salts, keeping the first occurrence"""
    seen = set()
    ordered = []
    for salt in salts:
        salt = salt.strip()
        if not salt or salt in seen:
            continue
        seen.add(salt)
        ordered.append(salt)
    return ordered


def derive_key(master_secret: str, salt: str) -> bytes:
    """
    Derive a 32-byte AES key with PBKDF2-HMAC-SHA512

    Args:
        master_secret: Process-wide master secret
        salt: Salt string for this key

    Returns:
        32-byte derived key
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA512(),
        length=KEY_SIZE,
        salt=salt.encode('utf-8'),
        iterations=PBKDF2_ITERATIONS,
    )
    return kdf.derive(master_secret.encode('utf-8'))


def build_keyring(master_secret: str, salts: Iterable[str]) -> KeyRing:
    """
    Build the KeyRing for a master secret and an ordered salt list

    Cost is PBKDF2_ITERATIONS per salt, paid once at startup, so the salt
    list should stay short.

    Raises:
        ValueError: If the master secret is empty or no salt is given
    """
    if not master_secret:
        raise ValueError("Master secret must not be empty")

    ordered = normalize_salts(salts)
    if not ordered:
        raise ValueError("At least one salt is required to build a key ring")

    return KeyRing(KeyEntry(salt=salt, key=derive_key(master_secret, salt)) for salt in ordered)
