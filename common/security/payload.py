"""
Ciphertext wire format

Two shapes are accepted, all segments standard base64:

    legacy:    <iv>:<auth_tag>:<ciphertext>
    canonical: <iv>:<tag_length>:<auth_tag>:<ciphertext>

New writes always use the canonical form. Detection is structural only, so a
plaintext value that happens to have the same shape is a false positive.
"""

import base64
import binascii
from dataclasses import dataclass
from typing import Any, List, Optional


SEPARATOR = ":"

# 128-bit IV, generated fresh for every encryption
IV_SIZE = 16

# GCM tag written by this service
TAG_SIZE = 16

# Tag lengths accepted on read
ALLOWED_TAG_SIZES = (12, 16)


class MalformedPayloadError(ValueError):
    """Payload-shaped text that cannot be parsed into iv/tag/ciphertext"""


@dataclass(frozen=True)
class EncryptedPayload:
    """Parsed ciphertext components"""

    iv: bytes
    tag: bytes
    ciphertext: bytes

    def serialize(self) -> str:
        """Serialize to the canonical 4-part form"""
        return SEPARATOR.join([
            _b64encode(self.iv),
            str(len(self.tag)),
            _b64encode(self.tag),
            _b64encode(self.ciphertext),
        ])


def _b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode('ascii')


def _b64decode(segment: str) -> Optional[bytes]:
    if not segment:
        return None
    try:
        return base64.b64decode(segment, validate=True)
    except (binascii.Error, ValueError):
        return None


def _parse_tag_length(segment: str) -> Optional[int]:
    """Plain ASCII digits only, no sign, spaces or underscores"""
    if not segment or not segment.isascii() or not segment.isdigit():
        return None
    return int(segment)


def _split(text: str) -> Optional[List[str]]:
    parts = text.split(SEPARATOR)
    if len(parts) not in (3, 4):
        return None
    return parts


def is_encrypted(text: Any) -> bool:
    """
    Check whether a value has the payload shape

    No cryptography is performed.

    Args:
        text: Value to check (non-strings are never encrypted)

    Returns:
        True if the value looks like a payload
    """
    if not isinstance(text, str) or not text:
        return False

    parts = _split(text)
    if parts is None:
        return False

    if len(parts) == 4:
        iv_b64, tag_length, tag_b64, ciphertext_b64 = parts
        if _parse_tag_length(tag_length) is None:
            return False
    else:
        iv_b64, tag_b64, ciphertext_b64 = parts

    return all(
        _b64decode(segment) is not None
        for segment in (iv_b64, tag_b64, ciphertext_b64)
    )


def parse_payload(text: str) -> EncryptedPayload:
    """
    Parse a payload into its components

    Raises:
        MalformedPayloadError: On wrong segment count, bad base64, an IV that
            is not 16 bytes, or a tag length outside ALLOWED_TAG_SIZES
    """
    parts = _split(text)
    if parts is None:
        raise MalformedPayloadError("Expected 3 or 4 colon-delimited segments")

    declared_length = None
    if len(parts) == 4:
        iv_b64, tag_length, tag_b64, ciphertext_b64 = parts
        declared_length = _parse_tag_length(tag_length)
        if declared_length is None:
            raise MalformedPayloadError("Tag length is not an integer")
    else:
        iv_b64, tag_b64, ciphertext_b64 = parts

    iv = _b64decode(iv_b64)
    tag = _b64decode(tag_b64)
    ciphertext = _b64decode(ciphertext_b64)
    if iv is None or tag is None or ciphertext is None:
        raise MalformedPayloadError("Segment is not valid base64")

    if len(iv) != IV_SIZE:
        raise MalformedPayloadError(f"IV must be {IV_SIZE} bytes, got {len(iv)}")

    if len(tag) not in ALLOWED_TAG_SIZES:
        raise MalformedPayloadError(f"Unsupported auth tag length: {len(tag)}")

    if declared_length is not None and declared_length != len(tag):
        raise MalformedPayloadError(
            f"Declared tag length {declared_length} does not match tag of {len(tag)} bytes"
        )

    return EncryptedPayload(iv=iv, tag=tag, ciphertext=ciphertext)
