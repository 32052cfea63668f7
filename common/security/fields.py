"""
Record-level helpers for encrypting and decrypting named fields
"""
import json
from typing import Any, Dict, Iterable, List, Union

from loguru import logger

from .encryption import NO_CONTENT, EncryptionService


Record = Dict[str, Any]


class FieldEncryptor:
    """
    Encrypts/decrypts selected fields of a record dictionary

    String fields are encrypted directly. Lists are encrypted item by item
    (conversation history is stored that way) and dicts are serialized to
    JSON first. Values that already look encrypted are left alone.
    """

    def __init__(self, encryption: EncryptionService):
        self.encryption = encryption

    def encrypt_fields(self, record: Record, fields: Iterable[str]) -> Record:
        if not isinstance(record, dict):
            return record

        result = dict(record)
        for field in fields:
            if field not in result:
                continue

            value = result[field]
            if isinstance(value, str) and self.encryption.is_encrypted(value):
                logger.debug(f"Field {field} is already encrypted, skipping encryption")
                continue

            if value is None:
                result[field] = NO_CONTENT
            elif isinstance(value, list):
                result[field] = [self._encrypt_item(item) for item in value]
            elif isinstance(value, dict):
                result[field] = self.encryption.encrypt(json.dumps(value))
            else:
                result[field] = self.encryption.encrypt(value)

        return result

    def decrypt_fields(self, record: Record, fields: Iterable[str]) -> Record:
        if not isinstance(record, dict):
            return record

        result = dict(record)
        for field in fields:
            value = result.get(field)
            if value is None:
                continue

            if isinstance(value, list):
                result[field] = [self._decrypt_item(item) for item in value]
            elif isinstance(value, str) and self.encryption.is_encrypted(value):
                result[field] = self._decrypt_item(value)

        return result

    def process_data(
        self,
        data: Union[Record, List[Record], None],
        fields: Iterable[str],
        operation: str = "decrypt",
    ) -> Union[Record, List[Record], None]:
        """
        Apply encrypt_fields/decrypt_fields to one record or a list of records

        Raises:
            ValueError: If operation is not "encrypt" or "decrypt"
        """
        if operation not in ("encrypt", "decrypt"):
            raise ValueError(f"Unsupported operation: {operation}")

        if not data:
            return data

        fields = list(fields)
        if isinstance(data, list):
            return [self.process_data(item, fields, operation) for item in data]

        if operation == "encrypt":
            return self.encrypt_fields(data, fields)
        return self.decrypt_fields(data, fields)

    def _encrypt_item(self, item: Any) -> Any:
        if item is None:
            return NO_CONTENT
        if isinstance(item, str):
            if self.encryption.is_encrypted(item):
                return item
            return self.encryption.encrypt(item)
        if isinstance(item, (dict, list)):
            return self.encryption.encrypt(json.dumps(item))
        return self.encryption.encrypt(item)

    def _decrypt_item(self, item: Any) -> Any:
        if not isinstance(item, str) or not self.encryption.is_encrypted(item):
            return item

        decrypted = self.encryption.decrypt(item)
        try:
            return json.loads(decrypted)
        except (json.JSONDecodeError, TypeError):
            return decrypted
