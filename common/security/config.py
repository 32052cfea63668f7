"""
Configuration settings for field-level encryption
"""
from typing import List, Optional

from pydantic import SecretStr
from pydantic_settings import BaseSettings

from .keyring import normalize_salts


# Salt historical data was written with
DEFAULT_SALT = "mellow-encryption-salt"


class EncryptionSettings(BaseSettings):
    """Encryption settings loaded from environment variables"""

    # Master secret; absent means pass-through mode
    encryption_key: Optional[SecretStr] = None

    # Comma-separated, newest first. Keep retired salts at the end so old
    # records stay readable.
    encryption_salt: str = DEFAULT_SALT

    class Config:
        case_sensitive = False

    @property
    def salts(self) -> List[str]:
        """Ordered salt list, index 0 is current"""
        return normalize_salts(self.encryption_salt.split(','))

    @property
    def master_secret(self) -> Optional[str]:
        if self.encryption_key is None:
            return None
        return self.encryption_key.get_secret_value()
