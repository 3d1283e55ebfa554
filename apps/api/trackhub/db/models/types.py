# apps/api/trackhub/db/models/types.py
"""
Custom column types.
"""

from typing import Optional

from sqlalchemy import Text
from sqlalchemy.types import TypeDecorator

from trackhub.core.security import decrypt_secret, encrypt_secret


class EncryptedString(TypeDecorator):
    """Text column transparently encrypted with the application Fernet key."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Optional[str], dialect) -> Optional[str]:
        if value is None or value == "":
            return None
        return encrypt_secret(value)

    def process_result_value(self, value: Optional[str], dialect) -> Optional[str]:
        if value is None:
            return None
        return decrypt_secret(value)
