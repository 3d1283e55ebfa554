"""
Security helpers - Track-Hub
JWT access tokens (HS256) and Fernet encryption for secrets at rest.
"""

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, Optional

import jwt
from cryptography.fernet import Fernet, InvalidToken

from trackhub.core.config import settings

logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────
# JWT
# ────────────────────────────────────────────────

def create_access_token(
    subject: str,
    email: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    payload: Dict[str, Any] = {
        "sub": subject,
        "iat": now,
        "exp": expire,
        "type": "access",
    }
    if email:
        payload["email"] = email
    return jwt.encode(
        payload,
        settings.JWT_SECRET_KEY.get_secret_value(),
        algorithm=settings.JWT_ALGORITHM,
    )


def decode_access_token(token: str) -> Dict[str, Any]:
    """Raises jwt.InvalidTokenError on a bad signature, expiry or shape."""
    payload = jwt.decode(
        token,
        settings.JWT_SECRET_KEY.get_secret_value(),
        algorithms=[settings.JWT_ALGORITHM],
        options={"require": ["sub", "exp"]},
    )
    if payload.get("type") != "access":
        raise jwt.InvalidTokenError("Not an access token")
    return payload


# ────────────────────────────────────────────────
# Fernet (GitHub tokens at rest)
# ────────────────────────────────────────────────

@lru_cache
def _fernet() -> Fernet:
    return Fernet(settings.FERNET_KEY.get_secret_value().encode())


def encrypt_secret(value: str) -> str:
    return _fernet().encrypt(value.encode()).decode()


def decrypt_secret(value: str) -> Optional[str]:
    try:
        return _fernet().decrypt(value.encode()).decode()
    except InvalidToken:
        # Key rotated or row tampered with; treat as no stored token
        logger.warning("Stored secret could not be decrypted")
        return None
