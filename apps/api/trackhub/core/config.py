"""
Central configuration & settings for the Track-Hub API

Production-ready configuration system
Supports:

• PostgreSQL (asyncpg) / SQLite (aiosqlite, tests)
• Redis (Celery broker, rate limiting)
• GitHub REST API (server fallback token)
• Stripe (credit purchases)
• JWT Auth
• Fernet encryption for stored tokens
• xAI (optional code / commit summaries)
"""

from functools import lru_cache
from typing import List, Optional

import logging

from cryptography.fernet import Fernet
from pydantic import (
    AnyHttpUrl,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)

from pydantic_settings import BaseSettings, SettingsConfigDict


# ────────────────────────────────────────────────
# Logger
# ────────────────────────────────────────────────

logger = logging.getLogger("trackhub.config")


# ────────────────────────────────────────────────
# Settings Class
# ────────────────────────────────────────────────


class Settings(BaseSettings):

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ────────────────────────────────────────────────
    # Environment
    # ────────────────────────────────────────────────

    ENVIRONMENT: str = Field(
        default="development",
        description="development | staging | production",
    )

    APP_VERSION: str = "1.0.0"

    LOG_LEVEL: str = Field(default="INFO")

    # ────────────────────────────────────────────────
    # URLs
    # ────────────────────────────────────────────────

    FRONTEND_URL: AnyHttpUrl = Field(default="http://localhost:3000")

    CORS_ORIGINS: List[AnyHttpUrl] = []

    # ────────────────────────────────────────────────
    # Database
    # ────────────────────────────────────────────────

    DATABASE_URL: str

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_db(cls, v):
        if "asyncpg" not in v and "aiosqlite" not in v:
            raise ValueError(
                "DATABASE_URL must use the asyncpg (or aiosqlite) driver"
            )
        return v

    # ────────────────────────────────────────────────
    # Redis / Celery / Rate limiting
    # ────────────────────────────────────────────────

    REDIS_URL: str = "redis://localhost:6379/0"

    CELERY_BROKER_URL: Optional[str] = None

    RATE_LIMIT_ENABLED: bool = True

    RATE_LIMIT_STORAGE_URI: Optional[str] = None

    @property
    def broker_url(self) -> str:
        return self.CELERY_BROKER_URL or self.REDIS_URL

    @property
    def rate_limit_storage_uri(self) -> str:
        return self.RATE_LIMIT_STORAGE_URI or self.REDIS_URL

    # ────────────────────────────────────────────────
    # JWT / Encryption
    # ────────────────────────────────────────────────

    JWT_SECRET_KEY: SecretStr

    JWT_ALGORITHM: str = "HS256"

    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15

    FERNET_KEY: SecretStr

    @field_validator("JWT_SECRET_KEY")
    @classmethod
    def validate_secret_length(cls, v):
        if len(v.get_secret_value()) < 32:
            raise ValueError("Secret must be >= 32 chars")
        return v

    @field_validator("FERNET_KEY")
    @classmethod
    def validate_fernet_key(cls, v):
        # Fernet raises ValueError on a malformed key
        Fernet(v.get_secret_value().encode())
        return v

    # ────────────────────────────────────────────────
    # GitHub
    # ────────────────────────────────────────────────

    GITHUB_ACCESS_TOKEN: Optional[SecretStr] = None

    GITHUB_API_URL: str = "https://api.github.com"

    COMMIT_MAX_ATTEMPTS: int = Field(default=3, ge=1, le=10)

    COMMIT_RETRY_BACKOFF: float = Field(default=0.5, ge=0)

    COMMIT_POLL_LIMIT: int = Field(default=10, ge=1, le=100)

    INDEX_IGNORED_FILES: List[str] = [
        "package-lock.json",
        "yarn.lock",
        "pnpm-lock.yaml",
        "bun.lockb",
    ]

    INDEX_MAX_FILE_BYTES: int = 200_000

    @property
    def github_fallback_token(self) -> Optional[str]:
        if self.GITHUB_ACCESS_TOKEN is None:
            return None
        return self.GITHUB_ACCESS_TOKEN.get_secret_value() or None

    # ────────────────────────────────────────────────
    # Credits / Stripe
    # ────────────────────────────────────────────────

    FREE_TIER_CREDITS: int = 150

    CREDIT_PRICE_USD_CENTS: int = 2

    STRIPE_SECRET_KEY: Optional[SecretStr] = None

    STRIPE_WEBHOOK_SECRET: Optional[SecretStr] = None

    # ────────────────────────────────────────────────
    # xAI (summaries)
    # ────────────────────────────────────────────────

    XAI_API_KEY: Optional[SecretStr] = None

    XAI_API_URL: str = "https://api.x.ai/v1"

    DEFAULT_XAI_MODEL: str = "grok-beta"

    # ────────────────────────────────────────────────
    # Validators
    # ────────────────────────────────────────────────

    @model_validator(mode="after")
    def cors_validator(self):
        if not self.CORS_ORIGINS:
            self.CORS_ORIGINS = [self.FRONTEND_URL]
        return self

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_env(cls, v):
        v = v.lower()
        if v not in ["development", "staging", "production"]:
            raise ValueError("Invalid ENVIRONMENT")
        return v

    # ────────────────────────────────────────────────
    # Helpers
    # ────────────────────────────────────────────────

    @property
    def is_production(self):
        return self.ENVIRONMENT == "production"

    @property
    def is_dev(self):
        return self.ENVIRONMENT == "development"


# ────────────────────────────────────────────────
# Singleton
# ────────────────────────────────────────────────


@lru_cache
def get_settings():
    logger.info("Loading settings")
    return Settings()


settings = get_settings()
