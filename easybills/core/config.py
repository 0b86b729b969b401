"""Application configuration using Pydantic Settings v2.

Loads configuration from environment variables with .env file support.
All settings are validated at startup and available as typed attributes.
"""

from __future__ import annotations

import functools
import json
import logging
from typing import Any

from pydantic import SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """EasyBills application settings.

    Configuration is loaded from environment variables.
    A .env file in the project root is also read if present.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ──────────────────────────────────────────────
    app_name: str = "EasyBills"
    app_env: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # ── PostgreSQL ───────────────────────────────────────────────
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "easybills"
    postgres_user: str = "easybills"
    postgres_password: str = "easybills_dev_password"
    database_url: str | None = None
    db_pool_size: int = 10
    db_max_overflow: int = 5

    # ── Redis ────────────────────────────────────────────────────
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_url: str | None = None

    # ── HTTP ─────────────────────────────────────────────────────
    cors_origins: list[str] = ["http://localhost:5173"]

    # ── Security / Auth ───────────────────────────────────────────
    jwt_secret_key: str = "dev-secret-key-change-in-production"
    jwt_secret_keys: str = ""  # Comma-separated list for key rotation
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60
    jwt_refresh_token_expire_minutes: int = 1440  # 1 day, same as the portal session
    auth_dev_mode: bool = True  # Allow local dev tokens
    allowed_email_domain: str = ""  # e.g. "university.edu"; empty allows any domain

    # ── Email (SMTP) ──────────────────────────────────────────────
    smtp_host: str = ""  # empty: log emails instead of sending
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: SecretStr = SecretStr("")
    smtp_use_tls: bool = True
    smtp_timeout_seconds: float = 10.0
    email_from: str = "EasyBills <no-reply@easybills.local>"
    portal_url: str = "http://localhost:5173"

    # ── Document Storage ─────────────────────────────────────────
    storage_root: str = "document_store"
    storage_public_base_url: str = "http://localhost:8000/files"
    max_upload_bytes: int = 10 * 1024 * 1024

    # ── WebSocket ────────────────────────────────────────────────
    ws_max_connections_per_user: int = 5
    ws_heartbeat_interval: int = 30

    # ── Rate Limiting ─────────────────────────────────────────────
    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 60

    @property
    def jwt_verification_keys(self) -> list[str]:
        """Return list of keys to try for JWT verification (supports rotation).

        If jwt_secret_keys is set (comma-separated), returns all keys.
        Otherwise returns just the single jwt_secret_key.
        The first key is always the signing key.
        """
        if self.jwt_secret_keys:
            keys = [k.strip() for k in self.jwt_secret_keys.split(",") if k.strip()]
            if keys:
                return keys
        return [self.jwt_secret_key]

    @property
    def email_enabled(self) -> bool:
        """Whether an SMTP relay is configured."""
        return bool(self.smtp_host)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Any) -> list[str]:
        """Parse CORS origins from JSON string or list."""
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return [str(item) for item in parsed]
            except (json.JSONDecodeError, TypeError):
                return [origin.strip() for origin in v.split(",")]
        if isinstance(v, list):
            return [str(item) for item in v]
        return ["http://localhost:5173"]

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> str:
        """Upper-case the level name and reject unknown levels."""
        level = str(v).upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {v}")
        return level

    @model_validator(mode="after")
    def build_derived_urls(self) -> Settings:
        """Build database_url and redis_url from components if not set."""
        if not self.database_url:
            self.database_url = (
                f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
                f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
            )
        if not self.redis_url:
            self.redis_url = f"redis://{self.redis_host}:{self.redis_port}/0"
        return self


@functools.lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""
    return Settings()


def configure_logging(settings: Settings) -> None:
    """Apply the configured log level to the root logger."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logging.getLogger().setLevel(settings.log_level)
