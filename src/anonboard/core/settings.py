"""Application settings and configuration.

This module defines all configuration options for the anonboard server.
Settings are loaded from environment variables with sensible defaults.
"""

import secrets

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MAX_UPLOAD_BYTES = 8 * 1024 * 1024


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or a `.env` file.
    """

    # Application metadata
    app_name: str = Field(default="anonboard", alias="APP_NAME")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Identity: rotates per process when unset
    session_secret: str | None = Field(default=None, alias="SESSION_SECRET")
    moderator_password_hash: str | None = Field(default=None, alias="MODERATOR_PASSWORD_HASH")
    ban_cache_seconds: float = Field(default=5.0, ge=0, alias="BAN_CACHE_SECONDS")
    trust_forwarded_for: bool = Field(default=False, alias="TRUST_FORWARDED_FOR")
    trusted_proxy_hops: int = Field(default=1, ge=1, alias="TRUSTED_PROXY_HOPS")

    # Media storage
    upload_root: str = Field(default="./data/uploads", alias="UPLOAD_ROOT")
    upload_url_prefix: str = Field(default="/static/uploads", alias="UPLOAD_URL_PREFIX")
    static_root: str = Field(default="./static", alias="STATIC_ROOT")
    max_upload_bytes: int = Field(default=DEFAULT_MAX_UPLOAD_BYTES, gt=0, alias="MAX_UPLOAD_BYTES")

    # Database configuration
    database_url: str = Field(default="sqlite+aiosqlite:///./anonboard.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Port selection
    repository_backend: str = Field(default="sqlalchemy", alias="REPOSITORY_BACKEND")
    media_backend: str = Field(default="local", alias="MEDIA_BACKEND")
    identity_backend: str = Field(default="simple", alias="IDENTITY_BACKEND")

    # HTTP surface
    bind_addr: str = Field(default="127.0.0.1:8080", alias="BIND_ADDR")
    threads_per_page: int = Field(default=15, gt=0, alias="THREADS_PER_PAGE")

    model_config = SettingsConfigDict(
        env_file=".env",
        populate_by_name=True,
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Strips async drivers so Alembic can run migrations with the
        blocking engine.
        """
        url = self.database_url
        if url.startswith("sqlite+aiosqlite"):
            return url.replace("sqlite+aiosqlite", "sqlite", 1)
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def bind_host(self) -> str:
        """Host part of BIND_ADDR."""
        host, _, _ = self.bind_addr.rpartition(":")
        return host.strip("[]") or "127.0.0.1"

    @property
    def bind_port(self) -> int:
        """Port part of BIND_ADDR."""
        _, _, port = self.bind_addr.rpartition(":")
        return int(port)

    def session_secret_bytes(self) -> bytes:
        """Return the configured session secret, or 32 fresh random bytes.

        Callers must hold on to the result for the lifetime of the process;
        every call without a configured secret draws a new one.
        """
        if self.session_secret:
            return self.session_secret.encode("utf-8")
        return secrets.token_bytes(32)


settings = Settings()
