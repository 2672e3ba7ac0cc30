"""Centralized configuration management for the Smartmark API."""

from __future__ import annotations

import logging
import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field, PrivateAttr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load a local .env file before the settings singleton is created so every
# module importing :mod:`smartmark.settings` observes the same environment.
load_dotenv()

# -- Application-wide constants -------------------------------------------------

DEFAULT_SQLITE_DATABASE_URL = "sqlite+aiosqlite:///./data/smartmark.db"
POSTGRES_ASYNC_PREFIX = "postgresql+psycopg://"
POSTGRES_SYNC_PREFIXES = ("postgres://", "postgresql://")
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_SESSION_COOKIE_NAME = "smartmark-session"

# Pool defaults: ten connections, 30s idle recycle, 2s acquire timeout.
DEFAULT_DB_POOL_SIZE = 10
DEFAULT_DB_MAX_OVERFLOW = 0
DEFAULT_DB_POOL_TIMEOUT = 2.0
DEFAULT_DB_POOL_RECYCLE = 30

DEFAULT_FEED_QUEUE_SIZE = 100
DEFAULT_FEED_HEARTBEAT_SECONDS = 15.0


def _normalize_origin(origin: str) -> str:
    """Return the origin stripped of whitespace and trailing slashes."""

    return origin.strip().rstrip("/")


class AppSettings(BaseSettings):
    """Typed configuration surface built on top of ``pydantic-settings``.

    Besides the raw environment values the class exposes a few derived helpers
    (normalized database URL, CORS origins, numeric log level) so downstream
    modules never repeat the parsing logic.
    """

    _explicit_redis_url: bool = PrivateAttr(default=False)
    _explicit_cors_allow_origins: bool = PrivateAttr(default=False)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    def __init__(self, **values: object) -> None:
        """Capture explicit overrides prior to delegating to ``BaseSettings``."""

        normalized_keys = {str(key).lower() for key in values}
        super().__init__(**values)
        self._explicit_redis_url = "redis_url" in normalized_keys
        self._explicit_cors_allow_origins = "cors_allow_origins_raw" in normalized_keys
        redis_env = os.getenv("REDIS_URL")
        if redis_env is not None and redis_env.strip():
            self._explicit_redis_url = True
        cors_env = os.getenv("CORS_ALLOW_ORIGINS")
        if cors_env is not None and cors_env.strip():
            self._explicit_cors_allow_origins = True

    database_url: str | None = Field(
        default=None,
        alias="DATABASE_URL",
        description=(
            "Full SQLAlchemy-compatible database URL. Postgres URLs supplied in"
            " sync format (postgres:// or postgresql://) are coerced into the"
            " async psycopg driver string at runtime."
        ),
    )
    use_sqlite: bool = Field(
        default=False,
        alias="USE_SQLITE",
        description="Force SQLite usage regardless of DATABASE_URL.",
    )
    db_pool_size: int = Field(
        default=DEFAULT_DB_POOL_SIZE,
        alias="DB_POOL_SIZE",
        ge=1,
        description="Number of pooled PostgreSQL connections kept open.",
    )
    db_max_overflow: int = Field(
        default=DEFAULT_DB_MAX_OVERFLOW,
        alias="DB_MAX_OVERFLOW",
        ge=0,
        description="Connections allowed beyond ``db_pool_size`` under load.",
    )
    db_pool_timeout: float = Field(
        default=DEFAULT_DB_POOL_TIMEOUT,
        alias="DB_POOL_TIMEOUT",
        gt=0,
        description="Seconds to wait for a pooled connection before failing.",
    )
    db_pool_recycle: int = Field(
        default=DEFAULT_DB_POOL_RECYCLE,
        alias="DB_POOL_RECYCLE",
        description="Seconds after which idle connections are recycled.",
    )
    redis_url: str | None = Field(
        default=None,
        alias="REDIS_URL",
        description=(
            "Redis connection string used as the change-feed broker. When unset"
            " the feed falls back to an in-process broker that only reaches"
            " subscribers connected to the same worker."
        ),
    )
    feed_queue_size: int = Field(
        default=DEFAULT_FEED_QUEUE_SIZE,
        alias="FEED_QUEUE_SIZE",
        ge=1,
        description="Per-subscriber buffer of undelivered change events.",
    )
    feed_heartbeat_seconds: float = Field(
        default=DEFAULT_FEED_HEARTBEAT_SECONDS,
        alias="FEED_HEARTBEAT_SECONDS",
        gt=0,
        description="Idle interval after which the event stream emits a keep-alive.",
    )
    auth_url: str | None = Field(
        default=None,
        alias="AUTH_URL",
        description="Base URL of the identity provider's auth API.",
    )
    auth_api_key: str | None = Field(
        default=None,
        alias="AUTH_API_KEY",
        description="Optional API key forwarded to the identity provider.",
    )
    auth_timeout_seconds: float = Field(
        default=5.0,
        alias="AUTH_TIMEOUT_SECONDS",
        gt=0,
        description="Timeout applied to identity provider requests.",
    )
    session_cookie_name: str = Field(
        default=DEFAULT_SESSION_COOKIE_NAME,
        alias="SESSION_COOKIE_NAME",
        description="Cookie that carries the access token for browser sessions.",
    )
    cors_allow_origins_raw: str | None = Field(
        default=None,
        alias="CORS_ALLOW_ORIGINS",
        description="Comma-separated list of additional CORS origins.",
    )
    log_level: str = Field(
        default=DEFAULT_LOG_LEVEL,
        alias="LOG_LEVEL",
        description="Root logging level (e.g. INFO, DEBUG, WARNING).",
    )
    slow_query_threshold: float = Field(
        default=0.1,
        alias="SLOW_QUERY_THRESHOLD",
        description="Seconds after which a statement is logged as slow.",
    )

    @property
    def resolved_database_url(self) -> str:
        """Return the async-compatible database URL after applying fallbacks."""

        if self.use_sqlite or not self.database_url:
            return DEFAULT_SQLITE_DATABASE_URL

        url = self.database_url.strip()

        for prefix in POSTGRES_SYNC_PREFIXES:
            if url.startswith(prefix):
                return url.replace(prefix, POSTGRES_ASYNC_PREFIX, 1)

        if url.startswith(POSTGRES_ASYNC_PREFIX) or url.startswith("sqlite"):
            return url

        raise RuntimeError(
            f"Expected a PostgreSQL connection string or SQLite fallback, received: {url}"
        )

    @property
    def database_type(self) -> str:
        """Return ``sqlite`` when using SQLite otherwise ``postgresql``."""

        if self.resolved_database_url.startswith("sqlite"):
            return "sqlite"
        return "postgresql"

    @property
    def feed_backend(self) -> str:
        """Return the change-feed broker selected by configuration."""

        return "redis" if self.redis_url else "memory"

    @property
    def cors_allow_origins(self) -> list[str]:
        """Return normalised CORS origins supplied via environment variables."""

        if not self.cors_allow_origins_raw:
            return []

        origins = [
            _normalize_origin(origin)
            for origin in self.cors_allow_origins_raw.split(",")
            if origin.strip()
        ]
        return [origin for origin in origins if origin]

    @property
    def log_level_numeric(self) -> int:
        """Translate ``log_level`` into the numeric constant expected by logging."""

        candidate = logging.getLevelName(self.log_level.upper())
        if isinstance(candidate, int):
            return candidate
        return logging.INFO

    def optional_config_warnings(self) -> list[str]:
        """Return human-readable warnings for unset optional configuration."""

        warnings: list[str] = []

        if not self.auth_url:
            warnings.append(
                "AUTH_URL is not set - every request will be rejected as unauthenticated"
            )

        if not self._explicit_redis_url and not self.redis_url:
            warnings.append(
                "REDIS_URL is not set - change feed uses the in-process broker "
                "(live updates only reach clients on the same worker)"
            )

        if not self._explicit_cors_allow_origins and not self.cors_allow_origins:
            warnings.append(
                "CORS_ALLOW_ORIGINS is not set - using default localhost origins only"
            )

        return warnings


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Return a cached instance of :class:`AppSettings`."""

    return AppSettings()


__all__ = [
    "AppSettings",
    "DEFAULT_DB_POOL_RECYCLE",
    "DEFAULT_DB_POOL_SIZE",
    "DEFAULT_DB_POOL_TIMEOUT",
    "DEFAULT_LOG_LEVEL",
    "DEFAULT_SQLITE_DATABASE_URL",
    "POSTGRES_ASYNC_PREFIX",
    "POSTGRES_SYNC_PREFIXES",
    "get_settings",
]
