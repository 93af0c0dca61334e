"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load (.env.{APP_ENV}, then .env)
- Real environment variables always win over values from the file
- Each concern (limiter, store, redis, server, logging) has its own settings
  class so tests can build them independently
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from ratelimiter.core.errors import ConfigurationAppError


# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}


def _resolve_env_file(app_env: str) -> Path | None:
    """Pick the .env file for the given environment, if one exists."""

    candidates = [ENV_FILE_MAP.get(app_env, ".env.development"), ".env"]
    for name in candidates:
        path = PROJECT_ROOT / name
        if path.is_file():
            return path
    return None


def _load_env_file() -> None:
    """Populate os.environ from the environment's .env file.

    Nested BaseSettings don't inherit env_file, so values are pushed into
    os.environ before any settings object is created. Skipped under tests.
    """

    if os.getenv("TESTING", "").lower() == "true":
        return

    env_file = _resolve_env_file(os.getenv("APP_ENV", "development"))
    if env_file:
        load_dotenv(env_file, override=False)


class LimiterSettings(BaseSettings):
    """Limits and block durations for the rate decision engine.

    Variable names follow the deployment's historical .env layout
    (MAX_REQUESTS_PER_IP, TOKEN_HEADER_NAME, ...).
    """

    max_requests_per_ip: int = Field(
        5,
        description="Requests allowed per second for a client address",
        ge=1,
    )
    max_requests_per_token: int = Field(
        10,
        description="Requests allowed per second for an API credential",
        ge=1,
    )
    block_duration_ip_seconds: int = Field(
        300,
        description="Lockout applied to an address after exceeding its limit",
        ge=1,
    )
    block_duration_token_seconds: int = Field(
        300,
        description="Lockout applied to a credential after exceeding its limit",
        ge=1,
    )
    token_header_name: str = Field(
        "API_KEY",
        description="Request header carrying the API credential",
        min_length=1,
    )
    store_timeout_seconds: float | None = Field(
        2.0,
        description="Deadline for one evaluation's store round trips (unset = none)",
        gt=0,
    )

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


class StoreSettings(BaseSettings):
    """Counting store selection."""

    backend: str = Field(
        "redis",
        description="Counting store backend: 'redis' (shared) or 'memory' (single process)",
    )

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        case_sensitive=False,
    )


class RedisSettings(BaseSettings):
    """Connection parameters for the Redis counting store."""

    addr: str = Field(
        "localhost:6379",
        description="Redis address as host:port",
    )
    db: int = Field(
        0,
        description="Redis logical database index",
        ge=0,
    )
    password: str | None = Field(
        None,
        description="Redis AUTH password",
    )
    socket_timeout_seconds: float = Field(
        2.0,
        description="Socket connect/read timeout for Redis calls",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )


class ServerSettings(BaseSettings):
    """HTTP server bind options."""

    host: str = Field("0.0.0.0", description="Interface to bind")
    port: int = Field(8080, description="TCP port to listen on", ge=1, le=65535)

    model_config = SettingsConfigDict(
        env_prefix="SERVER_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="'json' or 'plain'")
    output: str = Field("stdout", description="'stdout' or 'file'")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10_485_760, description="Rotate after this many bytes (0 disables)", ge=0)
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    request_id_header: str = Field("X-Request-ID", description="Correlation header name")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container."""

    app_env: str = "development"
    limiter: LimiterSettings = Field(default_factory=LimiterSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


def load_settings() -> Settings:
    """Load settings from the environment.

    Returns:
        Fully validated Settings.

    Raises:
        ConfigurationAppError: If any value is missing, malformed or out of range.
    """

    _load_env_file()
    try:
        return Settings()
    except ValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        field = ".".join(str(part) for part in first.get("loc", ()))
        raise ConfigurationAppError(
            code="invalid_configuration",
            message=f"Invalid configuration: {first.get('msg', str(exc))}",
            details={"field": field, "hint": "Check the .env file and environment variables"},
        ) from exc


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""

    return load_settings()
