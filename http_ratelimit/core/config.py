"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

Rate limiter options programmatically passed to ``RateLimiter`` always win;
these settings only drive the limiter built by the bundled app factory.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file and not os.getenv("TESTING"):
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_ratelimit_settings() -> "RatelimitSettings":
    return RatelimitSettings()


def _build_log_settings() -> "LogSettings":
    return LogSettings()


class RatelimitSettings(BaseSettings):
    """Settings for the limiter installed by ``create_app``."""

    enabled: bool = Field(
        True,
        description="Install the rate limiting middleware",
    )
    name: str = Field(
        "HTTP",
        description="Limiter name, used as key namespace and in messages",
        min_length=1,
    )
    max_requests: int = Field(
        100,
        description="Maximum number of requests allowed per window",
        ge=1,
    )
    period_seconds: int = Field(
        60,
        description="Window length in seconds",
        ge=1,
    )
    status_code: int = Field(
        429,
        description="HTTP status returned when the limit is exceeded",
        ge=400,
        le=599,
    )
    error_message: str | None = Field(
        None,
        description="Response body on rejection (defaults to a message naming the limiter and period)",
    )
    backend: str = Field(
        "redis",
        description="Counter store backend: redis or memcached",
    )
    redis_url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL used by the redis backend",
    )
    memcached_server: str = Field(
        "localhost:11211",
        description="host:port of the memcached server used by the memcached backend",
    )
    classify_by: str = Field(
        "ip",
        description="Request classification: global, ip or api_key",
    )
    exempt_paths: str = Field(
        "/health",
        description="Comma-separated path prefixes that are never rate limited",
    )
    log_exceeded: bool = Field(
        True,
        description="Log the first request of each window that exceeds the limit",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATELIMIT_",
        case_sensitive=False,
    )

    @property
    def exempt_path_prefixes(self) -> list[str]:
        return [p.strip() for p in self.exempt_paths.split(",") if p.strip()]


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="json or plain")
    output: str = Field("stdout", description="stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(0, description="Rotate log file at this size (0 disables rotation)", ge=0)
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    request_id_header: str = Field("X-Request-ID", description="Correlation header name")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    ratelimit: RatelimitSettings = Field(default_factory=_build_ratelimit_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
