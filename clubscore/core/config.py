"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


AUTH_RATE_LIMIT_MESSAGE = (
    "Too many authentication attempts. Please wait before trying again."
)


class EndpointRateLimit(BaseModel):
    """Per-route override; unset fields fall back to the global defaults."""

    max_requests: int | None = Field(None, ge=1)
    window_ms: int | None = Field(None, ge=1)
    message: str | None = None


def _default_endpoint_overrides() -> dict[str, EndpointRateLimit]:
    return {
        "/api/auth": EndpointRateLimit(
            max_requests=10, window_ms=60000, message=AUTH_RATE_LIMIT_MESSAGE
        ),
        "/api/rating": EndpointRateLimit(max_requests=60, window_ms=60000),
        "/api/players": EndpointRateLimit(max_requests=60, window_ms=60000),
        "/api/games": EndpointRateLimit(max_requests=60, window_ms=60000),
        "/api/day-stats": EndpointRateLimit(max_requests=30, window_ms=60000),
        "/api/day-games": EndpointRateLimit(max_requests=30, window_ms=60000),
        "/api/version": EndpointRateLimit(max_requests=200, window_ms=60000),
    }


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment.

    Static type checkers treat BaseSettings fields as constructor arguments,
    which is not how BaseSettings is intended to be used.
    """

    return AppSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


def _build_rate_limit_settings() -> "RateLimitSettings":
    return RateLimitSettings()  # type: ignore[call-arg]


def _build_cache_settings() -> "CacheSettings":
    return CacheSettings()  # type: ignore[call-arg]


def _build_cors_settings() -> "CorsSettings":
    return CorsSettings()  # type: ignore[call-arg]


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    name: str = Field(
        "clubscore",
        description="Service name reported by /api/version",
    )
    version: str = Field(
        "1.0.0",
        description="Service version reported by /api/version",
    )
    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    api_key_required: bool = Field(
        True,
        description="Whether API key authentication is required for admin routes",
    )
    api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid API keys for authentication",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated log files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Fixed-window rate limiting per client and route."""

    enabled: bool = Field(
        True,
        description="Enable rate limiting for non-exempt routes",
    )
    max_requests: int = Field(
        100,
        description="Default maximum number of requests per window",
        ge=1,
    )
    window_ms: int = Field(
        60000,
        description="Default window size in milliseconds",
        ge=1,
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* headers on responses",
    )
    sweep_interval_seconds: float = Field(
        60.0,
        description="How often stale rate limit records are swept",
        gt=0,
    )
    sweep_grace_ms: int = Field(
        60000,
        description="How long after reset a record is kept before the sweep drops it",
        ge=0,
    )
    exempt_paths: list[str] = Field(
        default_factory=lambda: ["/health", "/docs", "/openapi.json"],
        description="Paths never rate limited",
    )
    endpoint_overrides: dict[str, EndpointRateLimit] = Field(
        default_factory=_default_endpoint_overrides,
        description="Per-route overrides as JSON, keyed by route prefix",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class CacheSettings(BaseSettings):
    """In-memory response cache configuration."""

    enabled: bool = Field(True, description="Serve cacheable routes from the cache")
    default_ttl_seconds: float = Field(
        60.0,
        description="TTL used when a caller does not pass one",
        gt=0,
    )
    max_entries: int | None = Field(
        None,
        description="Optional LRU bound on the number of entries",
        ge=1,
    )
    sweep_interval_seconds: float = Field(
        300.0,
        description="How often expired entries are swept",
        gt=0,
    )
    version_ttl_seconds: float = Field(
        60.0,
        description="TTL applied to /api/version responses",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="CACHE_",
        case_sensitive=False,
    )


class CorsSettings(BaseSettings):
    """Allowed browser origins."""

    allowed_origins: list[str] = Field(
        default_factory=lambda: [
            "https://score.mafclub.biz",
            "https://www.mafclub.biz",
            "https://mafclubscore.vercel.app",
        ],
        description="Exact origins allowed to call the API with credentials",
    )
    allowed_origin_regex: str | None = Field(
        r"^(https://mafclubscore-[a-z0-9]+-lifeexplorers-projects\.vercel\.app"
        r"|https?://localhost:\d+|https?://127\.0\.0\.1:\d+)$",
        description="Preview deployments and local development origins",
    )

    model_config = SettingsConfigDict(
        env_prefix="CORS_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.

    Environments:
    - development: Local development (DEBUG=true)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)
    cache: CacheSettings = Field(default_factory=_build_cache_settings)
    cors: CorsSettings = Field(default_factory=_build_cors_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
