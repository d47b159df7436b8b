"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
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


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    host: str = Field(
        "127.0.0.1",
        description="Interface the development server binds to",
    )
    port: int = Field(
        3000,
        description="Port the development server listens on",
    )
    api_key_required: bool = Field(
        True,
        description="Whether mutating requests under the protected prefix need an API key",
    )
    api_keys: str | None = Field(
        "secret-key-123",
        description="Comma-separated list of valid API keys for the access gate",
    )
    protected_prefix: str = Field(
        "/users",
        description="Path prefix guarded by the access gate and the rate limiter",
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable per-client rate limiting",
    )
    rate_limit_requests: int = Field(
        10,
        description="Maximum number of requests allowed per sliding window (per client)",
        ge=1,
    )
    rate_limit_window_seconds: int = Field(
        60,
        description="Sliding window size in seconds",
        ge=1,
    )
    rate_limit_scope: Literal["mutating", "all"] = Field(
        "mutating",
        description=(
            "'mutating' limits POST/PUT/PATCH/DELETE under the protected prefix; "
            "'all' limits every request"
        ),
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )

    seed_users: bool = Field(
        True,
        description="Start the in-memory store with the three demo users",
    )
    enforce_unique_email_on_replace: bool = Field(
        False,
        description="Reject PUT requests whose email belongs to another user",
    )
    expose_error_details: bool = Field(
        True,
        description="Include the underlying exception message in 500 responses",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field(
        "json",
        description="Output format: structured JSON or plain text",
    )
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to accept and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
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
    app: AppSettings = Field(default_factory=AppSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
