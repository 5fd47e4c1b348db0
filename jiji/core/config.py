"""Settings for the Ask Jiji service, read from the environment.

``APP_ENV`` (development, testing, staging, production) picks an optional
``.env.<env>`` file at the project root. Values already exported in the
process environment take precedence over the file.

Supabase credentials may be absent: the service still starts and every ask
request is answered with a misconfiguration error.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


APP_ENV = os.getenv("APP_ENV", "development")

PROJECT_ROOT = Path(__file__).resolve().parents[2]

KNOWN_ENVIRONMENTS = ("development", "testing", "staging", "production")


def env_file_for(app_env: str) -> Path | None:
    """Return the dotenv file for an environment, or None if it does not exist."""
    name = app_env if app_env in KNOWN_ENVIRONMENTS else "development"
    path = PROJECT_ROOT / f".env.{name}"
    return path if path.is_file() else None


# Nested settings classes do not share an env_file, so the file is loaded
# into os.environ once, up front.
_env_file = env_file_for(APP_ENV)
if _env_file is not None:
    load_dotenv(_env_file, override=False)


# default_factory builders keep type checkers from demanding constructor args.
def _build_app_settings() -> "AppSettings":
    return AppSettings()  # type: ignore[call-arg]


def _build_supabase_settings() -> "SupabaseSettings":
    return SupabaseSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    return LogSettings()  # type: ignore[call-arg]


class SupabaseSettings(BaseSettings):
    """Connection settings for the Supabase project backing auth, data and storage."""

    url: str | None = Field(
        None,
        description="Supabase project URL (e.g., https://xyz.supabase.co)",
    )
    anon_key: str | None = Field(
        None,
        description="Public anon key sent as the apikey header",
    )
    storage_bucket: str = Field(
        "learning-resources",
        description="Public storage bucket holding resource files",
    )
    timeout_seconds: float = Field(
        15.0,
        description="HTTP client timeout for Supabase calls in seconds",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="SUPABASE_",
        case_sensitive=False,
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.anon_key)


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Force DEBUG log level regardless of LOG_LEVEL",
    )
    query_min_chars: int = Field(
        3,
        description="Minimum query length after trimming",
        ge=1,
    )
    query_max_chars: int = Field(
        500,
        description="Maximum query length after trimming",
        ge=1,
    )
    resource_search_limit: int = Field(
        5,
        description="Maximum number of resources returned per query",
        ge=1,
    )
    max_body_bytes: int = Field(
        100 * 1024,
        description="Maximum accepted JSON request body size in bytes",
        ge=1,
    )
    upstream_timeout_seconds: float = Field(
        10.0,
        description="Upper bound for each call to an external collaborator",
        gt=0,
    )

    rate_limit_enabled: bool = Field(
        True,
        description="Enable rate limiting per client address",
    )
    rate_limit_requests: int = Field(
        30,
        description="Maximum number of requests allowed per window (per client)",
        ge=1,
    )
    rate_limit_window_seconds: int = Field(
        60,
        description="Rate limit window size in seconds",
        ge=1,
    )
    rate_limit_sweep_interval_seconds: int = Field(
        300,
        description="How often expired client windows are purged (0 disables)",
        ge=0,
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )
    security_headers_enabled: bool = Field(
        True,
        description="Add hardening headers (nosniff, frame options, ...) to responses",
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
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-Id",
        description="Response header carrying the generated request id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Top-level settings: one nested group per concern (app, supabase, log)."""

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=_build_app_settings)
    supabase: SupabaseSettings = Field(default_factory=_build_supabase_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Process-wide settings, built once at import time
settings = Settings()
