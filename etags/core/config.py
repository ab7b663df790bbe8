"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from etags.core.errors import ConfigurationAppError

logger = logging.getLogger(__name__)


APP_ENV = os.getenv("APP_ENV", "development")

PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename
_env_file = str(_env_path) if _env_path.is_file() else None

# Nested BaseSettings don't inherit env_file, so populate os.environ up front.
# Tests set TESTING=true to keep local .env files out of the picture.
if _env_file and os.getenv("TESTING", "").lower() != "true":
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


# Publicly known from source; only acceptable outside production.
DEFAULT_CSRF_SECRET = "default-csrf-secret"


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="Log format: json or plain")
    output: str = Field("stdout", description="Log output: stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
    )
    backup_count: int = Field(5, description="Number of rotated log files to keep")
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    rate_limit_enabled: bool = Field(
        True,
        description="Enable per-client rate limiting on guarded endpoints",
    )
    rate_limit_include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* headers on guarded responses",
    )
    rate_limit_sweep_interval_seconds: float = Field(
        60.0,
        description="Interval between purges of expired rate limit entries",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class CSRFSettings(BaseSettings):
    """CSRF token signing configuration.

    The secret must be stable across restarts: tokens already sitting in
    client cookies are only verifiable with the secret that signed them.
    """

    secret: str = Field(
        DEFAULT_CSRF_SECRET,
        validation_alias=AliasChoices("CSRF_SECRET", "AUTH_SECRET"),
        description="HMAC-SHA256 signing key for CSRF tokens",
    )
    max_age_seconds: int = Field(
        24 * 60 * 60,
        validation_alias=AliasChoices("CSRF_MAX_AGE_SECONDS"),
        description="Token validity window and cookie Max-Age",
        ge=1,
    )
    cookie_secure: bool | None = Field(
        None,
        validation_alias=AliasChoices("CSRF_COOKIE_SECURE"),
        description="Force the Secure cookie flag; defaults to true in production",
    )

    model_config = SettingsConfigDict(
        case_sensitive=False,
        populate_by_name=True,
    )

    @field_validator("secret")
    @classmethod
    def _blank_secret_uses_default(cls, value: str) -> str:
        # An empty CSRF_SECRET means unset, not an empty HMAC key
        return value if value.strip() else DEFAULT_CSRF_SECRET


def _build_log_settings() -> LogSettings:
    return LogSettings()  # type: ignore[call-arg]


def _build_app_settings() -> AppSettings:
    return AppSettings()  # type: ignore[call-arg]


def _build_csrf_settings() -> CSRFSettings:
    return CSRFSettings()  # type: ignore[call-arg]


class Settings(BaseSettings):
    """Main application settings container.

    Environments:
    - development: Local development, default CSRF secret tolerated
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment, explicit CSRF secret required
    """

    app_env: str = APP_ENV
    log: LogSettings = Field(default_factory=_build_log_settings)
    app: AppSettings = Field(default_factory=_build_app_settings)
    csrf: CSRFSettings = Field(default_factory=_build_csrf_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"


def validate_settings(cfg: Settings) -> None:
    """Check settings that must hold before the app starts serving.

    Args:
        cfg: Settings instance to validate.

    Raises:
        ConfigurationAppError: If production runs without its own CSRF secret.
    """
    secret = (cfg.csrf.secret or "").strip()
    if secret and secret != DEFAULT_CSRF_SECRET:
        return

    if cfg.is_production:
        logger.critical(
            "config.csrf_secret_missing",
            extra={"app_env": cfg.app_env},
        )
        raise ConfigurationAppError(
            code="csrf_secret_not_configured",
            message="CSRF signing secret must be configured in production",
            details={"hint": "Set CSRF_SECRET (or AUTH_SECRET) to a stable random value"},
        )

    logger.warning(
        "config.csrf_secret_default",
        extra={"app_env": cfg.app_env},
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
