"""Centralized, typed configuration using pydantic-settings.

Provides a single ``Settings`` class backed by ``.env`` file and environment
variables, a cached ``get_settings()`` accessor, and a ``validate_credentials()``
startup gate that enforces credential presence in production mode.

IMPORTANT: This module has ZERO imports from the ``outreach`` package to
prevent circular imports.  Only stdlib, pydantic, pydantic_settings, and
structlog are used.
"""

from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path

import structlog
from pydantic import SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()

GOOGLE_CALLBACK_PATH = "/auth/callback/google"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env`` file.

    ``SecretStr`` fields prevent accidental leaks in logs or error output.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- General ---------------------------------------------------------------
    production: bool = False
    port: int = 8000
    db_path: Path = Path("data/outreach.db")
    site_url: str = ""

    # -- Google OAuth ----------------------------------------------------------
    google_client_id: str = ""
    google_client_secret: SecretStr = SecretStr("")

    # -- Secrets ---------------------------------------------------------------
    encryption_key: SecretStr = SecretStr("")
    session_secret: SecretStr = SecretStr("")
    job_trigger_token: SecretStr = SecretStr("")

    # -- LLM / Anthropic -------------------------------------------------------
    anthropic_api_key: SecretStr = SecretStr("")

    # -- Observability ---------------------------------------------------------
    sentry_dsn: str = ""

    # -- Network / reply poller ------------------------------------------------
    http_timeout_seconds: float = 30.0
    poll_interval_seconds: int = 600
    poll_lock_ttl_seconds: int = 1800

    @property
    def redirect_uri(self) -> str:
        """OAuth redirect URI derived from ``site_url``; empty when unset."""
        if not self.site_url:
            return ""
        return self.site_url.rstrip("/") + GOOGLE_CALLBACK_PATH


@lru_cache
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    The ``@lru_cache`` decorator ensures environment variables are parsed
    exactly once.  Call ``get_settings.cache_clear()`` in tests to reset.

    Returns:
        The application ``Settings``.
    """
    try:
        return Settings()
    except ValidationError as exc:
        # Log only the structured errors list -- never the full exception
        # which may contain raw SecretStr values.
        logger.error("settings_validation_failed", errors=exc.errors())
        sys.exit(1)


def validate_credentials(settings: Settings) -> None:
    """Enforce credential presence at startup.

    In **production** mode (``settings.production is True``), the application
    exits with a clear error block if any required credential is missing.

    In **development** mode, each missing credential is logged as a warning
    but the application continues to start.

    Args:
        settings: The loaded application settings.
    """
    errors: list[str] = []

    if not settings.google_client_id:
        errors.append("GOOGLE_CLIENT_ID is empty or not set")

    if not settings.google_client_secret.get_secret_value():
        errors.append("GOOGLE_CLIENT_SECRET is empty or not set")

    if not settings.site_url:
        errors.append("SITE_URL is empty or not set (needed for the OAuth redirect URI)")

    if not settings.encryption_key.get_secret_value():
        errors.append("ENCRYPTION_KEY is empty or not set")

    if not settings.session_secret.get_secret_value():
        errors.append("SESSION_SECRET is empty or not set")

    if not settings.job_trigger_token.get_secret_value():
        errors.append("JOB_TRIGGER_TOKEN is empty or not set (the job trigger would be open)")

    if not errors:
        logger.info("credential_validation_passed")
        return

    if settings.production:
        for err in errors:
            logger.error("credential_missing", detail=err)
        print("\n=== STARTUP FAILED ===", file=sys.stderr)
        print("Missing required credentials for production mode:", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        print("======================\n", file=sys.stderr)
        sys.exit(1)
    else:
        for err in errors:
            logger.warning("credential_missing_dev", detail=err)
