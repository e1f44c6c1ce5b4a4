"""
Application Configuration.

Pydantic Settings model for the auth session synchronization engine.
All configuration is loaded from environment variables and .env files.
Inject an AppConfig instance via dependency injection where needed.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    """Central configuration loaded from environment variables and defaults."""

    # --- Supabase ---
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: SecretStr = SecretStr("")

    # --- Deep links ---
    APP_SCHEME: str = "sobers"
    AUTH_CALLBACK_PATH: str = "auth/callback"

    # --- Auth behaviour ---
    SIGN_OUT_SCOPE: str = "local"
    PROFILES_TABLE: str = "profiles"
    DELETE_ACCOUNT_RPC: str = "delete_user_account"

    # Upper bound on remembered token fingerprints; oldest evicted first.
    PROCESSED_URL_LEDGER_MAX: int = 256

    # When False a failed exchange keeps its fingerprint, so the same
    # callback URL is never submitted twice in one process.
    RETRY_FAILED_DEEP_LINKS: bool = False

    # --- Logging ---
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "authsync.log"
    LOG_MAX_BYTES: int = 5_242_880  # 5 MB
    LOG_BACKUP_COUNT: int = 3

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _warn_missing_env(self) -> "AppConfig":
        """Emit a startup warning when critical configuration is empty.

        Pydantic silently falls back to defaults when ``.env`` is missing.
        This validator logs a warning so operators know the engine is
        running without a provider.
        """
        _log = logging.getLogger("authsync.config")

        if not Path(".env").exists():
            _log.warning(
                "No .env file found; all configuration loaded from "
                "environment variables or defaults."
            )

        if not self.SUPABASE_URL or not self.SUPABASE_ANON_KEY.get_secret_value():
            _log.warning(
                "SUPABASE_URL or SUPABASE_ANON_KEY is empty; every provider "
                "call will fail with NOT_CONFIGURED."
            )

        return self

    @property
    def auth_redirect_url(self) -> str:
        """Deep-link URL the provider redirects to after an OAuth flow."""
        return f"{self.APP_SCHEME}://{self.AUTH_CALLBACK_PATH.strip('/')}"

    @property
    def log_level(self) -> int:
        """Numeric logging level for ``LOG_LEVEL`` (defaults to INFO)."""
        level = logging.getLevelName(self.LOG_LEVEL.upper())
        return level if isinstance(level, int) else logging.INFO


# ---------------------------------------------------------------------------
# Module-level singleton factory
# ---------------------------------------------------------------------------

_config_instance: Optional[AppConfig] = None
_config_lock: threading.Lock = threading.Lock()


def get_config() -> AppConfig:
    """Return a cached ``AppConfig`` singleton.

    On first call, creates an ``AppConfig`` instance (reading from ``.env``).
    Subsequent calls return the same instance.  Uses a check-lock-check
    pattern so the lock is only taken during first initialisation.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AppConfig()
    return _config_instance
