"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the Acquisitions API happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Outside production a missing SECRET_KEY is
      replaced by a random one with a warning; in production startup fails.

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected outright. JWT signing
       relies on key entropy -- a short key weakens every issued token.

  [M7] With ENVIRONMENT=production, a missing SECRET_KEY is a hard startup
       failure. There is no built-in fallback secret.

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, or admission/.
"""

import logging
import secrets
from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("acquisitions.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.

    Environment variable name mapping: field names are uppercased automatically.
    E.g. `secret_key` reads from SECRET_KEY, `environment` from ENVIRONMENT.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    environment: Literal["development", "production", "test"] = "development"
    log_level: str = "INFO"
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = "sqlite:///acquisitions.db"

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # One day, matching the JWT lifetime the API has always issued.
    token_expire_seconds: int = 86400
    # Signup may only request role=admin when this is on, or when the caller
    # is already an authenticated admin.
    allow_admin_signup: bool = False

    # ------------------------------------------------------------------
    # Admission control (limits notation, moving window)
    # ------------------------------------------------------------------

    rate_limit_admin: str = "20/minute"
    rate_limit_user: str = "10/minute"
    rate_limit_guest: str = "5/minute"
    rate_limit_storage_uri: str = "memory://"
    admission_fail_open: bool = False

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_origins: list[str] = ["http://localhost:3000"]
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def secure_cookies(self) -> bool:
        """Session cookies carry the Secure attribute only in production."""
        return self.is_production

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy [M7].

        development/test: auto-generate a random key with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        production: refuse to start if SECRET_KEY is missing.

        All environments: reject keys shorter than 32 characters [M6].
        """
        if not self.secret_key:
            if not self.is_production:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Sessions will not persist across restarts."
                )
            else:
                raise ValueError(
                    "SECRET_KEY is required in production. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run locally, set ENVIRONMENT=development."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    All modules should call get_settings() rather than constructing Settings() directly.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
