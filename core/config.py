"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for queryhub happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY, session_ttl_seconds -> SESSION_TTL_SECONDS).

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. Dev mode generates a SECRET_KEY with a warning, production
      mode refuses to start without one.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. Session token hashes
  (HMAC-SHA256) and the OAuth state cookie are both keyed by it.

  SECRET_KEY is the HMAC key for stored session token hashes. A random dev key
  therefore logs everyone out on restart; production must pin one so sessions
  survive a restart.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or blog/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("queryhub.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'queryhub.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The validator below
    # either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Sessions and cookies
    # ------------------------------------------------------------------

    session_cookie_name: str = "queryhub-session-cookie"
    # Fixed TTL from creation (not sliding). 24 hours.
    session_ttl_seconds: int = 24 * 60 * 60
    session_purge_interval_seconds: int = 60 * 60
    secure_cookies: bool = False
    cookie_samesite: str = "lax"

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    bcrypt_rounds: int = 12
    # Upper bound on any credential store call (hash, verify, hash lookup).
    credential_timeout_seconds: float = 5.0

    # ------------------------------------------------------------------
    # Federated login (empty string means Google is disabled)
    # ------------------------------------------------------------------

    google_client_id: str = ""
    google_client_secret: str = ""
    post_login_redirect_url: str = "http://localhost:3000/home"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_origins: list[str] = ["http://localhost:3000"]
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
        Production mode: refuse to start if SECRET_KEY is missing.
        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Sessions will not persist across restarts."
                )
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self

    @property
    def google_enabled(self) -> bool:
        return bool(self.google_client_id and self.google_client_secret)


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
