"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for TokenGate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. token_lifetime -> TOKEN_LIFETIME).

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. SECRET_KEY follows the DEBUG-conditional policy; the token
      timings are checked against each other.

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected outright. Token digests in
       the token store are HMAC-SHA256 keyed with it.

  [M7] Outside DEBUG mode a missing SECRET_KEY is a hard startup failure. With
       a SQL token store, a key that changes on restart orphans every stored
       token.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or client/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("tokengate.config")

# Below this, guessing a live token stops being infeasible.
MIN_TOKEN_BYTES = 16


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
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Token lifecycle (seconds)
    # ------------------------------------------------------------------

    token_lifetime: int = 600
    # Measured from the token's current issued_at, which moves on renewal.
    renew_window: int = 1800
    token_bytes: int = MIN_TOKEN_BYTES

    # Empty = in-process MemoryTokenStore. Any SQLAlchemy URL selects
    # SqlTokenStore, which is what multi-worker deployments need.
    token_store_url: str = ""

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    rate_limit: str = "60/minute"
    rate_limit_enabled: bool = True
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce SECRET_KEY policy [M7].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
        Production mode: refuse to start if SECRET_KEY is missing.
        Both modes: reject keys shorter than 32 characters [M6].
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning(
                    "WARNING: Using auto-generated SECRET_KEY. " "Stored tokens will not survive a restart."
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

    @model_validator(mode="after")
    def validate_token_policy(self) -> "Settings":
        """Reject token timings that would break the lifecycle invariants."""
        if self.token_lifetime <= 0:
            raise ValueError("TOKEN_LIFETIME must be a positive number of seconds.")
        if self.renew_window < self.token_lifetime:
            raise ValueError("RENEW_WINDOW must be at least TOKEN_LIFETIME.")
        if self.token_bytes < MIN_TOKEN_BYTES:
            raise ValueError(f"TOKEN_BYTES must be at least {MIN_TOKEN_BYTES}.")
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
