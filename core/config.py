"""
core/config.py -- Centralized process configuration via pydantic-settings.

All environment variable reads for idgate happen here. No identity module
calls os.getenv() directly; the composition root (identity/bootstrap.py)
reads Settings once and passes plain values into each component.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance afterwards. Configuration is
      loaded at process start and never hot-reloaded.

  BaseSettings (pydantic-settings): field names map to env var names
      (e.g. secret_key -> SECRET_KEY, bcrypt_rounds -> BCRYPT_ROUNDS).

  @model_validator(mode="after"): enforces the SECRET_KEY policy after all
      fields are resolved. Dev mode generates a key with a warning,
      production mode refuses to start without one.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. HS256 signing
  strength is bounded by key entropy.

  Rotating SECRET_KEY invalidates every outstanding token. There is no
  revocation list, so this is the only way to kill leaked tokens early.

Layer rule: core/ is the kernel. This module may not import from identity/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("idgate.config")

MEMORY_DATABASE_URL = "memory://"


class Settings(BaseSettings):
    """Process settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file (given DEBUG=true or an explicit
    secret_key).
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
    # Credentials and tokens
    # ------------------------------------------------------------------

    # bcrypt cost factor: 2**rounds iterations. 12 keeps a single verify in
    # the low hundreds of milliseconds on current hardware.
    bcrypt_rounds: int = 12
    token_expire_seconds: int = 3600

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    # "memory://" selects the in-process store; anything else is handed to
    # SQLAlchemy's create_engine().
    database_url: str = "sqlite:///./idgate.db"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("bcrypt_rounds")
    @classmethod
    def validate_bcrypt_rounds(cls, v: int) -> int:
        if v < 4 or v > 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31")
        return v

    @field_validator("token_expire_seconds")
    @classmethod
    def validate_token_expire_seconds(cls, v: int) -> int:
        if v < 1 or v > 604800:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be between 1 and 604800 (1 second to 7 days)")
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("DATABASE_URL must be set and non-empty")
        return v.strip()

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive a restart.

        Production mode (DEBUG=false or not set): refuse to start if
            SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Issued tokens will not survive a restart.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the process Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
