"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for BloodLink happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Used to refuse startup without a signing
      secret.

Security notes:
  SECRET_KEY has no default and no development fallback. A missing key is a
  hard startup failure (ConfigurationError) in every mode, so the process can
  never sign tokens with a well-known placeholder.

  SECRET_KEY shorter than 32 chars is rejected outright. JWT HS256 signing
  relies on key entropy -- a short key weakens every issued token.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
audit/, or client/.
"""

from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path

from pydantic import ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'bloodlink.db'}"

# 7 days -- fixed horizon stamped into every token at issuance.
_SEVEN_DAYS = 7 * 24 * 60 * 60


class ConfigurationError(RuntimeError):
    """Raised when the process cannot start with the current configuration."""


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Every field except secret_key has a default. secret_key must be supplied
    through SECRET_KEY (environment or .env); the model_validator rejects an
    empty or short value.
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
    # Empty string is the sentinel for "not configured"; the validator rejects it.
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    token_expire_seconds: int = _SEVEN_DAYS
    # bcrypt cost factor. 12 is the library default; tests drop it to 4.
    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # HTTP surface
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    rate_limit_enabled: bool = True
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Refuse to start without a strong SECRET_KEY.

        There is deliberately no fallback: a missing key would otherwise mean
        either a hardcoded literal (forgeable tokens) or a random key
        (tokens invalidated on every restart).
        """
        if not self.secret_key:
            raise ValueError(
                "SECRET_KEY is required. " "Set SECRET_KEY in your environment or .env file."
            )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        if self.token_expire_seconds <= 0:
            raise ValueError("TOKEN_EXPIRE_SECONDS must be positive.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    All modules should call get_settings() rather than constructing Settings()
    directly.

    Raises ConfigurationError (chained to the pydantic ValidationError) when
    the environment does not produce valid settings. lru_cache does not cache
    exceptions, so a fixed environment is picked up on the next call.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    try:
        return Settings()
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


def now_iso() -> str:
    """Current UTC time as an ISO 8601 string (the storage format for timestamps)."""
    return datetime.now(timezone.utc).isoformat()
