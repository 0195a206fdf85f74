"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the helpdesk happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead,
or better, receive a Settings instance from create_app().

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment.

Security notes:
  [M6] SECRET_KEY shorter than 32 chars is rejected outright. JWT signing
       relies on key entropy -- a short key weakens every session token.

  [M7] A missing SECRET_KEY is a hard startup failure in every mode. Session
       tokens are only as trustworthy as the key that signs them, so the
       service refuses to start rather than inventing one.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or tickets/.
"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("helpdesk.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'helpdesk.db'}"
_DEFAULT_UPLOAD_DIR = Path(__file__).resolve().parent.parent / "uploads"


class ConfigurationError(RuntimeError):
    """Raised when the process cannot start with the supplied configuration."""


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Every field except secret_key has a default. Settings(secret_key=...) is
    the way tests build an isolated configuration without touching the
    environment.
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
    # Empty string is the sentinel for "not configured"; the validator raises.
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    bcrypt_rounds: int = Field(default=12, ge=4, le=31)

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    upload_dir: Path = _DEFAULT_UPLOAD_DIR
    max_upload_bytes: int = 1 * 1024 * 1024  # 1 MB

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy [M6][M7]."""
        if not self.secret_key:
            raise ValueError(
                "SECRET_KEY is required. Set SECRET_KEY in your environment or .env file."
            )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


def load_settings(**overrides) -> Settings:
    """Build a Settings instance, turning validation failures into ConfigurationError.

    Overrides are passed straight to the Settings constructor and win over the
    environment. The error message names the failing fields but never echoes
    their values, so a bad SECRET_KEY is not written to the startup log.
    """
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "settings" for err in exc.errors())
        messages = "; ".join(err["msg"] for err in exc.errors())
        raise ConfigurationError(f"Invalid configuration ({fields}): {messages}") from None


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    settings = load_settings()
    logger.info("Configuration loaded (debug=%s)", settings.debug)
    return settings
