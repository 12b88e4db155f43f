"""
core/config.py -- Centralized service configuration via pydantic-settings.

All environment variable reads for the SSO core happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. token_ttl_seconds -> SSO_TOKEN_TTL_SECONDS).

There is no global signing key. Every registered app signs its own tokens with
its own secret, which lives in the apps table, not in the environment.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
services/, or storage/.
"""

from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'sso.db'}"


class Settings(BaseSettings):
    """Service settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="SSO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    # "local" -> verbose human-readable logs, "dev" -> debug, "prod" -> info.
    env: Literal["local", "dev", "prod"] = "local"
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Session token lifetime. Must be positive so that exp > issuance.
    token_ttl_seconds: int = 3600

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    host: str = "localhost"
    port: int = Field(default=44044, ge=1, le=65535)
    # Upper bound on a single request. Clients may ask for less via the
    # X-Request-Timeout header, never for more.
    request_timeout_seconds: float = 15.0
    cors_origins: list[str] = ["http://localhost", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("token_ttl_seconds")
    @classmethod
    def validate_token_ttl(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("SSO_TOKEN_TTL_SECONDS must be a positive number of seconds.")
        return value

    @field_validator("request_timeout_seconds")
    @classmethod
    def validate_request_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("SSO_REQUEST_TIMEOUT_SECONDS must be positive.")
        return value

    @property
    def token_ttl(self) -> timedelta:
        return timedelta(seconds=self.token_ttl_seconds)


@lru_cache
def get_settings() -> Settings:
    """Return the Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    All modules should call get_settings() rather than constructing Settings()
    directly.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
