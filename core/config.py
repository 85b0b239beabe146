"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for HomeCinema happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. bcrypt_rounds -> BCRYPT_ROUNDS). List fields are read as JSON
      (e.g. SEED_ROLES='["Admin", "Member"]').

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or catalog/.
"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("homecinema.config")

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


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
    log_level: str = "INFO"

    # Empty string is the sentinel for "use the SQLite file beside the package".
    auth_db_url: str = ""
    catalog_db_url: str = ""

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    # bcrypt cost factor. 12 is the library default; tests drop to 4 (minimum).
    bcrypt_rounds: int = 12
    # Reference roles created on startup if missing. Order fixes the ids on a
    # fresh database: "Admin" becomes role 1.
    seed_roles: list[str] = ["Admin"]
    # Roles handed to self-registered users by POST /account/register.
    default_role_ids: list[int] = [1]
    self_registration_enabled: bool = True

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True
    login_rate_limit: str = "10/minute"
    register_rate_limit: str = "5/minute"
    # Failed Basic credential checks on protected routes, per client address.
    auth_failure_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Catalog uploads
    # ------------------------------------------------------------------

    image_upload_dir: str = str(_PROJECT_ROOT / "content" / "images" / "movies")
    max_upload_bytes: int = 5 * 1024 * 1024

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("bcrypt_rounds")
    @classmethod
    def validate_bcrypt_rounds(cls, value: int) -> int:
        """bcrypt only accepts cost factors 4..31; fail at startup, not at first login."""
        if not 4 <= value <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        return value

    @model_validator(mode="after")
    def validate_registration_roles(self) -> "Settings":
        """Self-registration needs at least one default role to assign.

        An empty list would create users that can authenticate but hold no
        role at all, which is never what an operator means by enabling
        registration.
        """
        if self.self_registration_enabled and not self.default_role_ids:
            raise ValueError("DEFAULT_ROLE_IDS must not be empty while self-registration is enabled.")
        if self.debug and self.bcrypt_rounds > 10:
            logger.warning("DEBUG mode with BCRYPT_ROUNDS=%d -- logins will be slow.", self.bcrypt_rounds)
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
