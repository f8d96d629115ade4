"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for TaskFlow happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. session_lifetime -> SESSION_LIFETIME). Type coercion and validation
      are built in.

  Typed cookie contract: the cookie attributes are
      collected into SessionCookieConfig, a frozen dataclass
      handed to the session layer. session/ never reads Settings directly.

Security notes:
  [S1] HttpOnly is not configurable. Client-side code has no business reading
       the session identifier; it reads the CSRF token from the page instead.

  [S2] SameSite defaults to "strict". Cross-site navigations do not carry the
       session cookie at all, which backs up the header-based CSRF check.

  [S3] session_secure=false outside DEBUG mode is logged as a warning at
       startup. Production must serve over HTTPS with SESSION_SECURE=true.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
auth/, or session/.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Literal, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("taskflow.config")


@dataclass(frozen=True)
class SessionCookieConfig:
    """Attributes of the session transport cookie.

    domain=None produces a host-only cookie, i.e. pinned to the serving host.
    """

    name: str = "taskflow_session"
    lifetime: int = 3600
    path: str = "/"
    domain: Optional[str] = None
    secure: bool = False
    httponly: bool = True
    samesite: Literal["strict", "lax"] = "strict"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    the relationships between the session timing values at startup.
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

    # ------------------------------------------------------------------
    # Session cookie
    # ------------------------------------------------------------------

    session_cookie_name: str = "taskflow_session"
    session_lifetime: int = 3600
    # Must match the application's base route, not a file system path.
    session_path: str = "/"
    # Empty string means host-only (the serving host).
    session_domain: str = ""
    session_secure: bool = False
    session_samesite: Literal["strict", "lax"] = "strict"

    # ------------------------------------------------------------------
    # Session timing
    # ------------------------------------------------------------------

    session_inactivity_timeout: int = 1800  # 30 minutes
    session_rotation_interval: int = 300  # 5 minutes
    session_purge_interval: int = 15 * 60

    # ------------------------------------------------------------------
    # CSRF
    # ------------------------------------------------------------------

    csrf_header_name: str = "X-CSRF-Token"

    # ------------------------------------------------------------------
    # Storage (empty string = default SQLite file next to the package)
    # ------------------------------------------------------------------

    session_db_url: str = ""
    auth_db_url: str = ""

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_session_timing(self) -> "Settings":
        """Reject timing values that would make the session state machine incoherent.

        A rotation interval at or above the inactivity timeout would mean an
        identifier is never rotated before the session expires anyway.
        """
        for name in ("session_lifetime", "session_inactivity_timeout", "session_rotation_interval"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name.upper()} must be a positive number of seconds.")
        if self.session_rotation_interval >= self.session_inactivity_timeout:
            raise ValueError("SESSION_ROTATION_INTERVAL must be shorter than SESSION_INACTIVITY_TIMEOUT.")
        if not self.session_secure and not self.debug:
            logger.warning("SESSION_SECURE is off outside DEBUG mode. Session cookies will travel over plain HTTP.")
        return self

    def cookie_config(self) -> SessionCookieConfig:
        """Return the typed cookie contract consumed by the session layer."""
        return SessionCookieConfig(
            name=self.session_cookie_name,
            lifetime=self.session_lifetime,
            path=self.session_path,
            domain=self.session_domain or None,
            secure=self.session_secure,
            httponly=True,  # [S1]
            samesite=self.session_samesite,
        )


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
