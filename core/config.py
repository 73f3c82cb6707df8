"""
core/config.py -- Better Demo settings, read from the environment and .env.

Every setting the app reads is a field on Settings; the env var name is the
upper-cased field name (mongodb_uri -> MONGODB_URI, github_client_id ->
GITHUB_CLIENT_ID). Other modules call get_settings(), never os.environ.

get_settings() builds Settings once and caches it, so module-level reads at
import time (auth/tokens.py, auth/oauth.py, core/limiter.py) and request-time
reads see the same values. Tests set environment variables before the first
import.

SECRET_KEY signs the session cookie JWT and the Starlette session (OAuth
state, toasts). It is required outside DEBUG and must be 32+ characters.

Layer rule: core/ is the kernel. This module may not import from api/, web/,
or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("betterdemo.config")


class Settings(BaseSettings):
    """Application settings. SECRET_KEY is the only value production must supply."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    secret_key: str = ""
    app_url: str = "http://localhost:3000"
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost:3000"]

    # ------------------------------------------------------------------
    # Database
    # ------------------------------------------------------------------

    mongodb_uri: str = "mongodb://localhost:27017/better-demo"
    mongodb_timeout_ms: int = 5000

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    secure_cookies: bool = False
    # 7 days
    session_expire_seconds: int = 7 * 24 * 3600
    # Server-side lifetime of a session created with remember_me=False.
    # The cookie itself is a browser-session cookie in that case.
    short_session_expire_seconds: int = 24 * 3600
    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # OAuth providers (empty string means the provider is disabled)
    # ------------------------------------------------------------------

    github_client_id: str = ""
    github_client_secret: str = ""

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True
    auth_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def check_secrets(self) -> "Settings":
        """Check SECRET_KEY and BCRYPT_ROUNDS once every field is loaded.

        With DEBUG on, a missing key is replaced by a random one (sessions
        then end on restart). With DEBUG off, a missing key stops startup.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("SECRET_KEY not set; using a random key for this DEBUG run. Sessions end on restart.")
            else:
                raise ValueError("SECRET_KEY must be set (or run with DEBUG=true for local development).")
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the cached Settings (call get_settings.cache_clear() to reload)."""
    return Settings()
