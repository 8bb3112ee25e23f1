"""Application configuration and settings management.

This module defines the application settings loaded from environment
variables and provides helpers for accessing the cached settings and
for configuring logging.
"""

import logging
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    Attributes:
        DATABASE_URL: Database connection string.
        DB_TIMEOUT_SECONDS: Upper bound for waiting on a connection or lock.
        SECRET_KEY: Secret key used for JWT signing.
        ALGORITHM: Algorithm used to encode JWT tokens.
        ACCESS_TOKEN_EXPIRE_MINUTES: Session token lifetime in minutes.
        BCRYPT_ROUNDS: bcrypt cost factor for password hashes.
        LOGIN_MAX_ATTEMPTS: Failed logins allowed before a lockout.
        LOGIN_LOCKOUT_MINUTES: Length of a login lockout.
        DEFAULT_PAGE_SIZE: Page size used when a listing does not give one.
        MAX_PAGE_SIZE: Largest page size a client may request.
        ALLOWED_ORIGINS: Allowed origins for CORS.
        REDIS_URL: Redis connection URL for rate limiting and caching.
            An empty value selects an in-process fake Redis.
        USER_CACHE_TTL_SECONDS: Lifetime of cached user profiles.
        AUTH_RATE_LIMIT_TIMES: Requests per window allowed on public auth routes.
        AUTH_RATE_LIMIT_SECONDS: Window length for the auth rate limit.
        ADMIN_EMAIL: Email of the administrator seeded at startup.
        ADMIN_PASSWORD: Password of the seeded administrator.
        ADMIN_NAME: Username of the seeded administrator.
        ADMIN_SECRET_KEY: Shared secret enabling ``POST /auth/create-admin``.
        ENVIRONMENT: ``development`` or ``production``.
        LOG_LEVEL: Root log level.
    """

    DATABASE_URL: str = "sqlite:///./app.db"
    DB_TIMEOUT_SECONDS: int = 30
    SECRET_KEY: str = "dev-secret"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    BCRYPT_ROUNDS: int = Field(default=12, ge=10)
    LOGIN_MAX_ATTEMPTS: int = 5
    LOGIN_LOCKOUT_MINUTES: int = 15
    DEFAULT_PAGE_SIZE: int = 15
    MAX_PAGE_SIZE: int = 100
    ALLOWED_ORIGINS: List[str] = ["*"]
    REDIS_URL: str = "redis://redis:6379"
    USER_CACHE_TTL_SECONDS: int = 15 * 60
    AUTH_RATE_LIMIT_TIMES: int = 20
    AUTH_RATE_LIMIT_SECONDS: int = 60
    ADMIN_EMAIL: str | None = None
    ADMIN_PASSWORD: str | None = None
    ADMIN_NAME: str = "Admin"
    ADMIN_SECRET_KEY: str | None = None
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    class Config:
        """Pydantic configuration for loading environment variables."""

        env_file = ".env"
        extra = "allow"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings.

    The settings object is cached to prevent reloading environment
    variables multiple times during application lifetime.
    """

    return Settings()


def configure_logging(settings: Settings) -> None:
    """Install a single stream handler on the root logger.

    Args:
        settings (Settings): Application settings providing ``LOG_LEVEL``.
    """

    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
