"""Process-wide stores owned by the application instance.

The session issuer, login throttle and user cache are built once when
the application starts and hung on ``app.state.services``; request
dependencies fetch them from there so tests can install fresh ones.
"""

from dataclasses import dataclass
from datetime import timedelta

from fastapi import Request

from .cache import UserCache
from .core import Settings
from .sessions import SessionIssuer
from .throttle import LoginThrottle


@dataclass
class AppServices:
    issuer: SessionIssuer
    throttle: LoginThrottle
    user_cache: UserCache


def build_services(settings: Settings, redis_client) -> AppServices:
    """
    Construct the in-memory stores from settings.

    Args:
        settings (Settings): Application settings.
        redis_client: Redis (or fakeredis) client backing the user cache.

    Returns:
        AppServices: Freshly constructed stores.
    """
    return AppServices(
        issuer=SessionIssuer(
            settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
            default_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        ),
        throttle=LoginThrottle(
            max_attempts=settings.LOGIN_MAX_ATTEMPTS,
            lockout=timedelta(minutes=settings.LOGIN_LOCKOUT_MINUTES),
        ),
        user_cache=UserCache(redis_client, ttl_seconds=settings.USER_CACHE_TTL_SECONDS),
    )


def get_services(request: Request) -> AppServices:
    """FastAPI dependency returning the application's stores."""
    return request.app.state.services
