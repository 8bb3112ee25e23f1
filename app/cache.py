"""Read-through cache of public user profiles.

Profiles are stored as JSON under ``user:<id>`` in Redis. When no Redis
URL is configured, or the server cannot be reached, an in-process
fakeredis instance is used instead.
"""

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError
from fakeredis.aioredis import FakeRedis

from .schemas import UserOut

logger = logging.getLogger(__name__)


async def connect_redis(url: str):
    """
    Return a Redis client for ``url`` or a fakeredis fallback.

    Args:
        url (str): Redis connection URL; empty selects fakeredis.

    Returns:
        Redis | FakeRedis: Connected client.
    """
    if not url:
        return FakeRedis(decode_responses=True)
    client = redis.from_url(url, encoding="utf-8", decode_responses=True)
    try:
        await client.ping()
    except (RedisError, OSError) as exc:
        logger.warning("Redis at %s unavailable (%s); using fakeredis", url, exc)
        await client.aclose()
        return FakeRedis(decode_responses=True)
    return client


class UserCache:
    """Cache of ``UserOut`` profiles keyed by user id."""

    def __init__(self, client, ttl_seconds: int = 900):
        self.client = client
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def key(user_id: int) -> str:
        return f"user:{user_id}"

    async def get(self, user_id: int) -> UserOut | None:
        """
        Retrieve a cached profile.

        Args:
            user_id (int): User identifier.

        Returns:
            UserOut | None: Cached profile or ``None``.
        """
        cached = await self.client.get(self.key(user_id))
        if cached:
            return UserOut.model_validate_json(cached)
        return None

    async def set(self, user: UserOut) -> None:
        """Store a profile for ``ttl_seconds``."""
        await self.client.set(
            self.key(user.id), user.model_dump_json(), ex=self.ttl_seconds
        )

    async def invalidate(self, user_id: int) -> None:
        """Drop any cached copy of the user."""
        await self.client.delete(self.key(user_id))
