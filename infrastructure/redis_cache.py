"""Redis implementation of the CacheService interface."""

import redis.asyncio as redis

from exceptions import CacheServiceError
from logging_config import setup_logging

from .interfaces import CacheService

logger = setup_logging()


class RedisCacheService(CacheService):
    """
    Cache service backed by Redis.

    Keys are namespaced with `prefix` so several deployments can share one
    Redis database.
    """

    def __init__(self, client: redis.Redis, prefix: str = "live-transcript:"):
        self._client = client
        self._prefix = prefix

    async def get(self, key: str) -> str | None:
        try:
            value = await self._client.get(self._prefix + key)
        except redis.RedisError as e:
            logger.exception("Redis get failed", extra={"key": key})
            raise CacheServiceError(key, "get", cause=e) from e

        logger.debug("Cache lookup", extra={"key": key, "hit": value is not None})
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self._client.set(self._prefix + key, value, ex=ttl_seconds)
        except redis.RedisError as e:
            logger.exception("Redis set failed", extra={"key": key})
            raise CacheServiceError(key, "set", cause=e) from e

        logger.debug("Cache set", extra={"key": key, "ttl": ttl_seconds})
