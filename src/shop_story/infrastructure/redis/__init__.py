"""Redis client and cache service with graceful degradation."""

import time
from typing import Any, TypeVar

import orjson
import redis.asyncio as aioredis
import structlog
from pydantic import BaseModel

from shared.constants import REDIS_RETRY_SECONDS
from shop_story.config import get_settings

logger = structlog.get_logger()

ModelT = TypeVar("ModelT", bound=BaseModel)

_redis_client: aioredis.Redis | None = None
_retry_at: float = 0.0


async def get_redis_client() -> aioredis.Redis | None:
    """
    Get or create the global async Redis client, or None when Redis is off or down.

    A failed connect is not retried until ``REDIS_RETRY_SECONDS`` have passed,
    so requests during an outage do not each wait on the connect timeout.
    """
    global _redis_client, _retry_at
    settings = get_settings()
    if not settings.redis_enabled:
        return None
    if _redis_client is None:
        if time.monotonic() < _retry_at:
            return None
        try:
            _redis_client = aioredis.from_url(
                settings.redis_url,
                decode_responses=False,
                socket_connect_timeout=2,
                socket_timeout=2,
                retry_on_timeout=True,
            )
            await _redis_client.ping()
            logger.info("Redis connection established", host=settings.redis_host)
        except Exception as e:
            logger.warning("Redis unavailable, falling back to memory", error=str(e))
            _redis_client = None
            _retry_at = time.monotonic() + REDIS_RETRY_SECONDS
    return _redis_client


async def mark_redis_unavailable(error: Exception) -> None:
    """Drop the shared client after a runtime failure and start the retry backoff."""
    global _redis_client, _retry_at
    client, _redis_client = _redis_client, None
    _retry_at = time.monotonic() + REDIS_RETRY_SECONDS
    logger.warning(
        "Redis failed, using memory until retry",
        error=str(error),
        retry_in_seconds=REDIS_RETRY_SECONDS,
    )
    if client is not None:
        try:
            await client.aclose()
        except Exception as e:
            logger.debug("Error closing failed Redis client", error=str(e))


async def close_redis() -> None:
    """Close the Redis connection on shutdown."""
    global _redis_client, _retry_at
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
    _retry_at = 0.0


def curation_sets_key(user_id: str) -> str:
    return f"{get_settings().store_key_prefix}:cache:sets:{user_id}"


def curation_recommendations_key(user_id: str) -> str:
    return f"{get_settings().store_key_prefix}:cache:recommendations:{user_id}"


class CacheService:
    """Async Redis cache with orjson serialization. No-ops if Redis is unavailable."""

    def __init__(self, client: aioredis.Redis | None):
        self.client = client

    async def get(self, key: str) -> Any | None:
        if not self.client:
            return None
        try:
            data = await self.client.get(key)
            if data:
                return orjson.loads(data)
        except Exception as e:
            logger.warning("Cache get failed", key=key, error=str(e))
        return None

    async def set(self, key: str, value: Any, ttl_seconds: int = 300) -> None:
        if not self.client:
            return
        try:
            await self.client.set(key, orjson.dumps(value), ex=ttl_seconds)
        except Exception as e:
            logger.warning("Cache set failed", key=key, error=str(e))

    async def delete(self, *keys: str) -> None:
        if not self.client or not keys:
            return
        try:
            await self.client.delete(*keys)
        except Exception as e:
            logger.warning("Cache delete failed", keys=list(keys), error=str(e))

    async def get_models(self, key: str, model: type[ModelT]) -> list[ModelT] | None:
        """Cached list of ``model`` instances, or None on a miss or an unreadable entry."""
        data = await self.get(key)
        if not isinstance(data, list):
            return None
        try:
            return [model.model_validate(item) for item in data]
        except ValueError as e:
            logger.warning("Discarding stale cache entry", key=key, error=str(e))
            return None

    async def set_models(
        self, key: str, items: list[BaseModel], ttl_seconds: int = 300
    ) -> None:
        await self.set(key, [item.model_dump(mode="json") for item in items], ttl_seconds)

    async def invalidate_user(self, user_id: str) -> None:
        """Drop cached curation output for a user after their profile changes."""
        await self.delete(curation_sets_key(user_id), curation_recommendations_key(user_id))

    async def health_check(self) -> bool:
        if not self.client:
            return False
        try:
            return await self.client.ping()
        except Exception:
            return False


async def get_cache() -> CacheService:
    """FastAPI dependency returning a cache bound to the shared client."""
    return CacheService(await get_redis_client())
