"""Redis cache for category read models.

The category tree and flat list are read far more often than the tree changes,
so their serialized responses are cached. Keys carry a generation number that
every mutation bumps: a reader that loaded the tree before a commit can only
write it under the old generation, which no later reader looks up.
Redis being unavailable degrades to uncached reads, never to errors.
"""

from typing import Optional

import structlog
from redis.asyncio import Redis, from_url
from redis.exceptions import RedisError

from taxonomy.config import settings

logger = structlog.get_logger(__name__)

CATEGORY_CACHE_PREFIX = "categories"
CATEGORY_GENERATION_KEY = f"{CATEGORY_CACHE_PREFIX}:generation"


class CacheService:
    """Async Redis cache with TTL and prefix invalidation."""

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self._redis: Optional[Redis] = None
        self.logger = logger.bind(service="cache_service")

    async def _get_redis(self) -> Redis:
        if self._redis is None:
            self._redis = from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
            self.logger.info("redis_connection_created", url=self.redis_url)
        return self._redis

    async def get(self, key: str) -> Optional[str]:
        """Return the cached value, or None on miss or Redis failure."""
        try:
            redis = await self._get_redis()
            value = await redis.get(key)
        except RedisError as e:
            self.logger.error("cache_get_failed", key=key, error=str(e))
            return None

        self.logger.debug("cache_hit" if value else "cache_miss", key=key)
        return value

    async def set(self, key: str, value: str, ttl: int = 300) -> bool:
        """Store ``value`` under ``key`` for ``ttl`` seconds."""
        try:
            redis = await self._get_redis()
            await redis.set(key, value, ex=ttl)
        except RedisError as e:
            self.logger.error("cache_set_failed", key=key, error=str(e))
            return False

        self.logger.debug("cache_set", key=key, ttl=ttl, value_length=len(value))
        return True

    async def get_counter(self, key: str) -> int:
        """Read an integer counter, 0 when missing or on Redis failure."""
        try:
            redis = await self._get_redis()
            value = await redis.get(key)
        except RedisError as e:
            self.logger.error("cache_counter_get_failed", key=key, error=str(e))
            return 0
        return int(value) if value else 0

    async def incr(self, key: str) -> Optional[int]:
        """Atomically increment a counter. Returns the new value, None on error."""
        try:
            redis = await self._get_redis()
            return await redis.incr(key)
        except RedisError as e:
            self.logger.error("cache_incr_failed", key=key, error=str(e))
            return None

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern (e.g. ``categories:*``).

        Returns:
            Number of keys deleted, 0 on error
        """
        try:
            redis = await self._get_redis()
            keys = [key async for key in redis.scan_iter(match=pattern, count=100)]
            deleted = await redis.delete(*keys) if keys else 0
        except RedisError as e:
            self.logger.error("cache_pattern_delete_failed", pattern=pattern, error=str(e))
            return 0

        self.logger.info("cache_pattern_delete", pattern=pattern, keys_deleted=deleted)
        return deleted

    async def health_check(self) -> bool:
        try:
            redis = await self._get_redis()
            await redis.ping()
            return True
        except Exception as e:
            self.logger.error("redis_health_check_failed", error=str(e))
            return False

    async def close(self) -> None:
        """Close the Redis connection (application shutdown)."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            self.logger.info("redis_connection_closed")


# Global cache instance
_cache_instance: Optional[CacheService] = None


def get_cache_service() -> CacheService:
    """Get or create the process-wide cache service."""
    global _cache_instance

    if _cache_instance is None:
        _cache_instance = CacheService(settings.REDIS_URL)
        logger.info("cache_service_initialized", redis_url=settings.REDIS_URL)

    return _cache_instance


async def get_cache() -> CacheService:
    """FastAPI dependency for the cache service."""
    return get_cache_service()


def cache_key_for_categories(view: str, generation: int) -> str:
    """Cache key for a category read model (``tree`` or ``list``)."""
    return f"{CATEGORY_CACHE_PREFIX}:v{generation}:{view}"


async def current_categories_key(cache: CacheService, view: str) -> str:
    """Key for ``view`` under the current cache generation."""
    generation = await cache.get_counter(CATEGORY_GENERATION_KEY)
    return cache_key_for_categories(view, generation)


async def invalidate_categories_cache(cache: Optional[CacheService] = None) -> int:
    """Drop all cached category views. Call after a tree mutation is committed.

    The generation is bumped before deleting, so a write racing with the
    delete lands under a key nobody reads and expires with its TTL.
    """
    cache = cache or get_cache_service()
    generation = await cache.incr(CATEGORY_GENERATION_KEY)
    deleted = await cache.delete_pattern(f"{CATEGORY_CACHE_PREFIX}:v*")
    logger.info("categories_cache_invalidated", generation=generation, keys_deleted=deleted)
    return deleted
