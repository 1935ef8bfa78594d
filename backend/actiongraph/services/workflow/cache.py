"""Redis-based caching layer for definition validation results.

This module caches the topology analysis of valid workflow definitions so
repeated runs of the same definition skip structural validation.
Cache key format: "validation:{fingerprint}" where fingerprint is the SHA-256
of the definition's canonical JSON.
TTL: 5 minutes (300 seconds) by default, configurable via settings.
Invalid definitions are never cached.
"""

import json
import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from redis.asyncio import ConnectionPool, Redis
from redis.exceptions import RedisError

from actiongraph.core.config import get_settings

logger = logging.getLogger(__name__)

# Cache key prefix
VALIDATION_CACHE_PREFIX = "validation"

# Default TTL: 5 minutes
DEFAULT_CACHE_TTL = 300


class ValidationCache:
    """Redis-based cache for definition topology results.

    Features:
    - Cache key: definition fingerprint
    - TTL: 5 minutes (configurable)
    - Graceful degradation when Redis is unavailable
    - In-memory fallback when no Redis URL is configured
    """

    def __init__(self, redis_url: str | None = None, ttl: int = DEFAULT_CACHE_TTL):
        """Initialize the validation cache.

        Args:
            redis_url: Redis connection URL (in-memory cache if None)
            ttl: Cache TTL in seconds (default: 300)
        """
        self.ttl = ttl
        self._pool: ConnectionPool | None = None
        self._redis: Redis | None = None
        self._in_memory_cache: dict[str, tuple[dict[str, Any], datetime]] = {}
        self._use_in_memory = False

        if redis_url:
            self._initialize_redis(redis_url)

        # If Redis unavailable, use in-memory cache
        if self._redis is None:
            self._use_in_memory = True
            logger.info("Using in-memory cache for validation results")

    def _initialize_redis(self, redis_url: str) -> None:
        try:
            self._pool = ConnectionPool.from_url(
                redis_url,
                decode_responses=True,
            )
            self._redis = Redis(connection_pool=self._pool)
            logger.info("Validation cache initialized with Redis")
        except (RedisError, ValueError) as e:
            logger.warning(f"Failed to initialize Redis cache: {e}")
            self._pool = None
            self._redis = None

    @property
    def uses_redis(self) -> bool:
        """Whether entries are stored in Redis rather than in process."""
        return not self._use_in_memory

    def _make_cache_key(self, fingerprint: str) -> str:
        return f"{VALIDATION_CACHE_PREFIX}:{fingerprint}"

    async def get(self, fingerprint: str) -> dict[str, Any] | None:
        """Get a cached topology result.

        Args:
            fingerprint: Definition fingerprint

        Returns:
            Cached result dict, or None if not found/expired/unreadable
        """
        cache_key = self._make_cache_key(fingerprint)

        if self._use_in_memory:
            if cache_key in self._in_memory_cache:
                cached_data, expiry_time = self._in_memory_cache[cache_key]
                if datetime.now(UTC) < expiry_time:
                    logger.debug(f"In-memory cache HIT: {cache_key}")
                    return dict(cached_data)
                # Remove expired entry
                del self._in_memory_cache[cache_key]
                logger.debug(f"In-memory cache expired: {cache_key}")
            logger.debug(f"In-memory cache MISS: {cache_key}")
            return None

        try:
            cached_data = await self._redis.get(cache_key)
        except RedisError as e:
            logger.warning(f"Redis get failed: {e}")
            return None

        if not cached_data:
            logger.debug(f"Redis cache MISS: {cache_key}")
            return None

        try:
            result = json.loads(cached_data)
        except json.JSONDecodeError as e:
            logger.warning(f"Cache deserialization failed: {e}")
            return None
        logger.debug(f"Redis cache HIT: {cache_key}")
        return result

    async def set(self, fingerprint: str, result: dict[str, Any]) -> bool:
        """Cache a topology result with TTL.

        Args:
            fingerprint: Definition fingerprint
            result: JSON-compatible topology result

        Returns:
            True if successfully cached, False otherwise
        """
        cache_key = self._make_cache_key(fingerprint)

        if self._use_in_memory:
            expiry_time = datetime.now(UTC) + timedelta(seconds=self.ttl)
            self._in_memory_cache[cache_key] = (dict(result), expiry_time)
            logger.debug(f"In-memory cached: {cache_key} (TTL: {self.ttl}s)")
            return True

        try:
            await self._redis.setex(cache_key, self.ttl, json.dumps(result))
            logger.debug(f"Redis cached: {cache_key} (TTL: {self.ttl}s)")
            return True
        except RedisError as e:
            logger.warning(f"Redis set failed: {e}")
            return False
        except (TypeError, ValueError) as e:
            logger.warning(f"Cache serialization failed: {e}")
            return False

    async def delete(self, fingerprint: str | None = None) -> bool:
        """Invalidate one entry, or every validation entry when fingerprint is None.

        Returns:
            True if deleted, False otherwise
        """
        if self._use_in_memory:
            if fingerprint is not None:
                self._in_memory_cache.pop(self._make_cache_key(fingerprint), None)
            else:
                count = len(self._in_memory_cache)
                self._in_memory_cache.clear()
                logger.debug(f"In-memory cache invalidated {count} entries")
            return True

        try:
            if fingerprint is not None:
                await self._redis.delete(self._make_cache_key(fingerprint))
            else:
                keys = await self._redis.keys(f"{VALIDATION_CACHE_PREFIX}:*")
                if keys:
                    await self._redis.delete(*keys)
                    logger.debug(f"Invalidated {len(keys)} validation cache entries")
            return True
        except RedisError as e:
            logger.warning(f"Redis delete failed: {e}")
            return False

    async def close(self) -> None:
        """Close Redis connection pool."""
        if self._redis is not None:
            await self._redis.aclose()
        if self._pool is not None:
            await self._pool.aclose()
            logger.info("Validation cache connection closed")


# Global cache instance (initialized from settings)
_global_cache: ValidationCache | None = None


def get_validation_cache() -> ValidationCache:
    """Get or create the global validation cache instance.

    Returns:
        ValidationCache backed by Redis when REDIS_URL is set, in-memory otherwise
    """
    global _global_cache

    if _global_cache is None:
        settings = get_settings()
        redis_url = str(settings.REDIS_URL) if settings.REDIS_URL else None
        _global_cache = ValidationCache(redis_url=redis_url, ttl=settings.VALIDATION_CACHE_TTL)

    return _global_cache


def reset_validation_cache() -> None:
    """Drop the global cache instance (used by tests and settings reloads)."""
    global _global_cache
    _global_cache = None


__all__ = [
    "DEFAULT_CACHE_TTL",
    "VALIDATION_CACHE_PREFIX",
    "ValidationCache",
    "get_validation_cache",
    "reset_validation_cache",
]
