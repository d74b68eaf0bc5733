"""
Cache Utility Module

Redis-backed cache for rendered homepage data, with tag sets and rendered
path invalidation.
"""

import json
import logging
import time
from typing import Any

import redis.asyncio as redis

from homepage_cms.config import settings
from homepage_cms.utils.metrics import REDIS_CONNECTED, record_cache_hit, record_cache_miss

logger = logging.getLogger(__name__)


class CacheManager:
    """
    Manages Redis-based caching for the engine.

    Provides:
    - Key-value caching with TTL
    - Tag sets (``tag:{name}``) of member keys for group purges
    - Rendered path invalidation for the storefront

    Reads degrade to a miss when Redis is unreachable. Invalidations report
    ``False`` instead, so callers can retry them.
    """

    TAG_PREFIX = "tag:"
    PATH_PREFIX = "render:path:"
    REVALIDATE_CHANNEL = "cms:revalidate"

    TTL_DEFAULT = 300

    def __init__(self, enabled: bool | None = None):
        self._redis: redis.Redis | None = None
        self._pool: redis.ConnectionPool | None = None
        # A cache that is switched off holds nothing, so purges trivially succeed
        self._configured = settings.cache_enabled if enabled is None else enabled
        self._enabled = self._configured
        self._last_connect_attempt: float = 0

    async def connect(self) -> None:
        """Establish connection to Redis from redis_url or individual params."""
        if self._redis is not None or not self._configured:
            return

        self._last_connect_attempt = time.time()
        try:
            if settings.redis_url:
                self._pool = redis.ConnectionPool.from_url(settings.redis_url, decode_responses=True)
            else:
                self._pool = redis.ConnectionPool(
                    host=settings.redis_host,
                    port=settings.redis_port,
                    db=settings.redis_db,
                    password=settings.redis_password,
                    decode_responses=True,
                )

            self._redis = redis.Redis(connection_pool=self._pool)
            await self._redis.ping()
            REDIS_CONNECTED.set(1)
            logger.info("Cache: Successfully connected to Redis")
        except Exception as e:
            REDIS_CONNECTED.set(0)
            logger.warning(f"Cache: Failed to connect to Redis: {e}. Caching disabled.")
            self._redis = None
            self._enabled = False

    async def disconnect(self) -> None:
        """Close Redis connection"""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
        if self._pool:
            await self._pool.aclose()
            self._pool = None
        logger.info("Cache: Disconnected from Redis")

    async def _maybe_retry_connect(self) -> None:
        """Re-attempt connection after a 30-second cooldown to allow self-healing."""
        if self._configured and not self._enabled and time.time() - self._last_connect_attempt >= 30:
            logger.info("Cache: retrying Redis connection after cooldown...")
            self._redis = None
            self._pool = None
            self._enabled = True
            await self.connect()

    async def _client(self) -> redis.Redis | None:
        await self._maybe_retry_connect()
        if not self._enabled:
            return None
        if not self._redis:
            await self.connect()
        return self._redis

    async def get(self, key: str) -> Any | None:
        """
        Get a cached value by key.

        Args:
            key: Cache key

        Returns:
            Cached value or None if not found
        """
        try:
            client = await self._client()
            if not client:
                return None

            data = await client.get(key)
            if data:
                logger.debug(f"Cache HIT: {key}")
                record_cache_hit("redis")
                return json.loads(data)

            logger.debug(f"Cache MISS: {key}")
            record_cache_miss("redis")
            return None
        except Exception as e:
            logger.warning(f"Cache get error for {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl: int | None = None, tags: list[str] | None = None) -> bool:
        """
        Set a cached value with optional TTL and tags.

        Args:
            key: Cache key
            value: Value to cache (must be JSON serializable)
            ttl: Time to live in seconds (default: TTL_DEFAULT)
            tags: Tag names the key is registered under

        Returns:
            True if successful, False otherwise
        """
        try:
            client = await self._client()
            if not client:
                return False

            ttl = ttl or self.TTL_DEFAULT
            serialized = json.dumps(value, default=str)
            await client.setex(key, ttl, serialized)
            for tag in tags or []:
                tag_key = f"{self.TAG_PREFIX}{tag}"
                await client.sadd(tag_key, key)
                await client.expire(tag_key, ttl)
            logger.debug(f"Cache SET: {key} (TTL: {ttl}s, tags: {tags or []})")
            return True
        except Exception as e:
            logger.warning(f"Cache set error for {key}: {e}")
            return False

    async def invalidate_key(self, key: str) -> bool:
        """Delete one cached key. False if the purge could not be performed."""
        if not self._configured:
            return True
        try:
            client = await self._client()
            if not client:
                return False
            await client.delete(key)
            logger.debug(f"Cache DELETE: {key}")
            return True
        except Exception as e:
            logger.warning(f"Cache delete error for {key}: {e}")
            return False

    async def invalidate_tag(self, tag: str) -> bool:
        """Delete every key registered under ``tag`` and the tag set itself."""
        if not self._configured:
            return True
        tag_key = f"{self.TAG_PREFIX}{tag}"
        try:
            client = await self._client()
            if not client:
                return False
            members = await client.smembers(tag_key)
            if members:
                await client.delete(*members)
            await client.delete(tag_key)
            logger.debug(f"Cache DELETE TAG: {tag} ({len(members or [])} keys)")
            return True
        except Exception as e:
            logger.warning(f"Cache tag invalidation error for {tag}: {e}")
            return False

    async def get_generation(self, key: str) -> int | None:
        """Current value of a generation counter; None while Redis is unreachable."""
        try:
            client = await self._client()
            if not client:
                return None
            return int(await client.get(key) or 0)
        except Exception as e:
            logger.warning(f"Cache generation read error for {key}: {e}")
            return None

    async def bump_generation(self, key: str) -> bool:
        """
        Advance a generation counter ahead of a purge.

        Readers compare the counter around a fill and drop fills that an
        invalidation overtook.
        """
        if not self._configured:
            return True
        try:
            client = await self._client()
            if not client:
                return False
            await client.incr(key)
            return True
        except Exception as e:
            logger.warning(f"Cache generation bump error for {key}: {e}")
            return False

    async def refresh_path(self, path: str) -> bool:
        """Drop the rendered page for ``path`` and ask renderers to rebuild it."""
        if not self._configured:
            return True
        try:
            client = await self._client()
            if not client:
                return False
            await client.delete(f"{self.PATH_PREFIX}{path}")
            await client.publish(self.REVALIDATE_CHANNEL, path)
            logger.debug(f"Cache REFRESH PATH: {path}")
            return True
        except Exception as e:
            logger.warning(f"Cache path refresh error for {path}: {e}")
            return False


# Global cache manager instance
cache_manager = CacheManager()
