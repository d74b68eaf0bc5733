"""
Tests for the Redis cache manager.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from homepage_cms.utils.cache import CacheManager


def redis_mock() -> MagicMock:
    mock_redis = MagicMock()
    for method in ("get", "setex", "sadd", "expire", "delete", "smembers", "publish", "incr"):
        setattr(mock_redis, method, AsyncMock())
    return mock_redis


@pytest.fixture
def cm():
    manager = CacheManager(enabled=True)
    manager._redis = redis_mock()
    return manager


class TestCacheReadWrite:
    """Tests for get and set"""

    @pytest.mark.asyncio
    async def test_get_decodes_json(self, cm):
        cm._redis.get.return_value = '[{"section_id": 1}]'

        assert await cm.get("homepage:content:en:v2") == [{"section_id": 1}]

    @pytest.mark.asyncio
    async def test_get_error_is_a_miss(self, cm):
        """Redis errors never reach the caller of get()"""
        cm._redis.get.side_effect = ConnectionError("down")

        assert await cm.get("homepage:content:en:v2") is None

    @pytest.mark.asyncio
    async def test_set_registers_tags(self, cm):
        ok = await cm.set("homepage:content:en:v2", [], 3600, tags=["homepage", "homepage:en"])

        assert ok is True
        cm._redis.setex.assert_awaited_once_with("homepage:content:en:v2", 3600, "[]")
        cm._redis.sadd.assert_any_await("tag:homepage", "homepage:content:en:v2")
        cm._redis.sadd.assert_any_await("tag:homepage:en", "homepage:content:en:v2")
        cm._redis.expire.assert_any_await("tag:homepage:en", 3600)

    @pytest.mark.asyncio
    async def test_set_uses_default_ttl(self, cm):
        await cm.set("k", {"a": 1})

        cm._redis.setex.assert_awaited_once_with("k", CacheManager.TTL_DEFAULT, '{"a": 1}')

    @pytest.mark.asyncio
    async def test_disabled_cache_stores_nothing(self):
        cm = CacheManager(enabled=False)

        assert await cm.set("k", 1) is False
        assert await cm.get("k") is None

    @patch("homepage_cms.utils.cache.record_cache_hit")
    @patch("homepage_cms.utils.cache.record_cache_miss")
    @pytest.mark.asyncio
    async def test_hit_and_miss_metrics(self, mock_miss, mock_hit, cm):
        cm._redis.get.side_effect = ['{"key": "value"}', None]

        await cm.get("present")
        await cm.get("absent")

        mock_hit.assert_called_once_with("redis")
        mock_miss.assert_called_once_with("redis")


class TestCacheInvalidation:
    """Tests for key, tag and path purges"""

    @pytest.mark.asyncio
    async def test_invalidate_key(self, cm):
        assert await cm.invalidate_key("section:1:detail") is True
        cm._redis.delete.assert_awaited_once_with("section:1:detail")

    @pytest.mark.asyncio
    async def test_invalidate_tag_deletes_members(self, cm):
        cm._redis.smembers.return_value = {"homepage:content:en:v2"}

        assert await cm.invalidate_tag("homepage:en") is True
        cm._redis.smembers.assert_awaited_once_with("tag:homepage:en")
        cm._redis.delete.assert_any_await("homepage:content:en:v2")
        cm._redis.delete.assert_any_await("tag:homepage:en")

    @pytest.mark.asyncio
    async def test_invalidate_empty_tag(self, cm):
        cm._redis.smembers.return_value = set()

        assert await cm.invalidate_tag("admin:en") is True
        cm._redis.delete.assert_awaited_once_with("tag:admin:en")

    @pytest.mark.asyncio
    async def test_refresh_path_publishes(self, cm):
        assert await cm.refresh_path("/en") is True
        cm._redis.delete.assert_awaited_once_with("render:path:/en")
        cm._redis.publish.assert_awaited_once_with("cms:revalidate", "/en")

    @pytest.mark.asyncio
    async def test_failed_purge_reports_false(self, cm):
        cm._redis.delete.side_effect = ConnectionError("down")

        assert await cm.invalidate_key("k") is False
        assert await cm.invalidate_tag("t") is False
        assert await cm.refresh_path("/en") is False

    @pytest.mark.asyncio
    async def test_unreachable_cache_fails_purges(self):
        """A configured cache that lost Redis cannot confirm purges"""
        cm = CacheManager(enabled=True)
        cm._enabled = False
        cm._last_connect_attempt = float("inf")

        assert await cm.invalidate_key("k") is False

    @pytest.mark.asyncio
    async def test_disabled_cache_purges_succeed(self):
        cm = CacheManager(enabled=False)

        assert await cm.invalidate_key("k") is True
        assert await cm.invalidate_tag("t") is True
        assert await cm.refresh_path("/") is True


class TestGenerations:
    """Tests for the homepage generation counters"""

    @pytest.mark.asyncio
    async def test_missing_counter_reads_zero(self, cm):
        cm._redis.get.return_value = None

        assert await cm.get_generation("homepage:generation:en") == 0

    @pytest.mark.asyncio
    async def test_bump_increments(self, cm):
        cm._redis.get.return_value = "3"

        assert await cm.bump_generation("homepage:generation:en") is True
        cm._redis.incr.assert_awaited_once_with("homepage:generation:en")
        assert await cm.get_generation("homepage:generation:en") == 3

    @pytest.mark.asyncio
    async def test_unreachable_counter(self, cm):
        cm._redis.get.side_effect = ConnectionError("down")
        cm._redis.incr.side_effect = ConnectionError("down")

        assert await cm.get_generation("homepage:generation:en") is None
        assert await cm.bump_generation("homepage:generation:en") is False
