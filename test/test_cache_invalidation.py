"""
Tests for the cache invalidation coordinator.
"""

import pytest
from utils.mocks import RecordingCache

from homepage_cms.services.cache_invalidation import CacheInvalidationCoordinator


@pytest.fixture
def coordinator(cache) -> CacheInvalidationCoordinator:
    return CacheInvalidationCoordinator(cache)


class TestPlans:
    """Tests for which targets each event purges"""

    def test_publish_plan(self):
        plan = CacheInvalidationCoordinator.publish_plan(7, "fr")

        assert plan.keys == ["homepage:content:fr:v2", "section:7:detail", "admin:sections:fr:all"]
        assert plan.tags == ["homepage:fr", "section:7", "admin:fr"]
        assert plan.paths == ["/fr", "/"]
        assert plan.generations == ["homepage:generation:fr"]

    def test_draft_update_leaves_public_content(self):
        plan = CacheInvalidationCoordinator.draft_update_plan(7, "fr")

        assert "homepage:content:fr:v2" not in plan.keys
        assert plan.paths == []
        assert plan.tags == ["admin:fr", "versions:7"]
        assert plan.generations == []

    def test_reorder_plan(self):
        plan = CacheInvalidationCoordinator.reorder_plan("fr")

        assert plan.keys == ["homepage:content:fr:v2", "admin:sections:fr:all"]
        assert plan.paths == ["/fr"]

    def test_schedule_execute_plan(self):
        plan = CacheInvalidationCoordinator.schedule_execute_plan("fr")

        assert plan.keys == ["homepage:content:fr:v2", "sections:scheduled:active"]
        assert plan.tags == []

    def test_revalidate_plan(self):
        locale_only = CacheInvalidationCoordinator.revalidate_plan("fr")
        with_section = CacheInvalidationCoordinator.revalidate_plan("fr", 7)

        assert locale_only.keys == ["homepage:content:fr:v2"]
        assert locale_only.paths == ["/fr", "/"]
        assert with_section.keys == ["homepage:content:fr:v2", "section:7:detail"]
        assert with_section.tags == ["homepage:fr", "section:7"]
        assert with_section.generations == ["homepage:generation:fr"]

    def test_targets_order(self):
        plan = CacheInvalidationCoordinator.associations_plan(3, "en")

        assert plan.targets() == [
            ("key", "homepage:content:en:v2"),
            ("key", "section:3:detail"),
            ("tag", "homepage:en"),
            ("tag", "section:3"),
            ("path", "/en"),
        ]


class TestDispatch:
    """Tests for purging and the retry queue"""

    @pytest.mark.asyncio
    async def test_successful_purge(self, coordinator, cache):
        report = await coordinator.on_reorder("en")

        assert report.ok
        assert report.event == "reorder"
        assert report.purged == [
            "key:homepage:content:en:v2",
            "key:admin:sections:en:all",
            "tag:homepage:en",
            "tag:admin:en",
            "path:/en",
        ]
        assert coordinator.pending == []

    @pytest.mark.asyncio
    async def test_purge_removes_cached_entry(self, coordinator, cache):
        await cache.set("homepage:content:en:v2", [{"section_id": 1}], 60, tags=["homepage", "homepage:en"])

        await coordinator.on_publish(1, "en")

        assert await cache.get("homepage:content:en:v2") is None

    @pytest.mark.asyncio
    async def test_homepage_events_advance_generation(self, coordinator, cache):
        await coordinator.on_publish(1, "en")
        await coordinator.on_reorder("en")
        await coordinator.on_draft_update(1, "en")

        assert cache.generations == {"homepage:generation:en": 2}

    @pytest.mark.asyncio
    async def test_failure_is_queued_not_raised(self, coordinator, cache):
        cache.fail_purges = True

        report = await coordinator.on_schedule_execute("en")

        assert not report.ok
        assert report.failed == ["key:homepage:content:en:v2", "key:sections:scheduled:active"]
        assert coordinator.pending == report.failed

    @pytest.mark.asyncio
    async def test_raising_cache_counts_as_failure(self):
        class ExplodingCache(RecordingCache):
            async def invalidate_key(self, key):
                raise ConnectionError("redis down")

        coordinator = CacheInvalidationCoordinator(ExplodingCache())

        report = await coordinator.on_schedule_execute("en")

        assert len(report.failed) == 2
        assert len(coordinator.pending) == 2

    @pytest.mark.asyncio
    async def test_queue_deduplicates(self, coordinator, cache):
        cache.fail_purges = True

        await coordinator.on_reorder("en")
        await coordinator.on_reorder("en")

        assert len(coordinator.pending) == 5

    @pytest.mark.asyncio
    async def test_retry_pending_drains_queue(self, coordinator, cache):
        cache.fail_purges = True
        await coordinator.on_schedule_execute("en")
        cache.fail_purges = False
        cache.reset()

        report = await coordinator.retry_pending()

        assert report.event == "retry"
        assert report.ok
        assert cache.purged("key") == ["homepage:content:en:v2", "sections:scheduled:active"]
        assert coordinator.pending == []

    @pytest.mark.asyncio
    async def test_retry_keeps_failures_queued(self, coordinator, cache):
        cache.fail_purges = True
        await coordinator.on_schedule_execute("en")

        report = await coordinator.retry_pending()

        assert not report.ok
        assert len(coordinator.pending) == 2

    @pytest.mark.asyncio
    async def test_later_success_clears_queued_target(self, coordinator, cache):
        cache.fail_purges = True
        await coordinator.on_schedule_execute("en")
        cache.fail_purges = False

        await coordinator.on_reorder("en")

        assert coordinator.pending == ["key:sections:scheduled:active"]

    @pytest.mark.asyncio
    async def test_retry_with_empty_queue(self, coordinator, cache):
        report = await coordinator.retry_pending()

        assert report.ok
        assert cache.purges == []
