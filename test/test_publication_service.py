"""
Tests for the publication controller.
"""

import asyncio

import pytest
from utils.fixtures import START, hero_content
from utils.mocks import FailingStore

from homepage_cms.dependencies import build_services
from homepage_cms.exceptions import InvalidStateError, SectionNotFoundError, VersionNotFoundError
from homepage_cms.models.section import SectionStatus, SectionType
from homepage_cms.schemas.section import SectionCreate


async def published_versions(store, section_id):
    return [v for v in await store.list_versions(section_id, limit=100) if v.is_published]


class TestPublish:
    """Tests for making a version live."""

    @pytest.mark.asyncio
    async def test_draft_then_publish(self, services, cache, clock, hero_section):
        version = await services.versions.create_draft(hero_section.id, hero_content())
        cache.reset()
        clock.advance(minutes=5)

        result = await services.publisher.publish(hero_section.id, version.id)

        assert result.version_id == version.id
        assert result.version_number == 1
        assert result.published_at == clock.now()
        assert result.cache_invalidated is True

        section = await services.sections.get_section(hero_section.id)
        assert section.status == SectionStatus.PUBLISHED
        assert section.published_version_id == version.id
        assert cache.purged("key").count("homepage:content:en:v2") == 1

    @pytest.mark.asyncio
    async def test_publish_invalidation_targets(self, services, cache, hero_section):
        version = await services.versions.create_draft(hero_section.id, hero_content())
        cache.reset()

        await services.publisher.publish(hero_section.id, version.id)

        assert cache.purged("key") == [
            "homepage:content:en:v2",
            f"section:{hero_section.id}:detail",
            "admin:sections:en:all",
        ]
        assert cache.purged("tag") == ["homepage:en", f"section:{hero_section.id}", "admin:en"]
        assert cache.purged("path") == ["/en", "/"]

    @pytest.mark.asyncio
    async def test_single_published_version(self, services, store, hero_section):
        v1 = await services.versions.create_draft(hero_section.id, hero_content("One"))
        v2 = await services.versions.create_draft(hero_section.id, hero_content("Two"))

        await services.publisher.publish(hero_section.id, v1.id)
        await services.publisher.publish(hero_section.id, v2.id)

        live = await published_versions(store, hero_section.id)
        assert [v.id for v in live] == [v2.id]
        section = await services.sections.get_section(hero_section.id)
        assert section.published_version_id == v2.id

    @pytest.mark.asyncio
    async def test_publish_is_idempotent(self, services, cache, clock, hero_section):
        version = await services.versions.create_draft(hero_section.id, hero_content())
        first = await services.publisher.publish(hero_section.id, version.id)
        cache.reset()
        clock.advance(hours=1)

        second = await services.publisher.publish(hero_section.id, version.id)

        assert second.published_at == first.published_at == START
        assert second.cache_invalidated is False
        assert cache.purges == []

    @pytest.mark.asyncio
    async def test_superseded_version_cannot_be_republished(self, services, hero_section):
        v1 = await services.versions.create_draft(hero_section.id, hero_content("One"))
        v2 = await services.versions.create_draft(hero_section.id, hero_content("Two"))
        await services.publisher.publish(hero_section.id, v1.id)
        await services.publisher.publish(hero_section.id, v2.id)

        with pytest.raises(InvalidStateError):
            await services.publisher.publish(hero_section.id, v1.id)

    @pytest.mark.asyncio
    async def test_published_content_is_immutable(self, services, hero_section):
        v1 = await services.versions.create_draft(hero_section.id, hero_content("Live"))
        await services.publisher.publish(hero_section.id, v1.id)

        await services.versions.create_draft(hero_section.id, hero_content("Edited"))
        await services.versions.revert_to_version(hero_section.id, v1.id)

        stored = await services.versions.get_version(hero_section.id, v1.id)
        assert stored.content == hero_content("Live")
        assert stored.is_published is True

    @pytest.mark.asyncio
    async def test_unknown_section(self, services):
        with pytest.raises(SectionNotFoundError):
            await services.publisher.publish(404, 1)

    @pytest.mark.asyncio
    async def test_version_from_other_section(self, services, hero_section):
        other = await services.sections.create_section(
            SectionCreate(section_type=SectionType.NEWSLETTER, section_key="signup", content={"title": "Join"})
        )

        with pytest.raises(VersionNotFoundError):
            await services.publisher.publish(hero_section.id, other.draft_version_id)

    @pytest.mark.asyncio
    async def test_concurrent_publishes_leave_one_live(self, services, store, hero_section):
        versions = [await services.versions.create_draft(hero_section.id, hero_content(f"V{i}")) for i in range(3)]

        results = await asyncio.gather(
            *(services.publisher.publish(hero_section.id, v.id) for v in versions), return_exceptions=True
        )

        live = await published_versions(store, hero_section.id)
        section = await services.sections.get_section(hero_section.id)
        assert len(live) == 1
        assert section.published_version_id == live[0].id
        assert all(not isinstance(r, Exception) or isinstance(r, InvalidStateError) for r in results)

    @pytest.mark.asyncio
    async def test_publish_retried_on_store_unavailable(self, store, cache, clock, hero_section):
        setup = build_services(store, cache, clock, retry_backoff=[])
        version = await setup.versions.create_draft(hero_section.id, hero_content())
        flaky = FailingStore(store, failures={"publish_version": 1})
        services = build_services(flaky, cache, clock, retry_backoff=[0])

        result = await services.publisher.publish(hero_section.id, version.id)

        assert result.version_id == version.id
        assert flaky.calls.count("publish_version") == 2

    @pytest.mark.asyncio
    async def test_write_survives_invalidation_failure(self, services, cache, hero_section):
        version = await services.versions.create_draft(hero_section.id, hero_content())
        cache.fail_purges = True

        result = await services.publisher.publish(hero_section.id, version.id)

        assert result.cache_invalidated is False
        section = await services.sections.get_section(hero_section.id)
        assert section.published_version_id == version.id
        assert "key:homepage:content:en:v2" in services.invalidator.pending


class TestArchive:
    """Tests for archiving sections."""

    @pytest.mark.asyncio
    async def test_archive_keeps_pointer(self, services, hero_section):
        version = await services.versions.create_draft(hero_section.id, hero_content())
        await services.publisher.publish(hero_section.id, version.id)

        section = await services.publisher.archive(hero_section.id)

        assert section.status == SectionStatus.ARCHIVED
        assert section.published_version_id == version.id

    @pytest.mark.asyncio
    async def test_archive_is_idempotent(self, services, cache, hero_section):
        await services.publisher.archive(hero_section.id)
        cache.reset()

        section = await services.publisher.archive(hero_section.id)

        assert section.status == SectionStatus.ARCHIVED
        assert cache.purges == []

    @pytest.mark.asyncio
    async def test_republishing_live_version_restores_archived_section(self, services, hero_section):
        version = await services.versions.create_draft(hero_section.id, hero_content())
        first = await services.publisher.publish(hero_section.id, version.id)
        await services.publisher.archive(hero_section.id)

        result = await services.publisher.publish(hero_section.id, version.id)

        section = await services.sections.get_section(hero_section.id)
        assert section.status == SectionStatus.PUBLISHED
        assert result.published_at == first.published_at
        assert result.cache_invalidated is True

    @pytest.mark.asyncio
    async def test_unknown_section(self, services):
        with pytest.raises(SectionNotFoundError):
            await services.publisher.archive(404)
