"""
Tests for the public homepage reader.
"""

import pytest
from utils.fixtures import hero_content, text_content
from utils.mocks import FailingStore

from homepage_cms.dependencies import build_services
from homepage_cms.exceptions import StoreUnavailableError
from homepage_cms.models.section import SectionType
from homepage_cms.schemas.section import AssociationItem, SectionCreate, SectionUpdate


async def live_section(services, key: str, display_order: int = 0, locale: str = "en", content=None):
    section = await services.sections.create_section(
        SectionCreate(
            section_type=SectionType.TEXT_BLOCK,
            section_key=key,
            locale=locale,
            display_order=display_order,
            content=content or text_content(key),
        )
    )
    await services.publisher.publish(section.id, section.draft_version_id)
    return section


class TestHomepageContent:
    """Tests for what the homepage shows"""

    @pytest.mark.asyncio
    async def test_only_live_sections(self, services, hero_section):
        shown = await live_section(services, "shown")
        archived = await live_section(services, "archived")
        await services.publisher.archive(archived.id)
        hidden = await live_section(services, "hidden")
        await services.sections.update_section(hidden.id, SectionUpdate(is_active=False))

        sections = await services.reader.get_homepage_content("en")

        assert [s.section_id for s in sections] == [shown.id]
        assert sections[0].content == text_content("shown")

    @pytest.mark.asyncio
    async def test_serves_published_not_draft(self, services):
        section = await live_section(services, "story", content=text_content("live"))
        await services.versions.create_draft(section.id, text_content("draft"))

        sections = await services.reader.get_homepage_content("en")

        assert sections[0].content == text_content("live")

    @pytest.mark.asyncio
    async def test_order_with_ties(self, services):
        b = await live_section(services, "b", display_order=2)
        a = await live_section(services, "a", display_order=1)
        c = await live_section(services, "c", display_order=2)

        sections = await services.reader.get_homepage_content("en")

        assert [s.section_id for s in sections] == [a.id, b.id, c.id]

    @pytest.mark.asyncio
    async def test_locales_are_separate(self, services):
        await live_section(services, "story", locale="en")
        german = await live_section(services, "story", locale="de")

        sections = await services.reader.get_homepage_content("de")

        assert [s.section_id for s in sections] == [german.id]
        assert await services.reader.get_homepage_content("fr") == []

    @pytest.mark.asyncio
    async def test_associations_in_display_order(self, services, hero_section):
        version = await services.versions.create_draft(hero_section.id, hero_content())
        await services.publisher.publish(hero_section.id, version.id)
        await services.sections.set_section_products(
            hero_section.id,
            [
                AssociationItem(item_id=3, display_order=1),
                AssociationItem(item_id=1, display_order=0, metadata={"badge": "new"}),
            ],
        )
        await services.sections.set_section_categories(hero_section.id, [AssociationItem(item_id=10)])

        (section,) = await services.reader.get_homepage_content("en")

        assert [p.id for p in section.associated_products] == [1, 3]
        assert section.associated_products[0].metadata == {"badge": "new"}
        assert section.associated_products[0].price == 49.5
        assert section.associated_products[1].image_url == "https://cdn.example.com/hat.jpg"
        assert [c.slug for c in section.associated_categories] == ["summer"]


class TestHomepageCaching:
    """Tests for the read-through cache"""

    @pytest.mark.asyncio
    async def test_miss_populates_cache(self, services, cache):
        section = await live_section(services, "story")

        await services.reader.get_homepage_content("en")

        cached = cache.entries["homepage:content:en:v2"]
        assert [item["section_id"] for item in cached] == [section.id]
        assert "homepage:content:en:v2" in cache.tags["homepage:en"]

    @pytest.mark.asyncio
    async def test_hit_skips_store(self, store, cache, clock):
        services = build_services(store, cache, clock, retry_backoff=[])
        await live_section(services, "story")
        await services.reader.get_homepage_content("en")

        down = build_services(FailingStore(store, failures={"live_sections": 99}), cache, clock, retry_backoff=[])
        sections = await down.reader.get_homepage_content("en")

        assert len(sections) == 1

    @pytest.mark.asyncio
    async def test_publish_refreshes_content(self, services):
        section = await live_section(services, "story", content=text_content("old"))
        await services.reader.get_homepage_content("en")

        draft = await services.versions.create_draft(section.id, text_content("new"))
        await services.publisher.publish(section.id, draft.id)

        (fresh,) = await services.reader.get_homepage_content("en")
        assert fresh.content == text_content("new")

    @pytest.mark.asyncio
    async def test_unreachable_cache_falls_back_to_store(self, services, cache):
        await live_section(services, "story")
        cache.fail_reads = True
        cache.fail_writes = True

        sections = await services.reader.get_homepage_content("en")

        assert len(sections) == 1

    @pytest.mark.asyncio
    async def test_malformed_entry_is_replaced(self, services, cache):
        section = await live_section(services, "story")
        cache.entries["homepage:content:en:v2"] = [{"unexpected": True}]

        sections = await services.reader.get_homepage_content("en")

        assert [s.section_id for s in sections] == [section.id]
        assert cache.entries["homepage:content:en:v2"][0]["section_id"] == section.id

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, store, cache, clock):
        services = build_services(FailingStore(store, failures={"live_sections": 1}), cache, clock, retry_backoff=[])

        with pytest.raises(StoreUnavailableError):
            await services.reader.get_homepage_content("en")

    @pytest.mark.asyncio
    async def test_warm(self, services, cache):
        await live_section(services, "story")

        warmed = await services.reader.warm(["en", "de"])

        assert warmed == 2
        assert cache.entries["homepage:content:de:v2"] == []

    @pytest.mark.asyncio
    async def test_fill_overtaken_by_publish_is_dropped(self, services, store, cache, monkeypatch):
        section = await live_section(services, "story", content=text_content("old"))
        draft = await services.versions.create_draft(section.id, text_content("new"))
        load = store.live_sections

        async def load_then_publish(locale):
            snapshot = await load(locale)
            monkeypatch.setattr(store, "live_sections", load)
            await services.publisher.publish(section.id, draft.id)
            return snapshot

        monkeypatch.setattr(store, "live_sections", load_then_publish)

        (served,) = await services.reader.get_homepage_content("en")
        assert served.content == text_content("old")
        assert "homepage:content:en:v2" not in cache.entries

        (fresh,) = await services.reader.get_homepage_content("en")
        assert fresh.content == text_content("new")
        assert cache.entries["homepage:content:en:v2"][0]["content"] == text_content("new")

    @pytest.mark.asyncio
    async def test_fill_kept_without_invalidation(self, services, cache):
        await live_section(services, "story")
        cache.generations["homepage:generation:en"] = 4

        await services.reader.get_homepage_content("en")

        assert "homepage:content:en:v2" in cache.entries
        assert cache.purged("key").count("homepage:content:en:v2") == 0
