"""
Section Service

Admin-side section management: creation, settings, ordering, product and
category associations, and the admin listing.
"""

import logging

from homepage_cms.config import settings
from homepage_cms.exceptions import InvalidStateError, SectionNotFoundError
from homepage_cms.models.section import SectionStatus, SectionType
from homepage_cms.models.section_schedule import ScheduleStatus
from homepage_cms.schemas.homepage import CategoryRef, ProductRef
from homepage_cms.schemas.section import (
    AdminSectionSummary,
    AssociationItem,
    ReorderItem,
    SectionCreate,
    SectionRecord,
    SectionUpdate,
)
from homepage_cms.services.cache_invalidation import CacheInvalidationCoordinator
from homepage_cms.services.version_service import VersionManager
from homepage_cms.store.base import ContentStore
from homepage_cms.utils.cache import CacheManager
from homepage_cms.utils.cache_keys import admin_sections_key, admin_tag
from homepage_cms.utils.clock import Clock, SystemClock
from homepage_cms.utils.content_validation import validate_section_content
from homepage_cms.utils.retry import retry_store_call

logger = logging.getLogger(__name__)


class SectionService:
    def __init__(
        self,
        store: ContentStore,
        versions: VersionManager,
        invalidator: CacheInvalidationCoordinator,
        cache: CacheManager,
        clock: Clock | None = None,
        retry_backoff: list[float] | None = None,
    ):
        self.store = store
        self.versions = versions
        self.invalidator = invalidator
        self.cache = cache
        self.clock = clock or SystemClock()
        self.retry_backoff = retry_backoff

    async def get_section(self, section_id: int) -> SectionRecord:
        section = await retry_store_call(lambda: self.store.get_section(section_id), self.retry_backoff)
        if section is None:
            raise SectionNotFoundError(section_id)
        return section

    async def create_section(self, data: SectionCreate, author_id: str | None = None) -> SectionRecord:
        """Create a draft section; initial content, when given, becomes version 1."""
        if data.content is not None:
            validate_section_content(data.section_type, data.content)

        section = await self.store.create_section(
            section_type=data.section_type,
            section_key=data.section_key,
            locale=data.locale,
            display_order=data.display_order,
            is_active=data.is_active,
            metadata=data.metadata,
            now=self.clock.now(),
        )
        logger.info(f"Section {section.id} created ({data.section_type.value}, key={data.section_key}, {data.locale})")

        if data.content is None:
            await self.invalidator.on_draft_update(section.id, section.locale)
            return section

        await self.versions.create_draft(
            section.id, data.content, author_id=author_id, change_summary=data.change_summary or "Initial version"
        )
        return await self.get_section(section.id)

    async def update_section(self, section_id: int, changes: SectionUpdate) -> SectionRecord:
        before = await self.get_section(section_id)
        after = await self.store.update_section(
            section_id,
            now=self.clock.now(),
            section_key=changes.section_key,
            is_active=changes.is_active,
            metadata=changes.metadata,
        )

        visible_change = (
            before.is_active != after.is_active
            or before.metadata != after.metadata
            or before.section_key != after.section_key
        )
        if after.status == SectionStatus.PUBLISHED and visible_change:
            await self.invalidator.on_publish(section_id, after.locale)
        else:
            await self.invalidator.on_draft_update(section_id, after.locale)
        return after

    async def reorder_sections(self, locale: str, orders: list[ReorderItem]) -> list[SectionRecord]:
        """Apply new display orders to sections of one locale in one step."""
        ids = [item.id for item in orders]
        if len(ids) != len(set(ids)):
            raise InvalidStateError("Each section may appear only once in a reorder", details={"ids": ids})

        updated = await self.store.reorder_sections(
            locale, {item.id: item.display_order for item in orders}, self.clock.now()
        )
        logger.info(f"Reordered {len(updated)} section(s) in locale {locale}")
        await self.invalidator.on_reorder(locale)
        return updated

    async def set_section_products(self, section_id: int, items: list[AssociationItem]) -> list[ProductRef]:
        section = await self.get_section(section_id)
        await self.store.replace_section_products(section_id, items, self.clock.now())
        logger.info(f"Section {section_id}: {len(items)} product link(s) set")
        await self.invalidator.on_associations_change(section_id, section.locale)
        resolved = await retry_store_call(lambda: self.store.section_products([section_id]), self.retry_backoff)
        return resolved.get(section_id, [])

    async def set_section_categories(self, section_id: int, items: list[AssociationItem]) -> list[CategoryRef]:
        section = await self.get_section(section_id)
        await self.store.replace_section_categories(section_id, items, self.clock.now())
        logger.info(f"Section {section_id}: {len(items)} category link(s) set")
        await self.invalidator.on_associations_change(section_id, section.locale)
        resolved = await retry_store_call(lambda: self.store.section_categories([section_id]), self.retry_backoff)
        return resolved.get(section_id, [])

    async def list_admin_sections(
        self,
        locale: str,
        status: SectionStatus | None = None,
        section_type: SectionType | None = None,
    ) -> list[AdminSectionSummary]:
        """
        Admin overview of a locale's sections.

        Unfiltered-by-type listings are cached under the admin key for the
        status so publish and draft events can purge them.
        """
        key = admin_sections_key(locale, status.value if status else None)
        if section_type is None:
            cached = await self.cache.get(key)
            if cached is not None:
                return [AdminSectionSummary.model_validate(item) for item in cached]

        sections = await retry_store_call(
            lambda: self.store.list_sections(locale=locale, status=status, section_type=section_type),
            self.retry_backoff,
        )
        open_schedules = await retry_store_call(
            lambda: self.store.list_schedules(statuses=[ScheduleStatus.PENDING, ScheduleStatus.ACTIVE]),
            self.retry_backoff,
        )
        scheduled_ids = {schedule.section_id for schedule in open_schedules}

        summaries = []
        for section in sections:
            summaries.append(
                AdminSectionSummary(
                    section_id=section.id,
                    section_type=section.section_type,
                    section_key=section.section_key,
                    display_order=section.display_order,
                    status=section.status,
                    is_active=section.is_active,
                    locale=section.locale,
                    published_version=await self._version_number(section.published_version_id),
                    draft_version=await self._version_number(section.draft_version_id),
                    total_versions=await retry_store_call(
                        lambda: self.store.count_versions(section.id), self.retry_backoff
                    ),
                    last_modified_at=section.updated_at,
                    has_schedule=section.id in scheduled_ids,
                )
            )

        if section_type is None:
            await self.cache.set(
                key,
                [summary.model_dump(mode="json") for summary in summaries],
                settings.cache_ttl_admin,
                tags=[admin_tag(locale)],
            )
        return summaries

    async def _version_number(self, version_id: int | None) -> int | None:
        if version_id is None:
            return None
        version = await retry_store_call(lambda: self.store.get_version(version_id), self.retry_backoff)
        return version.version_number if version else None
