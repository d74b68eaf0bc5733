"""
In-memory Content Store

Process-local implementation used by the test-suite and for local runs
without a database. One ``asyncio.Lock`` serializes every mutation, which
gives the same atomicity the SQL store gets from transactions. Records are
copied on the way in and out so callers can never mutate stored state.
"""

import asyncio
from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal
from typing import Any

from homepage_cms.exceptions import InvalidStateError, NotFoundError, SectionNotFoundError
from homepage_cms.models.section import SectionStatus, SectionType
from homepage_cms.models.section_schedule import ScheduleStatus
from homepage_cms.schemas.homepage import CategoryRef, ProductRef, ResolvedSection
from homepage_cms.schemas.schedule import ScheduleRecord
from homepage_cms.schemas.section import AssociationItem, SectionRecord
from homepage_cms.schemas.version import VersionRecord
from homepage_cms.store.base import ContentStore, ensure_publishable


class InMemoryContentStore(ContentStore):
    def __init__(self):
        self._lock = asyncio.Lock()
        self._sections: dict[int, SectionRecord] = {}
        self._versions: dict[int, VersionRecord] = {}
        self._schedules: dict[int, ScheduleRecord] = {}
        self._products: dict[int, dict[str, Any]] = {}
        self._categories: dict[int, dict[str, Any]] = {}
        self._section_products: dict[int, list[AssociationItem]] = {}
        self._section_categories: dict[int, list[AssociationItem]] = {}
        self._ids = {"section": 0, "version": 0, "schedule": 0}

    def _next_id(self, kind: str) -> int:
        self._ids[kind] += 1
        return self._ids[kind]

    # ============== Catalog seeding ==============

    def add_product(
        self,
        product_id: int,
        name: str,
        price: float | Decimal = 0,
        description: str | None = None,
        image_url: str | None = None,
        inventory_count: int = 0,
        is_featured: bool = False,
    ) -> None:
        """Register a catalog product the reader can resolve."""
        self._products[product_id] = {
            "id": product_id,
            "name": name,
            "description": description,
            "price": float(price),
            "image_url": image_url,
            "inventory_count": inventory_count,
            "is_featured": is_featured,
        }

    def add_category(self, category_id: int, name: str, slug: str | None = None, description: str | None = None) -> None:
        self._categories[category_id] = {"id": category_id, "name": name, "slug": slug, "description": description}

    # ============== Sections ==============

    def _require_section(self, section_id: int) -> SectionRecord:
        section = self._sections.get(section_id)
        if section is None:
            raise SectionNotFoundError(section_id)
        return section

    def _key_taken(self, locale: str, section_key: str, exclude_id: int | None = None) -> bool:
        return any(
            s.locale == locale and s.section_key == section_key and s.id != exclude_id for s in self._sections.values()
        )

    async def create_section(
        self,
        *,
        section_type: SectionType,
        section_key: str,
        locale: str,
        display_order: int,
        is_active: bool,
        metadata: dict[str, Any],
        now: datetime,
    ) -> SectionRecord:
        async with self._lock:
            if self._key_taken(locale, section_key):
                raise InvalidStateError(
                    f"Section key '{section_key}' already exists for locale '{locale}'",
                    details={"section_key": section_key, "locale": locale},
                )
            section = SectionRecord(
                id=self._next_id("section"),
                section_type=section_type,
                section_key=section_key,
                display_order=display_order,
                locale=locale,
                is_active=is_active,
                status=SectionStatus.DRAFT,
                metadata=metadata,
                created_at=now,
                updated_at=now,
            )
            self._sections[section.id] = section
            return section.model_copy(deep=True)

    async def get_section(self, section_id: int) -> SectionRecord | None:
        section = self._sections.get(section_id)
        return section.model_copy(deep=True) if section else None

    async def list_sections(
        self,
        *,
        locale: str | None = None,
        status: SectionStatus | None = None,
        section_type: SectionType | None = None,
        active_only: bool = False,
    ) -> list[SectionRecord]:
        sections = [
            s
            for s in self._sections.values()
            if (locale is None or s.locale == locale)
            and (status is None or s.status == status)
            and (section_type is None or s.section_type == section_type)
            and (not active_only or s.is_active)
        ]
        sections.sort(key=lambda s: (s.display_order, s.id))
        return [s.model_copy(deep=True) for s in sections]

    async def update_section(
        self,
        section_id: int,
        *,
        now: datetime,
        section_key: str | None = None,
        is_active: bool | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> SectionRecord:
        async with self._lock:
            section = self._require_section(section_id)
            changes: dict[str, Any] = {"updated_at": now}
            if section_key is not None and section_key != section.section_key:
                if self._key_taken(section.locale, section_key, exclude_id=section_id):
                    raise InvalidStateError(
                        f"Section key '{section_key}' already exists for locale '{section.locale}'",
                        details={"section_key": section_key, "locale": section.locale},
                    )
                changes["section_key"] = section_key
            if is_active is not None:
                changes["is_active"] = is_active
            if metadata is not None:
                changes["metadata"] = dict(metadata)
            section = section.model_copy(update=changes, deep=True)
            self._sections[section_id] = section
            return section.model_copy(deep=True)

    async def reorder_sections(self, locale: str, orders: dict[int, int], now: datetime) -> list[SectionRecord]:
        async with self._lock:
            for section_id in orders:
                section = self._sections.get(section_id)
                if section is None or section.locale != locale:
                    raise SectionNotFoundError(section_id)
            updated = []
            for section_id, display_order in orders.items():
                section = self._sections[section_id].model_copy(
                    update={"display_order": display_order, "updated_at": now}
                )
                self._sections[section_id] = section
                updated.append(section.model_copy(deep=True))
            updated.sort(key=lambda s: (s.display_order, s.id))
            return updated

    async def archive_section(self, section_id: int, now: datetime) -> tuple[SectionRecord, bool]:
        async with self._lock:
            section = self._require_section(section_id)
            if section.status == SectionStatus.ARCHIVED:
                return section.model_copy(deep=True), False
            section = section.model_copy(update={"status": SectionStatus.ARCHIVED, "updated_at": now})
            self._sections[section_id] = section
            return section.model_copy(deep=True), True

    # ============== Versions ==============

    async def get_version(self, version_id: int) -> VersionRecord | None:
        version = self._versions.get(version_id)
        return version.model_copy(deep=True) if version else None

    def _section_versions(self, section_id: int) -> list[VersionRecord]:
        versions = [v for v in self._versions.values() if v.section_id == section_id]
        versions.sort(key=lambda v: v.version_number, reverse=True)
        return versions

    async def list_versions(self, section_id: int, *, limit: int, offset: int = 0) -> list[VersionRecord]:
        versions = self._section_versions(section_id)[offset : offset + limit]
        return [v.model_copy(deep=True) for v in versions]

    async def count_versions(self, section_id: int) -> int:
        return len(self._section_versions(section_id))

    async def append_version(
        self,
        section_id: int,
        *,
        content: dict[str, Any],
        change_summary: str | None,
        created_by: str | None,
        now: datetime,
    ) -> VersionRecord:
        async with self._lock:
            section = self._require_section(section_id)
            existing = self._section_versions(section_id)
            next_number = existing[0].version_number + 1 if existing else 1
            version = VersionRecord(
                id=self._next_id("version"),
                section_id=section_id,
                version_number=next_number,
                content=content,
                change_summary=change_summary,
                created_by=created_by,
                is_published=False,
                created_at=now,
            ).model_copy(deep=True)
            self._versions[version.id] = version
            self._sections[section_id] = section.model_copy(
                update={"draft_version_id": version.id, "updated_at": now}
            )
            return version.model_copy(deep=True)

    async def publish_version(self, section_id: int, version_id: int, now: datetime) -> tuple[VersionRecord, bool]:
        async with self._lock:
            section = self._require_section(section_id)
            target = self._versions.get(version_id)

            if section.published_version_id == version_id and target is not None and target.is_published:
                if section.status == SectionStatus.PUBLISHED:
                    return target.model_copy(deep=True), False
                # Live version of an archived section: bring it back as-is
                self._sections[section_id] = section.model_copy(
                    update={"status": SectionStatus.PUBLISHED, "updated_at": now}
                )
                return target.model_copy(deep=True), True

            ensure_publishable(section_id, version_id, target)

            for version in self._section_versions(section_id):
                if version.is_published:
                    self._versions[version.id] = version.model_copy(update={"is_published": False})

            target = target.model_copy(update={"is_published": True, "published_at": now})
            self._versions[version_id] = target
            self._sections[section_id] = section.model_copy(
                update={
                    "published_version_id": version_id,
                    "status": SectionStatus.PUBLISHED,
                    "updated_at": now,
                }
            )
            return target.model_copy(deep=True), True

    # ============== Schedules ==============

    async def create_schedule(
        self,
        *,
        section_id: int,
        version_id: int | None,
        publish_at: datetime | None,
        expire_at: datetime | None,
        status: ScheduleStatus,
        created_by: str | None,
        notes: str | None,
        now: datetime,
    ) -> ScheduleRecord:
        async with self._lock:
            self._require_section(section_id)
            schedule = ScheduleRecord(
                id=self._next_id("schedule"),
                section_id=section_id,
                version_id=version_id,
                publish_at=publish_at,
                expire_at=expire_at,
                status=status,
                created_by=created_by,
                notes=notes,
                created_at=now,
                updated_at=now,
            )
            self._schedules[schedule.id] = schedule
            return schedule.model_copy(deep=True)

    async def get_schedule(self, schedule_id: int) -> ScheduleRecord | None:
        schedule = self._schedules.get(schedule_id)
        return schedule.model_copy(deep=True) if schedule else None

    async def list_schedules(
        self,
        *,
        section_id: int | None = None,
        statuses: Iterable[ScheduleStatus] | None = None,
    ) -> list[ScheduleRecord]:
        wanted = set(statuses) if statuses is not None else None
        schedules = [
            s
            for s in self._schedules.values()
            if (section_id is None or s.section_id == section_id) and (wanted is None or s.status in wanted)
        ]
        schedules.sort(key=lambda s: s.id)
        return [s.model_copy(deep=True) for s in schedules]

    async def due_publish_schedules(self, now: datetime, limit: int) -> list[ScheduleRecord]:
        due = [
            s
            for s in self._schedules.values()
            if s.status == ScheduleStatus.PENDING
            and s.publish_at is not None
            and s.publish_at <= now
            and s.version_id is not None
        ]
        due.sort(key=lambda s: (s.publish_at, s.id))
        return [s.model_copy(deep=True) for s in due[:limit]]

    async def due_expiry_schedules(self, now: datetime, limit: int) -> list[ScheduleRecord]:
        due = [
            s
            for s in self._schedules.values()
            if s.status == ScheduleStatus.ACTIVE and s.expire_at is not None and s.expire_at <= now
        ]
        due.sort(key=lambda s: (s.expire_at, s.id))
        return [s.model_copy(deep=True) for s in due[:limit]]

    async def transition_schedule(
        self,
        schedule_id: int,
        *,
        from_statuses: Iterable[ScheduleStatus],
        to_status: ScheduleStatus,
        now: datetime,
        executed_at: datetime | None = None,
    ) -> bool:
        async with self._lock:
            schedule = self._schedules.get(schedule_id)
            if schedule is None or schedule.status not in set(from_statuses):
                return False
            changes: dict[str, Any] = {"status": to_status, "updated_at": now}
            if executed_at is not None and schedule.executed_at is None:
                changes["executed_at"] = executed_at
            self._schedules[schedule_id] = schedule.model_copy(update=changes)
            return True

    # ============== Associations ==============

    def _check_items(self, items: list[AssociationItem], catalog: dict[int, Any], resource_type: str) -> None:
        seen: set[int] = set()
        for item in items:
            if item.item_id not in catalog:
                raise NotFoundError(resource_type, item.item_id)
            if item.item_id in seen:
                raise InvalidStateError(
                    f"{resource_type} {item.item_id} listed more than once",
                    details={"item_id": item.item_id},
                )
            seen.add(item.item_id)

    async def replace_section_products(self, section_id: int, items: list[AssociationItem], now: datetime) -> None:
        async with self._lock:
            self._require_section(section_id)
            self._check_items(items, self._products, "Product")
            self._section_products[section_id] = [item.model_copy(deep=True) for item in items]

    async def replace_section_categories(
        self, section_id: int, items: list[AssociationItem], now: datetime
    ) -> None:
        async with self._lock:
            self._require_section(section_id)
            self._check_items(items, self._categories, "Category")
            self._section_categories[section_id] = [item.model_copy(deep=True) for item in items]

    async def section_products(self, section_ids: list[int]) -> dict[int, list[ProductRef]]:
        return self._resolve_products(section_ids)

    async def section_categories(self, section_ids: list[int]) -> dict[int, list[CategoryRef]]:
        return self._resolve_categories(section_ids)

    def _resolve_products(self, section_ids: list[int]) -> dict[int, list[ProductRef]]:
        resolved: dict[int, list[ProductRef]] = {}
        for section_id in section_ids:
            items = sorted(self._section_products.get(section_id, []), key=lambda i: (i.display_order, i.item_id))
            resolved[section_id] = [
                ProductRef(**self._products[i.item_id], display_order=i.display_order, metadata=dict(i.metadata))
                for i in items
            ]
        return resolved

    def _resolve_categories(self, section_ids: list[int]) -> dict[int, list[CategoryRef]]:
        resolved: dict[int, list[CategoryRef]] = {}
        for section_id in section_ids:
            items = sorted(self._section_categories.get(section_id, []), key=lambda i: (i.display_order, i.item_id))
            resolved[section_id] = [
                CategoryRef(**self._categories[i.item_id], display_order=i.display_order, metadata=dict(i.metadata))
                for i in items
            ]
        return resolved

    # ============== Homepage ==============

    async def live_sections(self, locale: str) -> list[ResolvedSection]:
        async with self._lock:
            live = []
            for section in self._sections.values():
                if section.locale != locale or section.status != SectionStatus.PUBLISHED or not section.is_active:
                    continue
                version = self._versions.get(section.published_version_id)
                if version is not None and version.is_published:
                    live.append((section, version))
            live.sort(key=lambda pair: (pair[0].display_order, pair[0].id))

            section_ids = [section.id for section, _ in live]
            products = self._resolve_products(section_ids)
            categories = self._resolve_categories(section_ids)
            return [
                ResolvedSection(
                    section_id=section.id,
                    section_type=section.section_type,
                    section_key=section.section_key,
                    display_order=section.display_order,
                    content=version.content,
                    metadata=section.metadata,
                    associated_products=products[section.id],
                    associated_categories=categories[section.id],
                ).model_copy(deep=True)
                for section, version in live
            ]
