"""
SQLAlchemy Content Store

Runs every operation in its own ``AsyncSession`` transaction. Mutations that
touch a section lock its row with ``SELECT ... FOR UPDATE`` (a no-op on
SQLite, which serializes writers anyway), so version numbering and the
publish flip cannot interleave.
"""

import logging
from collections.abc import Iterable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from homepage_cms.exceptions import InvalidStateError, NotFoundError, SectionNotFoundError, StoreUnavailableError
from homepage_cms.models.catalog import Category, Product
from homepage_cms.models.section import HomepageSection, SectionStatus, SectionType
from homepage_cms.models.section_associations import SectionCategory, SectionProduct
from homepage_cms.models.section_schedule import ScheduleStatus, SectionSchedule
from homepage_cms.models.section_version import SectionVersion
from homepage_cms.schemas.homepage import CategoryRef, ProductRef, ResolvedSection
from homepage_cms.schemas.schedule import ScheduleRecord
from homepage_cms.schemas.section import AssociationItem, SectionRecord
from homepage_cms.schemas.version import VersionRecord
from homepage_cms.store.base import ContentStore, ensure_publishable

logger = logging.getLogger(__name__)


def _section_record(row: HomepageSection) -> SectionRecord:
    return SectionRecord(
        id=row.id,
        section_type=row.section_type,
        section_key=row.section_key,
        display_order=row.display_order,
        locale=row.locale,
        is_active=row.is_active,
        status=row.status,
        published_version_id=row.published_version_id,
        draft_version_id=row.draft_version_id,
        metadata=row.section_metadata or {},
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _version_record(row: SectionVersion) -> VersionRecord:
    return VersionRecord(
        id=row.id,
        section_id=row.section_id,
        version_number=row.version_number,
        content=row.content,
        change_summary=row.change_summary,
        created_by=row.created_by,
        is_published=row.is_published,
        published_at=row.published_at,
        created_at=row.created_at,
    )


def _schedule_record(row: SectionSchedule) -> ScheduleRecord:
    return ScheduleRecord(
        id=row.id,
        section_id=row.section_id,
        version_id=row.version_id,
        publish_at=row.publish_at,
        expire_at=row.expire_at,
        status=row.status,
        executed_at=row.executed_at,
        created_by=row.created_by,
        notes=row.notes,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SQLAlchemyContentStore(ContentStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self, operation: str):
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except IntegrityError as e:
            logger.warning(f"Store: conflicting write during {operation}: {e.orig}")
            raise StoreUnavailableError(
                operation, f"Conflicting concurrent write during '{operation}'; resubmit", retryable=False
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Store: {operation} failed: {e}")
            raise StoreUnavailableError(operation) from e

    async def _lock_section(self, session: AsyncSession, section_id: int) -> HomepageSection:
        result = await session.execute(
            select(HomepageSection).where(HomepageSection.id == section_id).with_for_update()
        )
        section = result.scalar_one_or_none()
        if section is None:
            raise SectionNotFoundError(section_id)
        return section

    async def _key_taken(
        self, session: AsyncSession, locale: str, section_key: str, exclude_id: int | None = None
    ) -> bool:
        query = select(HomepageSection.id).where(
            HomepageSection.locale == locale, HomepageSection.section_key == section_key
        )
        if exclude_id is not None:
            query = query.where(HomepageSection.id != exclude_id)
        result = await session.execute(query)
        return result.first() is not None

    # ============== Sections ==============

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
        async with self._transaction("create_section") as session:
            if await self._key_taken(session, locale, section_key):
                raise InvalidStateError(
                    f"Section key '{section_key}' already exists for locale '{locale}'",
                    details={"section_key": section_key, "locale": locale},
                )
            section = HomepageSection(
                section_type=section_type,
                section_key=section_key,
                display_order=display_order,
                locale=locale,
                is_active=is_active,
                status=SectionStatus.DRAFT,
                section_metadata=metadata,
                created_at=now,
                updated_at=now,
            )
            session.add(section)
            await session.flush()
            return _section_record(section)

    async def get_section(self, section_id: int) -> SectionRecord | None:
        async with self._transaction("get_section") as session:
            section = await session.get(HomepageSection, section_id)
            return _section_record(section) if section else None

    async def list_sections(
        self,
        *,
        locale: str | None = None,
        status: SectionStatus | None = None,
        section_type: SectionType | None = None,
        active_only: bool = False,
    ) -> list[SectionRecord]:
        query = select(HomepageSection)
        if locale is not None:
            query = query.where(HomepageSection.locale == locale)
        if status is not None:
            query = query.where(HomepageSection.status == status)
        if section_type is not None:
            query = query.where(HomepageSection.section_type == section_type)
        if active_only:
            query = query.where(HomepageSection.is_active.is_(True))
        query = query.order_by(HomepageSection.display_order, HomepageSection.id)

        async with self._transaction("list_sections") as session:
            result = await session.execute(query)
            return [_section_record(row) for row in result.scalars().all()]

    async def update_section(
        self,
        section_id: int,
        *,
        now: datetime,
        section_key: str | None = None,
        is_active: bool | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> SectionRecord:
        async with self._transaction("update_section") as session:
            section = await self._lock_section(session, section_id)
            if section_key is not None and section_key != section.section_key:
                if await self._key_taken(session, section.locale, section_key, exclude_id=section_id):
                    raise InvalidStateError(
                        f"Section key '{section_key}' already exists for locale '{section.locale}'",
                        details={"section_key": section_key, "locale": section.locale},
                    )
                section.section_key = section_key
            if is_active is not None:
                section.is_active = is_active
            if metadata is not None:
                section.section_metadata = dict(metadata)
            section.updated_at = now
            await session.flush()
            return _section_record(section)

    async def reorder_sections(self, locale: str, orders: dict[int, int], now: datetime) -> list[SectionRecord]:
        async with self._transaction("reorder_sections") as session:
            result = await session.execute(
                select(HomepageSection)
                .where(HomepageSection.id.in_(list(orders)))
                .order_by(HomepageSection.id)
                .with_for_update()
            )
            sections = {row.id: row for row in result.scalars().all()}
            for section_id in orders:
                section = sections.get(section_id)
                if section is None or section.locale != locale:
                    raise SectionNotFoundError(section_id)
            for section_id, display_order in orders.items():
                sections[section_id].display_order = display_order
                sections[section_id].updated_at = now
            await session.flush()
            records = [_section_record(row) for row in sections.values()]
            records.sort(key=lambda s: (s.display_order, s.id))
            return records

    async def archive_section(self, section_id: int, now: datetime) -> tuple[SectionRecord, bool]:
        async with self._transaction("archive_section") as session:
            section = await self._lock_section(session, section_id)
            if section.status == SectionStatus.ARCHIVED:
                return _section_record(section), False
            section.status = SectionStatus.ARCHIVED
            section.updated_at = now
            await session.flush()
            return _section_record(section), True

    # ============== Versions ==============

    async def get_version(self, version_id: int) -> VersionRecord | None:
        async with self._transaction("get_version") as session:
            version = await session.get(SectionVersion, version_id)
            return _version_record(version) if version else None

    async def list_versions(self, section_id: int, *, limit: int, offset: int = 0) -> list[VersionRecord]:
        async with self._transaction("list_versions") as session:
            result = await session.execute(
                select(SectionVersion)
                .where(SectionVersion.section_id == section_id)
                .order_by(SectionVersion.version_number.desc())
                .offset(offset)
                .limit(limit)
            )
            return [_version_record(row) for row in result.scalars().all()]

    async def count_versions(self, section_id: int) -> int:
        async with self._transaction("count_versions") as session:
            result = await session.execute(
                select(func.count(SectionVersion.id)).where(SectionVersion.section_id == section_id)
            )
            return result.scalar_one()

    async def append_version(
        self,
        section_id: int,
        *,
        content: dict[str, Any],
        change_summary: str | None,
        created_by: str | None,
        now: datetime,
    ) -> VersionRecord:
        async with self._transaction("append_version") as session:
            section = await self._lock_section(session, section_id)
            result = await session.execute(
                select(func.coalesce(func.max(SectionVersion.version_number), 0)).where(
                    SectionVersion.section_id == section_id
                )
            )
            version = SectionVersion(
                section_id=section_id,
                version_number=result.scalar_one() + 1,
                content=content,
                change_summary=change_summary,
                created_by=created_by,
                is_published=False,
                created_at=now,
            )
            session.add(version)
            await session.flush()
            section.draft_version_id = version.id
            section.updated_at = now
            return _version_record(version)

    async def publish_version(self, section_id: int, version_id: int, now: datetime) -> tuple[VersionRecord, bool]:
        async with self._transaction("publish_version") as session:
            section = await self._lock_section(session, section_id)
            target = await session.get(SectionVersion, version_id)

            if section.published_version_id == version_id and target is not None and target.is_published:
                if section.status == SectionStatus.PUBLISHED:
                    return _version_record(target), False
                # Live version of an archived section: bring it back as-is
                section.status = SectionStatus.PUBLISHED
                section.updated_at = now
                return _version_record(target), True

            ensure_publishable(section_id, version_id, target)

            await session.execute(
                update(SectionVersion)
                .where(
                    SectionVersion.section_id == section_id,
                    SectionVersion.is_published.is_(True),
                    SectionVersion.id != version_id,
                )
                .values(is_published=False)
                .execution_options(synchronize_session=False)
            )
            target.is_published = True
            target.published_at = now
            section.published_version_id = version_id
            section.status = SectionStatus.PUBLISHED
            section.updated_at = now
            await session.flush()
            return _version_record(target), True

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
        async with self._transaction("create_schedule") as session:
            await self._lock_section(session, section_id)
            schedule = SectionSchedule(
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
            session.add(schedule)
            await session.flush()
            return _schedule_record(schedule)

    async def get_schedule(self, schedule_id: int) -> ScheduleRecord | None:
        async with self._transaction("get_schedule") as session:
            schedule = await session.get(SectionSchedule, schedule_id)
            return _schedule_record(schedule) if schedule else None

    async def list_schedules(
        self,
        *,
        section_id: int | None = None,
        statuses: Iterable[ScheduleStatus] | None = None,
    ) -> list[ScheduleRecord]:
        query = select(SectionSchedule)
        if section_id is not None:
            query = query.where(SectionSchedule.section_id == section_id)
        if statuses is not None:
            query = query.where(SectionSchedule.status.in_(list(statuses)))
        query = query.order_by(SectionSchedule.id)

        async with self._transaction("list_schedules") as session:
            result = await session.execute(query)
            return [_schedule_record(row) for row in result.scalars().all()]

    async def due_publish_schedules(self, now: datetime, limit: int) -> list[ScheduleRecord]:
        async with self._transaction("due_publish_schedules") as session:
            result = await session.execute(
                select(SectionSchedule)
                .where(
                    SectionSchedule.status == ScheduleStatus.PENDING,
                    SectionSchedule.publish_at.is_not(None),
                    SectionSchedule.publish_at <= now,
                    SectionSchedule.version_id.is_not(None),
                )
                .order_by(SectionSchedule.publish_at, SectionSchedule.id)
                .limit(limit)
            )
            return [_schedule_record(row) for row in result.scalars().all()]

    async def due_expiry_schedules(self, now: datetime, limit: int) -> list[ScheduleRecord]:
        async with self._transaction("due_expiry_schedules") as session:
            result = await session.execute(
                select(SectionSchedule)
                .where(
                    SectionSchedule.status == ScheduleStatus.ACTIVE,
                    SectionSchedule.expire_at.is_not(None),
                    SectionSchedule.expire_at <= now,
                )
                .order_by(SectionSchedule.expire_at, SectionSchedule.id)
                .limit(limit)
            )
            return [_schedule_record(row) for row in result.scalars().all()]

    async def transition_schedule(
        self,
        schedule_id: int,
        *,
        from_statuses: Iterable[ScheduleStatus],
        to_status: ScheduleStatus,
        now: datetime,
        executed_at: datetime | None = None,
    ) -> bool:
        values: dict[str, Any] = {"status": to_status, "updated_at": now}
        if executed_at is not None:
            values["executed_at"] = func.coalesce(SectionSchedule.executed_at, executed_at)

        async with self._transaction("transition_schedule") as session:
            result = await session.execute(
                update(SectionSchedule)
                .where(SectionSchedule.id == schedule_id, SectionSchedule.status.in_(list(from_statuses)))
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    # ============== Associations ==============

    async def _check_catalog_ids(
        self, session: AsyncSession, model: type, items: list[AssociationItem], resource_type: str
    ) -> None:
        ids = [item.item_id for item in items]
        duplicates = {i for i in ids if ids.count(i) > 1}
        if duplicates:
            first = min(duplicates)
            raise InvalidStateError(f"{resource_type} {first} listed more than once", details={"item_id": first})
        if not ids:
            return
        result = await session.execute(select(model.id).where(model.id.in_(ids)))
        found = set(result.scalars().all())
        for item_id in ids:
            if item_id not in found:
                raise NotFoundError(resource_type, item_id)

    async def replace_section_products(self, section_id: int, items: list[AssociationItem], now: datetime) -> None:
        async with self._transaction("replace_section_products") as session:
            await self._lock_section(session, section_id)
            await self._check_catalog_ids(session, Product, items, "Product")
            await session.execute(delete(SectionProduct).where(SectionProduct.section_id == section_id))
            session.add_all(
                SectionProduct(
                    section_id=section_id,
                    product_id=item.item_id,
                    display_order=item.display_order,
                    item_metadata=item.metadata,
                    created_at=now,
                )
                for item in items
            )

    async def replace_section_categories(
        self, section_id: int, items: list[AssociationItem], now: datetime
    ) -> None:
        async with self._transaction("replace_section_categories") as session:
            await self._lock_section(session, section_id)
            await self._check_catalog_ids(session, Category, items, "Category")
            await session.execute(delete(SectionCategory).where(SectionCategory.section_id == section_id))
            session.add_all(
                SectionCategory(
                    section_id=section_id,
                    category_id=item.item_id,
                    display_order=item.display_order,
                    item_metadata=item.metadata,
                    created_at=now,
                )
                for item in items
            )

    async def _load_products(self, session: AsyncSession, section_ids: list[int]) -> dict[int, list[ProductRef]]:
        resolved: dict[int, list[ProductRef]] = {section_id: [] for section_id in section_ids}
        if not section_ids:
            return resolved
        result = await session.execute(
            select(SectionProduct, Product)
            .join(Product, Product.id == SectionProduct.product_id)
            .where(SectionProduct.section_id.in_(section_ids))
            .order_by(SectionProduct.section_id, SectionProduct.display_order, SectionProduct.product_id)
        )
        for link, product in result.unique().all():
            resolved[link.section_id].append(
                ProductRef(
                    id=product.id,
                    name=product.name,
                    description=product.description,
                    price=float(product.price),
                    image_url=product.image_url,
                    inventory_count=product.inventory_count,
                    is_featured=product.is_featured,
                    display_order=link.display_order,
                    metadata=link.item_metadata or {},
                )
            )
        return resolved

    async def _load_categories(self, session: AsyncSession, section_ids: list[int]) -> dict[int, list[CategoryRef]]:
        resolved: dict[int, list[CategoryRef]] = {section_id: [] for section_id in section_ids}
        if not section_ids:
            return resolved
        result = await session.execute(
            select(SectionCategory, Category)
            .join(Category, Category.id == SectionCategory.category_id)
            .where(SectionCategory.section_id.in_(section_ids))
            .order_by(SectionCategory.section_id, SectionCategory.display_order, SectionCategory.category_id)
        )
        for link, category in result.unique().all():
            resolved[link.section_id].append(
                CategoryRef(
                    id=category.id,
                    name=category.name,
                    slug=category.slug,
                    description=category.description,
                    display_order=link.display_order,
                    metadata=link.item_metadata or {},
                )
            )
        return resolved

    async def section_products(self, section_ids: list[int]) -> dict[int, list[ProductRef]]:
        async with self._transaction("section_products") as session:
            return await self._load_products(session, section_ids)

    async def section_categories(self, section_ids: list[int]) -> dict[int, list[CategoryRef]]:
        async with self._transaction("section_categories") as session:
            return await self._load_categories(session, section_ids)

    # ============== Homepage ==============

    async def live_sections(self, locale: str) -> list[ResolvedSection]:
        # Section and live version come from a single statement, so a publish
        # flipping the pointer is never seen half-applied
        query = (
            select(HomepageSection, SectionVersion)
            .join(SectionVersion, SectionVersion.id == HomepageSection.published_version_id)
            .where(
                HomepageSection.locale == locale,
                HomepageSection.status == SectionStatus.PUBLISHED,
                HomepageSection.is_active.is_(True),
                SectionVersion.is_published.is_(True),
            )
            .order_by(HomepageSection.display_order, HomepageSection.id)
        )
        async with self._transaction("live_sections") as session:
            rows = (await session.execute(query)).all()
            section_ids = [section.id for section, _ in rows]
            products = await self._load_products(session, section_ids)
            categories = await self._load_categories(session, section_ids)
            return [
                ResolvedSection(
                    section_id=section.id,
                    section_type=section.section_type,
                    section_key=section.section_key,
                    display_order=section.display_order,
                    content=version.content,
                    metadata=section.section_metadata or {},
                    associated_products=products[section.id],
                    associated_categories=categories[section.id],
                )
                for section, version in rows
            ]
