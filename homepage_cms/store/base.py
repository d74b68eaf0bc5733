"""
Content Store port

Everything the engine persists goes through a ``ContentStore``. Each method is
one atomic operation: implementations run it inside a single transaction (SQL)
or under a single lock (in-memory), so callers never observe a half-applied
transition.

Failures to reach the backing store surface as ``StoreUnavailableError``.
Lookups of unknown ids return ``None``; mutations of unknown ids raise the
matching ``NotFoundError`` subclass.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from homepage_cms.exceptions import InvalidStateError, VersionNotFoundError
from homepage_cms.models.section import SectionStatus, SectionType
from homepage_cms.models.section_schedule import ScheduleStatus
from homepage_cms.schemas.homepage import CategoryRef, ProductRef, ResolvedSection
from homepage_cms.schemas.schedule import ScheduleRecord
from homepage_cms.schemas.section import AssociationItem, SectionRecord
from homepage_cms.schemas.version import VersionRecord


class ContentStore(ABC):
    # ============== Sections ==============

    @abstractmethod
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
        """Insert a draft section. ``InvalidStateError`` if the key is taken in that locale."""

    @abstractmethod
    async def get_section(self, section_id: int) -> SectionRecord | None: ...

    @abstractmethod
    async def list_sections(
        self,
        *,
        locale: str | None = None,
        status: SectionStatus | None = None,
        section_type: SectionType | None = None,
        active_only: bool = False,
    ) -> list[SectionRecord]:
        """Sections matching the filters, ordered by ``(display_order, id)``."""

    @abstractmethod
    async def update_section(
        self,
        section_id: int,
        *,
        now: datetime,
        section_key: str | None = None,
        is_active: bool | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> SectionRecord: ...

    @abstractmethod
    async def reorder_sections(self, locale: str, orders: dict[int, int], now: datetime) -> list[SectionRecord]:
        """
        Apply ``{section_id: display_order}`` in one step.

        Raises ``SectionNotFoundError`` (and changes nothing) if any id is
        unknown or belongs to another locale.
        """

    @abstractmethod
    async def archive_section(self, section_id: int, now: datetime) -> tuple[SectionRecord, bool]:
        """Set status ``archived``; the flag tells whether anything changed."""

    # ============== Versions ==============

    @abstractmethod
    async def get_version(self, version_id: int) -> VersionRecord | None: ...

    @abstractmethod
    async def list_versions(self, section_id: int, *, limit: int, offset: int = 0) -> list[VersionRecord]:
        """Versions of a section, newest (highest number) first."""

    @abstractmethod
    async def count_versions(self, section_id: int) -> int: ...

    @abstractmethod
    async def append_version(
        self,
        section_id: int,
        *,
        content: dict[str, Any],
        change_summary: str | None,
        created_by: str | None,
        now: datetime,
    ) -> VersionRecord:
        """
        Allocate the next version number, insert the version unpublished and
        point the section's draft at it, all in one step.
        """

    @abstractmethod
    async def publish_version(self, section_id: int, version_id: int, now: datetime) -> tuple[VersionRecord, bool]:
        """
        Make ``version_id`` the live version of the section.

        Clears the flag on whichever version was live, flags the target,
        stamps ``published_at``, moves the pointer and sets status
        ``published``. Returns the target and whether anything changed;
        re-publishing the live version changes nothing.

        Raises ``SectionNotFoundError``, ``VersionNotFoundError`` for a
        version of another section, and ``InvalidStateError`` for a version
        that was live once and has since been superseded.
        """

    # ============== Schedules ==============

    @abstractmethod
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
    ) -> ScheduleRecord: ...

    @abstractmethod
    async def get_schedule(self, schedule_id: int) -> ScheduleRecord | None: ...

    @abstractmethod
    async def list_schedules(
        self,
        *,
        section_id: int | None = None,
        statuses: Iterable[ScheduleStatus] | None = None,
    ) -> list[ScheduleRecord]: ...

    @abstractmethod
    async def due_publish_schedules(self, now: datetime, limit: int) -> list[ScheduleRecord]:
        """Pending schedules with a version whose ``publish_at <= now``, oldest first."""

    @abstractmethod
    async def due_expiry_schedules(self, now: datetime, limit: int) -> list[ScheduleRecord]:
        """Active schedules whose ``expire_at <= now``, oldest first."""

    @abstractmethod
    async def transition_schedule(
        self,
        schedule_id: int,
        *,
        from_statuses: Iterable[ScheduleStatus],
        to_status: ScheduleStatus,
        now: datetime,
        executed_at: datetime | None = None,
    ) -> bool:
        """
        Compare-and-set on status.

        Returns ``False`` when the schedule is no longer in one of
        ``from_statuses`` (another sweep or a cancel got there first).
        ``executed_at`` is only written when the schedule has none yet.
        """

    # ============== Associations ==============

    @abstractmethod
    async def replace_section_products(self, section_id: int, items: list[AssociationItem], now: datetime) -> None: ...

    @abstractmethod
    async def replace_section_categories(
        self, section_id: int, items: list[AssociationItem], now: datetime
    ) -> None: ...

    @abstractmethod
    async def section_products(self, section_ids: list[int]) -> dict[int, list[ProductRef]]:
        """Resolved products per section, in ``(display_order, product id)`` order."""

    @abstractmethod
    async def section_categories(self, section_ids: list[int]) -> dict[int, list[CategoryRef]]: ...

    # ============== Homepage ==============

    @abstractmethod
    async def live_sections(self, locale: str) -> list[ResolvedSection]:
        """
        The live homepage of ``locale`` as one consistent read.

        Active sections in ``published`` status, each with the content of its
        published version and its ordered products and categories, sorted by
        ``(display_order, id)``. A publish committing concurrently is seen
        either entirely or not at all.
        """


def ensure_publishable(section_id: int, version_id: int, version: Any) -> None:
    """
    Shared publish guard for store implementations.

    ``version`` is whatever row type the backend holds; it only needs
    ``section_id``, ``is_published`` and ``published_at``.
    """
    if version is None or version.section_id != section_id:
        raise VersionNotFoundError(version_id, section_id)
    if version.published_at is not None and not version.is_published:
        raise InvalidStateError(
            f"Version {version_id} was superseded after being published; revert to it instead",
            details={"section_id": section_id, "version_id": version_id},
        )
