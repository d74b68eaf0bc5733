"""
Version Service

Every content edit appends a new, immutable version to its section. Version
numbers start at 1 and only ever grow; reverting copies an old version's
content into a fresh version rather than rewinding the counter.
"""

import copy
import logging
from typing import Any

from homepage_cms.exceptions import InvalidStateError, SectionNotFoundError, VersionNotFoundError
from homepage_cms.schemas.section import SectionRecord
from homepage_cms.schemas.version import VersionPage, VersionRecord
from homepage_cms.services.cache_invalidation import CacheInvalidationCoordinator
from homepage_cms.store.base import ContentStore
from homepage_cms.utils.clock import Clock, SystemClock
from homepage_cms.utils.content_validation import validate_section_content
from homepage_cms.utils.retry import retry_store_call

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class VersionManager:
    """Creates, lists and reverts section versions."""

    def __init__(
        self,
        store: ContentStore,
        invalidator: CacheInvalidationCoordinator,
        clock: Clock | None = None,
        retry_backoff: list[float] | None = None,
    ):
        self.store = store
        self.invalidator = invalidator
        self.clock = clock or SystemClock()
        self.retry_backoff = retry_backoff

    async def _get_section(self, section_id: int) -> SectionRecord:
        section = await retry_store_call(lambda: self.store.get_section(section_id), self.retry_backoff)
        if section is None:
            raise SectionNotFoundError(section_id)
        return section

    async def create_draft(
        self,
        section_id: int,
        content: dict[str, Any],
        author_id: str | None = None,
        change_summary: str | None = None,
    ) -> VersionRecord:
        """
        Append a new unpublished version and point the section's draft at it.

        Not retried on ``StoreUnavailableError``: a create that timed out may
        have committed, so the caller decides whether to resubmit.
        """
        section = await self._get_section(section_id)
        validate_section_content(section.section_type, content)

        version = await self.store.append_version(
            section_id,
            content=content,
            change_summary=change_summary,
            created_by=author_id,
            now=self.clock.now(),
        )
        logger.info(f"Section {section_id}: created version {version.version_number} (id={version.id})")

        await self.invalidator.on_draft_update(section_id, section.locale)
        return version

    async def list_versions(self, section_id: int, page: int = 1, page_size: int = 20) -> VersionPage:
        """Newest first. ``page`` starts at 1."""
        if page < 1:
            raise InvalidStateError("page must be 1 or greater", details={"page": page})
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise InvalidStateError(
                f"page_size must be between 1 and {MAX_PAGE_SIZE}", details={"page_size": page_size}
            )

        await self._get_section(section_id)
        total = await retry_store_call(lambda: self.store.count_versions(section_id), self.retry_backoff)
        offset = (page - 1) * page_size
        items = await retry_store_call(
            lambda: self.store.list_versions(section_id, limit=page_size, offset=offset), self.retry_backoff
        )
        return VersionPage(
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            has_next=offset + len(items) < total,
        )

    async def get_version(self, section_id: int, version_id: int) -> VersionRecord:
        await self._get_section(section_id)
        version = await retry_store_call(lambda: self.store.get_version(version_id), self.retry_backoff)
        if version is None or version.section_id != section_id:
            raise VersionNotFoundError(version_id, section_id)
        return version

    async def count_versions(self, section_id: int) -> int:
        await self._get_section(section_id)
        return await retry_store_call(lambda: self.store.count_versions(section_id), self.retry_backoff)

    async def revert_to_version(
        self, section_id: int, target_version_id: int, author_id: str | None = None
    ) -> VersionRecord:
        """Copy an earlier version's content into a new draft version."""
        target = await self.get_version(section_id, target_version_id)
        logger.info(f"Section {section_id}: reverting to version {target.version_number}")
        return await self.create_draft(
            section_id,
            copy.deepcopy(target.content),
            author_id=author_id,
            change_summary=f"Reverted to version {target.version_number}",
        )
