"""
Publication Service

Moves a section's live pointer. Publishing is one atomic store transition;
cache purges follow once it has committed.
"""

import logging
from datetime import datetime

from homepage_cms.exceptions import SectionNotFoundError
from homepage_cms.schemas.section import SectionRecord
from homepage_cms.schemas.version import PublishResult
from homepage_cms.services.cache_invalidation import CacheInvalidationCoordinator
from homepage_cms.store.base import ContentStore
from homepage_cms.utils.clock import Clock, SystemClock
from homepage_cms.utils.metrics import record_publish
from homepage_cms.utils.retry import retry_store_call

logger = logging.getLogger(__name__)


class PublicationController:
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

    async def publish(
        self,
        section_id: int,
        version_id: int,
        trigger: str = "manual",
        now: datetime | None = None,
    ) -> PublishResult:
        """
        Make a version the live content of its section.

        Publishing the version that is already live is a no-op returning the
        stored ``published_at``; nothing is invalidated in that case.
        """
        section = await retry_store_call(lambda: self.store.get_section(section_id), self.retry_backoff)
        if section is None:
            raise SectionNotFoundError(section_id)

        published_at = now or self.clock.now()
        version, changed = await retry_store_call(
            lambda: self.store.publish_version(section_id, version_id, published_at), self.retry_backoff
        )

        cache_invalidated = False
        if changed:
            record_publish(trigger)
            logger.info(
                f"Section {section_id}: version {version.version_number} (id={version_id}) published ({trigger})"
            )
            report = await self.invalidator.on_publish(section_id, section.locale)
            cache_invalidated = report.ok
        else:
            logger.debug(f"Section {section_id}: version {version_id} already live")

        return PublishResult(
            section_id=section_id,
            version_id=version.id,
            version_number=version.version_number,
            published_at=version.published_at,
            cache_invalidated=cache_invalidated,
        )

    async def archive(self, section_id: int, now: datetime | None = None) -> SectionRecord:
        """Take a section off the homepage. Its version pointers are kept."""
        section, changed = await retry_store_call(
            lambda: self.store.archive_section(section_id, now or self.clock.now()), self.retry_backoff
        )
        if changed:
            logger.info(f"Section {section_id} archived")
            await self.invalidator.on_archive(section_id, section.locale)
        return section
