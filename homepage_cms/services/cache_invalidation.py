"""
Cache Invalidation Coordinator

Maps lifecycle events (publish, draft edit, reorder, schedule execution...)
to the cache keys, tags and rendered paths that go stale, and purges them.

Purges run after the write has committed. A purge that fails never fails the
write: the failure is logged, counted, and the stale targets are queued for
``retry_pending()``, which the periodic sweep job calls.
"""

import logging
from dataclasses import dataclass, field

from homepage_cms.exceptions import InvalidationFailure
from homepage_cms.utils import cache_keys
from homepage_cms.utils.cache import CacheManager
from homepage_cms.utils.metrics import INVALIDATION_QUEUE_SIZE, record_invalidation_failure

logger = logging.getLogger(__name__)

KEY = "key"
TAG = "tag"
PATH = "path"


@dataclass
class InvalidationReport:
    event: str
    purged: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass
class InvalidationPlan:
    keys: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    paths: list[str] = field(default_factory=list)
    # Counters advanced before any purge runs
    generations: list[str] = field(default_factory=list)

    def targets(self) -> list[tuple[str, str]]:
        return (
            [(KEY, k) for k in self.keys]
            + [(TAG, t) for t in self.tags]
            + [(PATH, p) for p in self.paths]
        )


def _label(kind: str, value: str) -> str:
    return f"{kind}:{value}"


class CacheInvalidationCoordinator:
    """Turns lifecycle events into cache purges."""

    def __init__(self, cache: CacheManager):
        self.cache = cache
        # label -> (kind, value); insertion ordered so retries run oldest first
        self._pending: dict[str, tuple[str, str]] = {}

    @property
    def pending(self) -> list[str]:
        return list(self._pending)

    # ============== Event plans ==============

    @staticmethod
    def publish_plan(section_id: int, locale: str) -> InvalidationPlan:
        return InvalidationPlan(
            keys=[
                cache_keys.homepage_content_key(locale),
                cache_keys.section_detail_key(section_id),
                cache_keys.admin_sections_key(locale),
            ],
            tags=[f"homepage:{locale}", cache_keys.section_tag(section_id), cache_keys.admin_tag(locale)],
            paths=[cache_keys.locale_path(locale), "/"],
            generations=[cache_keys.homepage_generation_key(locale)],
        )

    @staticmethod
    def draft_update_plan(section_id: int, locale: str) -> InvalidationPlan:
        return InvalidationPlan(
            keys=[cache_keys.admin_sections_key(locale), cache_keys.admin_sections_key(locale, "draft")],
            tags=[cache_keys.admin_tag(locale), cache_keys.versions_tag(section_id)],
        )

    @staticmethod
    def reorder_plan(locale: str) -> InvalidationPlan:
        return InvalidationPlan(
            keys=[cache_keys.homepage_content_key(locale), cache_keys.admin_sections_key(locale)],
            tags=[f"homepage:{locale}", cache_keys.admin_tag(locale)],
            paths=[cache_keys.locale_path(locale)],
            generations=[cache_keys.homepage_generation_key(locale)],
        )

    @staticmethod
    def schedule_execute_plan(locale: str) -> InvalidationPlan:
        return InvalidationPlan(
            keys=[cache_keys.homepage_content_key(locale), cache_keys.SCHEDULED_SECTIONS_KEY],
            generations=[cache_keys.homepage_generation_key(locale)],
        )

    @staticmethod
    def associations_plan(section_id: int, locale: str) -> InvalidationPlan:
        return InvalidationPlan(
            keys=[cache_keys.homepage_content_key(locale), cache_keys.section_detail_key(section_id)],
            tags=[f"homepage:{locale}", cache_keys.section_tag(section_id)],
            paths=[cache_keys.locale_path(locale)],
            generations=[cache_keys.homepage_generation_key(locale)],
        )

    @staticmethod
    def schedule_change_plan(locale: str) -> InvalidationPlan:
        return InvalidationPlan(
            keys=[cache_keys.SCHEDULED_SECTIONS_KEY, cache_keys.admin_sections_key(locale)],
            tags=[cache_keys.admin_tag(locale)],
        )

    @staticmethod
    def revalidate_plan(locale: str, section_id: int | None = None) -> InvalidationPlan:
        plan = InvalidationPlan(
            keys=[cache_keys.homepage_content_key(locale)],
            tags=[f"homepage:{locale}"],
            paths=[cache_keys.locale_path(locale), "/"],
            generations=[cache_keys.homepage_generation_key(locale)],
        )
        if section_id is not None:
            plan.keys.append(cache_keys.section_detail_key(section_id))
            plan.tags.append(cache_keys.section_tag(section_id))
        return plan

    # ============== Events ==============

    async def on_publish(self, section_id: int, locale: str) -> InvalidationReport:
        return await self._dispatch("publish", self.publish_plan(section_id, locale))

    async def on_archive(self, section_id: int, locale: str) -> InvalidationReport:
        return await self._dispatch("archive", self.publish_plan(section_id, locale))

    async def on_draft_update(self, section_id: int, locale: str) -> InvalidationReport:
        return await self._dispatch("draft_update", self.draft_update_plan(section_id, locale))

    async def on_reorder(self, locale: str) -> InvalidationReport:
        return await self._dispatch("reorder", self.reorder_plan(locale))

    async def on_schedule_execute(self, locale: str) -> InvalidationReport:
        return await self._dispatch("schedule_execute", self.schedule_execute_plan(locale))

    async def on_associations_change(self, section_id: int, locale: str) -> InvalidationReport:
        return await self._dispatch("associations_change", self.associations_plan(section_id, locale))

    async def on_schedule_change(self, locale: str) -> InvalidationReport:
        return await self._dispatch("schedule_change", self.schedule_change_plan(locale))

    # ============== Purging ==============

    async def _purge(self, kind: str, value: str) -> bool:
        if kind == KEY:
            return await self.cache.invalidate_key(value)
        if kind == TAG:
            return await self.cache.invalidate_tag(value)
        return await self.cache.refresh_path(value)

    async def _apply(self, event: str, targets: list[tuple[str, str]], report: InvalidationReport) -> None:
        for kind, value in targets:
            label = _label(kind, value)
            try:
                purged = await self._purge(kind, value)
            except Exception as e:
                logger.warning(f"Cache purge of {label} raised: {e}")
                purged = False
            if purged:
                report.purged.append(label)
                self._pending.pop(label, None)
            else:
                report.failed.append(label)
                self._pending[label] = (kind, value)
        INVALIDATION_QUEUE_SIZE.set(len(self._pending))
        if report.failed:
            raise InvalidationFailure(event, report.failed)

    async def _dispatch(self, event: str, plan: InvalidationPlan) -> InvalidationReport:
        for key in plan.generations:
            if not await self.cache.bump_generation(key):
                logger.warning(f"Cache: could not advance {key} ahead of the {event} purge")
        return await self._dispatch_targets(event, plan.targets())

    async def _dispatch_targets(self, event: str, targets: list[tuple[str, str]]) -> InvalidationReport:
        report = InvalidationReport(event=event)
        try:
            await self._apply(event, targets, report)
        except InvalidationFailure as failure:
            logger.error(f"{failure.message}; queued for retry: {', '.join(failure.failed)}")
            record_invalidation_failure(event)
        else:
            logger.debug(f"Cache invalidation for {event}: {len(report.purged)} target(s) purged")
        return report

    async def retry_pending(self) -> InvalidationReport:
        """Re-run purges that failed earlier. Targets that fail again stay queued."""
        if not self._pending:
            return InvalidationReport(event="retry")
        queued = list(self._pending.values())
        logger.info(f"Retrying {len(queued)} queued cache invalidation(s)")
        return await self._dispatch_targets("retry", queued)

    async def revalidate(self, locale: str, section_id: int | None = None) -> InvalidationReport:
        """
        Operator-triggered purge of a locale's public homepage.

        Queued purges are replayed first; the report covers the homepage
        targets only, and ``pending`` shows whatever is still queued.
        """
        await self.retry_pending()
        return await self._dispatch("revalidate", self.revalidate_plan(locale, section_id))
