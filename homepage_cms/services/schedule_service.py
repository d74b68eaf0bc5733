"""
Schedule Service

Timed publication and expiry of sections.

A schedule either publishes a version at ``publish_at`` and optionally
archives the section again at ``expire_at``, or (without ``publish_at``)
only watches an already live section for expiry. ``process_schedules``
performs the transitions that are due; it is driven periodically by the
APScheduler job in ``homepage_cms.scheduler`` and can be run by hand from
the admin API.

A sweep claims each due schedule with a compare-and-set on its status before
publishing or archiving, and hands it back if that fails. A cancel or an
overlapping sweep that moved the schedule first therefore stops the action.
"""

import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime
from typing import Any

from homepage_cms.config import settings
from homepage_cms.exceptions import (
    CMSError,
    InvalidStateError,
    ScheduleExecutionFailure,
    ScheduleNotFoundError,
    SectionNotFoundError,
    VersionNotFoundError,
)
from homepage_cms.models.section_schedule import ScheduleStatus
from homepage_cms.schemas.common import ensure_utc
from homepage_cms.schemas.schedule import ScheduleFailure, ScheduleRecord, ScheduleTransition, SweepResult
from homepage_cms.schemas.section import SectionRecord
from homepage_cms.services.cache_invalidation import CacheInvalidationCoordinator
from homepage_cms.services.publication_service import PublicationController
from homepage_cms.store.base import ContentStore
from homepage_cms.utils.clock import Clock, SystemClock
from homepage_cms.utils.metrics import SWEEP_DURATION_SECONDS, record_schedule_failure, record_schedule_transition
from homepage_cms.utils.retry import retry_store_call

logger = logging.getLogger(__name__)

OPEN_STATUSES = (ScheduleStatus.PENDING, ScheduleStatus.ACTIVE)


class ScheduleService:
    """Creates, cancels and executes section schedules."""

    def __init__(
        self,
        store: ContentStore,
        publisher: PublicationController,
        invalidator: CacheInvalidationCoordinator,
        clock: Clock | None = None,
        batch_size: int | None = None,
        retry_backoff: list[float] | None = None,
    ):
        self.store = store
        self.publisher = publisher
        self.invalidator = invalidator
        self.clock = clock or SystemClock()
        self.batch_size = batch_size or settings.scheduler_batch_size
        self.retry_backoff = retry_backoff

    async def _get_section(self, section_id: int) -> SectionRecord:
        section = await retry_store_call(lambda: self.store.get_section(section_id), self.retry_backoff)
        if section is None:
            raise SectionNotFoundError(section_id)
        return section

    # ============== Administration ==============

    async def create_schedule(
        self,
        section_id: int,
        version_id: int | None = None,
        publish_at: datetime | None = None,
        expire_at: datetime | None = None,
        notes: str | None = None,
        created_by: str | None = None,
    ) -> ScheduleRecord:
        now = self.clock.now()
        publish_at = ensure_utc(publish_at) if publish_at else None
        expire_at = ensure_utc(expire_at) if expire_at else None

        section = await self._get_section(section_id)

        if publish_at is None and expire_at is None:
            raise InvalidStateError("A schedule needs a publish time, an expiry time or both")

        if version_id is not None:
            version = await retry_store_call(lambda: self.store.get_version(version_id), self.retry_backoff)
            if version is None or version.section_id != section_id:
                raise VersionNotFoundError(version_id, section_id)
            if version.published_at is not None and not version.is_published:
                raise InvalidStateError(
                    f"Version {version_id} was superseded after being published; revert to it instead",
                    details={"section_id": section_id, "version_id": version_id},
                )

        if publish_at is not None:
            if version_id is None:
                raise InvalidStateError("A scheduled publish needs a version to publish")
            if publish_at <= now:
                raise InvalidStateError(
                    "publish_at must be in the future",
                    details={"publish_at": publish_at.isoformat(), "now": now.isoformat()},
                )
            if expire_at is not None and expire_at <= publish_at:
                raise InvalidStateError(
                    "expire_at must be after publish_at",
                    details={"publish_at": publish_at.isoformat(), "expire_at": expire_at.isoformat()},
                )
            status = ScheduleStatus.PENDING
        else:
            if expire_at <= now:
                raise InvalidStateError(
                    "expire_at must be in the future",
                    details={"expire_at": expire_at.isoformat(), "now": now.isoformat()},
                )
            status = ScheduleStatus.ACTIVE

        schedule = await self.store.create_schedule(
            section_id=section_id,
            version_id=version_id,
            publish_at=publish_at,
            expire_at=expire_at,
            status=status,
            created_by=created_by,
            notes=notes,
            now=now,
        )
        logger.info(
            f"Schedule {schedule.id} created for section {section_id} "
            f"(status={status.value}, publish_at={publish_at}, expire_at={expire_at})"
        )
        await self.invalidator.on_schedule_change(section.locale)
        return schedule

    async def get_schedule(self, schedule_id: int) -> ScheduleRecord:
        schedule = await retry_store_call(lambda: self.store.get_schedule(schedule_id), self.retry_backoff)
        if schedule is None:
            raise ScheduleNotFoundError(schedule_id)
        return schedule

    async def list_schedules(
        self,
        section_id: int | None = None,
        statuses: Iterable[ScheduleStatus] | None = None,
    ) -> list[ScheduleRecord]:
        if section_id is not None:
            await self._get_section(section_id)
        return await retry_store_call(
            lambda: self.store.list_schedules(section_id=section_id, statuses=statuses), self.retry_backoff
        )

    async def cancel_schedule(self, schedule_id: int) -> ScheduleRecord:
        schedule = await self.get_schedule(schedule_id)
        cancelled = await self.store.transition_schedule(
            schedule_id,
            from_statuses=OPEN_STATUSES,
            to_status=ScheduleStatus.CANCELLED,
            now=self.clock.now(),
        )
        if not cancelled:
            current = await self.get_schedule(schedule_id)
            raise InvalidStateError(
                f"Schedule {schedule_id} is {current.status.value} and can no longer be cancelled",
                details={"schedule_id": schedule_id, "status": current.status.value},
            )
        logger.info(f"Schedule {schedule_id} cancelled")

        section = await retry_store_call(lambda: self.store.get_section(schedule.section_id), self.retry_backoff)
        if section is not None:
            await self.invalidator.on_schedule_change(section.locale)
        return await self.get_schedule(schedule_id)

    # ============== Sweep ==============

    async def _claim(
        self, schedule: ScheduleRecord, claimed_from: ScheduleStatus, claimed_to: ScheduleStatus, now: datetime
    ) -> bool:
        # Single attempt: a retry cannot tell its own committed claim from a rival one
        claimed = await self.store.transition_schedule(
            schedule.id, from_statuses=[claimed_from], to_status=claimed_to, now=now
        )
        if not claimed:
            logger.info(f"Schedule {schedule.id} is no longer {claimed_from.value}; skipping")
        return claimed

    async def _release(
        self, schedule: ScheduleRecord, claimed_to: ScheduleStatus, back_to: ScheduleStatus, now: datetime
    ) -> None:
        try:
            await retry_store_call(
                lambda: self.store.transition_schedule(
                    schedule.id, from_statuses=[claimed_to], to_status=back_to, now=now
                ),
                self.retry_backoff,
            )
        except CMSError as e:
            logger.error(f"Schedule {schedule.id} left {claimed_to.value} after a failed run: {e.message}")

    async def _stamp(self, schedule: ScheduleRecord, status: ScheduleStatus, now: datetime) -> None:
        try:
            await retry_store_call(
                lambda: self.store.transition_schedule(
                    schedule.id, from_statuses=[status], to_status=status, now=now, executed_at=now
                ),
                self.retry_backoff,
            )
        except CMSError as e:
            logger.error(f"Schedule {schedule.id} ran but executed_at was not recorded: {e.message}")

    async def _execute(
        self,
        schedule: ScheduleRecord,
        claimed_from: ScheduleStatus,
        claimed_to: ScheduleStatus,
        action: Callable[[], Awaitable[Any]],
        now: datetime,
    ) -> bool:
        """
        Claim, act, record.

        The schedule is moved to ``claimed_to`` before ``action`` runs and is
        handed back to ``claimed_from`` if the action raises. Returns False
        when the claim was lost and nothing was done.
        """
        if not await self._claim(schedule, claimed_from, claimed_to, now):
            return False
        try:
            await action()
        except Exception:
            await self._release(schedule, claimed_to, claimed_from, now)
            raise
        await self._stamp(schedule, claimed_to, now)
        return True

    async def _activate(self, schedule: ScheduleRecord, now: datetime) -> tuple[ScheduleTransition | None, str]:
        section = await self._get_section(schedule.section_id)
        done = await self._execute(
            schedule,
            ScheduleStatus.PENDING,
            ScheduleStatus.ACTIVE,
            lambda: self.publisher.publish(schedule.section_id, schedule.version_id, trigger="scheduled", now=now),
            now,
        )
        if not done:
            return None, section.locale
        return (
            ScheduleTransition(
                schedule_id=schedule.id,
                section_id=schedule.section_id,
                version_id=schedule.version_id,
                action="published",
            ),
            section.locale,
        )

    async def _expire(self, schedule: ScheduleRecord, now: datetime) -> tuple[ScheduleTransition | None, str]:
        section = await self._get_section(schedule.section_id)
        done = await self._execute(
            schedule,
            ScheduleStatus.ACTIVE,
            ScheduleStatus.EXPIRED,
            lambda: self.publisher.archive(schedule.section_id, now=now),
            now,
        )
        if not done:
            return None, section.locale
        return (
            ScheduleTransition(
                schedule_id=schedule.id,
                section_id=schedule.section_id,
                version_id=schedule.version_id,
                action="expired",
            ),
            section.locale,
        )

    async def _run(
        self,
        schedule: ScheduleRecord,
        action: str,
        now: datetime,
        result: SweepResult,
        touched_locales: set[str],
    ) -> None:
        handler = self._activate if action == "publish" else self._expire
        try:
            transition, locale = await handler(schedule, now)
        except CMSError as e:
            failure = ScheduleExecutionFailure(schedule.id, action, e.message)
            logger.error(failure.message)
        except Exception as e:
            failure = ScheduleExecutionFailure(schedule.id, action, str(e) or type(e).__name__)
            logger.exception(failure.message)
        else:
            if transition is not None:
                result.transitions.append(transition)
                record_schedule_transition(transition.action)
                touched_locales.add(locale)
            return

        record_schedule_failure(action)
        result.failures.append(
            ScheduleFailure(
                schedule_id=schedule.id,
                section_id=schedule.section_id,
                action=action,
                reason=failure.reason,
            )
        )

    async def process_schedules(self, now: datetime | None = None) -> SweepResult:
        """
        Execute every due transition as of one instant.

        Pending schedules whose publish time has passed are published and
        marked active; active schedules whose expiry has passed archive their
        section and are marked expired. A failing schedule is reported in
        ``failures`` and stays where it was, to be retried by the next sweep.
        """
        now = ensure_utc(now) if now else self.clock.now()
        started = time.perf_counter()
        result = SweepResult(processed_at=now)
        touched_locales: set[str] = set()

        due = await retry_store_call(lambda: self.store.due_publish_schedules(now, self.batch_size), self.retry_backoff)
        for schedule in due:
            await self._run(schedule, "publish", now, result, touched_locales)

        expiring = await retry_store_call(
            lambda: self.store.due_expiry_schedules(now, self.batch_size), self.retry_backoff
        )
        for schedule in expiring:
            await self._run(schedule, "expire", now, result, touched_locales)

        if len(due) == self.batch_size or len(expiring) == self.batch_size:
            logger.info(f"Schedule sweep hit the batch size of {self.batch_size}; the rest run next sweep")

        for locale in sorted(touched_locales):
            await self.invalidator.on_schedule_execute(locale)

        SWEEP_DURATION_SECONDS.observe(time.perf_counter() - started)
        if result.transitions or result.failures:
            logger.info(
                f"Schedule sweep at {now.isoformat()}: {len(result.transitions)} transition(s), "
                f"{len(result.failures)} failure(s)"
            )
        return result
