import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from homepage_cms.config import settings
from homepage_cms.dependencies import CMSServices

scheduler = AsyncIOScheduler(timezone="UTC")

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "homepage_schedule_sweep"


async def run_schedule_sweep(services: CMSServices) -> None:
    """Periodic job: execute due schedules, then retry queued cache purges."""
    result = await services.schedules.process_schedules()
    if result.failures:
        logger.warning(f"[Scheduler] Sweep finished with {len(result.failures)} failed schedule(s)")
    await services.invalidator.retry_pending()


def start_schedule_sweep(services: CMSServices, interval_seconds: int | None = None) -> None:
    scheduler.add_job(
        run_schedule_sweep,
        trigger=IntervalTrigger(seconds=interval_seconds or settings.scheduler_interval_seconds),
        args=[services],
        id=SWEEP_JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    if not scheduler.running:
        scheduler.start()
    logger.info(f"[Scheduler] Schedule sweep every {interval_seconds or settings.scheduler_interval_seconds}s")


def stop_schedule_sweep() -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("[Scheduler] Stopped")
