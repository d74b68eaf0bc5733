"""
Tests for the APScheduler sweep job.
"""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from utils.fixtures import START, hero_content

from homepage_cms import scheduler as scheduler_module
from homepage_cms.models.section import SectionStatus
from homepage_cms.scheduler import SWEEP_JOB_ID, run_schedule_sweep, start_schedule_sweep, stop_schedule_sweep


class TestRunScheduleSweep:
    """Tests for the job body"""

    @pytest.mark.asyncio
    async def test_sweep_publishes_due_schedule(self, services, clock, hero_section):
        version = await services.versions.create_draft(hero_section.id, hero_content())
        await services.schedules.create_schedule(hero_section.id, version.id, publish_at=START + timedelta(hours=1))
        clock.advance(hours=2)

        await run_schedule_sweep(services)

        section = await services.sections.get_section(hero_section.id)
        assert section.status == SectionStatus.PUBLISHED

    @pytest.mark.asyncio
    async def test_sweep_retries_queued_purges(self, services, cache):
        cache.fail_purges = True
        await services.invalidator.on_reorder("en")
        cache.fail_purges = False

        await run_schedule_sweep(services)

        assert services.invalidator.pending == []


class TestSchedulerLifecycle:
    """Tests for registering and stopping the job"""

    def test_start_registers_single_job(self, services):
        mock_scheduler = MagicMock()
        mock_scheduler.running = False

        with patch.object(scheduler_module, "scheduler", mock_scheduler):
            start_schedule_sweep(services, interval_seconds=15)

        kwargs = mock_scheduler.add_job.call_args.kwargs
        assert kwargs["id"] == SWEEP_JOB_ID
        assert kwargs["max_instances"] == 1
        assert kwargs["coalesce"] is True
        assert kwargs["args"] == [services]
        assert kwargs["trigger"].interval == timedelta(seconds=15)
        mock_scheduler.start.assert_called_once()

    def test_start_does_not_restart_running_scheduler(self, services):
        mock_scheduler = MagicMock()
        mock_scheduler.running = True

        with patch.object(scheduler_module, "scheduler", mock_scheduler):
            start_schedule_sweep(services)

        mock_scheduler.start.assert_not_called()

    def test_stop(self):
        mock_scheduler = MagicMock()
        mock_scheduler.running = True

        with patch.object(scheduler_module, "scheduler", mock_scheduler):
            stop_schedule_sweep()

        mock_scheduler.shutdown.assert_called_once_with(wait=False)
