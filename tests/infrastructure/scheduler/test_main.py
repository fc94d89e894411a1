"""
Test suite for the cleanup scheduler.

Run tests:
    pytest tests/infrastructure/scheduler/test_main.py -v

Run with coverage:
    pytest tests/infrastructure/scheduler/test_main.py --cov=app.infrastructure.scheduler.main --cov-report=term-missing -v
"""

import asyncio
from datetime import timezone
from unittest.mock import MagicMock, patch

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from app.infrastructure.scheduler.main import CLEANUP_JOBS, CleanupScheduler


@pytest.fixture
async def cleanup_scheduler():
    """Scheduler bound to the running test event loop."""
    cleanup = CleanupScheduler(AsyncIOScheduler(timezone=timezone.utc))
    yield cleanup
    if cleanup.registered_jobs:
        cleanup.stop()
    # AsyncIOScheduler.shutdown runs on the next loop iteration
    await asyncio.sleep(0)


def _fields(trigger: CronTrigger) -> dict[str, str]:
    return {f.name: str(f) for f in trigger.fields}


class TestCleanupJobs:

    def test_job_names(self):
        assert [job.name for job in CLEANUP_JOBS] == [
            "purge_expired_tokens",
            "purge_old_tokens",
            "log_token_stats",
        ]


class TestCleanupSchedulerStart:

    async def test_start_registers_three_jobs(self, cleanup_scheduler):
        cleanup_scheduler.start()

        assert cleanup_scheduler.is_running is True
        assert cleanup_scheduler.registered_jobs == [
            "purge_expired_tokens",
            "purge_old_tokens",
            "log_token_stats",
        ]

    async def test_cron_schedules(self, cleanup_scheduler):
        cleanup_scheduler.start()
        jobs = cleanup_scheduler._registry

        daily = _fields(jobs["purge_expired_tokens"].trigger)
        weekly = _fields(jobs["purge_old_tokens"].trigger)
        hourly = _fields(jobs["log_token_stats"].trigger)

        assert (daily["hour"], daily["minute"]) == ("2", "0")
        assert (weekly["day_of_week"], weekly["hour"], weekly["minute"]) == ("sun", "3", "0")
        assert (hourly["hour"], hourly["minute"]) == ("*", "0")

    async def test_jobs_never_overlap(self, cleanup_scheduler):
        cleanup_scheduler.start()

        for job in cleanup_scheduler._registry.values():
            assert job.max_instances == 1
            assert job.coalesce is True

    async def test_second_start_is_noop(self, cleanup_scheduler):
        cleanup_scheduler.start()
        jobs_before = dict(cleanup_scheduler._registry)

        with patch("app.infrastructure.scheduler.main.scheduler_logger") as mock_logger:
            cleanup_scheduler.start()

            mock_logger.warning.assert_called_once()

        assert cleanup_scheduler._registry == jobs_before
        assert len(cleanup_scheduler._scheduler.get_jobs()) == 3

    async def test_not_running_before_start(self, cleanup_scheduler):
        assert cleanup_scheduler.is_running is False
        assert cleanup_scheduler.registered_jobs == []


class TestCleanupSchedulerStop:

    async def test_stop_removes_jobs_and_shuts_down(self, cleanup_scheduler):
        cleanup_scheduler.start()

        cleanup_scheduler.stop()
        await asyncio.sleep(0)

        assert cleanup_scheduler.registered_jobs == []
        assert cleanup_scheduler.is_running is False
        assert cleanup_scheduler._scheduler.running is False

    async def test_failing_removal_does_not_stop_others(self, cleanup_scheduler):
        cleanup_scheduler.start()
        broken = MagicMock()
        broken.remove.side_effect = RuntimeError("cannot remove")
        healthy = [
            job for name, job in cleanup_scheduler._registry.items()
            if name != "purge_old_tokens"
        ]
        cleanup_scheduler._registry["purge_old_tokens"] = broken

        with patch("app.infrastructure.scheduler.main.scheduler_logger") as mock_logger:
            cleanup_scheduler.stop()

            mock_logger.error.assert_called_once()

        broken.remove.assert_called_once()
        assert cleanup_scheduler.registered_jobs == []
        remaining_ids = {job.id for job in cleanup_scheduler._scheduler.get_jobs()}
        assert not remaining_ids & {job.id for job in healthy}

    async def test_stop_does_not_wait_for_running_jobs(self):
        apscheduler = MagicMock()
        apscheduler.running = True
        cleanup = CleanupScheduler(apscheduler)
        cleanup.start()

        cleanup.stop()

        apscheduler.shutdown.assert_called_once_with(wait=False)

    async def test_restart_after_stop(self, cleanup_scheduler):
        cleanup_scheduler.start()
        cleanup_scheduler.stop()
        await asyncio.sleep(0)

        cleanup_scheduler.start()

        assert len(cleanup_scheduler.registered_jobs) == 3
        assert cleanup_scheduler.is_running is True

    def test_stop_without_start(self):
        cleanup = CleanupScheduler(AsyncIOScheduler(timezone=timezone.utc))

        cleanup.stop()

        assert cleanup.registered_jobs == []
