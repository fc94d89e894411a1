"""
Scheduler Module for MedJobs Application.

Runs the refresh token cleanup jobs:

- ``purge_expired_tokens``: daily at 02:00 UTC
- ``purge_old_tokens``: weekly, Sunday 03:00 UTC
- ``log_token_stats``: hourly, at minute 0

The API process starts it from its lifespan when ``ENABLE_SCHEDULER`` is
set. It can also run on its own:

Standalone Usage:
    python -m app.infrastructure.scheduler.main
"""

import asyncio
import signal
from dataclasses import dataclass, field
from datetime import timezone
from typing import Any, Awaitable, Callable

from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from app.core.config import scheduler_logger
from app.core.db import dispose_db
from app.infrastructure.scheduler.jobs import (
    log_token_stats,
    purge_expired_tokens,
    purge_old_tokens,
)


@dataclass(frozen=True)
class CleanupJob:
    name: str
    func: Callable[..., Awaitable[Any]]
    cron: dict[str, Any]
    description: str
    misfire_grace_time: int = 60 * 60
    kwargs: dict[str, Any] = field(default_factory=dict)


CLEANUP_JOBS: tuple[CleanupJob, ...] = (
    CleanupJob(
        name="purge_expired_tokens",
        func=purge_expired_tokens,
        cron={"hour": 2, "minute": 0},
        description="daily at 02:00 UTC",
    ),
    CleanupJob(
        name="purge_old_tokens",
        func=purge_old_tokens,
        cron={"day_of_week": "sun", "hour": 3, "minute": 0},
        description="weekly on Sunday at 03:00 UTC",
    ),
    CleanupJob(
        name="log_token_stats",
        func=log_token_stats,
        cron={"minute": 0},
        description="hourly at minute 0",
        misfire_grace_time=60 * 5,
    ),
)


class CleanupScheduler:
    """
    Owns the registry of cleanup jobs on an ``AsyncIOScheduler``.

    ``start()`` is idempotent: while jobs are registered a second call only
    logs a warning. ``stop()`` removes every job, keeps going when one
    removal fails, and shuts the scheduler down without waiting for
    running jobs.
    """

    def __init__(
        self,
        apscheduler: AsyncIOScheduler | None = None,
        jobs: tuple[CleanupJob, ...] = CLEANUP_JOBS,
    ):
        self._scheduler = apscheduler or AsyncIOScheduler(timezone=timezone.utc)
        self._jobs = jobs
        self._registry: dict[str, Job] = {}

    @property
    def is_running(self) -> bool:
        return bool(self._registry) and self._scheduler.running

    @property
    def registered_jobs(self) -> list[str]:
        return list(self._registry)

    def start(self) -> None:
        if self._registry:
            scheduler_logger.warning(
                "Cleanup scheduler already started; ignoring start() call"
            )
            return

        if not self._scheduler.running:
            self._scheduler.start()

        for job in self._jobs:
            scheduler_logger.info(f"Scheduling '{job.name}' job to run {job.description}")
            self._registry[job.name] = self._scheduler.add_job(
                job.func,
                trigger=CronTrigger(timezone=timezone.utc, **job.cron),
                id=f"{job.name}_job",
                name=job.name,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=job.misfire_grace_time,
                kwargs=job.kwargs,
            )

        scheduler_logger.info(
            f"Cleanup scheduler started with {len(self._registry)} job(s)"
        )

    def stop(self) -> None:
        for name, job in list(self._registry.items()):
            try:
                job.remove()
            except Exception as e:
                scheduler_logger.error(f"Failed to remove '{name}' job: {e}")
        self._registry.clear()

        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

        scheduler_logger.info("Cleanup scheduler stopped")


async def main() -> None:
    """
    Main entry point for standalone scheduler execution.

    Starts the cleanup jobs and runs until SIGINT or SIGTERM.
    """
    shutdown_event = asyncio.Event()

    def handle_shutdown(signum, frame):
        scheduler_logger.info(f"Received signal {signum}, initiating shutdown...")
        shutdown_event.set()

    signal.signal(signal.SIGINT, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)

    scheduler_logger.info("Starting standalone scheduler...")
    cleanup_scheduler = CleanupScheduler()

    try:
        cleanup_scheduler.start()
        scheduler_logger.info("Scheduler started successfully. Waiting for jobs...")
        await shutdown_event.wait()

    except Exception as e:
        scheduler_logger.exception(f"Scheduler error: {e}")
        raise

    finally:
        scheduler_logger.info("Shutting down scheduler...")
        cleanup_scheduler.stop()
        await dispose_db()
        scheduler_logger.info("Scheduler shutdown complete.")


if __name__ == "__main__":
    asyncio.run(main())
