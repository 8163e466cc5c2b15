"""
A small pluggable scheduler.

Jobs are registered with ``every(interval, job)`` and run by ``tick(now)``.
Anything can drive ``tick``: ``run_forever`` hands it to APScheduler as an
interval job, a cron entry can call it once, a test calls it with explicit
timestamps.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[Any]]


@dataclass
class ScheduledJob:
    name: str
    interval: timedelta
    job: Job
    next_run: datetime | None = None
    last_run: datetime | None = None
    failures: int = 0

    def is_due(self, now: datetime) -> bool:
        return self.next_run is None or now >= self.next_run


class Scheduler:
    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self.clock = clock
        self.jobs: list[ScheduledJob] = []

    def every(self, interval: timedelta, job: Job, name: str | None = None, start_at: datetime | None = None) -> ScheduledJob:
        if interval <= timedelta(0):
            raise ValueError("interval must be positive")
        scheduled = ScheduledJob(
            name=name or getattr(job, "__name__", "job"),
            interval=interval,
            job=job,
            next_run=start_at,
        )
        self.jobs.append(scheduled)
        return scheduled

    async def tick(self, now: datetime | None = None) -> list[str]:
        """Run every due job once; return the names of the jobs that ran.

        A failing job is logged and rescheduled; it does not stop the others.
        """
        now = now or self.clock()
        ran: list[str] = []
        for scheduled in self.jobs:
            if not scheduled.is_due(now):
                continue
            scheduled.last_run = now
            scheduled.next_run = now + scheduled.interval
            try:
                await scheduled.job()
            except Exception:
                scheduled.failures += 1
                logger.exception("Scheduled job %s failed", scheduled.name)
            ran.append(scheduled.name)
        return ran

    async def run_forever(self, stop: asyncio.Event, poll_seconds: float = 60.0) -> None:
        """Drive ``tick`` from an APScheduler interval job until ``stop`` is set."""
        driver = AsyncIOScheduler()
        driver.add_job(
            self.tick,
            "interval",
            seconds=poll_seconds,
            id="attendance-engine-tick",
            next_run_time=datetime.now(),
            max_instances=1,
            coalesce=True,
        )
        driver.start()
        logger.info("Scheduler started with %d job(s)", len(self.jobs))
        try:
            await stop.wait()
        finally:
            driver.shutdown(wait=False)
            logger.info("Scheduler stopped")
