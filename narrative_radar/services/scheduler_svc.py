from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from dateutil.rrule import DAILY, MONTHLY, rrule

from narrative_radar.core.config import DEFAULT_DAY_RANGE
from narrative_radar.services.pipeline_logic import PipelineOrchestrator

logger = logging.getLogger(__name__)


def daily_collection_rule(start: datetime) -> rrule:
    """Every day at 06:00 UTC."""
    return rrule(DAILY, dtstart=start, byhour=6, byminute=0, bysecond=0)


def fortnightly_analysis_rule(start: datetime) -> rrule:
    """1st and 15th of each month at 08:00 UTC."""
    return rrule(MONTHLY, dtstart=start, bymonthday=(1, 15), byhour=8, byminute=0, bysecond=0)


@dataclass(frozen=True)
class ScheduledJob:
    name: str
    rule: Callable[[datetime], rrule]
    action: Callable[[], Awaitable[Any]]

    def next_run(self, now: datetime) -> datetime:
        start = now.astimezone(timezone.utc).replace(microsecond=0)
        next_fire = self.rule(start).after(now)
        if next_fire is None:
            raise RuntimeError(f"Schedule for {self.name} has no future occurrences")
        return next_fire


class PipelineScheduler:
    """
    In-process cron for the pipeline.

    Owned by the application lifespan: ``start()`` spawns one task per job,
    ``stop()`` cancels and awaits them. A failing run is logged and the job
    waits for its next slot.
    """

    def __init__(
        self,
        orchestrator: PipelineOrchestrator,
        day_range: int = DEFAULT_DAY_RANGE,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.day_range = day_range
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._tasks: dict[str, asyncio.Task] = {}
        self.schedule = [
            ScheduledJob("daily-collection", daily_collection_rule, self._collect),
            ScheduledJob("fortnightly-analysis", fortnightly_analysis_rule, self._full_run),
        ]

    @property
    def jobs(self) -> dict[str, asyncio.Task]:
        return {name: task for name, task in self._tasks.items() if not task.done()}

    @property
    def running(self) -> bool:
        return bool(self.jobs)

    async def _collect(self) -> None:
        await self.orchestrator.run_collection(self.day_range)

    async def _full_run(self) -> None:
        await self.orchestrator.run_full(self.day_range)

    async def _run_job(self, job: ScheduledJob) -> None:
        while True:
            now = self._clock()
            next_fire = job.next_run(now)
            delay = max((next_fire - now).total_seconds(), 0.0)
            logger.info("Next %s run at %s", job.name, next_fire.isoformat())
            await asyncio.sleep(delay)

            logger.info("Scheduled %s starting", job.name)
            try:
                await job.action()
                logger.info("Scheduled %s complete", job.name)
            except Exception as e:
                logger.error("Scheduled %s failed: %s", job.name, e, exc_info=True)

    def start(self) -> None:
        if self.running:
            logger.warning("Scheduler already running")
            return
        for job in self.schedule:
            self._tasks[job.name] = asyncio.create_task(self._run_job(job), name=job.name)
        logger.info("Scheduler started: %s", ", ".join(self._tasks))

    async def stop(self) -> None:
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("Scheduler stopped")
