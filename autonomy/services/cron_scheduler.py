"""
Cron-style schedules for deterministic workflows.
Holds one job per workflow name and, optionally, runs an in-process tick loop
that hands due jobs to a callback.
"""
from __future__ import annotations

import asyncio
import logging
import re
import threading
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Set
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

from autonomy.core.exceptions import InvalidScheduleError
from autonomy.schemas.schedule import ScheduledJob

logger = logging.getLogger(__name__)

DEFAULT_TICK_SECONDS = 60
DAILY_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")

JobCallback = Callable[[ScheduledJob], Awaitable[None]]


def normalize_cron_expression(expression: str) -> str:
    """
    Accept a daily ``HH:MM`` time or a 5-field cron expression and return
    the cron form. Raises InvalidScheduleError for anything else.
    """
    normalized = (expression or "").strip()

    daily = DAILY_TIME_PATTERN.match(normalized)
    if daily:
        hour, minute = int(daily.group(1)), int(daily.group(2))
        if not (0 <= hour <= 23 and 0 <= minute <= 59):
            raise InvalidScheduleError(f"Invalid cron expression: {expression}")
        return f"{minute} {hour} * * *"

    if len(normalized.split()) != 5 or not croniter.is_valid(normalized):
        raise InvalidScheduleError(f"Unsupported cron expression: {expression}")
    return normalized


def resolve_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, TypeError) as exc:
        raise InvalidScheduleError(f"Unknown timezone: {name}") from exc


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC, the convention used for stored timestamps."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def compute_next_trigger(cron_expression: str, timezone_name: str, from_dt: Optional[datetime] = None) -> datetime:
    """Next fire time strictly after from_dt, evaluated in the job's timezone and returned in UTC."""
    zone = resolve_timezone(timezone_name)
    start = as_utc(from_dt or datetime.now(timezone.utc)).astimezone(zone)
    return croniter(normalize_cron_expression(cron_expression), start).get_next(datetime).astimezone(timezone.utc)


class CronScheduler:
    """Registry of schedule entries plus an optional asyncio tick loop."""

    def __init__(self, tick_seconds: float = DEFAULT_TICK_SECONDS):
        self.tick_seconds = tick_seconds
        self._jobs: Dict[str, ScheduledJob] = {}
        self._lock = threading.Lock()
        self._stop_event: asyncio.Event | None = None
        self._task: asyncio.Task | None = None
        self._callback: JobCallback | None = None
        self._inflight: Set[asyncio.Task] = set()

    def register(
        self,
        workflow_name: str,
        cron_expression: str,
        timezone: str = "UTC",
        enabled: bool = True,
    ) -> ScheduledJob:
        """Register a schedule for a workflow, replacing any existing one for that name."""
        if not workflow_name:
            raise InvalidScheduleError("workflow_name is required")

        job = ScheduledJob(
            id=str(uuid.uuid4()),
            workflow_name=workflow_name,
            cron_expression=cron_expression,
            timezone=timezone,
            enabled=enabled,
            next_trigger=compute_next_trigger(cron_expression, timezone),
        )

        with self._lock:
            replaced = workflow_name in self._jobs
            self._jobs[workflow_name] = job

        logger.info(
            "%s schedule for %s (%s %s), next trigger %s",
            "Replaced" if replaced else "Registered",
            workflow_name,
            cron_expression,
            timezone,
            job.next_trigger.isoformat() if job.next_trigger else None,
        )
        return job.model_copy()

    def unregister(self, workflow_name: str) -> bool:
        with self._lock:
            return self._jobs.pop(workflow_name, None) is not None

    def get_job(self, workflow_name: str) -> ScheduledJob | None:
        with self._lock:
            job = self._jobs.get(workflow_name)
            return job.model_copy() if job else None

    def list_jobs(self) -> List[ScheduledJob]:
        with self._lock:
            return [job.model_copy() for job in self._jobs.values()]

    def run_due(self, now: Optional[datetime] = None) -> List[ScheduledJob]:
        """
        Return enabled jobs due at ``now`` and advance their next trigger.

        The returned copies reflect each job as it was before this firing.
        """
        now = as_utc(now or datetime.now(timezone.utc))
        due: List[ScheduledJob] = []

        with self._lock:
            for job in self._jobs.values():
                if not job.enabled or job.next_trigger is None:
                    continue
                if job.next_trigger > now:
                    continue
                due.append(job.model_copy())
                job.last_triggered = now
                job.next_trigger = compute_next_trigger(job.cron_expression, job.timezone, now)

        return due

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, on_trigger: JobCallback) -> None:
        """Start the tick loop as a background task on the running event loop."""
        self._callback = on_trigger
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run_loop(self._stop_event))
        logger.info("CronScheduler started (tick every %ss)", self.tick_seconds)

    async def stop(self) -> None:
        """Stop the tick loop and wait for in-flight callbacks."""
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task is not None:
            await self._task
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)
        self._task = None
        self._callback = None
        logger.info("CronScheduler stopped")

    async def _run_loop(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                self._tick()
            except Exception as exc:
                logger.exception("CronScheduler tick failed: %s", exc)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.tick_seconds)
            except asyncio.TimeoutError:
                pass

    def _tick(self) -> None:
        callback = self._callback
        if callback is None:
            return
        for job in self.run_due():
            task = asyncio.create_task(self._fire(callback, job))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

    @staticmethod
    async def _fire(callback: JobCallback, job: ScheduledJob) -> None:
        try:
            await callback(job)
        except Exception as exc:
            logger.exception("Scheduled run failed for workflow %s: %s", job.workflow_name, exc)
