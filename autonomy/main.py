"""
Arachne autonomy - process wiring.
Opens the migrated store, loads the workflow catalog and arms the built-in schedules.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from autonomy.agents.roster import AgentRoster, agent_roster
from autonomy.config import Settings, get_settings
from autonomy.database import close_db, init_db
from autonomy.schemas.schedule import ScheduledJob
from autonomy.services.builtin_workflows import register_builtin_schedules, register_builtin_workflows
from autonomy.services.cron_scheduler import CronScheduler, JobCallback
from autonomy.services.engine import AutonomyEngine, DispatchFn, WorkflowRunner
from autonomy.services.persistence import SqlPersistence
from autonomy.services.registry import WorkflowRegistry
from autonomy.services.task_queue import TaskQueue

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


@dataclass
class AutonomyRuntime:
    settings: Settings
    registry: WorkflowRegistry
    roster: AgentRoster
    scheduler: CronScheduler
    queue: TaskQueue
    engine: AutonomyEngine
    daily_schedule: Optional[ScheduledJob] = None


def startup(
    settings: Optional[Settings] = None,
    workflow_runner: Optional[WorkflowRunner] = None,
    dispatch_fn: Optional[DispatchFn] = None,
) -> AutonomyRuntime:
    """Initialize storage and build every component. Raises MigrationError if the store cannot be migrated."""
    settings = settings or get_settings()
    logger.info("Starting %s (%s)...", settings.app_name, settings.app_env)

    engine = init_db(settings.db_path, settings.migrations_dir)

    registry = WorkflowRegistry(persistence=SqlPersistence(engine))
    count = register_builtin_workflows(registry)
    logger.info("Workflow registry ready: %s workflows (%s built-in)", len(registry.list()), count)

    scheduler = CronScheduler(tick_seconds=settings.scheduler_tick_seconds)
    daily_schedule = register_builtin_schedules(scheduler, settings.preferences_path)
    if daily_schedule is None:
        logger.info("No daily schedule configured")

    queue = TaskQueue(max_concurrent=settings.task_queue_max_concurrent)
    autonomy_engine = AutonomyEngine(
        registry=registry,
        queue=queue,
        roster=agent_roster,
        workflow_runner=workflow_runner,
        dispatch_fn=dispatch_fn,
    )

    return AutonomyRuntime(
        settings=settings,
        registry=registry,
        roster=agent_roster,
        scheduler=scheduler,
        queue=queue,
        engine=autonomy_engine,
        daily_schedule=daily_schedule,
    )


def scheduled_trigger(runtime: AutonomyRuntime) -> JobCallback:
    """Callback for the cron loop: run the job's workflow through the engine's runner and record it."""

    async def on_trigger(job: ScheduledJob) -> None:
        workflow = runtime.registry.get(job.workflow_name)
        if workflow is None:
            logger.warning("Scheduled workflow %s is not registered", job.workflow_name)
            return
        runner = runtime.engine.workflow_runner
        if runner is None:
            logger.warning("Scheduled workflow %s skipped: no workflow runner configured", job.workflow_name)
            return
        result = await runner(workflow, workflow.validate_args(None))
        runtime.registry.record_run(workflow.name, result.duration_ms)
        logger.info("Scheduled run of %s exited with %s", workflow.name, result.exit_code)

    return on_trigger


@asynccontextmanager
async def lifespan(
    settings: Optional[Settings] = None,
    workflow_runner: Optional[WorkflowRunner] = None,
    dispatch_fn: Optional[DispatchFn] = None,
) -> AsyncIterator[AutonomyRuntime]:
    """Run the scheduler loop for the lifetime of the context."""
    runtime = startup(settings, workflow_runner=workflow_runner, dispatch_fn=dispatch_fn)
    runtime.scheduler.start(scheduled_trigger(runtime))
    try:
        yield runtime
    finally:
        await runtime.scheduler.stop()
        close_db()
        logger.info("Shutting down %s...", runtime.settings.app_name)


async def _serve() -> None:
    async with lifespan():
        await asyncio.Event().wait()


if __name__ == "__main__":
    configure_logging(get_settings().log_level)
    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        pass
