"""
Built-in workflows registered at startup, and the opt-in schedule for them.

The daily schedule comes from the user's preferences JSON (``scheduleTime``
and ``timezone``). A missing or malformed preferences file means no
schedule; it is never a startup error.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, List, Optional

from autonomy.config import get_settings
from autonomy.core.exceptions import InvalidScheduleError
from autonomy.schemas.schedule import ScheduledJob
from autonomy.schemas.workflow import Workflow
from autonomy.services.cron_scheduler import CronScheduler
from autonomy.services.registry import WorkflowRegistry

logger = logging.getLogger(__name__)

DAILY_GROK = Workflow(
    name="daily-grok",
    entrypoint=str(Path.home() / ".config/opencode/skills/workflow-orchestrator/src/daily-workflow.ts"),
    description="Run the daily Grok workflow: fetch tweets, get AI suggestions, post to X",
    triggers=[
        "grok",
        "daily workflow",
        "tweet suggestions",
        "daily grok",
        "run daily",
        "morning workflow",
    ],
)

BUILTIN_WORKFLOWS: List[Workflow] = [DAILY_GROK]


def register_builtin_workflows(registry: WorkflowRegistry) -> int:
    for workflow in BUILTIN_WORKFLOWS:
        registry.register(workflow)
    return len(BUILTIN_WORKFLOWS)


def load_preferences(path: str | Path) -> Optional[dict[str, Any]]:
    """Read the preferences document, returning None when it is absent or unreadable."""
    preferences_path = Path(path)
    if not preferences_path.is_file():
        logger.debug("No preferences file at %s", preferences_path)
        return None
    try:
        data = json.loads(preferences_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable preferences file %s: %s", preferences_path, exc)
        return None
    if not isinstance(data, dict):
        logger.warning("Ignoring preferences file %s: expected a JSON object", preferences_path)
        return None
    return data


def register_builtin_schedules(
    scheduler: CronScheduler,
    preferences_path: str | Path | None = None,
) -> ScheduledJob | None:
    """
    Schedule the daily workflow from user preferences.

    Returns the registered job, or None when preferences are missing,
    incomplete or invalid.
    """
    path = preferences_path if preferences_path is not None else get_settings().preferences_path
    preferences = load_preferences(path)
    if preferences is None:
        return None

    schedule_time = preferences.get("scheduleTime")
    timezone = preferences.get("timezone")
    if not isinstance(schedule_time, str) or not isinstance(timezone, str) or not schedule_time or not timezone:
        logger.info("Daily schedule disabled: scheduleTime/timezone not set in %s", path)
        return None

    try:
        return scheduler.register(
            workflow_name=DAILY_GROK.name,
            cron_expression=schedule_time,
            timezone=timezone,
            enabled=True,
        )
    except InvalidScheduleError as exc:
        logger.warning("Daily schedule disabled: %s", exc)
        return None
