from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class ScheduledJob(BaseModel):
    id: str
    workflow_name: str
    cron_expression: str
    timezone: str
    enabled: bool = True
    last_triggered: datetime | None = None
    next_trigger: datetime | None = None
