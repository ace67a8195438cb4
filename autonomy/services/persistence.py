"""
Workflow persistence backends.

WorkflowRegistry only depends on the WorkflowPersistence protocol, so the
in-memory store (tests, throwaway registries) and the SQLite store are
interchangeable.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from sqlalchemy import literal_column, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from autonomy.database import get_engine
from autonomy.models import WorkflowRow, WorkflowRunRow
from autonomy.schemas.workflow import Workflow, WorkflowRunRecord

logger = logging.getLogger(__name__)


def _validate_duration(duration_ms: float) -> float:
    duration = float(duration_ms)
    if duration < 0:
        raise ValueError(f"duration_ms must be non-negative, got {duration_ms}")
    return duration


@runtime_checkable
class WorkflowPersistence(Protocol):
    def save(self, workflow: Workflow) -> None: ...

    def remove(self, name: str) -> None: ...

    def load(self) -> list[Workflow]: ...

    def record_run(self, name: str, duration_ms: float) -> None: ...

    def get_run_history(self, name: str) -> list[WorkflowRunRecord]: ...


class InMemoryPersistence:
    """Name-keyed workflows plus an append-only run log, filtered on read."""

    def __init__(self) -> None:
        self._workflows: dict[str, Workflow] = {}
        self._run_history: list[WorkflowRunRecord] = []

    def save(self, workflow: Workflow) -> None:
        self._workflows[workflow.name] = workflow

    def remove(self, name: str) -> None:
        self._workflows.pop(name, None)

    def load(self) -> list[Workflow]:
        return list(self._workflows.values())

    def record_run(self, name: str, duration_ms: float) -> None:
        self._run_history.append(
            WorkflowRunRecord(
                workflow_name=name,
                duration_ms=_validate_duration(duration_ms),
                timestamp=datetime.now(timezone.utc),
            )
        )

    def get_run_history(self, name: str) -> list[WorkflowRunRecord]:
        return [record for record in self._run_history if record.workflow_name == name]


class SqlPersistence:
    """
    SQLite-backed persistence over the migrated schema.

    Uses the process engine from init_db() unless one is passed in; raises
    DatabaseNotInitializedError when neither is available.
    """

    def __init__(self, engine: Engine | None = None):
        self.engine = engine if engine is not None else get_engine()
        self._sessions = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)

    def save(self, workflow: Workflow) -> None:
        with self._sessions.begin() as db:
            db.merge(
                WorkflowRow(
                    name=workflow.name,
                    entrypoint=workflow.entrypoint,
                    description=workflow.description,
                    triggers=list(workflow.triggers),
                )
            )
        logger.debug("Saved workflow %s", workflow.name)

    def remove(self, name: str) -> None:
        with self._sessions.begin() as db:
            row = db.get(WorkflowRow, name)
            if row is not None:
                db.delete(row)

    def load(self) -> list[Workflow]:
        with self._sessions() as db:
            rows = db.scalars(select(WorkflowRow).order_by(literal_column("rowid"))).all()
            return [
                Workflow(
                    name=row.name,
                    entrypoint=row.entrypoint,
                    description=row.description or "",
                    triggers=list(row.triggers or []),
                )
                for row in rows
            ]

    def record_run(self, name: str, duration_ms: float) -> None:
        duration = _validate_duration(duration_ms)
        with self._sessions.begin() as db:
            db.add(
                WorkflowRunRow(
                    workflow_name=name,
                    duration_ms=duration,
                    # SQLite stores naive datetimes; everything written here is UTC.
                    timestamp=datetime.now(timezone.utc).replace(tzinfo=None),
                )
            )

    def get_run_history(self, name: str) -> list[WorkflowRunRecord]:
        with self._sessions() as db:
            rows = db.scalars(
                select(WorkflowRunRow)
                .where(WorkflowRunRow.workflow_name == name)
                .order_by(WorkflowRunRow.id)
            ).all()
            return [
                WorkflowRunRecord(
                    workflow_name=row.workflow_name,
                    duration_ms=row.duration_ms,
                    timestamp=row.timestamp.replace(tzinfo=timezone.utc),
                )
                for row in rows
            ]
