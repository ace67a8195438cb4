"""
Workflow definitions and the records produced when they run.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Workflow(BaseModel):
    """
    A registered workflow definition.

    ``input_schema`` is a runtime-only pydantic model used to validate run
    arguments. It is never persisted, so workflows loaded back from the
    database carry no schema.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    entrypoint: str = Field(min_length=1)
    description: str = ""
    triggers: list[str] = Field(default_factory=list)
    input_schema: type[BaseModel] | None = Field(default=None, exclude=True, repr=False)

    def validate_args(self, args: dict[str, Any] | None) -> dict[str, Any]:
        """Validate run arguments against input_schema, if one is attached."""
        payload = args or {}
        if self.input_schema is None:
            return payload
        return self.input_schema.model_validate(payload).model_dump()


class WorkflowMatch(BaseModel):
    workflow: Workflow
    confidence: float = Field(ge=0.0, le=1.0)


class WorkflowRunRecord(BaseModel):
    workflow_name: str
    duration_ms: float = Field(ge=0)
    timestamp: datetime


class WorkflowRunResult(BaseModel):
    """Outcome reported by the execution collaborator after running an entrypoint."""

    workflow_name: str
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: float = Field(ge=0)
    started_at: datetime
    completed_at: datetime
