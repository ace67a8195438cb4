from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, model_validator

from autonomy.schemas.agent import AgentEntry
from autonomy.schemas.workflow import Workflow

Track = Literal["deterministic", "llm"]


class ClassificationResult(BaseModel):
    track: Track
    workflow: Workflow | None = None
    agent: AgentEntry | None = None
    project: str | None = None
    confidence: float = Field(ge=0.0, le=1.0)

    @model_validator(mode="after")
    def check_track_targets(self) -> "ClassificationResult":
        """A deterministic verdict names a workflow and no agent; an llm verdict never names a workflow."""
        if self.track == "deterministic":
            if self.workflow is None:
                raise ValueError("deterministic classification requires a workflow")
            if self.agent is not None:
                raise ValueError("deterministic classification cannot carry an agent")
        elif self.workflow is not None:
            raise ValueError("llm classification cannot carry a workflow")
        return self
