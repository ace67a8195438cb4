from __future__ import annotations

from pydantic import BaseModel, Field


class AgentEntry(BaseModel):
    name: str
    specialty: str
    when_to_invoke: list[str] = Field(default_factory=list)
    default_model: str | None = None
