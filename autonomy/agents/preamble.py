"""
Context-priming text handed to a specialist before it sees the task.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from autonomy.schemas.agent import AgentEntry

ORCHESTRATOR_NAME = "Amanda"

LEAD_LINES = {
    "muse": (
        f"{ORCHESTRATOR_NAME} needs creative exploration. Diverge freely, generate alternatives, "
        "then converge with clear recommendations."
    ),
    "devils-advocate": (
        f"{ORCHESTRATOR_NAME} needs adversarial critique. Challenge assumptions, pressure-test risks, "
        "and expose weak reasoning."
    ),
    "sisyphus": (
        f"{ORCHESTRATOR_NAME} needs implementation. Execute this plan, keep scope tight, "
        "and deliver practical working results."
    ),
}

DEFAULT_LEAD = (
    f"You're working with {ORCHESTRATOR_NAME}, Commander's orchestrator. Collaborate as a focused "
    "specialist and return clear, actionable output."
)


class PreambleContext(BaseModel):
    task_summary: str
    role: Optional[str] = None
    project: Optional[str] = None


def generate_preamble(agent: AgentEntry, context: PreambleContext) -> str:
    lines = [
        LEAD_LINES.get(agent.name, DEFAULT_LEAD),
        f"Assigned teammate: {agent.name} ({agent.specialty}).",
    ]

    if context.role:
        lines.append(f"Current Commander role: {context.role}")

    if context.project:
        lines.append(f"Project context: {context.project}")

    lines.append(f"Task summary: {context.task_summary}")

    return "\n".join(lines)
