"""
Routing policy: deterministic workflow when the registry is confident,
otherwise the llm track with a best-effort specialist.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Optional, Protocol

from autonomy.agents.roster import agent_roster
from autonomy.schemas.agent import AgentEntry
from autonomy.schemas.classification import ClassificationResult
from autonomy.schemas.workflow import WorkflowMatch
from autonomy.services.builtin_workflows import register_builtin_workflows
from autonomy.services.persistence import InMemoryPersistence
from autonomy.services.registry import WorkflowRegistry

DETERMINISTIC_THRESHOLD = 0.7
AGENT_FALLBACK_CONFIDENCE = 0.75
NO_MATCH_CONFIDENCE = 0.4


class WorkflowMatcher(Protocol):
    def find_matching_workflow(self, task_description: str) -> Optional[WorkflowMatch]: ...


class AgentSelector(Protocol):
    def select_agent(self, task_description: str) -> Optional[AgentEntry]: ...


@lru_cache
def get_default_registry() -> WorkflowRegistry:
    """Process-wide in-memory registry preloaded with the built-in workflows."""
    registry = WorkflowRegistry(persistence=InMemoryPersistence())
    register_builtin_workflows(registry)
    return registry


def clamp_confidence(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def classify(
    task_description: str,
    registry: Optional[WorkflowMatcher] = None,
    roster: Optional[AgentSelector] = None,
    project: Optional[str] = None,
) -> ClassificationResult:
    registry = registry if registry is not None else get_default_registry()
    roster = roster if roster is not None else agent_roster

    workflow_match = registry.find_matching_workflow(task_description)
    if workflow_match is not None and workflow_match.confidence > DETERMINISTIC_THRESHOLD:
        return ClassificationResult(
            track="deterministic",
            workflow=workflow_match.workflow,
            project=project,
            confidence=clamp_confidence(workflow_match.confidence),
        )

    agent = roster.select_agent(task_description)
    if workflow_match is not None:
        # A weak near-miss makes the open-ended route more likely to be right.
        fallback = 1 - workflow_match.confidence
    elif agent is not None:
        fallback = AGENT_FALLBACK_CONFIDENCE
    else:
        fallback = NO_MATCH_CONFIDENCE

    return ClassificationResult(
        track="llm",
        agent=agent,
        project=project,
        confidence=clamp_confidence(fallback),
    )
