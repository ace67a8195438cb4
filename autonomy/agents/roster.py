"""
Agent roster for the llm track.
Maps specialist names to their specialty and the keywords that should invoke them.
"""
from __future__ import annotations

import re
from typing import Dict, List, Optional

from autonomy.schemas.agent import AgentEntry

AGENTS: List[AgentEntry] = [
    AgentEntry(
        name="prometheus",
        specialty="planning",
        when_to_invoke=["plan", "strategy", "architecture", "design"],
    ),
    AgentEntry(
        name="sisyphus",
        specialty="execution",
        when_to_invoke=["implement", "build", "execute", "code", "fix", "debug"],
    ),
    AgentEntry(
        name="muse",
        specialty="creative/divergent",
        when_to_invoke=["brainstorm", "creative", "ideas", "alternative", "explore options"],
    ),
    AgentEntry(
        name="devils-advocate",
        specialty="critical analysis",
        when_to_invoke=["critique", "stress test", "adversarial", "challenge", "review critically"],
    ),
    AgentEntry(
        name="oracle",
        specialty="strategic evaluation",
        when_to_invoke=["architecture decision", "tradeoff", "long-term", "evaluate"],
    ),
    AgentEntry(
        name="metis",
        specialty="gap analysis",
        when_to_invoke=["gaps", "missing", "pre-plan", "what am I missing"],
    ),
    AgentEntry(
        name="momus",
        specialty="verification",
        when_to_invoke=["verify", "review plan", "check accuracy", "validate"],
    ),
    AgentEntry(
        name="atlas",
        specialty="knowledge management",
        when_to_invoke=["knowledge", "document", "catalog"],
    ),
    AgentEntry(
        name="explore",
        specialty="codebase investigation",
        when_to_invoke=["find", "search codebase", "how does", "where is"],
    ),
    AgentEntry(
        name="librarian",
        specialty="external research",
        when_to_invoke=["docs", "best practice", "library", "how do others"],
    ),
]

AGENT_ALIASES: Dict[str, str] = {"da": "devils-advocate"}

PHRASE_SCORE = 2
KEYWORD_SCORE = 1


def _normalize(value: str) -> str:
    return value.strip().lower()


def score_agent(agent: AgentEntry, task_lower: str) -> int:
    """Phrases count double; single keywords must match on word boundaries."""
    score = 0
    for keyword in agent.when_to_invoke:
        normalized = keyword.lower()
        if " " in normalized:
            if normalized in task_lower:
                score += PHRASE_SCORE
            continue
        if re.search(rf"\b{re.escape(normalized)}\b", task_lower):
            score += KEYWORD_SCORE
    return score


class AgentRoster:
    """Read-only catalog of specialist agents. Every lookup returns a copy."""

    def __init__(self, agents: List[AgentEntry], aliases: Optional[Dict[str, str]] = None):
        self._agents = [agent.model_copy(deep=True) for agent in agents]
        self._aliases = dict(aliases or {})

    def get_agent(self, name: str) -> AgentEntry | None:
        normalized = _normalize(name)
        if not normalized:
            return None
        resolved = self._aliases.get(normalized, normalized)
        for agent in self._agents:
            if agent.name == resolved:
                return agent.model_copy(deep=True)
        return None

    def list_agents(self) -> List[AgentEntry]:
        return [agent.model_copy(deep=True) for agent in self._agents]

    def select_agent(self, task_description: str) -> AgentEntry | None:
        """Return the agent whose keywords score highest, first in roster order on ties."""
        task_lower = _normalize(task_description)
        if not task_lower:
            return None

        best_agent: AgentEntry | None = None
        best_score = 0
        for agent in self._agents:
            score = score_agent(agent, task_lower)
            if score > best_score:
                best_score = score
                best_agent = agent

        return best_agent.model_copy(deep=True) if best_agent else None


agent_roster = AgentRoster(AGENTS, AGENT_ALIASES)


def select_agent(task_description: str) -> AgentEntry | None:
    return agent_roster.select_agent(task_description)


def get_agent(name: str) -> AgentEntry | None:
    """Return agent by name or alias, or None if not found."""
    return agent_roster.get_agent(name)


def list_agents() -> List[AgentEntry]:
    return agent_roster.list_agents()
