from __future__ import annotations

import pytest

from autonomy.agents.roster import AGENTS, AgentRoster, agent_roster, get_agent, list_agents, select_agent
from autonomy.schemas.agent import AgentEntry


def test_roster_contains_predefined_teammates():
    names = [agent.name for agent in list_agents()]
    assert len(names) >= 10
    for expected in [
        "prometheus",
        "sisyphus",
        "muse",
        "devils-advocate",
        "oracle",
        "metis",
        "momus",
        "atlas",
        "explore",
        "librarian",
    ]:
        assert expected in names


@pytest.mark.parametrize(
    "task,expected",
    [
        ("Plan architecture strategy for the next quarter", "prometheus"),
        ("Implement the API and debug failing tests", "sisyphus"),
        ("Brainstorm creative alternative launch ideas", "muse"),
        ("Review critically and challenge assumptions in this plan", "devils-advocate"),
        ("Evaluate long-term architecture decision tradeoffs", "oracle"),
        ("What am I missing? find gaps before planning", "metis"),
        ("Validate the proposal and verify accuracy", "momus"),
        ("Document and catalog this knowledge", "atlas"),
        ("Search codebase: where is session routing implemented?", "explore"),
        ("Find docs and best practice for this library", "librarian"),
    ],
)
def test_selects_teammate_by_specialty_keywords(task, expected):
    assert select_agent(task).name == expected


def test_returns_none_for_unknown_tasks_and_names():
    assert select_agent("compose a jazz chord progression") is None
    assert select_agent("") is None
    assert get_agent("nonexistent") is None
    assert get_agent("  ") is None


def test_keywords_match_whole_words_only():
    # "planning" must not count as "plan"
    assert select_agent("planning") is None


def test_get_agent_resolves_alias_and_case():
    assert get_agent("DA").name == "devils-advocate"
    assert get_agent(" Muse ").name == "muse"


def test_lookups_return_copies():
    agent = get_agent("muse")
    agent.when_to_invoke.append("mutated")
    agent.name = "changed"
    assert get_agent("muse").when_to_invoke == AGENTS[2].when_to_invoke
    listed = list_agents()
    listed.clear()
    assert len(list_agents()) == len(AGENTS)


def test_ties_go_to_roster_order():
    roster = AgentRoster(
        [
            AgentEntry(name="first", specialty="a", when_to_invoke=["deploy"]),
            AgentEntry(name="second", specialty="b", when_to_invoke=["deploy"]),
        ]
    )
    assert roster.select_agent("deploy it").name == "first"


def test_module_roster_is_shared_instance():
    assert agent_roster.select_agent("brainstorm").name == "muse"
