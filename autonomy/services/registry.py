"""
In-memory workflow catalog with trigger-phrase matching.
Hydrates from persistence on construction and writes through on every mutation.
"""
from __future__ import annotations

import logging
import re
import threading

from autonomy.schemas.workflow import Workflow, WorkflowMatch, WorkflowRunRecord
from autonomy.services.persistence import WorkflowPersistence

logger = logging.getLogger(__name__)

EXACT_NAME_CONFIDENCE = 1.0
TRIGGER_PHRASE_CONFIDENCE = 0.9
KEYWORD_BASE_CONFIDENCE = 0.5
KEYWORD_OVERLAP_WEIGHT = 0.3
KEYWORD_MAX_CONFIDENCE = 0.8
MIN_KEYWORD_LENGTH = 3

_TOKEN_PATTERN = re.compile(r"[\w'-]+")


def _tokenize(text: str) -> list[str]:
    return [token for token in _TOKEN_PATTERN.findall(text.lower()) if len(token) >= MIN_KEYWORD_LENGTH]


def _phrase_matches(trigger: str, description: str) -> bool:
    """Match a trigger phrase as a case-insensitive regex, or as a substring when it is not valid regex."""
    try:
        return re.search(trigger, description, re.IGNORECASE) is not None
    except re.error:
        return trigger.lower() in description


def score_workflow(workflow: Workflow, description: str) -> float:
    """
    Score one workflow against a lowercased task description.

    1.0 when the description is exactly the workflow name, 0.9 when a
    multi-word trigger phrase appears in it, 0.5-0.8 scaled by the best
    per-trigger keyword overlap, 0.0 when nothing matches.
    """
    if description.strip() == workflow.name.lower():
        return EXACT_NAME_CONFIDENCE

    # Single-word triggers are too broad for phrase matching; they only count
    # through keyword overlap below.
    for trigger in workflow.triggers:
        phrase = trigger.strip()
        if " " in phrase and _phrase_matches(phrase, description):
            return TRIGGER_PHRASE_CONFIDENCE

    description_tokens = set(_tokenize(description))
    if not description_tokens:
        return 0.0

    best_ratio = 0.0
    for trigger in workflow.triggers:
        trigger_tokens = _tokenize(trigger)
        if not trigger_tokens:
            continue
        matched = sum(1 for token in trigger_tokens if token in description_tokens)
        best_ratio = max(best_ratio, matched / len(trigger_tokens))

    if best_ratio <= 0:
        return 0.0
    return min(KEYWORD_BASE_CONFIDENCE + best_ratio * KEYWORD_OVERLAP_WEIGHT, KEYWORD_MAX_CONFIDENCE)


class WorkflowRegistry:
    """Workflow catalog keyed by name; registration order breaks matching ties."""

    def __init__(self, persistence: WorkflowPersistence):
        self.persistence = persistence
        self._workflows: dict[str, Workflow] = {}
        self._lock = threading.RLock()
        for workflow in self.persistence.load():
            self._workflows[workflow.name] = workflow

    def register(self, workflow: Workflow) -> None:
        """Register or replace a workflow. The store is written first, so a failed save leaves the catalog unchanged."""
        with self._lock:
            self.persistence.save(workflow)
            self._workflows[workflow.name] = workflow
        logger.debug("Registered workflow %s", workflow.name)

    def remove(self, name: str) -> None:
        """Remove a workflow by name. No-op if not found."""
        with self._lock:
            self.persistence.remove(name)
            self._workflows.pop(name, None)

    unregister = remove

    def get(self, name: str) -> Workflow | None:
        with self._lock:
            return self._workflows.get(name)

    def list(self) -> list[Workflow]:
        with self._lock:
            return list(self._workflows.values())

    def find_matching_workflow(self, task_description: str) -> WorkflowMatch | None:
        """Return the best scoring workflow for a task description, or None when no trigger fires."""
        if not task_description or not task_description.strip():
            return None

        description = task_description.lower()
        best: WorkflowMatch | None = None

        with self._lock:
            candidates = list(self._workflows.values())

        for workflow in candidates:
            confidence = score_workflow(workflow, description)
            if confidence <= 0:
                continue
            if best is None or confidence > best.confidence:
                best = WorkflowMatch(workflow=workflow, confidence=min(max(confidence, 0.0), 1.0))

        return best

    def record_run(self, name: str, duration_ms: float) -> None:
        """Append a run record for a workflow name."""
        with self._lock:
            self.persistence.record_run(name, duration_ms)

    def get_run_history(self, name: str) -> list[WorkflowRunRecord]:
        with self._lock:
            return self.persistence.get_run_history(name)
