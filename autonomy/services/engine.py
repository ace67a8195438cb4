"""
Autonomy engine: classify a task, queue it, run it on the chosen track and
record the outcome.

Executing a workflow entrypoint and prompting an agent are external
collaborators, injected as ``workflow_runner`` and ``dispatch_fn``.
"""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import BaseModel, ValidationError

from autonomy.agents.preamble import PreambleContext, generate_preamble
from autonomy.agents.roster import AgentRoster
from autonomy.schemas.agent import AgentEntry
from autonomy.schemas.classification import ClassificationResult, Track
from autonomy.schemas.workflow import Workflow, WorkflowRunResult
from autonomy.services.classifier import classify
from autonomy.services.registry import WorkflowRegistry
from autonomy.services.task_queue import QueuedTask, TaskPriority, TaskQueue, TaskStatus

logger = logging.getLogger(__name__)

DEFAULT_PROJECT = "default"
FALLBACK_AGENT = "prometheus"

WorkflowRunner = Callable[[Workflow, Dict[str, Any]], Awaitable[WorkflowRunResult]]
DispatchFn = Callable[..., Awaitable[Any]]
Classifier = Callable[..., ClassificationResult]


class EngineResult(BaseModel):
    task_id: str
    track: Track
    status: TaskStatus
    workflow: Optional[Workflow] = None
    agent: Optional[AgentEntry] = None


def normalize_priority(priority: Optional[str]) -> TaskPriority:
    if priority == "critical":
        return "critical"
    if priority == "background":
        return "background"
    return "normal"


class AutonomyEngine:
    def __init__(
        self,
        registry: WorkflowRegistry,
        queue: TaskQueue,
        roster: AgentRoster,
        classifier: Classifier = classify,
        workflow_runner: Optional[WorkflowRunner] = None,
        dispatch_fn: Optional[DispatchFn] = None,
    ):
        self.registry = registry
        self.queue = queue
        self.roster = roster
        self.classifier = classifier
        self.workflow_runner = workflow_runner
        self.dispatch_fn = dispatch_fn

    async def process(
        self,
        task_description: str,
        project: Optional[str] = None,
        priority: Optional[str] = None,
        args: Optional[Dict[str, Any]] = None,
    ) -> EngineResult:
        classification = self.classifier(
            task_description,
            registry=self.registry,
            roster=self.roster,
            project=project,
        )

        task_id = self.queue.enqueue(
            QueuedTask(
                description=task_description,
                track=classification.track,
                priority=normalize_priority(priority),
                agent=classification.agent.name if classification.agent else None,
                project=classification.project,
            )
        )

        if self.queue.start(task_id) is None:
            # At capacity; this one stays queued.
            return EngineResult(
                task_id=task_id,
                track=classification.track,
                status=self.queue.get_status(task_id),
                workflow=classification.workflow,
                agent=classification.agent,
            )

        if classification.workflow is not None:
            return await self._run_deterministic(task_id, classification.workflow, args)
        return await self._run_llm(task_id, task_description, classification, project)

    def get_active_count(self) -> int:
        return self.queue.get_active_count()

    def get_task_status(self, task_id: str) -> TaskStatus:
        return self.queue.get_status(task_id)

    async def _run_deterministic(
        self,
        task_id: str,
        workflow: Workflow,
        args: Optional[Dict[str, Any]],
    ) -> EngineResult:
        def result() -> EngineResult:
            return EngineResult(
                task_id=task_id,
                track="deterministic",
                status=self.queue.get_status(task_id),
                workflow=workflow,
            )

        if self.workflow_runner is None:
            self.queue.mark_failed(task_id, "No workflow runner configured")
            return result()

        try:
            run_args = workflow.validate_args(args)
        except ValidationError as exc:
            self.queue.mark_failed(task_id, f"Invalid arguments for {workflow.name}: {exc}")
            return result()

        try:
            run_result = await self.workflow_runner(workflow, run_args)
        except Exception as exc:
            logger.exception("Workflow %s failed to run: %s", workflow.name, exc)
            self.queue.mark_failed(task_id, str(exc))
            return result()

        self.registry.record_run(workflow.name, run_result.duration_ms)
        if run_result.exit_code == 0:
            self.queue.mark_completed(task_id, run_result)
        else:
            self.queue.mark_failed(task_id, run_result)

        logger.info(
            "Workflow %s exited with %s in %.0fms",
            workflow.name,
            run_result.exit_code,
            run_result.duration_ms,
        )
        return result()

    async def _run_llm(
        self,
        task_id: str,
        task_description: str,
        classification: ClassificationResult,
        project: Optional[str],
    ) -> EngineResult:
        agent = (
            classification.agent
            or self.roster.select_agent(task_description)
            or self.roster.get_agent(FALLBACK_AGENT)
        )
        if agent is None:
            self.queue.mark_failed(task_id, "No suitable agent found")
            return EngineResult(task_id=task_id, track="llm", status=self.queue.get_status(task_id))

        if self.dispatch_fn is None:
            self.queue.mark_failed(task_id, "No dispatch function configured")
            return EngineResult(task_id=task_id, track="llm", status=self.queue.get_status(task_id), agent=agent)

        message = generate_preamble(agent, PreambleContext(project=project, task_summary=task_description))

        try:
            await self.dispatch_fn(project or DEFAULT_PROJECT, message, agent=agent.name)
            self.queue.mark_completed(task_id)
        except Exception as exc:
            logger.error("Dispatch to %s failed: %s", agent.name, exc)
            self.queue.mark_failed(task_id, str(exc))

        return EngineResult(task_id=task_id, track="llm", status=self.queue.get_status(task_id), agent=agent)
