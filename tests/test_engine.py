from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest
from pydantic import BaseModel

from autonomy.agents.roster import agent_roster
from autonomy.schemas.workflow import Workflow, WorkflowRunResult
from autonomy.services.engine import AutonomyEngine, normalize_priority
from autonomy.services.task_queue import QueuedTask, TaskQueue


class ReleaseArgs(BaseModel):
    version: str


class FakeRunner:
    def __init__(self, exit_code: int = 0, duration_ms: float = 125.0, error: Exception | None = None):
        self.exit_code = exit_code
        self.duration_ms = duration_ms
        self.error = error
        self.calls = []

    async def __call__(self, workflow, args):
        self.calls.append((workflow.name, args))
        if self.error is not None:
            raise self.error
        now = datetime.now(timezone.utc)
        return WorkflowRunResult(
            workflow_name=workflow.name,
            exit_code=self.exit_code,
            stdout="done",
            duration_ms=self.duration_ms,
            started_at=now,
            completed_at=now,
        )


class FakeDispatch:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls = []

    async def __call__(self, project, message, agent=None):
        self.calls.append({"project": project, "message": message, "agent": agent})
        if self.error is not None:
            raise self.error


def make_engine(registry, queue=None, runner=None, dispatch=None):
    return AutonomyEngine(
        registry=registry,
        queue=queue or TaskQueue(),
        roster=agent_roster,
        workflow_runner=runner,
        dispatch_fn=dispatch,
    )


@pytest.mark.parametrize(
    "value,expected",
    [("critical", "critical"), ("background", "background"), ("normal", "normal"), (None, "normal"), ("urgent", "normal")],
)
def test_normalize_priority(value, expected):
    assert normalize_priority(value) == expected


@pytest.mark.asyncio
async def test_deterministic_task_runs_workflow_and_records_history(registry):
    runner = FakeRunner(duration_ms=321.0)
    engine = make_engine(registry, runner=runner)

    result = await engine.process("deploy staging please")

    assert result.track == "deterministic"
    assert result.status == "completed"
    assert result.workflow.name == "deploy-staging"
    assert runner.calls == [("deploy-staging", {})]
    assert [r.duration_ms for r in registry.get_run_history("deploy-staging")] == [321.0]
    assert engine.get_task_status(result.task_id) == "completed"
    assert engine.get_active_count() == 0


@pytest.mark.asyncio
async def test_nonzero_exit_marks_failed_but_records_run(registry):
    queue = TaskQueue()
    engine = make_engine(registry, queue=queue, runner=FakeRunner(exit_code=2))

    result = await engine.process("daily grok")

    assert result.status == "failed"
    assert queue.get_task(result.task_id).result.exit_code == 2
    assert len(registry.get_run_history("daily-grok")) == 1


@pytest.mark.asyncio
async def test_runner_exception_marks_failed_without_history(registry):
    engine = make_engine(registry, runner=FakeRunner(error=RuntimeError("bun not found")))

    result = await engine.process("daily grok")

    assert result.status == "failed"
    assert registry.get_run_history("daily-grok") == []


@pytest.mark.asyncio
async def test_missing_runner_fails_deterministic_task(registry):
    result = await make_engine(registry).process("deploy staging")
    assert result.track == "deterministic"
    assert result.status == "failed"


@pytest.mark.asyncio
async def test_arguments_validated_against_input_schema(registry):
    registry.register(
        Workflow(
            name="cut-release",
            entrypoint="/tmp/release.ts",
            triggers=["cut a release"],
            input_schema=ReleaseArgs,
        )
    )
    runner = FakeRunner()
    engine = make_engine(registry, runner=runner)

    rejected = await engine.process("cut a release", args={"tag": "v1"})
    accepted = await engine.process("cut a release", args={"version": "1.2.0"})

    assert rejected.status == "failed"
    assert accepted.status == "completed"
    assert runner.calls == [("cut-release", {"version": "1.2.0"})]


@pytest.mark.asyncio
async def test_llm_task_dispatches_preamble_to_selected_agent(registry):
    dispatch = FakeDispatch()
    engine = make_engine(registry, dispatch=dispatch)

    result = await engine.process("brainstorm ideas for the launch", project="arachne")

    assert result.track == "llm"
    assert result.status == "completed"
    assert result.agent.name == "muse"
    assert len(dispatch.calls) == 1
    call = dispatch.calls[0]
    assert call["project"] == "arachne"
    assert call["agent"] == "muse"
    assert "Project context: arachne" in call["message"]
    assert call["message"].endswith("Task summary: brainstorm ideas for the launch")


@pytest.mark.asyncio
async def test_llm_task_without_agent_falls_back_to_planner(registry):
    dispatch = FakeDispatch()
    engine = make_engine(registry, dispatch=dispatch)

    result = await engine.process("compose a jazz chord progression")

    assert result.agent.name == "prometheus"
    assert dispatch.calls[0]["project"] == "default"


@pytest.mark.asyncio
async def test_dispatch_failure_marks_task_failed(registry):
    engine = make_engine(registry, dispatch=FakeDispatch(error=ConnectionError("gateway down")))
    result = await engine.process("brainstorm ideas")
    assert result.status == "failed"


@pytest.mark.asyncio
async def test_missing_dispatch_fails_llm_task(registry):
    result = await make_engine(registry).process("brainstorm ideas")
    assert result.track == "llm"
    assert result.status == "failed"


@pytest.mark.asyncio
async def test_task_stays_queued_at_capacity(registry):
    queue = TaskQueue(max_concurrent=1)
    queue.enqueue(QueuedTask(description="long running", track="llm"))
    queue.dequeue()
    dispatch = FakeDispatch()
    engine = make_engine(registry, queue=queue, dispatch=dispatch)

    result = await engine.process("brainstorm ideas")

    assert result.status == "queued"
    assert dispatch.calls == []
    assert engine.get_active_count() == 1


@pytest.mark.asyncio
async def test_overlapping_tasks_never_strand_a_slot(registry):
    queue = TaskQueue(max_concurrent=1)
    release = asyncio.Event()
    dispatched = []

    async def slow_dispatch(project, message, agent=None):
        dispatched.append(agent)
        if agent == "muse":
            await release.wait()

    engine = make_engine(registry, queue=queue, dispatch=slow_dispatch)

    first = asyncio.create_task(engine.process("brainstorm ideas"))
    while not dispatched:
        await asyncio.sleep(0)

    second = await engine.process("debug the parser")
    assert second.status == "queued"
    assert engine.get_active_count() == 1

    release.set()
    assert (await first).status == "completed"
    assert engine.get_active_count() == 0
    assert engine.get_task_status(second.task_id) == "queued"

    third = await engine.process("critique and challenge this")

    assert third.status == "completed"
    assert dispatched == ["muse", "devils-advocate"]
    assert engine.get_active_count() == 0
