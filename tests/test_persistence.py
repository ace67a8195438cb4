from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import BaseModel

from autonomy.database import close_db, init_db
from autonomy.schemas.workflow import Workflow
from autonomy.services.builtin_workflows import DAILY_GROK
from autonomy.services.persistence import InMemoryPersistence, SqlPersistence, WorkflowPersistence
from autonomy.services.registry import WorkflowRegistry


class DeployArgs(BaseModel):
    environment: str


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryPersistence()
    return SqlPersistence(init_db(tmp_path / "store.db"))


def test_backends_satisfy_protocol(store):
    assert isinstance(store, WorkflowPersistence)


def test_save_is_an_upsert(store):
    store.save(DAILY_GROK)
    store.save(DAILY_GROK)
    store.save(DAILY_GROK.model_copy(update={"triggers": ["grok only"]}))
    loaded = store.load()
    assert len(loaded) == 1
    assert loaded[0].triggers == ["grok only"]


def test_load_keeps_insertion_order(store):
    for name in ["zeta", "alpha", "mid"]:
        store.save(Workflow(name=name, entrypoint=f"/tmp/{name}.ts"))
    store.save(Workflow(name="zeta", entrypoint="/tmp/zeta-v2.ts"))
    assert [wf.name for wf in store.load()] == ["zeta", "alpha", "mid"]


def test_remove(store):
    store.save(DAILY_GROK)
    store.remove("daily-grok")
    store.remove("never-saved")
    assert store.load() == []


def test_run_history_is_append_only_and_partitioned(store):
    before = datetime.now(timezone.utc) - timedelta(seconds=1)
    for duration in [100, 250.5, 0]:
        store.record_run("daily-grok", duration)
    store.record_run("deploy-staging", 42)

    history = store.get_run_history("daily-grok")
    assert [record.duration_ms for record in history] == [100, 250.5, 0]
    assert all(record.timestamp.tzinfo is not None for record in history)
    assert all(record.timestamp >= before for record in history)
    assert [record.duration_ms for record in store.get_run_history("deploy-staging")] == [42]
    assert store.get_run_history("unknown") == []


def test_negative_duration_rejected(store):
    with pytest.raises(ValueError):
        store.record_run("daily-grok", -5)
    assert store.get_run_history("daily-grok") == []


def test_history_survives_workflow_removal(store):
    store.save(DAILY_GROK)
    store.record_run("daily-grok", 10)
    store.remove("daily-grok")
    assert len(store.get_run_history("daily-grok")) == 1


def test_sql_store_survives_restart(tmp_path):
    path = tmp_path / "restart.db"
    registry = WorkflowRegistry(persistence=SqlPersistence(init_db(path)))
    registry.register(DAILY_GROK)
    registry.record_run("daily-grok", 12)
    close_db()

    reopened = WorkflowRegistry(persistence=SqlPersistence(init_db(path)))
    assert reopened.get("daily-grok") == DAILY_GROK
    assert [r.duration_ms for r in reopened.get_run_history("daily-grok")] == [12]


def test_input_schema_is_runtime_only(tmp_path):
    workflow = Workflow(name="deploy", entrypoint="/tmp/deploy.ts", input_schema=DeployArgs)
    assert workflow.validate_args({"environment": "staging"}) == {"environment": "staging"}
    assert "input_schema" not in workflow.model_dump()

    store = SqlPersistence(init_db(tmp_path / "schema.db"))
    store.save(workflow)
    assert store.load()[0].input_schema is None
