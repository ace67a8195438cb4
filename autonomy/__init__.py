"""
Arachne autonomy core.
Routes task descriptions to registered workflows or specialist agents
and keeps workflow definitions and run history in a migrated SQLite store.
"""
from autonomy.agents.preamble import PreambleContext, generate_preamble
from autonomy.agents.roster import AgentRoster, agent_roster, get_agent, list_agents, select_agent
from autonomy.schemas.agent import AgentEntry
from autonomy.schemas.classification import ClassificationResult
from autonomy.schemas.schedule import ScheduledJob
from autonomy.schemas.workflow import Workflow, WorkflowMatch, WorkflowRunRecord, WorkflowRunResult
from autonomy.services.builtin_workflows import DAILY_GROK, register_builtin_schedules, register_builtin_workflows
from autonomy.services.classifier import DETERMINISTIC_THRESHOLD, classify, get_default_registry
from autonomy.services.cron_scheduler import CronScheduler
from autonomy.services.engine import AutonomyEngine, EngineResult
from autonomy.services.persistence import InMemoryPersistence, SqlPersistence, WorkflowPersistence
from autonomy.services.registry import WorkflowRegistry
from autonomy.services.task_queue import QueuedTask, TaskQueue

__all__ = [
    "AgentEntry",
    "AgentRoster",
    "AutonomyEngine",
    "ClassificationResult",
    "CronScheduler",
    "DAILY_GROK",
    "DETERMINISTIC_THRESHOLD",
    "EngineResult",
    "InMemoryPersistence",
    "PreambleContext",
    "QueuedTask",
    "ScheduledJob",
    "SqlPersistence",
    "TaskQueue",
    "Workflow",
    "WorkflowMatch",
    "WorkflowPersistence",
    "WorkflowRegistry",
    "WorkflowRunRecord",
    "WorkflowRunResult",
    "agent_roster",
    "classify",
    "generate_preamble",
    "get_agent",
    "get_default_registry",
    "list_agents",
    "register_builtin_schedules",
    "register_builtin_workflows",
    "select_agent",
]
