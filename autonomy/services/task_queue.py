"""
Priority task queue with a concurrency cap.
Critical tasks run before normal ones, normal before background; FIFO within a priority.
"""
from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Set

from pydantic import BaseModel

TaskPriority = Literal["critical", "normal", "background"]
TaskTrack = Literal["deterministic", "llm"]
TaskLifecycleStatus = Literal["queued", "running", "completed", "failed"]
TaskStatus = Literal["queued", "running", "completed", "failed", "cancelled", "not_found"]

PRIORITY_RANK: Dict[str, int] = {
    "critical": 3,
    "normal": 2,
    "background": 1,
}

DEFAULT_MAX_CONCURRENT = 3


class QueuedTask(BaseModel):
    id: str = ""
    description: str
    track: TaskTrack
    priority: TaskPriority = "normal"
    status: TaskLifecycleStatus = "queued"
    agent: Optional[str] = None
    project: Optional[str] = None
    result: Any = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[float] = None


def _duration_ms(started_at: Optional[datetime], completed_at: Optional[datetime]) -> Optional[float]:
    if started_at is None or completed_at is None:
        return None
    return (completed_at - started_at).total_seconds() * 1000


class TaskQueue:
    def __init__(self, max_concurrent: int = DEFAULT_MAX_CONCURRENT):
        self.max_concurrent = max_concurrent
        self._tasks: Dict[str, QueuedTask] = {}
        self._queue: List[str] = []
        self._running: Set[str] = set()
        self._cancelled: Set[str] = set()
        self._lock = threading.Lock()

    def enqueue(self, task: QueuedTask) -> str:
        task_id = str(uuid.uuid4())
        queued = task.model_copy(
            update={
                "id": task_id,
                "status": "queued",
                "started_at": None,
                "completed_at": None,
                "duration_ms": None,
            }
        )
        with self._lock:
            self._tasks[task_id] = queued
            self._queue.append(task_id)
        return task_id

    def dequeue(self) -> QueuedTask | None:
        """Start the highest priority queued task, or None when idle or at capacity."""
        with self._lock:
            if len(self._running) >= self.max_concurrent:
                return None

            next_id = self._pick_next()
            if next_id is None:
                return None

            task = self._tasks[next_id]
            task.status = "running"
            task.started_at = datetime.now(timezone.utc)
            self._running.add(next_id)
            return task.model_copy()

    def start(self, task_id: str) -> QueuedTask | None:
        """Start one specific queued task. Returns None at capacity or when the task is not queued."""
        with self._lock:
            if len(self._running) >= self.max_concurrent:
                return None

            task = self._tasks.get(task_id)
            if task is None or task.status != "queued" or task_id not in self._queue:
                return None

            self._queue.remove(task_id)
            task.status = "running"
            task.started_at = datetime.now(timezone.utc)
            self._running.add(task_id)
            return task.model_copy()

    def get_status(self, task_id: str) -> TaskStatus:
        with self._lock:
            if task_id in self._cancelled:
                return "cancelled"
            task = self._tasks.get(task_id)
            return task.status if task else "not_found"

    def cancel(self, task_id: str) -> bool:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None or task_id in self._cancelled:
                return False
            if task_id in self._queue:
                self._queue.remove(task_id)
            self._running.discard(task_id)
            self._finish(task, "failed", None)
            self._cancelled.add(task_id)
            return True

    def mark_completed(self, task_id: str, result: Any = None) -> bool:
        return self._mark(task_id, "completed", result)

    def mark_failed(self, task_id: str, result: Any = None) -> bool:
        return self._mark(task_id, "failed", result)

    def get_task(self, task_id: str) -> QueuedTask | None:
        with self._lock:
            task = self._tasks.get(task_id)
            return task.model_copy() if task else None

    def get_active_count(self) -> int:
        with self._lock:
            return len(self._running)

    def _mark(self, task_id: str, status: TaskLifecycleStatus, result: Any) -> bool:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None or task_id in self._cancelled:
                return False
            self._finish(task, status, result)
            self._running.discard(task_id)
            return True

    @staticmethod
    def _finish(task: QueuedTask, status: TaskLifecycleStatus, result: Any) -> None:
        completed_at = datetime.now(timezone.utc)
        task.status = status
        task.result = result
        task.completed_at = completed_at
        task.duration_ms = _duration_ms(task.started_at, completed_at)

    def _pick_next(self) -> Optional[str]:
        selected_id: Optional[str] = None
        selected_rank = -1
        for task_id in self._queue:
            task = self._tasks.get(task_id)
            if task is None or task.status != "queued":
                continue
            rank = PRIORITY_RANK[task.priority]
            if rank > selected_rank:
                selected_rank = rank
                selected_id = task_id
        if selected_id is not None:
            self._queue.remove(selected_id)
        return selected_id
