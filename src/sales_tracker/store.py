"""Task store: the single owner of the sales task list.

The store serializes every mutation (add, update, delete, undo) and, after
each one, rebuilds an immutable snapshot holding the raw tasks, the ranked
derived view and the metrics computed from that same list. Readers always
see one consistent snapshot.

Exactly one deleted task is kept for undo. Deleting another task before
undoing replaces it.
"""

import asyncio
import logging
import math
import uuid
from collections import deque
from dataclasses import dataclass, fields, replace
from datetime import datetime
from typing import Any, Awaitable, Callable, Deque, Dict, List, Mapping, Optional, Tuple, Union

from .loader import TaskLoadError, fetch_initial_tasks
from .metrics import compute_metrics, with_derived
from .ranking import sort_tasks
from .seed import DEFAULT_SEED_COUNT, generate_sales_tasks
from .task import WIRE_KEYS, ActivityItem, DerivedTask, Metrics, Priority, Task, TaskStatus
from .utils.datetime import now_utc, parse_iso

logger = logging.getLogger(__name__)

DEFAULT_ACTIVITY_LIMIT = 50

# Fields only the store may set
READ_ONLY_FIELDS = {"id", "created_at", "completed_at"}

_TASK_FIELDS = {f.name for f in fields(Task)}
_FIELD_BY_WIRE_KEY = {wire: name for name, wire in WIRE_KEYS.items()}

TaskLoader = Callable[[], Awaitable[List[Task]]]
Listener = Callable[["TaskStore"], None]


@dataclass
class TaskPayload:
    """Values submitted by the task form for a new task."""

    title: str
    revenue: float = 0.0
    time_taken: float = 1.0
    priority: Priority = Priority.MEDIUM
    status: TaskStatus = TaskStatus.TODO
    notes: Optional[str] = None
    id: Optional[str] = None


@dataclass(frozen=True)
class TaskSnapshot:
    """Raw tasks and every view derived from them at one instant."""

    tasks: Tuple[Task, ...]
    derived_sorted: Tuple[DerivedTask, ...]
    metrics: Metrics

    @classmethod
    def build(cls, tasks) -> "TaskSnapshot":
        tasks = tuple(tasks)
        return cls(
            tasks=tasks,
            derived_sorted=tuple(sort_tasks([with_derived(t) for t in tasks])),
            metrics=compute_metrics(tasks),
        )


def clamp_time_taken(value) -> float:
    """Time taken must be positive; anything else becomes one hour."""
    try:
        if value > 0 and math.isfinite(value):
            return value
    except TypeError:
        pass
    return 1


def normalize_fields(values: Mapping[str, Any]) -> Dict[str, Any]:
    """Map field names or wire keys to Task field names and coerce enums.

    Raises:
        ValueError: If a key names no Task field or an enum value is unknown
    """
    normalized = {}
    for key, value in values.items():
        name = key if key in _TASK_FIELDS else _FIELD_BY_WIRE_KEY.get(key)
        if name is None:
            raise ValueError(f"Unknown task field: {key}")

        if name == "priority" and not isinstance(value, Priority):
            value = Priority(value)
        elif name == "status" and not isinstance(value, TaskStatus):
            value = TaskStatus(value)
        elif name in ("created_at", "completed_at") and not isinstance(value, datetime):
            value = parse_iso(value)
        normalized[name] = value
    return normalized


class TaskStore:
    """Single-owner state container for the sales task list."""

    def __init__(
        self,
        tasks: Optional[List[Task]] = None,
        last_deleted: Optional[Task] = None,
        loader: Optional[TaskLoader] = None,
        seed_count: int = DEFAULT_SEED_COUNT,
        activity_limit: int = DEFAULT_ACTIVITY_LIMIT,
        clock: Callable[[], datetime] = now_utc,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self._loader = loader or (lambda: fetch_initial_tasks(None))
        self.seed_count = seed_count
        self._clock = clock
        self._new_id = id_factory

        self._snapshot = TaskSnapshot.build(tasks or [])
        self._last_deleted = last_deleted
        self._activity: Deque[ActivityItem] = deque(maxlen=activity_limit)
        self._listeners: List[Listener] = []

        self._load_task: Optional[asyncio.Future] = None
        self.loading = False
        self.error: Optional[str] = None

    # Read views

    @property
    def snapshot(self) -> TaskSnapshot:
        return self._snapshot

    @property
    def tasks(self) -> Tuple[Task, ...]:
        return self._snapshot.tasks

    @property
    def derived_sorted(self) -> Tuple[DerivedTask, ...]:
        return self._snapshot.derived_sorted

    @property
    def metrics(self) -> Metrics:
        return self._snapshot.metrics

    @property
    def last_deleted(self) -> Optional[Task]:
        return self._last_deleted

    @property
    def activity(self) -> List[ActivityItem]:
        """Recent activity, newest first."""
        return list(reversed(self._activity))

    def get(self, task_id: str) -> Optional[Task]:
        for task in self._snapshot.tasks:
            if task.id == task_id:
                return task
        return None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(store)`` after every change; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # Initial load

    async def load(self) -> None:
        """Run the initial load once per store lifetime.

        Repeated or concurrent calls wait for the same load instead of
        fetching again. Failures are recorded in ``error``.
        """
        if self._load_task is None:
            self._load_task = asyncio.ensure_future(self._run_load())
        await self._load_task

    @property
    def load_started(self) -> bool:
        return self._load_task is not None

    async def _run_load(self) -> None:
        self.loading = True
        try:
            loaded = await self._loader()
            if not loaded:
                logger.info(f"No initial tasks found, generating {self.seed_count} sample tasks")
                loaded = generate_sales_tasks(self.seed_count, now=self._clock())
            # Tasks added while the load was in flight stay after the loaded ones
            snapshot = TaskSnapshot.build(list(loaded) + list(self._snapshot.tasks))
        except (TaskLoadError, OSError, ValueError, TypeError, AttributeError) as e:
            self.error = str(e) or "Failed to load tasks"
            logger.warning(f"Initial task load failed: {self.error}")
            return
        finally:
            self.loading = False

        self._snapshot = snapshot
        self._notify()
        logger.debug(f"Loaded {len(loaded)} tasks")

    # Mutations

    def add(self, payload: Union[TaskPayload, Mapping[str, Any]]) -> Task:
        """Create a task from form values and append it."""
        if isinstance(payload, TaskPayload):
            values = {f.name: getattr(payload, f.name) for f in fields(TaskPayload)}
        else:
            values = normalize_fields(payload)

        now = self._clock()
        status = values.get("status", TaskStatus.TODO)
        if not isinstance(status, TaskStatus):
            status = TaskStatus(status)

        task = Task(
            id=values.get("id") or self._new_id(),
            title=values["title"],
            revenue=values.get("revenue", 0),
            time_taken=clamp_time_taken(values.get("time_taken", 1)),
            priority=values.get("priority", Priority.MEDIUM),
            status=status,
            notes=values.get("notes"),
            created_at=now,
            completed_at=now if status == TaskStatus.DONE else None,
        )

        self._commit(self._snapshot.tasks + (task,))
        self._record("add", f"Added \"{task.title}\"")
        logger.debug(f"Added task {task.id}")
        return task

    def update(self, task_id: str, patch: Mapping[str, Any]) -> Optional[Task]:
        """Merge ``patch`` into the task with ``task_id``.

        Every transition into Done stamps ``completed_at`` with the current
        time; otherwise it is preserved.
        Returns the updated task, or None when no task has that id.
        """
        changes = normalize_fields(patch)
        for name in READ_ONLY_FIELDS.intersection(changes):
            logger.debug(f"Ignoring read-only field {name} in update of {task_id}")
            del changes[name]
        if "time_taken" in changes:
            changes["time_taken"] = clamp_time_taken(changes["time_taken"])

        updated = None
        tasks = []
        for task in self._snapshot.tasks:
            if task.id != task_id:
                tasks.append(task)
                continue

            completed_at = task.completed_at
            if task.status != TaskStatus.DONE and changes.get("status") == TaskStatus.DONE:
                completed_at = self._clock()
            updated = replace(task, **changes, completed_at=completed_at)
            tasks.append(updated)

        if updated is None:
            logger.debug(f"Update ignored, no task with id {task_id}")
            return None

        self._commit(tasks)
        self._record("update", f"Updated \"{updated.title}\"")
        return updated

    def delete(self, task_id: str) -> Optional[Task]:
        """Remove the task and hold it as the pending undo."""
        target = self.get(task_id)
        if target is None:
            logger.debug(f"Delete ignored, no task with id {task_id}")
            return None

        self._last_deleted = target
        self._commit(t for t in self._snapshot.tasks if t.id != task_id)
        self._record("delete", f"Deleted \"{target.title}\"")
        return target

    def undo_delete(self) -> Optional[Task]:
        """Restore the pending deleted task at the end of the list."""
        restored = self._last_deleted
        if restored is None:
            return None

        self._last_deleted = None
        self._commit(self._snapshot.tasks + (restored,))
        self._record("undo", f"Restored \"{restored.title}\"")
        return restored

    def clear_last_deleted(self) -> None:
        """Drop the pending undo without restoring it."""
        if self._last_deleted is None:
            return
        self._last_deleted = None
        self._notify()

    # Internals

    def _commit(self, tasks) -> None:
        self._snapshot = TaskSnapshot.build(tasks)
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _record(self, kind: str, summary: str) -> None:
        self._activity.append(ActivityItem(
            id=self._new_id(),
            ts=self._clock(),
            kind=kind,
            summary=summary,
        ))
