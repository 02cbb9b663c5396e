"""Local key-value persistence for the sales tracker.

Values live in a single JSON document on disk, the same shape a browser's
local storage would hold: string keys mapping to JSON values.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .config import ConfigModel
from .task import Task

logger = logging.getLogger(__name__)

TASKS_KEY = "sales-tasks"
LAST_DELETED_KEY = "sales-tasks:last-deleted"


class KeyValueStorage:
    """JSON file backed key-value store."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Ignoring unreadable storage file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring storage file {self.path}: top level is not an object")
            return {}
        return data

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Write then rename so a crash never leaves a truncated file
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".storage-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def get(self, key: str, default: Any = None) -> Any:
        return self._read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> bool:
        data = self._read()
        if key not in data:
            return False
        del data[key]
        self._write(data)
        return True

    def keys(self) -> List[str]:
        return list(self._read().keys())


class TaskStorage:
    """Reads and writes the full task list and the pending undo."""

    def __init__(self, kv: KeyValueStorage):
        self.kv = kv

    @classmethod
    def from_config(cls, config: ConfigModel) -> "TaskStorage":
        return cls(KeyValueStorage(config.get_storage_path()))

    def has_tasks(self) -> bool:
        return self.kv.get(TASKS_KEY) is not None

    def load_tasks(self) -> List[Task]:
        records = self.kv.get(TASKS_KEY) or []
        tasks = []
        for record in records:
            try:
                tasks.append(Task.from_dict(record))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed stored task {record!r}: {e}")
        return tasks

    def save_tasks(self, tasks) -> None:
        self.kv.set(TASKS_KEY, [t.to_dict() for t in tasks])
        logger.debug(f"Saved {len(tasks)} tasks to {self.kv.path}")

    def load_last_deleted(self) -> Optional[Task]:
        record = self.kv.get(LAST_DELETED_KEY)
        if not record:
            return None
        try:
            return Task.from_dict(record)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Dropping malformed pending undo: {e}")
            return None

    def save_last_deleted(self, task: Optional[Task]) -> None:
        if task is None:
            self.kv.delete(LAST_DELETED_KEY)
        else:
            self.kv.set(LAST_DELETED_KEY, task.to_dict())

    def attach(self, store) -> Callable[[], None]:
        """Persist ``store`` after every change; returns the unsubscribe function."""

        def persist(changed):
            self.save_tasks(changed.tasks)
            self.save_last_deleted(changed.last_deleted)

        return store.subscribe(persist)
