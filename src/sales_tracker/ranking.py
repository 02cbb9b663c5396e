"""Ranking and filtering of derived tasks."""

import locale
from typing import Iterable, List, Optional, Sequence, Union

from .task import DerivedTask, Priority, Task, TaskStatus

# Rank assigned to tasks whose ROI is undefined
INVALID_ROI_RANK = -1


def title_sort_key(title: str):
    """Collation key for titles in the active locale, case-insensitive first."""
    return (locale.strxfrm(title.casefold()), title)


def _rank_key(task: DerivedTask):
    roi = task.roi if task.roi is not None else INVALID_ROI_RANK
    return (-roi, -task.priority_weight, title_sort_key(task.title))


def sort_tasks(tasks: Sequence[DerivedTask]) -> List[DerivedTask]:
    """Order tasks by ROI desc, priority weight desc, then title asc.

    Returns a new list; the input sequence is left untouched.
    """
    return sorted(tasks, key=_rank_key)


def filter_tasks(
    tasks: Iterable[Task],
    status: Union[TaskStatus, str, None] = None,
    priority: Union[Priority, str, None] = None,
    search: Optional[str] = None,
) -> list:
    """Return tasks matching every given criterion, preserving order.

    ``search`` is a case-insensitive substring match over title and notes.
    """
    if status is not None and not isinstance(status, TaskStatus):
        status = TaskStatus(status)
    if priority is not None and not isinstance(priority, Priority):
        priority = Priority(priority)
    needle = search.strip().casefold() if search else ""

    result = []
    for task in tasks:
        if status is not None and task.status != status:
            continue
        if priority is not None and task.priority != priority:
            continue
        if needle:
            haystack = f"{task.title}\n{task.notes or ''}".casefold()
            if needle not in haystack:
                continue
        result.append(task)
    return result
