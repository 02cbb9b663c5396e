"""Sales Tracker - rank sales tasks by ROI and report on the pipeline."""

__version__ = "0.1.0"
__author__ = "Sales Tracker Team"

from .task import Task, DerivedTask, Metrics, Priority, TaskStatus, PerformanceGrade
from .store import TaskStore, TaskPayload, TaskSnapshot

__all__ = [
    "Task",
    "DerivedTask",
    "Metrics",
    "Priority",
    "TaskStatus",
    "PerformanceGrade",
    "TaskStore",
    "TaskPayload",
    "TaskSnapshot",
    "__version__",
]
