"""ROI and summary metric calculations.

Every function here is pure: it reads the task sequence it is given and
returns a fresh value. Empty lists and zero denominators produce defined
defaults instead of errors, and ROI is never NaN or infinite.
"""

import math
from dataclasses import fields
from decimal import ROUND_HALF_UP, Decimal, localcontext
from numbers import Real
from typing import Optional, Sequence, Union

from .task import DerivedTask, Metrics, PerformanceGrade, Priority, Task, TaskStatus

PRIORITY_WEIGHTS = {
    Priority.HIGH: 3,
    Priority.MEDIUM: 2,
    Priority.LOW: 1,
}

EXCELLENT_ROI_THRESHOLD = 500
GOOD_ROI_THRESHOLD = 200

CENTS = Decimal("0.01")


def _is_finite_number(value) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def compute_roi(revenue, time_taken) -> Optional[float]:
    """Return revenue per hour rounded to 2 decimals, or None when undefined."""
    if not _is_finite_number(revenue):
        return None
    if not _is_finite_number(time_taken) or time_taken <= 0:
        return None
    ratio = revenue / time_taken
    if not math.isfinite(ratio):
        return None
    # Halves round away from zero on the exact binary value
    with localcontext() as ctx:
        ctx.prec = 400  # wide enough for any finite float
        return float(Decimal(ratio).quantize(CENTS, rounding=ROUND_HALF_UP))


def compute_priority_weight(priority: Union[Priority, str, None]) -> int:
    """Map a priority to its ranking weight (High=3, Medium=2, anything else=1)."""
    if isinstance(priority, str):
        try:
            priority = Priority(priority)
        except ValueError:
            return 1
    return PRIORITY_WEIGHTS.get(priority, 1)


def with_derived(task: Task) -> DerivedTask:
    """Return a DerivedTask carrying the task's ROI and priority weight."""
    if isinstance(task, DerivedTask):
        task = task.base_task()
    return DerivedTask(
        **{f.name: getattr(task, f.name) for f in fields(Task)},
        roi=compute_roi(task.revenue, task.time_taken),
        priority_weight=compute_priority_weight(task.priority),
    )


def compute_total_revenue(tasks: Sequence[Task]) -> float:
    """Sum revenue over Done tasks only."""
    return sum((t.revenue for t in tasks if t.status == TaskStatus.DONE), 0)


def compute_total_time_taken(tasks: Sequence[Task]) -> float:
    return sum((t.time_taken for t in tasks), 0)


def compute_time_efficiency(tasks: Sequence[Task]) -> float:
    """Percentage of tasks that are Done (0 for an empty list)."""
    if not tasks:
        return 0
    done = sum(1 for t in tasks if t.status == TaskStatus.DONE)
    return done / len(tasks) * 100


def compute_revenue_per_hour(tasks: Sequence[Task]) -> float:
    time_taken = compute_total_time_taken(tasks)
    if time_taken <= 0:
        return 0
    return compute_total_revenue(tasks) / time_taken


def compute_average_roi(tasks: Sequence[Task]) -> float:
    """Mean ROI over tasks whose ROI is defined; 0 if none are."""
    rois = [compute_roi(t.revenue, t.time_taken) for t in tasks]
    valid = [r for r in rois if r is not None]
    if not valid:
        return 0
    return sum(valid) / len(valid)


def compute_performance_grade(average_roi: float) -> PerformanceGrade:
    if average_roi > EXCELLENT_ROI_THRESHOLD:
        return PerformanceGrade.EXCELLENT
    if average_roi >= GOOD_ROI_THRESHOLD:
        return PerformanceGrade.GOOD
    return PerformanceGrade.NEEDS_IMPROVEMENT


def compute_metrics(tasks: Sequence[Task]) -> Metrics:
    """Build the full metrics snapshot for a task list."""
    if not tasks:
        return Metrics.empty()

    average_roi = compute_average_roi(tasks)
    return Metrics(
        total_revenue=compute_total_revenue(tasks),
        total_time_taken=compute_total_time_taken(tasks),
        time_efficiency_pct=compute_time_efficiency(tasks),
        revenue_per_hour=compute_revenue_per_hour(tasks),
        average_roi=average_roi,
        performance_grade=compute_performance_grade(average_roi),
    )
