"""Pipeline Analytics Engine for the sales tracker.

This module provides the reporting reductions over a task list:
- Status funnel and conversion ratios
- Completion velocity by priority
- Weekly throughput and revenue
- Weighted pipeline value
- Linear revenue forecast
- Revenue cohorts by creation week and priority

All functions are pure and never mutate the tasks they receive.
"""

import logging
import math
import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from ..task import Priority, Task, TaskStatus
from ..utils.datetime import ensure_aware, iso_week_key, now_utc

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 3600

PIPELINE_WEIGHTS = {
    TaskStatus.TODO: 0.1,
    TaskStatus.IN_PROGRESS: 0.5,
    TaskStatus.DONE: 1.0,
}

DEFAULT_FORECAST_HORIZON = 4


@dataclass
class FunnelCounts:
    """Task counts per status with stage conversion ratios"""
    todo: int
    in_progress: int
    done: int
    conversion_todo_to_in_progress: float
    conversion_in_progress_to_done: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'todo': self.todo,
            'in_progress': self.in_progress,
            'done': self.done,
            'conversion_todo_to_in_progress': self.conversion_todo_to_in_progress,
            'conversion_in_progress_to_done': self.conversion_in_progress_to_done,
        }


@dataclass
class VelocityStats:
    """Days from creation to completion for one priority group"""
    avg_days: float
    median_days: float

    def to_dict(self) -> Dict[str, Any]:
        return {'avg_days': self.avg_days, 'median_days': self.median_days}


@dataclass
class WeeklyThroughput:
    week: str
    count: int
    revenue: float

    def to_dict(self) -> Dict[str, Any]:
        return {'week': self.week, 'count': self.count, 'revenue': self.revenue}


@dataclass
class WeeklyRevenue:
    """A point of a revenue series; forecast points use ``+N`` labels"""
    week: str
    revenue: float

    def to_dict(self) -> Dict[str, Any]:
        return {'week': self.week, 'revenue': self.revenue}


@dataclass
class CohortRevenue:
    week: str
    priority: Priority
    revenue: float

    def to_dict(self) -> Dict[str, Any]:
        return {'week': self.week, 'priority': self.priority.value, 'revenue': self.revenue}


@dataclass
class AnalyticsReport:
    """All pipeline analytics for one task list snapshot"""
    generated_at: datetime
    task_count: int
    funnel: FunnelCounts
    velocity: Dict[Priority, VelocityStats]
    throughput: List[WeeklyThroughput] = field(default_factory=list)
    weighted_pipeline: float = 0.0
    forecast: List[WeeklyRevenue] = field(default_factory=list)
    cohorts: List[CohortRevenue] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            'generated_at': self.generated_at.isoformat(),
            'task_count': self.task_count,
            'funnel': self.funnel.to_dict(),
            'velocity': {p.value: v.to_dict() for p, v in self.velocity.items()},
            'throughput': [w.to_dict() for w in self.throughput],
            'weighted_pipeline': self.weighted_pipeline,
            'forecast': [f.to_dict() for f in self.forecast],
            'cohorts': [c.to_dict() for c in self.cohorts],
        }


def compute_funnel(tasks: Sequence[Task]) -> FunnelCounts:
    """Count tasks per status and derive the two stage conversions."""
    todo = sum(1 for t in tasks if t.status == TaskStatus.TODO)
    in_progress = sum(1 for t in tasks if t.status == TaskStatus.IN_PROGRESS)
    done = sum(1 for t in tasks if t.status == TaskStatus.DONE)
    base = todo + in_progress + done

    return FunnelCounts(
        todo=todo,
        in_progress=in_progress,
        done=done,
        conversion_todo_to_in_progress=(in_progress + done) / base if base else 0,
        conversion_in_progress_to_done=done / in_progress if in_progress else 0,
    )


def days_between(start: datetime, end: datetime) -> int:
    """Whole days from ``start`` to ``end``, rounded and never negative."""
    delta = ensure_aware(end) - ensure_aware(start)
    # Halves round up
    return max(0, math.floor(delta.total_seconds() / SECONDS_PER_DAY + 0.5))


def compute_velocity_by_priority(tasks: Sequence[Task]) -> Dict[Priority, VelocityStats]:
    """Average and median completion time in days, per priority."""
    groups: Dict[Priority, List[int]] = {p: [] for p in Priority}

    for task in tasks:
        if task.completed_at:
            groups[task.priority].append(days_between(task.created_at, task.completed_at))

    result = {}
    for priority, durations in groups.items():
        if durations:
            result[priority] = VelocityStats(
                avg_days=statistics.mean(durations),
                median_days=statistics.median_high(durations),
            )
        else:
            result[priority] = VelocityStats(avg_days=0, median_days=0)
    return result


def compute_throughput_by_week(tasks: Sequence[Task]) -> List[WeeklyThroughput]:
    """Completed task count and revenue per ISO week of completion."""
    weeks: Dict[str, List[float]] = defaultdict(lambda: [0, 0])

    for task in tasks:
        if not task.completed_at:
            continue
        bucket = weeks[iso_week_key(task.completed_at)]
        bucket[0] += 1
        bucket[1] += task.revenue

    return [
        WeeklyThroughput(week=week, count=count, revenue=revenue)
        for week, (count, revenue) in sorted(weeks.items())
    ]


def compute_weighted_pipeline(tasks: Sequence[Task]) -> float:
    """Revenue weighted by how far each task has progressed."""
    return sum((t.revenue * PIPELINE_WEIGHTS[t.status] for t in tasks), 0)


def compute_forecast(weekly: Sequence, horizon_weeks: int = DEFAULT_FORECAST_HORIZON) -> List[WeeklyRevenue]:
    """Project weekly revenue with an ordinary least-squares line.

    ``weekly`` is an ascending series of objects with a ``revenue``
    attribute (WeeklyThroughput or WeeklyRevenue). Returns ``horizon_weeks``
    points labelled ``+1``..``+N``, floored at zero, or an empty list when
    fewer than two historical points exist.
    """
    if len(weekly) < 2:
        return []

    y = [w.revenue for w in weekly]
    x = list(range(len(y)))
    n = len(x)

    sum_x = sum(x)
    sum_y = sum(y)
    sum_xy = sum(xi * yi for xi, yi in zip(x, y))
    sum_xx = sum(xi * xi for xi in x)

    slope = (n * sum_xy - sum_x * sum_y) / ((n * sum_xx - sum_x * sum_x) or 1)
    intercept = (sum_y - slope * sum_x) / n

    last_index = x[-1]
    return [
        WeeklyRevenue(week=f"+{i}", revenue=max(0, slope * (last_index + i) + intercept))
        for i in range(1, horizon_weeks + 1)
    ]


def compute_cohort_revenue(tasks: Sequence[Task]) -> List[CohortRevenue]:
    """Revenue grouped by creation ISO week and priority, ascending by week."""
    cohorts: Dict[tuple, float] = defaultdict(float)

    for task in tasks:
        cohorts[(iso_week_key(task.created_at), task.priority)] += task.revenue

    entries = [
        CohortRevenue(week=week, priority=priority, revenue=revenue)
        for (week, priority), revenue in cohorts.items()
    ]
    # Stable sort keeps first-seen priority order within a week
    entries.sort(key=lambda c: c.week)
    return entries


class SalesAnalyzer:
    """Builds a complete analytics report for a task list"""

    def __init__(self, horizon_weeks: int = DEFAULT_FORECAST_HORIZON):
        self.horizon_weeks = horizon_weeks

    def analyze(self, tasks: Sequence[Task], horizon_weeks: Optional[int] = None) -> AnalyticsReport:
        """Generate the pipeline analytics report"""
        horizon = self.horizon_weeks if horizon_weeks is None else horizon_weeks
        throughput = compute_throughput_by_week(tasks)

        report = AnalyticsReport(
            generated_at=now_utc(),
            task_count=len(tasks),
            funnel=compute_funnel(tasks),
            velocity=compute_velocity_by_priority(tasks),
            throughput=throughput,
            weighted_pipeline=compute_weighted_pipeline(tasks),
            forecast=compute_forecast(throughput, horizon),
            cohorts=compute_cohort_revenue(tasks),
        )
        logger.debug(
            "Analyzed %d tasks: %d weeks of throughput, %d forecast points",
            report.task_count, len(throughput), len(report.forecast),
        )
        return report
