"""Sales task data model for the sales tracker."""

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from numbers import Real
from typing import Any, Dict, Optional

from .utils.datetime import ensure_aware, now_utc, parse_iso, to_iso_string


class Priority(Enum):
    """Task priority levels."""
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class TaskStatus(Enum):
    """Task status states."""
    TODO = "Todo"
    IN_PROGRESS = "In Progress"
    DONE = "Done"


class PerformanceGrade(Enum):
    """Overall grade derived from the average ROI."""
    EXCELLENT = "Excellent"
    GOOD = "Good"
    NEEDS_IMPROVEMENT = "Needs Improvement"


# Field name -> key used in the JSON task resource and persisted storage
WIRE_KEYS = {
    "id": "id",
    "title": "title",
    "revenue": "revenue",
    "time_taken": "timeTaken",
    "priority": "priority",
    "status": "status",
    "notes": "notes",
    "created_at": "createdAt",
    "completed_at": "completedAt",
}


def _expect(value: Any, kind: type, key: str) -> Any:
    if not isinstance(value, kind):
        raise TypeError(f"{key} must be a {kind.__name__}, got {type(value).__name__}")
    return value


def _expect_number(value: Any, key: str) -> Any:
    # bool is an int subclass but never a valid amount
    if isinstance(value, bool) or not isinstance(value, Real):
        raise TypeError(f"{key} must be a number, got {type(value).__name__}")
    return value


@dataclass
class Task:
    """A unit of sales work with the revenue it brought and the hours it took."""

    id: str
    title: str
    revenue: float = 0.0
    time_taken: float = 1.0  # hours
    priority: Priority = Priority.MEDIUM
    status: TaskStatus = TaskStatus.TODO
    notes: Optional[str] = None
    created_at: datetime = field(default_factory=now_utc)
    completed_at: Optional[datetime] = None

    def __post_init__(self):
        """Coerce enum values and normalize timestamps."""
        if not isinstance(self.priority, Priority):
            self.priority = Priority(self.priority)
        if not isinstance(self.status, TaskStatus):
            self.status = TaskStatus(self.status)

        self.created_at = ensure_aware(self.created_at)
        self.completed_at = ensure_aware(self.completed_at)

    @property
    def is_done(self) -> bool:
        return self.status == TaskStatus.DONE

    def to_dict(self) -> Dict[str, Any]:
        """Convert the Task to its JSON record with ISO timestamps."""
        data = {
            "id": self.id,
            "title": self.title,
            "revenue": self.revenue,
            "timeTaken": self.time_taken,
            "priority": self.priority.value,
            "status": self.status.value,
            "createdAt": to_iso_string(self.created_at),
        }
        # Optional fields are omitted rather than written as null
        if self.notes is not None:
            data["notes"] = self.notes
        if self.completed_at is not None:
            data["completedAt"] = to_iso_string(self.completed_at)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Create a Task from a JSON record.

        Raises:
            KeyError: If ``id`` or ``title`` is missing
            TypeError: If a field holds the wrong JSON type
            ValueError: If an enum value or timestamp is malformed
        """
        title = _expect(data["title"], str, "title")
        revenue = _expect_number(data.get("revenue", 0), "revenue")
        time_taken = _expect_number(data.get("timeTaken", 1), "timeTaken")
        notes = data.get("notes")
        if notes is not None:
            _expect(notes, str, "notes")
        created_at = parse_iso(data.get("createdAt")) or now_utc()

        return cls(
            id=str(data["id"]),
            title=title,
            revenue=revenue,
            time_taken=time_taken,
            priority=Priority(data.get("priority", Priority.MEDIUM.value)),
            status=TaskStatus(data.get("status", TaskStatus.TODO.value)),
            notes=notes,
            created_at=created_at,
            completed_at=parse_iso(data.get("completedAt")),
        )


@dataclass
class DerivedTask(Task):
    """Task augmented with computed ranking fields. Never persisted."""

    roi: Optional[float] = None
    priority_weight: int = 1

    def base_task(self) -> Task:
        """Strip the derived fields."""
        return Task(**{f.name: getattr(self, f.name) for f in fields(Task)})


@dataclass(frozen=True)
class Metrics:
    """Summary snapshot over a task list."""

    total_revenue: float
    total_time_taken: float
    time_efficiency_pct: float
    revenue_per_hour: float
    average_roi: float
    performance_grade: PerformanceGrade

    @classmethod
    def empty(cls) -> "Metrics":
        return cls(
            total_revenue=0,
            total_time_taken=0,
            time_efficiency_pct=0,
            revenue_per_hour=0,
            average_roi=0,
            performance_grade=PerformanceGrade.NEEDS_IMPROVEMENT,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalRevenue": self.total_revenue,
            "totalTimeTaken": self.total_time_taken,
            "timeEfficiencyPct": self.time_efficiency_pct,
            "revenuePerHour": self.revenue_per_hour,
            "averageROI": self.average_roi,
            "performanceGrade": self.performance_grade.value,
        }


@dataclass(frozen=True)
class ActivityItem:
    """One entry of the store's recent-activity feed."""

    id: str
    ts: datetime
    kind: str  # "add", "update", "delete", "undo"
    summary: str
