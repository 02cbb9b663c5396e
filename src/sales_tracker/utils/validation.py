"""Task form validation for the sales tracker.

These rules belong to the form that submits tasks, not to the store: the
store accepts whatever it is given (clamping time taken), while the form
refuses empty or duplicate titles and negative revenue before submitting.
"""

import math
from typing import Any, Iterable, Optional


class TaskValidationError(ValueError):
    """Exception raised when a task form value is not acceptable."""

    def __init__(self, message: str, field_name: str, value: Any = None):
        self.field_name = field_name
        self.value = value
        super().__init__(message)


def is_duplicate_title(title: str, existing_titles: Iterable[str],
                       current_title: Optional[str] = None) -> bool:
    """Check a title against existing ones, ignoring case and surrounding space.

    When editing, ``current_title`` is the task's own title, which is not
    counted as a duplicate of itself.
    """
    candidate = title.strip().lower()
    if not candidate:
        return False

    others = [t.strip().lower() for t in existing_titles]
    if current_title is not None:
        others = [t for t in others if t != current_title.strip().lower()]
    return candidate in others


def validate_task_payload(title: str, revenue: float, time_taken: float,
                          existing_titles: Iterable[str] = (),
                          current_title: Optional[str] = None) -> str:
    """Validate form values and return the trimmed title.

    Raises:
        TaskValidationError: On an empty or duplicate title, negative or
            non-finite revenue, or non-positive time taken
    """
    cleaned = (title or "").strip()
    if not cleaned:
        raise TaskValidationError("Title is required", "title", title)
    if is_duplicate_title(cleaned, existing_titles, current_title):
        raise TaskValidationError("Duplicate title not allowed", "title", title)
    if not math.isfinite(revenue) or revenue < 0:
        raise TaskValidationError("Revenue must be a non-negative number", "revenue", revenue)
    if not math.isfinite(time_taken) or time_taken <= 0:
        raise TaskValidationError("Time taken must be greater than zero", "time_taken", time_taken)
    return cleaned
