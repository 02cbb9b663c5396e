"""CSV export of sales tasks."""

import csv
from io import StringIO
from pathlib import Path
from typing import Iterable, Union

from ..task import Task

CSV_HEADERS = ['id', 'title', 'revenue', 'timeTaken', 'priority', 'status', 'notes']


def _format_number(value) -> str:
    """Render numbers the way the task resource stores them (no trailing .0)."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def to_csv(tasks: Iterable[Task]) -> str:
    """Export tasks to CSV with a fixed header.

    Fields containing a comma, quote or newline are wrapped in double
    quotes with internal quotes doubled.
    """
    output = StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_MINIMAL, lineterminator='\n')
    writer.writerow(CSV_HEADERS)

    for task in tasks:
        writer.writerow([
            task.id,
            task.title,
            _format_number(task.revenue),
            _format_number(task.time_taken),
            task.priority.value,
            task.status.value,
            task.notes or '',
        ])

    # Rows are newline-separated with no terminator after the last one
    return output.getvalue()[:-1]


def write_csv(path: Union[str, Path], tasks: Iterable[Task]) -> Path:
    """Write the CSV export to ``path`` and return the resolved path."""
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8', newline='') as f:
        f.write(to_csv(tasks))
    return path
