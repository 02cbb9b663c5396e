"""Synthetic sales task dataset used when no initial data is available."""

import random
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from .task import Priority, Task, TaskStatus
from .utils.datetime import ensure_aware, now_utc

DEFAULT_SEED_COUNT = 50

ACTIVITIES = [
    "Discovery call with",
    "Send proposal to",
    "Follow up with",
    "Demo for",
    "Negotiate renewal with",
    "Contract review for",
    "Quarterly review with",
    "Upsell pitch to",
]

ACCOUNTS = [
    "Acme Corp",
    "Globex",
    "Initech",
    "Umbrella",
    "Stark Industries",
    "Wayne Enterprises",
    "Hooli",
    "Vandelay Imports",
    "Soylent",
    "Tyrell",
]

NOTES = [
    None,
    "Decision maker is the CFO",
    "Waiting on legal, ping next week",
    "Budget approved for Q3",
    "Asked for a volume discount",
    None,
]

STATUS_WEIGHTS = [
    (TaskStatus.TODO, 0.35),
    (TaskStatus.IN_PROGRESS, 0.30),
    (TaskStatus.DONE, 0.35),
]


def generate_sales_tasks(
    count: int = DEFAULT_SEED_COUNT,
    seed: Optional[int] = None,
    now: Optional[datetime] = None,
) -> List[Task]:
    """Generate ``count`` plausible sales tasks with unique titles.

    Creation dates span the last 60 days; Done tasks complete between their
    creation and ``now``. The same ``seed`` and ``now`` always yield the same
    dataset.
    """
    rng = random.Random(seed)
    now = ensure_aware(now) or now_utc()
    statuses, weights = zip(*STATUS_WEIGHTS)
    priorities = list(Priority)

    tasks = []
    for index in range(count):
        activity = ACTIVITIES[index % len(ACTIVITIES)]
        account = ACCOUNTS[(index // len(ACTIVITIES)) % len(ACCOUNTS)]
        # The suffix keeps titles unique once the combinations wrap around
        title = f"{activity} {account} #{index + 1}"

        status = rng.choices(statuses, weights=weights)[0]
        created_at = now - timedelta(days=rng.randint(0, 60), hours=rng.randint(0, 23))
        completed_at = None
        if status == TaskStatus.DONE:
            elapsed = (now - created_at).total_seconds()
            completed_at = created_at + timedelta(seconds=rng.uniform(0, elapsed))

        tasks.append(Task(
            id=str(uuid.UUID(int=rng.getrandbits(128), version=4)),
            title=title,
            revenue=round(rng.uniform(0, 20000), 2),
            time_taken=rng.randint(1, 40),
            priority=rng.choice(priorities),
            status=status,
            notes=rng.choice(NOTES),
            created_at=created_at,
            completed_at=completed_at,
        ))

    return tasks
