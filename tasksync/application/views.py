"""Read-only projections over a task collection. No I/O."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone

from tasksync.domain.models import Priority, Task


@dataclass(slots=True, frozen=True)
class TaskStatistics:
    completed: int
    pending: int
    total: int
    overdue: int


def by_project(tasks: Iterable[Task], project_id: str) -> list[Task]:
    return [task for task in tasks if task.project_id == project_id]


def by_category(tasks: Iterable[Task], category: str) -> list[Task]:
    return [task for task in tasks if task.category == category]


def by_priority(tasks: Iterable[Task], priority: Priority | str) -> list[Task]:
    value = priority.value if isinstance(priority, Priority) else priority
    return [task for task in tasks if task.priority.value == value]


def search(tasks: Iterable[Task], query: str) -> list[Task]:
    """Case-insensitive substring match on title, description and tags."""
    needle = query.strip().lower()
    if not needle:
        return list(tasks)
    return [
        task
        for task in tasks
        if needle in task.title.lower()
        or needle in task.description.lower()
        or any(needle in tag.lower() for tag in task.tags)
    ]


def statistics(tasks: Iterable[Task], now: datetime | None = None) -> TaskStatistics:
    now = now or datetime.now(timezone.utc)
    valid = [task for task in tasks if isinstance(task.is_completed, bool)]
    completed = sum(1 for task in valid if task.is_completed)
    overdue = sum(1 for task in valid if task.is_overdue(now))
    return TaskStatistics(
        completed=completed,
        pending=len(valid) - completed,
        total=len(valid),
        overdue=overdue,
    )


def project_task_counts(tasks: Iterable[Task]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for task in tasks:
        if task.project_id is not None and task.is_completed is False:
            counts[task.project_id] = counts.get(task.project_id, 0) + 1
    return counts
