"""Calendar helpers: month grid and due-date bucketing."""

from collections import defaultdict
from datetime import date, timedelta
from typing import Iterable

from taskboard.models.task import Task


def _first_of_month(day: date) -> date:
    return day.replace(day=1)


def _last_of_month(day: date) -> date:
    return shift_month(day, 1) - timedelta(days=1)


def shift_month(anchor: date, delta: int) -> date:
    """First day of the month ``delta`` months away from anchor."""
    month_index = anchor.year * 12 + (anchor.month - 1) + delta
    return date(month_index // 12, month_index % 12 + 1, 1)


def month_grid(anchor: date) -> list[date]:
    """Dates shown for the anchor's month, in whole Sunday-to-Saturday weeks."""
    first = _first_of_month(anchor)
    last = _last_of_month(anchor)
    # date.weekday(): Monday == 0 ... Sunday == 6
    start = first - timedelta(days=(first.weekday() + 1) % 7)
    end = last + timedelta(days=(5 - last.weekday()) % 7)
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def tasks_by_date(tasks: Iterable[Task]) -> dict[date, list[Task]]:
    """Bucket tasks with a due date by that date, preserving input order."""
    buckets: dict[date, list[Task]] = defaultdict(list)
    for task in tasks:
        if task.due_date is not None:
            buckets[task.due_date].append(task)
    return dict(buckets)


def day_preview(tasks: list[Task], limit: int = 3) -> tuple[list[Task], int]:
    """First ``limit`` tasks of a day and how many more are hidden."""
    return tasks[:limit], max(len(tasks) - limit, 0)
