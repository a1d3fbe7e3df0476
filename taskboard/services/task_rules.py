"""Pure filter, ordering and pagination rules for tasks."""

import math
from functools import cmp_to_key
from typing import Any, Iterable, Optional, Union

from taskboard.models.task import ALL_STATUSES, SortKey, Task, TaskStatus
from taskboard.utils.config import PAGE_SIZE


def matches(task: Task, query: Optional[str] = "", status_filter: Union[str, TaskStatus] = ALL_STATUSES) -> bool:
    """
    Return True when the task passes the status filter and the search query.

    ``status_filter="all"`` accepts every status. A non-empty query must occur,
    case-insensitively, in the title or the description.
    """
    if status_filter != ALL_STATUSES and task.status != TaskStatus(status_filter):
        return False

    if not query:
        return True

    needle = query.lower()
    if needle in task.title.lower():
        return True
    return bool(task.description) and needle in task.description.lower()


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def _cmp_missing_last(a: Any, b: Any, descending: bool = False) -> int:
    if a is None and b is None:
        return 0
    if a is None:
        return 1
    if b is None:
        return -1
    return -_cmp(a, b) if descending else _cmp(a, b)


def compare(a: Task, b: Task, sort_key: Union[str, SortKey] = SortKey.CREATED_DESC) -> int:
    """
    Three-way comparison defining a total order over tasks.

    Missing due dates and creation times sort last; ties fall back to id ascending.
    """
    sort_key = SortKey(sort_key)

    if sort_key is SortKey.TITLE:
        primary = _cmp(a.title, b.title)
    elif sort_key is SortKey.DUE_DATE:
        primary = _cmp_missing_last(a.due_date, b.due_date)
    elif sort_key is SortKey.CREATED_ASC:
        primary = _cmp_missing_last(a.created_at, b.created_at)
    else:
        primary = _cmp_missing_last(a.created_at, b.created_at, descending=True)

    return primary or _cmp(a.id, b.id)


def sort_tasks(tasks: Iterable[Task], sort_key: Union[str, SortKey] = SortKey.CREATED_DESC) -> list[Task]:
    """Return tasks ordered by ``compare``."""
    sort_key = SortKey(sort_key)
    return sorted(tasks, key=cmp_to_key(lambda a, b: compare(a, b, sort_key)))


def filter_tasks(
    tasks: Iterable[Task],
    query: Optional[str] = "",
    status_filter: Union[str, TaskStatus] = ALL_STATUSES,
) -> list[Task]:
    """Return the tasks that match, preserving order."""
    return [task for task in tasks if matches(task, query, status_filter)]


def page_count(total_count: int, page_size: int = PAGE_SIZE) -> int:
    """Number of pages needed to show total_count items."""
    return math.ceil(total_count / page_size) if total_count > 0 else 0


def clamp_page(page_index: int, total_count: int, page_size: int = PAGE_SIZE) -> int:
    """Clamp a 1-based page index into [1, max(page_count, 1)]."""
    return min(max(page_index, 1), max(page_count(total_count, page_size), 1))


def paginate(tasks: list[Task], page_index: int, page_size: int = PAGE_SIZE) -> list[Task]:
    """Slice one 1-based page out of an ordered list."""
    offset = (max(page_index, 1) - 1) * page_size
    return tasks[offset:offset + page_size]
