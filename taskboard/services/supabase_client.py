"""Supabase client wrapper and the task gateway built on it."""

import asyncio
import os
from typing import Any, Optional

from supabase import Client, create_client
from supabase.client import ClientOptions

from taskboard.models.task import ALL_STATUSES, SortKey, Task, TaskDraft, TaskPage, TaskQuery
from taskboard.services.gateways import TaskGateway
from taskboard.utils.config import AppConfig
from taskboard.utils.errors import ConfigurationError, NotFoundError, TransportError, ValidationError
from taskboard.utils.logging import get_structured_logger, mask_user_id, sanitize_message_text, timed

logger = get_structured_logger(__name__)

# Global client instance (singleton pattern)
_client: Optional[Client] = None

# Sort key -> (column, descending); id is always appended as tie-breaker
_ORDERING = {
    SortKey.CREATED_DESC: ("created_at", True),
    SortKey.CREATED_ASC: ("created_at", False),
    SortKey.DUE_DATE: ("due_date", False),
    SortKey.TITLE: ("title", False),
}


def get_supabase_client() -> Client:
    """Get or create Supabase client singleton."""
    global _client

    if _client is None:
        url = os.environ.get("SUPABASE_URL")
        key = os.environ.get("SUPABASE_ANON_KEY") or os.environ.get("SUPABASE_SERVICE_ROLE_KEY")

        if not url or not key:
            raise ConfigurationError("SUPABASE_URL and SUPABASE_ANON_KEY (or SUPABASE_SERVICE_ROLE_KEY) must be set")

        options = ClientOptions(
            auto_refresh_token=False,
            persist_session=False,
        )

        _client = create_client(url, key, options)
        logger.info("Supabase client initialized", url=url)

    return _client


class SupabaseClient:
    """Async context manager for Supabase client."""

    def __init__(self, client: Optional[Client] = None):
        self.client: Optional[Client] = client

    async def __aenter__(self) -> Client:
        if self.client is None:
            self.client = get_supabase_client()
        return self.client

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            logger.error(
                "Supabase operation error",
                error=str(exc_val),
                error_type=exc_type.__name__
            )
        return False


def quote_filter_value(value: str) -> str:
    """Quote a value for a PostgREST logical filter (commas and parentheses are reserved)."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def escape_like(text: str) -> str:
    """Escape LIKE wildcards so the text only ever matches literally."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_search_filter(search_text: str) -> str:
    """Case-insensitive substring match over title OR description."""
    pattern = quote_filter_value(f"%{escape_like(search_text)}%")
    return f"title.ilike.{pattern},description.ilike.{pattern}"


async def _execute(request: Any) -> Any:
    """Run a blocking PostgREST request off the event loop so deadlines can cancel the wait."""
    return await asyncio.to_thread(request.execute)


class SupabaseTaskGateway(TaskGateway):
    """Task gateway over a Supabase (PostgREST) table."""

    def __init__(self, client: Optional[Client] = None, table: Optional[str] = None):
        self._client = client
        self.table = table or AppConfig.TASKS_TABLE

    @timed("supabase.list_tasks")
    async def list(self, query: TaskQuery) -> TaskPage:
        async with SupabaseClient(self._client) as client:
            try:
                request = client.table(self.table).select("*", count="exact")

                if query.status_filter != ALL_STATUSES:
                    request = request.eq("status", query.status_filter)

                if query.search_text:
                    request = request.or_(build_search_filter(query.search_text))

                column, descending = _ORDERING[query.sort_key]
                # missing values sort last in every direction, as in task_rules.compare
                request = request.order(column, desc=descending, nullsfirst=False).order("id")

                # PostgREST ranges are inclusive
                request = request.range(query.offset, query.offset + query.page_size - 1)

                result = await _execute(request)
            except Exception as e:
                logger.error(
                    "Failed to list tasks",
                    table=self.table,
                    status_filter=query.status_filter,
                    sort_key=query.sort_key.value,
                    page_index=query.page_index,
                    error=str(e)
                )
                raise TransportError(f"Failed to list tasks: {e}") from e

        rows = result.data or []
        total = result.count if result.count is not None else len(rows)
        return TaskPage(items=tuple(Task.model_validate(row) for row in rows), total_count=total)

    @timed("supabase.create_task")
    async def create(self, draft: TaskDraft, owner: str) -> Task:
        if not draft.title or not draft.title.strip():
            raise ValidationError("Task title must not be empty")

        async with SupabaseClient(self._client) as client:
            try:
                result = await _execute(client.table(self.table).insert(draft.to_row(owner)))
            except Exception as e:
                raise TransportError(f"Failed to create task: {e}") from e

        if result.data and len(result.data) > 0:
            task = Task.model_validate(result.data[0])
            logger.info(
                "Task created",
                task_id=task.id,
                owner=mask_user_id(owner),
                title=sanitize_message_text(task.title, max_length=100)
            )
            return task
        raise TransportError("Failed to create task: no data returned")

    @timed("supabase.update_task")
    async def update(self, task_id: str, changes: dict[str, Any]) -> None:
        if "title" in changes and not (changes["title"] or "").strip():
            raise ValidationError("Task title must not be empty")

        async with SupabaseClient(self._client) as client:
            try:
                result = await _execute(client.table(self.table).update(changes).eq("id", task_id))
            except Exception as e:
                raise TransportError(f"Failed to update task: {e}") from e

        if not result.data:
            raise NotFoundError(f"Task not found: {task_id}")
        logger.info("Task updated", task_id=task_id, fields=sorted(changes))

    @timed("supabase.delete_task")
    async def delete(self, task_id: str) -> None:
        async with SupabaseClient(self._client) as client:
            try:
                result = await _execute(client.table(self.table).delete().eq("id", task_id))
            except Exception as e:
                raise TransportError(f"Failed to delete task: {e}") from e

        if not result.data:
            raise NotFoundError(f"Task not found: {task_id}")
        logger.info("Task deleted", task_id=task_id)
