"""Shared read-through task cache with invalidation events."""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from taskboard.models.task import Task, TaskDraft, TaskPage, TaskQuery
from taskboard.services.gateways import TaskGateway
from taskboard.utils.config import AppConfig
from taskboard.utils.deadline import call_with_deadline
from taskboard.utils.errors import TaskboardError, TransportError
from taskboard.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)


@dataclass(frozen=True)
class Invalidation:
    """Announces that cached pages no longer reflect the remote collection."""
    reason: str
    task_id: Optional[str] = None
    origin: Any = None


Listener = Callable[[Invalidation], Awaitable[None]]


class TaskCache:
    """
    Read-through cache in front of a TaskGateway, shared by every view.

    Pages are keyed by TaskQuery. Mutations go through the cache, clear it and
    notify subscribers other than the mutation's origin. Every gateway call
    runs under a deadline.
    """

    def __init__(self, gateway: TaskGateway, timeout_seconds: Optional[float] = None):
        self.gateway = gateway
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else AppConfig.GATEWAY_TIMEOUT_SECONDS
        self._pages: dict[TaskQuery, TaskPage] = {}
        self._listeners: list[Listener] = []
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register an async listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def cached(self, query: TaskQuery) -> Optional[TaskPage]:
        return self._pages.get(query)

    async def _call(self, operation: str, awaitable: Awaitable[Any]) -> Any:
        try:
            return await call_with_deadline(awaitable, self.timeout_seconds, operation)
        except TaskboardError:
            raise
        except Exception as e:
            logger.error("Gateway call failed", operation=operation, error=str(e), error_type=type(e).__name__)
            raise TransportError(f"{operation} failed: {e}") from e

    async def list(self, query: TaskQuery) -> TaskPage:
        page = self._pages.get(query)
        if page is not None:
            logger.debug("Task cache hit", page_index=query.page_index, generation=self._generation)
            return page

        generation = self._generation
        page = await self._call("list tasks", self.gateway.list(query))

        # A mutation landed while this read was in flight; do not store it
        if generation == self._generation:
            self._pages[query] = page
        return page

    async def create(self, draft: TaskDraft, owner: str, origin: Any = None) -> Task:
        task = await self._call("create task", self.gateway.create(draft, owner))
        await self.invalidate("created", task_id=task.id, origin=origin)
        return task

    async def update(self, task_id: str, changes: dict[str, Any], origin: Any = None) -> None:
        await self._call("update task", self.gateway.update(task_id, changes))
        await self.invalidate("updated", task_id=task_id, origin=origin)

    async def delete(self, task_id: str, origin: Any = None) -> None:
        await self._call("delete task", self.gateway.delete(task_id))
        await self.invalidate("deleted", task_id=task_id, origin=origin)

    async def invalidate(self, reason: str = "manual", task_id: Optional[str] = None, origin: Any = None) -> None:
        """Drop every cached page and notify subscribers (except the origin's own listener)."""
        self._generation += 1
        self._pages.clear()

        event = Invalidation(reason=reason, task_id=task_id, origin=origin)
        logger.debug("Task cache invalidated", reason=reason, task_id=task_id, generation=self._generation)

        for listener in list(self._listeners):
            if origin is not None and getattr(listener, "__self__", None) is origin:
                continue
            await listener(event)
