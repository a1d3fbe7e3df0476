"""Boundary interfaces to the persistence service and the completion service."""

from abc import ABC, abstractmethod
from typing import Any

from taskboard.models.ai import AiEdit, ExtractedTask
from taskboard.models.task import Task, TaskDraft, TaskFields, TaskPage, TaskQuery


class TaskGateway(ABC):
    """
    CRUD and query surface over the remote task collection.

    Implementations raise TransportError on network or service failure,
    ValidationError for an empty title on create and NotFoundError when an
    update or delete targets an unknown id. They never retry.
    """

    @abstractmethod
    async def list(self, query: TaskQuery) -> TaskPage:
        """Return one page of tasks matching the query plus the total count."""

    @abstractmethod
    async def create(self, draft: TaskDraft, owner: str) -> Task:
        """Insert a task; the service assigns id and created_at."""

    @abstractmethod
    async def update(self, task_id: str, changes: dict[str, Any]) -> None:
        """Apply a partial update."""

    @abstractmethod
    async def delete(self, task_id: str) -> None:
        """Remove a task."""


class AiGateway(ABC):
    """Request/response contract with the language-model completion service."""

    @abstractmethod
    async def propose_edit(self, current_task: TaskFields, instruction: str) -> AiEdit:
        """
        Ask for an edited version of the task.

        Raises ValidationError when the reply lacks a non-empty title and
        ParseError when no JSON object can be decoded from it.
        """

    @abstractmethod
    async def extract_tasks(self, document_text: str) -> list[ExtractedTask]:
        """Extract task candidates; an unparseable reply yields an empty list."""
