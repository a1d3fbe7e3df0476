"""Kanban board controller: optimistic drag-and-drop status transitions."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from taskboard.models.task import SortKey, Task, TaskQuery, TaskStatus
from taskboard.services.task_cache import Invalidation, TaskCache
from taskboard.utils.config import AppConfig
from taskboard.utils.errors import TaskboardError
from taskboard.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

# Column order on the board; column ids equal status values
COLUMNS: tuple[TaskStatus, ...] = (TaskStatus.PENDING, TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED)


class DragPhase(str, Enum):
    """Drag state machine phases."""
    IDLE = "idle"
    DRAGGING = "dragging"
    DROPPED_INVALID = "dropped-invalid"
    RECONCILING = "reconciling"
    COMMITTED = "committed"
    REVERTED = "reverted"


class BoardLocation(BaseModel):
    """A position on the board: column plus zero-based index within it."""
    column: TaskStatus
    index: int = Field(..., ge=0)


def board_query(page_size: Optional[int] = None) -> TaskQuery:
    """Query the board loads: every status, newest first, one large page."""
    return TaskQuery(sort_key=SortKey.CREATED_DESC, page_size=page_size or AppConfig.KANBAN_PAGE_SIZE)


class KanbanDragController:
    """
    Holds the board's own column snapshot and applies drops optimistically.

    A drop that changes column moves the card immediately, then saves the new
    status through the shared cache; if the save fails the pre-drag snapshot
    is restored. Every valid drop saves the status, including reorders inside
    a column; the position within a column is kept locally only.
    """

    def __init__(self, cache: TaskCache, page_size: Optional[int] = None):
        self.cache = cache
        self.query = board_query(page_size)
        self.columns: dict[TaskStatus, list[Task]] = {status: [] for status in COLUMNS}
        self.phase = DragPhase.IDLE
        self.dragging_task_id: Optional[str] = None
        self.error: Optional[str] = None
        self._reload_pending = False
        self._unsubscribe = cache.subscribe(self._on_invalidated)

    def close(self) -> None:
        self._unsubscribe()

    # -------------------- snapshot --------------------

    def seed(self, tasks: list[Task]) -> None:
        """Distribute tasks over the columns, preserving their order."""
        self.columns = {status: [] for status in COLUMNS}
        for task in tasks:
            self.columns[task.status].append(task)

    async def load(self) -> bool:
        """Load the snapshot from the shared cache; errors are kept in ``error``."""
        try:
            page = await self.cache.list(self.query)
        except TaskboardError as e:
            self.error = str(e)
            logger.warning("Board load failed", error=str(e))
            return False
        self.seed(list(page.items))
        self.error = None
        self._reload_pending = False
        return True

    def column(self, status: TaskStatus) -> list[Task]:
        return list(self.columns[TaskStatus(status)])

    def tasks(self) -> list[Task]:
        return [task for status in COLUMNS for task in self.columns[status]]

    def _snapshot(self) -> dict[TaskStatus, list[Task]]:
        return {status: list(tasks) for status, tasks in self.columns.items()}

    async def _on_invalidated(self, event: Invalidation) -> None:
        if self.phase in (DragPhase.DRAGGING, DragPhase.RECONCILING):
            # applied once the current drag settles
            self._reload_pending = True
            return
        await self.load()

    # -------------------- drag state machine --------------------

    def begin_drag(self, task_id: str) -> bool:
        """Enter the dragging phase; refused while a previous drop is reconciling."""
        if self.phase is DragPhase.RECONCILING:
            return False
        self.phase = DragPhase.DRAGGING
        self.dragging_task_id = task_id
        return True

    def cancel_drag(self) -> None:
        if self.phase is DragPhase.DRAGGING:
            self.phase = DragPhase.IDLE
            self.dragging_task_id = None

    def _is_valid_drop(self, task_id: Optional[str], source: BoardLocation, destination: Optional[BoardLocation]) -> bool:
        if task_id is None or destination is None:
            return False
        if destination.column == source.column and destination.index == source.index:
            return False
        source_column = self.columns[source.column]
        return source.index < len(source_column) and source_column[source.index].id == task_id

    async def drop(self, source: BoardLocation, destination: Optional[BoardLocation]) -> DragPhase:
        """
        Finish the current drag.

        Returns the resulting phase: dropped-invalid, committed or reverted.
        """
        task_id = self.dragging_task_id
        self.dragging_task_id = None

        if self.phase is not DragPhase.DRAGGING or not self._is_valid_drop(task_id, source, destination):
            self.phase = DragPhase.DROPPED_INVALID
            logger.debug("Drop ignored", task_id=task_id)
            await self._settle()
            return self.phase

        before = self._snapshot()
        target_status = destination.column
        moved = self.columns[source.column].pop(source.index)
        if moved.status is not target_status:
            moved = moved.model_copy(update={"status": target_status})
        target_column = self.columns[target_status]
        target_column.insert(min(destination.index, len(target_column)), moved)

        self.phase = DragPhase.RECONCILING
        self.error = None
        try:
            await self.cache.update(moved.id, {"status": target_status.value}, origin=self)
        except TaskboardError as e:
            self.columns = before
            self.error = str(e)
            self.phase = DragPhase.REVERTED
            logger.warning(
                "Status update failed, board reverted",
                task_id=moved.id,
                target_status=target_status.value,
                error=str(e)
            )
        else:
            self.phase = DragPhase.COMMITTED
            logger.info(
                "Task moved",
                task_id=moved.id,
                from_status=source.column.value,
                to_status=target_status.value
            )

        await self._settle()
        return self.phase

    async def _settle(self) -> None:
        if self._reload_pending:
            await self.load()
