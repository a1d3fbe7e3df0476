"""Task list controller: query state, fetch cycle, mutations and AI-assisted edits."""

from typing import Any, Optional, Union

from pydantic import BaseModel, Field

from taskboard.models.ai import AiEdit
from taskboard.models.task import (
    ALL_STATUSES,
    SortKey,
    Task,
    TaskDraft,
    TaskQuery,
    TaskStatus,
    TaskUpdate,
    coerce_model,
)
from taskboard.services.gateways import AiGateway
from taskboard.services.task_cache import Invalidation, TaskCache
from taskboard.services.task_rules import clamp_page, page_count
from taskboard.utils.config import PAGE_SIZE, AppConfig
from taskboard.utils.deadline import call_with_deadline
from taskboard.utils.errors import ConfigurationError, TaskboardError, ValidationError
from taskboard.utils.logging import get_structured_logger, log_timing, sanitize_message_text

logger = get_structured_logger(__name__)

NO_TASKS_EXTRACTED = "No tasks could be extracted from the document"


class TaskListState(BaseModel):
    """Observable state of the paginated task list."""
    search_text: str = ""
    status_filter: str = ALL_STATUSES
    sort_key: SortKey = SortKey.CREATED_DESC
    page_index: int = 1
    page_size: int = PAGE_SIZE
    items: list[Task] = Field(default_factory=list)
    total_count: int = 0
    is_loading: bool = False
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def page_count(self) -> int:
        return page_count(self.total_count, self.page_size)

    @property
    def has_previous_page(self) -> bool:
        return self.page_index > 1

    @property
    def has_next_page(self) -> bool:
        return self.page_index < self.page_count

    def query(self) -> TaskQuery:
        return TaskQuery(
            search_text=self.search_text,
            status_filter=self.status_filter,
            sort_key=self.sort_key,
            page_index=self.page_index,
            page_size=self.page_size,
        )


class TaskListController:
    """
    Owns the paginated, filtered, sorted view of the remote task collection.

    Every query change triggers exactly one fetch. Fetch results are tagged
    with a sequence number and the query they were issued for, and only the
    latest one is applied. Mutations go through the shared cache and are
    followed by a re-fetch of the current page; gateway errors end up in
    ``state.error`` instead of propagating.
    """

    def __init__(
        self,
        cache: TaskCache,
        ai_gateway: Optional[AiGateway] = None,
        owner: Optional[str] = None,
        ai_timeout_seconds: Optional[float] = None,
    ):
        self.cache = cache
        self.ai_gateway = ai_gateway
        self.owner = owner or AppConfig.DEFAULT_OWNER
        self.ai_timeout_seconds = ai_timeout_seconds if ai_timeout_seconds is not None else AppConfig.GATEWAY_TIMEOUT_SECONDS
        self.state = TaskListState()
        self._fetch_seq = 0
        self._unsubscribe = cache.subscribe(self._on_invalidated)

    def close(self) -> None:
        """Stop listening for invalidations from other views."""
        self._unsubscribe()

    # -------------------- fetch cycle --------------------

    async def refresh(self) -> bool:
        """Fetch the current page; returns True when the result was applied successfully."""
        self._fetch_seq += 1
        seq = self._fetch_seq
        query = self.state.query()

        self.state.is_loading = True
        self.state.error = None
        self.state.error_type = None

        try:
            with log_timing("fetch_tasks", logger=logger, page_index=query.page_index, fetch_seq=seq):
                page = await self.cache.list(query)
        except TaskboardError as e:
            if self._is_current(seq, query):
                self.state.error = str(e)
                self.state.error_type = type(e).__name__
                self.state.is_loading = False
                logger.warning("Task fetch failed", page_index=query.page_index, error=str(e))
            return False

        if not self._is_current(seq, query):
            logger.debug("Discarding stale fetch result", fetch_seq=seq, latest_seq=self._fetch_seq)
            return False

        self.state.items = list(page.items)
        self.state.total_count = page.total_count
        self.state.is_loading = False
        return True

    def _is_current(self, seq: int, query: TaskQuery) -> bool:
        return seq == self._fetch_seq and query == self.state.query()

    async def _resync(self) -> None:
        """Re-fetch after a mutation, stepping back while the current non-first page is empty."""
        applied = await self.refresh()
        while applied and not self.state.items and self.state.page_index > 1:
            self.state.page_index -= 1
            logger.info("Current page emptied, moving back", page_index=self.state.page_index)
            applied = await self.refresh()

    async def _on_invalidated(self, event: Invalidation) -> None:
        logger.debug("Tasks changed in another view, refreshing", reason=event.reason, task_id=event.task_id)
        await self._resync()

    # -------------------- query parameters --------------------

    async def set_search_text(self, text: Optional[str]) -> None:
        text = text or ""
        if text == self.state.search_text:
            return
        self.state.search_text = text
        self.state.page_index = 1
        await self.refresh()

    async def set_status_filter(self, status_filter: Union[str, TaskStatus]) -> None:
        if isinstance(status_filter, TaskStatus):
            status_filter = status_filter.value
        if status_filter != ALL_STATUSES and status_filter not in {s.value for s in TaskStatus}:
            self._fail("Set status filter", ValidationError(f"Unknown status filter: {status_filter}"))
            return
        if status_filter == self.state.status_filter:
            return
        self.state.status_filter = status_filter
        self.state.page_index = 1
        await self.refresh()

    async def set_sort_key(self, sort_key: Union[str, SortKey]) -> None:
        try:
            sort_key = SortKey(sort_key)
        except ValueError:
            self._fail("Set sort key", ValidationError(f"Unknown sort key: {sort_key}"))
            return
        if sort_key == self.state.sort_key:
            return
        self.state.sort_key = sort_key
        self.state.page_index = 1
        await self.refresh()

    async def go_to_page(self, page_index: int) -> None:
        page_index = clamp_page(page_index, self.state.total_count, self.state.page_size)
        if page_index == self.state.page_index:
            return
        self.state.page_index = page_index
        await self.refresh()

    async def next_page(self) -> None:
        if self.state.has_next_page:
            await self.go_to_page(self.state.page_index + 1)

    async def previous_page(self) -> None:
        if self.state.has_previous_page:
            await self.go_to_page(self.state.page_index - 1)

    # -------------------- mutations --------------------

    def _fail(self, operation: str, error: TaskboardError, **context: Any) -> bool:
        self.state.error = str(error)
        self.state.error_type = type(error).__name__
        logger.warning(f"{operation} failed", error=str(error), error_type=type(error).__name__, **context)
        return False

    async def add(self, draft: Union[TaskDraft, dict]) -> bool:
        try:
            draft = coerce_model(TaskDraft, draft)
            await self.cache.create(draft, self.owner, origin=self)
        except TaskboardError as e:
            return self._fail("Add task", e)
        await self._resync()
        return True

    async def toggle_status(self, task: Task) -> bool:
        """Flip between pending and completed; any other status becomes completed."""
        new_status = TaskStatus.PENDING if task.status is TaskStatus.COMPLETED else TaskStatus.COMPLETED
        return await self.update(task.id, TaskUpdate(status=new_status))

    async def delete(self, task_id: str) -> bool:
        try:
            await self.cache.delete(task_id, origin=self)
        except TaskboardError as e:
            return self._fail("Delete task", e, task_id=task_id)
        await self._resync()
        return True

    async def update(self, task_id: str, changes: Union[TaskUpdate, dict]) -> bool:
        try:
            changes = coerce_model(TaskUpdate, changes).to_changes()
            if not changes:
                return True
            await self.cache.update(task_id, changes, origin=self)
        except TaskboardError as e:
            return self._fail("Update task", e, task_id=task_id)
        await self._resync()
        return True

    # -------------------- AI-assisted operations --------------------

    def _require_ai(self) -> AiGateway:
        if self.ai_gateway is None:
            raise ConfigurationError("AI assistant is not configured")
        return self.ai_gateway

    async def apply_ai_edit(self, task: Task, instruction: str) -> bool:
        """
        Ask the AI gateway for an edited task and save it.

        On any failure (including an empty proposed title) the task is left
        untouched and the error is surfaced in state.
        """
        try:
            if not instruction or not instruction.strip():
                raise ValidationError("Please describe how the task should change")
            ai_gateway = self._require_ai()
            logger.info(
                "AI edit requested",
                task_id=task.id,
                instruction=sanitize_message_text(instruction, max_length=200)
            )
            edit: AiEdit = await call_with_deadline(
                ai_gateway.propose_edit(task, instruction.strip()),
                self.ai_timeout_seconds,
                "AI edit"
            )
        except TaskboardError as e:
            return self._fail("AI edit", e, task_id=task.id)

        return await self.update(task.id, TaskUpdate(**edit.merged_with(task)))

    async def import_document(self, document_text: str) -> int:
        """
        Extract tasks from free text and add them as pending tasks.

        Returns the number of tasks created; the page is re-fetched once.
        """
        try:
            if not document_text or not document_text.strip():
                raise ValidationError("Please enter a document to parse")
            ai_gateway = self._require_ai()
            extracted = await call_with_deadline(
                ai_gateway.extract_tasks(document_text),
                self.ai_timeout_seconds,
                "Task extraction"
            )
        except TaskboardError as e:
            self._fail("Document import", e)
            return 0

        if not extracted:
            self.state.error = NO_TASKS_EXTRACTED
            self.state.error_type = None
            logger.info("Document import yielded no tasks", document_chars=len(document_text))
            return 0

        created = 0
        failure: Optional[TaskboardError] = None
        for candidate in extracted:
            draft = TaskDraft(
                title=candidate.title.strip() or "Untitled Task",
                description=candidate.description or "No description provided",
                status=TaskStatus.PENDING,
            )
            try:
                await self.cache.create(draft, self.owner, origin=self)
                created += 1
            except TaskboardError as e:
                failure = e
                break

        await self._resync()
        if failure is not None and self.state.error is None:
            # re-fetch cleared the error; keep the creation failure visible
            self._fail("Add extracted task", failure, created_count=created)
        logger.info("Document import finished", extracted_count=len(extracted), created_count=created)
        return created
