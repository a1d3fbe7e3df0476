"""Task models."""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, field_validator

from taskboard.utils.config import PAGE_SIZE
from taskboard.utils.errors import ValidationError


ALL_STATUSES = "all"


class TaskStatus(str, Enum):
    """Task status values; kanban columns map 1:1 onto these."""
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class SortKey(str, Enum):
    """Supported list orderings."""
    CREATED_DESC = "created_desc"
    CREATED_ASC = "created_asc"
    DUE_DATE = "due_date"
    TITLE = "title"


def parse_due_date(value: Any) -> Any:
    """Accept dates, ISO dates and ISO timestamps (time part dropped)."""
    if value is None or isinstance(value, date):
        return value
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        if "T" in value:
            value = value.split("T")[0]
        elif " " in value:
            value = value.split(" ")[0]
    return value


def _require_title(value: Optional[str]) -> Optional[str]:
    if value is not None and not value.strip():
        raise ValueError("Task title must not be empty")
    return value


class TaskFields(BaseModel):
    """User-editable task fields."""
    title: str = Field(..., description="Task title")
    description: Optional[str] = Field(None, description="Optional task description")
    due_date: Optional[date] = Field(None, description="Due date (no time component)")

    @field_validator("due_date", mode="before")
    @classmethod
    def _parse_due_date(cls, value: Any) -> Any:
        return parse_due_date(value)


class Task(TaskFields):
    """Task row as stored by the persistence service."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Identifier assigned by the persistence service")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="Task status")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    owner: str = Field(..., alias="user_id", description="Owning user identifier")

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    def is_overdue(self, today: Optional[date] = None) -> bool:
        """True when the due date lies before today; status is never changed."""
        if self.due_date is None:
            return False
        return self.due_date < (today or date.today())


class TaskDraft(TaskFields):
    """Fields a client supplies when creating a task."""
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="Initial status")

    @field_validator("title")
    @classmethod
    def _title_not_empty(cls, value: str) -> str:
        return _require_title(value)

    def to_row(self, owner: str) -> dict[str, Any]:
        """Wire representation for insertion."""
        return {
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "user_id": owner,
        }


class TaskUpdate(BaseModel):
    """Partial update; only explicitly set fields are sent."""
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    due_date: Optional[date] = None

    @field_validator("title")
    @classmethod
    def _title_not_empty(cls, value: Optional[str]) -> Optional[str]:
        return _require_title(value)

    @field_validator("due_date", mode="before")
    @classmethod
    def _parse_due_date(cls, value: Any) -> Any:
        return parse_due_date(value)

    def to_changes(self) -> dict[str, Any]:
        """Wire representation containing only the fields that were set."""
        changes = self.model_dump(exclude_unset=True, mode="json")
        if "title" in changes and changes["title"] is None:
            raise ValidationError("Task title must not be empty")
        return changes


class TaskQuery(BaseModel):
    """Immutable snapshot of list query parameters; cache key and fetch tag."""
    model_config = ConfigDict(frozen=True)

    search_text: str = ""
    status_filter: str = ALL_STATUSES
    sort_key: SortKey = SortKey.CREATED_DESC
    page_index: int = Field(default=1, ge=1)
    page_size: int = Field(default=PAGE_SIZE, ge=1)

    @field_validator("status_filter", mode="before")
    @classmethod
    def _known_status_filter(cls, value: Any) -> Any:
        if isinstance(value, TaskStatus):
            return value.value
        if value != ALL_STATUSES:
            TaskStatus(value)
        return value

    @property
    def offset(self) -> int:
        """Zero-based index of the first row on this page."""
        return (self.page_index - 1) * self.page_size


class TaskPage(BaseModel):
    """One page of list results plus the total matching count."""
    model_config = ConfigDict(frozen=True)

    items: tuple[Task, ...] = ()
    total_count: int = Field(default=0, ge=0)


def coerce_model(model_cls: type[BaseModel], value: Any) -> Any:
    """Validate a dict (or pass through an instance), mapping failures to ValidationError."""
    if isinstance(value, model_cls):
        return value
    try:
        return model_cls.model_validate(value)
    except PydanticValidationError as e:
        messages = "; ".join(err.get("msg", "invalid value") for err in e.errors())
        raise ValidationError(messages) from e
