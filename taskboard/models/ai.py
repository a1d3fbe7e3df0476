"""Models for language-model responses."""

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from taskboard.models.task import TaskFields, coerce_model, parse_due_date
from taskboard.utils.errors import ValidationError


class AiEdit(BaseModel):
    """Edit proposed by the completion service for a single task."""
    title: str = Field(..., description="Updated title, always required")
    description: Optional[str] = Field(None, description="Updated description")
    due_date: Optional[date] = Field(None, description="Updated due date")

    @field_validator("title")
    @classmethod
    def _title_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("AI generated an empty title")
        return value.strip()

    @field_validator("description", mode="before")
    @classmethod
    def _blank_description(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("due_date", mode="before")
    @classmethod
    def _lenient_due_date(cls, value: Any) -> Any:
        # Models answer "null", "none" or prose for "no date"; treat anything
        # that is not an ISO date as absent.
        value = parse_due_date(value)
        if isinstance(value, str):
            try:
                return date.fromisoformat(value)
            except ValueError:
                return None
        return value

    @classmethod
    def from_response(cls, payload: Any) -> "AiEdit":
        """Validate a decoded provider reply; an empty or missing title is a ValidationError."""
        if not isinstance(payload, dict):
            raise ValidationError("AI response is not an object")
        title = payload.get("title")
        if not isinstance(title, str) or not title.strip():
            raise ValidationError("AI generated an empty title")
        return coerce_model(cls, payload)

    def merged_with(self, current: TaskFields) -> dict[str, Any]:
        """Changes to apply: missing description or due date keep the current values."""
        return {
            "title": self.title,
            "description": self.description or current.description,
            "due_date": self.due_date or current.due_date,
        }

    def to_response(self) -> dict[str, Any]:
        """JSON body returned by the edit endpoint."""
        return self.model_dump(mode="json")


class ExtractedTask(BaseModel):
    """Task candidate extracted from a free-text document."""
    title: str = ""
    description: str = ""

    @classmethod
    def from_items(cls, items: list[Any]) -> list["ExtractedTask"]:
        """Keep only objects whose title and description are strings."""
        return [
            cls(title=item["title"], description=item["description"])
            for item in items
            if isinstance(item, dict)
            and isinstance(item.get("title"), str)
            and isinstance(item.get("description"), str)
        ]
