"""Project model - transient, in-memory grouping of tasks."""

from enum import Enum

from pydantic import BaseModel, Field, field_validator
from ulid import ULID


class ProjectColor(str, Enum):
    """Fixed project colour palette."""
    RED = "red"
    BLUE = "blue"
    GREEN = "green"
    PURPLE = "purple"
    YELLOW = "yellow"
    PINK = "pink"


def generate_project_id() -> str:
    """Generate a text-based project ID (ULID format)."""
    return str(ULID())


class Project(BaseModel):
    """Named, coloured group of task ids."""
    id: str = Field(default_factory=generate_project_id, description="Project ID (ULID)")
    name: str = Field(..., description="Project name")
    color: ProjectColor = Field(..., description="Palette colour")
    task_ids: list[str] = Field(default_factory=list, description="Member task ids, in insertion order")

    @field_validator("name")
    @classmethod
    def _name_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Project name must not be empty")
        return value.strip()
