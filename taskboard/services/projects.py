"""In-memory project registry (not persisted)."""

from typing import Iterable, Optional, Union

from taskboard.models.project import Project, ProjectColor
from taskboard.models.task import Task, coerce_model
from taskboard.utils.errors import NotFoundError, ValidationError
from taskboard.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)


class ProjectRegistry:
    """Groups task ids into named, coloured projects; a task sits in at most one project."""

    def __init__(self):
        self.projects: dict[str, Project] = {}

    def create_project(self, name: str, color: Union[str, ProjectColor]) -> Project:
        if not color:
            raise ValidationError("Pick a project colour")
        project = coerce_model(Project, {"name": name or "", "color": color})
        self.projects[project.id] = project
        logger.info("Project created", project_id=project.id, color=project.color.value)
        return project

    def get(self, project_id: str) -> Project:
        try:
            return self.projects[project_id]
        except KeyError:
            raise NotFoundError(f"Project not found: {project_id}") from None

    def add_task(self, task_id: str, project_id: str) -> Project:
        """Put a task into a project, moving it out of any other project."""
        project = self.get(project_id)
        current = self.project_for(task_id)
        if current is project:
            return project
        if current is not None:
            current.task_ids.remove(task_id)
        project.task_ids.append(task_id)
        logger.debug("Task added to project", task_id=task_id, project_id=project_id)
        return project

    def project_for(self, task_id: str) -> Optional[Project]:
        for project in self.projects.values():
            if task_id in project.task_ids:
                return project
        return None

    def tasks_in(self, project_id: str, tasks: Iterable[Task]) -> list[Task]:
        """Member tasks in project order; ids with no matching task are skipped."""
        by_id = {task.id: task for task in tasks}
        return [by_id[task_id] for task_id in self.get(project_id).task_ids if task_id in by_id]

    def unassigned(self, tasks: Iterable[Task]) -> list[Task]:
        assigned = {task_id for project in self.projects.values() for task_id in project.task_ids}
        return [task for task in tasks if task.id not in assigned]
