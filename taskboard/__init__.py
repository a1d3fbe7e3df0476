"""Taskboard backend: task list, kanban and AI-assisted editing core."""

__version__ = "0.1.0"
