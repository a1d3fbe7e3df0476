"""Error handling utilities."""

from typing import Optional


class TaskboardError(Exception):
    """Base exception for the taskboard backend."""
    pass


class TransportError(TaskboardError):
    """Remote service unreachable or returned a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ValidationError(TaskboardError):
    """Input or AI response failed validation (e.g. empty title)."""
    pass


class NotFoundError(TaskboardError):
    """Mutation target does not exist."""
    pass


class ParseError(TaskboardError):
    """AI response could not be decoded into the expected structure."""
    pass


class ConfigurationError(TaskboardError):
    """Required configuration is missing or invalid."""
    pass
