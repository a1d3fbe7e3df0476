"""Application configuration read from environment variables."""

import os


# List view page size is fixed
PAGE_SIZE = 10


class AppConfig:
    """Centralized application configuration."""

    TASKS_TABLE = os.environ.get("TASKS_TABLE", "todos")
    DEFAULT_OWNER = os.environ.get("DEFAULT_OWNER", "default-user")

    GATEWAY_TIMEOUT_SECONDS = float(os.environ.get("GATEWAY_TIMEOUT_SECONDS", "15"))
    KANBAN_PAGE_SIZE = int(os.environ.get("KANBAN_PAGE_SIZE", "200"))

    OPENROUTER_BASE_URL = os.environ.get("OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1")
    SITE_URL = os.environ.get("SITE_URL", "https://localhost:3000")
    AI_EDIT_MAX_TOKENS = int(os.environ.get("AI_EDIT_MAX_TOKENS", "300"))
