"""Shared pytest fixtures and configuration."""

import os
import pytest
from unittest.mock import AsyncMock, Mock

# Set test environment variables
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-key")
os.environ.setdefault("LLM_PROVIDER", "openrouter")
os.environ.setdefault("LLM_MODEL", "deepseek/deepseek-r1-distill-llama-70b:free")
os.environ.setdefault("OPENROUTER_API_KEY", "test-openrouter-key")
os.environ.setdefault("LOG_FORMAT", "text")

from taskboard.models.task import TaskStatus  # noqa: E402
from taskboard.services.gateways import AiGateway  # noqa: E402
from taskboard.services.task_cache import TaskCache  # noqa: E402
from tests.utils.factories import make_task, make_tasks  # noqa: E402
from tests.utils.helpers import InMemoryTaskGateway  # noqa: E402


@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client for testing."""
    client = Mock()
    client.table = Mock(return_value=Mock())
    return client


@pytest.fixture
def mock_ai_gateway():
    """Mock AI gateway for testing."""
    gateway = Mock(spec=AiGateway)
    gateway.propose_edit = AsyncMock()
    gateway.extract_tasks = AsyncMock(return_value=[])
    return gateway


@pytest.fixture
def sample_tasks():
    """Three tasks, one per status."""
    return [
        make_task(task_id="1", title="Buy milk", status=TaskStatus.PENDING, description="Two litres"),
        make_task(task_id="2", title="Write report", status=TaskStatus.IN_PROGRESS, description="Quarterly numbers"),
        make_task(task_id="3", title="File taxes", status=TaskStatus.COMPLETED, description="Before April"),
    ]


@pytest.fixture
def gateway(sample_tasks):
    """In-memory task gateway seeded with sample_tasks."""
    return InMemoryTaskGateway(sample_tasks)


@pytest.fixture
def eleven_task_gateway():
    """In-memory gateway holding eleven tasks: two list pages."""
    return InMemoryTaskGateway(make_tasks(11))


@pytest.fixture
def cache(gateway):
    """Shared cache over the seeded gateway."""
    return TaskCache(gateway, timeout_seconds=1.0)
