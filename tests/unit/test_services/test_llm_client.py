"""Tests for the LangChain AI gateway."""

import pytest
from datetime import date
from unittest.mock import AsyncMock, Mock, patch

from taskboard.models.task import TaskFields
from taskboard.services import llm_client
from taskboard.services.llm_client import (
    EDIT_SYSTEM_PROMPT,
    NO_AI_RESPONSE,
    LangChainAiGateway,
    build_edit_prompt,
    get_ai_gateway,
    get_llm_model,
)
from taskboard.utils.errors import ConfigurationError, ParseError, TransportError, ValidationError
from tests.fixtures.llm_responses import (
    EDIT_NESTED,
    EDIT_PLAIN,
    EDIT_WITH_PROSE,
    EDIT_WITH_THINK,
    EXTRACT_FENCED,
    EXTRACT_MIXED,
    EXTRACT_UNPARSEABLE,
)
from tests.utils.helpers import mock_llm_response


def _gateway_replying(content):
    model = Mock()
    model.ainvoke = AsyncMock(return_value=mock_llm_response(content))
    return LangChainAiGateway(model=model), model


@pytest.fixture
def current_task():
    return TaskFields(title="Buy milk", description="Two litres", due_date=date(2024, 6, 1))


@pytest.mark.unit
def test_edit_prompt_embeds_task_and_instruction(current_task):
    """Test the user message carries every current field."""
    prompt = build_edit_prompt(current_task, "make it oat milk")

    assert "Title: Buy milk" in prompt
    assert "Description: Two litres" in prompt
    assert "Due Date: 2024-06-01" in prompt
    assert "User Prompt: make it oat milk" in prompt


@pytest.mark.unit
def test_edit_prompt_placeholders():
    """Test missing fields are spelled out."""
    prompt = build_edit_prompt(TaskFields(title="Buy milk"), "x")

    assert "Description: No description" in prompt
    assert "Due Date: No due date" in prompt


@pytest.mark.unit
def test_get_llm_model_openrouter(monkeypatch):
    """Test OpenRouter is reached through the OpenAI-compatible client."""
    monkeypatch.setenv("LLM_PROVIDER", "openrouter")
    monkeypatch.setenv("OPENROUTER_API_KEY", "or-key")

    with patch.object(llm_client, "ChatOpenAI") as chat_openai:
        get_llm_model(max_tokens=300)

    kwargs = chat_openai.call_args.kwargs
    assert kwargs["api_key"] == "or-key"
    assert kwargs["base_url"] == "https://openrouter.ai/api/v1"
    assert kwargs["max_tokens"] == 300
    assert kwargs["default_headers"]["X-Title"] == "Todo AI Assistant"


@pytest.mark.unit
def test_get_llm_model_anthropic(monkeypatch):
    """Test the Anthropic provider."""
    monkeypatch.setenv("LLM_PROVIDER", "anthropic")
    monkeypatch.setenv("LLM_MODEL", "claude-sonnet-4-20250514")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "ant-key")

    with patch.object(llm_client, "ChatAnthropic") as chat_anthropic:
        get_llm_model()

    chat_anthropic.assert_called_once_with(model="claude-sonnet-4-20250514", api_key="ant-key")


@pytest.mark.unit
def test_get_llm_model_missing_key(monkeypatch):
    """Test a missing API key is a configuration error."""
    monkeypatch.setenv("LLM_PROVIDER", "openai")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
        get_llm_model()


@pytest.mark.unit
def test_get_llm_model_unknown_provider(monkeypatch):
    """Test unsupported providers are rejected."""
    monkeypatch.setenv("LLM_PROVIDER", "carrier-pigeon")

    with pytest.raises(ConfigurationError, match="Unsupported LLM provider"):
        get_llm_model()


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("reply,title", [
    (EDIT_PLAIN, "Buy oat milk"),
    (EDIT_WITH_PROSE, "Call the plumber"),
    (EDIT_WITH_THINK, "Submit report"),
    (EDIT_NESTED, "Plan trip"),
])
async def test_propose_edit_finds_json_in_reply(current_task, reply, title):
    """Test the edit object is found whatever surrounds it."""
    gateway, _ = _gateway_replying(reply)

    edit = await gateway.propose_edit(current_task, "update it")

    assert edit.title == title


@pytest.mark.unit
@pytest.mark.asyncio
async def test_propose_edit_sends_system_and_user_messages(current_task):
    """Test the request shape."""
    gateway, model = _gateway_replying(EDIT_PLAIN)

    await gateway.propose_edit(current_task, "make it oat milk")

    system, user = model.ainvoke.await_args.args[0]
    assert system.content == EDIT_SYSTEM_PROMPT
    assert "User Prompt: make it oat milk" in user.content


@pytest.mark.unit
@pytest.mark.asyncio
async def test_propose_edit_uses_edit_token_limit(current_task):
    """Test edits are requested with the configured max tokens."""
    model = Mock()
    model.ainvoke = AsyncMock(return_value=mock_llm_response(EDIT_PLAIN))

    with patch.object(llm_client, "get_llm_model", return_value=model) as factory:
        await LangChainAiGateway(edit_max_tokens=123).propose_edit(current_task, "x")

    factory.assert_called_once_with(max_tokens=123)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_propose_edit_empty_title(current_task):
    """Test an empty title in the reply is a ValidationError."""
    gateway, _ = _gateway_replying('{"title": "  "}')

    with pytest.raises(ValidationError):
        await gateway.propose_edit(current_task, "x")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_propose_edit_without_json(current_task):
    """Test prose without an object is a ParseError."""
    gateway, _ = _gateway_replying("I am not sure what you mean.")

    with pytest.raises(ParseError):
        await gateway.propose_edit(current_task, "x")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_empty_reply(current_task):
    """Test an empty completion."""
    gateway, _ = _gateway_replying("   ")

    with pytest.raises(ParseError, match=NO_AI_RESPONSE):
        await gateway.propose_edit(current_task, "x")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_content_blocks_are_flattened(current_task):
    """Test list-of-blocks replies are joined into text."""
    gateway, _ = _gateway_replying([
        {"type": "text", "text": '{"title": "Block'},
        'ed"}',
    ])

    edit = await gateway.propose_edit(current_task, "x")

    assert edit.title == "Blocked"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_provider_failure_is_transport_error(current_task):
    """Test provider exceptions keep their HTTP status."""
    class RateLimited(Exception):
        status_code = 429

    model = Mock()
    model.ainvoke = AsyncMock(side_effect=RateLimited("slow down"))
    gateway = LangChainAiGateway(model=model)

    with pytest.raises(TransportError) as exc_info:
        await gateway.propose_edit(current_task, "x")

    assert exc_info.value.status_code == 429


@pytest.mark.unit
@pytest.mark.asyncio
async def test_extract_tasks_from_fenced_reply():
    """Test a fenced JSON array yields its task."""
    gateway, _ = _gateway_replying(EXTRACT_FENCED)

    tasks = await gateway.extract_tasks("do A because B")

    assert [(task.title, task.description) for task in tasks] == [("A", "B")]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_extract_tasks_skips_malformed_items():
    """Test items without string fields are dropped."""
    gateway, _ = _gateway_replying(EXTRACT_MIXED)

    tasks = await gateway.extract_tasks("notes")

    assert [task.title for task in tasks] == ["Book venue", "Send invites"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_extract_tasks_unparseable_reply_is_empty():
    """Test a reply without an array yields no tasks."""
    gateway, _ = _gateway_replying(EXTRACT_UNPARSEABLE)

    assert await gateway.extract_tasks("notes") == []


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("reply", ["", "   \n"])
async def test_extract_tasks_empty_reply_is_empty(reply):
    """Test an empty completion yields no tasks instead of an error."""
    gateway, _ = _gateway_replying(reply)

    assert await gateway.extract_tasks("Call Bob tomorrow") == []


@pytest.mark.unit
def test_get_ai_gateway_singleton():
    """Test the global gateway is reused."""
    with patch.object(llm_client, "_ai_gateway", None):
        first = get_ai_gateway()
        second = get_ai_gateway()

    assert first is second
    assert isinstance(first, LangChainAiGateway)
