"""LangChain-backed AI gateway: task edits and task extraction."""

import os
import time
from typing import Any, Optional

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from taskboard.models.ai import AiEdit, ExtractedTask
from taskboard.models.task import TaskFields
from taskboard.services.gateways import AiGateway
from taskboard.utils.config import AppConfig
from taskboard.utils.errors import ConfigurationError, ParseError, TaskboardError, TransportError
from taskboard.utils.json_scan import find_json_value
from taskboard.utils.logging import get_structured_logger, log_timing, sanitize_message_text

logger = get_structured_logger(__name__)

DEFAULT_PROVIDER = "openrouter"
DEFAULT_MODEL = "deepseek/deepseek-r1-distill-llama-70b:free"
NO_AI_RESPONSE = "No response from AI"

EDIT_SYSTEM_PROMPT = """You are an AI assistant helping to modify a todo task.
Provide a JSON response with updated task details based on the user's prompt.
Always include a title. Description and due date are optional.

JSON Format:
{
  "title": "Updated task title",
  "description": "Optional updated description",
  "due_date": "Optional YYYY-MM-DD date or null"
}"""

EXTRACT_SYSTEM_PROMPT = """Extract tasks from the document.
Provide ONLY a JSON array with each task having a "title" and "description".
Do NOT include any additional text or explanation.
Example:
[
  {
    "title": "Task 1 Title",
    "description": "Task 1 Description"
  },
  {
    "title": "Task 2 Title",
    "description": "Task 2 Description"
  }
]"""


def build_edit_prompt(current_task: TaskFields, instruction: str) -> str:
    """User message embedding the current task fields and the instruction."""
    due_date = current_task.due_date.isoformat() if current_task.due_date else "No due date"
    return f"""Current Todo Task:
Title: {current_task.title}
Description: {current_task.description or 'No description'}
Due Date: {due_date}

User Prompt: {instruction}

Please provide an updated task based on the prompt. Respond ONLY with a valid JSON object."""


def build_extract_prompt(document_text: str) -> str:
    return f"Extract tasks from this document: {document_text}"


def get_llm_model(max_tokens: Optional[int] = None):
    """Get configured LLM chat model."""
    provider = os.environ.get("LLM_PROVIDER", DEFAULT_PROVIDER).lower()
    model_name = os.environ.get("LLM_MODEL", DEFAULT_MODEL)

    logger.debug(
        "Getting LLM model",
        llm_provider=provider,
        llm_model=model_name
    )

    kwargs: dict[str, Any] = {}
    if max_tokens:
        kwargs["max_tokens"] = max_tokens

    if provider == "openrouter":
        api_key = os.environ.get("OPENROUTER_API_KEY")
        if not api_key:
            raise ConfigurationError("OPENROUTER_API_KEY not set")
        return ChatOpenAI(
            model=model_name,
            api_key=api_key,
            base_url=AppConfig.OPENROUTER_BASE_URL,
            default_headers={
                "HTTP-Referer": AppConfig.SITE_URL,
                "X-Title": "Todo AI Assistant",
            },
            **kwargs
        )
    elif provider == "anthropic":
        api_key = os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY not set")
        return ChatAnthropic(model=model_name, api_key=api_key, **kwargs)
    elif provider == "openai":
        api_key = os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY not set")
        return ChatOpenAI(model=model_name, api_key=api_key, **kwargs)
    else:
        raise ConfigurationError(f"Unsupported LLM provider: {provider}")


def _response_text(response: Any) -> str:
    """Flatten a chat model response into plain text."""
    content = response.content if hasattr(response, "content") else response
    if isinstance(content, list):
        # Anthropic returns content blocks
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        content = "".join(parts)
    return content if isinstance(content, str) else str(content)


class LangChainAiGateway(AiGateway):
    """AI gateway backed by a LangChain chat model."""

    def __init__(self, model: Any = None, edit_max_tokens: Optional[int] = None):
        self._model = model
        self.edit_max_tokens = edit_max_tokens or AppConfig.AI_EDIT_MAX_TOKENS

    def _get_model(self, max_tokens: Optional[int] = None):
        if self._model is not None:
            return self._model
        return get_llm_model(max_tokens=max_tokens)

    async def _complete(self, operation: str, system_prompt: str, user_prompt: str, max_tokens: Optional[int] = None) -> str:
        model = self._get_model(max_tokens)
        messages = [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]

        llm_start_time = time.perf_counter()
        try:
            with log_timing(operation, logger=logger, prompt_size_chars=len(user_prompt)):
                response = await model.ainvoke(messages)
        except TaskboardError:
            raise
        except Exception as e:
            status_code = getattr(e, "status_code", None)
            logger.error(
                "Completion request failed",
                operation=operation,
                status_code=status_code,
                error=str(e)
            )
            raise TransportError(f"Completion request failed: {e}", status_code=status_code) from e

        content = _response_text(response)
        logger.info(
            "Completion response received",
            operation=operation,
            llm_latency_ms=round((time.perf_counter() - llm_start_time) * 1000, 2),
            response_chars=len(content),
            response_preview=sanitize_message_text(content, max_length=200)
        )

        if not content.strip():
            raise ParseError(NO_AI_RESPONSE)
        return content

    async def propose_edit(self, current_task: TaskFields, instruction: str) -> AiEdit:
        content = await self._complete(
            "ai_propose_edit",
            EDIT_SYSTEM_PROMPT,
            build_edit_prompt(current_task, instruction),
            max_tokens=self.edit_max_tokens
        )
        payload = find_json_value(content, dict)
        return AiEdit.from_response(payload)

    async def extract_tasks(self, document_text: str) -> list[ExtractedTask]:
        """Extract task candidates; an empty or unparseable reply yields no tasks."""
        content = ""
        try:
            content = await self._complete(
                "ai_extract_tasks",
                EXTRACT_SYSTEM_PROMPT,
                build_extract_prompt(document_text)
            )
            items = find_json_value(content, list)
        except ParseError as e:
            logger.warning(
                "Extraction reply not parseable, returning no tasks",
                error=str(e),
                response_preview=sanitize_message_text(content, max_length=200)
            )
            return []

        tasks = ExtractedTask.from_items(items)
        logger.info("Tasks extracted", candidates=len(items), accepted=len(tasks))
        return tasks


# Global gateway instance
_ai_gateway: Optional[LangChainAiGateway] = None


def get_ai_gateway() -> LangChainAiGateway:
    """Get or create global AI gateway instance."""
    global _ai_gateway
    if _ai_gateway is None:
        _ai_gateway = LangChainAiGateway()
    return _ai_gateway
