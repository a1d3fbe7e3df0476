"""Test helper functions and in-memory fakes."""

import asyncio
import json
from io import BytesIO
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from langchain_core.messages import AIMessage

from taskboard.models.task import Task, TaskDraft, TaskPage, TaskQuery
from taskboard.services.gateways import TaskGateway
from taskboard.services.task_rules import filter_tasks, paginate, sort_tasks
from taskboard.utils.errors import NotFoundError, ValidationError

CLOCK_START = datetime(2024, 1, 1, tzinfo=timezone.utc)


class InMemoryTaskGateway(TaskGateway):
    """
    Task gateway backed by a list.

    ``gates`` maps a search text to an asyncio.Event; list calls for that
    search text wait until the event is set. ``failures`` maps an operation
    name to an exception raised on the next call of that operation.
    """

    def __init__(self, tasks: Optional[list[Task]] = None):
        self.tasks: list[Task] = list(tasks or [])
        self.calls: list[tuple[str, Any]] = []
        self.gates: Dict[str, asyncio.Event] = {}
        self.failures: Dict[str, Exception] = {}
        self._next_id = len(self.tasks) + 1

    def calls_to(self, operation: str) -> list[Any]:
        return [args for name, args in self.calls if name == operation]

    def block(self, search_text: str) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[search_text] = gate
        return gate

    def _maybe_fail(self, operation: str) -> None:
        error = self.failures.pop(operation, None)
        if error is not None:
            raise error

    def _find(self, task_id: str) -> int:
        for position, task in enumerate(self.tasks):
            if task.id == task_id:
                return position
        raise NotFoundError(f"Task not found: {task_id}")

    async def list(self, query: TaskQuery) -> TaskPage:
        self.calls.append(("list", query))
        gate = self.gates.get(query.search_text)
        if gate is not None:
            await gate.wait()
        self._maybe_fail("list")

        matching = sort_tasks(filter_tasks(self.tasks, query.search_text, query.status_filter), query.sort_key)
        return TaskPage(
            items=tuple(paginate(matching, query.page_index, query.page_size)),
            total_count=len(matching),
        )

    async def create(self, draft: TaskDraft, owner: str) -> Task:
        self.calls.append(("create", draft))
        self._maybe_fail("create")
        if not draft.title.strip():
            raise ValidationError("Task title must not be empty")

        task = Task.model_validate({
            **draft.to_row(owner),
            "id": str(self._next_id),
            "created_at": CLOCK_START + timedelta(minutes=self._next_id),
        })
        self._next_id += 1
        self.tasks.append(task)
        return task

    async def update(self, task_id: str, changes: dict[str, Any]) -> None:
        self.calls.append(("update", (task_id, changes)))
        self._maybe_fail("update")
        position = self._find(task_id)
        current = self.tasks[position].model_dump(by_alias=True)
        self.tasks[position] = Task.model_validate({**current, **changes})

    async def delete(self, task_id: str) -> None:
        self.calls.append(("delete", task_id))
        self._maybe_fail("delete")
        del self.tasks[self._find(task_id)]


async def wait_until(predicate: Callable[[], bool], attempts: int = 200) -> None:
    """Yield to the event loop until predicate holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


class MockSocket:
    """Socket stand-in feeding a raw request to a BaseHTTPRequestHandler and capturing the reply."""

    def __init__(self, raw_request: bytes):
        self.raw_request = raw_request
        self.sent = b""

    def makefile(self, *args, **kwargs):
        return BytesIO(self.raw_request)

    def sendall(self, data):
        self.sent += bytes(data)

    def close(self):
        pass


def build_raw_request(
    method: str = "POST",
    path: str = "/api/ai_edit",
    body: Any = None,
    headers: Optional[Dict[str, str]] = None
) -> bytes:
    """Serialize an HTTP/1.1 request; dict bodies are JSON encoded."""
    if body is None:
        payload = b""
    elif isinstance(body, (bytes, str)):
        payload = body.encode("utf-8") if isinstance(body, str) else body
    else:
        payload = json.dumps(body).encode("utf-8")

    lines = [f"{method} {path} HTTP/1.1", "Host: localhost"]
    if payload:
        lines.append("Content-Type: application/json")
    lines.append(f"Content-Length: {len(payload)}")
    for name, value in (headers or {}).items():
        lines.append(f"{name}: {value}")
    return ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8") + payload


def run_handler(handler_cls, method: str = "POST", path: str = "/", body: Any = None, headers: Optional[Dict[str, str]] = None):
    """
    Drive a handler class through one request.

    Returns (status_code, response_headers, decoded_json_body_or_None).
    """
    sock = MockSocket(build_raw_request(method, path, body, headers))
    handler_cls(sock, ("127.0.0.1", 8000), None)

    head, _, payload = sock.sent.partition(b"\r\n\r\n")
    status_line, *header_lines = head.decode("iso-8859-1").split("\r\n")
    status = int(status_line.split(" ")[1])
    response_headers = {}
    for line in header_lines:
        name, _, value = line.partition(":")
        response_headers[name.strip()] = value.strip()
    return status, response_headers, json.loads(payload) if payload else None


def mock_llm_response(content: Any) -> AIMessage:
    """Chat model reply carrying the given content."""
    return AIMessage(content=content)
