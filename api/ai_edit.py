"""AI task edit endpoint for Vercel."""

from http.server import BaseHTTPRequestHandler
import asyncio
import json

from taskboard.models.task import TaskFields, coerce_model
from taskboard.services.llm_client import NO_AI_RESPONSE, get_ai_gateway
from taskboard.utils.config import AppConfig
from taskboard.utils.deadline import call_with_deadline
from taskboard.utils.errors import ParseError, TaskboardError, TransportError, ValidationError
from taskboard.utils.logging import correlation_context, get_structured_logger, sanitize_message_text
from taskboard.utils.logging_config import LoggingConfig

LoggingConfig.setup_logging()
logger = get_structured_logger(__name__)

EDIT_FAILED = "Failed to process AI edit"


class BadRequest(Exception):
    """Request body is not a usable edit request."""


def parse_edit_request(raw_body: str) -> tuple[TaskFields, str]:
    """Decode ``{currentTodo, prompt}``; raises BadRequest with a client-facing message."""
    try:
        body = json.loads(raw_body) if raw_body else {}
    except json.JSONDecodeError:
        raise BadRequest("Request body must be valid JSON") from None

    if not isinstance(body, dict):
        raise BadRequest("Request body must be a JSON object")

    prompt = body.get("prompt")
    if not isinstance(prompt, str) or not prompt.strip():
        raise BadRequest("prompt is required")

    current_todo = body.get("currentTodo")
    if not isinstance(current_todo, dict):
        raise BadRequest("currentTodo is required")
    try:
        current_task = coerce_model(TaskFields, current_todo)
    except ValidationError as e:
        raise BadRequest(f"currentTodo is invalid: {e}") from None

    return current_task, prompt.strip()


async def propose_edit(current_task: TaskFields, prompt: str) -> dict:
    """Run the edit through the AI gateway and return the response body."""
    edit = await call_with_deadline(
        get_ai_gateway().propose_edit(current_task, prompt),
        AppConfig.GATEWAY_TIMEOUT_SECONDS,
        "AI edit"
    )
    return edit.to_response()


class handler(BaseHTTPRequestHandler):
    """Vercel serverless function handler for AI task edits."""

    def _send_json(self, status: int, payload: dict, headers: dict | None = None) -> None:
        self.send_response(status)
        self.send_header('Content-Type', 'application/json')
        for name, value in (headers or {}).items():
            self.send_header(name, value)
        self.end_headers()
        self.wfile.write(json.dumps(payload).encode('utf-8'))

    def _method_not_allowed(self) -> None:
        self._send_json(405, {"message": "Method not allowed"}, headers={"Allow": "POST"})

    def do_POST(self):
        """Handle POST {currentTodo, prompt}."""
        correlation_id = self.headers.get(LoggingConfig.LOG_CORRELATION_ID_HEADER) if self.headers else None
        with correlation_context(correlation_id):
            log = logger.bind(path=self.path, method="POST")
            try:
                content_length = int(self.headers.get('Content-Length', 0))
                raw_body = self.rfile.read(content_length).decode('utf-8') if content_length > 0 else ""
                current_task, prompt = parse_edit_request(raw_body)
            except BadRequest as e:
                log.info("Rejected AI edit request", reason=str(e))
                self._send_json(400, {"error": str(e)})
                return
            except (ValueError, UnicodeDecodeError):
                self._send_json(400, {"error": "Malformed request"})
                return

            log.info(
                "AI edit request received",
                title=sanitize_message_text(current_task.title, max_length=100),
                prompt=sanitize_message_text(prompt, max_length=200)
            )

            try:
                response = asyncio.run(propose_edit(current_task, prompt))
            except TransportError as e:
                status = e.status_code if e.status_code and 400 <= e.status_code < 600 else 500
                log.error("Upstream AI failure", status_code=e.status_code, error=str(e))
                self._send_json(status, {"error": EDIT_FAILED})
                return
            except ParseError as e:
                log.warning("AI reply not parseable", error=str(e))
                message = NO_AI_RESPONSE if str(e) == NO_AI_RESPONSE else EDIT_FAILED
                self._send_json(500, {"error": message})
                return
            except TaskboardError as e:
                log.warning("AI edit rejected", error=str(e), error_type=type(e).__name__)
                self._send_json(500, {"error": EDIT_FAILED})
                return
            except Exception as e:
                log.error("Error processing AI edit", error=str(e), exc_info=True)
                self._send_json(500, {"error": EDIT_FAILED})
                return

            self._send_json(200, response)
            log.info("AI edit processed successfully")

    def do_GET(self):
        self._method_not_allowed()

    def do_PUT(self):
        self._method_not_allowed()

    def do_PATCH(self):
        self._method_not_allowed()

    def do_DELETE(self):
        self._method_not_allowed()

    def do_HEAD(self):
        self._method_not_allowed()

    def do_OPTIONS(self):
        self._method_not_allowed()
