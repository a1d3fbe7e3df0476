"""Structured logging: correlation ids, bound fields, timing with outcomes, and redaction of task text."""

import asyncio
import hashlib
import logging
import re
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from functools import wraps
from typing import Any, Callable, Dict, Optional

from taskboard.utils.logging_config import LoggingConfig, get_logger


_correlation_id_var: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)


def generate_correlation_id() -> str:
    """Generate a unique correlation ID for request tracing."""
    return f"req_{uuid.uuid4().hex[:12]}"


def get_correlation_id() -> Optional[str]:
    """Get the current correlation ID from context."""
    return _correlation_id_var.get()


@contextmanager
def correlation_context(correlation_id: Optional[str] = None):
    """Context manager for correlation ID propagation."""
    if not correlation_id:
        correlation_id = generate_correlation_id()

    token = _correlation_id_var.set(correlation_id)
    try:
        yield correlation_id
    finally:
        _correlation_id_var.reset(token)


_SENSITIVE_PATTERNS = (
    (re.compile(r'[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}', re.IGNORECASE), '[REDACTED_EMAIL]'),
    # OpenRouter / OpenAI / Anthropic style keys
    (re.compile(r'\bsk-[A-Za-z0-9_-]{16,}'), '[REDACTED_API_KEY]'),
    # Supabase anon/service keys are JWTs
    (re.compile(r'\beyJ[A-Za-z0-9_-]{10,}\.[A-Za-z0-9_-]{10,}\.[A-Za-z0-9_-]+'), '[REDACTED_JWT]'),
    (re.compile(r'bearer\s+[A-Za-z0-9._~+/=-]{16,}', re.IGNORECASE), 'Bearer [REDACTED]'),
    (re.compile(r'(api[_-]?key|token|secret|password|auth)[\s:=]+([A-Za-z0-9_-]{20,})', re.IGNORECASE),
     r'\1=[REDACTED]'),
)


def mask_sensitive_data(text: str) -> str:
    """Redact emails, provider API keys, Supabase JWTs and bearer tokens."""
    if not text or not LoggingConfig.LOG_MASK_SENSITIVE:
        return text

    for pattern, replacement in _SENSITIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def mask_user_id(user_id: str) -> str:
    """Shorten long owner ids to a prefix plus a hash."""
    if not LoggingConfig.LOG_MASK_SENSITIVE or not user_id or len(user_id) <= 12:
        return user_id

    digest = hashlib.sha256(user_id.encode()).hexdigest()[:8]
    return f"{user_id[:4]}...{digest}"


def sanitize_message_text(text: Optional[str], max_length: int = 500) -> Optional[str]:
    """Prepare free text (titles, prompts, documents, AI replies) for a log field.

    Returns None when content logging is disabled or there is nothing to log.
    """
    if not text or not LoggingConfig.LOG_MESSAGE_CONTENT:
        return None

    if len(text) > max_length:
        text = text[:max_length] + "..."
    return mask_sensitive_data(text)


# Attributes every LogRecord already carries; passing one through ``extra``
# makes Logger.makeRecord raise KeyError.
_RESERVED_FIELDS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


class StructuredLogger:
    """Logger wrapper that turns keyword arguments into structured fields.

    Fields given to :meth:`bind` are attached to every record the returned
    logger emits. A field whose name clashes with a LogRecord attribute is
    written as ``field_<name>`` instead.
    """

    def __init__(self, logger: logging.Logger, fields: Optional[Dict[str, Any]] = None):
        self.logger = logger
        self.fields: Dict[str, Any] = dict(fields or {})

    def bind(self, **fields: Any) -> "StructuredLogger":
        return StructuredLogger(self.logger, {**self.fields, **fields})

    def _get_extra(self, **kwargs: Any) -> Dict[str, Any]:
        extra: Dict[str, Any] = {}

        correlation_id = get_correlation_id()
        if correlation_id:
            extra["correlation_id"] = correlation_id

        for key, value in {**self.fields, **kwargs}.items():
            extra[f"field_{key}" if key in _RESERVED_FIELDS else key] = value
        return extra

    def _log(self, level: int, message: str, exc_info: Any = False, **kwargs: Any) -> None:
        if self.logger.isEnabledFor(level):
            self.logger.log(level, message, extra=self._get_extra(**kwargs), exc_info=exc_info, stacklevel=3)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, exc_info=exc_info, **kwargs)

    def exception(self, message: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, message, exc_info=True, **kwargs)


def get_structured_logger(name: str, **fields: Any) -> StructuredLogger:
    """Get a structured logger, optionally with fields bound to every record."""
    return StructuredLogger(get_logger(name), fields)


@contextmanager
def log_timing(operation_name: str, logger: Optional[StructuredLogger] = None, **context: Any):
    """Time the enclosed block and log how it ended.

    The completion record carries ``outcome``: ``ok``, ``cancelled`` (deadline
    or caller cancellation) or ``error``. Exceptions always propagate.
    """
    if logger is None:
        logger = get_structured_logger(__name__)

    start_time = time.perf_counter()
    logger.debug(f"Starting {operation_name}", operation=operation_name, **context)

    outcome = "ok"
    try:
        yield
    except asyncio.CancelledError:
        outcome = "cancelled"
        raise
    except Exception:
        outcome = "error"
        raise
    finally:
        elapsed_ms = round((time.perf_counter() - start_time) * 1000, 2)
        log = logger.info if outcome == "ok" else logger.warning
        log(
            f"Completed {operation_name}",
            operation=operation_name,
            outcome=outcome,
            processing_time_ms=elapsed_ms,
            **context
        )

        threshold = LoggingConfig.LOG_SLOW_OPERATION_THRESHOLD_MS
        if elapsed_ms > threshold:
            logger.warning(
                f"Slow operation detected: {operation_name}",
                operation=operation_name,
                processing_time_ms=elapsed_ms,
                threshold_ms=threshold,
                **context
            )


def timed(operation_name: Optional[str] = None, logger: Optional[StructuredLogger] = None):
    """Decorator for timing sync or async function calls."""
    def decorator(func: Callable) -> Callable:
        op_name = operation_name or f"{func.__module__}.{func.__name__}"
        log = logger or get_structured_logger(func.__module__)

        if asyncio.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                with log_timing(op_name, logger=log):
                    return await func(*args, **kwargs)
            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            with log_timing(op_name, logger=log):
                return func(*args, **kwargs)
        return sync_wrapper

    return decorator
