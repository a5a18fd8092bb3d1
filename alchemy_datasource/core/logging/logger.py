"""
Structured logging for alchemy-datasource.

Purpose
-------
Every module logs through `get_logger(__name__)` and passes structured
fields with `extra={...}`. `LogContext` tags all records emitted inside a
data-source operation with the entity, the operation name and a correlation
id, so one `create_one` or batched lookup can be followed across the
repository, loader and cache logs.

Design Decisions
----------------
- Context lives in a ContextVar; concurrent tasks on one event loop each
  see their own entity/operation/correlation fields.
- Nothing is configured on import. Host applications call `setup_logging()`
  once; records are then handed to a QueueListener thread so emitting code
  never blocks on stream I/O.
- JSON output is the default in production (`Config.LOG_JSON` overrides).

Dependencies
------------
- alchemy_datasource.core.config.config.Config
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener
from typing import Any, Dict, Optional

from alchemy_datasource.core.config.config import Config

CONSOLE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(entity)s.%(operation)s "
    "[%(correlation_id)s] %(message)s"
)
QUEUE_MAX_SIZE = 10_000

_NOISY_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncio")

_log_context: ContextVar[Dict[str, Any]] = ContextVar("datasource_log_context", default={})

_queue_listener: Optional[QueueListener] = None
_queue_handler: Optional[QueueHandler] = None


# ============================================================================
# Context
# ============================================================================


class LogContext:
    """
    Scope log records to one data-source operation.

    Usable as a sync or async context manager. A nested context keeps the
    enclosing correlation id unless it is given one explicitly.

    Example:
        >>> async with LogContext(entity="users", operation="delete_one"):
        ...     log.info("Deleting")
    """

    def __init__(
        self,
        entity: Optional[str] = None,
        operation: Optional[str] = None,
        component: Optional[str] = None,
        correlation_id: Optional[str] = None,
        request_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        outer = _log_context.get({})
        correlation = (
            correlation_id
            or request_id
            or outer.get("correlation_id")
            or uuid.uuid4().hex[:8]
        )

        self.context: Dict[str, Any] = {
            "entity": entity or "N/A",
            "operation": operation or "N/A",
            "component": component or outer.get("component"),
            "correlation_id": correlation,
            "request_id": request_id or outer.get("request_id") or correlation,
            **extra,
        }
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> "LogContext":
        self._token = _log_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def set_log_context(
    entity: Optional[str] = None,
    operation: Optional[str] = None,
    component: Optional[str] = None,
    correlation_id: Optional[str] = None,
    request_id: Optional[str] = None,
    **extra: Any,
) -> None:
    """Merge fields into the current task's log context (no scope)."""
    current = dict(_log_context.get({}))
    updates = {
        "entity": entity,
        "operation": operation,
        "component": component,
        "correlation_id": correlation_id,
        "request_id": request_id,
    }
    current.update({key: value for key, value in updates.items() if value is not None})
    if request_id and "correlation_id" not in current:
        current["correlation_id"] = request_id
    current.update(extra)
    _log_context.set(current)


def clear_log_context() -> None:
    _log_context.set({})


def get_log_context() -> Dict[str, Any]:
    return dict(_log_context.get({}))


# ============================================================================
# Filter & Formatter
# ============================================================================


class ContextFilter(logging.Filter):
    """Copy the ambient log context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _log_context.get({})

        correlation_id = context.get("correlation_id") or context.get("request_id") or "N/A"
        record.correlation_id = correlation_id
        record.request_id = context.get("request_id", correlation_id)
        record.component = context.get("component") or record.name.split(".", 1)[0]
        # extra={...} fields win
        record.operation = getattr(record, "operation", None) or context.get("operation", "N/A")
        record.entity = getattr(record, "entity", None) or context.get("entity", "N/A")
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record; structured `extra` fields nest under "extra"."""

    CONTEXT_FIELDS = ("correlation_id", "request_id", "component", "operation", "entity")

    # attributes every LogRecord carries
    _RESERVED = frozenset(
        logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
    ) | {"message", "asctime", "taskName"}

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        for field in self.CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value not in (None, "N/A"):
                payload[field] = value

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self._RESERVED
            and key not in self.CONTEXT_FIELDS
            and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


# ============================================================================
# Setup
# ============================================================================


def _resolve_level(level: Optional[str]) -> int:
    name = (level or Config.LOG_LEVEL or "INFO").upper()
    return getattr(logging, name, logging.INFO)


def _use_json(json_output: Optional[bool]) -> bool:
    if json_output is not None:
        return json_output
    if Config.LOG_JSON is not None:
        return bool(Config.LOG_JSON)
    return Config.is_production()


def setup_logging(
    level: Optional[str] = None,
    json_output: Optional[bool] = None,
    stream: Any = None,
) -> None:
    """
    Route root logging through a queue to one console handler.

    Idempotent; a second call is a no-op until `shutdown_logging()`.

    Args:
        level: Level name (default `Config.LOG_LEVEL`)
        json_output: Force JSON or plain text (default from Config/environment)
        stream: Output stream (default stdout)
    """
    global _queue_listener, _queue_handler

    if _queue_listener is not None:
        return

    log_level = _resolve_level(level)
    use_json = _use_json(json_output)

    console = logging.StreamHandler(stream or sys.stdout)
    console.setLevel(log_level)
    console.setFormatter(JSONFormatter() if use_json else logging.Formatter(CONSOLE_FORMAT))

    log_queue: "queue.Queue[logging.LogRecord]" = queue.Queue(QUEUE_MAX_SIZE)
    _queue_listener = QueueListener(log_queue, console, respect_handler_level=True)
    _queue_listener.start()

    _queue_handler = QueueHandler(log_queue)
    _queue_handler.setLevel(log_level)
    # runs on the emitting task, where the ContextVar is visible
    _queue_handler.addFilter(ContextFilter())

    root = logging.getLogger()
    root.setLevel(log_level)
    root.addHandler(_queue_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "environment": Config.ENVIRONMENT,
            "log_level": logging.getLevelName(log_level),
            "json": use_json,
        },
    )


def shutdown_logging() -> None:
    """Flush queued records and detach the handler installed by `setup_logging()`."""
    global _queue_listener, _queue_handler

    if _queue_listener is None:
        return

    logging.getLogger(__name__).info("Shutting down logging")

    try:
        _queue_listener.stop()
    finally:
        if _queue_handler is not None:
            logging.getLogger().removeHandler(_queue_handler)
            _queue_handler.close()
        _queue_listener = None
        _queue_handler = None


def is_logging_configured() -> bool:
    return _queue_listener is not None


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)
