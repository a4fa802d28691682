"""
Progression engine logging subsystem.

Purpose
-------
Structured logging for every service of the engine:

- JSON lines for aggregation, plain text for local development.
- `LogContext` binds profile and operation context to a block of code
  through a ContextVar, so nested awaits inherit it.
- Records pass through a bounded queue; handlers run on a listener
  thread and never block the event loop.
- A daily rotating JSON file under `Config.LOGS_DIR` keeps one day back.

Extra fields passed via `logger.info("msg", extra={...})` are merged into
the JSON payload under "extra".
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
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from src.core.config.config import Config


_operation_context: ContextVar[Dict[str, Any]] = ContextVar(
    "operation_context",
    default={},
)

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s"
TEXT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DAILY_LOG_FILE = "progression_daily.json.log"
QUEUE_MAX_SIZE = 10_000

_INIT_FLAG = "_progression_logging_initialized"

# Attributes every LogRecord carries; anything else came from `extra`
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "taskName"}

_CONTEXT_KEYS = ("profile_id", "operation", "correlation_id")


def _log_level() -> int:
    return getattr(logging, str(Config.LOG_LEVEL).upper(), logging.INFO)


def _use_json() -> bool:
    if Config.LOG_JSON is None:
        return Config.is_production()
    return bool(Config.LOG_JSON)


class ContextFilter(logging.Filter):
    """Copy the active LogContext onto the record before it is queued."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _operation_context.get({})
        for key in _CONTEXT_KEYS:
            if getattr(record, key, None) is None:
                setattr(record, key, context.get(key))
        for key, value in context.items():
            if key not in _CONTEXT_KEYS and not hasattr(record, key):
                setattr(record, key, value)
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        for key in _CONTEXT_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and key not in _CONTEXT_KEYS and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        return json.dumps(payload, ensure_ascii=False, default=str)


class _DroppingQueueHandler(QueueHandler):
    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            sys.stderr.write("Progression logging queue full; dropping log record.\n")


_queue_listener: Optional[QueueListener] = None


def _build_handlers() -> List[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    if _use_json():
        console.setFormatter(JSONFormatter())
    else:
        console.setFormatter(logging.Formatter(TEXT_FORMAT, TEXT_DATE_FORMAT))
    handlers: List[logging.Handler] = [console]

    logs_dir = Path(Config.LOGS_DIR).resolve()
    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        sys.stderr.write(f"Cannot create logs dir {logs_dir}: {exc}\n")
        return handlers

    daily = TimedRotatingFileHandler(
        filename=str(logs_dir / DAILY_LOG_FILE),
        when="midnight",
        backupCount=1,
        encoding="utf-8",
        utc=True,
    )
    daily.setFormatter(JSONFormatter())
    handlers.append(daily)
    return handlers


def setup_logging() -> None:
    """Install the queue handler on the root logger. Safe to call twice."""
    global _queue_listener

    root = logging.getLogger()
    if getattr(root, _INIT_FLAG, False):
        return

    level = _log_level()
    root.setLevel(level)
    root.handlers.clear()

    log_queue: "queue.Queue[logging.LogRecord]" = queue.Queue(QUEUE_MAX_SIZE)
    _queue_listener = QueueListener(log_queue, *_build_handlers(), respect_handler_level=True)
    _queue_listener.start()

    queue_handler = _DroppingQueueHandler(log_queue)
    queue_handler.setLevel(level)
    # Context must be captured on the producing task
    queue_handler.addFilter(ContextFilter())
    root.addHandler(queue_handler)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    setattr(root, _INIT_FLAG, True)
    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "environment": Config.ENVIRONMENT,
            "log_level": logging.getLevelName(level),
            "json": _use_json(),
        },
    )


def shutdown_logging() -> None:
    """Flush the queue and detach every root handler."""
    global _queue_listener

    root = logging.getLogger()
    if not getattr(root, _INIT_FLAG, False):
        return

    logging.getLogger(__name__).info("Shutting down logging subsystem.")
    if _queue_listener is not None:
        try:
            _queue_listener.stop()
        finally:
            _queue_listener = None

    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)
    setattr(root, _INIT_FLAG, False)


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Bind profile and operation context to every log line in a block.

    Works as both a sync and an async context manager:

    >>> async with LogContext(profile_id="p-1", operation="delete_activity"):
    ...     logger.info("Reversal applied")
    """

    def __init__(
        self,
        profile_id: Optional[str] = None,
        operation: Optional[str] = None,
        correlation_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        self.context: Dict[str, Any] = {**_operation_context.get({}), **extra}
        if profile_id is not None:
            self.context["profile_id"] = str(profile_id)
        if operation is not None:
            self.context["operation"] = operation
        self.context["correlation_id"] = (
            correlation_id or self.context.get("correlation_id") or uuid.uuid4().hex[:8]
        )
        self._token: Optional[Token[Dict[str, Any]]] = None

    @staticmethod
    def current() -> Dict[str, Any]:
        return dict(_operation_context.get({}))

    def __enter__(self) -> "LogContext":
        self._token = _operation_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _operation_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)
