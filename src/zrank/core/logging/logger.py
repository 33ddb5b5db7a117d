"""
Structured logging for zrank.

Every record is stamped with the leaderboard context active on the emitting
task (player, collection, operation, correlation id) and then handed to a
queue, so formatting and I/O happen on the listener thread instead of the
event loop.

Output
------
- Console: JSON in production or when LOG_JSON is set, otherwise plain text
  (coloured when stdout is a terminal).
- File: daily-rotated JSON lines under Config.LOGS_DIR, unless
  LOG_FILE_ENABLED is false.

Context values passed through ``extra=`` take precedence over the values
bound by `LogContext`.
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from typing import Any, Dict, List, Optional

from zrank.core.config.config import Config

CONTEXT_FIELDS = ("player", "collection", "operation")
UNSET = "N/A"

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-32s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_NAME = "zrank.json.log"

_context: ContextVar[Dict[str, Any]] = ContextVar("zrank_log_context", default={})
_listener: Optional[QueueListener] = None
_queue_handler: Optional[QueueHandler] = None

# Attributes every LogRecord carries; anything else came in through `extra`.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}
_STAMPED_ATTRS = frozenset(CONTEXT_FIELDS) | {"correlation_id", "request_id", "component"}


class ContextFilter(logging.Filter):
    """Copy the bound LogContext onto the record."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _context.get()

        for field in CONTEXT_FIELDS:
            if getattr(record, field, None) is None:
                setattr(record, field, context.get(field) or UNSET)

        correlation_id = context.get("correlation_id") or context.get("request_id") or UNSET
        record.correlation_id = correlation_id
        record.request_id = context.get("request_id", correlation_id)
        record.component = context.get("component") or record.name.partition(".")[0]
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record; `extra` fields are nested under "extra"."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        for field in _STAMPED_ATTRS:
            value = getattr(record, field, None)
            if value not in (None, UNSET):
                payload[field] = value

        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in _STAMPED_ATTRS and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    LEVEL_COLORS = {
        "DEBUG": "\033[90m",
        "INFO": "\033[94m",
        "WARNING": "\033[93m",
        "ERROR": "\033[91m",
        "CRITICAL": "\033[1;91m",
    }

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        color = self.LEVEL_COLORS.get(record.levelname)
        if color is None:
            return super().format(record)

        levelname = record.levelname
        record.levelname = f"{color}{levelname}\033[0m"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


def _log_level() -> int:
    return getattr(logging, str(Config.LOG_LEVEL).upper(), logging.INFO)


def _use_json() -> bool:
    if Config.LOG_JSON is None:
        return Config.is_production()
    return Config.LOG_JSON


def _console_formatter() -> logging.Formatter:
    if _use_json():
        return JSONFormatter()
    if Config.LOG_COLORS and sys.stdout.isatty():
        return ColoredFormatter(TEXT_FORMAT, DATE_FORMAT)
    return logging.Formatter(TEXT_FORMAT, DATE_FORMAT)


def _build_handlers(level: int) -> List[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(_console_formatter())
    handlers: List[logging.Handler] = [console]

    if Config.LOG_FILE_ENABLED:
        Config.LOGS_DIR.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            Config.LOGS_DIR / LOG_FILE_NAME,
            when="midnight",
            backupCount=1,
            encoding="utf-8",
            utc=True,
        )
        file_handler.setFormatter(JSONFormatter())
        handlers.append(file_handler)

    for handler in handlers:
        handler.setLevel(level)
    return handlers


def is_logging_configured() -> bool:
    return _listener is not None


def setup_logging() -> None:
    """Install the queue handler on the root logger. Idempotent."""
    global _listener, _queue_handler

    if _listener is not None:
        return

    level = _log_level()
    log_queue: "queue.SimpleQueue[logging.LogRecord]" = queue.SimpleQueue()

    _listener = QueueListener(log_queue, *_build_handlers(level), respect_handler_level=True)
    _listener.start()

    # The filter runs on the emitting task, where the ContextVar is visible.
    _queue_handler = QueueHandler(log_queue)
    _queue_handler.addFilter(ContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    root.addHandler(_queue_handler)

    for noisy in ("redis", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={
            "log_level": logging.getLevelName(level),
            "json": _use_json(),
            "file_enabled": Config.LOG_FILE_ENABLED,
        },
    )


def shutdown_logging() -> None:
    """Detach the queue handler, drain the queue and close the output handlers."""
    global _listener, _queue_handler

    if _listener is None:
        return

    logging.getLogger().removeHandler(_queue_handler)
    listener, _listener, _queue_handler = _listener, None, None
    listener.stop()
    for handler in listener.handlers:
        handler.close()


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Bind leaderboard context to every record logged inside the block.

    Works as both a sync and an async context manager; a correlation id is
    generated when none is given.

    >>> async with LogContext(player="alice", operation="update_score"):
    ...     logger.info("Score updated")
    """

    def __init__(
        self,
        player: Optional[str] = None,
        collection: Optional[str] = None,
        operation: Optional[str] = None,
        component: Optional[str] = None,
        correlation_id: Optional[str] = None,
        request_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        correlation_id = correlation_id or request_id or uuid.uuid4().hex[:8]
        self.context: Dict[str, Any] = {
            "player": player,
            "collection": collection,
            "operation": operation,
            "component": component,
            "correlation_id": correlation_id,
            "request_id": request_id or correlation_id,
            **extra,
        }
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> "LogContext":
        self._token = _context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def set_log_context(**values: Any) -> None:
    """Merge `values` into the current context; None values are ignored."""
    merged = dict(_context.get())
    merged.update({key: value for key, value in values.items() if value is not None})
    if "request_id" in merged and not merged.get("correlation_id"):
        merged["correlation_id"] = merged["request_id"]
    _context.set(merged)


def clear_log_context() -> None:
    _context.set({})


setup_logging()
