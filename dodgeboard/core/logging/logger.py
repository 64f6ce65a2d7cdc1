"""
Structured logging for the score service.

Records are pushed onto a bounded in-memory queue by a QueueHandler and
written out by a QueueListener thread, so request handlers never block on
console or file I/O. When the queue is full the record is dropped and
counted rather than stalling the event loop.

Every record is enriched from a ContextVar holding the current request's
fields (request_id, route, fingerprint, player_id, component, operation).
Values passed explicitly through ``extra=`` take precedence.

Output
------
- console: JSON in production, ANSI-colored text on a dev TTY, plain text otherwise
- file: ``logs/dodgeboard_daily.json.log``, JSON, rotated at UTC midnight,
  one backup kept (skipped under tests)

Entry points: get_logger(), LogContext, set_log_context(),
clear_log_context(), get_logging_health(), shutdown_logging().
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from dodgeboard.core.config.config import Config

_UNSET = "N/A"
_INIT_FLAG = "_dodgeboard_logging_initialized"

# Fields copied from the request context onto each record.
CONTEXT_FIELDS = ("request_id", "route", "fingerprint", "player_id", "component", "operation")

# LogRecord attributes that are never treated as user ``extra`` data.
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime", "taskName"}

_request_context: ContextVar[Dict[str, Any]] = ContextVar("dodgeboard_log_context", default={})


@dataclass(frozen=True, slots=True)
class LoggerConfig:
    """Static knobs plus values derived from Config at read time."""

    CONSOLE_FORMAT: str = "%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s"
    DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
    DAILY_BASENAME: str = "dodgeboard_daily.json.log"
    DAILY_BACKUP_COUNT: int = 1
    QUEUE_MAX_SIZE: int = 10_000

    @property
    def environment(self) -> str:
        return str(Config.ENVIRONMENT or "development").lower()

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def logs_dir(self) -> Path:
        return Path(Config.LOGS_DIR).resolve()

    @property
    def log_level(self) -> int:
        name = Config.LOG_LEVEL if isinstance(Config.LOG_LEVEL, str) else "INFO"
        level = logging.getLevelName(name.upper())
        return level if isinstance(level, int) else logging.INFO

    @property
    def use_json(self) -> bool:
        if Config.LOG_JSON is None:
            return self.is_production
        return bool(Config.LOG_JSON)

    @property
    def use_colors(self) -> bool:
        return not self.use_json and sys.stdout.isatty()


LOGGER_CONFIG = LoggerConfig()


@dataclass(frozen=True, slots=True)
class LoggingHealth:
    initialized: bool
    queue_size: int
    queue_max_size: int
    records_enqueued: int
    records_dropped: int
    listener_errors: int


@dataclass(slots=True)
class _PipelineState:
    log_queue: Optional["queue.Queue[logging.LogRecord]"] = None
    listener: Optional[QueueListener] = None
    enqueued: int = 0
    dropped: int = 0
    listener_errors: int = 0
    handlers: List[logging.Handler] = field(default_factory=list)


_state = _PipelineState()


# ============================================================================
# Filters & Formatters
# ============================================================================


class ContextFilter(logging.Filter):
    """Copy the current request context onto the record."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _request_context.get()

        for name in ("request_id", "route"):
            setattr(record, name, context.get(name) or _UNSET)

        for name in ("fingerprint", "player_id", "operation"):
            if not hasattr(record, name):
                setattr(record, name, context.get(name) or _UNSET)

        if not hasattr(record, "component"):
            record.component = context.get("component") or record.name.partition(".")[0]
        return True


class ColoredFormatter(logging.Formatter):
    LEVEL_COLORS: Dict[int, str] = {
        logging.DEBUG: "\033[90m",
        logging.INFO: "\033[94m",
        logging.WARNING: "\033[93m",
        logging.ERROR: "\033[91m",
        logging.CRITICAL: "\033[1;91m",
    }
    RESET = "\033[0m"

    def formatMessage(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        color = self.LEVEL_COLORS.get(record.levelno)
        if color is None:
            return super().formatMessage(record)

        plain = record.levelname
        record.levelname = f"{color}{plain}{self.RESET}"
        try:
            return super().formatMessage(record)
        finally:
            record.levelname = plain


class JSONFormatter(logging.Formatter):
    """One JSON object per line; user extras are nested under ``extra``."""

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        payload.update(
            (name, getattr(record, name))
            for name in CONTEXT_FIELDS
            if getattr(record, name, _UNSET) not in (None, _UNSET)
        )

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in CONTEXT_FIELDS and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        return json.dumps(payload, ensure_ascii=False, default=str)


# ============================================================================
# Queue plumbing
# ============================================================================


class _DroppingQueueHandler(QueueHandler):
    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _state.enqueued += 1
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            _state.dropped += 1
            sys.stderr.write("dodgeboard: log queue full, record dropped\n")


class _CountingQueueListener(QueueListener):
    def handleError(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        _state.listener_errors += 1
        sys.stderr.write("dodgeboard: log handler failed on a record\n")


def _console_handler(level: int) -> logging.Handler:
    if LOGGER_CONFIG.use_json:
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter_cls = ColoredFormatter if LOGGER_CONFIG.use_colors else logging.Formatter
        formatter = formatter_cls(LOGGER_CONFIG.CONSOLE_FORMAT, LOGGER_CONFIG.DATE_FORMAT)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def _daily_file_handler(level: int) -> logging.Handler:
    directory = LOGGER_CONFIG.logs_dir
    directory.mkdir(parents=True, exist_ok=True)

    handler = TimedRotatingFileHandler(
        directory / LOGGER_CONFIG.DAILY_BASENAME,
        when="midnight",
        backupCount=LOGGER_CONFIG.DAILY_BACKUP_COUNT,
        encoding="utf-8",
        utc=True,
    )
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter())
    return handler


def _is_initialized() -> bool:
    return bool(getattr(logging.getLogger(), _INIT_FLAG, False))


def setup_logging() -> None:
    """Install the queue-backed pipeline on the root logger. Idempotent."""
    if _is_initialized():
        return

    global _state
    level = LOGGER_CONFIG.log_level
    root = logging.getLogger()
    root.setLevel(level)
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.filters.clear()

    sinks = [_console_handler(level)]
    if not Config.is_testing():
        sinks.append(_daily_file_handler(level))

    log_queue: "queue.Queue[logging.LogRecord]" = queue.Queue(LOGGER_CONFIG.QUEUE_MAX_SIZE)
    listener = _CountingQueueListener(log_queue, *sinks, respect_handler_level=True)
    _state = _PipelineState(log_queue=log_queue, listener=listener, handlers=sinks)
    listener.start()

    front = _DroppingQueueHandler(log_queue)
    front.setLevel(level)
    front.addFilter(ContextFilter())
    root.addHandler(front)

    for noisy in ("asyncio", "uvicorn.access", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    setattr(root, _INIT_FLAG, True)

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "environment": LOGGER_CONFIG.environment,
            "log_level": logging.getLevelName(level),
            "json": LOGGER_CONFIG.use_json,
            "colors": LOGGER_CONFIG.use_colors,
            "file_output": len(sinks) > 1,
        },
    )


def shutdown_logging() -> None:
    """Drain the queue, close every sink and detach from the root logger."""
    if not _is_initialized():
        return

    root = logging.getLogger()
    logging.getLogger(__name__).info("Logging shutting down")

    if _state.listener is not None:
        # stop() flushes whatever is still queued before returning
        _state.listener.stop()
        _state.listener = None

    for handler in [*root.handlers, *_state.handlers]:
        handler.flush()
        handler.close()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    _state.handlers.clear()
    _state.log_queue = None
    setattr(root, _INIT_FLAG, False)


def get_logging_health() -> LoggingHealth:
    log_queue = _state.log_queue
    return LoggingHealth(
        initialized=_is_initialized(),
        queue_size=log_queue.qsize() if log_queue is not None else 0,
        queue_max_size=log_queue.maxsize if log_queue is not None else 0,
        records_enqueued=_state.enqueued,
        records_dropped=_state.dropped,
        listener_errors=_state.listener_errors,
    )


# ============================================================================
# Public API
# ============================================================================


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Bind request-scoped fields to every log record emitted inside the block.

    Works with both ``with`` and ``async with``; a request id is generated
    when none is given::

        async with LogContext(route="POST /api/score", fingerprint=fp) as ctx:
            response.headers["X-Request-ID"] = ctx.request_id
    """

    def __init__(
        self,
        route: Optional[str] = None,
        fingerprint: Optional[str] = None,
        player_id: Optional[str] = None,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        request_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        self.context: Dict[str, Any] = {
            "request_id": request_id or uuid.uuid4().hex[:8],
            "route": route,
            "fingerprint": fingerprint,
            "player_id": player_id,
            "component": component,
            "operation": operation,
        }
        self.context.update(extra)
        self._token: Optional[Token[Dict[str, Any]]] = None

    @property
    def request_id(self) -> str:
        return self.context["request_id"]

    def __enter__(self) -> "LogContext":
        self._token = _request_context.set(dict(self.context))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _request_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def set_log_context(**fields: Any) -> None:
    """Merge non-None fields into the current request context."""
    merged = dict(_request_context.get())
    merged.update({key: value for key, value in fields.items() if value is not None})
    _request_context.set(merged)


def get_log_context() -> Dict[str, Any]:
    return dict(_request_context.get())


def clear_log_context() -> None:
    _request_context.set({})


setup_logging()
