"""
Level Up Solo logging subsystem.

Purpose
-------
Structured, non-blocking logging for the API process. Every record
carries the request it was emitted under (request id, method, path and
the authenticated user), so one completion can be followed from the
HTTP middleware through the services and event listeners.

Pieces
------
- `LogContext` binds request fields in a ContextVar for the duration of
  a request; `set_log_context()` adds fields later (the user id is only
  known once the bearer token is verified).
- `RequestContextFilter` copies those fields onto each record.
- Records go through a bounded queue to a `QueueListener`, which owns
  the console handler and the daily-rotated JSON file. A full queue
  drops records rather than stalling the event loop.
- Console output is JSON in production and colored text otherwise.

Usage
-----
>>> logger = get_logger(__name__)
>>> async with LogContext(method="POST", path="/api/tasks/3/complete"):
...     set_log_context(user_id="u1")
...     logger.info("Task completed", extra={"task_id": 3, "exp_gained": 20})
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional

_UNSET = "-"

REQUEST_FIELDS = ("request_id", "method", "path", "user_id", "component")

# Attributes every LogRecord has; anything else on a record came from `extra=`
_RECORD_ATTRS: FrozenSet[str] = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
    "taskName",
}

_request_context: ContextVar[Dict[str, Any]] = ContextVar("levelup_request_context", default={})


# ============================================================================
# Settings
# ============================================================================


@dataclass(frozen=True, slots=True)
class LoggerConfig:
    """Logging settings derived from `Config` at setup time."""

    CONSOLE_FORMAT: str = "%(asctime)s | %(levelname)-8s | %(request_id)s | %(name)-28s | %(message)s"
    DATE_FORMAT: str = "%H:%M:%S"

    FILE_NAME: str = "levelupsolo.json.log"
    FILE_BACKUP_DAYS: int = 7

    QUEUE_MAX_SIZE: int = 10_000

    QUIET_LOGGERS: tuple = ("uvicorn.access", "httpx", "httpcore", "openai", "asyncio", "sqlalchemy.engine")

    @property
    def environment(self) -> str:
        from src.core.config.config import Config  # deferred: src.core.config imports this module

        return str(Config.ENVIRONMENT).lower()

    @property
    def level(self) -> int:
        from src.core.config.config import Config  # deferred: src.core.config imports this module

        name = Config.LOG_LEVEL if isinstance(Config.LOG_LEVEL, str) else "INFO"
        return logging.getLevelNamesMapping().get(name.upper(), logging.INFO)

    @property
    def json_console(self) -> bool:
        return self.environment == "production"

    @property
    def colors(self) -> bool:
        return not self.json_console and sys.stdout.isatty()

    @property
    def log_file(self) -> Optional[Path]:
        if self.environment == "testing":
            return None
        from src.core.config.config import Config  # deferred: src.core.config imports this module

        return Path(Config.LOGS_DIR).resolve() / self.FILE_NAME


LOGGER_CONFIG = LoggerConfig()


@dataclass(slots=True)
class _QueueCounters:
    enqueued: int = 0
    dropped: int = 0


@dataclass(frozen=True, slots=True)
class LoggingHealth:
    initialized: bool
    queue_size: int
    queue_max_size: int
    records_enqueued: int
    records_dropped: int


_counters = _QueueCounters()
_log_queue: Optional["queue.Queue[logging.LogRecord]"] = None
_listener: Optional[QueueListener] = None
_initialized = False


# ============================================================================
# Filter & Formatters
# ============================================================================


class RequestContextFilter(logging.Filter):
    """Stamp the bound request fields onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _request_context.get()
        for name in REQUEST_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, context.get(name) or _UNSET)
        return True


class ColoredFormatter(logging.Formatter):
    LEVEL_COLORS: Dict[int, str] = {
        logging.DEBUG: "\033[90m",
        logging.INFO: "\033[36m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        text = super().format(record)
        color = self.LEVEL_COLORS.get(record.levelno)
        return f"{color}{text}{self.RESET}" if color else text


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Request fields sit at the top level; everything passed via `extra=`
    is nested under "extra".
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "at": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        for name in REQUEST_FIELDS:
            value = getattr(record, name, _UNSET)
            if value != _UNSET:
                payload[name] = value

        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in REQUEST_FIELDS and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


# ============================================================================
# Queue plumbing
# ============================================================================


class DroppingQueueHandler(QueueHandler):
    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            _counters.dropped += 1
            return
        _counters.enqueued += 1


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    if LOGGER_CONFIG.json_console:
        handler.setFormatter(JSONFormatter())
    else:
        formatter_cls = ColoredFormatter if LOGGER_CONFIG.colors else logging.Formatter
        handler.setFormatter(formatter_cls(LOGGER_CONFIG.CONSOLE_FORMAT, LOGGER_CONFIG.DATE_FORMAT))
    return handler


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        filename=str(path),
        when="midnight",
        backupCount=LOGGER_CONFIG.FILE_BACKUP_DAYS,
        encoding="utf-8",
        utc=True,
    )
    handler.setFormatter(JSONFormatter())
    return handler


# ============================================================================
# Lifecycle
# ============================================================================


def setup_logging() -> None:
    """Install the queue handler on the root logger. Idempotent."""
    global _counters, _log_queue, _listener, _initialized

    if _initialized:
        return

    level = LOGGER_CONFIG.level
    handlers = [_console_handler()]
    log_file = LOGGER_CONFIG.log_file
    if log_file is not None:
        handlers.append(_file_handler(log_file))
    for handler in handlers:
        handler.setLevel(level)

    _counters = _QueueCounters()
    _log_queue = queue.Queue(LOGGER_CONFIG.QUEUE_MAX_SIZE)
    _listener = QueueListener(_log_queue, *handlers, respect_handler_level=True)
    _listener.start()

    queue_handler = DroppingQueueHandler(_log_queue)
    # On the handler, not a logger, so records from every named logger get context
    queue_handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    root.addHandler(queue_handler)

    for name in LOGGER_CONFIG.QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _initialized = True
    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "environment": LOGGER_CONFIG.environment,
            "log_level": logging.getLevelName(level),
            "json_console": LOGGER_CONFIG.json_console,
            "log_file": str(log_file) if log_file else None,
        },
    )


def shutdown_logging() -> None:
    """Flush the queue and close every handler."""
    global _log_queue, _listener, _initialized

    if not _initialized:
        return

    logging.getLogger(__name__).info("Shutting down logging")
    if _listener is not None:
        _listener.stop()
        for handler in _listener.handlers:
            handler.close()
        _listener = None

    logging.getLogger().handlers.clear()
    _log_queue = None
    _initialized = False


def get_logging_health() -> LoggingHealth:
    return LoggingHealth(
        initialized=_initialized,
        queue_size=_log_queue.qsize() if _log_queue is not None else 0,
        queue_max_size=_log_queue.maxsize if _log_queue is not None else 0,
        records_enqueued=_counters.enqueued,
        records_dropped=_counters.dropped,
    )


# ============================================================================
# Public API
# ============================================================================


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Bind request fields for the duration of a block (sync or async).

    A request id is generated when the caller does not supply one.
    """

    def __init__(
        self,
        request_id: Optional[str] = None,
        method: Optional[str] = None,
        path: Optional[str] = None,
        user_id: Optional[str] = None,
        component: Optional[str] = None,
        **extra: Any,
    ) -> None:
        self.context: Dict[str, Any] = {
            "request_id": request_id or uuid.uuid4().hex[:12],
            "method": method,
            "path": path,
            "user_id": str(user_id) if user_id is not None else None,
            "component": component,
            **extra,
        }
        self._token: Optional[Token[Dict[str, Any]]] = None

    @property
    def request_id(self) -> str:
        return self.context["request_id"]

    def __enter__(self) -> LogContext:
        self._token = _request_context.set(dict(self.context))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _request_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> LogContext:
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


def set_log_context(user_id: Optional[str] = None, **fields: Any) -> None:
    """Add fields to the current request context."""
    context = dict(_request_context.get())
    if user_id is not None:
        context["user_id"] = str(user_id)
    context.update(fields)
    _request_context.set(context)


setup_logging()
