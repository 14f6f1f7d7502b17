"""
Logging setup for DigiAssistant.

Loggers live under the ``app`` namespace. Records carry the assessment,
question and operation they belong to (see ``LogContext``), and can be
rendered as JSON lines for log shipping or as plain text for a terminal.
Handlers are described by ``LoggingConfig`` and installed with ``dictConfig``.
"""

from __future__ import annotations

import json
import logging
import logging.config
import os
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from functools import wraps
from pathlib import Path
from types import TracebackType
from typing import Any, ParamSpec, TypeVar

from .config import LoggingConfig

P = ParamSpec("P")
R = TypeVar("R")

CONTEXT_FIELDS = ("assessment_id", "question_id", "client", "request_id", "operation")
TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_current_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})

# level, file, structured, console
ENVIRONMENT_PRESETS: dict[str, tuple[str, str | None, bool, bool]] = {
    "development": ("DEBUG", "./logs/development.log", False, True),
    "production": ("INFO", "./logs/production.log", True, False),
    "testing": ("WARNING", None, False, False),
}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, context fields included when present."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update(
            {field: getattr(record, field) for field in CONTEXT_FIELDS if hasattr(record, field)}
        )
        if hasattr(record, "duration_ms"):
            entry["duration_ms"] = record.duration_ms

        if record.exc_info and record.exc_info[1] is not None:
            error = record.exc_info[1]
            entry["exception"] = {
                "type": type(error).__name__,
                "message": str(error),
                "traceback": self.formatException(record.exc_info),
            }
        return json.dumps(entry, ensure_ascii=False, default=str)


class ContextFilter(logging.Filter):
    """Copies the active assessment context onto every record it sees."""

    @property
    def context(self) -> dict[str, Any]:
        return _current_context.get()

    @context.setter
    def context(self, value: dict[str, Any]) -> None:
        _current_context.set(dict(value))

    def set_context(self, **kwargs: Any) -> None:
        self.context = {**self.context, **kwargs}

    def clear_context(self) -> None:
        self.context = {}

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self.context.items():
            setattr(record, key, value)
        return True


context_filter = ContextFilter()


def build_logging_config(config: LoggingConfig) -> dict[str, Any]:
    """Translate ``LoggingConfig`` into a ``dictConfig`` mapping."""
    formatter = "structured" if config.structured else "text"
    handlers: dict[str, dict[str, Any]] = {}

    if config.console_enabled:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "formatter": formatter,
            "filters": ["context"],
            "stream": "ext://sys.stdout",
        }

    file_handler = config.get_file_handler_config()
    if file_handler is not None:
        Path(file_handler["filename"]).parent.mkdir(parents=True, exist_ok=True)
        # files are always machine-readable
        handlers["file"] = {**file_handler, "formatter": "structured", "filters": ["context"]}

    if not handlers:
        handlers["null"] = {"class": "logging.NullHandler"}

    names = list(handlers)
    quiet = {"level": "WARNING", "handlers": names, "propagate": False}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {"()": StructuredFormatter},
            "text": {"format": TEXT_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
        },
        "filters": {"context": {"()": lambda: context_filter}},
        "handlers": handlers,
        "loggers": {
            "app": {"level": config.level, "handlers": names, "propagate": False},
            "sqlalchemy.engine": dict(quiet),
            "uvicorn.access": dict(quiet),
        },
        "root": {"level": config.level, "handlers": names},
    }


def configure_logging(config: LoggingConfig) -> None:
    logging.config.dictConfig(build_logging_config(config))


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    structured: bool = True,
    enable_console: bool = True,
) -> None:
    """
    Install handlers from plain arguments.

    Example:
        >>> setup_logging(level="DEBUG", log_file="./logs/app.log")
    """
    configure_logging(
        LoggingConfig(
            level=level,
            file_path=log_file,
            structured=structured,
            console_enabled=enable_console,
        )
    )


def get_logger(name: str) -> logging.Logger:
    """
    Logger under the ``app`` namespace.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Assessment started")
    """
    if name == "app" or name.startswith("app."):
        return logging.getLogger(name)
    return logging.getLogger(f"app.{name}")


class LogContext:
    """
    Attach assessment context to every record logged inside the block.

    Contexts nest; leaving a block restores whatever was active before it.

    Example:
        >>> with LogContext(assessment_id="assess_1", question_id="strategy_vision_1"):
        ...     logger.info("Answer recorded")
    """

    def __init__(self, **kwargs: Any):
        self.context: dict[str, Any] = kwargs
        self._token = None

    def __enter__(self) -> LogContext:
        self._token = _current_context.set({**_current_context.get(), **self.context})
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._token is not None:
            _current_context.reset(self._token)
            self._token = None


@contextmanager
def _timed(logger: logging.Logger, label: str) -> Iterator[None]:
    logger.debug(f"Starting {label}")
    start = time.perf_counter()
    try:
        yield
    except Exception as e:
        elapsed = round((time.perf_counter() - start) * 1000, 1)
        logger.error(f"Failed {label}: {e}", exc_info=True, extra={"duration_ms": elapsed})
        raise
    elapsed = round((time.perf_counter() - start) * 1000, 1)
    logger.debug(f"Completed {label} in {elapsed}ms", extra={"duration_ms": elapsed})


def log_operation(
    operation: str, logger: logging.Logger | None = None
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Log start, completion time and failure of a use case under ``operation``.

    Example:
        >>> @log_operation("start_assessment")
        ... def start_assessment(db, company_name):
        ...     pass
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            with LogContext(operation=operation):
                with _timed(logger or get_logger(func.__module__), operation):
                    return func(*args, **kwargs)

        return wrapper

    return decorator


def log_database_operation(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Like ``log_operation``, for repository calls (logged under ``app.database``)."""

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            with LogContext(operation=f"db_{operation}"):
                with _timed(get_logger("database"), f"database operation {operation}"):
                    return func(*args, **kwargs)

        return wrapper

    return decorator


def configure_for_environment(environment: str) -> None:
    level, log_file, structured, console = ENVIRONMENT_PRESETS.get(
        environment, ENVIRONMENT_PRESETS["development"]
    )
    setup_logging(level=level, log_file=log_file, structured=structured, enable_console=console)


def configure_test_logging() -> None:
    configure_for_environment("testing")


def auto_configure_logging() -> None:
    """Pick handlers from the ``ENVIRONMENT`` variable."""
    environment = os.getenv("ENVIRONMENT", "development").lower()
    if environment == "test":
        environment = "testing"
    configure_for_environment(environment)
    get_logger(__name__).info(f"Logging configured for {environment} environment")


if not logging.getLogger().handlers:
    auto_configure_logging()
