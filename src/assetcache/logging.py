"""
Structured logging for the asset cache.

Provides:
- Context variables for cache_key and operation (using contextvars)
- JSONFormatter for machine-readable logs to file
- RichHandler for pretty console output
- ContextLogger wrapper that attaches context and keyword fields to log calls
- setup_logging() that configures both file and console handlers
- log_context() for scoped context
- get_logger() factory
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.text import Text

_ROOT_LOGGER = "assetcache"

_cache_key_var: ContextVar[str | None] = ContextVar("cache_key", default=None)
_operation_var: ContextVar[str | None] = ContextVar("operation", default=None)


def get_cache_key() -> str | None:
    """Get the cache key currently being worked on."""
    return _cache_key_var.get()


def get_operation() -> str | None:
    """Get the current cache operation name."""
    return _operation_var.get()


@contextmanager
def log_context(
    cache_key: str | None = None,
    operation: str | None = None,
) -> Generator[None, None, None]:
    """Context manager for scoped logging context.

    Args:
        cache_key: Logical key being resolved.
        operation: Operation name (resolve, wipe, evict).

    Yields:
        None. Context variables are set for the duration of the context.
    """
    key_token = _cache_key_var.set(cache_key) if cache_key is not None else None
    op_token = _operation_var.set(operation) if operation is not None else None
    try:
        yield
    finally:
        if op_token is not None:
            _operation_var.reset(op_token)
        if key_token is not None:
            _cache_key_var.reset(key_token)


class JSONFormatter(logging.Formatter):
    """JSON formatter for machine-readable log files.

    Produces JSON Lines format with structured context.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON."""
        log_obj: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        cache_key = get_cache_key()
        operation = get_operation()
        if cache_key:
            log_obj["cache_key"] = cache_key
        if operation:
            log_obj["operation"] = operation

        if hasattr(record, "extra"):
            log_obj["extra"] = record.extra

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


class ContextRichHandler(RichHandler):
    """Rich handler that prefixes the operation and key to console output."""

    def get_level_text(self, record: logging.LogRecord) -> Text:
        level_text = super().get_level_text(record)

        parts: list[str] = []
        operation = get_operation()
        cache_key = get_cache_key()

        if operation:
            parts.append(f"[cyan]{operation}[/cyan]")
        if cache_key:
            # Keys can be long resource identifiers
            short_key = cache_key if len(cache_key) <= 24 else f"{cache_key[:21]}..."
            parts.append(f"[magenta]{escape(short_key)}[/magenta]")

        if parts:
            return Text.from_markup(f"{level_text} {' '.join(parts)}")

        return level_text


class ContextLogger:
    """Logger wrapper that automatically attaches context to log calls.

    Keyword arguments other than the standard logging ones are collected
    into the record's ``extra`` payload, e.g.
    ``logger.info("Downloaded asset", key=key, bytes=n)``.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(
        self,
        level: int,
        msg: str,
        *args: Any,
        exc_info: bool = False,
        **kwargs: Any,
    ) -> None:
        extra = kwargs.pop("extra", {})

        cache_key = get_cache_key()
        operation = get_operation()
        if cache_key:
            extra["cache_key"] = cache_key
        if operation:
            extra["operation"] = operation

        for key in list(kwargs.keys()):
            if key not in ("exc_info", "stack_info", "stacklevel"):
                extra[key] = kwargs.pop(key)

        self._logger.log(level, msg, *args, exc_info=exc_info, extra={"extra": extra})

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.WARNING, msg, *args, **kwargs)

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self._log(logging.ERROR, msg, *args, exc_info=True, **kwargs)


_console: Console | None = None
_setup_done: bool = False


def get_console() -> Console:
    """Get the global rich console (stderr)."""
    global _console
    if _console is None:
        _console = Console(stderr=True)
    return _console


def setup_logging(
    log_level: str = "INFO",
    log_file: Path | None = None,
    console_output: bool = True,
) -> None:
    """Set up logging with JSON file handler and rich console handler.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Path to log file. If None, only console logging is enabled.
        console_output: Whether to enable console output.
    """
    global _setup_done

    root_logger = logging.getLogger(_ROOT_LOGGER)
    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.handlers.clear()

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        file_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(file_handler)

    if console_output:
        rich_handler = ContextRichHandler(
            console=get_console(),
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            markup=True,
        )
        rich_handler.setLevel(getattr(logging, log_level.upper()))
        root_logger.addHandler(rich_handler)

    root_logger.propagate = False

    for noisy_logger in ["httpx", "httpcore", "asyncio"]:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    _setup_done = True


def get_logger(name: str) -> ContextLogger:
    """Get a context-aware logger.

    Args:
        name: Logger name (usually __name__).

    Returns:
        ContextLogger wrapper around the standard logger.
    """
    if not _setup_done:
        setup_logging()

    if not name.startswith(_ROOT_LOGGER):
        name = f"{_ROOT_LOGGER}.{name}"

    return ContextLogger(logging.getLogger(name))
