"""Logging utilities for contract-engine."""

import logging
import sys
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Optional

# Request ID shared by every stage of one parse or generate call
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class ContextLogger:
    """Logger wrapper that appends structured fields to each message.

    Fields passed to :meth:`bind` are attached to every record; fields passed
    per call via ``extra_data`` override them.
    """

    def __init__(self, logger: logging.Logger, fields: Optional[dict[str, Any]] = None):
        self.logger = logger
        self.fields = dict(fields or {})

    def bind(self, **fields: Any) -> "ContextLogger":
        """Return a child logger carrying ``fields`` on every record."""
        merged = dict(self.fields)
        merged.update(fields)
        return ContextLogger(self.logger, merged)

    def _format_extra_data(self, extra_data: dict[str, Any]) -> str:
        if not extra_data:
            return ""
        parts = [f"{k}={v}" for k, v in extra_data.items()]
        return " [" + ", ".join(parts) + "]"

    def _log(self, level: int, msg: str, extra_data: Optional[dict[str, Any]] = None, **kwargs):
        if not self.logger.isEnabledFor(level):
            return

        data = dict(self.fields)
        if extra_data:
            data.update(extra_data)

        request_id = request_id_var.get()
        if request_id:
            data["request_id"] = request_id

        self.logger.log(level, msg + self._format_extra_data(data), **kwargs)

    def debug(self, msg: str, extra_data: Optional[dict[str, Any]] = None, **kwargs):
        self._log(logging.DEBUG, msg, extra_data, **kwargs)

    def info(self, msg: str, extra_data: Optional[dict[str, Any]] = None, **kwargs):
        self._log(logging.INFO, msg, extra_data, **kwargs)

    def warning(self, msg: str, extra_data: Optional[dict[str, Any]] = None, **kwargs):
        self._log(logging.WARNING, msg, extra_data, **kwargs)

    def error(self, msg: str, extra_data: Optional[dict[str, Any]] = None, **kwargs):
        self._log(logging.ERROR, msg, extra_data, **kwargs)


def setup_logging(log_level: str = "INFO"):
    """Configure application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    root_logger.addHandler(handler)
    root_logger.setLevel(level)


def get_logger(name: str) -> ContextLogger:
    """Get a context-aware logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        ContextLogger instance
    """
    return ContextLogger(logging.getLogger(name))


@contextmanager
def request_scope(request_id: Optional[str] = None) -> Iterator[str]:
    """Tag all log records emitted inside the block with one request ID.

    A nested scope reuses the enclosing request ID unless one is given.

    Args:
        request_id: Optional request ID. A new UUID is generated when neither
            this nor an enclosing scope provides one.

    Yields:
        The active request ID
    """
    current = request_id or request_id_var.get() or str(uuid.uuid4())
    token = request_id_var.set(current)
    try:
        yield current
    finally:
        request_id_var.reset(token)


def get_request_id() -> Optional[str]:
    """Get the current request ID from context."""
    return request_id_var.get()


class Timer:
    """Context manager for timing pipeline stages."""

    def __init__(self, name: str):
        self.name = name
        self.start_time: Optional[float] = None
        self.elapsed_ms: Optional[int] = None

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args):
        if self.start_time is not None:
            self.elapsed_ms = int((time.perf_counter() - self.start_time) * 1000)

    def get_elapsed_ms(self) -> int:
        """Get elapsed time in milliseconds, also while still running."""
        if self.elapsed_ms is not None:
            return self.elapsed_ms
        if self.start_time is not None:
            return int((time.perf_counter() - self.start_time) * 1000)
        return 0
