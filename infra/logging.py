"""
Centralized Logging
-------------------
Structured logging with request_id propagation for per-call traceability.

Design:
- Every logical client call (one fetch, one collection pass) gets a request_id
- request_id propagates through: Collector -> Executor -> TokenManager -> Transport
- Console output through Rich, file output as JSON lines
- Severity discipline: DEBUG=wire/limiter, INFO=state, WARNING=recoverable, ERROR=exhausted

Usage:
    from infra.logging import get_logger, RequestContext

    logger = get_logger("api.client")

    with RequestContext() as request_id:
        logger.info("Fetching chapters")
"""

import contextvars
import json
import logging
import uuid
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from typing import Callable, Optional

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER_NAME = "mangadex"

# Context variable for request_id - thread-safe and async-safe
_request_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "request_id", default=None
)


def generate_request_id() -> str:
    """Generate a unique request ID."""
    return f"req_{uuid.uuid4().hex[:12]}"


def get_request_id() -> Optional[str]:
    """Get the current request ID from context."""
    return _request_id_var.get()


class RequestContext:
    """
    Context manager for request scoping.

    Nested contexts keep the outer request_id so one logical call
    (e.g. a whole pagination pass) shares a single id.
    """

    def __init__(self, request_id: Optional[str] = None):
        self._request_id = request_id
        self._token: Optional[contextvars.Token] = None

    def __enter__(self) -> str:
        current = get_request_id()
        if self._request_id is None and current is not None:
            return current
        self._token = _request_id_var.set(self._request_id or generate_request_id())
        return _request_id_var.get()

    def __exit__(self, *args) -> None:
        if self._token is not None:
            _request_id_var.reset(self._token)
            self._token = None


def with_request_context(func: Callable) -> Callable:
    """Decorator running the wrapped call inside a RequestContext."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        with RequestContext():
            return func(*args, **kwargs)
    return wrapper


class RequestIdFilter(logging.Filter):
    """Logging filter that adds request_id to every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured file logging."""

    EXTRA_KEYS = ("status_code", "url", "offset", "attempt", "wait_ms")

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key in self.EXTRA_KEYS:
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        return json.dumps(log_entry)


class FileRotatingHandler(logging.FileHandler):
    """Simple file handler with size-based rotation."""

    MAX_BYTES = 10 * 1024 * 1024  # 10 MB
    BACKUP_COUNT = 3

    def __init__(self, filename: str, max_bytes: Optional[int] = None, backup_count: Optional[int] = None):
        self._base_path = Path(filename)
        self._max_bytes = max_bytes or self.MAX_BYTES
        self._backup_count = backup_count or self.BACKUP_COUNT
        self._base_path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(str(self._base_path), mode="a", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        if self._base_path.exists() and self._base_path.stat().st_size > self._max_bytes:
            self._rotate()
        super().emit(record)

    def _rotate(self) -> None:
        """Rotate log files."""
        self.close()

        for i in range(self._backup_count - 1, 0, -1):
            src = self._base_path.with_suffix(f".{i}.log")
            dst = self._base_path.with_suffix(f".{i + 1}.log")
            if src.exists():
                if dst.exists():
                    dst.unlink()
                src.rename(dst)

        if self._base_path.exists():
            backup = self._base_path.with_suffix(".1.log")
            if backup.exists():
                backup.unlink()
            self._base_path.rename(backup)

        self.stream = self._open()


def configure_logging(
    level: int = logging.INFO,
    log_dir: Optional[str] = None,
    console: bool = True,
    file: bool = False,
    rich_console: Optional[Console] = None,
) -> None:
    """
    Configure the client logging system.

    Args:
        level: Logging level (default INFO)
        log_dir: Directory for log files (default: ./logs)
        console: Enable console output
        file: Enable JSON file output
        rich_console: Console to render to (default: stderr)
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    request_filter = RequestIdFilter()

    if console:
        console_handler = RichHandler(
            console=rich_console or Console(stderr=True),
            rich_tracebacks=True,
            show_path=False,
        )
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter("[%(request_id)s] %(message)s"))
        console_handler.addFilter(request_filter)
        root_logger.addHandler(console_handler)

    if file:
        log_path = Path(log_dir) if log_dir else Path("logs")
        file_handler = FileRotatingHandler(str(log_path / "mangadex.log"))
        file_handler.setLevel(logging.DEBUG)  # File gets everything
        file_handler.setFormatter(JSONFormatter())
        file_handler.addFilter(request_filter)
        root_logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the client namespace.

    Args:
        name: Logger name (prefixed with 'mangadex.' if not already)
    """
    if not name.startswith(ROOT_LOGGER_NAME):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
