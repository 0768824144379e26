"""
Error Handling Module
---------------------
Typed client errors carried inside results.
Failures are values, not exceptions: every layer boundary returns a Result.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, auto
from typing import Any, Dict, Generic, List, Optional, TypeVar
import logging

T = TypeVar("T")

# Diagnostic bodies longer than this are cut before logging/storing
MAX_DIAGNOSTIC_BODY = 500


class ErrorCategory(Enum):
    """Categories of errors for handling decisions."""
    PARAMETER = auto()   # Missing/invalid credentials or arguments, no network call made
    TRANSPORT = auto()   # Non-2xx status, network fault, timeout, limiter interrupted
    DECODE = auto()      # Malformed or unexpected response body
    AUTH = auto()        # Login/refresh exhausted
    API = auto()         # Server envelope reported result != "ok"


@dataclass
class ClientError:
    """
    Structured error with metadata.

    Used for consistent error handling and reporting.
    """
    message: str
    category: ErrorCategory = ErrorCategory.TRANSPORT
    status_code: Optional[int] = None
    body: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def retryable(self) -> bool:
        """Whether a failed authenticated attempt may be retried after re-login."""
        return self.category == ErrorCategory.TRANSPORT

    def __repr__(self) -> str:
        if self.status_code is not None:
            return f"{type(self).__name__}({self.status_code}: {self.message})"
        return f"{type(self).__name__}({self.message})"


@dataclass(repr=False)
class ParameterError(ClientError):
    category: ErrorCategory = ErrorCategory.PARAMETER


@dataclass(repr=False)
class TransportError(ClientError):
    category: ErrorCategory = ErrorCategory.TRANSPORT


@dataclass(repr=False)
class DecodeError(ClientError):
    category: ErrorCategory = ErrorCategory.DECODE


@dataclass(repr=False)
class AuthError(ClientError):
    category: ErrorCategory = ErrorCategory.AUTH


@dataclass(repr=False)
class ApiError(ClientError):
    category: ErrorCategory = ErrorCategory.API


def truncate_body(body: Optional[str], limit: int = MAX_DIAGNOSTIC_BODY) -> Optional[str]:
    """Cut a response body down to a loggable diagnostic."""
    if body is None:
        return None
    if len(body) > limit:
        return body[:limit] + "... (truncated)"
    return body


@dataclass
class Result(Generic[T]):
    """
    Outcome of a layer call: either a value or a typed error.

    An empty collection is a successful value; a missing value is always
    paired with an error.
    """
    value: Optional[T] = None
    error: Optional[ClientError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ClientError) -> "Result[T]":
        return cls(error=error)

    def unwrap(self) -> T:
        """Return the value or raise if this result carries an error."""
        if self.error is not None:
            raise ValueError(f"unwrap() on failed result: {self.error!r}")
        return self.value


class ErrorHandler:
    """
    Central error handler with logging and bounded history.
    """

    LEVELS: Dict[ErrorCategory, int] = {
        ErrorCategory.PARAMETER: logging.WARNING,
        ErrorCategory.DECODE: logging.ERROR,
        ErrorCategory.TRANSPORT: logging.WARNING,
        ErrorCategory.API: logging.WARNING,
        ErrorCategory.AUTH: logging.ERROR,
    }

    def __init__(self, max_history: int = 100):
        self._logger = logging.getLogger("mangadex.errors")
        self._error_history: List[ClientError] = []
        self._max_history = max_history

    def handle(self, error: ClientError, context: str = "") -> ClientError:
        """Log an error and record it. Returns the error for chaining."""
        level = self.LEVELS.get(error.category, logging.ERROR)
        prefix = f"{context}: " if context else ""
        self._logger.log(
            level,
            f"{prefix}{error.category.name}: {error.message}",
            extra={"status_code": error.status_code},
        )
        if error.body:
            self._logger.debug(f"{prefix}response body: {error.body}")

        self._error_history.append(error)
        if len(self._error_history) > self._max_history:
            self._error_history.pop(0)
        return error

    def get_error_stats(self) -> Dict[str, int]:
        """Get error statistics."""
        stats: Dict[str, int] = {}
        for error in self._error_history:
            key = error.category.name
            stats[key] = stats.get(key, 0) + 1
        return stats
