# Core module - typed errors and results shared by every layer
# Failures travel as values; exceptions are for programming errors only

from .errors import (
    ErrorCategory, ClientError, ParameterError, TransportError,
    DecodeError, AuthError, ApiError, Result, ErrorHandler, truncate_body,
)

__all__ = [
    "ErrorCategory", "ClientError", "ParameterError", "TransportError",
    "DecodeError", "AuthError", "ApiError", "Result", "ErrorHandler",
    "truncate_body",
]
