# Infrastructure module - logging and configuration

from .logging import (
    get_logger, configure_logging, RequestContext,
    get_request_id, generate_request_id, with_request_context,
)
from .config import ClientConfig, ConfigManager

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "RequestContext",
    "get_request_id",
    "generate_request_id",
    "with_request_context",
    # Config
    "ClientConfig",
    "ConfigManager",
]
