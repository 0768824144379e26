# API module - rate-limited, authenticated MangaDex access
# One global rate limiter, one credential set per client

from .rate_limiter import RateLimiter, get_global_limiter
from .transport import HttpTransport, build_query
from .executor import AuthenticatedExecutor
from .pagination import Collection, Page, PageCursor, PaginatedCollector, slice_range
from .client import MangaDexClient

__all__ = [
    "RateLimiter", "get_global_limiter",
    "HttpTransport", "build_query",
    "AuthenticatedExecutor",
    "Collection", "Page", "PageCursor", "PaginatedCollector", "slice_range",
    "MangaDexClient",
]
