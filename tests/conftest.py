"""
Test Configuration
------------------
Shared fixtures: fake clocks, a scripted token transport and an in-process
HTTP server built on httpx.MockTransport.

No test touches the network or sleeps for real.
"""

import json
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
from urllib.parse import parse_qsl

import httpx
import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from api.rate_limiter import RateLimiter
from api.transport import HttpTransport
from core.errors import Result, TransportError
from models.responses import TokenResponse

TOKEN_URL = "https://auth.test/token"
API_URL = "https://api.test"


# =============================================================================
# Clocks
# =============================================================================

class FakeClock:
    """Monotonic clock whose sleep advances time instead of blocking."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> bool:
        self.sleeps.append(seconds)
        self.now += seconds
        return True


class FakeWallClock:
    """Timezone-aware wall clock for token expiry checks."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def wall_clock():
    return FakeWallClock()


@pytest.fixture
def limiter(fake_clock):
    return RateLimiter(interval_ms=500, clock=fake_clock, sleep=fake_clock.sleep)


# =============================================================================
# Scripted token transport
# =============================================================================

class StubTokenTransport:
    """
    Stands in for HttpTransport on token-endpoint calls.

    Each post_form pops the next scripted Result; every call is recorded.
    """

    def __init__(self, responses: Optional[List[Result]] = None):
        self.responses: List[Result] = list(responses or [])
        self.calls: List[Tuple[str, Dict[str, str]]] = []

    def queue(self, *responses: Result) -> None:
        self.responses.extend(responses)

    def post_form(self, url: str, form: Dict[str, str]) -> Result:
        self.calls.append((url, dict(form)))
        if not self.responses:
            return Result.failure(TransportError("no scripted response", status_code=500))
        return self.responses.pop(0)

    @property
    def grant_types(self) -> List[str]:
        return [form["grant_type"] for _, form in self.calls]


def token_ok(access: str = "access-1", refresh: Optional[str] = "refresh-1", expires_in: int = 900) -> Result:
    return Result.success(TokenResponse(access_token=access, refresh_token=refresh, expires_in=expires_in))


def token_fail(status: int = 401) -> Result:
    return Result.failure(TransportError("token endpoint rejected", status_code=status))


@pytest.fixture
def token_transport():
    return StubTokenTransport()


# =============================================================================
# In-process HTTP server
# =============================================================================

Handler = Callable[[httpx.Request], httpx.Response]


class MockServer:
    """
    Route table for httpx.MockTransport.

    Routes are keyed by (method, path). A route is either a handler or a list
    of responses served in order (the last one repeats).
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Union[Handler, List[httpx.Response]]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, path: str, route: Union[Handler, httpx.Response, List[httpx.Response]]) -> None:
        if isinstance(route, httpx.Response):
            route = [route]
        self.routes[(method.upper(), path)] = route

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"result": "error", "errors": [{"title": "not found"}]})
        if callable(route):
            return route(request)
        return route.pop(0) if len(route) > 1 else route[0]

    def requests_to(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]


def form_of(request: httpx.Request) -> Dict[str, str]:
    return dict(parse_qsl(request.content.decode()))


def token_response(access: str = "access-1", refresh: Optional[str] = "refresh-1", expires_in: int = 900) -> httpx.Response:
    body: Dict[str, Any] = {"access_token": access, "expires_in": expires_in}
    if refresh is not None:
        body["refresh_token"] = refresh
    return httpx.Response(200, json=body)


def envelope(data: Any, total: Optional[int] = None, result: str = "ok", **extra) -> httpx.Response:
    body: Dict[str, Any] = {"result": result, "response": "collection", "data": data}
    if total is not None:
        body["total"] = total
    body.update(extra)
    return httpx.Response(200, content=json.dumps(body).encode(), headers={"Content-Type": "application/json"})


def chapter_json(chapter_id: str, chapter: str = "1", volume: Optional[str] = "1", lang: str = "en") -> Dict[str, Any]:
    return {
        "id": chapter_id,
        "type": "chapter",
        "attributes": {
            "title": f"Chapter {chapter}",
            "volume": volume,
            "chapter": chapter,
            "pages": 20,
            "translatedLanguage": lang,
            "publishAt": "2024-01-01T00:00:00+00:00",
        },
        "relationships": [],
    }


@pytest.fixture
def server():
    return MockServer()


@pytest.fixture
def http_transport(server, limiter):
    transport = HttpTransport(
        rate_limiter=limiter,
        client=httpx.Client(transport=httpx.MockTransport(server)),
    )
    yield transport
    transport.close()
