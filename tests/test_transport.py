"""
Transport Tests
---------------
Tests cover:
- Every physical request takes a limiter slot
- 2xx success vs TransportError classification with truncated body
- Network errors and timeouts become TransportErrors
- Bytes, text and typed decode shapes; DecodeError on malformed JSON
- Form POST to the token endpoint
- Repeated query keys
"""

from pathlib import Path
import sys
from typing import List, Optional

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from api.rate_limiter import RateLimiter
from api.transport import HttpTransport, build_query
from core.errors import ErrorCategory
from models.responses import ChapterFeedEnvelope, Envelope
from conftest import API_URL, TOKEN_URL, chapter_json, envelope, form_of, token_response


class CountingLimiter(RateLimiter):
    def __init__(self, allow: bool = True):
        super().__init__(interval_ms=1, sleep=lambda s: True)
        self.calls = 0
        self.allow = allow

    def acquire_slot(self, timeout: Optional[float] = None) -> bool:
        self.calls += 1
        return self.allow and super().acquire_slot(timeout)


def make_transport(server, limiter) -> HttpTransport:
    return HttpTransport(rate_limiter=limiter, client=httpx.Client(transport=httpx.MockTransport(server)))


class TestRateLimiting:
    def test_each_request_acquires_a_slot(self, server):
        limiter = CountingLimiter()
        server.add("GET", "/a", httpx.Response(200, text="ok"))
        server.add("POST", "/token", token_response())
        transport = make_transport(server, limiter)

        transport.get_text(f"{API_URL}/a")
        transport.get_bytes(f"{API_URL}/a")
        transport.post_form("https://api.test/token", {"grant_type": "client_credentials"})

        assert limiter.calls == 3
        assert len(server.requests) == 3

    def test_limiter_refusal_means_no_request(self, server):
        limiter = CountingLimiter(allow=False)
        server.add("GET", "/a", httpx.Response(200, text="ok"))
        transport = make_transport(server, limiter)

        result = transport.get_text(f"{API_URL}/a")

        assert not result.ok
        assert result.error.category is ErrorCategory.TRANSPORT
        assert server.requests == []


class TestClassification:
    @pytest.mark.parametrize("status", [200, 201, 204, 299])
    def test_2xx_is_success(self, server, http_transport, status):
        server.add("GET", "/a", httpx.Response(status, text=""))
        assert http_transport.send("GET", f"{API_URL}/a").ok

    @pytest.mark.parametrize("status", [301, 400, 401, 404, 429, 500, 503])
    def test_non_2xx_is_transport_error(self, server, limiter, status):
        server.add("GET", "/a", httpx.Response(status, text="nope"))
        transport = HttpTransport(
            rate_limiter=limiter,
            client=httpx.Client(transport=httpx.MockTransport(server), follow_redirects=False),
        )

        result = transport.send("GET", f"{API_URL}/a")

        assert result.error.category is ErrorCategory.TRANSPORT
        assert result.error.status_code == status
        assert result.error.body == "nope"

    def test_error_body_is_truncated(self, server, http_transport):
        server.add("GET", "/a", httpx.Response(500, text="x" * 2000))

        result = http_transport.send("GET", f"{API_URL}/a")

        assert result.error.body.startswith("x" * 500)
        assert result.error.body.endswith("... (truncated)")
        assert len(result.error.body) < 600

    def test_network_error(self, limiter):
        def boom(request):
            raise httpx.ConnectError("connection refused", request=request)

        transport = make_transport(boom, limiter)
        result = transport.send("GET", f"{API_URL}/a")

        assert result.error.category is ErrorCategory.TRANSPORT
        assert result.error.status_code is None

    def test_timeout(self, limiter):
        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        transport = make_transport(slow, limiter)
        result = transport.send("GET", f"{API_URL}/a")

        assert result.error.category is ErrorCategory.TRANSPORT
        assert "timed out" in result.error.message


class TestShapes:
    def test_bytes(self, server, http_transport):
        server.add("GET", "/img.png", httpx.Response(200, content=b"\x89PNG\x00\x01"))
        assert http_transport.get_bytes(f"{API_URL}/img.png").value == b"\x89PNG\x00\x01"

    def test_text(self, server, http_transport):
        server.add("GET", "/raw", httpx.Response(200, text='{"raw": true}'))
        assert http_transport.get_text(f"{API_URL}/raw").value == '{"raw": true}'

    def test_typed_decode(self, server, http_transport):
        server.add("GET", "/feed", envelope([chapter_json("c1"), chapter_json("c2", "2")], total=2))

        result = http_transport.get_json(f"{API_URL}/feed", ChapterFeedEnvelope)

        assert result.ok
        assert [c.id for c in result.value.data] == ["c1", "c2"]
        assert result.value.total == 2
        assert result.value.data[0].attributes.translated_language == "en"

    def test_malformed_json_is_decode_error(self, server, http_transport):
        server.add("GET", "/feed", httpx.Response(200, text="{not json"))

        result = http_transport.get_json(f"{API_URL}/feed", ChapterFeedEnvelope)

        assert result.error.category is ErrorCategory.DECODE
        assert result.error.body == "{not json"

    def test_shape_mismatch_is_decode_error(self, server, http_transport):
        server.add("GET", "/feed", httpx.Response(200, json={"result": "ok", "data": "not-a-list"}))

        result = http_transport.get_json(f"{API_URL}/feed", Envelope[List[int]])

        assert result.error.category is ErrorCategory.DECODE


class TestRequests:
    def test_form_post(self, server, http_transport):
        server.add("POST", "/token", token_response(access="a", refresh=None, expires_in=60))

        result = http_transport.post_form(TOKEN_URL, {"grant_type": "password", "username": "u p"})

        request = server.requests[0]
        assert request.headers["content-type"] == "application/x-www-form-urlencoded"
        assert form_of(request) == {"grant_type": "password", "username": "u p"}
        assert result.value.access_token == "a"
        assert result.value.refresh_token is None

    def test_default_user_agent(self, server, http_transport):
        server.add("GET", "/a", httpx.Response(200))
        http_transport.send("GET", f"{API_URL}/a")
        assert server.requests[0].headers["user-agent"] == "MangaDexClient/1.0"

    def test_caller_user_agent_kept(self, server, http_transport):
        server.add("GET", "/a", httpx.Response(200))
        http_transport.send("GET", f"{API_URL}/a", headers={"user-agent": "custom"})
        assert server.requests[0].headers["user-agent"] == "custom"

    def test_repeated_query_keys(self, server, http_transport):
        server.add("GET", "/feed", envelope([]))

        http_transport.get_text(
            f"{API_URL}/feed",
            params=build_query({"translatedLanguage[]": ["en", "es"], "limit": 100, "skip": None}),
        )

        params = server.requests[0].url.params
        assert params.get_list("translatedLanguage[]") == ["en", "es"]
        assert params["limit"] == "100"
        assert "skip" not in params


def test_build_query_booleans():
    assert build_query({"forcePort443": True}) == [("forcePort443", "true")]
    assert build_query({"forcePort443": False}) == [("forcePort443", "false")]
