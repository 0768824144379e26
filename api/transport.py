"""
HTTP Transport
--------------
Every physical request goes through here, and through the rate limiter.

Rules:
- One limiter slot per physical request, token endpoint included
- 2xx is success; everything else is a TransportError
- No retries at this layer
- Response shapes: raw bytes, raw text, typed JSON decode
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Type, TypeVar, Union
import logging

import httpx
from pydantic import TypeAdapter, ValidationError

from core.errors import DecodeError, Result, TransportError, truncate_body
from models.responses import TokenResponse

from .rate_limiter import RateLimiter, get_global_limiter

T = TypeVar("T")

DEFAULT_USER_AGENT = "MangaDexClient/1.0"

QueryParams = Union[Mapping[str, Any], Sequence[Tuple[str, Any]]]


class HttpTransport:
    """
    Rate-limited HTTP transport.

    One httpx.Client per transport, shared across threads.
    """

    def __init__(
        self,
        rate_limiter: Optional[RateLimiter] = None,
        timeout_seconds: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
        client: Optional[httpx.Client] = None,
    ):
        self.rate_limiter = rate_limiter or get_global_limiter()
        self.user_agent = user_agent
        self._client = client or httpx.Client(timeout=timeout_seconds, follow_redirects=True)
        self._logger = logging.getLogger("mangadex.api.transport")
        self._adapters: Dict[Any, TypeAdapter] = {}

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def _build_headers(self, headers: Optional[Mapping[str, str]]) -> Dict[str, str]:
        """Caller headers plus a default User-Agent if none was given."""
        merged = dict(headers or {})
        if not any(k.lower() == "user-agent" for k in merged):
            merged["User-Agent"] = self.user_agent
        return merged

    def send(
        self,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[QueryParams] = None,
        form: Optional[Mapping[str, str]] = None,
    ) -> Result[httpx.Response]:
        """
        Issue one physical request after acquiring a limiter slot.

        Returns the response on 2xx, otherwise a TransportError carrying the
        status code (if any) and a truncated body.
        """
        if not self.rate_limiter.acquire_slot():
            return Result.failure(TransportError(f"{method} {url}: rate limiter wait interrupted"))

        self._logger.debug(f"Sending {method} to {url}", extra={"url": url})
        try:
            response = self._client.request(
                method,
                url,
                headers=self._build_headers(headers),
                params=params,
                data=form,
            )
        except httpx.TimeoutException as e:
            self._logger.warning(f"{method} {url} timed out: {e}")
            return Result.failure(TransportError(f"{method} {url}: request timed out"))
        except httpx.HTTPError as e:
            self._logger.warning(f"{method} {url} failed: {type(e).__name__}: {e}")
            return Result.failure(TransportError(f"{method} {url}: network error: {e}"))

        if 200 <= response.status_code < 300:
            return Result.success(response)

        body = truncate_body(response.text)
        self._logger.warning(
            f"HTTP {method} request to {url} failed. Status: {response.status_code}, Body: {body}",
            extra={"status_code": response.status_code, "url": url},
        )
        return Result.failure(TransportError(
            f"{method} {url}: HTTP {response.status_code}",
            status_code=response.status_code,
            body=body,
        ))

    def get_bytes(self, url: str, headers: Optional[Mapping[str, str]] = None) -> Result[bytes]:
        """GET returning the raw body bytes (binary downloads)."""
        result = self.send("GET", url, headers=headers)
        if not result.ok:
            return Result.failure(result.error)
        return Result.success(result.value.content)

    def get_text(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[QueryParams] = None,
    ) -> Result[str]:
        """GET returning the raw body text, for callers doing their own decoding."""
        result = self.send("GET", url, headers=headers, params=params)
        if not result.ok:
            return Result.failure(result.error)
        return Result.success(result.value.text)

    def get_json(
        self,
        url: str,
        shape: Type[T],
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[QueryParams] = None,
    ) -> Result[T]:
        """GET and decode the JSON body into `shape`."""
        text = self.get_text(url, headers=headers, params=params)
        if not text.ok:
            return Result.failure(text.error)
        return self.decode(text.value, shape, source=url)

    def post_form(self, url: str, form: Mapping[str, str]) -> Result[TokenResponse]:
        """POST a form-urlencoded body (token endpoint) and decode the token response."""
        result = self.send(
            "POST",
            url,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            form=form,
        )
        if not result.ok:
            return Result.failure(result.error)
        return self.decode(result.value.text, TokenResponse, source=url)

    def decode(self, text: str, shape: Type[T], source: str = "") -> Result[T]:
        """Decode JSON text into `shape`; malformed or mismatched bodies are DecodeErrors."""
        adapter = self._adapters.get(shape)
        if adapter is None:
            adapter = self._adapters[shape] = TypeAdapter(shape)
        try:
            return Result.success(adapter.validate_json(text))
        except ValidationError as e:
            self._logger.error(f"Failed to decode response from {source} as {_shape_name(shape)}: {e}")
            return Result.failure(DecodeError(
                f"{source}: could not decode {_shape_name(shape)} ({e.error_count()} error(s))",
                body=truncate_body(text),
            ))


def _shape_name(shape: Any) -> str:
    return getattr(shape, "__name__", repr(shape))


def build_query(params: Mapping[str, Union[str, int, bool, List[str], None]]) -> List[Tuple[str, str]]:
    """
    Flatten a mapping into query pairs, repeating keys for list values.

    `{"translatedLanguage[]": ["en", "es"]}` becomes two pairs with the same
    key. None values and empty lists are dropped.
    """
    pairs: List[Tuple[str, str]] = []
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((key, str(v)) for v in value)
        elif isinstance(value, bool):
            pairs.append((key, "true" if value else "false"))
        else:
            pairs.append((key, str(value)))
    return pairs
