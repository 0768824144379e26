"""
Authenticated Request Executor
------------------------------
Runs a request function with a bearer token and retries it once after
forcing re-authentication.

Any failed transport attempt made with a previously valid token is treated
as a possible server-side token invalidation, including pure network errors.
Parameter and decode errors are never retried.
"""

from threading import Event
from typing import Callable, Dict, Optional, TypeVar
import logging

from core.errors import Result

T = TypeVar("T")

MAX_ATTEMPTS = 2

RequestFunction = Callable[[Dict[str, str]], Result[T]]


class AuthenticatedExecutor:
    """Wraps request functions with token injection and a single retry."""

    def __init__(self, token_manager):
        self.token_manager = token_manager
        self._logger = logging.getLogger("mangadex.api.executor")

    def execute(
        self,
        request: RequestFunction,
        requires_auth: bool = True,
        cancel: Optional[Event] = None,
    ) -> Result[T]:
        """
        Execute `request(headers)`, at most MAX_ATTEMPTS times.

        Args:
            request: Callable receiving the headers to send and returning a Result.
            requires_auth: When False no token is fetched and no retry happens.
            cancel: Once set, a failed attempt is returned without the retry.
        """
        result: Result[T] = Result()
        for attempt in range(1, MAX_ATTEMPTS + 1):
            headers: Dict[str, str] = {}
            token_obtained = False

            if requires_auth:
                token = self.token_manager.get_valid_token()
                if not token.ok:
                    self._logger.error(f"Could not obtain access token: {token.error!r}")
                    return Result.failure(token.error)
                headers["Authorization"] = f"Bearer {token.value}"
                token_obtained = True

            result = request(headers)
            if result.ok:
                return result

            if not (requires_auth and token_obtained and result.error.retryable):
                return result
            if cancel is not None and cancel.is_set():
                self._logger.info(f"Cancelled after attempt {attempt}; not retrying", extra={"attempt": attempt})
                return result
            if attempt < MAX_ATTEMPTS:
                self._logger.warning(
                    f"Authenticated request failed ({result.error!r}); "
                    f"suspecting invalidated token, re-authenticating and retrying once",
                    extra={"attempt": attempt},
                )
                self.token_manager.invalidate()

        return result
