"""
Token Manager
-------------
Owns the credential and the current TokenSet.

State machine (derived, never stored):
- NO_TOKEN: nothing installed -> login
- VALID: outside the safety margin -> reuse
- EXPIRING: inside the margin with a refresh token -> refresh, else login
- INVALID: inside the margin, no refresh token -> login

All observation and mutation happens under one lock, so concurrent callers
queue behind a single refresh/login and then reuse its outcome.
"""

from datetime import datetime, timezone
from threading import RLock
from typing import Callable, Optional
import logging

from core.errors import AuthError, ErrorCategory, Result

from . import oauth
from .tokens import DEFAULT_SAFETY_MARGIN_SECONDS, Credential, TokenSet, TokenState


class TokenManager:
    """
    Token lifecycle: reuse, proactive refresh, re-login.

    The transport is used only for token-endpoint calls; it shares the
    process rate limiter with every other request.
    """

    def __init__(
        self,
        credential: Credential,
        transport,
        token_url: str,
        safety_margin_seconds: int = DEFAULT_SAFETY_MARGIN_SECONDS,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._credential = credential
        self._transport = transport
        self._token_url = token_url
        self._safety_margin = safety_margin_seconds
        self._clock = clock
        self._tokens: Optional[TokenSet] = None
        self._lock = RLock()
        self._logger = logging.getLogger("mangadex.auth.tokens")

    @property
    def state(self) -> TokenState:
        with self._lock:
            tokens = self._tokens
            if tokens is None:
                return TokenState.NO_TOKEN
            if not tokens.is_expired(self._safety_margin, now=self._clock()):
                return TokenState.VALID
            return TokenState.EXPIRING if tokens.refresh_token else TokenState.INVALID

    @property
    def current_tokens(self) -> Optional[TokenSet]:
        with self._lock:
            return self._tokens

    def get_valid_token(self) -> Result[str]:
        """
        Return a usable access token, refreshing or logging in as needed.

        Failure leaves the manager in NO_TOKEN and returns the error: a
        ParameterError if the credential cannot be used at all, otherwise an
        AuthError wrapping the last failure.
        """
        with self._lock:
            state = self.state

            if state is TokenState.VALID:
                self._logger.debug("Using existing valid access token")
                return Result.success(self._tokens.access_token)

            if state is TokenState.EXPIRING:
                self._logger.info("Access token expired or nearing expiry, refreshing")
                refreshed = oauth.refresh(
                    self._transport,
                    self._token_url,
                    self._credential.client_id,
                    self._credential.client_secret,
                    self._tokens.refresh_token,
                    clock=self._clock,
                )
                if refreshed.ok:
                    self._tokens = refreshed.value
                    self._logger.info("Access token refreshed")
                    return Result.success(self._tokens.access_token)
                self._logger.warning(f"Token refresh failed ({refreshed.error!r}), attempting new login")
                self._tokens = None

            self._logger.info("Attempting new login to obtain access token")
            logged_in = oauth.login(self._transport, self._token_url, self._credential, clock=self._clock)
            if logged_in.ok:
                self._tokens = logged_in.value
                self._logger.info("Login successful")
                return Result.success(self._tokens.access_token)

            self._tokens = None
            error = logged_in.error
            if error.category is ErrorCategory.PARAMETER:
                self._logger.error(f"Cannot log in: {error.message}")
                return Result.failure(error)
            self._logger.error(f"Failed to obtain access token: {error!r}")
            return Result.failure(AuthError(
                f"Login failed: {error.message}",
                status_code=error.status_code,
                body=error.body,
                details={"cause": error.category.name},
            ))

    def invalidate(self) -> None:
        """Discard the current TokenSet; the next get_valid_token() logs in again."""
        with self._lock:
            if self._tokens is not None:
                self._logger.info("Discarding current token set")
            self._tokens = None
