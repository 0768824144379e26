"""
Credentials and Tokens
----------------------
Immutable value types owned by the TokenManager.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Union

DEFAULT_SAFETY_MARGIN_SECONDS = 300


class GrantMode(str, Enum):
    """OAuth2 grant used to obtain a token."""
    PASSWORD = "password"
    CLIENT_CREDENTIALS = "client_credentials"
    REFRESH_TOKEN = "refresh_token"

    @classmethod
    def parse(cls, value: Union[str, "GrantMode"]) -> Optional["GrantMode"]:
        """Case-insensitive lookup; None for unknown values."""
        if isinstance(value, GrantMode):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return None


class TokenState(Enum):
    """Derived state of the token slot."""
    NO_TOKEN = "no_token"
    VALID = "valid"
    EXPIRING = "expiring"   # Inside the safety margin, refresh possible
    INVALID = "invalid"     # Inside the safety margin, no refresh token


@dataclass(frozen=True)
class Credential:
    """Client credentials, fixed for the lifetime of a client."""
    client_id: str
    client_secret: str = field(repr=False)
    grant_mode: str = GrantMode.PASSWORD.value
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)


@dataclass(frozen=True)
class TokenSet:
    """
    Access token, optional refresh token and absolute expiry.

    Valid by construction: an empty access token or a missing expiry raises.
    Expiry is derived from the clock, never stored as a flag.
    """
    access_token: str = field(repr=False)
    refresh_token: Optional[str] = field(default=None, repr=False)
    expires_at: Optional[datetime] = None

    def __post_init__(self):
        if self.access_token is None or not self.access_token.strip():
            raise ValueError("Access token cannot be empty")
        if self.expires_at is None:
            raise ValueError("Expiry time cannot be missing")

    @classmethod
    def from_expires_in(
        cls,
        access_token: str,
        refresh_token: Optional[str],
        expires_in: int,
        now: Optional[datetime] = None,
    ) -> "TokenSet":
        now = now or datetime.now(timezone.utc)
        return cls(access_token, refresh_token, now + timedelta(seconds=expires_in))

    def is_expired(
        self,
        safety_margin_seconds: int = DEFAULT_SAFETY_MARGIN_SECONDS,
        now: Optional[datetime] = None,
    ) -> bool:
        """True once `now` is past expiry minus the safety margin."""
        now = now or datetime.now(timezone.utc)
        return now > self.expires_at - timedelta(seconds=safety_margin_seconds)

    def __repr__(self) -> str:
        refresh = "'********'" if self.refresh_token else "None"
        return f"TokenSet(access_token='********', refresh_token={refresh}, expires_at={self.expires_at!r})"
