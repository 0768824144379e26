"""
OAuth Grants
------------
Login and refresh calls against the token endpoint.

Arguments are validated before anything touches the network: a missing
client id/secret, password grant without username/password, an unsupported
grant or an empty refresh token fail with ParameterError and zero requests.
"""

from datetime import datetime, timezone
from typing import Callable, Dict, Optional
import logging

from core.errors import DecodeError, ParameterError, Result
from models.responses import TokenResponse

from .tokens import Credential, GrantMode, TokenSet

logger = logging.getLogger("mangadex.auth.oauth")

Clock = Callable[[], datetime]


def has_text(value: Optional[str]) -> bool:
    return value is not None and value.strip() != ""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_token_set(
    response: TokenResponse,
    fallback_refresh_token: Optional[str],
    clock: Clock,
) -> Result[TokenSet]:
    refresh_token = response.refresh_token if has_text(response.refresh_token) else fallback_refresh_token
    try:
        return Result.success(TokenSet.from_expires_in(
            response.access_token, refresh_token, response.expires_in, now=clock()
        ))
    except ValueError as e:
        logger.error(f"Token endpoint returned an unusable token: {e}")
        return Result.failure(DecodeError(f"Unusable token response: {e}"))


def login(transport, token_url: str, credential: Credential, clock: Clock = _utcnow) -> Result[TokenSet]:
    """Obtain a new TokenSet with the credential's grant mode."""
    if not has_text(credential.client_id) or not has_text(credential.client_secret):
        return Result.failure(ParameterError("Missing client_id or client_secret for login"))

    grant = GrantMode.parse(credential.grant_mode)
    form: Dict[str, str] = {
        "client_id": credential.client_id,
        "client_secret": credential.client_secret,
    }
    if grant is GrantMode.PASSWORD:
        if not has_text(credential.username) or not has_text(credential.password):
            return Result.failure(ParameterError("Password grant requires username and password"))
        form.update(grant_type=GrantMode.PASSWORD.value, username=credential.username, password=credential.password)
    elif grant is GrantMode.CLIENT_CREDENTIALS:
        form["grant_type"] = GrantMode.CLIENT_CREDENTIALS.value
    else:
        return Result.failure(ParameterError(f"Unsupported grant type for login: {credential.grant_mode!r}"))

    logger.info(f"Attempting login with grant '{form['grant_type']}'")
    response = transport.post_form(token_url, form)
    if not response.ok:
        return Result.failure(response.error)
    return _to_token_set(response.value, None, clock)


def refresh(
    transport,
    token_url: str,
    client_id: str,
    client_secret: str,
    refresh_token: Optional[str],
    clock: Clock = _utcnow,
) -> Result[TokenSet]:
    """
    Exchange a refresh token for a new TokenSet.

    If the server omits a new refresh token the old one is carried over.
    """
    if not has_text(client_id) or not has_text(client_secret):
        return Result.failure(ParameterError("Missing client_id or client_secret for refresh"))
    if not has_text(refresh_token):
        return Result.failure(ParameterError("Refresh token is empty"))

    form = {
        "grant_type": GrantMode.REFRESH_TOKEN.value,
        "refresh_token": refresh_token,
        "client_id": client_id,
        "client_secret": client_secret,
    }
    logger.info("Attempting token refresh")
    response = transport.post_form(token_url, form)
    if not response.ok:
        return Result.failure(response.error)
    return _to_token_set(response.value, refresh_token, clock)
