# Auth module - credentials, token sets and the token lifecycle
# The TokenManager is the only owner of token state

from .tokens import Credential, GrantMode, TokenSet, TokenState
from .token_manager import TokenManager
from .oauth import login, refresh

__all__ = [
    "Credential", "GrantMode", "TokenSet", "TokenState",
    "TokenManager", "login", "refresh",
]
