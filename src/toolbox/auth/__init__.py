"""Local accounts and cookie sessions for federated login."""

from src.toolbox.auth.dependencies import (
    get_current_session,
    get_session_establisher,
    set_session_establisher,
)
from src.toolbox.auth.exceptions import AuthenticationError, FederationError
from src.toolbox.auth.models import AuthSession, LocalAccount, SessionUser
from src.toolbox.auth.sessions import SessionEstablisher

__all__ = [
    "get_current_session",
    "get_session_establisher",
    "set_session_establisher",
    "SessionEstablisher",
    "AuthenticationError",
    "FederationError",
    "AuthSession",
    "LocalAccount",
    "SessionUser",
]
