"""FastAPI dependencies for cookie-based sessions."""

import logging

from fastapi import HTTPException, Request, status

from src.toolbox.auth.exceptions import AuthenticationError
from src.toolbox.auth.models import SessionUser
from src.toolbox.auth.sessions import SessionEstablisher
from src.toolbox.config import settings

logger = logging.getLogger(__name__)

# Global session establisher instance (initialized in main.py startup)
_session_establisher: SessionEstablisher | None = None


def set_session_establisher(establisher: SessionEstablisher | None) -> None:
    """
    Set the global session establisher instance.

    Called during application startup.

    Args:
        establisher: SessionEstablisher instance
    """
    global _session_establisher
    _session_establisher = establisher


def get_session_establisher() -> SessionEstablisher:
    """
    Get the global session establisher instance.

    Raises:
        RuntimeError: If not initialized
    """
    if _session_establisher is None:
        raise RuntimeError(
            "Session establisher not initialized. "
            "Ensure application startup calls set_session_establisher()."
        )
    return _session_establisher


async def get_current_session(request: Request) -> SessionUser:
    """
    Resolve the signed-in account from the session cookie.

    Returns:
        SessionUser with account and session ids

    Raises:
        HTTPException: 401 if the cookie is missing, invalid, or revoked

    Example:
        @router.get("/me")
        async def me(session: SessionUser = Depends(get_current_session)):
            return {"account_id": session.account_id}
    """
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not signed in")

    try:
        return get_session_establisher().verify(token)
    except AuthenticationError as e:
        logger.info(f"Session rejected: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session",
        ) from e
    except Exception as e:
        logger.error(f"Session check failed: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session",
        ) from e
