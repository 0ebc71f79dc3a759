"""Local sessions issued after a successful federated login."""

import logging
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from src.toolbox.auth.exceptions import AuthenticationError, SessionEstablishmentFailed
from src.toolbox.auth.models import AuthSession, LocalAccount, SessionUser
from src.toolbox.services.database.utils import SupabaseQueryBuilder

logger = logging.getLogger(__name__)

SESSIONS_TABLE = "auth_sessions"
ALGORITHM = "HS256"


class SessionEstablisher:
    """
    Creates, verifies and revokes account sessions.

    A session is a row in ``auth_sessions`` plus an HS256 JWT that names the
    row (``sid``) and the account (``sub``). The JWT travels in an HttpOnly
    cookie; deleting the row revokes it before it expires.

    Attributes:
        db: Query builder for the sessions table
        secret_key: HMAC key for signing session tokens
        issuer: Expected ``iss`` claim
        ttl_seconds: Session lifetime

    Example:
        >>> establisher = SessionEstablisher(get_query_builder(), "secret", "toolbox", 604800)
        >>> session = establisher.establish(account)
        >>> user = establisher.verify(session.token)
    """

    def __init__(
        self,
        db: SupabaseQueryBuilder,
        secret_key: str,
        issuer: str,
        ttl_seconds: int,
        source: str = "oauth:zalo",
    ):
        self.db = db
        self.secret_key = secret_key
        self.issuer = issuer
        self.ttl_seconds = ttl_seconds
        self.source = source

    def establish(self, account: LocalAccount) -> AuthSession:
        """
        Open a session for an account.

        Args:
            account: Resolved local account

        Returns:
            AuthSession with the signed cookie token

        Raises:
            SessionEstablishmentFailed: If the session row cannot be stored or signed
        """
        session_id = secrets.token_urlsafe(32)
        issued_at = datetime.now(UTC)
        expires_at = issued_at + timedelta(seconds=self.ttl_seconds)

        try:
            self.db.insert_record(
                SESSIONS_TABLE,
                {
                    "id": session_id,
                    "user_id": account.id,
                    "source": self.source,
                    "created_at": issued_at.isoformat(),
                    "expires_at": expires_at.isoformat(),
                },
            )
            token = jwt.encode(
                {
                    "sub": str(account.id),
                    "sid": session_id,
                    "iss": self.issuer,
                    "iat": int(issued_at.timestamp()),
                    "exp": int(expires_at.timestamp()),
                },
                self.secret_key,
                algorithm=ALGORITHM,
            )
        except Exception as e:
            logger.error(
                f"Failed to establish session for account {account.id}: {e}",
                exc_info=True,
                extra={"error_type": "session_establish_failed"},
            )
            raise SessionEstablishmentFailed(str(e)) from e

        logger.info("Session established", extra={"account_id": account.id, "source": self.source})
        return AuthSession(
            session_id=session_id, account_id=account.id, token=token, expires_at=expires_at
        )

    def verify(self, token: str) -> SessionUser:
        """
        Verify a session token and check that the session is still live.

        Args:
            token: Cookie value

        Returns:
            SessionUser with account and session ids

        Raises:
            AuthenticationError: If the token is invalid, expired, or revoked
        """
        try:
            claims: dict[str, Any] = jwt.decode(
                token,
                self.secret_key,
                algorithms=[ALGORITHM],
                issuer=self.issuer,
                options={"require_exp": True, "require_iat": True},
            )
        except JWTError as e:
            logger.warning(f"Session token verification failed: {e}")
            raise AuthenticationError("Invalid session token") from e

        session_id = claims.get("sid")
        subject = claims.get("sub")
        if not session_id or not subject:
            raise AuthenticationError("Session token missing sid/sub")

        row = self.db.get_by_id(SESSIONS_TABLE, session_id)
        if row is None or str(row.get("user_id")) != str(subject):
            raise AuthenticationError("Session revoked")

        return SessionUser(account_id=int(subject), session_id=session_id)

    def revoke(self, session_id: str) -> bool:
        """Delete a session row. Returns True if a session was removed."""
        deleted = self.db.delete_record(SESSIONS_TABLE, session_id)
        logger.info("Session revoked", extra={"deleted": deleted})
        return deleted
