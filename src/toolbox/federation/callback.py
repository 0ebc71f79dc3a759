"""Validation of the provider redirect back to the callback endpoint."""

import logging

from pydantic import BaseModel, Field

from src.toolbox.auth.exceptions import (
    AuthorizationDenied,
    InvalidOrExpiredState,
    MissingCode,
    MissingState,
)
from src.toolbox.federation.store import PendingAuthorizationStore

logger = logging.getLogger(__name__)


class ValidatedCallback(BaseModel):
    """Authorization code paired with the verifier registered for its state."""

    code: str = Field(repr=False)
    code_verifier: str = Field(repr=False)


class CallbackValidator:
    """
    Checks the callback parameters and consumes the pending authorization.

    A given state can pass validation at most once, which closes the replay
    window for intercepted or double-submitted redirects.
    """

    def __init__(self, store: PendingAuthorizationStore):
        self.store = store

    async def validate(
        self, code: str | None, state: str | None, error: str | None = None
    ) -> ValidatedCallback:
        """
        Validate the redirect.

        Args:
            code: ``code`` query parameter
            state: ``state`` query parameter
            error: ``error`` query parameter, set when the user denied access

        Returns:
            ValidatedCallback with the code and its PKCE verifier

        Raises:
            MissingCode: No authorization code (AuthorizationDenied when the provider sent an error)
            MissingState: No state parameter
            InvalidOrExpiredState: State unknown, already consumed, or expired
        """
        if not code:
            if error:
                if state:
                    # The attempt is over; drop its verifier now rather than at the next sweep
                    await self.store.take_and_delete(state)
                raise AuthorizationDenied(f"Provider returned error={error!r}")
            raise MissingCode("Callback is missing the authorization code")

        if not state:
            raise MissingState("Callback is missing the state parameter")

        pending = await self.store.take_and_delete(state)
        if pending is None:
            raise InvalidOrExpiredState(f"No pending authorization for state {state[:8]}...")

        return ValidatedCallback(code=code, code_verifier=pending.code_verifier)
