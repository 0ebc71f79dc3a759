"""API handlers for Zalo login and the resulting session."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import HTMLResponse, RedirectResponse

from src.toolbox.auth.dependencies import get_current_session, get_session_establisher
from src.toolbox.auth.exceptions import (
    AuthenticationError,
    ConfigurationError,
    DuplicateAccountError,
)
from src.toolbox.auth.models import (
    AccountSummaryResponse,
    LocalAccount,
    LogoutResponse,
    ProfileCompletionRequest,
    SessionUser,
)
from src.toolbox.config import settings
from src.toolbox.federation.dependencies import get_federation_service
from src.toolbox.federation.initiator import CALLBACK_ROUTE_NAME, callback_redirect_uri
from src.toolbox.federation.service import FederationService
from src.toolbox.services.rate_limiter import default_rate_limit, public_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/zalo/login")
@public_rate_limit
async def start_zalo_login(
    request: Request,
    service: FederationService = Depends(get_federation_service),
) -> Response:
    """
    Start a Zalo login from the popup window.

    Registers a fresh state/verifier pair and redirects the browser to the
    Zalo permission page.

    Returns:
        302 redirect to the provider, or a 503 failure page when Zalo login
        is disabled or missing credentials
    """
    try:
        auth_url = await service.begin(callback_redirect_uri(request, settings))
    except ConfigurationError as e:
        return service.configuration_failure(e)

    return RedirectResponse(url=auth_url, status_code=status.HTTP_302_FOUND)


@router.get("/zalo/callback", response_class=HTMLResponse, name=CALLBACK_ROUTE_NAME)
@public_rate_limit
async def zalo_login_callback(
    request: Request,
    code: str | None = Query(None, description="Authorization code"),
    state: str | None = Query(None, description="State issued by /zalo/login"),
    error: str | None = Query(None, description="Set when the user denied access"),
    service: FederationService = Depends(get_federation_service),
) -> HTMLResponse:
    """
    Finish a Zalo login.

    Always answers 200 with an HTML page that posts an ``OAUTH_LOGIN_SUCCESS``
    or ``OAUTH_LOGIN_ERROR`` message to the opener window and closes the
    popup. On success the session cookie is set on this response.
    """
    return await service.complete(code, state, error)


@router.get("/me", response_model=AccountSummaryResponse)
@default_rate_limit
async def get_signed_in_account(
    request: Request,
    session: SessionUser = Depends(get_current_session),
    service: FederationService = Depends(get_federation_service),
) -> AccountSummaryResponse:
    """
    Get the account behind the session cookie.

    Raises:
        HTTPException: 401 if not signed in
        HTTPException: 404 if the account no longer exists
        HTTPException: 500 if the account lookup fails
    """
    try:
        account = service.get_account(session.account_id)
    except Exception as e:
        logger.error(f"Error loading account {session.account_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load account",
        ) from e

    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")

    return _summary(account)


@router.post("/profile", response_model=AccountSummaryResponse)
@default_rate_limit
async def complete_profile(
    request: Request,
    body: ProfileCompletionRequest,
    session: SessionUser = Depends(get_current_session),
    service: FederationService = Depends(get_federation_service),
) -> AccountSummaryResponse:
    """
    Complete the profile of the signed-in account.

    Used after a restricted Zalo login, where the provider returned no name.
    Sets the display name (and email when given) and marks the profile
    complete.

    Raises:
        HTTPException: 401 if not signed in
        HTTPException: 404 if the account no longer exists
        HTTPException: 409 if the email is used by another account
        HTTPException: 422 if the name or email is invalid
        HTTPException: 500 if the update fails
    """
    try:
        account = service.complete_profile(session.account_id, body)
    except DuplicateAccountError as e:
        logger.info(f"Profile completion rejected for account {session.account_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email is already in use",
        ) from e
    except Exception as e:
        logger.error(
            f"Error completing profile for account {session.account_id}: {e}", exc_info=True
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update profile",
        ) from e

    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")

    return _summary(account)


@router.post("/logout", response_model=LogoutResponse)
@default_rate_limit
async def logout(request: Request, response: Response) -> LogoutResponse:
    """
    Sign out: revoke the session row and clear the cookie.

    Idempotent; a missing or already invalid cookie still clears the cookie.
    """
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        establisher = get_session_establisher()
        try:
            session = establisher.verify(token)
            establisher.revoke(session.session_id)
        except AuthenticationError:
            logger.info("Logout with an invalid session cookie")

    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        secure=settings.session_cookie_secure,
        httponly=True,
        samesite="lax",
    )
    return LogoutResponse(status="signed_out")


def _summary(account: LocalAccount) -> AccountSummaryResponse:
    return AccountSummaryResponse(
        id=account.id,
        username=account.username,
        display_name=account.display_name,
        avatar_url=account.avatar_url,
        role=account.role,
        credits=account.credits,
        profile_complete=account.profile_complete,
    )
