"""Federated login orchestration.

Initiator -> (browser at provider) -> Callback Validator -> Token Exchange ->
Identity Fetcher -> Account Resolver -> Session Establisher -> Completion
Responder. Any step may short-circuit to a failure document. Nothing is
retried: a failed attempt must restart from the initiator so a fresh
state/verifier pair is used.
"""

import logging

from fastapi.responses import HTMLResponse

from src.toolbox.auth.exceptions import ConfigurationError, FederationError
from src.toolbox.auth.models import LocalAccount, ProfileCompletionRequest
from src.toolbox.auth.sessions import SessionEstablisher
from src.toolbox.config import Settings
from src.toolbox.federation.accounts import AccountResolver
from src.toolbox.federation.callback import CallbackValidator
from src.toolbox.federation.identity import IdentityFetcher
from src.toolbox.federation.initiator import AuthorizationInitiator
from src.toolbox.federation.provider import PROVIDER, ProviderSettingsRepository
from src.toolbox.federation.responder import CompletionResponder
from src.toolbox.federation.store import PendingAuthorizationStore
from src.toolbox.federation.token_client import TokenExchangeClient
from src.toolbox.services import PostHogService

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Something went wrong while signing you in. Please try again later."


class FederationService:
    """
    Runs both legs of the Zalo login for the HTTP handlers.

    Every failure is caught here and turned into a failure document carrying
    only the exception's ``user_message``; diagnostics go to the server log.
    """

    def __init__(
        self,
        settings: Settings,
        provider_settings: ProviderSettingsRepository,
        store: PendingAuthorizationStore,
        token_client: TokenExchangeClient,
        identity_fetcher: IdentityFetcher,
        resolver: AccountResolver,
        sessions: SessionEstablisher,
        responder: CompletionResponder,
        analytics: PostHogService | None = None,
    ):
        self.settings = settings
        self.provider_settings = provider_settings
        self.store = store
        self.token_client = token_client
        self.identity_fetcher = identity_fetcher
        self.resolver = resolver
        self.sessions = sessions
        self.responder = responder
        self.analytics = analytics or PostHogService()
        self.initiator = AuthorizationInitiator(provider_settings, store, settings)
        self.validator = CallbackValidator(store)

    async def begin(self, redirect_uri: str) -> str:
        """
        Start a login and return the provider authorization URL.

        Raises:
            ConfigurationError: If the integration is disabled or not configured
        """
        return await self.initiator.start(redirect_uri)

    def configuration_failure(self, error: ConfigurationError) -> HTMLResponse:
        """Failure document for a login that could not be started."""
        logger.warning(f"Zalo login unavailable: {error}", extra={"error_code": error.code})
        self.analytics.capture_login_failed(PROVIDER, error.code)
        return self.responder.emit_failure(error.user_message, code=error.code, status_code=503)

    async def complete(
        self, code: str | None, state: str | None, error: str | None = None
    ) -> HTMLResponse:
        """
        Finish a login from the provider redirect.

        Args:
            code: ``code`` query parameter
            state: ``state`` query parameter
            error: ``error`` query parameter

        Returns:
            Completion document (always 200). On success the session cookie is set.
        """
        try:
            callback = await self.validator.validate(code, state, error)
            config = self.provider_settings.load().require_usable()

            token = await self.token_client.exchange(callback.code, callback.code_verifier, config)
            identity = await self.identity_fetcher.fetch(token.access_token)
            resolved = self.resolver.resolve(identity, token, config)
            session = self.sessions.establish(resolved.account)

        except FederationError as e:
            logger.warning(
                f"Zalo login failed ({e.code}): {e}",
                extra={"error_code": e.code, "error_type": type(e).__name__},
            )
            self.analytics.capture_login_failed(PROVIDER, e.code)
            return self.responder.emit_failure(e.user_message, code=e.code)

        except Exception as e:
            logger.error(f"Unexpected error in Zalo callback: {e}", exc_info=True)
            self.analytics.capture_login_failed(PROVIDER, "internal_error")
            return self.responder.emit_failure(GENERIC_FAILURE_MESSAGE, code="internal_error")

        account = resolved.account
        logger.info(
            "Zalo login completed",
            extra={
                "account_id": account.id,
                "new_account": resolved.created,
                "profile_complete": account.profile_complete,
            },
        )
        self.analytics.capture_login_succeeded(
            account.id, PROVIDER, created=resolved.created, profile_complete=account.profile_complete
        )

        response = self.responder.emit_success(account)
        response.set_cookie(
            key=self.settings.session_cookie_name,
            value=session.token,
            max_age=self.settings.session_ttl_seconds,
            httponly=True,
            secure=self.settings.session_cookie_secure,
            samesite="lax",
            path="/",
        )
        return response

    def get_account(self, account_id: int) -> LocalAccount | None:
        """Load a local account for the signed-in session."""
        return self.resolver.repository.get_by_id(account_id)

    def complete_profile(
        self, account_id: int, request: ProfileCompletionRequest
    ) -> LocalAccount | None:
        """Apply the details a user supplied after a restricted-profile login."""
        return self.resolver.complete_profile(account_id, request.full_name, request.email)

    async def close(self) -> None:
        """Release HTTP clients and store connections."""
        await self.token_client.close()
        await self.identity_fetcher.close()
        await self.store.close()
