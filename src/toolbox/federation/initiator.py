"""Authorization request construction (first leg of the PKCE flow)."""

import logging
from urllib.parse import urlencode

from fastapi import Request

from src.toolbox.config import Settings
from src.toolbox.federation.pkce import (
    generate_code_challenge,
    generate_code_verifier,
    generate_state,
)
from src.toolbox.federation.provider import ProviderSettingsRepository
from src.toolbox.federation.store import PendingAuthorizationStore

logger = logging.getLogger(__name__)

CALLBACK_ROUTE_NAME = "zalo_oauth_callback"


def callback_redirect_uri(request: Request, settings: Settings) -> str:
    """
    Compute the redirect URI registered with the provider.

    Derived from the current request's host so the same build works in every
    environment; ``oauth_redirect_base_url`` pins it when the app sits behind
    a proxy that rewrites the host or scheme.
    """
    if settings.oauth_redirect_base_url:
        path = request.app.url_path_for(CALLBACK_ROUTE_NAME)
        return f"{settings.oauth_redirect_base_url.rstrip('/')}{path}"
    return str(request.url_for(CALLBACK_ROUTE_NAME))


class AuthorizationInitiator:
    """
    Builds the provider authorization URL and registers the pending request.

    No network call is made here; the browser performs the navigation.

    Example:
        >>> initiator = AuthorizationInitiator(settings_repo, store, settings)
        >>> url = await initiator.start("https://toolbox.vn/auth/zalo/callback")
    """

    def __init__(
        self,
        provider_settings: ProviderSettingsRepository,
        store: PendingAuthorizationStore,
        settings: Settings,
    ):
        self.provider_settings = provider_settings
        self.store = store
        self.settings = settings

    async def start(self, redirect_uri: str) -> str:
        """
        Begin an authorization.

        Args:
            redirect_uri: Absolute callback URL

        Returns:
            Provider authorization URL to redirect the browser to

        Raises:
            ConfigurationError: If the integration is disabled or not configured
        """
        config = self.provider_settings.load().require_usable()

        code_verifier = generate_code_verifier()
        code_challenge = generate_code_challenge(code_verifier)
        state = generate_state()

        await self.store.put(state, code_verifier)

        params = {
            "app_id": config.app_id,
            "redirect_uri": redirect_uri,
            "code_challenge": code_challenge,
            "state": state,
        }
        auth_url = f"{self.settings.zalo_authorize_url}?{urlencode(params)}"

        logger.info(
            "Zalo authorization started",
            extra={"redirect_uri": redirect_uri, "state_prefix": state[:8]},
        )
        return auth_url
