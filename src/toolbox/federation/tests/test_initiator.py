"""Tests for authorization request construction."""

from unittest.mock import Mock
from urllib.parse import parse_qs, urlparse

import pytest

from src.toolbox.auth.exceptions import ConfigurationError
from src.toolbox.federation.initiator import AuthorizationInitiator, callback_redirect_uri
from src.toolbox.federation.pkce import generate_code_challenge
from src.toolbox.federation.provider import ProviderConfig

REDIRECT_URI = "https://toolbox.vn/auth/zalo/callback"


@pytest.mark.asyncio
class TestAuthorizationInitiator:
    """Tests for AuthorizationInitiator.start."""

    async def test_url_carries_required_parameters(self, provider_settings, store, test_settings):
        """Test that the provider URL has app_id, redirect_uri, code_challenge and state."""
        initiator = AuthorizationInitiator(provider_settings, store, test_settings)

        url = await initiator.start(REDIRECT_URI)

        parsed = urlparse(url)
        query = parse_qs(parsed.query)
        assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == test_settings.zalo_authorize_url
        assert query["app_id"] == ["app-123"]
        assert query["redirect_uri"] == [REDIRECT_URI]
        assert set(query) == {"app_id", "redirect_uri", "code_challenge", "state"}

    async def test_challenge_matches_stored_verifier(self, provider_settings, store, test_settings):
        """Test that the registered verifier hashes to the challenge in the URL."""
        initiator = AuthorizationInitiator(provider_settings, store, test_settings)

        query = parse_qs(urlparse(await initiator.start(REDIRECT_URI)).query)
        record = await store.take_and_delete(query["state"][0])

        assert record is not None
        assert generate_code_challenge(record.code_verifier) == query["code_challenge"][0]

    async def test_each_start_registers_fresh_pair(self, provider_settings, store, test_settings):
        """Test that two logins get different states and verifiers."""
        initiator = AuthorizationInitiator(provider_settings, store, test_settings)

        first = parse_qs(urlparse(await initiator.start(REDIRECT_URI)).query)
        second = parse_qs(urlparse(await initiator.start(REDIRECT_URI)).query)

        assert first["state"] != second["state"]
        assert first["code_challenge"] != second["code_challenge"]
        assert len(store) == 2

    async def test_disabled_provider_registers_nothing(self, provider_settings, store, test_settings):
        """Test that an unusable configuration fails before touching the store."""
        provider_settings.config = ProviderConfig(enabled=False)
        initiator = AuthorizationInitiator(provider_settings, store, test_settings)

        with pytest.raises(ConfigurationError):
            await initiator.start(REDIRECT_URI)

        assert len(store) == 0


class TestCallbackRedirectUri:
    """Tests for callback_redirect_uri."""

    def test_derived_from_request(self, test_settings) -> None:
        """Test that the redirect URI follows the request host by default."""
        request = Mock()
        request.url_for.return_value = "http://localhost:8000/auth/zalo/callback"

        assert callback_redirect_uri(request, test_settings) == "http://localhost:8000/auth/zalo/callback"
        request.url_for.assert_called_once_with("zalo_oauth_callback")

    def test_base_url_override(self, test_settings) -> None:
        """Test that oauth_redirect_base_url pins scheme and host."""
        test_settings.oauth_redirect_base_url = "https://toolbox.vn/"
        request = Mock()
        request.app.url_path_for.return_value = "/auth/zalo/callback"

        assert callback_redirect_uri(request, test_settings) == "https://toolbox.vn/auth/zalo/callback"
