"""Authorization-code exchange against the provider token endpoint."""

import logging
from typing import Any

import httpx
from pydantic import BaseModel, Field, ValidationError

from src.toolbox.auth.exceptions import TokenExchangeFailed
from src.toolbox.federation.provider import ProviderConfig

logger = logging.getLogger(__name__)

# Keys whose values must never reach the logs
_SENSITIVE_KEYS = {"access_token", "refresh_token", "code", "code_verifier", "secret_key"}


class ProviderToken(BaseModel):
    """Token response; used within a single callback request and never stored."""

    access_token: str = Field(repr=False)
    refresh_token: str | None = Field(default=None, repr=False)
    expires_in: int | None = None
    refresh_token_expires_in: int | None = None


def redact(payload: Any) -> Any:
    """Copy of a provider payload that is safe to log."""
    if isinstance(payload, dict):
        return {
            key: "[REDACTED]" if key in _SENSITIVE_KEYS else redact(value)
            for key, value in payload.items()
        }
    return payload


class TokenExchangeClient:
    """
    Exchanges an authorization code and PKCE verifier for an access token.

    The app secret is sent in the ``secret_key`` header, never in the form
    body, so it cannot end up in request-body logs.

    Attributes:
        token_url: Provider token endpoint
        _http_client: HTTP client with a bounded timeout

    Example:
        >>> client = TokenExchangeClient("https://oauth.zaloapp.com/v4/access_token")
        >>> token = await client.exchange(code, verifier, config)
        >>> await client.close()
    """

    def __init__(
        self,
        token_url: str,
        timeout_seconds: float = 5.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.token_url = token_url
        self._http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds)
        )

    async def exchange(self, code: str, code_verifier: str, config: ProviderConfig) -> ProviderToken:
        """
        Perform the code exchange.

        Args:
            code: Authorization code from the callback
            code_verifier: PKCE verifier registered for the callback's state
            config: Provider credentials

        Returns:
            ProviderToken containing at least an access token

        Raises:
            TokenExchangeFailed: On timeout, transport error, non-JSON response,
                or a response without ``access_token`` (whatever the status code)
        """
        form = {
            "app_id": config.app_id,
            "grant_type": "authorization_code",
            "code": code,
            "code_verifier": code_verifier,
        }
        headers = {"secret_key": config.app_secret}

        try:
            response = await self._http_client.post(self.token_url, data=form, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning(
                f"Zalo token exchange timed out: {e}",
                extra={"error_type": "token_exchange_timeout"},
            )
            raise TokenExchangeFailed("Token endpoint timed out") from e
        except httpx.HTTPError as e:
            logger.error(
                f"Zalo token exchange transport error: {e}",
                exc_info=True,
                extra={"error_type": "token_exchange_transport"},
            )
            raise TokenExchangeFailed("Token endpoint unreachable") from e

        try:
            payload = response.json()
        except ValueError as e:
            logger.error(
                "Zalo token endpoint returned non-JSON body",
                extra={"status_code": response.status_code, "error_type": "token_exchange_decode"},
            )
            raise TokenExchangeFailed("Token endpoint returned non-JSON body") from e

        # Errors can arrive with a 200 status, so the access token is the only success signal
        if not isinstance(payload, dict) or not payload.get("access_token"):
            logger.warning(
                "Zalo token exchange rejected",
                extra={
                    "status_code": response.status_code,
                    "provider_response": redact(payload),
                    "error_type": "token_exchange_rejected",
                },
            )
            raise TokenExchangeFailed(f"No access_token in response (status {response.status_code})")

        try:
            token = ProviderToken(
                access_token=payload["access_token"],
                refresh_token=payload.get("refresh_token"),
                expires_in=_as_int(payload.get("expires_in")),
                refresh_token_expires_in=_as_int(payload.get("refresh_token_expires_in")),
            )
        except ValidationError as e:
            logger.warning(
                "Zalo token response is malformed",
                extra={
                    "provider_response": redact(payload),
                    "error_type": "token_exchange_malformed",
                },
            )
            raise TokenExchangeFailed("Malformed token response") from e

        logger.info(
            "Zalo token exchange succeeded",
            extra={"expires_in": token.expires_in, "has_refresh_token": bool(token.refresh_token)},
        )
        return token

    async def close(self) -> None:
        """Close the HTTP client. Called during application shutdown."""
        await self._http_client.aclose()


def _as_int(value: Any) -> int | None:
    # Zalo returns the lifetimes as strings
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None
