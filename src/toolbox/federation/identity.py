"""Profile lookup against the provider Graph API.

The profile endpoint answers in one of three shapes, modelled as a tagged
variant so the account resolver never inspects raw fields:

* ``FullIdentity`` - a stable provider user id, plus optional profile fields.
* ``RestrictedIdentity`` - a structured refusal that still implies a valid,
  authenticated token (Zalo withholds profiles from servers outside Vietnam).
* ``InvalidIdentity`` - nothing usable; the login must be aborted.
"""

import logging
from typing import Any, Literal

import httpx
from pydantic import BaseModel, Field

from src.toolbox.federation.token_client import redact

logger = logging.getLogger(__name__)


class FullIdentity(BaseModel):
    """Profile with a provider user id."""

    kind: Literal["full"] = "full"
    provider_user_id: str
    display_name: str | None = None
    avatar_url: str | None = None
    gender: str | None = None
    birthday: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict, repr=False)


class RestrictedIdentity(BaseModel):
    """Authenticated, but the provider withheld the profile."""

    kind: Literal["restricted"] = "restricted"
    error_code: int | None = None
    reason: str = ""
    raw: dict[str, Any] = Field(default_factory=dict, repr=False)


class InvalidIdentity(BaseModel):
    """No usable identity."""

    kind: Literal["invalid"] = "invalid"
    reason: str


ProviderIdentity = FullIdentity | RestrictedIdentity | InvalidIdentity


def _profile_id(value: Any) -> str | None:
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        return None
    return str(value).strip() or None


def classify_profile(
    payload: Any, restricted_error_codes: set[int] | frozenset[int]
) -> ProviderIdentity:
    """
    Map a decoded profile response to an identity variant.

    Args:
        payload: Decoded JSON body of the profile endpoint
        restricted_error_codes: Graph API error codes that mean "profile withheld"

    Returns:
        FullIdentity, RestrictedIdentity, or InvalidIdentity
    """
    if not isinstance(payload, dict):
        return InvalidIdentity(reason="profile response is not a JSON object")

    user_id = _profile_id(payload.get("id"))
    if user_id is not None:
        picture = payload.get("picture")
        avatar_url = None
        if isinstance(picture, dict):
            data = picture.get("data")
            if isinstance(data, dict):
                avatar_url = data.get("url") or None

        fields = {
            "name": payload.get("name"),
            "avatar_url": avatar_url,
            "gender": payload.get("gender"),
            "birthday": payload.get("birthday"),
        }
        for field, value in fields.items():
            if value is not None and not isinstance(value, str):
                return InvalidIdentity(reason=f"profile field {field!r} is malformed")

        return FullIdentity(
            provider_user_id=user_id,
            display_name=(fields["name"] or "").strip() or None,
            avatar_url=fields["avatar_url"],
            gender=fields["gender"] or None,
            birthday=fields["birthday"] or None,
            raw=payload,
        )

    error = payload.get("error")
    message = str(payload.get("message") or "")
    try:
        error_code = int(error) if error is not None else None
    except (TypeError, ValueError):
        error_code = None

    if error_code is not None and error_code != 0:
        if error_code in restricted_error_codes or "restrict" in message.lower():
            return RestrictedIdentity(error_code=error_code, reason=message, raw=payload)
        return InvalidIdentity(reason=f"provider error {error_code}")

    return InvalidIdentity(reason="profile response has no user id")


class IdentityFetcher:
    """
    Fetches the signed-in user's profile with an access token.

    The token travels in the ``access_token`` header as the Graph API expects.

    Example:
        >>> fetcher = IdentityFetcher("https://graph.zalo.me/v2.0/me", "id,name,picture")
        >>> identity = await fetcher.fetch(token.access_token)
        >>> if identity.kind == "full":
        ...     print(identity.provider_user_id)
    """

    def __init__(
        self,
        profile_url: str,
        fields: str,
        restricted_error_codes: list[int] | None = None,
        timeout_seconds: float = 5.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.profile_url = profile_url
        self.fields = fields
        self.restricted_error_codes = frozenset(restricted_error_codes or [])
        self._http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds)
        )

    async def fetch(self, access_token: str) -> ProviderIdentity:
        """
        Fetch and classify the profile. Never raises for provider-side faults.

        Args:
            access_token: Token from the code exchange

        Returns:
            Identity variant; transport errors and timeouts become InvalidIdentity
        """
        try:
            response = await self._http_client.get(
                self.profile_url,
                params={"fields": self.fields},
                headers={"access_token": access_token},
            )
        except httpx.HTTPError as e:
            logger.warning(
                f"Zalo profile request failed: {e}",
                extra={"error_type": "profile_transport"},
            )
            return InvalidIdentity(reason=f"transport error: {type(e).__name__}")

        try:
            payload = response.json()
        except ValueError:
            logger.warning(
                "Zalo profile endpoint returned non-JSON body",
                extra={"status_code": response.status_code, "error_type": "profile_decode"},
            )
            return InvalidIdentity(reason="profile response is not JSON")

        identity = classify_profile(payload, self.restricted_error_codes)

        if identity.kind == "full":
            logger.info("Zalo profile fetched", extra={"provider_user_id": identity.provider_user_id})
        elif identity.kind == "restricted":
            logger.warning(
                "Zalo profile restricted, continuing with degraded identity",
                extra={"error_code": identity.error_code, "provider_message": identity.reason},
            )
        else:
            logger.warning(
                f"Zalo profile unusable: {identity.reason}",
                extra={"status_code": response.status_code, "provider_response": redact(payload)},
            )
        return identity

    async def close(self) -> None:
        """Close the HTTP client. Called during application shutdown."""
        await self._http_client.aclose()
