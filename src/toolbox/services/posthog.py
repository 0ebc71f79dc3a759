"""PostHog analytics service for login event tracking."""

import posthog

from src.toolbox.config import settings


class PostHogService:
    """Service for tracking analytics events via PostHog."""

    def __init__(self) -> None:
        """Initialize PostHog service."""
        if settings.posthog_api_key:
            posthog.api_key = settings.posthog_api_key
            posthog.host = settings.posthog_host

    def capture(self, distinct_id: str, event: str, properties: dict | None = None) -> None:
        """
        Track an event.

        Args:
            distinct_id: Unique identifier for the user
            event: Event name (e.g., "federated_login_succeeded")
            properties: Optional event properties
        """
        if not settings.posthog_api_key:
            return

        posthog.capture(distinct_id=distinct_id, event=event, properties=properties or {})

    def capture_login_succeeded(
        self, account_id: int, provider: str, created: bool, profile_complete: bool
    ) -> None:
        """
        Track a completed federated login.

        Example:
            >>> PostHogService().capture_login_succeeded(42, "zalo", created=True, profile_complete=True)
        """
        self.capture(
            distinct_id=str(account_id),
            event="federated_login_succeeded",
            properties={
                "provider": provider,
                "new_account": created,
                "profile_complete": profile_complete,
            },
        )

    def capture_login_failed(self, provider: str, error_code: str) -> None:
        """Track a failed federated login. Only the error code is sent, never details."""
        self.capture(
            distinct_id="anonymous",
            event="federated_login_failed",
            properties={"provider": provider, "error": error_code},
        )
