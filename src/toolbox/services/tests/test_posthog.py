"""Tests for PostHog analytics service."""

from unittest.mock import patch

from src.toolbox.services.posthog import PostHogService


class TestPostHogService:
    """Tests for PostHogService."""

    def test_noop_without_api_key(self) -> None:
        """Test that nothing is sent when analytics is not configured."""
        with (
            patch("src.toolbox.services.posthog.settings") as mock_settings,
            patch("src.toolbox.services.posthog.posthog") as mock_posthog,
        ):
            mock_settings.posthog_api_key = None
            PostHogService().capture("1", "event")

        mock_posthog.capture.assert_not_called()

    def test_login_succeeded_event(self) -> None:
        """Test the event sent for a completed login."""
        with (
            patch("src.toolbox.services.posthog.settings") as mock_settings,
            patch("src.toolbox.services.posthog.posthog") as mock_posthog,
        ):
            mock_settings.posthog_api_key = "phc_test"
            PostHogService().capture_login_succeeded(42, "zalo", created=True, profile_complete=False)

        mock_posthog.capture.assert_called_once_with(
            distinct_id="42",
            event="federated_login_succeeded",
            properties={"provider": "zalo", "new_account": True, "profile_complete": False},
        )

    def test_login_failed_event_carries_code_only(self) -> None:
        """Test the event sent for a failed login."""
        with (
            patch("src.toolbox.services.posthog.settings") as mock_settings,
            patch("src.toolbox.services.posthog.posthog") as mock_posthog,
        ):
            mock_settings.posthog_api_key = "phc_test"
            PostHogService().capture_login_failed("zalo", "invalid_state")

        mock_posthog.capture.assert_called_once_with(
            distinct_id="anonymous",
            event="federated_login_failed",
            properties={"provider": "zalo", "error": "invalid_state"},
        )
