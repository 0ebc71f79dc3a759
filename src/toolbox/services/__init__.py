"""Shared services module for external integrations."""

from src.toolbox.services.posthog import PostHogService

__all__ = [
    "PostHogService",
]
