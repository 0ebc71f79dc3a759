"""Pytest configuration and shared fixtures."""

import os

# Settings are read at import time; keep the per-IP limits out of the way
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("POSTHOG_API_KEY", "")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from src.toolbox.main import app  # noqa: E402


@pytest.fixture
def client() -> TestClient:
    """
    Provide FastAPI test client for API testing.

    The lifespan is not run; tests install the services they need.

    Returns:
        TestClient instance for making API requests

    Example:
        >>> def test_health(client):
        >>>     response = client.get("/health")
        >>>     assert response.status_code == 200
    """
    return TestClient(app)
