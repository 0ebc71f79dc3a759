"""Rate limiting for the public login endpoints."""

import logging

from slowapi import Limiter
from slowapi.util import get_remote_address

from src.toolbox.config import settings

logger = logging.getLogger(__name__)


# Login endpoints run before any session exists, so they are keyed by client IP
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],  # No global limits, applied per-endpoint
    storage_uri="memory://",  # In-memory storage for single-instance deployment
    enabled=settings.rate_limit_enabled,
)


class RateLimitTiers:
    """
    Rate limit tiers for endpoint categories.

    All limits are per client IP.
    """

    # Popup login start and provider callback
    PUBLIC = ["20 per minute", "100 per hour"]

    # Session introspection from the opener window
    DEFAULT = ["100 per minute", "1000 per hour"]


# Note: These decorators require the endpoint to have a 'request: Request' parameter
public_rate_limit = limiter.limit(";".join(RateLimitTiers.PUBLIC))
default_rate_limit = limiter.limit(";".join(RateLimitTiers.DEFAULT))
