"""Zalo federated login: PKCE authorization, callback and account resolution."""

from src.toolbox.federation.dependencies import get_federation_service, set_federation_service
from src.toolbox.federation.handlers import router
from src.toolbox.federation.service import FederationService

__all__ = [
    "router",
    "FederationService",
    "get_federation_service",
    "set_federation_service",
]
