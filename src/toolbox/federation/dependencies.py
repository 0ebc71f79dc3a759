"""Access to the federation service built during application startup."""

from src.toolbox.federation.service import FederationService

# Global federation service instance (initialized in main.py startup)
_federation_service: FederationService | None = None


def set_federation_service(service: FederationService | None) -> None:
    """
    Set the global federation service instance.

    Called during application startup.

    Args:
        service: FederationService instance
    """
    global _federation_service
    _federation_service = service


def get_federation_service() -> FederationService:
    """
    Get the global federation service instance.

    Raises:
        RuntimeError: If not initialized
    """
    if _federation_service is None:
        raise RuntimeError(
            "Federation service not initialized. "
            "Ensure application startup calls set_federation_service()."
        )
    return _federation_service
