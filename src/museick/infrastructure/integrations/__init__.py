"""External service integrations (Museick backend, Spotify Web API)."""

from museick.infrastructure.integrations.api_client import (
    AuthDomain,
    AuthenticatedApiClient,
)
from museick.infrastructure.integrations.catalog_client import (
    CatalogClient,
    CatalogSearchResults,
)
from museick.infrastructure.integrations.refresh_coordinator import RefreshCoordinator

__all__ = [
    "AuthDomain",
    "AuthenticatedApiClient",
    "CatalogClient",
    "CatalogSearchResults",
    "RefreshCoordinator",
]
