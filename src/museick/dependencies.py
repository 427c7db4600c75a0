"""Composition root - builds and wires every collaborator exactly once.

Hey future me - the invariants of the auth layer only hold if there is ONE credential store,
ONE event bus and ONE refresh coordinator per signed-in user. Build them here and hand out the
container; never construct RefreshCoordinator or AuthenticatedApiClient ad hoc in UI code, or
two refreshes can race again.

Usage:
    async with ServiceContainer(get_settings(), identity.get_session_token) as services:
        await services.accounts.sync_user()
        workflow = services.workflow(Slot(PeriodKey(2024, 7), Axis.MUSE, ItemType.TRACK))
        await workflow.load()
"""

import logging
from typing import Any

import httpx

from museick.application.services import (
    AccountService,
    PlaylistService,
    ShortlistWorkflow,
)
from museick.config import Settings
from museick.domain.entities import Slot
from museick.domain.ports import CredentialStore, SelectionRepository, SessionTokenProvider
from museick.infrastructure.credentials import FileCredentialStore
from museick.infrastructure.events import AuthEventBus
from museick.infrastructure.integrations import (
    AuthenticatedApiClient,
    CatalogClient,
    RefreshCoordinator,
)
from museick.infrastructure.observability import configure_logging_from_settings
from museick.infrastructure.persistence import BackendSelectionRepository

logger = logging.getLogger(__name__)

# Both our backend and Spotify sit behind these limits; the UI never has more than a handful
# of requests in flight (hydration of a 12-month grid is the worst case).
DEFAULT_MAX_KEEPALIVE = 10
DEFAULT_MAX_CONNECTIONS = 20


class ServiceContainer:
    """Owns the shared HTTP client and the per-user singletons."""

    def __init__(
        self,
        settings: Settings,
        session_token_provider: SessionTokenProvider,
        credential_store: CredentialStore | None = None,
        http_client: httpx.AsyncClient | None = None,
        setup_logging: bool = False,
    ) -> None:
        """Wire everything up.

        Args:
            settings: Application settings
            session_token_provider: Async callable returning the identity provider's session token
            credential_store: Catalog token store (default: FileCredentialStore at
                settings.credentials.token_path)
            http_client: Shared HTTP client; if given, the caller closes it
            setup_logging: Configure the root logger from settings.observability (for
                standalone use; embedding apps that own logging leave this False)
        """
        if setup_logging:
            configure_logging_from_settings(settings.observability, app_name=settings.app_name)

        self.settings = settings
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(
            timeout=settings.backend.request_timeout,
            limits=httpx.Limits(
                max_keepalive_connections=DEFAULT_MAX_KEEPALIVE,
                max_connections=DEFAULT_MAX_CONNECTIONS,
            ),
        )

        self.credential_store: CredentialStore = credential_store or FileCredentialStore(
            settings.credentials.token_path
        )
        self.events = AuthEventBus()
        self.refresh_coordinator = RefreshCoordinator(
            settings.backend,
            session_token_provider,
            self.credential_store,
            self.events,
            http_client=self.http_client,
        )
        self.api_client = AuthenticatedApiClient(
            settings,
            session_token_provider,
            self.credential_store,
            self.refresh_coordinator,
            self.events,
            http_client=self.http_client,
        )

        self.repository: SelectionRepository = BackendSelectionRepository(self.api_client)
        self.catalog = CatalogClient(self.api_client)
        self.accounts = AccountService(
            self.api_client, self.credential_store, self.events, settings
        )
        self.playlists = PlaylistService(self.api_client)

        logger.debug(
            "Service container ready (backend=%s, promotion_policy=%s)",
            settings.backend.base_url,
            settings.selection.promotion_policy.value,
        )

    def workflow(self, slot: Slot) -> ShortlistWorkflow:
        """A fresh workflow for one slot, sharing this container's repository and catalog."""
        return ShortlistWorkflow(slot, self.repository, self.catalog, settings=self.settings)

    async def aclose(self) -> None:
        """Stop a running refresh and close the HTTP client if we created it."""
        await self.refresh_coordinator.aclose()
        if self._owns_client:
            await self.http_client.aclose()

    async def __aenter__(self) -> "ServiceContainer":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
