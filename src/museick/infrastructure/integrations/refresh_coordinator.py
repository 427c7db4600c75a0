"""Single-flight refresh of the catalog (Spotify) access token.

Hey future me - the refresh token lives on OUR backend, never on the client. To get a new
Spotify access token we POST /spotify/refresh-token with the session token and the backend
does the Spotify dance for us.

The important part is SINGLE-FLIGHT: when the access token expires, every in-flight catalog
request gets a 401 at roughly the same time and each one asks for a refresh. Without
coordination that's N refresh calls, and Spotify may rotate the refresh token under us.
So:

- the first caller starts ONE asyncio.Task and parks it in self._in_flight
- every caller arriving while it runs awaits the SAME task (no new network call)
- when it finishes (success OR failure) _in_flight is reset so a later expiry starts fresh

The old web client did this with module-level `isRefreshing`/`refreshPromise` globals. Here it
is instance state, built once by ServiceContainer and injected into the API client.

refresh() NEVER raises (except for caller cancellation) - it returns None on failure, after
clearing the credential store and publishing AUTH_EXPIRED. That way one failed refresh can't
blow up N concurrent waiters with unhandled errors.
"""

import asyncio
import logging
from typing import Any

import httpx

from museick.config.settings import BackendSettings
from museick.domain.exceptions import AuthMissingError, RequestFailedError
from museick.domain.ports import AUTH_ERROR_FLAG, CredentialStore, SessionTokenProvider
from museick.infrastructure.events import AuthEventBus, AuthEventType

logger = logging.getLogger(__name__)


class RefreshCoordinator:
    """Deduplicates concurrent catalog-token refreshes."""

    REFRESH_ENDPOINT = "/spotify/refresh-token"

    def __init__(
        self,
        settings: BackendSettings,
        session_token_provider: SessionTokenProvider,
        credential_store: CredentialStore,
        events: AuthEventBus,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            settings: Backend settings (base URL, timeout)
            session_token_provider: Async callable returning the session token
            credential_store: Where the new access token is written
            events: Bus for AUTH_EXPIRED on failure
            http_client: Shared client (not closed by us); created lazily if None
        """
        self._settings = settings
        self._session_token_provider = session_token_provider
        self._store = credential_store
        self._events = events
        self._client = http_client
        self._owns_client = http_client is None
        self._in_flight: asyncio.Task[str | None] | None = None
        self._refresh_count = 0

    @property
    def is_refreshing(self) -> bool:
        return self._in_flight is not None

    @property
    def refresh_count(self) -> int:
        """Number of refresh NETWORK attempts made (joined callers don't count)."""
        return self._refresh_count

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.request_timeout)
        return self._client

    async def refresh(self) -> str | None:
        """Get a fresh catalog access token, joining any refresh already running.

        Returns:
            The new access token, or None if the refresh failed
        """
        task = self._in_flight
        if task is None:
            task = asyncio.create_task(self._run(), name="museick-catalog-token-refresh")
            self._in_flight = task
        else:
            logger.debug("Catalog token refresh already in flight, joining it")
        # shield: one waiter being cancelled must not cancel the refresh for everybody else
        return await asyncio.shield(task)

    async def _run(self) -> str | None:
        self._refresh_count += 1
        try:
            token = await self._request_new_token()
            self._store.set(token)
            logger.info("Catalog access token refreshed")
            return token
        except Exception as e:
            # Hey future me - anything goes here (no session, network down, 5xx, garbage body):
            # the outcome is the same for every waiter - token gone, UI told to reconnect.
            logger.warning("Catalog token refresh failed: %s", e)
            self._store.clear()
            self._store.set_flag(AUTH_ERROR_FLAG, "refresh_failed")
            self._events.emit(AuthEventType.AUTH_EXPIRED, reason=f"refresh failed: {e}")
            return None
        finally:
            self._in_flight = None

    async def _request_new_token(self) -> str:
        """POST the refresh endpoint and return the new access token.

        Raises:
            AuthMissingError: No session token available
            RequestFailedError: Non-2xx response or no access_token in body
            httpx.HTTPError: Transport failure
        """
        session_token = await self._session_token_provider()
        if not session_token:
            raise AuthMissingError()

        client = await self._get_client()
        response = await client.post(
            f"{self._settings.base_url}{self.REFRESH_ENDPOINT}",
            headers={"Authorization": f"Bearer {session_token}"},
            timeout=self._settings.request_timeout,
        )
        if not response.is_success:
            raise RequestFailedError(response.status_code, "Refresh endpoint rejected request")

        data: Any = response.json()
        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise RequestFailedError(response.status_code, "Refresh response had no access_token")
        return str(token)

    async def aclose(self) -> None:
        """Cancel a running refresh and close the HTTP client if we own it."""
        task = self._in_flight
        if task is not None and not task.done():
            task.cancel()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
