"""Authenticated HTTP client for the Museick backend and the Spotify Web API.

Hey future me - ALL network traffic goes through AuthenticatedApiClient.call(). It:

1. Attaches the right token(s) for the AuthDomain:
   - SESSION          -> backend URL, Authorization: Bearer <session JWT>
   - SESSION_CATALOG  -> backend URL, session bearer + X-Spotify-Token: <spotify token>
   - CATALOG          -> Spotify URL, Authorization: Bearer <spotify token>
2. Classifies the outcome into our exception taxonomy (AuthMissing, AuthInvalid,
   RequestFailed, NetworkError) so nobody upstream ever sees a raw httpx error.
3. On 401/403 for a call that carried the Spotify token, asks the RefreshCoordinator
   for a new one and retries EXACTLY ONCE. A second 401/403 is terminal - no loops.

The session token has no refresh path here: it belongs to the identity provider.
A rejected session token is terminal immediately.
"""

import logging
from enum import Enum
from typing import Any

import httpx

from museick.config.settings import Settings
from museick.domain.exceptions import (
    AuthInvalidError,
    AuthMissingError,
    NetworkError,
    RequestFailedError,
)
from museick.domain.ports import AUTH_ERROR_FLAG, CredentialStore, SessionTokenProvider
from museick.infrastructure.events import AuthEventBus, AuthEventType
from museick.infrastructure.integrations.refresh_coordinator import RefreshCoordinator

logger = logging.getLogger(__name__)

AUTH_FAILURE_STATUSES = frozenset({401, 403})


class AuthDomain(str, Enum):
    """Which credential(s) a request carries."""

    SESSION = "session"
    SESSION_CATALOG = "session_catalog"
    CATALOG = "catalog"

    @property
    def uses_session(self) -> bool:
        return self is not AuthDomain.CATALOG

    @property
    def uses_catalog(self) -> bool:
        return self is not AuthDomain.SESSION


class AuthenticatedApiClient:
    """One authenticated request, with one-time recovery from token expiry."""

    CATALOG_TOKEN_HEADER = "X-Spotify-Token"

    def __init__(
        self,
        settings: Settings,
        session_token_provider: SessionTokenProvider,
        credential_store: CredentialStore,
        refresh_coordinator: RefreshCoordinator,
        events: AuthEventBus,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Application settings (backend + spotify base URLs, timeout)
            session_token_provider: Async callable returning the session token
            credential_store: Source of the catalog access token
            refresh_coordinator: Shared single-flight refresher
            events: Bus for AUTH_EXPIRED on terminal auth failure
            http_client: Shared client (not closed by us); created lazily if None
        """
        self._settings = settings
        self._session_token_provider = session_token_provider
        self._store = credential_store
        self._refresher = refresh_coordinator
        self._events = events
        self._client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.backend.request_timeout)
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if we created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "AuthenticatedApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def call(
        self,
        endpoint: str,
        *,
        method: str = "GET",
        auth: AuthDomain = AuthDomain.SESSION,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Perform one authenticated request.

        Args:
            endpoint: Path relative to the domain's base URL, or an absolute URL
            method: HTTP method
            auth: Which credential(s) to attach
            json: JSON body
            params: Query-string parameters

        Returns:
            Parsed JSON body, or None for 204 / empty body

        Raises:
            AuthMissingError: No session token (session-bearing domains)
            AuthInvalidError: Token rejected after at most one refresh
            RequestFailedError: Any other non-2xx status
            NetworkError: No response received
        """
        url = self._build_url(endpoint, auth)
        session_token = await self._get_session_token() if auth.uses_session else None

        catalog_token: str | None = None
        refreshed = False
        if auth.uses_catalog:
            catalog_token = self._store.get()
            if not catalog_token:
                # Hey future me - no token locally doesn't mean "not connected": the backend
                # still holds the refresh token. One refresh attempt counts as THE refresh
                # for this logical request.
                logger.debug("No catalog token stored, refreshing before %s %s", method, url)
                catalog_token = await self._refresher.refresh()
                refreshed = True
                if catalog_token is None:
                    raise AuthInvalidError(
                        "Spotify is not connected. Please connect your Spotify account."
                    )

        response = await self._send(method, url, auth, session_token, catalog_token, json, params)

        if response.status_code in AUTH_FAILURE_STATUSES:
            if not auth.uses_catalog or refreshed:
                self._expire(f"{method} {url} rejected with {response.status_code}")
                raise AuthInvalidError(status_code=response.status_code)

            logger.info(
                "%s %s returned %d, refreshing catalog token and retrying once",
                method,
                url,
                response.status_code,
            )
            catalog_token = await self._refresher.refresh()
            if catalog_token is None:
                # Coordinator already cleared the store and published AUTH_EXPIRED.
                raise AuthInvalidError(status_code=response.status_code)

            response = await self._send(
                method, url, auth, session_token, catalog_token, json, params
            )
            if response.status_code in AUTH_FAILURE_STATUSES:
                self._expire(f"{method} {url} still rejected after refresh")
                raise AuthInvalidError(status_code=response.status_code)

        return self._handle_response(method, url, response)

    def _build_url(self, endpoint: str, auth: AuthDomain) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        base = (
            self._settings.spotify.api_base_url
            if auth is AuthDomain.CATALOG
            else self._settings.backend.base_url
        )
        return f"{base}/{endpoint.lstrip('/')}"

    async def _get_session_token(self) -> str:
        try:
            token = await self._session_token_provider()
        except Exception as e:
            logger.warning("Session token provider failed: %s", e)
            raise AuthMissingError() from e
        if not token:
            logger.error("Session token not available, cannot call backend")
            raise AuthMissingError()
        return token

    def _headers(
        self, auth: AuthDomain, session_token: str | None, catalog_token: str | None
    ) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if auth is AuthDomain.CATALOG:
            headers["Authorization"] = f"Bearer {catalog_token}"
            return headers
        headers["Authorization"] = f"Bearer {session_token}"
        if auth is AuthDomain.SESSION_CATALOG:
            headers[self.CATALOG_TOKEN_HEADER] = catalog_token or ""
        return headers

    async def _send(
        self,
        method: str,
        url: str,
        auth: AuthDomain,
        session_token: str | None,
        catalog_token: str | None,
        json: Any,
        params: dict[str, Any] | None,
    ) -> httpx.Response:
        client = await self._get_client()
        logger.debug("%s %s (auth=%s)", method, url, auth.value)
        try:
            return await client.request(
                method,
                url,
                headers=self._headers(auth, session_token, catalog_token),
                json=json,
                params=params,
                timeout=self._settings.backend.request_timeout,
            )
        except httpx.TransportError as e:
            logger.warning("Network error on %s %s: %s", method, url, e)
            raise NetworkError(f"Network error contacting {url}: {e}") from e

    def _expire(self, reason: str) -> None:
        logger.warning("Authorization failed terminally: %s", reason)
        self._store.clear()
        self._store.set_flag(AUTH_ERROR_FLAG, "expired")
        self._events.emit(AuthEventType.AUTH_EXPIRED, reason=reason)

    def _handle_response(self, method: str, url: str, response: httpx.Response) -> Any:
        if response.is_success:
            if response.status_code == 204 or not response.content.strip():
                return None
            try:
                return response.json()
            except ValueError as e:
                raise RequestFailedError(
                    response.status_code, f"Invalid JSON in response from {url}"
                ) from e

        message = self._error_message(response)
        logger.error("%s %s failed: %s (status %d)", method, url, message, response.status_code)
        raise RequestFailedError(response.status_code, message)

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        # Backend says {"error": "..."}, Spotify says {"error": {"status": 400, "message": "..."}}.
        fallback = f"API error: {response.status_code} {response.reason_phrase}".strip()
        try:
            data = response.json()
        except ValueError:
            return fallback
        if not isinstance(data, dict):
            return fallback
        error = data.get("error")
        if isinstance(error, str) and error:
            return error
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if data.get("message"):
            return str(data["message"])
        return fallback
