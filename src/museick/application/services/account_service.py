"""Account service - connecting, provisioning and signing out.

Hey future me - the Spotify OAuth dance is split between us and the backend:

1. build_authorization_url() -> URL + PKCE verifier (we never see the client secret)
2. user grants access, the redirect hands back ?code=...
3. connect_catalog(code, verifier) -> backend exchanges the code, keeps the REFRESH token
   server-side and hands us only the access token, which goes into the CredentialStore
4. later refreshes go through RefreshCoordinator (backend /spotify/refresh-token)

sync_user() is the "make sure my user row exists" call to make right after sign-in.
"""

import base64
import hashlib
import logging
import secrets
from dataclasses import dataclass
from urllib.parse import urlencode

from museick.config import Settings
from museick.domain.exceptions import ConfigurationError, RequestFailedError
from museick.domain.ports import AUTH_SUCCESS_FLAG, CredentialStore
from museick.infrastructure.events import AuthEventBus, AuthEventType
from museick.infrastructure.integrations.api_client import AuthDomain, AuthenticatedApiClient
from museick.infrastructure.integrations.schemas import TokenResponseSchema

logger = logging.getLogger(__name__)


@dataclass
class AuthUrlResult:
    """Result of auth URL generation.

    Hey future me - BOTH url AND code_verifier are needed! Keep the verifier
    until the redirect comes back, connect_catalog() can't work without it.
    """

    url: str
    state: str
    code_verifier: str


@dataclass
class TokenResult:
    """Tokens handed back by the backend after a code exchange."""

    access_token: str
    refresh_token: str | None
    expires_in: int


class AccountService:
    """Spotify connection lifecycle for the signed-in user."""

    def __init__(
        self,
        api_client: AuthenticatedApiClient,
        credential_store: CredentialStore,
        events: AuthEventBus,
        settings: Settings,
    ) -> None:
        self._api = api_client
        self._store = credential_store
        self._events = events
        self._settings = settings

    @property
    def is_catalog_connected(self) -> bool:
        """True if a catalog access token is stored (it may still be expired)."""
        return bool(self._store.get())

    @staticmethod
    def generate_code_verifier() -> str:
        """Random PKCE code verifier (43 chars, URL-safe, no padding)."""
        return base64.urlsafe_b64encode(secrets.token_bytes(32)).decode("utf-8").rstrip("=")

    @staticmethod
    def generate_code_challenge(code_verifier: str) -> str:
        """S256 challenge for a verifier."""
        digest = hashlib.sha256(code_verifier.encode("utf-8")).digest()
        return base64.urlsafe_b64encode(digest).decode("utf-8").rstrip("=")

    def build_authorization_url(self, state: str | None = None) -> AuthUrlResult:
        """Build the Spotify authorize URL with a fresh PKCE verifier.

        Args:
            state: Optional CSRF state (generated if None)

        Returns:
            AuthUrlResult with URL, state and code_verifier

        Raises:
            ConfigurationError: If client_id or redirect_uri is not configured
        """
        spotify = self._settings.spotify
        if not spotify.client_id.strip():
            raise ConfigurationError(
                "SPOTIFY_CLIENT_ID is not configured. "
                "Get credentials at https://developer.spotify.com/dashboard"
            )
        if not spotify.redirect_uri.strip():
            raise ConfigurationError(
                "SPOTIFY_REDIRECT_URI is not configured. "
                "It must match a redirect URI registered for the Spotify app."
            )

        if state is None:
            state = secrets.token_urlsafe(32)
        code_verifier = self.generate_code_verifier()

        params = {
            "client_id": spotify.client_id,
            "response_type": "code",
            "redirect_uri": spotify.redirect_uri,
            "state": state,
            "scope": spotify.scopes,
            "code_challenge_method": "S256",
            "code_challenge": self.generate_code_challenge(code_verifier),
        }
        logger.debug(f"Generated auth URL with state={state[:8]}...")
        return AuthUrlResult(
            url=f"{spotify.authorize_url}?{urlencode(params)}",
            state=state,
            code_verifier=code_verifier,
        )

    # Hey future me - the code_verifier MUST be the one used for build_authorization_url(),
    # otherwise Spotify rejects the exchange (that's the whole point of PKCE).
    async def connect_catalog(self, code: str, code_verifier: str) -> TokenResult:
        """Exchange an authorization code via the backend and store the access token."""
        data = await self._api.call(
            "/spotify/exchange-code",
            method="POST",
            auth=AuthDomain.SESSION,
            json={"code": code, "code_verifier": code_verifier},
        )
        if not isinstance(data, dict) or not data.get("access_token"):
            raise RequestFailedError(200, "Token exchange response did not contain an access token")
        tokens = TokenResponseSchema.model_validate(data)

        self._store.set(tokens.access_token)
        self._store.set_flag(AUTH_SUCCESS_FLAG, "true")
        self._events.emit(AuthEventType.AUTH_SUCCESS)
        logger.info("Spotify account connected")

        return TokenResult(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_in=tokens.expires_in,
        )

    async def sync_user(self) -> None:
        """Ensure the backend knows the signed-in user (idempotent)."""
        await self._api.call("/users/sync", method="POST", auth=AuthDomain.SESSION)
        logger.debug("User synced with backend")

    def sign_out(self) -> None:
        """Forget the catalog token and tell subscribers."""
        self._store.clear()
        self._events.emit(AuthEventType.SIGNED_OUT, "user signed out")
        logger.info("Signed out of Spotify")
