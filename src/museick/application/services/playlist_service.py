"""Yearly playlist generation (the backend builds it on Spotify)."""

import logging
from dataclasses import dataclass

from museick.domain.exceptions import InvalidArgumentError, RequestFailedError
from museick.domain.value_objects import Axis
from museick.infrastructure.integrations.api_client import AuthDomain, AuthenticatedApiClient
from museick.infrastructure.integrations.schemas import PlaylistResponseSchema

logger = logging.getLogger(__name__)


@dataclass
class PlaylistResult:
    """Where the new playlist lives."""

    url: str
    message: str


class PlaylistService:
    """Creates a Spotify playlist from a year of muse or ick tracks."""

    def __init__(self, api_client: AuthenticatedApiClient) -> None:
        self._api = api_client

    # Hey future me - the backend needs the Spotify token (X-Spotify-Token) to create the playlist
    # under the user's account, so this is SESSION_CATALOG. include_candidates=False means only
    # the twelve (or fewer) selected tracks; True adds every shortlisted candidate too.
    async def create_yearly_playlist(
        self, year: int, axis: Axis, include_candidates: bool = False
    ) -> PlaylistResult:
        if not 1 <= year <= 9999:
            raise InvalidArgumentError(f"Invalid year {year}")

        data = await self._api.call(
            "/playlists",
            method="POST",
            auth=AuthDomain.SESSION_CATALOG,
            json={"year": year, "mode": axis.value, "include_candidates": include_candidates},
        )
        try:
            parsed = PlaylistResponseSchema.model_validate(data)
        except ValueError as e:
            raise RequestFailedError(200, f"Malformed playlist response: {e}") from e

        logger.info("Created %s playlist for %d: %s", axis.value, year, parsed.url)
        return PlaylistResult(url=parsed.url, message=parsed.message)
