"""Spotify catalog operations (search, lookup, top items).

All calls are read-only GETs in the CATALOG auth domain, so token expiry and the
one-time refresh-and-retry are handled by AuthenticatedApiClient. Every payload is
turned into a CatalogItem right here - nothing above this module sees raw Spotify JSON
shapes.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from museick.domain.exceptions import InvalidArgumentError
from museick.domain.value_objects import CatalogItem, ItemType
from museick.infrastructure.integrations.api_client import AuthDomain, AuthenticatedApiClient

logger = logging.getLogger(__name__)

ALL_ITEM_TYPES: tuple[ItemType, ...] = (ItemType.TRACK, ItemType.ALBUM, ItemType.ARTIST)


@dataclass
class CatalogSearchResults:
    """Search results grouped by kind."""

    tracks: list[CatalogItem] = field(default_factory=list)
    albums: list[CatalogItem] = field(default_factory=list)
    artists: list[CatalogItem] = field(default_factory=list)

    def for_type(self, item_type: ItemType) -> list[CatalogItem]:
        return getattr(self, item_type.plural)

    @property
    def is_empty(self) -> bool:
        return not (self.tracks or self.albums or self.artists)


def _items(section: Any) -> list[dict[str, Any]]:
    # Spotify nests every collection as {"items": [...]}; items can be null for removed content.
    if not isinstance(section, dict):
        return []
    return [item for item in section.get("items") or [] if item]


class CatalogClient:
    """Read-only access to the Spotify Web API."""

    def __init__(self, api_client: AuthenticatedApiClient) -> None:
        self._api = api_client

    async def search(
        self,
        term: str,
        types: Iterable[ItemType] = ALL_ITEM_TYPES,
        limit: int = 10,
    ) -> CatalogSearchResults:
        """Search the catalog.

        Args:
            term: Search query (sent as-is, httpx encodes it)
            types: Kinds to search for
            limit: Max results PER kind (Spotify caps this at 50)

        Returns:
            CatalogSearchResults; kinds not requested or not returned are empty
        """
        type_list = list(dict.fromkeys(types))
        if not term.strip():
            raise InvalidArgumentError("Search term must not be empty")
        if not type_list:
            raise InvalidArgumentError("At least one item type is required for search")

        data = await self._api.call(
            "/search",
            auth=AuthDomain.CATALOG,
            params={
                "q": term,
                "type": ",".join(t.value for t in type_list),
                "limit": limit,
            },
        )
        data = data or {}

        results = CatalogSearchResults()
        for item_type in type_list:
            items = [
                CatalogItem.from_spotify(payload, item_type)
                for payload in _items(data.get(item_type.plural))
            ]
            setattr(results, item_type.plural, items)

        logger.debug(
            "Catalog search %r -> %d tracks, %d albums, %d artists",
            term,
            len(results.tracks),
            len(results.albums),
            len(results.artists),
        )
        return results

    async def get_item(self, kind: ItemType, item_id: str) -> CatalogItem:
        """Fetch one track, album or artist by id."""
        if not item_id:
            raise InvalidArgumentError("item_id is required")
        data = await self._api.call(f"/{kind.plural}/{item_id}", auth=AuthDomain.CATALOG)
        return CatalogItem.from_spotify(data or {}, kind)

    # Hey future me, Spotify only has /me/top/tracks and /me/top/artists - there is NO
    # "top albums". time_range is short_term (~4 weeks), medium_term (~6 months) or
    # long_term (years). The old Home page used long_term with limit 5.
    async def top_items(
        self,
        kind: ItemType,
        time_range: str = "long_term",
        limit: int = 5,
    ) -> list[CatalogItem]:
        """The current user's top tracks or artists."""
        if kind is ItemType.ALBUM:
            raise InvalidArgumentError("Spotify has no top albums; use track or artist")
        if time_range not in ("short_term", "medium_term", "long_term"):
            raise InvalidArgumentError(f"Invalid time_range {time_range!r}")

        data = await self._api.call(
            f"/me/top/{kind.plural}",
            auth=AuthDomain.CATALOG,
            params={"time_range": time_range, "limit": limit},
        )
        return [CatalogItem.from_spotify(p, kind) for p in _items(data)]
