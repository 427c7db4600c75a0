"""CatalogItem - tagged variant for Spotify tracks, albums and artists.

Hey future me - Spotify returns three DIFFERENT shapes (track has album.images,
album has images + release_date, artist has images + genres). The old UI code
sniffed fields at render time ("'album' in item ? ... : 'genres' in item ? ...").
We don't do that anymore: build a CatalogItem ONCE at the catalog boundary via
from_spotify(payload, kind) and everything downstream switches on item.kind.

The raw payload is kept (read-only mapping) for callers needing extra fields
like preview_url or popularity.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from museick.domain.exceptions import ValidationError
from museick.domain.value_objects.selection_role import ItemType


def _smallest_image(images: list[dict[str, Any]] | None) -> str | None:
    # Spotify orders images largest first; the grid wants the thumbnail.
    if not images:
        return None
    return images[-1].get("url") or None


def _artist_names(artists: list[dict[str, Any]] | None) -> str:
    return ", ".join(a.get("name", "") for a in artists or [] if a.get("name"))


@dataclass(frozen=True)
class CatalogItem:
    """A catalog entry the user can shortlist."""

    kind: ItemType
    id: str
    name: str
    subtitle: str = ""
    image_url: str | None = None
    external_url: str | None = None
    raw: Mapping[str, Any] = field(
        default_factory=lambda: MappingProxyType({}), compare=False, repr=False
    )

    @classmethod
    def from_spotify(cls, payload: dict[str, Any], kind: ItemType) -> "CatalogItem":
        """Build a CatalogItem from a Spotify API object of the given kind.

        Raises:
            ValidationError: If the payload has no id
        """
        item_id = payload.get("id")
        if not item_id:
            raise ValidationError(f"Invalid Spotify {kind.value} payload: missing id")

        if kind is ItemType.TRACK:
            album = payload.get("album") or {}
            image_url = _smallest_image(album.get("images"))
            subtitle = _artist_names(payload.get("artists"))
        elif kind is ItemType.ALBUM:
            image_url = _smallest_image(payload.get("images"))
            subtitle = _artist_names(payload.get("artists"))
        else:
            image_url = _smallest_image(payload.get("images"))
            subtitle = ", ".join(payload.get("genres") or []) or "Artist"

        return cls(
            kind=kind,
            id=item_id,
            name=payload.get("name") or "Unknown Title",
            subtitle=subtitle,
            image_url=image_url,
            external_url=(payload.get("external_urls") or {}).get("spotify"),
            raw=MappingProxyType(dict(payload)),
        )

    @classmethod
    def placeholder(cls, kind: ItemType, item_id: str) -> "CatalogItem":
        """Item known only by id (e.g. loaded from a selection, not hydrated yet)."""
        return cls(kind=kind, id=item_id, name=item_id)
