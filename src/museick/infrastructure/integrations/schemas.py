"""Wire schemas for backend responses.

Hey future me - pydantic lives ONLY here, at the infrastructure boundary. Responses get
validated into these models and immediately converted to domain dataclasses via to_domain().
The backend has renamed fields over time (spotify_id -> spotify_item_id, spotify_type ->
item_type, "song" -> "track"), so the aliases accept both spellings.
"""

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from museick.domain.entities import SelectionRecord
from museick.domain.exceptions import InvalidArgumentError, RequestFailedError
from museick.domain.value_objects import ItemType, PeriodKey, SelectionRole


class SelectionSchema(BaseModel):
    """A user_selections document as the backend serializes it."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    user_id: str = ""
    catalog_item_id: str = Field(
        validation_alias=AliasChoices("spotify_item_id", "spotify_id", "catalog_item_id")
    )
    item_type: ItemType = Field(
        validation_alias=AliasChoices("item_type", "spotify_type")
    )
    selection_role: SelectionRole
    month_year: str
    notes: str | None = None
    created_at: datetime | None = Field(
        default=None, validation_alias=AliasChoices("added_at", "created_at")
    )
    updated_at: datetime | None = None

    @field_validator("item_type", mode="before")
    @classmethod
    def normalize_item_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            return ItemType.from_string(value)
        return value

    def to_domain(self) -> SelectionRecord:
        return SelectionRecord(
            id=self.id,
            user_id=self.user_id,
            catalog_item_id=self.catalog_item_id,
            item_type=self.item_type,
            role=self.selection_role,
            period_key=PeriodKey.parse(self.month_year),
            notes=self.notes or None,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class TokenResponseSchema(BaseModel):
    """Response of /spotify/exchange-code and /spotify/refresh-token."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: str | None = None
    expires_in: int = 3600


class PlaylistResponseSchema(BaseModel):
    """Response of POST /playlists."""

    model_config = ConfigDict(extra="ignore")

    url: str
    message: str = ""


def parse_selection(data: Any) -> SelectionRecord:
    """Validate one selection payload, mapping schema errors to RequestFailedError."""
    try:
        return SelectionSchema.model_validate(data).to_domain()
    except (ValueError, InvalidArgumentError) as e:
        # pydantic.ValidationError is a ValueError; a bad month_year is InvalidArgumentError.
        raise RequestFailedError(200, f"Malformed selection in backend response: {e}") from e


def parse_selection_list(data: Any) -> list[SelectionRecord]:
    """Validate a list of selection payloads (None = empty list)."""
    if data is None:
        return []
    if not isinstance(data, list):
        raise RequestFailedError(200, "Expected a list of selections from backend")
    return [parse_selection(item) for item in data]
