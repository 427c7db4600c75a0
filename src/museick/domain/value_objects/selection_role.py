"""Selection role enums (two independent two-state axes).

Hey future me - the four roles are really TWO axes, each with TWO states:

    MUSE axis:  muse_candidate -> muse_selected
    ICK axis:   ick_candidate  -> ick_selected

A record never crosses axes and only moves candidate -> selected. Everything
that needs "what's the selected role for this axis" should go through these
helpers instead of string-building "muse_" + "selected" by hand.

Values match the backend wire format exactly (snake_case strings).
"""

from enum import Enum


class ItemType(str, Enum):
    """Kind of catalog item a selection points at."""

    TRACK = "track"
    ALBUM = "album"
    ARTIST = "artist"

    @classmethod
    def from_string(cls, value: str) -> "ItemType":
        """Parse wire value. The backend still says "song" in places."""
        normalized = value.strip().lower()
        if normalized == "song":
            return cls.TRACK
        return cls(normalized)

    @property
    def plural(self) -> str:
        """Catalog collection name (tracks/albums/artists)."""
        return f"{self.value}s"


class Axis(str, Enum):
    """Preference dimension: MUSE = favorite, ICK = least favorite."""

    MUSE = "muse"
    ICK = "ick"

    @property
    def candidate_role(self) -> "SelectionRole":
        return SelectionRole.MUSE_CANDIDATE if self is Axis.MUSE else SelectionRole.ICK_CANDIDATE

    @property
    def selected_role(self) -> "SelectionRole":
        return SelectionRole.MUSE_SELECTED if self is Axis.MUSE else SelectionRole.ICK_SELECTED


class SelectionRole(str, Enum):
    """Role of a selection record within its period."""

    MUSE_CANDIDATE = "muse_candidate"
    MUSE_SELECTED = "muse_selected"
    ICK_CANDIDATE = "ick_candidate"
    ICK_SELECTED = "ick_selected"

    @property
    def axis(self) -> Axis:
        return Axis.MUSE if self.value.startswith("muse") else Axis.ICK

    @property
    def is_selected(self) -> bool:
        return self in (SelectionRole.MUSE_SELECTED, SelectionRole.ICK_SELECTED)

    @property
    def is_candidate(self) -> bool:
        return not self.is_selected

    def can_transition_to(self, target: "SelectionRole", allow_demotion: bool = False) -> bool:
        """Check the lifecycle rules for a role change.

        Same role is always fine (idempotent PUT). Crossing axes never is.
        Selected -> candidate only with allow_demotion (explicit promotion policy).
        """
        if target is self:
            return True
        if target.axis is not self.axis:
            return False
        if self.is_selected and target.is_candidate:
            return allow_demotion
        return True
