"""Domain entities."""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

from museick.domain.value_objects import Axis, ItemType, PeriodKey, SelectionRole


@dataclass(frozen=True)
class Slot:
    """The (period, axis, item type) context a user is editing.

    Not persisted - it's a VIEW over SelectionRecords. One slot = one cell in
    the yearly grid, e.g. "Muse track for 2024-07".
    """

    period_key: PeriodKey
    axis: Axis
    item_type: ItemType

    def __str__(self) -> str:
        return f"{self.period_key}/{self.axis.value}/{self.item_type.value}"


class SlotState(str, Enum):
    """Lifecycle state of a slot: EMPTY -> HAS_CANDIDATES -> HAS_SELECTION."""

    EMPTY = "empty"
    HAS_CANDIDATES = "has_candidates"
    HAS_SELECTION = "has_selection"


# Hey future me, SelectionRecord is FROZEN on purpose - the backend is the source of truth and
# every mutation (role change, notes) round-trips through the repository which hands back a NEW
# record. Never patch a record locally and pretend it was saved. id/user_id/catalog_item_id/
# item_type/period_key are immutable by contract; with_changes() exists only for building the
# expected state in tests and fakes.
@dataclass(frozen=True)
class SelectionRecord:
    """A user's curated pick (candidate or selected) for a month."""

    id: str
    user_id: str
    catalog_item_id: str
    item_type: ItemType
    role: SelectionRole
    period_key: PeriodKey
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def axis(self) -> Axis:
        return self.role.axis

    @property
    def is_selected(self) -> bool:
        return self.role.is_selected

    @property
    def is_candidate(self) -> bool:
        return self.role.is_candidate

    @property
    def slot(self) -> Slot:
        return Slot(self.period_key, self.axis, self.item_type)

    def belongs_to(self, slot: Slot) -> bool:
        return self.slot == slot

    def with_changes(
        self, *, role: SelectionRole | None = None, notes: str | None = None
    ) -> "SelectionRecord":
        """Copy with mutable fields changed (role, notes)."""
        return replace(
            self,
            role=role if role is not None else self.role,
            notes=notes if notes is not None else self.notes,
        )


def slot_state(records: list[SelectionRecord], slot: Slot) -> SlotState:
    """Derive the slot state from the records that belong to it."""
    in_slot = [r for r in records if r.belongs_to(slot)]
    if not in_slot:
        return SlotState.EMPTY
    if any(r.is_selected for r in in_slot):
        return SlotState.HAS_SELECTION
    return SlotState.HAS_CANDIDATES


__all__ = ["SelectionRecord", "Slot", "SlotState", "slot_state"]
