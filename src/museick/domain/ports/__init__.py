"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from museick.domain.entities import SelectionRecord
from museick.domain.value_objects import Axis, ItemType, PeriodKey, SelectionRole

# Hey future me - the session token (the identity provider JWT) is NOT ours. The identity provider
# owns it and refreshes it; we just ask for the current one before every backend call. Returning
# None means "not signed in" -> AuthMissingError, no retry.
SessionTokenProvider = Callable[[], Awaitable[str | None]]

# One-shot status flags kept in the CredentialStore.
AUTH_ERROR_FLAG = "auth_error"
AUTH_SUCCESS_FLAG = "auth_success"


# Hey future me, CredentialStore is a PORT! It holds the catalog (Spotify) access token plus a
# couple of one-shot status flags the UI shows once ("auth_error", "auth_success"). It does NOT
# validate tokens and does NOT broadcast anything - whoever writes to it publishes the AuthEvent.
# Only RefreshCoordinator, the API client's terminal auth-failure path and AccountService
# (connect / sign-out) may write. SelectionRepository never touches it!
class CredentialStore(ABC):
    """Key/value persistence for the catalog access token and status flags."""

    @abstractmethod
    def get(self) -> str | None:
        """Return the catalog access token, or None if absent."""
        pass

    @abstractmethod
    def set(self, token: str) -> None:
        """Persist a new catalog access token."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Drop the token and all flags (sign-out, irrecoverable refresh failure)."""
        pass

    @abstractmethod
    def set_flag(self, name: str, value: str) -> None:
        """Store a transient status flag."""
        pass

    @abstractmethod
    def consume_flag(self, name: str) -> str | None:
        """Read AND remove a status flag (shown once, then gone)."""
        pass


# Hey future me, SelectionRepository is the SOLE writer of SelectionRecords. The UI only reads and
# issues intents through ShortlistWorkflow. Implementations propagate AuthMissing/AuthInvalid/
# RequestFailed/NetworkError untouched - no retry here, the API client already did its one retry.
class SelectionRepository(ABC):
    """Repository interface for SelectionRecord entities."""

    @abstractmethod
    async def add_candidate(
        self,
        catalog_item_id: str,
        item_type: ItemType,
        period_key: PeriodKey | str,
        axis: Axis,
        notes: str | None = None,
    ) -> SelectionRecord:
        """Add an item as a candidate. The backend de-duplicates."""
        pass

    @abstractmethod
    async def list_for_period(self, period_key: PeriodKey | str) -> list[SelectionRecord]:
        """All records (every axis and item type) for a period."""
        pass

    @abstractmethod
    async def update(
        self,
        selection_id: str,
        *,
        role: SelectionRole | None = None,
        notes: str | None = None,
        allow_demotion: bool = False,
    ) -> SelectionRecord:
        """Change role and/or notes. At least one must be supplied."""
        pass

    async def update_role(
        self, selection_id: str, role: SelectionRole, allow_demotion: bool = False
    ) -> SelectionRecord:
        """Change only the role."""
        return await self.update(selection_id, role=role, allow_demotion=allow_demotion)

    async def update_notes(self, selection_id: str, notes: str) -> SelectionRecord:
        """Change only the notes."""
        return await self.update(selection_id, notes=notes)

    @abstractmethod
    async def delete(self, selection_id: str) -> bool:
        """Delete a record. True on success, errors propagate."""
        pass

    @abstractmethod
    def cached(self, selection_id: str) -> SelectionRecord | None:
        """Last known state of a record, without a network call."""
        pass


__all__ = [
    "AUTH_ERROR_FLAG",
    "AUTH_SUCCESS_FLAG",
    "CredentialStore",
    "SelectionRepository",
    "SessionTokenProvider",
]
