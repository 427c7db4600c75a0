"""Backend-backed SelectionRepository.

Hey future me - "persistence" here is the Museick backend's /selections API, not a local DB.
This repository is the SOLE writer of SelectionRecords. It:

- validates arguments BEFORE any network call (bad period key, empty update -> InvalidArgumentError)
- checks the candidate -> selected lifecycle against what it has cached
- keeps a small id -> record cache so add_candidate for an already-known item doesn't POST again
  (the backend de-duplicates anyway and is the source of truth)
- propagates every client error untouched - the API client already did its one retry

It never touches the CredentialStore.
"""

import logging

from museick.domain.entities import SelectionRecord
from museick.domain.exceptions import InvalidArgumentError
from museick.domain.ports import SelectionRepository
from museick.domain.value_objects import Axis, ItemType, PeriodKey, SelectionRole
from museick.infrastructure.integrations.api_client import AuthDomain, AuthenticatedApiClient
from museick.infrastructure.integrations.schemas import parse_selection, parse_selection_list

logger = logging.getLogger(__name__)


class BackendSelectionRepository(SelectionRepository):
    """SelectionRepository talking to the backend /selections endpoints."""

    def __init__(self, api_client: AuthenticatedApiClient) -> None:
        self._api = api_client
        self._cache: dict[str, SelectionRecord] = {}

    def cached(self, selection_id: str) -> SelectionRecord | None:
        return self._cache.get(selection_id)

    def _remember(self, record: SelectionRecord) -> SelectionRecord:
        self._cache[record.id] = record
        return record

    def _find_cached(
        self, catalog_item_id: str, item_type: ItemType, period_key: PeriodKey, axis: Axis
    ) -> SelectionRecord | None:
        for record in self._cache.values():
            if (
                record.catalog_item_id == catalog_item_id
                and record.item_type is item_type
                and record.period_key == period_key
                and record.axis is axis
            ):
                return record
        return None

    async def add_candidate(
        self,
        catalog_item_id: str,
        item_type: ItemType,
        period_key: PeriodKey | str,
        axis: Axis,
        notes: str | None = None,
    ) -> SelectionRecord:
        """Add an item as a candidate for the axis.

        Returns the created record, or the existing one if the backend (or our cache)
        already knows this item for this period and axis.
        """
        if not catalog_item_id or not catalog_item_id.strip():
            raise InvalidArgumentError("catalog_item_id is required")
        period = PeriodKey.parse(period_key)
        item_type = ItemType(item_type)
        axis = Axis(axis)

        existing = self._find_cached(catalog_item_id, item_type, period, axis)
        if existing is not None:
            logger.debug(
                "Selection for %s (%s) in %s/%s already known: %s",
                catalog_item_id,
                item_type.value,
                period,
                axis.value,
                existing.id,
            )
            return existing

        body: dict[str, str] = {
            "spotify_item_id": catalog_item_id,
            "item_type": item_type.value,
            "month_year": str(period),
            "selection_role": axis.candidate_role.value,
        }
        if notes is not None:
            body["notes"] = notes

        # SESSION_CATALOG: the backend syncs the item's metadata from Spotify on add.
        data = await self._api.call(
            "/selections", method="POST", auth=AuthDomain.SESSION_CATALOG, json=body
        )
        record = parse_selection(data)
        logger.info(
            "Added selection %s (%s %s) as %s for %s",
            record.id,
            item_type.value,
            catalog_item_id,
            record.role.value,
            period,
        )
        return self._remember(record)

    async def list_for_period(self, period_key: PeriodKey | str) -> list[SelectionRecord]:
        """Every record of the period, all axes and item types."""
        period = PeriodKey.parse(period_key)
        data = await self._api.call(f"/selections/{period}")
        records = parse_selection_list(data)

        # Replace the cached view of this period wholesale - deletions elsewhere must disappear.
        for selection_id in [i for i, r in self._cache.items() if r.period_key == period]:
            del self._cache[selection_id]
        for record in records:
            self._remember(record)
        return records

    async def update(
        self,
        selection_id: str,
        *,
        role: SelectionRole | None = None,
        notes: str | None = None,
        allow_demotion: bool = False,
    ) -> SelectionRecord:
        """Change role and/or notes.

        Raises:
            InvalidArgumentError: Nothing to update, or a forbidden role transition
        """
        if not selection_id:
            raise InvalidArgumentError("selection_id is required")
        if role is None and notes is None:
            raise InvalidArgumentError("update requires 'role' or 'notes'")

        body: dict[str, str] = {}
        if role is not None:
            role = SelectionRole(role)
            current = self._cache.get(selection_id)
            if current is not None and not current.role.can_transition_to(role, allow_demotion):
                raise InvalidArgumentError(
                    f"Cannot change selection {selection_id} from {current.role.value} "
                    f"to {role.value}"
                )
            body["selection_role"] = role.value
        if notes is not None:
            body["notes"] = notes

        data = await self._api.call(f"/selections/{selection_id}", method="PUT", json=body)
        record = parse_selection(data)
        if role is not None and record.role is not role:
            logger.warning(
                "Backend returned role %s for %s after requesting %s",
                record.role.value,
                selection_id,
                role.value,
            )
        return self._remember(record)

    async def delete(self, selection_id: str) -> bool:
        """Delete a record. True on success (204)."""
        if not selection_id:
            raise InvalidArgumentError("selection_id is required")
        await self._api.call(f"/selections/{selection_id}", method="DELETE")
        self._cache.pop(selection_id, None)
        logger.info("Deleted selection %s", selection_id)
        return True
