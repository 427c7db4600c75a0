"""Shortlist workflow - the state machine behind one slot of the yearly grid.

A slot is (period, axis, item type), e.g. "Muse track for 2024-07". The user searches the
catalog, shortlists items as candidates and promotes exactly one of them to selected:

    EMPTY --add--> HAS_CANDIDATES --promote--> HAS_SELECTION --refresh_selection--> (closed)

Every public action converts DomainExceptions into a WorkflowOutcome so the UI layer never has
to know about HTTP statuses - it shows outcome.message and, if requires_reconnect is set, a
"reconnect Spotify" button.
"""

import asyncio
import logging
from dataclasses import dataclass

from museick.application.services.search_debouncer import SearchDebouncer
from museick.config import PromotionPolicy, Settings, get_settings
from museick.domain.entities import SelectionRecord, Slot, SlotState, slot_state
from museick.domain.exceptions import AuthInvalidError, DomainException, InvalidArgumentError
from museick.domain.ports import SelectionRepository
from museick.domain.value_objects import CatalogItem
from museick.infrastructure.integrations.catalog_client import CatalogClient
from museick.infrastructure.observability import log_operation

logger = logging.getLogger(__name__)

RECONNECT_MESSAGE = "Spotify connection issue. Please reconnect Spotify."


@dataclass
class ShortlistEntry:
    """A tracked record plus its catalog details (None until hydrated)."""

    record: SelectionRecord
    item: CatalogItem | None = None

    @property
    def selection_id(self) -> str:
        return self.record.id

    @property
    def catalog_item_id(self) -> str:
        return self.record.catalog_item_id

    @property
    def is_selected(self) -> bool:
        return self.record.is_selected


@dataclass
class WorkflowOutcome:
    """Result of a workflow action, ready for display."""

    ok: bool
    record: SelectionRecord | None = None
    message: str | None = None
    requires_reconnect: bool = False
    error: DomainException | None = None


class ShortlistWorkflow:
    """Drives one slot from empty to a confirmed selection."""

    def __init__(
        self,
        slot: Slot,
        repository: SelectionRepository,
        catalog: CatalogClient,
        *,
        settings: Settings | None = None,
    ) -> None:
        self.slot = slot
        self._repository = repository
        self._catalog = catalog
        self._settings = settings or get_settings()

        # selection id -> entry, insertion ordered (shortlist display order)
        self._entries: dict[str, ShortlistEntry] = {}
        self.error: WorkflowOutcome | None = None

        search = self._settings.search
        self._debouncer = SearchDebouncer(
            self._search_catalog,
            delay=search.debounce_seconds,
            min_length=search.min_query_length,
            on_error=self._on_search_error,
        )

    # ------------------------------------------------------------------ state

    @property
    def state(self) -> SlotState:
        return slot_state([e.record for e in self._entries.values()], self.slot)

    @property
    def entries(self) -> list[ShortlistEntry]:
        return list(self._entries.values())

    @property
    def candidates(self) -> list[ShortlistEntry]:
        return [e for e in self._entries.values() if not e.is_selected]

    @property
    def selected(self) -> ShortlistEntry | None:
        return next((e for e in self._entries.values() if e.is_selected), None)

    @property
    def selected_entries(self) -> list[ShortlistEntry]:
        # More than one only if the backend broke the single-pick rule.
        return [e for e in self._entries.values() if e.is_selected]

    def entry_for(self, catalog_item_id: str) -> ShortlistEntry | None:
        return next(
            (e for e in self._entries.values() if e.catalog_item_id == catalog_item_id), None
        )

    def _track(self, record: SelectionRecord, item: CatalogItem | None = None) -> ShortlistEntry:
        existing = self._entries.get(record.id)
        entry = ShortlistEntry(record, item or (existing.item if existing else None))
        self._entries[record.id] = entry
        return entry

    def _replace_entries(self, records: list[SelectionRecord]) -> None:
        known_items = {e.catalog_item_id: e.item for e in self._entries.values() if e.item}
        self._entries = {
            r.id: ShortlistEntry(r, known_items.get(r.catalog_item_id))
            for r in records
            if r.belongs_to(self.slot)
        }

    # ------------------------------------------------------------------ errors

    def _failure(
        self, action: str, error: DomainException, record: SelectionRecord | None = None
    ) -> WorkflowOutcome:
        if isinstance(error, AuthInvalidError):
            outcome = WorkflowOutcome(
                ok=False,
                record=record,
                message=RECONNECT_MESSAGE,
                requires_reconnect=True,
                error=error,
            )
        else:
            outcome = WorkflowOutcome(
                ok=False, record=record, message=f"{action} failed: {error.message}", error=error
            )
        self.error = outcome
        return outcome

    def _success(
        self, record: SelectionRecord | None, message: str | None = None
    ) -> WorkflowOutcome:
        self.error = None
        return WorkflowOutcome(ok=True, record=record, message=message)

    def _on_search_error(self, term: str, error: Exception) -> None:
        if isinstance(error, DomainException):
            self._failure("Search", error)

    # ------------------------------------------------------------------ load

    async def load(self, hydrate: bool = True) -> WorkflowOutcome:
        """Fetch this slot's records from the backend (and their catalog details)."""
        try:
            async with log_operation(logger, "shortlist.load", slot=str(self.slot)):
                records = await self._repository.list_for_period(self.slot.period_key)
                self._replace_entries(records)
                if hydrate:
                    await self._hydrate()
        except DomainException as e:
            return self._failure("Loading shortlist", e)
        return self._success(self.selected.record if self.selected else None)

    # Hey future me, hydration is best effort - a deleted Spotify track or a flaky request must
    # not hide the whole shortlist. Failed entries keep item=None and the UI shows a placeholder.
    async def _hydrate(self) -> None:
        missing = [e for e in self._entries.values() if e.item is None]
        if not missing:
            return
        results = await asyncio.gather(
            *(self._catalog.get_item(e.record.item_type, e.catalog_item_id) for e in missing),
            return_exceptions=True,
        )
        for entry, result in zip(missing, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning(
                    "Could not load catalog details for %s %s: %s",
                    entry.record.item_type.value,
                    entry.catalog_item_id,
                    result,
                )
                continue
            entry.item = result

    # ------------------------------------------------------------------ search

    async def _search_catalog(self, term: str) -> list[CatalogItem]:
        results = await self._catalog.search(
            term, types=[self.slot.item_type], limit=self._settings.search.result_limit
        )
        return results.for_type(self.slot.item_type)

    def search(self, term: str) -> None:
        """Debounced search restricted to the slot's item type."""
        self._debouncer.submit(term)

    async def wait_for_search(self) -> list[CatalogItem]:
        await self._debouncer.wait()
        return self._debouncer.results

    @property
    def search_results(self) -> list[CatalogItem]:
        return self._debouncer.results

    @property
    def is_searching(self) -> bool:
        return self._debouncer.is_pending

    def close(self) -> None:
        """Abandon any pending search (the dialog closed)."""
        self._debouncer.cancel()

    # ------------------------------------------------------------------ mutations

    def _check_item(self, item: CatalogItem) -> None:
        if item.kind is not self.slot.item_type:
            raise InvalidArgumentError(
                f"Cannot shortlist a {item.kind.value} in a {self.slot.item_type.value} slot"
            )

    async def _add(self, item: CatalogItem) -> SelectionRecord:
        record = await self._repository.add_candidate(
            item.id, item.kind, self.slot.period_key, self.slot.axis
        )
        # The backend de-duplicates per (month, item) regardless of axis, so adding an item that is
        # already on the other list hands back THAT record. Don't track it here.
        if not record.belongs_to(self.slot):
            raise InvalidArgumentError(
                f"'{item.name}' is already in your {record.role.value} list "
                f"for {self.slot.period_key}"
            )
        self._track(record, item)
        return record

    async def add_to_shortlist(self, item: CatalogItem) -> WorkflowOutcome:
        """Shortlist an item as a candidate. Already shortlisted -> no-op success."""
        existing = self.entry_for(item.id)
        if existing is not None:
            return self._success(existing.record)

        try:
            self._check_item(item)
            async with log_operation(
                logger, "shortlist.add", slot=str(self.slot), catalog_item_id=item.id
            ):
                record = await self._add(item)
        except DomainException as e:
            return self._failure("Adding to shortlist", e)
        return self._success(record, f"Added '{item.name}' to shortlist")

    # Listen future me, promote is a MULTI-STEP operation and any step may fail:
    #   1. re-read the slot (our entries may be stale, or load() was never called)
    #   2. add_candidate (only if the item has no record yet)
    #   3. demote the slot's current selection (DEMOTE_PREVIOUS policy only)
    #   4. update_role -> selected
    # If 4 fails, the picks demoted in 3 are put back so the slot never loses its selection. The
    # record added in 2 is NOT removed - the item is simply a candidate now, and calling promote()
    # again finds it in step 1 and never re-adds.
    async def promote(
        self, target: CatalogItem | ShortlistEntry | SelectionRecord
    ) -> WorkflowOutcome:
        """Make target the slot's selected item."""
        if isinstance(target, (ShortlistEntry, SelectionRecord)):
            given = target.record if isinstance(target, ShortlistEntry) else target
            entry = self._entries.get(given.id)
            item = entry.item if entry else getattr(target, "item", None)
            record: SelectionRecord | None = given
        else:
            item = target
            record = None

        catalog_item_id = record.catalog_item_id if record else item.id  # type: ignore[union-attr]
        try:
            async with log_operation(
                logger, "shortlist.promote", slot=str(self.slot), catalog_item_id=catalog_item_id
            ):
                record = await self._promote(catalog_item_id, item, record)
        except DomainException as e:
            entry = self.entry_for(catalog_item_id)
            return self._failure("Selecting item", e, entry.record if entry else None)

        name = item.name if item else catalog_item_id
        return self._success(record, f"'{name}' is now your {self.slot.axis.value} pick")

    async def _promote(
        self, catalog_item_id: str, item: CatalogItem | None, given: SelectionRecord | None
    ) -> SelectionRecord:
        if given is not None and not given.belongs_to(self.slot):
            raise InvalidArgumentError(f"Selection {given.id} does not belong to slot {self.slot}")

        self._replace_entries(await self._repository.list_for_period(self.slot.period_key))
        entry = self.entry_for(catalog_item_id)
        if entry is not None:
            record = entry.record
            item = item or entry.item
        elif item is not None:
            self._check_item(item)
            record = await self._add(item)
        else:
            raise InvalidArgumentError(f"'{catalog_item_id}' is no longer on this shortlist")

        if record.is_selected:
            return record

        axis = self.slot.axis
        if self._settings.selection.promotion_policy is PromotionPolicy.BACKEND:
            promoted = await self._repository.update_role(record.id, axis.selected_role)
            self._track(promoted, item)
            # The backend demoted any old pick on its side; re-read so we show what it did.
            self._replace_entries(await self._repository.list_for_period(self.slot.period_key))
            return promoted

        previous = [e.record for e in self.selected_entries if e.record.id != record.id]
        demoted: list[SelectionRecord] = []
        try:
            for old in previous:
                candidate = await self._repository.update_role(
                    old.id, axis.candidate_role, allow_demotion=True
                )
                self._track(candidate)
                demoted.append(candidate)
            promoted = await self._repository.update_role(record.id, axis.selected_role)
        except DomainException:
            await self._restore_selection(demoted)
            raise

        self._track(promoted, item)
        return promoted

    async def _restore_selection(self, demoted: list[SelectionRecord]) -> None:
        for record in demoted:
            try:
                restored = await self._repository.update_role(
                    record.id, self.slot.axis.selected_role
                )
            except DomainException as e:
                logger.error(
                    "Could not restore previous pick %s after a failed promotion: %s",
                    record.catalog_item_id,
                    e,
                )
                continue
            self._track(restored)
            logger.info("Restored previous pick %s", record.catalog_item_id)

    async def annotate(self, selection_id: str, notes: str) -> WorkflowOutcome:
        """Replace the notes on a shortlisted record."""
        try:
            async with log_operation(logger, "shortlist.annotate", slot=str(self.slot)):
                record = await self._repository.update_notes(selection_id, notes)
        except DomainException as e:
            return self._failure("Saving notes", e)
        self._track(record)
        return self._success(record)

    async def remove(self, selection_id: str) -> WorkflowOutcome:
        """Delete a record from the shortlist."""
        try:
            async with log_operation(logger, "shortlist.remove", slot=str(self.slot)):
                await self._repository.delete(selection_id)
        except DomainException as e:
            return self._failure("Removing from shortlist", e)
        removed = self._entries.pop(selection_id, None)
        return self._success(removed.record if removed else None)

    async def refresh_selection(self) -> SelectionRecord | None:
        """Re-read the slot from the backend and return its selected record.

        This is the closing transition after a successful promote - the grid shows whatever the
        backend says, not what we think we did. On failure the error is kept on self.error and
        None is returned.
        """
        outcome = await self.load(hydrate=False)
        if not outcome.ok:
            return None
        selected = self.selected
        return selected.record if selected else None
