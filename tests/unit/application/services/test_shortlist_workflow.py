"""Tests for ShortlistWorkflow.

Hey future me - these run against FakeSelectionRepository (see conftest) so we can count
repository calls and check "at most one selected per slot" after EVERY mutation, not just
at the end. The catalog is an AsyncMock; hydration and search never touch the network.
"""

import random
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock

import pytest

from museick.application.services import RECONNECT_MESSAGE, ShortlistWorkflow
from museick.config import PromotionPolicy, SelectionSettings, Settings
from museick.domain.entities import Slot, SlotState
from museick.domain.exceptions import (
    AuthInvalidError,
    NetworkError,
    RequestFailedError,
)
from museick.domain.value_objects import Axis, CatalogItem, ItemType, PeriodKey, SelectionRole
from museick.infrastructure.integrations import CatalogClient, CatalogSearchResults

SLOT = Slot(PeriodKey(2024, 7), Axis.MUSE, ItemType.TRACK)


def _track(item_id: str) -> CatalogItem:
    return CatalogItem(kind=ItemType.TRACK, id=item_id, name=f"Song {item_id}")


@pytest.fixture
def catalog() -> AsyncMock:
    catalog = AsyncMock(spec=CatalogClient)
    catalog.get_item.side_effect = lambda kind, item_id: CatalogItem(
        kind=kind, id=item_id, name=f"Song {item_id}"
    )
    return catalog


@pytest.fixture
def workflow(fake_repository: Any, catalog: AsyncMock, settings: Settings) -> ShortlistWorkflow:
    return ShortlistWorkflow(SLOT, fake_repository, catalog, settings=settings)


def _selected_in_slot(repository: Any) -> list[str]:
    return [
        r.catalog_item_id
        for r in repository.records.values()
        if r.belongs_to(SLOT) and r.is_selected
    ]


class TestLoad:
    """Loading a slot from the backend."""

    async def test_empty_slot(self, workflow: ShortlistWorkflow) -> None:
        outcome = await workflow.load()

        assert outcome.ok
        assert workflow.state is SlotState.EMPTY
        assert workflow.entries == []

    async def test_keeps_only_this_slot(
        self, workflow: ShortlistWorkflow, fake_repository: Any
    ) -> None:
        fake_repository.seed("t1", SelectionRole.MUSE_CANDIDATE)
        fake_repository.seed("t2", SelectionRole.ICK_SELECTED)
        fake_repository.seed("a1", SelectionRole.MUSE_SELECTED, item_type=ItemType.ALBUM)
        fake_repository.seed("t3", SelectionRole.MUSE_SELECTED, period_key="2024-08")

        await workflow.load()

        assert [e.catalog_item_id for e in workflow.entries] == ["t1"]
        assert workflow.state is SlotState.HAS_CANDIDATES

    async def test_hydrates_catalog_details(
        self, workflow: ShortlistWorkflow, fake_repository: Any, catalog: AsyncMock
    ) -> None:
        fake_repository.seed("t1", SelectionRole.MUSE_CANDIDATE)
        fake_repository.seed("t2", SelectionRole.MUSE_SELECTED)

        outcome = await workflow.load()

        assert outcome.ok
        assert outcome.record is not None and outcome.record.catalog_item_id == "t2"
        assert [e.item.name for e in workflow.entries if e.item] == ["Song t1", "Song t2"]
        assert catalog.get_item.await_count == 2
        assert workflow.state is SlotState.HAS_SELECTION

    async def test_failed_hydration_keeps_entry(
        self, workflow: ShortlistWorkflow, fake_repository: Any, catalog: AsyncMock
    ) -> None:
        fake_repository.seed("t1", SelectionRole.MUSE_CANDIDATE)
        fake_repository.seed("gone", SelectionRole.MUSE_CANDIDATE)

        def get_item(kind: ItemType, item_id: str) -> CatalogItem:
            if item_id == "gone":
                raise RequestFailedError(404, "non existing id")
            return _track(item_id)

        catalog.get_item.side_effect = get_item

        outcome = await workflow.load()

        assert outcome.ok
        items = {e.catalog_item_id: e.item for e in workflow.entries}
        assert items["t1"] is not None
        assert items["gone"] is None

    async def test_without_hydration(
        self, workflow: ShortlistWorkflow, fake_repository: Any, catalog: AsyncMock
    ) -> None:
        fake_repository.seed("t1", SelectionRole.MUSE_CANDIDATE)

        await workflow.load(hydrate=False)

        catalog.get_item.assert_not_awaited()

    async def test_load_failure(self, workflow: ShortlistWorkflow, fake_repository: Any) -> None:
        fake_repository.fail_next("list_for_period", NetworkError("backend unreachable"))

        outcome = await workflow.load()

        assert not outcome.ok
        assert outcome.message == "Loading shortlist failed: backend unreachable"
        assert workflow.error is outcome


class TestAddToShortlist:
    """EMPTY -> HAS_CANDIDATES."""

    async def test_add(self, workflow: ShortlistWorkflow, fake_repository: Any) -> None:
        outcome = await workflow.add_to_shortlist(_track("t1"))

        assert outcome.ok
        assert outcome.record is not None and outcome.record.role is SelectionRole.MUSE_CANDIDATE
        assert workflow.state is SlotState.HAS_CANDIDATES
        assert workflow.entries[0].item == _track("t1")

    async def test_add_twice_is_noop(
        self, workflow: ShortlistWorkflow, fake_repository: Any
    ) -> None:
        await workflow.add_to_shortlist(_track("t1"))
        outcome = await workflow.add_to_shortlist(_track("t1"))

        assert outcome.ok
        assert len(fake_repository.calls_named("add_candidate")) == 1
        assert len(workflow.entries) == 1

    async def test_wrong_kind(self, workflow: ShortlistWorkflow, fake_repository: Any) -> None:
        album = CatalogItem(kind=ItemType.ALBUM, id="a1", name="OK Computer")

        outcome = await workflow.add_to_shortlist(album)

        assert not outcome.ok
        assert fake_repository.calls == []

    async def test_item_already_on_other_axis(
        self, workflow: ShortlistWorkflow, fake_repository: Any
    ) -> None:
        fake_repository.seed("t1", SelectionRole.ICK_CANDIDATE)

        outcome = await workflow.add_to_shortlist(_track("t1"))

        assert not outcome.ok
        assert "ick_candidate" in (outcome.message or "")
        assert workflow.entries == []

    async def test_auth_failure_asks_for_reconnect(
        self, workflow: ShortlistWorkflow, fake_repository: Any
    ) -> None:
        fake_repository.fail_next("add_candidate", AuthInvalidError(status_code=401))

        outcome = await workflow.add_to_shortlist(_track("t1"))

        assert not outcome.ok
        assert outcome.requires_reconnect
        assert outcome.message == RECONNECT_MESSAGE
        assert isinstance(outcome.error, AuthInvalidError)
        assert workflow.state is SlotState.EMPTY


class TestPromote:
    """HAS_CANDIDATES -> HAS_SELECTION."""

    async def test_promote_new_item(
        self, workflow: ShortlistWorkflow, fake_repository: Any
    ) -> None:
        """Picking straight from search results adds, then promotes."""
        await workflow.load()

        outcome = await workflow.promote(_track("t1"))

        assert outcome.ok
        assert outcome.record is not None and outcome.record.is_selected
        assert workflow.state is SlotState.HAS_SELECTION
        assert [c[0] for c in fake_repository.calls] == [
            "list_for_period",
            "list_for_period",
            "add_candidate",
            "update",
        ]

    async def test_promote_existing_candidate(
        self, workflow: ShortlistWorkflow, fake_repository: Any
    ) -> None:
        fake_repository.seed("t1", SelectionRole.MUSE_CANDIDATE)
        await workflow.load()

        outcome = await workflow.promote(workflow.entries[0])

        assert outcome.ok
        assert fake_repository.calls_named("add_candidate") == []
        assert workflow.selected is not None and workflow.selected.catalog_item_id == "t1"

    async def test_promote_demotes_previous_selection(
        self, workflow: ShortlistWorkflow, fake_repository: Any
    ) -> None:
        old = fake_repository.seed("old", SelectionRole.MUSE_SELECTED)
        await workflow.load()

        outcome = await workflow.promote(_track("new"))

        assert outcome.ok
        updates = fake_repository.calls_named("update")
        assert updates[0] == ("update", old.id, "muse_candidate")
        assert updates[1][2] == "muse_selected"
        assert _selected_in_slot(fake_repository) == ["new"]
        assert fake_repository.violations == []
        assert {e.catalog_item_id: e.is_selected for e in workflow.entries} == {
            "old": False,
            "new": True,
        }

    async def test_promote_already_selected_is_noop(
        self, workflow: ShortlistWorkflow, fake_repository: Any
    ) -> None:
        fake_repository.seed("t1", SelectionRole.MUSE_SELECTED)
        await workflow.load()

        outcome = await workflow.promote(_track("t1"))

        assert outcome.ok
        assert fake_repository.calls_named("update") == []

    async def test_promote_by_stale_record(
        self, workflow: ShortlistWorkflow, fake_repository: Any
    ) -> None:
        """A record captured before a demotion still promotes correctly."""
        first = fake_repository.seed("t1", SelectionRole.MUSE_SELECTED)
        await workflow.load()
        await workflow.promote(_track("t2"))

        outcome = await workflow.promote(first)

        assert outcome.ok
        assert _selected_in_slot(fake_repository) == ["t1"]
        assert fake_repository.violations == []

    async def test_promote_without_load_demotes_backend_selection(
        self, workflow: ShortlistWorkflow, fake_repository: Any
    ) -> None:
        """The slot is re-read first, so a pick we never loaded is still demoted."""
        old = fake_repository.seed("old", SelectionRole.MUSE_SELECTED)

        outcome = await workflow.promote(_track("new"))

        assert outcome.ok
        assert fake_repository.calls_named("update")[0] == ("update", old.id, "muse_candidate")
        assert _selected_in_slot(fake_repository) == ["new"]
        assert fake_repository.violations == []

    async def test_promote_item_shortlisted_elsewhere_is_not_re_added(
        self, workflow: ShortlistWorkflow, fake_repository: Any
    ) -> None:
        """A candidate added from another workflow instance is found by the re-read."""
        fake_repository.seed("t1", SelectionRole.MUSE_CANDIDATE)

        outcome = await workflow.promote(_track("t1"))

        assert outcome.ok
        assert fake_repository.calls_named("add_candidate") == []


class TestPartialFailure:
    """Promote is multi-step; the new item may be left a candidate, the old pick is never lost."""

    async def test_failed_promotion_leaves_candidate(
        self, workflow: ShortlistWorkflow, fake_repository: Any
    ) -> None:
        fake_repository.fail_next("update", RequestFailedError(500, "database timeout"))

        outcome = await workflow.promote(_track("t1"))

        assert not outcome.ok
        assert outcome.message == "Selecting item failed: database timeout"
        assert outcome.record is not None and outcome.record.is_candidate
        assert workflow.state is SlotState.HAS_CANDIDATES
        assert workflow.error is outcome

    async def test_retry_does_not_add_again(
        self, workflow: ShortlistWorkflow, fake_repository: Any
    ) -> None:
        fake_repository.fail_next("update", RequestFailedError(500, "database timeout"))
        await workflow.promote(_track("t1"))

        outcome = await workflow.promote(_track("t1"))

        assert outcome.ok
        assert len(fake_repository.calls_named("add_candidate")) == 1
        assert workflow.state is SlotState.HAS_SELECTION
        assert workflow.error is None

    async def test_failed_demotion_keeps_old_selection(
        self, workflow: ShortlistWorkflow, fake_repository: Any
    ) -> None:
        fake_repository.seed("old", SelectionRole.MUSE_SELECTED)
        await workflow.load()
        fake_repository.fail_next("update", NetworkError("connection reset"))

        outcome = await workflow.promote(_track("new"))

        assert not outcome.ok
        assert _selected_in_slot(fake_repository) == ["old"]
        assert fake_repository.violations == []

    async def test_failed_selection_restores_old_selection(
        self, workflow: ShortlistWorkflow, fake_repository: Any
    ) -> None:
        """Demotion succeeds, selecting the new item fails: the old pick is put back."""
        old = fake_repository.seed("old", SelectionRole.MUSE_SELECTED)
        await workflow.load()
        fake_repository.fail_next("update", RequestFailedError(500, "database timeout"), after=1)

        outcome = await workflow.promote(_track("new"))

        assert not outcome.ok
        assert outcome.message == "Selecting item failed: database timeout"
        assert outcome.record is not None and outcome.record.is_candidate
        assert [c[1:] for c in fake_repository.calls_named("update")] == [
            (old.id, "muse_candidate"),
            (outcome.record.id, "muse_selected"),
            (old.id, "muse_selected"),
        ]
        assert _selected_in_slot(fake_repository) == ["old"]
        assert fake_repository.violations == []
        assert workflow.selected is not None and workflow.selected.catalog_item_id == "old"
        assert workflow.entry_for("new") is not None
        assert workflow.state is SlotState.HAS_SELECTION

    async def test_auth_failure_during_promotion(
        self, workflow: ShortlistWorkflow, fake_repository: Any
    ) -> None:
        fake_repository.fail_next("update", AuthInvalidError(status_code=401))

        outcome = await workflow.promote(_track("t1"))

        assert outcome.requires_reconnect
        assert outcome.message == RECONNECT_MESSAGE
        assert outcome.record is not None


class TestPromotionPolicies:
    """Single selection per slot holds for any sequence of promotions."""

    @pytest.mark.parametrize("seed", [1, 7, 42, 1234])
    async def test_single_selection_with_client_demotion(
        self, workflow: ShortlistWorkflow, fake_repository: Any, seed: int
    ) -> None:
        rng = random.Random(seed)
        items = [_track(f"t{i}") for i in range(5)]

        for _ in range(25):
            outcome = await workflow.promote(rng.choice(items))
            assert outcome.ok
            assert len(_selected_in_slot(fake_repository)) == 1
            assert sum(e.is_selected for e in workflow.entries) == 1

        assert fake_repository.violations == []

    async def test_backend_policy_trusts_backend(
        self,
        make_settings: Callable[..., Settings],
        make_fake_repository: Any,
        catalog: AsyncMock,
    ) -> None:
        repository = make_fake_repository(backend_demotes=True)
        settings = make_settings(
            selection=SelectionSettings(promotion_policy=PromotionPolicy.BACKEND)
        )
        workflow = ShortlistWorkflow(SLOT, repository, catalog, settings=settings)
        repository.seed("old", SelectionRole.MUSE_SELECTED)
        await workflow.load()

        outcome = await workflow.promote(_track("new"))

        assert outcome.ok
        assert [c[2] for c in repository.calls_named("update")] == ["muse_selected"]
        assert repository.violations == []
        assert workflow.selected is not None and workflow.selected.catalog_item_id == "new"
        assert sum(e.is_selected for e in workflow.entries) == 1

    async def test_backend_policy_relists_without_load(
        self,
        make_settings: Callable[..., Settings],
        make_fake_repository: Any,
        catalog: AsyncMock,
    ) -> None:
        repository = make_fake_repository(backend_demotes=True)
        settings = make_settings(
            selection=SelectionSettings(promotion_policy=PromotionPolicy.BACKEND)
        )
        workflow = ShortlistWorkflow(SLOT, repository, catalog, settings=settings)
        repository.seed("old", SelectionRole.MUSE_SELECTED)

        outcome = await workflow.promote(_track("new"))

        assert outcome.ok
        assert repository.calls[-1][0] == "list_for_period"
        assert {e.catalog_item_id: e.is_selected for e in workflow.entries} == {
            "old": False,
            "new": True,
        }

    async def test_backend_policy_needs_a_demoting_backend(
        self,
        make_settings: Callable[..., Settings],
        make_fake_repository: Any,
        catalog: AsyncMock,
    ) -> None:
        repository = make_fake_repository(backend_demotes=False)
        settings = make_settings(
            selection=SelectionSettings(promotion_policy=PromotionPolicy.BACKEND)
        )
        workflow = ShortlistWorkflow(SLOT, repository, catalog, settings=settings)
        repository.seed("old", SelectionRole.MUSE_SELECTED)
        await workflow.load()

        await workflow.promote(_track("new"))

        assert repository.violations != []


class TestAnnotateAndRemove:
    """Notes and deletion."""

    async def test_annotate(self, workflow: ShortlistWorkflow, fake_repository: Any) -> None:
        record = fake_repository.seed("t1", SelectionRole.MUSE_CANDIDATE)
        await workflow.load()

        outcome = await workflow.annotate(record.id, "the bridge!")

        assert outcome.ok
        assert workflow.entries[0].record.notes == "the bridge!"
        assert workflow.entries[0].item is not None

    async def test_annotate_unknown(self, workflow: ShortlistWorkflow) -> None:
        outcome = await workflow.annotate("missing", "x")

        assert not outcome.ok
        assert outcome.message == "Saving notes failed: Selection not found"

    async def test_remove(self, workflow: ShortlistWorkflow, fake_repository: Any) -> None:
        record = fake_repository.seed("t1", SelectionRole.MUSE_CANDIDATE)
        await workflow.load()

        outcome = await workflow.remove(record.id)

        assert outcome.ok
        assert workflow.state is SlotState.EMPTY
        assert fake_repository.records == {}


class TestRefreshSelection:
    """Closing transition."""

    async def test_returns_backend_selection(
        self, workflow: ShortlistWorkflow, fake_repository: Any
    ) -> None:
        await workflow.promote(_track("t1"))

        selected = await workflow.refresh_selection()

        assert selected is not None
        assert selected.catalog_item_id == "t1"
        assert fake_repository.calls[-1][0] == "list_for_period"

    async def test_nothing_selected(self, workflow: ShortlistWorkflow) -> None:
        await workflow.add_to_shortlist(_track("t1"))
        assert await workflow.refresh_selection() is None

    async def test_failure_returns_none(
        self, workflow: ShortlistWorkflow, fake_repository: Any
    ) -> None:
        fake_repository.fail_next("list_for_period", NetworkError("offline"))

        assert await workflow.refresh_selection() is None
        assert workflow.error is not None


class TestSearch:
    """Debounced search restricted to the slot's kind."""

    async def test_search(self, workflow: ShortlistWorkflow, catalog: AsyncMock) -> None:
        catalog.search.return_value = CatalogSearchResults(tracks=[_track("t1")])

        workflow.search("radiohead")
        results = await workflow.wait_for_search()

        assert results == [_track("t1")]
        assert workflow.search_results == results
        catalog.search.assert_awaited_once_with("radiohead", types=[ItemType.TRACK], limit=20)

    async def test_search_auth_failure(
        self, workflow: ShortlistWorkflow, catalog: AsyncMock
    ) -> None:
        catalog.search.side_effect = AuthInvalidError(status_code=401)

        workflow.search("radiohead")
        await workflow.wait_for_search()

        assert workflow.search_results == []
        assert workflow.error is not None and workflow.error.requires_reconnect

    async def test_close_cancels_search(
        self, workflow: ShortlistWorkflow, catalog: AsyncMock
    ) -> None:
        workflow.search("radiohead")
        workflow.close()
        await workflow.wait_for_search()

        catalog.search.assert_not_awaited()
