"""Shared test fixtures.

Hey future me - every HTTP-level test uses pytest-httpx (httpx_mock), so the real
AuthenticatedApiClient / RefreshCoordinator code paths run end to end against canned
responses. Workflow tests use FakeSelectionRepository instead: an in-memory backend
that records every call and checks "at most one selected per slot" after each mutation.
"""

import itertools
import logging
from collections import Counter
from collections.abc import AsyncIterator, Callable, Iterator
from typing import Any
from unittest.mock import AsyncMock

import pytest

from museick.config import (
    BackendSettings,
    CredentialSettings,
    PromotionPolicy,
    SearchSettings,
    SelectionSettings,
    Settings,
    SpotifySettings,
)
from museick.domain.entities import SelectionRecord
from museick.domain.exceptions import DomainException, InvalidArgumentError, RequestFailedError
from museick.domain.ports import SelectionRepository
from museick.domain.value_objects import Axis, ItemType, PeriodKey, SelectionRole
from museick.infrastructure.credentials import InMemoryCredentialStore
from museick.infrastructure.events import AuthEvent, AuthEventBus
from museick.infrastructure.integrations import AuthenticatedApiClient, RefreshCoordinator

BACKEND_URL = "http://backend.test/api"
SPOTIFY_API_URL = "https://api.spotify.test/v1"


class FakeSelectionRepository(SelectionRepository):
    """In-memory stand-in for the backend /selections API.

    backend_demotes=True mimics the real backend (promoting demotes the slot's previous
    selection server-side); False is a "dumb" backend that just stores what it's told.
    """

    def __init__(self, *, backend_demotes: bool = False, user_id: str = "user-1") -> None:
        self.records: dict[str, SelectionRecord] = {}
        self.backend_demotes = backend_demotes
        self.user_id = user_id
        self.calls: list[tuple[Any, ...]] = []
        self.violations: list[str] = []
        self._failures: dict[str, tuple[int, DomainException]] = {}
        self._ids = itertools.count(1)

    def fail_next(self, operation: str, error: DomainException, *, after: int = 0) -> None:
        """Make a coming call of operation raise error, skipping the next `after` calls."""
        self._failures[operation] = (after, error)

    def _maybe_fail(self, operation: str) -> None:
        pending = self._failures.get(operation)
        if pending is None:
            return
        skip, error = pending
        if skip:
            self._failures[operation] = (skip - 1, error)
            return
        del self._failures[operation]
        raise error

    def _check_single_selection(self) -> None:
        selected = Counter(r.slot for r in self.records.values() if r.is_selected)
        for slot, count in selected.items():
            if count > 1:
                self.violations.append(f"{slot}: {count} selected")

    def seed(
        self,
        catalog_item_id: str,
        role: SelectionRole,
        period_key: str = "2024-07",
        item_type: ItemType = ItemType.TRACK,
    ) -> SelectionRecord:
        record = SelectionRecord(
            id=f"sel-{next(self._ids)}",
            user_id=self.user_id,
            catalog_item_id=catalog_item_id,
            item_type=item_type,
            role=role,
            period_key=PeriodKey.parse(period_key),
        )
        self.records[record.id] = record
        return record

    def cached(self, selection_id: str) -> SelectionRecord | None:
        return self.records.get(selection_id)

    async def add_candidate(
        self,
        catalog_item_id: str,
        item_type: ItemType,
        period_key: PeriodKey | str,
        axis: Axis,
        notes: str | None = None,
    ) -> SelectionRecord:
        self.calls.append(("add_candidate", catalog_item_id))
        self._maybe_fail("add_candidate")
        period = PeriodKey.parse(period_key)
        for record in self.records.values():
            if (
                record.catalog_item_id == catalog_item_id
                and record.item_type is item_type
                and record.period_key == period
            ):
                return record
        record = SelectionRecord(
            id=f"sel-{next(self._ids)}",
            user_id=self.user_id,
            catalog_item_id=catalog_item_id,
            item_type=item_type,
            role=axis.candidate_role,
            period_key=period,
            notes=notes,
        )
        self.records[record.id] = record
        return record

    async def list_for_period(self, period_key: PeriodKey | str) -> list[SelectionRecord]:
        period = PeriodKey.parse(period_key)
        self.calls.append(("list_for_period", str(period)))
        self._maybe_fail("list_for_period")
        return [r for r in self.records.values() if r.period_key == period]

    async def update(
        self,
        selection_id: str,
        *,
        role: SelectionRole | None = None,
        notes: str | None = None,
        allow_demotion: bool = False,
    ) -> SelectionRecord:
        self.calls.append(("update", selection_id, role.value if role else None))
        self._maybe_fail("update")
        if role is None and notes is None:
            raise InvalidArgumentError("update requires 'role' or 'notes'")
        current = self.records.get(selection_id)
        if current is None:
            raise RequestFailedError(404, "Selection not found")
        if role is not None and not current.role.can_transition_to(role, allow_demotion):
            raise InvalidArgumentError(f"Cannot change {current.role.value} to {role.value}")

        if role is not None and role.is_selected and self.backend_demotes:
            for other in list(self.records.values()):
                if other.id != selection_id and other.slot == current.slot and other.is_selected:
                    self.records[other.id] = other.with_changes(role=other.axis.candidate_role)

        updated = current.with_changes(role=role, notes=notes)
        self.records[selection_id] = updated
        self._check_single_selection()
        return updated

    async def delete(self, selection_id: str) -> bool:
        self.calls.append(("delete", selection_id))
        self._maybe_fail("delete")
        if selection_id not in self.records:
            raise RequestFailedError(404, "Selection not found")
        del self.records[selection_id]
        return True

    def calls_named(self, operation: str) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[0] == operation]


@pytest.fixture
def make_settings(tmp_path: Any) -> Callable[..., Settings]:
    """Factory for deterministic Settings (explicit values beat env and .env)."""

    def _make(**overrides: Any) -> Settings:
        groups: dict[str, Any] = {
            "backend": BackendSettings(base_url=BACKEND_URL, request_timeout=5.0),
            "spotify": SpotifySettings(
                client_id="test-client-id",
                redirect_uri="http://localhost:5173/callback",
                api_base_url=SPOTIFY_API_URL,
            ),
            "search": SearchSettings(debounce_seconds=0.01, min_query_length=3, result_limit=20),
            "selection": SelectionSettings(promotion_policy=PromotionPolicy.DEMOTE_PREVIOUS),
            "credentials": CredentialSettings(token_path=tmp_path / "credentials.json"),
        }
        groups.update(overrides)
        return Settings(**groups)

    return _make


@pytest.fixture
def settings(make_settings: Callable[..., Settings]) -> Settings:
    return make_settings()


@pytest.fixture
def root_logging() -> Iterator[logging.Logger]:
    """The root logger, with handlers and levels put back after the test."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    quiet = {name: logging.getLogger(name).level for name in ("httpx", "httpcore", "asyncio")}
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)
    for name, quiet_level in quiet.items():
        logging.getLogger(name).setLevel(quiet_level)


@pytest.fixture
def session_token_provider() -> AsyncMock:
    """Identity provider stand-in returning a session JWT."""
    return AsyncMock(return_value="session-jwt")


@pytest.fixture
def credential_store() -> InMemoryCredentialStore:
    return InMemoryCredentialStore(token="catalog-token")


@pytest.fixture
def events() -> AuthEventBus:
    return AuthEventBus()


@pytest.fixture
def received_events(events: AuthEventBus) -> list[AuthEvent]:
    """Every event published on the bus during the test."""
    received: list[AuthEvent] = []
    events.subscribe(received.append)
    return received


@pytest.fixture
async def refresh_coordinator(
    settings: Settings,
    session_token_provider: AsyncMock,
    credential_store: InMemoryCredentialStore,
    events: AuthEventBus,
) -> AsyncIterator[RefreshCoordinator]:
    coordinator = RefreshCoordinator(
        settings.backend, session_token_provider, credential_store, events
    )
    yield coordinator
    await coordinator.aclose()


@pytest.fixture
async def api_client(
    settings: Settings,
    session_token_provider: AsyncMock,
    credential_store: InMemoryCredentialStore,
    refresh_coordinator: RefreshCoordinator,
    events: AuthEventBus,
) -> AsyncIterator[AuthenticatedApiClient]:
    client = AuthenticatedApiClient(
        settings, session_token_provider, credential_store, refresh_coordinator, events
    )
    yield client
    await client.aclose()


@pytest.fixture
def fake_repository() -> FakeSelectionRepository:
    return FakeSelectionRepository()


def selection_payload(
    selection_id: str = "sel-1",
    spotify_item_id: str = "track-1",
    role: str = "muse_candidate",
    month_year: str = "2024-07",
    item_type: str = "track",
    **extra: Any,
) -> dict[str, Any]:
    """A /selections document as the backend serializes it."""
    return {
        "id": selection_id,
        "user_id": "user-1",
        "spotify_item_id": spotify_item_id,
        "item_type": item_type,
        "selection_role": role,
        "month_year": month_year,
        "added_at": "2024-07-03T10:00:00Z",
        "updated_at": "2024-07-03T10:00:00Z",
        **extra,
    }


@pytest.fixture
def make_selection_payload() -> Callable[..., dict[str, Any]]:
    return selection_payload


@pytest.fixture
def make_fake_repository() -> type[FakeSelectionRepository]:
    return FakeSelectionRepository
