"""Debounced catalog search with stale-response suppression.

Hey future me - a naive "sleep 500ms then search" renders whichever response arrives LAST, so
typing "radio" then "radiohead" can end up showing results for "radio". Here:

- every submit() bumps a generation counter and cancels the pending timer AND any in-flight
  search task (abort-on-supersede via task cancellation)
- a finished search commits its results ONLY if its generation is still the latest
  (last-committed-wins - holds even if the search function ignores cancellation)
- blank term -> results cleared immediately; term shorter than min_length -> ignored,
  current results kept
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from museick.domain.value_objects import CatalogItem

logger = logging.getLogger(__name__)

SearchFunction = Callable[[str], Awaitable[list[CatalogItem]]]
ResultsCallback = Callable[[str, list[CatalogItem]], None]
ErrorCallback = Callable[[str, Exception], None]


class SearchDebouncer:
    """Runs only the most recent search after a quiet period."""

    def __init__(
        self,
        search_fn: SearchFunction,
        *,
        delay: float = 0.5,
        min_length: int = 3,
        on_results: ResultsCallback | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self._search_fn = search_fn
        self._delay = delay
        self._min_length = min_length
        self._on_results = on_results
        self._on_error = on_error

        self._generation = 0
        self._pending: asyncio.Task[None] | None = None
        self._results: list[CatalogItem] = []
        self._committed_term = ""
        self._error: Exception | None = None
        self._loading = False

    @property
    def results(self) -> list[CatalogItem]:
        return list(self._results)

    @property
    def committed_term(self) -> str:
        """The term whose results are currently shown."""
        return self._committed_term

    @property
    def error(self) -> Exception | None:
        return self._error

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def is_pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def submit(self, term: str) -> None:
        """Schedule a search for term, superseding whatever was scheduled or running."""
        self._generation += 1
        self._cancel_pending()

        if not term.strip():
            self._results = []
            self._committed_term = ""
            self._error = None
            self._loading = False
            return

        self._pending = asyncio.create_task(
            self._debounced(term, self._generation), name=f"museick-search-{self._generation}"
        )

    def cancel(self) -> None:
        """Drop any scheduled or running search (e.g. the dialog closed)."""
        self._generation += 1
        self._cancel_pending()
        self._loading = False

    async def wait(self) -> None:
        """Wait until no search is scheduled or running."""
        while self._pending is not None and not self._pending.done():
            await asyncio.wait({self._pending})

    def _cancel_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _debounced(self, term: str, generation: int) -> None:
        await asyncio.sleep(self._delay)

        query = term.strip()
        if len(query) < self._min_length:
            logger.debug("Search term %r below %d chars, ignored", query, self._min_length)
            return

        self._loading = True
        self._error = None
        try:
            results = await self._search_fn(query)
        except Exception as e:
            if not self._is_current(generation):
                return
            logger.warning("Search for %r failed: %s", query, e)
            self._results = []
            self._error = e
            self._loading = False
            if self._on_error is not None:
                self._on_error(query, e)
            return

        if not self._is_current(generation):
            logger.debug("Discarding stale results for %r (superseded)", query)
            return

        self._results = results
        self._committed_term = query
        self._loading = False
        if self._on_results is not None:
            self._on_results(query, results)
