"""Session facade tying the record store, filter state and search together."""

from __future__ import annotations

import logging
from typing import Any, Callable

from histfacet.filtering.availability import FacetOption, available, facet_options
from histfacet.filtering.predicate import filter_records
from histfacet.index.search import SearchContext, SortOrder, sort_records
from histfacet.index.store import LoadState, RecordSource, RecordStore
from histfacet.models import Dimension, Facet, FilterMode, Level, Record
from histfacet.state import FilterStateStore

LOGGER = logging.getLogger(__name__)


class Explorer:
    """One exploration session over a loaded record set.

    Filtered results are cached per state version and store generation, so
    repeated reads between mutations do not recompute.
    """

    def __init__(self, store: RecordStore | None = None, state: FilterStateStore | None = None) -> None:
        self.store = store if store is not None else RecordStore()
        self.state = state if state is not None else FilterStateStore()
        self.search: SearchContext | None = None
        self._search_version = 0
        self._cache: dict[Any, list] = {}
        self._stamp: tuple = ()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self, source: RecordSource) -> LoadState:
        self._cache.clear()
        self.search = None
        result = self.store.load(source)
        self.state.set("data_loaded", result is LoadState.LOADED)
        return result

    async def init_async(self, source: RecordSource) -> LoadState:
        self._cache.clear()
        self.search = None
        result = await self.store.load_async(source)
        self.state.set("data_loaded", self.store.is_loaded)
        return result

    def reset(self) -> None:
        """Drop the search subset and all selections; the record set stays."""
        self.clear_search()
        self.state.reset()

    def teardown(self) -> None:
        self.state.clear_listeners()
        self.store.teardown()
        self.state.reset()
        self.state.set("data_loaded", False)
        self.search = None
        self._cache.clear()

    # ------------------------------------------------------------------
    # Search integration
    # ------------------------------------------------------------------

    def apply_search(self, context: SearchContext) -> None:
        """Seed the pipeline with a search subset and its derived window."""
        self.search = context
        self._search_version += 1
        self.state.update(
            {
                "filters.title": {"major": [], "mid": []},
                "filters.keyword": {"major": [], "mid": [], "minor": []},
                "filters.era": None,
                "filters.era_start_year": None,
                "filters.era_end_year": None,
                "filters.date_filter_type": "western",
                "filters.start_date": context.start,
                "filters.end_date": context.end,
                "root_dimension": None,
                "view.sort_order": SortOrder.RELEVANCE.value,
            },
            kind="search",
        )

    def clear_search(self) -> None:
        if self.search is not None:
            self.search = None
            self._search_version += 1

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def _cached(self, key: Any, compute: Callable[[], list]) -> list:
        stamp = (self.state.version, self.store.generation, self._search_version)
        if stamp != self._stamp:
            self._cache.clear()
            self._stamp = stamp
        if key not in self._cache:
            self._cache[key] = compute()
        return list(self._cache[key])

    def base_records(self) -> list[Record]:
        if not self.store.is_loaded:
            return []
        if self.search is not None:
            return list(self.search.records)
        return self.store.records

    def _candidates(self) -> list[Record]:
        selection = self.state.selection
        base = self.base_records()
        if selection.mode is FilterMode.AND and selection.title.major:
            ids = self.store.index.ids_for_any(Facet.TITLE_MAJOR, selection.title.major)
            return [record for record in base if record.id in ids]
        return base

    def filtered(self) -> list[Record]:
        """Records passing every active predicate (a fresh list per call)."""
        return self._cached("filtered", lambda: filter_records(self._candidates(), self.state.selection))

    def sorted_results(self, order: SortOrder | str | None = None) -> list[Record]:
        order = order or self.state.get("view.sort_order") or SortOrder.RELEVANCE
        return sort_records(self.filtered(), order, self.search)

    def available(self, dimension: Dimension | str, level: Level | str) -> list[Record]:
        facet = Facet.of(dimension, level)
        return self._cached(
            ("available", facet),
            lambda: available(facet.dimension, facet.level, self.state.selection, self.base_records()),
        )

    def facet_options(self, facet: Facet) -> list[FacetOption]:
        return self._cached(
            ("options", facet),
            lambda: facet_options(facet, self.state.selection, self.base_records()),
        )

    def year_histogram(self) -> dict[int, int]:
        """Record counts per year for the current filtered result."""
        counts: dict[int, int] = {}
        for record in self.filtered():
            if record.year is not None:
                counts[record.year] = counts.get(record.year, 0) + 1
        return dict(sorted(counts.items()))
