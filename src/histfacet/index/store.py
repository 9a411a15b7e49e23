"""In-memory record store with derived facet indexes."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from enum import Enum
from typing import Iterable, Protocol, Sequence

from histfacet.errors import LoadError
from histfacet.index.indexer import FacetIndex, FacetIndexer
from histfacet.models import Record

LOGGER = logging.getLogger(__name__)


class RecordSource(Protocol):
    def load_records(self) -> Sequence[Record]: ...


class LoadState(str, Enum):
    NOT_LOADED = "not_loaded"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


class RecordStore:
    """Owns the immutable record set and its indexes for one session."""

    def __init__(self, indexer: FacetIndexer | None = None) -> None:
        self.indexer = indexer or FacetIndexer()
        self._records: dict[int, Record] = {}
        self._index = FacetIndex()
        self.state = LoadState.NOT_LOADED
        self.error: str | None = None
        self.generation = 0

    @property
    def index(self) -> FacetIndex:
        return self._index

    @property
    def is_loaded(self) -> bool:
        return self.state is LoadState.LOADED

    @property
    def records(self) -> list[Record]:
        if not self.is_loaded:
            return []
        return list(self._records.values())

    def __len__(self) -> int:
        return len(self._records) if self.is_loaded else 0

    def get(self, record_id: int) -> Record | None:
        return self._records.get(record_id)

    def resolve(self, ids: Iterable[int]) -> list[Record]:
        """Map ids to records in load order, skipping ids with no record."""
        wanted = set(ids)
        found = [record for rid, record in self._records.items() if rid in wanted]
        if len(found) != len(wanted):
            dangling = wanted.difference(self._records)
            LOGGER.debug("Skipping %d dangling record ids: %s", len(dangling), sorted(dangling)[:10])
        return found

    def year_counts(self) -> dict[int, int]:
        if not self.is_loaded:
            return {}
        return {year: len(ids) for year, ids in sorted(self._index.year.items())}

    def title_major_counts(self) -> Counter[str]:
        if not self.is_loaded:
            return Counter()
        return Counter({name: len(ids) for name, ids in self._index.title_major.items()})

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _begin_load(self) -> int:
        self.generation += 1
        self._records = {}
        self._index = FacetIndex()
        self.state = LoadState.LOADING
        self.error = None
        return self.generation

    def _finish_load(self, token: int, records: Sequence[Record] | None, error: str | None) -> LoadState:
        if token != self.generation:
            LOGGER.info("Discarding superseded load (generation %d)", token)
            return self.state

        if error is None and not records:
            error = "Record source returned no records"

        if error is not None:
            LOGGER.error("Record load failed: %s", error)
            self.state = LoadState.FAILED
            self.error = error
            return self.state

        by_id: dict[int, Record] = {}
        for record in records or ():
            if record.id in by_id:
                LOGGER.debug("Duplicate record id %s, keeping the later one", record.id)
            by_id[record.id] = record
        self._records = by_id
        self._index = self.indexer.build(by_id.values())
        self.state = LoadState.LOADED
        return self.state

    def load(self, source: RecordSource) -> LoadState:
        """Load and index records from ``source``, replacing any previous set."""
        token = self._begin_load()
        try:
            records = source.load_records()
        except LoadError as exc:
            return self._finish_load(token, None, str(exc))
        return self._finish_load(token, records, None)

    async def load_async(self, source: RecordSource) -> LoadState:
        """Load in a worker thread; a newer load supersedes this one."""
        token = self._begin_load()
        try:
            records = await asyncio.to_thread(source.load_records)
        except LoadError as exc:
            return self._finish_load(token, None, str(exc))
        return self._finish_load(token, records, None)

    def teardown(self) -> None:
        self.generation += 1
        self._records = {}
        self._index = FacetIndex()
        self.state = LoadState.NOT_LOADED
        self.error = None
