"""Facet index construction."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from histfacet.models import Dimension, Facet, Level, Record

LOGGER = logging.getLogger(__name__)

KEY_SEPARATOR = "|"

_KEYWORD_POSITIONS = {Level.MAJOR: 0, Level.MID: 1, Level.MINOR: 2}


def keyword_key(major: str | None, mid: str | None, minor: str | None) -> str:
    """Join a keyword tuple's levels into the composite index key."""
    return KEY_SEPARATOR.join(part or "" for part in (major, mid, minor))


def split_keyword_key(key: str) -> tuple[str, str, str]:
    parts = key.split(KEY_SEPARATOR)
    parts += [""] * (3 - len(parts))
    return parts[0], parts[1], parts[2]


def _clean(value: object) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


@dataclass(slots=True)
class FacetIndex:
    """Inverted maps from classification keys to ordered record ids."""

    title_major: dict[str, tuple[int, ...]] = field(default_factory=dict)
    title_mid: dict[str, tuple[int, ...]] = field(default_factory=dict)
    keyword: dict[str, tuple[int, ...]] = field(default_factory=dict)
    year: dict[int, tuple[int, ...]] = field(default_factory=dict)

    def ids_for(self, facet: Facet, value: str) -> set[int]:
        """Return ids of records carrying ``value`` at ``facet``'s level."""
        if facet is Facet.TITLE_MAJOR:
            return set(self.title_major.get(value, ()))
        if facet is Facet.TITLE_MID:
            return set(self.title_mid.get(value, ()))
        position = _KEYWORD_POSITIONS[facet.level]
        ids: set[int] = set()
        for key, key_ids in self.keyword.items():
            if split_keyword_key(key)[position] == value:
                ids.update(key_ids)
        return ids

    def ids_for_any(self, facet: Facet, values: Iterable[str]) -> set[int]:
        ids: set[int] = set()
        for value in values:
            ids |= self.ids_for(facet, value)
        return ids

    def keys(self, facet: Facet) -> list[str]:
        if facet.dimension is Dimension.TITLE:
            source = self.title_major if facet is Facet.TITLE_MAJOR else self.title_mid
            return list(source)
        position = _KEYWORD_POSITIONS[facet.level]
        seen = dict.fromkeys(
            split_keyword_key(key)[position] for key in self.keyword
        )
        return [name for name in seen if name]

    def all_ids(self) -> set[int]:
        ids: set[int] = set()
        for mapping in (self.title_major, self.title_mid, self.keyword, self.year):
            for key_ids in mapping.values():
                ids.update(key_ids)
        return ids


@dataclass(slots=True)
class IndexStats:
    records: int = 0
    title_major_keys: int = 0
    title_mid_keys: int = 0
    keyword_keys: int = 0
    years: int = 0
    undated: int = 0


def _freeze(buckets: Mapping[object, dict[int, None]]) -> dict:
    return {key: tuple(ids) for key, ids in buckets.items()}


def build_index(records: Iterable[Record]) -> FacetIndex:
    """Build a fresh :class:`FacetIndex`.

    Missing or malformed classification fields are omitted rather than
    raising.
    """
    title_major: dict[str, dict[int, None]] = {}
    title_mid: dict[str, dict[int, None]] = {}
    keyword: dict[str, dict[int, None]] = {}
    year: dict[int, dict[int, None]] = {}

    for record in records:
        record_id = record.id
        major = _clean(record.title_major)
        if major:
            title_major.setdefault(major, {})[record_id] = None
        mid = _clean(record.title_mid)
        if mid:
            title_mid.setdefault(mid, {})[record_id] = None
        for kw in record.keywords or ():
            parts = (_clean(kw.major), _clean(kw.mid), _clean(kw.minor))
            if not any(parts):
                continue
            keyword.setdefault(keyword_key(*parts), {})[record_id] = None
        if isinstance(record.year, int):
            year.setdefault(record.year, {})[record_id] = None

    return FacetIndex(
        title_major=_freeze(title_major),
        title_mid=_freeze(title_mid),
        keyword=_freeze(keyword),
        year=_freeze(year),
    )


class FacetIndexer:
    """Builds facet indexes over a loaded record set."""

    def __init__(self) -> None:
        self.stats = IndexStats()

    def build(self, records: Iterable[Record]) -> FacetIndex:
        records = list(records)
        index = build_index(records)
        self.stats = IndexStats(
            records=len(records),
            title_major_keys=len(index.title_major),
            title_mid_keys=len(index.title_mid),
            keyword_keys=len(index.keyword),
            years=len(index.year),
            undated=sum(1 for record in records if record.year is None),
        )
        LOGGER.info(
            "Indexed %d records (%d title majors, %d keyword keys, %d years)",
            self.stats.records,
            self.stats.title_major_keys,
            self.stats.keyword_keys,
            self.stats.years,
        )
        return index
