"""Facet availability for progressive narrowing.

Availability decides which facet values are selectable and the counts shown
next to them. It never produces the final filtered result.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Iterable, Sequence

from histfacet.filtering.predicate import filter_by_date, keyword_matches_all, title_matches_all
from histfacet.models import (
    Dimension,
    Facet,
    FilterMode,
    FilterSelection,
    KeywordSelection,
    Level,
    Record,
)


@dataclass(frozen=True, slots=True)
class FacetOption:
    name: str
    count: int
    selected: bool
    disabled: bool


def _dedupe(records: Iterable[Record]) -> list[Record]:
    seen: set[int] = set()
    unique: list[Record] = []
    for record in records:
        if record.id in seen:
            continue
        seen.add(record.id)
        unique.append(record)
    return unique


def _has_tuple_under(record: Record, keyword: KeywordSelection, level: Level) -> bool:
    """Some tuple matches the selected parent levels of ``level``."""
    for kw in record.keywords:
        if keyword.major and kw.major not in keyword.major:
            continue
        if level is Level.MINOR and keyword.mid and kw.mid not in keyword.mid:
            continue
        return True
    return False


def _narrow_title(records: list[Record], selection: FilterSelection, level: Level) -> list[Record]:
    narrowed = [r for r in records if keyword_matches_all(r, selection.keyword)]
    if level is Level.MID and selection.title.major:
        narrowed = [r for r in narrowed if r.title_major in selection.title.major]
    return narrowed


def _narrow_keyword(records: list[Record], selection: FilterSelection, level: Level) -> list[Record]:
    narrowed = [r for r in records if title_matches_all(r, selection.title)]
    keyword = selection.keyword
    has_parent = bool(keyword.major) or (level is Level.MINOR and bool(keyword.mid))
    if level is not Level.MAJOR and has_parent:
        narrowed = [r for r in narrowed if _has_tuple_under(r, keyword, level)]
    return narrowed


def available(
    dimension: Dimension | str,
    level: Level | str,
    selection: FilterSelection,
    base: Sequence[Record],
) -> list[Record]:
    """Records that stay reachable for ``dimension``/``level``."""
    facet = Facet.of(dimension, level)
    records = filter_by_date(base, selection)
    if selection.mode is FilterMode.OR:
        return records

    if facet.dimension is Dimension.TITLE:
        narrowed = _narrow_title(records, selection, facet.level)
    else:
        narrowed = _narrow_keyword(records, selection, facet.level)
    return _dedupe(narrowed)


def available_names(records: Iterable[Record], facet: Facet) -> set[str]:
    names: set[str] = set()
    for record in records:
        names.update(record.values_at(facet))
    return names


def value_counts(records: Iterable[Record], facet: Facet) -> Counter[str]:
    """Count distinct records per value at ``facet``'s level.

    A record carrying the same keyword value on several tuples counts once.
    """
    ids: dict[str, set[int]] = {}
    for record in records:
        for value in record.values_at(facet):
            ids.setdefault(value, set()).add(record.id)
    return Counter({value: len(value_ids) for value, value_ids in ids.items()})


def is_disabled(
    facet: Facet,
    name: str,
    selection: FilterSelection,
    available_records: Iterable[Record],
    *,
    names: set[str] | None = None,
) -> bool:
    if selection.mode is FilterMode.OR:
        return False
    selected = selection.values(facet)
    if name in selected:
        return False
    # title major is single-choice in AND mode
    if facet is Facet.TITLE_MAJOR and selected:
        return True
    if names is None:
        names = available_names(available_records, facet)
    return name not in names


def facet_options(
    facet: Facet,
    selection: FilterSelection,
    base: Sequence[Record],
) -> list[FacetOption]:
    """Build ``{name, count, selected, disabled}`` entries for one facet level.

    Options cover every value present in the date-filtered base plus any
    selected value; counts come from the narrowed availability set.
    """
    narrowed = available(facet.dimension, facet.level, selection, base)
    counts = value_counts(narrowed, facet)
    names = set(counts)

    candidates = available_names(filter_by_date(base, selection), facet)
    selected = selection.values(facet)
    candidates |= selected

    options = [
        FacetOption(
            name=name,
            count=counts[name],
            selected=name in selected,
            disabled=is_disabled(facet, name, selection, narrowed, names=names),
        )
        for name in candidates
    ]
    options.sort(key=lambda option: (-option.count, option.name))
    return options
