"""Record-level filter predicates.

Filtering always runs in two stages: the temporal predicate first, then the
taxonomy predicate for the active :class:`FilterMode`.

In AND mode the keyword constraint is checked jointly per keyword tuple: a
single tuple has to satisfy every non-empty selected level. In OR mode each
selected level is matched independently, so a tuple matching only the
selected major counts even if mid/minor selections exist.
"""

from __future__ import annotations

from typing import Iterable

from histfacet.models import FilterMode, FilterSelection, KeywordSelection, Record, TitleSelection
from histfacet.utils.eras import era_to_western


def era_bounds(selection: FilterSelection) -> tuple[int | None, int | None]:
    """Western-year bounds for the active era constraint.

    A missing era year leaves that side open. Raises
    :class:`EraConversionError` for an unknown era or an era year outside
    the era's valid range.
    """
    start, end = selection.era_start_year, selection.era_end_year
    return (
        era_to_western(selection.era, start) if start is not None else None,
        era_to_western(selection.era, end) if end is not None else None,
    )


def passes_date(record: Record, selection: FilterSelection) -> bool:
    if selection.has_date_range():
        if record.date is None:
            return False
        if selection.start_date is not None and record.date < selection.start_date:
            return False
        if selection.end_date is not None and record.date > selection.end_date:
            return False
        return True

    if selection.era_active():
        if record.year is None:
            return False
        start, end = era_bounds(selection)
        if start is not None and record.year < start:
            return False
        if end is not None and record.year > end:
            return False
    return True


def title_matches_all(record: Record, title: TitleSelection) -> bool:
    if title.major and record.title_major not in title.major:
        return False
    if title.mid and record.title_mid not in title.mid:
        return False
    return True


def keyword_matches_all(record: Record, keyword: KeywordSelection) -> bool:
    """True when one tuple on the record matches every non-empty level."""
    if keyword.is_empty():
        return True
    for kw in record.keywords:
        if keyword.major and kw.major not in keyword.major:
            continue
        if keyword.mid and kw.mid not in keyword.mid:
            continue
        if keyword.minor and kw.minor not in keyword.minor:
            continue
        return True
    return False


def keyword_matches_any(record: Record, keyword: KeywordSelection) -> bool:
    for kw in record.keywords:
        if kw.major in keyword.major or kw.mid in keyword.mid or kw.minor in keyword.minor:
            return True
    return False


def passes_taxonomy(record: Record, selection: FilterSelection) -> bool:
    if selection.mode is FilterMode.AND:
        return title_matches_all(record, selection.title) and keyword_matches_all(
            record, selection.keyword
        )

    if not selection.has_taxonomy():
        return True
    title = selection.title
    if record.title_major in title.major:
        return True
    if record.title_mid is not None and record.title_mid in title.mid:
        return True
    return keyword_matches_any(record, selection.keyword)


def matches(record: Record, selection: FilterSelection) -> bool:
    return passes_date(record, selection) and passes_taxonomy(record, selection)


def filter_by_date(records: Iterable[Record], selection: FilterSelection) -> list[Record]:
    return [record for record in records if passes_date(record, selection)]


def filter_records(records: Iterable[Record], selection: FilterSelection) -> list[Record]:
    """Return a new list with the records passing every active predicate."""
    return [record for record in records if matches(record, selection)]
