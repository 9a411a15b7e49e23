"""Term search producing a ranked base subset for the filter pipeline."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Callable, Iterable, List, Sequence

import numpy as np

from histfacet.errors import SearchError
from histfacet.index.store import RecordStore
from histfacet.models import Record

Scorer = Callable[[Record, Sequence[str], str], float]

# field group -> (group weight, fields)
SEARCH_FIELDS: dict[str, tuple[float, tuple[str, ...]]] = {
    "all": (1.0, ("title", "author", "title_major", "title_mid", "publication", "keyword")),
    "title": (3.0, ("title", "title_major", "title_mid")),
    "author": (2.0, ("author",)),
    "category": (2.0, ("title_major", "title_mid")),
    "keyword": (1.5, ("keyword",)),
}

FIELD_WEIGHTS: dict[str, float] = {
    "title": 3.0,
    "title_major": 2.0,
    "title_mid": 2.0,
    "author": 1.5,
    "publication": 1.0,
    "keyword": 1.5,
}

# Explicit connectors in a query are dropped; the operator argument decides.
_CONNECTORS = frozenset({"AND", "OR", "NOT"})


class SortOrder(str, Enum):
    RELEVANCE = "relevance"
    DATE_ASC = "date-asc"
    DATE_DESC = "date-desc"


class SearchOperator(str, Enum):
    """How the terms of one query (or consecutive conditions) combine."""

    AND = "AND"
    OR = "OR"
    NOT = "NOT"

    @classmethod
    def _missing_(cls, value: object) -> "SearchOperator | None":
        if isinstance(value, str):
            for member in cls:
                if member.value == value.upper():
                    return member
        return None

    @classmethod
    def parse(cls, value: "SearchOperator | str") -> "SearchOperator":
        try:
            return cls(value)
        except ValueError:
            raise SearchError(f"Unknown search operator: {value!r}") from None


@dataclass(frozen=True, slots=True)
class SearchCondition:
    """One advanced-search row.

    ``operator`` joins this condition to the result of the ones before it
    and is ignored on the first condition.
    """

    value: str
    field: str = "all"
    operator: SearchOperator = SearchOperator.AND


def split_terms(query: str) -> list[str]:
    return [
        term
        for term in re.split(r"[\s,，]+", query.strip())
        if term and term not in _CONNECTORS
    ]


def _field_values(record: Record, name: str) -> list[str]:
    if name == "keyword":
        values: list[str] = []
        for kw in record.keywords:
            values.extend(v for v in (kw.keyword, kw.major, kw.mid, kw.minor) if v)
        return values
    value = getattr(record, name, None)
    return [value] if value else []


def term_score(record: Record, terms: Sequence[str], mode: str = "all") -> float:
    """Relevance of ``record`` for ``terms`` within the ``mode`` field group."""
    group_weight, fields = SEARCH_FIELDS.get(mode, SEARCH_FIELDS["all"])
    score = 0.0
    for term in terms:
        needle = term.lower()
        for name in fields:
            weight = group_weight * FIELD_WEIGHTS[name]
            for value in _field_values(record, name):
                haystack = value.lower()
                if needle in haystack:
                    score += weight
                    if haystack == needle:
                        score += weight * 2
    return score


def term_matches(record: Record, term: str, mode: str = "all") -> bool:
    """True when ``term`` occurs in any field of the ``mode`` group."""
    _, fields = SEARCH_FIELDS.get(mode, SEARCH_FIELDS["all"])
    needle = term.lower()
    return any(needle in value.lower() for name in fields for value in _field_values(record, name))


def matches_terms(
    record: Record,
    terms: Sequence[str],
    mode: str = "all",
    operator: SearchOperator = SearchOperator.AND,
) -> bool:
    """Combine per-term matches: AND needs every term, OR any, NOT none."""
    hits = (term_matches(record, term, mode) for term in terms)
    if operator is SearchOperator.OR:
        return any(hits)
    if operator is SearchOperator.NOT:
        return not any(hits)
    return all(hits)


def matches_conditions(record: Record, conditions: Sequence[SearchCondition]) -> bool:
    """Evaluate advanced conditions left to right.

    Within one condition the terms are OR'd; a NOT condition removes
    records matching it from the running result. When every condition is an
    AND over all fields, the rows read as one plain query and every term
    must match.
    """
    if all(c.field == "all" and c.operator is SearchOperator.AND for c in conditions):
        terms = [term for c in conditions for term in split_terms(c.value)]
        return matches_terms(record, terms)

    result = False
    for position, condition in enumerate(conditions):
        matched = matches_terms(record, split_terms(condition.value), condition.field, SearchOperator.OR)
        if position == 0:
            result = matched
        elif condition.operator is SearchOperator.OR:
            result = result or matched
        elif condition.operator is SearchOperator.NOT:
            result = result and not matched
        else:
            result = result and matched
    return result


@dataclass(slots=True)
class SearchContext:
    """A ranked record subset plus the time window derived from it."""

    query: str
    records: List[Record]
    start: date | None = None
    end: date | None = None
    terms: List[str] = field(default_factory=list)
    mode: str = "all"
    scorer: Scorer = term_score
    operator: SearchOperator = SearchOperator.AND

    def score(self, record: Record) -> float:
        return self.scorer(record, self.terms, self.mode)


def derive_window(records: Iterable[Record]) -> tuple[date | None, date | None]:
    dates = [record.date for record in records if record.date is not None]
    if not dates:
        return None, None
    return min(dates), max(dates)


class Searcher:
    """High-level API to query the loaded record store."""

    def __init__(self, store: RecordStore, scorer: Scorer = term_score) -> None:
        self.store = store
        self.scorer = scorer

    def search(
        self,
        query: str,
        *,
        field: str = "all",
        operator: SearchOperator | str = SearchOperator.AND,
        top_k: int | None = None,
    ) -> SearchContext:
        operator = SearchOperator.parse(operator)
        terms = split_terms(query)
        context = SearchContext(query=query, records=[], terms=terms, mode=field, scorer=self.scorer, operator=operator)
        records = self.store.records
        if not terms or not records:
            return context

        mask = [matches_terms(record, terms, field, operator) for record in records]
        scores = [self.scorer(record, terms, field) for record in records]
        return self._rank(context, records, mask, scores, top_k)

    def search_advanced(
        self,
        conditions: Iterable[SearchCondition],
        *,
        top_k: int | None = None,
    ) -> SearchContext:
        """Combine several field-scoped conditions, each joined by its operator."""
        conditions = [
            SearchCondition(c.value, c.field, SearchOperator.parse(c.operator))
            for c in conditions
            if split_terms(c.value)
        ]
        if not conditions:
            raise SearchError("No search conditions")

        query = "".join(
            (f" {c.operator.value} " if i else "") + f"{c.field}:{c.value}" for i, c in enumerate(conditions)
        )
        terms = [term for c in conditions for term in split_terms(c.value)]
        context = SearchContext(query=query, records=[], terms=terms, scorer=self.scorer)
        records = self.store.records
        if not records:
            return context

        mask = [matches_conditions(record, conditions) for record in records]
        scores = [
            sum(self.scorer(record, split_terms(c.value), c.field) for c in conditions)
            for record in records
        ]
        return self._rank(context, records, mask, scores, top_k)

    @staticmethod
    def _rank(
        context: SearchContext,
        records: Sequence[Record],
        mask: Sequence[bool],
        scores: Sequence[float],
        top_k: int | None,
    ) -> SearchContext:
        score_array = np.asarray(scores, dtype="float64")
        hits = np.flatnonzero(np.asarray(mask, dtype=bool))
        order = hits[np.argsort(-score_array[hits], kind="stable")]
        if top_k is not None:
            order = order[:top_k]

        context.records = [records[idx] for idx in order]
        context.start, context.end = derive_window(context.records)
        return context


def sort_records(
    records: Sequence[Record],
    order: SortOrder | str = SortOrder.RELEVANCE,
    context: SearchContext | None = None,
) -> list[Record]:
    """Return a new list ordered for display; undated records sort last."""
    order = SortOrder(order)
    if order is SortOrder.RELEVANCE:
        if context is None or not context.terms:
            return list(records)
        return sorted(records, key=context.score, reverse=True)

    dated = [record for record in records if record.date is not None]
    undated = [record for record in records if record.date is None]
    dated.sort(key=lambda record: record.date, reverse=order is SortOrder.DATE_DESC)
    return dated + undated
