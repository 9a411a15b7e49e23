"""Core HistFacet data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Iterator

from histfacet.errors import SelectionError

UNCATEGORIZED = "(uncategorized)"


class Dimension(str, Enum):
    TITLE = "title"
    KEYWORD = "keyword"

    @property
    def other(self) -> "Dimension":
        return Dimension.KEYWORD if self is Dimension.TITLE else Dimension.TITLE


class Level(str, Enum):
    MAJOR = "major"
    MID = "mid"
    MINOR = "minor"


class FilterMode(str, Enum):
    AND = "and"
    OR = "or"

    @property
    def flipped(self) -> "FilterMode":
        return FilterMode.OR if self is FilterMode.AND else FilterMode.AND


class DateFilterType(str, Enum):
    WESTERN = "western"
    ERA = "era"


class Facet(Enum):
    """Closed set of valid (dimension, level) pairs."""

    TITLE_MAJOR = (Dimension.TITLE, Level.MAJOR)
    TITLE_MID = (Dimension.TITLE, Level.MID)
    KEYWORD_MAJOR = (Dimension.KEYWORD, Level.MAJOR)
    KEYWORD_MID = (Dimension.KEYWORD, Level.MID)
    KEYWORD_MINOR = (Dimension.KEYWORD, Level.MINOR)

    @property
    def dimension(self) -> Dimension:
        return self.value[0]

    @property
    def level(self) -> Level:
        return self.value[1]

    @property
    def path(self) -> str:
        return f"filters.{self.dimension.value}.{self.level.value}"

    @classmethod
    def of(cls, dimension: Dimension | str, level: Level | str) -> "Facet":
        try:
            key = (Dimension(dimension), Level(level))
        except ValueError as exc:
            raise SelectionError(f"Unknown facet {dimension}.{level}") from exc
        for facet in cls:
            if facet.value == key:
                return facet
        raise SelectionError(f"Level {key[1].value!r} is not defined for {key[0].value!r}")

    @classmethod
    def parse(cls, name: str) -> "Facet":
        """Parse ``title.major`` style names."""
        dimension, _, level = name.partition(".")
        return cls.of(dimension, level)

    @classmethod
    def for_dimension(cls, dimension: Dimension) -> tuple["Facet", ...]:
        return tuple(facet for facet in cls if facet.dimension is dimension)


@dataclass(frozen=True, slots=True)
class KeywordTuple:
    """One keyword classification attached to a record."""

    keyword: str = ""
    major: str | None = None
    mid: str | None = None
    minor: str | None = None

    def at(self, level: Level) -> str | None:
        if level is Level.MAJOR:
            return self.major
        if level is Level.MID:
            return self.mid
        return self.minor


@dataclass(frozen=True, slots=True)
class Record:
    """A classified historical item."""

    id: int
    title: str = ""
    author: str = ""
    publication: str = ""
    date: date | None = None
    year: int | None = None
    title_major: str = UNCATEGORIZED
    title_mid: str | None = None
    keywords: tuple[KeywordTuple, ...] = ()

    def title_at(self, level: Level) -> str | None:
        if level is Level.MAJOR:
            return self.title_major
        if level is Level.MID:
            return self.title_mid
        return None

    def values_at(self, facet: Facet) -> Iterator[str]:
        """Yield non-empty classification values this record carries for ``facet``."""
        if facet.dimension is Dimension.TITLE:
            value = self.title_at(facet.level)
            if value:
                yield value
            return
        for kw in self.keywords:
            value = kw.at(facet.level)
            if value:
                yield value


@dataclass(slots=True)
class TitleSelection:
    major: set[str] = field(default_factory=set)
    mid: set[str] = field(default_factory=set)

    def is_empty(self) -> bool:
        return not (self.major or self.mid)


@dataclass(slots=True)
class KeywordSelection:
    major: set[str] = field(default_factory=set)
    mid: set[str] = field(default_factory=set)
    minor: set[str] = field(default_factory=set)

    def is_empty(self) -> bool:
        return not (self.major or self.mid or self.minor)


@dataclass(slots=True)
class FilterSelection:
    """Mutable facet state owned by :class:`histfacet.state.FilterStateStore`."""

    title: TitleSelection = field(default_factory=TitleSelection)
    keyword: KeywordSelection = field(default_factory=KeywordSelection)
    start_date: date | None = None
    end_date: date | None = None
    date_filter_type: DateFilterType = DateFilterType.WESTERN
    era: str | None = None
    era_start_year: int | None = None
    era_end_year: int | None = None
    mode: FilterMode = FilterMode.AND
    root_dimension: Dimension | None = None

    def values(self, facet: Facet) -> set[str]:
        group = self.title if facet.dimension is Dimension.TITLE else self.keyword
        return getattr(group, facet.level.value)

    def set_values(self, facet: Facet, values: set[str]) -> None:
        group = self.title if facet.dimension is Dimension.TITLE else self.keyword
        setattr(group, facet.level.value, set(values))

    def dimension_empty(self, dimension: Dimension) -> bool:
        if dimension is Dimension.TITLE:
            return self.title.is_empty()
        return self.keyword.is_empty()

    def has_taxonomy(self) -> bool:
        return not (self.title.is_empty() and self.keyword.is_empty())

    def has_date_range(self) -> bool:
        return self.start_date is not None or self.end_date is not None

    def era_active(self) -> bool:
        return self.date_filter_type is DateFilterType.ERA and bool(self.era)
