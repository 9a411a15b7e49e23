"""Conversion between era-relative years and western calendar years."""

from __future__ import annotations

from histfacet.config import ERA_ALIASES, ERA_TABLE, EraSpec
from histfacet.errors import EraConversionError


def resolve_era(name: str) -> EraSpec:
    """Look up an era by canonical name or alias."""
    canonical = ERA_ALIASES.get(name, name)
    try:
        return ERA_TABLE[canonical]
    except KeyError:
        raise EraConversionError(f"Unknown era: {name!r}") from None


def era_year_range(name: str) -> tuple[int, int]:
    """Return the (first, last) era-relative years inside the valid sub-range."""
    era = resolve_era(name)
    return era.valid_start - era.start + 1, era.valid_end - era.start + 1


def era_to_western(name: str, era_year: int) -> int:
    """Convert an era-relative year (first year == 1) to a western year.

    Raises :class:`EraConversionError` when the result falls outside the
    era's valid sub-range.
    """
    era = resolve_era(name)
    western = era.start + int(era_year) - 1
    if not era.valid_start <= western <= era.valid_end:
        low, high = era_year_range(name)
        raise EraConversionError(
            f"{era.name} year {era_year} is outside the supported range {low}-{high}"
        )
    return western


def western_to_era_year(name: str, western_year: int) -> int:
    era = resolve_era(name)
    if not era.valid_start <= western_year <= era.valid_end:
        raise EraConversionError(f"{western_year} is not within the {era.name} era")
    return western_year - era.start + 1


def find_era(western_year: int) -> tuple[str, int] | None:
    """Return the first era covering ``western_year`` and the relative year."""
    for era in ERA_TABLE.values():
        if era.valid_start <= western_year <= era.valid_end:
            return era.name, western_year - era.start + 1
    return None


def validate_era_year(name: str, era_year: int) -> bool:
    try:
        era_to_western(name, era_year)
    except EraConversionError:
        return False
    return True
