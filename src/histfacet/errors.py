"""Exception types raised by HistFacet."""

from __future__ import annotations


class HistFacetError(Exception):
    """Base class for all HistFacet errors."""


class SelectionError(HistFacetError, ValueError):
    """A requested selection change is invalid and was not applied."""


class EraConversionError(SelectionError):
    """An era-relative year falls outside the era's valid range."""


class LoadError(HistFacetError):
    """The record source could not supply records."""


class SearchError(HistFacetError, ValueError):
    """A search request has no usable conditions or an unknown operator."""
