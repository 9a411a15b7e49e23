"""Filter selection state with path-based access and change notification."""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Callable

from histfacet.errors import EraConversionError, SelectionError
from histfacet.models import (
    DateFilterType,
    Dimension,
    Facet,
    FilterMode,
    FilterSelection,
)
from histfacet.utils.dates import coerce_date
from histfacet.utils.eras import era_to_western, resolve_era

LOGGER = logging.getLogger(__name__)

_FACET_PATHS = {facet.path: facet for facet in Facet}
_SCALAR_FILTER_PATHS = (
    "filters.start_date",
    "filters.end_date",
    "filters.date_filter_type",
    "filters.era",
    "filters.era_start_year",
    "filters.era_end_year",
)
_TOP_LEVEL_PATHS = ("filter_mode", "root_dimension", "data_loaded")
LEAF_PATHS = (*_FACET_PATHS, *_SCALAR_FILTER_PATHS, *_TOP_LEVEL_PATHS)
_PREFIX_PATHS = ("filters", "filters.title", "filters.keyword")


@dataclass(frozen=True, slots=True)
class StateChange:
    kind: str
    changes: dict[str, tuple[Any, Any]]
    version: int


Listener = Callable[[StateChange], None]


@dataclass(slots=True)
class _State:
    selection: FilterSelection = field(default_factory=FilterSelection)
    data_loaded: bool = False
    view: dict[str, Any] = field(default_factory=dict)


def _export(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    if isinstance(value, (FilterMode, Dimension, DateFilterType)):
        return value.value
    return value


def _split(path: str) -> list[str]:
    if not isinstance(path, str) or not path:
        raise SelectionError(f"Invalid state path: {path!r}")
    keys = path.split(".")
    if any(not key for key in keys):
        raise SelectionError(f"Invalid state path: {path!r}")
    return keys


def _coerce_values(path: str, value: Any) -> set[str]:
    if value is None:
        return set()
    if isinstance(value, str) or not isinstance(value, Iterable):
        raise SelectionError(f"{path} expects a collection of values, got {value!r}")
    values = set()
    for item in value:
        if not isinstance(item, str) or not item:
            raise SelectionError(f"{path} values must be non-empty strings, got {item!r}")
        values.add(item)
    return values


def _coerce_year(path: str, value: Any) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise SelectionError(f"{path} expects a year, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise SelectionError(f"{path} expects a year, got {value!r}") from None


class FilterStateStore:
    """Holds the current selection and notifies listeners on change.

    Paths under ``filters``, plus ``filter_mode``, ``root_dimension`` and
    ``data_loaded``, are translated into typed :class:`FilterSelection`
    fields. Any other path lives in a free-form nested area whose
    intermediate containers are created on write.
    """

    def __init__(self, mode: FilterMode = FilterMode.AND) -> None:
        self._state = _State(selection=FilterSelection(mode=mode))
        self._listeners: list[Listener] = []
        self.version = 0

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    @property
    def selection(self) -> FilterSelection:
        return copy.deepcopy(self._state.selection)

    @property
    def mode(self) -> FilterMode:
        return self._state.selection.mode

    @property
    def data_loaded(self) -> bool:
        return self._state.data_loaded

    def get(self, path: str) -> Any:
        return copy.deepcopy(self._read(self._state, path))

    def snapshot(self) -> dict[str, Any]:
        return {
            "filters": self.get("filters"),
            "filter_mode": self.get("filter_mode"),
            "root_dimension": self.get("root_dimension"),
            "data_loaded": self.data_loaded,
            **copy.deepcopy(self._state.view),
        }

    def _read(self, state: _State, path: str) -> Any:
        keys = _split(path)
        selection = state.selection
        if path in _FACET_PATHS:
            return _export(selection.values(_FACET_PATHS[path]))
        if path in _SCALAR_FILTER_PATHS:
            return _export(getattr(selection, keys[1]))
        if path == "filter_mode":
            return selection.mode.value
        if path == "root_dimension":
            return _export(selection.root_dimension)
        if path == "data_loaded":
            return state.data_loaded
        if path in _PREFIX_PATHS:
            children = [p for p in LEAF_PATHS if p.startswith(path + ".")]
            result: dict[str, Any] = {}
            for child in children:
                sub_keys = child[len(path) + 1 :].split(".")
                target = result
                for key in sub_keys[:-1]:
                    target = target.setdefault(key, {})
                target[sub_keys[-1]] = self._read(state, child)
            return result
        if keys[0] == "filters" or keys[0] in _TOP_LEVEL_PATHS:
            raise SelectionError(f"Unknown state path: {path}")

        current: Any = state.view
        for key in keys:
            if not isinstance(current, Mapping):
                return None
            current = current.get(key)
        return current

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def _flatten(self, path: str, value: Any, out: list[tuple[str, Any]]) -> None:
        _split(path)
        if path in _PREFIX_PATHS:
            if not isinstance(value, Mapping):
                raise SelectionError(f"{path} expects a mapping, got {value!r}")
            for key, child in value.items():
                self._flatten(f"{path}.{key}", child, out)
            return
        top = path.split(".")[0]
        if (top == "filters" or top in _TOP_LEVEL_PATHS) and path not in LEAF_PATHS:
            raise SelectionError(f"Unknown state path: {path}")
        out.append((path, value))

    def _write(self, state: _State, path: str, value: Any) -> None:
        selection = state.selection
        if path in _FACET_PATHS:
            selection.set_values(_FACET_PATHS[path], _coerce_values(path, value))
        elif path in ("filters.start_date", "filters.end_date"):
            try:
                parsed = coerce_date(value)
            except ValueError as exc:
                raise SelectionError(f"{path}: {exc}") from exc
            setattr(selection, path.split(".")[1], parsed)
        elif path == "filters.date_filter_type":
            if value == "japanese":
                value = DateFilterType.ERA
            try:
                selection.date_filter_type = DateFilterType(value)
            except ValueError:
                raise SelectionError(f"Unknown date filter type: {value!r}") from None
        elif path == "filters.era":
            selection.era = resolve_era(value).name if value else None
        elif path in ("filters.era_start_year", "filters.era_end_year"):
            setattr(selection, path.split(".")[1], _coerce_year(path, value))
        elif path == "filter_mode":
            try:
                selection.mode = FilterMode(str(getattr(value, "value", value)).lower())
            except ValueError:
                raise SelectionError(f"Unknown filter mode: {value!r}") from None
        elif path == "root_dimension":
            try:
                selection.root_dimension = Dimension(value) if value else None
            except ValueError:
                raise SelectionError(f"Unknown dimension: {value!r}") from None
        elif path == "data_loaded":
            state.data_loaded = bool(value)
        else:
            keys = path.split(".")
            target = state.view
            for key in keys[:-1]:
                if not isinstance(target.get(key), dict):
                    target[key] = {}
                target = target[key]
            target[keys[-1]] = copy.deepcopy(value)

    @staticmethod
    def _validate(selection: FilterSelection) -> None:
        start, end = selection.start_date, selection.end_date
        if start is not None and end is not None and start > end:
            raise SelectionError(f"Start date {start} is after end date {end}")

        years = (selection.era_start_year, selection.era_end_year)
        if selection.era is None:
            if any(year is not None for year in years):
                raise SelectionError("Era years require an era")
            return
        converted = [era_to_western(selection.era, y) for y in years if y is not None]
        if len(converted) == 2 and converted[0] > converted[1]:
            raise EraConversionError("Era start year is after era end year")

    def update(self, updates: Mapping[str, Any], *, kind: str = "update") -> StateChange | None:
        """Apply several path writes atomically.

        The whole candidate state is validated before anything is committed;
        on failure a :class:`SelectionError` is raised and state is untouched.
        """
        writes: list[tuple[str, Any]] = []
        for path, value in updates.items():
            self._flatten(path, value, writes)

        candidate = copy.deepcopy(self._state)
        for path, value in writes:
            self._write(candidate, path, value)
        self._validate(candidate.selection)

        paths = list(dict.fromkeys(path for path, _ in writes))
        return self._commit(candidate, paths, kind)

    def set(self, path: str, value: Any) -> StateChange | None:
        return self.update({path: value}, kind="set")

    def _commit(self, candidate: _State, paths: Iterable[str], kind: str) -> StateChange | None:
        changes: dict[str, tuple[Any, Any]] = {}
        for path in paths:
            old = self._read(self._state, path)
            new = self._read(candidate, path)
            if old != new:
                changes[path] = (copy.deepcopy(old), copy.deepcopy(new))
        self._state = candidate
        if not changes:
            return None
        self.version += 1
        change = StateChange(kind=kind, changes=changes, version=self.version)
        self._notify(change)
        return change

    def reset(self) -> StateChange | None:
        """Clear selections and view state, keeping the mode and load flag."""
        candidate = _State(
            selection=FilterSelection(mode=self._state.selection.mode),
            data_loaded=self._state.data_loaded,
        )
        paths = [*LEAF_PATHS, *self._state.view]
        return self._commit(candidate, paths, "reset")

    def toggle_mode(self) -> FilterMode:
        """Flip AND/OR; existing selections are left as they are."""
        self.update({"filter_mode": self.mode.flipped}, kind="mode")
        return self.mode

    # ------------------------------------------------------------------
    # Typed helpers for rendering collaborators
    # ------------------------------------------------------------------

    def _root_after(self, dimension: Dimension, dimension_empty: bool) -> Dimension | None:
        root = self._state.selection.root_dimension
        if root is None and not dimension_empty:
            return dimension
        if root is dimension and dimension_empty:
            return None
        return root

    def _dimension_empty_after(self, facet: Facet, values: set[str]) -> bool:
        selection = self._state.selection
        return not values and all(
            not selection.values(other) for other in Facet.for_dimension(facet.dimension) if other is not facet
        )

    def select(self, facet: Facet, value: str) -> StateChange | None:
        selection = self._state.selection
        current = selection.values(facet)
        if value in current:
            return None
        writes: dict[str, Any] = {}
        if facet is Facet.TITLE_MAJOR and selection.mode is FilterMode.AND:
            writes[facet.path] = [value]
            writes[Facet.TITLE_MID.path] = []
        else:
            writes[facet.path] = current | {value}
        root = self._root_after(facet.dimension, dimension_empty=False)
        writes["root_dimension"] = root.value if root else None
        return self.update(writes, kind="select")

    def deselect(self, facet: Facet, value: str) -> StateChange | None:
        current = self._state.selection.values(facet)
        if value not in current:
            return None
        remaining = current - {value}
        root = self._root_after(facet.dimension, self._dimension_empty_after(facet, remaining))
        return self.update(
            {facet.path: remaining, "root_dimension": root.value if root else None},
            kind="deselect",
        )

    def toggle(self, facet: Facet, value: str) -> StateChange | None:
        if value in self._state.selection.values(facet):
            return self.deselect(facet, value)
        return self.select(facet, value)

    def clear_dimension(self, dimension: Dimension) -> StateChange | None:
        """Clear one dimension.

        Clearing the root dimension in AND mode also clears the other
        dimension, since its selections were narrowed under the root.
        """
        selection = self._state.selection
        writes: dict[str, Any] = {facet.path: [] for facet in Facet.for_dimension(dimension)}
        if selection.root_dimension is dimension:
            writes["root_dimension"] = None
            if selection.mode is FilterMode.AND:
                writes.update({facet.path: [] for facet in Facet.for_dimension(dimension.other)})
        return self.update(writes, kind="clear")

    def set_date_range(self, start: Any, end: Any) -> StateChange | None:
        return self.update(
            {
                "filters.start_date": start,
                "filters.end_date": end,
                "filters.date_filter_type": DateFilterType.WESTERN,
            },
            kind="date",
        )

    def set_era(self, era: str, start_year: int | None = None, end_year: int | None = None) -> StateChange | None:
        return self.update(
            {
                "filters.era": era,
                "filters.era_start_year": start_year,
                "filters.era_end_year": end_year,
                "filters.date_filter_type": DateFilterType.ERA,
                "filters.start_date": None,
                "filters.end_date": None,
            },
            kind="era",
        )

    def clear_dates(self) -> StateChange | None:
        return self.update(
            {
                "filters.start_date": None,
                "filters.end_date": None,
                "filters.era": None,
                "filters.era_start_year": None,
                "filters.era_end_year": None,
                "filters.date_filter_type": DateFilterType.WESTERN,
            },
            kind="date",
        )

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        if listener not in self._listeners:
            self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, change: StateChange) -> None:
        for listener in tuple(self._listeners):
            try:
                listener(change)
            except Exception:
                LOGGER.exception("State listener %r failed", listener)

    def clear_listeners(self) -> None:
        self._listeners.clear()
