"""Tests for FilterStateStore."""

from __future__ import annotations

import logging
from datetime import date

import pytest

from histfacet.errors import EraConversionError, SelectionError
from histfacet.models import DateFilterType, Dimension, Facet, FilterMode
from histfacet.state import FilterStateStore, StateChange


@pytest.fixture
def store() -> FilterStateStore:
    return FilterStateStore()


class TestPathAccess:
    """Tests for get and set by path."""

    def test_defaults(self, store: FilterStateStore) -> None:
        """A new store starts empty in AND mode."""
        assert store.get("filters.title.major") == []
        assert store.get("filter_mode") == "and"
        assert store.get("root_dimension") is None
        assert store.get("data_loaded") is False

    def test_set_and_get_facet(self, store: FilterStateStore) -> None:
        """Facet lists read back sorted."""
        store.set("filters.keyword.mid", ["Trade", "Health"])
        assert store.get("filters.keyword.mid") == ["Health", "Trade"]
        assert store.selection.keyword.mid == {"Trade", "Health"}

    def test_prefix_read(self, store: FilterStateStore) -> None:
        """Reading a prefix returns the nested mapping."""
        store.set("filters.title.major", ["Politics"])
        title = store.get("filters.title")
        assert title == {"major": ["Politics"], "mid": []}
        assert store.get("filters")["keyword"] == {"major": [], "mid": [], "minor": []}

    def test_prefix_write(self, store: FilterStateStore) -> None:
        """Writing a prefix replaces every level under it."""
        store.set("filters.keyword", {"major": ["Economy"], "minor": ["Tariffs"]})
        assert store.get("filters.keyword") == {"major": ["Economy"], "mid": [], "minor": ["Tariffs"]}

    def test_view_paths_create_containers(self, store: FilterStateStore) -> None:
        """View writes create intermediate containers."""
        store.set("view.table.page", 3)
        assert store.get("view") == {"table": {"page": 3}}
        assert store.get("view.table.page") == 3
        assert store.get("view.missing.deep") is None

    def test_view_overwrites_scalar_container(self, store: FilterStateStore) -> None:
        """A scalar view value is replaced by a container."""
        store.set("view.sort", "relevance")
        store.set("view.sort.order", "date-asc")
        assert store.get("view.sort") == {"order": "date-asc"}

    def test_returned_values_are_copies(self, store: FilterStateStore) -> None:
        """Values read from the store are copies."""
        store.set("view.items", [1, 2])
        store.get("view.items").append(3)
        store.get("filters.title.major").append("Injected")
        store.selection.title.major.add("Injected")

        assert store.get("view.items") == [1, 2]
        assert store.get("filters.title.major") == []

    def test_dates_coerced(self, store: FilterStateStore) -> None:
        """Date strings are stored as dates."""
        store.set("filters.start_date", "1900-01-01")
        assert store.get("filters.start_date") == date(1900, 1, 1)

    @pytest.mark.parametrize(
        "path,value",
        [
            ("filters.title.minor", ["x"]),
            ("filters.unknown", 1),
            ("filter_mode.extra", 1),
            ("", 1),
            ("filters..major", []),
            ("filters.title.major", "Politics"),
            ("filters.title.major", [""]),
            ("filters.start_date", "not a date"),
            ("filter_mode", "xor"),
            ("root_dimension", "category"),
            ("filters.era", "Heisei"),
            ("filters.title", ["not", "a", "mapping"]),
        ],
    )
    def test_invalid_writes_rejected(self, store: FilterStateStore, path, value) -> None:
        """Invalid paths and values are rejected without a version bump."""
        with pytest.raises(SelectionError):
            store.set(path, value)
        assert store.version == 0


class TestUpdate:
    """Tests for update and validation."""

    def test_atomic_on_failure(self, store: FilterStateStore) -> None:
        """A failing batch leaves the state untouched."""
        with pytest.raises(SelectionError):
            store.update({"filters.title.major": ["Politics"], "filters.start_date": "bad"})
        assert store.get("filters.title.major") == []

    def test_date_order_validated(self, store: FilterStateStore) -> None:
        """A start date after the end date is rejected."""
        with pytest.raises(SelectionError):
            store.set_date_range("1910-01-01", "1900-01-01")

    def test_era_out_of_range_rejected(self, store: FilterStateStore) -> None:
        """Era years outside the era are rejected."""
        with pytest.raises(EraConversionError):
            store.set_era("Meiji", 10, 30)
        assert store.get("filters.era") is None

    def test_era_years_order_validated(self, store: FilterStateStore) -> None:
        """An era start year after the end year is rejected."""
        with pytest.raises(SelectionError):
            store.set_era("Showa", 10, 5)

    def test_era_years_require_era(self, store: FilterStateStore) -> None:
        """Era years cannot be set without an era."""
        with pytest.raises(SelectionError):
            store.set("filters.era_start_year", 3)

    def test_set_era(self, store: FilterStateStore) -> None:
        """Setting an era clears the date range."""
        store.set_date_range("1900-01-01", None)
        store.set_era("大正", 1, 15)

        selection = store.selection
        assert selection.era == "Taisho"
        assert selection.date_filter_type is DateFilterType.ERA
        assert selection.start_date is None

    def test_clear_dates(self, store: FilterStateStore) -> None:
        """Clearing dates also clears the era."""
        store.set_era("Showa", 1, 20)
        store.clear_dates()
        assert store.get("filters.era") is None
        assert store.get("filters.date_filter_type") == "western"


class TestNotifications:
    """Tests for change listeners."""

    def test_change_carries_old_and_new(self, store: FilterStateStore) -> None:
        """Listeners receive old and new values per path."""
        seen: list[StateChange] = []
        store.subscribe(seen.append)

        store.set("filters.title.major", ["Politics"])

        assert len(seen) == 1
        assert seen[0].changes == {"filters.title.major": ([], ["Politics"])}
        assert seen[0].version == 1

    def test_no_change_no_notification(self, store: FilterStateStore) -> None:
        """A write that changes nothing notifies nobody."""
        seen: list[StateChange] = []
        store.subscribe(seen.append)
        store.set("filters.title.major", [])
        assert seen == []
        assert store.version == 0

    def test_registration_order(self, store: FilterStateStore) -> None:
        """Listeners run in registration order."""
        calls: list[str] = []
        store.subscribe(lambda change: calls.append("first"))
        store.subscribe(lambda change: calls.append("second"))
        store.set("view.page", 2)
        assert calls == ["first", "second"]

    def test_failing_listener_isolated(self, store: FilterStateStore, caplog) -> None:
        """A failing listener is logged and the rest still run."""
        calls: list[int] = []

        def broken(change: StateChange) -> None:
            raise RuntimeError("boom")

        store.subscribe(broken)
        store.subscribe(lambda change: calls.append(change.version))

        with caplog.at_level(logging.ERROR):
            store.set("view.page", 2)

        assert calls == [1]
        assert "State listener" in caplog.text

    def test_unsubscribe(self, store: FilterStateStore) -> None:
        """Unsubscribed listeners stop receiving changes."""
        calls: list[int] = []

        def listener(change: StateChange) -> None:
            calls.append(change.version)

        unsubscribe = store.subscribe(listener)
        store.set("view.page", 1)
        unsubscribe()
        store.set("view.page", 2)
        store.unsubscribe(listener)

        assert calls == [1]


class TestModeAndReset:
    """Tests for mode toggling and reset."""

    def test_toggle_mode_keeps_selections(self, store: FilterStateStore) -> None:
        """Toggling the mode keeps every selection."""
        store.set("filters.keyword.major", ["Economy"])
        assert store.toggle_mode() is FilterMode.OR
        assert store.get("filters.keyword.major") == ["Economy"]
        assert store.toggle_mode() is FilterMode.AND

    def test_reset_clears_selection_keeps_load_flag(self, store: FilterStateStore) -> None:
        """Reset clears selections and view but not the load flag."""
        store.set("data_loaded", True)
        store.select(Facet.KEYWORD_MAJOR, "Economy")
        store.set_date_range("1900-01-01", "1910-01-01")
        store.set("view.page", 4)

        change = store.reset()

        assert change is not None and change.kind == "reset"
        assert store.get("filters.keyword.major") == []
        assert store.get("filters.start_date") is None
        assert store.get("root_dimension") is None
        assert store.get("view.page") is None
        assert store.data_loaded is True

    def test_reset_keeps_mode(self, store: FilterStateStore) -> None:
        """Reset keeps the current mode."""
        store.toggle_mode()
        store.reset()
        assert store.mode is FilterMode.OR


class TestTypedHelpers:
    """Tests for select, toggle and clear helpers."""

    def test_title_major_replaces_in_and_mode(self, store: FilterStateStore) -> None:
        """AND mode keeps a single title major and clears its mids."""
        store.select(Facet.TITLE_MAJOR, "Politics")
        store.select(Facet.TITLE_MID, "Council")
        store.select(Facet.TITLE_MAJOR, "Culture")

        assert store.get("filters.title.major") == ["Culture"]
        assert store.get("filters.title.mid") == []

    def test_title_major_appends_in_or_mode(self, store: FilterStateStore) -> None:
        """OR mode accumulates title majors."""
        store.toggle_mode()
        store.select(Facet.TITLE_MAJOR, "Politics")
        store.select(Facet.TITLE_MAJOR, "Culture")
        assert store.get("filters.title.major") == ["Culture", "Politics"]

    def test_root_dimension_tracks_first_touch(self, store: FilterStateStore) -> None:
        """The first touched dimension becomes the root."""
        store.select(Facet.KEYWORD_MAJOR, "Economy")
        store.select(Facet.TITLE_MAJOR, "Politics")
        assert store.selection.root_dimension is Dimension.KEYWORD

        store.deselect(Facet.KEYWORD_MAJOR, "Economy")
        assert store.selection.root_dimension is None

    def test_toggle(self, store: FilterStateStore) -> None:
        """Toggle selects then deselects a value."""
        store.toggle(Facet.KEYWORD_MINOR, "Tariffs")
        assert store.get("filters.keyword.minor") == ["Tariffs"]
        store.toggle(Facet.KEYWORD_MINOR, "Tariffs")
        assert store.get("filters.keyword.minor") == []

    def test_clear_root_dimension_cascades_in_and_mode(self, store: FilterStateStore) -> None:
        """Clearing the root dimension clears the other in AND mode."""
        store.select(Facet.TITLE_MAJOR, "Politics")
        store.select(Facet.KEYWORD_MAJOR, "Economy")

        store.clear_dimension(Dimension.TITLE)

        assert store.get("filters.title.major") == []
        assert store.get("filters.keyword.major") == []
        assert store.get("root_dimension") is None

    def test_clear_other_dimension_keeps_root(self, store: FilterStateStore) -> None:
        """Clearing the non-root dimension keeps the root."""
        store.select(Facet.TITLE_MAJOR, "Politics")
        store.select(Facet.KEYWORD_MAJOR, "Economy")

        store.clear_dimension(Dimension.KEYWORD)

        assert store.get("filters.title.major") == ["Politics"]
        assert store.get("root_dimension") == "title"

    def test_clear_root_dimension_no_cascade_in_or_mode(self, store: FilterStateStore) -> None:
        """OR mode never cascades a clear."""
        store.toggle_mode()
        store.select(Facet.TITLE_MAJOR, "Politics")
        store.select(Facet.KEYWORD_MAJOR, "Economy")

        store.clear_dimension(Dimension.TITLE)

        assert store.get("filters.keyword.major") == ["Economy"]
