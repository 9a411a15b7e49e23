"""Tests for configuration defaults."""

from __future__ import annotations

import sys
from pathlib import Path

from histfacet.config import ERA_TABLE, MAX_YEAR, MIN_YEAR, AppConfig, _get_default_data_path
from histfacet.models import FilterMode


class TestDefaultDataPath:
    """Tests for _get_default_data_path."""

    def test_prefers_local_data_dir(self, tmp_path: Path, monkeypatch) -> None:
        """A data/records.json under the working directory wins."""
        monkeypatch.chdir(tmp_path)
        (tmp_path / "data").mkdir()
        (tmp_path / "data" / "records.json").write_text("[]", encoding="utf-8")

        assert _get_default_data_path() == Path("data/records.json")

    def test_falls_back_to_user_documents(self, tmp_path: Path, monkeypatch) -> None:
        """Without a local file the user documents folder is used."""
        monkeypatch.chdir(tmp_path)
        result = _get_default_data_path()
        assert result == Path.home() / "Documents" / "HistFacet" / "records.json"

    def test_frozen_app_uses_user_documents(self, tmp_path: Path, monkeypatch) -> None:
        """Frozen builds ignore the working directory."""
        monkeypatch.chdir(tmp_path)
        (tmp_path / "data").mkdir()
        (tmp_path / "data" / "records.json").write_text("[]", encoding="utf-8")
        monkeypatch.setattr(sys, "frozen", True, raising=False)

        assert _get_default_data_path().name == "records.json"
        assert "HistFacet" in _get_default_data_path().parts


class TestAppConfig:
    """Tests for AppConfig."""

    def test_defaults(self) -> None:
        """Defaults cover data path, mode and result count."""
        config = AppConfig()
        assert config.data_path is not None
        assert config.default_mode is FilterMode.AND
        assert config.top_k == 20

    def test_resolve_relative_path(self, tmp_path: Path) -> None:
        """Relative paths resolve against the given base."""
        config = AppConfig(data_path=Path("feeds/records.json"))
        assert config.resolve_data_path(tmp_path) == tmp_path / "feeds" / "records.json"

    def test_resolve_absolute_path(self, tmp_path: Path) -> None:
        """Absolute paths are returned unchanged."""
        absolute = tmp_path / "records.json"
        assert AppConfig(data_path=absolute).resolve_data_path(Path("/elsewhere")) == absolute


class TestEraTable:
    """Tests for the era table constants."""

    def test_valid_ranges_inside_year_domain(self) -> None:
        """Every era's valid range sits inside the supported years."""
        for era in ERA_TABLE.values():
            assert MIN_YEAR <= era.valid_start <= era.valid_end <= MAX_YEAR
            assert era.start <= era.valid_start
