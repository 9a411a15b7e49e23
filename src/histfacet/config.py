"""Application configuration defaults."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path

from histfacet.models import FilterMode

# Resolved dates and years outside this domain are discarded at load time.
MIN_YEAR = 1895
MAX_YEAR = 1945


@dataclass(frozen=True, slots=True)
class EraSpec:
    name: str
    start: int
    end: int
    valid_start: int
    valid_end: int


ERA_TABLE: dict[str, EraSpec] = {
    "Meiji": EraSpec("Meiji", start=1868, end=1912, valid_start=1895, valid_end=1912),
    "Taisho": EraSpec("Taisho", start=1912, end=1926, valid_start=1912, valid_end=1926),
    "Showa": EraSpec("Showa", start=1926, end=1989, valid_start=1926, valid_end=1945),
}

ERA_ALIASES: dict[str, str] = {
    "明治": "Meiji",
    "大正": "Taisho",
    "昭和": "Showa",
    "meiji": "Meiji",
    "taisho": "Taisho",
    "showa": "Showa",
}


def _get_default_data_path() -> Path:
    """Get the default record file path based on platform and execution context."""
    user_data = Path.home() / "Documents" / "HistFacet" / "records.json"

    if getattr(sys, "frozen", False):
        return user_data

    # When running from source, prefer local data/ if it exists
    local_data = Path("data/records.json")
    if local_data.exists():
        return local_data

    return user_data


@dataclass(slots=True)
class AppConfig:
    data_path: Path | None = None
    keywords_path: Path | None = None
    default_mode: FilterMode = FilterMode.AND
    top_k: int = 20

    def __post_init__(self) -> None:
        if self.data_path is None:
            self.data_path = _get_default_data_path()

    def resolve_data_path(self, base_dir: Path | None = None) -> Path:
        if self.data_path is None:
            self.data_path = _get_default_data_path()
        if Path(self.data_path).is_absolute() or base_dir is None:
            return Path(self.data_path)
        return base_dir / self.data_path
