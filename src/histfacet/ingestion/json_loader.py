"""JSON record source: turns exported feed rows into typed records."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping

from histfacet.errors import LoadError
from histfacet.models import UNCATEGORIZED, KeywordTuple, Record
from histfacet.utils.dates import parse_date, parse_year

LOGGER = logging.getLogger(__name__)


def _text(row: Mapping[str, Any], *names: str) -> str:
    for name in names:
        value = row.get(name)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


def _record_id(row: Mapping[str, Any]) -> int | None:
    try:
        record_id = int(row.get("id"))
    except (TypeError, ValueError):
        return None
    return record_id if record_id > 0 else None


def keyword_from_row(row: Mapping[str, Any]) -> KeywordTuple:
    return KeywordTuple(
        keyword=_text(row, "keyword"),
        major=_text(row, "major") or UNCATEGORIZED,
        mid=_text(row, "mid") or None,
        minor=_text(row, "minor") or None,
    )


def record_from_row(row: Mapping[str, Any], keywords: Iterable[KeywordTuple] = ()) -> Record | None:
    """Build a :class:`Record` or return ``None`` for rows without a valid id."""
    record_id = _record_id(row)
    if record_id is None:
        return None
    timestamp = _text(row, "time", "date")
    parsed = parse_date(timestamp)
    year = parse_year(row.get("year")) or parse_year(timestamp)
    nested = row.get("keywords")
    if isinstance(nested, list):
        keywords = [*keywords, *(keyword_from_row(kw) for kw in nested if isinstance(kw, Mapping))]
    return Record(
        id=record_id,
        title=_text(row, "title"),
        author=_text(row, "author"),
        publication=_text(row, "publication"),
        date=parsed,
        year=year,
        title_major=_text(row, "title_major") or UNCATEGORIZED,
        title_mid=_text(row, "title_mid") or None,
        keywords=tuple(keywords),
    )


def merge_rows(
    titles: Iterable[Mapping[str, Any]],
    keyword_rows: Iterable[Mapping[str, Any]] = (),
) -> list[Record]:
    """Join title rows with keyword rows sharing the same id."""
    by_id: dict[int, list[KeywordTuple]] = {}
    for row in keyword_rows:
        record_id = _record_id(row)
        if record_id is None:
            continue
        by_id.setdefault(record_id, []).append(keyword_from_row(row))

    records: list[Record] = []
    dropped = 0
    for row in titles:
        record_id = _record_id(row)
        record = record_from_row(row, by_id.get(record_id, ())) if record_id else None
        if record is None:
            dropped += 1
            continue
        records.append(record)
    if dropped:
        LOGGER.warning("Dropped %d rows without a valid id", dropped)
    return records


def _read_rows(path: Path) -> Iterator[Mapping[str, Any]]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise LoadError(f"Record file not found: {path}") from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise LoadError(f"Unable to read {path}: {exc}") from exc
    if not isinstance(payload, list):
        raise LoadError(f"{path} does not contain a JSON array")
    for row in payload:
        if isinstance(row, Mapping):
            yield row


class JsonRecordSource:
    """Loads records from a merged JSON file or split title/keyword files."""

    def __init__(self, path: Path, keywords_path: Path | None = None) -> None:
        self.path = Path(path)
        self.keywords_path = Path(keywords_path) if keywords_path else None

    def load_records(self) -> list[Record]:
        LOGGER.info("Loading records from %s", self.path)
        keyword_rows = _read_rows(self.keywords_path) if self.keywords_path else ()
        return merge_rows(_read_rows(self.path), keyword_rows)
