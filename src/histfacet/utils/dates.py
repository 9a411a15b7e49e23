"""Date helpers shared by ingestion and the selection boundary."""

from __future__ import annotations

import re
from datetime import date, datetime

from histfacet.config import MAX_YEAR, MIN_YEAR

_DATE_PATTERNS = (
    re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})"),
    re.compile(r"^(\d{4})/(\d{1,2})/(\d{1,2})"),
    re.compile(r"^(\d{4})-(\d{1,2})"),
    re.compile(r"^(\d{4})/(\d{1,2})"),
)


def _in_domain(year: int) -> bool:
    return MIN_YEAR <= year <= MAX_YEAR


def parse_date(value: object) -> date | None:
    """Parse a feed timestamp into a date inside the supported year domain.

    Partial dates fall back to the first month/day. Unparseable or
    out-of-domain values yield ``None``.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    for pattern in _DATE_PATTERNS:
        match = pattern.match(text)
        if not match:
            continue
        year = int(match.group(1))
        month = int(match.group(2))
        day = int(match.group(3)) if match.lastindex and match.lastindex >= 3 else 1
        if not _in_domain(year):
            return None
        try:
            return date(year, month, day)
        except ValueError:
            return None
    return None


def parse_year(value: object) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    match = re.match(r"^\s*(\d{4})", str(value))
    if not match:
        return None
    year = int(match.group(1))
    return year if _in_domain(year) else None


def coerce_date(value: object) -> date | None:
    """Accept ``date``/``datetime``/ISO strings from the selection boundary.

    Raises ``ValueError`` for anything else.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value.strip())
    raise ValueError(f"Not a date: {value!r}")
