"""Shared fixtures for HistFacet tests."""

from __future__ import annotations

from datetime import date
from typing import List

import pytest

from histfacet.explorer import Explorer
from histfacet.models import KeywordTuple, Record


class ListSource:
    """In-memory record source."""

    def __init__(self, records: List[Record]) -> None:
        self.records = records
        self.calls = 0

    def load_records(self) -> List[Record]:
        self.calls += 1
        return list(self.records)


@pytest.fixture
def scenario_records() -> List[Record]:
    """Three records: two Politics, one Culture; R1 and R3 share a keyword."""
    return [
        Record(
            id=1,
            date=date(1900, 3, 1),
            year=1900,
            title_major="Politics",
            keywords=(KeywordTuple(major="Economy", mid="Trade"),),
        ),
        Record(id=2, date=date(1910, 6, 1), year=1910, title_major="Politics"),
        Record(
            id=3,
            date=date(1900, 9, 1),
            year=1900,
            title_major="Culture",
            keywords=(KeywordTuple(major="Economy", mid="Trade"),),
        ),
    ]


@pytest.fixture
def records() -> List[Record]:
    """A wider collection covering every level and missing fields."""
    return [
        Record(
            id=1,
            title="Tariff debate in the council",
            author="Lin",
            date=date(1900, 5, 1),
            year=1900,
            title_major="Politics",
            title_mid="Council",
            keywords=(KeywordTuple(keyword="tariff", major="Economy", mid="Trade", minor="Tariffs"),),
        ),
        Record(
            id=2,
            title="New governor appointed",
            date=date(1910, 1, 15),
            year=1910,
            title_major="Politics",
            title_mid="Administration",
        ),
        Record(
            id=3,
            title="Tea exports rise",
            date=date(1900, 7, 20),
            year=1900,
            title_major="Culture",
            title_mid="Festivals",
            keywords=(KeywordTuple(keyword="tea", major="Economy", mid="Trade", minor="Export"),),
        ),
        Record(
            id=4,
            title="Sugar mill and epidemic",
            author="Chen",
            date=date(1925, 3, 3),
            year=1925,
            title_major="Culture",
            title_mid="Education",
            keywords=(
                KeywordTuple(keyword="plague", major="Society", mid="Health", minor="Epidemics"),
                KeywordTuple(keyword="sugar", major="Economy", mid="Industry", minor="Sugar"),
            ),
        ),
        Record(
            id=5,
            title="Undated trade note",
            title_major="Economy",
            keywords=(
                KeywordTuple(keyword="tariff", major="Economy", mid="Trade", minor="Tariffs"),
                KeywordTuple(keyword="duty", major="Economy", mid="Trade", minor="Tariffs"),
            ),
        ),
        Record(
            id=6,
            title="Showa era harbour works",
            date=date(1935, 8, 8),
            year=1935,
            title_major="Economy",
            title_mid="Ports",
            keywords=(KeywordTuple(keyword="harbour", major="Society", mid="Infrastructure"),),
        ),
    ]


@pytest.fixture
def explorer(records: List[Record]) -> Explorer:
    session = Explorer()
    session.init(ListSource(records))
    return session


@pytest.fixture
def list_source():
    """Factory for in-memory record sources."""
    return ListSource
