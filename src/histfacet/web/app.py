"""FastAPI application exposing the faceting engine to rendering clients."""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import date
from pathlib import Path
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from histfacet.config import ERA_TABLE, AppConfig
from histfacet.errors import SearchError, SelectionError
from histfacet.explorer import Explorer
from histfacet.index.search import SearchCondition, SearchContext, SearchOperator, Searcher, SortOrder
from histfacet.index.store import LoadState, RecordStore
from histfacet.ingestion.json_loader import JsonRecordSource
from histfacet.models import Facet, FilterMode, Record
from histfacet.state import FilterStateStore
from histfacet.utils.eras import era_year_range

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="HistFacet", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

_STORE = RecordStore()


class LoadPayload(BaseModel):
    path: Path | None = None
    keywords_path: Path | None = None


class SelectionPayload(BaseModel):
    mode: FilterMode = FilterMode.AND
    title_major: List[str] = []
    title_mid: List[str] = []
    keyword_major: List[str] = []
    keyword_mid: List[str] = []
    keyword_minor: List[str] = []
    start_date: date | None = None
    end_date: date | None = None
    era: str | None = None
    era_start_year: int | None = None
    era_end_year: int | None = None
    sort: SortOrder = SortOrder.DATE_ASC
    limit: int = 50


class FacetPayload(SelectionPayload):
    facets: List[str] = [facet.dimension.value + "." + facet.level.value for facet in Facet]


class SearchPayload(SelectionPayload):
    query: str
    field: str = "all"
    operator: SearchOperator = SearchOperator.AND
    top_k: int | None = None


class ConditionPayload(BaseModel):
    value: str
    field: str = "all"
    operator: SearchOperator = SearchOperator.AND


class AdvancedSearchPayload(SelectionPayload):
    conditions: List[ConditionPayload]
    top_k: int | None = None


def load_session(path: Path, keywords_path: Path | None = None) -> LoadState:
    """Load records into the shared store used by every request."""
    return _STORE.load(JsonRecordSource(path, keywords_path))


def _require_loaded() -> None:
    if not _STORE.is_loaded:
        detail = "Records are not loaded yet"
        if _STORE.error:
            detail = f"{detail}: {_STORE.error}"
        raise HTTPException(status_code=503, detail=detail)


def _selection_updates(payload: SelectionPayload) -> Dict[str, Any]:
    updates: Dict[str, Any] = {
        Facet.TITLE_MAJOR.path: payload.title_major,
        Facet.TITLE_MID.path: payload.title_mid,
        Facet.KEYWORD_MAJOR.path: payload.keyword_major,
        Facet.KEYWORD_MID.path: payload.keyword_mid,
        Facet.KEYWORD_MINOR.path: payload.keyword_minor,
    }
    if payload.start_date or payload.end_date:
        updates.update(
            {
                "filters.start_date": payload.start_date,
                "filters.end_date": payload.end_date,
                "filters.date_filter_type": "western",
            }
        )
    elif payload.era:
        updates.update(
            {
                "filters.era": payload.era,
                "filters.era_start_year": payload.era_start_year,
                "filters.era_end_year": payload.era_end_year,
                "filters.date_filter_type": "era",
                "filters.start_date": None,
                "filters.end_date": None,
            }
        )
    return updates


def _session(payload: SelectionPayload, search: SearchContext | None = None) -> Explorer:
    """Build a request-scoped session over the shared store.

    A search context seeds the base set and date window first; the payload's
    selections are then applied on top of it.
    """
    explorer = Explorer(store=_STORE, state=FilterStateStore(mode=payload.mode))
    explorer.state.set("data_loaded", True)
    if search is not None:
        explorer.apply_search(search)
    try:
        explorer.state.update(_selection_updates(payload))
    except SelectionError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return explorer


def _record_dict(record: Record) -> Dict[str, Any]:
    data = asdict(record)
    data["date"] = record.date.isoformat() if record.date else None
    return data


def _result(explorer: Explorer, payload: SelectionPayload) -> Dict[str, Any]:
    results = explorer.sorted_results(payload.sort)
    limit = max(1, min(payload.limit, 500))
    return {
        "total": len(explorer.base_records()),
        "matched": len(results),
        "records": [_record_dict(record) for record in results[:limit]],
        "years": explorer.year_histogram(),
        "state": explorer.state.snapshot(),
    }


def _search_result(payload: SelectionPayload, context: SearchContext) -> Dict[str, Any]:
    explorer = _session(payload, search=context)
    response = _result(explorer, payload.model_copy(update={"sort": SortOrder.RELEVANCE}))
    response["query"] = context.query
    response["window"] = {
        "start": context.start.isoformat() if context.start else None,
        "end": context.end.isoformat() if context.end else None,
    }
    return response


@app.on_event("startup")
async def startup_event() -> None:
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")


@app.get("/status")
async def status() -> Dict[str, Any]:
    return {"state": _STORE.state.value, "records": len(_STORE), "error": _STORE.error}


@app.post("/load")
async def load_records(payload: LoadPayload) -> Dict[str, Any]:
    config = AppConfig(data_path=payload.path, keywords_path=payload.keywords_path)
    resolved = config.resolve_data_path(Path.cwd())
    state = await _STORE.load_async(JsonRecordSource(resolved, config.keywords_path))
    if state is LoadState.FAILED:
        raise HTTPException(status_code=422, detail=_STORE.error)
    return {"state": state.value, "records": len(_STORE)}


@app.get("/eras")
async def list_eras() -> Dict[str, Any]:
    eras = []
    for name, spec in ERA_TABLE.items():
        first, last = era_year_range(name)
        eras.append({"name": name, "start": spec.start, "first_year": first, "last_year": last})
    return {"eras": eras}


@app.post("/filter")
async def filter_records(payload: SelectionPayload) -> Dict[str, Any]:
    _require_loaded()
    return _result(_session(payload), payload)


@app.post("/facets")
async def list_facets(payload: FacetPayload) -> Dict[str, Any]:
    _require_loaded()
    explorer = _session(payload)
    facets: Dict[str, List[Dict[str, Any]]] = {}
    for name in payload.facets:
        try:
            facet = Facet.parse(name)
        except SelectionError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        facets[name] = [asdict(option) for option in explorer.facet_options(facet)]
    return {"facets": facets, "state": explorer.state.snapshot()}


@app.post("/search")
async def search_records(payload: SearchPayload) -> Dict[str, Any]:
    query = payload.query.strip()
    if not query:
        raise HTTPException(status_code=400, detail="Empty query")
    _require_loaded()

    context = Searcher(_STORE).search(
        query, field=payload.field, operator=payload.operator, top_k=payload.top_k
    )
    return _search_result(payload, context)


@app.post("/search/advanced")
async def advanced_search(payload: AdvancedSearchPayload) -> Dict[str, Any]:
    _require_loaded()
    conditions = [SearchCondition(c.value, c.field, c.operator) for c in payload.conditions]
    try:
        context = Searcher(_STORE).search_advanced(conditions, top_k=payload.top_k)
    except SearchError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _search_result(payload, context)
