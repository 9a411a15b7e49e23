"""Command line interface for HistFacet."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from histfacet.config import AppConfig
from histfacet.errors import SelectionError
from histfacet.explorer import Explorer
from histfacet.index.search import SearchOperator, Searcher, SortOrder
from histfacet.ingestion.json_loader import JsonRecordSource
from histfacet.models import Facet, FilterMode, Record
from histfacet.web.app import app as web_app, load_session

console = Console()
app = typer.Typer(help="HistFacet - faceted exploration of historical records")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _open_session(data: Optional[Path], keywords: Optional[Path], mode: FilterMode) -> Explorer:
    config = AppConfig(data_path=data, keywords_path=keywords)
    resolved = config.resolve_data_path(Path.cwd())
    if not resolved.exists():
        raise typer.BadParameter(f"Record file not found: {resolved}")

    explorer = Explorer()
    explorer.state.set("filter_mode", mode)
    explorer.init(JsonRecordSource(resolved, config.keywords_path))
    if not explorer.store.is_loaded:
        console.print(f"[red]Records not loaded:[/red] {explorer.store.error}")
        raise typer.Exit(code=1)
    return explorer


def _apply_selection(
    explorer: Explorer,
    *,
    title_major: List[str],
    title_mid: List[str],
    keyword_major: List[str],
    keyword_mid: List[str],
    keyword_minor: List[str],
    start: Optional[str],
    end: Optional[str],
    era: Optional[str],
    era_start: Optional[int],
    era_end: Optional[int],
) -> None:
    state = explorer.state
    try:
        state.update(
            {
                Facet.TITLE_MAJOR.path: title_major,
                Facet.TITLE_MID.path: title_mid,
                Facet.KEYWORD_MAJOR.path: keyword_major,
                Facet.KEYWORD_MID.path: keyword_mid,
                Facet.KEYWORD_MINOR.path: keyword_minor,
            }
        )
        if start or end:
            state.set_date_range(start, end)
        elif era:
            state.set_era(era, era_start, era_end)
    except SelectionError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _print_records(records: List[Record], limit: int) -> None:
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("ID")
    table.add_column("Date")
    table.add_column("Title category")
    table.add_column("Keywords")
    table.add_column("Title")

    for record in records[:limit]:
        keywords = ", ".join(sorted({kw.major for kw in record.keywords if kw.major}))
        category = record.title_major + (f" / {record.title_mid}" if record.title_mid else "")
        when = record.date.isoformat() if record.date else (str(record.year) if record.year else "-")
        table.add_row(str(record.id), when, category, keywords, record.title[:80])

    console.print(table)


@app.command()
def summary(
    data: Path = typer.Argument(None, help="Record JSON file"),
    keywords: Optional[Path] = typer.Option(None, "--keywords", help="Separate keyword rows file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Show record counts per year and title category."""
    _setup_logging(verbose)
    explorer = _open_session(data, keywords, FilterMode.AND)
    store = explorer.store

    years = store.year_counts()
    span = f"{min(years)}-{max(years)}" if years else "n/a"
    console.print(f"Records: [bold]{len(store)}[/bold], years: {span}")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Title category")
    table.add_column("Records")
    for name, count in store.title_major_counts().most_common(15):
        table.add_row(name, str(count))
    console.print(table)


@app.command("filter")
def filter_records(
    data: Path = typer.Argument(None, help="Record JSON file"),
    keywords: Optional[Path] = typer.Option(None, "--keywords", help="Separate keyword rows file"),
    mode: FilterMode = typer.Option(FilterMode.AND, "--mode", help="Combination mode"),
    title_major: List[str] = typer.Option([], "--title-major", help="Title major category"),
    title_mid: List[str] = typer.Option([], "--title-mid", help="Title mid category"),
    keyword_major: List[str] = typer.Option([], "--keyword-major", help="Keyword major category"),
    keyword_mid: List[str] = typer.Option([], "--keyword-mid", help="Keyword mid category"),
    keyword_minor: List[str] = typer.Option([], "--keyword-minor", help="Keyword minor category"),
    start: Optional[str] = typer.Option(None, help="Start date (YYYY-MM-DD)"),
    end: Optional[str] = typer.Option(None, help="End date (YYYY-MM-DD)"),
    era: Optional[str] = typer.Option(None, help="Era name (Meiji, Taisho, Showa)"),
    era_start: Optional[int] = typer.Option(None, help="First era year"),
    era_end: Optional[int] = typer.Option(None, help="Last era year"),
    sort: SortOrder = typer.Option(SortOrder.DATE_ASC, help="Result order"),
    limit: int = typer.Option(20, help="Number of records to display"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Filter records by taxonomy selections and date/era range."""
    _setup_logging(verbose)
    explorer = _open_session(data, keywords, mode)
    _apply_selection(
        explorer,
        title_major=title_major,
        title_mid=title_mid,
        keyword_major=keyword_major,
        keyword_mid=keyword_mid,
        keyword_minor=keyword_minor,
        start=start,
        end=end,
        era=era,
        era_start=era_start,
        era_end=era_end,
    )

    results = explorer.sorted_results(sort)
    if not results:
        console.print("[yellow]No matching records.[/yellow]")
        return
    console.print(f"Matched [bold]{len(results)}[/bold] of {len(explorer.store)} records")
    _print_records(results, limit)


@app.command()
def facets(
    data: Path = typer.Argument(None, help="Record JSON file"),
    facet: str = typer.Option("title.major", "--facet", help="Facet to list, e.g. keyword.mid"),
    keywords: Optional[Path] = typer.Option(None, "--keywords", help="Separate keyword rows file"),
    mode: FilterMode = typer.Option(FilterMode.AND, "--mode", help="Combination mode"),
    title_major: List[str] = typer.Option([], "--title-major", help="Title major category"),
    title_mid: List[str] = typer.Option([], "--title-mid", help="Title mid category"),
    keyword_major: List[str] = typer.Option([], "--keyword-major", help="Keyword major category"),
    keyword_mid: List[str] = typer.Option([], "--keyword-mid", help="Keyword mid category"),
    keyword_minor: List[str] = typer.Option([], "--keyword-minor", help="Keyword minor category"),
    start: Optional[str] = typer.Option(None, help="Start date (YYYY-MM-DD)"),
    end: Optional[str] = typer.Option(None, help="End date (YYYY-MM-DD)"),
    era: Optional[str] = typer.Option(None, help="Era name (Meiji, Taisho, Showa)"),
    era_start: Optional[int] = typer.Option(None, help="First era year"),
    era_end: Optional[int] = typer.Option(None, help="Last era year"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """List the values of one facet with counts and availability."""
    _setup_logging(verbose)
    try:
        target = Facet.parse(facet)
    except SelectionError as exc:
        raise typer.BadParameter(str(exc)) from exc

    explorer = _open_session(data, keywords, mode)
    _apply_selection(
        explorer,
        title_major=title_major,
        title_mid=title_mid,
        keyword_major=keyword_major,
        keyword_mid=keyword_mid,
        keyword_minor=keyword_minor,
        start=start,
        end=end,
        era=era,
        era_start=era_start,
        era_end=era_end,
    )

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column(facet)
    table.add_column("Count")
    table.add_column("Selected")
    table.add_column("Disabled")
    for option in explorer.facet_options(target):
        style = "dim" if option.disabled else None
        table.add_row(
            option.name,
            str(option.count),
            "x" if option.selected else "",
            "x" if option.disabled else "",
            style=style,
        )
    console.print(table)


@app.command()
def search(
    query: str = typer.Argument(..., help="Search terms"),
    data: Path = typer.Option(None, "--data", help="Record JSON file"),
    keywords: Optional[Path] = typer.Option(None, "--keywords", help="Separate keyword rows file"),
    field: str = typer.Option("all", help="Field group: all, title, author, category, keyword"),
    operator: SearchOperator = typer.Option(
        SearchOperator.AND, "--operator", case_sensitive=False, help="Combine terms with AND, OR or NOT"
    ),
    top_k: int = typer.Option(AppConfig().top_k, help="Number of results to display"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Run a term search and show the ranked subset."""
    _setup_logging(verbose)
    explorer = _open_session(data, keywords, FilterMode.AND)
    context = Searcher(explorer.store).search(query, field=field, operator=operator)
    if not context.records:
        console.print("[yellow]No matches found.[/yellow]")
        return

    explorer.apply_search(context)
    window = f"{context.start} - {context.end}" if context.start else "undated"
    console.print(f"Matched [bold]{len(context.records)}[/bold] records ({window})")
    _print_records(explorer.sorted_results(SortOrder.RELEVANCE), top_k)


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
    data: Path = typer.Option(None, "--data", help="Record JSON file to preload"),
) -> None:
    """Start the HTTP API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover - defensive
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras with \"python -m pip install '.[web]'\""
        ) from exc

    if data is not None:
        state = load_session(data)
        console.print(f"Loaded records from {data}: {state.value}")

    console.print(f"Starting web interface on http://{host}:{port}")
    uvicorn.run(web_app, host=host, port=port, reload=False, log_level="info")
