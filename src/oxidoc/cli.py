"""Command line interface for oxidoc."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from oxidoc.config import AppConfig
from oxidoc.errors import CorruptEntry, InvalidPath, StoreCorrupt
from oxidoc.index.indexer import CrateIndexer, GenerationReport, Indexer
from oxidoc.index.search import MATCHERS, Resolver
from oxidoc.index.storage import DocumentStore
from oxidoc.models import split_path
from oxidoc.render import render_item, render_items
from oxidoc.utils.files import find_crate_dirs

ALL_CRATES = "all"

console = Console()
app = typer.Typer(help="oxidoc - offline documentation lookup for Rust crates")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _print_plain(text: str) -> None:
    console.print(text, markup=False, highlight=False, emoji=False, soft_wrap=True)


def _load_config(doc_root: Optional[Path], **overrides) -> AppConfig:
    config = AppConfig(doc_root=doc_root, **overrides)
    config.doc_root = config.resolve_doc_root(Path.cwd())
    return config


def _crate_dirs(target: str, config: AppConfig) -> List[Path]:
    if target == ALL_CRATES:
        return list(find_crate_dirs(config.source_roots()))
    crate_dir = Path(target).expanduser().resolve()
    if not crate_dir.is_dir():
        raise typer.BadParameter(f"No such crate directory: {crate_dir}")
    return [crate_dir]


def _print_report(report: GenerationReport) -> None:
    for crate_report in report.crates:
        label = crate_report.crate or str(crate_report.path)
        style = "red" if crate_report.status == "failed" else "green"
        console.print(
            f"[{style}]{crate_report.status:>8}[/{style}] {escape(label)} "
            f"({crate_report.items} items)"
        )
        for error in crate_report.errors:
            console.print(f"         [yellow]{escape(str(error))}[/yellow]")
    console.print(
        f"Inserted: {report.inserted}, updated: {report.updated}, "
        f"skipped: {report.skipped}, failed: {report.failed}"
    )


@app.command()
def generate(
    target: str = typer.Argument(
        ..., help=f"Crate source directory, or '{ALL_CRATES}' for every local crate."
    ),
    doc_root: Path = typer.Option(None, "--doc-root", help="Documentation store directory"),
    registry: Path = typer.Option(None, "--registry", help="Cargo registry source directory"),
    rust_src: Path = typer.Option(None, "--rust-src", help="Standard library source directory"),
    workers: int = typer.Option(AppConfig().workers, help="Parallel parser threads per crate"),
    force: bool = typer.Option(False, "--force", help="Regenerate unchanged crates too"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Generate documentation for one crate or all locally available crates."""
    _setup_logging(verbose)
    config = _load_config(doc_root, registry_src=registry, rust_src=rust_src, workers=workers)

    crate_dirs = _crate_dirs(target, config)
    if not crate_dirs:
        console.print("[yellow]No crates found.[/yellow]")
        return

    console.print(f"Generating documentation into [bold]{escape(str(config.doc_root))}[/bold]...")
    store = DocumentStore(config.doc_root)
    indexer = Indexer(store, CrateIndexer(workers=config.workers), force=force)
    report = indexer.index(crate_dirs)
    _print_report(report)
    if report.failed:
        raise typer.Exit(code=1)


@app.command()
def lookup(
    query: str = typer.Argument(..., help="Item name or path, e.g. 'Vec' or 'std::vec::Vec'"),
    doc_root: Path = typer.Option(None, "--doc-root", help="Documentation store directory"),
    match: str = typer.Option(
        AppConfig().match_mode,
        "--match",
        help="Name matching: exact, substring, subsequence or levenshtein",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Show the documentation for an item."""
    _setup_logging(verbose)
    config = _load_config(doc_root, match_mode=match)
    matcher = MATCHERS.get(config.match_mode)
    if matcher is None:
        raise typer.BadParameter(f"Unknown match mode: {config.match_mode}")

    resolver = Resolver(DocumentStore(config.doc_root), matcher=matcher)
    try:
        items = resolver.resolve(query)
    except InvalidPath as exc:
        raise typer.BadParameter(str(exc)) from exc
    except StoreCorrupt as exc:
        if exc.results:
            _print_plain(render_items(result.item for result in exc.results))
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=2) from exc

    if not items:
        console.print(f"[yellow]No documentation found for {escape(query)}.[/yellow]")
        return

    for index, item in enumerate(items):
        if index:
            _print_plain("")
        _print_plain(render_item(item))


@app.command("list")
def list_items(
    prefix: Optional[str] = typer.Argument(None, help="Crate or module path, e.g. 'serde::de'"),
    doc_root: Path = typer.Option(None, "--doc-root", help="Documentation store directory"),
) -> None:
    """List documented crates, or the items below a path."""
    config = _load_config(doc_root)
    store = DocumentStore(config.doc_root)

    if prefix is None:
        damaged: List[CorruptEntry] = []
        crates = store.crates(damaged)
        if not crates and not damaged:
            console.print("[yellow]No crates documented yet.[/yellow]")
            return
        if crates:
            table = Table(show_header=True, header_style="bold magenta")
            table.add_column("Crate")
            table.add_column("Version")
            table.add_column("Path root")
            for metadata in crates:
                table.add_row(Text(metadata.name), Text(metadata.version), Text(metadata.lib_name))
            console.print(table)
        for error in damaged:
            console.print(f"[red]{escape(str(error))}[/red]")
        if damaged:
            raise typer.Exit(code=2)
        return

    try:
        items = store.list(split_path(prefix))
    except InvalidPath as exc:
        raise typer.BadParameter(str(exc)) from exc
    except CorruptEntry as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=2) from exc

    if not items:
        console.print(f"[yellow]Nothing documented under {escape(prefix)}.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Path")
    table.add_column("Kind")
    table.add_column("Crate")
    for item in items:
        table.add_row(
            Text(item.path_string),
            Text(item.kind.value),
            Text(f"{item.source.crate_name}-{item.source.crate_version}"),
        )
    console.print(table)


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(8000, help="Server port"),
    doc_root: Path = typer.Option(None, "--doc-root", help="Documentation store directory"),
) -> None:
    """Serve the JSON lookup API."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover - optional server
        raise typer.BadParameter(
            "uvicorn is not installed. Install it with \"python -m pip install uvicorn\""
        ) from exc

    from oxidoc.web.app import app as web_app

    config = _load_config(doc_root)
    web_app.state.doc_root = config.doc_root
    if not Path(config.doc_root).exists():
        console.print("[yellow]Warning: documentation store not found, lookups will be empty.[/yellow]")

    console.print(
        f"Starting lookup API on http://{host}:{port} (store: {escape(str(config.doc_root))})"
    )
    uvicorn.run(web_app, host=host, port=port, reload=False, log_level="info")
