"""
OptiDB CLI - PostgreSQL performance advisor.

Usage:
    optidb collect --dsn postgresql://profiler_ro@localhost/app -o snapshot.json
    optidb analyze snapshot.json --limit 5
    optidb fingerprint "SELECT * FROM orders WHERE id = 42"
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from optidb import __version__
from optidb.analyzer.fingerprint import QueryFingerprint
from optidb.analyzer.sql_parser import extract_tables, has_sequential_scan_hint
from optidb.config import get_config
from optidb.engine import RuleEngine
from optidb.exceptions import OptiDBError
from optidb.models import QueryReport, WorkloadSnapshot

app = typer.Typer(
    name="optidb",
    help="PostgreSQL performance advisor (pg_stat_statements + schema metadata)",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

MAX_SQL_DISPLAY = 200


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"OptiDB version {__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Route package logging through rich on stderr."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=error_console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable debug logging."),
    ] = False,
) -> None:
    """OptiDB - PostgreSQL performance advisor."""
    try:
        level = "DEBUG" if verbose else get_config().log_level
    except OptiDBError as e:
        error_console.print(f"[red]Configuration error:[/red] {e.message}")
        raise typer.Exit(1) from e
    configure_logging(level)


def _truncate_sql(sql: str) -> str:
    sql = " ".join(sql.split())
    if len(sql) > MAX_SQL_DISPLAY:
        return sql[: MAX_SQL_DISPLAY - 3] + "..."
    return sql


def _render_report(number: int, report: QueryReport, show_ddl: bool) -> None:
    query = report.query

    stats = Table.grid(padding=(0, 2))
    stats.add_column(style="bold")
    stats.add_column()
    stats.add_row("Calls", f"{query.calls:,}")
    stats.add_row("Avg Time", f"{query.mean_exec_time:.2f} ms")
    stats.add_row("Total Time", f"{query.total_time:.2f} ms")
    stats.add_row("Rows", f"{query.rows:,}")
    stats.add_row("Fingerprint", f"{report.short_id}...")
    stats.add_row("SQL", escape(_truncate_sql(query.query)))

    console.print()
    console.print(Panel(stats, title=f"[bold red]Bottleneck #{number}[/bold red]", expand=False))
    console.print(f"[bold]Recommendations ({len(report.recommendations)}):[/bold]")

    for i, rec in enumerate(report.recommendations, 1):
        console.print(f"\n  {i}. [bold cyan]{rec.type.label}[/bold cyan]")
        console.print(f"     Confidence: {rec.confidence * 100:.0f}%")
        console.print(f"     Risk Level: {rec.risk_level.value}")
        if rec.ddl and show_ddl:
            console.print(f"     DDL: [green]{escape(rec.ddl)}[/green]", highlight=False)
        if rec.rewrite_sql:
            console.print(f"     Rewrite Suggestion: {escape(rec.rewrite_sql)}", highlight=False)
        console.print(f"     Why: {escape(rec.rationale)}")
        if rec.impact_estimate:
            console.print(f"     Expected Impact: {escape(rec.impact_estimate)}")


@app.command()
def analyze(
    snapshot_file: Annotated[
        Path,
        typer.Argument(
            help="Workload snapshot (JSON with queries, tables and indexes)",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Number of bottlenecks to show", min=1),
    ] = 10,
    show_ddl: Annotated[
        bool,
        typer.Option("--ddl/--no-ddl", help="Show DDL recommendations"),
    ] = True,
    json_output: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output results as JSON"),
    ] = False,
    no_ai: Annotated[
        bool,
        typer.Option("--no-ai", help="Use heuristic rules only, even if an API key is set"),
    ] = False,
) -> None:
    """
    Show top bottlenecks with optimization recommendations.

    Queries are taken in snapshot order (slowest first when produced by
    `optidb collect`).
    """
    try:
        snapshot = WorkloadSnapshot.from_file(snapshot_file)
        config = get_config()
        if no_ai:
            config = config.model_copy(update={"ai_enabled": False})
        engine = RuleEngine.from_config(config)
        reports = engine.analyze_workload(snapshot, limit=limit)
    except OptiDBError as e:
        error_console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1) from e

    if json_output:
        console.print_json(json.dumps([r.to_dict() for r in reports]))
        return

    console.print("[bold]Top Database Performance Bottlenecks[/bold]")

    if not reports:
        console.print("[green]No actionable bottlenecks found in top queries![/green]")
        return

    for number, report in enumerate(reports, 1):
        _render_report(number, report, show_ddl)
        console.rule(style="dim")

    console.print(
        f"\n[bold]Summary:[/bold] Found {len(reports)} bottlenecks with optimization opportunities"
    )


@app.command()
def fingerprint(
    sql: Annotated[str, typer.Argument(help="SQL statement to fingerprint")],
    json_output: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output as JSON"),
    ] = False,
) -> None:
    """Show the normalized form and fingerprint of a SQL statement."""
    fp = QueryFingerprint.from_sql(sql)
    tables = extract_tables(sql)
    seq_scan_prone = has_sequential_scan_hint(sql)

    if json_output:
        console.print_json(json.dumps({
            "fingerprint": fp.digest,
            "short_id": fp.short,
            "normalized": fp.normalized,
            "query_type": fp.query_type,
            "tables": tables,
            "seq_scan_prone": seq_scan_prone,
        }))
        return

    table = Table(show_header=False, box=None)
    table.add_column(style="bold")
    table.add_column()
    table.add_row("Fingerprint", fp.digest)
    table.add_row("Short ID", fp.short)
    table.add_row("Query Type", fp.query_type)
    table.add_row("Tables", ", ".join(tables) or "-")
    table.add_row("Normalized", escape(fp.normalized))
    table.add_row("Seq-scan prone predicates", "yes" if seq_scan_prone else "no")
    console.print(table)


@app.command()
def collect(
    output: Annotated[
        Path,
        typer.Option("--output", "-o", help="Where to write the snapshot JSON"),
    ] = Path("snapshot.json"),
    dsn: Annotated[
        Optional[str],
        typer.Option("--dsn", help="PostgreSQL connection URL (default: OPTIDB_DATABASE_URL)"),
    ] = None,
    min_duration: Annotated[
        Optional[float],
        typer.Option("--min-duration", help="Only collect queries slower than this (ms)"),
    ] = None,
    top: Annotated[
        int,
        typer.Option("--top", help="Maximum number of queries to collect", min=1),
    ] = 100,
) -> None:
    """Collect query statistics and schema metadata into a snapshot file."""
    # Imported here so that analyze/fingerprint work without libpq present.
    from optidb.collector import StatsCollector

    config = get_config()
    url = dsn or config.database_url
    if not url:
        error_console.print("[red]Error:[/red] no --dsn given and OPTIDB_DATABASE_URL is not set")
        raise typer.Exit(1)

    try:
        with StatsCollector.connect(
            url,
            statement_timeout_ms=config.statement_timeout_ms,
            query_limit=top,
        ) as collector:
            snapshot = collector.snapshot(min_duration_ms=min_duration)
    except OptiDBError as e:
        error_console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1) from e

    snapshot.to_file(output)
    console.print(
        f"Wrote {len(snapshot.queries)} queries, {len(snapshot.tables)} tables and "
        f"{len(snapshot.indexes)} indexes to {output}"
    )


@app.command()
def serve(
    host: Annotated[str, typer.Option("--host", help="Bind address")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", help="Bind port")] = 8000,
    reload: Annotated[bool, typer.Option("--reload", help="Enable auto-reload for development")] = False,
) -> None:
    """Run the HTTP API server."""
    import uvicorn

    console.print(f"Starting OptiDB API on http://{host}:{port}")
    console.print(f"  API docs: http://{host}:{port}/api/docs")

    uvicorn.run(
        "optidb.api:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


if __name__ == "__main__":
    app()
