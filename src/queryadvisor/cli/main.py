"""
QueryAdvisor CLI - SELECT query analyzer for MySQL and PostgreSQL.

Usage:
    queryadvisor analyze --engine mysql --user root --database shop --query "SELECT ..."
    queryadvisor explain plan.json --stats stats.json
    queryadvisor rules
    queryadvisor --language id analyze
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from queryadvisor import __version__
from queryadvisor.analyzer.registry import get_registry
from queryadvisor.config import Config, get_config
from queryadvisor.coordinator import AnalysisCoordinator
from queryadvisor.db.base import ConnectionSettings, open_collaborator
from queryadvisor.db.diagnostics import connection_hints
from queryadvisor.db.models import IndexDescriptor, TableStatistic
from queryadvisor.exceptions import ConnectionFailedError, QueryAdvisorError
from queryadvisor.i18n import MessageCatalog, available_languages
from queryadvisor.output.renderers import SEVERITY_STYLES, OutputFormat, print_report, render
from queryadvisor.plan.node import Engine

logger = logging.getLogger(__name__)


class EngineChoice(str, Enum):
    """Database engines accepted on the command line."""
    mysql = "mysql"
    postgresql = "postgresql"


app = typer.Typer(
    name="queryadvisor",
    help="SELECT query analyzer for MySQL and PostgreSQL",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)


class _State:
    """Options set by the top-level callback, shared by every command."""

    def __init__(self) -> None:
        self.config: Config | None = None
        self.catalog: MessageCatalog | None = None


state = _State()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"QueryAdvisor version {__version__}")
        raise typer.Exit()


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=error_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _fail(error: QueryAdvisorError, engine: Engine | None = None) -> None:
    """Print an error (plus connection hints) and exit 1."""
    catalog = state.catalog or MessageCatalog()
    error_console.print(f"[red]{catalog.text('errors.analysis')}[/red] {error.message}")
    if isinstance(error, ConnectionFailedError) and engine is not None:
        for line in connection_hints(error, engine, catalog):
            error_console.print(f"[dim]{line}[/dim]")
    raise typer.Exit(code=1)


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    language: Annotated[
        Optional[str],
        typer.Option(
            "--language",
            "-l",
            help=f"Output language ({', '.join(available_languages())})",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging."),
    ] = False,
) -> None:
    """QueryAdvisor - find why a SELECT is slow and how to fix it."""
    try:
        config = get_config()
        if language:
            config = config.model_copy(update={"language": language})
        state.catalog = MessageCatalog(config.language)
    except QueryAdvisorError as e:
        error_console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(code=1)

    state.config = config
    _configure_logging("DEBUG" if verbose else config.log_level)


def _read_query(query: str | None, query_file: Path | None, catalog: MessageCatalog) -> str:
    if query is not None:
        return query
    if query_file is not None:
        return query_file.read_text()

    console.print(f"[bold]{catalog.text('prompts.query')}[/bold]")
    lines: list[str] = []
    while True:
        line = typer.prompt("", default="", show_default=False, prompt_suffix="")
        if not line.strip():
            break
        lines.append(line)
    return "\n".join(lines)


def _choose_database(settings: ConnectionSettings, catalog: MessageCatalog) -> str:
    """List databases on the server and prompt for one."""
    console.print(f"[dim]{catalog.text('connection.testing')}[/dim]")
    with open_collaborator(settings, state.config) as db:
        databases = db.list_databases()
    console.print(f"[green]{catalog.text(f'connection.success.{settings.engine.value}')}[/green]")

    if not databases:
        error_console.print(f"[yellow]{catalog.text('connection.no_databases')}[/yellow]")
        raise typer.Exit(code=1)
    for i, name in enumerate(databases, 1):
        console.print(f"  {i}. {name}")
    choice = typer.prompt(catalog.text("prompts.database"), type=typer.IntRange(1, len(databases)))
    return databases[choice - 1]


def _choose_schema(settings: ConnectionSettings, catalog: MessageCatalog) -> str:
    from queryadvisor.db.postgres import PostgresCollaborator

    with PostgresCollaborator(settings, state.config) as db:
        schemas = db.list_schemas()
    if not schemas:
        return settings.schema_name
    return typer.prompt(
        catalog.text("prompts.schema"),
        default="public" if "public" in schemas else schemas[0],
        type=typer.Choice(schemas),
    )


@app.command()
def analyze(
    engine: Annotated[
        Optional[EngineChoice],
        typer.Option("--engine", "-e", help="Database engine"),
    ] = None,
    host: Annotated[str, typer.Option("--host", help="Database host")] = "localhost",
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Database port")] = None,
    user: Annotated[Optional[str], typer.Option("--user", "-u", help="Database user")] = None,
    password: Annotated[
        Optional[str],
        typer.Option("--password", envvar="QUERYADVISOR_PASSWORD", help="Database password"),
    ] = None,
    database: Annotated[Optional[str], typer.Option("--database", "-d", help="Database name")] = None,
    schema: Annotated[
        Optional[str],
        typer.Option("--schema", "-s", help="PostgreSQL schema"),
    ] = None,
    query: Annotated[Optional[str], typer.Option("--query", "-q", help="SQL query text")] = None,
    query_file: Annotated[
        Optional[Path],
        typer.Option("--file", "-f", help="Read the query from a file", exists=True, readable=True),
    ] = None,
    output_format: Annotated[
        OutputFormat,
        typer.Option("--format", help="Output format"),
    ] = OutputFormat.TEXT,
) -> None:
    """
    Analyze a SELECT query against a live database.

    Missing connection options are prompted for interactively.

    Examples:

        $ queryadvisor analyze -e postgresql -u app -d shop -q "SELECT * FROM orders"

        $ queryadvisor analyze -e mysql -u root -d shop -f slow.sql --format json
    """
    catalog = state.catalog or MessageCatalog()

    if engine is None:
        engine = typer.prompt(catalog.text("prompts.engine"), type=typer.Choice([e.value for e in EngineChoice]))
    db_engine = Engine(EngineChoice(engine).value)

    if user is None:
        user = typer.prompt(catalog.text("prompts.user"))
    if password is None:
        password = typer.prompt(catalog.text("prompts.password"), hide_input=True, default="", show_default=False)

    settings = ConnectionSettings(
        engine=db_engine,
        host=host,
        port=port,
        user=user,
        password=password,
        database=database,
        schema_name=schema or "public",
    )

    try:
        if settings.database is None:
            settings = settings.model_copy(update={"database": _choose_database(settings, catalog)})
        if db_engine is Engine.POSTGRESQL and schema is None:
            settings = settings.model_copy(update={"schema_name": _choose_schema(settings, catalog)})

        query_text = _read_query(query, query_file, catalog)
        coordinator = AnalysisCoordinator(config=state.config, renderer=catalog)
        result = coordinator.analyze(query_text, settings)
    except QueryAdvisorError as e:
        _fail(e, db_engine)
        return

    _emit(result, output_format, catalog)


def _load_stats(path: Path) -> tuple[list[TableStatistic], list[IndexDescriptor]]:
    data: dict[str, Any] = json.loads(path.read_text())
    stats = [TableStatistic.from_dict(row) for row in data.get("table_statistics", [])]
    indexes = [IndexDescriptor.from_dict(row) for row in data.get("indexes", [])]
    return stats, indexes


@app.command()
def explain(
    explain_file: Annotated[
        Path,
        typer.Argument(
            help="Path to saved EXPLAIN output (JSON)",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    engine: Annotated[
        Optional[EngineChoice],
        typer.Option("--engine", "-e", help="Database engine (auto-detected if not specified)"),
    ] = None,
    stats_file: Annotated[
        Optional[Path],
        typer.Option(
            "--stats",
            help="JSON file with 'table_statistics' and 'indexes' lists",
            exists=True,
            readable=True,
        ),
    ] = None,
    query: Annotated[Optional[str], typer.Option("--query", "-q", help="Query text, for display")] = None,
    output_format: Annotated[
        OutputFormat,
        typer.Option("--format", help="Output format"),
    ] = OutputFormat.TEXT,
) -> None:
    """
    Analyze saved EXPLAIN output without connecting to a database.

    Examples:

        $ psql -XAtc "EXPLAIN (ANALYZE, BUFFERS, FORMAT JSON) SELECT ..." > plan.json

        $ queryadvisor explain plan.json
    """
    catalog = state.catalog or MessageCatalog()
    try:
        payload = json.loads(explain_file.read_text())
        stats, indexes = _load_stats(stats_file) if stats_file else ([], [])
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        error_console.print(f"[red]Error:[/red] Could not read input: {e}")
        raise typer.Exit(code=1)

    try:
        coordinator = AnalysisCoordinator(config=state.config, renderer=catalog)
        result = coordinator.analyze_plan(
            payload,
            engine=engine.value if engine else None,
            table_statistics=stats,
            indexes=indexes,
            query=query or "",
        )
    except QueryAdvisorError as e:
        _fail(e)
        return

    _emit(result, output_format, catalog)


def _emit(result: Any, output_format: OutputFormat, catalog: MessageCatalog) -> None:
    if output_format == OutputFormat.TEXT:
        print_report(result, console, catalog)
    elif output_format == OutputFormat.JSON:
        console.print_json(render(result, OutputFormat.JSON))
    else:
        console.print(render(result, output_format, catalog), markup=False)


@app.command()
def rules(
    engine: Annotated[
        Optional[EngineChoice],
        typer.Option("--engine", "-e", help="Only rules that apply to this engine"),
    ] = None,
) -> None:
    """
    List the recommendation rules.

    Shows rule IDs, default severities and the recommendation types each
    rule can emit, in evaluation order.
    """
    config = state.config or get_config()
    registry = get_registry()
    selected = registry.for_engine(Engine(engine.value) if engine else None)

    table = Table()
    table.add_column("Rule ID", style="cyan")
    table.add_column("Severity")
    table.add_column("Engines")
    table.add_column("Emits")
    table.add_column("Description")

    for rule_cls in selected:
        style = SEVERITY_STYLES[rule_cls.severity]
        engines = ", ".join(sorted(e.value for e in rule_cls.engines)) if rule_cls.engines else "all"
        rule_id = rule_cls.rule_id
        if not config.is_rule_enabled(rule_id):
            rule_id += " (disabled)"
        table.add_row(
            rule_id,
            f"[{style}]{rule_cls.severity.value}[/{style}]",
            engines,
            "\n".join(t.value for t in rule_cls.emits),
            rule_cls.description,
        )

    console.print(Panel.fit(f"{len(selected)} rule(s)", title="QueryAdvisor"))
    console.print(table)


if __name__ == "__main__":
    app()
