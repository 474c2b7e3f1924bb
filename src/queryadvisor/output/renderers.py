"""
Output renderers for different formats.

Separates presentation logic from analysis logic. The text report is
built from rich renderables so the CLI can print it in color, while
render() captures the same report as plain text for files and tests.
All headings come from the message catalog, so reports follow the
selected language.
"""

from __future__ import annotations

import io
import json
import math
from enum import Enum
from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from queryadvisor.analyzer.models import Severity
from queryadvisor.db.models import group_index_columns
from queryadvisor.i18n import MessageCatalog

if TYPE_CHECKING:
    from queryadvisor.analyzer.models import AnalysisResult, Recommendation
    from queryadvisor.plan.node import PlanNode


class OutputFormat(str, Enum):
    """Supported output formats."""

    TEXT = "text"
    JSON = "json"
    MARKDOWN = "markdown"


SEVERITY_STYLES = {
    Severity.HIGH: "red bold",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "blue",
}

_BYTE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_bytes(size: int | float | None) -> str:
    """Human-readable size with two decimals (``1536 -> "1.50 KB"``)."""
    if not size or size <= 0:
        return "0 B"
    i = min(int(math.floor(math.log(size, 1024))), len(_BYTE_UNITS) - 1)
    return f"{size / 1024 ** i:.2f} {_BYTE_UNITS[i]}"


def render(
    result: "AnalysisResult",
    format: OutputFormat = OutputFormat.TEXT,
    catalog: MessageCatalog | None = None,
) -> str:
    """
    Render analysis result in the specified format.

    Args:
        result: Analysis result to render
        format: Output format (text, json, markdown)
        catalog: Message catalog for headings (default: English)

    Returns:
        Formatted string
    """
    if format == OutputFormat.TEXT:
        return render_text(result, catalog)
    elif format == OutputFormat.JSON:
        return render_json(result)
    elif format == OutputFormat.MARKDOWN:
        return render_markdown(result, catalog)
    else:
        raise ValueError(f"Unknown output format: {format}")


# =============================================================================
# Text renderer (terminal)
# =============================================================================


def print_report(
    result: "AnalysisResult",
    console: Console,
    catalog: MessageCatalog | None = None,
) -> None:
    """Print the full report: query, plan, statistics, indexes, recommendations."""
    catalog = catalog or MessageCatalog()

    console.print(Panel(
        Text(result.query or "-"),
        title=catalog.text("ui.headers.query"),
        border_style="cyan",
    ))

    if result.degraded:
        console.print(
            f"[yellow]{catalog.text('analysis.degraded', reasons='; '.join(result.degraded_reasons))}[/yellow]"
        )

    console.print(_plan_table(result.plan, catalog))
    console.print(_statistics_table(result, catalog))
    console.print(_indexes_table(result, catalog))
    _print_recommendations(result, console, catalog)


def render_text(
    result: "AnalysisResult",
    catalog: MessageCatalog | None = None,
    width: int = 120,
) -> str:
    """Render the report as plain text (no ANSI codes)."""
    console = Console(file=io.StringIO(), width=width, record=True, color_system=None)
    print_report(result, console, catalog)
    return console.export_text()


def _plan_table(plan: "PlanNode | None", catalog: MessageCatalog) -> Table:
    table = Table(title=catalog.text("ui.headers.plan"), title_justify="left")
    table.add_column(catalog.text("ui.table.operation"), style="cyan")
    table.add_column(catalog.text("ui.table.cost"), justify="right")
    table.add_column(catalog.text("ui.table.rows"), justify="right")
    table.add_column(catalog.text("ui.table.details"))

    if plan is None or not hasattr(plan, "iter_with_depth"):
        table.add_row(catalog.text("ui.no_data.plan"), "N/A", "N/A", "N/A")
        return table

    for depth, node in plan.iter_with_depth():
        cost = f"{node.cost_estimate:,.2f}" if node.cost_estimate is not None else "N/A"
        rows = f"{node.rows:,.0f}" if node.rows is not None else "N/A"
        table.add_row("  " * depth + node.display_name, cost, rows, _node_details(node) or "N/A")

    return table


def _node_details(node: "PlanNode") -> str:
    details: list[str] = [f"kind={node.node_kind.value}"]
    if node.index_name:
        details.append(f"key={node.index_name}")
    if node.possible_indexes:
        details.append(f"possible_keys={','.join(node.possible_indexes)}")
    if node.join_condition:
        details.append(f"cond={node.join_condition}")
    if node.actual_loops is not None and node.actual_loops > 1:
        details.append(f"loops={node.actual_loops}")
    details.extend(f"{name}={value}" for name, value in node.flags.to_dict().items())
    return ", ".join(details)


def _statistics_table(result: "AnalysisResult", catalog: MessageCatalog) -> Table:
    table = Table(title=catalog.text("ui.headers.stats"), title_justify="left")
    table.add_column(catalog.text("ui.table.table"), style="cyan")
    table.add_column(catalog.text("ui.table.rows"), justify="right")
    table.add_column(catalog.text("ui.table.size"), justify="right")
    table.add_column(catalog.text("ui.table.index_size"), justify="right")

    if not result.table_statistics:
        table.add_row(catalog.text("ui.no_data.stats"), "N/A", "N/A", "N/A")
        return table

    for stat in result.table_statistics:
        table.add_row(
            stat.table_name,
            f"{stat.row_count:,}",
            format_bytes(stat.data_size_bytes),
            format_bytes(stat.index_size_bytes),
        )
    return table


def _indexes_table(result: "AnalysisResult", catalog: MessageCatalog) -> Table:
    table = Table(title=catalog.text("ui.headers.indexes"), title_justify="left")
    table.add_column(catalog.text("ui.table.table"), style="cyan")
    table.add_column(catalog.text("ui.table.index_name"))
    table.add_column(catalog.text("ui.table.columns"))
    table.add_column(catalog.text("ui.table.unique"))

    if not result.indexes:
        table.add_row(catalog.text("ui.no_data.indexes"), "-", "-", "-")
        return table

    unique = {(i.table_name, i.index_name): i.is_unique for i in result.indexes}
    for (table_name, index_name), columns in group_index_columns(result.indexes).items():
        table.add_row(
            table_name,
            index_name,
            ", ".join(columns),
            "yes" if unique[(table_name, index_name)] else "no",
        )
    return table


def _print_recommendations(
    result: "AnalysisResult",
    console: Console,
    catalog: MessageCatalog,
) -> None:
    console.print()
    console.print(f"[bold]{catalog.text('ui.headers.recommendations')}[/bold]")

    if not result.recommendations:
        console.print(f"[green]{catalog.text('ui.no_data.recommendations')}[/green]")
        return

    for rec in result.recommendations:
        style = SEVERITY_STYLES[rec.severity]
        console.print()
        console.print(f"[{style}][{rec.severity.value}][/{style}] [bold]{rec.type.value}[/bold]")
        console.print(f"  {rec.message}", markup=False)
        if rec.suggestion:
            console.print(f"  [green]{catalog.text('ui.labels.suggestion')}:[/green] ", end="")
            console.print(rec.suggestion, markup=False)
        if rec.details.impact:
            console.print(f"  [yellow]{catalog.text('ui.labels.impact')}:[/yellow] ", end="")
            console.print(rec.details.impact, markup=False)
        if rec.details.implementation:
            console.print(f"  [blue]{catalog.text('ui.labels.implementation')}:[/blue]")
            for step in rec.details.implementation:
                console.print(f"    - {step}", markup=False)

    console.print()
    console.print(f"[dim]{_summary_line(result, catalog)}[/dim]")


def _summary_line(result: "AnalysisResult", catalog: MessageCatalog) -> str:
    counts = result.summary()
    return catalog.text(
        "ui.labels.summary",
        total=len(result.recommendations),
        high=counts["HIGH"],
        medium=counts["MEDIUM"],
        low=counts["LOW"],
    )


# =============================================================================
# JSON renderer
# =============================================================================


def render_json(result: "AnalysisResult", indent: int = 2) -> str:
    """
    Render analysis result as JSON.

    Suitable for scripting and CI integration.
    """
    return json.dumps(result.to_dict(), indent=indent, default=str)


# =============================================================================
# Markdown renderer
# =============================================================================


def render_markdown(
    result: "AnalysisResult",
    catalog: MessageCatalog | None = None,
) -> str:
    """
    Render analysis result as Markdown.

    Suitable for issues, pull request comments and documentation.
    """
    catalog = catalog or MessageCatalog()
    lines: list[str] = []

    lines.append(f"# {catalog.text('ui.headers.results')}")
    lines.append("")
    lines.append(f"## {catalog.text('ui.headers.query')}")
    lines.append("")
    lines.append("```sql")
    lines.append(result.query or "-")
    lines.append("```")
    lines.append("")

    if result.degraded:
        lines.append(f"> {catalog.text('analysis.degraded', reasons='; '.join(result.degraded_reasons))}")
        lines.append("")

    lines.append(f"## {catalog.text('ui.headers.stats')}")
    lines.append("")
    if result.table_statistics:
        lines.append(
            f"| {catalog.text('ui.table.table')} | {catalog.text('ui.table.rows')} "
            f"| {catalog.text('ui.table.size')} | {catalog.text('ui.table.index_size')} |"
        )
        lines.append("|---|---:|---:|---:|")
        for stat in result.table_statistics:
            lines.append(
                f"| {stat.table_name} | {stat.row_count:,} "
                f"| {format_bytes(stat.data_size_bytes)} | {format_bytes(stat.index_size_bytes)} |"
            )
    else:
        lines.append(catalog.text("ui.no_data.stats"))
    lines.append("")

    lines.append(f"## {catalog.text('ui.headers.recommendations')}")
    lines.append("")
    if not result.recommendations:
        lines.append(catalog.text("ui.no_data.recommendations"))
        lines.append("")
    for i, rec in enumerate(result.recommendations, 1):
        lines.extend(_markdown_recommendation(i, rec, catalog))

    lines.append(f"_{_summary_line(result, catalog)}_")
    return "\n".join(lines)


def _markdown_recommendation(
    position: int,
    rec: "Recommendation",
    catalog: MessageCatalog,
) -> list[str]:
    lines = [f"### {position}. [{rec.severity.value}] `{rec.type.value}`", "", rec.message, ""]
    if rec.suggestion:
        lines.append(f"**{catalog.text('ui.labels.suggestion')}:** {rec.suggestion}")
        lines.append("")
    if rec.details.impact:
        lines.append(f"**{catalog.text('ui.labels.impact')}:** {rec.details.impact}")
        lines.append("")
    if rec.details.implementation:
        lines.append(f"**{catalog.text('ui.labels.implementation')}:**")
        lines.append("")
        lines.extend(f"- {step}" for step in rec.details.implementation)
        lines.append("")
    return lines
