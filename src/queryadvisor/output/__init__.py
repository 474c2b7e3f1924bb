"""Output formatting for analysis results."""

from queryadvisor.output.renderers import (
    OutputFormat,
    format_bytes,
    print_report,
    render,
    render_json,
    render_markdown,
    render_text,
)

__all__ = [
    "OutputFormat",
    "format_bytes",
    "print_report",
    "render",
    "render_json",
    "render_markdown",
    "render_text",
]
