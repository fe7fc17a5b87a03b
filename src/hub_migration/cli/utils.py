"""
Utility functions for CLI commands.

This module provides helper functions for formatting output and printing
run summaries.
"""

from typing import Any

import click
from rich.console import Console
from rich.table import Table

from hub_migration.migration.orchestrator import RunSummary, TableStatus

console = Console()

_TABLE_STATUS_STYLE = {
    TableStatus.IMPORTED: "green",
    TableStatus.DISABLED: "dim",
    TableStatus.MISSING_FILE: "yellow",
    TableStatus.EMPTY: "yellow",
    TableStatus.FAILED: "red",
}


def echo_success(message: str) -> None:
    """Print success message in green."""
    click.secho(f"✓ {message}", fg="green")


def echo_error(message: str) -> None:
    """Print error message in red."""
    click.secho(f"✗ {message}", fg="red", err=True)


def echo_warning(message: str) -> None:
    """Print warning message in yellow."""
    click.secho(f"⚠ {message}", fg="yellow")


def echo_info(message: str) -> None:
    """Print info message in blue."""
    click.secho(f"ℹ {message}", fg="blue")


def format_duration(seconds: float | None) -> str:
    """
    Format duration in human-readable format.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted duration string (e.g., "2h 30m 15s")
    """
    if seconds is None:
        return "N/A"

    if seconds < 60:
        return f"{seconds:.1f}s"

    minutes = int(seconds // 60)
    remaining_seconds = int(seconds % 60)

    if minutes < 60:
        return f"{minutes}m {remaining_seconds}s"

    hours = minutes // 60
    remaining_minutes = minutes % 60

    return f"{hours}h {remaining_minutes}m {remaining_seconds}s"


def format_count(count: int) -> str:
    """Format large numbers with thousands separator."""
    return f"{count:,}"


def print_table(
    title: str,
    columns: list[str],
    rows: list[list[Any]],
    show_header: bool = True,
) -> None:
    """
    Print a formatted table using rich.

    Args:
        title: Table title
        columns: Column headers
        rows: List of row data
        show_header: Whether to show header row
    """
    table = Table(title=title, show_header=show_header)

    for col in columns:
        table.add_column(col)

    for row in rows:
        table.add_row(*[str(cell) for cell in row])

    console.print(table)


def print_run_summary(summary: RunSummary) -> None:
    """Print the per-table and per-phase results of a run."""
    if summary.tables:
        table = Table(title="Tables")
        for col in ("Table", "Status", "Rows", "Written", "Rejected", "Note"):
            table.add_column(col)
        for t in summary.tables:
            style = _TABLE_STATUS_STYLE[t.status]
            table.add_row(
                t.table,
                f"[{style}]{t.status.value}[/{style}]",
                format_count(t.rows),
                format_count(t.written),
                format_count(t.rejected),
                t.note,
            )
        console.print(table)

    if summary.phases:
        rows = []
        for p in summary.phases:
            if not p.ran:
                rows.append([p.phase, "-", "-", "-", "-", "-", "-", p.note])
                continue
            rows.append(
                [
                    p.phase,
                    format_count(p.created),
                    format_count(p.matched),
                    format_count(p.written),
                    format_count(p.skipped),
                    format_count(p.dropped),
                    format_count(p.failed),
                    p.note,
                ]
            )
        print_table(
            "Identity Phases",
            ["Phase", "Created", "Matched", "Written", "Skipped", "Dropped", "Failed", "Note"],
            rows,
        )

    for error in summary.fatal_errors:
        echo_error(f"{error['unit']}: {error['error']}")
