"""Shared console utilities for CLI commands."""

from datetime import datetime

from rich.console import Console
from rich.table import Table

# Shared console instance for all CLI commands
console = Console()


def error(msg: str) -> None:
    """Print an error message in red."""
    console.print(f"[red]{msg}[/red]")


def warning(msg: str) -> None:
    """Print a warning message in yellow."""
    console.print(f"[yellow]{msg}[/yellow]")


def success(msg: str) -> None:
    """Print a success message in green."""
    console.print(f"[green]{msg}[/green]")


def dim(msg: str) -> None:
    """Print a dimmed message."""
    console.print(f"[dim]{msg}[/dim]")


def create_table(
    title: str | None,
    columns: list[tuple[str, str | dict]],
) -> Table:
    """Create a styled table with consistent formatting.

    Args:
        title: Table title.
        columns: List of (name, style) or (name, kwargs_dict) tuples.
    """
    table = Table(title=title)
    for name, style_or_kwargs in columns:
        if isinstance(style_or_kwargs, dict):
            table.add_column(name, **style_or_kwargs)
        else:
            table.add_column(name, style=style_or_kwargs)
    return table


def format_countdown(target: datetime | None, now: datetime) -> str:
    """Format a countdown string like "in 2h 5m" for a future instant."""
    if target is None:
        return "[dim]?[/dim]"
    if target <= now:
        return "now"

    total_seconds = int((target - now).total_seconds())
    if total_seconds < 60:
        return f"in {total_seconds}s"

    total_minutes = total_seconds // 60
    if total_minutes < 60:
        return f"in {total_minutes}m"

    hours, minutes = divmod(total_minutes, 60)
    if hours < 24:
        return f"in {hours}h {minutes}m" if minutes else f"in {hours}h"

    days, hours = divmod(hours, 24)
    return f"in {days}d {hours}h" if hours else f"in {days}d"


def format_delay_ms(delay_ms: int) -> str:
    """Format a wake delay in milliseconds as "2h 5m" / "40s"."""
    total_seconds = delay_ms // 1000
    if total_seconds < 60:
        return f"{total_seconds}s"
    hours, minutes = divmod(total_seconds // 60, 60)
    if hours == 0:
        return f"{minutes}m"
    return f"{hours}h {minutes}m" if minutes else f"{hours}h"
