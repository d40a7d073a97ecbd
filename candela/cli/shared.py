"""Shared utilities for Candela CLI commands."""

from rich.console import Console

console = Console()


def _mask(value: str | None) -> str:
    """Show only the tail of a secret."""
    if not value:
        return "[red]not set[/red]"
    return f"[green]set[/green] (…{value[-4:]})" if len(value) > 8 else "[green]set[/green]"
