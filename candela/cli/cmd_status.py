"""Status and routing commands."""

import click

from . import cli
from .shared import console, _mask

from rich.table import Table


@cli.command()
def status():
    """Show effective configuration."""
    from candela import __version__
    from candela.config import load_settings

    settings = load_settings()

    table = Table(title=f"Candela Status v{__version__}", show_header=False, padding=(0, 2))
    table.add_column("Key", style="bold")
    table.add_column("Value")

    table.add_row("Version", __version__)
    table.add_row("Token", _mask(settings.token))
    if settings.is_production:
        table.add_row("Mode", "[green]production[/green]")
    else:
        table.add_row("Mode", f"[yellow]{settings.env}[/yellow]")
    table.add_row("Test guild", str(settings.test_guild) if settings.test_guild else "[dim]none[/dim]")
    table.add_row("Control channel", f"#{settings.channel_name}")
    table.add_row("History scan", f"{settings.history_limit} messages")
    table.add_row("DM confirmations", "on" if settings.confirm_by_dm else "off")
    table.add_row("Log file", settings.log_file or "[dim]none[/dim]")

    console.print(table)


@cli.command()
@click.argument("guild_id", type=int)
def route(guild_id):
    """Check whether GUILD_ID is routed by the current configuration."""
    from candela.config import CommunityGate, load_settings

    settings = load_settings()
    gate = CommunityGate.from_settings(settings)
    if gate.allows(guild_id):
        console.print(f"[green]Guild {guild_id} is routed[/green] ({settings.env} mode)")
    else:
        console.print(f"[yellow]Guild {guild_id} is not routed[/yellow] ({settings.env} mode)")
