"""Start command."""

import asyncio
import click

from . import cli
from .shared import console


@cli.command()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def start(debug):
    """Start the Discord bot."""
    from candela.config import load_settings
    from candela.main import run, setup_logging

    settings = load_settings()
    if not settings.token:
        console.print("[red]No bot token configured. Set CANDELA_TOKEN in the environment or .env.[/red]")
        raise SystemExit(1)

    if debug:
        settings.debug = True
    setup_logging(settings)

    console.print("[bold blue]Starting Candela...[/bold blue]")
    asyncio.run(run(settings))
