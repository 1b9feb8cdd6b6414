"""
Command Line Interface for SlipNet.

Provides commands for managing tunnel profiles, app settings and
statistics stored in the SlipNet data directory.

Built with Typer for automatic tab completion.
"""

from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console

from . import __version__
from .commands import (
    register_profile_commands,
    register_settings_commands,
    register_util_commands,
)
from .core.config import load_settings
from .core.logging import setup_logging

console = Console()

# Create the main app
app = typer.Typer(
    name="slipnet",
    help="SlipNet - Tunnel profile and settings manager",
    add_completion=True,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


def version_callback(value: bool):
    if value:
        console.print(f"slipnet version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    data_dir: Annotated[Optional[Path], typer.Option("--data-dir", envvar="SLIPNET_HOME", help="Data directory (default ~/.config/slipnet)")] = None,
    log_level: Annotated[Optional[str], typer.Option("--log-level", help="Override the configured log level")] = None,
    version: Annotated[bool, typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit.")] = False,
):
    """
    SlipNet - Tunnel profile and settings manager

    Define DNS, QUIC, SSH, DoH and Tor tunnel profiles, pick the active
    one, and track cumulative traffic statistics.
    """
    settings = load_settings(data_dir)
    level = (log_level or settings.log.level).upper()
    setup_logging(level, settings.log.format, settings.log.file)
    ctx.obj = settings


register_profile_commands(app)
register_settings_commands(app)
register_util_commands(app)


def cli():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    cli()
