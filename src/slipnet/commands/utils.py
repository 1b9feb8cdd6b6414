"""
Utility commands for SlipNet CLI.

Contains init and status commands.
"""

from typing import Annotated

import typer
from rich.panel import Panel
from rich.table import Table

from ..core.config import CONFIG_FILE_NAME
from ..store import ConfigurationStore
from .common import console, format_bytes, get_cli_settings, run_with_store


def register_util_commands(app: typer.Typer):
    """Register utility commands with the main app."""

    @app.command()
    def init(
        ctx: typer.Context,
        force: Annotated[bool, typer.Option("--force", "-f", help="Overwrite an existing config file")] = False,
    ):
        """Create the data directory, a default config file and an empty store."""
        settings = get_cli_settings(ctx)
        config_file = settings.data_root / CONFIG_FILE_NAME

        if config_file.exists() and not force:
            console.print(f"[yellow]Configuration file already exists: {config_file}[/yellow]")
        else:
            settings.save_to_yaml(config_file)
            console.print(f"[green]Configuration file created: {config_file}[/green]")

        async def _init(store: ConfigurationStore) -> None:
            await store.preferences.mark_first_launch_done()

        run_with_store(ctx, _init)
        console.print(f"[green]Store ready: {settings.get_store_file()}[/green]")

    @app.command()
    def status(ctx: typer.Context):
        """Show where data lives and a summary of its contents."""
        settings = get_cli_settings(ctx)

        async def _status(store: ConfigurationStore):
            profiles = await store.profiles.list()
            active = await store.profiles.get_active()
            prefs = await store.preferences.snapshot()
            return profiles, active, prefs

        profiles, active, prefs = run_with_store(ctx, _status)

        table = Table(show_header=False, box=None)
        table.add_column("Key", style="cyan")
        table.add_column("Value")
        table.add_row("Data directory", str(settings.data_root))
        table.add_row("Store", str(settings.get_store_file()))
        table.add_row("Encrypted", "yes" if settings.store.master_key else "no")
        table.add_row("Profiles", str(len(profiles)))
        table.add_row("Active", f"{active.name} (#{active.id})" if active else "-")
        table.add_row("Auto-connect", "on" if prefs.auto_connect_on_boot else "off")
        table.add_row(
            "Traffic",
            f"{format_bytes(prefs.total_bytes_sent)} up / "
            f"{format_bytes(prefs.total_bytes_received)} down",
        )

        console.print(Panel(table, title="[bold]SlipNet[/bold]", border_style="cyan"))
