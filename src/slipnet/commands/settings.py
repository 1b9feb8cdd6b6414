"""
Settings and statistics commands for SlipNet CLI.

Contains settings show/set and stats show/reset.
"""

from typing import Annotated, Any, Callable

import typer
from rich.table import Table

from ..models.preferences import BufferSize, DarkMode
from ..repositories.preferences_repository import PreferencesRepository
from ..store import ConfigurationStore
from .common import console, format_bytes, format_duration, run_with_store


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise typer.BadParameter(f"Expected on/off, got '{value}'")


def _parse_optional_id(value: str) -> Any:
    if value.strip().lower() in ("", "none", "-"):
        return None
    return _parse_int(value)


def _parse_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise typer.BadParameter(f"Expected a number, got '{value}'")


def _parse_choice(enum_cls) -> Callable[[str], Any]:
    def parse(value: str):
        choices = [member.value for member in enum_cls]
        if value not in choices:
            raise typer.BadParameter(f"Expected one of {', '.join(choices)}")
        return value
    return parse


# Setting name -> (repository setter, value parser)
SETTERS: dict[str, tuple[Callable[[PreferencesRepository], Callable], Callable[[str], Any]]] = {
    "auto_connect_on_boot": (lambda p: p.set_auto_connect_on_boot, _parse_bool),
    "debug_logging": (lambda p: p.set_debug_logging, _parse_bool),
    "dark_mode": (lambda p: p.set_dark_mode, _parse_choice(DarkMode)),
    "active_profile_id": (lambda p: p.set_active_profile_id, _parse_optional_id),
    "last_connected_profile_id": (lambda p: p.set_last_connected_profile_id, _parse_optional_id),
    "dns_timeout_ms": (lambda p: p.set_dns_timeout, _parse_int),
    "connection_timeout_ms": (lambda p: p.set_connection_timeout, _parse_int),
    "buffer_size": (lambda p: p.set_buffer_size, _parse_choice(BufferSize)),
    "connection_pool_size": (lambda p: p.set_connection_pool_size, _parse_int),
    "kill_switch": (lambda p: p.set_kill_switch, _parse_bool),
    "proxy_only_mode": (lambda p: p.set_proxy_only_mode, _parse_bool),
    "sleep_timer_minutes": (lambda p: p.set_sleep_timer_minutes, _parse_int),
    "http_proxy_enabled": (lambda p: p.set_http_proxy_enabled, _parse_bool),
    "http_proxy_port": (lambda p: p.set_http_proxy_port, _parse_int),
}

# Shown by `stats`, not by `settings show`
STAT_FIELDS = {"total_bytes_sent", "total_bytes_received", "total_connection_time_ms"}


def register_settings_commands(app: typer.Typer):
    """Register settings and stats subcommands with the app."""

    settings_app = typer.Typer(
        help="View and change app settings.",
        invoke_without_command=True,
        no_args_is_help=True,
    )
    app.add_typer(settings_app, name="settings")

    stats_app = typer.Typer(
        help="Cumulative traffic statistics.",
        invoke_without_command=True,
        no_args_is_help=True,
    )
    app.add_typer(stats_app, name="stats")

    @settings_app.command("show")
    def settings_show(ctx: typer.Context):
        """Show all settings."""
        prefs = run_with_store(ctx, lambda store: store.preferences.snapshot())

        table = Table(title="Settings")
        table.add_column("Setting", style="cyan")
        table.add_column("Value")
        for name, value in prefs.to_record().items():
            if name in STAT_FIELDS:
                continue
            if isinstance(value, list):
                value = ", ".join(value) or "-"
            elif value is None:
                value = "-"
            table.add_row(name, str(value))
        console.print(table)

    @settings_app.command("set")
    def settings_set(
        ctx: typer.Context,
        name: Annotated[str, typer.Argument(help="Setting name (see 'settings show')")],
        value: Annotated[str, typer.Argument(help="New value")],
    ):
        """Change one setting. Numeric settings are clamped to their range."""
        if name not in SETTERS:
            console.print(f"[red]Unknown setting: {name}[/red]")
            console.print(f"[dim]Available: {', '.join(sorted(SETTERS))}[/dim]")
            raise typer.Exit(1)

        select_setter, parse = SETTERS[name]
        parsed = parse(value)

        async def _set(store: ConfigurationStore):
            await select_setter(store.preferences)(parsed)
            return getattr(await store.preferences.snapshot(), name)

        stored = run_with_store(ctx, _set)
        if hasattr(stored, "value"):
            stored = stored.value
        console.print(f"[green]{name} = {stored}[/green]")

    @stats_app.command("show")
    def stats_show(ctx: typer.Context):
        """Show cumulative traffic and connection time."""
        prefs = run_with_store(ctx, lambda store: store.preferences.snapshot())

        table = Table(show_header=False, box=None)
        table.add_column("Counter", style="cyan")
        table.add_column("Value")
        table.add_row("Sent", format_bytes(prefs.total_bytes_sent))
        table.add_row("Received", format_bytes(prefs.total_bytes_received))
        table.add_row("Connected", format_duration(prefs.total_connection_time_ms))
        console.print(table)

    @stats_app.command("reset")
    def stats_reset(
        ctx: typer.Context,
        yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
    ):
        """Zero all counters."""
        if not yes and not typer.confirm("Reset all statistics?"):
            raise typer.Abort()

        run_with_store(ctx, lambda store: store.preferences.reset_total_stats())
        console.print("[green]Statistics reset[/green]")
