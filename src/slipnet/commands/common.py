"""
Helpers shared by the command modules.
"""

import asyncio
from typing import Awaitable, Callable, TypeVar

import typer
from rich.console import Console

from ..core.config import Settings, get_settings
from ..core.logging import get_logger, set_level
from ..errors import SlipnetError
from ..store import ConfigurationStore

console = Console()
logger = get_logger(__name__)

T = TypeVar("T")


def get_cli_settings(ctx: typer.Context) -> Settings:
    """Settings chosen by the top-level callback."""
    root = ctx.find_root()
    if isinstance(root.obj, Settings):
        return root.obj
    return get_settings()


def run_with_store(
    ctx: typer.Context,
    action: Callable[[ConfigurationStore], Awaitable[T]]
) -> T:
    """
    Open the store, run action against it and map errors to exit code 1.

    Raises the log level to DEBUG when the debug_logging preference is on.
    """
    settings = get_cli_settings(ctx)

    async def _run() -> T:
        store = await ConfigurationStore.open(settings)
        prefs = await store.preferences.snapshot()
        if prefs.debug_logging:
            set_level("DEBUG")
        return await action(store)

    try:
        return asyncio.run(_run())
    except SlipnetError as e:
        logger.debug("Command failed", error=str(e))
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def format_bytes(count: int) -> str:
    """Human readable byte count."""
    value = float(count)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if value < 1024 or unit == "TB":
            return f"{int(value)} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{count} B"


def format_duration(ms: int) -> str:
    """Duration as H:MM:SS."""
    seconds = ms // 1000
    hours, rest = divmod(seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours}:{minutes:02d}:{seconds:02d}"
