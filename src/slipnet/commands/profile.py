"""
Profile management commands for SlipNet CLI.

Contains all profile subcommands: list, show, add, edit, remove, activate,
reorder, check, export, import.
"""

import sys
from datetime import datetime
from pathlib import Path
from typing import Annotated, List, Optional

import typer
from rich.panel import Panel
from rich.table import Table

from ..errors import ValidationError
from ..models.profile import (
    DnsResolver,
    DnsTransport,
    ServerProfile,
    SshAuthType,
    TunnelType,
)
from ..services.profile_service import ProfileService
from ..services.validation import validate_profile
from ..store import ConfigurationStore
from .common import console, run_with_store


# Fields never printed in clear text
SECRET_FIELDS = {"socks_password", "ssh_password", "ssh_private_key", "ssh_key_passphrase"}


def parse_resolver(text: str) -> DnsResolver:
    """Parse HOST[:PORT] into a resolver."""
    host, sep, port = text.strip().rpartition(":")
    if not sep or (":" in host and not host.startswith("[")):
        # No port, or a bare IPv6 address
        return DnsResolver(host=text.strip().strip("[]"))
    try:
        return DnsResolver(host=host.strip("[]"), port=int(port))
    except ValueError:
        raise typer.BadParameter(f"Invalid resolver: {text}")


def _format_time(epoch_ms: int) -> str:
    if not epoch_ms:
        return "never"
    return datetime.fromtimestamp(epoch_ms / 1000).strftime("%Y-%m-%d %H:%M")


def _read_file(path: Path) -> str:
    try:
        return path.read_text()
    except OSError as e:
        raise typer.BadParameter(f"Cannot read {path}: {e.strerror or e}")


def _read_text(path: Optional[Path]) -> str:
    if path is None or str(path) == "-":
        return sys.stdin.read()
    return _read_file(path)


def register_profile_commands(app: typer.Typer):
    """Register profile subcommands with the app."""

    profile_app = typer.Typer(
        help="Manage tunnel profiles.",
        invoke_without_command=True,
        no_args_is_help=True,
    )
    app.add_typer(profile_app, name="profile")

    @profile_app.command("list")
    def profile_list(ctx: typer.Context):
        """List profiles in display order."""
        profiles = run_with_store(ctx, lambda store: store.profiles.list())

        if not profiles:
            console.print("[yellow]No profiles configured[/yellow]")
            return

        table = Table(title="Profiles")
        table.add_column("ID", justify="right", style="cyan")
        table.add_column("Name")
        table.add_column("Type")
        table.add_column("Domain")
        table.add_column("Active", justify="center")
        table.add_column("Last connected")

        for profile in profiles:
            table.add_row(
                str(profile.id),
                profile.name,
                profile.tunnel_type.value,
                profile.domain or "-",
                "[green]*[/green]" if profile.is_active else "",
                _format_time(profile.last_connected_at),
            )
        console.print(table)

    @profile_app.command("show")
    def profile_show(
        ctx: typer.Context,
        profile_id: Annotated[int, typer.Argument(help="Profile ID")],
        reveal: Annotated[bool, typer.Option("--reveal", help="Show secrets in clear text")] = False,
    ):
        """Show every field of a profile."""
        profile = run_with_store(ctx, lambda store: store.profiles.require(profile_id))

        table = Table(show_header=False, box=None)
        table.add_column("Field", style="cyan")
        table.add_column("Value")
        for name, value in profile.to_record().items():
            if name in SECRET_FIELDS and value and not reveal:
                value = "********"
            elif name == "resolvers":
                value = ", ".join(f"{r['host']}:{r['port']}" for r in value) or "-"
            table.add_row(name, str(value))

        console.print(Panel(table, title=f"[bold]{profile.name or 'Profile'}[/bold] #{profile.id}"))

    @profile_app.command("add")
    def profile_add(
        ctx: typer.Context,
        name: Annotated[str, typer.Argument(help="Display name")],
        tunnel_type: Annotated[TunnelType, typer.Option("--type", "-t", help="Tunnel type")] = TunnelType.DNSTT,
        domain: Annotated[str, typer.Option("--domain", "-d", help="Tunnel domain")] = "",
        resolver: Annotated[Optional[List[str]], typer.Option("--resolver", "-r", help="Resolver HOST[:PORT] (repeatable)")] = None,
        public_key: Annotated[str, typer.Option("--public-key", help="DNSTT server public key (hex)")] = "",
        dns_transport: Annotated[DnsTransport, typer.Option("--dns-transport", help="DNSTT query transport")] = DnsTransport.UDP,
        socks_port: Annotated[int, typer.Option("--socks-port", help="Local SOCKS port")] = 1080,
        ssh_host: Annotated[str, typer.Option("--ssh-host", help="SSH server host")] = "127.0.0.1",
        ssh_port: Annotated[int, typer.Option("--ssh-port", help="SSH server port")] = 22,
        ssh_user: Annotated[str, typer.Option("--ssh-user", help="SSH username")] = "",
        ssh_password: Annotated[Optional[str], typer.Option("--ssh-password", help="SSH password")] = None,
        ssh_key_file: Annotated[Optional[Path], typer.Option("--ssh-key-file", help="PEM private key file (selects key auth)")] = None,
        doh_url: Annotated[str, typer.Option("--doh-url", help="DNS-over-HTTPS endpoint")] = "",
        bridge_file: Annotated[Optional[Path], typer.Option("--bridges", help="File with Tor bridge lines")] = None,
        activate: Annotated[bool, typer.Option("--activate", help="Make the new profile active")] = False,
    ):
        """Add a new profile."""
        profile = ServerProfile(
            name=name,
            tunnel_type=tunnel_type,
            domain=domain,
            resolvers=[parse_resolver(r) for r in resolver or []],
            socks_listen_port=socks_port,
            dnstt_public_key=public_key,
            dns_transport=dns_transport,
            ssh_host=ssh_host,
            ssh_port=ssh_port,
            ssh_username=ssh_user,
            ssh_password=ssh_password or "",
            doh_url=doh_url,
        )
        if ssh_key_file is not None:
            profile.ssh_auth_type = SshAuthType.KEY
            profile.ssh_private_key = _read_file(ssh_key_file)
        if bridge_file is not None:
            profile.tor_bridge_lines = _read_file(bridge_file).strip()

        async def _add(store: ConfigurationStore) -> int:
            profile_id = await store.profiles.create(profile)
            if activate:
                await store.profiles.set_active(profile_id)
            return profile_id

        profile_id = run_with_store(ctx, _add)
        console.print(f"[green]Profile '{name}' added with ID {profile_id}[/green]")

        try:
            validate_profile(profile)
        except ValidationError as e:
            console.print(f"[yellow]Warning: profile is incomplete ({e})[/yellow]")

    @profile_app.command("edit")
    def profile_edit(
        ctx: typer.Context,
        profile_id: Annotated[int, typer.Argument(help="Profile ID")],
        name: Annotated[Optional[str], typer.Option("--name", help="New display name")] = None,
        domain: Annotated[Optional[str], typer.Option("--domain", "-d", help="New tunnel domain")] = None,
        resolver: Annotated[Optional[List[str]], typer.Option("--resolver", "-r", help="Replace resolvers (repeatable)")] = None,
        public_key: Annotated[Optional[str], typer.Option("--public-key", help="DNSTT server public key (hex)")] = None,
        socks_port: Annotated[Optional[int], typer.Option("--socks-port", help="Local SOCKS port")] = None,
        doh_url: Annotated[Optional[str], typer.Option("--doh-url", help="DNS-over-HTTPS endpoint")] = None,
    ):
        """Change fields of an existing profile."""
        changes = {
            "name": name,
            "domain": domain,
            "dnstt_public_key": public_key,
            "socks_listen_port": socks_port,
            "doh_url": doh_url,
        }
        changes = {key: value for key, value in changes.items() if value is not None}
        if resolver:
            changes["resolvers"] = [parse_resolver(r) for r in resolver]

        if not changes:
            console.print("[yellow]Nothing to change[/yellow]")
            return

        async def _edit(store: ConfigurationStore) -> ServerProfile:
            profile = await store.profiles.require(profile_id)
            for key, value in changes.items():
                setattr(profile, key, value)
            return await store.profiles.update(profile)

        updated = run_with_store(ctx, _edit)
        console.print(f"[green]Profile '{updated.name}' updated[/green]")

    @profile_app.command("remove")
    def profile_remove(
        ctx: typer.Context,
        profile_id: Annotated[int, typer.Argument(help="Profile ID")],
        yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
    ):
        """Delete a profile."""
        if not yes and not typer.confirm(f"Delete profile {profile_id}?"):
            raise typer.Abort()

        if run_with_store(ctx, lambda store: store.profiles.delete(profile_id)):
            console.print(f"[green]Profile {profile_id} deleted[/green]")
        else:
            console.print(f"[red]Profile not found: {profile_id}[/red]")
            raise typer.Exit(1)

    @profile_app.command("activate")
    def profile_activate(
        ctx: typer.Context,
        profile_id: Annotated[int, typer.Argument(help="Profile ID")],
    ):
        """Make a profile the active profile."""
        run_with_store(ctx, lambda store: store.profiles.set_active(profile_id))
        console.print(f"[green]Profile {profile_id} is now active[/green]")

    @profile_app.command("reorder")
    def profile_reorder(
        ctx: typer.Context,
        profile_ids: Annotated[List[int], typer.Argument(help="Profile IDs in the new order")],
    ):
        """Move profiles to the top of the list in the given order."""
        run_with_store(ctx, lambda store: store.profiles.reorder(profile_ids))
        console.print("[green]Profiles reordered[/green]")

    @profile_app.command("check")
    def profile_check(
        ctx: typer.Context,
        profile_id: Annotated[int, typer.Argument(help="Profile ID")],
    ):
        """Check that a profile is ready to connect."""
        async def _check(store: ConfigurationStore) -> ServerProfile:
            return await ProfileService(store).resolve_for_connection(profile_id)

        profile = run_with_store(ctx, _check)
        console.print(f"[green]Profile '{profile.name}' is ready ({profile.tunnel_type.value})[/green]")

    @profile_app.command("export")
    def profile_export(
        ctx: typer.Context,
        profile_ids: Annotated[Optional[List[int]], typer.Argument(help="Profile IDs (all if omitted)")] = None,
        output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Write share codes to a file")] = None,
    ):
        """Print share codes for profiles."""
        async def _export(store: ConfigurationStore) -> str:
            return await ProfileService(store).export_profiles(profile_ids or None)

        text = run_with_store(ctx, _export)
        if output is not None:
            output.write_text(text + "\n")
            console.print(f"[green]Share codes written to {output}[/green]")
        else:
            typer.echo(text)

    @profile_app.command("import")
    def profile_import(
        ctx: typer.Context,
        source: Annotated[Optional[Path], typer.Argument(help="File with share codes ('-' or omitted for stdin)")] = None,
    ):
        """Create profiles from share codes."""
        text = _read_text(source)

        async def _import(store: ConfigurationStore):
            return await ProfileService(store).import_profiles(text)

        report = run_with_store(ctx, _import)
        for warning in report.warnings:
            console.print(f"[yellow]{warning}[/yellow]")
        ids = ", ".join(str(i) for i in report.created_ids)
        console.print(f"[green]Imported {len(report.created_ids)} profile(s): {ids}[/green]")
