"""
Share codes for exchanging profiles as text.

A share code is ``slipnet://`` followed by the base64 of a pipe-delimited
record; several codes are separated by newlines. The current record layout
(version 13) is:

    13|type|name|domain|resolvers|authMode|keepAlive|cc|port|host|gso|
    dnsttPublicKey|socksUser|socksPass|sshEnabled|sshUser|sshPass|sshPort|
    0|sshHost|0|dohUrl|dnsTransport|sshAuthType|b64(sshKey)|
    b64(sshKeyPassphrase)|b64(torBridgeLines)|dnsttAuthoritative

Resolvers are written as comma-joined ``host:port:0|1`` items. Legacy
version 1 codes (11 fields, Slipstream only) are still accepted.
"""

import base64
import binascii
from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..core.logging import get_logger
from ..errors import ShareCodeError
from ..models.profile import (
    CongestionControl,
    DnsResolver,
    DnsTransport,
    ServerProfile,
    SshAuthType,
    TunnelType,
)


logger = get_logger(__name__)

SCHEME = "slipnet://"
VERSION = "13"
LEGACY_VERSION = "1"

V13_FIELD_COUNT = 28
V1_FIELD_COUNT = 11

FIELD_DELIMITER = "|"
RESOLVER_DELIMITER = ","

# Slipstream predates the other modes and kept its short token
MODE_TOKENS = {
    TunnelType.SLIPSTREAM: "ss",
    TunnelType.SLIPSTREAM_SSH: "slipstream_ssh",
    TunnelType.DNSTT: "dnstt",
    TunnelType.DNSTT_SSH: "dnstt_ssh",
    TunnelType.SSH: "ssh",
    TunnelType.DOH: "doh",
    TunnelType.SNOWFLAKE: "snowflake",
}
MODES_BY_TOKEN = {token: tunnel for tunnel, token in MODE_TOKENS.items()}

# Tunnel types that need a tunnel domain to be usable
_DOMAIN_TUNNELS = {
    TunnelType.SLIPSTREAM,
    TunnelType.SLIPSTREAM_SSH,
    TunnelType.DNSTT,
    TunnelType.DNSTT_SSH,
}


@dataclass
class ImportResult:
    """Profiles decoded from share text, plus one warning per skipped line."""
    profiles: list[ServerProfile] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _flag(value: bool) -> str:
    return "1" if value else "0"


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def _unb64(text: str) -> str:
    if not text:
        return ""
    padded = text + "=" * (-len(text) % 4)
    return base64.b64decode(padded, validate=True).decode("utf-8")


def _int_or(value: str, default: int) -> int:
    try:
        return int(value)
    except ValueError:
        return default


def encode_resolvers(resolvers: Iterable[DnsResolver]) -> str:
    return RESOLVER_DELIMITER.join(
        f"{r.host}:{r.port}:{_flag(r.authoritative)}" for r in resolvers
    )


def decode_resolvers(text: str) -> list[DnsResolver]:
    """Parse ``host:port:auth`` items, dropping malformed ones."""
    resolvers = []
    for item in text.split(RESOLVER_DELIMITER):
        item = item.strip()
        if not item:
            continue

        authoritative = False
        host, sep, rest = item.rpartition(":")
        if not sep:
            continue
        if rest in ("0", "1") and host.count(":") >= 1:
            # host:port:auth, possibly with an IPv6 host
            authoritative = rest == "1"
            host, sep, rest = host.rpartition(":")

        port = _int_or(rest, 53)
        host = host.strip("[]")
        if host and 1 <= port <= 65535:
            resolvers.append(DnsResolver(host=host, port=port, authoritative=authoritative))
    return resolvers


def encode_profile(profile: ServerProfile) -> str:
    """Encode one profile as a share code."""
    tunnel = profile.tunnel_type
    record = [
        VERSION,
        MODE_TOKENS[tunnel],
        profile.name,
        profile.domain,
        encode_resolvers(profile.resolvers),
        _flag(profile.authoritative_mode),
        str(profile.keep_alive_interval),
        profile.congestion_control.value,
        str(profile.socks_listen_port),
        profile.socks_listen_host,
        _flag(profile.gso_enabled),
        profile.dnstt_public_key,
        profile.socks_username or "",
        profile.socks_password or "",
        _flag(tunnel.uses_ssh),
        profile.ssh_username,
        profile.ssh_password,
        str(profile.ssh_port),
        "0",  # DNS forwarding through SSH, no longer configurable
        profile.ssh_host,
        "0",  # retired server-DNS flag
        profile.doh_url,
        profile.dns_transport.value,
        profile.ssh_auth_type.value,
        _b64(profile.ssh_private_key),
        _b64(profile.ssh_key_passphrase),
        _b64(profile.tor_bridge_lines),
        _flag(profile.dnstt_authoritative),
    ]
    return SCHEME + _b64(FIELD_DELIMITER.join(record))


def encode_profiles(profiles: Iterable[ServerProfile]) -> str:
    """Encode profiles as newline-separated share codes."""
    return "\n".join(encode_profile(p) for p in profiles)


def _decode_v1(fields: list[str]) -> ServerProfile:
    if len(fields) < V1_FIELD_COUNT:
        raise ValueError(
            f"Invalid format (expected {V1_FIELD_COUNT} fields, got {len(fields)})"
        )
    mode = fields[1]
    if mode != MODE_TOKENS[TunnelType.SLIPSTREAM]:
        raise ValueError(f"Unsupported mode '{mode}'")

    name, domain = fields[2], fields[3]
    if not name.strip():
        raise ValueError("Profile name is required")
    if not domain.strip():
        raise ValueError("Domain is required")

    resolvers = decode_resolvers(fields[4])
    if not resolvers:
        raise ValueError("At least one resolver is required")

    port = _int_or(fields[8], 10800)
    if not 1 <= port <= 65535:
        raise ValueError(f"Invalid port {port}")

    return ServerProfile(
        name=name,
        tunnel_type=TunnelType.SLIPSTREAM,
        domain=domain,
        resolvers=resolvers,
        authoritative_mode=fields[5] == "1",
        keep_alive_interval=_int_or(fields[6], 200),
        congestion_control=CongestionControl.from_value(fields[7]),
        socks_listen_port=port,
        socks_listen_host=fields[9],
        gso_enabled=fields[10] == "1",
    )


def _decode_v13(fields: list[str]) -> ServerProfile:
    if len(fields) < V13_FIELD_COUNT:
        raise ValueError(
            f"Invalid format (expected {V13_FIELD_COUNT} fields, got {len(fields)})"
        )
    mode = fields[1]
    tunnel = MODES_BY_TOKEN.get(mode)
    if tunnel is None:
        raise ValueError(f"Unsupported mode '{mode}'")

    name, domain = fields[2], fields[3]
    if not name.strip():
        raise ValueError("Profile name is required")
    if tunnel in _DOMAIN_TUNNELS and not domain.strip():
        raise ValueError("Domain is required")

    port = _int_or(fields[8], 1080)
    if not 1 <= port <= 65535:
        raise ValueError(f"Invalid port {port}")

    try:
        ssh_key = _unb64(fields[24])
        ssh_passphrase = _unb64(fields[25])
        bridge_lines = _unb64(fields[26])
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ValueError(f"Corrupted embedded field: {e}") from e

    return ServerProfile(
        name=name,
        tunnel_type=tunnel,
        domain=domain,
        resolvers=decode_resolvers(fields[4]),
        authoritative_mode=fields[5] == "1",
        keep_alive_interval=_int_or(fields[6], 200),
        congestion_control=CongestionControl.from_value(fields[7]),
        socks_listen_port=port,
        socks_listen_host=fields[9] or "127.0.0.1",
        gso_enabled=fields[10] == "1",
        dnstt_public_key=fields[11],
        socks_username=fields[12] or None,
        socks_password=fields[13] or None,
        ssh_username=fields[15],
        ssh_password=fields[16],
        ssh_port=_int_or(fields[17], 22),
        ssh_host=fields[19] or "127.0.0.1",
        doh_url=fields[21],
        dns_transport=DnsTransport.from_value(fields[22]),
        ssh_auth_type=SshAuthType.from_value(fields[23]),
        ssh_private_key=ssh_key,
        ssh_key_passphrase=ssh_passphrase,
        tor_bridge_lines=bridge_lines,
        dnstt_authoritative=fields[27] == "1",
    )


def decode_profile(code: str) -> ServerProfile:
    """
    Decode a single share code.

    Raises:
        ShareCodeError: If the code is malformed or unsupported
    """
    code = code.strip()
    if not code.lower().startswith(SCHEME):
        raise ShareCodeError("Invalid format, expected slipnet:// code")

    try:
        record = _unb64(code[len(SCHEME):])
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ShareCodeError("Failed to decode") from e

    fields = record.split(FIELD_DELIMITER)
    version = fields[0].lstrip("v")
    try:
        if version == VERSION:
            return _decode_v13(fields)
        if version == LEGACY_VERSION:
            return _decode_v1(fields)
    except ValueError as e:
        raise ShareCodeError(str(e)) from e
    raise ShareCodeError(f"Unsupported version '{fields[0]}'")


def decode_profiles(text: str) -> ImportResult:
    """
    Decode newline-separated share codes.

    Lines that fail to decode are skipped with a warning.

    Raises:
        ShareCodeError: If no line yields a profile
    """
    lines = [line for line in text.strip().splitlines() if line.strip()]
    if not lines:
        raise ShareCodeError("No profiles found in input")

    result = ImportResult()
    for number, line in enumerate(lines, start=1):
        try:
            result.profiles.append(decode_profile(line))
        except ShareCodeError as e:
            result.warnings.append(f"Line {number}: {e}, skipping")

    if not result.profiles:
        detail = "\n".join(result.warnings)
        raise ShareCodeError(f"No valid profiles found:\n{detail}")

    if result.warnings:
        logger.warning("Skipped share codes", count=len(result.warnings))
    return result
