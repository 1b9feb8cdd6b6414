"""
Tor bridge lines for SNOWFLAKE profiles.

A profile stores its bridges as newline-delimited text. Each line names its
pluggable transport in the first token (optionally preceded by "Bridge" when
pasted from BridgeDB). An empty field selects the built-in Snowflake bridge;
a few whole-field keywords select special connection modes.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class BridgeTransport(Enum):
    """Pluggable transports a bridge line can name."""
    OBFS4 = "obfs4"           # Obfuscated traffic
    WEBTUNNEL = "webtunnel"   # Looks like HTTPS to allowed domains
    MEEK_LITE = "meek_lite"   # Domain-fronted HTTPS
    SNOWFLAKE = "snowflake"   # Uses WebRTC peers

    @classmethod
    def from_token(cls, token: str) -> Optional["BridgeTransport"]:
        token = token.lower()
        for member in cls:
            if member.value == token:
                return member
        return None


class BridgeMode(Enum):
    """How the Tor engine should treat a profile's bridge field."""
    BUILTIN = "builtin"              # Empty field: built-in Snowflake
    DIRECT = "DIRECT"                # No bridges at all
    SNOWFLAKE_AMP = "SNOWFLAKE_AMP"  # Built-in Snowflake over AMP cache
    SMART = "SMART"                  # Built-in Snowflake with fallbacks
    CUSTOM = "custom"                # User-supplied bridge lines


KEYWORD_MODES = {
    BridgeMode.DIRECT.value: BridgeMode.DIRECT,
    BridgeMode.SNOWFLAKE_AMP.value: BridgeMode.SNOWFLAKE_AMP,
    BridgeMode.SMART.value: BridgeMode.SMART,
}


@dataclass
class Bridge:
    """A single Tor bridge."""
    transport: BridgeTransport
    address: str = ""       # IP:Port or [IPv6]:Port
    fingerprint: str = ""   # Bridge fingerprint
    params: dict = field(default_factory=dict)  # Transport-specific params

    def to_bridge_line(self) -> str:
        """Convert to torrc bridge line format."""
        # Format: Bridge <transport> <address> <fingerprint> <params>
        parts = [self.transport.value]

        if self.address:
            parts.append(self.address)
        if self.fingerprint:
            parts.append(self.fingerprint)

        for key, value in self.params.items():
            parts.append(f"{key}={value}")

        return "Bridge " + " ".join(parts)

    @classmethod
    def parse(cls, line: str) -> "Bridge":
        """
        Parse one bridge line.

        Raises:
            ValueError: If the line does not start with a known transport
        """
        tokens = _strip_bridge_prefix(line.strip()).split()
        if not tokens:
            raise ValueError("Empty bridge line")

        transport = BridgeTransport.from_token(tokens[0])
        if transport is None:
            raise ValueError(f"Unknown bridge transport: {tokens[0]}")

        address = ""
        fingerprint = ""
        params: dict = {}
        for token in tokens[1:]:
            if "=" in token:
                key, value = token.split("=", 1)
                params[key] = value
            elif not address:
                address = token
            elif not fingerprint:
                fingerprint = token

        return cls(transport=transport, address=address, fingerprint=fingerprint, params=params)


def _strip_bridge_prefix(line: str) -> str:
    if line.lower().startswith("bridge "):
        return line[7:].strip()
    return line


# Standard fingerprint of the Snowflake bridges run by the Tor Project
_SNOWFLAKE_FP = "2B280B23E1107BB62ABFC40DDCC8824814F80A72"

# The Snowflake client carries its own broker, fronts and STUN list, so the
# built-in bridge line only needs the placeholder address and fingerprint.
BUILTIN_SNOWFLAKE_BRIDGE = Bridge(
    transport=BridgeTransport.SNOWFLAKE,
    address="192.0.2.3:80",
    fingerprint=_SNOWFLAKE_FP,
)


def bridge_mode(bridge_lines: str) -> BridgeMode:
    """Classify a profile's bridge field."""
    text = bridge_lines.strip()
    if not text:
        return BridgeMode.BUILTIN
    return KEYWORD_MODES.get(text, BridgeMode.CUSTOM)


def parse_bridge_lines(bridge_lines: str) -> List[Bridge]:
    """
    Bridges the Tor engine should use for a profile's bridge field.

    Returns the built-in Snowflake bridge for the empty field and the
    Snowflake keyword modes, and no bridges for DIRECT.

    Raises:
        ValueError: If a custom line names an unknown transport
    """
    mode = bridge_mode(bridge_lines)
    if mode == BridgeMode.DIRECT:
        return []
    if mode != BridgeMode.CUSTOM:
        return [BUILTIN_SNOWFLAKE_BRIDGE]

    bridges = []
    for number, line in enumerate(bridge_lines.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            bridges.append(Bridge.parse(line))
        except ValueError as e:
            raise ValueError(f"Line {number}: {e}") from e
    return bridges


def detect_transport(bridge_lines: str) -> BridgeTransport:
    """
    Transport named by the first bridge line.

    Falls back to obfs4 when the first token is not a transport name
    (bare "IP:PORT FINGERPRINT" lines are obfs4 bridges).
    """
    for line in bridge_lines.splitlines():
        tokens = _strip_bridge_prefix(line.strip()).split()
        if tokens:
            return BridgeTransport.from_token(tokens[0]) or BridgeTransport.OBFS4
    return BridgeTransport.SNOWFLAKE


def required_transports(bridge_lines: str) -> set[BridgeTransport]:
    """All transports that must be running for a profile's bridges."""
    return {bridge.transport for bridge in parse_bridge_lines(bridge_lines)}
