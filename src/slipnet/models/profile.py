"""
Server profile domain model.

A profile is stored as one flat record carrying every protocol's fields;
the tunnel type decides which parameter groups are meaningful. Enum-valued
fields are persisted as their string tokens, and unknown tokens resolve to
a default instead of failing so that records written by newer builds still
load.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


def current_time_ms() -> int:
    """Wall clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class TunnelType(str, Enum):
    """Transport protocol a profile configures."""
    SLIPSTREAM = "slipstream"
    SLIPSTREAM_SSH = "slipstream_ssh"
    DNSTT = "dnstt"
    DNSTT_SSH = "dnstt_ssh"
    SSH = "ssh"
    DOH = "doh"
    SNOWFLAKE = "snowflake"

    @classmethod
    def from_value(cls, value: Any) -> "TunnelType":
        """Resolve a stored token, defaulting to DNSTT."""
        return _lookup(cls, value, cls.DNSTT)

    @property
    def uses_quic(self) -> bool:
        return self in (TunnelType.SLIPSTREAM, TunnelType.SLIPSTREAM_SSH)

    @property
    def uses_dnstt(self) -> bool:
        return self in (TunnelType.DNSTT, TunnelType.DNSTT_SSH)

    @property
    def uses_ssh(self) -> bool:
        return self in (TunnelType.SSH, TunnelType.DNSTT_SSH, TunnelType.SLIPSTREAM_SSH)


class CongestionControl(str, Enum):
    """QUIC congestion control algorithm."""
    BBR = "bbr"
    DCUBIC = "dcubic"

    @classmethod
    def from_value(cls, value: Any) -> "CongestionControl":
        return _lookup(cls, value, cls.BBR)


class DnsTransport(str, Enum):
    """How DNSTT queries reach the resolver."""
    UDP = "udp"
    DOT = "dot"
    DOH = "doh"

    @classmethod
    def from_value(cls, value: Any) -> "DnsTransport":
        return _lookup(cls, value, cls.UDP)


class SshAuthType(str, Enum):
    """SSH authentication method."""
    PASSWORD = "password"
    KEY = "key"

    @classmethod
    def from_value(cls, value: Any) -> "SshAuthType":
        return _lookup(cls, value, cls.PASSWORD)


class SshCipher(str, Enum):
    """Preferred SSH cipher (AUTO lets the client negotiate)."""
    AUTO = "auto"
    AES_128_GCM = "aes128-gcm"
    CHACHA20 = "chacha20"
    AES_128_CTR = "aes128-ctr"

    @classmethod
    def from_value(cls, value: Any) -> "SshCipher":
        return _lookup(cls, value, cls.AUTO)

    @property
    def openssh_name(self) -> Optional[str]:
        """Algorithm name as negotiated on the wire."""
        return {
            SshCipher.AUTO: None,
            SshCipher.AES_128_GCM: "aes128-gcm@openssh.com",
            SshCipher.CHACHA20: "chacha20-poly1305@openssh.com",
            SshCipher.AES_128_CTR: "aes128-ctr",
        }[self]


def _lookup(enum_cls, value, default):
    for member in enum_cls:
        if member.value == value:
            return member
    return default


class DnsResolver(BaseModel):
    """A DNS resolver the tunnel sends queries through."""

    model_config = ConfigDict(str_strip_whitespace=True)

    host: str = Field(..., description="Resolver IP address or hostname")
    port: int = Field(default=53, description="Resolver port")
    authoritative: bool = Field(
        default=False,
        description="Query the authoritative server directly"
    )


# Parameter groups: the typed view of the flat record for one tunnel type.

@dataclass(frozen=True)
class QuicParams:
    congestion_control: CongestionControl
    keep_alive_interval: int
    authoritative_mode: bool
    gso_enabled: bool


@dataclass(frozen=True)
class DnsttParams:
    public_key: str
    dns_transport: DnsTransport
    use_server_resolver: bool
    doh_url: str


@dataclass(frozen=True)
class SshParams:
    host: str
    port: int
    username: str
    auth_type: SshAuthType
    password: str
    private_key: str
    key_passphrase: str
    cipher: SshCipher


@dataclass(frozen=True)
class DohParams:
    url: str


@dataclass(frozen=True)
class TorParams:
    bridge_lines: str


ParameterGroup = Union[QuicParams, DnsttParams, SshParams, DohParams, TorParams]


class ServerProfile(BaseModel):
    """One named, storable tunnel configuration."""

    model_config = ConfigDict(validate_assignment=True)

    id: int = Field(default=0, description="Store-assigned id (0 = not persisted)")
    name: str = Field(default="", description="Display name")
    tunnel_type: TunnelType = Field(default=TunnelType.DNSTT)
    domain: str = Field(default="", description="Tunnel domain for DNS-based transports")
    resolvers: list[DnsResolver] = Field(default_factory=list)

    # Local SOCKS listener
    socks_listen_host: str = Field(default="127.0.0.1")
    socks_listen_port: int = Field(default=1080)
    socks_username: Optional[str] = Field(default=None)
    socks_password: Optional[str] = Field(default=None)

    # QUIC transport
    congestion_control: CongestionControl = Field(default=CongestionControl.BBR)
    keep_alive_interval: int = Field(default=200, description="Keep-alive interval in ms")
    authoritative_mode: bool = Field(default=False)
    gso_enabled: bool = Field(default=False)

    # DNS tunnel
    dnstt_public_key: str = Field(default="", description="Server Noise public key (hex)")
    dns_transport: DnsTransport = Field(default=DnsTransport.UDP)
    dnstt_authoritative: bool = Field(
        default=False,
        description="Use the server's local resolver"
    )

    # SSH
    ssh_host: str = Field(default="127.0.0.1")
    ssh_port: int = Field(default=22)
    ssh_username: str = Field(default="")
    ssh_auth_type: SshAuthType = Field(default=SshAuthType.PASSWORD)
    ssh_password: str = Field(default="")
    ssh_private_key: str = Field(default="", description="PEM-encoded private key")
    ssh_key_passphrase: str = Field(default="")
    ssh_cipher: SshCipher = Field(default=SshCipher.AUTO)

    # DNS-over-HTTPS
    doh_url: str = Field(default="")

    # Tor
    tor_bridge_lines: str = Field(
        default="",
        description="Newline-delimited bridge lines (empty = built-in Snowflake)"
    )

    # Bookkeeping
    is_active: bool = Field(default=False)
    sort_order: int = Field(default=0, description="List position, lower sorts first")
    created_at: int = Field(default=0, description="Epoch ms")
    updated_at: int = Field(default=0, description="Epoch ms")
    last_connected_at: int = Field(default=0, description="Epoch ms, 0 = never")

    @field_validator("tunnel_type", mode="before")
    @classmethod
    def _resolve_tunnel_type(cls, v: Any) -> TunnelType:
        return TunnelType.from_value(v)

    @field_validator("congestion_control", mode="before")
    @classmethod
    def _resolve_congestion_control(cls, v: Any) -> CongestionControl:
        return CongestionControl.from_value(v)

    @field_validator("dns_transport", mode="before")
    @classmethod
    def _resolve_dns_transport(cls, v: Any) -> DnsTransport:
        return DnsTransport.from_value(v)

    @field_validator("ssh_auth_type", mode="before")
    @classmethod
    def _resolve_ssh_auth_type(cls, v: Any) -> SshAuthType:
        return SshAuthType.from_value(v)

    @field_validator("ssh_cipher", mode="before")
    @classmethod
    def _resolve_ssh_cipher(cls, v: Any) -> SshCipher:
        return SshCipher.from_value(v)

    def parameter_groups(self) -> tuple[ParameterGroup, ...]:
        """Parameter groups that are meaningful for this profile's tunnel type."""
        groups: list[ParameterGroup] = []
        tunnel = self.tunnel_type

        if tunnel.uses_quic:
            groups.append(QuicParams(
                congestion_control=self.congestion_control,
                keep_alive_interval=self.keep_alive_interval,
                authoritative_mode=self.authoritative_mode,
                gso_enabled=self.gso_enabled,
            ))
        if tunnel.uses_dnstt:
            groups.append(DnsttParams(
                public_key=self.dnstt_public_key,
                dns_transport=self.dns_transport,
                use_server_resolver=self.dnstt_authoritative,
                doh_url=self.doh_url,
            ))
        if tunnel.uses_ssh:
            groups.append(SshParams(
                host=self.ssh_host,
                port=self.ssh_port,
                username=self.ssh_username,
                auth_type=self.ssh_auth_type,
                password=self.ssh_password,
                private_key=self.ssh_private_key,
                key_passphrase=self.ssh_key_passphrase,
                cipher=self.ssh_cipher,
            ))
        if tunnel == TunnelType.DOH:
            groups.append(DohParams(url=self.doh_url))
        if tunnel == TunnelType.SNOWFLAKE:
            groups.append(TorParams(bridge_lines=self.tor_bridge_lines))

        return tuple(groups)

    def to_record(self) -> dict:
        """Flat storage record with enums as their string tokens."""
        return self.model_dump(mode="json")

    @classmethod
    def from_record(cls, data: dict) -> "ServerProfile":
        """Rebuild a profile from a storage record."""
        return cls.model_validate(data)
