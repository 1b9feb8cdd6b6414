"""
SlipNet Domain Models

Pydantic models for tunnel profiles and the app-wide preferences record.
"""

from .profile import (
    TunnelType,
    CongestionControl,
    DnsTransport,
    SshAuthType,
    SshCipher,
    DnsResolver,
    QuicParams,
    DnsttParams,
    SshParams,
    DohParams,
    TorParams,
    ParameterGroup,
    ServerProfile,
    current_time_ms,
)
from .preferences import (
    DarkMode,
    BufferSize,
    Preferences,
    clamp,
)

__all__ = [
    # Profile models
    "TunnelType",
    "CongestionControl",
    "DnsTransport",
    "SshAuthType",
    "SshCipher",
    "DnsResolver",
    "QuicParams",
    "DnsttParams",
    "SshParams",
    "DohParams",
    "TorParams",
    "ParameterGroup",
    "ServerProfile",
    "current_time_ms",
    # Preferences
    "DarkMode",
    "BufferSize",
    "Preferences",
    "clamp",
]
