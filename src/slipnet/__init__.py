"""
SlipNet - Tunnel profile and settings store

Persistent configuration for a multi-protocol VPN client:
- Server profiles for DNS, QUIC, SSH, DoH and Tor tunnels
- App-wide settings and cumulative traffic statistics
- Change streams for everything stored
- Share codes for moving profiles between devices
"""

__version__ = "1.0.0"
__author__ = "SlipNet Team"

from .errors import (
    SlipnetError,
    ValidationError,
    NotFoundError,
    StorageError,
    ShareCodeError,
)
from .models import Preferences, ServerProfile, TunnelType
from .store import ConfigurationStore

__all__ = [
    "ConfigurationStore",
    "ServerProfile",
    "Preferences",
    "TunnelType",
    "SlipnetError",
    "ValidationError",
    "NotFoundError",
    "StorageError",
    "ShareCodeError",
]
