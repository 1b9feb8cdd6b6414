"""
App-wide settings and cumulative statistics.

This is a single logical record. Range limits are applied by the
repository setters when a value is written; loading a record never
re-clamps what was stored.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class DarkMode(str, Enum):
    """Theme preference."""
    LIGHT = "light"
    DARK = "dark"
    SYSTEM = "system"

    @classmethod
    def from_value(cls, value: Any) -> "DarkMode":
        for member in cls:
            if member.value == value:
                return member
        return cls.SYSTEM


class BufferSize(str, Enum):
    """Tunnel buffer size tier."""
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"

    @classmethod
    def from_value(cls, value: Any) -> "BufferSize":
        for member in cls:
            if member.value == value:
                return member
        return cls.MEDIUM

    @property
    def size_bytes(self) -> int:
        return {
            BufferSize.SMALL: 64 * 1024,
            BufferSize.MEDIUM: 256 * 1024,
            BufferSize.LARGE: 512 * 1024,
        }[self]


# (min, max) for clamped setters
DNS_TIMEOUT_RANGE = (1000, 15000)
CONNECTION_TIMEOUT_RANGE = (10000, 60000)
CONNECTION_POOL_RANGE = (1, 20)
SLEEP_TIMER_RANGE = (0, 120)
PORT_RANGE = (1, 65535)

MAX_RECENT_RESOLVERS = 5


def clamp(value: int, bounds: tuple[int, int]) -> int:
    """Constrain value into the inclusive range."""
    low, high = bounds
    return max(low, min(high, value))


class Preferences(BaseModel):
    """The persisted settings/statistics record."""

    # Behavior
    auto_connect_on_boot: bool = Field(default=False)
    debug_logging: bool = Field(default=False)
    dark_mode: DarkMode = Field(default=DarkMode.SYSTEM)

    # Profile pointers
    active_profile_id: Optional[int] = Field(default=None)
    last_connected_profile_id: Optional[int] = Field(default=None)

    # Cumulative counters
    total_bytes_sent: int = Field(default=0)
    total_bytes_received: int = Field(default=0)
    total_connection_time_ms: int = Field(default=0)

    # Network tuning
    dns_timeout_ms: int = Field(default=5000)
    connection_timeout_ms: int = Field(default=30000)
    buffer_size: BufferSize = Field(default=BufferSize.MEDIUM)
    connection_pool_size: int = Field(default=10)

    # Connection behavior
    kill_switch: bool = Field(default=False)
    proxy_only_mode: bool = Field(default=False)
    sleep_timer_minutes: int = Field(default=0, description="0 = disabled")
    http_proxy_enabled: bool = Field(default=False)
    http_proxy_port: int = Field(default=8080)

    recent_dns_resolvers: list[str] = Field(
        default_factory=list,
        description="Most recently used resolvers, newest first"
    )
    first_launch_done: bool = Field(default=False)

    @field_validator("dark_mode", mode="before")
    @classmethod
    def _resolve_dark_mode(cls, v: Any) -> DarkMode:
        return DarkMode.from_value(v)

    @field_validator("buffer_size", mode="before")
    @classmethod
    def _resolve_buffer_size(cls, v: Any) -> BufferSize:
        return BufferSize.from_value(v)

    def to_record(self) -> dict:
        return self.model_dump(mode="json")

    @classmethod
    def from_record(cls, data: Optional[dict]) -> "Preferences":
        return cls.model_validate(data or {})
