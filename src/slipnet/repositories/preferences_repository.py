"""
Preferences repository.

Setters, statistics accumulation and per-field change streams for the
single preferences record.
"""

from typing import Any, Optional, Union

from ..core.logging import get_logger
from ..models.preferences import (
    CONNECTION_POOL_RANGE,
    CONNECTION_TIMEOUT_RANGE,
    DNS_TIMEOUT_RANGE,
    MAX_RECENT_RESOLVERS,
    PORT_RANGE,
    SLEEP_TIMER_RANGE,
    BufferSize,
    DarkMode,
    Preferences,
    clamp,
)
from ..observable import Subscription, ValueStream
from .state import StateStore, StoreState


logger = get_logger(__name__)


def _stream_property(field_name: str) -> property:
    def getter(self: "PreferencesRepository") -> ValueStream:
        return self._streams[field_name]
    getter.__doc__ = f"Stream of the {field_name} preference."
    return property(getter)


class PreferencesRepository:
    """
    Repository for app settings and cumulative statistics.

    Every field has a ValueStream that holds the committed value and
    notifies subscribers when a commit changes it.
    """

    def __init__(self, store: StateStore):
        self._store = store
        prefs = store.state.preferences
        self._streams: dict[str, ValueStream] = {
            name: ValueStream(getattr(prefs, name), name=name)
            for name in Preferences.model_fields
        }
        store.add_listener(self._on_commit)

    def _on_commit(self, state: StoreState) -> None:
        for name, stream in self._streams.items():
            stream.set(getattr(state.preferences, name))

    # Streams

    def stream(self, name: str) -> ValueStream:
        """
        Stream for a preferences field.

        Raises:
            KeyError: If name is not a preferences field
        """
        return self._streams[name]

    def observe(self, name: str) -> Subscription:
        """Subscribe to a preferences field."""
        return self._streams[name].subscribe()

    auto_connect_on_boot = _stream_property("auto_connect_on_boot")
    debug_logging = _stream_property("debug_logging")
    dark_mode = _stream_property("dark_mode")
    active_profile_id = _stream_property("active_profile_id")
    last_connected_profile_id = _stream_property("last_connected_profile_id")
    total_bytes_sent = _stream_property("total_bytes_sent")
    total_bytes_received = _stream_property("total_bytes_received")
    total_connection_time = _stream_property("total_connection_time_ms")
    dns_timeout = _stream_property("dns_timeout_ms")
    connection_timeout = _stream_property("connection_timeout_ms")
    buffer_size = _stream_property("buffer_size")
    connection_pool_size = _stream_property("connection_pool_size")
    kill_switch = _stream_property("kill_switch")
    proxy_only_mode = _stream_property("proxy_only_mode")
    sleep_timer_minutes = _stream_property("sleep_timer_minutes")
    http_proxy_enabled = _stream_property("http_proxy_enabled")
    http_proxy_port = _stream_property("http_proxy_port")
    recent_dns_resolvers = _stream_property("recent_dns_resolvers")
    first_launch_done = _stream_property("first_launch_done")

    async def snapshot(self) -> Preferences:
        """The whole committed record."""
        return self._store.state.preferences.model_copy(deep=True)

    # Setters

    async def _set(self, field_name: str, value: Any) -> Any:
        def _apply(state: StoreState) -> None:
            setattr(state.preferences, field_name, value)

        await self._store.mutate(_apply)
        logger.debug("Set preference", field=field_name, value=value)
        return value

    async def set_auto_connect_on_boot(self, enabled: bool) -> None:
        await self._set("auto_connect_on_boot", enabled)

    async def set_debug_logging(self, enabled: bool) -> None:
        await self._set("debug_logging", enabled)

    async def set_dark_mode(self, mode: Union[DarkMode, str]) -> None:
        await self._set("dark_mode", DarkMode.from_value(mode))

    async def set_active_profile_id(self, profile_id: Optional[int]) -> None:
        """Move the active pointer only; use ProfileRepository.set_active to switch profiles."""
        await self._set("active_profile_id", profile_id)

    async def set_last_connected_profile_id(self, profile_id: Optional[int]) -> None:
        await self._set("last_connected_profile_id", profile_id)

    async def set_buffer_size(self, size: Union[BufferSize, str]) -> None:
        await self._set("buffer_size", BufferSize.from_value(size))

    async def set_kill_switch(self, enabled: bool) -> None:
        await self._set("kill_switch", enabled)

    async def set_proxy_only_mode(self, enabled: bool) -> None:
        await self._set("proxy_only_mode", enabled)

    async def set_http_proxy_enabled(self, enabled: bool) -> None:
        await self._set("http_proxy_enabled", enabled)

    # Clamped setters return the value actually stored

    async def set_dns_timeout(self, timeout_ms: int) -> int:
        return await self._set("dns_timeout_ms", clamp(timeout_ms, DNS_TIMEOUT_RANGE))

    async def set_connection_timeout(self, timeout_ms: int) -> int:
        return await self._set(
            "connection_timeout_ms", clamp(timeout_ms, CONNECTION_TIMEOUT_RANGE)
        )

    async def set_connection_pool_size(self, size: int) -> int:
        return await self._set("connection_pool_size", clamp(size, CONNECTION_POOL_RANGE))

    async def set_sleep_timer_minutes(self, minutes: int) -> int:
        return await self._set("sleep_timer_minutes", clamp(minutes, SLEEP_TIMER_RANGE))

    async def set_http_proxy_port(self, port: int) -> int:
        return await self._set("http_proxy_port", clamp(port, PORT_RANGE))

    async def add_recent_dns_resolvers(self, resolvers: list[str]) -> list[str]:
        """
        Put resolvers at the front of the recently used list.

        The list stays distinct and keeps at most MAX_RECENT_RESOLVERS
        entries, newest first.
        """
        fresh = [r.strip() for r in resolvers if r and r.strip()]

        def _apply(state: StoreState) -> list[str]:
            merged = list(dict.fromkeys(fresh + state.preferences.recent_dns_resolvers))
            state.preferences.recent_dns_resolvers = merged[:MAX_RECENT_RESOLVERS]
            return list(state.preferences.recent_dns_resolvers)

        return await self._store.mutate(_apply)

    async def mark_first_launch_done(self) -> None:
        await self._set("first_launch_done", True)

    # Statistics

    async def update_total_stats(
        self,
        bytes_sent: int,
        bytes_received: int,
        connection_time_ms: int
    ) -> Preferences:
        """
        Add one session's traffic and duration to the cumulative counters.

        Runs as a single transaction, so concurrent calls never lose an
        increment.

        Raises:
            ValueError: If any delta is negative
        """
        if bytes_sent < 0 or bytes_received < 0 or connection_time_ms < 0:
            raise ValueError("Statistics deltas must not be negative")

        def _accumulate(state: StoreState) -> Preferences:
            prefs = state.preferences
            prefs.total_bytes_sent += bytes_sent
            prefs.total_bytes_received += bytes_received
            prefs.total_connection_time_ms += connection_time_ms
            return prefs.model_copy(deep=True)

        totals = await self._store.mutate(_accumulate)
        logger.debug(
            "Updated statistics",
            bytes_sent=bytes_sent,
            bytes_received=bytes_received,
            connection_time_ms=connection_time_ms,
        )
        return totals

    async def reset_total_stats(self) -> None:
        """Zero all three counters in one step."""
        def _reset(state: StoreState) -> None:
            prefs = state.preferences
            prefs.total_bytes_sent = 0
            prefs.total_bytes_received = 0
            prefs.total_connection_time_ms = 0

        await self._store.mutate(_reset)
        logger.info("Reset statistics")
