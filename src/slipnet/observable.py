"""
Observable values.

A ValueStream holds the latest value of something the store persists and
fans every change out to its subscribers. Each subscriber owns a queue, so a
slow or cancelled reader never affects the others.
"""

import asyncio
from typing import Generic, Optional, TypeVar


T = TypeVar("T")

# Queued after the last value of a cancelled subscription
_CLOSED = object()

# Values kept for a reader that falls behind; older ones are dropped first
DEFAULT_BUFFER = 64


class Subscription(Generic[T]):
    """
    One reader of a ValueStream.

    Yields the value current at subscribe time first, then every later
    change, in order. A reader more than `buffer` values behind loses the
    oldest ones; the latest value is always kept. Iteration ends after
    cancel().
    """

    def __init__(self, stream: "ValueStream[T]", initial: T, buffer: int = DEFAULT_BUFFER):
        self._stream = stream
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max(1, buffer))
        self._queue.put_nowait(initial)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _push(self, value: T) -> None:
        if self._closed:
            return
        if self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(value)

    def cancel(self) -> None:
        """Stop receiving values. Already queued values are dropped."""
        if self._closed:
            return
        self._closed = True
        self._stream._discard(self)
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    def pending(self) -> int:
        """Number of values received but not yet read."""
        return 0 if self._closed else self._queue.qsize()

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> T:
        value = await self._queue.get()
        if value is _CLOSED:
            # Keep the sentinel so repeated reads also stop
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return value

    async def __aenter__(self) -> "Subscription[T]":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.cancel()


class ValueStream(Generic[T]):
    """Holds a value and notifies subscribers when it changes."""

    def __init__(self, value: T, name: Optional[str] = None):
        self.name = name
        self._value = value
        self._subscribers: list[Subscription[T]] = []

    @property
    def value(self) -> T:
        return self._value

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def set(self, value: T) -> bool:
        """
        Publish a new value.

        Returns:
            True if the value changed and subscribers were notified
        """
        if value == self._value:
            return False
        self._value = value
        for subscription in list(self._subscribers):
            subscription._push(value)
        return True

    def subscribe(self, buffer: int = DEFAULT_BUFFER) -> Subscription[T]:
        subscription = Subscription(self, self._value, buffer)
        self._subscribers.append(subscription)
        return subscription

    def _discard(self, subscription: Subscription[T]) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)

    def close(self) -> None:
        """Cancel every subscription."""
        for subscription in list(self._subscribers):
            subscription.cancel()
