"""
In-memory state of the configuration store and its single writer gate.

Every write is a transaction: the current state is copied, a synchronous
mutation is applied to the copy, the resulting document is persisted, and
only then does the copy become the current state. Readers always see a
committed state and a failed write leaves nothing half-applied.
"""

import asyncio
from typing import Any, Callable, Optional, TypeVar

from pydantic import BaseModel, Field

from ..core.logging import get_logger
from ..errors import StorageError
from ..models.preferences import Preferences
from ..models.profile import ServerProfile
from .storage import JsonFileStorage


logger = get_logger(__name__)

R = TypeVar("R")

STORE_VERSION = 1


class StoreState(BaseModel):
    """Everything the store persists."""

    version: int = Field(default=STORE_VERSION)
    next_profile_id: int = Field(default=1, description="Next id handed out by create")
    profiles: list[ServerProfile] = Field(default_factory=list)
    preferences: Preferences = Field(default_factory=Preferences)

    def find_profile(self, profile_id: int) -> Optional[ServerProfile]:
        for profile in self.profiles:
            if profile.id == profile_id:
                return profile
        return None

    def ordered_profiles(self) -> list[ServerProfile]:
        """Profiles in display order."""
        return sorted(self.profiles, key=lambda p: (p.sort_order, p.created_at, p.id))

    def to_document(self) -> dict:
        return {
            "version": self.version,
            "next_profile_id": self.next_profile_id,
            "profiles": [profile.to_record() for profile in self.profiles],
            "preferences": self.preferences.to_record(),
        }

    @classmethod
    def from_document(cls, data: dict) -> "StoreState":
        profiles = [ServerProfile.from_record(record) for record in data.get("profiles") or []]
        next_id = max(
            int(data.get("next_profile_id") or 1),
            max((p.id for p in profiles), default=0) + 1,
        )
        return cls(
            version=int(data.get("version") or STORE_VERSION),
            next_profile_id=next_id,
            profiles=profiles,
            preferences=Preferences.from_record(data.get("preferences")),
        )


Listener = Callable[[StoreState], Any]


class StateStore:
    """
    Owns the committed state and serializes all writes.

    A submitted write runs in its own task shielded from the caller, so
    cancelling the caller never interrupts a commit halfway.
    """

    def __init__(self, storage: JsonFileStorage):
        self._storage = storage
        self._state = StoreState()
        self._lock = asyncio.Lock()
        self._listeners: list[Listener] = []

    @property
    def storage(self) -> JsonFileStorage:
        return self._storage

    @property
    def state(self) -> StoreState:
        """The last committed state. Treat as read-only."""
        return self._state

    def add_listener(self, listener: Listener) -> None:
        """Call listener with the new state after every commit."""
        self._listeners.append(listener)

    async def load(self) -> StoreState:
        """
        Replace the in-memory state with what is on disk.

        Raises:
            StorageError: If the document cannot be read
        """
        async with self._lock:
            data = await asyncio.to_thread(self._storage.read)
            try:
                state = StoreState.from_document(data) if data is not None else StoreState()
            except (ValueError, TypeError) as e:
                raise StorageError(f"Corrupted store file {self._storage.path}: {e}") from e
            self._publish(state)
            logger.info(
                "Loaded store",
                path=str(self._storage.path),
                profiles=len(state.profiles),
            )
            return state

    async def mutate(self, mutation: Callable[[StoreState], R]) -> R:
        """
        Apply mutation to a copy of the state and commit it.

        Args:
            mutation: Synchronous function editing the draft state in place

        Returns:
            Whatever mutation returned

        Raises:
            Any exception raised by mutation, or StorageError; in both cases
            the committed state is unchanged
        """
        task = asyncio.ensure_future(self._commit(mutation))
        task.add_done_callback(_consume_failure)
        return await asyncio.shield(task)

    async def _commit(self, mutation: Callable[[StoreState], R]) -> R:
        async with self._lock:
            draft = self._state.model_copy(deep=True)
            result = mutation(draft)

            if draft == self._state:
                return result

            await asyncio.to_thread(self._storage.write, draft.to_document())
            self._publish(draft)
            return result

    def _publish(self, state: StoreState) -> None:
        self._state = state
        for listener in list(self._listeners):
            listener(state)


def _consume_failure(task: "asyncio.Task[Any]") -> None:
    # A caller cancelled mid-commit never awaits the result
    if not task.cancelled() and task.exception() is not None:
        logger.debug("Store transaction failed", error=str(task.exception()))
