"""
Base repository bound to the shared state store.
"""

from abc import ABC, abstractmethod
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel

from .state import StateStore, StoreState


T = TypeVar("T", bound=BaseModel)
ID = TypeVar("ID")


class Repository(ABC, Generic[T, ID]):
    """
    CRUD over one record type held in a StateStore.

    Every repository of a store shares its lock, so a transaction may touch
    profiles and preferences together. Subclasses get a commit hook that
    runs after each committed write.
    """

    def __init__(self, store: StateStore):
        self._store = store
        store.add_listener(self._on_commit)

    def _on_commit(self, state: StoreState) -> None:
        """Called with the new state after every commit."""

    @abstractmethod
    async def create(self, entity: T) -> ID:
        """Persist a new entity and return the id the store assigned."""

    @abstractmethod
    async def get(self, id: ID) -> Optional[T]:
        """Return a copy of the entity, or None."""

    @abstractmethod
    async def list(self) -> list[T]:
        """All entities in display order."""

    @abstractmethod
    async def update(self, entity: T) -> T:
        """
        Replace a stored entity.

        Raises:
            NotFoundError: If no entity has that id
        """

    @abstractmethod
    async def delete(self, id: ID) -> bool:
        """Remove an entity; False when there was nothing to remove."""

    async def count(self) -> int:
        return len(await self.list())

    async def exists(self, id: ID) -> bool:
        return await self.get(id) is not None
