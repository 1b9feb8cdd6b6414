"""
Configuration store.

Opens the persisted document and hands out the repositories that share it.
There is no process-wide instance: open a store and pass it along.

Example:
    store = await ConfigurationStore.open(Path("~/.config/slipnet/store.json"))
    profile_id = await store.profiles.create(ServerProfile(name="Home"))
    await store.profiles.set_active(profile_id)
"""

import asyncio
from pathlib import Path
from typing import Optional, Union

from .core.config import Settings
from .core.logging import get_logger
from .repositories.preferences_repository import PreferencesRepository
from .repositories.profile_repository import ProfileRepository
from .repositories.state import StateStore
from .repositories.storage import JsonFileStorage


logger = get_logger(__name__)


class ConfigurationStore:
    """Handle to one opened store and its repositories."""

    def __init__(self, state: StateStore):
        self.state = state
        self.profiles = ProfileRepository(state)
        self.preferences = PreferencesRepository(state)

    @property
    def path(self) -> Path:
        return self.state.storage.path

    @classmethod
    async def open(
        cls,
        location: Union[Path, str, Settings],
        master_key: Optional[str] = None,
        salt_file: Optional[Path] = None
    ) -> "ConfigurationStore":
        """
        Load a store from disk, or start an empty one.

        Args:
            location: Store document path, or settings naming it
            master_key: Master key for encryption (ignored with settings)
            salt_file: Path to salt file (ignored with settings)

        Raises:
            StorageError: If an existing document cannot be read
        """
        if isinstance(location, Settings):
            path = location.get_store_file()
            master_key = location.store.master_key
            salt_file = location.get_salt_file()
        else:
            path = Path(location).expanduser()

        # Key derivation touches the salt file and runs PBKDF2
        storage = await asyncio.to_thread(JsonFileStorage, path, master_key, salt_file)

        state = StateStore(storage)
        await state.load()
        return cls(state)

    async def reload(self) -> None:
        """Re-read the document, notifying streams of any differences."""
        await self.state.load()
