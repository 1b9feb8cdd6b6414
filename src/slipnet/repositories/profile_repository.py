"""
Profile repository.

CRUD, ordering and the active-profile marker for server profiles. Operations
that also touch the profile pointers in the preferences record (delete,
set_active, mark_connected) commit both in one transaction.
"""

from typing import List, Optional

from ..core.logging import get_logger
from ..errors import NotFoundError
from ..models.profile import ServerProfile, current_time_ms
from ..observable import Subscription, ValueStream
from .base import Repository
from .state import StateStore, StoreState


logger = get_logger(__name__)


class ProfileRepository(Repository[ServerProfile, int]):
    """
    Repository for server profiles.

    Returned profiles are copies; edit them and pass them to update().
    """

    def __init__(self, store: StateStore):
        super().__init__(store)
        self._profiles = ValueStream(store.state.ordered_profiles(), name="profiles")

    def _on_commit(self, state: StoreState) -> None:
        self._profiles.set(state.ordered_profiles())

    # CREATE

    async def create(self, entity: ServerProfile) -> int:
        """
        Store a new profile.

        The store assigns the id and timestamps. New profiles start inactive
        and are appended after the last profile unless sort_order was set
        explicitly.
        """
        explicit_order = "sort_order" in entity.model_fields_set

        def _insert(state: StoreState) -> int:
            now = current_time_ms()
            profile_id = state.next_profile_id
            state.next_profile_id += 1

            if explicit_order:
                sort_order = entity.sort_order
            else:
                sort_order = max((p.sort_order for p in state.profiles), default=-1) + 1

            state.profiles.append(entity.model_copy(
                update={
                    "id": profile_id,
                    "is_active": False,
                    "sort_order": sort_order,
                    "created_at": now,
                    "updated_at": now,
                    "last_connected_at": 0,
                },
                deep=True,
            ))
            return profile_id

        profile_id = await self._store.mutate(_insert)
        logger.info(
            "Created profile",
            profile_id=profile_id,
            name=entity.name,
            tunnel_type=entity.tunnel_type.value,
        )
        return profile_id

    # READ

    async def get(self, id: int) -> Optional[ServerProfile]:
        """Get a profile by id."""
        profile = self._store.state.find_profile(id)
        return profile.model_copy(deep=True) if profile else None

    async def require(self, id: int) -> ServerProfile:
        """
        Get a profile by id.

        Raises:
            NotFoundError: If no profile has that id
        """
        profile = await self.get(id)
        if profile is None:
            raise NotFoundError(id)
        return profile

    async def list(self) -> List[ServerProfile]:
        """All profiles ordered by sort_order, then creation time."""
        return [p.model_copy(deep=True) for p in self._store.state.ordered_profiles()]

    async def get_active(self) -> Optional[ServerProfile]:
        """The profile marked active, if any."""
        for profile in self._store.state.profiles:
            if profile.is_active:
                return profile.model_copy(deep=True)
        return None

    def observe(self) -> Subscription[List[ServerProfile]]:
        """
        Subscribe to the ordered profile list.

        Emits the current list immediately and again after every change.
        Emitted lists are shared between subscribers; do not modify them.
        """
        return self._profiles.subscribe()

    async def count(self) -> int:
        return len(self._store.state.profiles)

    async def exists(self, id: int) -> bool:
        return self._store.state.find_profile(id) is not None

    # UPDATE

    async def update(self, entity: ServerProfile) -> ServerProfile:
        """
        Replace a stored profile with an edited copy.

        created_at, is_active and last_connected_at are kept from the stored
        profile; updated_at is refreshed.

        Raises:
            NotFoundError: If the profile's id is not stored
        """
        def _replace(state: StoreState) -> ServerProfile:
            for index, current in enumerate(state.profiles):
                if current.id == entity.id:
                    record = entity.model_copy(
                        update={
                            "created_at": current.created_at,
                            "is_active": current.is_active,
                            "last_connected_at": current.last_connected_at,
                            "updated_at": current_time_ms(),
                        },
                        deep=True,
                    )
                    state.profiles[index] = record
                    return record.model_copy(deep=True)
            raise NotFoundError(entity.id)

        updated = await self._store.mutate(_replace)
        logger.info("Updated profile", profile_id=entity.id)
        return updated

    async def set_active(self, id: int) -> None:
        """
        Make one profile the active profile.

        Clears the flag on every other profile and moves the active pointer
        in the same transaction.

        Raises:
            NotFoundError: If no profile has that id
        """
        def _activate(state: StoreState) -> None:
            if state.find_profile(id) is None:
                raise NotFoundError(id)
            for profile in state.profiles:
                profile.is_active = profile.id == id
            state.preferences.active_profile_id = id

        await self._store.mutate(_activate)
        logger.info("Activated profile", profile_id=id)

    async def reorder(self, ids: List[int]) -> None:
        """
        Move the given profiles to the front, in the given order.

        Profiles not listed keep their relative order after them.

        Raises:
            NotFoundError: If an id is not stored
        """
        def _reorder(state: StoreState) -> None:
            known = {p.id for p in state.profiles}
            for profile_id in ids:
                if profile_id not in known:
                    raise NotFoundError(profile_id)

            listed = list(dict.fromkeys(ids))
            rest = [p.id for p in state.ordered_profiles() if p.id not in set(listed)]
            position = {profile_id: i for i, profile_id in enumerate(listed + rest)}
            for profile in state.profiles:
                profile.sort_order = position[profile.id]

        await self._store.mutate(_reorder)
        logger.info("Reordered profiles", order=ids)

    async def mark_connected(self, id: int) -> None:
        """
        Record that a session on this profile was established.

        Raises:
            NotFoundError: If no profile has that id
        """
        def _mark(state: StoreState) -> None:
            profile = state.find_profile(id)
            if profile is None:
                raise NotFoundError(id)
            profile.last_connected_at = current_time_ms()
            state.preferences.last_connected_profile_id = id

        await self._store.mutate(_mark)
        logger.debug("Marked profile connected", profile_id=id)

    # DELETE

    async def delete(self, id: int) -> bool:
        """
        Delete a profile.

        Clears the active and last-connected pointers if they referenced it.

        Returns:
            True if deleted, False if not found
        """
        def _remove(state: StoreState) -> bool:
            profile = state.find_profile(id)
            if profile is None:
                return False
            state.profiles.remove(profile)
            prefs = state.preferences
            if prefs.active_profile_id == id:
                prefs.active_profile_id = None
            if prefs.last_connected_profile_id == id:
                prefs.last_connected_profile_id = None
            return True

        deleted = await self._store.mutate(_remove)
        if deleted:
            logger.info("Deleted profile", profile_id=id)
        return deleted
