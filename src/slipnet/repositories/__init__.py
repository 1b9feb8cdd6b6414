"""
SlipNet Repositories

Data access layer implementing the repository pattern over a single
transactional state store.
"""

from .base import Repository
from .preferences_repository import PreferencesRepository
from .profile_repository import ProfileRepository
from .state import StateStore, StoreState
from .storage import JsonFileStorage

__all__ = [
    "Repository",
    "ProfileRepository",
    "PreferencesRepository",
    "StateStore",
    "StoreState",
    "JsonFileStorage",
]
