"""
SlipNet error taxonomy.

Every failure raised by the store or the profile checks derives from
SlipnetError, so callers can catch the family or a single kind.
"""

from typing import Optional


class SlipnetError(Exception):
    """Base class for all SlipNet errors."""


class ValidationError(SlipnetError):
    """A profile is missing or has malformed parameters for its tunnel type."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class NotFoundError(SlipnetError):
    """An operation referenced a profile id that does not exist."""

    def __init__(self, profile_id: Optional[int]):
        self.profile_id = profile_id
        super().__init__(f"Profile not found: {profile_id}")


class StorageError(SlipnetError):
    """Reading or writing the persistent store failed."""


class ShareCodeError(SlipnetError):
    """A share code could not be decoded into any profile."""
