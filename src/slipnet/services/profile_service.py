"""
Profile service implementing connection-facing business logic.

This service layer sits between the tunnel orchestration (or the CLI) and
the repositories: it resolves and validates the profile to connect with,
picks the boot-time target, folds session results into statistics and
moves profiles in and out as share codes.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..core.logging import get_logger
from ..models.profile import ServerProfile
from ..store import ConfigurationStore
from .share_codec import decode_profiles, encode_profiles
from .validation import validate_profile


logger = get_logger(__name__)


@dataclass
class ImportReport:
    """Outcome of importing share codes into the store."""
    created_ids: list[int] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class ProfileService:
    """
    Service for profile lifecycle operations around a connection.

    - Connect: resolve and validate the profile before any engine starts
    - Boot: choose which profile to auto-connect
    - Session: record establishment and teardown statistics
    - Share: export and import share codes
    """

    def __init__(self, store: ConfigurationStore):
        """
        Initialize the profile service.

        Args:
            store: Opened configuration store
        """
        self._profiles = store.profiles
        self._preferences = store.preferences

    # CONNECT

    async def resolve_for_connection(self, profile_id: int) -> ServerProfile:
        """
        Load the profile a tunnel should be started with.

        Raises:
            NotFoundError: If the profile does not exist
            ValidationError: If the profile lacks what its tunnel type needs
        """
        profile = await self._profiles.require(profile_id)
        validate_profile(profile)
        logger.debug(
            "Resolved profile for connection",
            profile_id=profile_id,
            tunnel_type=profile.tunnel_type.value,
        )
        return profile

    async def boot_target(self) -> Optional[ServerProfile]:
        """
        Profile to connect at boot.

        Returns the active profile, or else the last connected one, when
        auto-connect is enabled. Returns None when auto-connect is off or
        neither pointer names a stored profile.
        """
        prefs = await self._preferences.snapshot()
        if not prefs.auto_connect_on_boot:
            return None

        for profile_id in (prefs.active_profile_id, prefs.last_connected_profile_id):
            if profile_id is None:
                continue
            profile = await self._profiles.get(profile_id)
            if profile is not None:
                return profile

        logger.info("Auto-connect enabled but no profile to connect")
        return None

    # SESSION

    async def record_connected(self, profile_id: int) -> None:
        """Bookkeeping once a tunnel is established."""
        await self._profiles.mark_connected(profile_id)

    async def record_session_end(
        self,
        bytes_sent: int,
        bytes_received: int,
        duration_ms: int
    ) -> None:
        """Fold one finished session into the cumulative statistics."""
        await self._preferences.update_total_stats(bytes_sent, bytes_received, duration_ms)
        logger.info(
            "Session ended",
            bytes_sent=bytes_sent,
            bytes_received=bytes_received,
            duration_ms=duration_ms,
        )

    # SHARE

    async def export_profiles(self, ids: Optional[Iterable[int]] = None) -> str:
        """
        Share codes for the given profiles, or all of them in list order.

        Raises:
            NotFoundError: If a requested id does not exist
        """
        if ids is None:
            profiles = await self._profiles.list()
        else:
            profiles = [await self._profiles.require(profile_id) for profile_id in ids]
        return encode_profiles(profiles)

    async def import_profiles(self, text: str) -> ImportReport:
        """
        Create a profile for every decodable share code in text.

        Raises:
            ShareCodeError: If no line yields a profile
        """
        decoded = decode_profiles(text)
        report = ImportReport(warnings=list(decoded.warnings))
        for profile in decoded.profiles:
            report.created_ids.append(await self._profiles.create(profile))

        logger.info(
            "Imported profiles",
            count=len(report.created_ids),
            skipped=len(report.warnings),
        )
        return report
