"""
SlipNet Services

Business logic layer for profile validation, connection bookkeeping and
share codes.
"""

from .profile_service import ImportReport, ProfileService
from .share_codec import ImportResult, decode_profiles, encode_profile, encode_profiles
from .validation import validate_profile

__all__ = [
    "ProfileService",
    "ImportReport",
    "ImportResult",
    "encode_profile",
    "encode_profiles",
    "decode_profiles",
    "validate_profile",
]
