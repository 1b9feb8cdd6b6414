"""
Command modules for SlipNet CLI.

Split into logical groupings:
- profile: profile management and share codes
- settings: settings and statistics
- utils: utility commands (init, status)
"""

from .profile import register_profile_commands
from .settings import register_settings_commands
from .utils import register_util_commands

__all__ = [
    "register_profile_commands",
    "register_settings_commands",
    "register_util_commands",
]
