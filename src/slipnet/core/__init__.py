"""
SlipNet Core Module

Core configuration, settings, and logging.
"""

from .config import (
    Settings,
    StoreSettings,
    LogSettings,
    get_data_root,
    get_settings,
    load_settings,
)
from .logging import setup_logging, set_level, get_logger

__all__ = [
    # Settings
    "Settings",
    "StoreSettings",
    "LogSettings",
    "get_data_root",
    "get_settings",
    "load_settings",
    # Logging
    "setup_logging",
    "set_level",
    "get_logger",
]
