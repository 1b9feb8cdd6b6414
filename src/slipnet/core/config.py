"""
SlipNet Configuration using Pydantic Settings.

Provides strongly typed configuration with environment variable support,
validation, and sensible defaults.

Environment variables use SLIPNET_ prefix:
- SLIPNET_HOME (data directory)
- SLIPNET_STORE_FILE, SLIPNET_STORE_MASTER_KEY (store settings)
- SLIPNET_LOG_LEVEL, SLIPNET_LOG_FORMAT, SLIPNET_LOG_FILE (log settings)
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


CONFIG_FILE_NAME = "config.yaml"


def get_data_root() -> Path:
    """Get the directory holding the store and config file."""
    # Check for environment override
    if env_home := os.getenv("SLIPNET_HOME"):
        return Path(env_home).expanduser()

    return Path.home() / ".config" / "slipnet"


class StoreSettings(BaseSettings):
    """Configuration store settings."""

    model_config = SettingsConfigDict(
        env_prefix="SLIPNET_STORE_",
        extra="ignore",
    )

    file: str = Field(
        default="store.json",
        description="Store document path (relative to the data root)"
    )
    master_key: Optional[str] = Field(
        default=None,
        description="Encrypt the store at rest with this key"
    )
    salt_file: Optional[str] = Field(
        default=None,
        description="Key derivation salt path (defaults to .salt beside the store)"
    )


class LogSettings(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(
        env_prefix="SLIPNET_LOG_",
        extra="ignore",
    )

    level: str = Field(
        default="WARNING",
        description="Log level"
    )
    format: str = Field(
        default="console",
        description="Log format (json, console)"
    )
    file: Optional[str] = Field(
        default=None,
        description="Log file path"
    )

    @field_validator('level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator('format')
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        v_lower = v.lower()
        if v_lower not in {"json", "console"}:
            raise ValueError(f"Invalid log format: {v}. Must be 'json' or 'console'")
        return v_lower


class Settings(BaseSettings):
    """
    Main application settings.

    Loads configuration from:
    1. Environment variables (SLIPNET_* prefix)
    2. YAML config file (config.yaml in the data root)
    3. Default values

    Environment variables take precedence.
    """

    model_config = SettingsConfigDict(
        env_prefix="SLIPNET_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    home: Optional[str] = Field(
        default=None,
        description="Data root (defaults to ~/.config/slipnet)"
    )
    store: StoreSettings = Field(default_factory=StoreSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    @classmethod
    def load_from_yaml(cls, config_file: Path, **overrides) -> "Settings":
        """Load settings from YAML file with environment overrides."""
        data = {}

        if config_file.exists():
            with open(config_file, 'r') as f:
                data = yaml.safe_load(f) or {}

        # Create nested settings from YAML data; the nested models still
        # read their own environment variables, which win over the file
        settings_dict = dict(overrides)

        if 'store' in data:
            settings_dict['store'] = _with_env(StoreSettings, data['store'])
        if 'log' in data:
            settings_dict['log'] = _with_env(LogSettings, data['log'])

        return cls(**settings_dict)

    @property
    def data_root(self) -> Path:
        if self.home:
            return Path(self.home).expanduser()
        return get_data_root()

    def resolve_path(self, relative_path: str) -> Path:
        """Resolve a relative path against the data root."""
        path = Path(relative_path).expanduser()
        if path.is_absolute():
            return path
        return self.data_root / path

    def get_store_file(self) -> Path:
        """Get the absolute path to the store document."""
        return self.resolve_path(self.store.file)

    def get_salt_file(self) -> Optional[Path]:
        if self.store.salt_file:
            return self.resolve_path(self.store.salt_file)
        return None

    def save_to_yaml(self, config_file: Path) -> None:
        """Save settings to YAML file."""
        config_file.parent.mkdir(parents=True, exist_ok=True)

        data = {
            'store': {
                'file': self.store.file,
                'salt_file': self.store.salt_file,
                # master_key is never written to disk
            },
            'log': {
                'level': self.log.level,
                'format': self.log.format,
                'file': self.log.file,
            },
        }

        with open(config_file, 'w') as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)


def _with_env(settings_cls, file_values: dict):
    # BaseSettings treats init kwargs as higher priority than the
    # environment, so drop file values the environment already provides
    prefix = settings_cls.model_config.get("env_prefix", "")
    values = {
        key: value for key, value in (file_values or {}).items()
        if f"{prefix}{key}".upper() not in {k.upper() for k in os.environ}
    }
    return settings_cls(**values)


def load_settings(home: Optional[Path] = None) -> Settings:
    """
    Load settings for a data root.

    Args:
        home: Data root to use instead of SLIPNET_HOME / the default
    """
    root = Path(home).expanduser() if home else get_data_root()
    overrides = {"home": str(root)} if home else {}
    return Settings.load_from_yaml(root / CONFIG_FILE_NAME, **overrides)


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached singleton).

    First attempts to load from config.yaml in the data root, then applies
    environment variable overrides.
    """
    return load_settings()
