"""
airbasix.config - Configuration management module

Contains configuration loading, validation, and default settings.
"""

from airbasix.config.loader import ConfigError, ConfigLoader
from airbasix.config.settings import SettingsError, SyncSettings

__all__ = [
    "ConfigError",
    "ConfigLoader",
    "SettingsError",
    "SyncSettings",
]
