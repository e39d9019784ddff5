"""CLI package for airbasix."""

from airbasix.cli.formatters import show_settings, show_sync_result
from airbasix.cli.main import cli, get_config_dir, get_config_file, load_settings
from airbasix.utils import DEFAULT_CONFIG_DIR

__all__ = [
    "DEFAULT_CONFIG_DIR",
    "cli",
    "get_config_dir",
    "get_config_file",
    "load_settings",
    "show_settings",
    "show_sync_result",
]
