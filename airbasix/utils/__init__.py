"""
airbasix.utils - Utility module

Common utilities including path resolution and field name normalization.
"""

from airbasix.utils.normalization import normalize_field_name
from airbasix.utils.paths import DEFAULT_CONFIG_DIR, resolve_config_dir

__all__ = ["normalize_field_name", "resolve_config_dir", "DEFAULT_CONFIG_DIR"]
