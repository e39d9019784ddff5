"""
Configuration file generator for Airtable to Wix synchronization.

Writes a commented config.yaml template documenting every option.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def generate_default_config() -> str:
    """
    Generate default YAML configuration with all options documented.

    Returns:
        String containing YAML configuration with comments
    """
    return """# Airtable -> Wix Sync Configuration
# ==================================
#
# Save as ~/.airbasix/config.yaml (or pass --config-file).
# CLI arguments always override these values.
#
# Credentials may be left out of this file and supplied through the
# AIRTABLE_API_KEY, WIX_API_KEY and WIX_SITE_ID environment variables.

# Source (Airtable)
# -----------------

# airtable_api_key: patXXXXXXXXXXXXXX
airtable_base_id: ""
airtable_table: ""

# View to read from. Leave empty to read the whole table.
# airtable_view: ""

# Records per page when reading Airtable (max 100)
# page_size: 100


# Target (Wix Data)
# -----------------

# wix_api_key: ""
# wix_site_id: ""
wix_collection: ""

# Target field that stores the Airtable record id (the join key)
# external_id_field: airtableId

# Target field that stores the Airtable record creation time
# created_time_field: airtableCreatedTime


# Field Mapping
# -------------

# Fields whose name contains this text get a comma-joined shadow copy
# tags_marker: tags

# Suffix appended to the shadow copy's field key
# shadow_suffix: shadow

# Generate shadow copies of tag fields
# shadow_tags_enabled: true

# Fields whose name contains this text become {formatted: value}
# address_marker: address

# Fields whose name contains this text hold an encoded Airtable geocode
# geocode_marker: geocode


# Sync Behavior
# -------------

# Preview changes without writing to Wix
# dry_run: false

# Concurrent record writes (1-32)
# max_workers: 4

# Maximum orphaned records deleted per run (max 1000)
# orphan_batch_limit: 1000

# Seconds allowed for reading the whole Airtable view
# fetch_timeout: 300

# Seconds allowed for each HTTP request
# request_timeout: 30

# Retry policy for rate limits and server errors
# api_max_retries: 5
# api_initial_retry_delay: 1.0
# api_max_retry_delay: 60.0

# Lock file preventing overlapping runs
# lock_file: ~/.airbasix/sync.lock


# Logging
# -------

# verbose: false
# log_dir: ~/.airbasix/logs
# log_retention_count: 10
"""


def save_config_file(
    config_path: Path, overwrite: bool = False
) -> tuple[bool, str | None]:
    """
    Save default configuration file to specified path.

    Creates parent directories if they don't exist and writes the file
    readable by its owner only.

    Args:
        config_path: Path where the config file should be saved
        overwrite: If True, overwrite existing file

    Returns:
        Tuple of (success, error_message)
    """
    try:
        config_path = config_path.expanduser().resolve()

        if config_path.exists() and not overwrite:
            return (
                False,
                f"Configuration file already exists: {config_path}\n"
                "Use --force to overwrite.",
            )

        config_path.parent.mkdir(parents=True, mode=0o700, exist_ok=True)
        config_path.write_text(generate_default_config(), encoding="utf-8")
        config_path.chmod(0o600)

        logger.info(f"Created configuration file: {config_path}")
        return (True, None)

    except OSError as e:
        error_msg = f"Failed to create configuration file: {e}"
        logger.error(error_msg)
        return (False, error_msg)
