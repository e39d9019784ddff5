"""
Validated settings for a sync deployment.

SyncSettings collects every option the sync needs into one object that is
built once at startup and passed to the SyncEngine. Values come from the
YAML configuration file; credentials may instead come from environment
variables so they stay out of the file.

Configuration file format (config.yaml):

    airtable_base_id: appXXXXXXXXXXXXXX
    airtable_table: Listings
    airtable_view: Published
    wix_collection: Listings
    shadow_tags_enabled: true

Environment variables:
    AIRTABLE_API_KEY   Airtable personal access token
    WIX_API_KEY        Wix API key
    WIX_SITE_ID        Wix site id
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any

from airbasix.config.loader import VALID_KEYS, ConfigError

# Environment variables consulted for credentials missing from the file
ENV_AIRTABLE_API_KEY = "AIRTABLE_API_KEY"
ENV_WIX_API_KEY = "WIX_API_KEY"
ENV_WIX_SITE_ID = "WIX_SITE_ID"

ENV_FALLBACKS = {
    "airtable_api_key": ENV_AIRTABLE_API_KEY,
    "wix_api_key": ENV_WIX_API_KEY,
    "wix_site_id": ENV_WIX_SITE_ID,
}

# Airtable returns at most 100 records per page
MAX_PAGE_SIZE = 100

# Wix Data queries return at most 1000 items
MAX_ORPHAN_BATCH_LIMIT = 1000

# Upper bound on concurrent record writes
MAX_WORKERS_LIMIT = 32

# Options that must be non-empty strings
REQUIRED_KEYS = (
    "airtable_api_key",
    "airtable_base_id",
    "airtable_table",
    "wix_api_key",
    "wix_site_id",
    "wix_collection",
)

# Options never printed in clear text
SECRET_KEYS = ("airtable_api_key", "wix_api_key")


class SettingsError(ConfigError):
    """Raised when settings are missing or inconsistent."""

    code = "invalid_settings"


@dataclass(frozen=True)
class SyncSettings:
    """
    Static per-deployment sync settings.

    Attributes:
        airtable_api_key: Airtable access token
        airtable_base_id: Airtable base id (appXXXX)
        airtable_table: Source table name or id
        airtable_view: Source view; empty means the table's default ordering
        wix_api_key: Wix API key
        wix_site_id: Wix site id
        wix_collection: Target Wix Data collection id
        tags_marker: Substring marking tag fields that get a shadow field
        shadow_suffix: Suffix appended to a tag field's key for its shadow
        shadow_tags_enabled: Whether shadow tag fields are generated
        address_marker: Substring marking postal address fields
        geocode_marker: Substring marking encoded geocode fields
        external_id_field: Target field holding the Airtable record id
        created_time_field: Target field holding the Airtable created time
        page_size: Airtable page size (1-100)
        orphan_batch_limit: Max orphans deleted per run (1-1000)
        max_workers: Concurrent record writes (1-32)
        fetch_timeout: Seconds allowed for the whole Airtable fetch
        request_timeout: Seconds allowed per HTTP request
        api_max_retries: Attempts per HTTP request on 429/5xx
        api_initial_retry_delay: First backoff delay in seconds
        api_max_retry_delay: Backoff ceiling in seconds
    """

    airtable_api_key: str
    airtable_base_id: str
    airtable_table: str
    wix_api_key: str
    wix_site_id: str
    wix_collection: str
    airtable_view: str = ""
    tags_marker: str = "tags"
    shadow_suffix: str = "shadow"
    shadow_tags_enabled: bool = True
    address_marker: str = "address"
    geocode_marker: str = "geocode"
    external_id_field: str = "airtableId"
    created_time_field: str = "airtableCreatedTime"
    page_size: int = MAX_PAGE_SIZE
    orphan_batch_limit: int = MAX_ORPHAN_BATCH_LIMIT
    max_workers: int = 4
    fetch_timeout: float = 300.0
    request_timeout: float = 30.0
    api_max_retries: int = 5
    api_initial_retry_delay: float = 1.0
    api_max_retry_delay: float = 60.0

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """
        Check required values and ranges.

        Raises:
            SettingsError: On the first problem found
        """
        for key in REQUIRED_KEYS:
            value = getattr(self, key)
            if not isinstance(value, str) or not value.strip():
                hint = ""
                if key in ENV_FALLBACKS:
                    hint = f" (set it in the config file or ${ENV_FALLBACKS[key]})"
                raise SettingsError(f"{key} is required{hint}")

        for key in ("tags_marker", "address_marker", "geocode_marker"):
            if not getattr(self, key):
                raise SettingsError(f"{key} cannot be empty")

        if self.shadow_tags_enabled and not self.shadow_suffix:
            raise SettingsError("shadow_suffix cannot be empty when shadows are enabled")

        if not self.external_id_field or not self.created_time_field:
            raise SettingsError("external_id_field and created_time_field are required")

        if self.external_id_field == self.created_time_field:
            raise SettingsError(
                "external_id_field and created_time_field must be different"
            )

        if not 1 <= self.page_size <= MAX_PAGE_SIZE:
            raise SettingsError(
                f"page_size must be between 1 and {MAX_PAGE_SIZE}, got {self.page_size}"
            )

        if not 1 <= self.orphan_batch_limit <= MAX_ORPHAN_BATCH_LIMIT:
            raise SettingsError(
                f"orphan_batch_limit must be between 1 and {MAX_ORPHAN_BATCH_LIMIT}, "
                f"got {self.orphan_batch_limit}"
            )

        if not 1 <= self.max_workers <= MAX_WORKERS_LIMIT:
            raise SettingsError(
                f"max_workers must be between 1 and {MAX_WORKERS_LIMIT}, "
                f"got {self.max_workers}"
            )

        if self.api_max_retries < 1:
            raise SettingsError(
                f"api_max_retries must be >= 1, got {self.api_max_retries}"
            )

        for key in (
            "fetch_timeout",
            "request_timeout",
            "api_initial_retry_delay",
            "api_max_retry_delay",
        ):
            if getattr(self, key) <= 0:
                raise SettingsError(f"{key} must be > 0, got {getattr(self, key)}")

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any], environ: Mapping[str, str] | None = None
    ) -> SyncSettings:
        """
        Build settings from a loaded configuration dictionary.

        Credentials missing from ``data`` are read from the environment.
        Keys that are not sync settings (verbose, log_dir, ...) are ignored.

        Args:
            data: Configuration values, usually from ConfigLoader
            environ: Environment mapping (defaults to os.environ)

        Returns:
            Validated SyncSettings

        Raises:
            SettingsError: If required values are missing or out of range
        """
        if not isinstance(data, Mapping):
            raise SettingsError(
                f"Configuration must be a dictionary, got {type(data).__name__}"
            )

        env = os.environ if environ is None else environ
        field_names = set(cls.__dataclass_fields__)

        values: dict[str, Any] = {
            key: value
            for key, value in data.items()
            if key in field_names and key in VALID_KEYS
        }

        for key, env_var in ENV_FALLBACKS.items():
            if not values.get(key) and env.get(env_var):
                values[key] = env[env_var]

        for key in REQUIRED_KEYS:
            values.setdefault(key, "")

        return cls(**values)

    def to_dict(self, mask_secrets: bool = True) -> dict[str, Any]:
        """
        Convert to dictionary format.

        Args:
            mask_secrets: Replace API keys with a masked form

        Returns:
            Dictionary representation of the settings
        """
        result = asdict(self)
        if mask_secrets:
            for key in SECRET_KEYS:
                result[key] = mask_secret(result[key])
        return result


def mask_secret(value: str) -> str:
    """Mask all but the last four characters of a secret."""
    if not value:
        return ""
    if len(value) <= 4:
        return "****"
    return "*" * 8 + value[-4:]
