"""
airbasix.api - Remote API clients

Thin requests-based clients for the Airtable (source) and Wix Data
(target) REST APIs.
"""

from airbasix.api.airtable_api import (
    AirtableAPI,
    AirtableAPIError,
    AirtableRateLimitError,
)
from airbasix.api.base import APIError, RateLimitError
from airbasix.api.wix_api import (
    BulkRemoveResult,
    WixAPIError,
    WixDataAPI,
    WixRateLimitError,
)

__all__ = [
    "APIError",
    "RateLimitError",
    "AirtableAPI",
    "AirtableAPIError",
    "AirtableRateLimitError",
    "BulkRemoveResult",
    "WixAPIError",
    "WixDataAPI",
    "WixRateLimitError",
]
