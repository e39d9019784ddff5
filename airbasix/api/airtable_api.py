"""
Airtable REST API client for reading the source table.

Provides:
- Paginated listing of every record in a table view
- A deadline covering the whole paginated fetch
- Exponential backoff retry logic for rate limits (Airtable allows
  5 requests per second per base)
"""

import logging
import time
from typing import Any
from urllib.parse import quote

from airbasix.api.base import (
    DEFAULT_INITIAL_RETRY_DELAY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_RETRY_DELAY,
    DEFAULT_REQUEST_TIMEOUT,
    APIError,
    BaseAPIClient,
)
from airbasix.sync.record import SourceRecord

AIRTABLE_API_URL = "https://api.airtable.com/v0"

# Maximum records per page (Airtable API limit)
DEFAULT_PAGE_SIZE = 100

# Seconds allowed for reading every page of a view
DEFAULT_FETCH_TIMEOUT = 300.0

logger = logging.getLogger(__name__)


class AirtableAPIError(APIError):
    """Raised when an Airtable API operation fails."""

    code = "airtable_error"


class AirtableRateLimitError(AirtableAPIError):
    """Raised when the Airtable rate limit is exceeded and retries are exhausted."""

    code = "airtable_rate_limited"


class AirtableAPI(BaseAPIClient):
    """
    Airtable REST API wrapper for one base.

    Attributes:
        api_key: Airtable personal access token
        base_id: Airtable base id (appXXXX)
        fetch_timeout: Seconds allowed for a whole list_records call

    Usage:
        api = AirtableAPI(api_key, "appXXXX")
        records = api.list_records("Listings", view="Published")
    """

    service_name = "airtable"
    error_class = AirtableAPIError
    rate_limit_error_class = AirtableRateLimitError

    def __init__(
        self,
        api_key: str,
        base_id: str,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_retry_delay: float = DEFAULT_INITIAL_RETRY_DELAY,
        max_retry_delay: float = DEFAULT_MAX_RETRY_DELAY,
        base_url: str = AIRTABLE_API_URL,
    ):
        super().__init__(
            request_timeout=request_timeout,
            max_retries=max_retries,
            initial_retry_delay=initial_retry_delay,
            max_retry_delay=max_retry_delay,
        )
        self.api_key = api_key
        self.base_id = base_id
        self.fetch_timeout = fetch_timeout
        self.base_url = base_url.rstrip("/")

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
        }

    def table_url(self, table: str) -> str:
        return f"{self.base_url}/{quote(self.base_id, safe='')}/{quote(table, safe='')}"

    def list_records(
        self,
        table: str,
        view: str | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> list[SourceRecord]:
        """
        List every record of a table view, following pagination offsets.

        Records are returned in the order Airtable provides them.

        Args:
            table: Table name or id
            view: View name or id; None or "" reads the whole table
            page_size: Records per page (capped at 100)

        Returns:
            List of SourceRecord

        Raises:
            AirtableAPIError: If any page fails, a record is malformed, or the
                              whole fetch exceeds fetch_timeout
            AirtableRateLimitError: If rate limit retries are exhausted
        """
        url = self.table_url(table)
        page_size = max(1, min(page_size, DEFAULT_PAGE_SIZE))
        deadline = time.monotonic() + self.fetch_timeout

        records: list[SourceRecord] = []
        offset: str | None = None
        page = 0

        logger.debug(f"Listing Airtable records: table={table!r}, view={view!r}")

        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise AirtableAPIError(
                    f"Fetching {table!r} exceeded {self.fetch_timeout:.0f}s "
                    f"after {page} pages",
                    code="airtable_fetch_timeout",
                )

            params: dict[str, Any] = {"pageSize": page_size}
            if view:
                params["view"] = view
            if offset:
                params["offset"] = offset

            response = self._request(
                "GET",
                url,
                f"list_records({table}, page {page + 1})",
                timeout=min(self.request_timeout, remaining),
                params=params,
            )
            page += 1

            for raw in response.get("records", []):
                try:
                    records.append(SourceRecord.from_api(raw))
                except ValueError as e:
                    # Never skip a record here, or its target item becomes an orphan
                    raise AirtableAPIError(
                        str(e), code="airtable_invalid_record"
                    ) from e

            offset = response.get("offset")
            if not offset:
                break

        logger.info(f"Listed {len(records)} Airtable records from {table!r}")
        return records
