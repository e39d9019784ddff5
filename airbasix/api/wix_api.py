"""
Wix Data REST API client for the target collection.

Provides the four operations the sync needs:
- Querying items by field equality
- Saving (inserting or updating) an item
- Querying items whose field is not in a set of values
- Bulk removing items by id
"""

import logging
from dataclasses import dataclass
from typing import Any

from airbasix.api.base import (
    DEFAULT_INITIAL_RETRY_DELAY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_RETRY_DELAY,
    DEFAULT_REQUEST_TIMEOUT,
    APIError,
    BaseAPIClient,
)
from airbasix.sync.record import TargetRecord

WIX_DATA_API_URL = "https://www.wixapis.com/wix-data/v2"

# Wix Data returns at most 1000 items per query
MAX_QUERY_LIMIT = 1000

logger = logging.getLogger(__name__)


class WixAPIError(APIError):
    """Raised when a Wix Data API operation fails."""

    code = "wix_error"


class WixRateLimitError(WixAPIError):
    """Raised when the Wix rate limit is exceeded and retries are exhausted."""

    code = "wix_rate_limited"


@dataclass
class BulkRemoveResult:
    """Outcome of a bulk remove: items removed and items the store skipped."""

    removed: int = 0
    skipped: int = 0


class WixDataAPI(BaseAPIClient):
    """
    Wix Data REST API wrapper bound to one collection.

    Attributes:
        api_key: Wix API key
        site_id: Wix site id
        collection: Data collection id

    Usage:
        api = WixDataAPI(api_key, site_id, "Listings")
        matches = api.find_by_field("airtableId", "recA1")
        saved = api.save_item(TargetRecord(data={"airtableId": "recA1"}))
        orphans = api.find_not_in("airtableId", ["recA1"], limit=1000)
        result = api.bulk_remove([o.id for o in orphans])
    """

    service_name = "wix"
    error_class = WixAPIError
    rate_limit_error_class = WixRateLimitError

    def __init__(
        self,
        api_key: str,
        site_id: str,
        collection: str,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_retry_delay: float = DEFAULT_INITIAL_RETRY_DELAY,
        max_retry_delay: float = DEFAULT_MAX_RETRY_DELAY,
        base_url: str = WIX_DATA_API_URL,
    ):
        super().__init__(
            request_timeout=request_timeout,
            max_retries=max_retries,
            initial_retry_delay=initial_retry_delay,
            max_retry_delay=max_retry_delay,
        )
        self.api_key = api_key
        self.site_id = site_id
        self.collection = collection
        self.base_url = base_url.rstrip("/")

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": self.api_key,
            "wix-site-id": self.site_id,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def query_items(
        self, filter_: dict[str, Any], limit: int, operation_name: str = "query_items"
    ) -> list[TargetRecord]:
        """
        Run a filtered query against the collection.

        Args:
            filter_: Wix Data filter object
            limit: Maximum items to return (capped at 1000)
            operation_name: Name for logging purposes

        Returns:
            Matching items as TargetRecord

        Raises:
            WixAPIError: If the query fails
        """
        body = {
            "dataCollectionId": self.collection,
            "query": {
                "filter": filter_,
                "paging": {"limit": max(1, min(limit, MAX_QUERY_LIMIT))},
            },
        }
        response = self._request(
            "POST", f"{self.base_url}/items/query", operation_name, json=body
        )
        return [TargetRecord.from_api(item) for item in response.get("dataItems", [])]

    def find_by_field(
        self, field_name: str, value: Any, limit: int = 1
    ) -> list[TargetRecord]:
        """Find items whose ``field_name`` equals ``value``."""
        return self.query_items(
            {field_name: {"$eq": value}},
            limit,
            operation_name=f"find_by_field({field_name}={value})",
        )

    def find_not_in(
        self, field_name: str, values: list[Any], limit: int = MAX_QUERY_LIMIT
    ) -> list[TargetRecord]:
        """Find items whose ``field_name`` is not one of ``values``."""
        return self.query_items(
            {"$not": {field_name: {"$hasSome": list(values)}}},
            limit,
            operation_name=f"find_not_in({field_name}, {len(values)} values)",
        )

    def save_item(self, record: TargetRecord) -> TargetRecord:
        """
        Insert or update an item.

        Items without an id are inserted; items with an id replace the
        stored item with the same id. Inserts are not retried after a read
        timeout or server error, since the first attempt may have been
        stored; the next run finds that item by its external id.

        Returns:
            The saved item, with its id populated

        Raises:
            WixAPIError: If the save fails
        """
        body = {"dataCollectionId": self.collection, "dataItem": record.to_api()}
        response = self._request(
            "POST",
            f"{self.base_url}/items/save",
            f"save_item({record.id or 'new'})",
            idempotent=not record.is_new,
            json=body,
        )
        item = response.get("dataItem")
        if not item:
            raise WixAPIError(
                "save_item response did not contain a dataItem",
                code="wix_invalid_response",
            )
        return TargetRecord.from_api(item)

    def bulk_remove(self, item_ids: list[str]) -> BulkRemoveResult:
        """
        Remove items by id in one call.

        Returns:
            BulkRemoveResult with counts of removed and skipped items

        Raises:
            WixAPIError: If the request fails
        """
        if not item_ids:
            return BulkRemoveResult()

        body = {"dataCollectionId": self.collection, "dataItemIds": list(item_ids)}
        response = self._request(
            "POST",
            f"{self.base_url}/bulk/items/remove",
            f"bulk_remove({len(item_ids)} items)",
            json=body,
        )

        metadata = response.get("bulkActionMetadata") or {}
        removed = int(metadata.get("totalSuccesses", len(item_ids)))
        skipped = int(metadata.get("totalFailures", 0))
        return BulkRemoveResult(removed=removed, skipped=skipped)
