"""
Orphan collection: delete Wix items whose Airtable record is gone.
"""

from __future__ import annotations

import logging
from collections.abc import Collection

import requests

from airbasix.api.wix_api import MAX_QUERY_LIMIT, WixAPIError, WixDataAPI
from airbasix.exceptions import AirbasixError, describe_error

logger = logging.getLogger(__name__)


class OrphanCleanupError(AirbasixError):
    """Raised when orphans cannot be queried or deleted."""

    code = "orphan_cleanup_failed"


class OrphanCollector:
    """
    Deletes target items whose external id is not a survivor id.

    At most ``batch_limit`` orphans are removed per call; the rest are
    picked up by later runs.

    Usage:
        collector = OrphanCollector(wix, "airtableId")
        deleted = collector.collect_and_delete({"recA1", "recB2"})
    """

    def __init__(
        self,
        target: WixDataAPI,
        external_id_field: str,
        batch_limit: int = MAX_QUERY_LIMIT,
    ):
        self.target = target
        self.external_id_field = external_id_field
        self.batch_limit = max(1, min(batch_limit, MAX_QUERY_LIMIT))

    def collect_and_delete(
        self, survivor_ids: Collection[str] | None, dry_run: bool = False
    ) -> int:
        """
        Delete up to one batch of orphaned items.

        An empty or missing survivor set deletes nothing: an empty source
        must never wipe the collection.

        Args:
            survivor_ids: Source ids seen in the current run
            dry_run: If True, only count the orphans

        Returns:
            Number of items deleted (or that would be deleted in dry-run)

        Raises:
            OrphanCleanupError: If the query or the delete fails
        """
        if not survivor_ids:
            logger.info("No survivor ids, skipping orphan cleanup")
            return 0

        try:
            orphans = self.target.find_not_in(
                self.external_id_field, sorted(survivor_ids), limit=self.batch_limit
            )
        except (WixAPIError, requests.RequestException) as e:
            logger.error(f"Failed to query orphaned items: {describe_error(e)}")
            raise OrphanCleanupError(f"Failed to query orphaned items: {e}") from e

        orphan_ids = [o.id for o in orphans if o.id]
        if not orphan_ids:
            logger.info("No orphaned items found")
            return 0

        if len(orphans) >= self.batch_limit:
            logger.warning(
                f"Orphan batch limit ({self.batch_limit}) reached, "
                "remaining orphans will be removed by later runs"
            )

        if dry_run:
            logger.info(f"[dry-run] Would delete {len(orphan_ids)} orphaned items")
            return len(orphan_ids)

        logger.info(f"Deleting {len(orphan_ids)} orphaned items")
        for orphan in orphans:
            logger.debug(
                f"Orphan {orphan.id} (external id "
                f"{orphan.external_id(self.external_id_field)!r})"
            )

        try:
            result = self.target.bulk_remove(orphan_ids)
        except (WixAPIError, requests.RequestException) as e:
            logger.error(f"Failed to delete orphaned items: {describe_error(e)}")
            raise OrphanCleanupError(f"Failed to delete orphaned items: {e}") from e

        if result.skipped:
            logger.warning(
                f"Wix skipped {result.skipped} of {len(orphan_ids)} orphan deletions"
            )

        return result.removed
