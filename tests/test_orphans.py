"""
Unit tests for orphan collection.
"""

import logging
from unittest.mock import MagicMock

import pytest

from airbasix.api.wix_api import BulkRemoveResult, WixAPIError, WixDataAPI
from airbasix.sync.orphans import OrphanCleanupError, OrphanCollector
from airbasix.sync.record import TargetRecord


@pytest.fixture
def mock_wix():
    """Create a mock Wix client."""
    return MagicMock(spec=WixDataAPI)


class TestCollectAndDelete:
    """Tests for OrphanCollector.collect_and_delete."""

    def test_deletes_only_orphans(self, wix):
        """Items whose external id is not a survivor are removed."""
        wix.add("i1", airtableId="r1")
        wix.add("i2", airtableId="r2")
        wix.add("i3", airtableId="r3")

        deleted = OrphanCollector(wix, "airtableId").collect_and_delete({"r1", "r2"})

        assert deleted == 1
        assert set(wix.by_external_id()) == {"r1", "r2"}

    def test_empty_survivors_deletes_nothing(self, mock_wix):
        """An empty survivor set never queries or deletes."""
        collector = OrphanCollector(mock_wix, "airtableId")
        assert collector.collect_and_delete(set()) == 0
        assert collector.collect_and_delete(None) == 0
        mock_wix.find_not_in.assert_not_called()
        mock_wix.bulk_remove.assert_not_called()

    def test_no_orphans(self, wix):
        """Nothing is removed when every item has a survivor."""
        wix.add("i1", airtableId="r1")
        assert OrphanCollector(wix, "airtableId").collect_and_delete({"r1"}) == 0
        assert wix.removed_batches == []

    def test_items_missing_external_id_are_orphans(self, wix):
        """Items without the join key field are removed."""
        wix.add("i1", airtableId="r1")
        wix.add("i2", title="manual entry")
        assert OrphanCollector(wix, "airtableId").collect_and_delete({"r1"}) == 1
        assert list(wix.items) == ["i1"]

    def test_query_uses_sorted_survivors_and_limit(self, mock_wix):
        """The not-in query is sent with sorted ids and the batch limit."""
        mock_wix.find_not_in.return_value = []
        OrphanCollector(mock_wix, "airtableId", batch_limit=50).collect_and_delete(
            {"r2", "r1"}
        )
        mock_wix.find_not_in.assert_called_once_with(
            "airtableId", ["r1", "r2"], limit=50
        )

    def test_batch_limit_capped(self, mock_wix):
        """The batch limit never exceeds the store's query maximum."""
        assert OrphanCollector(mock_wix, "x", batch_limit=5000).batch_limit == 1000

    def test_batch_limit_warning(self, mock_wix, caplog):
        """A full batch logs that more orphans remain."""
        mock_wix.find_not_in.return_value = [
            TargetRecord(id="i1", data={"airtableId": "gone1"}),
            TargetRecord(id="i2", data={"airtableId": "gone2"}),
        ]
        mock_wix.bulk_remove.return_value = BulkRemoveResult(removed=2)

        with caplog.at_level(logging.WARNING):
            deleted = OrphanCollector(
                mock_wix, "airtableId", batch_limit=2
            ).collect_and_delete({"r1"})

        assert deleted == 2
        assert "batch limit" in caplog.text

    def test_skipped_deletions_reported(self, mock_wix, caplog):
        """Deletions the store skipped are logged and not counted."""
        mock_wix.find_not_in.return_value = [
            TargetRecord(id="i1", data={}),
            TargetRecord(id="i2", data={}),
        ]
        mock_wix.bulk_remove.return_value = BulkRemoveResult(removed=1, skipped=1)

        with caplog.at_level(logging.WARNING):
            deleted = OrphanCollector(mock_wix, "airtableId").collect_and_delete({"r1"})

        assert deleted == 1
        assert "skipped 1 of 2" in caplog.text

    def test_dry_run_counts_without_deleting(self, wix):
        """Dry run reports the orphan count and removes nothing."""
        wix.add("i1", airtableId="r1")
        wix.add("i2", airtableId="gone")

        deleted = OrphanCollector(wix, "airtableId").collect_and_delete(
            {"r1"}, dry_run=True
        )

        assert deleted == 1
        assert len(wix.items) == 2
        assert wix.removed_batches == []

    def test_query_failure_raises(self, mock_wix):
        """A failed orphan query raises OrphanCleanupError."""
        mock_wix.find_not_in.side_effect = WixAPIError("nope", code="wix_http_500")
        with pytest.raises(OrphanCleanupError) as exc_info:
            OrphanCollector(mock_wix, "airtableId").collect_and_delete({"r1"})
        assert exc_info.value.code == "orphan_cleanup_failed"

    def test_delete_failure_raises(self, mock_wix):
        """A failed bulk remove raises OrphanCleanupError."""
        mock_wix.find_not_in.return_value = [TargetRecord(id="i1", data={})]
        mock_wix.bulk_remove.side_effect = WixAPIError("nope")
        with pytest.raises(OrphanCleanupError):
            OrphanCollector(mock_wix, "airtableId").collect_and_delete({"r1"})
