"""
Unit tests for the record reconciler.

Tests source fetching, duplicate handling, inserts and updates against an
in-memory Wix collection, and per-record failure handling.
"""

from unittest.mock import MagicMock

import pytest
import requests

from airbasix.api.airtable_api import AirtableAPIError
from airbasix.api.wix_api import WixAPIError, WixDataAPI
from airbasix.sync.reconciler import (
    ReconcileStats,
    RecordReconciler,
    SourceFetchError,
    deduplicate_records,
)


@pytest.fixture
def reconciler(airtable, wix, settings):
    """Create a reconciler over a mock source and in-memory target."""
    return RecordReconciler(airtable, wix, settings)


# ==============================================================================
# deduplicate_records Tests
# ==============================================================================


class TestDeduplicateRecords:
    """Tests for deduplicate_records."""

    def test_first_occurrence_wins(self, make_record):
        """Later records with a seen id are dropped."""
        records = [
            make_record("r1", Name="first"),
            make_record("r2"),
            make_record("r1", Name="second"),
        ]
        unique = deduplicate_records(records)
        assert [r.id for r in unique] == ["r1", "r2"]
        assert unique[0].fields["Name"] == "first"

    def test_preserves_order(self, make_record):
        """Source order is kept."""
        records = [make_record(i) for i in ("c", "a", "b")]
        assert [r.id for r in deduplicate_records(records)] == ["c", "a", "b"]

    def test_empty(self):
        """An empty list stays empty."""
        assert deduplicate_records([]) == []


# ==============================================================================
# Source Fetch Tests
# ==============================================================================


class TestFetchSourceRecords:
    """Tests for reading the source table."""

    def test_passes_table_view_and_page_size(self, airtable, wix, make_settings):
        """The configured table, view and page size are used."""
        settings = make_settings(airtable_view="Published", page_size=50)
        RecordReconciler(airtable, wix, settings).fetch_source_records()
        airtable.list_records.assert_called_once_with(
            "Listings", view="Published", page_size=50
        )

    def test_empty_view_reads_whole_table(self, airtable, reconciler):
        """No view is sent when none is configured."""
        reconciler.fetch_source_records()
        assert airtable.list_records.call_args.kwargs["view"] is None

    def test_api_error_wrapped(self, airtable, reconciler):
        """Airtable errors become SourceFetchError."""
        airtable.list_records.side_effect = AirtableAPIError(
            "down", code="airtable_http_503"
        )
        with pytest.raises(SourceFetchError) as exc_info:
            reconciler.fetch_source_records()
        assert exc_info.value.code == "source_fetch_failed"

    def test_request_exception_wrapped(self, airtable, reconciler):
        """Transport errors become SourceFetchError."""
        airtable.list_records.side_effect = requests.ConnectionError("refused")
        with pytest.raises(SourceFetchError):
            reconciler.fetch_source_records()

    def test_fetch_failure_writes_nothing(self, airtable, wix, reconciler):
        """A failed fetch aborts reconcile before any write."""
        airtable.list_records.side_effect = AirtableAPIError("timeout")
        with pytest.raises(SourceFetchError):
            reconciler.reconcile()
        assert wix.saves == 0


# ==============================================================================
# Reconcile Tests
# ==============================================================================


class TestReconcile:
    """Tests for RecordReconciler.reconcile."""

    def test_empty_source(self, reconciler):
        """An empty source succeeds with no survivors."""
        result = reconciler.reconcile()
        assert result.survivor_ids == set()
        assert result.all_succeeded is True
        assert result.stats == ReconcileStats()

    def test_inserts_new_records(self, airtable, wix, reconciler, make_record):
        """Records without a target item are inserted with their join key."""
        airtable.list_records.return_value = [
            make_record("r1", created_time="2024-01-01T00:00:00.000Z", Name="Loft"),
            make_record("r2", Name="Barn"),
        ]

        result = reconciler.reconcile()

        assert result.all_succeeded is True
        assert result.survivor_ids == {"r1", "r2"}
        assert result.stats.inserted == 2
        assert result.stats.updated == 0
        stored = wix.by_external_id()
        assert stored["r1"]["name"] == "Loft"
        assert stored["r1"]["airtableCreatedTime"] == "2024-01-01T00:00:00.000Z"
        assert stored["r2"]["name"] == "Barn"

    def test_updates_existing_records(self, airtable, wix, reconciler, make_record):
        """Existing items are updated in place and keep other fields."""
        wix.add(
            "item-a",
            airtableId="r1",
            airtableCreatedTime="2023-01-01T00:00:00.000Z",
            name="Old",
            wixOnly="keep",
        )
        airtable.list_records.return_value = [make_record("r1", Name="New")]

        result = reconciler.reconcile()

        assert result.stats.updated == 1
        assert result.stats.inserted == 0
        assert list(wix.items) == ["item-a"]
        item = wix.items["item-a"]
        assert item["name"] == "New"
        assert item["wixOnly"] == "keep"
        assert item["airtableCreatedTime"] == "2023-01-01T00:00:00.000Z"

    def test_duplicates_processed_once(self, airtable, wix, reconciler, make_record):
        """A duplicated source id is written once, from its first occurrence."""
        airtable.list_records.return_value = [
            make_record("r1", Name="first"),
            make_record("r1", Name="second"),
        ]

        result = reconciler.reconcile()

        assert result.stats.source_records == 2
        assert result.stats.duplicates_skipped == 1
        assert result.survivor_ids == {"r1"}
        assert wix.saves == 1
        assert wix.by_external_id()["r1"]["name"] == "first"

    def test_external_id_overrides_transformed_field(
        self, airtable, wix, reconciler, make_record
    ):
        """A source field normalizing to the join key cannot replace it."""
        airtable.list_records.return_value = [make_record("r1", **{"Airtable ID": "x"})]
        reconciler.reconcile()
        assert wix.by_external_id()["r1"]["airtableId"] == "r1"

    def test_failure_continues_other_records(
        self, airtable, wix, reconciler, make_record
    ):
        """A failing record is reported and the rest still sync."""
        original_save = wix.save_item

        def flaky_save(record):
            if record.data["airtableId"] == "r2":
                raise WixAPIError("boom", code="wix_http_500")
            return original_save(record)

        wix.save_item = flaky_save
        airtable.list_records.return_value = [
            make_record(i, Name=i) for i in ("r1", "r2", "r3")
        ]

        result = reconciler.reconcile()

        assert result.all_succeeded is False
        assert result.survivor_ids == {"r1", "r2", "r3"}
        assert result.stats.inserted == 2
        assert result.stats.errors == 1
        assert len(result.errors) == 1
        assert result.errors[0].record_id == "r2"
        assert result.errors[0].code == "wix_http_500"
        assert set(wix.by_external_id()) == {"r1", "r3"}

    def test_transform_failure_fails_record(
        self, airtable, wix, reconciler, make_record
    ):
        """A malformed geocode fails only its record."""
        airtable.list_records.return_value = [
            make_record("r1", Geocode="broken"),
            make_record("r2", Name="ok"),
        ]

        result = reconciler.reconcile()

        assert result.all_succeeded is False
        assert result.errors[0].record_id == "r1"
        assert result.errors[0].code == "geocode_decode_failed"
        assert set(wix.by_external_id()) == {"r2"}

    def test_unexpected_error_fails_record(self, airtable, settings, make_record):
        """Unexpected exceptions are recorded under their class name."""
        target = MagicMock(spec=WixDataAPI)
        target.find_by_field.side_effect = RuntimeError("surprise")
        airtable.list_records.return_value = [make_record("r1")]

        result = RecordReconciler(airtable, target, settings).reconcile()

        assert result.all_succeeded is False
        assert result.errors[0].code == "RuntimeError"
        target.save_item.assert_not_called()

    def test_lookup_failure_fails_record(self, airtable, settings, make_record):
        """A failed lookup fails the record without saving."""
        target = MagicMock(spec=WixDataAPI)
        target.find_by_field.side_effect = WixAPIError("nope", code="wix_http_403")
        airtable.list_records.return_value = [make_record("r1")]

        result = RecordReconciler(airtable, target, settings).reconcile()

        assert result.stats.errors == 1
        assert result.errors[0].code == "wix_http_403"
        target.save_item.assert_not_called()

    def test_dry_run_writes_nothing(self, airtable, wix, reconciler, make_record):
        """Dry run counts inserts and updates without saving."""
        wix.add("item-a", airtableId="r1")
        airtable.list_records.return_value = [make_record("r1"), make_record("r2")]

        result = reconciler.reconcile(dry_run=True)

        assert result.stats.updated == 1
        assert result.stats.inserted == 1
        assert wix.saves == 0
        assert list(wix.items) == ["item-a"]

    def test_many_records_with_workers(self, airtable, wix, make_settings, make_record):
        """All records are processed before reconcile returns."""
        settings = make_settings(max_workers=8)
        airtable.list_records.return_value = [
            make_record(f"r{i}", Name=str(i)) for i in range(50)
        ]

        result = RecordReconciler(airtable, wix, settings).reconcile()

        assert result.stats.inserted == 50
        assert result.stats.processed == 50
        assert len(wix.items) == 50
