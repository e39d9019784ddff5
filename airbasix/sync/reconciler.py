"""
Record reconciliation: mirror every Airtable record into Wix.

The reconciler reads the whole source view, resolves the ordered list of
distinct record ids, then inserts or updates one Wix item per id on a
bounded worker pool. All record work is joined before reconcile() returns,
so the survivor set it reports is final and every write has landed.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum

import requests

from airbasix.api.airtable_api import AirtableAPI, AirtableAPIError
from airbasix.api.wix_api import WixAPIError, WixDataAPI
from airbasix.config.settings import SyncSettings
from airbasix.exceptions import AirbasixError, describe_error
from airbasix.sync.fields import FieldTransformError, transform_fields
from airbasix.sync.record import SourceRecord, TargetRecord

logger = logging.getLogger(__name__)

# Errors that fail one record without stopping the run
RECORD_ERRORS = (WixAPIError, FieldTransformError, requests.RequestException)


class SourceFetchError(AirbasixError):
    """Raised when the source table cannot be read; the run is aborted."""

    code = "source_fetch_failed"


class RecordAction(str, Enum):
    """What happened to one source record."""

    INSERTED = "inserted"
    UPDATED = "updated"
    FAILED = "failed"


@dataclass
class ReconcileStats:
    """Counts from one reconciliation pass."""

    source_records: int = 0
    duplicates_skipped: int = 0
    inserted: int = 0
    updated: int = 0
    errors: int = 0

    @property
    def processed(self) -> int:
        return self.inserted + self.updated + self.errors


@dataclass
class RecordError:
    """A record that could not be mirrored."""

    record_id: str
    code: str
    message: str


@dataclass
class ReconcileResult:
    """
    Result of a reconciliation pass.

    Attributes:
        survivor_ids: Every distinct source id seen in this run
        all_succeeded: True when no record failed
        stats: Insert/update/error counts
        errors: One entry per failed record
    """

    survivor_ids: set[str] = field(default_factory=set)
    all_succeeded: bool = True
    stats: ReconcileStats = field(default_factory=ReconcileStats)
    errors: list[RecordError] = field(default_factory=list)


def deduplicate_records(records: list[SourceRecord]) -> list[SourceRecord]:
    """
    Drop records whose id was already seen, keeping the first occurrence.

    Args:
        records: Source records in source order

    Returns:
        Records with distinct ids, in source order
    """
    seen: set[str] = set()
    unique: list[SourceRecord] = []
    for record in records:
        if record.id in seen:
            logger.debug(f"Skipping duplicate source record {record.id}")
            continue
        seen.add(record.id)
        unique.append(record)
    return unique


class RecordReconciler:
    """
    Inserts or updates one Wix item per Airtable record.

    Attributes:
        source: Airtable client
        target: Wix Data client
        settings: Sync settings

    Usage:
        reconciler = RecordReconciler(airtable, wix, settings)
        result = reconciler.reconcile()
        if result.all_succeeded:
            ...
    """

    def __init__(
        self,
        source: AirtableAPI,
        target: WixDataAPI,
        settings: SyncSettings,
    ):
        self.source = source
        self.target = target
        self.settings = settings
        self._stats_lock = threading.Lock()

    def fetch_source_records(self) -> list[SourceRecord]:
        """
        Read every record of the configured view.

        Raises:
            SourceFetchError: If the fetch fails or times out
        """
        try:
            return self.source.list_records(
                self.settings.airtable_table,
                view=self.settings.airtable_view or None,
                page_size=self.settings.page_size,
            )
        except (AirtableAPIError, requests.RequestException) as e:
            logger.error(f"Failed to read source table: {describe_error(e)}")
            raise SourceFetchError(f"Failed to read source table: {e}") from e

    def reconcile(self, dry_run: bool = False) -> ReconcileResult:
        """
        Mirror every source record into the target collection.

        Args:
            dry_run: If True, look up and transform records but write nothing

        Returns:
            ReconcileResult with the survivor ids and success flag

        Raises:
            SourceFetchError: If the source cannot be read (no writes happen)
        """
        records = self.fetch_source_records()
        unique_records = deduplicate_records(records)

        result = ReconcileResult(survivor_ids={r.id for r in unique_records})
        result.stats.source_records = len(records)
        result.stats.duplicates_skipped = len(records) - len(unique_records)

        if result.stats.duplicates_skipped:
            logger.warning(
                f"Skipped {result.stats.duplicates_skipped} duplicate source records"
            )

        logger.info(
            f"Reconciling {len(unique_records)} records into "
            f"{self.settings.wix_collection!r} "
            f"(workers={self.settings.max_workers}, dry_run={dry_run})"
        )

        if not unique_records:
            return result

        with ThreadPoolExecutor(
            max_workers=self.settings.max_workers,
            thread_name_prefix="airbasix-record",
        ) as executor:
            futures = {
                executor.submit(self._process_record, record, dry_run, result): record
                for record in unique_records
            }
            for future in as_completed(futures):
                record = futures[future]
                try:
                    future.result()
                except Exception as e:
                    # _process_record handles expected errors; anything else
                    # still fails only this record.
                    logger.exception(f"Unexpected error syncing record {record.id}")
                    self._record_failure(result, record.id, e)

        result.all_succeeded = result.stats.errors == 0

        logger.info(
            f"Reconciliation finished: inserted={result.stats.inserted}, "
            f"updated={result.stats.updated}, errors={result.stats.errors}"
        )
        return result

    def _process_record(
        self, record: SourceRecord, dry_run: bool, result: ReconcileResult
    ) -> RecordAction:
        try:
            target = self._build_target_record(record)
            action = RecordAction.INSERTED if target.is_new else RecordAction.UPDATED

            if dry_run:
                verb = "insert" if target.is_new else "update"
                logger.debug(f"[dry-run] Would {verb} record {record.id}")
            else:
                saved = self.target.save_item(target)
                logger.debug(f"Record {record.id} {action.value} as {saved.id}")
        except RECORD_ERRORS as e:
            logger.error(f"Failed to sync record {record.id}: {describe_error(e)}")
            self._record_failure(result, record.id, e)
            return RecordAction.FAILED

        with self._stats_lock:
            if action is RecordAction.INSERTED:
                result.stats.inserted += 1
            else:
                result.stats.updated += 1
        return action

    def _build_target_record(self, record: SourceRecord) -> TargetRecord:
        """
        Look up the existing item for a record and apply the transformed fields.

        Raises:
            WixAPIError: If the lookup fails
            FieldTransformError: If a field cannot be transformed
        """
        external_id_field = self.settings.external_id_field
        matches = self.target.find_by_field(external_id_field, record.id)

        if matches:
            existing = matches[0]
        else:
            existing = TargetRecord.skeleton(
                external_id_field,
                record.id,
                self.settings.created_time_field,
                record.created_time,
            )

        data = transform_fields(record.fields, existing.data, self.settings)
        # The join key always wins over a transformed field of the same name
        data[external_id_field] = record.id
        return TargetRecord(id=existing.id, data=data)

    def _record_failure(
        self, result: ReconcileResult, record_id: str, error: BaseException
    ) -> None:
        code = getattr(error, "code", type(error).__name__)
        with self._stats_lock:
            result.stats.errors += 1
            result.all_succeeded = False
            result.errors.append(RecordError(record_id, code, str(error)))
