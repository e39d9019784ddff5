"""
Sync engine for one-way Airtable to Wix synchronization.

Sequences the two phases of a run:
1. Reconciliation: insert or update one Wix item per Airtable record
2. Orphan cleanup: delete Wix items whose Airtable record is gone

Cleanup only runs when reconciliation had no errors, so the collection is
never pruned from an incomplete view of the source.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from airbasix.api.airtable_api import AirtableAPI
from airbasix.api.wix_api import WixDataAPI
from airbasix.config.settings import SyncSettings
from airbasix.sync.orphans import OrphanCleanupError, OrphanCollector
from airbasix.sync.reconciler import (
    ReconcileResult,
    ReconcileStats,
    RecordError,
    RecordReconciler,
)
from airbasix.utils.lock import RunLock

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """
    Result of a sync run.

    Attributes:
        survivor_ids: Distinct source ids seen in the run
        all_succeeded: True when every record was mirrored
        orphans_deleted: Items deleted (or that would be, in dry-run)
        orphan_cleanup_skipped: True when cleanup did not run due to errors
        orphan_error: Message of a failed cleanup, if any
        dry_run: Whether the run wrote nothing
    """

    survivor_ids: set[str] = field(default_factory=set)
    all_succeeded: bool = False
    stats: ReconcileStats = field(default_factory=ReconcileStats)
    errors: list[RecordError] = field(default_factory=list)
    orphans_deleted: int = 0
    orphan_cleanup_skipped: bool = False
    orphan_error: str | None = None
    dry_run: bool = False

    @property
    def succeeded(self) -> bool:
        """True when both phases completed without errors."""
        return self.all_succeeded and self.orphan_error is None

    def summary(self) -> str:
        """One line summary for logs and CLI output."""
        prefix = "[dry-run] " if self.dry_run else ""
        parts = [
            f"{self.stats.source_records} source records",
            f"{self.stats.inserted} inserted",
            f"{self.stats.updated} updated",
            f"{self.orphans_deleted} deleted",
        ]
        if self.stats.duplicates_skipped:
            parts.append(f"{self.stats.duplicates_skipped} duplicates skipped")
        if self.stats.errors:
            parts.append(f"{self.stats.errors} errors")
        text = prefix + ", ".join(parts)
        if self.orphan_cleanup_skipped:
            text += " (orphan cleanup skipped)"
        return text


class SyncEngine:
    """
    Orchestrates a one-way sync run.

    Attributes:
        settings: Validated sync settings
        reconciler: RecordReconciler for the insert/update phase
        orphan_collector: OrphanCollector for the delete phase
        lock: RunLock held for the duration of a run

    Usage:
        engine = SyncEngine.from_settings(settings)
        result = engine.run_sync()
        print(result.summary())
    """

    def __init__(
        self,
        settings: SyncSettings,
        reconciler: RecordReconciler,
        orphan_collector: OrphanCollector,
        lock: RunLock | None = None,
    ):
        self.settings = settings
        self.reconciler = reconciler
        self.orphan_collector = orphan_collector
        self.lock = lock or RunLock()

    @classmethod
    def from_settings(
        cls, settings: SyncSettings, lock_file: Path | None = None
    ) -> SyncEngine:
        """Build an engine with real API clients for the given settings."""
        retry_options = {
            "request_timeout": settings.request_timeout,
            "max_retries": settings.api_max_retries,
            "initial_retry_delay": settings.api_initial_retry_delay,
            "max_retry_delay": settings.api_max_retry_delay,
        }
        source = AirtableAPI(
            settings.airtable_api_key,
            settings.airtable_base_id,
            fetch_timeout=settings.fetch_timeout,
            **retry_options,
        )
        target = WixDataAPI(
            settings.wix_api_key,
            settings.wix_site_id,
            settings.wix_collection,
            **retry_options,
        )
        return cls(
            settings=settings,
            reconciler=RecordReconciler(source, target, settings),
            orphan_collector=OrphanCollector(
                target,
                settings.external_id_field,
                batch_limit=settings.orphan_batch_limit,
            ),
            lock=RunLock(lock_file),
        )

    def run_sync(self, dry_run: bool = False) -> SyncResult:
        """
        Perform a complete sync run.

        Args:
            dry_run: If True, compute changes without writing to Wix

        Returns:
            SyncResult describing what was (or would be) changed

        Raises:
            SyncAlreadyRunningError: If another run holds the lock
            SourceFetchError: If the source table cannot be read
        """
        logger.info(
            f"Starting sync: {self.settings.airtable_base_id}/"
            f"{self.settings.airtable_table} -> {self.settings.wix_collection} "
            f"(dry_run={dry_run})"
        )

        with self.lock:
            reconcile_result = self.reconciler.reconcile(dry_run=dry_run)
            result = self._result_from(reconcile_result, dry_run)

            if not reconcile_result.all_succeeded:
                logger.warning(
                    f"Skipping orphan cleanup: {reconcile_result.stats.errors} "
                    "records failed to sync"
                )
                result.orphan_cleanup_skipped = True
            else:
                try:
                    result.orphans_deleted = self.orphan_collector.collect_and_delete(
                        reconcile_result.survivor_ids, dry_run=dry_run
                    )
                except OrphanCleanupError as e:
                    result.orphan_error = e.describe()

        logger.info(f"Sync complete: {result.summary()}")
        return result

    @staticmethod
    def _result_from(reconcile_result: ReconcileResult, dry_run: bool) -> SyncResult:
        return SyncResult(
            survivor_ids=set(reconcile_result.survivor_ids),
            all_succeeded=reconcile_result.all_succeeded,
            stats=reconcile_result.stats,
            errors=list(reconcile_result.errors),
            dry_run=dry_run,
        )

    def __repr__(self) -> str:
        return (
            f"SyncEngine(collection={self.settings.wix_collection!r}, "
            f"table={self.settings.airtable_table!r})"
        )
