"""Shared fixtures for the airbasix test suite."""

import logging
import os
import threading
from unittest.mock import MagicMock, patch

import pytest

from airbasix.api.airtable_api import AirtableAPI
from airbasix.api.wix_api import BulkRemoveResult
from airbasix.config.settings import SyncSettings
from airbasix.sync.record import SourceRecord, TargetRecord


@pytest.fixture(autouse=True)
def no_log_file():
    """Keep tests from writing log files to the home directory."""
    with patch.dict(os.environ, {"AIRBASIX_LOG_FILE": "none"}):
        yield


@pytest.fixture(autouse=True)
def reset_airbasix_logger():
    """Undo setup_logging so caplog sees records from every test."""
    yield
    logger = logging.getLogger("airbasix")
    for handler in logger.handlers[:]:
        handler.close()
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


def build_settings(**overrides):
    """Build valid SyncSettings with test credentials."""
    values = {
        "airtable_api_key": "pat-test-key",
        "airtable_base_id": "appTEST",
        "airtable_table": "Listings",
        "wix_api_key": "wix-test-key",
        "wix_site_id": "site-123",
        "wix_collection": "Listings",
        "max_workers": 2,
    }
    values.update(overrides)
    return SyncSettings(**values)


@pytest.fixture
def make_settings():
    """Factory for settings with selected overrides."""
    return build_settings


@pytest.fixture
def settings():
    """Create default test settings."""
    return build_settings()


class InMemoryWix:
    """A thread-safe stand-in for WixDataAPI backed by a dict."""

    def __init__(self):
        self.items = {}
        self.saves = 0
        self.removed_batches = []
        self._lock = threading.Lock()
        self._counter = 0

    def add(self, item_id, **data):
        self.items[item_id] = dict(data, _id=item_id)

    def find_by_field(self, field_name, value, limit=1):
        with self._lock:
            return [
                TargetRecord(id=item_id, data=dict(data))
                for item_id, data in self.items.items()
                if data.get(field_name) == value
            ][:limit]

    def save_item(self, record):
        with self._lock:
            self.saves += 1
            item_id = record.id
            if item_id is None:
                self._counter += 1
                item_id = f"item-{self._counter}"
            self.items[item_id] = dict(record.data, _id=item_id)
            return TargetRecord(id=item_id, data=dict(self.items[item_id]))

    def find_not_in(self, field_name, values, limit=1000):
        with self._lock:
            return [
                TargetRecord(id=item_id, data=dict(data))
                for item_id, data in self.items.items()
                if data.get(field_name) not in values
            ][:limit]

    def bulk_remove(self, item_ids):
        with self._lock:
            self.removed_batches.append(list(item_ids))
            removed = 0
            for item_id in item_ids:
                if self.items.pop(item_id, None) is not None:
                    removed += 1
            return BulkRemoveResult(removed=removed, skipped=len(item_ids) - removed)

    def by_external_id(self, field_name="airtableId"):
        return {data.get(field_name): data for data in self.items.values()}


def source_record(record_id, created_time="2024-01-05T10:00:00.000Z", **fields):
    """Build a SourceRecord with the given fields."""
    return SourceRecord(id=record_id, created_time=created_time, fields=fields)


@pytest.fixture
def wix():
    """Create an empty in-memory Wix collection."""
    return InMemoryWix()


@pytest.fixture
def airtable():
    """Create a mock Airtable client returning no records."""
    api = MagicMock(spec=AirtableAPI)
    api.list_records.return_value = []
    return api


@pytest.fixture
def make_record():
    """Factory for source records."""
    return source_record
