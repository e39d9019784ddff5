"""
Record models for Airtable to Wix synchronization.

Provides:
- SourceRecord: an immutable Airtable record snapshot
- Attachment: one element of an Airtable attachment field
- TargetRecord: a Wix Data item, keyed by its Airtable id
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any


@dataclass(frozen=True)
class SourceRecord:
    """
    One row of the source Airtable view.

    Attributes:
        id: Airtable record id (e.g., "rec123"), stable across runs
        created_time: ISO timestamp of record creation
        fields: Read-only field bag keyed by Airtable field name

    Example API record::

        {
            "id": "recA1",
            "createdTime": "2024-01-05T10:00:00.000Z",
            "fields": {"Name": "Loft", "Tags": ["a", "b"]}
        }
    """

    id: str
    created_time: str
    fields: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.fields, MappingProxyType):
            object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    @classmethod
    def from_api(cls, record: dict[str, Any]) -> SourceRecord:
        """
        Create a SourceRecord from an Airtable API record.

        Raises:
            ValueError: If the record has no id
        """
        record_id = record.get("id")
        if not record_id or not isinstance(record_id, str):
            raise ValueError(f"Airtable record without an id: {record!r}")

        return cls(
            id=record_id,
            created_time=record.get("createdTime", ""),
            fields=record.get("fields") or {},
        )


@dataclass(frozen=True)
class Attachment:
    """An Airtable attachment; only the mime type and url are used."""

    type: str
    url: str

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> Attachment:
        return cls(type=str(data.get("type", "")), url=str(data.get("url", "")))

    def is_image(self) -> bool:
        return "image" in self.type


@dataclass
class TargetRecord:
    """
    A Wix Data item.

    Attributes:
        id: Wix item id (``_id``), None until the item is first inserted
        data: Item fields, including the external id and created time fields

    Usage:
        record = TargetRecord.skeleton("airtableId", "recA1",
                                       "airtableCreatedTime", "2024-01-05T10:00:00Z")
        payload = record.to_api()
    """

    id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def skeleton(
        cls,
        external_id_field: str,
        external_id: str,
        created_time_field: str,
        created_time: str,
    ) -> TargetRecord:
        """Build a fresh, not yet inserted record seeded with its join key."""
        return cls(
            id=None,
            data={external_id_field: external_id, created_time_field: created_time},
        )

    @classmethod
    def from_api(cls, item: Mapping[str, Any]) -> TargetRecord:
        """
        Create a TargetRecord from a Wix Data item.

        Example API item::

            {
                "id": "8f1c...",
                "dataCollectionId": "Listings",
                "data": {"_id": "8f1c...", "airtableId": "recA1", "title": "Loft"}
            }
        """
        data = dict(item.get("data") or {})
        item_id = item.get("id") or data.get("_id")
        return cls(id=item_id, data=data)

    def to_api(self) -> dict[str, Any]:
        """Convert to the Wix ``dataItem`` format used by save calls."""
        item: dict[str, Any] = {"data": dict(self.data)}
        if self.id:
            item["id"] = self.id
            item["data"]["_id"] = self.id
        return item

    def external_id(self, external_id_field: str) -> str | None:
        return self.data.get(external_id_field)

    @property
    def is_new(self) -> bool:
        return self.id is None
