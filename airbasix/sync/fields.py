"""
Field transformation from Airtable field bags to Wix Data items.

Every Airtable field value is first classified into one of a small set of
variants, then each variant has its own transform:

    StringListValue      -> list copied, plus a comma-joined shadow field
                            for tag fields
    AttachmentListValue  -> [{"type": "image", "src": url}, ...]
    EncodedGeocodeValue  -> {"formatted": ..., "location": {...}}
    TextValue/NumberValue/ObjectValue in an address field
                         -> {"formatted": value}
    TextValue/NumberValue/ObjectValue otherwise -> copied verbatim
    UnsupportedValue     -> dropped

Empty lists and lists of non-image objects are unsupported.

Target keys are produced by normalize_field_name. Field name markers
("tags", "address", "geocode") are matched case-insensitively.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

from airbasix.config.settings import SyncSettings
from airbasix.exceptions import AirbasixError
from airbasix.sync.record import Attachment
from airbasix.utils.normalization import normalize_field_name

logger = logging.getLogger(__name__)

# Separator used when joining tag values into a shadow field
SHADOW_SEPARATOR = ","


class FieldTransformError(AirbasixError):
    """Raised when a field value cannot be transformed."""

    code = "field_transform_failed"


@dataclass(frozen=True)
class TextValue:
    value: str


@dataclass(frozen=True)
class NumberValue:
    """Numbers and checkbox booleans."""

    value: int | float | bool


@dataclass(frozen=True)
class StringListValue:
    values: tuple[str, ...]


@dataclass(frozen=True)
class AttachmentListValue:
    attachments: tuple[Attachment, ...]


@dataclass(frozen=True)
class EncodedGeocodeValue:
    """An Airtable geocode cache string: "<prefix> <base64 JSON>"."""

    encoded: str


@dataclass(frozen=True)
class ObjectValue:
    """A JSON object (button, barcode, collaborator) or null."""

    value: Any


@dataclass(frozen=True)
class UnsupportedValue:
    """A value with no target representation; never written."""

    reason: str


FieldValue = Union[
    TextValue,
    NumberValue,
    ObjectValue,
    StringListValue,
    AttachmentListValue,
    EncodedGeocodeValue,
    UnsupportedValue,
]


def _has_marker(field_name: str, marker: str) -> bool:
    return bool(marker) and marker.lower() in field_name.lower()


def _is_geocode_field(field_name: str, settings: SyncSettings) -> bool:
    # Address takes precedence over geocode
    return _has_marker(field_name, settings.geocode_marker) and not _has_marker(
        field_name, settings.address_marker
    )


def _is_image_attachment_list(values: list[Any]) -> bool:
    # Only the first element is inspected
    first = values[0]
    return isinstance(first, Mapping) and Attachment.from_api(first).is_image()


def classify_value(field_name: str, raw: Any, settings: SyncSettings) -> FieldValue:
    """
    Classify a raw Airtable value into a FieldValue variant.

    Args:
        field_name: Airtable field name (used for marker checks)
        raw: Value from the Airtable field bag
        settings: Sync settings holding the field name markers

    Returns:
        The FieldValue variant for the value

    Raises:
        FieldTransformError: If a geocode field holds anything but a string
    """
    if callable(raw):
        return UnsupportedValue("callable")

    if isinstance(raw, (list, tuple)):
        if not raw:
            return UnsupportedValue("empty list")
        if all(isinstance(v, str) for v in raw):
            return StringListValue(tuple(raw))
        if _is_image_attachment_list(list(raw)):
            return AttachmentListValue(
                tuple(Attachment.from_api(v) for v in raw if isinstance(v, Mapping))
            )
        return UnsupportedValue("list without image attachments")

    if _is_geocode_field(field_name, settings):
        if isinstance(raw, str):
            return EncodedGeocodeValue(raw)
        raise FieldTransformError(
            f"Geocode field {field_name!r} holds a {type(raw).__name__}, "
            f"expected an encoded string",
            code="geocode_invalid_type",
        )

    if isinstance(raw, str):
        return TextValue(raw)

    if isinstance(raw, (bool, int, float)):
        return NumberValue(raw)

    if raw is None or isinstance(raw, Mapping):
        return ObjectValue(raw)

    return UnsupportedValue(type(raw).__name__)


def decode_geocode(encoded: str) -> dict[str, Any]:
    """
    Decode an Airtable geocode cache value.

    The value looks like ``"🔵 eyJpIjoi..."``: a status prefix, a space, and
    base64 of JSON whose ``o`` object holds the geocoding result.

    Returns:
        {"formatted": str, "location": {"latitude": float, "longitude": float}}

    Raises:
        FieldTransformError: If the value is not well-formed
    """
    _, sep, blob = encoded.strip().partition(" ")
    if not sep or not blob.strip():
        raise FieldTransformError(
            f"Geocode value has no encoded payload: {encoded[:40]!r}",
            code="geocode_decode_failed",
        )

    blob = blob.strip()
    try:
        decoded = base64.b64decode(blob + "=" * (-len(blob) % 4), validate=True)
        payload = json.loads(decoded.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise FieldTransformError(
            f"Could not decode geocode value: {e}", code="geocode_decode_failed"
        ) from e

    result = payload.get("o") if isinstance(payload, Mapping) else None
    if not isinstance(result, Mapping):
        raise FieldTransformError(
            "Geocode payload has no 'o' object", code="geocode_decode_failed"
        )

    try:
        return {
            "formatted": result["formattedAddress"],
            "location": {"latitude": result["lat"], "longitude": result["lng"]},
        }
    except KeyError as e:
        raise FieldTransformError(
            f"Geocode payload is missing {e}", code="geocode_decode_failed"
        ) from e


def transform_value(
    field_name: str, value: FieldValue, settings: SyncSettings
) -> dict[str, Any]:
    """
    Transform one classified value into the target fields it produces.

    Returns:
        Mapping of target key to value; empty when the value is dropped

    Raises:
        FieldTransformError: If a geocode value cannot be decoded
    """
    key = normalize_field_name(field_name)
    if not key:
        logger.debug(f"Skipping field {field_name!r}: empty normalized name")
        return {}

    if isinstance(value, StringListValue):
        output: dict[str, Any] = {key: list(value.values)}
        if settings.shadow_tags_enabled and _has_marker(
            field_name, settings.tags_marker
        ):
            output[key + settings.shadow_suffix] = SHADOW_SEPARATOR.join(value.values)
        return output

    if isinstance(value, AttachmentListValue):
        return {
            key: [
                {"type": "image", "src": attachment.url}
                for attachment in value.attachments
            ]
        }

    if isinstance(value, EncodedGeocodeValue):
        return {key: decode_geocode(value.encoded)}

    if isinstance(value, (TextValue, NumberValue, ObjectValue)):
        if _has_marker(field_name, settings.address_marker):
            return {key: {"formatted": value.value}}
        return {key: value.value}

    logger.debug(f"Dropping field {field_name!r}: {value.reason}")
    return {}


def transform_fields(
    source_fields: Mapping[str, Any],
    target_data: Mapping[str, Any],
    settings: SyncSettings,
) -> dict[str, Any]:
    """
    Apply an Airtable field bag onto a Wix item's data.

    Target fields not produced by any source field are kept as they are.
    Two source names normalizing to the same key overwrite each other in
    source order.

    Args:
        source_fields: Airtable field bag
        target_data: Existing (or skeleton) Wix item data
        settings: Sync settings holding markers and shadow options

    Returns:
        A new dict; neither input is modified

    Raises:
        FieldTransformError: If a field cannot be transformed
    """
    result = dict(target_data)
    for field_name, raw in source_fields.items():
        value = classify_value(field_name, raw, settings)
        result.update(transform_value(field_name, value, settings))
    return result
