"""
Field name normalization for Airtable to Wix field mapping.

Airtable field names are free text ("Image Gallery", "In/Out Date"), while
Wix Data field keys are camelCase identifiers. Every source field name is
run through normalize_field_name to produce its target key.
"""

from __future__ import annotations

import re

# Runs of anything other than lowercase letters, digits and underscores
# separate words
_WORD_BOUNDARY = re.compile(r"[^a-z0-9_]+")


def normalize_field_name(name: str) -> str:
    """
    Normalize an Airtable field name into a Wix field key.

    The name is lower-cased, "/" characters are stripped, and the result
    is camel-cased on word boundaries. Underscores are word characters,
    so "first_name" keeps its underscore.

    Args:
        name: Source field name

    Returns:
        Normalized field key, or "" if the name has no word characters

    Example:
        >>> normalize_field_name("Image Gallery")
        'imageGallery'
        >>> normalize_field_name("In/Out Date")
        'inoutDate'
    """
    if not name:
        return ""

    lowered = name.lower().replace("/", "")
    words = [w for w in _WORD_BOUNDARY.split(lowered) if w]
    if not words:
        return ""

    return words[0] + "".join(w[:1].upper() + w[1:] for w in words[1:])
