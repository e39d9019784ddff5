"""
airbasix - One-way Airtable to Wix Data synchronization.

Mirrors the records of a single Airtable view into a Wix Data collection,
treating Airtable as the source of truth.
"""

__version__ = "0.1.0"
