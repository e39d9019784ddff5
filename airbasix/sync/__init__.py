"""
airbasix.sync - Field mapping and reconciliation

Transforms Airtable records into Wix Data items and keeps the target
collection in step with the source table.
"""
