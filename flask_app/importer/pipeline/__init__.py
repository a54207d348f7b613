"""Importer pipeline helpers."""

from __future__ import annotations

from .catalog import CatalogSynchronizer, CatalogSyncResult
from .idempotency import LISTING_UID_META, ImportTarget, imported_listing_uids, resolve_import_target
from .property_import import ImportOutcome, PropertyImporter
from .queue import ImportQueue, ImportRequestError, extract_uuids
from .resolve import extract_attribute_values, resolve
from .taxonomy import TaxonomyMapper, prettify_amenity_code

__all__ = [
    "CatalogSynchronizer",
    "CatalogSyncResult",
    "ImportOutcome",
    "ImportQueue",
    "ImportRequestError",
    "ImportTarget",
    "LISTING_UID_META",
    "PropertyImporter",
    "TaxonomyMapper",
    "extract_attribute_values",
    "extract_uuids",
    "imported_listing_uids",
    "prettify_amenity_code",
    "resolve",
    "resolve_import_target",
]
