"""
Helpers for idempotent upserts keyed by the Hostfully listing UID.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal

from flask_app.importer.storage import ContentStore
from flask_app.models import ContentRecord, RecordType

LISTING_UID_META = "_hostfully_property_uid"


class MissingListingIdentifier(ValueError):
    """Raised when a payload cannot be resolved due to a missing listing UID."""

    def __init__(self, record_type: str) -> None:
        super().__init__(f"No Hostfully listing UID supplied for {record_type}. Idempotent upsert requires a UID.")
        self.record_type = record_type


@dataclass(frozen=True)
class ImportTarget:
    """
    Resolution outcome for an incoming listing.

    `action` values:
    - ``create``: no record carries the listing UID yet.
    - ``update``: a record with the listing UID exists and is updated in place.
    """

    action: Literal["create", "update"]
    record: ContentRecord | None

    @property
    def record_id(self) -> int | None:
        return self.record.id if self.record is not None else None


def resolve_import_target(store: ContentStore, *, record_type: str, listing_uid: str | None) -> ImportTarget:
    """Resolve the record a listing should be written to, using the UID back-reference."""
    if not listing_uid:
        raise MissingListingIdentifier(record_type)

    record = store.find_by_meta(record_type, LISTING_UID_META, listing_uid)
    if record is not None:
        return ImportTarget(action="update", record=record)
    return ImportTarget(action="create", record=None)


def imported_listing_uids(store: ContentStore) -> List[str]:
    """Every listing UID that already has an accommodation type."""
    return store.meta_values(RecordType.ROOM_TYPE.value, LISTING_UID_META)
