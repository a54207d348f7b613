"""
Import of a single Hostfully listing into the booking catalog.

One call fetches the listing detail and upserts the accommodation type, its
taxonomy terms, services, images, rate and unit. Only a failed detail fetch
or a failed accommodation-type write fails the whole unit; every later step
is best-effort and reports into the per-call log.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from sqlalchemy.exc import SQLAlchemyError

from flask_app.importer.adapters.hostfully import HostfullyAdapterError, HostfullyApiError
from flask_app.importer.adapters.hostfully.client import HostfullyClient
from flask_app.importer.log import ImportLog
from flask_app.importer.settings import ImporterSettings
from flask_app.importer.storage import ContentStore
from flask_app.models import RecordType

from .amenities import ListingAmenityResolver, assign_amenities
from .booking import DEFAULT_TITLE, BookingRecords
from .gallery import GalleryImporter
from .idempotency import LISTING_UID_META, resolve_import_target
from .resolve import OCCUPANCY_PATHS, coerce_number, first_text, resolve, round_half_up, value_at_path
from .taxonomy import TaxonomyMapper

logger = logging.getLogger(__name__)

DESCRIPTION_PATHS = (("description",), ("publicDescription",), ("summary",))
DEFAULT_ADULTS = 2


@dataclass
class ImportOutcome:
    """Result of one listing import; ``record_id == 0`` means the unit failed."""

    record_id: int
    created: bool
    log: ImportLog

    @property
    def ok(self) -> bool:
        return self.record_id > 0


def build_description(listing: Mapping[str, Any]) -> str:
    """Listing description, or a summary synthesized from type and location."""
    description = first_text(listing, DESCRIPTION_PATHS)
    if description:
        return description

    parts = [str(listing[key]) for key in ("listingType", "propertyType") if listing.get(key)]
    text = " • ".join(parts).strip()
    address = str(value_at_path(listing, ("address", "address")) or "")
    city = str(value_at_path(listing, ("address", "city")) or "")
    if address or city:
        text += "\n\nLocation: " + f"{address} {city}".strip()
    return text


class PropertyImporter:
    """Runs the per-listing import pipeline."""

    def __init__(
        self,
        client: HostfullyClient,
        store: ContentStore,
        mapper: TaxonomyMapper,
        amenity_resolver: ListingAmenityResolver,
        gallery: GalleryImporter,
        booking: BookingRecords,
        settings: ImporterSettings,
    ):
        self.client = client
        self.store = store
        self.mapper = mapper
        self.amenity_resolver = amenity_resolver
        self.gallery = gallery
        self.booking = booking
        self.settings = settings

    # Public API -----------------------------------------------------------------

    def import_listing(self, listing_uid: str) -> ImportOutcome:
        log = ImportLog(verbose=self.settings.verbose_log, uid=listing_uid)
        log.add("---")
        log.add(f"Importing property UID: {listing_uid}")
        log.debug(f"Import debug: started at {datetime.now(timezone.utc).isoformat()}")

        target = resolve_import_target(self.store, record_type=RecordType.ROOM_TYPE.value, listing_uid=listing_uid)
        log.add(f"Existing post ID: {target.record_id or 'none'}")

        listing = self._fetch_detail(listing_uid, log)
        if listing is None:
            return ImportOutcome(record_id=0, created=False, log=log)

        try:
            record_id = self._upsert_room_type(target.record_id, listing, log)
        except SQLAlchemyError as exc:
            self.store.session.rollback()
            logger.exception("Accommodation type write failed", extra={"hostfully_uid": listing_uid})
            log.add(f"Failed to create/update post: {exc}")
            return ImportOutcome(record_id=0, created=False, log=log)

        adults, children, daily_rate = self._write_core_meta(record_id, listing, log)

        self._best_effort("Description", log, self._write_description, record_id, listing)
        self._best_effort(
            "Amenities", log, assign_amenities, self.mapper, self.amenity_resolver, record_id, listing, log
        )
        self._best_effort("Categories/tags", log, self.mapper.assign_categories_and_tags, record_id, listing, log)
        self._best_effort("Attributes", log, self.mapper.assign_attributes, record_id, listing, log)
        self._best_effort("Services", log, self.booking.import_services, record_id, listing, log)
        self._best_effort("Featured image", log, self.gallery.import_featured, record_id, listing, log)

        gallery_ids = self._best_effort("Gallery", log, self.gallery.import_gallery, record_id, listing["uid"], log)
        self._best_effort(
            "Featured fallback", log, self.gallery.apply_featured_fallback, record_id, gallery_ids or [], log
        )

        rate_id = self._best_effort(
            "Rate", log, self.booking.upsert_rate, record_id, listing, daily_rate, adults, children, log
        )
        log.add(f"Rate linked OK: {rate_id}" if rate_id else "Rate not created (check logs).")

        unit_id = self._best_effort("Accommodation unit", log, self.booking.upsert_unit, record_id, listing, log)
        log.add(f"Accommodation unit linked OK: {unit_id}" if unit_id else "Accommodation unit not created (check logs).")

        log.debug(f"Import debug: completed at {datetime.now(timezone.utc).isoformat()}")
        return ImportOutcome(record_id=record_id, created=target.action == "create", log=log)

    # Internal helpers -----------------------------------------------------------

    def _fetch_detail(self, listing_uid: str, log: ImportLog) -> Mapping[str, Any] | None:
        try:
            response = self.client.get_property(listing_uid)
        except HostfullyApiError as exc:
            if exc.status:
                log.add(f"Detail invalid. HTTP: {exc.status}")
                log.add(f"Raw detail body: {exc.body}")
            else:
                log.add(f"Detail request failed: {exc}")
            return None
        except HostfullyAdapterError as exc:
            log.add(f"Detail request failed: {exc}")
            return None

        log.debug(f"Detail HTTP: {response.status} (bytes: {len(response.raw)}).")
        listing = response.data.get("property") if isinstance(response.data, Mapping) else None
        if response.status != 200 or not isinstance(listing, Mapping) or not listing.get("uid"):
            log.add(f"Detail invalid. HTTP: {response.status}")
            log.add(f"Raw detail body: {response.raw}")
            return None
        return listing

    def _upsert_room_type(self, record_id: int | None, listing: Mapping[str, Any], log: ImportLog) -> int:
        web_link = str(listing.get("webLink") or "")
        record = self.store.save_record(
            RecordType.ROOM_TYPE.value,
            record_id=record_id,
            title=str(listing.get("name") or DEFAULT_TITLE),
            body=f"Imported from Hostfully. Source: {web_link}" if web_link else "",
        )
        log.add(f"{'Updated' if record_id else 'Created'} accommodation type OK: {record.id}")
        self.store.set_meta(record.id, LISTING_UID_META, str(listing["uid"]))
        return record.id

    def _write_core_meta(self, record_id: int, listing: Mapping[str, Any], log: ImportLog) -> tuple[int, int, float]:
        occupancy = resolve(listing, OCCUPANCY_PATHS)
        adults = int(occupancy) if occupancy is not None else DEFAULT_ADULTS
        children = 0
        raw_rate = value_at_path(listing, ("pricing", "dailyRate"))
        daily_rate = coerce_number(raw_rate) or 0.0
        min_stay = value_at_path(listing, ("availability", "minimumStay"))
        max_stay = value_at_path(listing, ("availability", "maximumStay"))

        try:
            self.store.set_meta(record_id, "mphb_adults", adults)
            self.store.set_meta(record_id, "mphb_children", children)
            self.store.set_meta(record_id, "mphb_price", str(round_half_up(daily_rate)))
            if min_stay is not None:
                self.store.set_meta(record_id, "mphb_min_stay", int(coerce_number(min_stay) or 0))
            if max_stay is not None:
                self.store.set_meta(record_id, "mphb_max_stay", int(coerce_number(max_stay) or 0))
        except SQLAlchemyError as exc:
            self.store.session.rollback()
            log.add(f"Core meta write failed: {exc}")

        log.add(
            f"Adults: {adults} | Price: {raw_rate if raw_rate is not None else 0} | "
            f"Min: {'' if min_stay is None else min_stay} | Max: {'' if max_stay is None else max_stay}"
        )
        return adults, children, daily_rate

    def _write_description(self, record_id: int, listing: Mapping[str, Any]) -> None:
        description = build_description(listing)
        if description:
            self.store.update_body(record_id, description)

    def _best_effort(self, step: str, log: ImportLog, func: Callable[..., Any], *args: Any) -> Any:
        """Run one optional import step; failures are logged and the import continues."""
        try:
            return func(*args)
        except Exception as exc:
            if isinstance(exc, SQLAlchemyError):
                self.store.session.rollback()
            logger.exception("%s step failed", step, extra={"hostfully_uid": log.uid})
            log.add(f"{step} step failed: {exc}")
            return None
