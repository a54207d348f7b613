from __future__ import annotations

import pytest

from flask_app.importer.pipeline.booking import SEASON_PRICES_META
from flask_app.importer.pipeline.gallery import FEATURED_SOURCE_META, GALLERY_META, PHOTO_MAP_META
from flask_app.importer.pipeline.idempotency import (
    LISTING_UID_META,
    MissingListingIdentifier,
    imported_listing_uids,
    resolve_import_target,
)
from flask_app.importer.pipeline.property_import import build_description
from flask_app.importer.pipeline.queue import ALREADY_IMPORTED, ImportRequestError
from flask_app.importer.pipeline.taxonomy import AMENITY_TAXONOMY, CATEGORY_TAXONOMY
from flask_app.importer.storage import ContentStore
from flask_app.models import ContentRecord, MediaAttachment, RecordType

from .fakes import BEACH_HOUSE_UID, make_listing


def _records(record_type):
    return ContentRecord.query.filter_by(record_type=record_type).order_by(ContentRecord.id).all()


def test_beach_house_end_to_end(service_factory, beach_house, hostfully):
    service = service_factory()

    payload = service.queue.import_one(BEACH_HOUSE_UID)

    post_id = payload["post_id"]
    assert post_id > 0
    assert payload["progress"]["created"] == 1
    assert payload["progress"]["errors"] == 0
    assert payload["log"][-1].startswith("Summary: total 1, done 1, created 1, updated 0, errors 0, duration ")

    store = service.store
    room_type = store.get_record(post_id)
    assert room_type.title == "Beach House"
    assert room_type.body == "Steps from the sand."
    assert store.get_meta(post_id, LISTING_UID_META) == BEACH_HOUSE_UID
    assert store.get_meta(post_id, "mphb_price") == "150"
    assert store.get_meta(post_id, "mphb_adults") == 4
    assert store.get_meta(post_id, "mphb_children") == 0
    assert store.get_meta(post_id, "mphb_min_stay") == 2
    assert store.get_meta(post_id, "mphb_max_stay") == 30
    assert "Adults: 4 | Price: 150 | Min: 2 | Max: 30" in payload["log"]

    amenity_names = [
        store.get_term(term_id).name
        for term_id in store.record_term_ids(post_id, service.mapper.taxonomy(AMENITY_TAXONOMY))
    ]
    assert amenity_names == ["WiFi", "Air Conditioning"]
    categories = store.record_term_ids(post_id, service.mapper.taxonomy(CATEGORY_TAXONOMY))
    assert [store.get_term(term_id).name for term_id in categories] == ["HOUSE"]
    assert "Attributes assigned: Bedrooms: 2, Bathrooms: 1.5, Beds: 3, Guests: 4" in payload["log"]

    (rate,) = _records(RecordType.RATE.value)
    assert rate.title == "Standard – Beach House"
    assert store.get_meta(rate.id, "mphb_price") == "150"
    assert store.get_meta(rate.id, "mphb_currency") == "USD"
    assert store.get_meta(rate.id, "mphb_room_type_id") == post_id
    (season_row,) = store.get_meta(rate.id, SEASON_PRICES_META)
    assert season_row["price"]["prices"] == [150.0]
    assert season_row["price"]["base_adults"] == 4

    (unit,) = _records(RecordType.ROOM.value)
    assert unit.title == "Unit 1 – Beach House"
    assert store.get_meta(unit.id, "mphb_room_type") == post_id

    (season,) = _records(RecordType.SEASON.value)
    assert season.title == "All Year"
    assert store.get_meta(season.id, "mphb_repeat_type") == "annually"

    (service_record,) = _records(RecordType.SERVICE.value)
    assert service_record.title == "Cleaning Fee"
    assert store.get_meta(post_id, "mphb_services") == [str(service_record.id)]

    assert room_type.thumbnail_id is not None
    assert store.get_meta(post_id, FEATURED_SOURCE_META) == beach_house["pictureLink"]
    gallery = store.get_meta(post_id, GALLERY_META).split(",")
    photo_map = store.get_meta(post_id, PHOTO_MAP_META)
    assert gallery == [str(photo_map[f"{BEACH_HOUSE_UID}-p1"]), str(photo_map[f"{BEACH_HOUSE_UID}-p2"])]
    assert MediaAttachment.query.count() == 3

    assert service.imported_uids() == [BEACH_HOUSE_UID]


def test_reimport_updates_in_place_without_new_downloads(service_factory, beach_house, hostfully):
    service = service_factory()
    first = service.queue.import_one(BEACH_HOUSE_UID)
    downloads = len([call for call in hostfully.calls if call["url"].startswith("https://img.example.test")])

    second = service.queue.import_one(BEACH_HOUSE_UID, update_existing=True)

    assert second["post_id"] == first["post_id"]
    assert second["progress"]["updated"] == 1
    assert second["progress"]["created"] == 0
    assert f"Existing post ID: {first['post_id']}" in second["log"]
    assert "Featured image unchanged; keeping attachment ID: " in " ".join(second["log"])
    assert len(_records(RecordType.ROOM_TYPE.value)) == 1
    assert len(_records(RecordType.RATE.value)) == 1
    assert len(_records(RecordType.ROOM.value)) == 1
    assert len(_records(RecordType.SERVICE.value)) == 1
    assert len(service.store.get_meta(_records(RecordType.RATE.value)[0].id, SEASON_PRICES_META)) == 1
    assert MediaAttachment.query.count() == 3
    assert len([call for call in hostfully.calls if call["url"].startswith("https://img.example.test")]) == downloads


def test_already_imported_is_rejected_without_update_flag(service_factory, beach_house):
    service = service_factory()
    service.queue.import_one(BEACH_HOUSE_UID)

    with pytest.raises(ImportRequestError, match="already imported"):
        service.queue.import_one(BEACH_HOUSE_UID)
    assert ALREADY_IMPORTED.startswith("That property is already imported.")


def test_failed_detail_fetch_fails_the_unit(service_factory, hostfully):
    hostfully.add("/properties/missing", {"message": "Property not found"}, status=404)
    service = service_factory()

    payload = service.queue.import_one("missing")

    assert payload["post_id"] == 0
    assert payload["progress"]["errors"] == 1
    assert "Detail invalid. HTTP: 404" in payload["log"]
    assert ContentRecord.query.count() == 0


def test_detail_without_property_object_is_invalid(service_factory, hostfully):
    hostfully.add("/properties/empty", {"unexpected": True})
    service = service_factory()

    outcome = service.importer.import_listing("empty")

    assert not outcome.ok
    assert "Detail invalid. HTTP: 200" in outcome.log.lines


def test_optional_step_failure_does_not_fail_the_unit(service_factory, beach_house, monkeypatch):
    service = service_factory()

    def broken(*args, **kwargs):
        raise RuntimeError("tag service down")

    monkeypatch.setattr(service.mapper, "assign_categories_and_tags", broken)

    outcome = service.importer.import_listing(BEACH_HOUSE_UID)

    assert outcome.ok
    assert "Categories/tags step failed: tag service down" in outcome.log.lines
    assert any(line.startswith("Rate linked OK: ") for line in outcome.log.lines)


def test_listing_without_optional_fields(service_factory, hostfully):
    listing = {"uid": "bare", "name": "", "availability": {}, "pricing": {}}
    hostfully.add_listing(listing)
    service = service_factory()

    outcome = service.importer.import_listing("bare")

    assert outcome.ok
    record = service.store.get_record(outcome.record_id)
    assert record.title == "Imported Property"
    assert service.store.get_meta(outcome.record_id, "mphb_adults") == 2
    assert service.store.get_meta(outcome.record_id, "mphb_price") == "0"
    assert "Featured image URL: (none provided by Hostfully)" in outcome.log.lines
    assert "Services: none found in Hostfully pricing." in outcome.log.lines
    assert "No gallery images imported." in outcome.log.lines


def test_build_description_synthesizes_from_type_and_location():
    listing = make_listing(description="", propertyType="VILLA", listingType="ENTIRE_HOME")
    assert build_description(listing) == "ENTIRE_HOME • VILLA\n\nLocation: 1 Ocean Drive Cape Town"


def test_resolve_import_target_requires_uid(app):
    with pytest.raises(MissingListingIdentifier):
        resolve_import_target(ContentStore(), record_type=RecordType.ROOM_TYPE.value, listing_uid="")


def test_imported_listing_uids_ignores_other_record_types(app):
    store = ContentStore()
    rate = store.save_record(RecordType.RATE.value, title="Standard")
    store.set_meta(rate.id, LISTING_UID_META, "rate-only")
    room_type = store.save_record(RecordType.ROOM_TYPE.value, title="Villa")
    store.set_meta(room_type.id, LISTING_UID_META, "villa")

    assert imported_listing_uids(store) == ["villa"]


def test_non_finite_numbers_do_not_fail_the_listing(service_factory, hostfully):
    hostfully.add_listing(
        make_listing(
            availability={"maxGuests": float("inf"), "minimumStay": 2, "maximumStay": float("inf")},
            pricing={"dailyRate": float("inf"), "currency": "USD"},
        )
    )
    service = service_factory()

    payload = service.queue.import_one(BEACH_HOUSE_UID)

    post_id = payload["post_id"]
    assert payload["progress"]["errors"] == 0
    assert service.store.get_meta(post_id, "mphb_adults") == 2
    assert service.store.get_meta(post_id, "mphb_price") == "0"
    assert service.store.get_meta(post_id, "mphb_max_stay") == 0
