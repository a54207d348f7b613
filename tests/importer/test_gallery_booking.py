from __future__ import annotations

from datetime import date

import pytest

from flask_app.importer.adapters.hostfully.client import HostfullyClient
from flask_app.importer.log import ImportLog
from flask_app.importer.pipeline.booking import SERVICES_META, BookingRecords, build_season_price
from flask_app.importer.pipeline.gallery import GALLERY_META, PHOTO_MAP_META, GalleryImporter, sort_photos
from flask_app.importer.settings import ImporterSettings
from flask_app.importer.storage import ContentStore
from flask_app.importer.utils import MediaDownloadError, MediaLibrary
from flask_app.models import MediaAttachment, RecordType

from .fakes import BASE_URL, FakeHostfully


@pytest.fixture
def store(app):
    return ContentStore()


@pytest.fixture
def room_type(store):
    return store.save_record(RecordType.ROOM_TYPE.value, title="Beach House")


def _photos(count):
    return [
        {"uid": f"p{index}", "displayOrder": index, "largeScaleImageUrl": f"https://img.example.test/{index}.jpg"}
        for index in range(1, count + 1)
    ]


def _gallery(store, fake, tmp_path, max_photos=20):
    settings = ImporterSettings(api_key="key", agency_uid="agency", base_url=BASE_URL)
    client = HostfullyClient(settings, session=fake)
    media = MediaLibrary(store, tmp_path / "media", session=fake)
    return GalleryImporter(client, store, media, max_photos=max_photos)


def _downloads(fake):
    return [call for call in fake.calls if call["url"].startswith("https://img.example.test")]


class TestGallery:
    def test_sort_photos_by_display_order(self):
        photos = [{"uid": "b", "displayOrder": "3"}, {"uid": "a"}, "junk", {"uid": "c", "displayOrder": 1}]
        assert [photo["uid"] for photo in sort_photos(photos)] == ["a", "c", "b"]

    def test_gallery_is_capped_at_max_photos(self, store, room_type, tmp_path):
        fake = FakeHostfully()
        fake.add_listing({"uid": "L1"}, _photos(5))
        gallery = _gallery(store, fake, tmp_path, max_photos=3)

        ids = gallery.import_gallery(room_type.id, "L1", ImportLog())

        assert len(ids) == 3
        assert store.get_meta(room_type.id, GALLERY_META) == ",".join(str(value) for value in ids)
        assert sorted(store.get_meta(room_type.id, PHOTO_MAP_META)) == ["p1", "p2", "p3"]
        assert len(_downloads(fake)) == 3

    def test_known_photos_are_reused(self, store, room_type, tmp_path):
        fake = FakeHostfully()
        fake.add_listing({"uid": "L1"}, _photos(2))
        gallery = _gallery(store, fake, tmp_path)
        first = gallery.import_gallery(room_type.id, "L1", ImportLog())

        log = ImportLog()
        second = gallery.import_gallery(room_type.id, "L1", log)

        assert second == first
        assert len(_downloads(fake)) == 2
        assert f"Gallery skip (already imported): p1 => attachment {first[0]}" in log.lines

    def test_missing_attachment_is_downloaded_again(self, store, room_type, tmp_path):
        fake = FakeHostfully()
        fake.add_listing({"uid": "L1"}, _photos(1))
        gallery = _gallery(store, fake, tmp_path)
        store.set_meta(room_type.id, PHOTO_MAP_META, {"p1": 999})

        ids = gallery.import_gallery(room_type.id, "L1", ImportLog())

        assert ids != [999]
        assert store.get_meta(room_type.id, PHOTO_MAP_META) == {"p1": ids[0]}

    def test_failed_download_is_skipped(self, store, room_type, tmp_path):
        fake = FakeHostfully()
        photos = _photos(2)
        fake.add_listing({"uid": "L1"}, photos)
        del fake.images[photos[0]["largeScaleImageUrl"]]
        gallery = _gallery(store, fake, tmp_path)
        log = ImportLog()

        ids = gallery.import_gallery(room_type.id, "L1", log)

        assert len(ids) == 1
        assert any(line.startswith("Download failed: ") for line in log.lines)

    def test_photo_without_url_is_skipped(self, store, room_type, tmp_path):
        fake = FakeHostfully()
        fake.add_listing({"uid": "L1"}, [{"uid": "p1"}])
        log = ImportLog()

        assert _gallery(store, fake, tmp_path).import_gallery(room_type.id, "L1", log) == []
        assert "Gallery skip: no URL" in log.lines
        assert log.lines[-1] == "No gallery images imported."

    def test_photos_request_failure_still_saves_photo_map(self, store, room_type, tmp_path):
        fake = FakeHostfully()
        fake.add("/photos", {"message": "boom"}, status=500)
        log = ImportLog()

        assert _gallery(store, fake, tmp_path).import_gallery(room_type.id, "L1", log) == []
        assert "Photos request failed: boom" in log.lines
        assert store.get_meta(room_type.id, PHOTO_MAP_META) == {}

    def test_featured_fallback_uses_first_gallery_image(self, store, room_type, tmp_path):
        gallery = _gallery(store, FakeHostfully(), tmp_path)
        log = ImportLog()

        gallery.apply_featured_fallback(room_type.id, [42, 43], log)
        gallery.apply_featured_fallback(room_type.id, [99], log)

        assert store.thumbnail_id(room_type.id) == 42
        assert log.lines == ["Featured image fallback set to first gallery image attachment ID: 42"]

    def test_sideload_rejects_empty_body(self, store, tmp_path):
        fake = FakeHostfully()
        fake.images["https://img.example.test/empty.jpg"] = b""
        media = MediaLibrary(store, tmp_path, session=fake)

        with pytest.raises(MediaDownloadError, match="empty body"):
            media.sideload("https://img.example.test/empty.jpg", parent_record_id=None, filename="empty.jpg")
        assert MediaAttachment.query.count() == 0

    def test_sideload_writes_file_and_attachment(self, store, tmp_path):
        fake = FakeHostfully()
        fake.images["https://img.example.test/a.jpg"] = b"\xff\xd8data"
        media = MediaLibrary(store, tmp_path, session=fake)

        first = media.sideload("https://img.example.test/a.jpg", parent_record_id=None, filename="a.jpg")
        second = media.sideload("https://img.example.test/a.jpg", parent_record_id=None, filename="a.jpg")

        attachments = [store.get_attachment(first), store.get_attachment(second)]
        assert attachments[0].filename == "a.jpg"
        assert attachments[1].filename != "a.jpg"
        assert attachments[0].mime_type == "image/jpeg"
        assert (tmp_path / "a.jpg").read_bytes() == b"\xff\xd8data"


class TestBookingRecords:
    @pytest.fixture
    def booking(self, store):
        return BookingRecords(store, today=lambda: date(2026, 3, 1))

    def test_build_season_price(self):
        payload = build_season_price(99, 3, 1)
        assert payload["prices"] == [99.0]
        assert (payload["base_adults"], payload["base_children"]) == (3, 1)
        assert payload["enable_variations"] is False

    def test_auto_created_season_spans_the_year(self, booking, store):
        log = ImportLog()

        season_id = booking.default_season_id(log)

        assert store.get_record(season_id).slug == "all-year"
        assert store.get_meta(season_id, "mphb_start_date") == "2026-01-01"
        assert store.get_meta(season_id, "mphb_end_date") == "2026-12-31"
        assert store.get_meta(season_id, "mphb_days") == ["0", "1", "2", "3", "4", "5", "6"]
        assert store.get_meta(season_id, "mphb_repeat_until_date") == ""
        assert log.lines[-1] == f'Season price: auto-created season "All Year" (ID {season_id}).'

    def test_all_year_season_is_preferred(self, booking, store):
        store.save_record(RecordType.SEASON.value, title="Autumn")
        all_year = store.save_record(RecordType.SEASON.value, title="Whole year", slug="all-year-2026")

        assert booking.default_season_id(ImportLog()) == all_year.id

    def test_first_season_by_title_otherwise(self, booking, store):
        store.save_record(RecordType.SEASON.value, title="Winter")
        autumn = store.save_record(RecordType.SEASON.value, title="Autumn")

        assert booking.default_season_id(ImportLog()) == autumn.id

    def test_existing_season_meta_is_kept(self, booking, store):
        season = store.save_record(RecordType.SEASON.value, title="All Year")
        store.set_meta(season.id, "mphb_start_date", "2020-06-01")
        store.set_meta(season.id, "mphb_repeat_until_date", "2030-01-01")

        booking.ensure_all_year_meta(season.id, ImportLog())

        assert store.get_meta(season.id, "mphb_start_date") == "2020-06-01"
        assert store.get_meta(season.id, "mphb_end_date") == "2026-12-31"
        assert store.get_meta(season.id, "mphb_repeat_until_date") == "2030-01-01"

    def test_complete_season_meta_logs_nothing(self, booking, store):
        season = store.save_record(RecordType.SEASON.value, title="All Year")
        booking.ensure_all_year_meta(season.id, ImportLog())
        log = ImportLog()

        booking.ensure_all_year_meta(season.id, log)

        assert log.lines == []

    def test_season_price_row_is_replaced_not_duplicated(self, booking, store):
        rate = store.save_record(RecordType.RATE.value, title="Standard")
        store.set_meta(rate.id, "mphb_season_prices", [{"season": "7", "price": {"prices": [10.0]}}])

        booking.upsert_season_price(rate.id, 3, 100, 2, 0, ImportLog())
        booking.upsert_season_price(rate.id, 3, 120, 2, 0, ImportLog())

        rows = store.get_meta(rate.id, "mphb_season_prices")
        assert [row["season"] for row in rows] == ["7", "3"]
        assert rows[1]["price"]["prices"] == [120.0]

    def test_services_are_shared_and_merged(self, booking, store, room_type):
        store.set_meta(room_type.id, SERVICES_META, ["77"])
        listing = {"pricing": {"cleaningFee": 50, "securityDeposit": "200.5", "extraGuestFee": 0}}

        first = booking.import_services(room_type.id, listing, ImportLog())
        second = booking.import_services(room_type.id, listing, ImportLog())

        assert first == second
        assert len(store.records_of_type(RecordType.SERVICE.value)) == 2
        assert store.get_meta(first[1], "mphb_price") == "201"
        assert store.get_meta(room_type.id, SERVICES_META) == ["77", *[str(value) for value in first]]

    def test_rate_without_listing_uid_is_skipped(self, booking, room_type):
        assert booking.upsert_rate(room_type.id, {"name": "x"}, 10, 2, 0, ImportLog()) == 0
        assert booking.upsert_unit(room_type.id, {"name": "x"}, ImportLog()) == 0

    def test_rate_currency_defaults(self, booking, store, room_type):
        rate_id = booking.upsert_rate(room_type.id, {"uid": "L1", "name": "Villa"}, 80, 2, 0, ImportLog())

        assert store.get_meta(rate_id, "mphb_currency") == "ZAR"
        assert store.get_meta(rate_id, "mphb_room_type") == room_type.id
        assert store.get_meta(rate_id, "_mphb_room_type_id") == room_type.id
