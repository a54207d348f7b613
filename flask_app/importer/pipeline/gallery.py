"""
Featured image and photo gallery import for one listing.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

from flask_app.importer.adapters.hostfully import HostfullyAdapterError
from flask_app.importer.adapters.hostfully.client import HostfullyClient, extract_page_items
from flask_app.importer.log import ImportLog
from flask_app.importer.storage import ContentStore
from flask_app.importer.utils import MediaDownloadError, MediaLibrary

from .resolve import coerce_number

PHOTO_MAP_META = "_hostfully_photo_map"
GALLERY_META = "mphb_gallery"
FEATURED_SOURCE_META = "_hostfully_featured_source"
PHOTO_URL_KEYS = ("largeScaleImageUrl", "mediumScaleImageUrl", "originalImageUrl")


def photo_url(photo: Mapping[str, Any]) -> str:
    for key in PHOTO_URL_KEYS:
        value = photo.get(key)
        if isinstance(value, str) and value:
            return value
    return ""


def sort_photos(photos: List[Any]) -> List[Mapping[str, Any]]:
    """Order photos by ``displayOrder`` (missing counts as 0); ties keep API order."""
    mappings = [photo for photo in photos if isinstance(photo, Mapping)]
    return sorted(mappings, key=lambda photo: int(coerce_number(photo.get("displayOrder")) or 0))


class GalleryImporter:
    """Downloads listing images, skipping photos that were imported before."""

    def __init__(self, client: HostfullyClient, store: ContentStore, media: MediaLibrary, *, max_photos: int):
        self.client = client
        self.store = store
        self.media = media
        self.max_photos = max_photos

    def import_featured(self, record_id: int, listing: Mapping[str, Any], log: ImportLog) -> int | None:
        picture_url = str(listing.get("pictureLink") or "")
        if not picture_url:
            log.add("Featured image URL: (none provided by Hostfully)")
            return None
        log.add(f"Featured image URL: {picture_url}")

        current = self.store.thumbnail_id(record_id)
        if (
            current
            and self.store.get_meta(record_id, FEATURED_SOURCE_META) == picture_url
            and self.store.get_attachment(current) is not None
        ):
            log.add(f"Featured image unchanged; keeping attachment ID: {current}")
            return current

        listing_uid = str(listing.get("uid") or record_id)
        try:
            attachment_id = self.media.sideload(
                picture_url,
                parent_record_id=record_id,
                filename=f"hostfully-featured-{listing_uid}.jpg",
            )
        except MediaDownloadError as exc:
            log.add(f"Download failed: {exc}")
            return None

        self.store.set_thumbnail(record_id, attachment_id)
        self.store.set_meta(record_id, FEATURED_SOURCE_META, picture_url)
        log.add(f"Featured image imported attachment ID: {attachment_id}")
        return attachment_id

    def import_gallery(self, record_id: int, listing_uid: str, log: ImportLog) -> List[int]:
        """
        Import up to ``max_photos`` photos in display order.

        Photos already present in the record's photo map reuse their attachment
        and count toward the cap. The photo map is saved even when nothing new
        was downloaded.
        """
        photo_map: Dict[str, int] = {}
        stored_map = self.store.get_meta(record_id, PHOTO_MAP_META, {})
        if isinstance(stored_map, dict):
            photo_map = {str(uid): int(attachment_id) for uid, attachment_id in stored_map.items() if attachment_id}

        gallery_ids: List[int] = []
        try:
            response = self.client.get_photos(listing_uid)
        except HostfullyAdapterError as exc:
            log.add(f"Photos URL: {getattr(exc, 'url', '')}")
            log.add(f"Photos request failed: {exc}")
        else:
            log.add(f"Photos URL: {response.url}")
            photos = extract_page_items(response.data, ("photos",))
            log.add(f"Photos HTTP: {response.status} | Count: {len(photos)}")
            log.debug(f"Photos response bytes: {len(response.raw)}.")
            gallery_ids = self._import_photos(record_id, sort_photos(photos), photo_map, log)

        self.store.set_meta(record_id, PHOTO_MAP_META, photo_map)

        unique_ids: List[int] = []
        for attachment_id in gallery_ids:
            if attachment_id not in unique_ids:
                unique_ids.append(attachment_id)
        if unique_ids:
            joined = ",".join(str(attachment_id) for attachment_id in unique_ids)
            self.store.set_meta(record_id, GALLERY_META, joined)
            log.add(f"Saved mphb_gallery: {joined}")
        else:
            log.add("No gallery images imported.")
        return unique_ids

    def apply_featured_fallback(self, record_id: int, gallery_ids: List[int], log: ImportLog) -> None:
        if self.store.thumbnail_id(record_id) or not gallery_ids:
            return
        self.store.set_thumbnail(record_id, gallery_ids[0])
        log.add(f"Featured image fallback set to first gallery image attachment ID: {gallery_ids[0]}")

    def _import_photos(
        self,
        record_id: int,
        photos: List[Mapping[str, Any]],
        photo_map: Dict[str, int],
        log: ImportLog,
    ) -> List[int]:
        gallery_ids: List[int] = []
        count = 0
        for photo in photos:
            if count >= self.max_photos:
                log.debug(f"Gallery truncated to max_photos={self.max_photos}.")
                break

            photo_uid = str(photo.get("uid") or "")
            mapped = photo_map.get(photo_uid) if photo_uid else None
            if mapped and self.store.get_attachment(mapped) is not None:
                gallery_ids.append(mapped)
                log.add(f"Gallery skip (already imported): {photo_uid} => attachment {mapped}")
                count += 1
                continue

            url = photo_url(photo)
            if not url:
                log.add("Gallery skip: no URL")
                continue

            log.add(f"Downloading gallery photo {count + 1}: {url}")
            try:
                attachment_id = self.media.sideload(
                    url,
                    parent_record_id=record_id,
                    filename=f"hostfully-{photo_uid or record_id}.jpg",
                )
            except MediaDownloadError as exc:
                log.add(f"Download failed: {exc}")
                continue

            gallery_ids.append(attachment_id)
            if photo_uid:
                photo_map[photo_uid] = attachment_id
            log.add(f"Imported gallery attachment ID: {attachment_id}")
            count += 1
        return gallery_ids
