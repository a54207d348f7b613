"""
Importer-specific utilities for media storage.
"""

from __future__ import annotations

import logging
from pathlib import Path
from uuid import uuid4

import requests
from werkzeug.utils import secure_filename

DEFAULT_MEDIA_SUBDIR = "importer_media"
DEFAULT_DOWNLOAD_TIMEOUT = 20


class MediaDownloadError(RuntimeError):
    """Raised when a remote image cannot be downloaded or stored."""


def _normalize_media_dir(configured_path: str | None, instance_path: str, *, default_subdir: str) -> Path:
    if not configured_path:
        return Path(instance_path) / default_subdir

    candidate = Path(configured_path)
    if candidate.is_absolute():
        return candidate

    return Path(instance_path) / candidate


def resolve_media_directory(app) -> Path:
    """
    Determine and create (if necessary) the directory imported images are written to.
    """

    media_dir = _normalize_media_dir(
        app.config.get("IMPORTER_MEDIA_DIR"),
        app.instance_path,
        default_subdir=DEFAULT_MEDIA_SUBDIR,
    )
    media_dir.mkdir(parents=True, exist_ok=True)
    return media_dir


class MediaLibrary:
    """Downloads remote images into the media directory and records attachments."""

    def __init__(
        self,
        store,
        media_dir: Path,
        *,
        session: requests.Session | None = None,
        timeout: int = DEFAULT_DOWNLOAD_TIMEOUT,
        logger: logging.Logger | None = None,
    ):
        self.store = store
        self.media_dir = Path(media_dir)
        self.session = session or requests.Session()
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

    def _target_path(self, filename: str) -> Path:
        name = secure_filename(filename) or f"{uuid4().hex}.jpg"
        target = self.media_dir / name
        if target.exists():
            target = self.media_dir / f"{uuid4().hex[:8]}-{name}"
        return target

    def sideload(self, url: str, *, parent_record_id: int | None, filename: str) -> int:
        """
        Download ``url`` and register it as a media attachment.

        Returns the new attachment id. Raises ``MediaDownloadError`` on any
        transport, HTTP or filesystem failure.
        """
        if not url:
            raise MediaDownloadError("No image URL supplied.")
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise MediaDownloadError(f"Download failed for {url}: {exc}") from exc

        content = response.content or b""
        if not content:
            raise MediaDownloadError(f"Download returned an empty body for {url}.")

        self.media_dir.mkdir(parents=True, exist_ok=True)
        target = self._target_path(filename)
        try:
            target.write_bytes(content)
        except OSError as exc:
            raise MediaDownloadError(f"Could not write {target}: {exc}") from exc

        mime_type = (response.headers or {}).get("Content-Type") or "image/jpeg"
        attachment = self.store.create_attachment(
            parent_record_id=parent_record_id,
            filename=target.name,
            file_path=str(target),
            source_url=url,
            mime_type=mime_type.split(";", 1)[0].strip(),
            size_bytes=len(content),
        )
        self.logger.debug("Importer media stored at %s", target)
        return int(attachment.id)
