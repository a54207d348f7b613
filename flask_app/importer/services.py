"""
Wiring for the Hostfully import components.

``build_import_service`` assembles the client, stores, mapper and pipeline
objects for the current app so views, the RPC endpoint and the CLI all share
one construction path.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

import requests
from flask import Flask, current_app

from .adapters.hostfully import HostfullyAdapterReadiness, check_hostfully_adapter_readiness
from .adapters.hostfully.client import HostfullyClient
from .log import ImportLog
from .metrics import record_hostfully_adapter_status
from .pipeline.amenities import ListingAmenityResolver
from .pipeline.booking import BookingRecords
from .pipeline.catalog import CatalogSynchronizer
from .pipeline.gallery import GalleryImporter
from .pipeline.idempotency import imported_listing_uids
from .pipeline.property_import import PropertyImporter
from .pipeline.queue import ImportQueue
from .pipeline.taxonomy import TaxonomyMapper
from .settings import ImporterSettings, load_settings
from .state import ImporterState, OptionStateStore, StateStore
from .storage import ContentStore
from .utils import MediaLibrary, resolve_media_directory

HTTP_SESSION_KEY = "http_session"


@dataclass
class HostfullyImportService:
    settings: ImporterSettings
    state: ImporterState
    store: ContentStore
    client: HostfullyClient
    mapper: TaxonomyMapper
    catalog: CatalogSynchronizer
    importer: PropertyImporter
    queue: ImportQueue

    def new_log(self, uid: str | None = None) -> ImportLog:
        return ImportLog(verbose=self.settings.verbose_log, uid=uid)

    def sync_amenities(self) -> Dict[str, Any]:
        log = self.new_log()
        result = self.catalog.sync_catalog_safe(log)
        counts = result.as_dict()
        return {**counts, "result": counts, "log": log.lines}

    def imported_uids(self) -> List[str]:
        return imported_listing_uids(self.store)

    def readiness(self, *, ping: bool = False) -> HostfullyAdapterReadiness:
        readiness = check_hostfully_adapter_readiness(self.settings, client=self.client if ping else None)
        record_hostfully_adapter_status(readiness.status == "ready")
        return readiness


def _http_session(app: Flask) -> requests.Session:
    """Return the app-wide HTTP session, creating it on first use."""
    extension_state = app.extensions.setdefault("importer", {})
    session = extension_state.get(HTTP_SESSION_KEY)
    if session is None:
        session = requests.Session()
        extension_state[HTTP_SESSION_KEY] = session
    return session


def build_import_service(app: Flask | None = None, *, state_store: StateStore | None = None) -> HostfullyImportService:
    """Construct the import service for ``app`` (defaults to ``current_app``)."""
    app = app or current_app._get_current_object()
    state = ImporterState(state_store or OptionStateStore())
    settings = load_settings(app.config, state.saved_settings())
    http_session = _http_session(app)

    store = ContentStore()
    client = HostfullyClient(
        settings,
        session=http_session,
        timeout=int(app.config.get("HOSTFULLY_REQUEST_TIMEOUT", 30)),
        logger=app.logger,
    )
    mapper = TaxonomyMapper(store, state)
    media = MediaLibrary(
        store,
        resolve_media_directory(app),
        session=http_session,
        timeout=int(app.config.get("HOSTFULLY_DOWNLOAD_TIMEOUT", 20)),
        logger=app.logger,
    )
    importer = PropertyImporter(
        client,
        store,
        mapper,
        ListingAmenityResolver(client, state, settings),
        GalleryImporter(client, store, media, max_photos=settings.max_photos),
        BookingRecords(store),
        settings,
    )
    catalog = CatalogSynchronizer(
        client,
        mapper,
        state,
        settings,
        throttle_seconds=float(app.config.get("HOSTFULLY_THROTTLE_SECONDS", 0.15)),
    )
    queue = ImportQueue(
        state,
        importer,
        settings,
        list_uids=client.list_property_uids,
        imported_uids=lambda: imported_listing_uids(store),
    )
    return HostfullyImportService(
        settings=settings,
        state=state,
        store=store,
        client=client,
        mapper=mapper,
        catalog=catalog,
        importer=importer,
        queue=queue,
    )
