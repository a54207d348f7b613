"""
Amenity catalog synchronization.

The global ``/amenities`` catalog is paged into the amenities taxonomy. Some
Hostfully accounts refuse that endpoint without a property scope; the safe
entry point then derives the catalog from every listing's amenities instead.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping

from flask_app.importer.adapters.hostfully import HostfullyAdapterError, HostfullyApiError
from flask_app.importer.adapters.hostfully.client import HostfullyClient, extract_page_items
from flask_app.importer.log import ImportLog
from flask_app.importer.metrics import record_catalog_sync
from flask_app.importer.settings import ImporterSettings
from flask_app.importer.state import ImporterState

from .amenities import AVAILABLE_AMENITIES, AmenityItem, passes_channel_policy
from .taxonomy import TaxonomyMapper, prettify_amenity_code

FALLBACK_CACHE_NAMESPACE = "avail_amen"
FALLBACK_CALL_LIMIT = 1000
VERBOSE_CALLS = 3
ERROR_REQUIRES_SCOPE = "requires_property_or_hotel"
ERROR_REQUEST_FAILED = "request_failed"


@dataclass
class CatalogSyncResult:
    created: int = 0
    updated: int = 0
    total: int = 0
    error: str | None = None

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"created": self.created, "updated": self.updated, "total": self.total}
        if self.error:
            payload["error"] = self.error
        return payload


class CatalogSynchronizer:
    """Keeps the local amenities taxonomy in step with Hostfully."""

    def __init__(
        self,
        client: HostfullyClient,
        mapper: TaxonomyMapper,
        state: ImporterState,
        settings: ImporterSettings,
        *,
        throttle_seconds: float = 0.15,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.mapper = mapper
        self.state = state
        self.settings = settings
        self.throttle_seconds = throttle_seconds
        self.sleep = sleep

    # Public API -----------------------------------------------------------------

    def sync_catalog(self, log: ImportLog) -> CatalogSyncResult:
        """Page the global amenity catalog into the amenities taxonomy."""
        result = CatalogSyncResult()
        try:
            for page, _response in self.client.iter_amenity_catalog():
                for entry in page:
                    if not isinstance(entry, Mapping):
                        continue
                    uid = str(entry.get("uid") or "")
                    name = str(entry.get("name") or entry.get("label") or "")
                    if not name:
                        continue
                    self._upsert(result, uid, name, log)
        except HostfullyAdapterError as exc:
            if isinstance(exc, HostfullyApiError) and exc.requires_property_scope:
                log.add("Amenity catalog endpoint requires propertyUid or hotelUid.")
                record_catalog_sync(strategy="catalog", outcome=ERROR_REQUIRES_SCOPE)
                return CatalogSyncResult(error=ERROR_REQUIRES_SCOPE)
            log.add(f"Amenity catalog sync failed: {exc}")
            if isinstance(exc, HostfullyApiError):
                log.add(f"Amenity catalog sync URL: {exc.url} (HTTP {exc.status})")
                if exc.body:
                    log.add(f"Amenity catalog sync body: {exc.body[:400]}")
            record_catalog_sync(strategy="catalog", outcome=ERROR_REQUEST_FAILED)
            return CatalogSyncResult(error=ERROR_REQUEST_FAILED)

        self._log_summary(result, log)
        record_catalog_sync(strategy="catalog", outcome="success")
        return result

    def sync_catalog_from_listings(self, log: ImportLog) -> CatalogSyncResult:
        """Derive the catalog from every listing's enabled amenities."""
        listings = self.client.list_properties()
        if not listings:
            log.add("No properties found to derive amenities from.")
            record_catalog_sync(strategy="per_listing", outcome="empty")
            return CatalogSyncResult()

        calls = 0
        unique: Dict[str, AmenityItem] = {}
        for listing in listings:
            listing_uid = str(listing.get("uid") or "")
            if not listing_uid:
                continue

            cached = self.state.get_cached(FALLBACK_CACHE_NAMESPACE, listing_uid)
            if isinstance(cached, dict):
                entries, source = list(cached.get("entries") or []), str(cached.get("source") or AVAILABLE_AMENITIES)
            else:
                if calls >= FALLBACK_CALL_LIMIT:
                    log.add(f"Amenity fallback stopped after {FALLBACK_CALL_LIMIT} listings (API call limit).")
                    break
                calls += 1
                entries, source = self._fetch_listing_amenities(listing_uid, log, verbose=calls <= VERBOSE_CALLS)
                self.state.set_cached(
                    FALLBACK_CACHE_NAMESPACE,
                    listing_uid,
                    {"source": source, "entries": entries},
                    self.settings.cache_ttl_seconds,
                )
                if self.throttle_seconds:
                    self.sleep(self.throttle_seconds)

            for item in self._catalog_items(entries, source):
                unique[item.uid or item.name.lower()] = item

        result = CatalogSyncResult()
        if not unique:
            log.add("No amenities discovered from properties (available-amenities returned empty).")
            self._log_summary(result, log)
            record_catalog_sync(strategy="per_listing", outcome="empty")
            return result

        for item in unique.values():
            self._upsert(result, item.uid, item.name, log)
        self._log_summary(result, log)
        record_catalog_sync(strategy="per_listing", outcome="success")
        return result

    def sync_catalog_safe(self, log: ImportLog) -> CatalogSyncResult:
        """Try the global catalog; fall back to per-listing discovery when a listing scope is required."""
        result = self.sync_catalog(log)
        if result.error == ERROR_REQUIRES_SCOPE:
            log.add("Switching to fallback sync via available-amenities per property…")
            return self.sync_catalog_from_listings(log)
        return result

    # Internal helpers -----------------------------------------------------------

    def _upsert(self, result: CatalogSyncResult, uid: str, name: str, log: ImportLog) -> None:
        before = self.state.dictionary_lookup("amenity", uid) if uid else None
        term_id = self.mapper.ensure_term("amenity", uid, name, log)
        if not term_id:
            return
        result.total += 1
        if before and before == term_id:
            result.updated += 1
        else:
            result.created += 1

    @staticmethod
    def _log_summary(result: CatalogSyncResult, log: ImportLog) -> None:
        log.add(
            f"Amenity catalog synced. Total processed: {result.total} "
            f"(created/linked: {result.created}, updated/linked: {result.updated})."
        )

    def _fetch_listing_amenities(self, listing_uid: str, log: ImportLog, *, verbose: bool) -> tuple[List[Any], str]:
        """
        Return ``(entries, source)`` from the first listing-scoped endpoint that
        yields a non-empty list. ``source`` names the endpoint the entries came from.
        """
        attempts = (
            (
                AVAILABLE_AMENITIES,
                "Available amenities",
                "/available-amenities",
                {"propertyUid": listing_uid},
                ("amenities", "availableAmenities", "items"),
            ),
            (
                "amenities",
                "Amenities (filtered)",
                "/amenities",
                {"propertyUid": listing_uid, "_limit": self.settings.api_page_limit},
                ("amenities", "items"),
            ),
            (
                "custom-amenities",
                "Custom amenities",
                "/custom-amenities",
                {"objectUid": listing_uid, "objectType": "PROPERTY"},
                ("customAmenities", "amenities", "items"),
            ),
        )
        for source, label, path, params, keys in attempts:
            try:
                response = self.client.get_json(path, params)
            except HostfullyAdapterError as exc:
                if verbose:
                    log.add(f"{label} URL: {getattr(exc, 'url', path)} (HTTP {getattr(exc, 'status', 0)})")
                    body = getattr(exc, "body", "")
                    if body:
                        log.add(f"{label} body: {body[:400]}")
                if verbose or source == AVAILABLE_AMENITIES:
                    log.add(f"{label} failed for property {listing_uid}: {exc}")
                continue

            if verbose:
                log.add(f"{label} URL: {response.url} (HTTP {response.status})")
                if response.raw:
                    log.add(f"{label} body: {response.body_preview()}")
            entries = extract_page_items(response.data, keys)
            if entries:
                return entries, source
        return [], AVAILABLE_AMENITIES

    def _catalog_items(self, entries: List[Any], source: str) -> List[AmenityItem]:
        items: List[AmenityItem] = []
        for entry in entries:
            if not isinstance(entry, Mapping):
                continue
            if source == AVAILABLE_AMENITIES and not passes_channel_policy(entry, self.settings.amenity_channel_policy):
                continue
            code = str(entry.get("amenity") or entry.get("code") or "")
            uid = str(entry.get("uid") or code)
            name = str(entry.get("name") or entry.get("label") or "")
            if not name and code:
                name = prettify_amenity_code(code)
            if name:
                items.append(AmenityItem(uid=uid, name=name))
        return items
