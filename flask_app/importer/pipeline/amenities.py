"""
Per-listing amenity resolution.

Amenities embedded in the listing payload are used directly. Otherwise, when
API enrichment is enabled, the listing-scoped amenity endpoints are tried in
turn and the result is cached per listing.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Iterable, List, Mapping, Sequence

from flask_app.importer.adapters.hostfully import HostfullyAdapterError
from flask_app.importer.adapters.hostfully.client import HostfullyClient, extract_page_items
from flask_app.importer.log import ImportLog
from flask_app.importer.settings import CHANNEL_POLICY_ALL, ImporterSettings
from flask_app.importer.state import ImporterState

from .taxonomy import AMENITY_TAXONOMY, TaxonomyMapper, prettify_amenity_code

PAYLOAD_KEYS = ("amenities", "amenity", "features", "amenityUids", "amenitiesUids")
ENRICH_CACHE_NAMESPACE = "am_v2"
AVAILABLE_AMENITIES = "available-amenities"


@dataclass(frozen=True)
class AmenityItem:
    uid: str
    name: str

    @property
    def dedupe_key(self) -> str:
        return self.uid or f"n:{self.name.lower()}"


def channel_flag_set(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return value == 1 or value in ("true", "1")


def passes_channel_policy(entry: Mapping[str, Any], policy: str) -> bool:
    """
    Decide whether an enabled-amenities entry is really in use by the listing.

    ``any_true`` keeps entries with at least one channel flag set; ``all``
    keeps every entry.
    """
    if policy == CHANNEL_POLICY_ALL:
        return True
    channels = entry.get("channels")
    if isinstance(channels, Mapping):
        flags: Iterable[Any] = channels.values()
    elif isinstance(channels, list):
        flags = channels
    else:
        return False
    return any(channel_flag_set(flag) for flag in flags)


def dedupe_items(items: Iterable[AmenityItem]) -> List[AmenityItem]:
    """Later entries win, first-seen order is kept."""
    unique: dict[str, AmenityItem] = {}
    for item in items:
        unique[item.dedupe_key] = item
    return list(unique.values())


def parse_amenity_entries(entries: Sequence[Any], *, source: str, policy: str) -> List[AmenityItem]:
    """Normalise strings, ``{uid, name}`` objects and ``{amenity: CODE}`` objects into items."""
    items: List[AmenityItem] = []
    for entry in entries:
        if isinstance(entry, str):
            if entry.strip():
                items.append(AmenityItem(uid="", name=entry.strip()))
            continue
        if not isinstance(entry, Mapping):
            continue

        code = entry.get("amenity")
        if isinstance(code, str) and code.strip():
            if source == AVAILABLE_AMENITIES and not passes_channel_policy(entry, policy):
                continue
            items.append(AmenityItem(uid=code.strip(), name=prettify_amenity_code(code)))
            continue

        uid = str(entry.get("uid") or entry.get("amenityUid") or "").strip()
        name = str(entry.get("name") or entry.get("label") or "").strip()
        if uid or name:
            items.append(AmenityItem(uid=uid, name=name))
    return items


class ListingAmenityResolver:
    """Finds the amenities of one listing."""

    def __init__(self, client: HostfullyClient, state: ImporterState, settings: ImporterSettings):
        self.client = client
        self.state = state
        self.settings = settings

    def resolve(self, listing: Mapping[str, Any], log: ImportLog) -> List[AmenityItem]:
        for key in PAYLOAD_KEYS:
            candidate = listing.get(key)
            if not isinstance(candidate, list) or not candidate:
                continue
            log.debug("Amenities: using amenity data already present in property payload.")
            items = parse_amenity_entries(candidate, source="payload", policy=CHANNEL_POLICY_ALL)
            if items:
                return dedupe_items(items)

        if not self.settings.allow_enrich_api:
            log.add("Amenities: not in payload, and API enrichment disabled (settings).")
            return []

        listing_uid = str(listing.get("uid") or "")
        if not listing_uid:
            return []

        cached = self.state.get_cached(ENRICH_CACHE_NAMESPACE, listing_uid)
        if isinstance(cached, list):
            log.add("Amenities: loaded from cache.")
            log.debug(f"Amenities: cache hit for property {listing_uid}.")
            return [AmenityItem(uid=str(row.get("uid", "")), name=str(row.get("name", ""))) for row in cached]

        if not self.settings.agency_uid:
            return []

        items = self._enrich(listing_uid, log)
        if items is None:
            return []
        self.state.set_cached(
            ENRICH_CACHE_NAMESPACE,
            listing_uid,
            [asdict(item) for item in items],
            self.settings.cache_ttl_seconds,
        )
        return items

    def _enrich(self, listing_uid: str, log: ImportLog) -> List[AmenityItem] | None:
        limit = self.settings.api_page_limit
        attempts = (
            ("amenities", "/amenities", {"propertyUid": listing_uid, "_limit": limit}),
            (
                "custom-amenities",
                "/custom-amenities",
                {"objectUid": listing_uid, "objectType": "PROPERTY", "_limit": limit},
            ),
            (AVAILABLE_AMENITIES, "/available-amenities", {"propertyUid": listing_uid, "_limit": limit}),
        )
        for label, path, params in attempts:
            try:
                response = self.client.get_json(path, params)
            except HostfullyAdapterError as exc:
                log.add(f"Amenities enrichment ({label}) request failed: {exc}")
                log.add(f"Amenities enrichment URL: {getattr(exc, 'url', '')} (HTTP {getattr(exc, 'status', 0)})")
                body = getattr(exc, "body", "")
                if body:
                    log.add(f"Amenities enrichment body: {body[:400]}")
                continue

            entries = extract_page_items(response.data, ("amenities", "items"))
            if not entries:
                continue

            log.debug(f"Amenities: fetched via /{label} (HTTP {response.status}).")
            log.add(f"Amenities: enriched via API ({label}) and cached.")
            items = parse_amenity_entries(entries, source=label, policy=self.settings.amenity_channel_policy)
            return dedupe_items(items)

        log.add("Amenities enrichment: none returned from amenities/custom-amenities/available-amenities.")
        return None


def assign_amenities(
    mapper: TaxonomyMapper,
    resolver: ListingAmenityResolver,
    record_id: int,
    listing: Mapping[str, Any],
    log: ImportLog,
) -> List[int]:
    """Resolve and assign a listing's amenities; returns the assigned term ids."""
    items = resolver.resolve(listing, log)
    if not items:
        log.add("Amenities: none found.")
        return []

    term_ids: List[int] = []
    for item in items:
        if item.uid:
            term_id = mapper.ensure_term("amenity", item.uid, item.name or item.uid, log)
            if term_id and term_id not in term_ids:
                term_ids.append(term_id)
        elif item.name:
            for term_id in mapper.upsert_terms(AMENITY_TAXONOMY, [item.name]):
                if term_id not in term_ids:
                    term_ids.append(term_id)

    if not term_ids:
        log.add("Amenities: terms not created (check errors above).")
        return []

    mapper.store.set_record_terms(record_id, mapper.taxonomy(AMENITY_TAXONOMY), term_ids)
    names: List[str] = []
    for item in items:
        if item.name and item.name not in names:
            names.append(item.name)
    log.add(f"Amenities assigned ({len(term_ids)}): " + ", ".join(names))
    return term_ids
