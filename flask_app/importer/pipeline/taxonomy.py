"""
Taxonomy and attribute mapping for imported listings.

Remote amenities are mapped to local terms through a persisted dictionary so a
renamed amenity keeps pointing at the same term. Numeric facts (bedrooms,
beds, ...) become terms in per-attribute taxonomies discovered or created via
the attribute registry.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from flask_app.importer.log import ImportLog
from flask_app.importer.registry import get_attribute_registry, infer_attribute_kind
from flask_app.importer.state import ImporterState
from flask_app.importer.storage import ContentStore, slugify
from flask_app.models import ATTRIBUTE_TAXONOMY_PREFIX, RecordType, Taxonomy

from .resolve import coerce_number, extract_attribute_values, format_number

logger = logging.getLogger(__name__)

AMENITY_TAXONOMY = "mphb_room_type_facility"
CATEGORY_TAXONOMY = "mphb_room_type_category"
TAG_TAXONOMY = "mphb_room_type_tag"
LEGACY_BEDROOM_TAXONOMY = f"{ATTRIBUTE_TAXONOMY_PREFIX}bedroom"

KIND_TAXONOMIES: Dict[str, tuple[str, str]] = {
    "amenity": (AMENITY_TAXONOMY, "Amenities"),
}
STANDARD_TAXONOMIES: Dict[str, str] = {
    AMENITY_TAXONOMY: "Amenities",
    CATEGORY_TAXONOMY: "Categories",
    TAG_TAXONOMY: "Tags",
}


def term_meta_key(kind: str) -> str:
    return f"_hostfully_{kind}_uid"


def prettify_amenity_code(code: str) -> str:
    """
    Turn a Hostfully amenity code into a display name.

    ``HAS_AIR_CONDITIONING`` -> ``Air Conditioning``, ``HAS_WIFI`` -> ``WiFi``,
    ``HAS_TV`` -> ``TV``.
    """
    code = (code or "").strip()
    if not code:
        return ""
    text = re.sub(r"^(HAS|IS|WITH)_", "", code, flags=re.IGNORECASE)
    text = text.replace("_", " ").lower()
    text = re.sub(r"\btv\b", "TV", text, flags=re.IGNORECASE)
    text = re.sub(r"\bwi fi\b", "WiFi", text, flags=re.IGNORECASE)
    text = re.sub(r"\bwifi\b", "WiFi", text, flags=re.IGNORECASE)
    # Upper-case the first letter of each word without touching the rest.
    text = re.sub(r"(^|\s)(\S)", lambda match: match.group(1) + match.group(2).upper(), text)
    return re.sub(r"\bTv\b", "TV", text)


def format_attribute_term(key: str, value: Any) -> str:
    """Render an attribute value as its term name; empty when the value is unusable."""
    if key == "size":
        if not isinstance(value, Mapping):
            return ""
        number = coerce_number(value.get("value"))
        if number is None:
            return ""
        unit = "sq ft" if str(value.get("unit") or "m2").lower() == "sqft" else "m2"
        return f"{format_number(number)} {unit}"
    number = coerce_number(value)
    if number is None:
        return ""
    return format_number(number)


def usable_attribute_values(listing: Mapping[str, Any]) -> Dict[str, Any]:
    """Attribute values with zero and negative numbers dropped."""
    usable: Dict[str, Any] = {}
    for key, value in extract_attribute_values(listing).items():
        number = coerce_number(value.get("value") if isinstance(value, Mapping) else value)
        if number is None or number <= 0:
            continue
        usable[key] = value
    return usable


class TaxonomyMapper:
    """Maps remote identifiers and listing facts onto local taxonomy terms."""

    def __init__(self, store: ContentStore, state: ImporterState):
        self.store = store
        self.state = state

    # Public API -----------------------------------------------------------------

    def taxonomy(self, slug: str) -> Taxonomy:
        return self.store.ensure_taxonomy(slug, STANDARD_TAXONOMIES.get(slug, slug))

    def ensure_term(self, kind: str, remote_uid: str, display_name: str, log: ImportLog | None = None) -> int:
        """
        Return the term id for ``(kind, remote_uid)``, creating the term when needed.

        Lookup order: dictionary entry (when the term still exists), term meta
        tag, exact name, then creation. The dictionary and term meta are
        refreshed on every path except a dictionary hit, so the same remote uid
        never produces a second term even if its display name changes.
        Returns 0 when no display name is available.
        """
        remote_uid = (remote_uid or "").strip()
        display_name = (display_name or "").strip()
        if not display_name:
            return 0

        slug, _label = KIND_TAXONOMIES[kind]
        taxonomy = self.taxonomy(slug)
        meta_key = term_meta_key(kind)

        if remote_uid:
            mapped = self.state.dictionary_lookup(kind, remote_uid)
            if mapped and self.store.get_term(mapped, taxonomy) is not None:
                return mapped

            tagged = self.store.find_term_by_meta(taxonomy, meta_key, remote_uid)
            if tagged is not None:
                self.state.remember_term(kind, remote_uid, tagged.id)
                return tagged.id

        term = self._find_or_create_term(taxonomy, display_name)
        if log is not None and term.name != display_name:
            log.debug(f"Term '{display_name}' matched existing term '{term.name}'.")
        if remote_uid:
            self.store.set_term_meta(term.id, meta_key, remote_uid)
            self.state.remember_term(kind, remote_uid, term.id)
        return term.id

    def upsert_terms(self, taxonomy_slug: str, names: Iterable[str]) -> List[int]:
        """Name-only upsert; returns unique term ids in input order."""
        taxonomy = self.taxonomy(taxonomy_slug)
        term_ids: List[int] = []
        for name in names:
            name = str(name or "").strip()
            if not name:
                continue
            term = self._find_or_create_term(taxonomy, name)
            if term.id not in term_ids:
                term_ids.append(term.id)
        return term_ids

    def assign_categories_and_tags(self, record_id: int, listing: Mapping[str, Any], log: ImportLog) -> None:
        categories = _unique_trimmed([listing.get("propertyType")])
        address = listing.get("address") if isinstance(listing.get("address"), Mapping) else {}
        tags = _unique_trimmed(
            [listing.get("roomType"), listing.get("listingType"), address.get("city"), address.get("state")]
        )

        if categories:
            term_ids = self.upsert_terms(CATEGORY_TAXONOMY, categories)
            if term_ids:
                self.store.set_record_terms(record_id, self.taxonomy(CATEGORY_TAXONOMY), term_ids)
                log.add("Categories assigned: " + ", ".join(categories))
        if tags:
            term_ids = self.upsert_terms(TAG_TAXONOMY, tags)
            if term_ids:
                self.store.set_record_terms(record_id, self.taxonomy(TAG_TAXONOMY), term_ids)
                log.add("Tags assigned: " + ", ".join(tags))

    # Attributes -----------------------------------------------------------------

    def reconcile_attribute_taxonomies(self) -> Dict[str, str]:
        """
        Register existing attribute taxonomies whose kind can be inferred.

        Returns the registry as ``{taxonomy slug: kind key}``.
        """
        registry = self.state.attribute_registry()
        for taxonomy in self.store.attribute_taxonomies():
            if taxonomy.slug in registry:
                continue
            key = infer_attribute_kind(taxonomy.slug, taxonomy.label)
            if key:
                self.state.register_attribute(taxonomy.slug, label=taxonomy.label, key=key)
                logger.info(
                    "Registered existing attribute taxonomy",
                    extra={"taxonomy_slug": taxonomy.slug, "attribute_kind": key},
                )
        return {slug: entry.get("key", "") for slug, entry in self.state.attribute_registry().items()}

    def ensure_attribute_taxonomy(self, key: str, log: ImportLog) -> Optional[Taxonomy]:
        """Return the taxonomy holding attribute ``key``, creating it from the registry template if needed."""
        taxonomy = self._registered_taxonomy(key)
        if taxonomy is None:
            self.reconcile_attribute_taxonomies()
            taxonomy = self._registered_taxonomy(key)

        if taxonomy is None:
            template = get_attribute_registry().get(key)
            if template is None:
                return None
            taxonomy = self.store.ensure_taxonomy(template.slug, template.label, is_attribute=True)
            self.state.register_attribute(taxonomy.slug, label=template.label, key=key)
            log.add(f"Attributes: created taxonomy {taxonomy.slug} ({template.label}).")

        self.ensure_attribute_container(taxonomy, log)
        return taxonomy

    def ensure_attribute_container(self, taxonomy: Taxonomy, log: ImportLog) -> int:
        """Make sure a ``room_attribute`` record exists for an attribute taxonomy."""
        slug = taxonomy.slug
        if slug.startswith(ATTRIBUTE_TAXONOMY_PREFIX):
            slug = slug[len(ATTRIBUTE_TAXONOMY_PREFIX) :]
        slug = slugify(slug or taxonomy.label)

        existing = self.store.find_by_slug(RecordType.ROOM_ATTRIBUTE.value, slug)
        if existing is not None:
            return existing.id

        record = self.store.save_record(RecordType.ROOM_ATTRIBUTE.value, title=taxonomy.label or slug, slug=slug)
        log.add(f"Attributes: created attribute record {record.id} ({taxonomy.label or slug}).")
        return record.id

    def assign_attributes(self, record_id: int, listing: Mapping[str, Any], log: ImportLog) -> None:
        values = usable_attribute_values(listing)
        if not values:
            log.add("Attributes: no usable values found in Hostfully payload.")
            return

        assigned: List[str] = []
        for key in get_attribute_registry():
            if key not in values:
                continue
            term_name = format_attribute_term(key, values[key])
            if not term_name:
                continue
            taxonomy = self.ensure_attribute_taxonomy(key, log)
            if taxonomy is None:
                continue
            term = self._find_or_create_term(taxonomy, term_name)
            self.store.set_record_terms(record_id, taxonomy, [term.id])
            assigned.append(f"{taxonomy.label}: {term_name}")

        if not assigned:
            log.add("Attributes: none assigned (no matching taxonomies/values).")
            return

        log.add("Attributes assigned: " + ", ".join(assigned))
        self.cleanup_legacy_bedroom_term(log)

    def cleanup_legacy_bedroom_term(self, log: ImportLog) -> None:
        """Remove the hand-made "Bedroom" term from the bedrooms taxonomy, once."""
        if self.state.legacy_cleanup_done():
            return
        taxonomy = self.store.get_taxonomy(LEGACY_BEDROOM_TAXONOMY)
        if taxonomy is None:
            return

        term = self.store.find_term_by_slug(taxonomy, "bedroom") or self.store.find_term_by_name(taxonomy, "Bedroom")
        if term is None:
            return

        removed = self.store.unassign_term(term.id)
        if removed:
            log.add(f"Attributes: removed legacy Bedroom term from {removed} room types.")
        self.store.delete_term(term.id)
        log.add("Attributes: removed legacy Bedroom term.")
        self.state.mark_legacy_cleanup_done()

    # Internal helpers -----------------------------------------------------------

    def _registered_taxonomy(self, key: str) -> Optional[Taxonomy]:
        for slug, entry in self.state.attribute_registry().items():
            if entry.get("key") == key:
                taxonomy = self.store.get_taxonomy(slug)
                if taxonomy is not None:
                    return taxonomy
        return None

    def _find_or_create_term(self, taxonomy: Taxonomy, name: str):
        return (
            self.store.find_term_by_name(taxonomy, name)
            or self.store.find_term_by_slug(taxonomy, slugify(name))
            or self.store.create_term(taxonomy, name)
        )


def _unique_trimmed(values: Iterable[Any]) -> List[str]:
    result: List[str] = []
    for value in values:
        if value is None or isinstance(value, (Mapping, list)):
            continue
        text = str(value).strip()
        if text and text not in result:
            result.append(text)
    return result
