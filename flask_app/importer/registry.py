"""
Numeric room-attribute registry.

Each semantic attribute kind (bedrooms, beds, ...) has a default taxonomy slug,
a display label and a matcher used to recognise existing attribute taxonomies
created by hand or by an earlier import.
"""

from __future__ import annotations

import re
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from flask_app.models.taxonomy import ATTRIBUTE_TAXONOMY_PREFIX


def _normalise(text: str) -> str:
    return re.sub(r"[-_]+", " ", text.lower())


def _matches_bedrooms(text: str) -> bool:
    return "bedroom" in text


def _matches_bathrooms(text: str) -> bool:
    return re.search(r"\bbath(room)?s?\b", text) is not None


def _matches_beds(text: str) -> bool:
    return "bedroom" not in text and re.search(r"\bbeds?\b", text) is not None


def _matches_guests(text: str) -> bool:
    return re.search(r"\bguests?\b|\boccupancy\b|\bpersons?\b|\bsleeps?\b", text) is not None


def _matches_size(text: str) -> bool:
    return re.search(r"\bsize\b|\barea\b|\bsqm\b|\bsq m\b|\bm2\b|\bsqft\b|\bsq ft\b|\bsquare (meters?|feet)\b", text) is not None


@dataclass(frozen=True)
class AttributeKind:
    """Template for one numeric attribute taxonomy."""

    key: str
    slug: str
    label: str
    matcher: Callable[[str], bool]

    def matches(self, slug: str, label: str = "") -> bool:
        return self.matcher(_normalise(f"{slug} {label}"))


def get_attribute_registry() -> Mapping[str, AttributeKind]:
    """Return attribute kinds in the order they are matched and assigned."""
    return OrderedDict(
        (
            ("bedrooms", AttributeKind("bedrooms", f"{ATTRIBUTE_TAXONOMY_PREFIX}bedroom", "Bedrooms", _matches_bedrooms)),
            (
                "bathrooms",
                AttributeKind("bathrooms", f"{ATTRIBUTE_TAXONOMY_PREFIX}bathroom", "Bathrooms", _matches_bathrooms),
            ),
            ("beds", AttributeKind("beds", f"{ATTRIBUTE_TAXONOMY_PREFIX}bed", "Beds", _matches_beds)),
            ("guests", AttributeKind("guests", f"{ATTRIBUTE_TAXONOMY_PREFIX}guest", "Guests", _matches_guests)),
            ("size", AttributeKind("size", f"{ATTRIBUTE_TAXONOMY_PREFIX}size", "Size", _matches_size)),
        )
    )


def infer_attribute_kind(slug: str, label: str = "") -> Optional[str]:
    """
    Return the attribute kind key for a taxonomy, or ``None`` when nothing matches.

    Bedrooms is tested first so "bedroom" never resolves to beds.
    """
    for kind in get_attribute_registry().values():
        if kind.matches(slug, label):
            return kind.key
    return None
