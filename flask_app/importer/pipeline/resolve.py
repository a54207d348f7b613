"""
Field resolution over loosely shaped Hostfully listing payloads.

The same value can appear under several keys depending on the API version and
listing type, so lookups are expressed as ordered lists of extractors: the
first extractor that yields a usable value wins.
"""

from __future__ import annotations

import math
import re
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

Extractor = Callable[[Mapping[str, Any]], Any]

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")
_ARRAY_COUNT_KEYS = ("count", "quantity", "number", "bedCount", "beds", "amount", "qty")


def value_at_path(record: Any, path: Sequence[str]) -> Any:
    """Walk nested mappings along ``path``; ``None`` when any key is missing."""
    current = record
    for key in path:
        if not isinstance(current, Mapping) or key not in current:
            return None
        current = current[key]
    return current


def at(*keys: str) -> Extractor:
    """Extractor returning the value at a nested key path."""
    return lambda record: value_at_path(record, keys)


def _finite(number: float) -> Optional[float]:
    return None if math.isnan(number) or math.isinf(number) else number


def coerce_number(value: Any) -> Optional[float]:
    """
    Interpret ``value`` as a number.

    Accepts ints, floats, numeric strings and free text containing a number
    ("2 bedrooms" -> 2.0). Booleans, containers, NaN and infinities are not numbers.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return _finite(float(value))
        except OverflowError:
            return None
    if isinstance(value, str):
        text = value.strip()
        try:
            number = float(text)
        except ValueError:
            match = _NUMBER_RE.search(text)
            return _finite(float(match.group(0))) if match else None
        return _finite(number)
    return None


def _is_strictly_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float, str)):
        try:
            number = float(value.strip() if isinstance(value, str) else value)
        except (ValueError, OverflowError):
            return False
        return _finite(number) is not None
    return False


def sum_numeric_array(value: Any) -> Optional[float]:
    """
    Sum a list of counts such as a beds breakdown.

    Entries may be numbers or mappings carrying one of the usual count fields.
    Returns ``None`` when no entry contributed.
    """
    if not isinstance(value, list):
        return None
    total = 0.0
    found = False
    for item in value:
        if _is_strictly_numeric(item):
            total += float(item)
            found = True
            continue
        if not isinstance(item, Mapping):
            continue
        for key in _ARRAY_COUNT_KEYS:
            if _is_strictly_numeric(item.get(key)):
                total += float(item[key])
                found = True
                break
    return total if found else None


def first_of(*extractors: Extractor) -> Extractor:
    """Combine extractors into one that returns the first numeric result."""

    def extract(record: Mapping[str, Any]) -> Optional[float]:
        for extractor in extractors:
            number = coerce_number(extractor(record))
            if number is not None:
                return number
        return None

    return extract


def resolve(record: Mapping[str, Any], candidate_paths: Sequence[Sequence[str]]) -> Optional[float]:
    """Return the first numeric value found along ``candidate_paths``, in priority order."""
    return first_of(*(at(*path) for path in candidate_paths))(record)


def first_text(record: Mapping[str, Any], candidate_paths: Sequence[Sequence[str]]) -> str:
    """Return the first non-blank string found along ``candidate_paths``."""
    for path in candidate_paths:
        value = value_at_path(record, path)
        if isinstance(value, (str, int, float)) and not isinstance(value, bool):
            text = str(value).strip()
            if text:
                return text
    return ""


BEDROOMS = first_of(
    at("bedrooms"),
    at("bedroom"),
    at("availability", "bedrooms"),
    at("availability", "bedroom"),
    at("availability", "numBedrooms"),
    at("availability", "numberOfBedrooms"),
    at("details", "bedrooms"),
)
BATHROOMS = first_of(
    at("bathrooms"),
    at("bathroom"),
    at("availability", "bathrooms"),
    at("availability", "bathroom"),
    at("availability", "numBathrooms"),
    at("availability", "numberOfBathrooms"),
    at("details", "bathrooms"),
)
BEDS = first_of(
    at("beds"),
    at("bedCount"),
    at("bedsCount"),
    at("availability", "beds"),
    at("availability", "bedCount"),
    at("availability", "bedsCount"),
    at("details", "beds"),
    lambda record: sum_numeric_array(record.get("beds")),
)
GUESTS = first_of(
    at("availability", "maxGuests"),
    at("availability", "max_guests"),
    at("maxGuests"),
    at("max_guests"),
    at("details", "maxGuests"),
)
SIZE_M2 = first_of(
    at("size"),
    at("area"),
    at("squareMeters"),
    at("squareMeter"),
    at("square_meters"),
    at("sqm"),
    at("m2"),
    at("details", "size"),
    at("details", "area"),
)
SIZE_SQFT = first_of(
    at("squareFeet"),
    at("squareFoot"),
    at("square_feet"),
    at("sqft"),
    at("sq_ft"),
    at("details", "squareFeet"),
)

OCCUPANCY_PATHS = (("availability", "maxGuests"), ("availability", "baseGuests"))


def extract_attribute_values(listing: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Return the numeric attribute values present on a listing.

    Keys are ``bedrooms``, ``bathrooms``, ``beds``, ``guests`` and ``size``;
    ``size`` is ``{"value": n, "unit": "m2" | "sqft"}`` with square metres
    preferred. Missing values are omitted; zero and negative values are kept
    here and filtered by the caller.
    """
    values: Dict[str, Any] = {}
    for key, extractor in (("bedrooms", BEDROOMS), ("bathrooms", BATHROOMS), ("beds", BEDS), ("guests", GUESTS)):
        number = extractor(listing)
        if number is not None:
            values[key] = number

    size_m2 = SIZE_M2(listing)
    size_sqft = SIZE_SQFT(listing)
    if size_m2 is not None:
        values["size"] = {"value": size_m2, "unit": "m2"}
    elif size_sqft is not None:
        values["size"] = {"value": size_sqft, "unit": "sqft"}
    return values


def format_number(value: float) -> str:
    """Render whole numbers without a decimal part ("2" rather than "2.0")."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def round_half_up(value: float) -> int:
    """Round like the booking engine does: halves go away from zero."""
    return int(math.floor(abs(value) + 0.5)) * (1 if value >= 0 else -1)
