"""
Hostfully REST client.

Wraps a ``requests.Session`` with the Hostfully auth header, JSON decoding,
API error detection and cursor pagination.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Mapping, Sequence, Tuple

import requests

from flask_app.importer.metrics import record_api_request
from flask_app.importer.settings import ImporterSettings

from . import HostfullyAdapterError, HostfullyApiError, HostfullyConfigError

API_KEY_HEADER = "X-HOSTFULLY-APIKEY"
DEFAULT_TIMEOUT = 30
MAX_PAGES = 500

NEXT_CURSOR_HEADERS: Tuple[str, ...] = (
    "x-next-cursor",
    "x-nextcursor",
    "next-cursor",
    "x-cursor-next",
    "x-next-page-cursor",
)
NEXT_CURSOR_BODY_PATHS: Tuple[Tuple[str, ...], ...] = (
    ("nextCursor",),
    ("next_cursor",),
    ("cursor", "next"),
    ("pagination", "nextCursor"),
    ("extensions", "nextCursor"),
)


@dataclass
class ApiResponse:
    """Decoded Hostfully response."""

    data: Any
    status: int
    url: str
    raw: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)

    def body_preview(self, limit: int = 400) -> str:
        return self.raw[:limit]


def extract_next_cursor(data: Any, headers: Mapping[str, str]) -> str:
    """Return the next-page cursor from response headers or body, or an empty string."""
    for header in NEXT_CURSOR_HEADERS:
        value = headers.get(header)
        if value:
            return str(value).strip()

    if not isinstance(data, Mapping):
        return ""
    for path in NEXT_CURSOR_BODY_PATHS:
        node: Any = data
        for key in path:
            node = node.get(key) if isinstance(node, Mapping) else None
        if isinstance(node, str) and node:
            return node.strip()
    return ""


def extract_page_items(data: Any, keys: Sequence[str]) -> List[Any]:
    """
    Return the list payload of a page.

    Hostfully wraps lists under endpoint-specific keys (``properties``,
    ``amenities``...) but some endpoints return a bare list.
    """
    if isinstance(data, list):
        return data
    if not isinstance(data, Mapping):
        return []
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value if isinstance(value, list) else []
    return []


def _endpoint_label(path: str) -> str:
    parts = [part for part in path.strip("/").split("/") if part]
    if not parts:
        return "root"
    return f"{parts[0]}_detail" if len(parts) > 1 else parts[0]


class HostfullyClient:
    """Read-only access to the Hostfully v3 API."""

    def __init__(
        self,
        settings: ImporterSettings,
        *,
        session: requests.Session | None = None,
        timeout: int = DEFAULT_TIMEOUT,
        logger: logging.Logger | None = None,
    ) -> None:
        self.settings = settings
        self.session = session or requests.Session()
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

    # Public API -----------------------------------------------------------------

    def url_for(self, path: str) -> str:
        return f"{self.settings.base_url.rstrip('/')}/{path.lstrip('/')}"

    def get_json(self, path: str, params: Mapping[str, Any] | None = None) -> ApiResponse:
        """
        Issue a GET and decode the JSON body.

        Raises:
            HostfullyConfigError: the API key is not configured.
            HostfullyApiError: transport failure, HTTP error status, a body that
                is not JSON, or an ``apiErrorMessage`` in the payload.
        """
        if not self.settings.api_key:
            raise HostfullyConfigError("Hostfully API key not set.")

        url = self.url_for(path)
        query = dict(params or {})
        display_url = requests.Request("GET", url, params=query).prepare().url or url
        endpoint = _endpoint_label(path)
        try:
            response = self.session.get(
                url,
                headers={API_KEY_HEADER: self.settings.api_key, "Accept": "application/json"},
                params=query,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            record_api_request(endpoint, "failure")
            self.logger.warning("Hostfully request failed", extra={"hostfully_url": display_url, "error": str(exc)})
            raise HostfullyApiError(f"Request failed: {exc}", url=display_url) from exc

        status = int(getattr(response, "status_code", 0) or 0)
        raw = response.text or ""
        headers = {str(key).lower(): str(value) for key, value in (response.headers or {}).items()}

        try:
            data = response.json()
        except ValueError:
            data = None

        if isinstance(data, Mapping) and data.get("apiErrorMessage"):
            record_api_request(endpoint, "failure")
            raise HostfullyApiError(str(data["apiErrorMessage"]), status=status, url=display_url, body=raw)
        if status >= 400:
            record_api_request(endpoint, "failure")
            message = ""
            if isinstance(data, Mapping):
                message = str(data.get("message") or data.get("error") or "")
            raise HostfullyApiError(message or f"HTTP {status}", status=status, url=display_url, body=raw)
        if not isinstance(data, (Mapping, list)):
            record_api_request(endpoint, "failure")
            raise HostfullyApiError("Hostfully response was not valid JSON.", status=status, url=display_url, body=raw)

        record_api_request(endpoint, "success")
        return ApiResponse(data=data, status=status, url=display_url, raw=raw, headers=headers)

    def iter_pages(
        self,
        path: str,
        params: Mapping[str, Any],
        *,
        item_keys: Sequence[str],
        max_pages: int = MAX_PAGES,
    ) -> Iterator[Tuple[List[Any], ApiResponse]]:
        """
        Yield ``(items, response)`` for each page until the list is empty, the
        cursor is missing or repeats, or ``max_pages`` pages were read.
        """
        cursor = ""
        for _ in range(max_pages):
            page_params = dict(params)
            if cursor:
                page_params["_cursor"] = cursor
            response = self.get_json(path, page_params)
            items = extract_page_items(response.data, item_keys)
            if not items:
                return
            yield items, response

            next_cursor = extract_next_cursor(response.data, response.headers)
            if not next_cursor or next_cursor == cursor:
                return
            cursor = next_cursor

    def list_properties(self) -> List[Mapping[str, Any]]:
        """
        Return every listing summary for the agency, de-duplicated by UID.

        A failing page ends the listing early; the summaries collected so far
        are still returned.
        """
        if not self.settings.agency_uid:
            return []

        listings: List[Mapping[str, Any]] = []
        seen: set[str] = set()
        params = {"agencyUid": self.settings.agency_uid, "_limit": self.settings.api_page_limit}
        try:
            for items, _response in self.iter_pages("/properties", params, item_keys=("properties",)):
                for item in items:
                    if not isinstance(item, Mapping):
                        continue
                    uid = str(item.get("uid") or "")
                    if not uid or uid in seen:
                        continue
                    seen.add(uid)
                    listings.append(item)
        except HostfullyAdapterError as exc:
            self.logger.warning(
                "Hostfully property listing stopped early: %s",
                exc,
                extra={"hostfully_listings_collected": len(listings)},
            )
        return listings

    def list_property_uids(self) -> List[str]:
        return [str(item["uid"]) for item in self.list_properties()]

    def get_property(self, uid: str) -> ApiResponse:
        return self.get_json(f"/properties/{uid}", {"agencyUid": self.settings.agency_uid})

    def get_photos(self, uid: str) -> ApiResponse:
        return self.get_json("/photos", {"propertyUid": uid, "agencyUid": self.settings.agency_uid})

    def iter_amenity_catalog(self) -> Iterator[Tuple[List[Any], ApiResponse]]:
        return self.iter_pages(
            "/amenities",
            {"_limit": self.settings.api_page_limit},
            item_keys=("amenities", "items"),
        )
