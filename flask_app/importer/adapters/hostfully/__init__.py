"""Hostfully adapter errors and readiness checks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Tuple

from flask_app.importer.settings import ImporterSettings


class HostfullyAdapterError(RuntimeError):
    """Base error for Hostfully adapter issues."""


class HostfullyConfigError(HostfullyAdapterError):
    """Raised when the API key or agency UID is missing."""


class HostfullyApiError(HostfullyAdapterError):
    """Raised when a Hostfully request fails or returns an unusable payload."""

    def __init__(self, message: str, *, status: int = 0, url: str = "", body: str = ""):
        super().__init__(message)
        self.status = status
        self.url = url
        self.body = body

    @property
    def requires_property_scope(self) -> bool:
        """True when the API refused a catalog request without propertyUid/hotelUid."""
        haystack = f"{self} {self.body}".lower()
        if "hotel_or_property_uid_required" in haystack:
            return True
        return "propertyuid" in haystack and "hoteluid" in haystack and "required" in haystack


@dataclass(frozen=True)
class HostfullyAdapterReadiness:
    missing_settings: Tuple[str, ...]
    base_url: str
    auth_status: Literal["skipped", "ok", "failed"] = "skipped"
    auth_error: str | None = None

    @property
    def status(self) -> str:
        if self.missing_settings:
            return "missing-env"
        if self.auth_status == "failed":
            return "auth-error"
        return "ready"

    def messages(self) -> Tuple[str, ...]:
        messages: list[str] = []
        if self.missing_settings:
            messages.append(f"Missing required Hostfully settings: {', '.join(self.missing_settings)}")
        if self.auth_status == "failed" and self.auth_error:
            messages.append(self.auth_error)
        return tuple(messages)

    def as_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "status": self.status,
            "base_url": self.base_url,
            "missing_settings": list(self.missing_settings),
            "auth_status": self.auth_status,
            "messages": list(self.messages()),
        }
        if self.auth_error:
            payload["auth_error"] = self.auth_error
        return payload


def check_hostfully_adapter_readiness(settings: ImporterSettings, *, client=None) -> HostfullyAdapterReadiness:
    """
    Perform a non-raising readiness check for the Hostfully adapter.

    When ``client`` is supplied a single one-item properties page is requested
    to validate the credentials.
    """
    missing = tuple(
        name for name, value in (("api_key", settings.api_key), ("agency_uid", settings.agency_uid)) if not value
    )
    auth_status: Literal["skipped", "ok", "failed"] = "skipped"
    auth_error: str | None = None
    if client is not None and not missing:
        try:
            client.get_json("/properties", {"agencyUid": settings.agency_uid, "_limit": 1})
            auth_status = "ok"
        except HostfullyAdapterError as exc:
            auth_status = "failed"
            auth_error = f"Hostfully authentication check failed: {exc}"
    return HostfullyAdapterReadiness(
        missing_settings=missing,
        base_url=settings.base_url,
        auth_status=auth_status,
        auth_error=auth_error,
    )
