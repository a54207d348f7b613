"""
Operator-tunable Hostfully importer settings.

Defaults come from ``HOSTFULLY_*`` app config; values saved from the admin
settings form are persisted in the importer state and layered on top.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Mapping

from config.base import DEFAULT_HOSTFULLY_BASE_URL, _coerce_bool

CHANNEL_POLICY_ANY_TRUE = "any_true"
CHANNEL_POLICY_ALL = "all"
CHANNEL_POLICIES = (CHANNEL_POLICY_ANY_TRUE, CHANNEL_POLICY_ALL)

_CONFIG_KEYS = {
    "api_key": "HOSTFULLY_API_KEY",
    "agency_uid": "HOSTFULLY_AGENCY_UID",
    "base_url": "HOSTFULLY_BASE_URL",
    "max_photos": "HOSTFULLY_MAX_PHOTOS",
    "bulk_limit": "HOSTFULLY_BULK_LIMIT",
    "api_page_limit": "HOSTFULLY_API_PAGE_LIMIT",
    "allow_enrich_api": "HOSTFULLY_ALLOW_ENRICH_API",
    "amenities_cache_hours": "HOSTFULLY_AMENITIES_CACHE_HOURS",
    "verbose_log": "HOSTFULLY_VERBOSE_LOG",
    "amenity_channel_policy": "HOSTFULLY_AMENITY_CHANNEL_POLICY",
}


def _as_int(value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class ImporterSettings:
    api_key: str = ""
    agency_uid: str = ""
    base_url: str = DEFAULT_HOSTFULLY_BASE_URL
    max_photos: int = 8
    bulk_limit: int = 10
    api_page_limit: int = 100
    allow_enrich_api: bool = False
    amenities_cache_hours: int = 24
    verbose_log: bool = False
    amenity_channel_policy: str = CHANNEL_POLICY_ANY_TRUE

    @classmethod
    def coerce(cls, raw: Mapping[str, Any] | None, *, base: "ImporterSettings | None" = None) -> "ImporterSettings":
        """
        Build settings from loosely typed input, clamping numbers into range.

        Keys missing from ``raw`` keep the value from ``base`` (or the defaults).
        """
        base = base or cls()
        raw = raw or {}

        def pick(key: str) -> Any:
            return raw[key] if key in raw else getattr(base, key)

        base_url = str(pick("base_url") or "").strip().rstrip("/") or DEFAULT_HOSTFULLY_BASE_URL
        policy = str(pick("amenity_channel_policy") or CHANNEL_POLICY_ANY_TRUE).strip().lower()
        if policy not in CHANNEL_POLICIES:
            policy = CHANNEL_POLICY_ANY_TRUE

        return cls(
            api_key=str(pick("api_key") or "").strip(),
            agency_uid=str(pick("agency_uid") or "").strip(),
            base_url=base_url,
            max_photos=max(0, _as_int(pick("max_photos"), base.max_photos)),
            bulk_limit=max(1, _as_int(pick("bulk_limit"), base.bulk_limit)),
            api_page_limit=min(100, max(1, _as_int(pick("api_page_limit"), base.api_page_limit))),
            allow_enrich_api=_coerce_bool(pick("allow_enrich_api"), default=False),
            amenities_cache_hours=min(168, max(1, _as_int(pick("amenities_cache_hours"), base.amenities_cache_hours))),
            verbose_log=_coerce_bool(pick("verbose_log"), default=False),
            amenity_channel_policy=policy,
        )

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "ImporterSettings":
        raw = {field: config[key] for field, key in _CONFIG_KEYS.items() if key in config}
        return cls.coerce(raw)

    @property
    def cache_ttl_seconds(self) -> int:
        return self.amenities_cache_hours * 3600

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.agency_uid)

    def as_dict(self, *, mask_secret: bool = False) -> dict[str, Any]:
        payload = asdict(self)
        if mask_secret and payload["api_key"]:
            payload["api_key"] = "•" * 8 + payload["api_key"][-4:]
        return payload


def load_settings(config: Mapping[str, Any], saved: Mapping[str, Any] | None) -> ImporterSettings:
    """Merge operator-saved values over config defaults."""
    return ImporterSettings.coerce(saved or {}, base=ImporterSettings.from_config(config))
