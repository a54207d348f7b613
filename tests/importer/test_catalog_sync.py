from __future__ import annotations

import pytest

from flask_app.importer.log import ImportLog
from flask_app.importer.pipeline.catalog import (
    ERROR_REQUEST_FAILED,
    ERROR_REQUIRES_SCOPE,
    FALLBACK_CACHE_NAMESPACE,
    CatalogSynchronizer,
)
from flask_app.importer.pipeline.taxonomy import AMENITY_TAXONOMY
from flask_app.models import Term

from .fakes import FakeResponse

SCOPE_ERROR = {"apiErrorMessage": "hotel_or_property_uid_required"}


def _amenity_names(service):
    taxonomy = service.mapper.taxonomy(AMENITY_TAXONOMY)
    return sorted(term.name for term in Term.query.filter_by(taxonomy_id=taxonomy.id))


def test_global_catalog_is_paged_into_terms(service_factory, hostfully):
    pages = {
        "": FakeResponse(200, {"amenities": [{"uid": "a1", "name": "Pool"}, {"uid": "a2", "label": "Sauna"}]},
                         headers={"x-next-cursor": "p2"}),
        "p2": FakeResponse(200, {"amenities": [{"uid": "a3", "name": "Hot Tub"}, {"uid": "a4"}]}),
    }
    hostfully.handle("/amenities", lambda params: pages.get(params.get("_cursor", ""), FakeResponse(200, {})))
    service = service_factory()

    payload = service.sync_amenities()

    assert payload["result"] == {"created": 3, "updated": 0, "total": 3}
    assert payload["log"][-1] == "Amenity catalog synced. Total processed: 3 (created/linked: 3, updated/linked: 0)."
    assert _amenity_names(service) == ["Hot Tub", "Pool", "Sauna"]

    again = service.sync_amenities()
    assert again["result"] == {"created": 0, "updated": 3, "total": 3}
    assert _amenity_names(service) == ["Hot Tub", "Pool", "Sauna"]


def test_request_failure_is_reported(service_factory, hostfully):
    hostfully.add("/amenities", {"message": "upstream down"}, status=502)
    service = service_factory()

    payload = service.sync_amenities()

    assert payload["result"]["error"] == ERROR_REQUEST_FAILED
    assert payload["log"][0] == "Amenity catalog sync failed: upstream down"


def test_missing_api_key_is_a_request_failure(service_factory, hostfully):
    service = service_factory(HOSTFULLY_API_KEY="")
    log = ImportLog()

    result = service.catalog.sync_catalog_safe(log)

    assert result.error == ERROR_REQUEST_FAILED
    assert log.lines == ["Amenity catalog sync failed: Hostfully API key not set."]
    assert hostfully.calls == []


def test_scope_error_falls_back_to_per_listing_discovery(service_factory, hostfully):
    hostfully.listings.extend([{"uid": "L1"}, {"uid": "L2"}])

    def available(params):
        if params["propertyUid"] == "L1":
            return FakeResponse(
                200,
                {
                    "amenities": [
                        {"amenity": "HAS_WIFI", "channels": {"airbnb": True}},
                        {"amenity": "HAS_POOL", "channels": {"airbnb": False}},
                    ]
                },
            )
        return FakeResponse(200, {"amenities": [{"amenity": "HAS_WIFI", "channels": [1]}, {"amenity": "HAS_TV", "channels": ["true"]}]})

    def amenities(params):
        if "propertyUid" in params:
            return FakeResponse(200, {"amenities": []})
        return FakeResponse(400, SCOPE_ERROR)

    hostfully.handle("/amenities", amenities)
    hostfully.handle("/available-amenities", available)
    service = service_factory()

    payload = service.sync_amenities()

    assert payload["result"] == {"created": 2, "updated": 0, "total": 2}
    assert "Amenity catalog endpoint requires propertyUid or hotelUid." in payload["log"]
    assert "Switching to fallback sync via available-amenities per property…" in payload["log"]
    assert _amenity_names(service) == ["TV", "WiFi"]
    assert service.state.get_cached(FALLBACK_CACHE_NAMESPACE, "L1")["source"] == "available-amenities"


def test_fallback_uses_cache_on_second_run(service_factory, hostfully):
    hostfully.listings.append({"uid": "L1"})
    hostfully.add("/amenities", SCOPE_ERROR, status=400)
    hostfully.add("/available-amenities", {"amenities": [{"amenity": "HAS_WIFI", "channels": {"web": 1}}]})
    service = service_factory()

    service.sync_amenities()
    first_calls = len(hostfully.calls_to("/available-amenities"))
    second = service.sync_amenities()

    assert first_calls == 1
    assert len(hostfully.calls_to("/available-amenities")) == 1
    assert second["result"] == {"created": 0, "updated": 1, "total": 1}


def test_fallback_all_policy_keeps_unflagged_amenities(service_factory, hostfully):
    hostfully.listings.append({"uid": "L1"})
    hostfully.add("/amenities", SCOPE_ERROR, status=400)
    hostfully.add("/available-amenities", {"amenities": [{"amenity": "HAS_GARDEN"}]})
    service = service_factory(HOSTFULLY_AMENITY_CHANNEL_POLICY="all")

    payload = service.sync_amenities()

    assert payload["result"]["total"] == 1
    assert _amenity_names(service) == ["Garden"]


def test_fallback_tries_custom_amenities_when_others_are_empty(service_factory, hostfully):
    hostfully.listings.append({"uid": "L1"})
    hostfully.handle(
        "/amenities",
        lambda params: FakeResponse(200, {"amenities": []}) if "propertyUid" in params else FakeResponse(400, SCOPE_ERROR),
    )
    hostfully.add("/available-amenities", {"amenities": []})
    hostfully.add("/custom-amenities", {"customAmenities": [{"uid": "c1", "name": "Wine Cellar"}]})
    service = service_factory()

    payload = service.sync_amenities()

    assert payload["result"]["total"] == 1
    assert _amenity_names(service) == ["Wine Cellar"]
    assert service.state.get_cached(FALLBACK_CACHE_NAMESPACE, "L1")["source"] == "custom-amenities"


def test_fallback_without_listings(service_factory, hostfully):
    hostfully.add("/amenities", SCOPE_ERROR, status=400)
    service = service_factory()

    payload = service.sync_amenities()

    assert payload["result"] == {"created": 0, "updated": 0, "total": 0}
    assert payload["log"][-1] == "No properties found to derive amenities from."


def test_fallback_throttles_between_uncached_listings(app, hostfully, service_factory):
    hostfully.listings.extend([{"uid": "L1"}, {"uid": "L2"}])
    hostfully.add("/amenities", SCOPE_ERROR, status=400)
    hostfully.add("/available-amenities", {"amenities": []})
    service = service_factory()
    sleeps = []
    synchronizer = CatalogSynchronizer(
        service.client,
        service.mapper,
        service.state,
        service.settings,
        throttle_seconds=0.5,
        sleep=sleeps.append,
    )

    result = synchronizer.sync_catalog_safe(ImportLog())

    assert result.total == 0
    assert sleeps == [0.5, 0.5]


@pytest.mark.parametrize("status", [400, 200])
def test_scope_error_detection_is_status_independent(service_factory, hostfully, status):
    hostfully.add("/amenities", SCOPE_ERROR, status=status)
    service = service_factory()

    result = service.catalog.sync_catalog(ImportLog())

    assert result.error == ERROR_REQUIRES_SCOPE
