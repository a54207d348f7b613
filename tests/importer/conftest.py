from __future__ import annotations

import pytest

from flask_app.importer.services import HTTP_SESSION_KEY, build_import_service
from flask_app.importer.state import ImporterState, InMemoryStateStore

from .fakes import FakeHostfully, make_listing, make_photos


@pytest.fixture
def hostfully(app):
    """Fake Hostfully API installed as the importer's HTTP session."""
    fake = FakeHostfully(app.config["HOSTFULLY_BASE_URL"])
    app.extensions.setdefault("importer", {})[HTTP_SESSION_KEY] = fake
    yield fake
    app.extensions["importer"].pop(HTTP_SESSION_KEY, None)


@pytest.fixture
def beach_house(hostfully):
    listing = make_listing()
    hostfully.add_listing(listing, make_photos())
    return listing


@pytest.fixture
def memory_state():
    return ImporterState(InMemoryStateStore())


@pytest.fixture
def service_factory(app, hostfully, monkeypatch):
    """Build an import service against the fake API and the database-backed state."""

    def _factory(**config):
        for key, value in config.items():
            monkeypatch.setitem(app.config, key, value)
        return build_import_service(app)

    return _factory
