"""Shared fixtures for route tests"""

import pytest

from flask_app.importer.services import HTTP_SESSION_KEY

from ..importer.fakes import FakeHostfully, listing_uid, make_listing


@pytest.fixture
def hostfully(app):
    """Serve Hostfully API calls made during a request from an in-memory fake"""
    fake = FakeHostfully()
    app.extensions.setdefault("importer", {})[HTTP_SESSION_KEY] = fake
    yield fake
    app.extensions["importer"].pop(HTTP_SESSION_KEY, None)


@pytest.fixture
def villas(hostfully):
    """Three listings without photos; returns their UIDs"""
    uids = [listing_uid(index) for index in range(1, 4)]
    for index, uid in enumerate(uids, start=1):
        hostfully.add_listing(make_listing(uid, name=f"Villa {index}"))
    return uids
