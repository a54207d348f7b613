import pytest

from flask_app.importer.errors import format_fatal_error, should_capture


@pytest.mark.parametrize(
    "endpoint,expected",
    [
        ("admin_hostfully.hostfully_rpc", True),
        ("admin_hostfully.hostfully_import_page", True),
        ("importer.importer_healthcheck", False),
        ("login", False),
        (None, False),
    ],
)
def test_should_capture(endpoint, expected):
    assert should_capture(endpoint) is expected


def test_format_fatal_error_names_innermost_frame():
    def fail():
        raise OSError("disk full")

    try:
        fail()
    except OSError as exc:
        message = format_fatal_error(exc)

    assert message.startswith("Fatal error: disk full (OSError) in ")
    assert message.split(":")[-1].isdigit()


def test_format_fatal_error_without_traceback():
    assert format_fatal_error(ValueError("never raised")) == "Fatal error: never raised (ValueError)"
