import pytest

from config.base import _bounded_int, _coerce_bool
from config.validation import validate_and_exit, validate_environment


@pytest.fixture
def production_env(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "a-real-secret")
    monkeypatch.setenv("DATABASE_URL", "postgresql://importer@db/importer")
    for name in ("HOSTFULLY_REQUIRE_ENV_CREDENTIALS", "HOSTFULLY_API_KEY", "HOSTFULLY_AGENCY_UID", "HOSTFULLY_BASE_URL"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_non_production_is_not_validated():
    assert validate_environment("development") == (True, [])


def test_production_with_required_values(production_env):
    assert validate_environment("production") == (True, [])


def test_default_secret_key_is_rejected(production_env):
    production_env.setenv("SECRET_KEY", "your-secret-key")
    valid, errors = validate_environment("production")
    assert not valid
    assert errors[0].startswith("SECRET_KEY is required in production")


def test_hostfully_credentials_only_required_when_opted_in(production_env):
    production_env.setenv("HOSTFULLY_REQUIRE_ENV_CREDENTIALS", "true")
    production_env.setenv("HOSTFULLY_AGENCY_UID", "agency-1")

    valid, errors = validate_environment("production")

    assert not valid
    assert errors == ["HOSTFULLY_API_KEY is required when HOSTFULLY_REQUIRE_ENV_CREDENTIALS=true"]


def test_relative_base_url_is_rejected(production_env):
    production_env.setenv("HOSTFULLY_BASE_URL", "api.hostfully.com")
    assert validate_environment("production")[1] == ["HOSTFULLY_BASE_URL must be an absolute http(s) URL."]


def test_validate_and_exit(production_env, capsys):
    production_env.delenv("DATABASE_URL")

    with pytest.raises(SystemExit) as excinfo:
        validate_and_exit("production")

    assert excinfo.value.code == 1
    assert "DATABASE_URL is required in production" in capsys.readouterr().err


@pytest.mark.parametrize(
    "value,expected",
    [("true", True), ("Yes", True), ("on", True), ("0", False), ("off", False), (None, False)],
)
def test_coerce_bool(value, expected):
    assert _coerce_bool(value, default=False) is expected


def test_bounded_int():
    assert _bounded_int("500", 100, minimum=1, maximum=100) == 100
    assert _bounded_int("-3", 8, minimum=0) == 0
    assert _bounded_int("many", 8, minimum=0) == 8
    assert _bounded_int(None, 8, minimum=0) == 8
