from pathlib import Path

from flask import Flask, render_template_string

from flask_app.importer import (
    IMPORTER_EXTENSION_KEY,
    get_adapter_readiness,
    init_importer,
    refresh_adapter_readiness,
)

TEMPLATE_DIR = Path(__file__).resolve().parents[1] / "templates"


def build_app(enabled=False, **config):
    app = Flask(__name__, template_folder=str(TEMPLATE_DIR))
    app.config.update(SECRET_KEY="test-secret", TESTING=True, IMPORTER_ENABLED=enabled, **config)

    init_importer(app)
    return app


def test_importer_disabled_registers_stub_cli():
    app = build_app(enabled=False)

    assert "importer" in app.blueprints
    assert app.extensions[IMPORTER_EXTENSION_KEY]["menu_items"] == ()
    assert get_adapter_readiness(app) == {}

    runner = app.test_cli_runner()
    result = runner.invoke(args=["importer"])
    assert result.exit_code != 0
    assert "Importer commands are unavailable" in result.output

    response = app.test_client().get("/importer/health")
    assert response.status_code == 404
    assert response.get_json() == {"status": "disabled", "enabled": False}

    with app.app_context():
        rendered = render_template_string("{{ importer_enabled }} {{ importer_menu_items|length }}")
        assert rendered.strip() == "False 0"


def test_importer_enabled_records_menu_and_readiness():
    app = build_app(enabled=True, HOSTFULLY_AGENCY_UID="agency-1")

    assert "importer.importer_healthcheck" in app.view_functions
    state = app.extensions[IMPORTER_EXTENSION_KEY]
    assert state["enabled"] is True
    assert [item["endpoint"] for item in state["menu_items"]] == [
        "admin_hostfully.hostfully_import_page",
        "importer.importer_healthcheck",
    ]

    readiness = get_adapter_readiness(app)["hostfully"]
    assert readiness["title"] == "Hostfully"
    assert readiness["status"] == "missing-env"
    assert readiness["missing_settings"] == ["api_key"]

    with app.app_context():
        rendered = render_template_string("{{ importer_enabled }} {{ importer_menu_items|length }}")
        assert rendered.strip() == "True 2"


def test_refresh_adapter_readiness_picks_up_new_config():
    app = build_app(enabled=True)
    app.config.update(HOSTFULLY_API_KEY="key", HOSTFULLY_AGENCY_UID="agency-1")

    refreshed = refresh_adapter_readiness(app)

    assert refreshed["hostfully"]["status"] == "ready"
    assert get_adapter_readiness(app)["hostfully"]["status"] == "ready"


def test_init_importer_is_idempotent():
    app = build_app(enabled=True)

    init_importer(app)

    assert app.extensions[IMPORTER_EXTENSION_KEY]["_failure_capture_registered"] is True
    assert app.extensions[IMPORTER_EXTENSION_KEY]["enabled"] is True


def test_metrics_endpoint_follows_monitoring_config():
    app = build_app(enabled=True, MONITORING_ENABLED=True, METRICS_ENDPOINT="/ops/metrics")
    init_importer(app)

    response = app.test_client().get("/ops/metrics")

    assert response.status_code == 200
    assert response.content_type.startswith("text/plain")
    assert b"importer_hostfully_adapter_ready" in response.data
    assert [rule.rule for rule in app.url_map.iter_rules() if rule.endpoint == "importer_metrics"] == ["/ops/metrics"]


def test_metrics_endpoint_absent_when_monitoring_disabled():
    app = build_app(enabled=True)

    assert "importer_metrics" not in app.view_functions
    assert app.test_client().get("/metrics").status_code == 404


def test_health_reports_ready_adapter_and_queue(client):
    response = client.get("/importer/health")

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["status"] == "ok"
    assert payload["enabled"] is True
    assert payload["adapters"]["hostfully"]["status"] == "ready"
    assert payload["adapters"]["hostfully"]["auth_status"] == "skipped"
    assert payload["queue"]["remaining"] == 0


def test_health_is_degraded_without_credentials(client, app, monkeypatch):
    monkeypatch.setitem(app.config, "HOSTFULLY_API_KEY", "")

    payload = client.get("/importer/health").get_json()

    assert payload["status"] == "degraded"
    assert payload["adapters"]["hostfully"]["missing_settings"] == ["api_key"]


def test_health_disabled_at_runtime(client, app, monkeypatch):
    monkeypatch.setitem(app.config, "IMPORTER_ENABLED", False)

    response = client.get("/importer/health")

    assert response.status_code == 404
