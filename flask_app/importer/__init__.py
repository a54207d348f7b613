"""
Hostfully importer feature package.

Provides conditional blueprint and CLI registration along with adapter
readiness tracking while remaining lightweight when the importer is disabled.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping

from flask import Flask

from flask_app.utils.importer import is_importer_enabled

from .adapters.hostfully import check_hostfully_adapter_readiness
from .cli import get_disabled_importer_group, importer_cli
from .errors import init_failure_capture
from .metrics import record_hostfully_adapter_status
from .settings import ImporterSettings
from .views import importer_blueprint, metrics_view

IMPORTER_EXTENSION_KEY = "importer"

__all__ = [
    "init_importer",
    "IMPORTER_EXTENSION_KEY",
    "get_adapter_readiness",
    "refresh_adapter_readiness",
]


def _ensure_extension_state(app: Flask) -> dict:
    state = app.extensions.setdefault(
        IMPORTER_EXTENSION_KEY,
        {
            "enabled": False,
            "menu_items": (),
            "_context_registered": False,
            "_failure_capture_registered": False,
            "_metrics_registered": False,
            "adapter_readiness": {},
        },
    )
    return state


def _register_template_context(app: Flask, state: dict[str, Any]) -> None:
    if state.get("_context_registered"):
        return

    @app.context_processor
    def importer_context():
        enabled_flag = bool(app.config.get("IMPORTER_ENABLED", False))
        extension_state = app.extensions.get(IMPORTER_EXTENSION_KEY, {})
        return {
            "importer_enabled": enabled_flag,
            "importer_menu_items": extension_state.get("menu_items", ()) if enabled_flag else (),
        }

    state["_context_registered"] = True


def _register_metrics_endpoint(app: Flask, state: dict[str, Any]) -> None:
    """Serve Prometheus metrics at ``METRICS_ENDPOINT`` when ``MONITORING_ENABLED`` is set."""
    if state.get("_metrics_registered") or not app.config.get("MONITORING_ENABLED", False):
        return
    if getattr(app, "_got_first_request", False):
        app.logger.warning(
            "Metrics endpoint registration skipped because the app has already handled its first request."
        )
        return
    app.add_url_rule(app.config.get("METRICS_ENDPOINT") or "/metrics", "importer_metrics", metrics_view)
    state["_metrics_registered"] = True


def _compute_adapter_readiness(app: Flask) -> Dict[str, Dict[str, Any]]:
    # Config defaults only; operator-saved settings are read per request.
    readiness = check_hostfully_adapter_readiness(ImporterSettings.from_config(app.config))
    record_hostfully_adapter_status(readiness.status == "ready")
    payload: Dict[str, Any] = {"name": "hostfully", "title": "Hostfully"}
    payload.update(readiness.as_dict())
    return {"hostfully": payload}


def _set_cli(app: Flask, enabled: bool) -> None:
    """Register the appropriate CLI group based on flag state."""
    # Avoid duplicate registrations when running tests
    command_name = importer_cli.name
    if command_name in app.cli.commands:
        app.cli.commands.pop(command_name)

    if enabled:
        app.cli.add_command(importer_cli)
    else:
        app.cli.add_command(get_disabled_importer_group())


def init_importer(app: Flask) -> None:
    """
    Mount the importer blueprint and CLI, and record importer state inside
    ``app.extensions['importer']`` for reuse in templates, CLI, and other helpers.

    The blueprint is always registered so the flag can be flipped at runtime;
    every endpoint checks ``IMPORTER_ENABLED`` per request.
    """
    enabled = is_importer_enabled(app)
    state = _ensure_extension_state(app)
    state["enabled"] = enabled
    _register_template_context(app, state)

    if not state.get("_failure_capture_registered"):
        init_failure_capture(app)
        state["_failure_capture_registered"] = True
    _register_metrics_endpoint(app, state)

    if importer_blueprint.name not in app.blueprints and not getattr(app, "_got_first_request", False):
        app.register_blueprint(importer_blueprint)
    elif importer_blueprint.name not in app.blueprints:
        app.logger.warning(
            "Importer blueprint registration skipped because the app has already handled its first request."
        )

    if not enabled:
        record_hostfully_adapter_status(False)
        state["menu_items"] = ()
        state["adapter_readiness"] = {}
        _set_cli(app, enabled=False)
        app.logger.info("Importer disabled via IMPORTER_ENABLED flag; skipping registration.")
        return

    state["menu_items"] = (
        {
            "label": "Hostfully Import",
            "endpoint": "admin_hostfully.hostfully_import_page",
        },
        {
            "label": "Importer Health",
            "endpoint": "importer.importer_healthcheck",
        },
    )

    readiness_map = _compute_adapter_readiness(app)
    state["adapter_readiness"] = readiness_map
    payload = readiness_map["hostfully"]
    if payload.get("status") != "ready":
        messages = list(payload.get("messages") or ())
        message_str = "; ".join(messages) if messages else "No additional context provided."
        app.logger.warning(
            "Importer adapter 'hostfully' not ready (status=%s). %s",
            payload.get("status"),
            message_str,
            extra={
                "importer_adapter": "hostfully",
                "importer_adapter_status": payload.get("status"),
                "importer_adapter_messages": messages,
            },
        )

    _set_cli(app, enabled=True)
    app.logger.info("Importer enabled with adapters: hostfully")


def get_adapter_readiness(app: Flask) -> Mapping[str, Dict[str, Any]]:
    """
    Return cached adapter readiness information for the importer extension.
    """
    state = _ensure_extension_state(app)
    readiness = state.get("adapter_readiness", {})
    return dict(readiness)


def refresh_adapter_readiness(app: Flask) -> Mapping[str, Dict[str, Any]]:
    """
    Recompute adapter readiness and persist the results on the importer extension state.
    """
    state = _ensure_extension_state(app)
    readiness_map = _compute_adapter_readiness(app)
    state["adapter_readiness"] = readiness_map
    return dict(readiness_map)
