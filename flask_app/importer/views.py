"""
Importer endpoints for health checks and Prometheus metrics.
"""

from __future__ import annotations

from flask import Blueprint, Response, current_app, jsonify
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.exc import SQLAlchemyError

from flask_app.utils.importer import is_importer_enabled

from .services import build_import_service

importer_blueprint = Blueprint("importer", __name__, url_prefix="/importer")


@importer_blueprint.get("/health")
def importer_healthcheck():
    """
    Report Hostfully adapter readiness and the persisted queue state.

    Credentials are only checked for presence; no request is sent to Hostfully.
    """
    if not is_importer_enabled():
        return jsonify({"status": "disabled", "enabled": False}), 404

    try:
        service = build_import_service()
        readiness = service.readiness()
        queue_state = service.queue.status()
    except SQLAlchemyError as exc:
        current_app.logger.warning("Importer health check could not read state: %s", exc)
        return jsonify({"status": "error", "enabled": True, "error": "Importer state unavailable."}), 503

    return (
        jsonify(
            {
                "status": "ok" if readiness.status == "ready" else "degraded",
                "enabled": True,
                "adapters": {"hostfully": readiness.as_dict()},
                "queue": queue_state,
            }
        ),
        200,
    )


def metrics_view():
    """Expose the default Prometheus registry in the text exposition format."""
    return Response(generate_latest(), content_type=CONTENT_TYPE_LATEST)
