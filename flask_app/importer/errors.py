"""
Request-level crash capture for the importer's own endpoints.

Unhandled exceptions raised while serving the Hostfully admin page or RPC
endpoint are written to the importer's last-error slot so the operator sees
them on the next page load, even when the response itself was a bare 500.
"""

from __future__ import annotations

import traceback

from flask import Flask, got_request_exception, request
from sqlalchemy.exc import SQLAlchemyError

from flask_app.models import db

from .state import ImporterState, ImporterStateError, OptionStateStore

CAPTURED_BLUEPRINTS = ("admin_hostfully",)


def should_capture(endpoint: str | None) -> bool:
    if not endpoint:
        return False
    blueprint = endpoint.split(".", 1)[0]
    return blueprint in CAPTURED_BLUEPRINTS


def format_fatal_error(exc: BaseException) -> str:
    frames = traceback.extract_tb(exc.__traceback__)
    message = f"Fatal error: {exc} ({type(exc).__name__})"
    if frames:
        message += f" in {frames[-1].filename}:{frames[-1].lineno}"
    return message


def _capture_request_exception(sender: Flask, exception: BaseException, **extra) -> None:
    if not should_capture(request.endpoint):
        return
    message = format_fatal_error(exception)
    try:
        db.session.rollback()
        ImporterState(OptionStateStore()).set_last_error(message)
    except (SQLAlchemyError, ImporterStateError) as exc:
        sender.logger.error("Could not record importer failure: %s", exc)
        return
    sender.logger.error(
        "Importer request failed",
        extra={"importer_endpoint": request.endpoint, "importer_error": message},
    )


def init_failure_capture(app: Flask) -> None:
    got_request_exception.connect(_capture_request_exception, app)
