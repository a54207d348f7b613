"""
Admin-facing Hostfully import page, settings form and RPC dispatch endpoint.
"""

from __future__ import annotations

import json
import time
from http import HTTPStatus
from typing import Any, Callable, Dict, Mapping

from flask import Blueprint, current_app, flash, jsonify, redirect, render_template, request, url_for
from flask_login import current_user, login_required

from config.monitoring import ImporterMonitoring
from flask_app.forms import HostfullySettingsForm
from flask_app.importer.pipeline.queue import ImportRequestError
from flask_app.importer.services import HostfullyImportService, build_import_service
from flask_app.importer.settings import ImporterSettings
from flask_app.importer.state import ImporterStateError
from flask_app.models import AdminLog
from flask_app.utils.importer import is_importer_enabled
from flask_app.utils.permissions import super_admin_required, super_admin_required_json

admin_hostfully_blueprint = Blueprint("admin_hostfully", __name__, url_prefix="/admin/hostfully")

_TRUTHY = {"1", "true", "yes", "on"}


def _ensure_importer_enabled() -> bool:
    return is_importer_enabled()


def _request_values() -> Dict[str, Any]:
    if request.is_json:
        payload = request.get_json(silent=True)
        return payload if isinstance(payload, dict) else {}
    return request.form.to_dict()


def _flag(values: Mapping[str, Any], key: str) -> bool:
    value = values.get(key)
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in _TRUTHY


def _audit(action: str, details: Mapping[str, Any]) -> None:
    AdminLog.log_action(
        admin_user_id=current_user.id,
        action=action,
        details=json.dumps(details, default=str),
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
    )


def _settings_form(settings: ImporterSettings) -> HostfullySettingsForm:
    form = HostfullySettingsForm()
    if request.method == "GET":
        form.agency_uid.data = settings.agency_uid
        form.base_url.data = settings.base_url
        form.max_photos.data = settings.max_photos
        form.bulk_limit.data = settings.bulk_limit
        form.api_page_limit.data = settings.api_page_limit
        form.allow_enrich_api.data = settings.allow_enrich_api
        form.amenities_cache_hours.data = settings.amenities_cache_hours
        form.verbose_log.data = settings.verbose_log
        form.amenity_channel_policy.data = settings.amenity_channel_policy
    return form


@admin_hostfully_blueprint.get("/")
@login_required
@super_admin_required
def hostfully_import_page():
    if not _ensure_importer_enabled():
        return render_template("errors/404.html"), HTTPStatus.NOT_FOUND

    service = build_import_service()
    properties = service.client.list_properties() if service.settings.has_credentials else []
    imported = set(service.imported_uids())
    return render_template(
        "admin/hostfully_import.html",
        form=_settings_form(service.settings),
        settings=service.settings.as_dict(mask_secret=True),
        readiness=service.readiness(),
        last_error=service.state.last_error(),
        queue_status=service.queue.status(),
        properties=[
            {
                "uid": str(listing.get("uid")),
                "name": str(listing.get("name") or listing.get("uid")),
                "imported": str(listing.get("uid")) in imported,
            }
            for listing in properties
        ],
        imported_total=len(imported),
    )


@admin_hostfully_blueprint.post("/settings")
@login_required
@super_admin_required
def hostfully_save_settings():
    if not _ensure_importer_enabled():
        return render_template("errors/404.html"), HTTPStatus.NOT_FOUND

    service = build_import_service()
    form = _settings_form(service.settings)
    if not form.validate_on_submit():
        ImporterMonitoring.record_settings_save(status="invalid")
        for field_errors in form.errors.values():
            for error in field_errors:
                flash(error, "danger")
        return redirect(url_for("admin_hostfully.hostfully_import_page"))

    settings = ImporterSettings.coerce(form.to_settings_payload(service.settings.api_key), base=service.settings)
    try:
        service.state.save_settings(settings.as_dict())
    except ImporterStateError as exc:
        current_app.logger.error("Failed to save Hostfully settings: %s", exc)
        ImporterMonitoring.record_settings_save(status="error")
        flash("Settings could not be saved. Please retry.", "danger")
        return redirect(url_for("admin_hostfully.hostfully_import_page"))

    ImporterMonitoring.record_settings_save(status="saved")
    _audit("HOSTFULLY_SETTINGS_UPDATED", settings.as_dict(mask_secret=True))
    flash("Settings saved.", "success")
    return redirect(url_for("admin_hostfully.hostfully_import_page"))


# RPC actions -----------------------------------------------------------------


def _bulk_start(service: HostfullyImportService, values: Mapping[str, Any]):
    payload = service.queue.start(update_existing=_flag(values, "update_existing"))
    _audit("HOSTFULLY_BULK_START", {"total": payload["total"], "update_existing": payload["update_existing"]})
    return payload


def _bulk_tick(service: HostfullyImportService, values: Mapping[str, Any]):
    return service.queue.advance()


def _bulk_stop(service: HostfullyImportService, values: Mapping[str, Any]):
    return service.queue.stop()


def _import_one(service: HostfullyImportService, values: Mapping[str, Any]):
    uid = str(values.get("property_uid") or "").strip()
    payload = service.queue.import_one(uid, update_existing=_flag(values, "update_existing"))
    _audit("HOSTFULLY_IMPORT_ONE", {"uid": uid, "post_id": payload["post_id"]})
    return payload


def _sync_amenities(service: HostfullyImportService, values: Mapping[str, Any]):
    payload = service.sync_amenities()
    _audit("HOSTFULLY_SYNC_AMENITIES", payload["result"])
    return payload


def _get_last_error(service: HostfullyImportService, values: Mapping[str, Any]):
    message = service.state.last_error()
    return {"message": message, "last_error": message}


def _clear_last_error(service: HostfullyImportService, values: Mapping[str, Any]):
    service.state.clear_last_error()
    _audit("HOSTFULLY_CLEAR_LAST_ERROR", {})
    return {"cleared": True, "last_error": ""}


def _get_imported_uids(service: HostfullyImportService, values: Mapping[str, Any]):
    return {"uids": service.imported_uids()}


def _uid_queue_start(service: HostfullyImportService, values: Mapping[str, Any]):
    payload = service.queue.start_from_uids(
        str(values.get("uids_raw") or ""),
        update_existing=_flag(values, "update_existing"),
    )
    _audit("HOSTFULLY_UID_QUEUE_START", {"total": payload["total"], "update_existing": payload["update_existing"]})
    return payload


RPC_ACTIONS: Dict[str, Callable[[HostfullyImportService, Mapping[str, Any]], Dict[str, Any]]] = {
    "bulk_start": _bulk_start,
    "bulk_tick": _bulk_tick,
    "bulk_stop": _bulk_stop,
    "import_one": _import_one,
    "sync_amenities": _sync_amenities,
    "get_last_error": _get_last_error,
    "clear_last_error": _clear_last_error,
    "get_imported_uids": _get_imported_uids,
    "uid_queue_start": _uid_queue_start,
}


@admin_hostfully_blueprint.post("/rpc")
@login_required
@super_admin_required_json
def hostfully_rpc():
    if not _ensure_importer_enabled():
        return jsonify({"error": "Importer is disabled."}), HTTPStatus.NOT_FOUND

    values = _request_values()
    action = str(values.get("action") or "").strip()
    handler = RPC_ACTIONS.get(action)
    if handler is None:
        return jsonify({"error": f"Unknown action '{action}'."}), HTTPStatus.BAD_REQUEST

    started = time.perf_counter()
    service = build_import_service()
    try:
        payload = handler(service, values)
    except ImportRequestError as exc:
        ImporterMonitoring.record_rpc(action=action, status="rejected", duration_seconds=time.perf_counter() - started)
        return jsonify({"error": str(exc)}), HTTPStatus.BAD_REQUEST
    except ImporterStateError as exc:
        ImporterMonitoring.record_rpc(action=action, status="error", duration_seconds=time.perf_counter() - started)
        current_app.logger.error("Importer state write failed", extra={"importer_action": action})
        return jsonify({"error": str(exc)}), HTTPStatus.INTERNAL_SERVER_ERROR

    ImporterMonitoring.record_rpc(action=action, status="ok", duration_seconds=time.perf_counter() - started)
    current_app.logger.info("Hostfully RPC handled", extra={"importer_action": action})
    return jsonify(payload), HTTPStatus.OK
