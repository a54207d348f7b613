"""
CLI commands for the Hostfully importer.

Each command performs the same step as the matching admin RPC action against
the persisted queue and progress, so a bulk import can be started from the
admin page and finished from a shell (or the other way round).
"""

from __future__ import annotations

import json
import time
from contextlib import contextmanager
from typing import Any, Iterator, Mapping

import click
from flask import has_app_context
from flask.cli import ScriptInfo

from flask_app.importer.pipeline.queue import ImportRequestError
from flask_app.importer.services import HostfullyImportService, build_import_service
from flask_app.utils.importer import is_importer_enabled


@click.group(name="importer", invoke_without_command=True)
@click.pass_context
def importer_cli(ctx):
    """
    Hostfully importer commands.

    Displays the adapter readiness and queue state when invoked without a subcommand.
    """
    info = ctx.ensure_object(ScriptInfo)
    app = info.load_app()
    if not is_importer_enabled(app):
        raise click.ClickException(
            "Importer is disabled via IMPORTER_ENABLED=false. " "Enable it to run importer CLI commands."
        )
    if ctx.invoked_subcommand is None:
        with _importer_service(ctx) as service:
            readiness = service.readiness()
            status = service.queue.status()
        click.echo(f"Hostfully adapter: {readiness.status}")
        for message in readiness.messages():
            click.echo(f"  - {message}")
        click.echo(f"Queue remaining: {status['remaining']}")


def get_disabled_importer_group() -> click.Group:
    """
    Return a minimal command group that informs the operator the importer is disabled.
    """

    @click.group(name="importer", invoke_without_command=True)
    def disabled_group():
        raise click.ClickException("Importer commands are unavailable because IMPORTER_ENABLED=false.")

    return disabled_group


@contextmanager
def _importer_service(ctx: click.Context) -> Iterator[HostfullyImportService]:
    app = ctx.ensure_object(ScriptInfo).load_app()
    if has_app_context():
        yield build_import_service(app)
        return
    with app.app_context():
        yield build_import_service(app)


def _echo_log(lines) -> None:
    for line in lines:
        click.echo(line)


def _echo_json(payload: Mapping[str, Any]) -> None:
    click.echo(json.dumps(payload, indent=2, sort_keys=True, default=str))


@importer_cli.command("sync-amenities")
@click.option("--json", "as_json", is_flag=True, help="Emit the result as JSON instead of the log.")
@click.pass_context
def importer_sync_amenities(ctx, as_json: bool):
    """Synchronize the Hostfully amenity catalog into the amenities taxonomy."""
    with _importer_service(ctx) as service:
        payload = service.sync_amenities()
    if as_json:
        _echo_json(payload)
        return
    _echo_log(payload["log"])
    result = payload["result"]
    if result.get("error"):
        raise click.ClickException(f"Amenity catalog sync failed: {result['error']}")


@importer_cli.command("import-one")
@click.argument("uid")
@click.option("--update-existing", is_flag=True, help="Re-import a listing that was imported before.")
@click.option("--json", "as_json", is_flag=True, help="Emit the result as JSON instead of the log.")
@click.pass_context
def importer_import_one(ctx, uid: str, update_existing: bool, as_json: bool):
    """Import a single Hostfully listing by UID."""
    with _importer_service(ctx) as service:
        try:
            payload = service.queue.import_one(uid, update_existing=update_existing)
        except ImportRequestError as exc:
            raise click.ClickException(str(exc)) from exc
    if as_json:
        _echo_json(payload)
        return
    _echo_log(payload["log"])
    if not payload["post_id"]:
        raise click.ClickException(f"Import of {uid} failed.")


@importer_cli.command("bulk-start")
@click.option("--update-existing", is_flag=True, help="Queue listings that were imported before.")
@click.option("--limit", type=click.IntRange(min=1), help="Override the configured bulk limit.")
@click.option("--uids-file", type=click.File("r"), help="Queue the UUIDs found in this file instead.")
@click.pass_context
def importer_bulk_start(ctx, update_existing: bool, limit: int | None, uids_file):
    """Build the import queue and reset progress counters."""
    with _importer_service(ctx) as service:
        if uids_file is not None:
            payload = service.queue.start_from_uids(uids_file.read(), update_existing=update_existing)
            _echo_log(payload["log"])
        else:
            payload = service.queue.start(update_existing=update_existing, batch_limit=limit)
            click.echo(f"Properties fetched: {payload['properties_total']}")
    click.echo(f"Queue prepared. Total to import: {payload['total']}")


def _echo_tick(payload: Mapping[str, Any]) -> None:
    if not payload.get("uid"):
        click.echo(payload.get("message", "Queue finished."))
        return
    click.echo("—")
    click.echo(f"Imported UID: {payload['uid']}")
    click.echo(f"Room Type ID: {payload['post_id'] or '(failed)'}")
    click.echo(f"Remaining: {payload['remaining']}")
    _echo_log(payload["log"])


def _echo_progress(progress: Mapping[str, Any]) -> None:
    click.echo(
        "Progress: "
        f"total {progress.get('total', 0)}, done {progress.get('done', 0)}, "
        f"created {progress.get('created', 0)}, updated {progress.get('updated', 0)}, "
        f"errors {progress.get('errors', 0)}"
    )


@importer_cli.command("bulk-tick")
@click.pass_context
def importer_bulk_tick(ctx):
    """Import the next queued listing."""
    with _importer_service(ctx) as service:
        payload = service.queue.advance()
    _echo_tick(payload)
    _echo_progress(payload["progress"])


@importer_cli.command("bulk-run")
@click.option("--delay", default=0.25, show_default=True, type=float, help="Seconds to wait between ticks.")
@click.option("--max-ticks", type=click.IntRange(min=1), help="Stop after this many ticks.")
@click.pass_context
def importer_bulk_run(ctx, delay: float, max_ticks: int | None):
    """Advance the queue one listing at a time until it is empty."""
    ticks = 0
    while True:
        with _importer_service(ctx) as service:
            payload = service.queue.advance()
        _echo_tick(payload)
        if payload["done"] or "uid" not in payload:
            break
        ticks += 1
        if max_ticks is not None and ticks >= max_ticks:
            click.echo(f"Stopped after {ticks} tick(s); remaining: {payload['remaining']}")
            break
        if delay > 0:
            time.sleep(delay)
    _echo_progress(payload["progress"])


@importer_cli.command("last-error")
@click.option("--clear", is_flag=True, help="Clear the stored error after printing it.")
@click.pass_context
def importer_last_error(ctx, clear: bool):
    """Print the most recent importer failure."""
    with _importer_service(ctx) as service:
        message = service.state.last_error()
        if clear:
            service.state.clear_last_error()
    click.echo(message or "No importer errors recorded.")
