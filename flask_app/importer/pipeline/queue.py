"""
Externally driven import queue with persisted progress counters.

Every call is a complete request/response step: ``start`` rebuilds the queue,
``advance`` pops and imports exactly one UID, ``stop`` leaves the remaining
entries in place. Nothing here loops on its own; the admin page (or the CLI)
keeps calling ``advance`` until it reports ``done``.
"""

from __future__ import annotations

import logging
import re
import time
import traceback
from typing import Any, Callable, Dict, Iterable, List

from flask_app.importer.log import ImportLog
from flask_app.importer.metrics import record_import_unit, record_queue_remaining
from flask_app.importer.settings import ImporterSettings
from flask_app.importer.state import ImporterState, empty_progress

from .property_import import ImportOutcome, PropertyImporter

logger = logging.getLogger(__name__)

UUID_PATTERN = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE)
QUEUE_FINISHED = "Queue finished."
NO_SELECTION = "No property selected."
ALREADY_IMPORTED = (
    "That property is already imported. Tick “Allow updating…” if you want to re-import/update it."
)


class ImportRequestError(ValueError):
    """Raised for control-surface requests rejected before any work begins."""


def extract_uuids(raw: str) -> List[str]:
    """Lower-cased, de-duplicated UUIDs in the order they appear in ``raw``."""
    seen: List[str] = []
    for match in UUID_PATTERN.findall(raw or ""):
        uid = match.lower()
        if uid not in seen:
            seen.append(uid)
    return seen


def describe_exception(exc: BaseException) -> str:
    """``Import exception: <msg> (<Class>) in <file>:<line>`` for the innermost frame."""
    frames = traceback.extract_tb(exc.__traceback__)
    location = f"{frames[-1].filename}:{frames[-1].lineno}" if frames else "unknown:0"
    return f"Import exception: {exc} ({type(exc).__name__}) in {location}"


class ImportQueue:
    """Start/advance/stop state machine over the persisted queue and progress."""

    def __init__(
        self,
        state: ImporterState,
        importer: PropertyImporter,
        settings: ImporterSettings,
        *,
        list_uids: Callable[[], List[str]],
        imported_uids: Callable[[], Iterable[str]],
        clock: Callable[[], float] = time.time,
    ):
        self.state = state
        self.importer = importer
        self.settings = settings
        self.list_uids = list_uids
        self.imported_uids = imported_uids
        self.clock = clock

    # Public API -----------------------------------------------------------------

    def start(self, *, update_existing: bool = False, batch_limit: int | None = None) -> Dict[str, Any]:
        limit = batch_limit if batch_limit is not None else self.settings.bulk_limit
        available = self.list_uids()
        queue = self._select(available, update_existing=update_existing, limit=limit)
        self._reset(queue)
        logger.info(
            "Hostfully import queue started",
            extra={"queue_total": len(queue), "properties_total": len(available), "update_existing": update_existing},
        )
        return {
            "total": len(queue),
            "properties_total": len(available),
            "queue": queue,
            "queue_preview": list(queue),
            "update_existing": update_existing,
            "last_error": self.state.last_error(),
        }

    def start_from_uids(self, raw_text: str, *, update_existing: bool = False) -> Dict[str, Any]:
        pasted = extract_uuids(raw_text)
        queue = self._select(pasted, update_existing=update_existing, limit=self.settings.bulk_limit)
        self._reset(queue)

        log = [f"UIDs pasted: {len(pasted)}", f"UIDs queued: {len(queue)}"]
        if len(pasted) > len(queue):
            log.append(f"UIDs skipped (already imported or over the batch limit): {len(pasted) - len(queue)}")
        logger.info("Hostfully UID queue started", extra={"queue_total": len(queue), "pasted_total": len(pasted)})
        return {
            "total": len(queue),
            "queue": queue,
            "queue_preview": list(queue),
            "update_existing": update_existing,
            "log": log,
            "last_error": self.state.last_error(),
        }

    def advance(self) -> Dict[str, Any]:
        queue = self.state.queue()
        progress = self.state.progress()
        if not queue:
            return {
                "done": True,
                "uid": None,
                "local_id": 0,
                "remaining": 0,
                "log": [],
                "progress": progress,
                "message": QUEUE_FINISHED,
                "last_error": self.state.last_error(),
            }

        uid = queue.pop(0)
        self.state.set_queue(queue)

        outcome = self._run(uid)
        progress["done"] = int(progress.get("done") or 0) + 1
        progress["last"] = uid
        counter = self._counter(outcome)
        progress[counter] = int(progress.get(counter) or 0) + 1
        self.state.set_progress(progress)
        record_queue_remaining(len(queue))

        return {
            "done": not queue,
            "post_id": outcome.record_id,
            "local_id": outcome.record_id,
            "uid": uid,
            "log": outcome.log.lines,
            "progress": progress,
            "remaining": len(queue),
            "last_error": self.state.last_error(),
        }

    def stop(self) -> Dict[str, Any]:
        remaining = self.state.queue()
        logger.info("Hostfully import queue stopped", extra={"queue_remaining": len(remaining)})
        return {"stopped": True, "remaining": len(remaining), "queue": remaining, "progress": self.state.progress()}

    def import_one(self, uid: str | None, *, update_existing: bool = False) -> Dict[str, Any]:
        uid = (uid or "").strip()
        if not uid:
            raise ImportRequestError(NO_SELECTION)
        if not update_existing and uid in set(self.imported_uids()):
            raise ImportRequestError(ALREADY_IMPORTED)

        started_at = int(self.clock())
        outcome = self._run(uid)
        duration = int(self.clock()) - started_at

        counter = self._counter(outcome)
        progress = {
            "total": 1,
            "done": 1,
            "errors": int(counter == "errors"),
            "created": int(counter == "created"),
            "updated": int(counter == "updated"),
            "started_at": started_at,
        }
        outcome.log.add(
            f"Summary: total 1, done 1, created {progress['created']}, updated {progress['updated']}, "
            f"errors {progress['errors']}, duration {duration}s"
        )
        return {
            "uid": uid,
            "post_id": outcome.record_id,
            "local_id": outcome.record_id,
            "log": outcome.log.lines,
            "progress": progress,
            "duration": duration,
            "last_error": self.state.last_error(),
        }

    def status(self) -> Dict[str, Any]:
        queue = self.state.queue()
        return {"remaining": len(queue), "progress": self.state.progress(), "last_error": self.state.last_error()}

    # Internal helpers -----------------------------------------------------------

    def _select(self, uids: Iterable[str], *, update_existing: bool, limit: int) -> List[str]:
        imported = set() if update_existing else set(self.imported_uids())
        selected: List[str] = []
        for uid in uids:
            if not uid or uid in imported or uid in selected:
                continue
            selected.append(uid)
            if len(selected) >= max(1, int(limit)):
                break
        return selected

    def _reset(self, queue: List[str]) -> None:
        self.state.set_queue(queue)
        self.state.set_progress(empty_progress(len(queue), started_at=int(self.clock())))
        record_queue_remaining(len(queue))

    def _run(self, uid: str) -> ImportOutcome:
        """Import one UID; unexpected failures become a failed unit and the last error."""
        started = time.perf_counter()
        try:
            outcome = self.importer.import_listing(uid)
        except Exception as exc:
            self.importer.store.session.rollback()
            message = describe_exception(exc)
            logger.exception("Hostfully import raised", extra={"hostfully_uid": uid})
            log = ImportLog(verbose=self.settings.verbose_log, uid=uid)
            log.add(message)
            self.state.set_last_error(message)
            outcome = ImportOutcome(record_id=0, created=False, log=log)

        record_import_unit(outcome=self._counter(outcome), duration_seconds=time.perf_counter() - started)
        return outcome

    @staticmethod
    def _counter(outcome: ImportOutcome) -> str:
        if not outcome.ok:
            return "errors"
        return "created" if outcome.created else "updated"
