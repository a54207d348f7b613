"""
Persistent importer state behind a small key/value interface.

Everything the importer remembers between requests (settings, the pending
queue, progress counters, the attribute dictionary, the attribute registry,
the last error and per-listing caches) goes through ``ImporterState`` so the
storage can be swapped for an in-memory store in tests.
"""

from __future__ import annotations

import copy
import hashlib
import time
from typing import Any, Callable, Dict, List, Mapping

from flask_app.models.importer.schema import ImporterOption

OPTION_PREFIX = "hostfully_mphb_"

SETTINGS_KEY = "settings"
QUEUE_KEY = "queue"
PROGRESS_KEY = "progress"
DICTIONARY_KEY = "attribute_dictionary"
ATTRIBUTE_REGISTRY_KEY = "attribute_registry"
LAST_ERROR_KEY = "last_error"
LEGACY_CLEANUP_KEY = "legacy_bedroom_cleaned"
CACHE_PREFIX = "cache_"


class ImporterStateError(RuntimeError):
    """Raised when importer state cannot be persisted."""


class StateStore:
    """Minimal key/value contract used by ``ImporterState``."""

    def get(self, key: str, default: Any = None) -> Any:  # pragma: no cover - interface
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:  # pragma: no cover - interface
        raise NotImplementedError

    def delete(self, key: str) -> None:  # pragma: no cover - interface
        raise NotImplementedError


class InMemoryStateStore(StateStore):
    def __init__(self, initial: Mapping[str, Any] | None = None):
        self._values: Dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._values:
            return default
        return copy.deepcopy(self._values[key])

    def set(self, key: str, value: Any) -> None:
        self._values[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._values.pop(key, None)

    def keys(self) -> List[str]:
        return sorted(self._values)


class OptionStateStore(StateStore):
    """Stores each key as an ``ImporterOption`` row."""

    def __init__(self, prefix: str = OPTION_PREFIX):
        self.prefix = prefix

    def _name(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str, default: Any = None) -> Any:
        return copy.deepcopy(ImporterOption.get_option(self._name(key), default))

    def set(self, key: str, value: Any) -> None:
        if not ImporterOption.set_option(self._name(key), copy.deepcopy(value)):
            raise ImporterStateError(f"Could not persist importer state '{key}'.")

    def delete(self, key: str) -> None:
        ImporterOption.delete_option(self._name(key))


def empty_progress(total: int = 0, *, started_at: int | None = None) -> Dict[str, Any]:
    return {
        "total": int(total),
        "done": 0,
        "last": None,
        "errors": 0,
        "created": 0,
        "updated": 0,
        "started_at": int(started_at if started_at is not None else time.time()),
    }


class ImporterState:
    """Typed accessors over a ``StateStore``."""

    def __init__(self, store: StateStore, *, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock

    # settings ---------------------------------------------------------------
    def saved_settings(self) -> Dict[str, Any]:
        value = self.store.get(SETTINGS_KEY, {})
        return value if isinstance(value, dict) else {}

    def save_settings(self, values: Mapping[str, Any]) -> None:
        self.store.set(SETTINGS_KEY, dict(values))

    # queue ------------------------------------------------------------------
    def queue(self) -> List[str]:
        value = self.store.get(QUEUE_KEY, [])
        if not isinstance(value, list):
            return []
        return [str(uid) for uid in value if uid]

    def set_queue(self, uids: List[str]) -> None:
        self.store.set(QUEUE_KEY, list(uids))

    # progress ---------------------------------------------------------------
    def progress(self) -> Dict[str, Any]:
        value = self.store.get(PROGRESS_KEY)
        if not isinstance(value, dict):
            return {"total": 0, "done": 0, "errors": 0}
        return value

    def set_progress(self, progress: Mapping[str, Any]) -> None:
        self.store.set(PROGRESS_KEY, dict(progress))

    # attribute dictionary (kind -> remote uid -> term id) -------------------
    def dictionary(self, kind: str) -> Dict[str, int]:
        value = self.store.get(DICTIONARY_KEY, {})
        if not isinstance(value, dict):
            return {}
        section = value.get(kind) or {}
        return {str(uid): int(term_id) for uid, term_id in section.items() if term_id}

    def dictionary_lookup(self, kind: str, remote_uid: str) -> int | None:
        return self.dictionary(kind).get(remote_uid)

    def remember_term(self, kind: str, remote_uid: str, term_id: int) -> None:
        value = self.store.get(DICTIONARY_KEY, {})
        if not isinstance(value, dict):
            value = {}
        section = dict(value.get(kind) or {})
        section[remote_uid] = int(term_id)
        value[kind] = section
        self.store.set(DICTIONARY_KEY, value)

    # attribute taxonomy registry (slug -> {label, key}) ----------------------
    def attribute_registry(self) -> Dict[str, Dict[str, str]]:
        value = self.store.get(ATTRIBUTE_REGISTRY_KEY, {})
        return value if isinstance(value, dict) else {}

    def register_attribute(self, slug: str, *, label: str, key: str) -> None:
        registry = self.attribute_registry()
        registry[slug] = {"label": label, "key": key}
        self.store.set(ATTRIBUTE_REGISTRY_KEY, registry)

    # last error -------------------------------------------------------------
    def last_error(self) -> str:
        value = self.store.get(LAST_ERROR_KEY, "")
        return value if isinstance(value, str) else ""

    def set_last_error(self, message: str) -> None:
        self.store.set(LAST_ERROR_KEY, str(message))

    def clear_last_error(self) -> None:
        self.store.delete(LAST_ERROR_KEY)

    # legacy cleanup flag ----------------------------------------------------
    def legacy_cleanup_done(self) -> bool:
        return bool(self.store.get(LEGACY_CLEANUP_KEY, False))

    def mark_legacy_cleanup_done(self) -> None:
        self.store.set(LEGACY_CLEANUP_KEY, True)

    # ttl cache --------------------------------------------------------------
    @staticmethod
    def cache_key(namespace: str, identifier: str) -> str:
        digest = hashlib.md5(identifier.encode("utf-8")).hexdigest()
        return f"{CACHE_PREFIX}{namespace}_{digest}"

    def get_cached(self, namespace: str, identifier: str) -> Any:
        entry = self.store.get(self.cache_key(namespace, identifier))
        if not isinstance(entry, dict) or "expires_at" not in entry:
            return None
        if float(entry["expires_at"]) <= self.clock():
            self.store.delete(self.cache_key(namespace, identifier))
            return None
        return entry.get("value")

    def set_cached(self, namespace: str, identifier: str, value: Any, ttl_seconds: int) -> None:
        self.store.set(
            self.cache_key(namespace, identifier),
            {"expires_at": self.clock() + max(1, int(ttl_seconds)), "value": value},
        )
