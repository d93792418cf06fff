"""
Versioned store snapshots.

A snapshot is ``{"version": int, "state": {...}}``. Older versions are brought
forward through ``MIGRATIONS`` once, at load time; every missing field gets an
explicit default.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from shared.errors import SnapshotError
from shared.logging import get_logger


CURRENT_SNAPSHOT_VERSION = 2

PAGINATION_DEFAULTS: Dict[str, Any] = {
    "page": 1,
    "page_size": 0,
    "total_pages": 0,
    "total_count": 0,
    "has_next_page": False,
    "has_previous_page": False,
}


def _from_legacy_state(state: Dict[str, Any]) -> Dict[str, Any]:
    """
    Version 0 snapshots used per-kind field names, e.g. ``books`` plus
    ``booksList``, with millisecond timestamps and flat pagination fields.
    """
    records: Dict[str, Any] = {}
    order = []
    for name, value in state.items():
        listing = state.get(f"{name}List")
        if isinstance(value, dict) and isinstance(listing, list):
            records = value
            order = listing
            break

    last_fetched = state.get("lastFetched")
    return {
        "records": records,
        "order": order,
        "indexes": {},
        "last_fetched": last_fetched / 1000.0 if isinstance(last_fetched, (int, float)) else None,
        "pagination": {
            "page": state.get("currentPage", 1),
            "total_pages": state.get("totalPages", 0),
            "total_count": state.get("totalCount", 0),
            "has_next_page": state.get("hasNextPage", False),
            "has_previous_page": state.get("hasPreviousPage", False),
        },
    }


def _add_record_stamps(state: Dict[str, Any]) -> Dict[str, Any]:
    """Version 1 had no per-record freshness stamps and partial pagination."""
    last_fetched = state.get("last_fetched")
    order = state.get("order") or []
    stamps = {key: last_fetched for key in order} if last_fetched is not None else {}
    return {
        **state,
        "fetched_at": state.get("fetched_at", stamps),
        "pagination": {**PAGINATION_DEFAULTS, **(state.get("pagination") or {})},
    }


MIGRATIONS: Dict[int, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    0: _from_legacy_state,
    1: _add_record_stamps,
}


def migrate_snapshot(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Bring a stored payload to the current version and return its state."""
    if not isinstance(payload, dict):
        raise SnapshotError("Snapshot payload must be an object")

    version = payload.get("version", 0)
    state = payload.get("state")
    if not isinstance(version, int) or not isinstance(state, dict):
        raise SnapshotError("Snapshot is missing its version or state", details={"version": version})
    if version > CURRENT_SNAPSHOT_VERSION:
        raise SnapshotError(
            f"Snapshot version {version} is newer than supported version {CURRENT_SNAPSHOT_VERSION}",
            details={"version": version}
        )

    try:
        while version < CURRENT_SNAPSHOT_VERSION:
            state = MIGRATIONS[version](state)
            version += 1

        state = {
            **state,
            "records": state.get("records") or {},
            "order": state.get("order") or [],
            "indexes": state.get("indexes") or {},
            "last_fetched": state.get("last_fetched"),
            "fetched_at": state.get("fetched_at") or {},
            "pagination": {**PAGINATION_DEFAULTS, **(state.get("pagination") or {})},
        }
    except (TypeError, ValueError, AttributeError) as exc:
        raise SnapshotError("Snapshot state is malformed", details={"error": str(exc)}) from exc

    _check_state(state)
    return state


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_state(state: Dict[str, Any]) -> None:
    """Reject a migrated state whose fields have the wrong shape."""
    problems = []

    records = state["records"]
    if not isinstance(records, dict) or not all(isinstance(record, dict) for record in records.values()):
        problems.append("records")
    if not isinstance(state["order"], list) or not all(isinstance(key, str) for key in state["order"]):
        problems.append("order")
    if not isinstance(state["indexes"], dict):
        problems.append("indexes")
    if state["last_fetched"] is not None and not _is_number(state["last_fetched"]):
        problems.append("last_fetched")

    fetched_at = state["fetched_at"]
    if not isinstance(fetched_at, dict) or not all(_is_number(stamp) for stamp in fetched_at.values()):
        problems.append("fetched_at")

    pagination = state["pagination"]
    for name, default in PAGINATION_DEFAULTS.items():
        value = pagination.get(name)
        valid = isinstance(value, bool) if isinstance(default, bool) else (
            isinstance(value, int) and not isinstance(value, bool)
        )
        if not valid:
            problems.append(f"pagination.{name}")

    if problems:
        raise SnapshotError("Snapshot state has fields of the wrong type", details={"fields": problems})


class SnapshotStorage:
    """Storage backend for store snapshots, keyed by store name."""

    def load(self, name: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def save(self, name: str, payload: Dict[str, Any]) -> None:
        raise NotImplementedError

    def remove(self, name: str) -> None:
        raise NotImplementedError


class MemorySnapshotStorage(SnapshotStorage):

    def __init__(self):
        self.snapshots: Dict[str, Dict[str, Any]] = {}

    def load(self, name: str) -> Optional[Dict[str, Any]]:
        payload = self.snapshots.get(name)
        # Round-trip through JSON so callers never share state with the store
        return json.loads(json.dumps(payload)) if payload is not None else None

    def save(self, name: str, payload: Dict[str, Any]) -> None:
        self.snapshots[name] = json.loads(json.dumps(payload))

    def remove(self, name: str) -> None:
        self.snapshots.pop(name, None)


class JsonFileSnapshotStorage(SnapshotStorage):
    """One JSON file per store under ``directory``."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.logger = get_logger("content_access.snapshot")

    def _path(self, name: str) -> Path:
        return self.directory / f"{name}-store.json"

    def load(self, name: str) -> Optional[Dict[str, Any]]:
        path = self._path(name)
        if not path.exists():
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise SnapshotError(f"Failed to read snapshot {path}", details={"error": str(exc)}) from exc

    def save(self, name: str, payload: Dict[str, Any]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(name)

        fd, tmp_path = tempfile.mkstemp(dir=str(self.directory), prefix=f".{name}-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f)
            os.replace(tmp_path, path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        self.logger.debug("Snapshot saved", store=name, path=str(path))

    def remove(self, name: str) -> None:
        path = self._path(name)
        if path.exists():
            path.unlink()
