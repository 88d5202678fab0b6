"""Release state store: releases, their steps, and the release log.

Every mutation happens under one lock. Step and release transitions are
compare-and-swap: the caller names the status it expects, and a mismatch
returns ``Ok(None)`` without touching anything. This is what keeps two
callers from running the same step at once.

``JsonReleaseStore`` keeps the same in-memory model and rewrites a single JSON
document (``releases.json``) after each mutation. If the write fails, the
in-memory change is rolled back and ``StoreFailed`` is returned.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path
from typing import Protocol, cast

from rel.core.result import Err, Ok, Result
from rel.core.structured import StrDict, as_obj_list, as_str_dict, get_int, get_str, get_table
from rel.platform.files import atomic_write_text
from rel.services.release.errors import StoreFailed, VersionInUse
from rel.services.release.model import (
    LOG_LEVELS,
    RELEASE_STATUSES,
    Application,
    LogEntry,
    LogLevel,
    Release,
    ReleaseStatus,
    Step,
    StepStatus,
    StepType,
    parse_step_type,
)

SCHEMA_VERSION = 1
STATE_FILE_NAME = "releases.json"

_STEP_STATUSES = ("pending", "in_progress", "completed", "failed", "skipped")


class ReleaseStore(Protocol):
    def create(
        self, release: Release, steps: Iterable[Step], log: LogEntry
    ) -> Result[Release, VersionInUse | StoreFailed]: ...

    def get_release(self, release_id: str) -> Release | None: ...

    def get_steps(self, release_id: str) -> tuple[Step, ...]: ...

    def get_step(self, release_id: str, step_type: StepType) -> Step | None: ...

    def releases(self) -> tuple[Release, ...]: ...

    def update_release(
        self,
        release_id: str,
        change: Callable[[Release], Release],
        *,
        expected: frozenset[ReleaseStatus] | None = None,
    ) -> Result[Release | None, StoreFailed]: ...

    def update_step(
        self,
        release_id: str,
        step_type: StepType,
        change: Callable[[Step], Step],
        *,
        expected: StepStatus,
    ) -> Result[Step | None, StoreFailed]: ...

    def append_log(self, entry: LogEntry) -> Result[None, StoreFailed]: ...

    def logs(self, release_id: str, *, step_id: str | None = None) -> tuple[LogEntry, ...]: ...


class InMemoryReleaseStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._releases: dict[str, Release] = {}
        self._steps: dict[str, dict[StepType, Step]] = {}
        self._logs: list[LogEntry] = []

    def _persist(self) -> Result[None, StoreFailed]:
        return Ok(None)

    def create(
        self, release: Release, steps: Iterable[Step], log: LogEntry
    ) -> Result[Release, VersionInUse | StoreFailed]:
        """Store a release with its steps and first log entry, all or nothing.

        A version may only be held by one non-terminal release at a time.
        """
        with self._lock:
            for existing in self._releases.values():
                if existing.version == release.version and not existing.is_terminal:
                    return Err(VersionInUse(version=release.version, release_id=existing.id))

            self._releases[release.id] = release
            self._steps[release.id] = {s.step_type: s for s in sorted(steps, key=lambda s: s.order)}
            self._logs.append(log)

            saved = self._persist()
            if isinstance(saved, Err):
                del self._releases[release.id]
                del self._steps[release.id]
                self._logs.pop()
                return saved
        return Ok(release)

    def get_release(self, release_id: str) -> Release | None:
        with self._lock:
            return self._releases.get(release_id)

    def get_steps(self, release_id: str) -> tuple[Step, ...]:
        with self._lock:
            steps = self._steps.get(release_id, {})
            return tuple(sorted(steps.values(), key=lambda s: s.order))

    def get_step(self, release_id: str, step_type: StepType) -> Step | None:
        with self._lock:
            return self._steps.get(release_id, {}).get(step_type)

    def releases(self) -> tuple[Release, ...]:
        with self._lock:
            return tuple(self._releases.values())

    def update_release(
        self,
        release_id: str,
        change: Callable[[Release], Release],
        *,
        expected: frozenset[ReleaseStatus] | None = None,
    ) -> Result[Release | None, StoreFailed]:
        with self._lock:
            current = self._releases.get(release_id)
            if current is None:
                return Ok(None)
            if expected is not None and current.status not in expected:
                return Ok(None)

            updated = change(current)
            self._releases[release_id] = updated
            saved = self._persist()
            if isinstance(saved, Err):
                self._releases[release_id] = current
                return saved
        return Ok(updated)

    def update_step(
        self,
        release_id: str,
        step_type: StepType,
        change: Callable[[Step], Step],
        *,
        expected: StepStatus,
    ) -> Result[Step | None, StoreFailed]:
        with self._lock:
            steps = self._steps.get(release_id)
            if steps is None:
                return Ok(None)
            current = steps.get(step_type)
            if current is None or current.status != expected:
                return Ok(None)

            updated = change(current)
            steps[step_type] = updated
            saved = self._persist()
            if isinstance(saved, Err):
                steps[step_type] = current
                return saved
        return Ok(updated)

    def append_log(self, entry: LogEntry) -> Result[None, StoreFailed]:
        with self._lock:
            self._logs.append(entry)
            saved = self._persist()
            if isinstance(saved, Err):
                self._logs.pop()
                return saved
        return Ok(None)

    def logs(self, release_id: str, *, step_id: str | None = None) -> tuple[LogEntry, ...]:
        """Entries of one release ordered by timestamp (insertion order on ties)."""
        with self._lock:
            selected = [
                e
                for e in self._logs
                if e.release_id == release_id and (step_id is None or e.step_id == step_id)
            ]
        return tuple(sorted(selected, key=lambda e: e.timestamp))


class JsonReleaseStore(InMemoryReleaseStore):
    def __init__(self, path: Path) -> None:
        super().__init__()
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    @classmethod
    def open(cls, state_dir: Path) -> Result[JsonReleaseStore, StoreFailed]:
        """Load ``state_dir/releases.json`` (or start empty if it does not exist)."""
        store = cls(state_dir / STATE_FILE_NAME)
        loaded = store._load()
        if isinstance(loaded, Err):
            return loaded
        return Ok(store)

    def _persist(self) -> Result[None, StoreFailed]:
        payload: dict[str, object] = {
            "schema": SCHEMA_VERSION,
            "releases": [
                {
                    **_release_to_dict(release),
                    "steps": [_step_to_dict(s) for s in self._steps.get(release.id, {}).values()],
                }
                for release in self._releases.values()
            ],
            "logs": [_log_to_dict(e) for e in self._logs],
        }
        try:
            text = json.dumps(payload, indent=2) + "\n"
        except (TypeError, ValueError) as e:
            return Err(
                StoreFailed(reason=f"release state is not serializable: {e}", path=str(self._path))
            )
        try:
            atomic_write_text(self._path, text, encoding="utf-8")
        except OSError as e:
            return Err(
                StoreFailed(reason=f"failed to write release state: {e}", path=str(self._path))
            )
        return Ok(None)

    def _load(self) -> Result[None, StoreFailed]:
        if not self._path.exists():
            return Ok(None)

        try:
            text = self._path.read_text(encoding="utf-8")
            obj: object = json.loads(text)
        except (OSError, json.JSONDecodeError) as e:
            return Err(StoreFailed(reason=f"failed to load release state: {e}", path=str(self._path)))

        d = as_str_dict(obj)
        if d is None:
            return Err(StoreFailed(reason="invalid release state format", path=str(self._path)))

        schema = d.get("schema")
        if schema != SCHEMA_VERSION:
            return Err(
                StoreFailed(
                    reason=f"unsupported release state schema: {schema}",
                    path=str(self._path),
                )
            )

        releases: dict[str, Release] = {}
        steps: dict[str, dict[StepType, Step]] = {}
        for item in as_obj_list(d.get("releases")) or []:
            row = as_str_dict(item)
            release = _release_from_dict(row) if row is not None else None
            if row is None or release is None:
                return Err(StoreFailed(reason="invalid release record", path=str(self._path)))
            parsed_steps: dict[StepType, Step] = {}
            for step_item in as_obj_list(row.get("steps")) or []:
                step_row = as_str_dict(step_item)
                step = _step_from_dict(step_row) if step_row is not None else None
                if step is None:
                    return Err(
                        StoreFailed(
                            reason=f"invalid step record in release {release.id}",
                            path=str(self._path),
                        )
                    )
                parsed_steps[step.step_type] = step
            releases[release.id] = release
            steps[release.id] = parsed_steps

        logs: list[LogEntry] = []
        for item in as_obj_list(d.get("logs")) or []:
            row = as_str_dict(item)
            entry = _log_from_dict(row) if row is not None else None
            if entry is None:
                return Err(StoreFailed(reason="invalid log record", path=str(self._path)))
            logs.append(entry)

        with self._lock:
            self._releases = releases
            self._steps = steps
            self._logs = logs
        return Ok(None)


def _stamp(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_stamp(table: StrDict, key: str) -> datetime | None:
    raw = get_str(table, key)
    if raw is None:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        return None


def _release_to_dict(release: Release) -> dict[str, object]:
    return {
        "id": release.id,
        "version": release.version,
        "environment": release.environment,
        "applications": [
            {"name": app.name, "artifacts": list(app.artifacts)} for app in release.applications
        ],
        "status": release.status,
        "created_at": _stamp(release.created_at),
        "sprint_ref": release.sprint_ref,
        "release_branch": release.release_branch,
        "release_notes": release.release_notes,
        "started_at": _stamp(release.started_at),
        "completed_at": _stamp(release.completed_at),
    }


def _release_from_dict(d: StrDict) -> Release | None:
    release_id = get_str(d, "id")
    version = get_str(d, "version")
    environment = get_str(d, "environment")
    status = get_str(d, "status")
    created_at = _parse_stamp(d, "created_at")
    if (
        release_id is None
        or version is None
        or environment is None
        or status not in RELEASE_STATUSES
        or created_at is None
    ):
        return None

    apps: list[Application] = []
    for item in as_obj_list(d.get("applications")) or []:
        row = as_str_dict(item)
        name = get_str(row, "name") if row is not None else None
        if row is None or name is None:
            return None
        artifacts = [a for a in as_obj_list(row.get("artifacts")) or [] if isinstance(a, str)]
        apps.append(Application(name=name, artifacts=tuple(artifacts)))

    # release_notes keeps its exact text (get_str strips).
    notes = d.get("release_notes")
    return Release(
        id=release_id,
        version=version,
        environment=environment,
        applications=tuple(apps),
        status=cast(ReleaseStatus, status),
        created_at=created_at,
        sprint_ref=get_str(d, "sprint_ref"),
        release_branch=get_str(d, "release_branch"),
        release_notes=notes if isinstance(notes, str) else None,
        started_at=_parse_stamp(d, "started_at"),
        completed_at=_parse_stamp(d, "completed_at"),
    )


def _step_to_dict(step: Step) -> dict[str, object]:
    return {
        "id": step.id,
        "release_id": step.release_id,
        "step_type": step.step_type,
        "order": step.order,
        "status": step.status,
        "started_at": _stamp(step.started_at),
        "completed_at": _stamp(step.completed_at),
        "duration_seconds": step.duration_seconds,
        "error_message": step.error_message,
        "output": step.output,
    }


def _step_from_dict(d: StrDict) -> Step | None:
    step_id = get_str(d, "id")
    release_id = get_str(d, "release_id")
    raw_type = get_str(d, "step_type")
    step_type = parse_step_type(raw_type) if raw_type is not None else None
    order = get_int(d, "order")
    status = get_str(d, "status")
    if (
        step_id is None
        or release_id is None
        or step_type is None
        or order is None
        or status not in _STEP_STATUSES
    ):
        return None

    return Step(
        id=step_id,
        release_id=release_id,
        step_type=step_type,
        order=order,
        status=cast(StepStatus, status),
        started_at=_parse_stamp(d, "started_at"),
        completed_at=_parse_stamp(d, "completed_at"),
        duration_seconds=get_int(d, "duration_seconds"),
        error_message=get_str(d, "error_message"),
        output=get_table(d, "output") or {},
    )


def _log_to_dict(entry: LogEntry) -> dict[str, object]:
    return {
        "id": entry.id,
        "release_id": entry.release_id,
        "step_id": entry.step_id,
        "level": entry.level,
        "message": entry.message,
        "timestamp": _stamp(entry.timestamp),
        "source": entry.source,
    }


def _log_from_dict(d: StrDict) -> LogEntry | None:
    entry_id = get_str(d, "id")
    release_id = get_str(d, "release_id")
    level = get_str(d, "level")
    message = d.get("message")
    timestamp = _parse_stamp(d, "timestamp")
    if (
        entry_id is None
        or release_id is None
        or level not in LOG_LEVELS
        or not isinstance(message, str)
        or timestamp is None
    ):
        return None

    return LogEntry(
        id=entry_id,
        release_id=release_id,
        level=cast(LogLevel, level),
        message=message,
        timestamp=timestamp,
        step_id=get_str(d, "step_id"),
        source=get_str(d, "source"),
    )
