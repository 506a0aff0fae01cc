"""Keyed record storage used by the ingestion pipeline."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Protocol

from dispmap.common.errors import StageError
from dispmap.common.fs import read_json, write_json_atomic
from dispmap.common.models import DispensaryRecord

STORE_FORMAT_VERSION = 1


class RecordStore(Protocol):
    def find_by_key(self, name: str) -> DispensaryRecord | None: ...

    def upsert(self, name: str, fields: dict[str, Any]) -> DispensaryRecord: ...

    def list_all(self) -> list[DispensaryRecord]: ...

    def delete_all(self) -> None: ...


def _merge_fields(existing: dict[str, Any] | None, name: str, fields: dict[str, Any]) -> dict[str, Any]:
    merged = dict(existing or {})
    merged.update(fields)
    merged["name"] = name
    return merged


class InMemoryRecordStore:
    def __init__(self) -> None:
        self._rows: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def find_by_key(self, name: str) -> DispensaryRecord | None:
        with self._lock:
            row = self._rows.get(name)
        return DispensaryRecord.from_fields(row) if row is not None else None

    def upsert(self, name: str, fields: dict[str, Any]) -> DispensaryRecord:
        with self._lock:
            row = _merge_fields(self._rows.get(name), name, fields)
            self._rows[name] = row
        return DispensaryRecord.from_fields(row)

    def list_all(self) -> list[DispensaryRecord]:
        with self._lock:
            rows = [dict(row) for row in self._rows.values()]
        return sorted((DispensaryRecord.from_fields(row) for row in rows), key=lambda r: r.name)

    def delete_all(self) -> None:
        with self._lock:
            self._rows.clear()


class JsonFileRecordStore:
    """Whole-document JSON store; every upsert rewrites the file atomically."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = threading.Lock()

    def _load(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            return {}
        payload = read_json(self.path)
        if not isinstance(payload, dict) or not isinstance(payload.get("records"), dict):
            raise StageError(f"Record store file is malformed: {self.path}")
        return payload["records"]

    def _save(self, rows: dict[str, dict[str, Any]]) -> None:
        write_json_atomic(self.path, {"version": STORE_FORMAT_VERSION, "records": rows})

    def find_by_key(self, name: str) -> DispensaryRecord | None:
        with self._lock:
            row = self._load().get(name)
        return DispensaryRecord.from_fields(row) if row is not None else None

    def upsert(self, name: str, fields: dict[str, Any]) -> DispensaryRecord:
        with self._lock:
            rows = self._load()
            row = _merge_fields(rows.get(name), name, fields)
            rows[name] = row
            self._save(rows)
        return DispensaryRecord.from_fields(row)

    def list_all(self) -> list[DispensaryRecord]:
        with self._lock:
            rows = self._load()
        return sorted((DispensaryRecord.from_fields(row) for row in rows.values()), key=lambda r: r.name)

    def delete_all(self) -> None:
        with self._lock:
            self._save({})
