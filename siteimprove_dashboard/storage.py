"""Durable key/value stores the repository persists through.

A store holds a handful of JSON-serialisable values under string keys.
``JsonFileStorage`` keeps them all in one JSON document and rewrites it with
an atomic replace, so a multi-key write lands together or not at all.
``MemoryStorage`` is the in-process equivalent used by tests.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Protocol

from siteimprove_dashboard.errors import StorageError

logger = logging.getLogger(__name__)

REPORT_DATA_KEY = "report_data"
UPLOADED_FILES_KEY = "uploaded_files"
DELETED_FILES_KEY = "deleted_files"
DELETED_RECORDS_KEY = "deleted_records"

STORAGE_KEYS = (REPORT_DATA_KEY, UPLOADED_FILES_KEY, DELETED_FILES_KEY, DELETED_RECORDS_KEY)


class Storage(Protocol):
    def read(self, key: str) -> Optional[Any]:
        ...

    def write_many(self, values: Mapping[str, Any]) -> None:
        ...

    def clear(self) -> None:
        ...


class MemoryStorage:
    def __init__(self, initial: Optional[Mapping[str, Any]] = None) -> None:
        self._values: Dict[str, Any] = copy.deepcopy(dict(initial or {}))
        self.write_count = 0

    def read(self, key: str) -> Optional[Any]:
        return copy.deepcopy(self._values.get(key))

    def write_many(self, values: Mapping[str, Any]) -> None:
        self._values.update(copy.deepcopy(dict(values)))
        self.write_count += 1

    def clear(self) -> None:
        self._values.clear()
        self.write_count += 1


class JsonFileStorage:
    def __init__(self, path: "str | Path") -> None:
        self.path = Path(path)

    def _load_document(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"Could not read store {self.path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise StorageError(f"Store {self.path} does not hold a JSON object")
        return payload

    def _write_document(self, document: Mapping[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise StorageError(f"Could not write store {self.path}: {exc}") from exc

    def read(self, key: str) -> Optional[Any]:
        return self._load_document().get(key)

    def write_many(self, values: Mapping[str, Any]) -> None:
        document = self._load_document()
        document.update(values)
        self._write_document(document)
        logger.debug("Wrote %s to %s", ", ".join(sorted(values)), self.path)

    def clear(self) -> None:
        self._write_document({})
