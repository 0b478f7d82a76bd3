"""Typed report records, upload manifest entries and their JSON shapes."""

from __future__ import annotations

import threading
import time
from dataclasses import asdict, dataclass, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, Type, Union


class ReportType(str, Enum):
    MISSPELLINGS = "misspellings"
    WORDS_TO_REVIEW = "words-to-review"
    PAGES_WITH_MISSPELLINGS = "pages-with-misspellings"
    MISSPELLING_HISTORY = "misspelling-history"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ReportRecord:
    id: str
    site: str
    report_date: str

    kind: ClassVar[ReportType]


@dataclass(frozen=True)
class MisspellingRecord(ReportRecord):
    word: str
    suggestion: str
    language: str
    first_detected: str
    page_count: int

    kind: ClassVar[ReportType] = ReportType.MISSPELLINGS


@dataclass(frozen=True)
class ReviewWordRecord(ReportRecord):
    word: str
    suggestion: str
    language: str
    first_detected: str
    misspelling_probability: float
    page_count: int

    kind: ClassVar[ReportType] = ReportType.WORDS_TO_REVIEW


@dataclass(frozen=True)
class PageIssueRecord(ReportRecord):
    title: str
    url: str
    report_link: str
    cms_link: str
    misspelling_count: int
    review_word_count: int
    page_level: str

    kind: ClassVar[ReportType] = ReportType.PAGES_WITH_MISSPELLINGS


@dataclass(frozen=True)
class HistoryRecord(ReportRecord):
    misspelling_count: int
    review_word_count: int

    kind: ClassVar[ReportType] = ReportType.MISSPELLING_HISTORY


Record = Union[MisspellingRecord, ReviewWordRecord, PageIssueRecord, HistoryRecord]

RECORD_CLASSES: Dict[ReportType, Type[ReportRecord]] = {
    ReportType.MISSPELLINGS: MisspellingRecord,
    ReportType.WORDS_TO_REVIEW: ReviewWordRecord,
    ReportType.PAGES_WITH_MISSPELLINGS: PageIssueRecord,
    ReportType.MISSPELLING_HISTORY: HistoryRecord,
}


@dataclass(frozen=True)
class Site:
    id: str
    name: str
    domain: str


@dataclass(frozen=True)
class UploadManifestEntry:
    id: str
    filename: str
    site: str
    report_type: str
    uploaded_at: str
    row_count: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "UploadManifestEntry":
        try:
            return cls(**{f.name: payload[f.name] for f in fields(cls)})
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Malformed upload manifest entry: {payload!r}") from exc


def record_to_dict(record: ReportRecord) -> dict[str, Any]:
    payload = {"kind": record.kind.value}
    payload.update(asdict(record))
    return payload


def record_from_dict(payload: dict[str, Any]) -> ReportRecord:
    try:
        kind = ReportType(payload["kind"])
    except (KeyError, ValueError) as exc:
        raise ValueError(f"Record has no valid kind: {payload!r}") from exc
    cls = RECORD_CLASSES[kind]
    try:
        return cls(**{f.name: payload[f.name] for f in fields(cls)})
    except KeyError as exc:
        raise ValueError(f"Record {payload.get('id')!r} is missing field {exc}") from exc


# Ingestion timestamps in epoch milliseconds. Strictly increasing within the
# process so two ingestions never share a timestamp, and therefore never share
# record or manifest ids.
_clock_lock = threading.Lock()
_last_timestamp = 0


def ingestion_timestamp() -> int:
    global _last_timestamp
    with _clock_lock:
        now = int(time.time() * 1000)
        _last_timestamp = max(now, _last_timestamp + 1)
        return _last_timestamp


def timestamp_to_iso(timestamp_ms: int) -> str:
    moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")
