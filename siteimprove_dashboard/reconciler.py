"""
reconciler.py — Authoritative record and upload collections

``ReportRepository`` owns the in-memory records and upload manifest and
mirrors them into an injected ``Storage`` after every mutation.

Deletions are soft: ids go into two append-only ledgers (records, uploads)
and every read is the stored collection minus its ledger. Deleted items are
dropped from memory right away, so the next save also removes them from the
stored collections.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional, Set, Tuple

from siteimprove_dashboard.demo_data import build_demo_dataset
from siteimprove_dashboard.errors import DuplicateRecordError, StorageError
from siteimprove_dashboard.records import (
    ReportRecord,
    UploadManifestEntry,
    record_from_dict,
    record_to_dict,
)
from siteimprove_dashboard.storage import (
    DELETED_FILES_KEY,
    DELETED_RECORDS_KEY,
    REPORT_DATA_KEY,
    UPLOADED_FILES_KEY,
    Storage,
)

logger = logging.getLogger(__name__)

SeedFactory = Callable[[], Tuple[List[ReportRecord], List[UploadManifestEntry]]]


def visible_records(records: Iterable[ReportRecord], deleted_ids: Set[str]) -> List[ReportRecord]:
    return [record for record in records if record.id not in deleted_ids]


def visible_uploads(uploads: Iterable[UploadManifestEntry], deleted_ids: Set[str]) -> List[UploadManifestEntry]:
    return [entry for entry in uploads if entry.id not in deleted_ids]


class ReportRepository:
    def __init__(self, storage: Storage, *, seed_factory: Optional[SeedFactory] = None) -> None:
        self.storage = storage
        self.seed_factory = seed_factory or build_demo_dataset
        self._records: List[ReportRecord] = []
        self._uploads: List[UploadManifestEntry] = []
        self._deleted_record_ids: Set[str] = set()
        self._deleted_upload_ids: Set[str] = set()
        self._loaded = False

    # ── Reads ──────────────────────────────────────────────────────────────────

    @property
    def records(self) -> List[ReportRecord]:
        self._ensure_loaded()
        return visible_records(self._records, self._deleted_record_ids)

    @property
    def uploads(self) -> List[UploadManifestEntry]:
        self._ensure_loaded()
        return visible_uploads(self._uploads, self._deleted_upload_ids)

    @property
    def deleted_record_ids(self) -> Set[str]:
        self._ensure_loaded()
        return set(self._deleted_record_ids)

    @property
    def deleted_upload_ids(self) -> Set[str]:
        self._ensure_loaded()
        return set(self._deleted_upload_ids)

    # ── Load / save ────────────────────────────────────────────────────────────

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def _read_ledger(self, key: str) -> Set[str]:
        raw = self.storage.read(key)
        if raw is None:
            return set()
        if not isinstance(raw, list):
            raise StorageError(f"Stored '{key}' is not a list of ids")
        return {str(item) for item in raw}

    def _read_collections(self) -> Tuple[List[ReportRecord], List[UploadManifestEntry]]:
        raw_records = self.storage.read(REPORT_DATA_KEY) or []
        raw_uploads = self.storage.read(UPLOADED_FILES_KEY) or []
        try:
            records = [record_from_dict(item) for item in raw_records]
            uploads = [UploadManifestEntry.from_dict(item) for item in raw_uploads]
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Stored report data is malformed: {exc}") from exc
        return records, uploads

    def load(self) -> "ReportRepository":
        """Read the store, seeding it with demo data when it has no collections yet."""
        if self.storage.read(REPORT_DATA_KEY) is None and self.storage.read(UPLOADED_FILES_KEY) is None:
            records, uploads = self.seed_factory()
            self.storage.write_many({
                REPORT_DATA_KEY: [record_to_dict(record) for record in records],
                UPLOADED_FILES_KEY: [entry.to_dict() for entry in uploads],
            })
            logger.info("Seeded empty store with %d records and %d uploads", len(records), len(uploads))
        else:
            records, uploads = self._read_collections()

        self._deleted_record_ids = self._read_ledger(DELETED_RECORDS_KEY)
        self._deleted_upload_ids = self._read_ledger(DELETED_FILES_KEY)
        self._records = visible_records(records, self._deleted_record_ids)
        self._uploads = visible_uploads(uploads, self._deleted_upload_ids)
        self._loaded = True
        logger.debug(
            "Loaded %d records and %d uploads (%d/%d ids deleted)",
            len(self._records), len(self._uploads),
            len(self._deleted_record_ids), len(self._deleted_upload_ids),
        )
        return self

    def _commit(
        self,
        records: List[ReportRecord],
        uploads: List[UploadManifestEntry],
        deleted_record_ids: Set[str],
        deleted_upload_ids: Set[str],
    ) -> None:
        # State is swapped in only after the store accepted the write.
        self.storage.write_many({
            REPORT_DATA_KEY: [record_to_dict(record) for record in records],
            UPLOADED_FILES_KEY: [entry.to_dict() for entry in uploads],
            DELETED_RECORDS_KEY: sorted(deleted_record_ids),
            DELETED_FILES_KEY: sorted(deleted_upload_ids),
        })
        self._records = records
        self._uploads = uploads
        self._deleted_record_ids = deleted_record_ids
        self._deleted_upload_ids = deleted_upload_ids
        self._loaded = True

    def save(self) -> None:
        self._commit(
            list(self._records),
            list(self._uploads),
            set(self._deleted_record_ids),
            set(self._deleted_upload_ids),
        )

    # ── Mutations ──────────────────────────────────────────────────────────────

    def ingest(self, records: Iterable[ReportRecord], manifest_entry: UploadManifestEntry) -> int:
        """Append one upload's records and its manifest entry; returns the count stored."""
        self._ensure_loaded()
        records = list(records)

        taken = {record.id for record in self._records}
        duplicates = []
        for record in records:
            if record.id in taken:
                duplicates.append(record.id)
            taken.add(record.id)
        if any(entry.id == manifest_entry.id for entry in self._uploads):
            duplicates.append(manifest_entry.id)
        if duplicates:
            raise DuplicateRecordError(duplicates)

        fresh = visible_records(records, self._deleted_record_ids)
        if len(fresh) != len(records):
            logger.warning("Skipped %d records whose ids were already deleted", len(records) - len(fresh))

        uploads = list(self._uploads)
        if manifest_entry.id not in self._deleted_upload_ids:
            uploads.append(manifest_entry)
        self._commit(self._records + fresh, uploads, set(self._deleted_record_ids), set(self._deleted_upload_ids))
        logger.info("Stored %d records from %s", len(fresh), manifest_entry.filename)
        return len(fresh)

    def delete_records(self, ids: Iterable[str]) -> int:
        """Soft-delete records; ids already deleted or never stored are fine."""
        if isinstance(ids, str):
            ids = [ids]
        self._ensure_loaded()
        deleted = self._deleted_record_ids | set(ids)
        remaining = visible_records(self._records, deleted)
        removed = len(self._records) - len(remaining)
        self._commit(remaining, list(self._uploads), deleted, set(self._deleted_upload_ids))
        logger.info("Deleted %d records", removed)
        return removed

    def delete_record(self, record_id: str) -> int:
        return self.delete_records([record_id])

    def delete_manifest_entry(self, entry_id: str) -> int:
        """Soft-delete an upload manifest entry. Its records are left in place."""
        self._ensure_loaded()
        deleted = self._deleted_upload_ids | {entry_id}
        remaining = visible_uploads(self._uploads, deleted)
        removed = len(self._uploads) - len(remaining)
        self._commit(list(self._records), remaining, set(self._deleted_record_ids), deleted)
        logger.info("Deleted upload %s (%d removed)", entry_id, removed)
        return removed

    def reset(self) -> None:
        """Forget every upload and deletion and go back to the demo dataset."""
        records, uploads = self.seed_factory()
        self.storage.clear()
        self._commit(list(records), list(uploads), set(), set())
        logger.info("Store reset to %d demo records", len(self._records))

    def clear(self) -> None:
        """Empty both collections without reseeding; the deletion ledgers stay."""
        self._ensure_loaded()
        self._commit([], [], set(self._deleted_record_ids), set(self._deleted_upload_ids))
        logger.info("Cleared all records and uploads")
