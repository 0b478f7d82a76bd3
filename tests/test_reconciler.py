import json
import tempfile
import unittest
from datetime import date
from functools import partial
from pathlib import Path

from siteimprove_dashboard.demo_data import build_demo_dataset, empty_dataset
from siteimprove_dashboard.errors import DuplicateRecordError, StorageError
from siteimprove_dashboard.reconciler import ReportRepository
from siteimprove_dashboard.records import (
    HistoryRecord,
    MisspellingRecord,
    ReviewWordRecord,
    UploadManifestEntry,
    record_from_dict,
    record_to_dict,
)
from siteimprove_dashboard.storage import (
    DELETED_FILES_KEY,
    DELETED_RECORDS_KEY,
    REPORT_DATA_KEY,
    UPLOADED_FILES_KEY,
    JsonFileStorage,
    MemoryStorage,
)


def misspelling(record_id: str, site: str = "tax", report_date: str = "2024-01-10") -> MisspellingRecord:
    return MisspellingRecord(
        id=record_id,
        site=site,
        report_date=report_date,
        word="recieve",
        suggestion="receive",
        language="en-US",
        first_detected="2024-01-01",
        page_count=3,
    )


def manifest(entry_id: str, row_count: int = 1) -> UploadManifestEntry:
    return UploadManifestEntry(
        id=entry_id,
        filename="tax.csv",
        site="tax",
        report_type="misspellings",
        uploaded_at="2024-01-10T00:00:00.000Z",
        row_count=row_count,
    )


class FailingStorage(MemoryStorage):
    """Accepts writes until ``failing`` is switched on."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.failing = False

    def write_many(self, values):
        if self.failing:
            raise StorageError("disk full")
        super().write_many(values)


def empty_repository(storage=None) -> ReportRepository:
    return ReportRepository(storage or MemoryStorage(), seed_factory=empty_dataset).load()


class RecordSerialisationTests(unittest.TestCase):
    def test_every_kind_round_trips(self):
        records, _ = build_demo_dataset(seed=3, today=date(2024, 1, 31))
        kinds = {}
        for record in records:
            kinds.setdefault(record.kind, record)
        self.assertEqual(len(kinds), 4)
        for record in kinds.values():
            payload = record_to_dict(record)
            self.assertEqual(payload["kind"], record.kind.value)
            self.assertEqual(record_from_dict(json.loads(json.dumps(payload))), record)

    def test_unknown_kind_is_rejected(self):
        with self.assertRaises(ValueError):
            record_from_dict({"kind": "nope", "id": "x"})


class LoadTests(unittest.TestCase):
    def test_empty_store_is_seeded_and_persisted(self):
        storage = MemoryStorage()
        seed = partial(build_demo_dataset, seed=7, today=date(2024, 1, 31))
        repo = ReportRepository(storage, seed_factory=seed).load()
        self.assertGreater(len(repo.records), 0)
        self.assertEqual(len(repo.uploads), 5)
        self.assertEqual(len(storage.read(REPORT_DATA_KEY)), len(repo.records))
        self.assertEqual(repo.deleted_record_ids, set())

    def test_load_is_idempotent(self):
        storage = MemoryStorage()
        seed = partial(build_demo_dataset, seed=7, today=date(2024, 1, 31))
        first = ReportRepository(storage, seed_factory=seed).load().records
        second = ReportRepository(storage, seed_factory=seed).load().records
        repo = ReportRepository(storage, seed_factory=seed)
        self.assertEqual(first, second)
        self.assertEqual(repo.load().records, repo.load().records)

    def test_existing_empty_collections_are_not_reseeded(self):
        storage = MemoryStorage({REPORT_DATA_KEY: [], UPLOADED_FILES_KEY: []})
        repo = ReportRepository(storage).load()
        self.assertEqual(repo.records, [])
        self.assertEqual(repo.uploads, [])

    def test_load_applies_deleted_ledgers(self):
        storage = MemoryStorage({
            REPORT_DATA_KEY: [record_to_dict(misspelling("a")), record_to_dict(misspelling("b"))],
            UPLOADED_FILES_KEY: [manifest("file-1").to_dict(), manifest("file-2").to_dict()],
            DELETED_RECORDS_KEY: ["a"],
            DELETED_FILES_KEY: ["file-2"],
        })
        repo = ReportRepository(storage).load()
        self.assertEqual([r.id for r in repo.records], ["b"])
        self.assertEqual([u.id for u in repo.uploads], ["file-1"])
        # Loading alone leaves the stored collection untouched.
        self.assertEqual(len(storage.read(REPORT_DATA_KEY)), 2)

    def test_malformed_store_raises_storage_error(self):
        storage = MemoryStorage({REPORT_DATA_KEY: [{"kind": "misspellings", "id": "x"}]})
        with self.assertRaises(StorageError):
            ReportRepository(storage).load()


class IngestTests(unittest.TestCase):
    def test_ingest_appends_saves_and_counts(self):
        storage = MemoryStorage()
        repo = empty_repository(storage)
        count = repo.ingest([misspelling("a"), misspelling("b")], manifest("file-1", 2))
        self.assertEqual(count, 2)
        self.assertEqual([r.id for r in repo.records], ["a", "b"])
        self.assertEqual([u.id for u in repo.uploads], ["file-1"])
        self.assertEqual(len(storage.read(REPORT_DATA_KEY)), 2)

    def test_reload_yields_same_visible_collection(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "store.json"
            repo = empty_repository(JsonFileStorage(path))
            history = HistoryRecord(id="h1", site="legal", report_date="2024-01-03", misspelling_count=4, review_word_count=2)
            repo.ingest([misspelling("a"), history], manifest("file-1", 2))
            before = repo.records

            reloaded = ReportRepository(JsonFileStorage(path), seed_factory=empty_dataset).load()
            self.assertEqual(reloaded.records, before)
            self.assertEqual(reloaded.uploads, repo.uploads)

    def test_out_of_range_probability_survives_persistence(self):
        storage = MemoryStorage()
        repo = empty_repository(storage)
        word = ReviewWordRecord(
            id="w1", site="tax", report_date="2024-01-10", word="colour", suggestion="color",
            language="en-GB", first_detected="2024-01-01", misspelling_probability=1.5, page_count=2,
        )
        repo.ingest([word], manifest("file-1"))
        reloaded = ReportRepository(storage, seed_factory=empty_dataset).load()
        self.assertEqual(reloaded.records[0].misspelling_probability, 1.5)

    def test_duplicate_ids_are_rejected_without_changes(self):
        storage = MemoryStorage()
        repo = empty_repository(storage)
        repo.ingest([misspelling("a")], manifest("file-1"))
        writes = storage.write_count
        with self.assertRaises(DuplicateRecordError):
            repo.ingest([misspelling("b"), misspelling("a")], manifest("file-2"))
        with self.assertRaises(DuplicateRecordError):
            repo.ingest([misspelling("c"), misspelling("c")], manifest("file-3"))
        self.assertEqual([r.id for r in repo.records], ["a"])
        self.assertEqual(storage.write_count, writes)

    def test_reused_deleted_id_stays_hidden(self):
        repo = empty_repository()
        repo.ingest([misspelling("a")], manifest("file-1"))
        repo.delete_record("a")
        count = repo.ingest([misspelling("a"), misspelling("b")], manifest("file-2"))
        self.assertEqual(count, 1)
        self.assertEqual([r.id for r in repo.records], ["b"])


class DeleteTests(unittest.TestCase):
    def test_deleting_twice_is_idempotent(self):
        storage = MemoryStorage()
        repo = empty_repository(storage)
        repo.ingest([misspelling("a"), misspelling("b")], manifest("file-1", 2))
        self.assertEqual(repo.delete_record("a"), 1)
        self.assertEqual(repo.delete_record("a"), 0)
        self.assertEqual(repo.deleted_record_ids, {"a"})
        self.assertEqual(storage.read(DELETED_RECORDS_KEY), ["a"])
        self.assertEqual([r.id for r in repo.records], ["b"])

        reloaded = ReportRepository(storage, seed_factory=empty_dataset).load()
        self.assertEqual([r.id for r in reloaded.records], ["b"])

    def test_delete_many_compacts_stored_collection(self):
        storage = MemoryStorage()
        repo = empty_repository(storage)
        repo.ingest([misspelling(i) for i in "abcd"], manifest("file-1", 4))
        self.assertEqual(repo.delete_records(["a", "c", "zzz"]), 2)
        stored_ids = [item["id"] for item in storage.read(REPORT_DATA_KEY)]
        self.assertEqual(stored_ids, ["b", "d"])
        self.assertEqual(set(storage.read(DELETED_RECORDS_KEY)), {"a", "c", "zzz"})

    def test_delete_manifest_entry_keeps_records(self):
        storage = MemoryStorage()
        repo = empty_repository(storage)
        repo.ingest([misspelling("a")], manifest("file-1"))
        self.assertEqual(repo.delete_manifest_entry("file-1"), 1)
        self.assertEqual(repo.uploads, [])
        self.assertEqual(len(repo.records), 1)
        self.assertEqual(storage.read(DELETED_FILES_KEY), ["file-1"])

    def test_bare_string_is_one_id(self):
        repo = empty_repository()
        repo.ingest([misspelling("abc"), misspelling("a")], manifest("file-1", 2))
        self.assertEqual(repo.delete_records("abc"), 1)
        self.assertEqual(repo.deleted_record_ids, {"abc"})
        self.assertEqual([r.id for r in repo.records], ["a"])


class FailedWriteTests(unittest.TestCase):
    def setUp(self):
        self.storage = FailingStorage()
        self.repo = empty_repository(self.storage)
        self.repo.ingest([misspelling("a")], manifest("file-1"))
        self.storage.failing = True

    def assert_state_unchanged(self):
        self.assertEqual([r.id for r in self.repo.records], ["a"])
        self.assertEqual([u.id for u in self.repo.uploads], ["file-1"])
        self.assertEqual(self.repo.deleted_record_ids, set())
        self.assertEqual(self.repo.deleted_upload_ids, set())

    def test_failed_ingest_is_not_kept_or_persisted_later(self):
        with self.assertRaises(StorageError):
            self.repo.ingest([misspelling("b")], manifest("file-2"))
        self.assert_state_unchanged()

        self.storage.failing = False
        self.repo.delete_records(["nothing"])
        reloaded = ReportRepository(self.storage, seed_factory=empty_dataset).load()
        self.assertEqual([r.id for r in reloaded.records], ["a"])
        self.assertEqual([u.id for u in reloaded.uploads], ["file-1"])

    def test_failed_deletes_leave_ledgers_alone(self):
        with self.assertRaises(StorageError):
            self.repo.delete_record("a")
        with self.assertRaises(StorageError):
            self.repo.delete_manifest_entry("file-1")
        with self.assertRaises(StorageError):
            self.repo.clear()
        self.assert_state_unchanged()

    def test_failed_reset_keeps_previous_state(self):
        with self.assertRaises(StorageError):
            self.repo.reset()
        self.assertEqual([r.id for r in self.repo.records], ["a"])


class ResetAndClearTests(unittest.TestCase):
    def test_reset_reseeds_and_forgets_ledgers(self):
        storage = MemoryStorage()
        seed = partial(build_demo_dataset, seed=11, today=date(2024, 1, 31))
        repo = ReportRepository(storage, seed_factory=seed).load()
        seeded = repo.records
        repo.delete_records([r.id for r in seeded[:10]])
        repo.delete_manifest_entry("file-1")
        repo.reset()
        self.assertEqual(repo.records, seeded)
        self.assertEqual(len(repo.uploads), 5)
        self.assertEqual(repo.deleted_record_ids, set())
        self.assertEqual(storage.read(DELETED_RECORDS_KEY), [])
        self.assertEqual(ReportRepository(storage, seed_factory=seed).load().records, seeded)

    def test_clear_empties_without_reseeding(self):
        storage = MemoryStorage()
        seed = partial(build_demo_dataset, seed=11, today=date(2024, 1, 31))
        repo = ReportRepository(storage, seed_factory=seed).load()
        repo.clear()
        self.assertEqual(repo.records, [])
        self.assertEqual(ReportRepository(storage, seed_factory=seed).load().records, [])


class JsonFileStorageTests(unittest.TestCase):
    def test_missing_file_reads_as_empty(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            storage = JsonFileStorage(Path(tmpdir) / "nested" / "store.json")
            self.assertIsNone(storage.read(REPORT_DATA_KEY))
            storage.write_many({REPORT_DATA_KEY: [], DELETED_RECORDS_KEY: ["x"]})
            self.assertEqual(storage.read(DELETED_RECORDS_KEY), ["x"])
            storage.clear()
            self.assertIsNone(storage.read(DELETED_RECORDS_KEY))

    def test_corrupt_file_raises_storage_error(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "store.json"
            path.write_text("{not json", encoding="utf-8")
            with self.assertRaises(StorageError):
                JsonFileStorage(path).read(REPORT_DATA_KEY)


if __name__ == "__main__":
    unittest.main()
