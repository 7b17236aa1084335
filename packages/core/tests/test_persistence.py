"""Tests for the persistence adapter: round trips, partitions and corrupted data."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from mdreview_core import index as ci
from mdreview_core.errors import CorruptedDataWarning
from mdreview_core.index import EMPTY
from mdreview_core.models import CommentRecord, DocumentRecord
from mdreview_core.persistence import (
    STORE_KEY,
    STORE_VERSION,
    PersistenceAdapter,
    empty_record,
    format_timestamp,
    parse_timestamp,
)
from mdreview_store.errors import QuotaExceededError, StoreUnavailableError
from mdreview_store.file import FileStore
from mdreview_store.memory import MemoryStore
from mdreview_store.noop import NoOpStore

T0 = datetime(2024, 5, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)
T1 = T0 + timedelta(seconds=30)


def _make_adapter(store=None):
    warnings: list = []
    adapter = PersistenceAdapter(store or MemoryStore(), on_warning=warnings.append)
    return adapter, warnings


def _index_with(*specs):
    index = EMPTY
    for line, text, when in specs:
        index = ci.insert(index, ci.create(line, text, when))
    return index


def _document(doc_id="doc1.md-1-abc", name="doc1.md", text="# Title\n\nBody\n"):
    return DocumentRecord(id=doc_id, name=name, raw_text=text, lines=tuple(text.split("\n")), loaded_at=T0)


# ---------------------------------------------------------------------------
# Round trips
# ---------------------------------------------------------------------------


class TestRoundTrip:
    def test_comment_round_trip_preserves_fields(self):
        adapter, warnings = _make_adapter()
        comment = ci.create(7, "  Needs a citation  ", T0)
        adapter.write("doc1", ci.insert(EMPTY, comment))

        restored = ci.for_line(adapter.read("doc1"), 7)
        assert len(restored) == 1
        r = restored[0]
        assert r.id == comment.id
        assert r.line_number == 7
        assert r.text == "Needs a citation"
        assert r.created_at == T0
        assert r.updated_at == T0
        assert warnings == []

    @pytest.mark.parametrize(
        "specs",
        [
            [(1, "one", T0)],
            [(3, "a", T0), (3, "b", T1), (1, "c", T1)],
            [(10_000, "far down", T1), (2, "unicode ✓ ünïcödé", T0)],
        ],
    )
    def test_index_round_trip(self, specs):
        adapter, _ = _make_adapter()
        index = _index_with(*specs)
        adapter.write("doc1", index)
        assert adapter.read("doc1") == index

    def test_updated_comment_round_trip(self):
        adapter, _ = _make_adapter()
        comment = ci.create(2, "draft", T0)
        index = ci.replace(ci.insert(EMPTY, comment), comment.id, "final", T1)
        adapter.write("doc1", index)
        restored = ci.find(adapter.read("doc1"), comment.id)
        assert restored.text == "final"
        assert restored.created_at == T0
        assert restored.updated_at == T1

    def test_writing_empty_index_clears_partition(self):
        adapter, _ = _make_adapter()
        adapter.write("doc1", _index_with((1, "x", T0)))
        adapter.write("doc1", EMPTY)
        assert len(adapter.read("doc1")) == 0

    def test_missing_document_yields_empty_index(self):
        adapter, warnings = _make_adapter()
        adapter.write("doc1", _index_with((1, "x", T0)))
        assert len(adapter.read("unknown")) == 0
        assert warnings == []

    def test_empty_store_yields_empty_index_without_warning(self):
        adapter, warnings = _make_adapter()
        assert len(adapter.read("doc1")) == 0
        assert warnings == []

    def test_round_trip_through_file_store(self, tmp_path):
        index = _index_with((4, "persisted", T0))
        PersistenceAdapter(FileStore(directory=str(tmp_path))).write("doc1", index)
        assert PersistenceAdapter(FileStore(directory=str(tmp_path))).read("doc1") == index


# ---------------------------------------------------------------------------
# Persisted format
# ---------------------------------------------------------------------------


class TestPersistedShape:
    def test_record_shape(self):
        store = MemoryStore()
        adapter = PersistenceAdapter(store)
        comment = ci.create(3, "hello", T0)
        adapter.write("doc1", ci.insert(EMPTY, comment))

        data = json.loads(store.get(STORE_KEY))
        assert set(data) == {"version", "documents", "comments", "currentDocumentId"}
        assert data["version"] == STORE_VERSION
        assert data["currentDocumentId"] is None
        assert data["comments"]["doc1"] == [
            {
                "id": comment.id,
                "lineNumber": 3,
                "text": "hello",
                "createdAt": "2024-05-01T12:00:00.123456Z",
                "updatedAt": "2024-05-01T12:00:00.123456Z",
            }
        ]

    def test_comments_stored_flat_and_chronological(self):
        store = MemoryStore()
        index = _index_with((9, "late", T1), (1, "early", T0))
        PersistenceAdapter(store).write("doc1", index)
        stored = json.loads(store.get(STORE_KEY))["comments"]["doc1"]
        assert [c["text"] for c in stored] == ["early", "late"]

    def test_custom_storage_key(self):
        store = MemoryStore()
        PersistenceAdapter(store, key="other-key").write("doc1", EMPTY)
        assert store.get("other-key") is not None
        assert store.get(STORE_KEY) is None

    def test_reads_external_timestamp_formats(self):
        store = MemoryStore()
        record = empty_record()
        record["comments"]["doc1"] = [
            {"id": "c1", "lineNumber": 1, "text": "js date", "createdAt": "2024-05-01T12:00:00.000Z",
             "updatedAt": "2024-05-01T12:00:00.000Z"},
            {"id": "c2", "lineNumber": 1, "text": "epoch ms", "createdAt": 1714564800000,
             "updatedAt": 1714564860000},
        ]
        store.set(STORE_KEY, json.dumps(record))
        comments = ci.for_line(PersistenceAdapter(store).read("doc1"), 1)
        assert [c.id for c in comments] == ["c1", "c2"]
        assert comments[0].created_at == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        assert comments[1].updated_at == datetime(2024, 5, 1, 12, 1, tzinfo=timezone.utc)

    def test_format_and_parse_timestamp(self):
        assert format_timestamp(T0).endswith("Z")
        assert parse_timestamp(format_timestamp(T0)) == T0
        assert parse_timestamp("2024-05-01T14:00:00+02:00") == datetime(2024, 5, 1, 12, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [True, None, [], "not a date"])
    def test_parse_timestamp_rejects_garbage(self, value):
        with pytest.raises(ValueError):
            parse_timestamp(value)


# ---------------------------------------------------------------------------
# Partition isolation
# ---------------------------------------------------------------------------


class TestPartitions:
    def test_documents_are_isolated(self):
        adapter, _ = _make_adapter()
        index_a = _index_with((1, "a1", T0), (2, "a2", T1))
        index_b = _index_with((1, "b1", T0))
        adapter.write("docA", index_a)
        adapter.write("docB", index_b)

        ids_a = {c.id for c in ci.flatten(adapter.read("docA"))}
        ids_b = {c.id for c in ci.flatten(adapter.read("docB"))}
        assert ids_a == {c.id for c in ci.flatten(index_a)}
        assert ids_b == {c.id for c in ci.flatten(index_b)}
        assert ids_a.isdisjoint(ids_b)

    def test_write_leaves_other_partition_bytes_untouched(self):
        store = MemoryStore()
        adapter = PersistenceAdapter(store)
        adapter.write("docA", _index_with((1, "a", T0)))
        before = json.loads(store.get(STORE_KEY))["comments"]["docA"]

        adapter.write("docB", _index_with((5, "b", T1)))
        adapter.write("docB", EMPTY)
        assert json.loads(store.get(STORE_KEY))["comments"]["docA"] == before

    def test_write_preserves_documents(self):
        adapter, _ = _make_adapter()
        adapter.write_document(_document())
        adapter.write("doc1.md-1-abc", _index_with((1, "x", T0)))
        assert adapter.read_document("doc1.md-1-abc") == _document()
        assert adapter.current_document_id() == "doc1.md-1-abc"


# ---------------------------------------------------------------------------
# Corrupted data
# ---------------------------------------------------------------------------


_CORRUPT_PAYLOADS = [
    "{not json",
    "",
    "null",
    "[]",
    '"a string"',
    "42",
    json.dumps({"documents": {}, "comments": {}}),
    json.dumps({"version": 1, "documents": {}, "comments": {}}),
    json.dumps({"version": "", "documents": {}, "comments": {}}),
    json.dumps({"version": "1.0.0", "comments": {}}),
    json.dumps({"version": "1.0.0", "documents": [], "comments": {}}),
    json.dumps({"version": "1.0.0", "documents": {}}),
    json.dumps({"version": "1.0.0", "documents": {}, "comments": []}),
    json.dumps({"version": "1.0.0", "documents": {}, "comments": None}),
]


class TestCorruptedData:
    def test_corrupted_bytes_after_write(self):
        store = MemoryStore()
        adapter, warnings = _make_adapter(store)
        adapter.write("doc1", _index_with((1, "x", T0)))
        store.set(STORE_KEY, store.get(STORE_KEY)[:-7] + "#garbage")

        index = adapter.read("doc1")
        assert len(index) == 0
        assert len(warnings) == 1
        assert isinstance(warnings[0], CorruptedDataWarning)

    @pytest.mark.parametrize("payload", _CORRUPT_PAYLOADS)
    def test_wrong_shapes_read_as_empty(self, payload):
        store = MemoryStore()
        store.set(STORE_KEY, payload)
        adapter, warnings = _make_adapter(store)

        assert len(adapter.read("doc1")) == 0
        assert adapter.read_document("doc1") is None
        assert len(warnings) == 2  # one per failed read
        assert all(isinstance(w, CorruptedDataWarning) for w in warnings)

    def test_one_warning_per_failed_read(self):
        store = MemoryStore()
        store.set(STORE_KEY, "{broken")
        adapter, warnings = _make_adapter(store)
        adapter.read("doc1")
        assert len(warnings) == 1
        adapter.read("doc1")
        assert len(warnings) == 2

    def test_corruption_is_logged(self, caplog):
        store = MemoryStore()
        store.set(STORE_KEY, "{broken")
        with caplog.at_level("WARNING"):
            PersistenceAdapter(store).read("doc1")
        assert "corrupted" in caplog.text.lower()

    def test_no_callback_still_returns_empty(self):
        store = MemoryStore()
        store.set(STORE_KEY, "{broken")
        assert len(PersistenceAdapter(store).read("doc1")) == 0

    def test_write_after_corruption_self_heals(self):
        store = MemoryStore()
        store.set(STORE_KEY, "{broken")
        adapter, warnings = _make_adapter(store)
        index = _index_with((2, "fresh", T0))
        adapter.write("doc1", index)

        assert len(warnings) == 1
        assert adapter.read("doc1") == index
        assert len(warnings) == 1

    def test_unreadable_store_reads_as_empty(self, mocker):
        store = MemoryStore()
        mocker.patch.object(store, "get", side_effect=StoreUnavailableError("disk gone"))
        adapter, warnings = _make_adapter(store)
        assert len(adapter.read("doc1")) == 0
        assert len(warnings) == 1

    def test_deeply_nested_payload_reads_as_empty(self):
        store = MemoryStore()
        store.set(STORE_KEY, "[" * 100000 + "]" * 100000)
        adapter, warnings = _make_adapter(store)
        assert len(adapter.read("doc1")) == 0
        assert len(warnings) == 1
        assert isinstance(warnings[0], CorruptedDataWarning)

    def test_invalid_utf8_in_file_store_reads_as_empty(self, tmp_path):
        store = FileStore(directory=str(tmp_path))
        adapter, warnings = _make_adapter(store)
        adapter.write("doc1", _index_with((1, "café ok", T0)))
        path = tmp_path / f"{STORE_KEY}.json"
        path.write_bytes(path.read_bytes().replace("é".encode("utf-8"), b"\xff\xfe"))

        assert len(adapter.read("doc1")) == 0
        assert len(warnings) == 1
        assert isinstance(warnings[0], CorruptedDataWarning)

    @pytest.mark.parametrize("raw_timestamp", ["1e300", "Infinity", "-Infinity", "NaN", "1" + "0" * 400])
    def test_out_of_range_epoch_timestamps_are_skipped(self, raw_timestamp):
        good = ('{"id": "ok", "lineNumber": 1, "text": "fine", '
                '"createdAt": "2024-05-01T12:00:00Z", "updatedAt": "2024-05-01T12:00:00Z"}')
        bad = ('{"id": "bad", "lineNumber": 2, "text": "huge", '
               f'"createdAt": {raw_timestamp}, "updatedAt": {raw_timestamp}}}')
        payload = f'{{"version": "1.0.0", "documents": {{}}, "comments": {{"doc1": [{good}, {bad}]}}}}'
        store = MemoryStore()
        store.set(STORE_KEY, payload)
        index = PersistenceAdapter(store).read("doc1")
        assert [c.id for c in ci.flatten(index)] == ["ok"]

    @pytest.mark.parametrize("value", [1e300, float("inf"), float("nan"), 10**400, "0001-01-01T00:00:00+05:00"])
    def test_parse_timestamp_out_of_range_is_value_error(self, value):
        with pytest.raises(ValueError):
            parse_timestamp(value)

    def test_non_list_partition_reads_as_empty(self):
        store = MemoryStore()
        record = empty_record()
        record["comments"]["doc1"] = {"oops": True}
        store.set(STORE_KEY, json.dumps(record))
        adapter, warnings = _make_adapter(store)
        assert len(adapter.read("doc1")) == 0
        assert warnings == []

    def test_malformed_entries_are_skipped(self):
        store = MemoryStore()
        good = {"id": "ok", "lineNumber": 2, "text": "fine", "createdAt": "2024-05-01T12:00:00Z",
                "updatedAt": "2024-05-01T12:00:00Z"}
        record = empty_record()
        record["comments"]["doc1"] = [
            good,
            "not a dict",
            {**good, "id": "no-line", "lineNumber": 0},
            {**good, "id": "bool-line", "lineNumber": True},
            {**good, "id": "blank", "text": "  "},
            {**good, "id": "bad-date", "createdAt": "yesterday"},
            {"id": "missing-fields"},
        ]
        store.set(STORE_KEY, json.dumps(record))
        index = PersistenceAdapter(store).read("doc1")
        assert [c.id for c in ci.flatten(index)] == ["ok"]

    def test_updated_before_created_is_clamped(self):
        store = MemoryStore()
        record = empty_record()
        record["comments"]["doc1"] = [
            {"id": "c", "lineNumber": 1, "text": "t", "createdAt": "2024-05-01T12:00:00Z",
             "updatedAt": "2024-05-01T11:00:00Z"},
        ]
        store.set(STORE_KEY, json.dumps(record))
        comment = ci.find(PersistenceAdapter(store).read("doc1"), "c")
        assert comment.updated_at == comment.created_at

    def test_other_version_strings_are_accepted(self):
        store = MemoryStore()
        record = empty_record()
        record["version"] = "0.9.0"
        record["comments"]["doc1"] = [
            {"id": "c", "lineNumber": 1, "text": "t", "createdAt": "2024-05-01T12:00:00Z",
             "updatedAt": "2024-05-01T12:00:00Z"},
        ]
        store.set(STORE_KEY, json.dumps(record))
        adapter, warnings = _make_adapter(store)
        assert ci.count(adapter.read("doc1")) == 1
        assert warnings == []


# ---------------------------------------------------------------------------
# Write failures and reset
# ---------------------------------------------------------------------------


class TestWriteFailures:
    def test_unavailable_store_raises(self):
        adapter, _ = _make_adapter(NoOpStore())
        with pytest.raises(StoreUnavailableError):
            adapter.write("doc1", _index_with((1, "x", T0)))

    def test_disabled_store_raises_before_writing(self):
        store = MemoryStore()
        store.available = False
        with pytest.raises(StoreUnavailableError):
            PersistenceAdapter(store).write("doc1", EMPTY)

    def test_quota_exceeded_raises(self):
        adapter, _ = _make_adapter(MemoryStore(quota_bytes=64))
        with pytest.raises(QuotaExceededError):
            adapter.write("doc1", _index_with((1, "x" * 500, T0)))

    def test_failed_write_keeps_previous_record(self):
        store = MemoryStore(quota_bytes=1024)
        adapter = PersistenceAdapter(store)
        small = _index_with((1, "small", T0))
        adapter.write("doc1", small)
        with pytest.raises(QuotaExceededError):
            adapter.write("doc1", _index_with((1, "y" * 5000, T1)))
        assert adapter.read("doc1") == small


class TestResetAll:
    def test_reset_removes_everything(self):
        store = MemoryStore()
        adapter = PersistenceAdapter(store)
        adapter.write_document(_document())
        adapter.write("doc1.md-1-abc", _index_with((1, "x", T0)))

        adapter.reset_all()
        assert store.get(STORE_KEY) is None
        assert len(adapter.read("doc1.md-1-abc")) == 0
        assert adapter.read_document("doc1.md-1-abc") is None
        assert adapter.current_document_id() is None

    def test_reset_is_idempotent(self):
        adapter, _ = _make_adapter()
        adapter.reset_all()
        adapter.reset_all()

    def test_reset_clears_corrupted_record(self):
        store = MemoryStore()
        store.set(STORE_KEY, "{broken")
        adapter, warnings = _make_adapter(store)
        adapter.reset_all()
        assert len(adapter.read("doc1")) == 0
        assert warnings == []


class TestDocuments:
    def test_document_round_trip(self):
        adapter, _ = _make_adapter()
        doc = _document()
        adapter.write_document(doc)
        assert adapter.read_document(doc.id) == doc
        assert adapter.document_ids() == [doc.id]

    def test_latest_document_becomes_current(self):
        adapter, _ = _make_adapter()
        adapter.write_document(_document(doc_id="first"))
        adapter.write_document(_document(doc_id="second"))
        assert adapter.current_document_id() == "second"
        assert sorted(adapter.document_ids()) == ["first", "second"]

    def test_malformed_document_reads_as_none(self):
        store = MemoryStore()
        record = empty_record()
        record["documents"]["doc1"] = {"id": "doc1", "name": "x.md", "rawText": "a", "lines": "a"}
        store.set(STORE_KEY, json.dumps(record))
        assert PersistenceAdapter(store).read_document("doc1") is None

    @pytest.mark.parametrize("loaded_at", [1e300, float("inf")])
    def test_out_of_range_loaded_at_reads_as_none(self, loaded_at):
        store = MemoryStore()
        record = empty_record()
        record["documents"]["doc1"] = {"id": "doc1", "name": "x.md", "rawText": "a", "lines": ["a"],
                                       "loadedAt": loaded_at}
        store.set(STORE_KEY, json.dumps(record))
        assert PersistenceAdapter(store).read_document("doc1") is None

    def test_non_string_current_id_reads_as_none(self):
        store = MemoryStore()
        record = empty_record()
        record["currentDocumentId"] = 17
        store.set(STORE_KEY, json.dumps(record))
        assert PersistenceAdapter(store).current_document_id() is None

    def test_document_write_to_unavailable_store_raises(self):
        with pytest.raises(StoreUnavailableError):
            PersistenceAdapter(NoOpStore()).write_document(_document())

    def test_comment_records_type(self):
        adapter, _ = _make_adapter()
        adapter.write("doc1", _index_with((1, "x", T0)))
        assert all(isinstance(c, CommentRecord) for c in ci.flatten(adapter.read("doc1")))
