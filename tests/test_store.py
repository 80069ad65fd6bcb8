"""Tests for the identity store."""

import pytest

from userlogs.backend import MemoryLogBackend
from userlogs.errors import NotFound, StorageFailure, ValidationError
from userlogs.store import MAX_NAME_BYTES, IdentityStore


class FailingBackend(MemoryLogBackend):
    def append(self, key, data):
        raise OSError(28, "No space left on device")

    def keys(self):
        raise PermissionError(13, "Permission denied")


class TestAppendAndRead:
    def test_read_returns_lines_in_order(self, store):
        store.append("alice", "first\n")
        store.append("alice", "second\n")
        assert store.read("alice") == ["first", "second"]

    def test_read_filters_blank_lines(self, store):
        store.append("alice", "first\n\n   \n")
        store.append("alice", "second\n")
        assert store.read("alice") == ["first", "second"]

    def test_read_unknown_identity(self, store):
        with pytest.raises(NotFound) as excinfo:
            store.read("ghost")
        assert excinfo.value.user_id == "ghost"

    def test_append_visible_immediately(self, store):
        store.append("bob", "x\n")
        assert store.exists("bob")
        assert [m.user_id for m in store.list_metadata()] == ["bob"]

    def test_user_id_used_verbatim(self, store):
        store.append("Alice Smith", "x\n")
        store.append("alice smith", "y\n")
        assert store.read("Alice Smith") == ["x"]
        assert store.read("alice smith") == ["y"]

    @pytest.mark.parametrize("user_id", ["", "   ", ".", "..", "../etc/passwd", "a/b", "a\\b"])
    def test_rejects_unusable_identity(self, store, user_id):
        with pytest.raises(ValidationError):
            store.append(user_id, "x\n")
        assert store.list_metadata() == []

    def test_rejects_unencodable_identity(self, store):
        with pytest.raises(ValidationError) as excinfo:
            store.append("\ud800", "x\n")
        assert excinfo.value.fields == ["user_id"]
        with pytest.raises(ValidationError):
            store.read("\ud800")
        assert store.list_metadata() == []

    def test_rejects_identity_longer_than_file_name_limit(self, store):
        with pytest.raises(ValidationError) as excinfo:
            store.append("a" * 300, "x\n")
        assert excinfo.value.fields == ["user_id"]
        assert store.list_metadata() == []

    def test_accepts_identity_at_file_name_limit(self, store):
        user_id = "a" * (MAX_NAME_BYTES - len(".log"))
        store.append(user_id, "x\n")
        assert store.read(user_id) == ["x"]

    def test_limit_counts_utf8_bytes(self, store):
        with pytest.raises(ValidationError):
            store.append("\u00e9" * 126, "x\n")


class TestListMetadata:
    def test_each_identity_once(self, store):
        for user_id in ("c", "a", "b", "a", "c"):
            store.append(user_id, "x\n")
        records = store.list_metadata()
        assert sorted(r.user_id for r in records) == ["a", "b", "c"]
        assert len(records) == 3

    def test_record_fields(self, store):
        store.append("alice", "12345\n")
        record = store.list_metadata()[0]
        assert record.filename == "alice.log"
        assert record.size == 6
        assert record.created.endswith("Z")
        assert record.modified.endswith("Z")
        assert set(record.to_dict()) == {"user_id", "filename", "size", "modified", "created"}

    def test_empty_store(self, store):
        assert store.list_metadata() == []


class TestStorageFailures:
    def test_append_failure_wrapped(self):
        store = IdentityStore(FailingBackend())
        with pytest.raises(StorageFailure) as excinfo:
            store.append("alice", "x\n")
        assert excinfo.value.operation == "append"
        assert isinstance(excinfo.value.__cause__, OSError)

    def test_list_failure_wrapped(self):
        store = IdentityStore(FailingBackend())
        with pytest.raises(StorageFailure):
            store.list_metadata()
