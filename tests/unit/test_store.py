"""
Unit tests for facewatch.recognize.store and facewatch.storage
"""
import json

import pytest

from facewatch.recognize.errors import StorageError, ValidationError
from facewatch.recognize.store import DescriptorStore
from facewatch.recognize.types import Person
from facewatch.storage import KNOWN_FACES_KEY, JsonFileStore, KeyValueStore, MemoryStore, read_json_or


class FailingStore(KeyValueStore):
    def get(self, key):
        raise StorageError("disk gone")

    def set(self, key, value):
        raise StorageError("disk gone")

    def delete(self, key):
        raise StorageError("disk gone")


class TestRegister:
    def test_creates_person(self, store, axis):
        p = store.register("Alice", [axis(0)])
        assert p.name == "Alice"
        assert p.role == "Employee"
        assert p.registered_at.startswith("2023-11-14T")
        assert p.descriptors == [axis(0)]

    def test_appends_to_existing(self, store, axis):
        store.register("Alice", [axis(0)])
        p = store.register("Alice", [axis(1), axis(0)])
        assert p.descriptors == [axis(0), axis(1), axis(0)]
        assert len(store.list_all()) == 1

    def test_names_are_case_sensitive(self, store, axis):
        store.register("alice", [axis(0)])
        store.register("Alice", [axis(1)])
        assert [p.name for p in store.list_all()] == ["alice", "Alice"]

    def test_empty_descriptors_rejected(self, store):
        with pytest.raises(ValidationError):
            store.register("Alice", [])

    def test_storage_failure_raises(self, axis):
        with pytest.raises(StorageError):
            DescriptorStore(FailingStore()).register("Alice", [axis(0)])

    def test_corrupt_roster_is_not_overwritten(self, kv, store, axis):
        kv.set(KNOWN_FACES_KEY, "{not json")
        with pytest.raises(StorageError):
            store.register("Alice", [axis(0)])
        assert kv.get(KNOWN_FACES_KEY) == "{not json"

    @pytest.mark.parametrize("descriptors", [[[0.0] * 64], "not-a-list", []])
    def test_malformed_record_is_not_extended(self, kv, store, axis, descriptors):
        stored = json.dumps([{"name": "Alice", "descriptors": descriptors}])
        kv.set(KNOWN_FACES_KEY, stored)
        with pytest.raises(StorageError):
            store.register("Alice", [axis(0)])
        assert kv.get(KNOWN_FACES_KEY) == stored

    def test_malformed_record_does_not_block_others(self, kv, store, axis):
        kv.set(KNOWN_FACES_KEY, json.dumps([{"name": "Alice", "descriptors": [[0.0] * 64]}]))
        p = store.register("Bob", [axis(1)])
        assert p.descriptors == [axis(1)]
        assert [x.name for x in store.list_all()] == ["Bob"]

    def test_clear(self, kv, store, axis):
        store.register("Alice", [axis(0)])
        store.clear()
        assert kv.get(KNOWN_FACES_KEY) is None
        assert store.list_all() == []


class TestRemove:
    def test_remove_twice(self, store, axis):
        store.register("Alice", [axis(0)])
        assert store.remove("Alice") is True
        assert store.remove("Alice") is False
        assert store.list_all() == []

    def test_remove_missing_writes_nothing(self, kv, store):
        assert store.remove("Nobody") is False
        assert kv.get(KNOWN_FACES_KEY) is None


class TestListAll:
    def test_absent_is_empty(self, store):
        assert store.list_all() == []

    def test_corrupt_is_empty(self, kv, store):
        kv.set(KNOWN_FACES_KEY, "[{broken")
        assert store.list_all() == []

    def test_not_a_list_is_empty(self, kv, store):
        kv.set(KNOWN_FACES_KEY, json.dumps({"name": "Alice"}))
        assert store.list_all() == []

    def test_read_failure_is_empty(self):
        assert DescriptorStore(FailingStore()).list_all() == []

    def test_skips_malformed_records(self, kv, store, axis):
        kv.set(KNOWN_FACES_KEY, json.dumps([
            {"name": "Alice", "descriptors": [axis(0)], "role": "Employee", "registeredAt": ""},
            {"name": "Short", "descriptors": [[0.1, 0.2]]},
            {"name": "Empty", "descriptors": []},
            {"descriptors": [axis(1)]},
        ]))
        assert [p.name for p in store.list_all()] == ["Alice"]

    def test_replace_all(self, store, axis):
        store.register("Alice", [axis(0)])
        store.replace_all([Person("Bob", [axis(1)])])
        assert [p.name for p in store.list_all()] == ["Bob"]


class TestJsonFileStore:
    def test_missing_key_is_none(self, tmp_path):
        assert JsonFileStore(tmp_path).get("knownFaces") is None

    def test_set_get(self, tmp_path):
        s = JsonFileStore(tmp_path / "store")
        s.set("knownFaces", "[1, 2]")
        assert s.get("knownFaces") == "[1, 2]"
        assert (tmp_path / "store" / "knownFaces.json").read_text() == "[1, 2]"

    def test_replace_leaves_no_temp_files(self, tmp_path):
        s = JsonFileStore(tmp_path)
        s.set("alerts", "[]")
        s.set("alerts", "[1]")
        assert sorted(p.name for p in tmp_path.iterdir()) == ["alerts.json"]

    def test_delete(self, tmp_path):
        s = JsonFileStore(tmp_path)
        s.set("alerts", "[]")
        s.delete("alerts")
        s.delete("alerts")
        assert s.get("alerts") is None

    def test_write_failure_is_storage_error(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(StorageError):
            JsonFileStore(blocker / "sub").set("alerts", "[]")


class TestReadJsonOr:
    def test_falls_back_on_corrupt(self):
        kv = MemoryStore({"alerts": "nope"})
        assert read_json_or(kv, "alerts", []) == []

    def test_returns_value(self):
        kv = MemoryStore({"alerts": "[1]"})
        assert read_json_or(kv, "alerts", []) == [1]
