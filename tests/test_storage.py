"""
Tests for the in-memory storage backend
"""

import pytest
from dataclasses import dataclass

from minibank.storage import InMemoryStorage, StorageInterface


@dataclass
class Record:
    id: str
    owner: str
    amount: int = 0


class TestInMemoryStorage:
    """Test basic table operations"""

    def setup_method(self):
        self.storage = InMemoryStorage()

    def test_is_a_storage_backend(self):
        """Test InMemoryStorage implements the storage interface"""
        assert isinstance(self.storage, StorageInterface)

    def test_basic_operations(self):
        """Test basic CRUD operations with InMemoryStorage"""
        record = Record("r1", "alice")
        self.storage.save("records", "r1", record)

        # Live objects go in and come out unchanged
        assert self.storage.load("records", "r1") is record
        assert self.storage.exists("records", "r1")
        assert not self.storage.exists("records", "missing")
        assert self.storage.load("records", "missing") is None

        self.storage.save("records", "r2", Record("r2", "bob"))
        assert self.storage.count("records") == 2

        assert self.storage.delete("records", "r1") is True
        assert self.storage.delete("records", "r1") is False
        assert self.storage.count("records") == 1

    def test_tables_are_independent(self):
        """Test tables are independent"""
        self.storage.save("a", "x", Record("x", "alice"))
        assert self.storage.load_all("b") == []
        assert self.storage.count("b") == 0

    def test_load_all_keeps_insertion_order(self):
        """Test load all keeps insertion order"""
        for record_id in ("r3", "r1", "r2"):
            self.storage.save("records", record_id, Record(record_id, "alice"))
        assert [r.id for r in self.storage.load_all("records")] == ["r3", "r1", "r2"]

    def test_replacing_record_keeps_position(self):
        """Test replacing record keeps position"""
        self.storage.save("records", "r1", Record("r1", "alice"))
        self.storage.save("records", "r2", Record("r2", "bob"))
        replacement = Record("r1", "carol")
        self.storage.save("records", "r1", replacement)

        assert self.storage.load_all("records")[0] is replacement

    def test_find_matches_all_filters(self):
        """Test find matches all filters"""
        self.storage.save("records", "r1", Record("r1", "alice", 5))
        self.storage.save("records", "r2", Record("r2", "alice", 7))
        self.storage.save("records", "r3", Record("r3", "bob", 5))

        assert [r.id for r in self.storage.find("records", {"owner": "alice"})] == ["r1", "r2"]
        assert [r.id for r in self.storage.find("records", {"owner": "alice", "amount": 5})] == ["r1"]
        assert self.storage.find("records", {"missing_attribute": 1}) == []

    def test_reorder(self):
        """Test reordering a table"""
        for record_id in ("r1", "r2", "r3"):
            self.storage.save("records", record_id, Record(record_id, "alice"))
        self.storage.reorder("records", ["r3", "r1", "r2"])
        assert [r.id for r in self.storage.load_all("records")] == ["r3", "r1", "r2"]

    @pytest.mark.parametrize("ids", [["r1", "r2"], ["r1", "r2", "r2"], ["r1", "r2", "r4"]])
    def test_reorder_requires_full_permutation(self, ids):
        """Test reorder requires full permutation"""
        for record_id in ("r1", "r2", "r3"):
            self.storage.save("records", record_id, Record(record_id, "alice"))
        with pytest.raises(ValueError):
            self.storage.reorder("records", ids)
        assert [r.id for r in self.storage.load_all("records")] == ["r1", "r2", "r3"]

    def test_clear_table(self):
        """Test clearing a table"""
        self.storage.save("records", "r1", Record("r1", "alice"))
        self.storage.clear_table("records")
        assert self.storage.count("records") == 0
