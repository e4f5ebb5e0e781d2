"""
Tests for storage backends and transaction support
"""

import pytest
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from balance_ledger.storage import (
    InMemoryStorage, SQLiteStorage, StorageInterface, create_storage
)
from balance_ledger.errors import StorageError


# Test data
test_data = {
    "id": "test_001",
    "name": "Test Record",
    "amount": 10050,
    "created_at": datetime.now(timezone.utc).isoformat(),
    "updated_at": datetime.now(timezone.utc).isoformat()
}


class TestInMemoryStorage:
    """Test the in-memory backend"""

    def test_basic_operations(self):
        """Test basic CRUD operations with InMemoryStorage"""
        storage = InMemoryStorage()

        storage.save("test_table", "record_1", test_data)
        assert storage.load("test_table", "record_1") == test_data

        assert storage.exists("test_table", "record_1")
        assert not storage.exists("test_table", "non_existent")

        storage.save("test_table", "record_2", {"id": "record_2", "data": "test"})
        assert len(storage.load_all("test_table")) == 2

        results = storage.find("test_table", {"id": "test_001"})
        assert len(results) == 1
        assert results[0]["name"] == "Test Record"

        assert storage.count("test_table") == 2

        assert storage.delete("test_table", "record_1")
        assert not storage.delete("test_table", "record_1")
        assert storage.count("test_table") == 1

        storage.clear_table("test_table")
        assert storage.count("test_table") == 0

        storage.close()

    def test_loaded_records_are_copies(self):
        storage = InMemoryStorage()
        storage.save("test_table", "record_1", {"id": "record_1", "balance": 100})

        loaded = storage.load("test_table", "record_1")
        loaded["balance"] = 0

        assert storage.load("test_table", "record_1")["balance"] == 100

    def test_atomic_commit(self):
        storage = InMemoryStorage()

        with storage.atomic():
            storage.save("accounts", "a", {"balance": 1})
            storage.save("transactions", "t", {"amount": 1})

        assert storage.exists("accounts", "a")
        assert storage.exists("transactions", "t")

    def test_atomic_rollback(self):
        storage = InMemoryStorage()
        storage.save("accounts", "a", {"balance": 100})

        with pytest.raises(RuntimeError):
            with storage.atomic():
                storage.save("accounts", "a", {"balance": 50})
                storage.save("transactions", "t", {"amount": 50})
                raise RuntimeError("boom")

        assert storage.load("accounts", "a") == {"balance": 100}
        assert not storage.exists("transactions", "t")

    def test_nested_atomic_joins_outer_block(self):
        storage = InMemoryStorage()

        with pytest.raises(RuntimeError):
            with storage.atomic():
                with storage.atomic():
                    storage.save("accounts", "a", {"balance": 1})
                raise RuntimeError("outer failure")

        assert not storage.exists("accounts", "a")


class TestSQLiteStorage:
    """Test the SQLite backend"""

    def setup_method(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = Path(self.temp_dir.name) / "test.db"
        self.storage = SQLiteStorage(self.db_path)

    def teardown_method(self):
        self.storage.close()
        self.temp_dir.cleanup()

    def test_basic_operations(self):
        """Test basic CRUD operations with SQLiteStorage"""
        self.storage.save("test_table", "record_1", test_data)
        assert self.storage.load("test_table", "record_1") == test_data
        assert self.storage.exists("test_table", "record_1")

        self.storage.save("test_table", "record_2", {"id": "record_2", "data": "test"})
        assert self.storage.count("test_table") == 2
        assert len(self.storage.find("test_table", {"data": "test"})) == 1

        assert self.storage.delete("test_table", "record_2")
        assert self.storage.count("test_table") == 1

        self.storage.clear_table("test_table")
        assert self.storage.load_all("test_table") == []

    def test_update_replaces_record(self):
        self.storage.save("accounts", "a", {"balance": 100})
        self.storage.save("accounts", "a", {"balance": 40})

        assert self.storage.load("accounts", "a") == {"balance": 40}
        assert self.storage.count("accounts") == 1

    def test_persists_across_connections(self):
        self.storage.save("accounts", "a", {"balance": 100})
        self.storage.close()

        reopened = SQLiteStorage(self.db_path)
        try:
            assert reopened.load("accounts", "a") == {"balance": 100}
        finally:
            reopened.close()

    def test_atomic_rollback(self):
        self.storage.save("accounts", "a", {"balance": 100})

        with pytest.raises(RuntimeError):
            with self.storage.atomic():
                self.storage.save("accounts", "a", {"balance": 50})
                self.storage.save("transactions", "t", {"amount": 50})
                raise RuntimeError("boom")

        assert self.storage.load("accounts", "a") == {"balance": 100}
        assert not self.storage.exists("transactions", "t")

        # Tables dropped by the rollback are recreated on demand
        self.storage.save("transactions", "t2", {"amount": 1})
        assert self.storage.exists("transactions", "t2")

    def test_closed_storage_raises_storage_error(self):
        self.storage.close()

        with pytest.raises(StorageError):
            self.storage.load("accounts", "a")


class TestCreateStorage:
    """Test backend selection from a database URL"""

    def test_memory_url(self):
        assert isinstance(create_storage("memory://"), InMemoryStorage)

    def test_sqlite_url(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            storage = create_storage(f"sqlite:///{temp_dir}/ledger.db")
            try:
                assert isinstance(storage, SQLiteStorage)
                assert storage.db_path == f"{temp_dir}/ledger.db"
            finally:
                storage.close()

    def test_sqlite_in_memory_url(self):
        storage = create_storage("sqlite://")
        assert isinstance(storage, StorageInterface)
        assert storage.db_path == ":memory:"
        storage.close()

    def test_unsupported_url(self):
        with pytest.raises(ValueError):
            create_storage("postgresql://localhost/ledger")
