"""
Tests for factory classes.

Tests the creation of memory stores from configuration.
"""

import pytest

from wellmind.config import Config, StorageConfig
from wellmind.core.factory import MemoryStoreFactory
from wellmind.core.memory_store.base import MemoryStore
from wellmind.core.memory_store.in_memory import InMemoryMemoryStore
from wellmind.core.memory_store.sqlite_store import SQLiteMemoryStore
from wellmind.utils.exceptions import ConfigurationError


class TestMemoryStoreFactory:
    """Test memory store factory."""

    def test_create_sqlite_store(self, tmp_path):
        """Test creating SQLite store."""
        db_path = str(tmp_path / "data" / "wellmind.db")
        config = Config(storage=StorageConfig(backend="sqlite", db_path=db_path))

        store = MemoryStoreFactory.create(config)

        assert isinstance(store, SQLiteMemoryStore)
        assert isinstance(store, MemoryStore)
        assert store.db_path == db_path
        assert (tmp_path / "data").is_dir()

    def test_create_in_memory_store(self):
        """Test creating in-memory store."""
        config = Config(storage=StorageConfig(backend="memory"))

        store = MemoryStoreFactory.create(config)

        assert isinstance(store, InMemoryMemoryStore)
        assert isinstance(store, MemoryStore)

    def test_create_unsupported_backend_raises_error(self):
        """Test that unsupported backend raises error."""
        config = Config(storage=StorageConfig(backend="cassandra"))

        with pytest.raises(ConfigurationError, match="Unsupported storage backend") as exc_info:
            MemoryStoreFactory.create(config)

        assert exc_info.value.context == {"backend": "cassandra"}

    @pytest.mark.asyncio
    async def test_created_store_is_usable(self, tmp_path, memory_factory):
        """Test the factory's store initializes and round-trips a memory."""
        config = Config(
            storage=StorageConfig(backend="sqlite", db_path=str(tmp_path / "wellmind.db"))
        )
        store = MemoryStoreFactory.create(config)
        await store.initialize()
        try:
            await store.add_memory(memory_factory("mem_1", "I love tea"))
            assert (await store.get_memory("mem_1")).content == "I love tea"
        finally:
            await store.close()
