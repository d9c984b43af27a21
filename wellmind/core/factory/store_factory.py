"""
Factory for creating memory store backends.
"""

from wellmind.config import Config
from wellmind.core.memory_store.base import MemoryStore
from wellmind.core.memory_store.in_memory import InMemoryMemoryStore
from wellmind.core.memory_store.sqlite_store import SQLiteMemoryStore
from wellmind.utils.exceptions import ConfigurationError


class MemoryStoreFactory:
    """Factory for creating memory store backends from configuration."""

    @staticmethod
    def create(config: Config) -> MemoryStore:
        """
        Create memory store from configuration.

        Args:
            config: Main configuration object

        Returns:
            Memory store instance

        Raises:
            ConfigurationError: If backend is not supported
        """
        if config.storage.backend == "sqlite":
            return SQLiteMemoryStore(db_path=config.storage.db_path)
        elif config.storage.backend == "memory":
            return InMemoryMemoryStore()
        else:
            raise ConfigurationError(
                f"Unsupported storage backend: {config.storage.backend}",
                {"backend": config.storage.backend},
            )
