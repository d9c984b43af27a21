"""
Memory store implementations for WellMind.

Provides abstract base and concrete implementations for memory storage.

Available backends:
- SQLiteMemoryStore: Durable local storage
- InMemoryMemoryStore: Process-local storage for tests and ephemeral runs
"""

from wellmind.core.memory_store.base import MemoryStore
from wellmind.core.memory_store.in_memory import InMemoryMemoryStore
from wellmind.core.memory_store.sqlite_store import SQLiteMemoryStore

__all__ = [
    "MemoryStore",
    "InMemoryMemoryStore",
    "SQLiteMemoryStore",
]
