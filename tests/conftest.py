"""Shared fixtures for WellMind tests.

Fixtures use function scope to avoid event loop issues: every test gets fresh
stores and services.
"""

from collections.abc import AsyncGenerator
from datetime import datetime

import pytest

from wellmind.config import Config, LoggingConfig, StorageConfig
from wellmind.core.memory_store.in_memory import InMemoryMemoryStore
from wellmind.core.memory_store.sqlite_store import SQLiteMemoryStore
from wellmind.models.memory import MemoryCategory, MemoryEntry, compute_semantic_hash

BASE_TIME = datetime(2024, 6, 1, 8, 0, 0)


def make_memory(
    memory_id: str,
    content: str,
    user_id: int = 1,
    category: MemoryCategory = MemoryCategory.GENERAL,
    importance: float = 0.5,
    access_count: int = 0,
    created_at: datetime | None = None,
    labels: list[str] | None = None,
    keywords: list[str] | None = None,
    with_hash: bool = True,
    is_active: bool = True,
) -> MemoryEntry:
    """Build a MemoryEntry with sensible test defaults."""
    created = created_at or BASE_TIME
    return MemoryEntry(
        id=memory_id,
        user_id=user_id,
        content=content,
        category=category,
        importance_score=importance,
        access_count=access_count,
        semantic_hash=compute_semantic_hash(content) if with_hash else None,
        labels=labels or [],
        keywords=keywords or [],
        is_active=is_active,
        created_at=created,
        updated_at=created,
    )


@pytest.fixture
def base_time() -> datetime:
    """Fixed creation time used by memory_factory."""
    return BASE_TIME


@pytest.fixture
def memory_factory():
    """Factory fixture building memory entries."""
    return make_memory


@pytest.fixture
def test_config(tmp_path) -> Config:
    """In-memory configuration with file logging off."""
    return Config(
        storage=StorageConfig(backend="memory", db_path=str(tmp_path / "wellmind.db")),
        logging=LoggingConfig(log_to_file=False),
    )


@pytest.fixture
async def memory_store() -> AsyncGenerator[InMemoryMemoryStore, None]:
    """Fresh in-memory store."""
    store = InMemoryMemoryStore()
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
async def sqlite_store(tmp_path) -> AsyncGenerator[SQLiteMemoryStore, None]:
    """SQLite store backed by a temporary file."""
    store = SQLiteMemoryStore(db_path=str(tmp_path / "memories.db"))
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture(params=["memory", "sqlite"])
async def any_store(request, tmp_path) -> AsyncGenerator:
    """Each test using this runs against both backends."""
    if request.param == "memory":
        store = InMemoryMemoryStore()
    else:
        store = SQLiteMemoryStore(db_path=str(tmp_path / "memories.db"))
    await store.initialize()
    yield store
    await store.close()
