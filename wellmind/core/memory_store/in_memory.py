"""
In-process memory store.

Keeps everything in dictionaries guarded by an asyncio lock. Used for tests
and for deployments that accept losing memories on restart.
"""

import asyncio
from datetime import datetime

from wellmind.core.memory_store.base import MemoryStore
from wellmind.models.facts import AtomicFact
from wellmind.models.memory import MemoryEntry
from wellmind.models.relationships import MemoryRelationship
from wellmind.utils.exceptions import NotFoundError, ValidationError


class InMemoryMemoryStore(MemoryStore):
    """Dictionary-backed store. Returned models are copies; mutate through the store."""

    def __init__(self):
        self._memories: dict[str, MemoryEntry] = {}
        self._facts: dict[str, list[AtomicFact]] = {}
        self._relationships: dict[tuple, MemoryRelationship] = {}
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def add_memory(self, memory: MemoryEntry) -> None:
        async with self._lock:
            if memory.id in self._memories:
                raise ValidationError(f"Memory already exists: {memory.id}")
            self._memories[memory.id] = memory.model_copy(deep=True)

    async def get_memory(self, memory_id: str) -> MemoryEntry | None:
        memory = self._memories.get(memory_id)
        return memory.model_copy(deep=True) if memory else None

    async def update_memory(self, memory: MemoryEntry) -> None:
        async with self._lock:
            if memory.id not in self._memories:
                raise NotFoundError(f"Memory not found: {memory.id}")
            self._memories[memory.id] = memory.model_copy(deep=True)

    async def list_memories(
        self,
        user_id: int | None = None,
        active_only: bool = True,
        limit: int | None = None,
    ) -> list[MemoryEntry]:
        memories = [
            m
            for m in self._memories.values()
            if (user_id is None or m.user_id == user_id) and (m.is_active or not active_only)
        ]
        memories.sort(key=lambda m: (m.created_at, m.id), reverse=True)
        if limit is not None:
            memories = memories[:limit]
        return [m.model_copy(deep=True) for m in memories]

    async def find_by_semantic_hash(self, user_id: int, semantic_hash: str) -> MemoryEntry | None:
        matches = [
            m
            for m in self._memories.values()
            if m.user_id == user_id and m.is_active and m.semantic_hash == semantic_hash
        ]
        if not matches:
            return None
        best = max(matches, key=lambda m: (m.importance_score, m.created_at))
        return best.model_copy(deep=True)

    async def record_access(self, memory_id: str) -> None:
        async with self._lock:
            memory = self._require(memory_id)
            memory.access_count += 1

    async def merge_into(self, primary_id: str, duplicate: MemoryEntry) -> MemoryEntry:
        async with self._lock:
            primary = self._require(primary_id)
            primary.merge_from(duplicate)
            return primary.model_copy(deep=True)

    async def merge_and_deactivate(
        self, primary_id: str, duplicate_id: str
    ) -> MemoryEntry | None:
        async with self._lock:
            primary = self._require(primary_id)
            duplicate = self._require(duplicate_id)
            if not duplicate.is_active:
                return None

            merged = primary.model_copy(deep=True)
            merged.merge_from(duplicate)
            self._deactivate_entry(duplicate_id, merged.updated_at)
            self._memories[primary_id] = merged
            return merged.model_copy(deep=True)

    async def deactivate_memory(self, memory_id: str) -> None:
        async with self._lock:
            self._deactivate_entry(memory_id)

    async def count_memories(self, user_id: int | None = None, active_only: bool = True) -> int:
        return sum(
            1
            for m in self._memories.values()
            if (user_id is None or m.user_id == user_id) and (m.is_active or not active_only)
        )

    async def add_atomic_facts(self, facts: list[AtomicFact]) -> int:
        async with self._lock:
            for fact in facts:
                self._facts.setdefault(fact.memory_entry_id, []).append(fact.model_copy())
        return len(facts)

    async def get_atomic_facts(self, memory_id: str, active_only: bool = True) -> list[AtomicFact]:
        facts = self._facts.get(memory_id, [])
        return [f.model_copy() for f in facts if f.is_active or not active_only]

    async def add_relationship(self, relationship: MemoryRelationship) -> bool:
        async with self._lock:
            if relationship.key in self._relationships:
                return False
            self._relationships[relationship.key] = relationship.model_copy()
            return True

    async def get_relationships(
        self, memory_id: str, direction: str = "outgoing"
    ) -> list[MemoryRelationship]:
        if direction not in ("outgoing", "incoming", "both"):
            raise ValidationError(f"Invalid direction: {direction}")

        relationships = [
            r
            for r in self._relationships.values()
            if (direction in ("outgoing", "both") and r.source_memory_id == memory_id)
            or (direction in ("incoming", "both") and r.target_memory_id == memory_id)
        ]
        relationships.sort(key=lambda r: (-r.strength, r.created_at))
        return [r.model_copy() for r in relationships]

    def _require(self, memory_id: str) -> MemoryEntry:
        memory = self._memories.get(memory_id)
        if memory is None:
            raise NotFoundError(f"Memory not found: {memory_id}")
        return memory

    def _deactivate_entry(self, memory_id: str, now: datetime | None = None) -> None:
        memory = self._require(memory_id)
        memory.deactivate(now)
        for fact in self._facts.get(memory_id, []):
            fact.is_active = False
