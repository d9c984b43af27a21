"""
Tests for the memory store backends.

Every test runs against both the in-memory and the SQLite store.

Tests cover:
1. Memory CRUD and listing order
2. Semantic hash lookup
3. Merge accumulation and logical deletion
4. Atomic fact storage and soft invalidation
5. Idempotent relationship storage and direction filters
"""

from datetime import timedelta

import pytest

from wellmind.models.facts import AtomicFact, FactType
from wellmind.models.memory import compute_semantic_hash
from wellmind.models.relationships import MemoryRelationship, RelationshipType
from wellmind.utils.exceptions import NotFoundError, ValidationError


def _fact(fact_id: str, memory_id: str, content: str = "I like tea") -> AtomicFact:
    return AtomicFact(
        id=fact_id,
        memory_entry_id=memory_id,
        fact_type=FactType.PREFERENCE,
        content=content,
        confidence=0.8,
    )


def _relationship(
    source: str,
    target: str,
    relationship_type: RelationshipType = RelationshipType.SUPPORTS,
    strength: float = 0.7,
    rel_id: str | None = None,
) -> MemoryRelationship:
    return MemoryRelationship(
        id=rel_id or f"rel_{source}_{target}_{relationship_type.value}",
        source_memory_id=source,
        target_memory_id=target,
        relationship_type=relationship_type,
        strength=strength,
        confidence=0.7,
        context="test",
    )


@pytest.mark.asyncio
class TestMemoryEntries:
    """Memory CRUD."""

    async def test_add_and_get(self, any_store, memory_factory):
        memory = memory_factory(
            "mem_1", "I love running", labels=["fitness"], keywords=["running", "love"]
        )

        await any_store.add_memory(memory)
        stored = await any_store.get_memory("mem_1")

        assert stored is not None
        assert stored.content == "I love running"
        assert stored.labels == ["fitness"]
        assert stored.keywords == ["love", "running"]
        assert stored.semantic_hash == compute_semantic_hash("I love running")
        assert stored.created_at == memory.created_at
        assert stored.is_active

    async def test_get_missing_returns_none(self, any_store):
        assert await any_store.get_memory("mem_missing") is None

    async def test_duplicate_id_rejected(self, any_store, memory_factory):
        await any_store.add_memory(memory_factory("mem_1", "I love running"))

        with pytest.raises(ValidationError):
            await any_store.add_memory(memory_factory("mem_1", "Something else"))

    async def test_update(self, any_store, memory_factory):
        memory = memory_factory("mem_1", "I love running")
        await any_store.add_memory(memory)

        memory.importance_score = 0.9
        memory.labels = ["sport"]
        await any_store.update_memory(memory)

        stored = await any_store.get_memory("mem_1")
        assert stored.importance_score == 0.9
        assert stored.labels == ["sport"]

    async def test_update_missing_raises(self, any_store, memory_factory):
        with pytest.raises(NotFoundError):
            await any_store.update_memory(memory_factory("mem_missing", "Nothing"))

    async def test_list_newest_first_and_filters(self, any_store, memory_factory, base_time):
        await any_store.add_memory(memory_factory("mem_1", "First", created_at=base_time))
        await any_store.add_memory(
            memory_factory("mem_2", "Second", created_at=base_time + timedelta(hours=1))
        )
        await any_store.add_memory(
            memory_factory("mem_3", "Other user", user_id=2, created_at=base_time)
        )
        await any_store.add_memory(
            memory_factory(
                "mem_4", "Inactive", is_active=False, created_at=base_time + timedelta(hours=2)
            )
        )

        user_memories = await any_store.list_memories(user_id=1)
        everything = await any_store.list_memories(active_only=False)
        limited = await any_store.list_memories(limit=1)

        assert [m.id for m in user_memories] == ["mem_2", "mem_1"]
        assert [m.id for m in everything][0] == "mem_4"
        assert len(everything) == 4
        assert [m.id for m in limited] == ["mem_2"]
        assert await any_store.count_memories() == 3
        assert await any_store.count_memories(user_id=1, active_only=False) == 3

    async def test_returned_models_are_copies(self, any_store, memory_factory):
        await any_store.add_memory(memory_factory("mem_1", "I love running"))

        fetched = await any_store.get_memory("mem_1")
        fetched.content = "changed"

        assert (await any_store.get_memory("mem_1")).content == "I love running"

    async def test_record_access(self, any_store, memory_factory):
        await any_store.add_memory(memory_factory("mem_1", "I love running", access_count=2))

        await any_store.record_access("mem_1")

        assert (await any_store.get_memory("mem_1")).access_count == 3

    async def test_record_access_missing_raises(self, any_store):
        with pytest.raises(NotFoundError):
            await any_store.record_access("mem_missing")


@pytest.mark.asyncio
class TestSemanticHashLookup:
    """find_by_semantic_hash."""

    async def test_finds_most_important_active_match(self, any_store, memory_factory):
        await any_store.add_memory(memory_factory("mem_1", "I love running", importance=0.4))
        await any_store.add_memory(memory_factory("mem_2", "running, I love", importance=0.8))
        await any_store.add_memory(
            memory_factory("mem_3", "Love running I", importance=1.0, is_active=False)
        )

        match = await any_store.find_by_semantic_hash(1, compute_semantic_hash("I love running"))

        assert match.id == "mem_2"

    async def test_scoped_to_user(self, any_store, memory_factory):
        await any_store.add_memory(memory_factory("mem_1", "I love running", user_id=2))

        match = await any_store.find_by_semantic_hash(1, compute_semantic_hash("I love running"))

        assert match is None


@pytest.mark.asyncio
class TestMergeAndDeactivate:
    """merge_into, merge_and_deactivate and deactivate_memory."""

    async def test_merge_unions_and_accumulates(self, any_store, memory_factory):
        primary = memory_factory(
            "mem_p", "I love running", importance=0.5, access_count=2, labels=["a"]
        )
        first = memory_factory(
            "mem_d1", "i love running", importance=0.9, access_count=3, labels=["b"]
        )
        second = memory_factory(
            "mem_d2", "I LOVE running", importance=0.2, access_count=1, keywords=["run"]
        )
        for memory in (primary, first, second):
            await any_store.add_memory(memory)

        await any_store.merge_into("mem_p", first)
        merged = await any_store.merge_into("mem_p", second)
        stored = await any_store.get_memory("mem_p")

        for result in (merged, stored):
            assert result.labels == ["a", "b"]
            assert result.keywords == ["run"]
            assert result.importance_score == 0.9
            assert result.access_count == 6
            assert result.update_count == 2

    async def test_merge_missing_primary_raises(self, any_store, memory_factory):
        with pytest.raises(NotFoundError):
            await any_store.merge_into("mem_missing", memory_factory("mem_d", "x"))

    async def test_merge_and_deactivate_is_one_write(self, any_store, memory_factory):
        await any_store.add_memory(memory_factory("mem_p", "I love tea", access_count=1))
        await any_store.add_memory(
            memory_factory("mem_d", "i love tea", access_count=5, labels=["drinks"])
        )
        await any_store.add_atomic_facts([_fact("fact_1", "mem_d")])

        merged = await any_store.merge_and_deactivate("mem_p", "mem_d")

        assert merged.access_count == 6
        assert merged.update_count == 1
        assert merged.labels == ["drinks"]
        assert (await any_store.get_memory("mem_p")).access_count == 6
        assert not (await any_store.get_memory("mem_d")).is_active
        assert await any_store.get_atomic_facts("mem_d") == []

    async def test_merge_and_deactivate_skips_inactive_duplicate(self, any_store, memory_factory):
        await any_store.add_memory(memory_factory("mem_p", "I love tea", access_count=1))
        await any_store.add_memory(memory_factory("mem_d", "i love tea", access_count=5))
        await any_store.merge_and_deactivate("mem_p", "mem_d")

        assert await any_store.merge_and_deactivate("mem_p", "mem_d") is None
        assert (await any_store.get_memory("mem_p")).access_count == 6

    async def test_merge_and_deactivate_missing_raises(self, any_store, memory_factory):
        await any_store.add_memory(memory_factory("mem_p", "I love tea"))

        with pytest.raises(NotFoundError):
            await any_store.merge_and_deactivate("mem_p", "mem_missing")
        with pytest.raises(NotFoundError):
            await any_store.merge_and_deactivate("mem_missing", "mem_p")

    async def test_deactivate_keeps_row_and_invalidates_facts(self, any_store, memory_factory):
        await any_store.add_memory(memory_factory("mem_1", "I like tea"))
        await any_store.add_atomic_facts([_fact("fact_1", "mem_1")])

        await any_store.deactivate_memory("mem_1")

        stored = await any_store.get_memory("mem_1")
        assert stored is not None
        assert not stored.is_active
        assert await any_store.get_atomic_facts("mem_1") == []
        inactive = await any_store.get_atomic_facts("mem_1", active_only=False)
        assert [f.is_active for f in inactive] == [False]
        assert await any_store.list_memories() == []

    async def test_deactivate_missing_raises(self, any_store):
        with pytest.raises(NotFoundError):
            await any_store.deactivate_memory("mem_missing")


@pytest.mark.asyncio
class TestAtomicFacts:
    """Atomic fact storage."""

    async def test_facts_kept_in_order(self, any_store, memory_factory):
        await any_store.add_memory(memory_factory("mem_1", "I like tea. I like coffee"))

        stored = await any_store.add_atomic_facts(
            [
                _fact("fact_b", "mem_1", "I like tea"),
                _fact("fact_a", "mem_1", "I like coffee"),
            ]
        )
        facts = await any_store.get_atomic_facts("mem_1")

        assert stored == 2
        assert [f.id for f in facts] == ["fact_b", "fact_a"]
        assert facts[0].fact_type == FactType.PREFERENCE

    async def test_empty_batch(self, any_store):
        assert await any_store.add_atomic_facts([]) == 0


@pytest.mark.asyncio
class TestRelationships:
    """Relationship storage."""

    @pytest.fixture
    async def linked_store(self, any_store, memory_factory):
        for memory_id in ("mem_a", "mem_b", "mem_c"):
            await any_store.add_memory(memory_factory(memory_id, f"Memory {memory_id}"))
        return any_store

    async def test_add_is_idempotent_per_triple(self, linked_store):
        created = await linked_store.add_relationship(_relationship("mem_a", "mem_b"))
        again = await linked_store.add_relationship(
            _relationship("mem_a", "mem_b", strength=0.9, rel_id="rel_other")
        )
        other_type = await linked_store.add_relationship(
            _relationship("mem_a", "mem_b", RelationshipType.ELABORATES)
        )

        assert created is True
        assert again is False
        assert other_type is True
        assert len(await linked_store.get_relationships("mem_a")) == 2

    async def test_direction_filters(self, linked_store):
        await linked_store.add_relationship(_relationship("mem_a", "mem_b", strength=0.5))
        await linked_store.add_relationship(_relationship("mem_c", "mem_a", strength=0.9))

        outgoing = await linked_store.get_relationships("mem_a", "outgoing")
        incoming = await linked_store.get_relationships("mem_a", "incoming")
        both = await linked_store.get_relationships("mem_a", "both")

        assert [r.target_memory_id for r in outgoing] == ["mem_b"]
        assert [r.source_memory_id for r in incoming] == ["mem_c"]
        assert [r.strength for r in both] == [0.9, 0.5]

    async def test_invalid_direction(self, linked_store):
        with pytest.raises(ValidationError):
            await linked_store.get_relationships("mem_a", "sideways")
