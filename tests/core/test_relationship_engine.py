"""
Tests for heuristic relationship discovery and graph traversal.

Tests cover:
1. Pairwise classification (duplicates, contradicts, temporal, related_to)
2. Candidate pool edge cases
3. Breadth-first traversal over known and discovered edges
4. Determinism
"""

from datetime import timedelta

import pytest

from wellmind.core.relationships.engine import RelationshipEngine
from wellmind.models.relationships import MemoryRelationship, RelationshipType


@pytest.fixture
def engine():
    return RelationshipEngine()


def _edge(source: str, target: str, strength: float = 0.8) -> MemoryRelationship:
    return MemoryRelationship(
        id=f"rel_{source}_{target}",
        source_memory_id=source,
        target_memory_id=target,
        relationship_type=RelationshipType.SUPPORTS,
        strength=strength,
        confidence=0.7,
    )


@pytest.mark.unit
class TestAnalyzePair:
    """Pairwise relationship classification."""

    def test_allergy_contradicts_eating_the_allergen(self, engine, memory_factory, base_time):
        allergy = memory_factory("mem_allergy", "I am allergic to peanuts")
        snack = memory_factory(
            "mem_snack",
            "I ate peanut butter yesterday",
            created_at=base_time + timedelta(days=3),
        )

        relationship = engine.analyze_pair(allergy, snack)

        assert relationship is not None
        assert relationship.relationship_type == RelationshipType.CONTRADICTS
        assert relationship.strength == 0.6
        assert relationship.confidence == 0.6
        assert "peanut" in relationship.context

    def test_contradiction_found_from_either_side(self, engine, memory_factory, base_time):
        allergy = memory_factory("mem_allergy", "I am allergic to peanuts")
        snack = memory_factory(
            "mem_snack",
            "I ate peanut butter yesterday",
            created_at=base_time + timedelta(days=3),
        )

        relationship = engine.analyze_pair(snack, allergy)

        assert relationship.relationship_type == RelationshipType.CONTRADICTS
        assert relationship.source_memory_id == "mem_snack"

    def test_exact_duplicate(self, engine, memory_factory):
        a = memory_factory("mem_a", "I love running")
        b = memory_factory("mem_b", "i love  running")

        relationship = engine.analyze_pair(a, b)

        assert relationship.relationship_type == RelationshipType.DUPLICATES
        assert relationship.strength == 1.0
        assert relationship.confidence == 0.95

    def test_unrelated_memories(self, engine, memory_factory, base_time):
        a = memory_factory("mem_a", "I love running in the morning")
        b = memory_factory("mem_b", "My cat is orange", created_at=base_time + timedelta(days=10))

        assert engine.analyze_pair(a, b) is None

    def test_temporal_follows(self, engine, memory_factory, base_time):
        earlier = memory_factory("mem_early", "My cat is orange")
        later = memory_factory(
            "mem_late", "Running shoes arrived", created_at=base_time + timedelta(hours=2)
        )

        forward = engine.analyze_pair(later, earlier)
        backward = engine.analyze_pair(earlier, later)

        assert forward.relationship_type == RelationshipType.TEMPORAL_FOLLOWS
        assert backward.relationship_type == RelationshipType.TEMPORAL_PRECEDES
        assert forward.strength == pytest.approx(1 - 2 / 24, abs=1e-4)

    def test_shared_keyword_is_related(self, engine, memory_factory, base_time):
        a = memory_factory("mem_a", "My cat is orange", keywords=["pets"])
        b = memory_factory(
            "mem_b",
            "Walked the dog",
            keywords=["pets"],
            created_at=base_time + timedelta(days=5),
        )

        relationship = engine.analyze_pair(a, b)

        assert relationship.relationship_type == RelationshipType.RELATED_TO
        assert relationship.strength == pytest.approx(0.4)

    def test_blank_content_returns_none(self, engine, memory_factory):
        a = memory_factory("mem_a", "   ", with_hash=False)
        b = memory_factory("mem_b", "I love running")

        assert engine.analyze_pair(a, b) is None


@pytest.mark.unit
class TestDiscoverRelationships:
    """Discovery against a candidate pool."""

    def test_empty_pool(self, engine):
        assert engine.discover_relationships("mem_missing", []) == []

    def test_source_alone(self, engine, memory_factory):
        source = memory_factory("mem_a", "I love running")

        assert engine.discover_relationships("mem_a", [source]) == []

    def test_inactive_candidates_skipped(self, engine, memory_factory):
        source = memory_factory("mem_a", "I love running")
        inactive = memory_factory("mem_b", "I love running", is_active=False)

        assert engine.discover_relationships("mem_a", [source, inactive]) == []

    def test_never_links_to_self(self, engine, memory_factory):
        pool = [
            memory_factory("mem_a", "I love running"),
            memory_factory("mem_b", "I love running"),
        ]

        relationships = engine.discover_relationships("mem_a", pool)

        assert [r.target_memory_id for r in relationships] == ["mem_b"]
        assert all(r.source_memory_id == "mem_a" for r in relationships)

    def test_ordered_by_strength(self, engine, memory_factory, base_time):
        pool = [
            memory_factory("mem_a", "I love running"),
            memory_factory("mem_b", "My cat is orange", created_at=base_time + timedelta(hours=12)),
            memory_factory("mem_c", "i love running"),
        ]

        relationships = engine.discover_relationships("mem_a", pool)

        strengths = [r.strength for r in relationships]
        assert strengths == sorted(strengths, reverse=True)
        assert relationships[0].target_memory_id == "mem_c"

    def test_deterministic(self, engine, memory_factory, base_time):
        pool = [
            memory_factory("mem_a", "I am allergic to peanuts"),
            memory_factory(
                "mem_b", "I ate peanut butter yesterday", created_at=base_time + timedelta(days=2)
            ),
            memory_factory("mem_c", "I am allergic to peanuts!"),
            memory_factory("mem_d", "Went swimming", created_at=base_time + timedelta(hours=3)),
        ]

        first = engine.discover_relationships("mem_a", pool)
        second = engine.discover_relationships("mem_a", pool)

        def summary(rels):
            return [(r.target_memory_id, r.relationship_type, r.strength) for r in rels]

        assert summary(first) == summary(second)


@pytest.mark.unit
class TestRelatedMemories:
    """Breadth-first traversal."""

    @pytest.fixture
    def triangle(self, memory_factory):
        return [
            memory_factory("mem_a", "Alpha"),
            memory_factory("mem_b", "Bravo"),
            memory_factory("mem_c", "Charlie"),
        ]

    def test_depth_one(self, engine, triangle):
        edges = [_edge("mem_a", "mem_b"), _edge("mem_b", "mem_c")]

        related = engine.get_related_memories("mem_a", triangle, depth=1, relationships=edges)

        assert [(r.memory.id, r.depth) for r in related] == [("mem_b", 1)]

    def test_depth_two_reaches_second_hop(self, engine, triangle):
        edges = [_edge("mem_a", "mem_b"), _edge("mem_b", "mem_c")]

        related = engine.get_related_memories("mem_a", triangle, depth=2, relationships=edges)

        assert [(r.memory.id, r.depth) for r in related] == [("mem_b", 1), ("mem_c", 2)]

    def test_cycles_terminate_without_repeats(self, engine, triangle):
        edges = [
            _edge("mem_a", "mem_b"),
            _edge("mem_b", "mem_a"),
            _edge("mem_b", "mem_c"),
            _edge("mem_c", "mem_a"),
            _edge("mem_c", "mem_b"),
        ]

        related = engine.get_related_memories("mem_a", triangle, depth=10, relationships=edges)

        ids = [r.memory.id for r in related]
        assert sorted(ids) == ["mem_b", "mem_c"]
        assert "mem_a" not in ids

    def test_shallowest_depth_wins(self, engine, triangle):
        edges = [_edge("mem_a", "mem_b"), _edge("mem_a", "mem_c"), _edge("mem_b", "mem_c")]

        related = engine.get_related_memories("mem_a", triangle, depth=3, relationships=edges)

        assert {r.memory.id: r.depth for r in related} == {"mem_b": 1, "mem_c": 1}

    def test_max_results(self, engine, triangle):
        edges = [_edge("mem_a", "mem_b", 0.9), _edge("mem_a", "mem_c", 0.5)]

        related = engine.get_related_memories(
            "mem_a", triangle, depth=1, max_results=1, relationships=edges
        )

        assert [r.memory.id for r in related] == ["mem_b"]

    def test_unknown_start_returns_empty(self, engine, triangle):
        assert engine.get_related_memories("mem_zzz", triangle, relationships=[]) == []

    def test_discovers_edges_when_none_given(self, engine, memory_factory):
        pool = [
            memory_factory("mem_a", "I love running in the morning"),
            memory_factory("mem_b", "i love running in the MORNING"),
        ]

        related = engine.get_related_memories("mem_a", pool, depth=2)

        assert [r.memory.id for r in related] == ["mem_b"]
        assert related[0].relationship.relationship_type == RelationshipType.DUPLICATES
