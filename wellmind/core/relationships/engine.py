"""Heuristic relationship engine - typed, scored edges between memory entries."""

from datetime import UTC, datetime

from wellmind.config import RelationshipConfig
from wellmind.core.atomic_facts import AtomicFactExtractor
from wellmind.core.relationships.clustering import SemanticClusterBuilder
from wellmind.core.similarity import classify_duplicate
from wellmind.models.consolidation import DuplicateReason
from wellmind.models.facts import AtomicFact, FactType
from wellmind.models.memory import MemoryEntry
from wellmind.models.relationships import (
    MemoryRelationship,
    RelatedMemory,
    RelationshipType,
    SemanticCluster,
)
from wellmind.utils.id_generator import generate_relationship_id
from wellmind.utils.logger import get_logger
from wellmind.utils.text import content_stems, stem, tokenize

logger = get_logger(__name__)

ANTONYM_PAIRS = [
    ("like", "hate"),
    ("like", "dislike"),
    ("love", "hate"),
    ("love", "dislike"),
    ("enjoy", "hate"),
    ("prefer", "avoid"),
    ("want", "avoid"),
    ("increase", "decrease"),
    ("gain", "lose"),
    ("more", "less"),
    ("always", "never"),
    ("can", "cannot"),
]

NEGATIONS = frozenset(
    {"not", "no", "never", "dont", "doesnt", "didnt", "cant", "cannot", "wont", "isnt",
     "arent", "stopped", "quit", "without"}
)

CONSTRAINT_CUES = frozenset(
    {"allergic", "allergy", "intolerant", "intolerance", "avoid", "cannot",
     "cant", "restrict", "restricted", "restriction", "limit", "limited", "allowed",
     "must", "shouldnt", "should", "never", "dont", "eat"}
)

CONSUMPTION_CUES = frozenset(
    {"had", "ate", "eat", "eating", "drank", "drink", "drinking", "tried", "ordered",
     "cooked", "consumed", "having", "snacked", "took"}
)

_CUE_STEMS = {stem(word) for pair in ANTONYM_PAIRS for word in pair} | NEGATIONS


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class RelationshipEngine:
    """
    Discovers typed relationships between a memory and a candidate pool.

    Detection priority for each (source, candidate) pair, first match wins:
    1. duplicates - exact content, equal semantic hash, or high fuzzy similarity
    2. contradicts - antonym cues, negation asymmetry, or constraint violation
    3. elaborates - source covers the candidate's concepts and adds detail
    4. supports - substantial concept overlap
    5. temporal_follows / temporal_precedes - created close together in time
    6. related_to - shared labels or keywords only

    All methods are pure: they never touch storage and never raise on bad data.
    """

    def __init__(
        self,
        config: RelationshipConfig | None = None,
        fact_extractor: AtomicFactExtractor | None = None,
        similarity_threshold: float = 0.85,
        min_token_length: int = 3,
    ):
        """
        Initialize relationship engine.

        Args:
            config: Heuristic thresholds (defaults when omitted)
            fact_extractor: Extractor used for fact-aware heuristics
            similarity_threshold: Fuzzy similarity above which a pair is a duplicate
            min_token_length: Minimum word length for similarity and overlap
        """
        self.config = config or RelationshipConfig()
        self.fact_extractor = fact_extractor or AtomicFactExtractor(
            max_facts_per_memory=self.config.max_facts_per_memory
        )
        self.similarity_threshold = similarity_threshold
        self.min_token_length = min_token_length
        self.cluster_builder = SemanticClusterBuilder(min_token_length=min_token_length)

    # ═══════════════════════════════════════════════════════════
    # DISCOVERY
    # ═══════════════════════════════════════════════════════════

    def discover_relationships(
        self, memory_id: str, candidate_pool: list[MemoryEntry]
    ) -> list[MemoryRelationship]:
        """
        Discover relationships from one memory to the rest of a pool.

        The source memory is looked up inside the pool. Inactive candidates and
        the source itself are skipped; at most ``max_candidates`` are compared.

        Args:
            memory_id: Source memory ID
            candidate_pool: Memories to compare against (may include the source)

        Returns:
            Relationships ordered by strength (strongest first)
        """
        source = next((m for m in candidate_pool if m.id == memory_id), None)
        if source is None:
            return []

        candidates = [m for m in candidate_pool if m.id != memory_id and m.is_active]
        candidates = candidates[: self.config.max_candidates]
        if not candidates:
            return []

        source_facts = self.fact_extractor.extract_atomic_facts(source.id, source.content)

        relationships = []
        for candidate in candidates:
            relationship = self.analyze_pair(source, candidate, source_facts=source_facts)
            if relationship and relationship.strength >= self.config.min_strength:
                relationships.append(relationship)

        relationships.sort(key=lambda r: (-r.strength, r.target_memory_id))

        logger.debug(
            f"Discovered {len(relationships)} relationships for {memory_id} "
            f"across {len(candidates)} candidates"
        )
        return relationships

    def analyze_pair(
        self,
        source: MemoryEntry,
        target: MemoryEntry,
        source_facts: list[AtomicFact] | None = None,
        target_facts: list[AtomicFact] | None = None,
    ) -> MemoryRelationship | None:
        """
        Classify the directed relationship source -> target.

        Args:
            source: Source memory
            target: Target memory
            source_facts: Pre-extracted facts for the source (extracted if omitted)
            target_facts: Pre-extracted facts for the target (extracted if omitted)

        Returns:
            The highest-priority relationship detected, or None
        """
        if not source.content.strip() or not target.content.strip():
            return None

        if source_facts is None:
            source_facts = self.fact_extractor.extract_atomic_facts(source.id, source.content)
        if target_facts is None:
            target_facts = self.fact_extractor.extract_atomic_facts(target.id, target.content)

        duplicate = classify_duplicate(
            source, target, self.similarity_threshold, self.min_token_length
        )
        if duplicate is not None:
            reason, similarity = duplicate
            confidence = {
                DuplicateReason.EXACT_CONTENT: 0.95,
                DuplicateReason.SEMANTIC_HASH: 0.9,
                DuplicateReason.HIGH_SIMILARITY: 0.8,
            }[reason]
            strength = 1.0 if reason == DuplicateReason.EXACT_CONTENT else max(similarity, 0.85)
            return self._build(
                source,
                target,
                RelationshipType.DUPLICATES,
                strength,
                confidence,
                f"Duplicate ({reason.value}, similarity {similarity:.2f})",
            )

        source_stems = content_stems(source.content, self.min_token_length)
        target_stems = content_stems(target.content, self.min_token_length)

        contradiction = self._score_contradiction(
            source, target, source_stems, target_stems, source_facts, target_facts
        )
        if contradiction is not None:
            strength, confidence, context = contradiction
            return self._build(
                source, target, RelationshipType.CONTRADICTS, strength, confidence, context
            )

        elaboration = self._score_elaboration(source_stems, target_stems)
        if elaboration is not None:
            return self._build(
                source,
                target,
                RelationshipType.ELABORATES,
                elaboration,
                0.7,
                f"Adds detail to {int(elaboration * 100)}% of the target's concepts",
            )

        support = self._score_support(
            source, target, source_stems, target_stems, source_facts, target_facts
        )
        if support is not None:
            strength, shared = support
            return self._build(
                source,
                target,
                RelationshipType.SUPPORTS,
                strength,
                0.7,
                f"{len(shared)} shared concepts: {', '.join(shared[:3])}",
            )

        temporal = self._score_temporal(source, target)
        if temporal is not None:
            strength, hours, follows = temporal
            return self._build(
                source,
                target,
                (
                    RelationshipType.TEMPORAL_FOLLOWS
                    if follows
                    else RelationshipType.TEMPORAL_PRECEDES
                ),
                strength,
                0.6,
                f"Created {round(hours)}h apart",
            )

        shared_tags = self._shared_tags(source, target)
        if shared_tags:
            return self._build(
                source,
                target,
                RelationshipType.RELATED_TO,
                min(0.6, 0.3 + 0.1 * len(shared_tags)),
                0.5,
                f"Shared tags: {', '.join(shared_tags[:3])}",
            )

        return None

    # ═══════════════════════════════════════════════════════════
    # TRAVERSAL
    # ═══════════════════════════════════════════════════════════

    def get_related_memories(
        self,
        memory_id: str,
        candidate_pool: list[MemoryEntry],
        depth: int | None = None,
        max_results: int | None = None,
        relationships: list[MemoryRelationship] | None = None,
    ) -> list[RelatedMemory]:
        """
        Breadth-first walk of the relationship graph from one memory.

        Edges come from ``relationships`` when given (e.g. persisted edges),
        otherwise they are discovered on the fly at each hop. A memory is
        reported once, at the shallowest depth it is reached.

        Args:
            memory_id: Starting memory ID
            candidate_pool: Memories that may be reached
            depth: Maximum hops (defaults to config.default_depth)
            max_results: Result cap (defaults to config.max_related)
            relationships: Known edges to traverse instead of discovering

        Returns:
            Related memories ordered by depth, then strength (strongest first)
        """
        depth = depth if depth is not None else self.config.default_depth
        max_results = max_results if max_results is not None else self.config.max_related

        pool_by_id = {m.id: m for m in candidate_pool}
        if memory_id not in pool_by_id or depth < 1:
            return []

        adjacency: dict[str, list[MemoryRelationship]] | None = None
        if relationships is not None:
            adjacency = {}
            for rel in relationships:
                adjacency.setdefault(rel.source_memory_id, []).append(rel)
            for edges in adjacency.values():
                edges.sort(key=lambda r: (-r.strength, r.target_memory_id))

        visited = {memory_id}
        frontier = [memory_id]
        related: list[RelatedMemory] = []

        for level in range(1, depth + 1):
            next_frontier = []
            for node_id in frontier:
                if adjacency is not None:
                    edges = adjacency.get(node_id, [])
                else:
                    edges = self.discover_relationships(node_id, candidate_pool)

                for edge in edges:
                    target_id = edge.target_memory_id
                    if target_id in visited:
                        continue
                    target = pool_by_id.get(target_id)
                    if target is None or not target.is_active:
                        continue
                    visited.add(target_id)
                    related.append(RelatedMemory(memory=target, relationship=edge, depth=level))
                    next_frontier.append(target_id)

            frontier = next_frontier
            if not frontier:
                break

        related.sort(key=lambda r: (r.depth, -r.relationship.strength, r.memory.id))
        return related[:max_results]

    # ═══════════════════════════════════════════════════════════
    # CLUSTERING
    # ═══════════════════════════════════════════════════════════

    def build_semantic_clusters(self, memories: list[MemoryEntry]) -> list[SemanticCluster]:
        """Group memories into coherence-scored clusters (recomputed from scratch)."""
        return self.cluster_builder.build(memories)

    # ═══════════════════════════════════════════════════════════
    # HEURISTICS
    # ═══════════════════════════════════════════════════════════

    def _score_contradiction(
        self,
        source: MemoryEntry,
        target: MemoryEntry,
        source_stems: set[str],
        target_stems: set[str],
        source_facts: list[AtomicFact],
        target_facts: list[AtomicFact],
    ) -> tuple[float, float, str] | None:
        """
        Score contradiction cues.

        Returns:
            (strength, confidence, context) or None below the threshold
        """
        shared = (source_stems & target_stems) - _CUE_STEMS
        best: tuple[float, float, str] | None = None

        if shared:
            source_words = set(tokenize(source.content, 1))
            target_words = set(tokenize(target.content, 1))

            antonyms = [
                (pos, neg)
                for pos, neg in ANTONYM_PAIRS
                if (pos in source_words and neg in target_words)
                or (neg in source_words and pos in target_words)
            ]
            negation_asymmetry = bool(source_words & NEGATIONS) != bool(target_words & NEGATIONS)

            if antonyms or negation_asymmetry:
                score = 0.3 * len(antonyms) + (0.3 if negation_asymmetry else 0.0)
                score += min(0.4, 0.1 * len(shared))
                confidence = min(0.9, 0.7 + 0.05 * len(antonyms))
                if antonyms:
                    cues = ", ".join(f"{pos} vs {neg}" for pos, neg in antonyms[:2])
                    topics = ", ".join(sorted(shared)[:3])
                    context = f"Contradictory statements about {topics}: {cues}"
                else:
                    context = f"Negation mismatch about {', '.join(sorted(shared)[:3])}"
                best = (min(1.0, score), confidence, context)

        violation = self._constraint_violation(source, target, source_facts) or (
            self._constraint_violation(target, source, target_facts)
        )
        if violation is not None and (best is None or violation[0] > best[0]):
            best = violation

        if best is None or best[0] < self.config.contradiction_threshold:
            return None
        return best

    def _constraint_violation(
        self,
        constrained: MemoryEntry,
        other: MemoryEntry,
        constrained_facts: list[AtomicFact],
    ) -> tuple[float, float, str] | None:
        """One memory states a constraint, the other reports doing the constrained thing."""
        constraint_stems: set[str] = set()
        for fact in constrained_facts:
            if fact.fact_type == FactType.CONSTRAINT:
                constraint_stems |= content_stems(fact.content, self.min_token_length)
        constraint_stems -= CONSTRAINT_CUES
        if not constraint_stems:
            return None

        other_words = set(tokenize(other.content, 1))
        if not other_words & CONSUMPTION_CUES or other_words & NEGATIONS:
            return None

        shared = sorted(constraint_stems & content_stems(other.content, self.min_token_length))
        if not shared:
            return None

        strength = min(0.8, 0.5 + 0.1 * len(shared))
        return strength, 0.6, f"Possible constraint violation involving {', '.join(shared[:3])}"

    def _score_elaboration(self, source_stems: set[str], target_stems: set[str]) -> float | None:
        """Source covers most of the target's concepts and is substantially longer."""
        if not target_stems or not source_stems:
            return None
        coverage = len(source_stems & target_stems) / len(target_stems)
        longer = len(source_stems) >= 1.5 * len(target_stems) and (
            len(source_stems) - len(target_stems) >= 2
        )
        if coverage >= self.config.elaboration_coverage and longer:
            return round(coverage, 4)
        return None

    def _score_support(
        self,
        source: MemoryEntry,
        target: MemoryEntry,
        source_stems: set[str],
        target_stems: set[str],
        source_facts: list[AtomicFact],
        target_facts: list[AtomicFact],
    ) -> tuple[float, list[str]] | None:
        max_size = max(len(source_stems), len(target_stems))
        if max_size == 0:
            return None

        shared = sorted(source_stems & target_stems)
        overlap = len(shared) / max_size
        if overlap < self.config.support_threshold:
            return None

        bonus = min(0.2, 0.1 * len(self._shared_tags(source, target)))
        source_type = self.fact_extractor.dominant_fact_type(source_facts)
        target_type = self.fact_extractor.dominant_fact_type(target_facts)
        if source_type is not None and source_type == target_type:
            bonus += 0.1

        return min(1.0, round(overlap * 1.5 + bonus, 4)), shared

    def _score_temporal(
        self, source: MemoryEntry, target: MemoryEntry
    ) -> tuple[float, float, bool] | None:
        source_time = _as_utc(source.created_at)
        target_time = _as_utc(target.created_at)
        hours = abs((source_time - target_time).total_seconds()) / 3600
        window = self.config.temporal_window_hours
        if hours >= window:
            return None
        strength = max(0.3, 1 - hours / window)
        return round(strength, 4), hours, source_time >= target_time

    @staticmethod
    def _shared_tags(source: MemoryEntry, target: MemoryEntry) -> list[str]:
        source_tags = {t.lower() for t in source.labels + source.keywords}
        target_tags = {t.lower() for t in target.labels + target.keywords}
        return sorted(source_tags & target_tags)

    @staticmethod
    def _build(
        source: MemoryEntry,
        target: MemoryEntry,
        relationship_type: RelationshipType,
        strength: float,
        confidence: float,
        context: str,
    ) -> MemoryRelationship:
        return MemoryRelationship(
            id=generate_relationship_id(),
            source_memory_id=source.id,
            target_memory_id=target.id,
            relationship_type=relationship_type,
            strength=round(min(1.0, max(0.0, strength)), 4),
            confidence=confidence,
            context=context,
        )
