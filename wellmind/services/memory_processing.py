"""
Per-task memory processing pipeline.

This is the handler the background processor runs for each queued request:
dedup check -> memory detection -> persistence -> fact extraction ->
relationship discovery.
"""

import time
from collections import Counter
from typing import Protocol

from wellmind.core.atomic_facts import AtomicFactExtractor
from wellmind.core.memory_store.base import MemoryStore
from wellmind.core.relationships import RelationshipEngine
from wellmind.models.facts import FactType
from wellmind.models.memory import (
    DetectedMemory,
    MemoryCategory,
    MemoryEntry,
    compute_semantic_hash,
)
from wellmind.models.tasks import MemoryProcessingRequest, ProcessingAction, ProcessingResult
from wellmind.services.feature_flags import FeatureFlags
from wellmind.services.performance_monitor import PerformanceMonitor
from wellmind.utils.exceptions import NotFoundError, ValidationError
from wellmind.utils.id_generator import generate_memory_id
from wellmind.utils.logger import get_logger
from wellmind.utils.text import STOPWORDS, stem, tokenize

logger = get_logger(__name__)


class MemoryDetector(Protocol):
    """Decides whether a chat message carries something worth remembering."""

    def detect(self, message: str) -> DetectedMemory | None: ...


_CATEGORY_BY_FACT_TYPE = {
    FactType.PREFERENCE: MemoryCategory.PREFERENCE,
    FactType.GOAL: MemoryCategory.GOAL,
    FactType.CONSTRAINT: MemoryCategory.CONSTRAINT,
    FactType.EVENT: MemoryCategory.EVENT,
    FactType.EXPERIENCE: MemoryCategory.EXPERIENCE,
    FactType.KNOWLEDGE: MemoryCategory.FACT,
}

_BASE_IMPORTANCE = {
    FactType.CONSTRAINT: 0.9,
    FactType.GOAL: 0.8,
    FactType.PREFERENCE: 0.7,
    FactType.EVENT: 0.6,
    FactType.EXPERIENCE: 0.55,
    FactType.KNOWLEDGE: 0.5,
}


class HeuristicMemoryDetector:
    """
    Local detector: remembers any message that yields at least one atomic fact.

    Category comes from the dominant fact type, importance from that type
    plus a small bonus per extra fact, keywords from the most frequent
    content words.
    """

    def __init__(self, fact_extractor: AtomicFactExtractor | None = None, max_keywords: int = 5):
        self.fact_extractor = fact_extractor or AtomicFactExtractor()
        self.max_keywords = max_keywords

    def detect(self, message: str) -> DetectedMemory | None:
        content = " ".join(message.split())
        facts = self.fact_extractor.extract_atomic_facts("pending", content)
        if not facts:
            return None

        dominant = self.fact_extractor.dominant_fact_type(facts)
        importance = min(1.0, _BASE_IMPORTANCE[dominant] + 0.05 * (len(facts) - 1))

        return DetectedMemory(
            content=content,
            category=_CATEGORY_BY_FACT_TYPE[dominant],
            importance_score=round(importance, 4),
            labels=sorted({fact.fact_type.value for fact in facts}),
            keywords=self._keywords(content),
        )

    def _keywords(self, content: str) -> list[str]:
        counts = Counter(stem(word) for word in tokenize(content, 4) if word not in STOPWORDS)
        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return [word for word, _ in ranked[: self.max_keywords]]


class MemoryProcessingPipeline:
    """
    Turns one processing request into stored memory, facts and relationships.

    Outcomes:
    - ignored: empty message, nothing memorable, or inactive target
    - duplicate_skipped: an active memory with the same fingerprint exists
    - created: a new memory was stored and enriched
    - enriched: an existing memory (request.memory_id) got facts and relationships
    """

    def __init__(
        self,
        store: MemoryStore,
        relationship_engine: RelationshipEngine | None = None,
        feature_flags: FeatureFlags | None = None,
        monitor: PerformanceMonitor | None = None,
        detector: MemoryDetector | None = None,
        min_token_length: int = 3,
    ):
        """
        Initialize pipeline.

        Args:
            store: Memory store to read and write
            relationship_engine: Engine for relationship discovery
            feature_flags: Flags controlling real-time dedup
            monitor: Receives deduplication samples
            detector: Memory detector (heuristic by default)
            min_token_length: Token length used for semantic hashing
        """
        self.store = store
        self.relationship_engine = relationship_engine or RelationshipEngine()
        self.fact_extractor = self.relationship_engine.fact_extractor
        self.feature_flags = feature_flags or FeatureFlags()
        self.monitor = monitor or PerformanceMonitor()
        self.detector = detector or HeuristicMemoryDetector(self.fact_extractor)
        self.min_token_length = min_token_length

    async def process(self, request: MemoryProcessingRequest) -> ProcessingResult:
        """
        Process one request end to end.

        Raises:
            NotFoundError: If request.memory_id doesn't exist
            ValidationError: If request.memory_id belongs to another user
            StoreError: If the store fails (counted as a task failure upstream)
        """
        start = time.perf_counter()
        content = " ".join(request.message.split())

        if request.memory_id:
            return await self._enrich_existing(request, start)

        if not content:
            return self._result(ProcessingAction.IGNORED, start, reason="empty message")

        if self.feature_flags.is_real_time_dedup_enabled():
            existing = await self._find_duplicate(request.user_id, content)
            if existing is not None:
                await self.store.record_access(existing.id)
                logger.debug(f"Message for user {request.user_id} duplicates {existing.id}")
                return self._result(
                    ProcessingAction.DUPLICATE_SKIPPED,
                    start,
                    memory_id=existing.id,
                    reason="semantic hash match",
                )

        detected = self.detector.detect(content)
        if detected is None or not detected.content.strip():
            return self._result(ProcessingAction.IGNORED, start, reason="nothing memorable")

        memory = MemoryEntry(
            id=generate_memory_id(),
            user_id=request.user_id,
            content=detected.content,
            category=detected.category,
            conversation_id=request.conversation_id,
            importance_score=detected.importance_score,
            semantic_hash=compute_semantic_hash(detected.content, self.min_token_length),
            labels=detected.labels,
            keywords=detected.keywords,
        )
        await self.store.add_memory(memory)

        facts_created, relationships_created = await self.enrich(memory)

        logger.info(
            f"Created memory {memory.id} for user {request.user_id} "
            f"({memory.category.value}, {facts_created} facts, "
            f"{relationships_created} relationships)"
        )
        return self._result(
            ProcessingAction.CREATED,
            start,
            memory_id=memory.id,
            facts_created=facts_created,
            relationships_created=relationships_created,
        )

    async def enrich(self, memory: MemoryEntry) -> tuple[int, int]:
        """
        Extract facts and discover relationships for a stored memory.

        Facts are only extracted when the memory has none yet; relationship
        inserts are idempotent, so re-running this is harmless.

        Returns:
            (facts_created, relationships_created)
        """
        facts_created = 0
        if not await self.store.get_atomic_facts(memory.id, active_only=False):
            facts = self.fact_extractor.extract_atomic_facts(memory.id, memory.content)
            facts_created = await self.store.add_atomic_facts(facts)

        pool = await self.store.list_memories(
            user_id=memory.user_id,
            active_only=True,
            limit=self.relationship_engine.config.max_candidates + 1,
        )
        if all(m.id != memory.id for m in pool):
            pool.insert(0, memory)

        relationships = self.relationship_engine.discover_relationships(memory.id, pool)
        relationships_created = 0
        for relationship in relationships:
            if await self.store.add_relationship(relationship):
                relationships_created += 1

        return facts_created, relationships_created

    async def _enrich_existing(
        self, request: MemoryProcessingRequest, start: float
    ) -> ProcessingResult:
        memory = await self.store.get_memory(request.memory_id)
        if memory is None:
            raise NotFoundError(f"Memory not found: {request.memory_id}")
        if memory.user_id != request.user_id:
            raise ValidationError(
                f"Memory {memory.id} does not belong to user {request.user_id}",
                {"memory_id": memory.id, "user_id": request.user_id},
            )
        if not memory.is_active:
            return self._result(
                ProcessingAction.IGNORED, start, memory_id=memory.id, reason="memory inactive"
            )

        facts_created, relationships_created = await self.enrich(memory)
        return self._result(
            ProcessingAction.ENRICHED,
            start,
            memory_id=memory.id,
            facts_created=facts_created,
            relationships_created=relationships_created,
        )

    async def _find_duplicate(self, user_id: int, content: str) -> MemoryEntry | None:
        semantic_hash = compute_semantic_hash(content, self.min_token_length)
        if semantic_hash is None:
            return None

        start = time.perf_counter()
        existing = await self.store.find_by_semantic_hash(user_id, semantic_hash)
        self.monitor.track_deduplication(
            (time.perf_counter() - start) * 1000, success=True, was_hit=existing is not None
        )
        return existing

    @staticmethod
    def _result(action: ProcessingAction, start: float, **fields) -> ProcessingResult:
        return ProcessingResult(
            action=action, processing_time_ms=(time.perf_counter() - start) * 1000, **fields
        )
