"""
Memory Core - Integrates all components.

Brings together:
- Memory store
- Background processor, circuit breaker and processing pipeline
- Relationship engine and semantic clustering
- Duplicate consolidation
- Performance monitoring and feature flags
"""

import time
from typing import Any

from wellmind.config import Config
from wellmind.core.memory_store.base import MemoryStore
from wellmind.core.relationships import RelationshipEngine
from wellmind.models.consolidation import ConsolidationReport
from wellmind.models.monitoring import PerformanceReport
from wellmind.models.relationships import MemoryAnalysis, SemanticCluster
from wellmind.models.tasks import (
    BackgroundTask,
    BatchResult,
    CircuitProbeResult,
    MemoryProcessingRequest,
    ProcessorMetrics,
    TaskPriority,
)
from wellmind.services.background_processor import BackgroundProcessor
from wellmind.services.circuit_breaker import CircuitBreaker
from wellmind.services.consolidation import DuplicateConsolidationService
from wellmind.services.feature_flags import FeatureFlags
from wellmind.services.memory_processing import MemoryDetector, MemoryProcessingPipeline
from wellmind.services.performance_monitor import PerformanceMonitor
from wellmind.utils.exceptions import (
    NotFoundError,
    ProcessingError,
    QueueFullError,
    ValidationError,
)
from wellmind.utils.logger import get_logger

logger = get_logger(__name__)

PROBE_ACTIONS = ("normal", "trigger_failure")


class MemoryCore:
    """
    Unified memory core integrating all components.

    One instance owns one queue, one circuit breaker and one set of metrics;
    pass it to whatever needs to trigger processing instead of using globals.

    Features:
    - Fire-and-forget memory processing with priorities
    - Batch processing grouped by user
    - Relationship analysis and semantic clusters
    - On-demand and scheduled duplicate consolidation
    - Performance report, feature flags, circuit breaker probe
    """

    def __init__(
        self,
        store: MemoryStore,
        config: Config | None = None,
        detector: MemoryDetector | None = None,
    ):
        """
        Initialize Memory Core.

        Args:
            store: Memory store backend
            config: Configuration object
            detector: Memory detector for the processing pipeline (heuristic by default)
        """
        self.config = config or Config()
        self.store = store

        self.monitor = PerformanceMonitor(self.config.performance)
        self.feature_flags = FeatureFlags(self.config.feature_flags)

        self.circuit_breaker = CircuitBreaker(
            failure_threshold=self.config.circuit_breaker.failure_threshold,
            cooldown_seconds=self.config.circuit_breaker.cooldown_seconds,
            on_trip=self.monitor.track_circuit_breaker_trip,
        )

        self.relationship_engine = RelationshipEngine(
            config=self.config.relationships,
            similarity_threshold=self.config.deduplication.similarity_threshold,
            min_token_length=self.config.deduplication.min_token_length,
        )

        self.pipeline = MemoryProcessingPipeline(
            store=self.store,
            relationship_engine=self.relationship_engine,
            feature_flags=self.feature_flags,
            monitor=self.monitor,
            detector=detector,
            min_token_length=self.config.deduplication.min_token_length,
        )

        self.processor = BackgroundProcessor(
            handler=self.pipeline.process,
            config=self.config.processor,
            circuit_breaker=self.circuit_breaker,
            feature_flags=self.feature_flags,
            monitor=self.monitor,
        )

        self.consolidation = DuplicateConsolidationService(
            store=self.store,
            config=self.config.deduplication,
            monitor=self.monitor,
        )

    async def initialize(self) -> None:
        """Initialize the store and start background workers."""
        logger.info("Initializing Memory Core")

        await self.store.initialize()
        logger.info("Memory store initialized")

        self.processor.start()

        if self.config.deduplication.scheduled:
            self.consolidation.start_scheduled()
            logger.info("Scheduled consolidation started")

        logger.info("Memory Core ready")

    # ═══════════════════════════════════════════════════════════
    # PROCESSING
    # ═══════════════════════════════════════════════════════════

    def enqueue_memory_processing(
        self,
        request: MemoryProcessingRequest,
        priority: TaskPriority | str | None = None,
    ) -> BackgroundTask | None:
        """
        Hand a chat message off for background memory processing.

        Returns before any processing happens. Users outside the memory
        enhancement rollout are silently skipped.

        Returns:
            The queued task, or None when memory enhancement is off for the user

        Raises:
            QueueFullError: If the queue is at capacity
        """
        if not self.feature_flags.should_enable_memory_enhancement(request.user_id):
            logger.debug(f"Memory enhancement disabled for user {request.user_id}")
            return None
        return self.processor.enqueue(request, priority)

    async def process_batch(self, requests: list[MemoryProcessingRequest]) -> BatchResult:
        """
        Process many requests at once.

        Users in the batch processing rollout are processed now, grouped by
        user; the rest are queued individually. Users without memory
        enhancement are skipped.
        Requests the full queue rejects count as failures.

        Returns:
            BatchResult with aggregate counts
        """
        start = time.perf_counter()
        batched: list[MemoryProcessingRequest] = []
        queued = 0
        skipped = 0
        rejected = 0

        for request in requests:
            if not self.feature_flags.should_enable_memory_enhancement(request.user_id):
                skipped += 1
            elif self.feature_flags.should_enable_batch_processing(request.user_id):
                batched.append(request)
            else:
                try:
                    self.processor.enqueue(request)
                except QueueFullError as e:
                    logger.error(f"Batch request for user {request.user_id} rejected: {e}")
                    rejected += 1
                    continue
                queued += 1

        if batched:
            result = await self.processor.process_batch(batched)
        else:
            result = BatchResult()

        result.skipped_count += skipped
        result.failure_count += rejected
        result.queued_count = queued
        result.user_groups = len({r.user_id for r in requests})
        result.processing_time_ms = (time.perf_counter() - start) * 1000
        return result

    def get_task(self, task_id: str) -> BackgroundTask | None:
        return self.processor.get_task(task_id)

    def get_processor_metrics(self) -> ProcessorMetrics:
        return self.processor.get_metrics()

    # ═══════════════════════════════════════════════════════════
    # QUERIES
    # ═══════════════════════════════════════════════════════════

    async def analyze_memory(self, memory_id: str, depth: int | None = None) -> MemoryAnalysis:
        """
        Relationships, atomic facts and related memories of one memory.

        Stored relationships and facts are returned when present; otherwise
        they are computed on the fly (without being persisted).

        Args:
            memory_id: Memory to analyze
            depth: Relationship hops for related memories

        Returns:
            MemoryAnalysis

        Raises:
            NotFoundError: If the memory doesn't exist
        """
        start = time.perf_counter()

        memory = await self.store.get_memory(memory_id)
        if memory is None:
            raise NotFoundError(f"Memory not found: {memory_id}", {"memory_id": memory_id})

        facts = await self.store.get_atomic_facts(memory_id)
        if not facts and memory.is_active:
            facts = self.relationship_engine.fact_extractor.extract_atomic_facts(
                memory.id, memory.content
            )

        relationships = await self.store.get_relationships(memory_id, direction="outgoing")
        related = []
        if memory.is_active:
            pool = await self.store.list_memories(
                user_id=memory.user_id,
                active_only=True,
                limit=self.config.relationships.max_candidates + 1,
            )
            if all(m.id != memory.id for m in pool):
                pool.insert(0, memory)

            if not relationships:
                relationships = self.relationship_engine.discover_relationships(memory.id, pool)
            related = self.relationship_engine.get_related_memories(memory.id, pool, depth=depth)

        elapsed_ms = (time.perf_counter() - start) * 1000
        self.monitor.track_retrieval(elapsed_ms)

        return MemoryAnalysis(
            memory_id=memory_id,
            relationships=relationships,
            atomic_facts=facts,
            related_memories=related,
            analysis_time_ms=elapsed_ms,
        )

    async def get_semantic_clusters(self, user_id: int) -> list[SemanticCluster]:
        """Coherence-scored clusters over a user's active memories."""
        start = time.perf_counter()
        memories = await self.store.list_memories(user_id=user_id, active_only=True)
        clusters = self.relationship_engine.build_semantic_clusters(memories)
        self.monitor.track_retrieval((time.perf_counter() - start) * 1000)
        return clusters

    async def consolidate_duplicates(
        self, dry_run: bool = False, user_id: int | None = None
    ) -> ConsolidationReport:
        """Run duplicate consolidation now."""
        return await self.consolidation.consolidate(dry_run=dry_run, user_id=user_id)

    # ═══════════════════════════════════════════════════════════
    # OBSERVABILITY
    # ═══════════════════════════════════════════════════════════

    def get_performance_report(self) -> PerformanceReport:
        """Performance report with processor and breaker state attached."""
        metrics = self.processor.get_metrics()
        self.monitor.track_queue_metrics(metrics.queue_size)

        report = self.monitor.get_performance_report()
        report.detailed["processor"] = metrics.model_dump()
        report.detailed["circuit_breaker"] = self.circuit_breaker.snapshot().model_dump(
            mode="json"
        )
        return report

    def get_feature_flags(self, user_id: int) -> dict[str, Any]:
        """Per-user feature decisions plus the global rollout view."""
        return {
            "user_id": user_id,
            "flags": self.feature_flags.get_user_flags(user_id),
            "rollout_percentages": self.feature_flags.get_rollout_percentages(),
        }

    async def probe_circuit_breaker(self, action: str = "normal") -> CircuitProbeResult:
        """
        Exercise the circuit breaker with a synthetic operation.

        Args:
            action: "trigger_failure" to simulate a backend failure, "normal" otherwise

        Returns:
            CircuitProbeResult describing the breaker after the call

        Raises:
            ValidationError: If action is unknown
        """
        if action not in PROBE_ACTIONS:
            raise ValidationError(
                f"Unknown probe action: {action}", {"allowed": list(PROBE_ACTIONS)}
            )

        start = time.perf_counter()
        fallback_used = False

        async def operation() -> str:
            if action == "trigger_failure":
                raise ProcessingError("Simulated backend failure")
            return "ok"

        async def fallback() -> str:
            nonlocal fallback_used
            fallback_used = True
            return "fallback"

        try:
            await self.circuit_breaker.execute(operation, fallback=fallback)
        except ProcessingError:
            fallback_used = True

        state = self.circuit_breaker.state
        return CircuitProbeResult(
            circuit_breaker_active=self.circuit_breaker.is_open,
            response_time_ms=(time.perf_counter() - start) * 1000,
            failure_count=self.circuit_breaker.failure_count,
            fallback_used=fallback_used,
            state=state,
        )

    async def get_statistics(self) -> dict[str, Any]:
        """Store and processor counts."""
        return {
            "active_memories": await self.store.count_memories(active_only=True),
            "total_memories": await self.store.count_memories(active_only=False),
            "queue_size": self.processor.queue_size,
            "circuit_state": self.circuit_breaker.state.value,
        }

    async def close(self) -> None:
        """Stop workers and close the store."""
        logger.info("Shutting down Memory Core")

        await self.consolidation.stop_scheduled()
        await self.processor.stop()
        await self.store.close()

        logger.info("Memory Core shutdown complete")
