"""
Integration tests for MemoryCore.

Tests cover:
1. Fire-and-forget processing and batch routing by feature flag
2. Relationship analysis and semantic clusters
3. Consolidation, performance report, feature flags
4. Circuit breaker probe
"""

import asyncio

import pytest

from wellmind.config import (
    CircuitBreakerConfig,
    Config,
    FeatureFlagConfig,
    LoggingConfig,
    ProcessorConfig,
    StorageConfig,
)
from wellmind.core.memory_store.in_memory import InMemoryMemoryStore
from wellmind.models.relationships import RelationshipType
from wellmind.models.tasks import CircuitState, MemoryProcessingRequest, TaskStatus
from wellmind.services.memory_core import MemoryCore
from wellmind.utils.exceptions import NotFoundError, ValidationError


def _config(**flags) -> Config:
    return Config(
        storage=StorageConfig(backend="memory"),
        circuit_breaker=CircuitBreakerConfig(failure_threshold=2, cooldown_seconds=60),
        feature_flags=FeatureFlagConfig(**{"batch_processing_rollout": 100, **flags}),
        logging=LoggingConfig(log_to_file=False),
    )


def _request(message: str, user_id: int = 1) -> MemoryProcessingRequest:
    return MemoryProcessingRequest(user_id=user_id, message=message, conversation_id="conv_1")


async def _make_core(config: Config) -> MemoryCore:
    core = MemoryCore(InMemoryMemoryStore(), config)
    await core.initialize()
    return core


@pytest.fixture
async def core():
    core = await _make_core(_config())
    yield core
    await core.close()


@pytest.mark.asyncio
class TestProcessing:
    """Queue and batch entry points."""

    async def test_enqueue_processes_in_background(self, core):
        task = core.enqueue_memory_processing(_request("I am allergic to peanuts"))

        assert task.status == TaskStatus.QUEUED
        await asyncio.wait_for(core.processor.join(), timeout=5)

        finished = core.get_task(task.id)
        assert finished.status == TaskStatus.COMPLETED
        assert await core.store.count_memories(user_id=1) == 1

    async def test_enqueue_skipped_when_enhancement_off(self):
        core = await _make_core(_config(enable_memory_enhancement=False))
        try:
            assert core.enqueue_memory_processing(_request("I am allergic to peanuts")) is None
            assert core.processor.queue_size == 0
        finally:
            await core.close()

    async def test_batch_processes_now(self, core):
        result = await core.process_batch(
            [
                _request("I am allergic to peanuts", user_id=1),
                _request("I want to run a marathon", user_id=2),
                _request("The sky", user_id=2),
            ]
        )

        assert result.success_count == 3
        assert result.queued_count == 0
        assert result.user_groups == 2
        assert await core.store.count_memories() == 2

    async def test_batch_outside_rollout_is_queued(self):
        core = await _make_core(_config(batch_processing_rollout=0))
        try:
            result = await core.process_batch([_request("I love tea"), _request("I like coffee")])

            assert result.queued_count == 2
            assert result.success_count == 0
        finally:
            await core.close()

    async def test_batch_counts_queue_rejections_as_failures(self):
        config = _config(batch_processing_rollout=0)
        config.processor = ProcessorConfig(max_queue_size=1)
        core = await _make_core(config)
        try:
            result = await core.process_batch(
                [_request("I love tea"), _request("I like coffee"), _request("I run daily")]
            )

            assert result.queued_count == 1
            assert result.failure_count == 2
            assert core.processor.queue_size == 1
        finally:
            await core.close()

    async def test_batch_skips_users_without_enhancement(self):
        core = await _make_core(_config(memory_enhancement_rollout=0))
        try:
            result = await core.process_batch([_request("I love tea")])

            assert result.skipped_count == 1
            assert await core.store.count_memories() == 0
        finally:
            await core.close()

    async def test_processor_metrics(self, core):
        await core.process_batch([_request("I love tea")])

        assert core.get_processor_metrics().processed_count == 1


@pytest.mark.asyncio
class TestAnalysis:
    """Relationship analysis and clusters."""

    async def test_unknown_memory(self, core):
        with pytest.raises(NotFoundError):
            await core.analyze_memory("mem_missing")

    async def test_stored_relationships_and_facts(self, core):
        await core.process_batch([_request("I am allergic to peanuts")])
        await core.process_batch([_request("I ate peanut butter yesterday")])
        snack = next(
            m for m in await core.store.list_memories(user_id=1) if "butter" in m.content
        )

        analysis = await core.analyze_memory(snack.id)

        assert analysis.memory_id == snack.id
        assert len(analysis.atomic_facts) == 1
        assert analysis.relationships[0].relationship_type == RelationshipType.CONTRADICTS
        assert [r.depth for r in analysis.related_memories] == [1]

    async def test_computes_on_the_fly_without_persisting(self, core, memory_factory):
        await core.store.add_memory(memory_factory("mem_a", "I love tea"))
        await core.store.add_memory(memory_factory("mem_b", "i love TEA"))

        analysis = await core.analyze_memory("mem_a", depth=1)

        assert analysis.relationships[0].relationship_type == RelationshipType.DUPLICATES
        assert [r.memory.id for r in analysis.related_memories] == ["mem_b"]
        assert await core.store.get_relationships("mem_a") == []
        assert await core.store.get_atomic_facts("mem_a") == []

    async def test_semantic_clusters(self, core, memory_factory):
        await core.store.add_memory(memory_factory("mem_a", "I love tea", category="preference"))
        await core.store.add_memory(
            memory_factory("mem_b", "I love green tea", category="preference")
        )
        await core.store.add_memory(memory_factory("mem_c", "Other", user_id=2))

        clusters = await core.get_semantic_clusters(1)

        assert len(clusters) == 1
        assert clusters[0].memory_ids == ["mem_a", "mem_b"]


@pytest.mark.asyncio
class TestMaintenance:
    """Consolidation and observability."""

    async def test_consolidate_duplicates(self, core, memory_factory):
        await core.store.add_memory(memory_factory("mem_a", "I love tea"))
        await core.store.add_memory(memory_factory("mem_b", "I LOVE tea"))

        report = await core.consolidate_duplicates()

        assert report.memories_deactivated == 1
        stats = await core.get_statistics()
        assert stats["active_memories"] == 1
        assert stats["total_memories"] == 2

    async def test_performance_report_sections(self, core):
        report = core.get_performance_report()

        assert report.summary["status"] == "healthy"
        assert report.detailed["processor"]["processed_count"] == 0
        assert report.detailed["circuit_breaker"]["state"] == "closed"

    async def test_feature_flags(self, core):
        flags = core.get_feature_flags(42)

        assert flags["user_id"] == 42
        assert flags["flags"]["batch_processing"] is True
        assert flags["rollout_percentages"]["batch_processing"] == 100


@pytest.mark.asyncio
class TestCircuitProbe:
    """probe_circuit_breaker."""

    async def test_normal(self, core):
        result = await core.probe_circuit_breaker("normal")

        assert result.circuit_breaker_active is False
        assert result.fallback_used is False
        assert result.state == CircuitState.CLOSED

    async def test_trigger_failure_opens_after_threshold(self, core):
        first = await core.probe_circuit_breaker("trigger_failure")
        second = await core.probe_circuit_breaker("trigger_failure")
        third = await core.probe_circuit_breaker("normal")

        assert first.fallback_used and not first.circuit_breaker_active
        assert second.circuit_breaker_active
        assert second.failure_count == 2
        assert third.fallback_used
        assert core.monitor.circuit_breaker_trips == 1

    async def test_unknown_action(self, core):
        with pytest.raises(ValidationError):
            await core.probe_circuit_breaker("explode")
