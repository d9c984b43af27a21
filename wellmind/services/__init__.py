"""
Services for WellMind.

High-level memory core services:
- MemoryCore: Unified interface for all memory operations
- BackgroundProcessor: Priority queue and worker pool
- CircuitBreaker: Failure isolation for the processing pipeline
- MemoryProcessingPipeline: Per-request detection, dedup and enrichment
- DuplicateConsolidationService: Duplicate grouping and merging
- PerformanceMonitor: Latency samples, alerts and reports
- FeatureFlags: Kill switches and per-user rollouts
"""

from wellmind.services.background_processor import BackgroundProcessor
from wellmind.services.circuit_breaker import CircuitBreaker
from wellmind.services.consolidation import DuplicateConsolidationService
from wellmind.services.feature_flags import Feature, FeatureFlags
from wellmind.services.memory_core import MemoryCore
from wellmind.services.memory_processing import (
    HeuristicMemoryDetector,
    MemoryDetector,
    MemoryProcessingPipeline,
)
from wellmind.services.performance_monitor import PerformanceMonitor

__all__ = [
    "MemoryCore",
    "BackgroundProcessor",
    "CircuitBreaker",
    "MemoryProcessingPipeline",
    "MemoryDetector",
    "HeuristicMemoryDetector",
    "DuplicateConsolidationService",
    "PerformanceMonitor",
    "FeatureFlags",
    "Feature",
]
