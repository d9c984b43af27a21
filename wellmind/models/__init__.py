"""
Data models for the WellMind memory core.

Core models:
- MemoryEntry, MemoryCategory: durable units of user knowledge
- AtomicFact, FactType: typed assertions decomposed from a memory
- MemoryRelationship, RelationshipType: directed scored edges between memories
- RelatedMemory, SemanticCluster, MemoryAnalysis: retrieval results
- BackgroundTask, TaskPriority, TaskStatus: queued processing work
- DuplicateGroup, ConsolidationReport: consolidation results
- PerformanceReport: monitoring output
"""

from wellmind.models.consolidation import (
    ConsolidationReport,
    DuplicateGroup,
    DuplicateGroupSummary,
    DuplicateMatch,
    DuplicateReason,
    GroupError,
)
from wellmind.models.facts import AtomicFact, FactType
from wellmind.models.memory import (
    DetectedMemory,
    MemoryCategory,
    MemoryEntry,
    compute_semantic_hash,
)
from wellmind.models.monitoring import PerformanceReport
from wellmind.models.relationships import (
    MemoryAnalysis,
    MemoryRelationship,
    RelatedMemory,
    RelationshipType,
    SemanticCluster,
)
from wellmind.models.tasks import (
    BackgroundTask,
    BatchResult,
    CircuitBreakerState,
    CircuitProbeResult,
    CircuitState,
    MemoryProcessingRequest,
    ProcessingAction,
    ProcessingResult,
    ProcessorMetrics,
    TaskPriority,
    TaskStatus,
)

__all__ = [
    # Memory models
    "MemoryEntry",
    "MemoryCategory",
    "compute_semantic_hash",
    "DetectedMemory",
    # Fact models
    "AtomicFact",
    "FactType",
    # Relationship models
    "MemoryRelationship",
    "RelationshipType",
    "RelatedMemory",
    "SemanticCluster",
    "MemoryAnalysis",
    # Task models
    "BackgroundTask",
    "BatchResult",
    "MemoryProcessingRequest",
    "ProcessingAction",
    "ProcessingResult",
    "ProcessorMetrics",
    "TaskPriority",
    "TaskStatus",
    "CircuitState",
    "CircuitBreakerState",
    "CircuitProbeResult",
    # Consolidation models
    "DuplicateReason",
    "DuplicateMatch",
    "DuplicateGroup",
    "DuplicateGroupSummary",
    "GroupError",
    "ConsolidationReport",
    # Monitoring
    "PerformanceReport",
]
