"""
Relationship, related-memory and cluster models for the memory graph.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from wellmind.models.facts import AtomicFact
from wellmind.models.memory import MemoryEntry


class RelationshipType(str, Enum):
    """Types of directed relationships between memory entries."""

    # Logical
    SUPPORTS = "supports"
    CONTRADICTS = "contradicts"
    ELABORATES = "elaborates"

    # Temporal
    TEMPORAL_FOLLOWS = "temporal_follows"  # source was created after target
    TEMPORAL_PRECEDES = "temporal_precedes"  # source was created before target

    # Redundancy
    DUPLICATES = "duplicates"

    # Weak topical link
    RELATED_TO = "related_to"


class MemoryRelationship(BaseModel):
    """Directed, typed, scored edge between two memory entries."""

    model_config = {"extra": "ignore"}

    id: str = Field(..., description="Unique relationship ID (rel_xxx)")
    source_memory_id: str
    target_memory_id: str
    relationship_type: RelationshipType
    strength: float = Field(..., ge=0.0, le=1.0, description="How strong the relation is")
    confidence: float = Field(..., ge=0.0, le=1.0, description="How certain the detection is")
    context: str = Field(default="", description="Why the relationship was detected")
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def key(self) -> tuple[str, str, RelationshipType]:
        """Identity used for idempotent persistence."""
        return (self.source_memory_id, self.target_memory_id, self.relationship_type)


class RelatedMemory(BaseModel):
    """A memory reached from a query memory, with the edge used and its hop depth."""

    memory: MemoryEntry
    relationship: MemoryRelationship
    depth: int = Field(..., ge=1)


class SemanticCluster(BaseModel):
    """Coherence-scored group of memories."""

    id: str = Field(..., description="Deterministic cluster ID (cluster_xxx)")
    cluster_type: str
    memory_ids: list[str] = Field(default_factory=list)
    coherence_score: float = Field(..., ge=0.0, le=1.0)
    top_terms: list[str] = Field(default_factory=list)
    last_updated: datetime

    @property
    def memories_count(self) -> int:
        return len(self.memory_ids)


class MemoryAnalysis(BaseModel):
    """Relationship analysis for one memory: its edges, facts and neighbourhood."""

    memory_id: str
    relationships: list[MemoryRelationship] = Field(default_factory=list)
    atomic_facts: list[AtomicFact] = Field(default_factory=list)
    related_memories: list[RelatedMemory] = Field(default_factory=list)
    analysis_time_ms: float = 0.0
