"""
Duplicate consolidation models.
"""

from enum import Enum

from pydantic import BaseModel, Field

from wellmind.models.memory import MemoryEntry


class DuplicateReason(str, Enum):
    """Signal that put a memory into a duplicate group, in priority order."""

    EXACT_CONTENT = "exact_content"
    SEMANTIC_HASH = "semantic_hash"
    HIGH_SIMILARITY = "high_similarity"


class DuplicateMatch(BaseModel):
    """Pairwise classification of a candidate against the group seed."""

    memory_id: str
    reason: DuplicateReason
    similarity: float = Field(..., ge=0.0, le=1.0)


class DuplicateGroup(BaseModel):
    """A primary memory and the duplicates to fold into it."""

    primary: MemoryEntry
    duplicates: list[MemoryEntry]
    reason: DuplicateReason
    similarity: float = Field(..., ge=0.0, le=1.0)
    matches: list[DuplicateMatch] = Field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.duplicates) + 1


class DuplicateGroupSummary(BaseModel):
    """Audit record for one processed group."""

    primary_id: str
    duplicate_ids: list[str]
    reason: DuplicateReason
    similarity: float
    applied: bool


class GroupError(BaseModel):
    """Failure while merging or deactivating one group."""

    primary_id: str
    duplicate_id: str | None = None
    error: str


class ConsolidationReport(BaseModel):
    """Summary of one consolidation run."""

    total_memories: int = 0
    duplicate_groups: int = 0
    memories_deactivated: int = 0
    memories_updated: int = 0
    processing_time_ms: float = 0.0
    dry_run: bool = False
    groups: list[DuplicateGroupSummary] = Field(default_factory=list)
    errors: list[GroupError] = Field(default_factory=list)

    @property
    def reduction_percent(self) -> float:
        if self.total_memories == 0:
            return 0.0
        return self.memories_deactivated / self.total_memories * 100
