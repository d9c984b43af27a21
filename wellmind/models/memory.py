"""
Memory entry model and semantic fingerprinting.
"""

import hashlib
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from wellmind.utils.text import stem, tokenize


class MemoryCategory(str, Enum):
    """Categories a memory entry can be tagged with."""

    PREFERENCE = "preference"
    GOAL = "goal"
    CONSTRAINT = "constraint"
    FACT = "fact"
    EVENT = "event"
    EXPERIENCE = "experience"
    HEALTH = "health"
    GENERAL = "general"


class MemoryEntry(BaseModel):
    """
    A unit of durable knowledge extracted from conversation.

    Entries are never hard-deleted: consolidation and invalidation flip
    ``is_active`` to False and keep the row for audit.

    Features:
    - Ranking: importance_score drives primary selection and retrieval order
    - Usage tracking: access_count and update_count only ever grow
    - Deduplication: semantic_hash allows O(1) duplicate candidate lookup
    - Labels/keywords: order-irrelevant sets, unioned on merge
    """

    model_config = {"extra": "ignore"}

    # Core identity
    id: str = Field(..., description="Unique memory ID (mem_xxx)")
    user_id: int = Field(..., description="Owner user ID")
    content: str = Field(..., description="Memory content")
    category: MemoryCategory = Field(default=MemoryCategory.GENERAL)
    conversation_id: str | None = Field(default=None, description="Originating conversation")

    # Ranking and usage
    importance_score: float = Field(default=0.5, ge=0.0, le=1.0)
    access_count: int = Field(default=0, ge=0)
    update_count: int = Field(default=0, ge=0)

    # Deduplication
    semantic_hash: str | None = Field(default=None, description="Content fingerprint")

    # Tags
    labels: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)

    # Lifecycle
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator("labels", "keywords", mode="before")
    @classmethod
    def _normalize_tags(cls, value):
        if value is None:
            return []
        return sorted({str(v).strip() for v in value if str(v).strip()})

    def merge_from(self, duplicate: "MemoryEntry", now: datetime | None = None) -> None:
        """
        Fold a duplicate's informational content into this entry.

        Labels and keywords are unioned, importance becomes the max of both,
        access counts are summed, and the update counter is bumped.

        Args:
            duplicate: Entry being merged into this one
            now: Timestamp to record as updated_at
        """
        self.labels = sorted(set(self.labels) | set(duplicate.labels))
        self.keywords = sorted(set(self.keywords) | set(duplicate.keywords))
        self.importance_score = max(self.importance_score, duplicate.importance_score)
        self.access_count = self.access_count + duplicate.access_count
        self.update_count += 1
        self.updated_at = now or datetime.now()

    def deactivate(self, now: datetime | None = None) -> None:
        """Logically delete the entry."""
        self.is_active = False
        self.updated_at = now or datetime.now()


def compute_semantic_hash(content: str, min_length: int = 3) -> str | None:
    """
    Compute a local semantic fingerprint for duplicate candidate lookup.

    The fingerprint is a SHA256 over the sorted, de-duplicated, lightly stemmed
    token set, so casing, punctuation, word order and plural variants collapse
    to the same hash. Prefixed with "sem:" to identify the scheme.

    Args:
        content: Text content to fingerprint
        min_length: Minimum token length considered

    Returns:
        Hash string in format "sem:hexdigest", or None when content has no tokens
    """
    tokens = sorted({stem(word) for word in tokenize(content, min_length)})
    if not tokens:
        return None
    digest = hashlib.sha256(" ".join(tokens).encode("utf-8")).hexdigest()
    return f"sem:{digest}"


class DetectedMemory(BaseModel):
    """What a memory detector decided to remember from a message."""

    content: str
    category: MemoryCategory = MemoryCategory.GENERAL
    importance_score: float = Field(default=0.5, ge=0.0, le=1.0)
    labels: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
