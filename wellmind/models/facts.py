"""
Atomic fact model.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class FactType(str, Enum):
    """Kinds of atomic assertion decomposed from memory text."""

    PREFERENCE = "preference"
    GOAL = "goal"
    CONSTRAINT = "constraint"
    EVENT = "event"
    EXPERIENCE = "experience"
    KNOWLEDGE = "knowledge"


class AtomicFact(BaseModel):
    """A single typed assertion belonging to one memory entry."""

    model_config = {"extra": "ignore"}

    id: str = Field(..., description="Unique fact ID (fact_xxx)")
    memory_entry_id: str = Field(..., description="Owning memory ID")
    fact_type: FactType
    content: str = Field(..., description="Short text of the fact")
    confidence: float = Field(..., ge=0.0, le=1.0)
    is_active: bool = Field(default=True, description="False once the owning memory is deactivated")
    extracted_at: datetime = Field(default_factory=datetime.now)
