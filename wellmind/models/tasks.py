"""
Background task, circuit breaker and processing result models.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class TaskPriority(str, Enum):
    """Background task priority. Lower rank is dequeued first."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    @classmethod
    def _missing_(cls, value):
        # Older callers send "normal"
        if isinstance(value, str):
            lowered = value.lower()
            if lowered == "normal":
                return cls.MEDIUM
            for member in cls:
                if member.value == lowered:
                    return member
        return None


_PRIORITY_RANK = {
    TaskPriority.CRITICAL: 0,
    TaskPriority.HIGH: 1,
    TaskPriority.MEDIUM: 2,
    TaskPriority.LOW: 3,
}


class TaskStatus(str, Enum):
    """Lifecycle of a background task."""

    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"  # short-circuited by an open breaker


class MemoryProcessingRequest(BaseModel):
    """Payload asking the core to process a chat message for memory."""

    user_id: int
    message: str
    conversation_id: str
    priority: TaskPriority = TaskPriority.MEDIUM
    memory_id: str | None = Field(
        default=None, description="Existing memory to enrich instead of detecting a new one"
    )


class ProcessingAction(str, Enum):
    """What the processing pipeline did with a request."""

    CREATED = "created"
    ENRICHED = "enriched"
    DUPLICATE_SKIPPED = "duplicate_skipped"
    IGNORED = "ignored"


class ProcessingResult(BaseModel):
    """Outcome of one pipeline run."""

    action: ProcessingAction
    memory_id: str | None = None
    facts_created: int = 0
    relationships_created: int = 0
    processing_time_ms: float = 0.0
    reason: str = ""


class BackgroundTask(BaseModel):
    """A queued unit of memory processing work. Consumed once, never reused."""

    id: str
    request: MemoryProcessingRequest
    priority: TaskPriority
    status: TaskStatus = TaskStatus.QUEUED
    enqueued_at: datetime = Field(default_factory=datetime.now)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    result: ProcessingResult | None = None
    error: str | None = None

    @property
    def user_id(self) -> int:
        return self.request.user_id


class BatchResult(BaseModel):
    """Aggregate outcome of a batch submission."""

    success_count: int = 0
    failure_count: int = 0
    skipped_count: int = 0
    queued_count: int = Field(default=0, description="Requests routed to the queue instead")
    processing_time_ms: float = 0.0
    user_groups: int = 0


class ProcessorMetrics(BaseModel):
    """Cumulative background processor metrics."""

    processed_count: int = 0
    failure_count: int = 0
    skipped_count: int = 0
    average_processing_time_ms: float = 0.0
    circuit_breaker_trips: int = 0
    queue_size: int = 0
    max_queue_size_seen: int = 0


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerState(BaseModel):
    """Point-in-time snapshot of a circuit breaker."""

    state: CircuitState
    consecutive_failures: int = 0
    opened_at: float | None = Field(default=None, description="Clock reading when last opened")
    retry_after_seconds: float = 0.0
    trips: int = 0


class CircuitProbeResult(BaseModel):
    """Result of exercising the breaker through the probe hook."""

    circuit_breaker_active: bool
    response_time_ms: float
    failure_count: int
    fallback_used: bool
    state: CircuitState
