"""
WellMind FastAPI Application

A REST API server for the WellMind memory core.
Provides endpoints for background memory processing, relationship analysis,
semantic clusters, duplicate consolidation, performance reports, feature
flags and a circuit breaker probe.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from wellmind.config import Config
from wellmind.core.factory import MemoryStoreFactory
from wellmind.models.tasks import MemoryProcessingRequest, TaskPriority
from wellmind.services.memory_core import MemoryCore
from wellmind.utils.exceptions import (
    NotFoundError,
    QueueFullError,
    ValidationError,
    WellMindError,
)
from wellmind.utils.logger import get_logger, setup_logging

# Global core instance
core: MemoryCore | None = None
logger = get_logger(__name__)


# Pydantic models for API
class ApiModel(BaseModel):
    """Base for API bodies: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProcessMemoryRequest(ApiModel):
    """Request model for enqueueing memory processing."""

    user_id: int = Field(..., description="Owner user ID")
    message: str = Field(..., description="Chat message to analyze")
    conversation_id: str = Field(..., description="Originating conversation")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    memory_id: str | None = Field(default=None, description="Existing memory to enrich")

    def to_request(self) -> MemoryProcessingRequest:
        return MemoryProcessingRequest(
            user_id=self.user_id,
            message=self.message,
            conversation_id=self.conversation_id,
            priority=self.priority,
            memory_id=self.memory_id,
        )


class ProcessMemoryResponse(ApiModel):
    """Response model for enqueue: accepted immediately, no result."""

    accepted: bool
    task_id: str | None = None
    status: str | None = None
    reason: str | None = None


class BatchProcessRequest(ApiModel):
    """Request model for batch processing."""

    payloads: list[ProcessMemoryRequest]


class BatchProcessResponse(ApiModel):
    """Aggregate batch outcome."""

    success_count: int
    failure_count: int
    skipped_count: int
    queued_count: int
    processing_time: float = Field(..., description="Milliseconds")
    user_groups: int


class RelationshipView(ApiModel):
    id: str
    source_memory_id: str
    target_memory_id: str
    relationship_type: str
    strength: float
    confidence: float
    context: str
    created_at: datetime


class AtomicFactView(ApiModel):
    id: str
    memory_entry_id: str
    fact_type: str
    content: str
    confidence: float


class RelatedMemoryView(ApiModel):
    memory_id: str
    content: str
    category: str
    depth: int
    relationship_type: str
    strength: float


class RelationshipAnalysisResponse(ApiModel):
    """Relationship analysis of one memory."""

    memory_id: str
    relationships: list[RelationshipView]
    atomic_facts: list[AtomicFactView]
    related_memories: list[RelatedMemoryView]
    analysis_time_ms: float


class ClusterView(ApiModel):
    id: str
    type: str
    memories_count: int
    coherence_score: float
    last_updated: datetime
    memory_ids: list[str]
    top_terms: list[str]


class ClustersResponse(ApiModel):
    user_id: int
    clusters: list[ClusterView]


class ConsolidateRequest(ApiModel):
    """Request model for a consolidation run."""

    dry_run: bool = False
    user_id: int | None = None


class GroupView(ApiModel):
    primary_id: str
    duplicate_ids: list[str]
    reason: str
    similarity: float
    applied: bool


class GroupErrorView(ApiModel):
    primary_id: str
    duplicate_id: str | None = None
    error: str


class ConsolidateResponse(ApiModel):
    """Consolidation summary."""

    total_memories: int
    duplicate_groups: int
    memories_deactivated: int
    memories_updated: int
    processing_time_ms: float
    dry_run: bool
    reduction_percent: float
    groups: list[GroupView]
    errors: list[GroupErrorView]


class PerformanceReportResponse(ApiModel):
    summary: dict[str, Any]
    detailed: dict[str, Any]
    recommendations: list[str]
    alerts: list[str]
    timestamp: datetime


class FeatureFlagsResponse(ApiModel):
    user_id: int
    flags: dict[str, bool]
    rollout_percentages: dict[str, int]


class ProbeRequest(ApiModel):
    action: str = Field(default="normal", description="'trigger_failure' or 'normal'")


class ProbeResponse(ApiModel):
    circuit_breaker_active: bool
    response_time: float = Field(..., description="Milliseconds")
    failure_count: int
    fallback_used: bool
    state: str


class HealthResponse(ApiModel):
    """Health check response."""

    status: str
    engine_initialized: bool
    storage_backend: str | None = None
    queue_size: int = 0
    circuit_state: str | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup/shutdown."""
    global core

    # Load configuration from environment or use defaults
    config = Config.from_env()

    setup_logging(
        level=config.logging.level,
        log_to_file=config.logging.log_to_file,
        log_dir=config.logging.log_dir,
        file_rotation=config.logging.file_rotation,
        file_retention=config.logging.file_retention,
        compression=config.logging.compression,
        serialize=config.logging.serialize,
    )

    logger.info("Starting WellMind server")
    logger.info(
        f"Configuration: storage={config.storage.backend}, "
        f"processor={config.processor.max_concurrency} workers, "
        f"breaker={config.circuit_breaker.failure_threshold}/"
        f"{config.circuit_breaker.cooldown_seconds}s"
    )

    logger.info("Creating memory store")
    store = MemoryStoreFactory.create(config)

    core = MemoryCore(store=store, config=config)
    await core.initialize()
    logger.info("WellMind core initialized")

    yield

    # Cleanup
    logger.info("Shutting down WellMind server")
    await core.close()
    core = None
    logger.info("Cleanup complete")


# Create FastAPI app
app = FastAPI(
    title="WellMind API",
    description="Background memory processing and relationship engine for a wellness coach",
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _require_core() -> MemoryCore:
    if not core:
        raise HTTPException(status_code=503, detail="Core not initialized")
    return core


def _to_http(e: WellMindError, operation: str) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=e.message)
    if isinstance(e, ValidationError):
        return HTTPException(status_code=422, detail=e.message)
    if isinstance(e, QueueFullError):
        return HTTPException(status_code=503, detail=e.message)
    logger.error(f"Error in {operation}: {e}")
    return HTTPException(status_code=500, detail=e.message)


# Health check endpoint
@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    if not core:
        return HealthResponse(status="initializing", engine_initialized=False)

    return HealthResponse(
        status="healthy",
        engine_initialized=True,
        storage_backend=core.config.storage.backend,
        queue_size=core.processor.queue_size,
        circuit_state=core.circuit_breaker.state.value,
    )


# Processing endpoints
@app.post("/memory/process", response_model=ProcessMemoryResponse, status_code=202)
async def process_memory(request: ProcessMemoryRequest):
    """
    Queue a chat message for background memory processing.

    Returns as soon as the request is queued; detection, deduplication,
    fact extraction and relationship discovery happen in the background.
    """
    memory_core = _require_core()

    try:
        task = memory_core.enqueue_memory_processing(request.to_request())
    except WellMindError as e:
        raise _to_http(e, "process_memory") from e

    if task is None:
        return ProcessMemoryResponse(accepted=False, reason="memory enhancement disabled")

    return ProcessMemoryResponse(accepted=True, task_id=task.id, status=task.status.value)


@app.post("/memory/process/batch", response_model=BatchProcessResponse)
async def process_memory_batch(request: BatchProcessRequest):
    """
    Process a batch of messages grouped by user.

    A failure in one payload never fails the batch; counts are aggregated.
    """
    memory_core = _require_core()

    try:
        result = await memory_core.process_batch([p.to_request() for p in request.payloads])
    except WellMindError as e:
        raise _to_http(e, "process_memory_batch") from e

    return BatchProcessResponse(
        success_count=result.success_count,
        failure_count=result.failure_count,
        skipped_count=result.skipped_count,
        queued_count=result.queued_count,
        processing_time=result.processing_time_ms,
        user_groups=result.user_groups,
    )


# Query endpoints
@app.get("/memory/{memory_id}/relationships", response_model=RelationshipAnalysisResponse)
async def get_memory_relationships(
    memory_id: str, depth: int | None = Query(default=None, ge=1, le=5)
):
    """
    Relationships, atomic facts and related memories of one memory.
    """
    memory_core = _require_core()

    try:
        analysis = await memory_core.analyze_memory(memory_id, depth=depth)
    except WellMindError as e:
        raise _to_http(e, "get_memory_relationships") from e

    return RelationshipAnalysisResponse(
        memory_id=analysis.memory_id,
        relationships=[
            RelationshipView(
                id=r.id,
                source_memory_id=r.source_memory_id,
                target_memory_id=r.target_memory_id,
                relationship_type=r.relationship_type.value,
                strength=r.strength,
                confidence=r.confidence,
                context=r.context,
                created_at=r.created_at,
            )
            for r in analysis.relationships
        ],
        atomic_facts=[
            AtomicFactView(
                id=f.id,
                memory_entry_id=f.memory_entry_id,
                fact_type=f.fact_type.value,
                content=f.content,
                confidence=f.confidence,
            )
            for f in analysis.atomic_facts
        ],
        related_memories=[
            RelatedMemoryView(
                memory_id=rm.memory.id,
                content=rm.memory.content,
                category=rm.memory.category.value,
                depth=rm.depth,
                relationship_type=rm.relationship.relationship_type.value,
                strength=rm.relationship.strength,
            )
            for rm in analysis.related_memories
        ],
        analysis_time_ms=analysis.analysis_time_ms,
    )


@app.get("/users/{user_id}/clusters", response_model=ClustersResponse)
async def get_user_clusters(user_id: int):
    """Semantic clusters over a user's active memories."""
    memory_core = _require_core()

    try:
        clusters = await memory_core.get_semantic_clusters(user_id)
    except WellMindError as e:
        raise _to_http(e, "get_user_clusters") from e

    return ClustersResponse(
        user_id=user_id,
        clusters=[
            ClusterView(
                id=c.id,
                type=c.cluster_type,
                memories_count=c.memories_count,
                coherence_score=c.coherence_score,
                last_updated=c.last_updated,
                memory_ids=c.memory_ids,
                top_terms=c.top_terms,
            )
            for c in clusters
        ],
    )


# Maintenance endpoints
@app.post("/memory/consolidate", response_model=ConsolidateResponse)
async def consolidate(request: ConsolidateRequest | None = None):
    """
    Merge duplicate memories.

    With dryRun the duplicate groups are detected and reported without writes.
    """
    memory_core = _require_core()
    request = request or ConsolidateRequest()

    try:
        report = await memory_core.consolidate_duplicates(
            dry_run=request.dry_run, user_id=request.user_id
        )
    except WellMindError as e:
        raise _to_http(e, "consolidate") from e

    return ConsolidateResponse(
        total_memories=report.total_memories,
        duplicate_groups=report.duplicate_groups,
        memories_deactivated=report.memories_deactivated,
        memories_updated=report.memories_updated,
        processing_time_ms=report.processing_time_ms,
        dry_run=report.dry_run,
        reduction_percent=report.reduction_percent,
        groups=[
            GroupView(
                primary_id=g.primary_id,
                duplicate_ids=g.duplicate_ids,
                reason=g.reason.value,
                similarity=g.similarity,
                applied=g.applied,
            )
            for g in report.groups
        ],
        errors=[
            GroupErrorView(primary_id=e.primary_id, duplicate_id=e.duplicate_id, error=e.error)
            for e in report.errors
        ],
    )


# Observability endpoints
@app.get("/performance/report", response_model=PerformanceReportResponse)
async def performance_report():
    """Aggregate latency, error and queue metrics with alerts and recommendations."""
    memory_core = _require_core()
    report = memory_core.get_performance_report()

    return PerformanceReportResponse(
        summary=report.summary,
        detailed=report.detailed,
        recommendations=report.recommendations,
        alerts=report.alerts,
        timestamp=report.timestamp,
    )


@app.get("/feature-flags/{user_id}", response_model=FeatureFlagsResponse)
async def feature_flags(user_id: int):
    """Feature decisions for one user plus global rollout percentages."""
    memory_core = _require_core()
    return FeatureFlagsResponse(**memory_core.get_feature_flags(user_id))


@app.post("/circuit-breaker/probe", response_model=ProbeResponse)
async def probe_circuit_breaker(request: ProbeRequest | None = None):
    """
    Exercise the circuit breaker.

    action=trigger_failure simulates a backend failure; enough of them open
    the circuit, after which calls short-circuit to the fallback.
    """
    memory_core = _require_core()
    request = request or ProbeRequest()

    try:
        result = await memory_core.probe_circuit_breaker(request.action)
    except WellMindError as e:
        raise _to_http(e, "probe_circuit_breaker") from e

    return ProbeResponse(
        circuit_breaker_active=result.circuit_breaker_active,
        response_time=result.response_time_ms,
        failure_count=result.failure_count,
        fallback_used=result.fallback_used,
        state=result.state.value,
    )


# Statistics endpoint
@app.get("/stats")
async def get_stats():
    """Store and processor counts."""
    memory_core = _require_core()

    try:
        return await memory_core.get_statistics()
    except WellMindError as e:
        raise _to_http(e, "get_stats") from e


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "WellMind API",
        "version": "1.0.0",
        "description": "Background memory processing and relationship engine",
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
