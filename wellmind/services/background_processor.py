"""
Priority-queued background processor for memory processing requests.

Requests are handed off with a synchronous, non-blocking enqueue and picked
up by worker tasks on the event loop. Every attempt is time-bounded and runs
through the circuit breaker, so a failing backend degrades to skipped tasks
instead of piling up work.
"""

import asyncio
import itertools
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from datetime import datetime

from wellmind.config import ProcessorConfig
from wellmind.models.tasks import (
    BackgroundTask,
    BatchResult,
    MemoryProcessingRequest,
    ProcessingResult,
    ProcessorMetrics,
    TaskPriority,
    TaskStatus,
)
from wellmind.services.circuit_breaker import CircuitBreaker
from wellmind.services.feature_flags import FeatureFlags
from wellmind.services.performance_monitor import PerformanceMonitor
from wellmind.utils.exceptions import CircuitOpenError, QueueFullError
from wellmind.utils.id_generator import generate_task_id
from wellmind.utils.logger import get_logger

logger = get_logger(__name__)

ProcessingHandler = Callable[[MemoryProcessingRequest], Awaitable[ProcessingResult]]


class BackgroundProcessor:
    """
    Async priority queue with a pool of workers.

    Ordering: lower priority rank first (critical, high, medium, low);
    FIFO within the same priority. Tasks are consumed once and never retried.
    The queue lives in memory only (at-most-once, lost on restart).
    """

    def __init__(
        self,
        handler: ProcessingHandler,
        config: ProcessorConfig | None = None,
        circuit_breaker: CircuitBreaker | None = None,
        feature_flags: FeatureFlags | None = None,
        monitor: PerformanceMonitor | None = None,
    ):
        """
        Initialize background processor.

        Args:
            handler: Coroutine function that processes one request
            config: Concurrency, timeout and queue limits
            circuit_breaker: Breaker wrapping each attempt
            feature_flags: Flags (circuit breakers can be switched off)
            monitor: Receives processing samples and queue gauges
        """
        self._handler = handler
        self.config = config or ProcessorConfig()
        self.monitor = monitor or PerformanceMonitor()
        self.feature_flags = feature_flags or FeatureFlags()
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            on_trip=self.monitor.track_circuit_breaker_trip
        )

        self._queue: asyncio.PriorityQueue = asyncio.PriorityQueue(
            maxsize=self.config.max_queue_size
        )
        self._sequence = itertools.count()
        self._workers: list[asyncio.Task] = []
        self._history: OrderedDict[str, BackgroundTask] = OrderedDict()

        self._processed = 0
        self._failures = 0
        self._skipped = 0
        self._total_time_ms = 0.0
        self._max_queue_size_seen = 0
        self._started = time.monotonic()

    # ═══════════════════════════════════════════════════════════
    # QUEUE
    # ═══════════════════════════════════════════════════════════

    def enqueue(
        self,
        request: MemoryProcessingRequest,
        priority: TaskPriority | str | None = None,
    ) -> BackgroundTask:
        """
        Queue a request and return immediately.

        Never awaits: the caller gets control back before any processing starts.

        Args:
            request: Request to process
            priority: Overrides request.priority when given

        Returns:
            The queued task (status "queued")

        Raises:
            QueueFullError: If the queue is at max_queue_size
        """
        priority = TaskPriority(priority) if priority is not None else request.priority
        task = BackgroundTask(id=generate_task_id(), request=request, priority=priority)

        try:
            self._queue.put_nowait((priority.rank, next(self._sequence), task))
        except asyncio.QueueFull as e:
            raise QueueFullError(
                f"Background queue full ({self.config.max_queue_size} tasks)",
                {"user_id": request.user_id},
            ) from e

        self._remember(task)
        size = self._queue.qsize()
        self._max_queue_size_seen = max(self._max_queue_size_seen, size)
        self.monitor.track_queue_metrics(size, self._processing_rate())

        logger.debug(f"Queued task {task.id} for user {request.user_id} ({priority.value})")
        return task

    def dequeue_nowait(self) -> BackgroundTask | None:
        """Remove and return the next task without processing it (None when empty)."""
        try:
            _, _, task = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        self._queue.task_done()
        return task

    @property
    def queue_size(self) -> int:
        return self._queue.qsize()

    @property
    def is_running(self) -> bool:
        return any(not worker.done() for worker in self._workers)

    # ═══════════════════════════════════════════════════════════
    # WORKERS
    # ═══════════════════════════════════════════════════════════

    def start(self) -> None:
        """Start the worker pool (no-op when already running)."""
        if self.is_running:
            return
        self._workers = [
            asyncio.create_task(self._worker(i)) for i in range(self.config.max_concurrency)
        ]
        logger.info(f"Background processor started with {len(self._workers)} workers")

    async def stop(self) -> None:
        """Cancel the workers. Queued tasks stay queued."""
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info(f"Background processor stopped ({self._queue.qsize()} tasks left queued)")

    async def join(self) -> None:
        """Wait until every queued task has been processed."""
        await self._queue.join()

    async def _worker(self, worker_id: int):
        while True:
            try:
                _, _, task = await self._queue.get()
                try:
                    await self.run_task(task)
                finally:
                    self._queue.task_done()
            except asyncio.CancelledError:
                logger.debug(f"Worker {worker_id} stopped")
                break

    async def run_task(self, task: BackgroundTask) -> BackgroundTask:
        """
        Execute one task through the breaker and record its outcome.

        Never raises for processing errors: they mark the task failed.
        An open circuit marks it skipped without invoking the handler.
        """
        task.status = TaskStatus.PROCESSING
        task.started_at = datetime.now()
        start = time.perf_counter()
        timeout = self.config.processing_timeout

        async def operation() -> ProcessingResult:
            return await asyncio.wait_for(self._handler(task.request), timeout=timeout)

        try:
            if self.feature_flags.are_circuit_breakers_enabled():
                result = await self.circuit_breaker.execute(operation)
            else:
                result = await operation()
        except CircuitOpenError as e:
            task.status = TaskStatus.SKIPPED
            task.error = f"circuit open, retry in {e.retry_after:.1f}s"
            self._skipped += 1
            logger.warning(f"Task {task.id} skipped: {task.error}")
        except TimeoutError:
            self._fail(task, f"timed out after {timeout}s", start)
        except Exception as e:
            self._fail(task, f"{type(e).__name__}: {e}", start)
        else:
            elapsed_ms = (time.perf_counter() - start) * 1000
            task.status = TaskStatus.COMPLETED
            task.result = result
            self._processed += 1
            self._total_time_ms += elapsed_ms
            self.monitor.track_memory_processing(elapsed_ms, success=True)
            logger.debug(f"Task {task.id} completed: {result.action.value} in {elapsed_ms:.2f}ms")

        task.completed_at = datetime.now()
        return task

    def _fail(self, task: BackgroundTask, error: str, start: float) -> None:
        elapsed_ms = (time.perf_counter() - start) * 1000
        task.status = TaskStatus.FAILED
        task.error = error
        self._failures += 1
        self._total_time_ms += elapsed_ms
        self.monitor.track_memory_processing(elapsed_ms, success=False)
        logger.error(f"Task {task.id} for user {task.user_id} failed: {error}")

    # ═══════════════════════════════════════════════════════════
    # BATCH
    # ═══════════════════════════════════════════════════════════

    async def process_batch(self, requests: list[MemoryProcessingRequest]) -> BatchResult:
        """
        Process a batch now, grouped by user.

        Requests of one user run sequentially in submission order; different
        users run concurrently up to max_concurrency. One failing request
        never fails the batch.

        Args:
            requests: Requests to process

        Returns:
            BatchResult with success/failure/skipped counts
        """
        start = time.perf_counter()
        groups: dict[int, list[MemoryProcessingRequest]] = {}
        for request in requests:
            groups.setdefault(request.user_id, []).append(request)

        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def run_group(group: list[MemoryProcessingRequest]) -> list[TaskStatus]:
            async with semaphore:
                statuses = []
                for request in group:
                    task = BackgroundTask(
                        id=generate_task_id(), request=request, priority=request.priority
                    )
                    self._remember(task)
                    statuses.append((await self.run_task(task)).status)
                return statuses

        outcomes = await asyncio.gather(
            *(run_group(group) for group in groups.values()), return_exceptions=True
        )

        result = BatchResult(user_groups=len(groups))
        for group, outcome in zip(groups.values(), outcomes, strict=True):
            if isinstance(outcome, BaseException):
                logger.error(f"Batch group for user {group[0].user_id} crashed: {outcome}")
                result.failure_count += len(group)
                continue
            for status in outcome:
                if status == TaskStatus.COMPLETED:
                    result.success_count += 1
                elif status == TaskStatus.SKIPPED:
                    result.skipped_count += 1
                else:
                    result.failure_count += 1

        result.processing_time_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"Batch of {len(requests)} requests across {len(groups)} users: "
            f"{result.success_count} ok, {result.failure_count} failed, "
            f"{result.skipped_count} skipped in {result.processing_time_ms:.2f}ms"
        )
        return result

    # ═══════════════════════════════════════════════════════════
    # OBSERVABILITY
    # ═══════════════════════════════════════════════════════════

    def get_metrics(self) -> ProcessorMetrics:
        attempts = self._processed + self._failures
        return ProcessorMetrics(
            processed_count=self._processed,
            failure_count=self._failures,
            skipped_count=self._skipped,
            average_processing_time_ms=self._total_time_ms / attempts if attempts else 0.0,
            circuit_breaker_trips=self.circuit_breaker.trips,
            queue_size=self._queue.qsize(),
            max_queue_size_seen=self._max_queue_size_seen,
        )

    def get_task(self, task_id: str) -> BackgroundTask | None:
        """Look up a recent task (bounded history)."""
        return self._history.get(task_id)

    def _remember(self, task: BackgroundTask) -> None:
        if self.config.task_history_size == 0:
            return
        self._history[task.id] = task
        while len(self._history) > self.config.task_history_size:
            self._history.popitem(last=False)

    def _processing_rate(self) -> float:
        """Completed tasks per second since construction."""
        elapsed = time.monotonic() - self._started
        return self._processed / elapsed if elapsed > 0 else 0.0
