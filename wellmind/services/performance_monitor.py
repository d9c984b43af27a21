"""
Performance monitoring for memory operations.

Keeps bounded latency samples per operation category, error counters,
deduplication hit rate, queue gauges and circuit breaker trips, and turns
them into a report with alerts and recommendations.
"""

import math
import time
from collections import deque
from datetime import datetime

import numpy as np

from wellmind.config import PerformanceConfig
from wellmind.models.monitoring import PerformanceReport
from wellmind.utils.logger import get_logger

logger = get_logger(__name__)

MEMORY_PROCESSING = "memory_processing"
PROMPT_GENERATION = "prompt_generation"
DEDUPLICATION = "deduplication"
RETRIEVAL = "retrieval"

CATEGORIES = (MEMORY_PROCESSING, PROMPT_GENERATION, DEDUPLICATION, RETRIEVAL)


def _average(samples) -> float:
    if not samples:
        return 0.0
    return float(np.mean(samples))


def _percentile(samples, percentile: float) -> float:
    """Nearest-rank percentile (0.0 for no samples)."""
    if not samples:
        return 0.0
    ordered = sorted(samples)
    index = math.ceil(percentile / 100 * len(ordered)) - 1
    return float(ordered[max(0, index)])


class PerformanceMonitor:
    """
    Aggregates timing and health samples for the memory core.

    Pure aggregation: tracking only mutates internal counters (and logs a
    warning when a single sample crosses an alert threshold). Reports are
    safe to request with zero samples.
    """

    def __init__(self, config: PerformanceConfig | None = None):
        self.config = config or PerformanceConfig()
        self.reset()

    def reset(self) -> None:
        """Clear every sample and counter and restart the uptime clock."""
        max_samples = self.config.max_samples
        self._samples: dict[str, deque[float]] = {
            category: deque(maxlen=max_samples) for category in CATEGORIES
        }
        self._operation_counts: dict[str, int] = dict.fromkeys(CATEGORIES, 0)
        self._error_counts: dict[str, int] = dict.fromkeys(CATEGORIES, 0)
        self._chat_impact: deque[float] = deque(maxlen=max_samples)

        self._dedup_checks = 0
        self._dedup_hits = 0

        self._queue_current_size = 0
        self._queue_max_size = 0
        self._queue_processing_rate = 0.0

        self._circuit_breaker_trips = 0
        self._cache_hit_rates: dict[str, float] = {}

        self._started = time.monotonic()

    # ═══════════════════════════════════════════════════════════
    # TRACKING
    # ═══════════════════════════════════════════════════════════

    def track_memory_processing(self, duration_ms: float, success: bool = True) -> None:
        self._track(MEMORY_PROCESSING, duration_ms, success)
        if duration_ms > self.config.memory_processing_ms:
            self._alert(
                "memory_processing_slow",
                f"{duration_ms:.2f}ms > {self.config.memory_processing_ms}ms",
            )

    def track_system_prompt_generation(self, duration_ms: float, success: bool = True) -> None:
        self._track(PROMPT_GENERATION, duration_ms, success)

    def track_retrieval(self, duration_ms: float, success: bool = True) -> None:
        self._track(RETRIEVAL, duration_ms, success)

    def track_deduplication(
        self, duration_ms: float, success: bool = True, was_hit: bool | None = None
    ) -> None:
        """
        Track a deduplication check or batch.

        Args:
            duration_ms: Time spent
            success: Whether the operation completed without error
            was_hit: Whether a duplicate was found (None leaves the hit rate untouched)
        """
        self._track(DEDUPLICATION, duration_ms, success)

        if was_hit is None:
            return

        self._dedup_checks += 1
        if was_hit:
            self._dedup_hits += 1

        hit_rate = self.deduplication_hit_rate
        if self._dedup_checks > 100 and hit_rate < self.config.deduplication_hit_rate_percent:
            self._alert(
                "deduplication_hit_rate_low",
                f"{hit_rate:.2f}% < {self.config.deduplication_hit_rate_percent}%",
            )

    def track_chat_response_time(self, baseline_ms: float, actual_ms: float) -> None:
        """Record how much memory work inflated a chat response, as a percentage."""
        if baseline_ms <= 0:
            logger.debug("Ignoring chat response sample with non-positive baseline")
            return

        impact = (actual_ms - baseline_ms) / baseline_ms * 100
        self._chat_impact.append(impact)

        if impact > self.config.chat_response_increase_percent:
            self._alert(
                "chat_response_time_degraded",
                f"{impact:.2f}% (baseline {baseline_ms:.2f}ms, actual {actual_ms:.2f}ms)",
            )

    def track_queue_metrics(self, current_size: int, processing_rate: float = 0.0) -> None:
        self._queue_current_size = current_size
        self._queue_max_size = max(self._queue_max_size, current_size)
        self._queue_processing_rate = processing_rate

        if current_size > self.config.queue_size:
            self._alert("queue_size_exceeded", f"{current_size} > {self.config.queue_size}")

    def track_circuit_breaker_trip(self, reason: str, user_id: int | None = None) -> None:
        self._circuit_breaker_trips += 1
        self._alert("circuit_breaker_tripped", f"user={user_id} reason={reason}")

    def track_cache_performance(self, cache_name: str, hit_rate: float) -> None:
        self._cache_hit_rates[cache_name] = hit_rate

    # ═══════════════════════════════════════════════════════════
    # REPORTING
    # ═══════════════════════════════════════════════════════════

    @property
    def deduplication_hit_rate(self) -> float:
        if self._dedup_checks == 0:
            return 0.0
        return self._dedup_hits / self._dedup_checks * 100

    @property
    def circuit_breaker_trips(self) -> int:
        return self._circuit_breaker_trips

    def error_rate(self, category: str) -> float:
        """Failed operations as a percentage of all operations in a category."""
        total = self._operation_counts[category]
        if total == 0:
            return 0.0
        return self._error_counts[category] / total * 100

    def get_performance_report(self) -> PerformanceReport:
        """
        Build a report of the current samples.

        Returns:
            PerformanceReport with summary, per-category detail, active alerts
            and recommendations
        """
        alerts = self.get_active_alerts()
        uptime_hours = (time.monotonic() - self._started) / 3600

        summary = {
            "uptime_hours": round(uptime_hours, 4),
            "avg_memory_processing_ms": _average(self._samples[MEMORY_PROCESSING]),
            "avg_prompt_generation_ms": _average(self._samples[PROMPT_GENERATION]),
            "avg_deduplication_ms": _average(self._samples[DEDUPLICATION]),
            "avg_retrieval_ms": _average(self._samples[RETRIEVAL]),
            "deduplication_hit_rate": self.deduplication_hit_rate,
            "avg_chat_response_impact": _average(self._chat_impact),
            "total_circuit_breaker_trips": self._circuit_breaker_trips,
            "status": self._status(alerts),
        }

        detailed = {
            "processing_times": {
                category: {
                    "avg": _average(samples),
                    "p95": _percentile(samples, 95),
                    "p99": _percentile(samples, 99),
                    "samples": len(samples),
                    "operations": self._operation_counts[category],
                }
                for category, samples in self._samples.items()
            },
            "error_counts": dict(self._error_counts),
            "error_rates": {category: self.error_rate(category) for category in CATEGORIES},
            "deduplication": {
                "checks": self._dedup_checks,
                "hits": self._dedup_hits,
                "hit_rate": self.deduplication_hit_rate,
            },
            "queue_metrics": {
                "current_size": self._queue_current_size,
                "max_size": self._queue_max_size,
                "processing_rate": self._queue_processing_rate,
            },
            "cache_performance": dict(self._cache_hit_rates),
        }

        return PerformanceReport(
            summary=summary,
            detailed=detailed,
            recommendations=self._recommendations(),
            alerts=alerts,
            timestamp=datetime.now(),
        )

    def get_active_alerts(self) -> list[str]:
        """Alerts derived from current averages, gauges and error rates."""
        alerts = []

        thresholds = {
            MEMORY_PROCESSING: self.config.memory_processing_ms,
            PROMPT_GENERATION: self.config.prompt_generation_ms,
            DEDUPLICATION: self.config.deduplication_ms,
            RETRIEVAL: self.config.retrieval_ms,
        }
        for category, threshold in thresholds.items():
            average = _average(self._samples[category])
            if average > threshold:
                alerts.append(
                    f"{category.replace('_', ' ').capitalize()} time above threshold: "
                    f"{average:.2f}ms"
                )

        for category in CATEGORIES:
            rate = self.error_rate(category)
            if rate > self.config.error_rate_percent:
                alerts.append(
                    f"{category.replace('_', ' ').capitalize()} error rate above threshold: "
                    f"{rate:.2f}%"
                )

        impact = _average(self._chat_impact)
        if impact > self.config.chat_response_increase_percent:
            alerts.append(f"Chat response time impact above threshold: {impact:.2f}%")

        if self._queue_current_size > self.config.queue_size:
            alerts.append(f"Queue size exceeded: {self._queue_current_size} items")

        return alerts

    # ═══════════════════════════════════════════════════════════
    # HELPERS
    # ═══════════════════════════════════════════════════════════

    def _track(self, category: str, duration_ms: float, success: bool) -> None:
        self._samples[category].append(max(0.0, float(duration_ms)))
        self._operation_counts[category] += 1
        if not success:
            self._error_counts[category] += 1

    @staticmethod
    def _status(alerts: list[str]) -> str:
        if not alerts:
            return "healthy"
        if len(alerts) <= 2:
            return "warning"
        return "critical"

    def _recommendations(self) -> list[str]:
        recommendations = []

        if _average(self._samples[MEMORY_PROCESSING]) > 50:
            recommendations.append(
                "Memory processing is slow - lower relationships.max_candidates "
                "or raise processor.max_concurrency"
            )

        if self._dedup_checks > 0 and self.deduplication_hit_rate < 10:
            recommendations.append(
                "Deduplication hit rate is low - review semantic hashing of memory content"
            )

        if self._cache_hit_rates:
            average_hit_rate = sum(self._cache_hit_rates.values()) / len(self._cache_hit_rates)
            if average_hit_rate < 50:
                recommendations.append(
                    "Cache hit rates are low - consider increasing cache TTL or size"
                )

        if self._circuit_breaker_trips > 10:
            recommendations.append(
                "High number of circuit breaker trips - investigate error patterns"
            )

        return recommendations

    @staticmethod
    def _alert(kind: str, detail: str) -> None:
        logger.warning(f"Performance alert {kind}: {detail}")
