"""
Circuit breaker guarding the background memory pipeline.

States:
- closed: operations run normally, consecutive failures are counted
- open: operations are short-circuited until the cool-down elapses
- half_open: exactly one probe is let through; its outcome closes or re-opens
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

from wellmind.models.tasks import CircuitBreakerState, CircuitState
from wellmind.utils.exceptions import CircuitOpenError
from wellmind.utils.logger import get_logger

logger = get_logger(__name__)


class CircuitBreaker:
    """
    Consecutive-failure circuit breaker.

    One instance protects one downstream dependency and is shared by every
    caller of that dependency. The open -> half_open transition is evaluated
    lazily whenever the state is read.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        cooldown_seconds: float = 60.0,
        name: str = "memory-pipeline",
        clock: Callable[[], float] = time.monotonic,
        on_trip: Callable[[str], None] | None = None,
    ):
        """
        Initialize circuit breaker.

        Args:
            failure_threshold: Consecutive failures that open the circuit
            cooldown_seconds: Time the circuit stays open before a probe
            name: Label used in logs
            clock: Monotonic time source (injectable for tests)
            on_trip: Called with a reason each time the circuit opens
        """
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if cooldown_seconds <= 0:
            raise ValueError("cooldown_seconds must be > 0")

        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self.name = name
        self._clock = clock
        self._on_trip = on_trip

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at: float | None = None
        self._probe_in_flight = False
        self._trips = 0

    @property
    def state(self) -> CircuitState:
        if self._state == CircuitState.OPEN and self._cooldown_elapsed():
            self._state = CircuitState.HALF_OPEN
            self._probe_in_flight = False
            logger.info(f"Circuit '{self.name}' half-open, allowing a probe")
        return self._state

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    @property
    def failure_count(self) -> int:
        return self._consecutive_failures

    @property
    def trips(self) -> int:
        return self._trips

    def retry_after(self) -> float:
        """Seconds until a probe will be allowed (0 when not open)."""
        if self.state != CircuitState.OPEN or self._opened_at is None:
            return 0.0
        return max(0.0, self.cooldown_seconds - (self._clock() - self._opened_at))

    def allow_request(self) -> bool:
        """
        Decide whether an operation may run now.

        In half-open state only the first caller gets through; it owns the
        probe until it records a success or failure.
        """
        state = self.state
        if state == CircuitState.CLOSED:
            return True
        if state == CircuitState.HALF_OPEN and not self._probe_in_flight:
            self._probe_in_flight = True
            return True
        return False

    def record_success(self) -> None:
        state = self.state
        if state == CircuitState.OPEN:
            # Calls admitted before the trip cannot close the circuit; only the probe can
            logger.debug(f"Circuit '{self.name}' open, ignoring late success")
            return
        if state == CircuitState.HALF_OPEN:
            logger.info(f"Circuit '{self.name}' closed after successful probe")
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at = None
        self._probe_in_flight = False

    def record_failure(self, reason: str = "") -> None:
        state = self.state
        self._consecutive_failures += 1
        self._probe_in_flight = False

        if state == CircuitState.HALF_OPEN:
            self._open(f"probe failed: {reason}" if reason else "probe failed")
        elif state == CircuitState.CLOSED and self._consecutive_failures >= self.failure_threshold:
            self._open(reason or f"{self._consecutive_failures} consecutive failures")

    async def execute(
        self,
        operation: Callable[[], Awaitable[Any]],
        fallback: Callable[[], Awaitable[Any]] | None = None,
    ) -> Any:
        """
        Run an operation through the breaker.

        Args:
            operation: Zero-argument coroutine function to protect
            fallback: Degraded result provider used while the circuit refuses calls

        Returns:
            The operation's result, or the fallback's when short-circuited

        Raises:
            CircuitOpenError: If the circuit refuses the call and no fallback is given
            Exception: Whatever the operation raised (after recording the failure)
        """
        if not self.allow_request():
            logger.warning(f"Circuit '{self.name}' open, short-circuiting call")
            if fallback is not None:
                return await fallback()
            raise CircuitOpenError(
                f"Circuit '{self.name}' is open",
                retry_after=self.retry_after(),
                context={"failures": self._consecutive_failures, "trips": self._trips},
            )

        try:
            result = await operation()
        except asyncio.CancelledError:
            self._probe_in_flight = False
            raise
        except Exception as e:
            self.record_failure(f"{type(e).__name__}: {e}")
            raise

        self.record_success()
        return result

    def snapshot(self) -> CircuitBreakerState:
        state = self.state
        return CircuitBreakerState(
            state=state,
            consecutive_failures=self._consecutive_failures,
            opened_at=self._opened_at,
            retry_after_seconds=self.retry_after(),
            trips=self._trips,
        )

    def reset(self) -> None:
        """Force the circuit closed and clear counters (trip history is kept)."""
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at = None
        self._probe_in_flight = False

    def _open(self, reason: str) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
        self._trips += 1
        logger.warning(
            f"Circuit '{self.name}' tripped after {self._consecutive_failures} failures "
            f"({reason}); retry in {self.cooldown_seconds}s"
        )
        if self._on_trip is not None:
            self._on_trip(reason)

    def _cooldown_elapsed(self) -> bool:
        return self._opened_at is not None and (
            self._clock() - self._opened_at >= self.cooldown_seconds
        )
