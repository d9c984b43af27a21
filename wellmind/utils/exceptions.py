"""
Custom exception hierarchy for the WellMind memory core.

All exceptions inherit from WellMindError so callers at the edge (HTTP binding,
scheduled jobs) can catch everything raised by the core in one place.
"""


class WellMindError(Exception):
    """
    Base exception for all memory core errors.
    """

    def __init__(self, message: str, context: dict | None = None):
        """
        Initialize error.

        Args:
            message: Error message
            context: Optional context dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}


class StoreError(WellMindError):
    """
    Memory store operation errors.
    Raised when a read or write against the persistence backend fails.
    """

    pass


class ValidationError(WellMindError):
    """
    Validation errors.
    Raised when input validation fails or data is invalid.
    """

    pass


class NotFoundError(WellMindError):
    """
    Resource not found errors.
    Raised when a requested memory (or other record) doesn't exist.
    """

    pass


class ConfigurationError(WellMindError):
    """
    Configuration errors.
    Raised when configuration is invalid or missing required values.
    """

    pass


class ProcessingError(WellMindError):
    """
    Background processing errors.
    Raised inside the memory processing pipeline; never surfaced to chat callers.
    """

    pass


class QueueFullError(ProcessingError):
    """
    Raised when the background queue has reached its configured capacity.
    """

    pass


class CircuitOpenError(WellMindError):
    """
    Raised when the circuit breaker refuses to run an operation.

    This is a degraded-mode signal, not a processing failure.
    """

    def __init__(self, message: str, retry_after: float = 0.0, context: dict | None = None):
        super().__init__(message, context)
        self.retry_after = retry_after

