"""Utility modules for the memory core."""

from wellmind.utils.exceptions import (
    CircuitOpenError,
    ConfigurationError,
    NotFoundError,
    ProcessingError,
    QueueFullError,
    StoreError,
    ValidationError,
    WellMindError,
)
from wellmind.utils.id_generator import (
    generate_cluster_id,
    generate_fact_id,
    generate_memory_id,
    generate_relationship_id,
    generate_task_id,
)
from wellmind.utils.logger import get_logger, setup_logging

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    # ID Generators
    "generate_memory_id",
    "generate_fact_id",
    "generate_relationship_id",
    "generate_task_id",
    "generate_cluster_id",
    # Exceptions
    "WellMindError",
    "StoreError",
    "ValidationError",
    "NotFoundError",
    "ConfigurationError",
    "ProcessingError",
    "QueueFullError",
    "CircuitOpenError",
]
