"""
Performance report model.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class PerformanceReport(BaseModel):
    """Aggregate view of memory operation performance."""

    summary: dict[str, Any] = Field(default_factory=dict)
    detailed: dict[str, Any] = Field(default_factory=dict)
    recommendations: list[str] = Field(default_factory=list)
    alerts: list[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.now)
