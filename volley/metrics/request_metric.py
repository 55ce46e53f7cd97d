"""
RequestMetric: one record per load test iteration.

Emitted by every virtual user after each unit of work, success or failure.
Records are immutable and appended to a MetricsRecorder; aggregation happens
once after the run.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from volley.models import Failure


class RequestMetric(BaseModel):
    """
    Outcome of a single load test iteration.

    Attributes:
        timestamp_ms: Wall-clock start of the iteration (epoch milliseconds).
        duration_ms: Iteration latency.
        success: Whether the unit of work completed without failure.
        error: Failure message (None on success).
        scenario_name: Scenario that produced the iteration.
        status_code: Optional status reported by the work result.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    timestamp_ms: int = Field(..., ge=0)
    duration_ms: float = Field(..., ge=0)
    success: bool
    error: Optional[str] = None
    scenario_name: str
    status_code: Optional[int] = None

    @classmethod
    def from_iteration(
        cls,
        *,
        scenario_name: str,
        timestamp_ms: int,
        duration_ms: float,
        result: Any = None,
        failure: Optional[Failure] = None,
    ) -> "RequestMetric":
        """
        Build a metric from an iteration's value or failure.

        A result exposing an integer `status_code` attribute (HTTP-style
        responses) has it copied onto the metric.
        """
        status_code = getattr(result, "status_code", None)
        if not isinstance(status_code, int) or isinstance(status_code, bool):
            status_code = None
        return cls(
            timestamp_ms=timestamp_ms,
            duration_ms=max(0.0, duration_ms),
            success=failure is None,
            error=failure.message if failure is not None else None,
            scenario_name=scenario_name,
            status_code=status_code,
        )
