"""
Reduction of iteration metrics into load test statistics.

aggregate() is pure: it reads a list of RequestMetric records and a total
duration, and returns an immutable LoadTestResults. Calling it twice on the
same input yields equal results.

Percentiles use the nearest-rank-below rule on the ascending latency list:
the value at index floor((n - 1) * p). With latencies 1..100 this gives
p50 = 50 and p90 = 90.
"""

from __future__ import annotations

import math
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from volley.metrics.request_metric import RequestMetric


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """
    Value at index floor((n - 1) * p) of an ascending sequence.

    Args:
        sorted_values: Latencies sorted ascending.
        p: Fraction in [0, 1].

    Returns:
        0.0 for an empty sequence.
    """
    if not sorted_values:
        return 0.0
    if not 0.0 <= p <= 1.0:
        raise ValueError(f"percentile must be within [0, 1], got {p}")
    index = math.floor((len(sorted_values) - 1) * p)
    return float(sorted_values[index])


class PerformanceThresholds(BaseModel):
    """
    Pass/fail criteria for a load run. Unset limits are not checked.

    Attributes:
        max_response_time_ms: Ceiling on the slowest iteration.
        p50_response_time_ms / p90 / p95 / p99: Ceilings on percentiles.
        min_requests_per_second: Floor on throughput.
        max_error_rate: Ceiling on the failed fraction.
        min_success_rate: Floor on the successful fraction.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_response_time_ms: Optional[float] = Field(default=None, gt=0)
    p50_response_time_ms: Optional[float] = Field(default=None, gt=0)
    p90_response_time_ms: Optional[float] = Field(default=None, gt=0)
    p95_response_time_ms: Optional[float] = Field(default=None, gt=0)
    p99_response_time_ms: Optional[float] = Field(default=None, gt=0)
    min_requests_per_second: Optional[float] = Field(default=None, ge=0)
    max_error_rate: float = Field(default=0.05, ge=0, le=1)
    min_success_rate: float = Field(default=0.95, ge=0, le=1)


class LoadTestResults(BaseModel):
    """
    Aggregated statistics of one load run. Latencies in milliseconds.

    Attributes:
        total_requests: Iterations recorded.
        successful_requests / failed_requests: Split by outcome.
        total_duration_seconds: Wall-clock run duration.
        min/max/avg_response_time_ms: Latency extremes and mean.
        p50/p90/p95/p99_response_time_ms: Latency percentiles.
        requests_per_second: Throughput over the whole run.
        success_rate / error_rate: Fractions of total_requests.
        errors: Failed iterations per error message, keys sorted.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    total_requests: int = Field(..., ge=0)
    successful_requests: int = Field(..., ge=0)
    failed_requests: int = Field(..., ge=0)
    total_duration_seconds: float = Field(..., ge=0)
    min_response_time_ms: float = 0.0
    max_response_time_ms: float = 0.0
    avg_response_time_ms: float = 0.0
    p50_response_time_ms: float = 0.0
    p90_response_time_ms: float = 0.0
    p95_response_time_ms: float = 0.0
    p99_response_time_ms: float = 0.0
    requests_per_second: float = 0.0
    success_rate: float = 0.0
    error_rate: float = 0.0
    errors: Dict[str, int] = Field(default_factory=dict)

    def threshold_violations(self, thresholds: PerformanceThresholds) -> List[str]:
        """Describe every threshold the run missed. Empty when all are met."""
        violations: List[str] = []

        ceilings = (
            ("max response time", self.max_response_time_ms, thresholds.max_response_time_ms),
            ("p50 response time", self.p50_response_time_ms, thresholds.p50_response_time_ms),
            ("p90 response time", self.p90_response_time_ms, thresholds.p90_response_time_ms),
            ("p95 response time", self.p95_response_time_ms, thresholds.p95_response_time_ms),
            ("p99 response time", self.p99_response_time_ms, thresholds.p99_response_time_ms),
        )
        for label, actual, limit in ceilings:
            if limit is not None and actual > limit:
                violations.append(f"{label} {actual:.2f}ms exceeds {limit:.2f}ms")

        if (
            thresholds.min_requests_per_second is not None
            and self.requests_per_second < thresholds.min_requests_per_second
        ):
            violations.append(
                f"throughput {self.requests_per_second:.2f} req/s below "
                f"{thresholds.min_requests_per_second:.2f} req/s"
            )
        if self.error_rate > thresholds.max_error_rate:
            violations.append(
                f"error rate {self.error_rate:.2%} exceeds {thresholds.max_error_rate:.2%}"
            )
        if self.success_rate < thresholds.min_success_rate:
            violations.append(
                f"success rate {self.success_rate:.2%} below {thresholds.min_success_rate:.2%}"
            )
        return violations

    def meets_thresholds(self, thresholds: PerformanceThresholds) -> bool:
        return not self.threshold_violations(thresholds)

    def summary(self) -> str:
        """Plain-text block for console output."""
        rule = "=" * 60
        lines = [
            rule,
            "LOAD TEST RESULTS",
            rule,
            f"Total Requests:       {self.total_requests}",
            f"Successful:           {self.successful_requests}",
            f"Failed:               {self.failed_requests}",
            f"Success Rate:         {self.success_rate:.2%}",
            f"Duration:             {self.total_duration_seconds:.2f}s",
            f"Requests/sec:         {self.requests_per_second:.2f}",
            "",
            "Response Times:",
            f"  Min:                {self.min_response_time_ms:.2f}ms",
            f"  Max:                {self.max_response_time_ms:.2f}ms",
            f"  Avg:                {self.avg_response_time_ms:.2f}ms",
            f"  P50:                {self.p50_response_time_ms:.2f}ms",
            f"  P90:                {self.p90_response_time_ms:.2f}ms",
            f"  P95:                {self.p95_response_time_ms:.2f}ms",
            f"  P99:                {self.p99_response_time_ms:.2f}ms",
        ]
        if self.errors:
            lines.append("")
            lines.append("Errors:")
            for message, count in self.errors.items():
                lines.append(f"  {message}: {count}")
        lines.append(rule)
        return "\n".join(lines)


def aggregate(
    metrics: Sequence[RequestMetric], total_duration_seconds: float
) -> LoadTestResults:
    """
    Reduce iteration records into LoadTestResults.

    Args:
        metrics: Records of a run, in any order.
        total_duration_seconds: Wall-clock duration used for throughput.
    """
    total = len(metrics)
    successful = sum(1 for m in metrics if m.success)
    failed = total - successful

    latencies = sorted(m.duration_ms for m in metrics)

    errors: Dict[str, int] = {}
    for metric in metrics:
        if metric.success or metric.error is None:
            continue
        errors[metric.error] = errors.get(metric.error, 0) + 1

    duration = max(0.0, total_duration_seconds)
    return LoadTestResults(
        total_requests=total,
        successful_requests=successful,
        failed_requests=failed,
        total_duration_seconds=duration,
        min_response_time_ms=latencies[0] if latencies else 0.0,
        max_response_time_ms=latencies[-1] if latencies else 0.0,
        avg_response_time_ms=sum(latencies) / total if total else 0.0,
        p50_response_time_ms=percentile(latencies, 0.50),
        p90_response_time_ms=percentile(latencies, 0.90),
        p95_response_time_ms=percentile(latencies, 0.95),
        p99_response_time_ms=percentile(latencies, 0.99),
        requests_per_second=total / duration if duration > 0 else 0.0,
        success_rate=successful / total if total else 0.0,
        error_rate=failed / total if total else 0.0,
        errors=dict(sorted(errors.items())),
    )


class StatisticsAggregator:
    """Object form of aggregate() for callers that inject collaborators."""

    def aggregate(
        self, metrics: Sequence[RequestMetric], total_duration_seconds: float
    ) -> LoadTestResults:
        return aggregate(metrics, total_duration_seconds)
