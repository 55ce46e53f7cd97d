"""
MetricsRecorder: thread-safe sink for load test iterations.

Virtual users append RequestMetric records concurrently (from the event loop
or from worker threads). Live counters and a bucketed latency histogram back
the periodic progress reporter; the full record list is reduced by the
aggregator once the run has ended.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple

from volley.metrics.request_metric import RequestMetric

LATENCY_BUCKETS_MS: Tuple[float, ...] = (
    5,
    10,
    25,
    50,
    100,
    250,
    500,
    1000,
    2500,
    5000,
    10000,
    30000,
)


class _HistogramValue:
    """Thread-safe histogram with configurable buckets."""

    def __init__(self, buckets: Tuple[float, ...]) -> None:
        self._buckets = tuple(sorted(buckets)) + (float("inf"),)
        self._counts = [0] * len(self._buckets)
        self._sum = 0.0
        self._count = 0
        self._lock = threading.Lock()

    def observe(self, value: float) -> None:
        with self._lock:
            self._sum += value
            self._count += 1
            for i, bound in enumerate(self._buckets):
                if value <= bound:
                    self._counts[i] += 1
                    break

    def percentile(self, p: float) -> Optional[float]:
        """
        Estimate a percentile (0-100) by linear interpolation inside buckets.

        Returns None when nothing was observed. Values beyond the last finite
        bucket are reported as that bucket's bound.
        """
        with self._lock:
            if self._count == 0:
                return None

            target = self._count * (p / 100.0)
            cumulative = 0
            for i, bound in enumerate(self._buckets):
                previous = cumulative
                cumulative += self._counts[i]
                if cumulative < target or self._counts[i] == 0:
                    continue
                if bound == float("inf"):
                    return self._buckets[-2]
                lower = 0.0 if i == 0 else self._buckets[i - 1]
                ratio = (target - previous) / self._counts[i]
                return lower + ratio * (bound - lower)

            return self._buckets[-2]

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    @property
    def sum(self) -> float:
        with self._lock:
            return self._sum


class _CounterValue:
    """Thread-safe counter."""

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def inc(self, amount: int = 1) -> None:
        with self._lock:
            self._value += amount

    def get(self) -> int:
        with self._lock:
            return self._value


class MetricsRecorder:
    """
    Collects RequestMetric records for one load run.

    Thread-safe, in-memory. Create one per run; nothing is shared between
    runs.

    Example:
        recorder = MetricsRecorder()
        recorder.record(metric)
        print(recorder.completed, recorder.failed)
        results = aggregate(recorder.snapshot(), elapsed_seconds)
    """

    def __init__(self) -> None:
        self._metrics: List[RequestMetric] = []
        self._lock = threading.Lock()

        self._completed = _CounterValue()
        self._failed = _CounterValue()
        self._by_scenario: Dict[str, _CounterValue] = defaultdict(_CounterValue)
        self._latency = _HistogramValue(LATENCY_BUCKETS_MS)

    def record(self, metric: RequestMetric) -> None:
        """Append one iteration record and update the live counters."""
        with self._lock:
            self._metrics.append(metric)
            self._by_scenario[metric.scenario_name].inc()
        self._completed.inc()
        if not metric.success:
            self._failed.inc()
        self._latency.observe(metric.duration_ms)

    @property
    def completed(self) -> int:
        return self._completed.get()

    @property
    def failed(self) -> int:
        return self._failed.get()

    def snapshot(self) -> List[RequestMetric]:
        """Copy of all records so far, in recording order."""
        with self._lock:
            return list(self._metrics)

    def by_scenario(self) -> Dict[str, int]:
        """Iteration count per scenario name."""
        with self._lock:
            return {name: counter.get() for name, counter in self._by_scenario.items()}

    def live_percentile(self, p: float) -> Optional[float]:
        """Bucketed latency estimate for progress output (not for results)."""
        return self._latency.percentile(p)

    def live_stats(self) -> Dict[str, Any]:
        """
        Cheap summary for progress reporting.

        Returns:
            Dict containing completed, failed, avg_ms and p95_ms (estimated).
        """
        count = self._latency.count
        return {
            "completed": self.completed,
            "failed": self.failed,
            "avg_ms": self._latency.sum / count if count > 0 else None,
            "p95_ms": self._latency.percentile(95),
        }
