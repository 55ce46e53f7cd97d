"""
Load test metrics.

Provides:
- RequestMetric: one immutable record per iteration
- MetricsRecorder: thread-safe sink with live counters for progress output
- aggregate / StatisticsAggregator: percentile, rate and error reduction
- LoadTestResults / PerformanceThresholds: final statistics and pass criteria

Usage:
    from volley.metrics import MetricsRecorder, aggregate

    recorder = MetricsRecorder()
    recorder.record(metric)
    results = aggregate(recorder.snapshot(), elapsed_seconds)
    print(results.summary())
"""

from volley.metrics.request_metric import RequestMetric
from volley.metrics.collector import MetricsRecorder
from volley.metrics.aggregator import (
    LoadTestResults,
    PerformanceThresholds,
    StatisticsAggregator,
    aggregate,
    percentile,
)

__all__ = [
    "RequestMetric",
    "MetricsRecorder",
    "LoadTestResults",
    "PerformanceThresholds",
    "StatisticsAggregator",
    "aggregate",
    "percentile",
]
