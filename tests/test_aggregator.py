"""Tests for load statistics: percentiles, rates and thresholds."""

import random

import pytest

from volley.metrics import (
    LoadTestResults,
    PerformanceThresholds,
    RequestMetric,
    StatisticsAggregator,
    aggregate,
    percentile,
)


def make_metric(
    duration_ms: float,
    success: bool = True,
    error: str | None = None,
    scenario_name: str = "browse",
) -> RequestMetric:
    return RequestMetric(
        timestamp_ms=1_700_000_000_000,
        duration_ms=duration_ms,
        success=success,
        error=error,
        scenario_name=scenario_name,
    )


class TestPercentile:
    def test_one_to_hundred(self):
        values = [float(v) for v in range(1, 101)]
        assert percentile(values, 0.50) == 50.0
        assert percentile(values, 0.90) == 90.0
        assert percentile(values, 0.99) == 99.0
        assert percentile(values, 1.0) == 100.0

    def test_empty(self):
        assert percentile([], 0.95) == 0.0

    def test_out_of_range(self):
        with pytest.raises(ValueError):
            percentile([1.0], 1.5)


class TestAggregate:
    def test_ten_samples(self):
        metrics = [make_metric(float(v)) for v in range(10, 101, 10)]
        results = aggregate(metrics, 1.0)
        assert results.p50_response_time_ms == 50.0
        assert results.p90_response_time_ms == 90.0

    def test_exact_latencies(self):
        metrics = [make_metric(float(v)) for v in range(1, 101)]
        results = aggregate(metrics, total_duration_seconds=10.0)

        assert results.total_requests == 100
        assert results.p50_response_time_ms == 50.0
        assert results.p90_response_time_ms == 90.0
        assert results.min_response_time_ms == 1.0
        assert results.max_response_time_ms == 100.0
        assert results.avg_response_time_ms == pytest.approx(50.5)
        assert results.requests_per_second == 10.0
        assert results.success_rate == 1.0
        assert results.error_rate == 0.0

    def test_percentiles_are_monotonic(self):
        rng = random.Random(7)
        metrics = [make_metric(rng.uniform(1, 500)) for _ in range(257)]
        r = aggregate(metrics, 3.0)

        assert r.min_response_time_ms <= r.p50_response_time_ms
        assert r.p50_response_time_ms <= r.p90_response_time_ms
        assert r.p90_response_time_ms <= r.p95_response_time_ms
        assert r.p95_response_time_ms <= r.p99_response_time_ms
        assert r.p99_response_time_ms <= r.max_response_time_ms

    def test_error_histogram(self):
        metrics = [
            make_metric(10, success=False, error="HTTP 503"),
            make_metric(10, success=False, error="HTTP 503"),
            make_metric(10, success=False, error="Connection reset"),
            make_metric(10, success=False, error=None),
            make_metric(10),
        ]
        results = aggregate(metrics, 1.0)

        assert results.failed_requests == 4
        assert results.errors == {"Connection reset": 1, "HTTP 503": 2}
        assert list(results.errors) == ["Connection reset", "HTTP 503"]
        assert results.error_rate == pytest.approx(0.8)
        assert results.success_rate == pytest.approx(0.2)

    def test_empty_input(self):
        results = aggregate([], 5.0)
        assert results.total_requests == 0
        assert results.p99_response_time_ms == 0.0
        assert results.avg_response_time_ms == 0.0
        assert results.success_rate == 0.0
        assert results.requests_per_second == 0.0

    def test_zero_duration(self):
        results = aggregate([make_metric(5)], 0.0)
        assert results.requests_per_second == 0.0

    def test_idempotent(self):
        rng = random.Random(3)
        metrics = [
            make_metric(rng.uniform(1, 100), success=rng.random() > 0.1, error="boom")
            for _ in range(50)
        ]
        assert aggregate(metrics, 2.0) == aggregate(metrics, 2.0)
        assert StatisticsAggregator().aggregate(metrics, 2.0) == aggregate(metrics, 2.0)

    def test_input_order_does_not_matter(self):
        metrics = [make_metric(float(v)) for v in (30, 10, 20)]
        assert aggregate(metrics, 1.0) == aggregate(list(reversed(metrics)), 1.0)


class TestThresholds:
    def _results(self, **overrides) -> LoadTestResults:
        values = dict(
            total_requests=100,
            successful_requests=98,
            failed_requests=2,
            total_duration_seconds=10.0,
            max_response_time_ms=900.0,
            p95_response_time_ms=400.0,
            requests_per_second=10.0,
            success_rate=0.98,
            error_rate=0.02,
        )
        values.update(overrides)
        return LoadTestResults(**values)

    def test_defaults_pass(self):
        assert self._results().meets_thresholds(PerformanceThresholds())

    def test_violations_listed(self):
        thresholds = PerformanceThresholds(
            p95_response_time_ms=300,
            min_requests_per_second=20,
            max_error_rate=0.01,
        )
        violations = self._results().threshold_violations(thresholds)

        assert len(violations) == 3
        assert any("p95" in v for v in violations)
        assert any("throughput" in v for v in violations)
        assert any("error rate" in v for v in violations)
        assert not self._results().meets_thresholds(thresholds)

    def test_summary_text(self):
        text = self._results(errors={"HTTP 500": 2}).summary()
        assert "Total Requests:       100" in text
        assert "Success Rate:         98.00%" in text
        assert "HTTP 500: 2" in text
