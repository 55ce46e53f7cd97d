"""
Load generation with virtual users.

LoadGenerator drives one or more weighted scenarios for a fixed wall-clock
duration. Each virtual user is an asyncio task that waits for its profile
start delay, then repeats its scenario's unit of work until its deadline,
recording one RequestMetric per iteration. Iteration failures are recorded
and never stop a user.

Usage:
    from volley.load import LoadGenerator, LoadTestConfig, WeightedScenario

    generator = LoadGenerator(LoadTestConfig(users=10, duration_seconds=30))
    results = generator.run_sync({
        "browse": WeightedScenario(browse, weight=3),
        "checkout": WeightedScenario(checkout, weight=1),
    })
    print(results.summary())

A running iteration is never interrupted: the run ends once every user has
finished the iteration in flight at its deadline.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Mapping, Optional

from volley.cancellation import CancellationToken, interruptible_sleep
from volley.exceptions import VolleyConfigError
from volley.load.config import LoadTestConfig
from volley.load.pacing import RequestPacer
from volley.load.profiles import UserSlot, build_schedule
from volley.metrics.aggregator import LoadTestResults, aggregate
from volley.metrics.collector import MetricsRecorder, _CounterValue
from volley.metrics.request_metric import RequestMetric
from volley.models import Failure
from volley.work import Work, invoke

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WeightedScenario:
    """A unit of work and its share of the virtual users."""

    work: Work
    weight: float = 1.0

    def __post_init__(self) -> None:
        if not self.weight > 0:
            raise VolleyConfigError(
                f"Scenario weight must be > 0, got {self.weight}",
                code="invalid_weight",
                details={"weight": self.weight},
            )


@dataclass(frozen=True)
class LoadProgress:
    """Live view of a running load test. Eventually consistent."""

    elapsed_seconds: float
    active_users: int
    completed: int
    failed: int
    requests_per_second: float
    avg_ms: Optional[float] = None
    p95_ms: Optional[float] = None
    per_scenario: Dict[str, int] = field(default_factory=dict)


def allocate_users(users: int, scenarios: Mapping[str, WeightedScenario]) -> Dict[str, int]:
    """
    Virtual users per scenario.

    A single scenario gets every user. Otherwise each scenario gets
    round(users * weight / total_weight) users, so the realized total can
    differ from `users` and a light scenario can get none.
    """
    if len(scenarios) == 1:
        return {name: users for name in scenarios}
    total_weight = sum(s.weight for s in scenarios.values())
    return {
        name: round(users * scenario.weight / total_weight)
        for name, scenario in scenarios.items()
    }


class LoadGenerator:
    """
    Runs load tests for one LoadTestConfig.

    Args:
        config: Run parameters.
        token: Stops start delays, think time and new iterations when cancelled.
        clock: Monotonic clock used for deadlines (injectable for tests).
    """

    def __init__(
        self,
        config: Optional[LoadTestConfig] = None,
        *,
        token: Optional[CancellationToken] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or LoadTestConfig()
        self._token = token or CancellationToken()
        self._clock = clock
        self._active = _CounterValue()
        self._recorder: Optional[MetricsRecorder] = None
        self._started_at: Optional[float] = None

    @property
    def config(self) -> LoadTestConfig:
        return self._config

    @property
    def token(self) -> CancellationToken:
        return self._token

    async def run(self, scenarios: Mapping[str, WeightedScenario]) -> LoadTestResults:
        """
        Drive the scenarios for config.duration_seconds.

        Raises:
            VolleyConfigError: No scenarios were given.
        """
        if not scenarios:
            raise VolleyConfigError("A load test needs at least one scenario", code="no_scenarios")

        config = self._config
        allocation = allocate_users(config.users, scenarios)
        logger.info(
            "Starting load test: %d users over %s, duration=%.1fs ramp_up=%.1fs profile=%s",
            sum(allocation.values()),
            ", ".join(f"{name}={count}" for name, count in allocation.items()),
            config.duration_seconds,
            config.ramp_up_seconds,
            config.profile.value,
        )
        if sum(allocation.values()) == 0:
            logger.warning(
                "No virtual users allocated: %d users rounded to zero across %d scenarios",
                config.users,
                len(scenarios),
            )

        recorder = MetricsRecorder()
        self._recorder = recorder
        self._active = _CounterValue()
        start = self._clock()
        self._started_at = start

        pacer: Optional[RequestPacer] = None
        if config.requests_per_second is not None:
            pacer = RequestPacer(config.requests_per_second, clock=self._clock)

        users: List[Awaitable[None]] = []
        for name, count in allocation.items():
            if count <= 0:
                logger.debug("Scenario %s received no virtual users", name)
                continue
            schedule = build_schedule(
                config.profile, count, config.ramp_up_seconds, config.duration_seconds
            )
            work = scenarios[name].work
            for slot in schedule:
                users.append(self._virtual_user(name, work, slot, start, recorder, pacer))

        reporter = asyncio.create_task(self._report())
        try:
            await asyncio.gather(*users)
        finally:
            reporter.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reporter

        elapsed = max(0.0, self._clock() - start)
        results = aggregate(recorder.snapshot(), elapsed)
        logger.info(
            "Load test finished: %d requests, %.2f req/s, success rate %.2f%%, p95 %.2fms",
            results.total_requests,
            results.requests_per_second,
            results.success_rate * 100,
            results.p95_response_time_ms,
        )
        return results

    async def run_single(self, name: str, work: Work) -> LoadTestResults:
        """Drive one scenario with every virtual user."""
        return await self.run({name: WeightedScenario(work)})

    def run_sync(self, scenarios: Mapping[str, WeightedScenario]) -> LoadTestResults:
        """Blocking wrapper around run() for callers without an event loop."""
        return asyncio.run(self.run(scenarios))

    def stats(self) -> LoadProgress:
        """Snapshot of the current (or last) run."""
        recorder = self._recorder
        if recorder is None or self._started_at is None:
            return LoadProgress(0.0, 0, 0, 0, 0.0)
        elapsed = max(0.0, self._clock() - self._started_at)
        live = recorder.live_stats()
        completed = live["completed"]
        return LoadProgress(
            elapsed_seconds=elapsed,
            active_users=self._active.get(),
            completed=completed,
            failed=live["failed"],
            requests_per_second=completed / elapsed if elapsed > 0 else 0.0,
            avg_ms=live["avg_ms"],
            p95_ms=live["p95_ms"],
            per_scenario=recorder.by_scenario(),
        )

    async def _virtual_user(
        self,
        scenario_name: str,
        work: Work,
        slot: UserSlot,
        start: float,
        recorder: MetricsRecorder,
        pacer: Optional[RequestPacer],
    ) -> None:
        deadline = start + slot.stop_at
        if slot.start_delay > 0:
            delay = min(slot.start_delay, max(0.0, deadline - self._clock()))
            if await interruptible_sleep(delay, self._token):
                return
        if self._clock() >= deadline:
            return

        think_time = self._config.think_time_seconds
        self._active.inc()
        try:
            while not self._token.cancelled and self._clock() < deadline:
                if pacer is not None and not await pacer.acquire(
                    token=self._token, deadline=deadline
                ):
                    break
                await self._iterate(scenario_name, work, recorder)

                if think_time > 0:
                    remaining = deadline - self._clock()
                    if remaining <= 0:
                        break
                    if await interruptible_sleep(min(think_time, remaining), self._token):
                        break
                else:
                    # Let other users run when the work never suspends.
                    await asyncio.sleep(0)
        finally:
            self._active.inc(-1)

    async def _iterate(
        self, scenario_name: str, work: Work, recorder: MetricsRecorder
    ) -> None:
        timestamp_ms = int(time.time() * 1000)
        started = time.perf_counter()
        result = None
        failure: Optional[Failure] = None
        try:
            result = await invoke(work)
        except Exception as exc:
            failure = Failure.from_exception(exc)
        if isinstance(result, Failure):
            failure = result
        duration_ms = (time.perf_counter() - started) * 1000.0

        if failure is not None:
            logger.debug("Iteration of %s failed: %s", scenario_name, failure.message)
        recorder.record(
            RequestMetric.from_iteration(
                scenario_name=scenario_name,
                timestamp_ms=timestamp_ms,
                duration_ms=duration_ms,
                result=result,
                failure=failure,
            )
        )

    async def _report(self) -> None:
        interval = self._config.report_interval_seconds
        while True:
            if await interruptible_sleep(interval, self._token):
                return
            progress = self.stats()
            p95 = "-" if progress.p95_ms is None else f"{progress.p95_ms:.1f}ms"
            logger.info(
                "[%.0fs] active users: %d, completed: %d, failed: %d, rps: %.2f, p95: %s, by scenario: %s",
                progress.elapsed_seconds,
                progress.active_users,
                progress.completed,
                progress.failed,
                progress.requests_per_second,
                p95,
                progress.per_scenario,
            )
