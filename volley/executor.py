"""
Functional batch execution.

FunctionalExecutor takes a batch of scenario definitions, filters them, and
runs each one through the retry policy, either in input order or with
bounded parallelism. Every filtered-in scenario ends with exactly one
ExecutionOutcome; the batch ends with one ExecutionSummary.

Usage:
    from volley import ExecutionConfig, FunctionalExecutor, ScenarioDefinition

    scenarios = [
        ScenarioDefinition.single("login", check_login, tags={"smoke"}),
        ScenarioDefinition.single("checkout", check_checkout),
    ]
    executor = FunctionalExecutor(ExecutionConfig(parallel=True, max_parallel=4))
    summary = executor.run_sync(scenarios)
    raise SystemExit(0 if summary.success else 1)

Fail-fast in parallel mode is best effort: scenarios already admitted when
the first failure lands run to completion.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from volley.cancellation import CancellationToken
from volley.concurrency import ConcurrencyLimiter
from volley.config import ExecutionConfig
from volley.exceptions import VolleyConfigError
from volley.filters import TestFilter
from volley.listeners import ListenerDispatcher
from volley.metrics.collector import _CounterValue
from volley.models import (
    ExecutionOutcome,
    ExecutionStatus,
    ExecutionSummary,
    Failure,
    FailureReason,
    ScenarioRef,
    StepOutcome,
    Success,
)
from volley.retries.tracking import retry_tracking_context
from volley.retry import AttemptResult, RetryPolicy
from volley.work import Work, invoke_checked

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Step:
    """A named unit of work inside a scenario."""

    name: str
    action: Work


@dataclass(frozen=True)
class ScenarioDefinition:
    """
    A runnable scenario.

    One attempt runs the before hooks, then the steps in order (stopping at
    the first failing step), then the after hooks. After hooks run even when
    a step failed.
    """

    ref: ScenarioRef
    steps: Tuple[Step, ...] = ()
    before: Tuple[Work, ...] = ()
    after: Tuple[Work, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "steps", tuple(self.steps))
        object.__setattr__(self, "before", tuple(self.before))
        object.__setattr__(self, "after", tuple(self.after))

    @property
    def name(self) -> str:
        return self.ref.name

    @classmethod
    def single(
        cls, name: str, work: Work, tags: Iterable[str] = ()
    ) -> "ScenarioDefinition":
        """Scenario made of one step that runs `work`."""
        return cls(
            ref=ScenarioRef(name=name, tags=frozenset(tags)),
            steps=(Step(name=name, action=work),),
        )


@dataclass
class _BatchState:
    """Outcomes of one batch, safe to update from concurrent tasks."""

    outcomes: Dict[str, ExecutionOutcome] = field(default_factory=dict)
    passed: _CounterValue = field(default_factory=_CounterValue)
    failed: _CounterValue = field(default_factory=_CounterValue)
    skipped: _CounterValue = field(default_factory=_CounterValue)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record(self, outcome: ExecutionOutcome) -> None:
        with self._lock:
            self.outcomes[outcome.scenario_name] = outcome
        if outcome.status == ExecutionStatus.PASSED:
            self.passed.inc()
        elif outcome.status == ExecutionStatus.FAILED:
            self.failed.inc()
        else:
            self.skipped.inc()

    def summary(
        self, order: Sequence[ScenarioDefinition], duration_ms: int
    ) -> ExecutionSummary:
        with self._lock:
            outcomes = tuple(self.outcomes[s.name] for s in order)
        return ExecutionSummary(
            total=len(outcomes),
            passed=self.passed.get(),
            failed=self.failed.get(),
            skipped=self.skipped.get(),
            duration_ms=duration_ms,
            outcomes=outcomes,
        )


def _elapsed_ms(started: float) -> int:
    return max(0, int((time.monotonic() - started) * 1000))


def _check_unique(scenarios: Sequence[ScenarioDefinition]) -> None:
    duplicates = sorted(
        name for name, count in Counter(s.name for s in scenarios).items() if count > 1
    )
    if duplicates:
        raise VolleyConfigError(
            f"Duplicate scenario names: {', '.join(duplicates)}",
            code="duplicate_scenario",
            details={"names": duplicates},
        )


class FunctionalExecutor:
    """
    Runs a batch of scenarios under one ExecutionConfig.

    The executor holds no state between runs; each run() builds its own
    outcome store, limiter and counters.
    """

    def __init__(
        self,
        config: Optional[ExecutionConfig] = None,
        *,
        token: Optional[CancellationToken] = None,
    ) -> None:
        self._config = config or ExecutionConfig()
        self._token = token or CancellationToken()
        self._retry = RetryPolicy(self._config.retry)
        self._dispatcher = ListenerDispatcher(self._config.listeners)

    @property
    def config(self) -> ExecutionConfig:
        return self._config

    @property
    def token(self) -> CancellationToken:
        return self._token

    async def run(
        self,
        scenarios: Iterable[ScenarioDefinition],
        test_filter: Optional[TestFilter] = None,
    ) -> ExecutionSummary:
        """
        Execute a batch.

        Args:
            scenarios: Scenario definitions, in the order results are reported.
            test_filter: Optional selection; unmatched scenarios get no outcome.

        Raises:
            VolleyConfigError: Two selected scenarios share a name.
        """
        selected = [
            s for s in scenarios if test_filter is None or test_filter.matches(s.ref)
        ]
        _check_unique(selected)

        logger.info(
            "Executing %d scenario(s) (parallel=%s, max_parallel=%d, fail_fast=%s)",
            len(selected),
            self._config.parallel,
            self._config.max_parallel,
            self._config.fail_fast,
        )

        state = _BatchState()
        started = time.monotonic()
        self._dispatcher.execution_start()

        if self._config.parallel:
            await self._run_parallel(selected, state)
        else:
            await self._run_sequential(selected, state)

        summary = state.summary(selected, _elapsed_ms(started))
        logger.info(
            "Batch finished: passed=%d failed=%d skipped=%d in %dms",
            summary.passed,
            summary.failed,
            summary.skipped,
            summary.duration_ms,
        )
        self._dispatcher.execution_complete(summary)
        return summary

    def run_sync(
        self,
        scenarios: Iterable[ScenarioDefinition],
        test_filter: Optional[TestFilter] = None,
    ) -> ExecutionSummary:
        """Blocking wrapper around run() for callers without an event loop."""
        return asyncio.run(self.run(scenarios, test_filter))

    async def _run_sequential(
        self, scenarios: Sequence[ScenarioDefinition], state: _BatchState
    ) -> None:
        for scenario in scenarios:
            if self._should_skip(state):
                self._skip(scenario, state)
                continue
            await self._execute(scenario, state)

    async def _run_parallel(
        self, scenarios: Sequence[ScenarioDefinition], state: _BatchState
    ) -> None:
        limiter = ConcurrencyLimiter(self._config.max_parallel)

        async def admit(scenario: ScenarioDefinition) -> None:
            async with limiter.acquire():
                # Failures may have landed while this task waited for a slot.
                if self._should_skip(state):
                    self._skip(scenario, state)
                    return
                await self._execute(scenario, state)

        await asyncio.gather(*(admit(s) for s in scenarios))
        logger.debug("Peak concurrent scenarios: %d", limiter.stats().peak_active)

    def _should_skip(self, state: _BatchState) -> bool:
        if self._token.cancelled:
            return True
        return self._config.fail_fast and state.failed.get() > 0

    def _skip(self, scenario: ScenarioDefinition, state: _BatchState) -> None:
        logger.debug("Skipping scenario %s", scenario.name)
        outcome = ExecutionOutcome.skipped(scenario.name)
        state.record(outcome)
        self._dispatcher.scenario_complete(scenario.name, outcome)

    async def _execute(self, scenario: ScenarioDefinition, state: _BatchState) -> None:
        self._dispatcher.scenario_start(scenario.name)
        started = time.monotonic()
        timeout_ms = self._config.timeout_ms
        last_steps: List[StepOutcome] = []

        async def attempt() -> AttemptResult:
            nonlocal last_steps
            last_steps = []
            try:
                failure = await asyncio.wait_for(
                    self._attempt(scenario, last_steps), timeout=timeout_ms / 1000.0
                )
            except asyncio.TimeoutError:
                return Failure.timeout(timeout_ms)
            return failure if failure is not None else Success()

        with retry_tracking_context() as tracker:
            result = await self._retry.execute(attempt, token=self._token)

        if (
            tracker.attempts == 0
            and isinstance(result, Failure)
            and result.reason == FailureReason.CANCELLED
        ):
            outcome = ExecutionOutcome.skipped(scenario.name)
        elif isinstance(result, Success):
            outcome = ExecutionOutcome(
                scenario_name=scenario.name,
                status=ExecutionStatus.PASSED,
                duration_ms=_elapsed_ms(started),
                steps=tuple(last_steps),
                attempts=tracker.attempts,
            )
        else:
            outcome = ExecutionOutcome(
                scenario_name=scenario.name,
                status=ExecutionStatus.FAILED,
                duration_ms=_elapsed_ms(started),
                error=result,
                steps=tuple(last_steps),
                attempts=tracker.attempts,
            )
            logger.debug(
                "Scenario %s failed after %d attempt(s): %s",
                scenario.name,
                tracker.attempts,
                result.message,
            )

        state.record(outcome)
        self._dispatcher.scenario_complete(scenario.name, outcome)

    async def _attempt(
        self, scenario: ScenarioDefinition, steps: List[StepOutcome]
    ) -> Optional[Failure]:
        """One pass over hooks and steps. Step outcomes are appended to `steps`."""
        failure: Optional[Failure] = None

        for hook in scenario.before:
            failure = await invoke_checked(hook)
            if failure is not None:
                break

        for step in scenario.steps:
            if failure is not None:
                steps.append(
                    StepOutcome(name=step.name, status=ExecutionStatus.SKIPPED, duration_ms=0)
                )
                continue
            step_started = time.monotonic()
            failure = await invoke_checked(step.action)
            steps.append(
                StepOutcome(
                    name=step.name,
                    status=ExecutionStatus.PASSED if failure is None else ExecutionStatus.FAILED,
                    duration_ms=_elapsed_ms(step_started),
                    error=failure,
                )
            )

        for hook in scenario.after:
            after_failure = await invoke_checked(hook)
            if after_failure is None:
                continue
            if failure is None:
                failure = after_failure
            else:
                logger.warning(
                    "After hook of %s failed: %s", scenario.name, after_failure.message
                )

        return failure
