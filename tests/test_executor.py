"""Tests for functional batch execution."""

from __future__ import annotations

import asyncio
import threading
import time
from typing import List, Tuple

import pytest

from volley.cancellation import CancellationToken
from volley.config import ExecutionConfig, RetryConfig
from volley.exceptions import VolleyConfigError
from volley.executor import FunctionalExecutor, ScenarioDefinition, Step
from volley.filters import TestFilter
from volley.listeners import ExecutionListener
from volley.models import ExecutionStatus, FailureReason, ScenarioRef


class RecordingListener(ExecutionListener):
    def __init__(self) -> None:
        self.events: List[Tuple[str, ...]] = []
        self._lock = threading.Lock()

    def _add(self, *event: str) -> None:
        with self._lock:
            self.events.append(event)

    def on_execution_start(self) -> None:
        self._add("start")

    def on_scenario_start(self, name: str) -> None:
        self._add("scenario_start", name)

    def on_scenario_complete(self, name, outcome) -> None:
        self._add("scenario_complete", name, outcome.status.value)

    def on_execution_complete(self, summary) -> None:
        self._add("complete", str(summary.total))


class ExplodingListener(ExecutionListener):
    def on_scenario_complete(self, name, outcome) -> None:
        raise RuntimeError("listener bug")


def _passing():
    return None


def _failing():
    raise AssertionError("expected 200, got 500")


async def _async_passing():
    await asyncio.sleep(0)


class TestSequential:
    @pytest.mark.asyncio
    async def test_summary_counts(self):
        scenarios = [
            ScenarioDefinition.single("a", _passing),
            ScenarioDefinition.single("b", _failing),
            ScenarioDefinition.single("c", _async_passing),
        ]
        summary = await FunctionalExecutor(ExecutionConfig()).run(scenarios)

        assert summary.total == 3
        assert summary.passed == 2
        assert summary.failed == 1
        assert summary.skipped == 0
        assert summary.success is False
        assert [o.scenario_name for o in summary.outcomes] == ["a", "b", "c"]

        failed = summary.outcome_for("b")
        assert failed.error.reason == FailureReason.ASSERTION
        assert failed.error.message == "expected 200, got 500"
        assert failed.attempts == 1

    @pytest.mark.asyncio
    async def test_fail_fast_skips_remaining(self):
        listener = RecordingListener()
        config = ExecutionConfig(fail_fast=True, listeners=[listener])
        scenarios = [
            ScenarioDefinition.single("s1", _passing),
            ScenarioDefinition.single("s2", _failing),
            ScenarioDefinition.single("s3", _passing),
            ScenarioDefinition.single("s4", _passing),
        ]
        summary = await FunctionalExecutor(config).run(scenarios)

        assert (summary.passed, summary.failed, summary.skipped) == (1, 1, 2)
        for name in ("s3", "s4"):
            outcome = summary.outcome_for(name)
            assert outcome.status == ExecutionStatus.SKIPPED
            assert outcome.duration_ms == 0
            assert outcome.attempts == 0
            assert ("scenario_start", name) not in listener.events
            assert ("scenario_complete", name, "skipped") in listener.events

    @pytest.mark.asyncio
    async def test_without_fail_fast_every_scenario_runs(self):
        scenarios = [
            ScenarioDefinition.single("s1", _failing),
            ScenarioDefinition.single("s2", _passing),
            ScenarioDefinition.single("s3", _passing),
        ]
        summary = await FunctionalExecutor(ExecutionConfig(fail_fast=False)).run(scenarios)

        assert (summary.passed, summary.failed, summary.skipped) == (2, 1, 0)

    @pytest.mark.asyncio
    async def test_listener_order(self):
        listener = RecordingListener()
        config = ExecutionConfig(listeners=[listener])
        await FunctionalExecutor(config).run([ScenarioDefinition.single("only", _passing)])

        assert listener.events == [
            ("start",),
            ("scenario_start", "only"),
            ("scenario_complete", "only", "passed"),
            ("complete", "1"),
        ]

    @pytest.mark.asyncio
    async def test_listeners_called_in_registration_order(self):
        shared: List[Tuple[str, str]] = []

        class Tagged(ExecutionListener):
            def __init__(self, tag: str) -> None:
                self.tag = tag

            def on_execution_start(self) -> None:
                shared.append((self.tag, "start"))

            def on_scenario_start(self, name: str) -> None:
                shared.append((self.tag, name))

            def on_execution_complete(self, summary) -> None:
                shared.append((self.tag, "complete"))

        config = ExecutionConfig(listeners=[Tagged("first"), Tagged("second")])
        await FunctionalExecutor(config).run([ScenarioDefinition.single("only", _passing)])

        assert shared == [
            ("first", "start"),
            ("second", "start"),
            ("first", "only"),
            ("second", "only"),
            ("first", "complete"),
            ("second", "complete"),
        ]

    @pytest.mark.asyncio
    async def test_listener_errors_do_not_abort_batch(self):
        recorder = RecordingListener()
        config = ExecutionConfig(listeners=[ExplodingListener(), recorder])
        summary = await FunctionalExecutor(config).run(
            [ScenarioDefinition.single("a", _passing), ScenarioDefinition.single("b", _passing)]
        )

        assert summary.passed == 2
        assert ("scenario_complete", "b", "passed") in recorder.events

    @pytest.mark.asyncio
    async def test_filter_applied_before_run(self):
        scenarios = [
            ScenarioDefinition.single("A", _passing, tags={"smoke"}),
            ScenarioDefinition.single("B", _failing, tags={"smoke", "slow"}),
            ScenarioDefinition.single("C", _failing, tags={"regression"}),
        ]
        summary = await FunctionalExecutor().run(
            scenarios, TestFilter(tags={"smoke"}, exclude_tags={"slow"})
        )

        assert summary.total == 1
        assert summary.outcomes[0].scenario_name == "A"

    @pytest.mark.asyncio
    async def test_duplicate_names_rejected(self):
        scenarios = [
            ScenarioDefinition.single("dup", _passing),
            ScenarioDefinition.single("dup", _passing),
        ]
        with pytest.raises(VolleyConfigError) as exc_info:
            await FunctionalExecutor().run(scenarios)
        assert exc_info.value.code == "duplicate_scenario"

    def test_run_sync(self):
        summary = FunctionalExecutor().run_sync([ScenarioDefinition.single("a", _passing)])
        assert summary.passed == 1

    @pytest.mark.asyncio
    async def test_empty_batch(self):
        summary = await FunctionalExecutor().run([])
        assert summary.total == 0
        assert summary.success is True


class TestSteps:
    @pytest.mark.asyncio
    async def test_steps_stop_at_first_failure_and_hooks_run(self):
        calls: List[str] = []
        scenario = ScenarioDefinition(
            ref=ScenarioRef(name="flow"),
            steps=(
                Step("create", lambda: calls.append("create")),
                Step("verify", _failing),
                Step("delete", lambda: calls.append("delete")),
            ),
            before=(lambda: calls.append("before"),),
            after=(lambda: calls.append("after"),),
        )
        summary = await FunctionalExecutor().run([scenario])

        outcome = summary.outcomes[0]
        assert outcome.status == ExecutionStatus.FAILED
        assert calls == ["before", "create", "after"]
        assert [(s.name, s.status) for s in outcome.steps] == [
            ("create", ExecutionStatus.PASSED),
            ("verify", ExecutionStatus.FAILED),
            ("delete", ExecutionStatus.SKIPPED),
        ]

    @pytest.mark.asyncio
    async def test_failing_after_hook_fails_scenario(self):
        scenario = ScenarioDefinition(
            ref=ScenarioRef(name="cleanup"),
            steps=(Step("ok", _passing),),
            after=(_failing,),
        )
        summary = await FunctionalExecutor().run([scenario])
        assert summary.failed == 1


class TestRetriesAndTimeouts:
    @pytest.mark.asyncio
    async def test_flaky_scenario_passes_on_retry(self):
        calls = {"count": 0}

        def _flaky():
            calls["count"] += 1
            if calls["count"] < 3:
                raise ConnectionError("reset by peer")

        config = ExecutionConfig(retry=RetryConfig(max_retries=3, initial_delay_ms=1))
        summary = await FunctionalExecutor(config).run(
            [ScenarioDefinition.single("flaky", _flaky)]
        )

        outcome = summary.outcomes[0]
        assert outcome.status == ExecutionStatus.PASSED
        assert outcome.attempts == 3
        assert outcome.retries == 2

    @pytest.mark.asyncio
    async def test_attempt_timeout(self):
        async def _slow():
            await asyncio.sleep(5)

        config = ExecutionConfig(timeout_ms=20)
        started = time.monotonic()
        summary = await FunctionalExecutor(config).run(
            [ScenarioDefinition.single("slow", _slow)]
        )

        assert time.monotonic() - started < 2
        outcome = summary.outcomes[0]
        assert outcome.status == ExecutionStatus.FAILED
        assert outcome.error.reason == FailureReason.TIMEOUT

    @pytest.mark.asyncio
    async def test_timed_out_attempt_is_retried(self):
        calls = {"n": 0}

        async def _slow_then_fast():
            calls["n"] += 1
            if calls["n"] == 1:
                await asyncio.sleep(1)

        config = ExecutionConfig(
            timeout_ms=30, retry=RetryConfig(max_retries=1, initial_delay_ms=1)
        )
        summary = await FunctionalExecutor(config).run(
            [ScenarioDefinition.single("warmup", _slow_then_fast)]
        )

        outcome = summary.outcomes[0]
        assert outcome.status == ExecutionStatus.PASSED
        assert outcome.attempts == 2
        assert calls["n"] == 2

    @pytest.mark.asyncio
    async def test_cancelled_token_skips_everything(self):
        token = CancellationToken()
        token.cancel()
        summary = await FunctionalExecutor(token=token).run(
            [ScenarioDefinition.single("a", _passing), ScenarioDefinition.single("b", _passing)]
        )
        assert summary.skipped == 2


class TestParallel:
    @pytest.mark.asyncio
    async def test_concurrency_bound(self):
        lock = threading.Lock()
        state = {"active": 0, "peak": 0}

        async def _work():
            with lock:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            await asyncio.sleep(0.02)
            with lock:
                state["active"] -= 1

        scenarios = [ScenarioDefinition.single(f"s{i}", _work) for i in range(8)]
        config = ExecutionConfig(parallel=True, max_parallel=2)
        summary = await FunctionalExecutor(config).run(scenarios)

        assert summary.passed == 8
        assert state["peak"] <= 2
        assert [o.scenario_name for o in summary.outcomes] == [f"s{i}" for i in range(8)]

    @pytest.mark.asyncio
    async def test_parallel_fail_fast_skips_unadmitted(self):
        async def _fail_quickly():
            raise AssertionError("broken")

        async def _slow():
            await asyncio.sleep(0.02)

        scenarios = [ScenarioDefinition.single("first", _fail_quickly)] + [
            ScenarioDefinition.single(f"later{i}", _slow) for i in range(5)
        ]
        config = ExecutionConfig(parallel=True, max_parallel=1, fail_fast=True)
        summary = await FunctionalExecutor(config).run(scenarios)

        assert summary.failed == 1
        assert summary.skipped == 5
        assert summary.passed + summary.failed + summary.skipped == summary.total

    @pytest.mark.asyncio
    async def test_five_slow_scenarios_two_at_a_time(self):
        lock = threading.Lock()
        state = {"active": 0, "peak": 0}

        def _work():
            with lock:
                state["active"] += 1
                state["peak"] = max(state["peak"], state["active"])
            time.sleep(0.05)
            with lock:
                state["active"] -= 1

        scenarios = [ScenarioDefinition.single(f"s{i}", _work) for i in range(5)]
        config = ExecutionConfig(parallel=True, max_parallel=2)
        started = time.monotonic()
        summary = await FunctionalExecutor(config).run(scenarios)
        elapsed = time.monotonic() - started

        assert summary.passed == 5
        assert state["peak"] <= 2
        # three waves of at most two
        assert elapsed >= 0.14

    @pytest.mark.asyncio
    async def test_parallel_fail_fast_lets_in_flight_scenarios_finish(self):
        async def _fail_after_10ms():
            await asyncio.sleep(0.01)
            raise AssertionError("broken")

        async def _slow():
            await asyncio.sleep(0.05)

        scenarios = [
            ScenarioDefinition.single("f", _fail_after_10ms),
            ScenarioDefinition.single("s0", _slow),
        ] + [ScenarioDefinition.single(f"s{i}", _slow) for i in range(1, 4)]
        config = ExecutionConfig(parallel=True, max_parallel=2, fail_fast=True)
        summary = await FunctionalExecutor(config).run(scenarios)

        statuses = {o.scenario_name: o.status for o in summary.outcomes}
        assert statuses["f"] == ExecutionStatus.FAILED
        assert statuses["s0"] == ExecutionStatus.PASSED
        for name in ("s1", "s2", "s3"):
            assert statuses[name] == ExecutionStatus.SKIPPED
