"""
Execution lifecycle listeners.

ExecutionListener is the observer interface for batch and scenario events.
Every callback is optional: subclasses override only what they need.

Built-in listeners:
- LoggingListener: routes lifecycle events to a stdlib logger
- ProgressListener: writes a progress line per scenario and a final summary

Listener errors never abort a batch: ListenerDispatcher logs and swallows them.
"""
from __future__ import annotations

import logging
import sys
import threading
import time
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence, TextIO

from volley.models import ExecutionStatus

if TYPE_CHECKING:
    from volley.models import ExecutionOutcome, ExecutionSummary


logger = logging.getLogger(__name__)


class ExecutionListener:
    """Observer for batch execution. All methods default to no-ops."""

    def on_execution_start(self) -> None:
        pass

    def on_scenario_start(self, name: str) -> None:
        pass

    def on_scenario_complete(self, name: str, outcome: "ExecutionOutcome") -> None:
        pass

    def on_execution_complete(self, summary: "ExecutionSummary") -> None:
        pass


class ListenerDispatcher:
    """
    Invokes listeners in registration order.

    A failing listener is logged and skipped; the remaining listeners and
    the batch itself carry on.
    """

    def __init__(self, listeners: Sequence[ExecutionListener]) -> None:
        self._listeners = list(listeners)

    def execution_start(self) -> None:
        self._dispatch("on_execution_start", lambda lst: lst.on_execution_start())

    def scenario_start(self, name: str) -> None:
        self._dispatch("on_scenario_start", lambda lst: lst.on_scenario_start(name))

    def scenario_complete(self, name: str, outcome: "ExecutionOutcome") -> None:
        self._dispatch(
            "on_scenario_complete", lambda lst: lst.on_scenario_complete(name, outcome)
        )

    def execution_complete(self, summary: "ExecutionSummary") -> None:
        self._dispatch(
            "on_execution_complete", lambda lst: lst.on_execution_complete(summary)
        )

    def _dispatch(
        self, event: str, call: Callable[[ExecutionListener], None]
    ) -> None:
        for listener in self._listeners:
            try:
                call(listener)
            except Exception:
                logger.exception(
                    "Listener %s failed in %s", type(listener).__name__, event
                )


class LoggingListener(ExecutionListener):
    """Logs lifecycle events. Failures at WARNING, the rest at INFO/DEBUG."""

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self._log = log or logger

    def on_execution_start(self) -> None:
        self._log.info("Execution started")

    def on_scenario_start(self, name: str) -> None:
        self._log.debug("Scenario started: %s", name)

    def on_scenario_complete(self, name: str, outcome: "ExecutionOutcome") -> None:
        if outcome.status == ExecutionStatus.FAILED:
            self._log.warning(
                "Scenario failed: %s (%dms, attempts=%d): %s",
                name,
                outcome.duration_ms,
                outcome.attempts,
                outcome.error.message if outcome.error else "unknown error",
            )
        else:
            self._log.info(
                "Scenario %s: %s (%dms)", outcome.status.value, name, outcome.duration_ms
            )

    def on_execution_complete(self, summary: "ExecutionSummary") -> None:
        self._log.info(
            "Execution complete: total=%d passed=%d failed=%d skipped=%d duration=%dms",
            summary.total,
            summary.passed,
            summary.failed,
            summary.skipped,
            summary.duration_ms,
        )


_STATUS_MARKS = {
    ExecutionStatus.PASSED: "✓",
    ExecutionStatus.FAILED: "✗",
    ExecutionStatus.SKIPPED: "⊘",
}


def format_duration(millis: int) -> str:
    """Format milliseconds as '1m 5s', '3s 250ms' or '40ms'."""
    seconds = millis // 1000
    minutes = seconds // 60
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    if seconds > 0:
        return f"{seconds}s {millis % 1000}ms"
    return f"{millis}ms"


class ProgressListener(ExecutionListener):
    """
    Plain-text progress output for interactive runs.

    Verbose mode prints one line per scenario; otherwise a single progress
    bar line is rewritten in place.
    """

    def __init__(
        self,
        total: int,
        *,
        verbose: bool = False,
        stream: Optional[TextIO] = None,
    ) -> None:
        self._total = max(total, 0)
        self._verbose = verbose
        self._stream = stream or sys.stdout
        self._completed = 0
        self._lock = threading.Lock()
        self._started = time.monotonic()

    @property
    def completed(self) -> int:
        with self._lock:
            return self._completed

    def on_execution_start(self) -> None:
        self._started = time.monotonic()
        self._write("\nStarting test execution...\n")
        self._write(f"Total tests: {self._total}\n\n")

    def on_scenario_start(self, name: str) -> None:
        if self._verbose:
            self._write(f"▶ Running: {name}\n")

    def on_scenario_complete(self, name: str, outcome: "ExecutionOutcome") -> None:
        with self._lock:
            self._completed += 1
            count = self._completed
        if self._verbose:
            mark = _STATUS_MARKS.get(outcome.status, "?")
            self._write(f"{mark} {name} ({outcome.duration_ms}ms)\n")
            return
        percentage = (count * 100) // self._total if self._total else 100
        bar = "=" * (percentage // 2) + " " * (50 - percentage // 2)
        self._write(f"\rProgress: [{bar}] {percentage}% ({count}/{self._total})")

    def on_execution_complete(self, summary: "ExecutionSummary") -> None:
        if not self._verbose:
            self._write("\n")
        elapsed_ms = int((time.monotonic() - self._started) * 1000)
        rule = "=" * 45
        lines: List[str] = [
            "",
            rule,
            "Test Execution Summary",
            rule,
            f"Total:   {summary.total}",
            f"Passed:  {summary.passed}",
            f"Failed:  {summary.failed}",
            f"Skipped: {summary.skipped}",
            f"Duration: {format_duration(elapsed_ms)}",
            rule,
            "",
        ]
        self._write("\n".join(lines) + "\n")

    def _write(self, text: str) -> None:
        self._stream.write(text)
        self._stream.flush()
