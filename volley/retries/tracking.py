"""
Per-scenario retry accounting.

The executor opens one tracker per scenario; RetryPolicy reports every
attempt and every retry into whichever tracker is current. Trackers live in
a ContextVar, so concurrent scenario tasks never see each other's counts.
"""

from __future__ import annotations

import contextvars
import threading
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from volley.models import Failure, FailureReason


@dataclass
class RetryTracker:
    """
    Attempts, retries and the failures they discarded.

    Attributes:
        attempts: Times the operation was invoked.
        total_retries: Attempts after the first one.
        retries_by_reason: Retry count per FailureReason.
        backoff_ms_total: Sum of the backoff delays that were scheduled.
        history: Failures that triggered a retry, oldest first.
    """

    attempts: int = 0
    total_retries: int = 0
    retries_by_reason: Counter = field(default_factory=Counter)
    backoff_ms_total: int = 0
    history: List[Failure] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_attempt(self) -> None:
        with self._lock:
            self.attempts += 1

    def record_retry(self, failure: Failure, *, backoff_ms: int = 0) -> None:
        """Note that `failure` is being discarded and retried after `backoff_ms`."""
        with self._lock:
            self.total_retries += 1
            self.retries_by_reason[failure.reason] += 1
            self.backoff_ms_total += backoff_ms
            self.history.append(failure)

    @property
    def last_retry_reason(self) -> Optional[FailureReason]:
        return self.history[-1].reason if self.history else None

    def to_dict(self) -> Dict[str, int]:
        """Retry counts keyed by reason value, for logs and JSON."""
        with self._lock:
            return {reason.value: n for reason, n in self.retries_by_reason.items()}


_current: contextvars.ContextVar[Optional[RetryTracker]] = contextvars.ContextVar(
    "volley_retry_tracker", default=None
)


def get_retry_tracker() -> Optional[RetryTracker]:
    """The tracker of the innermost retry_tracking_context, or None."""
    return _current.get()


@contextmanager
def retry_tracking_context() -> Iterator[RetryTracker]:
    """
    Install a fresh RetryTracker for the enclosed block.

    Usage:
        with retry_tracking_context() as tracker:
            outcome = await policy.execute(operation)
        logger.info("retries: %s", tracker.to_dict())
    """
    tracker = RetryTracker()
    reset_token = _current.set(tracker)
    try:
        yield tracker
    finally:
        _current.reset(reset_token)
