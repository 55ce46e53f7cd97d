"""
Retry tracking for run observability.

Tracks retry counts, reasons and the discarded intermediate failures.
Uses contextvars for async-compatible tracking.

Usage:
    from volley.retries import retry_tracking_context, get_retry_tracker

    with retry_tracking_context() as tracker:
        # ... execution with retries ...
        print(f"Total retries: {tracker.total_retries}")
        print(f"By reason: {tracker.to_dict()}")
"""

from volley.retries.tracking import (
    RetryTracker,
    get_retry_tracker,
    retry_tracking_context,
)

__all__ = [
    "RetryTracker",
    "get_retry_tracker",
    "retry_tracking_context",
]
