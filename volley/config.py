"""
Execution configuration.

Configuration is explicit: build a RetryConfig / ExecutionConfig and pass it
to the entry point that needs it. Invalid values are rejected when the model
is constructed, before any scenario runs.

Usage:
    from volley.config import ExecutionConfig, RetryConfig

    config = ExecutionConfig(
        parallel=True,
        max_parallel=4,
        fail_fast=True,
        retry=RetryConfig(max_retries=2, initial_delay_ms=200),
    )

    # Or start from VOLLEY_* environment variables
    config = ExecutionConfig.from_env(listeners=[LoggingListener()])
"""

from __future__ import annotations

import os
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from volley.listeners import ExecutionListener


def _env_truthy(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _default_max_parallel() -> int:
    return os.cpu_count() or 1


class RetryConfig(BaseModel):
    """
    Retry behaviour for a whole scenario attempt.

    Attributes:
        max_retries: Retries after the first attempt (total attempts = max_retries + 1).
        initial_delay_ms: Delay before the first retry.
        max_delay_ms: Cap on any single delay.
        exponential: Double the delay on every retry (capped) instead of a fixed delay.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_retries: int = Field(default=0, ge=0)
    initial_delay_ms: int = Field(default=1000, gt=0)
    max_delay_ms: int = Field(default=10000, gt=0)
    exponential: bool = True

    @model_validator(mode="after")
    def check_delays(self) -> "RetryConfig":
        if self.max_delay_ms < self.initial_delay_ms:
            raise ValueError("max_delay_ms must be >= initial_delay_ms.")
        return self

    @classmethod
    def from_env(cls, **overrides: Any) -> "RetryConfig":
        values: dict[str, Any] = {}
        if os.getenv("VOLLEY_MAX_RETRIES") is not None:
            values["max_retries"] = int(os.environ["VOLLEY_MAX_RETRIES"])
        if os.getenv("VOLLEY_RETRY_INITIAL_DELAY_MS") is not None:
            values["initial_delay_ms"] = int(os.environ["VOLLEY_RETRY_INITIAL_DELAY_MS"])
        if os.getenv("VOLLEY_RETRY_MAX_DELAY_MS") is not None:
            values["max_delay_ms"] = int(os.environ["VOLLEY_RETRY_MAX_DELAY_MS"])
        if os.getenv("VOLLEY_RETRY_EXPONENTIAL") is not None:
            values["exponential"] = _env_truthy(os.getenv("VOLLEY_RETRY_EXPONENTIAL"))
        values.update(overrides)
        return cls(**values)


class ExecutionConfig(BaseModel):
    """
    Functional batch configuration.

    Attributes:
        parallel: Run scenarios concurrently instead of in input order.
        max_parallel: Upper bound on scenarios in flight (parallel mode).
        fail_fast: Stop admitting scenarios once a failure was recorded.
        timeout_ms: Bound on a single scenario attempt.
        retry: Retry policy wrapping each scenario.
        listeners: Lifecycle observers, notified in registration order.
    """

    model_config = ConfigDict(
        extra="forbid", frozen=True, arbitrary_types_allowed=True
    )

    parallel: bool = False
    max_parallel: int = Field(default_factory=_default_max_parallel, ge=1)
    fail_fast: bool = False
    timeout_ms: int = Field(default=300_000, gt=0)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    listeners: List[ExecutionListener] = Field(default_factory=list)

    @classmethod
    def from_env(cls, **overrides: Any) -> "ExecutionConfig":
        """
        Build a config from VOLLEY_* environment variables.

        Reads the environment on every call; explicit keyword overrides win.
        """
        values: dict[str, Any] = {}
        if os.getenv("VOLLEY_PARALLEL") is not None:
            values["parallel"] = _env_truthy(os.getenv("VOLLEY_PARALLEL"))
        if os.getenv("VOLLEY_MAX_PARALLEL") is not None:
            values["max_parallel"] = int(os.environ["VOLLEY_MAX_PARALLEL"])
        if os.getenv("VOLLEY_FAIL_FAST") is not None:
            values["fail_fast"] = _env_truthy(os.getenv("VOLLEY_FAIL_FAST"))
        if os.getenv("VOLLEY_TIMEOUT_MS") is not None:
            values["timeout_ms"] = int(os.environ["VOLLEY_TIMEOUT_MS"])
        if "retry" not in overrides:
            values["retry"] = RetryConfig.from_env()
        values.update(overrides)
        return cls(**values)
