from __future__ import annotations

import asyncio
import traceback
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Generic, List, Optional, Tuple, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator

T = TypeVar("T")


class ExecutionStatus(str, Enum):
    """Terminal status of a scenario or step."""

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


class FailureReason(str, Enum):
    """
    Low-cardinality failure classification.

    Retry predicates and log labels key off this instead of exception types.
    """

    ASSERTION = "assertion"
    TIMEOUT = "timeout"
    ERROR = "error"
    CANCELLED = "cancelled"


class ScenarioRef(BaseModel):
    """Identity of a runnable scenario. Supplied by the caller, never mutated."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(..., min_length=1)
    tags: FrozenSet[str] = Field(default_factory=frozenset)


class Failure(BaseModel):
    """
    Typed failure value for one attempt, step or iteration.

    Attributes:
        message: Human-readable failure summary.
        reason: Classification used by retry predicates.
        error_type: Exception class name when the failure came from an exception.
        traceback: Formatted traceback, if any.
        exception: Original exception (kept in memory, excluded from dumps).
    """

    model_config = ConfigDict(
        extra="forbid", frozen=True, arbitrary_types_allowed=True
    )

    message: str
    reason: FailureReason = FailureReason.ERROR
    error_type: Optional[str] = None
    traceback: Optional[str] = None
    exception: Optional[BaseException] = Field(default=None, exclude=True, repr=False)

    @classmethod
    def from_exception(cls, exc: BaseException) -> "Failure":
        """Classify an exception raised by a unit of work."""
        if isinstance(exc, AssertionError):
            reason = FailureReason.ASSERTION
        elif isinstance(exc, (TimeoutError, asyncio.TimeoutError)):
            reason = FailureReason.TIMEOUT
        else:
            reason = FailureReason.ERROR
        return cls(
            message=str(exc) or exc.__class__.__name__,
            reason=reason,
            error_type=exc.__class__.__name__,
            traceback="".join(
                traceback.format_exception(type(exc), exc, exc.__traceback__)
            ),
            exception=exc,
        )

    @classmethod
    def timeout(cls, timeout_ms: int) -> "Failure":
        return cls(
            message=f"Timed out after {timeout_ms}ms",
            reason=FailureReason.TIMEOUT,
            error_type="TimeoutError",
        )

    @classmethod
    def cancelled(cls, message: str = "Cancelled") -> "Failure":
        return cls(message=message, reason=FailureReason.CANCELLED)


@dataclass(frozen=True)
class Success(Generic[T]):
    """Successful attempt carrying the operation's value."""

    value: T = None  # type: ignore[assignment]


class StepOutcome(BaseModel):
    """Result of one step inside a scenario attempt."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    status: ExecutionStatus
    duration_ms: int = Field(..., ge=0)
    error: Optional[Failure] = None


class ExecutionOutcome(BaseModel):
    """
    Terminal record for a single scenario.

    Created once when the final attempt concludes (or when the scenario is
    skipped) and never updated afterwards.

    Attributes:
        scenario_name: Name of the scenario.
        status: Passed, failed or skipped.
        duration_ms: Wall-clock time across all attempts, 0 when skipped.
        error: Failure of the final attempt, if it failed.
        steps: Step outcomes of the final attempt, in execution order.
        attempts: Attempts made (0 when skipped).
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    scenario_name: str
    status: ExecutionStatus
    duration_ms: int = Field(..., ge=0)
    error: Optional[Failure] = None
    steps: Tuple[StepOutcome, ...] = ()
    attempts: int = Field(default=1, ge=0)

    @classmethod
    def skipped(cls, scenario_name: str) -> "ExecutionOutcome":
        return cls(
            scenario_name=scenario_name,
            status=ExecutionStatus.SKIPPED,
            duration_ms=0,
            attempts=0,
        )

    @property
    def retries(self) -> int:
        return max(0, self.attempts - 1)


class ExecutionSummary(BaseModel):
    """
    Aggregate over a batch, computed once at batch completion.

    Invariant: passed + failed + skipped == total == len(outcomes).
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    total: int = Field(..., ge=0)
    passed: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    skipped: int = Field(..., ge=0)
    duration_ms: int = Field(..., ge=0)
    outcomes: Tuple[ExecutionOutcome, ...] = ()

    @model_validator(mode="after")
    def check_counts(self) -> "ExecutionSummary":
        if self.passed + self.failed + self.skipped != self.total:
            raise ValueError("passed + failed + skipped must equal total.")
        if len(self.outcomes) != self.total:
            raise ValueError("total must equal the number of outcomes.")
        return self

    @property
    def success(self) -> bool:
        """False when any scenario failed. Callers derive exit codes from this."""
        return self.failed == 0

    def outcome_for(self, scenario_name: str) -> Optional[ExecutionOutcome]:
        for outcome in self.outcomes:
            if outcome.scenario_name == scenario_name:
                return outcome
        return None

    def failures(self) -> List[ExecutionOutcome]:
        return [o for o in self.outcomes if o.status == ExecutionStatus.FAILED]

    def to_log_dict(self) -> Dict[str, Any]:
        """
        Serialize to a dict suitable for JSON logging.

        {"type": "volley.execution_summary.v1", ...fields...}
        """
        data = self.model_dump(mode="json")
        data["type"] = "volley.execution_summary.v1"
        return data
