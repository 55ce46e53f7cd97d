"""
Typed exceptions for volley.

Provides structured error handling with:
- VolleyError: Base exception for all volley errors
- VolleyConfigError: Configuration and validation errors
- RetryExhaustedError: Final failure after all retry attempts were spent

Scenario and iteration failures are not exceptions: they are recorded as
Failure values on outcomes and metrics. Exceptions are reserved for problems
that abort a whole run or for callers that explicitly ask for raising APIs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from volley.models import Failure


class VolleyError(Exception):
    """Base exception for all volley errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context as key-value pairs
    """

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class VolleyConfigError(VolleyError):
    """Configuration or validation error.

    Raised before any scenario executes when:
    - Scenario names collide within one batch
    - A load test file is malformed or names an unknown profile
    - A duration string cannot be parsed
    - A load run is started without scenarios

    Examples:
        VolleyConfigError("Duplicate scenario name", code="duplicate_scenario")
        VolleyConfigError("Invalid duration", details={"value": "10x"})
    """

    pass


class RetryExhaustedError(VolleyError):
    """All attempts of a retried operation failed.

    Attributes:
        failure: The Failure returned by the final attempt
        attempts: Number of attempts made
    """

    def __init__(
        self,
        failure: "Failure",
        *,
        attempts: int,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        details["reason"] = failure.reason.value
        details["attempts"] = attempts
        if failure.error_type:
            details["error_type"] = failure.error_type

        self.failure = failure
        self.attempts = attempts

        super().__init__(failure.message, code=code, details=details)


__all__ = [
    "VolleyError",
    "VolleyConfigError",
    "RetryExhaustedError",
]
