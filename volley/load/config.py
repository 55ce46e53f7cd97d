"""
Load test configuration.

LoadTestConfig describes how many virtual users to run, for how long, how
they arrive (LoadProfile) and the pass criteria implied by the run itself.
Durations are seconds (floats); parse_duration() converts human strings
such as "30s", "5m" or "250ms".

Usage:
    from volley.load.config import LoadProfile, LoadTestConfig

    config = LoadTestConfig(users=20, duration_seconds=60, ramp_up_seconds=10)
    config = LoadTestConfig.stress(max_users=200)
    config = LoadTestConfig.from_env(profile=LoadProfile.SPIKE)
"""

from __future__ import annotations

import os
import re
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from volley.exceptions import VolleyConfigError
from volley.metrics.aggregator import PerformanceThresholds

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)\s*$", re.IGNORECASE)

_UNIT_SECONDS: Dict[str, float] = {
    "ms": 0.001,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: Union[str, int, float]) -> float:
    """
    Parse a duration into seconds.

    Accepts numbers (already seconds) and strings "<number><unit>" with unit
    ms, s, m or h.

    Raises:
        VolleyConfigError: The string has no number or an unknown unit.
    """
    if isinstance(value, bool):
        raise VolleyConfigError(
            f"Invalid duration: {value!r}", code="invalid_duration", details={"value": value}
        )
    if isinstance(value, (int, float)):
        return float(value)
    match = _DURATION_RE.match(value)
    if match is None:
        raise VolleyConfigError(
            f"Invalid duration: {value!r} (expected e.g. 250ms, 30s, 5m, 1h)",
            code="invalid_duration",
            details={"value": value},
        )
    amount, unit = match.groups()
    return float(amount) * _UNIT_SECONDS[unit.lower()]


class LoadProfile(str, Enum):
    """How virtual users arrive over the ramp-up window."""

    CONSTANT = "constant"
    RAMP_UP = "ramp_up"
    RAMP_DOWN = "ramp_down"
    SPIKE = "spike"
    STEP = "step"
    WAVE = "wave"

    @classmethod
    def parse(cls, value: Union[str, "LoadProfile"]) -> "LoadProfile":
        """Accept enum values, names and dashed forms ("ramp-up", "RAMP_UP")."""
        if isinstance(value, LoadProfile):
            return value
        normalized = value.strip().lower().replace("-", "_")
        try:
            return cls(normalized)
        except ValueError:
            raise VolleyConfigError(
                f"Unknown load profile: {value!r}",
                code="unknown_profile",
                details={"value": value, "allowed": [p.value for p in cls]},
            ) from None


class LoadTestConfig(BaseModel):
    """
    Validated load run parameters.

    Attributes:
        users: Virtual users (split across scenarios by weight).
        duration_seconds: Wall-clock length of the run.
        ramp_up_seconds: Window over which users start (profile dependent).
        requests_per_second: Optional global cap on iteration starts.
        think_time_seconds: Pause after each iteration.
        profile: Arrival pattern.
        report_interval_seconds: Progress log period.
        max_response_time_ms: Optional ceiling on the slowest iteration.
        success_rate_threshold: Minimum fraction of successful iterations.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    users: int = Field(default=1, ge=1)
    duration_seconds: float = Field(default=60.0, gt=0)
    ramp_up_seconds: float = Field(default=10.0, ge=0)
    requests_per_second: Optional[int] = Field(default=None, gt=0)
    think_time_seconds: float = Field(default=0.0, ge=0)
    profile: LoadProfile = LoadProfile.CONSTANT
    report_interval_seconds: float = Field(default=10.0, gt=0)
    max_response_time_ms: Optional[float] = Field(default=None, gt=0)
    success_rate_threshold: float = Field(default=0.95, ge=0, le=1)

    def thresholds(self) -> PerformanceThresholds:
        """Pass criteria implied by this config alone."""
        return PerformanceThresholds(
            max_response_time_ms=self.max_response_time_ms,
            min_success_rate=self.success_rate_threshold,
            max_error_rate=1.0 - self.success_rate_threshold,
        )

    @classmethod
    def from_env(cls, **overrides: Any) -> "LoadTestConfig":
        """
        Build a config from VOLLEY_LOAD_* environment variables.

        Durations accept the same strings as parse_duration(). Explicit
        keyword overrides win over the environment.
        """
        values: Dict[str, Any] = {}
        if os.getenv("VOLLEY_LOAD_USERS") is not None:
            values["users"] = int(os.environ["VOLLEY_LOAD_USERS"])
        if os.getenv("VOLLEY_LOAD_DURATION") is not None:
            values["duration_seconds"] = parse_duration(os.environ["VOLLEY_LOAD_DURATION"])
        if os.getenv("VOLLEY_LOAD_RAMP_UP") is not None:
            values["ramp_up_seconds"] = parse_duration(os.environ["VOLLEY_LOAD_RAMP_UP"])
        if os.getenv("VOLLEY_LOAD_RPS") is not None:
            values["requests_per_second"] = int(os.environ["VOLLEY_LOAD_RPS"])
        if os.getenv("VOLLEY_LOAD_THINK_TIME") is not None:
            values["think_time_seconds"] = parse_duration(os.environ["VOLLEY_LOAD_THINK_TIME"])
        if os.getenv("VOLLEY_LOAD_PROFILE") is not None:
            values["profile"] = LoadProfile.parse(os.environ["VOLLEY_LOAD_PROFILE"])
        if os.getenv("VOLLEY_LOAD_REPORT_INTERVAL") is not None:
            values["report_interval_seconds"] = parse_duration(
                os.environ["VOLLEY_LOAD_REPORT_INTERVAL"]
            )
        values.update(overrides)
        return cls(**values)

    @classmethod
    def smoke(cls) -> "LoadTestConfig":
        """A few users for a short run."""
        return cls(users=5, duration_seconds=30, ramp_up_seconds=5)

    @classmethod
    def stress(cls, max_users: int = 100) -> "LoadTestConfig":
        """Gradual increase to max_users."""
        return cls(
            users=max_users,
            duration_seconds=5 * 60,
            ramp_up_seconds=2 * 60,
            profile=LoadProfile.RAMP_UP,
        )

    @classmethod
    def spike(cls, users: int = 200) -> "LoadTestConfig":
        """All users arrive at once."""
        return cls(
            users=users,
            duration_seconds=2 * 60,
            ramp_up_seconds=5,
            profile=LoadProfile.SPIKE,
        )

    @classmethod
    def endurance(cls, users: int = 50, hours: int = 1) -> "LoadTestConfig":
        """Steady load over hours."""
        return cls(
            users=users,
            duration_seconds=hours * 3600,
            ramp_up_seconds=5 * 60,
            profile=LoadProfile.CONSTANT,
        )

    @classmethod
    def capacity(cls) -> "LoadTestConfig":
        """Step-wise increase to find the breaking point."""
        return cls(
            users=500,
            duration_seconds=10 * 60,
            ramp_up_seconds=5 * 60,
            profile=LoadProfile.STEP,
        )
