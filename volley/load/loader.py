"""
Properties-style load test files.

A load test file is a flat `key=value` document with `#` comments:

    name=Checkout load
    description=Peak hour traffic
    load.users=50
    load.duration=5m
    load.rampUp=30s
    load.profile=ramp_up
    load.requestsPerSecond=200
    load.thinkTime=500ms
    thresholds.p95ResponseTime=800ms
    thresholds.maxErrorRate=0.01
    scenario.browse.weight=3
    scenario.checkout.weight=1
    scenario.admin.enabled=false

Parsing is done by python-dotenv; this module only maps keys onto
LoadTestConfig and PerformanceThresholds.
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional, TypeVar, Union

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field

from volley.exceptions import VolleyConfigError
from volley.load.config import LoadProfile, LoadTestConfig, parse_duration
from volley.metrics.aggregator import PerformanceThresholds

logger = logging.getLogger(__name__)

T = TypeVar("T")

_LOAD_DURATIONS = {
    "load.duration": "duration_seconds",
    "load.rampUp": "ramp_up_seconds",
    "load.thinkTime": "think_time_seconds",
    "load.reportInterval": "report_interval_seconds",
}

_THRESHOLD_DURATIONS = {
    "thresholds.maxResponseTime": "max_response_time_ms",
    "thresholds.p50ResponseTime": "p50_response_time_ms",
    "thresholds.p90ResponseTime": "p90_response_time_ms",
    "thresholds.p95ResponseTime": "p95_response_time_ms",
    "thresholds.p99ResponseTime": "p99_response_time_ms",
}

_DEFAULT_DURATION = "1m"
_DEFAULT_RAMP_UP = "10s"


class LoadTestFile(BaseModel):
    """
    Parsed load test file.

    Attributes:
        name: Display name ("Load Test" when absent).
        description: Optional free text.
        config: Run parameters.
        thresholds: Explicit pass criteria, if the file declares any.
        scenarios: Weight per enabled scenario name, in file order.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = "Load Test"
    description: Optional[str] = None
    config: LoadTestConfig
    thresholds: Optional[PerformanceThresholds] = None
    scenarios: Dict[str, float] = Field(default_factory=dict)

    def effective_thresholds(self) -> PerformanceThresholds:
        """Declared thresholds, or the ones implied by the load config."""
        return self.thresholds or self.config.thresholds()


def _convert(key: str, raw: str, parse: Callable[[str], T]) -> T:
    try:
        return parse(raw)
    except VolleyConfigError as exc:
        raise VolleyConfigError(
            f"Invalid value for {key}: {exc.message}", code=exc.code, details={"key": key, "value": raw}
        ) from exc
    except ValueError as exc:
        raise VolleyConfigError(
            f"Invalid value for {key}: {raw!r}",
            code="invalid_value",
            details={"key": key, "value": raw},
        ) from exc


def _parse_bool(raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ValueError(raw)


def _load_config(props: Mapping[str, str]) -> LoadTestConfig:
    values: Dict[str, object] = {
        "duration_seconds": _convert(
            "load.duration", props.get("load.duration", _DEFAULT_DURATION), parse_duration
        ),
        "ramp_up_seconds": _convert(
            "load.rampUp", props.get("load.rampUp", _DEFAULT_RAMP_UP), parse_duration
        ),
    }
    for key, field_name in _LOAD_DURATIONS.items():
        if key in props and field_name not in values:
            values[field_name] = _convert(key, props[key], parse_duration)

    if "load.users" in props:
        values["users"] = _convert("load.users", props["load.users"], int)
    if "load.profile" in props:
        values["profile"] = _convert("load.profile", props["load.profile"], LoadProfile.parse)
    if "load.requestsPerSecond" in props:
        values["requests_per_second"] = _convert(
            "load.requestsPerSecond", props["load.requestsPerSecond"], int
        )
    if "load.maxResponseTime" in props:
        values["max_response_time_ms"] = (
            _convert("load.maxResponseTime", props["load.maxResponseTime"], parse_duration)
            * 1000.0
        )
    if "load.successRateThreshold" in props:
        values["success_rate_threshold"] = _convert(
            "load.successRateThreshold", props["load.successRateThreshold"], float
        )
    return LoadTestConfig(**values)


def _thresholds(props: Mapping[str, str]) -> Optional[PerformanceThresholds]:
    if not any(key.startswith("thresholds.") for key in props):
        return None

    values: Dict[str, object] = {}
    for key, field_name in _THRESHOLD_DURATIONS.items():
        if key in props:
            values[field_name] = _convert(key, props[key], parse_duration) * 1000.0
    if "thresholds.minRequestsPerSecond" in props:
        values["min_requests_per_second"] = _convert(
            "thresholds.minRequestsPerSecond", props["thresholds.minRequestsPerSecond"], float
        )
    if "thresholds.maxErrorRate" in props:
        values["max_error_rate"] = _convert(
            "thresholds.maxErrorRate", props["thresholds.maxErrorRate"], float
        )
    if "thresholds.minSuccessRate" in props:
        values["min_success_rate"] = _convert(
            "thresholds.minSuccessRate", props["thresholds.minSuccessRate"], float
        )
    return PerformanceThresholds(**values)


def _scenarios(props: Mapping[str, str]) -> Dict[str, float]:
    weights: Dict[str, float] = {}
    disabled = set()
    for key, raw in props.items():
        if not key.startswith("scenario."):
            continue
        name, _, attribute = key[len("scenario."):].rpartition(".")
        if not name:
            raise VolleyConfigError(
                f"Scenario keys look like scenario.<name>.weight, got {key}",
                code="invalid_key",
                details={"key": key},
            )
        if attribute == "weight":
            weights[name] = _convert(key, raw, float)
        elif attribute == "enabled":
            if not _convert(key, raw, _parse_bool):
                disabled.add(name)
            else:
                weights.setdefault(name, 1.0)
        else:
            logger.warning("Ignoring unknown scenario attribute %s", key)
    return {name: weight for name, weight in weights.items() if name not in disabled}


def parse_load_config(props: Mapping[str, Optional[str]]) -> LoadTestFile:
    """
    Map parsed properties onto a LoadTestFile.

    Raises:
        VolleyConfigError: A value cannot be parsed or fails validation.
    """
    cleaned = {key: value.strip() for key, value in props.items() if value is not None}
    try:
        return LoadTestFile(
            name=cleaned.get("name", "Load Test"),
            description=cleaned.get("description"),
            config=_load_config(cleaned),
            thresholds=_thresholds(cleaned),
            scenarios=_scenarios(cleaned),
        )
    except VolleyConfigError:
        raise
    except ValueError as exc:
        raise VolleyConfigError(
            f"Invalid load test configuration: {exc}", code="invalid_load_config"
        ) from exc


def load_config_text(text: str) -> LoadTestFile:
    """Parse a load test document held in memory."""
    return parse_load_config(dotenv_values(stream=io.StringIO(text)))


def load_config_file(path: Union[str, Path]) -> LoadTestFile:
    """
    Read and parse a load test file.

    Raises:
        VolleyConfigError: The file is missing or invalid.
    """
    path = Path(path)
    if not path.is_file():
        raise VolleyConfigError(
            f"Load test file not found: {path}",
            code="config_not_found",
            details={"path": str(path)},
        )
    logger.debug("Loading load test file %s", path)
    return parse_load_config(dotenv_values(path))
