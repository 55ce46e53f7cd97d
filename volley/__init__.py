"""
volley - Orchestrate functional test batches and load runs.

Functional batches:
    from volley import ExecutionConfig, FunctionalExecutor, ScenarioDefinition

    executor = FunctionalExecutor(ExecutionConfig(parallel=True, max_parallel=4))
    summary = executor.run_sync([
        ScenarioDefinition.single("login", check_login, tags={"smoke"}),
        ScenarioDefinition.single("search", check_search),
    ])
    print(summary.passed, summary.failed)

Load runs:
    from volley import LoadGenerator, LoadTestConfig

    generator = LoadGenerator(LoadTestConfig.smoke())
    results = generator.run_sync({"browse": WeightedScenario(browse)})
    print(results.summary())

Advanced usage via submodules:
    from volley.retry import RetryPolicy, with_retry
    from volley.load.profiles import build_schedule
    from volley.metrics import MetricsRecorder, aggregate
"""

# =============================================================================
# Functional execution
# =============================================================================
from volley.config import ExecutionConfig, RetryConfig
from volley.executor import FunctionalExecutor, ScenarioDefinition, Step
from volley.filters import TestFilter
from volley.listeners import (
    ExecutionListener,
    ListenerDispatcher,
    LoggingListener,
    ProgressListener,
)

# =============================================================================
# Results - Immutable records handed to report layers
# =============================================================================
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

# =============================================================================
# Load testing
# =============================================================================
from volley.load import (
    LoadGenerator,
    LoadProfile,
    LoadProgress,
    LoadTestConfig,
    LoadTestFile,
    WeightedScenario,
    load_config_file,
    parse_duration,
)
from volley.metrics import (
    LoadTestResults,
    PerformanceThresholds,
    RequestMetric,
    StatisticsAggregator,
    aggregate,
)

# =============================================================================
# Concurrency, retry and cancellation primitives
# =============================================================================
from volley.cancellation import CancellationToken
from volley.concurrency import ConcurrencyLimiter
from volley.retry import RetryPolicy, default_retryable, with_retry
from volley.retries import RetryTracker, get_retry_tracker, retry_tracking_context

# =============================================================================
# Typed exceptions - For structured error handling
# =============================================================================
from volley.exceptions import RetryExhaustedError, VolleyConfigError, VolleyError

__version__ = "0.1.0"

__all__ = [
    # Functional execution
    "ExecutionConfig",
    "RetryConfig",
    "FunctionalExecutor",
    "ScenarioDefinition",
    "Step",
    "TestFilter",
    "ExecutionListener",
    "ListenerDispatcher",
    "LoggingListener",
    "ProgressListener",
    # Results
    "ExecutionOutcome",
    "ExecutionStatus",
    "ExecutionSummary",
    "Failure",
    "FailureReason",
    "ScenarioRef",
    "StepOutcome",
    "Success",
    # Load testing
    "LoadGenerator",
    "LoadProfile",
    "LoadProgress",
    "LoadTestConfig",
    "LoadTestFile",
    "WeightedScenario",
    "load_config_file",
    "parse_duration",
    "LoadTestResults",
    "PerformanceThresholds",
    "RequestMetric",
    "StatisticsAggregator",
    "aggregate",
    # Primitives
    "CancellationToken",
    "ConcurrencyLimiter",
    "RetryPolicy",
    "default_retryable",
    "with_retry",
    "RetryTracker",
    "get_retry_tracker",
    "retry_tracking_context",
    # Exceptions
    "VolleyError",
    "VolleyConfigError",
    "RetryExhaustedError",
]
