"""
Functional Batch Demo: run scenarios with retries, fail-fast and progress output.

This example demonstrates how to:
1. Define scenarios from plain and async functions
2. Select scenarios by tag
3. Retry flaky scenarios and stop admitting work after a failure

Run:
    VOLLEY_PARALLEL=true VOLLEY_MAX_RETRIES=2 python examples/functional_batch_demo.py
"""

import asyncio
import logging
import random
import sys
from pathlib import Path

from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))
ROOT = Path(__file__).resolve().parents[1]
load_dotenv(ROOT / ".env")

from volley import (  # noqa: E402
    ExecutionConfig,
    FunctionalExecutor,
    LoggingListener,
    ProgressListener,
    RetryConfig,
    ScenarioDefinition,
    ScenarioRef,
    Step,
    TestFilter,
)


def check_health():
    assert random.random() > 0.05, "health endpoint returned 503"


async def check_search():
    await asyncio.sleep(0.05)


def flaky_checkout():
    if random.random() < 0.5:
        raise ConnectionError("connection reset by peer")


def build_scenarios():
    cart: list[str] = []
    return [
        ScenarioDefinition.single("health", check_health, tags={"smoke"}),
        ScenarioDefinition.single("search", check_search, tags={"smoke", "catalog"}),
        ScenarioDefinition(
            ref=ScenarioRef(name="checkout", tags=frozenset({"smoke", "orders"})),
            steps=(
                Step("add-to-cart", lambda: cart.append("sku-1")),
                Step("pay", flaky_checkout),
            ),
            after=(cart.clear,),
        ),
        ScenarioDefinition.single("reindex", check_search, tags={"slow"}),
    ]


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    scenarios = build_scenarios()
    selection = TestFilter(tags={"smoke"}, exclude_tags={"slow"})
    selected = selection.select(s.ref for s in scenarios)

    config = ExecutionConfig.from_env(
        retry=RetryConfig.from_env(initial_delay_ms=100),
        listeners=[ProgressListener(len(selected), verbose=True), LoggingListener()],
    )
    summary = FunctionalExecutor(config).run_sync(scenarios, selection)

    for outcome in summary.failures():
        print(f"{outcome.scenario_name}: {outcome.error.message} after {outcome.attempts} attempt(s)")
    return 0 if summary.success else 1


if __name__ == "__main__":
    raise SystemExit(main())
