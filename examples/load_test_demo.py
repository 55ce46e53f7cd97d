"""
Load Test Demo: drive weighted scenarios and check thresholds.

This example demonstrates how to:
1. Load run parameters and thresholds from a properties file
2. Split virtual users across weighted scenarios
3. Print the results and fail when thresholds are missed

Run:
    python examples/load_test_demo.py examples/checkout.properties
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

from volley import LoadGenerator, WeightedScenario, load_config_file  # noqa: E402


class FakeResponse:
    def __init__(self, status_code: int) -> None:
        self.status_code = status_code


async def browse():
    await asyncio.sleep(random.uniform(0.01, 0.05))
    return FakeResponse(200)


async def checkout():
    await asyncio.sleep(random.uniform(0.05, 0.2))
    if random.random() < 0.02:
        raise ConnectionError("HTTP 503")
    return FakeResponse(201)


WORK = {"browse": browse, "checkout": checkout}


def main(path: str) -> int:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    load_file = load_config_file(path)
    print(f"{load_file.name}: {load_file.description or ''}")

    scenarios = {
        name: WeightedScenario(WORK[name], weight=weight)
        for name, weight in (load_file.scenarios or {"browse": 1.0}).items()
    }
    results = LoadGenerator(load_file.config).run_sync(scenarios)
    print(results.summary())

    violations = results.threshold_violations(load_file.effective_thresholds())
    for violation in violations:
        print(f"FAILED: {violation}")
    return 1 if violations else 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1] if len(sys.argv) > 1 else str(ROOT / "examples" / "checkout.properties")))
