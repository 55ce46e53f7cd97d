"""
Load testing: virtual users, traffic profiles and pacing.

Usage:
    from volley.load import LoadGenerator, LoadTestConfig, load_config_file

    load_file = load_config_file("checkout.properties")
    generator = LoadGenerator(load_file.config)
    results = generator.run_sync({name: WeightedScenario(work[name], weight)
                                  for name, weight in load_file.scenarios.items()})
    assert results.meets_thresholds(load_file.effective_thresholds())
"""

from volley.load.config import LoadProfile, LoadTestConfig, parse_duration
from volley.load.generator import (
    LoadGenerator,
    LoadProgress,
    WeightedScenario,
    allocate_users,
)
from volley.load.loader import LoadTestFile, load_config_file, load_config_text
from volley.load.pacing import RequestPacer
from volley.load.profiles import UserSlot, build_schedule

__all__ = [
    "LoadProfile",
    "LoadTestConfig",
    "parse_duration",
    "LoadGenerator",
    "LoadProgress",
    "WeightedScenario",
    "allocate_users",
    "LoadTestFile",
    "load_config_file",
    "load_config_text",
    "RequestPacer",
    "UserSlot",
    "build_schedule",
]
