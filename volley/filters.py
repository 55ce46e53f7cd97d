"""
Scenario selection.

A TestFilter is a pure predicate over a scenario's name and tags. All
configured criteria are ANDed; an empty criterion does not constrain.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional, Pattern, Union

from volley.models import ScenarioRef


def _split(value: Optional[str]) -> FrozenSet[str]:
    if not value:
        return frozenset()
    return frozenset(part.strip() for part in value.split(",") if part.strip())


@dataclass(frozen=True)
class TestFilter:
    """
    Decides which scenarios take part in a run.

    A scenario matches iff:
    - pattern is unset, or the whole name matches it
    - tags is empty, or the scenario has at least one of them
    - exclude_tags is empty, or the scenario has none of them
    - scenario_names is empty, or the name is one of them

    Example:
        TestFilter(tags={"smoke"}, exclude_tags={"slow"})
        TestFilter(pattern=r"checkout-.*")
    """

    # Not a pytest test class.
    __test__ = False

    tags: FrozenSet[str] = field(default_factory=frozenset)
    exclude_tags: FrozenSet[str] = field(default_factory=frozenset)
    scenario_names: FrozenSet[str] = field(default_factory=frozenset)
    pattern: Optional[Union[str, Pattern[str]]] = None

    def __post_init__(self) -> None:
        # Accept any iterable of strings and plain-string patterns.
        object.__setattr__(self, "tags", frozenset(self.tags))
        object.__setattr__(self, "exclude_tags", frozenset(self.exclude_tags))
        object.__setattr__(self, "scenario_names", frozenset(self.scenario_names))
        if isinstance(self.pattern, str):
            object.__setattr__(self, "pattern", re.compile(self.pattern))

    @classmethod
    def from_strings(
        cls,
        *,
        tags: Optional[str] = None,
        exclude_tags: Optional[str] = None,
        scenarios: Optional[str] = None,
        pattern: Optional[str] = None,
    ) -> "TestFilter":
        """Build a filter from comma separated flag values."""
        return cls(
            tags=_split(tags),
            exclude_tags=_split(exclude_tags),
            scenario_names=_split(scenarios),
            pattern=pattern or None,
        )

    def matches(self, scenario: ScenarioRef) -> bool:
        if self.pattern is not None and not self.pattern.fullmatch(scenario.name):
            return False

        if self.scenario_names and scenario.name not in self.scenario_names:
            return False

        if self.tags and self.tags.isdisjoint(scenario.tags):
            return False

        if self.exclude_tags and not self.exclude_tags.isdisjoint(scenario.tags):
            return False

        return True

    def select(self, scenarios: Iterable[ScenarioRef]) -> list[ScenarioRef]:
        return [s for s in scenarios if self.matches(s)]
