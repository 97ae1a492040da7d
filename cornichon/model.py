"""
The immutable document tree produced by parsing a feature document.
"""

from dataclasses import dataclass

from enum import Enum

from types import MappingProxyType

from typing import Iterator, Mapping, Optional, Tuple, Union

__all__ = [
    "EXAMPLE_TAGS_KEY",
    "Tag",
    "StepKind",
    "Step",
    "Example",
    "Scenario",
    "SimpleScenario",
    "ScenarioOutline",
    "AnyScenario",
    "Feature",
]


EXAMPLE_TAGS_KEY = "__EXAMPLE_TAGS"
"""
The reserved :py:class:`Example` key holding the tags of the Examples block
the example came from, rendered as a single string (e.g. ``"smoke @slow"``).
"""


@dataclass(frozen=True)
class Tag:
    """A tag (e.g. ``@slow``) attached to a feature, scenario or Examples block."""

    name: str
    """The tag name, without the leading ``@``."""


class StepKind(Enum):
    """The keyword introducing a :py:class:`Step`."""

    given = "given"
    when = "when"
    then = "then"
    and_ = "and"
    but = "but"


@dataclass(frozen=True)
class Step:
    """A single step line within a scenario."""

    kind: StepKind
    text: str


@dataclass(frozen=True)
class Example:
    """
    One row of a Scenario Outline's Examples table.

    Parameters
    ----------
    values : {key: value, ...}
        The cell values keyed by column header, in column order, plus the
        :py:data:`EXAMPLE_TAGS_KEY` entry.
    """

    values: Mapping[str, str]

    def __init__(self, values: Mapping[str, str]) -> None:
        object.__setattr__(self, "values", MappingProxyType(dict(values)))

    def __getitem__(self, key: str) -> str:
        return self.values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Example):
            return NotImplemented
        return list(self.values.items()) == list(other.values.items())

    def __hash__(self) -> int:
        return hash(tuple(self.values.items()))

    def __repr__(self) -> str:
        return f"Example({dict(self.values)!r})"

    @property
    def tags(self) -> str:
        """The rendered tags of the Examples block this row came from."""
        return self.values[EXAMPLE_TAGS_KEY]

    @property
    def cells(self) -> Mapping[str, str]:
        """The cell values, without the :py:data:`EXAMPLE_TAGS_KEY` entry."""
        return {
            key: value
            for key, value in self.values.items()
            if key != EXAMPLE_TAGS_KEY
        }


@dataclass(frozen=True)
class Scenario:
    """Fields common to both kinds of scenario. Abstract base class."""

    name: str
    description: Optional[str]
    steps: Tuple[Step, ...]
    tags: Tuple[Tag, ...]


@dataclass(frozen=True)
class SimpleScenario(Scenario):
    """A ``Scenario:``."""


@dataclass(frozen=True)
class ScenarioOutline(Scenario):
    """
    A ``Scenario Outline:``. The examples of all of its Examples blocks are
    concatenated, in order.
    """

    examples: Tuple[Example, ...] = ()


AnyScenario = Union[SimpleScenario, ScenarioOutline]


@dataclass(frozen=True)
class Feature:
    """The root of a parsed feature document."""

    name: str
    description: Optional[str]
    scenarios: Tuple[AnyScenario, ...]
    tags: Tuple[Tag, ...]
