"""
Parsing of feature documents into :py:class:`.Feature` trees.
"""

import logging

from dataclasses import replace

from typing import Any, List, Mapping, Optional, Sequence, Set, Tuple, Union

from cornichon.parser import (
    ParseError,
    ParseTree,
    Parser,
    RegexExpr,
    RuleExpr,
)
from cornichon.transformer import ParseTreeTransformer
from cornichon.grammar import grammar
from cornichon.model import (
    EXAMPLE_TAGS_KEY,
    Example,
    Feature,
    ScenarioOutline,
    SimpleScenario,
    Step,
    StepKind,
    Tag,
)
from cornichon.errors import FeatureSemanticError, FeatureSyntaxError
from cornichon.error_message_generation import (
    extract_line,
    offset_to_line_and_column,
)

__all__ = [
    "FeatureTransformer",
    "merge_tags",
    "parse_feature",
    "parse_feature_bytes",
]


logger = logging.getLogger(__name__)


EXPR_EXPLANATIONS: Mapping[Union[RuleExpr, RegexExpr], Optional[str]] = {
    RuleExpr("document"): "'Feature:'",
    RuleExpr("any_scenario"): "<scenario>",
    RuleExpr("scenario"): "<scenario>",
    RuleExpr("scenario_outline"): "<scenario outline>",
    RuleExpr("step"): "<step>",
    RuleExpr("step_keyword"): "<step>",
    RuleExpr("examples"): "'Examples:'",
    RuleExpr("table_row"): "<table row>",
    RuleExpr("tag"): "<tag>",
    RuleExpr("text"): "<text>",
    RuleExpr("feature"): "'Feature:'",
    RuleExpr("end_of_file"): "<end of file>",
    RuleExpr("line_break"): "<newline>",
    RuleExpr("whitespace"): None,
    RuleExpr("newlines"): None,
    RegexExpr.literal("@"): "<tag>",
    RegexExpr.literal("Feature:"): "'Feature:'",
    RegexExpr.literal("Scenario:"): "'Scenario:'",
    RegexExpr.literal("Scenario Outline:"): "'Scenario Outline:'",
    RegexExpr.literal("Examples:"): "'Examples:'",
}
"""
Friendly names for the grammar elements which may appear in
:py:exc:`.FeatureSyntaxError` messages (see :py:attr:`.ParseError.expr_explanations`).
"""

LAST_RESORT_EXPRS: Set[Union[RuleExpr, RegexExpr]] = {
    RuleExpr("text"),
    RuleExpr("line_break"),
}
"""
Grammar elements only mentioned in error messages when nothing else was
expected (see :py:attr:`.ParseError.last_resort_exprs`).
"""


def merge_tags(
    feature_tags: Sequence[Tag], scenario_tags: Sequence[Tag]
) -> Tuple[Tag, ...]:
    """
    Return the tags which apply to a scenario: its own tags, if it has any,
    otherwise the tags of its feature.

    The two sets are never combined.
    """
    if scenario_tags:
        return tuple(scenario_tags)
    else:
        return tuple(feature_tags)


class FeatureTransformer(ParseTreeTransformer):
    """
    Transforms a parse tree produced using
    :py:data:`cornichon.grammar.grammar` into a :py:class:`.Feature`.

    A transformer instance holds state while transforming a single document
    and should not be shared between concurrent transformations.

    Parameters
    ----------
    source_name : str or None
        Used in error messages.
    """

    _last_example_keys: Optional[Tuple[str, ...]]
    """
    The most recent non-empty Examples header within the scenario outline
    currently being transformed, or None.
    """

    def __init__(self, source_name: Optional[str] = None) -> None:
        self._source_name = source_name
        self._last_example_keys = None

    def document(self, _pt: ParseTree, children: List[Any]) -> Feature:
        (feature,) = children
        return feature

    def feature(self, _pt: ParseTree, children: List[Any]) -> Feature:
        tags, (name, description), scenarios = children
        tags = tuple(tags)

        merged_scenarios = []
        for scenario in scenarios:
            if not scenario.tags and tags:
                logger.debug(
                    "Scenario %r inherits tags of feature %r", scenario.name, name
                )
                scenario = replace(scenario, tags=merge_tags(tags, scenario.tags))
            merged_scenarios.append(scenario)

        return Feature(name, description, tuple(merged_scenarios), tags)

    def scenario(self, _pt: ParseTree, children: List[Any]) -> SimpleScenario:
        tags, (name, description), steps = children
        return SimpleScenario(name, description, tuple(steps), tuple(tags))

    def scenario_outline_enter(self, _pt: ParseTree) -> None:
        self._last_example_keys = None

    def scenario_outline(self, _pt: ParseTree, children: List[Any]) -> ScenarioOutline:
        tags, (name, description), steps, example_blocks = children
        self._last_example_keys = None
        return ScenarioOutline(
            name,
            description,
            tuple(steps),
            tuple(tags),
            tuple(example for block in example_blocks for example in block),
        )

    def name(self, _pt: ParseTree, name: str) -> str:
        return name.strip()

    def description(self, _pt: ParseTree, description: str) -> str:
        return description.strip()

    def tag(self, _pt: ParseTree, children: List[Any]) -> Tag:
        (name,) = children
        return Tag(name.strip())

    def step(self, _pt: ParseTree, children: List[Any]) -> Step:
        keyword, text = children
        try:
            kind = StepKind(keyword.lower())
        except ValueError:
            raise FeatureSemanticError(
                f"Unknown step keyword {keyword!r}", self._source_name
            )
        return Step(kind, text.strip())

    def table_row(self, _pt: ParseTree, children: List[Any]) -> List[str]:
        (cells,) = children
        return [cell.strip() for cell in cells]

    def example_keys(self, _pt: ParseTree, cells: List[str]) -> List[str]:
        return cells

    def example_values(self, _pt: ParseTree, rows: List[List[str]]) -> List[str]:
        return [cell for row in rows for cell in row]

    def examples(self, _pt: ParseTree, children: List[Any]) -> Tuple[Example, ...]:
        tags, header, cells = children

        keys: Tuple[str, ...]
        if header:
            keys = tuple(header)
            self._last_example_keys = keys
        elif self._last_example_keys is not None:
            keys = self._last_example_keys
            logger.debug("Examples block with empty header reuses %r", keys)
        else:
            logger.debug("Examples block has no usable header; ignoring its rows")
            return ()

        if len(set(keys)) != len(keys):
            raise FeatureSemanticError(
                f"Examples header contains repeated columns: {list(keys)!r}",
                self._source_name,
            )
        if len(cells) % len(keys) != 0:
            raise FeatureSemanticError(
                f"Examples table has {len(cells)} cells which cannot be "
                f"divided into rows of {len(keys)} columns",
                self._source_name,
            )

        tags_string = " @".join(tag.name for tag in tags)

        examples = []
        for start in range(0, len(cells), len(keys)):
            values = dict(zip(keys, cells[start : start + len(keys)]))
            values[EXAMPLE_TAGS_KEY] = tags_string
            examples.append(Example(values))
        return tuple(examples)


def parse_feature(text: str, source_name: Optional[str] = None) -> Feature:
    """
    Parse a feature document.

    Parameters
    ----------
    text : str
        The complete document.
    source_name : str or None
        A name for the document (e.g. its filename) used in error messages.

    Returns
    -------
    feature : :py:class:`.Feature`

    Raises
    ------
    :py:exc:`.FeatureSyntaxError`
        If the document does not match the feature grammar.
    :py:exc:`.FeatureSemanticError`
        If the document matches the grammar but contains values which cannot
        be interpreted.
    """
    logger.debug("Parsing %s (%d characters)", source_name or "<string>", len(text))

    try:
        parse_tree = Parser(grammar).parse(text)
    except ParseError as exc:
        exc.expr_explanations = EXPR_EXPLANATIONS
        exc.last_resort_exprs = LAST_RESORT_EXPRS
        error = FeatureSyntaxError(
            exc.line, exc.column, exc.snippet, exc.explain(), source_name
        )
        logger.debug("Syntax error: %s", error)
        raise error from exc

    try:
        feature: Feature = FeatureTransformer(source_name).transform(parse_tree)
    except FeatureSemanticError as exc:
        logger.debug("Semantic error: %s", exc)
        raise

    logger.debug(
        "Parsed feature %r with %d scenario(s)", feature.name, len(feature.scenarios)
    )
    return feature


def parse_feature_bytes(data: bytes, source_name: Optional[str] = None) -> Feature:
    """
    Parse a UTF-8 encoded feature document. See :py:func:`parse_feature`.

    Raises
    ------
    :py:exc:`.FeatureSyntaxError`
        If the data is not valid UTF-8 or does not match the feature grammar.
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        # Report the position of the first undecodable byte within the text
        # which could be decoded
        prefix = data[: exc.start].decode("utf-8")
        line, column = offset_to_line_and_column(prefix, len(prefix))
        error = FeatureSyntaxError(
            line,
            column,
            extract_line(prefix, line),
            f"Invalid UTF-8 data: {exc.reason}",
            source_name,
        )
        logger.debug("Syntax error: %s", error)
        raise error from exc

    return parse_feature(text, source_name)
