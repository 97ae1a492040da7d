"""
The grammar for Gherkin-style feature documents, built directly from
:py:mod:`cornichon.parser` expressions.

In summary, a document consists of::

    @tag
    Feature: <name>
      <description lines...>

      @tag
      Scenario: <name>
        <description lines...>
        Given <text>
        When <text>
        Then <text>

      Scenario Outline: <name>
        Given <text>

        @tag
        Examples:
          | <key> | <key> |
          | <value> | <value> |

Inline :py:class:`.LabelExpr` labels used by this grammar (in addition to its
rule names) are ``name``, ``description``, ``example_keys`` and
``example_values``.
"""

import re

from cornichon.parser import (
    AltExpr,
    ConcatExpr,
    StarExpr,
    LookaheadExpr,
    RuleExpr,
    RegexExpr,
    MaybeExpr,
    PlusExpr,
    DiscardExpr,
    FlattenExpr,
    LabelExpr,
    ReplaceExpr,
    InterleavedExpr,
    Grammar,
)

__all__ = [
    "NEWLINE_CHARS",
    "STEP_KEYWORDS",
    "grammar",
]


NEWLINE_CHARS = "\n\r\v\f\x85\u2028\u2029"
"""Characters which end a line."""

STEP_KEYWORDS = ("Given", "When", "Then", "And", "But")
"""
The keywords which may start a step. These are matched case-insensitively.
"""

_newline_class = "[{}]".format("".join(re.escape(char) for char in NEWLINE_CHARS))


def _name_and_description(keyword: str, description_stop: RuleExpr) -> ConcatExpr:
    """
    The header shared by features, scenarios and scenario outlines: a keyword
    followed by a name on the same line and then any number of description
    lines. Description lines end when a line starts with something matched by
    ``description_stop``.
    """
    return ConcatExpr(
        (
            LabelExpr(
                "name",
                FlattenExpr(
                    ConcatExpr(
                        (
                            DiscardExpr(RuleExpr("whitespace")),
                            DiscardExpr(RegexExpr.literal(keyword)),
                            DiscardExpr(RuleExpr("whitespace")),
                            RuleExpr("text"),
                            DiscardExpr(RuleExpr("newlines")),
                        )
                    )
                ),
            ),
            MaybeExpr(
                LabelExpr(
                    "description",
                    FlattenExpr(
                        PlusExpr(
                            ConcatExpr(
                                (
                                    LookaheadExpr(description_stop),
                                    DiscardExpr(RuleExpr("whitespace")),
                                    RuleExpr("text"),
                                    ReplaceExpr(RuleExpr("line_break"), " "),
                                    DiscardExpr(RuleExpr("newlines")),
                                )
                            )
                        )
                    ),
                )
            ),
        )
    )


grammar: Grammar = Grammar(
    start_rule="document",
    rules={
        "document": ConcatExpr(
            (
                DiscardExpr(RuleExpr("newlines")),
                RuleExpr("feature"),
                DiscardExpr(RuleExpr("newlines")),
                DiscardExpr(RuleExpr("whitespace")),
                DiscardExpr(RuleExpr("end_of_file")),
            )
        ),
        "feature": ConcatExpr(
            (
                StarExpr(RuleExpr("tag")),
                _name_and_description("Feature:", RuleExpr("feature_description_stop")),
                PlusExpr(RuleExpr("any_scenario")),
            )
        ),
        "feature_description_stop": ConcatExpr(
            (
                RuleExpr("whitespace"),
                AltExpr(
                    (
                        RegexExpr.literal("Scenario:"),
                        RegexExpr.literal("Scenario Outline:"),
                        ConcatExpr((RegexExpr.literal("@"), RuleExpr("text"))),
                    )
                ),
            )
        ),
        # NB: Order matters: 'Scenario:' never matches 'Scenario Outline:'
        # but simple scenarios are always tried first.
        "any_scenario": AltExpr(
            (RuleExpr("scenario"), RuleExpr("scenario_outline"))
        ),
        "scenario": ConcatExpr(
            (
                StarExpr(RuleExpr("tag")),
                _name_and_description(
                    "Scenario:", RuleExpr("scenario_description_stop")
                ),
                PlusExpr(RuleExpr("step")),
            )
        ),
        "scenario_outline": ConcatExpr(
            (
                StarExpr(RuleExpr("tag")),
                _name_and_description(
                    "Scenario Outline:", RuleExpr("scenario_description_stop")
                ),
                PlusExpr(RuleExpr("step")),
                PlusExpr(RuleExpr("examples")),
            )
        ),
        "scenario_description_stop": ConcatExpr(
            (RuleExpr("whitespace"), RuleExpr("step_keyword"))
        ),
        "tag": ConcatExpr(
            (
                DiscardExpr(RuleExpr("whitespace")),
                DiscardExpr(RegexExpr.literal("@")),
                FlattenExpr(RegexExpr.any_except("@" + NEWLINE_CHARS, repeat="+")),
                DiscardExpr(RuleExpr("newlines")),
            )
        ),
        "step": ConcatExpr(
            (
                DiscardExpr(RuleExpr("whitespace")),
                RuleExpr("step_keyword"),
                DiscardExpr(RuleExpr("whitespace")),
                RuleExpr("text"),
                DiscardExpr(RuleExpr("newlines")),
            )
        ),
        "step_keyword": AltExpr(
            tuple(
                RegexExpr.literal(keyword, ignore_case=True)
                for keyword in STEP_KEYWORDS
            )
        ),
        "examples": ConcatExpr(
            (
                StarExpr(RuleExpr("tag")),
                DiscardExpr(RuleExpr("whitespace")),
                DiscardExpr(RegexExpr.literal("Examples:")),
                DiscardExpr(RuleExpr("newlines")),
                LabelExpr("example_keys", RuleExpr("table_row")),
                LabelExpr("example_values", PlusExpr(RuleExpr("table_row"))),
                DiscardExpr(RuleExpr("newlines")),
            )
        ),
        "table_row": ConcatExpr(
            (
                DiscardExpr(RuleExpr("whitespace")),
                InterleavedExpr(
                    DiscardExpr(RegexExpr.literal("|")), RuleExpr("text")
                ),
                DiscardExpr(RuleExpr("newlines")),
            )
        ),
        "text": FlattenExpr(RegexExpr.any_except("|" + NEWLINE_CHARS, repeat="+")),
        "whitespace": RegexExpr(r"[ \t]*"),
        # Any number of line endings, including blank (or whitespace-only)
        # lines between them
        "newlines": RegexExpr(r"(?:[ \t]*{})*".format(_newline_class)),
        "line_break": RegexExpr(r"\r\n|{}".format(_newline_class)),
        "end_of_file": LookaheadExpr(RegexExpr(r".")),
    },
)
"""
The :py:class:`.Grammar` for feature documents. The start rule is
``document``.
"""
