import pytest  # type: ignore

import logging

from typing import List, Optional, Sequence

from cornichon.parser import ParseError

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

from cornichon.errors import (
    GherkinError,
    FeatureSyntaxError,
    FeatureSemanticError,
)

from cornichon.feature_parser import (
    FeatureTransformer,
    merge_tags,
    parse_feature,
    parse_feature_bytes,
)


def tags(*names: str) -> List[Tag]:
    return [Tag(name) for name in names]


def tag_names(tags: Sequence[Tag]) -> List[str]:
    return [tag.name for tag in tags]


def test_minimal_feature() -> None:
    assert parse_feature("Feature: F\nScenario: S\nGiven x\n") == Feature(
        name="F",
        description=None,
        scenarios=(
            SimpleScenario(
                name="S",
                description=None,
                steps=(Step(StepKind.given, "x"),),
                tags=(),
            ),
        ),
        tags=(),
    )


def test_complete_feature() -> None:
    feature = parse_feature(
        "@billing @ui\n"
        "Feature: Invoices\n"
        "  Customers receive an invoice\n"
        "  for each order.\n"
        "\n"
        "  Scenario: Paying an invoice\n"
        "    Invoices may be paid\n"
        "    online.\n"
        "    Given an unpaid invoice\n"
        "    When I pay it\n"
        "    Then it is marked as paid\n"
        "    But no receipt is sent\n"
        "\n"
        "  @outline\n"
        "  Scenario Outline: Discounts\n"
        "    Given an order worth <total>\n"
        "    Then the discount is <discount>\n"
        "    And the invoice shows <discount>\n"
        "\n"
        "    Examples:\n"
        "      | total | discount |\n"
        "      | 10    | 0        |\n"
        "      | 100   | 5        |\n"
    )

    assert feature.name == "Invoices"
    assert feature.description == "Customers receive an invoice for each order."
    assert tag_names(feature.tags) == ["billing", "ui"]

    simple, outline = feature.scenarios

    assert isinstance(simple, SimpleScenario)
    assert simple.name == "Paying an invoice"
    assert simple.description == "Invoices may be paid online."
    assert simple.steps == (
        Step(StepKind.given, "an unpaid invoice"),
        Step(StepKind.when, "I pay it"),
        Step(StepKind.then, "it is marked as paid"),
        Step(StepKind.but, "no receipt is sent"),
    )
    assert tag_names(simple.tags) == ["billing", "ui"]

    assert isinstance(outline, ScenarioOutline)
    assert outline.name == "Discounts"
    assert outline.description is None
    assert outline.steps == (
        Step(StepKind.given, "an order worth <total>"),
        Step(StepKind.then, "the discount is <discount>"),
        Step(StepKind.and_, "the invoice shows <discount>"),
    )
    assert tag_names(outline.tags) == ["outline"]
    assert outline.examples == (
        Example({"total": "10", "discount": "0", EXAMPLE_TAGS_KEY: ""}),
        Example({"total": "100", "discount": "5", EXAMPLE_TAGS_KEY: ""}),
    )


class TestTags:
    def test_scenario_tags_under_untagged_feature(self) -> None:
        feature = parse_feature("Feature: F\n@a\n@b\nScenario: S\nGiven x\n")
        assert tag_names(feature.scenarios[0].tags) == ["a", "b"]

    def test_scenario_tags_replace_feature_tags(self) -> None:
        feature = parse_feature("@f\nFeature: F\n@a\n@b\nScenario: S\nGiven x\n")
        assert tag_names(feature.tags) == ["f"]
        assert tag_names(feature.scenarios[0].tags) == ["a", "b"]

    def test_untagged_scenario_inherits_feature_tags(self) -> None:
        feature = parse_feature("@f\nFeature: F\nScenario: S\nGiven x\n")
        assert tag_names(feature.scenarios[0].tags) == ["f"]

    def test_untagged_outline_inherits_feature_tags(self) -> None:
        feature = parse_feature(
            "@f\nFeature: F\n"
            "Scenario Outline: S\nGiven <x>\nExamples:\n| x |\n| 1 |\n"
        )
        assert tag_names(feature.scenarios[0].tags) == ["f"]

    def test_several_tags_on_one_line(self) -> None:
        feature = parse_feature("@a @b  @c\nFeature: F\nScenario: S\nGiven x\n")
        assert tag_names(feature.tags) == ["a", "b", "c"]

    def test_tags_are_trimmed_and_not_deduplicated(self) -> None:
        feature = parse_feature("  @a  \n@a\nFeature: F\nScenario: S\nGiven x\n")
        assert tag_names(feature.tags) == ["a", "a"]

    def test_tag_names_may_contain_punctuation(self) -> None:
        feature = parse_feature("@issue:123 @wip-2\nFeature: F\nScenario: S\nGiven x\n")
        assert tag_names(feature.tags) == ["issue:123", "wip-2"]

    @pytest.mark.parametrize(
        "feature_tags, scenario_tags, exp",
        [
            ([], [], []),
            (["f"], [], ["f"]),
            ([], ["s"], ["s"]),
            (["f"], ["s"], ["s"]),
            (["f", "g"], ["s", "t"], ["s", "t"]),
        ],
    )
    def test_merge_tags(
        self, feature_tags: List[str], scenario_tags: List[str], exp: List[str]
    ) -> None:
        assert merge_tags(tags(*feature_tags), tags(*scenario_tags)) == tuple(
            tags(*exp)
        )


class TestDescriptions:
    @pytest.mark.parametrize(
        "description_lines, exp",
        [
            # Absent
            ([], None),
            # Single line
            (["  Hello there"], "Hello there"),
            # Several lines (with blank lines) are joined with single spaces
            (["  Hello", "", "  there", "  world  "], "Hello there world"),
            # Lines which merely contain keywords
            (["  See Scenario: below"], "See Scenario: below"),
            # Lines starting with step keywords are fine in features
            (["  Given the above"], "Given the above"),
        ],
    )
    def test_feature_description(
        self, description_lines: List[str], exp: Optional[str]
    ) -> None:
        feature = parse_feature(
            "Feature: F\n"
            + "".join(line + "\n" for line in description_lines)
            + "Scenario: S\nGiven x\n"
        )
        assert feature.description == exp

    def test_feature_description_ends_at_tag(self) -> None:
        feature = parse_feature(
            "Feature: F\n  About F\n  @tagged\n  Scenario: S\n  Given x\n"
        )
        assert feature.description == "About F"
        assert tag_names(feature.scenarios[0].tags) == ["tagged"]

    def test_feature_description_ends_at_outline(self) -> None:
        feature = parse_feature(
            "Feature: F\n  About F\n"
            "Scenario Outline: S\nGiven <x>\nExamples:\n| x |\n| 1 |\n"
        )
        assert feature.description == "About F"

    def test_scenario_description_ends_at_step(self) -> None:
        feature = parse_feature(
            "Feature: F\nScenario: S\n  About S\n  in detail\n  when x\n"
        )
        (scenario,) = feature.scenarios
        assert scenario.description == "About S in detail"
        assert scenario.steps == (Step(StepKind.when, "x"),)

    def test_names_are_trimmed(self) -> None:
        feature = parse_feature("Feature:    F   \nScenario:S \t\nGiven x\n")
        assert feature.name == "F"
        assert feature.scenarios[0].name == "S"


class TestSteps:
    @pytest.mark.parametrize(
        "line, exp",
        [
            ("Given x", Step(StepKind.given, "x")),
            ("When x", Step(StepKind.when, "x")),
            ("Then x", Step(StepKind.then, "x")),
            ("And x", Step(StepKind.and_, "x")),
            ("But x", Step(StepKind.but, "x")),
            # Case insensitive
            ("GIVEN x", Step(StepKind.given, "x")),
            ("then x", Step(StepKind.then, "x")),
            # Text is trimmed
            ("  Given    lots of space   ", Step(StepKind.given, "lots of space")),
            ("\tWhen\tx", Step(StepKind.when, "x")),
            # Placeholders and punctuation are kept verbatim
            ('Given "<name>" has 3 items: a, b', Step(StepKind.given, '"<name>" has 3 items: a, b')),
        ],
    )
    def test_step(self, line: str, exp: Step) -> None:
        feature = parse_feature(f"Feature: F\nScenario: S\n{line}\n")
        assert feature.scenarios[0].steps == (exp,)

    def test_and_and_but_keep_their_kinds(self) -> None:
        feature = parse_feature("Feature: F\nScenario: S\nThen a\nAnd b\nBut c\n")
        assert [step.kind for step in feature.scenarios[0].steps] == [
            StepKind.then,
            StepKind.and_,
            StepKind.but,
        ]

    def test_unknown_keyword_rejected(self) -> None:
        class BrokenTransformer(FeatureTransformer):
            # Simulate a grammar accepting a keyword which has no StepKind
            def step_keyword(self, _pt: object, keyword: str) -> str:
                return "Suppose"

        from cornichon.parser import Parser
        from cornichon.grammar import grammar

        parse_tree = Parser(grammar).parse("Feature: F\nScenario: S\nGiven x\n")
        with pytest.raises(FeatureSemanticError) as exc_info:
            BrokenTransformer("broken.feature").transform(parse_tree)
        assert "Suppose" in str(exc_info.value)
        assert exc_info.value.source_name == "broken.feature"


def outline_document(*example_blocks: str) -> str:
    return "Feature: F\nScenario Outline: O\n  Given <a>\n" + "".join(example_blocks)


class TestExamples:
    def test_cells_are_trimmed(self) -> None:
        feature = parse_feature(
            outline_document("  Examples:\n    | a  | b |\n    |  1 |2|\n")
        )
        (example,) = feature.scenarios[0].examples
        assert example.cells == {"a": "1", "b": "2"}
        assert list(example) == ["a", "b", EXAMPLE_TAGS_KEY]

    def test_one_example_per_row_in_order(self) -> None:
        feature = parse_feature(
            outline_document(
                "  Examples:\n    | a |\n    | 1 |\n    | 2 |\n",
                "  Examples:\n    | b |\n    | 3 |\n",
            )
        )
        assert [dict(e.cells) for e in feature.scenarios[0].examples] == [
            {"a": "1"},
            {"a": "2"},
            {"b": "3"},
        ]

    @pytest.mark.parametrize(
        "tag_lines, exp",
        [
            ("", ""),
            ("  @x\n", "x"),
            ("  @x\n  @y\n", "x @y"),
            ("  @smoke @slow\n", "smoke @slow"),
        ],
    )
    def test_example_tags(self, tag_lines: str, exp: str) -> None:
        feature = parse_feature(
            outline_document(tag_lines + "  Examples:\n    | a |\n    | 1 |\n")
        )
        (example,) = feature.scenarios[0].examples
        assert example.tags == exp
        assert example[EXAMPLE_TAGS_KEY] == exp

    def test_example_tags_are_per_block(self) -> None:
        feature = parse_feature(
            outline_document(
                "  @x\n  Examples:\n    | a |\n    | 1 |\n",
                "  Examples:\n    | a |\n    | 2 |\n",
            )
        )
        assert [e.tags for e in feature.scenarios[0].examples] == ["x", ""]

    def test_example_tags_do_not_become_outline_tags(self) -> None:
        feature = parse_feature(
            outline_document("  @x\n  Examples:\n    | a |\n    | 1 |\n")
        )
        assert feature.scenarios[0].tags == ()

    def test_header_inherited_within_outline(self) -> None:
        feature = parse_feature(
            outline_document(
                "  Examples:\n    | a | b |\n    | 1 | 2 |\n",
                "  Examples:\n    |\n    | 3 | 4 |\n",
            )
        )
        assert [dict(e.cells) for e in feature.scenarios[0].examples] == [
            {"a": "1", "b": "2"},
            {"a": "3", "b": "4"},
        ]

    def test_header_inherits_most_recent(self) -> None:
        feature = parse_feature(
            outline_document(
                "  Examples:\n    | a |\n    | 1 |\n",
                "  Examples:\n    | b |\n    | 2 |\n",
                "  Examples:\n    |\n    | 3 |\n",
            )
        )
        assert [dict(e.cells) for e in feature.scenarios[0].examples] == [
            {"a": "1"},
            {"b": "2"},
            {"b": "3"},
        ]

    def test_header_not_inherited_across_outlines(self) -> None:
        feature = parse_feature(
            "Feature: F\n"
            "Scenario Outline: First\n"
            "  Given <a>\n"
            "  Examples:\n"
            "    | a |\n"
            "    | 1 |\n"
            "  Examples:\n"
            "    |\n"
            "    | 2 |\n"
            "Scenario Outline: Second\n"
            "  Given <a>\n"
            "  Examples:\n"
            "    |\n"
            "    | 3 |\n"
        )
        first, second = feature.scenarios
        assert [dict(e.cells) for e in first.examples] == [{"a": "1"}, {"a": "2"}]
        assert second.examples == ()

    def test_empty_header_without_inheritance_yields_no_examples(self) -> None:
        feature = parse_feature(
            outline_document(
                "  Examples:\n    |\n    | 1 |\n",
                "  Examples:\n    | a |\n    | 2 |\n",
            )
        )
        assert [dict(e.cells) for e in feature.scenarios[0].examples] == [{"a": "2"}]

    def test_several_rows_of_data(self) -> None:
        feature = parse_feature(
            outline_document(
                "  Examples:\n"
                "    | a | b |\n"
                "    | 1 | 2 |\n"
                "    | 3 | 4 |\n"
                "    | 5 | 6 |\n"
            )
        )
        assert [tuple(e.cells.values()) for e in feature.scenarios[0].examples] == [
            ("1", "2"),
            ("3", "4"),
            ("5", "6"),
        ]

    def test_incomplete_row(self) -> None:
        with pytest.raises(FeatureSemanticError):
            parse_feature(
                outline_document("  Examples:\n    | a | b |\n    | 1 | 2 |\n    | 3 |\n")
            )

    def test_repeated_header(self) -> None:
        with pytest.raises(FeatureSemanticError):
            parse_feature(
                outline_document("  Examples:\n    | a | a |\n    | 1 | 2 |\n")
            )


class TestSyntaxErrors:
    @pytest.mark.parametrize(
        "string, exp_line, exp_column, exp_message",
        [
            # No scenarios
            ("Feature: F\n", 2, 1, "Expected <scenario>"),
            ("Feature: F", 1, 11, "Expected <scenario>"),
            # No steps
            ("Feature: F\nScenario: S\n", 3, 1, "Expected <step>"),
            # No feature
            ("", 1, 1, "Expected 'Feature:'"),
            ("Scenario: S\nGiven x\n", 1, 1, "Expected 'Feature:'"),
            ("  Scenario: S\nGiven x\n", 1, 3, "Expected 'Feature:' or <tag>"),
            # Outline without examples
            (
                "Feature: F\nScenario Outline: S\nGiven x\n",
                4,
                1,
                "Expected 'Examples:' or <step>",
            ),
            # Trailing junk
            (
                "Feature: F\nScenario: S\nGiven x\nOops\n",
                4,
                1,
                "Expected <end of file> or <scenario> or <step>",
            ),
        ],
    )
    def test_syntax_error(
        self, string: str, exp_line: int, exp_column: int, exp_message: str
    ) -> None:
        with pytest.raises(FeatureSyntaxError) as exc_info:
            parse_feature(string)
        error = exc_info.value
        assert (error.line, error.column, error.message) == (
            exp_line,
            exp_column,
            exp_message,
        )
        assert isinstance(error.__cause__, ParseError)
        assert isinstance(error, GherkinError)

    def test_message(self) -> None:
        with pytest.raises(FeatureSyntaxError) as exc_info:
            parse_feature("Feature: F\nScenario: S\nGiven x\nOops\n", "f.feature")
        assert str(exc_info.value) == (
            "At line 4 column 1 of f.feature:\n"
            "    Oops\n"
            "    ^\n"
            "Expected <end of file> or <scenario> or <step>"
        )


class TestBytes:
    def test_utf8(self) -> None:
        feature = parse_feature_bytes(
            "Feature: Café\nScenario: Crème\nGiven brûlée\n".encode("utf-8")
        )
        assert feature.name == "Café"
        assert feature.scenarios[0].name == "Crème"
        assert feature.scenarios[0].steps[0].text == "brûlée"

    def test_invalid_utf8(self) -> None:
        with pytest.raises(FeatureSyntaxError) as exc_info:
            parse_feature_bytes(b"Feature: F\nScenario: \xff\n", "bad.feature")
        error = exc_info.value
        assert (error.line, error.column) == (2, 11)
        assert error.snippet == "Scenario: "
        assert error.source_name == "bad.feature"
        assert isinstance(error.__cause__, UnicodeDecodeError)

    def test_syntax_error(self) -> None:
        with pytest.raises(FeatureSyntaxError):
            parse_feature_bytes(b"Feature: F\n")


def test_reparsing_gives_equal_features() -> None:
    document = outline_document(
        "  @x\n  Examples:\n    | a |\n    | 1 |\n",
        "  Examples:\n    |\n    | 2 |\n",
    )
    assert parse_feature(document) == parse_feature(document)


def test_transformer_state_is_per_instance() -> None:
    # Two documents parsed in an interleaved fashion must not see each other's
    # inherited headers
    from cornichon.parser import Parser
    from cornichon.grammar import grammar

    tree_a = Parser(grammar).parse(
        outline_document("  Examples:\n    | a |\n    | 1 |\n")
    )
    tree_b = Parser(grammar).parse(outline_document("  Examples:\n    |\n    | 2 |\n"))

    transformer_a = FeatureTransformer()
    transformer_b = FeatureTransformer()
    feature_a = transformer_a.transform(tree_a)
    feature_b = transformer_b.transform(tree_b)

    assert [dict(e.cells) for e in feature_a.scenarios[0].examples] == [{"a": "1"}]
    assert feature_b.scenarios[0].examples == ()


def test_logging(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.DEBUG, logger="cornichon.feature_parser"):
        parse_feature("@f\nFeature: F\nScenario: S\nGiven x\n", "f.feature")
    messages = [record.getMessage() for record in caplog.records]
    assert any("f.feature" in message for message in messages)
    assert any("inherits tags" in message for message in messages)
    assert any("1 scenario" in message for message in messages)
