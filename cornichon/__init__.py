r"""
Cornichon parses Gherkin-style feature documents (``Feature:``,
``Scenario:``, ``Scenario Outline:`` and ``Examples:`` blocks) into an
immutable document tree suitable for driving code generation.

Documents are recognised by a Parsing Expression Grammar (PEG) [PEG]_
evaluated by a pure Python Packrat [Packrat]_ parser and then transformed,
bottom-up, into :py:class:`.Feature` objects.

Basic usage
===========

A feature document is parsed using :py:func:`.parse_feature`::

    >>> from cornichon import parse_feature
    >>> feature = parse_feature('''
    ... @checkout
    ... Feature: Shopping basket
    ...   Customers collect items before paying.
    ...
    ...   Scenario: Adding an item
    ...     Given an empty basket
    ...     When I add a "banana"
    ...     Then the basket contains 1 item
    ...
    ...   @slow
    ...   Scenario Outline: Adding several items
    ...     Given an empty basket
    ...     When I add <count> items
    ...     Then the basket contains <count> items
    ...
    ...     Examples:
    ...       | count |
    ...       | 2     |
    ...       | 10    |
    ... ''')

The result is a :py:class:`.Feature`::

    >>> feature.name
    'Shopping basket'
    >>> feature.description
    'Customers collect items before paying.'
    >>> [tag.name for tag in feature.tags]
    ['checkout']

Its scenarios are either :py:class:`.SimpleScenario` or
:py:class:`.ScenarioOutline` objects::

    >>> simple, outline = feature.scenarios
    >>> simple.name
    'Adding an item'
    >>> simple.steps[1]
    Step(kind=<StepKind.when: 'when'>, text='I add a "banana"')

Steps introduced by ``And`` and ``But`` keep those kinds: they are not
resolved to the kind of the preceding step.

A scenario without tags of its own takes on the tags of its feature. A
scenario with its own tags keeps only those::

    >>> [tag.name for tag in simple.tags]
    ['checkout']
    >>> [tag.name for tag in outline.tags]
    ['slow']

Each row of an outline's Examples tables becomes an :py:class:`.Example`
mapping column names to (whitespace-trimmed) cell values::

    >>> [example["count"] for example in outline.examples]
    ['2', '10']

Every example also includes an :py:data:`.EXAMPLE_TAGS_KEY` entry giving the
tags of the Examples block it came from, rendered as a single string such as
``"smoke @slow"`` (empty when the block has no tags)::

    >>> outline.examples[0].tags
    ''

When several Examples blocks appear in one outline, a block whose header row
is empty (i.e. just ``|``) reuses the most recent header of that outline. A
block with an empty header and nothing to inherit contributes no examples.

Byte strings containing UTF-8 may be parsed with
:py:func:`.parse_feature_bytes`.


Errors
======

Documents which do not match the grammar produce a
:py:exc:`.FeatureSyntaxError`. For example::

    >>> from cornichon import FeatureSyntaxError
    >>> try:
    ...     parse_feature("Feature: Nothing here\n", "empty.feature")
    ... except FeatureSyntaxError as e:
    ...     print(e.line, e.column, e.message)
    2 1 Expected <scenario>

Converting the exception to a string produces a complete message pointing
at the offending text::

    >>> try:
    ...     parse_feature("Feature: F\nScenario: S\nGiven x\nOops\n")
    ... except FeatureSyntaxError as e:
    ...     print(str(e))
    At line 4 column 1:
        Oops
        ^
    Expected <end of file> or <scenario> or <step>

Documents which match the grammar but contain uninterpretable values (for
example an Examples table whose cells don't fill a whole number of rows)
produce a :py:exc:`.FeatureSemanticError`. Both are subclasses of
:py:exc:`.GherkinError`.


The grammar
===========

Cornichon accepts a deliberately small subset of Gherkin:

* Zero or more ``@tag`` lines (several tags may share a line).
* ``Feature:`` followed by a name and, optionally, description lines.
  Description lines end at the first line starting with ``Scenario:``,
  ``Scenario Outline:`` or a tag.
* One or more scenarios, each optionally tagged:

  * ``Scenario:`` followed by a name, optional description lines (ending at
    the first step) and one or more steps.
  * ``Scenario Outline:`` followed by a name, optional description lines, one
    or more steps and then one or more ``Examples:`` blocks. Examples blocks
    may be tagged and consist of a header row followed by one or more data
    rows, each written as ``| cell | cell |``.

* Steps start with ``Given``, ``When``, ``Then``, ``And`` or ``But`` (matched
  case-insensitively) and run to the end of the line.

Description lines are joined with single spaces. Blank lines between elements
are ignored, as is indentation.

``Background:``, ``Rule:``, doc strings, step data tables, comments and
localised keywords are not supported.

.. [PEG] Ford, Bryan. "Parsing expression grammars: a recognition-based
   syntactic foundation." Proceedings of the 31st ACM SIGPLAN-SIGACT symposium
   on Principles of programming languages. 2004.

.. [Packrat] Ford, Bryan. "Packrat parsing: simple, powerful, lazy, linear
   time, functional pearl." ACM SIGPLAN Notices 37.9 (2002): 36-47.


API Reference
=============

Parsing
-------

.. autofunction:: parse_feature

.. autofunction:: parse_feature_bytes

.. autofunction:: merge_tags

.. autoexception:: GherkinError

.. autoexception:: FeatureSyntaxError
    :show-inheritance:

.. autoexception:: FeatureSemanticError
    :show-inheritance:


Document tree
-------------

.. autoclass:: Feature
    :members:
    :undoc-members:

.. autoclass:: Scenario
    :members:
    :undoc-members:

.. autoclass:: SimpleScenario
    :show-inheritance:

.. autoclass:: ScenarioOutline
    :show-inheritance:
    :members:
    :undoc-members:

.. autoclass:: Step
    :members:
    :undoc-members:

.. autoclass:: StepKind
    :members:
    :undoc-members:

.. autoclass:: Example
    :members:

.. autodata:: EXAMPLE_TAGS_KEY

.. autoclass:: Tag
    :members:


Parsing engine
--------------

The grammar itself is described using the expression types below and may be
found in :py:data:`cornichon.grammar.grammar`. The same engine can be used
with other hand-built grammars. For example::

    >>> from cornichon import (
    ...     Grammar, Parser, ParseTreeTransformer, ConcatExpr, DiscardExpr,
    ...     InterleavedExpr, LookaheadExpr, RegexExpr, RuleExpr,
    ... )
    >>> grammar = Grammar(
    ...     start_rule="numbers",
    ...     rules={
    ...         "numbers": ConcatExpr((
    ...             InterleavedExpr(
    ...                 RuleExpr("number"),
    ...                 DiscardExpr(RegexExpr.literal(",")),
    ...             ),
    ...             DiscardExpr(LookaheadExpr(RegexExpr(r"."))),
    ...         )),
    ...         "number": RegexExpr.charset("0123456789", repeat="+"),
    ...     },
    ... )
    >>> class NumbersTransformer(ParseTreeTransformer):
    ...     def number(self, parse_tree, result):
    ...         return int(result)
    ...     def numbers(self, parse_tree, result):
    ...         (values,) = result
    ...         return values
    >>> NumbersTransformer().transform(Parser(grammar).parse("1,20,300"))
    [1, 20, 300]

.. autoclass:: Parser
    :members: parse

.. autoexception:: ParseError
    :members:
    :undoc-members:

.. autoexception:: GrammarError

.. autoexception:: RepeatedEmptyTermError
    :show-inheritance:

.. autoexception:: LeftRecursionError
    :show-inheritance:

.. autoexception:: UndefinedRuleError
    :show-inheritance:

.. autoclass:: Grammar
    :members:

.. autoclass:: Expr

.. autoclass:: EmptyExpr

.. autoclass:: RegexExpr
    :members: literal, charset, any_except

.. autoclass:: RuleExpr

.. autoclass:: AltExpr

.. autoclass:: ConcatExpr

.. autoclass:: MaybeExpr

.. autoclass:: StarExpr

.. autoclass:: PlusExpr

.. autoclass:: LookaheadExpr

.. autoclass:: DiscardExpr

.. autoclass:: FlattenExpr

.. autoclass:: LabelExpr

.. autoclass:: ReplaceExpr

.. autoclass:: InterleavedExpr

The well-formedness check result of :py:meth:`.Grammar.is_well_formed` will
come in the form of one of the following:

.. autoclass:: GrammarWellFormedness

.. autoclass:: WellFormed
    :show-inheritance:

.. autoclass:: UndefinedRule
    :show-inheritance:
    :members:
    :undoc-members:

.. autoclass:: LeftRecursion
    :show-inheritance:
    :members:
    :undoc-members:

.. autoclass:: RepeatedEmptyTerm
    :show-inheritance:
    :members:
    :undoc-members:

The result of parsing is a :py:class:`ParseTree` made up of the following:

.. autoclass:: ParseTree
    :members:

.. autoclass:: Empty
    :show-inheritance:

.. autoclass:: Regex
    :show-inheritance:
    :members:

.. autoclass:: Rule
    :show-inheritance:

.. autoclass:: Alt
    :show-inheritance:

.. autoclass:: Concat
    :show-inheritance:

.. autoclass:: Maybe
    :show-inheritance:

.. autoclass:: Star
    :show-inheritance:

.. autoclass:: Plus
    :show-inheritance:

.. autoclass:: Lookahead
    :show-inheritance:

.. autoclass:: Discard
    :show-inheritance:

.. autoclass:: Text
    :show-inheritance:

.. autoclass:: Replaced
    :show-inheritance:

.. autoclass:: Interleaved
    :show-inheritance:

Parse trees are converted into other values by subclasses of:

.. autoclass:: ParseTreeTransformer
    :members:
    :private-members:

"""


from cornichon.version import __version__

from cornichon.parser import *
from cornichon.transformer import *
from cornichon.model import *
from cornichon.errors import *
from cornichon.feature_parser import *

# NB: These names are explicitly re-exported here because mypy in strict mode
# does not allow implicit re-exports. The completeness of this list is tested
# by the test suite.
__all__ = [  # noqa: F405
    # parser.*
    "GrammarWellFormedness",
    "WellFormed",
    "UndefinedRule",
    "LeftRecursion",
    "RepeatedEmptyTerm",
    "Expr",
    "AltExpr",
    "ConcatExpr",
    "StarExpr",
    "LookaheadExpr",
    "RuleExpr",
    "RegexExpr",
    "EmptyExpr",
    "MaybeExpr",
    "PlusExpr",
    "DiscardExpr",
    "FlattenExpr",
    "LabelExpr",
    "ReplaceExpr",
    "InterleavedExpr",
    "Grammar",
    "ParseTree",
    "Alt",
    "Concat",
    "Star",
    "Lookahead",
    "Rule",
    "Regex",
    "Empty",
    "Maybe",
    "Plus",
    "Discard",
    "Text",
    "Replaced",
    "Interleaved",
    "GrammarError",
    "RepeatedEmptyTermError",
    "LeftRecursionError",
    "UndefinedRuleError",
    "ParseError",
    "Parser",
    # transformer.*
    "ParseTreeTransformer",
    # model.*
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
    # errors.*
    "GherkinError",
    "FeatureSyntaxError",
    "FeatureSemanticError",
    # feature_parser.*
    "FeatureTransformer",
    "merge_tags",
    "parse_feature",
    "parse_feature_bytes",
]
