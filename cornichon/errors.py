"""
Exceptions raised when a feature document cannot be parsed.
"""

from dataclasses import dataclass

from typing import Optional

from cornichon.error_message_generation import format_error_message

__all__ = [
    "GherkinError",
    "FeatureSyntaxError",
    "FeatureSemanticError",
]


class GherkinError(Exception):
    """Base class for all errors produced while parsing a feature document."""


@dataclass
class FeatureSyntaxError(GherkinError):
    """
    Thrown when a document does not conform to the feature grammar (or, for
    byte input, is not valid UTF-8).

    When produced from a grammar mismatch, the underlying
    :py:exc:`.ParseError` is available as ``__cause__``.

    Parameters
    ----------
    line : int
        One-indexed line number where the error occurred.
    column : int
        One-indexed column number where the error occurred.
    snippet : str
        The contents of the offending line.
    message : str
        A human readable description of what was expected.
    source_name : str or None
        The name of the document (e.g. its filename), if known.
    """

    line: int
    column: int
    snippet: str
    message: str
    source_name: Optional[str] = None

    def __str__(self) -> str:
        return format_error_message(
            self.line, self.column, self.snippet, self.message, self.source_name
        )


@dataclass
class FeatureSemanticError(GherkinError):
    """
    Thrown when a grammatically valid document contains a value which cannot
    be interpreted. For example an unknown step keyword, repeated column
    names in an Examples header or a number of Examples cells which does not
    fill a whole number of rows.
    """

    message: str
    source_name: Optional[str] = None

    def __str__(self) -> str:
        if self.source_name is not None:
            return f"In {self.source_name}: {self.message}"
        else:
            return self.message
